"""Event bus that keeps independent views consistent.

A view that changes server data publishes ``AppEvent.DATA_UPDATED``; every
other view that subscribed re-runs its own loader. Producers never call
another view's loader directly.

Example usage:
    bus = EventBus()
    sub = bus.subscribe(AppEvent.DATA_UPDATED, lambda detail: print(detail))
    bus.publish(AppEvent.DATA_UPDATED, {"source": "orders"})
    sub.cancel()
"""

import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class AppEvent(Enum):
    """Signals carried by the bus."""

    # Some transactional data changed; re-fetch if relevant
    DATA_UPDATED = "dataUpdate"

    # Narrower signals
    SOURCE_DETAILS_SHOULD_REFRESH = "sourceDetailsShouldRefresh"
    JOURNAL_UPDATED = "journalUpdated"
    SETTINGS_CHANGED = "settingsChanged"
    ACCOUNT_HOLDER_CHANGED = "accountHolderChanged"

    # A view was opened with a one-shot payload (detail = view name)
    NAVIGATE_WITH_PAYLOAD = "navigateWithPayload"


Handler = Callable[[Any], Any]

_subscription_ids = itertools.count(1)


@dataclass(eq=False)
class Subscription:
    """Handle returned by ``EventBus.subscribe``."""

    event: AppEvent
    handler: Handler
    bus: "EventBus" = field(repr=False)
    id: int = field(default_factory=lambda: next(_subscription_ids))

    @property
    def active(self) -> bool:
        return self.bus.is_subscribed(self)

    def cancel(self) -> None:
        self.bus.unsubscribe(self)


class EventBus:
    """In-memory topic -> ordered handler list.

    Delivery is synchronous and in registration order. Handler exceptions are
    logged and never reach the publisher or the remaining handlers. A handler
    that returns a coroutine (an async loader) has it scheduled on the running
    loop; ``drain()`` waits for those.
    """

    def __init__(self):
        self._subscriptions: dict[AppEvent, list[Subscription]] = {}
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, event: AppEvent, handler: Handler) -> Subscription:
        """Register ``handler(detail)`` for future publishes of ``event``."""
        subscription = Subscription(event=event, handler=handler, bus=self)
        self._subscriptions.setdefault(event, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription. Unknown or already removed handles are ignored."""
        handlers = self._subscriptions.get(subscription.event, [])
        try:
            handlers.remove(subscription)
        except ValueError:
            pass  # Already gone

    def is_subscribed(self, subscription: Subscription) -> bool:
        return subscription in self._subscriptions.get(subscription.event, [])

    def subscriber_count(self, event: AppEvent) -> int:
        return len(self._subscriptions.get(event, []))

    def publish(self, event: AppEvent, detail: Any = None) -> int:
        """Deliver ``detail`` to every handler subscribed right now.

        Returns the number of handlers invoked.
        """
        # Snapshot so handlers may (un)subscribe while we iterate
        subscriptions = list(self._subscriptions.get(event, []))
        logger.debug(f"Publishing {event.value} to {len(subscriptions)} handler(s)")

        for subscription in subscriptions:
            try:
                result = subscription.handler(detail)
            except Exception as e:
                logger.warning(
                    f"Event handler error for {event.value}: {e}",
                    exc_info=True,
                )
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)

        return len(subscriptions)

    def _schedule(self, event: AppEvent, awaitable) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop: nothing can await it
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.warning(f"Dropped async handler for {event.value}: no running event loop")
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._task_done(event, t))

    def _task_done(self, event: AppEvent, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(
                f"Async event handler error for {event.value}: {error}",
                exc_info=error,
            )

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait until every scheduled async handler has finished.

        Handlers may publish again while running, so loop until idle.
        """
        while self._pending:
            await asyncio.wait(set(self._pending), timeout=timeout)
            if timeout is not None:
                break

    def clear(self) -> None:
        """Remove all handlers. Useful for testing."""
        self._subscriptions.clear()
