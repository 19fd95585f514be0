"""Base class for screen controllers.

Each controller owns one screen. ``load()`` fetches and renders on demand;
``initialize_handlers()`` subscribes the loader to change events. The
controller talks to the screen only through a ``ViewSurface`` and to the user
only through the context's notifier.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional, Protocol

from portfolio_tracker.context import ToastLevel
from portfolio_tracker.events import AppEvent, Subscription
from portfolio_tracker.exceptions import ApiError, HolderRequiredError, TrackerError, ValidationError
from portfolio_tracker.logging_context import view_context

if TYPE_CHECKING:
    from portfolio_tracker.context import AppContext

logger = logging.getLogger(__name__)


class ViewSurface(Protocol):
    """Where a controller puts its output."""

    def show_loading(self, message: str) -> None: ...

    def show_message(self, message: str) -> None: ...

    def show_error(self, message: str) -> None: ...

    def render(self, model: Any) -> None: ...


class LoadGuard:
    """Generation counter for load cycles.

    A load takes a token when it starts. After each await it checks the token
    is still current; if a newer load began meanwhile, its response is stale
    and gets dropped.
    """

    def __init__(self):
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self) -> int:
        self._generation += 1
        return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation


class ViewController(ABC):
    """Recurring load/render/refresh pattern for one screen."""

    name: str = ""
    title: str = ""
    requires_holder: bool = False
    holder_prompt: str = "Select a specific account holder to view this page."

    # Events that trigger a reload besides the generic change event
    refresh_events: tuple[AppEvent, ...] = ()

    def __init__(self, ctx: "AppContext"):
        self.ctx = ctx
        self.surface: Optional[ViewSurface] = None
        self.guard = LoadGuard()
        self._subscriptions: list[Subscription] = []

    # -- wiring --------------------------------------------------------------

    def bind(self, surface: ViewSurface) -> None:
        self.surface = surface

    def initialize_handlers(self) -> None:
        """Subscribe to change events. Safe to call again after a rebuild."""
        if self.surface is None:
            logger.warning(f"[{self.name}] No surface bound; skipping handler setup")
            return
        self.teardown()
        for event in (AppEvent.DATA_UPDATED, *self.refresh_events):
            self._subscriptions.append(self.ctx.bus.subscribe(event, self._on_refresh_event))
        self.on_initialize()

    def on_initialize(self) -> None:
        """Hook for extra subscriptions; use ``self.listen``."""

    def listen(self, event: AppEvent, handler) -> Subscription:
        subscription = self.ctx.bus.subscribe(event, handler)
        self._subscriptions.append(subscription)
        return subscription

    def teardown(self) -> None:
        """Cancel every subscription this controller holds."""
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions)

    def _on_refresh_event(self, detail: Any):
        return self.load()

    # -- loading -------------------------------------------------------------

    @abstractmethod
    async def fetch(self, holder_id) -> Any:
        """Call the gateway and return the raw data for this view."""

    def store(self, data: Any) -> None:
        """Keep fetched data in the view's state field."""

    @abstractmethod
    def build_model(self, data: Any) -> Any:
        """Turn data into the view model handed to the surface."""

    async def load(self) -> bool:
        """Fetch and render. Never leaves the surface in the loading state.

        Returns True only when this load stored and rendered fresh data.
        """
        token = self.guard.begin()
        with view_context(self.name, token):
            self._show("show_loading", f"Loading {self.title}...")

            holder_id = self.ctx.state.selected_account_holder_id
            if self.requires_holder and self.ctx.state.holder_is_all:
                self.store(self.empty_data())
                self._show("show_message", self.holder_prompt)
                return False

            try:
                data = await self.fetch(holder_id)
            except Exception as e:
                if not self.guard.is_current(token):
                    logger.debug(f"[{self.name}] Ignoring error from superseded load: {e}")
                    return False
                logger.error(f"[{self.name}] Failed to load: {e}", exc_info=not isinstance(e, TrackerError))
                self._show("show_error", f"Error loading {self.title}.")
                self.ctx.toast(f"Error loading {self.title}: {e}", ToastLevel.ERROR)
                return False

            if not self.guard.is_current(token):
                logger.debug(f"[{self.name}] Discarding stale response (generation {token})")
                return False

            self.store(data)
            self.render()
            return True

    def empty_data(self) -> Any:
        return []

    def render(self) -> None:
        """Re-render from state without fetching."""
        try:
            model = self.build_model(self.current_data())
        except Exception as e:
            logger.error(f"[{self.name}] Failed to render: {e}", exc_info=True)
            self._show("show_error", f"Error displaying {self.title}.")
            return
        self._show("render", model)

    def current_data(self) -> Any:
        """Data to render from; defaults to what ``store`` kept."""
        return None

    def _show(self, method: str, arg: Any) -> None:
        if self.surface is None:
            return
        getattr(self.surface, method)(arg)

    # -- actions -------------------------------------------------------------

    def publish_change(self, detail: Any = None) -> None:
        """Announce a successful mutation. Exactly once per action."""
        self.ctx.bus.publish(AppEvent.DATA_UPDATED, detail if detail is not None else {"source": self.name})

    def require_holder(self, action: str):
        """Return the selected holder or raise if 'all' is selected."""
        state = self.ctx.state
        if state.holder_is_all:
            raise HolderRequiredError(action)
        return state.selected_account_holder_id

    def report_failure(self, action: str, error: Exception) -> None:
        """Toast an action failure with the right severity and log it."""
        if isinstance(error, (ValidationError, HolderRequiredError)):
            self.ctx.toast(str(error), ToastLevel.ERROR)
            return
        if isinstance(error, ApiError):
            logger.warning(f"[{self.name}] {action} failed: {error}")
        else:
            logger.error(f"[{self.name}] {action} failed: {error}", exc_info=True)
        self.ctx.toast(f"Failed to {action}: {error}", ToastLevel.ERROR)
