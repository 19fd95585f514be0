"""Navigation between views."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Protocol

from portfolio_tracker.context import ToastLevel
from portfolio_tracker.events import AppEvent
from portfolio_tracker.state import HolderId, ViewRef

if TYPE_CHECKING:
    from portfolio_tracker.context import AppContext

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[None]]


class PageContainer(Protocol):
    """Anything that can be shown or hidden (Textual widgets qualify)."""

    display: bool


@dataclass
class Route:
    name: str
    loader: Optional[Loader]
    container: Optional[PageContainer] = None


class Router:
    """Maps view names to containers and loaders.

    Switching always re-runs the target's loader, including when the target
    is already active; that is how a view is force-refreshed.
    """

    def __init__(self, ctx: "AppContext"):
        self._ctx = ctx
        self._routes: dict[str, Route] = {}
        ctx.router = self

    def register(
        self,
        view_name: str,
        loader: Optional[Loader],
        container: Optional[PageContainer] = None,
    ) -> None:
        if view_name in self._routes:
            logger.debug(f"Replacing route for view: {view_name}")
        self._routes[view_name] = Route(view_name, loader, container)

    def attach_container(self, view_name: str, container: PageContainer) -> None:
        route = self._routes.get(view_name)
        if route is None:
            self._routes[view_name] = Route(view_name, None, container)
        else:
            route.container = container

    @property
    def view_names(self) -> list[str]:
        return list(self._routes)

    def is_registered(self, view_name: str) -> bool:
        route = self._routes.get(view_name)
        return route is not None and route.loader is not None

    async def switch_view(self, view_name: str, value: Optional[str] = None) -> None:
        """Hide every container, show the target, record it and run its loader."""
        state = self._ctx.store.get_state()
        previous = state.current_view.type
        logger.info(f"Switching view: {previous} -> {view_name} {value or ''}".rstrip())

        if previous == "orders" and view_name != "orders" and state.prefill_order_from_source:
            logger.debug("Leaving orders with an unused prefill; clearing it")
            self._ctx.store.update_state(prefill_order_from_source=None)

        for route in self._routes.values():
            if route.container is not None:
                route.container.display = False

        route = self._routes.get(view_name)
        if route is not None and route.container is not None:
            route.container.display = True

        if route is None or route.loader is None:
            logger.warning(f"No loader registered for view: {view_name}")
            return

        self._ctx.store.update_state(current_view=ViewRef(view_name, value))

        try:
            await route.loader()
        except Exception as e:
            logger.error(f"Error loading data for view {view_name}: {e}", exc_info=True)
            self._ctx.toast(f"Failed to load {view_name} page: {e}", ToastLevel.ERROR)

    async def refresh_current(self) -> None:
        current = self._ctx.store.get_state().current_view
        await self.switch_view(current.type, current.value)

    async def navigate_with_payload(self, view_name: str, payload: Any) -> None:
        """Open a view with a one-shot prefill it consumes on load."""
        self._ctx.store.update_state(prefill_order_from_source=payload)
        self._ctx.bus.publish(AppEvent.NAVIGATE_WITH_PAYLOAD, view_name)
        await self.switch_view(view_name)

    async def select_account_holder(self, holder_id: HolderId, reload: bool = True) -> None:
        """Global holder filter: rescope cached sources and reload the current view.

        Pass ``reload=False`` when a view switch follows anyway, as at startup.
        """
        self._ctx.store.update_state(selected_account_holder_id=holder_id)

        try:
            sources = await self._ctx.api.sources.list(holder_id)
        except Exception as e:
            logger.error(f"Failed to refresh advice sources: {e}")
            self._ctx.toast(f"Could not load advice sources: {e}", ToastLevel.ERROR)
            sources = []

        # Another handler may have changed the holder during the await
        if self._ctx.store.get_state().selected_account_holder_id == holder_id:
            self._ctx.store.update_state(all_advice_sources=sources)

        self._ctx.bus.publish(AppEvent.ACCOUNT_HOLDER_CHANGED, holder_id)
        if reload:
            await self.refresh_current()
