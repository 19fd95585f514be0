"""Screen controllers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from portfolio_tracker.views.alerts import AlertsView
from portfolio_tracker.views.base import LoadGuard, ViewController, ViewSurface
from portfolio_tracker.views.dashboard import DashboardView
from portfolio_tracker.views.ledger import LedgerView
from portfolio_tracker.views.orders import OrdersView
from portfolio_tracker.views.settings import SettingsView
from portfolio_tracker.views.sources import SourcesView
from portfolio_tracker.views.watchlist import WatchlistView

if TYPE_CHECKING:
    from portfolio_tracker.context import AppContext
    from portfolio_tracker.router import Router

VIEW_CLASSES: tuple[type[ViewController], ...] = (
    DashboardView,
    OrdersView,
    LedgerView,
    AlertsView,
    SourcesView,
    WatchlistView,
    SettingsView,
)


def create_views(ctx: "AppContext") -> dict[str, ViewController]:
    """One controller per screen, keyed by view name."""
    return {cls.name: cls(ctx) for cls in VIEW_CLASSES}


def register_views(router: "Router", views: dict[str, ViewController]) -> None:
    """Point each route's loader at its controller's ``load``."""
    for name, view in views.items():
        router.register(name, view.load)


__all__ = [
    "AlertsView",
    "DashboardView",
    "LedgerView",
    "LoadGuard",
    "OrdersView",
    "SettingsView",
    "SourcesView",
    "VIEW_CLASSES",
    "ViewController",
    "ViewSurface",
    "WatchlistView",
    "create_views",
    "register_views",
]
