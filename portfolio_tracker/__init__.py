"""
Portfolio tracker client - shared state and cross-view refresh for a trade journal.

Usage:
    from portfolio_tracker import AppContext, Router, get_config
    from portfolio_tracker.views import create_views, register_views

    ctx = AppContext.create(get_config([]))
    router = Router(ctx)
    views = create_views(ctx)
    register_views(router, views)
    await router.switch_view("dashboard")
"""

from portfolio_tracker.config import ClientSettings, get_config
from portfolio_tracker.context import AppContext, LogNotifier, Notifier, ToastLevel
from portfolio_tracker.events import AppEvent, EventBus, Subscription
from portfolio_tracker.exceptions import ApiError, HolderRequiredError, TrackerError, ValidationError
from portfolio_tracker.router import Router
from portfolio_tracker.state import ALL_HOLDERS, PrefillOrder, SessionState, StateStore, ViewRef

__version__ = "4.0.0"

__all__ = [
    "ALL_HOLDERS",
    "ApiError",
    "AppContext",
    "AppEvent",
    "ClientSettings",
    "EventBus",
    "HolderRequiredError",
    "LogNotifier",
    "Notifier",
    "PrefillOrder",
    "Router",
    "SessionState",
    "StateStore",
    "Subscription",
    "ToastLevel",
    "TrackerError",
    "ValidationError",
    "ViewRef",
    "get_config",
]
