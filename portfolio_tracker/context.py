"""Application context injected into every view controller."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional, Protocol

from portfolio_tracker.api import PortfolioApi
from portfolio_tracker.events import EventBus
from portfolio_tracker.settings_store import LocalSettingsStore
from portfolio_tracker.state import SessionState, StateStore

if TYPE_CHECKING:
    from portfolio_tracker.config import ClientSettings
    from portfolio_tracker.router import Router

logger = logging.getLogger(__name__)


class ToastLevel(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notifier(Protocol):
    """Transient user-facing messages."""

    def notify(self, message: str, level: ToastLevel = ToastLevel.INFO) -> None: ...


class LogNotifier:
    """Notifier that only logs. Used when no UI is attached."""

    _LEVELS = {
        ToastLevel.INFO: logging.INFO,
        ToastLevel.SUCCESS: logging.INFO,
        ToastLevel.WARNING: logging.WARNING,
        ToastLevel.ERROR: logging.ERROR,
    }

    def notify(self, message: str, level: ToastLevel = ToastLevel.INFO) -> None:
        logger.log(self._LEVELS[level], f"[toast:{level.value}] {message}")


@dataclass
class AppContext:
    """Everything a view needs, passed explicitly instead of module globals.

    Usage:
        ctx = AppContext.create(config)
        dashboard = DashboardView(ctx)
    """

    api: PortfolioApi
    store: StateStore = field(default_factory=StateStore)
    bus: EventBus = field(default_factory=EventBus)
    notifier: Notifier = field(default_factory=LogNotifier)
    settings_store: Optional[LocalSettingsStore] = None
    router: Optional["Router"] = None

    @property
    def state(self) -> SessionState:
        """Shortcut for ``store.get_state()``. Re-read after every await."""
        return self.store.get_state()

    def toast(self, message: str, level: ToastLevel = ToastLevel.INFO) -> None:
        self.notifier.notify(message, level)

    @classmethod
    def create(cls, config: "ClientSettings", notifier: Optional[Notifier] = None) -> "AppContext":
        """Build a context from configuration, loading saved user settings."""
        settings_store = LocalSettingsStore(config.settings_path)
        user_settings = settings_store.load()
        store = StateStore(
            SessionState(
                settings=user_settings,
                selected_account_holder_id=user_settings.default_account_holder_id or 1,
            )
        )
        return cls(
            api=PortfolioApi(config.api_url, timeout=config.request_timeout),
            store=store,
            notifier=notifier or LogNotifier(),
            settings_store=settings_store,
        )
