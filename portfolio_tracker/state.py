"""
Session state - the single mutable record every view reads during render.

Usage:
    store = StateStore()
    store.update_state(selected_account_holder_id=2)
    holder = store.get_state().selected_account_holder_id

The store never re-renders or publishes on its own. Whoever mutates it is
responsible for re-rendering or publishing a change event afterwards.

State lives for the whole session. Fields are replaced one at a time
(shallow merge) and never reset wholesale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from portfolio_tracker.prices import PriceCache
from portfolio_tracker.settings_store import UserSettings

logger = logging.getLogger(__name__)

# Holder filter value meaning "every account holder"
ALL_HOLDERS = "all"

HolderId = Union[int, str]


@dataclass(frozen=True)
class ViewRef:
    """Which screen is active, plus an optional parameter such as a date."""

    type: str
    value: Optional[str] = None


@dataclass
class LedgerSort:
    column: str = "transaction_date"
    direction: str = "desc"  # 'asc' or 'desc'


@dataclass(frozen=True)
class PrefillOrder:
    """One-shot transfer used to prefill the trade form from another screen."""

    source_id: Optional[str]
    source_name: str
    ticker: str
    price: str
    tp1: Optional[str] = None
    tp2: Optional[str] = None
    sl: Optional[str] = None
    journal_id: Optional[str] = None


@dataclass
class SessionState:
    """Session-wide UI state."""

    selected_account_holder_id: HolderId = 1
    current_view: ViewRef = field(default_factory=lambda: ViewRef("dashboard"))
    settings: UserSettings = field(default_factory=UserSettings)

    # Reference data mirrored from the server, overwritten wholesale on refresh
    all_account_holders: list = field(default_factory=list)
    all_exchanges: list = field(default_factory=list)
    all_advice_sources: list = field(default_factory=list)

    prefill_order_from_source: Optional[PrefillOrder] = None

    # View-local caches, only fresh right after their view's fetch
    pending_orders: list = field(default_factory=list)
    dashboard_open_lots: list = field(default_factory=list)
    transactions: list = field(default_factory=list)
    active_alerts: list = field(default_factory=list)
    watchlist_items: list = field(default_factory=list)
    source_details: Optional[dict] = None
    ledger_sort: LedgerSort = field(default_factory=LedgerSort)

    price_cache: PriceCache = field(default_factory=PriceCache)

    @property
    def holder_is_all(self) -> bool:
        return is_all_holders(self.selected_account_holder_id)


def is_all_holders(holder_id: Optional[HolderId]) -> bool:
    """True for the 'all' sentinel and for an unset holder."""
    return holder_id is None or holder_id == "" or str(holder_id) == ALL_HOLDERS


class StateStore:
    """Owns the SessionState for one application context."""

    def __init__(self, initial: Optional[SessionState] = None):
        self._state = initial or SessionState()

    def get_state(self) -> SessionState:
        """Return the live state object. It is shared, not a copy."""
        return self._state

    def update_state(self, partial: Optional[dict[str, Any]] = None, **fields: Any) -> None:
        """Shallow-merge fields into the state.

        No validation: an unknown key becomes a new attribute.
        """
        changes = dict(partial or {})
        changes.update(fields)
        for key, value in changes.items():
            setattr(self._state, key, value)
        if changes:
            logger.debug(f"State updated: {', '.join(sorted(changes))}")

    def update_settings(self, **changes: Any) -> UserSettings:
        """Merge changes into the settings record rather than replacing it."""
        settings = self._state.settings.merged(**changes)
        self._state.settings = settings
        return settings

    def take(self, name: str) -> Any:
        """Return a field's value and reset it to None in the same step."""
        value = getattr(self._state, name, None)
        setattr(self._state, name, None)
        return value
