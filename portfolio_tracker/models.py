"""Typed view models handed from controllers to surfaces."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class Option:
    """One entry of a dropdown."""

    value: str
    label: str
    disabled: bool = False


@dataclass
class LotMetrics:
    current_value: float
    cost_of_remaining: float
    unrealized_pl: float
    unrealized_percent: float
    proximity: Optional[str] = None  # 'up', 'down' or None


@dataclass
class PositionCard:
    """Open lots of one ticker on one exchange, aggregated."""

    ticker: str
    exchange: str
    total_quantity: float
    weighted_avg_cost_basis: float
    total_cost: float
    total_current_value: float
    unrealized_pl: float
    unrealized_percent: float
    current_price: Optional[float]
    lots: list[dict] = field(default_factory=list)

    @property
    def is_single_lot(self) -> bool:
        return len(self.lots) == 1


@dataclass
class DashboardModel:
    cards: list[PositionCard]
    lots: list[dict]
    total_current_value: float
    total_unrealized_pl: float
    ticker_filter: str = ""
    sort: str = "ticker-asc"


@dataclass
class ManagePositionModel:
    ticker: str
    exchange: str
    lots: list[dict]
    sales_by_lot: dict[Any, list[dict]]


@dataclass
class OrderForm:
    """Values of the log-trade form."""

    ticker: str = ""
    exchange: str = ""
    price: str = ""
    quantity: str = ""
    transaction_date: str = ""
    account_holder_id: str = ""
    advice_source_id: str = ""
    source_locked: bool = False
    lock_message: str = ""
    tp1: Optional[str] = None
    tp2: Optional[str] = None
    sl: Optional[str] = None
    journal_id: Optional[str] = None


@dataclass
class OrdersModel:
    orders: list[dict]
    form: OrderForm


@dataclass
class PLSummary:
    range_key: str
    total: Optional[float]
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @property
    def display(self) -> str:
        return "--" if self.total is None else f"{self.total:,.2f}"


@dataclass
class LedgerModel:
    transactions: list[dict]
    sort_column: str
    sort_direction: str
    ticker_filter: str = ""
    type_filter: str = ""
    pl_summary: Optional[PLSummary] = None


@dataclass
class AlertsModel:
    alerts: list[dict]


@dataclass
class SourcesModel:
    sources: list[dict]
    details: Optional[dict] = None


@dataclass
class WatchlistModel:
    tickers: list[dict]
    ideas: list[dict]
    paper_trades: list[dict] = field(default_factory=list)


@dataclass
class SettingsModel:
    settings: dict
    holder_options: list[Option]
    exchange_options: list[Option]
