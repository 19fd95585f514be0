"""Textual widgets that act as view surfaces."""

from __future__ import annotations

from typing import Any, Callable, Optional

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import DataTable, Static

from portfolio_tracker.models import (
    AlertsModel,
    DashboardModel,
    LedgerModel,
    OrdersModel,
    SettingsModel,
    SourcesModel,
    WatchlistModel,
)

Table = tuple[list[str], list[tuple], list[Any]]


def _money(value) -> str:
    try:
        return f"{float(value):,.2f}"
    except (TypeError, ValueError):
        return "--"


def _signed(value: float, suffix: str = "") -> Text:
    return Text(f"{value:+,.2f}{suffix}", style="green" if value >= 0 else "red")


def dashboard_table(model: DashboardModel) -> Table:
    columns = ["Ticker", "Exchange", "Qty", "Avg cost", "Price", "Value", "P/L", "P/L %", "Lots"]
    rows = []
    for card in model.cards:
        rows.append(
            (
                card.ticker,
                card.exchange,
                f"{card.total_quantity:g}",
                _money(card.weighted_avg_cost_basis),
                _money(card.current_price) if card.current_price is not None else Text("--", style="dim"),
                _money(card.total_current_value),
                _signed(card.unrealized_pl),
                _signed(card.unrealized_percent, "%"),
                str(len(card.lots)),
            )
        )
    return columns, rows, list(model.cards)


def orders_table(model: OrdersModel) -> Table:
    columns = ["ID", "Ticker", "Exchange", "Type", "Limit", "Qty", "Created", "Expires", "Status"]
    rows = [
        (
            str(o.get("id", "")),
            o.get("ticker", ""),
            o.get("exchange", ""),
            o.get("order_type", ""),
            _money(o.get("limit_price")),
            str(o.get("quantity", "")),
            o.get("created_date", "") or "",
            o.get("expiration_date", "") or "",
            o.get("status", ""),
        )
        for o in model.orders
    ]
    return columns, rows, list(model.orders)


def ledger_table(model: LedgerModel) -> Table:
    columns = ["Date", "Ticker", "Exchange", "Type", "Qty", "Price", "Remaining"]
    arrow = " ^" if model.sort_direction == "asc" else " v"
    keys = ["transaction_date", "ticker", "exchange", "transaction_type", "quantity", "price", "quantity_remaining"]
    columns = [c + (arrow if k == model.sort_column else "") for c, k in zip(columns, keys)]
    rows = [
        (
            t.get("transaction_date", ""),
            t.get("ticker", ""),
            t.get("exchange", ""),
            t.get("transaction_type", ""),
            str(t.get("quantity", "")),
            _money(t.get("price")),
            str(t.get("quantity_remaining", "") or ""),
        )
        for t in model.transactions
    ]
    return columns, rows, list(model.transactions)


def alerts_table(model: AlertsModel) -> Table:
    columns = ["Date", "Ticker", "Message", "Status"]
    rows = [
        (a.get("created_at", "") or "", a.get("ticker", ""), a.get("message", ""), a.get("status", ""))
        for a in model.alerts
    ]
    return columns, rows, list(model.alerts)


def _detail_idea(item: dict) -> tuple[str, str]:
    entry = item.get("rec_entry_low") or item.get("rec_entry_high") or ""
    return item.get("ticker", "") or "", f"entry {entry or '--'}  tp1 {item.get('rec_tp1') or '--'}  sl {item.get('rec_stop_loss') or '--'}"


# Rows listed under the open source, in display order
DETAIL_ROWS: list[tuple[str, str, Callable[[dict], tuple[str, str]]]] = [
    ("watchlistItems", "idea", _detail_idea),
    ("journalEntries", "journal", lambda e: (e.get("ticker", "") or "", e.get("entry_reason") or e.get("notes") or "")),
    ("linkedTransactions", "trade", lambda t: (f"{t.get('transaction_type', '')} {t.get('ticker', '')}", f"{t.get('quantity', '')} @ {_money(t.get('price'))}")),
    ("documents", "document", lambda d: (d.get("title") or d.get("document_type") or "", d.get("external_link", "") or "")),
    ("sourceNotes", "note", lambda n: (n.get("created_at", "") or "", n.get("note_content", "") or "")),
]


def sources_table(model: SourcesModel) -> Table:
    columns = ["Name", "Type", "Description"]
    rows: list[tuple] = []
    items: list[Any] = []
    for s in model.sources:
        rows.append((s.get("name", ""), s.get("type", ""), s.get("description", "") or ""))
        items.append({**s, "kind": "source"})
    if model.details:
        source_id = (model.details.get("source") or {}).get("id")
        for section, kind, describe in DETAIL_ROWS:
            for entry in model.details.get(section) or []:
                rows.append((f"  {kind}", *describe(entry)))
                items.append({**entry, "kind": kind, "source_id": source_id})
    return columns, rows, items


def watchlist_table(model: WatchlistModel) -> Table:
    columns = ["Kind", "Ticker", "Entry", "TP1", "SL"]
    rows: list[tuple] = []
    items: list[Any] = []
    for t in model.tickers:
        rows.append(("watched", t.get("ticker", ""), "", "", ""))
        items.append({**t, "kind": "watched"})
    for i in model.ideas:
        entry = i.get("rec_entry_low") or i.get("rec_entry_high") or ""
        rows.append(("idea", i.get("ticker", ""), str(entry), str(i.get("rec_tp1") or ""), str(i.get("rec_stop_loss") or "")))
        items.append({**i, "kind": "idea"})
    for p in model.paper_trades:
        rows.append(
            (
                "paper",
                p.get("ticker", ""),
                _money(p.get("entry_price")),
                str(p.get("target_price") or ""),
                str(p.get("stop_loss_price") or ""),
            )
        )
        items.append({**p, "kind": "paper"})
    return columns, rows, items


def settings_table(model: SettingsModel) -> Table:
    columns = ["Kind", "Name", "Value"]
    rows: list[tuple] = []
    items: list[Any] = []
    for key, value in model.settings.items():
        rows.append(("setting", key, str(value)))
        items.append({"kind": "setting", "key": key})
    for option in model.holder_options:
        rows.append(("holder", option.label, option.value))
        items.append({"kind": "holder", "id": option.value})
    for option in model.exchange_options:
        rows.append(("exchange", option.label, ""))
        items.append({"kind": "exchange", "name": option.value})
    return columns, rows, items


RENDERERS: dict[type, Callable[[Any], Table]] = {
    DashboardModel: dashboard_table,
    OrdersModel: orders_table,
    LedgerModel: ledger_table,
    AlertsModel: alerts_table,
    SourcesModel: sources_table,
    WatchlistModel: watchlist_table,
    SettingsModel: settings_table,
}


def summary_line(model: Any) -> str:
    if isinstance(model, DashboardModel):
        return f"[bold]Value:[/] {_money(model.total_current_value)}  [bold]Unrealized:[/] {_money(model.total_unrealized_pl)}  [dim]sort {model.sort}[/]"
    if isinstance(model, LedgerModel) and model.pl_summary is not None:
        return f"[bold]Realized P/L ({model.pl_summary.range_key}):[/] {model.pl_summary.display}"
    if isinstance(model, OrdersModel) and model.form.lock_message:
        return f"[bold]{model.form.ticker}[/] @ {model.form.price}  [dim]{model.form.lock_message}[/]"
    if isinstance(model, SourcesModel) and model.details:
        counts = ", ".join(f"{k}: {len(v)}" for k, v in model.details.items() if isinstance(v, list))
        return f"[bold]Details:[/] {counts}"
    return ""


class ViewPane(Vertical):
    """One screen: a status line over a table."""

    DEFAULT_CSS = """
    ViewPane {
        height: 1fr;
    }
    ViewPane > .pane-status {
        height: auto;
        padding: 0 1;
        border-bottom: solid $accent;
    }
    ViewPane > DataTable {
        height: 1fr;
    }
    """

    def __init__(self, view_name: str, **kwargs) -> None:
        super().__init__(id=f"pane-{view_name}", **kwargs)
        self.view_name = view_name
        self.items: list[Any] = []
        self.last_model: Any = None

    def compose(self) -> ComposeResult:
        yield Static("", classes="pane-status")
        yield DataTable(cursor_type="row", zebra_stripes=True)

    @property
    def status(self) -> Static:
        return self.query_one(".pane-status", Static)

    @property
    def table(self) -> DataTable:
        return self.query_one(DataTable)

    # ViewSurface

    def show_loading(self, message: str) -> None:
        self.status.update(f"[dim]{message}[/]")

    def show_message(self, message: str) -> None:
        self.status.update(message)
        self.table.clear()
        self.items = []

    def show_error(self, message: str) -> None:
        self.status.update(f"[red]{message}[/]")

    def render_model(self, model: Any) -> None:
        renderer = RENDERERS.get(type(model))
        if renderer is None:
            self.show_error(f"Nothing to display for {type(model).__name__}")
            return
        columns, rows, items = renderer(model)
        table = self.table
        table.clear(columns=True)
        table.add_columns(*columns)
        for row in rows:
            table.add_row(*row)
        self.items = items
        self.last_model = model
        self.status.update(summary_line(model) or f"{len(rows)} rows")

    def selected(self) -> Optional[Any]:
        row = self.table.cursor_row
        if row is None or not 0 <= row < len(self.items):
            return None
        return self.items[row]


class PaneSurface:
    """Adapts a ViewPane to the ViewSurface protocol.

    ``Widget.render`` means something else to Textual, so the pane exposes
    ``render_model`` and this adapter maps ``render`` onto it.
    """

    def __init__(self, pane: ViewPane) -> None:
        self.pane = pane

    def show_loading(self, message: str) -> None:
        self.pane.show_loading(message)

    def show_message(self, message: str) -> None:
        self.pane.show_message(message)

    def show_error(self, message: str) -> None:
        self.pane.show_error(message)

    def render(self, model: Any) -> None:
        self.pane.render_model(model)
