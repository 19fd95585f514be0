"""Portfolio tracker TUI - main Textual application."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Footer, Header, Static

from portfolio_tracker.config import ClientSettings
from portfolio_tracker.context import AppContext, ToastLevel
from portfolio_tracker.dates import current_est_date
from portfolio_tracker.events import AppEvent
from portfolio_tracker.exceptions import ValidationError
from portfolio_tracker.prices import PricePoller
from portfolio_tracker.router import Router
from portfolio_tracker.tui import actions
from portfolio_tracker.tui.forms import FormField, FormScreen, TableScreen
from portfolio_tracker.tui.panes import PaneSurface, ViewPane
from portfolio_tracker.views import VIEW_CLASSES, ViewController, create_views, register_views
from portfolio_tracker.views.dashboard import DashboardView
from portfolio_tracker.views.ledger import EDITABLE_FIELDS, LedgerView
from portfolio_tracker.views.orders import OrdersView
from portfolio_tracker.views.settings import SettingsView
from portfolio_tracker.views.sources import SourcesView
from portfolio_tracker.views.watchlist import WatchlistView

logger = logging.getLogger(__name__)

SEVERITIES = {
    ToastLevel.INFO: "information",
    ToastLevel.SUCCESS: "information",
    ToastLevel.WARNING: "warning",
    ToastLevel.ERROR: "error",
}


class TextualNotifier:
    """Shows toasts with ``App.notify``."""

    def __init__(self, app: App) -> None:
        self.app = app

    def notify(self, message: str, level: ToastLevel = ToastLevel.INFO) -> None:
        self.app.notify(message, severity=SEVERITIES[level])


class HolderBar(Static):
    """Shows the selected account holder."""

    def set_holder(self, label: str) -> None:
        self.update(f"[bold]Account:[/] {label}  [dim](h to switch)[/]")


class TrackerApp(App):
    """Portfolio tracker terminal UI."""

    TITLE = "Portfolio Tracker"
    CSS = """
    #holder-bar {
        dock: top;
        height: 1;
        padding: 0 1;
        background: $surface;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("h", "cycle_holder", "Holder"),
        Binding("1", "show_view('dashboard')", "Dashboard"),
        Binding("2", "show_view('orders')", "Orders"),
        Binding("3", "show_view('ledger')", "Ledger"),
        Binding("4", "show_view('alerts')", "Alerts"),
        Binding("5", "show_view('sources')", "Sources"),
        Binding("6", "show_view('watchlist')", "Watchlist"),
        Binding("7", "show_view('settings')", "Settings"),
        Binding("n", "new_item", "New"),
        Binding("a", "add_item", "Add"),
        Binding("e", "edit_item", "Edit"),
        Binding("d", "delete_item", "Delete"),
        Binding("o", "order_item", "Order"),
        Binding("j", "journal_item", "Journal"),
        Binding("x", "execute_item", "Execute", show=False),
        Binding("c", "close_item", "Close", show=False),
        Binding("u", "add_document", "Document", show=False),
        Binding("m", "manage_item", "Manage", show=False),
        Binding("f", "filter", "Filter", show=False),
        Binding("s", "sort", "Sort", show=False),
        Binding("t", "pl_range", "P/L range", show=False),
        Binding("enter", "open_item", "Open", show=False),
        Binding("p", "refresh_prices", "Prices", show=False),
    ]

    def __init__(self, config: ClientSettings, ctx: Optional[AppContext] = None) -> None:
        super().__init__()
        self.client_config = config
        self.ctx = ctx or AppContext.create(config, notifier=TextualNotifier(self))
        self.router = Router(self.ctx)
        self.controllers = create_views(self.ctx)
        register_views(self.router, self.controllers)
        self.poller = PricePoller(self.ctx, on_refresh=self._on_prices)

    def compose(self) -> ComposeResult:
        yield Header()
        yield HolderBar(id="holder-bar")
        with Vertical():
            for cls in VIEW_CLASSES:
                yield ViewPane(cls.name)
        yield Footer()

    async def on_mount(self) -> None:
        for name, view in self.controllers.items():
            pane = self.query_one(f"#pane-{name}", ViewPane)
            view.bind(PaneSurface(pane))
            view.initialize_handlers()
            self.router.attach_container(name, pane)
        self.ctx.bus.subscribe(AppEvent.SETTINGS_CHANGED, lambda _: self._update_holder_bar())

        # Reference data first; every other view reads these caches
        await self.controllers["settings"].load()
        await self.router.select_account_holder(self.ctx.state.selected_account_holder_id, reload=False)
        self._update_holder_bar()

        default_view = self.ctx.state.settings.default_view
        await self.router.switch_view(default_view if default_view in self.controllers else "dashboard")
        if self.client_config.price_polling:
            await self.poller.start()

    async def on_unmount(self) -> None:
        await self.poller.stop()
        for view in self.controllers.values():
            view.teardown()
        await self.ctx.bus.drain(timeout=5)
        await self.ctx.api.close()

    # -- helpers -------------------------------------------------------------

    @property
    def current_view(self) -> ViewController:
        return self.controllers[self.ctx.state.current_view.type]

    def current_pane(self) -> ViewPane:
        return self.query_one(f"#pane-{self.current_view.name}", ViewPane)

    def _update_holder_bar(self) -> None:
        holder_id = str(self.ctx.state.selected_account_holder_id)
        settings_view: SettingsView = self.controllers["settings"]
        label = next((o.label for o in settings_view.holder_options() if o.value == holder_id), holder_id)
        self.query_one(HolderBar).set_holder(label)

    def _on_prices(self, count: int) -> None:
        if self.ctx.state.current_view.type == "dashboard":
            self.controllers["dashboard"].render()

    def open_form(self, title: str, fields: list[FormField], on_submit) -> None:
        """Push a form; ``on_submit`` may be a plain or an async callable."""

        async def handle(values: Optional[dict]) -> None:
            if values is None:
                return
            result = on_submit(values)
            if inspect.isawaitable(result):
                await result

        self.push_screen(FormScreen(title, fields), handle)

    def selected_item(self) -> Optional[Any]:
        return self.current_pane().selected()

    def source_choices(self) -> list[dict]:
        return self.ctx.state.all_advice_sources

    # -- actions -------------------------------------------------------------

    async def action_show_view(self, view_name: str) -> None:
        await self.router.switch_view(view_name)

    async def action_refresh(self) -> None:
        await self.router.refresh_current()

    async def action_cycle_holder(self) -> None:
        settings_view: SettingsView = self.controllers["settings"]
        options = [o.value for o in settings_view.holder_options(include_all=True)]
        if not options:
            return
        current = str(self.ctx.state.selected_account_holder_id)
        index = options.index(current) if current in options else -1
        next_value = options[(index + 1) % len(options)]
        await self.router.select_account_holder(next_value if next_value == "all" else int(next_value))
        self._update_holder_bar()

    async def action_refresh_prices(self) -> None:
        dashboard: DashboardView = self.controllers["dashboard"]
        await dashboard.refresh_prices()

    async def action_new_item(self) -> None:
        name = self.current_view.name
        if name == "orders":
            orders: OrdersView = self.controllers["orders"]
            form = orders.form
            self.open_form(
                "Log executed trade",
                [
                    FormField("ticker", "Ticker", form.ticker),
                    FormField("exchange", "Exchange", form.exchange),
                    FormField("price", "Price", str(form.price or "")),
                    FormField("quantity", "Quantity", str(form.quantity or "")),
                    FormField("transaction_date", "Date", form.transaction_date),
                    FormField("tp1", "Take profit 1", str(form.tp1 or "")),
                    FormField("tp2", "Take profit 2", str(form.tp2 or "")),
                    FormField("sl", "Stop loss", str(form.sl or "")),
                ],
                self._log_trade,
            )
        elif name == "watchlist":
            self.open_form("Watch ticker", [FormField("ticker", "Ticker")], lambda v: self.controllers["watchlist"].add_ticker(v["ticker"]))
        elif name == "sources":
            self.open_form(
                "Add source",
                [FormField("name", "Name"), FormField("type", "Type", "Person"), FormField("description", "Description")],
                lambda v: self.controllers["sources"].add_source(v),
            )
        elif name == "settings":
            self.open_form("Add exchange", [FormField("name", "Exchange name")], lambda v: self.controllers["settings"].add_exchange(v["name"]))
        elif name == "dashboard":
            self._sell_selected()

    async def _log_trade(self, values: dict[str, Any]) -> None:
        orders: OrdersView = self.controllers["orders"]
        form = orders.form
        for key, value in values.items():
            setattr(form, key, value or (None if key in ("tp1", "tp2", "sl") else ""))
        form.account_holder_id = str(self.ctx.state.selected_account_holder_id)
        await orders.log_trade(form)

    def _sell_selected(self) -> None:
        """Sell from one or more lots of the selected position."""
        dashboard: DashboardView = self.controllers["dashboard"]
        selected = self.selected_item()
        if selected is None:
            return
        card = dashboard.sell_position(selected.ticker, selected.exchange)
        if card is None:
            return

        async def submit(values: dict) -> None:
            try:
                lots = actions.chosen_lots(values)
            except ValidationError as e:
                self.ctx.toast(str(e), ToastLevel.ERROR)
                return
            if len(lots) == 1:
                [(lot_id, quantity)] = lots.items()
                sale = dashboard.prepare_sale(lot_id)
                if sale is None:
                    return
                sale.quantity = quantity
                sale.price = values["price"]
                sale.transaction_date = values["transaction_date"]
                await dashboard.sell_from_lot(sale)
            else:
                await dashboard.selective_sell(
                    card.ticker, card.exchange, sum(lots.values()), values["price"], values["transaction_date"], lots
                )

        self.open_form(f"Sell {card.ticker} ({card.exchange})", actions.sell_fields(card, current_est_date()), submit)

    async def action_add_item(self) -> None:
        name = self.current_view.name
        item = self.selected_item()
        if name == "orders":
            self.open_form(
                "Add pending order",
                [
                    FormField("ticker", "Ticker"),
                    FormField("exchange", "Exchange"),
                    FormField("limit_price", "Limit price"),
                    FormField("quantity", "Quantity"),
                    FormField("expiration_date", "Expires (optional)"),
                    FormField("notes", "Notes"),
                ],
                lambda v: self.controllers["orders"].add_pending_order(
                    v["ticker"], v["exchange"], v["limit_price"], v["quantity"], expiration_date=v["expiration_date"] or None, notes=v["notes"]
                ),
            )
        elif name == "watchlist":
            self._idea_form(ticker=item.get("ticker", "") if item else "")
        elif name == "sources":
            sources: SourcesView = self.controllers["sources"]
            if item is not None and item.get("kind") == "journal":
                self._idea_form(ticker=item.get("ticker", ""), source=sources.source_name(item["source_id"]) or "", technique=item)
            elif sources.open_source_id is not None:
                source_id = sources.open_source_id
                self.open_form("Add note", [FormField("content", "Note")], lambda v: sources.add_note(source_id, v["content"]))
            else:
                self.ctx.toast("Open a source first.", ToastLevel.WARNING)
        elif name == "settings":
            self.open_form("Add account holder", [FormField("name", "Name")], lambda v: self.controllers["settings"].add_holder(v["name"]))

    def _idea_form(self, ticker: str = "", source: str = "", technique: Optional[dict] = None) -> None:
        watchlist: WatchlistView = self.controllers["watchlist"]
        journal_id = technique.get("id") if technique else None

        async def submit(values: dict) -> None:
            source_id = actions.resolve_source(values.pop("source"), self.source_choices())
            ticker = values.pop("ticker")
            await watchlist.add_idea(ticker, source_id, values, journal_entry_id=journal_id)

        self.open_form("Add trade idea", actions.idea_fields(ticker, source, technique), submit)

    async def action_edit_item(self) -> None:
        item = self.selected_item()
        if item is None:
            return
        name = self.current_view.name
        if name == "ledger":
            ledger: LedgerView = self.controllers["ledger"]

            async def save_transaction(values: dict) -> None:
                changes = actions.changed_values(item, values)
                if changes:
                    await ledger.edit_transaction(item["id"], changes)

            self.open_form(f"Edit transaction {item['id']}", actions.edit_fields(item, EDITABLE_FIELDS), save_transaction)
        elif name == "dashboard":
            self._limits_form(item)
        elif name == "sources" and item.get("kind") == "source":
            self.open_form(
                f"Edit {item.get('name', 'source')}",
                [
                    FormField("name", "Name", item.get("name", "") or ""),
                    FormField("type", "Type", item.get("type", "") or ""),
                    FormField("description", "Description", item.get("description", "") or ""),
                ],
                lambda v: self.controllers["sources"].update_source(item["id"], v),
            )
        elif name == "settings":
            settings_view: SettingsView = self.controllers["settings"]
            if item.get("kind") == "holder":
                self.open_form("Rename account holder", [FormField("name", "Name")], lambda v: settings_view.rename_holder(item["id"], v["name"]))
            elif item.get("kind") == "setting":

                async def save_preferences(values: dict) -> None:
                    settings_view.save_settings({k: v for k, v in values.items() if v != ""})

                self.open_form("Preferences", actions.preference_fields(self.ctx.state.settings.model_dump()), save_preferences)

    def _limits_form(self, card) -> None:
        dashboard: DashboardView = self.controllers["dashboard"]
        if not card.lots:
            return

        async def submit(values: dict) -> None:
            try:
                limit_up = actions.optional_number(values["limit_up"], "Take profit")
                limit_down = actions.optional_number(values["limit_down"], "Stop loss")
            except ValidationError as e:
                self.ctx.toast(str(e), ToastLevel.ERROR)
                return
            await dashboard.set_limits(
                values["lot_id"],
                limit_up=limit_up,
                limit_up_expiration=values["limit_up_expiration"] or None,
                limit_down=limit_down,
                limit_down_expiration=values["limit_down_expiration"] or None,
            )

        self.open_form(f"Limits for {card.ticker}", actions.limit_fields(card.lots[0]), submit)

    async def action_delete_item(self) -> None:
        item = self.selected_item()
        if item is None:
            return
        name = self.current_view.name
        kind = item.get("kind") if isinstance(item, dict) else None
        if name == "orders":
            await self.controllers["orders"].cancel_order(item["id"])
        elif name == "ledger":
            await self.controllers["ledger"].delete_transaction(item["id"])
        elif name == "alerts":
            await self.controllers["alerts"].dismiss(item["id"])
        elif name == "sources":
            sources: SourcesView = self.controllers["sources"]
            if kind == "source":
                await sources.delete_source(item["id"])
            elif kind == "note":
                await sources.delete_note(item["source_id"], item["id"])
            elif kind == "document":
                await sources.delete_document(item["id"])
            elif kind == "journal":
                await self.controllers["watchlist"].delete_paper_trade(item["id"])
        elif name == "watchlist":
            watchlist: WatchlistView = self.controllers["watchlist"]
            if kind == "idea":
                await watchlist.close_idea(item["id"])
            elif kind == "paper":
                await watchlist.delete_paper_trade(item["id"])
            else:
                await watchlist.remove_ticker(item["id"])
        elif name == "settings" and kind == "holder":
            await self.controllers["settings"].delete_holder(item["id"])

    async def action_open_item(self) -> None:
        item = self.selected_item()
        if item is None:
            return
        name = self.current_view.name
        if name == "sources" and item.get("kind") == "source":
            await self.controllers["sources"].open_details(item["id"])
        elif name == "alerts":
            await self.controllers["alerts"].confirm(item["id"])
        elif name == "settings" and item.get("kind") == "holder":
            self.controllers["settings"].set_default_holder(item["id"])
        elif name == "orders":
            self.open_form(
                f"Fill order {item['id']}",
                [FormField("price", "Execution price", str(item.get("limit_price", ""))), FormField("date", "Execution date", current_est_date())],
                lambda v: self.controllers["orders"].fill_order(item["id"], v["price"], v["date"]),
            )

    async def action_order_item(self) -> None:
        """Open the trade form prefilled from the selected alert or idea."""
        item = self.selected_item()
        if item is None:
            return
        name = self.current_view.name
        sources: SourcesView = self.controllers["sources"]
        if name == "alerts":
            await self.controllers["alerts"].create_order_from_alert(item["id"])
        elif name in ("sources", "watchlist") and item.get("kind") == "idea":
            await sources.create_order_from_idea(**actions.idea_order(item))
        elif name == "sources" and item.get("kind") == "journal":
            await sources.create_order_from_idea(**actions.technique_order(item))

    async def action_journal_item(self) -> None:
        name = self.current_view.name
        if name == "watchlist":
            watchlist: WatchlistView = self.controllers["watchlist"]

            async def submit(values: dict) -> None:
                values["advice_source_id"] = actions.resolve_source(values.pop("source"), self.source_choices())
                await watchlist.add_paper_trade(values)

            self.open_form("Add paper trade", actions.paper_trade_fields(current_est_date()), submit)
        elif name == "sources":
            sources: SourcesView = self.controllers["sources"]
            source_id = sources.open_source_id
            if source_id is None:
                self.ctx.toast("Open a source first.", ToastLevel.WARNING)
                return
            self.open_form(
                "Add technique",
                [
                    FormField("description", "Description"),
                    FormField("chart_type", "Chart type"),
                    FormField("image_path", "Image path"),
                    FormField("notes", "Notes"),
                ],
                lambda v: sources.add_technique(source_id, **v),
            )

    async def action_execute_item(self) -> None:
        item = self.selected_item()
        if self.current_view.name == "watchlist" and item is not None and item.get("kind") == "paper":
            await self.controllers["watchlist"].execute_paper_trade(item["id"])

    async def action_close_item(self) -> None:
        name = self.current_view.name
        item = self.selected_item()
        if name == "sources":
            self.controllers["sources"].close_details()
        elif name == "watchlist" and item is not None and item.get("kind") == "paper":
            self.open_form(
                f"Close {item.get('ticker', '')}",
                [FormField("exit_price", "Exit price")],
                lambda v: self.controllers["watchlist"].close_paper_trade(item["id"], v["exit_price"]),
            )

    async def action_add_document(self) -> None:
        if self.current_view.name != "sources":
            return
        sources: SourcesView = self.controllers["sources"]
        source_id = sources.open_source_id
        if source_id is None:
            self.ctx.toast("Open a source first.", ToastLevel.WARNING)
            return
        self.open_form(
            "Add document link",
            [
                FormField("link", "Link", placeholder="https://"),
                FormField("title", "Title"),
                FormField("document_type", "Type"),
                FormField("description", "Description"),
            ],
            lambda v: sources.add_document(source_id, **v),
        )

    async def action_manage_item(self) -> None:
        card = self.selected_item()
        if self.current_view.name != "dashboard" or card is None:
            return
        dashboard: DashboardView = self.controllers["dashboard"]
        model = await dashboard.manage_position(card.ticker, card.exchange)
        if model is not None:
            columns, rows = actions.position_rows(model)
            self.push_screen(TableScreen(f"{model.ticker} ({model.exchange})", columns, rows))

    async def action_filter(self) -> None:
        name = self.current_view.name
        if name == "dashboard":
            dashboard: DashboardView = self.controllers["dashboard"]
            self.open_form(
                "Filter positions",
                [FormField("ticker", "Ticker", dashboard.ticker_filter), FormField("exchange", "Exchange", dashboard.exchange_filter)],
                lambda v: dashboard.set_filter(v["ticker"], v["exchange"]),
            )
        elif name == "ledger":
            ledger: LedgerView = self.controllers["ledger"]
            self.open_form(
                "Filter transactions",
                [FormField("ticker", "Ticker", ledger.ticker_filter), FormField("type", "Type", ledger.type_filter, placeholder="BUY / SELL")],
                lambda v: ledger.set_filter(v["ticker"], v["type"].upper()),
            )

    async def action_sort(self) -> None:
        name = self.current_view.name
        if name == "dashboard":
            dashboard: DashboardView = self.controllers["dashboard"]
            self.open_form("Sort positions", [actions.sort_field(dashboard.sort)], lambda v: dashboard.set_sort(v["sort"]))
        elif name == "ledger":
            ledger: LedgerView = self.controllers["ledger"]
            self.open_form(
                "Sort transactions",
                [FormField("column", "Column", self.ctx.state.ledger_sort.column, placeholder="same column flips direction")],
                lambda v: ledger.sort_by(v["column"]),
            )

    async def action_pl_range(self) -> None:
        if self.current_view.name != "ledger":
            return
        ledger: LedgerView = self.controllers["ledger"]

        async def submit(values: dict) -> None:
            try:
                ledger.set_pl_range(values["range"], values["start"] or None, values["end"] or None)
            except ValidationError as e:
                self.ctx.toast(str(e), ToastLevel.ERROR)
                return
            await ledger.refresh_pl_summary()

        self.open_form(
            "Realized P/L range",
            [
                FormField("range", "Range", ledger.pl_range, placeholder="30d / 90d / ytd / all / custom"),
                FormField("start", "Start (custom)", ledger.custom_start or ""),
                FormField("end", "End (custom)", ledger.custom_end or ""),
            ],
            submit,
        )


def run(config: ClientSettings) -> None:
    TrackerApp(config).run()
