"""Dashboard: open positions, sells and limit management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from portfolio_tracker.context import ToastLevel
from portfolio_tracker.dates import current_est_date
from portfolio_tracker.events import AppEvent
from portfolio_tracker.exceptions import ValidationError
from portfolio_tracker.models import DashboardModel, ManagePositionModel, PositionCard
from portfolio_tracker.positions import (
    QUANTITY_EPSILON,
    SORT_OPTIONS,
    aggregate_lots,
    filter_cards,
    is_open,
    sort_cards,
    sort_lots,
)
from portfolio_tracker.prices import refresh_prices
from portfolio_tracker.views.base import ViewController

logger = logging.getLogger(__name__)


@dataclass
class SaleForm:
    """A sell against one lot."""

    parent_buy_id: Any
    ticker: str
    exchange: str
    account_holder_id: Any
    quantity: float
    price: float
    transaction_date: str


def _positive(value, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number.")
    if number <= 0:
        raise ValidationError(f"{label} must be a positive number.")
    return number


class DashboardView(ViewController):
    name = "dashboard"
    title = "positions"

    def __init__(self, ctx):
        super().__init__(ctx)
        self.ticker_filter = ""
        self.exchange_filter = ""
        self.sort = "ticker-asc"
        self.last_manage_model: Optional[ManagePositionModel] = None

    async def fetch(self, holder_id) -> list[dict]:
        today = current_est_date()
        data = await self.ctx.api.reporting.positions(today, holder_id)
        lots = (data or {}).get("endOfDayPositions") or []
        tickers = {lot.get("ticker") for lot in lots if lot.get("ticker")}
        if tickers:
            try:
                await refresh_prices(self.ctx, tickers)
            except Exception as e:
                # Positions still render, valued at cost
                logger.warning(f"Price refresh failed during dashboard load: {e}")
                self.ctx.toast(f"Could not refresh prices: {e}", ToastLevel.WARNING)
        return lots

    def store(self, data) -> None:
        self.ctx.store.update_state(dashboard_open_lots=data)

    def current_data(self) -> list[dict]:
        return self.ctx.state.dashboard_open_lots

    def build_model(self, lots: list[dict]) -> DashboardModel:
        prices = self.ctx.state.price_cache
        cards = filter_cards(aggregate_lots(lots, prices), self.ticker_filter, self.exchange_filter)
        cards = sort_cards(cards, self.sort)
        visible = {(c.ticker, c.exchange) for c in cards}
        table_lots = [lot for lot in lots if is_open(lot) and (lot.get("ticker"), lot.get("exchange")) in visible]
        return DashboardModel(
            cards=cards,
            lots=sort_lots(table_lots, self.sort, prices),
            total_current_value=sum(c.total_current_value for c in cards),
            total_unrealized_pl=sum(c.unrealized_pl for c in cards),
            ticker_filter=self.ticker_filter,
            sort=self.sort,
        )

    # -- filter / sort -------------------------------------------------------

    def set_filter(self, ticker_filter: str = "", exchange_filter: str = "") -> None:
        self.ticker_filter = ticker_filter
        self.exchange_filter = exchange_filter
        self.render()

    def set_sort(self, sort: str) -> None:
        if sort not in SORT_OPTIONS:
            logger.warning(f"Unknown dashboard sort '{sort}', using ticker-asc")
            sort = "ticker-asc"
        self.sort = sort
        self.render()

    def find_card(self, ticker: str, exchange: str) -> Optional[PositionCard]:
        lots = [
            lot for lot in self.ctx.state.dashboard_open_lots if lot.get("ticker") == ticker and lot.get("exchange") == exchange
        ]
        cards = aggregate_lots(lots, self.ctx.state.price_cache)
        return cards[0] if cards else None

    # -- actions -------------------------------------------------------------

    async def refresh_prices(self) -> bool:
        self.ctx.toast("Refreshing prices...", ToastLevel.INFO)
        tickers = [lot.get("ticker", "") for lot in self.ctx.state.dashboard_open_lots]
        try:
            await refresh_prices(self.ctx, tickers)
        except Exception as e:
            self.report_failure("refresh prices", e)
            return False
        self.render()
        return True

    def sell_position(self, ticker: str, exchange: str) -> Optional[PositionCard]:
        """Open the sell flow for an aggregated position.

        Returns the card whose lots the sell form should offer, or None when
        the action cannot proceed.
        """
        if self.ctx.state.holder_is_all:
            self.ctx.toast("Please select a specific account holder to sell a position.", ToastLevel.ERROR)
            return None
        card = self.find_card(ticker, exchange)
        if card is None:
            self.ctx.toast(f"No open lots found for {ticker} ({exchange}).", ToastLevel.ERROR)
        return card

    def prepare_sale(self, buy_id) -> Optional[SaleForm]:
        """Prefill a sale of one lot with its full remaining quantity."""
        lot = next((l for l in self.ctx.state.dashboard_open_lots if str(l.get("id")) == str(buy_id)), None)
        if lot is None:
            self.ctx.toast("Error: Could not find original lot data.", ToastLevel.ERROR)
            return None
        return SaleForm(
            parent_buy_id=lot["id"],
            ticker=lot.get("ticker", ""),
            exchange=lot.get("exchange", ""),
            account_holder_id=lot.get("account_holder_id"),
            quantity=float(lot.get("quantity_remaining") or 0),
            price=0.0,
            transaction_date=current_est_date(),
        )

    async def sell_from_lot(self, form: SaleForm) -> bool:
        """Log a SELL against one lot."""
        try:
            quantity = _positive(form.quantity, "Quantity")
            price = _positive(form.price, "Price")
            if not form.transaction_date:
                raise ValidationError("Please select a Date.")
            if not (form.ticker and form.exchange and form.parent_buy_id and form.account_holder_id):
                raise ValidationError("Error: Missing necessary transaction details (Ticker, Exchange, Parent ID, Holder ID).")
            await self.ctx.api.transactions.create(
                {
                    "account_holder_id": form.account_holder_id,
                    "parent_buy_id": form.parent_buy_id,
                    "quantity": quantity,
                    "price": price,
                    "transaction_date": form.transaction_date,
                    "ticker": form.ticker,
                    "exchange": form.exchange,
                    "transaction_type": "SELL",
                }
            )
        except Exception as e:
            self.report_failure("log sale", e)
            return False

        self.ctx.toast("Sale logged successfully!", ToastLevel.SUCCESS)
        self.ctx.bus.publish(AppEvent.SOURCE_DETAILS_SHOULD_REFRESH, {"ticker": form.ticker})
        self.publish_change({"source": self.name, "action": "sell", "ticker": form.ticker})
        return True

    async def selective_sell(
        self,
        ticker: str,
        exchange: str,
        total_quantity: float,
        price: float,
        transaction_date: str,
        lot_quantities: dict[Any, float],
    ) -> bool:
        """Sell ``total_quantity`` split across chosen lots of one position."""
        try:
            holder_id = self.require_holder("selling a position")
            total = _positive(total_quantity, "Total quantity")
            price = _positive(price, "Price")
            if not transaction_date:
                raise ValidationError("Please select a Date.")

            lots = {str(l["id"]): l for l in self.ctx.state.dashboard_open_lots if l.get("ticker") == ticker}
            chosen = {str(k): float(v) for k, v in lot_quantities.items() if v and float(v) > 0}
            if not chosen:
                raise ValidationError("Select at least one lot to sell from.")
            for lot_id, qty in chosen.items():
                lot = lots.get(lot_id)
                if lot is None:
                    raise ValidationError(f"Unknown lot: {lot_id}")
                if qty > float(lot.get("quantity_remaining") or 0) + QUANTITY_EPSILON:
                    raise ValidationError(f"Quantity for lot {lot_id} exceeds its remaining shares.")
            if abs(sum(chosen.values()) - total) > QUANTITY_EPSILON:
                raise ValidationError("Selected lot quantities must add up to the total quantity to sell.")

            await self.ctx.api.transactions.create(
                {
                    "account_holder_id": holder_id,
                    "ticker": ticker,
                    "exchange": exchange,
                    "quantity": total,
                    "price": price,
                    "transaction_date": transaction_date,
                    "transaction_type": "SELL",
                    "lots": [{"parent_buy_id": lots[k]["id"], "quantity_to_sell": q} for k, q in chosen.items()],
                }
            )
        except Exception as e:
            self.report_failure("log selective sale", e)
            return False

        self.ctx.toast("Selective sale logged successfully!", ToastLevel.SUCCESS)
        self.publish_change({"source": self.name, "action": "selective-sell", "ticker": ticker})
        return True

    async def manage_position(self, ticker: str, exchange: str) -> Optional[ManagePositionModel]:
        """Lots of one position with the sales made against each."""
        if self.ctx.state.holder_is_all:
            self.ctx.toast("Error: Missing required data (ticker, exchange, holder ID) to manage position.", ToastLevel.ERROR)
            return None
        holder_id = self.ctx.state.selected_account_holder_id
        try:
            data = await self.ctx.api.reporting.positions(current_est_date(), holder_id)
        except Exception as e:
            self.report_failure("refresh position details", e)
            return None

        lots = [
            lot
            for lot in (data or {}).get("endOfDayPositions") or []
            if lot.get("ticker") == ticker and lot.get("exchange") == exchange
        ]
        lots.sort(key=lambda l: str(l.get("purchase_date", "")))

        sales_by_lot: dict[Any, list[dict]] = {}
        for lot in lots:
            try:
                sales_by_lot[lot["id"]] = await self.ctx.api.transactions.sales_for_lot(lot["id"], holder_id)
            except Exception as e:
                logger.error(f"Error fetching sales for lot {lot['id']}: {e}")
                sales_by_lot[lot["id"]] = []

        self.last_manage_model = ManagePositionModel(ticker, exchange, lots, sales_by_lot)
        return self.last_manage_model

    async def set_limits(
        self,
        lot_id,
        limit_up: Optional[float] = None,
        limit_up_expiration: Optional[str] = None,
        limit_down: Optional[float] = None,
        limit_down_expiration: Optional[str] = None,
    ) -> bool:
        """Set take-profit / stop-loss limits on one lot."""
        lot = next((l for l in self.ctx.state.dashboard_open_lots if str(l.get("id")) == str(lot_id)), None)
        try:
            if lot is None:
                raise ValidationError("Error: Could not find original lot data.")
            cost = float(lot.get("cost_basis") or 0)
            if limit_up is not None and float(limit_up) <= cost:
                raise ValidationError("Take profit price must be above the purchase price.")
            if limit_down is not None and float(limit_down) >= cost:
                raise ValidationError("Stop loss price must be below the purchase price.")
            await self.ctx.api.transactions.update(
                lot["id"],
                {
                    **lot,
                    "limit_price_up": limit_up,
                    "limit_up_expiration": limit_up_expiration if limit_up is not None else None,
                    "limit_price_down": limit_down,
                    "limit_down_expiration": limit_down_expiration if limit_down is not None else None,
                },
            )
        except Exception as e:
            self.report_failure("set limits", e)
            return False

        self.ctx.toast("Limits updated.", ToastLevel.SUCCESS)
        self.publish_change({"source": self.name, "action": "limits", "lot_id": lot_id})
        return True
