"""Orders: log executed trades and manage pending limit orders."""

from __future__ import annotations

import logging
from typing import Optional

from portfolio_tracker.context import ToastLevel
from portfolio_tracker.dates import current_est_date
from portfolio_tracker.events import AppEvent
from portfolio_tracker.exceptions import ApiError, ValidationError
from portfolio_tracker.models import OrderForm, OrdersModel
from portfolio_tracker.state import PrefillOrder
from portfolio_tracker.views.base import ViewController

logger = logging.getLogger(__name__)


def _number(value, label: str, required: bool = True) -> Optional[float]:
    if value in (None, ""):
        if required:
            raise ValidationError(f"{label} is required.")
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number.")
    if number <= 0:
        raise ValidationError(f"{label} must be a positive number.")
    return number


class OrdersView(ViewController):
    name = "orders"
    title = "open orders"
    requires_holder = True
    holder_prompt = "Select a specific account holder to view pending orders."

    def __init__(self, ctx):
        super().__init__(ctx)
        self.form = OrderForm()

    async def load(self) -> bool:
        # Prefill first so the form is ready even if the order fetch fails
        self.apply_prefill()
        return await super().load()

    async def fetch(self, holder_id) -> list[dict]:
        return await self.ctx.api.orders.list_pending(holder_id)

    def store(self, data) -> None:
        self.ctx.store.update_state(pending_orders=data)

    def current_data(self) -> list[dict]:
        return self.ctx.state.pending_orders

    def build_model(self, orders: list[dict]) -> OrdersModel:
        return OrdersModel(orders=list(orders), form=self.form)

    # -- form ----------------------------------------------------------------

    def apply_prefill(self) -> OrderForm:
        """Consume the one-shot prefill into the trade form.

        The prefill is cleared here, before any submission, so it can never be
        applied twice whatever happens to the submit. Without a prefill the
        form keeps what the user (or an earlier prefill) put in it.
        """
        prefill: Optional[PrefillOrder] = self.ctx.store.take("prefill_order_from_source")
        holder_id = self.ctx.state.selected_account_holder_id
        today = current_est_date()

        if prefill is None:
            if not self.form.transaction_date:
                self.form.transaction_date = today
            return self.form

        logger.info(f"Applying order prefill for {prefill.ticker} from source {prefill.source_name}")
        self.form = OrderForm(
            ticker=prefill.ticker,
            price=prefill.price,
            advice_source_id=prefill.source_id or "",
            account_holder_id=str(holder_id),
            transaction_date=today,
            source_locked=bool(prefill.source_id),
            lock_message=f"Source locked: {prefill.source_name}" if prefill.source_id else "",
            tp1=prefill.tp1,
            tp2=prefill.tp2,
            sl=prefill.sl,
            journal_id=prefill.journal_id,
        )
        return self.form

    def reset_form(self) -> None:
        self.form = OrderForm(transaction_date=current_est_date())
        self.render()

    def validate_trade(self, form: OrderForm) -> dict:
        """Build a BUY transaction from the form or raise ValidationError."""
        if not form.ticker.strip():
            raise ValidationError("Ticker is required.")
        if not form.exchange:
            raise ValidationError("Exchange is required.")
        if not form.account_holder_id:
            raise ValidationError("Account holder is required.")
        if not form.transaction_date:
            raise ValidationError("Date is required.")
        price = _number(form.price, "Price")
        quantity = _number(form.quantity, "Quantity")
        tp1 = _number(form.tp1, "Take profit 1", required=False)
        tp2 = _number(form.tp2, "Take profit 2", required=False)
        sl = _number(form.sl, "Stop loss", required=False)

        if tp1 is not None and tp1 <= price:
            raise ValidationError("Take Profit 1 price must be above the purchase price.")
        if tp2 is not None and tp2 <= (tp1 or price):
            raise ValidationError("Take Profit 2 price must be above Take Profit 1 and the purchase price.")
        if sl is not None and sl >= price:
            raise ValidationError("Stop Loss price must be below the purchase price.")

        return {
            "account_holder_id": form.account_holder_id,
            "ticker": form.ticker.strip().upper(),
            "exchange": form.exchange,
            "transaction_type": "BUY",
            "quantity": quantity,
            "price": price,
            "transaction_date": form.transaction_date,
            "limit_price_up": tp1,
            "limit_price_up_2": tp2,
            "limit_price_down": sl,
            "advice_source_id": form.advice_source_id or None,
            "linked_journal_id": form.journal_id,
        }

    async def log_trade(self, form: OrderForm) -> bool:
        """Submit the executed-trade form as a BUY transaction."""
        try:
            transaction = self.validate_trade(form)
            await self.ctx.api.transactions.create(transaction)
        except Exception as e:
            self.report_failure("log transaction", e)
            return False

        self.ctx.toast(f"Logged BUY of {transaction['ticker']}.", ToastLevel.SUCCESS)
        self.form = OrderForm(transaction_date=current_est_date())
        if transaction["advice_source_id"]:
            self.ctx.bus.publish(AppEvent.SOURCE_DETAILS_SHOULD_REFRESH, {"source_id": transaction["advice_source_id"]})
        self.publish_change({"source": self.name, "action": "buy", "ticker": transaction["ticker"]})
        return True

    # -- pending orders ------------------------------------------------------

    async def add_pending_order(
        self,
        ticker: str,
        exchange: str,
        limit_price: float,
        quantity: float,
        expiration_date: Optional[str] = None,
        order_type: str = "BUY_LIMIT",
        notes: str = "",
    ) -> bool:
        try:
            holder_id = self.require_holder("adding a pending order")
            order = {
                "account_holder_id": holder_id,
                "ticker": (ticker or "").strip().upper(),
                "exchange": exchange,
                "order_type": order_type,
                "limit_price": _number(limit_price, "Limit price"),
                "quantity": _number(quantity, "Quantity"),
                "created_date": current_est_date(),
                "expiration_date": expiration_date or None,
                "notes": notes,
            }
            await self.ctx.api.orders.create(order)
        except Exception as e:
            self.report_failure("add pending order", e)
            return False

        self.ctx.toast("Pending order added.", ToastLevel.SUCCESS)
        self.publish_change({"source": self.name, "action": "order-added"})
        return True

    def find_order(self, order_id) -> Optional[dict]:
        return next((o for o in self.ctx.state.pending_orders if str(o.get("id")) == str(order_id)), None)

    async def cancel_order(self, order_id) -> bool:
        try:
            await self.ctx.api.orders.update_status(order_id, "CANCELLED")
        except Exception as e:
            self.report_failure("cancel order", e)
            return False
        self.ctx.toast("Order cancelled.", ToastLevel.INFO)
        self.publish_change({"source": self.name, "action": "order-cancelled"})
        return True

    async def fill_order(self, order_id, execution_price, execution_date: str) -> bool:
        """Mark an order FILLED and log the BUY it produced.

        If the BUY cannot be created the order goes back to ACTIVE.
        """
        order = self.find_order(order_id)
        try:
            price = _number(execution_price, "Execution price")
            if not execution_date:
                raise ValidationError("Please enter a valid positive Execution Price and Execution Date.")
            if order is None:
                raise ValidationError(f"Pending order {order_id} not found.")
        except ValidationError as e:
            self.report_failure("fill order", e)
            return False

        try:
            await self.ctx.api.orders.update_status(order_id, "FILLED")
        except Exception as e:
            self.report_failure("update pending order status", e)
            return False

        try:
            await self.ctx.api.transactions.create(
                {
                    "account_holder_id": order.get("account_holder_id"),
                    "ticker": order.get("ticker"),
                    "exchange": order.get("exchange"),
                    "quantity": order.get("quantity"),
                    "price": price,
                    "transaction_date": execution_date,
                    "transaction_type": "BUY",
                    "advice_source_id": order.get("advice_source_id"),
                }
            )
        except Exception as e:
            logger.warning(f"Transaction creation failed for filled order {order_id}; reverting status")
            try:
                await self.ctx.api.orders.update_status(order_id, "ACTIVE")
            except ApiError as revert_error:
                logger.error(f"Could not revert order {order_id} to ACTIVE: {revert_error}")
            self.ctx.toast(f"Error: {e}. Order status reverted.", ToastLevel.ERROR)
            return False

        self.ctx.toast("Order filled and transaction logged!", ToastLevel.SUCCESS)
        self.publish_change({"source": self.name, "action": "order-filled"})
        return True
