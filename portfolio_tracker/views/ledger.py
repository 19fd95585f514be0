"""Ledger: every transaction, sortable, with a realized P/L summary."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from portfolio_tracker.context import ToastLevel
from portfolio_tracker.dates import current_est_date, range_start
from portfolio_tracker.exceptions import ValidationError
from portfolio_tracker.models import LedgerModel, PLSummary
from portfolio_tracker.state import LedgerSort
from portfolio_tracker.views.base import ViewController

logger = logging.getLogger(__name__)

PL_RANGES = ("30d", "90d", "ytd", "all", "custom")

NUMERIC_COLUMNS = {"quantity", "price", "quantity_remaining", "realized_pl", "cost_basis"}

EDITABLE_FIELDS = ("ticker", "exchange", "transaction_type", "quantity", "price", "transaction_date", "account_holder_id")


def sort_transactions(transactions: list[dict], sort: LedgerSort) -> list[dict]:
    """Sort by a column; blanks always last, numeric columns numerically."""
    column = sort.column
    reverse = sort.direction == "desc"

    def key(tx: dict):
        value = tx.get(column)
        if column in NUMERIC_COLUMNS:
            try:
                return float(value)
            except (TypeError, ValueError):
                return 0.0
        return str(value or "").lower()

    present = [tx for tx in transactions if tx.get(column) not in (None, "")]
    blank = [tx for tx in transactions if tx.get(column) in (None, "")]
    return sorted(present, key=key, reverse=reverse) + blank


class LedgerView(ViewController):
    name = "ledger"
    title = "ledger"

    def __init__(self, ctx):
        super().__init__(ctx)
        self.ticker_filter = ""
        self.type_filter = ""
        self.pl_range = "30d"
        self.custom_start: Optional[str] = None
        self.custom_end: Optional[str] = None
        self.pl_summary: Optional[PLSummary] = None

    async def fetch(self, holder_id) -> list[dict]:
        return await self.ctx.api.transactions.list(holder_id)

    def store(self, data) -> None:
        self.ctx.store.update_state(transactions=data)

    def current_data(self) -> list[dict]:
        return self.ctx.state.transactions

    async def load(self) -> bool:
        loaded = await super().load()
        await self.refresh_pl_summary()
        return loaded

    def build_model(self, transactions: list[dict]) -> LedgerModel:
        rows = transactions
        if self.ticker_filter:
            needle = self.ticker_filter.strip().upper()
            rows = [tx for tx in rows if needle in str(tx.get("ticker", "")).upper()]
        if self.type_filter:
            rows = [tx for tx in rows if tx.get("transaction_type") == self.type_filter]
        sort = self.ctx.state.ledger_sort
        return LedgerModel(
            transactions=sort_transactions(rows, sort),
            sort_column=sort.column,
            sort_direction=sort.direction,
            ticker_filter=self.ticker_filter,
            type_filter=self.type_filter,
            pl_summary=self.pl_summary,
        )

    # -- sort / filter -------------------------------------------------------

    def sort_by(self, column: str) -> LedgerSort:
        """Sort by ``column``; choosing the current column flips direction."""
        current = self.ctx.state.ledger_sort
        if current.column == column:
            new_sort = LedgerSort(column, "asc" if current.direction == "desc" else "desc")
        else:
            new_sort = LedgerSort(column, "asc")
        self.ctx.store.update_state(ledger_sort=new_sort)
        self.render()
        return new_sort

    def set_filter(self, ticker: str = "", transaction_type: str = "") -> None:
        self.ticker_filter = ticker
        self.type_filter = transaction_type
        self.render()

    # -- realized P/L --------------------------------------------------------

    def pl_dates(self, today: Optional[date] = None) -> tuple[Optional[str], Optional[str]]:
        today = today or date.fromisoformat(current_est_date())
        if self.pl_range == "custom":
            return self.custom_start, self.custom_end or today.isoformat()
        if self.pl_range == "all":
            return None, None
        start = range_start(self.pl_range, today)
        return (start.isoformat() if start else None), today.isoformat()

    def set_pl_range(self, range_key: str, start: Optional[str] = None, end: Optional[str] = None) -> None:
        if range_key not in PL_RANGES:
            raise ValidationError(f"Unknown range: {range_key}")
        self.pl_range = range_key
        self.custom_start = start
        self.custom_end = end

    async def refresh_pl_summary(self) -> Optional[PLSummary]:
        state = self.ctx.state
        if state.holder_is_all:
            self.pl_summary = PLSummary(self.pl_range, None)
            self.render()
            return self.pl_summary

        holder_id = state.selected_account_holder_id
        start, end = self.pl_dates()
        try:
            data = await self.ctx.api.reporting.realized_pl_summary(holder_id, start, end)
        except Exception as e:
            logger.error(f"Failed to fetch ranged P/L summary: {e}")
            self.ctx.toast(f"Error fetching ranged P/L: {e}", ToastLevel.ERROR)
            self.pl_summary = PLSummary(self.pl_range, None, start, end)
            self.render()
            return self.pl_summary

        # The holder may have changed while we waited
        if self.ctx.state.selected_account_holder_id != holder_id:
            return None
        total = (data or {}).get("totalRealizedPL", (data or {}).get("total_realized_pl"))
        self.pl_summary = PLSummary(self.pl_range, float(total) if total is not None else 0.0, start, end)
        self.render()
        return self.pl_summary

    # -- edits ---------------------------------------------------------------

    async def edit_transaction(self, transaction_id, changes: dict[str, Any]) -> bool:
        original = next((t for t in self.ctx.state.transactions if str(t.get("id")) == str(transaction_id)), None)
        try:
            if original is None:
                raise ValidationError("Transaction not found.")
            unknown = set(changes) - set(EDITABLE_FIELDS)
            if unknown:
                raise ValidationError(f"Cannot edit: {', '.join(sorted(unknown))}")
            for field_name in ("quantity", "price"):
                if field_name in changes:
                    try:
                        if float(changes[field_name]) <= 0:
                            raise ValueError
                    except (TypeError, ValueError):
                        raise ValidationError(f"{field_name.capitalize()} must be a positive number.")
            updated = {k: original.get(k) for k in EDITABLE_FIELDS}
            updated.update(changes)
            await self.ctx.api.transactions.update(transaction_id, updated)
        except Exception as e:
            self.report_failure("update transaction", e)
            return False

        self.ctx.toast("Transaction updated!", ToastLevel.SUCCESS)
        self.publish_change({"source": self.name, "action": "edit", "id": transaction_id})
        return True

    async def delete_transaction(self, transaction_id) -> bool:
        try:
            await self.ctx.api.transactions.delete(transaction_id)
        except Exception as e:
            self.report_failure("delete transaction", e)
            return False

        self.ctx.toast("Transaction deleted.", ToastLevel.SUCCESS)
        self.publish_change({"source": self.name, "action": "delete", "id": transaction_id})
        return True
