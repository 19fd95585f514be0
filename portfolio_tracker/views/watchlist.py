"""Watchlist: watched tickers, open trade ideas and paper trades."""

from __future__ import annotations

import logging
from typing import Any, Optional

from portfolio_tracker.api.journal import TECHNIQUE_TICKER
from portfolio_tracker.context import ToastLevel
from portfolio_tracker.dates import current_est_date
from portfolio_tracker.events import AppEvent
from portfolio_tracker.exceptions import ValidationError
from portfolio_tracker.models import WatchlistModel
from portfolio_tracker.prices import refresh_prices
from portfolio_tracker.views.base import ViewController

logger = logging.getLogger(__name__)

IDEA_GUIDELINES = ("rec_entry_low", "rec_entry_high", "rec_tp1", "rec_tp2", "rec_stop_loss")


def _non_negative(value, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = -1.0
    if not number >= 0:
        raise ValidationError(f"{label} must be a valid positive number (or 0 for techniques).")
    return number


def _optional_positive(value, label: str) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = 0.0
    if not number > 0:
        raise ValidationError(f"{label} must be a valid positive number if entered.")
    return number


def _text(value) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip() or None


def build_journal_entry(entry: dict[str, Any], holder_id) -> dict[str, Any]:
    """Validate a paper trade and shape it for the journal endpoint.

    Targets and stops are only checked against the entry for BUY ideas.
    """
    ticker = str(entry.get("ticker") or "").strip().upper()
    direction = str(entry.get("direction") or "BUY").strip().upper()
    if not (entry.get("entry_date") and ticker and entry.get("exchange") and direction):
        raise ValidationError("Please fill in all required fields.")
    quantity = _non_negative(entry.get("quantity"), "Quantity")
    entry_price = _non_negative(entry.get("entry_price"), "Entry Price")
    tp1 = _optional_positive(entry.get("target_price"), "Target Price 1")
    tp2 = _optional_positive(entry.get("target_price_2"), "Target Price 2")
    sl = _optional_positive(entry.get("stop_loss_price"), "Stop Loss Price")

    buy = direction == "BUY"
    if tp1 is not None and buy and tp1 <= entry_price:
        raise ValidationError("Target Price 1 must be greater than Entry Price for a BUY.")
    if tp1 is not None and tp2 is not None and tp2 <= tp1:
        raise ValidationError("Target Price 2 must be greater than Target Price 1.")
    if tp1 is None and tp2 is not None and buy and tp2 <= entry_price:
        raise ValidationError("Target Price 2 must be greater than Entry Price for a BUY.")
    if sl is not None and buy and sl >= entry_price:
        raise ValidationError("Stop Loss Price must be less than Entry Price for a BUY.")

    return {
        "account_holder_id": holder_id,
        "entry_date": entry["entry_date"],
        "ticker": ticker,
        "exchange": entry["exchange"],
        "direction": direction,
        "quantity": quantity,
        "entry_price": entry_price,
        "target_price": tp1,
        "target_price_2": tp2,
        "stop_loss_price": sl,
        "advice_source_id": entry.get("advice_source_id") or None,
        "advice_source_details": _text(entry.get("advice_source_details")),
        "entry_reason": _text(entry.get("entry_reason")),
        "notes": _text(entry.get("notes")),
    }


class WatchlistView(ViewController):
    name = "watchlist"
    title = "watchlist"
    requires_holder = True
    holder_prompt = "Select a specific account holder to view the watchlist."
    refresh_events = (AppEvent.JOURNAL_UPDATED,)

    def __init__(self, ctx):
        super().__init__(ctx)
        self.ideas: list[dict] = []
        self.paper_trades: list[dict] = []

    async def fetch(self, holder_id) -> dict:
        tickers = await self.ctx.api.watchlist.list_simple(holder_id)
        try:
            ideas = await self.ctx.api.watchlist.list_ideas(holder_id)
        except Exception as e:
            # Watched tickers are still useful without ideas
            logger.warning(f"Failed to load trade ideas: {e}")
            ideas = []
        try:
            paper_trades = await self.ctx.api.journal.list(holder_id, status="OPEN")
        except Exception as e:
            logger.warning(f"Failed to load paper trades: {e}")
            paper_trades = []
        return {"tickers": tickers, "ideas": ideas, "paper_trades": paper_trades}

    def empty_data(self) -> dict:
        return {"tickers": [], "ideas": [], "paper_trades": []}

    def store(self, data) -> None:
        self.ctx.store.update_state(watchlist_items=data["tickers"])
        self.ideas = data["ideas"]
        self.paper_trades = data["paper_trades"]

    def current_data(self) -> dict:
        return {"tickers": self.ctx.state.watchlist_items, "ideas": self.ideas, "paper_trades": self.paper_trades}

    def build_model(self, data: dict) -> WatchlistModel:
        tickers = sorted(data["tickers"], key=lambda t: str(t.get("ticker", "")))
        ideas = [i for i in data["ideas"] if i.get("status", "OPEN") == "OPEN"]
        # Techniques belong to their source's panel
        paper_trades = [p for p in data["paper_trades"] if p.get("ticker") != TECHNIQUE_TICKER]
        return WatchlistModel(tickers=tickers, ideas=ideas, paper_trades=paper_trades)

    # -- watched tickers -----------------------------------------------------

    async def add_ticker(self, ticker: str) -> bool:
        ticker = (ticker or "").strip().upper()
        try:
            if any(str(t.get("ticker", "")).upper() == ticker for t in self.ctx.state.watchlist_items):
                raise ValidationError(f"{ticker} is already on the watchlist.")
            await self.ctx.api.watchlist.add_simple(ticker, self.ctx.state.selected_account_holder_id)
        except Exception as e:
            self.report_failure("add ticker", e)
            return False
        self.ctx.toast(f"{ticker} added to watchlist.", ToastLevel.SUCCESS)
        self.publish_change({"source": self.name, "action": "ticker-added", "ticker": ticker})
        return True

    async def remove_ticker(self, item_id) -> bool:
        try:
            await self.ctx.api.watchlist.delete_simple(item_id)
        except Exception as e:
            self.report_failure("remove ticker", e)
            return False
        self.ctx.toast("Ticker removed from watchlist.", ToastLevel.SUCCESS)
        self.publish_change({"source": self.name, "action": "ticker-removed", "id": item_id})
        return True

    # -- trade ideas ---------------------------------------------------------

    async def add_idea(
        self,
        ticker: str,
        advice_source_id,
        guidelines: dict[str, Optional[str]],
        journal_entry_id=None,
    ) -> bool:
        try:
            holder_id = self.require_holder("adding a trade idea")
            if not advice_source_id:
                raise ValidationError("Error: Account or Source ID is missing.")
            if not (ticker or "").strip():
                raise ValidationError("Ticker is required.")
            if not any(guidelines.get(k) for k in ("rec_entry_low", "rec_entry_high", "rec_tp1", "rec_stop_loss")):
                raise ValidationError("Please enter at least one guideline (Entry, TP, or SL).")
            idea = {
                "account_holder_id": holder_id,
                "ticker": ticker.strip().upper(),
                "advice_source_id": advice_source_id,
                "journal_entry_id": journal_entry_id or None,
            }
            idea.update({k: guidelines.get(k) or None for k in IDEA_GUIDELINES})
            await self.ctx.api.watchlist.add_idea(idea)
        except Exception as e:
            self.report_failure("add trade idea", e)
            return False
        self.ctx.toast("New trade idea added!", ToastLevel.SUCCESS)
        # Source details list ideas too
        self.ctx.bus.publish(AppEvent.SOURCE_DETAILS_SHOULD_REFRESH, {"source_id": advice_source_id})
        self.publish_change({"source": self.name, "action": "idea-added"})
        return True

    async def close_idea(self, item_id) -> bool:
        try:
            await self.ctx.api.watchlist.close_idea(item_id)
        except Exception as e:
            self.report_failure("close trade idea", e)
            return False
        self.ctx.toast("Trade idea closed.", ToastLevel.INFO)
        self.publish_change({"source": self.name, "action": "idea-closed", "id": item_id})
        return True

    # -- paper trades --------------------------------------------------------

    def find_paper_trade(self, entry_id) -> Optional[dict]:
        return next((p for p in self.paper_trades if str(p.get("id")) == str(entry_id)), None)

    def _journal_changed(self, action: str, entry_id=None) -> None:
        self.ctx.bus.publish(AppEvent.JOURNAL_UPDATED, {"source": self.name, "action": action, "id": entry_id})

    async def add_paper_trade(self, entry: dict[str, Any]) -> bool:
        try:
            holder_id = self.require_holder("adding a paper trade")
            created = await self.ctx.api.journal.add(build_journal_entry(entry, holder_id))
        except Exception as e:
            self.report_failure("add journal entry", e)
            return False
        self.ctx.toast("Journal entry added!", ToastLevel.SUCCESS)
        self._journal_changed("added", (created or {}).get("id"))
        return True

    async def execute_paper_trade(self, entry_id) -> bool:
        """Turn an open BUY idea into a real transaction at the current price."""
        entry = self.find_paper_trade(entry_id)
        try:
            if entry is None:
                raise ValidationError("Could not find journal entry data.")
            if str(entry.get("direction", "BUY")).upper() != "BUY":
                raise ValidationError("Currently, only BUY ideas can be executed directly.")
            holder_id = self.require_holder("executing a journal entry")
            ticker = str(entry.get("ticker", "")).upper()
            await refresh_prices(self.ctx, [ticker])
            price = self.ctx.state.price_cache.price(ticker)
            if price is None or price <= 0:
                raise ValidationError(f"Could not fetch a valid current price for {ticker} to execute.")
            result = await self.ctx.api.journal.execute(entry_id, current_est_date(), price, holder_id)
        except Exception as e:
            self.report_failure("execute entry", e)
            return False

        self.ctx.toast(
            f"Executed BUY for {ticker} at {price:,.2f}. Tx ID: {(result or {}).get('transactionId')}",
            ToastLevel.SUCCESS,
        )
        # A real BUY exists now, so this is a ledger change rather than a journal one
        if entry.get("advice_source_id"):
            self.ctx.bus.publish(AppEvent.SOURCE_DETAILS_SHOULD_REFRESH, {"source_id": entry["advice_source_id"]})
        self.publish_change({"source": self.name, "action": "journal-executed", "id": entry_id})
        return True

    async def close_paper_trade(self, entry_id, exit_price) -> bool:
        try:
            if self.find_paper_trade(entry_id) is None:
                raise ValidationError("Could not find journal entry data.")
            try:
                price = float(exit_price)
            except (TypeError, ValueError):
                price = 0.0
            if not price > 0:
                raise ValidationError("Invalid exit price entered.")
            await self.ctx.api.journal.update(
                entry_id,
                {"status": "CLOSED", "exit_date": current_est_date(), "exit_price": price},
            )
        except Exception as e:
            self.report_failure("close entry", e)
            return False
        self.ctx.toast("Journal entry closed manually.", ToastLevel.SUCCESS)
        self._journal_changed("closed", entry_id)
        return True

    async def delete_paper_trade(self, entry_id) -> bool:
        try:
            await self.ctx.api.journal.delete(entry_id)
        except Exception as e:
            self.report_failure("delete entry", e)
            return False
        self.ctx.toast("Journal entry deleted.", ToastLevel.SUCCESS)
        self._journal_changed("deleted", entry_id)
        return True
