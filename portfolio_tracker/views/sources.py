"""Sources: advice sources, their details panel, notes, techniques and documents."""

from __future__ import annotations

import logging
from typing import Any, Optional

from portfolio_tracker.api.journal import TECHNIQUE_TICKER
from portfolio_tracker.context import ToastLevel
from portfolio_tracker.dates import current_est_date
from portfolio_tracker.events import AppEvent
from portfolio_tracker.exceptions import ValidationError
from portfolio_tracker.models import SourcesModel
from portfolio_tracker.prices import refresh_prices
from portfolio_tracker.state import PrefillOrder
from portfolio_tracker.views.base import ViewController

logger = logging.getLogger(__name__)

# Sections of the details payload that may carry tickers
DETAIL_SECTIONS = ("journalEntries", "watchlistItems", "linkedTransactions")


def details_tickers(details: Optional[dict]) -> set[str]:
    tickers = set()
    for section in DETAIL_SECTIONS:
        for item in (details or {}).get(section) or []:
            if item.get("ticker"):
                tickers.add(str(item["ticker"]).upper())
    return tickers


class SourcesView(ViewController):
    name = "sources"
    title = "sources"
    requires_holder = True
    holder_prompt = "Select a specific account holder to view advice sources."

    def __init__(self, ctx):
        super().__init__(ctx)
        self.open_source_id: Optional[str] = None

    async def fetch(self, holder_id) -> list[dict]:
        return await self.ctx.api.sources.list(holder_id)

    def store(self, data) -> None:
        self.ctx.store.update_state(all_advice_sources=data)

    def current_data(self) -> list[dict]:
        return self.ctx.state.all_advice_sources

    def build_model(self, sources: list[dict]) -> SourcesModel:
        ordered = sorted(sources, key=lambda s: str(s.get("name", "")).lower())
        return SourcesModel(sources=ordered, details=self.ctx.state.source_details)

    def on_initialize(self) -> None:
        # Narrow signals: only the open details panel needs refetching
        self.listen(AppEvent.SOURCE_DETAILS_SHOULD_REFRESH, lambda detail: self.refresh_details())
        self.listen(AppEvent.JOURNAL_UPDATED, lambda detail: self.refresh_details())

    def _on_refresh_event(self, detail):
        # Mutations that touch the panel also send SOURCE_DETAILS_SHOULD_REFRESH
        return self.load(with_details=False)

    async def load(self, with_details: bool = True) -> bool:
        loaded = await super().load()
        if loaded and with_details:
            await self.refresh_details()
        return loaded

    async def refresh_details(self) -> Optional[dict]:
        if self.open_source_id is None or self.ctx.state.holder_is_all:
            return None
        return await self.open_details(self.open_source_id)

    def source_name(self, source_id) -> Optional[str]:
        source = next((s for s in self.ctx.state.all_advice_sources if str(s.get("id")) == str(source_id)), None)
        return source.get("name") if source else None

    # -- details -------------------------------------------------------------

    async def open_details(self, source_id) -> Optional[dict]:
        """Fetch one source's details and prices for every ticker in them."""
        holder_id = self.ctx.state.selected_account_holder_id
        try:
            details = await self.ctx.api.sources.details(source_id, holder_id)
        except Exception as e:
            self.report_failure("load source details", e)
            return None

        tickers = details_tickers(details)
        if tickers:
            try:
                await refresh_prices(self.ctx, tickers)
            except Exception as e:
                logger.warning(f"Price refresh for source {source_id} failed: {e}")

        if self.ctx.state.selected_account_holder_id != holder_id:
            logger.debug(f"Holder changed while loading source {source_id}; dropping details")
            return None

        self.open_source_id = str(source_id)
        self.ctx.store.update_state(source_details=details)
        self.render()
        return details

    def close_details(self) -> None:
        self.open_source_id = None
        self.ctx.store.update_state(source_details=None)
        self.render()

    # -- source CRUD ---------------------------------------------------------

    async def add_source(self, source: dict[str, Any]) -> bool:
        try:
            holder_id = self.require_holder("adding a source")
            if not str(source.get("name", "")).strip():
                raise ValidationError("Source name is required.")
            await self.ctx.api.sources.create({**source, "account_holder_id": holder_id})
        except Exception as e:
            self.report_failure("add source", e)
            return False
        self.ctx.toast("Source added.", ToastLevel.SUCCESS)
        self.publish_change({"source": self.name, "action": "source-added"})
        return True

    async def update_source(self, source_id, source: dict[str, Any]) -> bool:
        try:
            holder_id = self.require_holder("editing a source")
            if not str(source.get("name", "")).strip():
                raise ValidationError("Source name is required.")
            await self.ctx.api.sources.update(source_id, {**source, "account_holder_id": holder_id})
        except Exception as e:
            self.report_failure("update source", e)
            return False
        self.ctx.toast("Source updated.", ToastLevel.SUCCESS)
        if self.open_source_id == str(source_id):
            self.ctx.bus.publish(AppEvent.SOURCE_DETAILS_SHOULD_REFRESH, {"source_id": self.open_source_id})
        self.publish_change({"source": self.name, "action": "source-updated", "id": source_id})
        return True

    async def delete_source(self, source_id) -> bool:
        try:
            await self.ctx.api.sources.delete(source_id)
        except Exception as e:
            self.report_failure("delete source", e)
            return False
        if self.open_source_id == str(source_id):
            self.open_source_id = None
            self.ctx.store.update_state(source_details=None)
        self.ctx.toast("Source deleted.", ToastLevel.SUCCESS)
        self.publish_change({"source": self.name, "action": "source-deleted", "id": source_id})
        return True

    # -- notes ---------------------------------------------------------------

    async def _details_action(self, action: str, call) -> bool:
        try:
            await call
        except Exception as e:
            self.report_failure(action, e)
            return False
        self.ctx.bus.publish(AppEvent.SOURCE_DETAILS_SHOULD_REFRESH, {"source_id": self.open_source_id})
        return True

    async def add_note(self, source_id, content: str) -> bool:
        holder_id = self.ctx.state.selected_account_holder_id
        ok = await self._details_action("add note", self.ctx.api.sources.add_note(source_id, holder_id, content))
        if ok:
            self.ctx.toast("Note added.", ToastLevel.SUCCESS)
        return ok

    async def update_note(self, source_id, note_id, content: str) -> bool:
        holder_id = self.ctx.state.selected_account_holder_id
        ok = await self._details_action(
            "update note", self.ctx.api.sources.update_note(source_id, note_id, holder_id, content)
        )
        if ok:
            self.ctx.toast("Note updated.", ToastLevel.SUCCESS)
        return ok

    async def delete_note(self, source_id, note_id) -> bool:
        holder_id = self.ctx.state.selected_account_holder_id
        ok = await self._details_action("delete note", self.ctx.api.sources.delete_note(source_id, note_id, holder_id))
        if ok:
            self.ctx.toast("Note deleted.", ToastLevel.SUCCESS)
        return ok

    # -- techniques and documents --------------------------------------------

    async def add_technique(
        self,
        source_id,
        description: str,
        chart_type: str = "",
        image_path: str = "",
        notes: str = "",
    ) -> bool:
        """Log a charting technique as a journal entry tied to the source."""
        try:
            holder_id = self.require_holder("adding a technique")
            if not source_id:
                raise ValidationError("Error: Account or Source ID is missing.")
            if not (description or "").strip():
                raise ValidationError("Description is required.")
            chart_type = (chart_type or "").strip()
            notes = (notes or "").strip()
            await self.ctx.api.journal.add(
                {
                    "account_holder_id": holder_id,
                    "advice_source_id": source_id,
                    "entry_date": current_est_date(),
                    "ticker": TECHNIQUE_TICKER,
                    "exchange": "Paper",
                    "direction": "BUY",
                    "quantity": 0,
                    "entry_price": 0,
                    "target_price": None,
                    "target_price_2": None,
                    "stop_loss_price": None,
                    "entry_reason": description.strip(),
                    "notes": f"Chart Type: {chart_type}\n\n{notes}" if chart_type else (notes or None),
                    "image_path": (image_path or "").strip() or None,
                    "status": "OPEN",
                    "linked_document_urls": [],
                }
            )
        except Exception as e:
            self.report_failure("add technique", e)
            return False
        self.ctx.toast("New technique added!", ToastLevel.SUCCESS)
        self.ctx.bus.publish(AppEvent.JOURNAL_UPDATED, {"source": self.name, "action": "technique-added", "source_id": source_id})
        return True

    async def add_document(
        self,
        source_id,
        link: str,
        title: str = "",
        document_type: str = "",
        description: str = "",
    ) -> bool:
        link = (link or "").strip()
        if link and not link.startswith(("http://", "https://")):
            logger.warning(f"Adding document link that doesn't start with http/https: {link}")
        document = {
            "advice_source_id": source_id,
            "journal_entry_id": None,
            "account_holder_id": self.ctx.state.selected_account_holder_id,
            "external_link": link,
            "title": (title or "").strip() or None,
            "document_type": (document_type or "").strip() or None,
            "description": (description or "").strip() or None,
        }
        ok = await self._details_action("add document", self.ctx.api.documents.add(document))
        if ok:
            self.ctx.toast("Document link added.", ToastLevel.SUCCESS)
        return ok

    async def delete_document(self, document_id) -> bool:
        ok = await self._details_action("delete document", self.ctx.api.documents.delete(document_id))
        if ok:
            self.ctx.toast("Document link deleted.", ToastLevel.SUCCESS)
        return ok

    # -- ideas -> orders -----------------------------------------------------

    async def create_order_from_idea(
        self,
        source_id,
        ticker: str,
        entry_price: str = "",
        tp1: Optional[str] = None,
        tp2: Optional[str] = None,
        sl: Optional[str] = None,
        journal_id: Optional[str] = None,
    ) -> bool:
        """Send a trade idea to the order form as a one-shot prefill."""
        if self.ctx.state.holder_is_all:
            self.ctx.toast("Please select a specific account holder to create an order.", ToastLevel.ERROR)
            return False
        if not ticker:
            self.ctx.toast("Error: Missing ticker for this idea.", ToastLevel.ERROR)
            return False
        if self.ctx.router is None:
            logger.warning("No router attached; cannot open orders")
            return False

        await self.ctx.router.navigate_with_payload(
            "orders",
            PrefillOrder(
                source_id=str(source_id) if source_id else None,
                source_name=self.source_name(source_id) or "Unknown source",
                ticker=ticker.upper(),
                price=str(entry_price or ""),
                tp1=tp1,
                tp2=tp2,
                sl=sl,
                journal_id=journal_id,
            ),
        )
        return True
