"""Document link endpoints."""

from __future__ import annotations

from typing import Any

from portfolio_tracker.api.base import Resource
from portfolio_tracker.exceptions import ValidationError
from portfolio_tracker.state import is_all_holders


class DocumentsApi(Resource):
    async def add(self, document: dict[str, Any]) -> dict:
        """Link a document to a journal entry or an advice source."""
        if (
            is_all_holders(document.get("account_holder_id"))
            or not (document.get("journal_entry_id") or document.get("advice_source_id"))
            or not document.get("external_link")
        ):
            raise ValidationError("Missing required fields: account holder, link, and either journal or source ID.")
        return await self._client.post("/api/documents", json=document)

    async def delete(self, document_id) -> dict:
        return await self._client.delete(f"/api/documents/{document_id}")
