"""Advice source endpoints, including per-source details and notes."""

from __future__ import annotations

from typing import Any

from portfolio_tracker.api.base import Resource
from portfolio_tracker.exceptions import HolderRequiredError, ValidationError
from portfolio_tracker.state import is_all_holders


class SourcesApi(Resource):
    async def list(self, holder_id) -> list[dict]:
        """Sources for one holder. 'all' yields an empty list without a request."""
        if is_all_holders(holder_id):
            return []
        return await self._client.get("/api/advice-sources", params={"holder": str(holder_id)})

    async def create(self, source: dict[str, Any]) -> dict:
        return await self._client.post("/api/advice-sources", json=source)

    async def update(self, source_id, source: dict[str, Any]) -> dict:
        return await self._client.put(f"/api/advice-sources/{source_id}", json=source)

    async def delete(self, source_id) -> dict:
        return await self._client.delete(f"/api/advice-sources/{source_id}")

    async def details(self, source_id, holder_id) -> dict:
        """Journal entries, watchlist items, linked trades and notes for a source."""
        if not source_id:
            raise ValidationError("Source ID is required.")
        if is_all_holders(holder_id):
            raise HolderRequiredError("source details")
        return await self._client.get(f"/api/sources/{source_id}/details", params={"holder": str(holder_id)})

    async def add_note(self, source_id, holder_id, content: str) -> dict:
        self._check_note_args(source_id, holder_id)
        if not content:
            raise ValidationError("Note content cannot be empty.")
        return await self._client.post(
            f"/api/sources/{source_id}/notes",
            json={"holderId": holder_id, "note_content": content},
        )

    async def update_note(self, source_id, note_id, holder_id, content: str) -> dict:
        self._check_note_args(source_id, holder_id)
        if not note_id or content is None:
            raise ValidationError("Note ID and note content are required.")
        return await self._client.put(
            f"/api/sources/{source_id}/notes/{note_id}",
            json={"holderId": holder_id, "note_content": content},
        )

    async def delete_note(self, source_id, note_id, holder_id) -> dict:
        self._check_note_args(source_id, holder_id)
        if not note_id:
            raise ValidationError("Note ID is required.")
        # Holder goes in the body so the server can verify ownership
        return await self._client.delete(
            f"/api/sources/{source_id}/notes/{note_id}",
            json={"holderId": holder_id},
        )

    @staticmethod
    def _check_note_args(source_id, holder_id) -> None:
        if not source_id:
            raise ValidationError("Source ID is required.")
        if is_all_holders(holder_id):
            raise HolderRequiredError("source notes")
