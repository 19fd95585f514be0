"""Journal endpoints: paper trades and techniques."""

from __future__ import annotations

import logging
from typing import Any, Optional

from portfolio_tracker.api.base import Resource
from portfolio_tracker.exceptions import ValidationError
from portfolio_tracker.state import is_all_holders

logger = logging.getLogger(__name__)

JOURNAL_STATUSES = ("OPEN", "CLOSED", "EXECUTED", "CANCELLED")

# Techniques are journal entries without a real ticker
TECHNIQUE_TICKER = "N/A"


class JournalApi(Resource):
    async def list(self, holder_id, status: Optional[str] = None) -> list[dict]:
        """Entries for one holder, optionally filtered by status."""
        if is_all_holders(holder_id):
            logger.warning("Journal entries require a specific holder")
            return []
        params = {"holder": str(holder_id)}
        if status:
            if status not in JOURNAL_STATUSES:
                raise ValidationError(f"Unknown journal status: {status}")
            params["status"] = status
        return await self._client.get("/api/journal", params=params)

    async def add(self, entry: dict[str, Any]) -> dict:
        return await self._client.post("/api/journal", json=entry)

    async def update(self, entry_id, changes: dict[str, Any]) -> dict:
        return await self._client.put(f"/api/journal/{entry_id}", json=changes)

    async def execute(self, entry_id, execution_date: str, execution_price: float, holder_id) -> dict:
        """Turn an open entry into a real BUY. The reply carries ``transactionId``."""
        return await self._client.put(
            f"/api/journal/{entry_id}/execute",
            json={
                "execution_date": execution_date,
                "execution_price": execution_price,
                "account_holder_id": holder_id,
            },
        )

    async def delete(self, entry_id) -> dict:
        return await self._client.delete(f"/api/journal/{entry_id}")
