"""Transaction endpoints (buys, sells, dividends)."""

from __future__ import annotations

from typing import Any, Optional

from portfolio_tracker.api.base import Resource, holder_param
from portfolio_tracker.exceptions import HolderRequiredError
from portfolio_tracker.state import HolderId, is_all_holders


class TransactionsApi(Resource):
    async def list(self, holder_id: Optional[HolderId]) -> list[dict]:
        return await self._client.get("/api/transactions", params={"holder": holder_param(holder_id)})

    async def create(self, transaction: dict[str, Any]) -> dict:
        return await self._client.post("/api/transactions", json=transaction)

    async def update(self, transaction_id, transaction: dict[str, Any]) -> dict:
        return await self._client.put(f"/api/transactions/{transaction_id}", json=transaction)

    async def delete(self, transaction_id) -> dict:
        return await self._client.delete(f"/api/transactions/{transaction_id}")

    async def sales_for_lot(self, buy_id, holder_id: Optional[HolderId]) -> list[dict]:
        if not buy_id or is_all_holders(holder_id):
            raise HolderRequiredError("fetching sales for a lot")
        return await self._client.get(
            f"/api/transactions/sales/{buy_id}",
            params={"holder": str(holder_id)},
        )

    async def import_batch(self, account_holder_id: HolderId, transactions: list[dict]) -> dict:
        return await self._client.post(
            "/api/transactions/import",
            json={"accountHolderId": account_holder_id, "transactions": transactions},
        )
