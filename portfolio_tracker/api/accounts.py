"""Account holder, exchange and subscription endpoints."""

from __future__ import annotations

from portfolio_tracker.api.base import Resource


class AccountsApi(Resource):
    # -- holders -------------------------------------------------------------

    async def list_holders(self) -> list[dict]:
        return await self._client.get("/api/accounts/holders")

    async def create_holder(self, name: str) -> dict:
        return await self._client.post("/api/accounts/holders", json={"name": name})

    async def update_holder(self, holder_id, name: str) -> dict:
        return await self._client.put(f"/api/accounts/holders/{holder_id}", json={"name": name})

    async def delete_holder(self, holder_id) -> dict:
        return await self._client.delete(f"/api/accounts/holders/{holder_id}")

    # -- exchanges -----------------------------------------------------------

    async def list_exchanges(self) -> list[dict]:
        return await self._client.get("/api/accounts/exchanges")

    async def create_exchange(self, name: str) -> dict:
        return await self._client.post("/api/accounts/exchanges", json={"name": name})

    async def update_exchange(self, exchange_id, name: str) -> dict:
        return await self._client.put(f"/api/accounts/exchanges/{exchange_id}", json={"name": name})

    async def delete_exchange(self, exchange_id) -> dict:
        return await self._client.delete(f"/api/accounts/exchanges/{exchange_id}")

    # -- subscriptions -------------------------------------------------------

    async def holder_subscriptions(self, holder_id) -> list[dict]:
        return await self._client.get(f"/api/accounts/holders/{holder_id}/sources")

    async def save_holder_subscriptions(self, holder_id, source_ids: list) -> dict:
        return await self._client.post(
            f"/api/accounts/holders/{holder_id}/sources",
            json={"sourceIds": list(source_ids)},
        )
