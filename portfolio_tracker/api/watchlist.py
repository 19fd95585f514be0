"""Watchlist endpoints: plain watched tickers and trade ideas."""

from __future__ import annotations

import logging

from portfolio_tracker.api.base import Resource
from portfolio_tracker.exceptions import HolderRequiredError, ValidationError
from portfolio_tracker.state import is_all_holders

logger = logging.getLogger(__name__)


class WatchlistApi(Resource):
    async def list_simple(self, holder_id) -> list[dict]:
        if is_all_holders(holder_id):
            logger.warning("Simple watchlist requires a specific holder")
            return []
        return await self._client.get(f"/api/watchlist/simple/{holder_id}")

    async def add_simple(self, ticker: str, holder_id) -> dict:
        if not ticker:
            raise ValidationError("Ticker is required.")
        if is_all_holders(holder_id):
            raise HolderRequiredError("adding to the watchlist")
        return await self._client.post(
            "/api/watchlist/simple",
            json={"ticker": ticker.upper(), "account_holder_id": holder_id},
        )

    async def delete_simple(self, item_id) -> dict:
        return await self._client.delete(f"/api/watchlist/simple/{item_id}")

    async def list_ideas(self, holder_id) -> list[dict]:
        if is_all_holders(holder_id):
            logger.warning("Watchlist ideas require a specific holder")
            return []
        return await self._client.get(f"/api/watchlist/ideas/{holder_id}")

    async def add_idea(self, idea: dict) -> dict:
        return await self._client.post("/api/watchlist/ideas", json=idea)

    async def close_idea(self, item_id) -> dict:
        return await self._client.patch(f"/api/watchlist/ideas/{item_id}/close")
