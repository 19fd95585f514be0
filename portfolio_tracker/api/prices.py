"""Price endpoint."""

from __future__ import annotations

from portfolio_tracker.api.base import Resource


class PricesApi(Resource):
    async def fetch_batch(self, tickers: list[str]) -> dict:
        """Quotes for many tickers: ticker -> price or {price, previousPrice}."""
        if not tickers:
            return {}
        return await self._client.post("/api/utility/prices/batch", json={"tickers": list(tickers)})
