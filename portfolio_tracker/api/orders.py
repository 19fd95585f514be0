"""Pending (limit) order endpoints."""

from __future__ import annotations

from typing import Any

from portfolio_tracker.api.base import Resource, holder_param
from portfolio_tracker.exceptions import ValidationError

REQUIRED_ORDER_FIELDS = (
    "account_holder_id",
    "ticker",
    "exchange",
    "order_type",
    "limit_price",
    "quantity",
    "created_date",
)

ORDER_STATUSES = ("ACTIVE", "FILLED", "CANCELLED")


class OrdersApi(Resource):
    async def list_pending(self, holder_id) -> list[dict]:
        return await self._client.get("/api/orders/pending", params={"holder": holder_param(holder_id)})

    async def create(self, order: dict[str, Any]) -> dict:
        missing = [name for name in REQUIRED_ORDER_FIELDS if not order.get(name)]
        if missing:
            raise ValidationError("Missing required fields for pending order.")
        return await self._client.post("/api/orders/pending", json=order)

    async def update_status(self, order_id, status: str) -> dict:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Unknown order status: {status}")
        return await self._client.put(f"/api/orders/pending/{order_id}", json={"status": status})
