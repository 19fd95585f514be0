"""Notification (alert) endpoints."""

from __future__ import annotations

from portfolio_tracker.api.base import Resource, holder_param
from portfolio_tracker.exceptions import ValidationError

NOTIFICATION_STATUSES = ("UNREAD", "PENDING", "DISMISSED")


class AlertsApi(Resource):
    async def list(self, holder_id) -> list[dict]:
        return await self._client.get(
            "/api/orders/notifications",
            params={"holder": holder_param(holder_id)},
        )

    async def update_status(self, notification_id, status: str) -> dict:
        if status not in NOTIFICATION_STATUSES:
            raise ValidationError(f"Unknown notification status: {status}")
        return await self._client.put(
            f"/api/orders/notifications/{notification_id}",
            json={"status": status},
        )
