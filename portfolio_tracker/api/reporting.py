"""Reporting endpoints: positions, daily performance and realized P/L."""

from __future__ import annotations

from typing import Optional

from portfolio_tracker.api.base import Resource, holder_param


class ReportingApi(Resource):
    async def positions(self, date: str, holder_id) -> dict:
        """Open lots and the day's transactions as of ``date``."""
        return await self._client.get(
            f"/api/reporting/positions/{date}",
            params={"holder": holder_param(holder_id)},
        )

    async def daily_performance(self, date: str, holder_id) -> dict:
        return await self._client.get(
            f"/api/reporting/daily_performance/{date}",
            params={"holder": holder_param(holder_id)},
        )

    async def realized_pl_summary(
        self,
        holder_id,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> dict:
        return await self._client.post(
            "/api/reporting/realized_pl/summary",
            json={
                "startDate": start_date,
                "endDate": end_date,
                "accountHolderId": holder_id,
            },
        )

    async def snapshots(self, holder_id) -> list[dict]:
        """Account value snapshots; 'all' covers every holder."""
        return await self._client.get("/api/utility/snapshots", params={"holder": holder_param(holder_id)})
