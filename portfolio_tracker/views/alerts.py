"""Alerts: notifications raised when a pending order's limit is reached."""

from __future__ import annotations

import logging
from typing import Optional

from portfolio_tracker.context import ToastLevel
from portfolio_tracker.models import AlertsModel
from portfolio_tracker.state import PrefillOrder
from portfolio_tracker.views.base import ViewController

logger = logging.getLogger(__name__)


class AlertsView(ViewController):
    name = "alerts"
    title = "alerts"

    async def fetch(self, holder_id) -> list[dict]:
        return await self.ctx.api.alerts.list(holder_id)

    def store(self, data) -> None:
        self.ctx.store.update_state(active_alerts=data)

    def current_data(self) -> list[dict]:
        return self.ctx.state.active_alerts

    def build_model(self, alerts: list[dict]) -> AlertsModel:
        return AlertsModel(alerts=list(alerts))

    def find_alert(self, notification_id) -> Optional[dict]:
        return next((a for a in self.ctx.state.active_alerts if str(a.get("id")) == str(notification_id)), None)

    async def _set_status(self, notification_id, status: str, message: str) -> bool:
        try:
            await self.ctx.api.alerts.update_status(notification_id, status)
        except Exception as e:
            self.report_failure("update alert", e)
            return False
        self.ctx.toast(message, ToastLevel.INFO)
        self.publish_change({"source": self.name, "action": status.lower(), "id": notification_id})
        return True

    async def dismiss(self, notification_id) -> bool:
        return await self._set_status(notification_id, "DISMISSED", "Alert dismissed.")

    async def mark_pending(self, notification_id) -> bool:
        return await self._set_status(notification_id, "PENDING", "Alert marked for later review.")

    async def confirm(self, notification_id) -> bool:
        """The user says the order filled: take them to the order to record it."""
        alert = self.find_alert(notification_id)
        if alert is None or not alert.get("pending_order_id"):
            self.ctx.toast("Please go to the 'Orders' tab and click 'Mark as Filled' for this item.", ToastLevel.INFO)
            return False
        if self.ctx.router is None:
            logger.warning("No router attached; cannot open orders")
            return False
        await self.ctx.router.switch_view("orders")
        self.ctx.toast(f"Mark order {alert['pending_order_id']} as filled to log the trade.", ToastLevel.INFO)
        return True

    async def create_order_from_alert(self, notification_id) -> bool:
        """Open the trade form prefilled with the alert's ticker and price."""
        alert = self.find_alert(notification_id)
        if alert is None:
            self.ctx.toast("Alert not found.", ToastLevel.ERROR)
            return False
        if self.ctx.router is None:
            logger.warning("No router attached; cannot open orders")
            return False
        price = alert.get("limit_price") or alert.get("price") or ""
        await self.ctx.router.navigate_with_payload(
            "orders",
            PrefillOrder(
                source_id=str(alert["advice_source_id"]) if alert.get("advice_source_id") else None,
                source_name="Alert",
                ticker=str(alert.get("ticker", "")),
                price=str(price),
            ),
        )
        return True
