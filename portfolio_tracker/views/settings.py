"""Settings: account holders, exchanges and local preferences."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from portfolio_tracker.context import ToastLevel
from portfolio_tracker.events import AppEvent
from portfolio_tracker.exceptions import ValidationError
from portfolio_tracker.models import Option, SettingsModel
from portfolio_tracker.state import ALL_HOLDERS
from portfolio_tracker.views.base import ViewController

logger = logging.getLogger(__name__)

OTHER_EXCHANGE = "Other"

PERCENT_FIELDS = ("take_profit_percent", "stop_loss_percent")
MINUTE_FIELDS = ("notification_cooldown", "market_hours_interval", "after_hours_interval")


def exchange_options(exchanges: list[dict]) -> list[Option]:
    """Exchange names A-Z ignoring case, with 'Other' always last."""
    names = [str(e.get("name", "")) for e in exchanges if e.get("name")]
    ordered = sorted((n for n in names if n != OTHER_EXCHANGE), key=str.lower)
    if OTHER_EXCHANGE in names:
        ordered.append(OTHER_EXCHANGE)
    return [Option(value=n, label=n) for n in ordered]


def holder_options(holders: list[dict], include_all: bool = True) -> list[Option]:
    options = [Option(value=ALL_HOLDERS, label="All Accounts")] if include_all else []
    for holder in sorted(holders, key=lambda h: str(h.get("name", "")).lower()):
        options.append(Option(value=str(holder.get("id")), label=str(holder.get("name", ""))))
    return options


def validate_settings_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Check numeric preferences before they are merged."""
    cleaned = dict(changes)
    for key in PERCENT_FIELDS:
        if key in cleaned:
            try:
                value = float(cleaned[key])
            except (TypeError, ValueError):
                raise ValidationError(f"{key.replace('_', ' ').capitalize()} must be a number.")
            if not 0 < value < 100:
                raise ValidationError(f"{key.replace('_', ' ').capitalize()} must be between 0 and 100.")
            cleaned[key] = value
    for key in MINUTE_FIELDS:
        if key in cleaned:
            try:
                value = int(cleaned[key])
            except (TypeError, ValueError):
                raise ValidationError(f"{key.replace('_', ' ').capitalize()} must be a whole number of minutes.")
            if value < 0 or (key != "notification_cooldown" and value == 0):
                raise ValidationError(f"{key.replace('_', ' ').capitalize()} must be a positive number of minutes.")
            cleaned[key] = value
    return cleaned


class SettingsView(ViewController):
    name = "settings"
    title = "settings"

    async def fetch(self, holder_id) -> dict:
        holders = await self._fetch_list("account holders", self.ctx.api.accounts.list_holders)
        exchanges = await self._fetch_list("exchanges", self.ctx.api.accounts.list_exchanges)
        return {"holders": holders, "exchanges": exchanges}

    async def _fetch_list(self, label: str, call) -> list[dict]:
        try:
            return await call()
        except Exception as e:
            logger.error(f"Failed to load {label}: {e}")
            self.ctx.toast(f"Could not load {label}: {e}", ToastLevel.ERROR)
            return []

    def store(self, data) -> None:
        self.ctx.store.update_state(all_account_holders=data["holders"], all_exchanges=data["exchanges"])

    def current_data(self) -> dict:
        state = self.ctx.state
        return {"holders": state.all_account_holders, "exchanges": state.all_exchanges}

    def build_model(self, data: dict) -> SettingsModel:
        return SettingsModel(
            settings=self.ctx.state.settings.model_dump(),
            holder_options=holder_options(data["holders"], include_all=False),
            exchange_options=exchange_options(data["exchanges"]),
        )

    def exchange_options(self) -> list[Option]:
        return exchange_options(self.ctx.state.all_exchanges)

    def holder_options(self, include_all: bool = True) -> list[Option]:
        return holder_options(self.ctx.state.all_account_holders, include_all)

    # -- preferences ---------------------------------------------------------

    def save_settings(self, changes: dict[str, Any]) -> bool:
        try:
            cleaned = validate_settings_changes(changes)
            settings = self.ctx.store.update_settings(**cleaned)
        except (ValidationError, PydanticValidationError) as e:
            self.ctx.toast(f"Invalid settings: {e}", ToastLevel.ERROR)
            return False

        if self.ctx.settings_store is not None:
            try:
                self.ctx.settings_store.save(settings)
            except OSError as e:
                logger.error(f"Failed to persist settings: {e}")
                self.ctx.toast(f"Settings applied but not saved: {e}", ToastLevel.WARNING)

        self.ctx.toast("Settings saved!", ToastLevel.SUCCESS)
        self.ctx.bus.publish(AppEvent.SETTINGS_CHANGED, settings)
        self.render()
        return True

    def set_default_holder(self, holder_id) -> bool:
        return self.save_settings({"default_account_holder_id": holder_id})

    # -- reference data CRUD -------------------------------------------------

    async def _mutate(self, action: str, success: str, call) -> bool:
        try:
            await call
        except Exception as e:
            self.report_failure(action, e)
            return False
        self.ctx.toast(success, ToastLevel.SUCCESS)
        # Refresh caches before anyone reacts to the change
        self.store(await self.fetch(self.ctx.state.selected_account_holder_id))
        self.render()
        self.publish_change({"source": self.name, "action": action})
        return True

    @staticmethod
    def _name(name: str, kind: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError(f"{kind} name cannot be empty.")
        return name

    async def add_exchange(self, name: str) -> bool:
        try:
            name = self._name(name, "Exchange")
        except ValidationError as e:
            self.report_failure("add exchange", e)
            return False
        return await self._mutate("add exchange", "Exchange added!", self.ctx.api.accounts.create_exchange(name))

    async def rename_exchange(self, exchange_id, name: str) -> bool:
        try:
            name = self._name(name, "Exchange")
        except ValidationError as e:
            self.report_failure("rename exchange", e)
            return False
        return await self._mutate(
            "rename exchange", "Exchange updated!", self.ctx.api.accounts.update_exchange(exchange_id, name)
        )

    async def delete_exchange(self, exchange_id) -> bool:
        return await self._mutate(
            "delete exchange", "Exchange deleted.", self.ctx.api.accounts.delete_exchange(exchange_id)
        )

    async def add_holder(self, name: str) -> bool:
        try:
            name = self._name(name, "Account holder")
        except ValidationError as e:
            self.report_failure("add account holder", e)
            return False
        return await self._mutate("add account holder", "Account holder added!", self.ctx.api.accounts.create_holder(name))

    async def rename_holder(self, holder_id, name: str) -> bool:
        try:
            name = self._name(name, "Account holder")
        except ValidationError as e:
            self.report_failure("rename account holder", e)
            return False
        return await self._mutate(
            "rename account holder", "Account holder updated!", self.ctx.api.accounts.update_holder(holder_id, name)
        )

    async def delete_holder(self, holder_id) -> bool:
        if str(holder_id) == str(self.ctx.state.settings.default_account_holder_id):
            self.ctx.toast("Cannot delete the default account holder.", ToastLevel.ERROR)
            return False
        return await self._mutate(
            "delete account holder", "Account holder deleted.", self.ctx.api.accounts.delete_holder(holder_id)
        )

    # -- subscriptions -------------------------------------------------------

    async def holder_subscriptions(self, holder_id) -> list[dict]:
        try:
            return await self.ctx.api.accounts.holder_subscriptions(holder_id)
        except Exception as e:
            self.report_failure("load subscriptions", e)
            return []

    async def save_holder_subscriptions(self, holder_id, source_ids: list) -> bool:
        return await self._mutate(
            "save subscriptions",
            "Subscriptions saved.",
            self.ctx.api.accounts.save_holder_subscriptions(holder_id, source_ids),
        )
