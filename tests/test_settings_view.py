"""Tests for the settings view: dropdown options, preferences and reference data."""

import json

import pytest

from conftest import FakeServer, bind
from portfolio_tracker.context import ToastLevel
from portfolio_tracker.events import AppEvent
from portfolio_tracker.exceptions import ValidationError
from portfolio_tracker.models import Option
from portfolio_tracker.settings_store import STORAGE_KEY
from portfolio_tracker.views.settings import SettingsView, exchange_options, holder_options, validate_settings_changes

EXCHANGES = [{"id": 1, "name": "Other"}, {"id": 2, "name": "zeta"}, {"id": 3, "name": "Alpha"}]
HOLDERS = [{"id": 2, "name": "Sam"}, {"id": 1, "name": "alex"}]


@pytest.fixture
def settings_view(ctx):
    return SettingsView(ctx)


def _serve_reference_data(server):
    server.route("GET", "/api/accounts/holders", HOLDERS)
    server.route("GET", "/api/accounts/exchanges", EXCHANGES)


def test_exchange_options_keep_other_last():
    assert [o.value for o in exchange_options(EXCHANGES)] == ["Alpha", "zeta", "Other"]


def test_exchange_options_without_other():
    assert [o.label for o in exchange_options([{"name": "b"}, {"name": "A"}, {"name": ""}])] == ["A", "b"]


def test_holder_options_start_with_all_accounts():
    options = holder_options(HOLDERS)
    assert options[0] == Option(value="all", label="All Accounts")
    assert [o.label for o in options[1:]] == ["alex", "Sam"]
    assert [o.value for o in holder_options(HOLDERS, include_all=False)] == ["1", "2"]


@pytest.mark.parametrize(
    "changes",
    [
        {"take_profit_percent": 0},
        {"stop_loss_percent": 100},
        {"take_profit_percent": "ten"},
        {"market_hours_interval": 0},
        {"notification_cooldown": -1},
        {"after_hours_interval": "soon"},
    ],
)
def test_validate_settings_rejects(changes):
    with pytest.raises(ValidationError):
        validate_settings_changes(changes)


def test_validate_settings_coerces():
    cleaned = validate_settings_changes({"take_profit_percent": "12.5", "notification_cooldown": "0", "theme": "dark"})
    assert cleaned == {"take_profit_percent": 12.5, "notification_cooldown": 0, "theme": "dark"}


@pytest.mark.asyncio
async def test_load_fills_reference_caches(ctx, settings_view, server):
    _serve_reference_data(server)
    surface = bind(settings_view)

    await settings_view.load()

    assert ctx.state.all_account_holders == HOLDERS
    assert ctx.state.all_exchanges == EXCHANGES
    model = surface.last_model
    assert [o.value for o in model.exchange_options] == ["Alpha", "zeta", "Other"]
    assert model.settings["take_profit_percent"] == 10
    assert [o.label for o in settings_view.holder_options()] == ["All Accounts", "alex", "Sam"]


@pytest.mark.asyncio
async def test_load_failure_empties_list_and_toasts(ctx, settings_view, server, notifier):
    server.route("GET", "/api/accounts/holders", HOLDERS)
    server.route("GET", "/api/accounts/exchanges", {"message": "db locked"}, status=500)
    ctx.store.update_state(all_exchanges=EXCHANGES)
    surface = bind(settings_view)

    await settings_view.load()

    assert ctx.state.all_exchanges == []
    assert ctx.state.all_account_holders == HOLDERS
    assert surface.last_model.exchange_options == []
    assert notifier.messages(ToastLevel.ERROR) == ["Could not load exchanges: db locked"]


@pytest.mark.asyncio
async def test_save_settings_persists_and_announces(ctx, settings_view, tmp_path, notifier):
    bind(settings_view)
    announced = []
    ctx.bus.subscribe(AppEvent.SETTINGS_CHANGED, announced.append)

    assert settings_view.save_settings({"take_profit_percent": "20", "theme": "dark"})

    assert ctx.state.settings.take_profit_percent == 20
    assert ctx.state.settings.theme == "dark"
    assert ctx.state.settings.stop_loss_percent == 5
    saved = json.loads((tmp_path / "settings.json").read_text())
    assert saved[STORAGE_KEY]["takeProfitPercent"] == 20
    assert saved[STORAGE_KEY]["theme"] == "dark"
    assert announced == [ctx.state.settings]
    assert notifier.messages(ToastLevel.SUCCESS) == ["Settings saved!"]


@pytest.mark.asyncio
async def test_invalid_settings_leave_state_unchanged(ctx, settings_view, tmp_path, notifier):
    before = ctx.state.settings

    assert not settings_view.save_settings({"stop_loss_percent": 150})

    assert ctx.state.settings == before
    assert not (tmp_path / "settings.json").exists()
    assert len(notifier.messages(ToastLevel.ERROR)) == 1
    assert notifier.messages(ToastLevel.ERROR)[0].startswith("Invalid settings:")


@pytest.mark.asyncio
async def test_set_default_holder(ctx, settings_view):
    assert settings_view.set_default_holder(2)
    assert ctx.state.settings.default_account_holder_id == 2


@pytest.mark.asyncio
async def test_empty_exchange_name_makes_no_request(ctx, settings_view, server, notifier):
    assert not await settings_view.add_exchange("   ")
    assert server.requests == []
    assert notifier.messages(ToastLevel.ERROR) == ["Exchange name cannot be empty."]


@pytest.mark.asyncio
async def test_add_exchange_refreshes_caches_before_publishing(ctx, settings_view, server):
    server.route("POST", "/api/accounts/exchanges", {"id": 4})
    server.route("GET", "/api/accounts/holders", HOLDERS)
    server.route("GET", "/api/accounts/exchanges", EXCHANGES + [{"id": 4, "name": "LSE"}])
    bind(settings_view)
    seen_at_publish = []
    ctx.bus.subscribe(AppEvent.DATA_UPDATED, lambda detail: seen_at_publish.append(len(ctx.state.all_exchanges)))

    assert await settings_view.add_exchange(" LSE ")

    assert FakeServer.body(server.calls("POST")[0]) == {"name": "LSE"}
    assert seen_at_publish == [4]


@pytest.mark.asyncio
async def test_default_holder_cannot_be_deleted(ctx, settings_view, server, notifier):
    assert not await settings_view.delete_holder(1)
    assert server.requests == []
    assert notifier.messages(ToastLevel.ERROR) == ["Cannot delete the default account holder."]


@pytest.mark.asyncio
async def test_delete_other_holder(ctx, settings_view, server, published):
    _serve_reference_data(server)
    server.route("DELETE", "/api/accounts/holders/2", {"message": "deleted"})

    assert await settings_view.delete_holder(2)

    assert server.calls("DELETE")[0].url.path == "/api/accounts/holders/2"
    assert published == [{"source": "settings", "action": "delete account holder"}]


@pytest.mark.asyncio
async def test_save_subscriptions(ctx, settings_view, server):
    _serve_reference_data(server)
    server.route("POST", "/api/accounts/holders/2/sources", {"message": "saved"})

    assert await settings_view.save_holder_subscriptions(2, [1, 3])

    assert FakeServer.body(server.calls("POST")[0]) == {"sourceIds": [1, 3]}
