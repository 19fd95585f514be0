"""Tests for the orders view: trade form, prefill and pending orders."""

import pytest

from conftest import FakeServer, bind
from portfolio_tracker.context import ToastLevel
from portfolio_tracker.exceptions import ValidationError
from portfolio_tracker.models import OrderForm, OrdersModel
from portfolio_tracker.state import PrefillOrder
from portfolio_tracker.views.orders import OrdersView

PREFILL = PrefillOrder(
    source_id="7",
    source_name="Value Newsletter",
    ticker="MSFT",
    price="410.5",
    tp1="450",
    sl="380",
    journal_id="12",
)

ORDERS = [
    {"id": 5, "account_holder_id": 1, "ticker": "AMD", "exchange": "NASDAQ", "order_type": "BUY_LIMIT",
     "limit_price": 140, "quantity": 10, "status": "ACTIVE", "advice_source_id": None},
]


@pytest.fixture
def orders(ctx):
    return OrdersView(ctx)


def _valid_form(**overrides) -> OrderForm:
    values = dict(
        ticker="msft",
        exchange="NASDAQ",
        price="400",
        quantity="3",
        transaction_date="2024-05-01",
        account_holder_id="1",
    )
    values.update(overrides)
    return OrderForm(**values)


@pytest.mark.asyncio
async def test_prefill_populates_form_and_clears_field(ctx, orders):
    ctx.store.update_state(prefill_order_from_source=PREFILL)

    form = orders.apply_prefill()

    assert (form.ticker, form.price, form.advice_source_id) == ("MSFT", "410.5", "7")
    assert (form.tp1, form.sl, form.journal_id) == ("450", "380", "12")
    assert form.source_locked
    assert form.lock_message == "Source locked: Value Newsletter"
    assert form.account_holder_id == "1"
    assert ctx.state.prefill_order_from_source is None


@pytest.mark.asyncio
async def test_prefill_is_cleared_when_submission_fails(ctx, orders, server):
    server.route("POST", "/api/transactions", {"message": "rejected"}, status=422)
    ctx.store.update_state(prefill_order_from_source=PREFILL)
    form = orders.apply_prefill()
    form.exchange = "NASDAQ"
    form.quantity = "2"

    assert not await orders.log_trade(form)

    assert ctx.state.prefill_order_from_source is None
    # Nothing left to apply: the user can fix the form and resubmit
    assert orders.apply_prefill() is form
    assert ctx.state.prefill_order_from_source is None


@pytest.mark.asyncio
async def test_prefill_is_cleared_when_submission_succeeds(ctx, orders, server, published):
    server.route("POST", "/api/transactions", {"id": 1})
    ctx.store.update_state(prefill_order_from_source=PREFILL)
    form = orders.apply_prefill()
    form.exchange = "NASDAQ"
    form.quantity = "2"

    assert await orders.log_trade(form)

    assert ctx.state.prefill_order_from_source is None
    body = FakeServer.body(server.requests[0])
    assert body["advice_source_id"] == "7"
    assert body["linked_journal_id"] == "12"
    assert body["limit_price_up"] == 450
    assert len(published) == 1


@pytest.mark.asyncio
async def test_load_consumes_prefill_even_for_all_holders(ctx, orders, server):
    ctx.store.update_state(selected_account_holder_id="all", prefill_order_from_source=PREFILL)
    surface = bind(orders)

    await orders.load()

    assert ctx.state.prefill_order_from_source is None
    assert server.requests == []
    assert surface.messages == ["Select a specific account holder to view pending orders."]


@pytest.mark.asyncio
async def test_load_renders_pending_orders(ctx, orders, server):
    server.route("GET", "/api/orders/pending", ORDERS)
    surface = bind(orders)

    await orders.load()

    assert isinstance(surface.last_model, OrdersModel)
    assert surface.last_model.orders == ORDERS
    assert ctx.state.pending_orders == ORDERS
    assert server.requests[0].url.params["holder"] == "1"


@pytest.mark.asyncio
async def test_reload_after_mutation_keeps_prefilled_form(ctx, orders, server):
    server.route("GET", "/api/orders/pending", ORDERS)
    server.route("PUT", "/api/orders/pending/5", {"message": "ok"})
    ctx.store.update_state(prefill_order_from_source=PREFILL)
    surface = bind(orders)
    orders.initialize_handlers()
    await orders.load()

    assert await orders.cancel_order(5)
    await ctx.bus.drain()

    assert len(server.calls("GET", "/api/orders/pending")) == 2
    form = surface.last_model.form
    assert (form.ticker, form.price, form.advice_source_id) == ("MSFT", "410.5", "7")
    assert form.source_locked
    assert form.lock_message == "Source locked: Value Newsletter"


@pytest.mark.asyncio
async def test_load_without_prefill_dates_an_empty_form(ctx, orders, server, monkeypatch):
    monkeypatch.setattr("portfolio_tracker.views.orders.current_est_date", lambda: "2024-05-15")
    server.route("GET", "/api/orders/pending", [])
    bind(orders)

    await orders.load()

    assert orders.form.transaction_date == "2024-05-15"
    assert orders.form.ticker == ""


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"ticker": " "}, "Ticker is required."),
        ({"price": "0"}, "Price must be a positive number."),
        ({"quantity": "x"}, "Quantity must be a number."),
        ({"tp1": "390"}, "Take Profit 1 price must be above the purchase price."),
        ({"tp1": "450", "tp2": "440"}, "Take Profit 2 price must be above Take Profit 1 and the purchase price."),
        ({"sl": "401"}, "Stop Loss price must be below the purchase price."),
    ],
)
@pytest.mark.asyncio
async def test_validate_trade_rejects(orders, overrides, message):
    with pytest.raises(ValidationError) as exc_info:
        orders.validate_trade(_valid_form(**overrides))
    assert str(exc_info.value) == message


@pytest.mark.asyncio
async def test_validate_trade_builds_buy(orders):
    transaction = orders.validate_trade(_valid_form(tp1="450", sl="350"))
    assert transaction["ticker"] == "MSFT"
    assert transaction["transaction_type"] == "BUY"
    assert transaction["quantity"] == 3
    assert transaction["limit_price_up"] == 450
    assert transaction["limit_price_down"] == 350
    assert transaction["limit_price_up_2"] is None


@pytest.mark.asyncio
async def test_invalid_trade_makes_no_request(ctx, orders, server, notifier, published):
    assert not await orders.log_trade(_valid_form(sl="500"))
    assert server.requests == []
    assert published == []
    assert notifier.messages(ToastLevel.ERROR) == ["Stop Loss price must be below the purchase price."]


@pytest.mark.asyncio
async def test_add_pending_order_requires_holder(ctx, orders, server, notifier):
    ctx.store.update_state(selected_account_holder_id="all")

    assert not await orders.add_pending_order("AMD", "NASDAQ", 140, 10)

    assert server.requests == []
    assert notifier.messages(ToastLevel.ERROR) == ["Select a specific account holder for adding a pending order."]


@pytest.mark.asyncio
async def test_add_pending_order_posts(ctx, orders, server, published):
    server.route("POST", "/api/orders/pending", {"id": 6})

    assert await orders.add_pending_order("amd", "NASDAQ", "140", "10", expiration_date="2024-06-30")

    body = FakeServer.body(server.requests[0])
    assert body["ticker"] == "AMD"
    assert body["limit_price"] == 140
    assert body["order_type"] == "BUY_LIMIT"
    assert body["expiration_date"] == "2024-06-30"
    assert len(published) == 1


@pytest.mark.asyncio
async def test_cancel_order(ctx, orders, server, published):
    server.route("PUT", "/api/orders/pending/5", {"message": "ok"})

    assert await orders.cancel_order(5)

    assert FakeServer.body(server.requests[0]) == {"status": "CANCELLED"}
    assert len(published) == 1


@pytest.mark.asyncio
async def test_fill_order_creates_buy(ctx, orders, server, published):
    server.route("PUT", "/api/orders/pending/5", {"message": "ok"})
    server.route("POST", "/api/transactions", {"id": 42})
    ctx.store.update_state(pending_orders=ORDERS)

    assert await orders.fill_order(5, "139.5", "2024-05-02")

    status_put, buy = server.requests
    assert FakeServer.body(status_put) == {"status": "FILLED"}
    body = FakeServer.body(buy)
    assert body["ticker"] == "AMD"
    assert body["price"] == 139.5
    assert body["quantity"] == 10
    assert len(published) == 1


@pytest.mark.asyncio
async def test_fill_order_reverts_status_when_buy_fails(ctx, orders, server, notifier, published):
    server.route("PUT", "/api/orders/pending/5", {"message": "ok"})
    server.route("POST", "/api/transactions", {"message": "Exchange closed"}, status=400)
    ctx.store.update_state(pending_orders=ORDERS)

    assert not await orders.fill_order(5, "139.5", "2024-05-02")

    statuses = [FakeServer.body(r)["status"] for r in server.calls("PUT")]
    assert statuses == ["FILLED", "ACTIVE"]
    assert notifier.messages(ToastLevel.ERROR) == ["Error: Exchange closed. Order status reverted."]
    assert published == []


@pytest.mark.asyncio
async def test_fill_order_requires_price_and_date(ctx, orders, server):
    ctx.store.update_state(pending_orders=ORDERS)

    assert not await orders.fill_order(5, "", "2024-05-02")
    assert not await orders.fill_order(5, "139", "")
    assert server.requests == []
