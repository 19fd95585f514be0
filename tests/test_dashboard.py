"""Tests for the dashboard view."""

import pytest

from conftest import FakeServer, bind
from portfolio_tracker.context import ToastLevel
from portfolio_tracker.events import AppEvent
from portfolio_tracker.models import DashboardModel
from portfolio_tracker.views import create_views
from portfolio_tracker.views.dashboard import DashboardView, SaleForm

LOTS = [
    {"id": 1, "ticker": "AAPL", "exchange": "NASDAQ", "cost_basis": 100, "quantity_remaining": 10,
     "purchase_date": "2024-01-10", "account_holder_id": 1, "limit_price_up": 125},
    {"id": 2, "ticker": "AAPL", "exchange": "NASDAQ", "cost_basis": 110, "quantity_remaining": 10,
     "purchase_date": "2024-02-10", "account_holder_id": 1},
    {"id": 3, "ticker": "KO", "exchange": "NYSE", "cost_basis": 60, "quantity_remaining": 5,
     "purchase_date": "2024-03-01", "account_holder_id": 1},
    {"id": 4, "ticker": "IBM", "exchange": "NYSE", "cost_basis": 150, "quantity_remaining": 0,
     "purchase_date": "2023-03-01", "account_holder_id": 1},
]


@pytest.fixture
def dashboard(ctx):
    return DashboardView(ctx)


def _serve_positions(server, lots=LOTS, prices=None):
    server.route("GET", "/api/reporting/positions/*", {"endOfDayPositions": lots})
    server.route("POST", "/api/utility/prices/batch", prices if prices is not None else {"AAPL": {"price": 120}, "KO": 55})


@pytest.mark.asyncio
async def test_sell_position_with_all_holders_short_circuits(ctx, dashboard, server, notifier):
    ctx.store.update_state(selected_account_holder_id="all", dashboard_open_lots=LOTS)

    result = dashboard.sell_position("AAPL", "NASDAQ")

    assert result is None
    assert notifier.messages(ToastLevel.ERROR) == ["Please select a specific account holder to sell a position."]
    assert server.requests == []


@pytest.mark.asyncio
async def test_successful_sale_publishes_once_and_reloads_each_view_once(ctx, server):
    server.route("POST", "/api/transactions", {"id": 99})
    ctx.store.update_state(dashboard_open_lots=LOTS)

    views = create_views(ctx)
    load_counts = {name: 0 for name in views}
    for name, view in views.items():
        bind(view)

        async def counting_load(*args, name=name, **kwargs):
            load_counts[name] += 1

        view.load = counting_load
        view.initialize_handlers()

    published = []
    ctx.bus.subscribe(AppEvent.DATA_UPDATED, published.append)

    dashboard = views["dashboard"]
    sale = dashboard.prepare_sale(1)
    sale.price = 130
    ok = await dashboard.sell_from_lot(sale)
    await ctx.bus.drain()

    assert ok
    assert len(published) == 1
    assert load_counts == {name: 1 for name in views}
    assert len(server.calls("POST", "/api/transactions")) == 1


@pytest.mark.asyncio
async def test_sale_sends_sell_against_parent_lot(ctx, dashboard, server, notifier):
    server.route("POST", "/api/transactions", {"id": 99})
    ctx.store.update_state(dashboard_open_lots=LOTS)
    refreshes = []
    ctx.bus.subscribe(AppEvent.SOURCE_DETAILS_SHOULD_REFRESH, refreshes.append)

    sale = dashboard.prepare_sale(2)
    sale.quantity = 4
    sale.price = 125.5
    await dashboard.sell_from_lot(sale)

    body = FakeServer.body(server.requests[0])
    assert body["transaction_type"] == "SELL"
    assert body["parent_buy_id"] == 2
    assert body["quantity"] == 4
    assert body["price"] == 125.5
    assert refreshes == [{"ticker": "AAPL"}]
    assert "Sale logged successfully!" in notifier.messages(ToastLevel.SUCCESS)


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity,price", [(0, 10), (5, -1), ("abc", 10)])
async def test_invalid_sale_makes_no_request(ctx, dashboard, server, notifier, published, quantity, price):
    sale = SaleForm(1, "AAPL", "NASDAQ", 1, quantity, price, "2024-05-01")

    assert not await dashboard.sell_from_lot(sale)

    assert server.requests == []
    assert published == []
    assert len(notifier.messages(ToastLevel.ERROR)) == 1


@pytest.mark.asyncio
async def test_failed_sale_reports_server_message(ctx, dashboard, server, notifier, published):
    server.route("POST", "/api/transactions", {"message": "Sell quantity exceeds lot"}, status=400)
    sale = SaleForm(1, "AAPL", "NASDAQ", 1, 50, 120, "2024-05-01")

    assert not await dashboard.sell_from_lot(sale)

    assert notifier.messages(ToastLevel.ERROR) == ["Failed to log sale: Sell quantity exceeds lot"]
    assert published == []


@pytest.mark.asyncio
async def test_load_aggregates_open_lots_with_prices(ctx, dashboard, server):
    _serve_positions(server)
    surface = bind(dashboard)

    await dashboard.load()

    model = surface.last_model
    assert isinstance(model, DashboardModel)
    by_ticker = {c.ticker: c for c in model.cards}
    assert set(by_ticker) == {"AAPL", "KO"}
    aapl = by_ticker["AAPL"]
    assert aapl.total_quantity == 20
    assert aapl.weighted_avg_cost_basis == pytest.approx(105)
    assert aapl.total_current_value == pytest.approx(2400)
    assert aapl.unrealized_pl == pytest.approx(300)
    assert [lot["id"] for lot in aapl.lots] == [1, 2]
    assert model.total_current_value == pytest.approx(2400 + 275)
    assert ctx.state.dashboard_open_lots == LOTS


@pytest.mark.asyncio
async def test_price_failure_still_renders_at_cost(ctx, dashboard, server, notifier):
    server.route("GET", "/api/reporting/positions/*", {"endOfDayPositions": LOTS})
    server.route("POST", "/api/utility/prices/batch", {"message": "quota"}, status=503)
    surface = bind(dashboard)

    await dashboard.load()

    cards = {c.ticker: c for c in surface.last_model.cards}
    assert cards["KO"].total_current_value == pytest.approx(300)
    assert cards["KO"].unrealized_pl == 0
    assert notifier.messages(ToastLevel.WARNING) == ["Could not refresh prices: quota"]


@pytest.mark.asyncio
async def test_filter_and_sort(ctx, dashboard, server):
    _serve_positions(server)
    surface = bind(dashboard)
    await dashboard.load()

    dashboard.set_sort("gain-desc")
    assert [c.ticker for c in surface.last_model.cards] == ["AAPL", "KO"]

    dashboard.set_sort("loss-asc")
    assert [c.ticker for c in surface.last_model.cards] == ["KO", "AAPL"]

    dashboard.set_filter("ko")
    assert [c.ticker for c in surface.last_model.cards] == ["KO"]
    assert [lot["id"] for lot in surface.last_model.lots] == [3]


@pytest.mark.asyncio
async def test_selective_sell_quantities_must_add_up(ctx, dashboard, server, notifier):
    ctx.store.update_state(dashboard_open_lots=LOTS)

    ok = await dashboard.selective_sell("AAPL", "NASDAQ", 8, 130, "2024-05-01", {1: 3, 2: 4})

    assert not ok
    assert server.requests == []
    assert notifier.messages(ToastLevel.ERROR) == ["Selected lot quantities must add up to the total quantity to sell."]


@pytest.mark.asyncio
async def test_selective_sell_cannot_exceed_lot(ctx, dashboard, server):
    ctx.store.update_state(dashboard_open_lots=LOTS)

    assert not await dashboard.selective_sell("AAPL", "NASDAQ", 12, 130, "2024-05-01", {1: 12})
    assert server.requests == []


@pytest.mark.asyncio
async def test_selective_sell_posts_lot_breakdown(ctx, dashboard, server, published):
    server.route("POST", "/api/transactions", {"id": 100})
    ctx.store.update_state(dashboard_open_lots=LOTS)

    assert await dashboard.selective_sell("AAPL", "NASDAQ", 7, 130, "2024-05-01", {1: 3, 2: 4})

    body = FakeServer.body(server.requests[0])
    assert body["quantity"] == 7
    assert body["lots"] == [
        {"parent_buy_id": 1, "quantity_to_sell": 3.0},
        {"parent_buy_id": 2, "quantity_to_sell": 4.0},
    ]
    assert len(published) == 1


@pytest.mark.asyncio
async def test_manage_position_collects_sales_per_lot(ctx, dashboard, server):
    server.route("GET", "/api/reporting/positions/*", {"endOfDayPositions": LOTS})
    server.route("GET", "/api/transactions/sales/1", [{"id": 50, "quantity": 2}])
    server.route("GET", "/api/transactions/sales/2", {"message": "boom"}, status=500)

    model = await dashboard.manage_position("AAPL", "NASDAQ")

    assert [lot["id"] for lot in model.lots] == [1, 2]
    assert model.sales_by_lot == {1: [{"id": 50, "quantity": 2}], 2: []}


@pytest.mark.asyncio
async def test_manage_position_with_all_holders_is_refused(ctx, dashboard, server, notifier):
    ctx.store.update_state(selected_account_holder_id="all")

    assert await dashboard.manage_position("AAPL", "NASDAQ") is None
    assert server.requests == []
    assert notifier.messages(ToastLevel.ERROR)


@pytest.mark.asyncio
async def test_set_limits_validates_against_cost(ctx, dashboard, server, notifier):
    ctx.store.update_state(dashboard_open_lots=LOTS)

    assert not await dashboard.set_limits(1, limit_up=90)
    assert not await dashboard.set_limits(1, limit_down=105)
    assert server.requests == []
    assert notifier.messages(ToastLevel.ERROR) == [
        "Take profit price must be above the purchase price.",
        "Stop loss price must be below the purchase price.",
    ]


@pytest.mark.asyncio
async def test_set_limits_updates_lot(ctx, dashboard, server, published):
    server.route("PUT", "/api/transactions/1", {"message": "ok"})
    ctx.store.update_state(dashboard_open_lots=LOTS)

    assert await dashboard.set_limits(1, limit_up=140, limit_up_expiration="2024-12-31", limit_down=90)

    body = FakeServer.body(server.requests[0])
    assert body["limit_price_up"] == 140
    assert body["limit_up_expiration"] == "2024-12-31"
    assert body["limit_price_down"] == 90
    assert body["limit_down_expiration"] is None
    assert len(published) == 1
