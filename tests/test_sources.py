"""Tests for the sources view, its details panel and notes."""

import httpx
import pytest

from conftest import FakeServer, bind
from portfolio_tracker.context import ToastLevel
from portfolio_tracker.events import AppEvent
from portfolio_tracker.views.dashboard import DashboardView
from portfolio_tracker.views.sources import SourcesView, details_tickers

SOURCES = [
    {"id": 2, "name": "newsletter"},
    {"id": 1, "name": "Analyst Blog"},
]

DETAILS = {
    "source": {"id": 1, "name": "Analyst Blog"},
    "journalEntries": [{"id": 30, "ticker": "nvda"}],
    "watchlistItems": [{"id": 31, "ticker": "AMD"}, {"id": 32, "ticker": None}],
    "linkedTransactions": [{"id": 33, "ticker": "NVDA"}],
    "notes": [],
}


@pytest.fixture
def sources(ctx):
    return SourcesView(ctx)


def _serve_details(server):
    server.route("GET", "/api/sources/1/details", DETAILS)
    server.route("POST", "/api/utility/prices/batch", {"AMD": 160, "NVDA": {"price": 870, "previousPrice": 850}})


def test_details_tickers_collects_every_section():
    assert details_tickers(DETAILS) == {"NVDA", "AMD"}
    assert details_tickers(None) == set()


@pytest.mark.asyncio
async def test_all_holders_shows_prompt_without_request(ctx, sources, server):
    ctx.store.update_state(selected_account_holder_id="all", all_advice_sources=SOURCES)
    surface = bind(sources)

    await sources.load()

    assert server.requests == []
    assert ctx.state.all_advice_sources == []
    assert surface.messages == ["Select a specific account holder to view advice sources."]


@pytest.mark.asyncio
async def test_load_sorts_sources_by_name(ctx, sources, server):
    server.route("GET", "/api/advice-sources", SOURCES)
    surface = bind(sources)

    await sources.load()

    assert [s["name"] for s in surface.last_model.sources] == ["Analyst Blog", "newsletter"]


@pytest.mark.asyncio
async def test_open_details_fetches_details_and_prices(ctx, sources, server):
    _serve_details(server)
    surface = bind(sources)

    details = await sources.open_details(1)

    assert details == DETAILS
    assert sources.open_source_id == "1"
    assert ctx.state.source_details == DETAILS
    assert surface.last_model.details == DETAILS
    price_request = server.calls("POST", "/api/utility/prices/batch")[0]
    assert FakeServer.body(price_request) == {"tickers": ["AMD", "NVDA"]}
    assert ctx.state.price_cache.price("nvda") == 870


@pytest.mark.asyncio
async def test_price_failure_still_opens_details(ctx, sources, server):
    server.route("GET", "/api/sources/1/details", DETAILS)
    server.route("POST", "/api/utility/prices/batch", {"message": "quota"}, status=429)
    bind(sources)

    assert await sources.open_details(1) == DETAILS
    assert sources.open_source_id == "1"


@pytest.mark.asyncio
async def test_details_dropped_when_holder_changes_mid_fetch(ctx, sources, server):
    def details_then_switch(request):
        ctx.store.update_state(selected_account_holder_id=2)
        return httpx.Response(200, json={"notes": []})

    server.route("GET", "/api/sources/1/details", details_then_switch)
    bind(sources)

    assert await sources.open_details(1) is None
    assert sources.open_source_id is None
    assert ctx.state.source_details is None


@pytest.mark.asyncio
async def test_refresh_signal_refetches_open_details(ctx, sources, server):
    _serve_details(server)
    bind(sources)
    sources.initialize_handlers()
    await sources.open_details(1)

    ctx.bus.publish(AppEvent.SOURCE_DETAILS_SHOULD_REFRESH, {"ticker": "NVDA"})
    await ctx.bus.drain()

    assert len(server.calls("GET", "/api/sources/1/details")) == 2
    assert server.calls("GET", "/api/advice-sources") == []


@pytest.mark.asyncio
async def test_sale_refetches_open_details_once(ctx, sources, server):
    _serve_details(server)
    server.route("GET", "/api/advice-sources", SOURCES)
    server.route("POST", "/api/transactions", {"id": 99})
    ctx.store.update_state(
        dashboard_open_lots=[{"id": 9, "ticker": "NVDA", "exchange": "NASDAQ", "quantity_remaining": 2,
                              "cost_basis": 800, "account_holder_id": 1}]
    )
    bind(sources)
    sources.initialize_handlers()
    await sources.open_details(1)

    dashboard = DashboardView(ctx)
    sale = dashboard.prepare_sale(9)
    sale.price = 870
    assert await dashboard.sell_from_lot(sale)
    await ctx.bus.drain()

    assert len(server.calls("GET", "/api/sources/1/details")) == 2
    assert len(server.calls("GET", "/api/advice-sources")) == 1


@pytest.mark.asyncio
async def test_load_refreshes_open_details(ctx, sources, server):
    _serve_details(server)
    server.route("GET", "/api/advice-sources", SOURCES)
    bind(sources)
    sources.open_source_id = "1"

    assert await sources.load()

    assert len(server.calls("GET", "/api/sources/1/details")) == 1
    assert ctx.state.source_details == DETAILS


@pytest.mark.asyncio
async def test_failed_load_leaves_details_alone(ctx, sources, server):
    _serve_details(server)
    server.route("GET", "/api/advice-sources", {"message": "boom"}, status=500)
    bind(sources)
    sources.open_source_id = "1"

    assert not await sources.load()

    assert server.calls("GET", "/api/sources/1/details") == []


@pytest.mark.asyncio
async def test_superseded_load_leaves_details_alone(ctx, sources, server):
    _serve_details(server)
    bind(sources)
    sources.open_source_id = "1"

    def list_then_supersede(request):
        # A newer load starts while this one is in flight
        sources.guard.begin()
        return httpx.Response(200, json=SOURCES)

    server.route("GET", "/api/advice-sources", list_then_supersede)

    assert not await sources.load()

    assert server.calls("GET", "/api/sources/1/details") == []


@pytest.mark.asyncio
async def test_journal_update_refetches_open_details_only(ctx, sources, server):
    _serve_details(server)
    bind(sources)
    sources.initialize_handlers()
    await sources.open_details(1)

    ctx.bus.publish(AppEvent.JOURNAL_UPDATED, {"action": "added"})
    await ctx.bus.drain()

    assert len(server.calls("GET", "/api/sources/1/details")) == 2
    assert server.calls("GET", "/api/advice-sources") == []


@pytest.mark.asyncio
async def test_refresh_signal_without_open_details_does_nothing(ctx, sources, server):
    bind(sources)
    sources.initialize_handlers()

    ctx.bus.publish(AppEvent.SOURCE_DETAILS_SHOULD_REFRESH, None)
    await ctx.bus.drain()

    assert server.requests == []


@pytest.mark.asyncio
async def test_add_source_requires_name(ctx, sources, server, notifier):
    assert not await sources.add_source({"name": "  "})
    assert server.requests == []
    assert notifier.messages(ToastLevel.ERROR) == ["Source name is required."]


@pytest.mark.asyncio
async def test_add_source_posts_with_holder(ctx, sources, server, published):
    server.route("POST", "/api/advice-sources", {"id": 3})

    assert await sources.add_source({"name": "Podcast", "type": "Media"})

    assert FakeServer.body(server.requests[0]) == {"name": "Podcast", "type": "Media", "account_holder_id": 1}
    assert len(published) == 1


@pytest.mark.asyncio
async def test_delete_open_source_closes_details(ctx, sources, server, published):
    _serve_details(server)
    server.route("DELETE", "/api/advice-sources/1", {"message": "deleted"})
    bind(sources)
    await sources.open_details(1)

    assert await sources.delete_source(1)

    assert sources.open_source_id is None
    assert ctx.state.source_details is None
    assert len(published) == 1


@pytest.mark.asyncio
async def test_add_note_signals_details_refresh(ctx, sources, server, notifier, published):
    server.route("POST", "/api/sources/1/notes", {"id": 8})
    refreshes = []
    ctx.bus.subscribe(AppEvent.SOURCE_DETAILS_SHOULD_REFRESH, refreshes.append)
    sources.open_source_id = "1"

    assert await sources.add_note(1, "Entry looks good below 850")

    assert FakeServer.body(server.requests[0]) == {"holderId": 1, "note_content": "Entry looks good below 850"}
    assert refreshes == [{"source_id": "1"}]
    assert published == []
    assert notifier.messages(ToastLevel.SUCCESS) == ["Note added."]


@pytest.mark.asyncio
async def test_empty_note_is_rejected(ctx, sources, server, notifier):
    assert not await sources.add_note(1, "")
    assert server.requests == []
    assert notifier.messages(ToastLevel.ERROR) == ["Note content cannot be empty."]


@pytest.mark.asyncio
async def test_notes_need_specific_holder(ctx, sources, server, notifier):
    ctx.store.update_state(selected_account_holder_id="all")

    assert not await sources.delete_note(1, 8)

    assert server.requests == []
    assert notifier.messages(ToastLevel.ERROR) == ["Select a specific account holder for source notes."]


@pytest.mark.asyncio
async def test_create_order_from_idea_prefills_orders(ctx, sources, router):
    seen = []

    async def orders_loader():
        seen.append(ctx.store.take("prefill_order_from_source"))

    router.register("orders", orders_loader)
    ctx.store.update_state(all_advice_sources=SOURCES)

    assert await sources.create_order_from_idea(1, "nvda", "850", tp1="900", sl="800", journal_id="30")

    prefill = seen[0]
    assert prefill.source_id == "1"
    assert prefill.source_name == "Analyst Blog"
    assert (prefill.ticker, prefill.price, prefill.tp1, prefill.sl) == ("NVDA", "850", "900", "800")
    assert prefill.journal_id == "30"


@pytest.mark.asyncio
async def test_create_order_from_idea_guards(ctx, sources, router, notifier):
    router.register("orders", lambda: None)

    assert not await sources.create_order_from_idea(1, "")
    ctx.store.update_state(selected_account_holder_id="all")
    assert not await sources.create_order_from_idea(1, "NVDA")

    assert notifier.messages(ToastLevel.ERROR) == [
        "Error: Missing ticker for this idea.",
        "Please select a specific account holder to create an order.",
    ]
    assert ctx.state.prefill_order_from_source is None


@pytest.mark.asyncio
async def test_add_technique_logs_journal_entry(ctx, sources, server, notifier, monkeypatch):
    monkeypatch.setattr("portfolio_tracker.views.sources.current_est_date", lambda: "2024-05-15")
    server.route("POST", "/api/journal", {"id": 50})
    journal_events = []
    ctx.bus.subscribe(AppEvent.JOURNAL_UPDATED, journal_events.append)

    assert await sources.add_technique(1, " Breakout retest ", chart_type="Daily", notes="Volume matters")

    body = FakeServer.body(server.requests[0])
    assert (body["ticker"], body["exchange"], body["quantity"], body["entry_price"]) == ("N/A", "Paper", 0, 0)
    assert body["entry_reason"] == "Breakout retest"
    assert body["notes"] == "Chart Type: Daily\n\nVolume matters"
    assert body["entry_date"] == "2024-05-15"
    assert body["advice_source_id"] == 1
    assert journal_events == [{"source": "sources", "action": "technique-added", "source_id": 1}]
    assert notifier.messages(ToastLevel.SUCCESS) == ["New technique added!"]


@pytest.mark.asyncio
async def test_technique_needs_description(ctx, sources, server, notifier):
    assert not await sources.add_technique(1, "  ")
    assert server.requests == []
    assert notifier.messages(ToastLevel.ERROR) == ["Description is required."]


@pytest.mark.asyncio
async def test_add_document_signals_details_refresh(ctx, sources, server, published):
    server.route("POST", "/api/documents", {"id": 5})
    refreshes = []
    ctx.bus.subscribe(AppEvent.SOURCE_DETAILS_SHOULD_REFRESH, refreshes.append)
    sources.open_source_id = "1"

    assert await sources.add_document(1, "https://example.test/chart.png", title="Weekly chart")

    body = FakeServer.body(server.requests[0])
    assert body["external_link"] == "https://example.test/chart.png"
    assert body["advice_source_id"] == 1
    assert body["account_holder_id"] == 1
    assert body["document_type"] is None
    assert refreshes == [{"source_id": "1"}]
    assert published == []


@pytest.mark.asyncio
async def test_document_without_link_is_rejected(ctx, sources, server, notifier):
    assert not await sources.add_document(1, " ")
    assert server.requests == []
    assert notifier.messages(ToastLevel.ERROR) == [
        "Missing required fields: account holder, link, and either journal or source ID."
    ]
