"""
Price cache and background price polling.

The cache is shared by the poller and manual refreshes. Writes are
last-write-wins per ticker; nothing ever waits on the cache.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from portfolio_tracker.dates import is_market_open

if TYPE_CHECKING:
    from portfolio_tracker.context import AppContext

logger = logging.getLogger(__name__)


@dataclass
class PriceData:
    """A fetched quote.

    Attributes:
        price: Last price, or None when the feed had nothing. 'invalid' when
            the server rejected the ticker.
        previous_price: Prior close, if the server sent one
        timestamp: When the quote was stored (epoch seconds)
    """

    price: Optional[float | str]
    previous_price: Optional[float]
    timestamp: float


class PriceCache:
    """Ticker -> latest PriceData."""

    def __init__(self):
        self._data: dict[str, PriceData] = {}

    def get(self, ticker: str) -> Optional[PriceData]:
        return self._data.get(ticker.upper())

    def price(self, ticker: str) -> Optional[float]:
        """Numeric price for a ticker, None if missing or invalid."""
        entry = self.get(ticker)
        if entry is None or not isinstance(entry.price, (int, float)):
            return None
        return float(entry.price)

    def set(self, ticker: str, price, previous_price: Optional[float] = None) -> None:
        self._data[ticker.upper()] = PriceData(
            price=price,
            previous_price=previous_price,
            timestamp=time.time(),
        )

    def update_from_batch(self, quotes: dict) -> int:
        """Store a batch response of ticker -> price or {price, previousPrice}.

        Returns the number of tickers written.
        """
        for ticker, quote in quotes.items():
            if isinstance(quote, dict):
                self.set(ticker, quote.get("price"), quote.get("previousPrice"))
            else:
                self.set(ticker, quote)
        return len(quotes)

    def __contains__(self, ticker: str) -> bool:
        return ticker.upper() in self._data

    def __len__(self) -> int:
        return len(self._data)


async def refresh_prices(ctx: "AppContext", tickers: Iterable[str]) -> int:
    """Fetch quotes for ``tickers`` into the session price cache.

    Raises ApiError on failure; callers decide how to surface it.
    """
    unique = sorted({t.upper() for t in tickers if t})
    if not unique:
        return 0
    quotes = await ctx.api.prices.fetch_batch(unique)
    # Re-read state after the await; the cache object is session-lived
    return ctx.store.get_state().price_cache.update_from_batch(quotes or {})


class PricePoller:
    """Refreshes prices for open positions on an interval.

    Interval comes from settings: ``market_hours_interval`` minutes during
    the regular session and ``after_hours_interval`` minutes otherwise.
    """

    def __init__(
        self,
        ctx: "AppContext",
        on_refresh: Optional[Callable[[int], None]] = None,
        clock: Callable[[], bool] = is_market_open,
    ):
        self._ctx = ctx
        self._on_refresh = on_refresh
        self._market_open = clock
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    def interval_seconds(self) -> float:
        settings = self._ctx.store.get_state().settings
        minutes = settings.market_hours_interval if self._market_open() else settings.after_hours_interval
        return max(float(minutes), 0.1) * 60

    def tickers(self) -> list[str]:
        state = self._ctx.store.get_state()
        return [lot.get("ticker", "") for lot in state.dashboard_open_lots]

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Price poller started")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Price poller stopped")

    async def refresh_now(self) -> int:
        """Refresh once. Failures are logged and count as zero updates."""
        try:
            count = await refresh_prices(self._ctx, self.tickers())
        except Exception as e:
            logger.error(f"Price refresh failed: {e}")
            return 0
        if self._on_refresh and count:
            self._on_refresh(count)
        return count

    async def _loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval_seconds())
            if not self._running:
                return
            await self.refresh_now()
