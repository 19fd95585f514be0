"""REST API gateway."""

from __future__ import annotations

from typing import Optional

import httpx

from portfolio_tracker.api.accounts import AccountsApi
from portfolio_tracker.api.alerts import AlertsApi
from portfolio_tracker.api.client import ApiClient, handle_response
from portfolio_tracker.api.documents import DocumentsApi
from portfolio_tracker.api.journal import JournalApi
from portfolio_tracker.api.orders import OrdersApi
from portfolio_tracker.api.prices import PricesApi
from portfolio_tracker.api.reporting import ReportingApi
from portfolio_tracker.api.sources import SourcesApi
from portfolio_tracker.api.transactions import TransactionsApi
from portfolio_tracker.api.watchlist import WatchlistApi


class PortfolioApi:
    """All resource gateways sharing one HTTP client."""

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client = ApiClient(base_url, timeout=timeout, transport=transport)
        self.transactions = TransactionsApi(self.client)
        self.orders = OrdersApi(self.client)
        self.alerts = AlertsApi(self.client)
        self.sources = SourcesApi(self.client)
        self.accounts = AccountsApi(self.client)
        self.watchlist = WatchlistApi(self.client)
        self.reporting = ReportingApi(self.client)
        self.prices = PricesApi(self.client)
        self.journal = JournalApi(self.client)
        self.documents = DocumentsApi(self.client)

    async def close(self) -> None:
        await self.client.close()


__all__ = ["ApiClient", "PortfolioApi", "handle_response"]
