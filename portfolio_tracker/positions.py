"""
Open-lot metrics, aggregation and sorting for the dashboard.

Lots are plain dicts as returned by the positions endpoint, with at least
``id``, ``ticker``, ``exchange``, ``cost_basis`` and ``quantity_remaining``.
"""

import math
from typing import Callable, Optional

from portfolio_tracker.prices import PriceCache
from portfolio_tracker.models import LotMetrics, PositionCard

# Within this distance (percent of price) a lot is "near" its limit
PROXIMITY_THRESHOLD_PERCENT = 5

# A remaining quantity below this counts as closed
QUANTITY_EPSILON = 0.00001

SORT_OPTIONS = ("ticker-asc", "exchange-asc", "gain-desc", "loss-asc", "proximity-asc")


def is_open(lot: dict) -> bool:
    return float(lot.get("quantity_remaining") or 0) > QUANTITY_EPSILON


def lot_metrics(lot: dict, current_price: Optional[float]) -> LotMetrics:
    """Value and unrealized P/L of one lot at ``current_price``.

    Without a usable price the lot is valued at cost.
    """
    quantity = float(lot.get("quantity_remaining") or 0)
    cost = quantity * float(lot.get("cost_basis") or 0)

    if current_price is None or current_price <= 0:
        return LotMetrics(current_value=cost, cost_of_remaining=cost, unrealized_pl=0.0, unrealized_percent=0.0)

    value = quantity * current_price
    pl = value - cost
    metrics = LotMetrics(
        current_value=value,
        cost_of_remaining=cost,
        unrealized_pl=pl,
        unrealized_percent=(pl / cost * 100) if cost else 0.0,
    )

    limit_up = lot.get("limit_price_up")
    if limit_up:
        pct = (float(limit_up) - current_price) / current_price * 100
        if 0 <= pct <= PROXIMITY_THRESHOLD_PERCENT:
            metrics.proximity = "up"
    limit_down = lot.get("limit_price_down")
    if metrics.proximity is None and limit_down:
        pct = (current_price - float(limit_down)) / current_price * 100
        if 0 <= pct <= PROXIMITY_THRESHOLD_PERCENT:
            metrics.proximity = "down"

    return metrics


def proximity_percent(lot: dict, current_price: Optional[float]) -> float:
    """Distance to the nearest limit not yet crossed; inf when none."""
    if current_price is None or current_price <= 0:
        return math.inf
    best = math.inf
    limit_up = lot.get("limit_price_up")
    if limit_up and current_price < float(limit_up):
        best = min(best, (float(limit_up) - current_price) / current_price * 100)
    limit_down = lot.get("limit_price_down")
    if limit_down and current_price > float(limit_down):
        best = min(best, (current_price - float(limit_down)) / current_price * 100)
    return best


def aggregate_lots(lots: list[dict], prices: PriceCache) -> list[PositionCard]:
    """Group open lots by (ticker, exchange) into position cards."""
    groups: dict[tuple[str, str], list[dict]] = {}
    for lot in lots:
        if not is_open(lot):
            continue
        groups.setdefault((lot.get("ticker", ""), lot.get("exchange", "")), []).append(lot)

    cards = []
    for (ticker, exchange), group in groups.items():
        price = prices.price(ticker)
        total_quantity = 0.0
        total_cost = 0.0
        total_value = 0.0
        for lot in group:
            metrics = lot_metrics(lot, price)
            total_quantity += float(lot["quantity_remaining"])
            total_cost += metrics.cost_of_remaining
            total_value += metrics.current_value
        pl = total_value - total_cost
        cards.append(
            PositionCard(
                ticker=ticker,
                exchange=exchange,
                total_quantity=total_quantity,
                weighted_avg_cost_basis=(total_cost / total_quantity) if total_quantity else 0.0,
                total_cost=total_cost,
                total_current_value=total_value,
                unrealized_pl=pl,
                unrealized_percent=(pl / total_cost * 100) if total_cost else 0.0,
                current_price=price,
                lots=sorted(group, key=lambda l: str(l.get("purchase_date", ""))),
            )
        )
    return cards


def filter_cards(cards: list[PositionCard], ticker_filter: str = "", exchange_filter: str = "") -> list[PositionCard]:
    needle = ticker_filter.strip().upper()
    return [
        card
        for card in cards
        if (not needle or needle in card.ticker.upper()) and (not exchange_filter or card.exchange == exchange_filter)
    ]


def sort_cards(cards: list[PositionCard], sort: str) -> list[PositionCard]:
    """Sort cards; ties and unknown sort keys fall back to ticker order."""
    by_ticker = sorted(cards, key=lambda c: c.ticker)
    if sort == "exchange-asc":
        return sorted(by_ticker, key=lambda c: c.exchange)
    if sort == "gain-desc":
        return sorted(by_ticker, key=lambda c: -c.unrealized_percent)
    if sort == "loss-asc":
        return sorted(by_ticker, key=lambda c: c.unrealized_percent)
    return by_ticker


def sort_lots(lots: list[dict], sort: str, prices: PriceCache) -> list[dict]:
    """Sort individual lots for the table view."""
    by_ticker = sorted(lots, key=lambda l: l.get("ticker", ""))
    key: Optional[Callable[[dict], float | str]] = None
    if sort == "exchange-asc":
        key = lambda l: l.get("exchange", "")  # noqa: E731
    elif sort == "proximity-asc":
        key = lambda l: proximity_percent(l, prices.price(l.get("ticker", "")))  # noqa: E731
    elif sort == "gain-desc":
        key = lambda l: -lot_metrics(l, prices.price(l.get("ticker", ""))).unrealized_percent  # noqa: E731
    elif sort == "loss-asc":
        key = lambda l: lot_metrics(l, prices.price(l.get("ticker", ""))).unrealized_percent  # noqa: E731
    return sorted(by_ticker, key=key) if key else by_ticker
