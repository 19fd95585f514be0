"""Date helpers pinned to US market time.

The market-open check uses the exchange_calendars NYSE calendar, so
holidays and early closes are honoured.
"""

import logging
from datetime import date, datetime, timedelta
from functools import lru_cache
from typing import Any, Optional
from zoneinfo import ZoneInfo

import exchange_calendars as xcals
import pandas as pd

logger = logging.getLogger(__name__)

MARKET_TZ = ZoneInfo("America/New_York")
MARKET_CALENDAR = "XNYS"


def market_now() -> datetime:
    return datetime.now(MARKET_TZ)


def current_est_date(now: Optional[datetime] = None) -> str:
    """Today's date in New York as YYYY-MM-DD."""
    now = now or market_now()
    return now.astimezone(MARKET_TZ).date().isoformat()


@lru_cache(maxsize=1)
def get_calendar() -> Any:
    """NYSE exchange calendar (cached, building it is slow)."""
    return xcals.get_calendar(MARKET_CALENDAR)


def is_market_open(now: Optional[datetime] = None) -> bool:
    """
    Check if the US market is open for trading.

    Accounts for weekends, exchange holidays and early closes.

    Args:
        now: Moment to check (defaults to the current time)

    Returns:
        True if `now` is a trading minute on the NYSE calendar
    """
    now = now or market_now()
    try:
        minute = pd.Timestamp(now).tz_convert("UTC").floor("min")
        return bool(get_calendar().is_open_on_minute(minute))
    except Exception as e:
        logger.warning(f"Error checking market hours for {MARKET_CALENDAR}: {e}")
        # Closed on error
        return False


def range_start(range_key: str, today: date) -> Optional[date]:
    """Start date for a realized P/L range key.

    Returns None for 'all'. Unknown keys fall back to 30 days.
    """
    if range_key == "all":
        return None
    if range_key == "90d":
        return today - timedelta(days=90)
    if range_key == "ytd":
        return date(today.year, 1, 1)
    return today - timedelta(days=30)
