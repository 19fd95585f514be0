"""Shared pieces for resource gateways."""

from typing import Optional

from portfolio_tracker.api.client import ApiClient
from portfolio_tracker.state import ALL_HOLDERS, HolderId, is_all_holders


def holder_param(holder_id: Optional[HolderId]) -> str:
    """Query value for a holder filter: 'all' or the id as a string."""
    return ALL_HOLDERS if is_all_holders(holder_id) else str(holder_id)


class Resource:
    """Base class for one group of endpoints."""

    def __init__(self, client: ApiClient):
        self._client = client
