"""Async HTTP client for the portfolio REST API."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from portfolio_tracker.exceptions import ApiError

logger = logging.getLogger(__name__)

SUCCESS_RESPONSE = {"message": "Operation successful."}


def handle_response(response: httpx.Response) -> Any:
    """Interpret an API response.

    - Non-success: raise ApiError with the JSON ``message`` when there is one,
      else the reason phrase, else a generic status message.
    - 204: return a synthetic success object without touching the body.
    - text/plain: parse as JSON if possible, else wrap as ``{"message": text}``.
    - Anything else: the JSON body.
    """
    if not response.is_success:
        fallback = response.reason_phrase or f"Server responded with status: {response.status_code}"
        try:
            error_data = response.json()
        except ValueError:
            error_data = {"message": fallback}
        message = error_data.get("message") if isinstance(error_data, dict) else None
        raise ApiError(message or fallback, status_code=response.status_code)

    if response.status_code == 204:
        return dict(SUCCESS_RESPONSE)

    content_type = response.headers.get("content-type", "")
    if "text/plain" in content_type:
        text = response.text
        try:
            return json.loads(text)
        except ValueError:
            return {"message": text}

    return response.json()


class ApiClient:
    """Thin async wrapper around one ``httpx.AsyncClient``.

    Every call performs exactly one request and hands the response to
    ``handle_response``. Transport failures are raised as ApiError too, so
    callers only ever catch one error type.
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        logger.debug(f"{method} {path}")
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(f"Network error: {e}") from e
        return handle_response(response)

    # -- verbs ---------------------------------------------------------------

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str, json: Any = None) -> Any:
        return await self.request("DELETE", path, json=json)
