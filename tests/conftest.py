"""Pytest configuration and fixtures."""

import json
from typing import Any, Callable, Optional, Union

import httpx
import pytest

from portfolio_tracker.api import PortfolioApi
from portfolio_tracker.context import AppContext, ToastLevel
from portfolio_tracker.events import AppEvent
from portfolio_tracker.router import Router
from portfolio_tracker.settings_store import LocalSettingsStore

BASE_URL = "http://tracker.test"

Reply = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeServer:
    """Routes requests to canned responses and records every request.

    A route path ending in ``*`` matches by prefix. Unrouted requests get a
    404 with a JSON message.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Reply] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, reply: Any = None, status: int = 200) -> None:
        if not isinstance(reply, httpx.Response) and not callable(reply):
            reply = httpx.Response(status, json=reply if reply is not None else {})
        self.routes[(method.upper(), path)] = reply

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self._match(request.method, request.url.path)
        if reply is None:
            return httpx.Response(404, json={"message": f"Not found: {request.url.path}"})
        return reply(request) if callable(reply) else reply

    def _match(self, method: str, path: str) -> Optional[Reply]:
        if (method, path) in self.routes:
            return self.routes[(method, path)]
        for (route_method, route_path), reply in self.routes.items():
            if route_method == method and route_path.endswith("*") and path.startswith(route_path[:-1]):
                return reply
        return None

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path.startswith(path))
        ]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None


class RecordingSurface:
    """ViewSurface that remembers everything shown on it."""

    def __init__(self):
        self.loading: list[str] = []
        self.messages: list[str] = []
        self.errors: list[str] = []
        self.models: list[Any] = []
        self.events: list[str] = []

    def show_loading(self, message: str) -> None:
        self.loading.append(message)
        self.events.append("loading")

    def show_message(self, message: str) -> None:
        self.messages.append(message)
        self.events.append("message")

    def show_error(self, message: str) -> None:
        self.errors.append(message)
        self.events.append("error")

    def render(self, model: Any) -> None:
        self.models.append(model)
        self.events.append("render")

    @property
    def last_model(self) -> Any:
        return self.models[-1] if self.models else None


class RecordingNotifier:
    def __init__(self):
        self.toasts: list[tuple[str, ToastLevel]] = []

    def notify(self, message: str, level: ToastLevel = ToastLevel.INFO) -> None:
        self.toasts.append((message, level))

    def messages(self, level: Optional[ToastLevel] = None) -> list[str]:
        return [m for m, lvl in self.toasts if level is None or lvl == level]


class Container:
    """Stand-in for a page container; only ``display`` matters."""

    def __init__(self, display: bool = False):
        self.display = display


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def ctx(server, notifier, tmp_path):
    """Application context talking to the fake server."""
    api = PortfolioApi(BASE_URL, transport=httpx.MockTransport(server.handler))
    context = AppContext(
        api=api,
        notifier=notifier,
        settings_store=LocalSettingsStore(tmp_path / "settings.json"),
    )
    yield context
    await context.bus.drain(timeout=5)
    await api.close()


@pytest.fixture
def router(ctx):
    return Router(ctx)


@pytest.fixture
def published(ctx):
    """Record every DATA_UPDATED detail published on the context's bus."""
    details: list[Any] = []
    ctx.bus.subscribe(AppEvent.DATA_UPDATED, details.append)
    return details


def bind(view) -> RecordingSurface:
    surface = RecordingSurface()
    view.bind(surface)
    return surface
