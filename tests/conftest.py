"""Shared fakes: an httpx client whose responses come from a route table."""

from collections.abc import Callable

import httpx
import pytest

Route = Callable[[httpx.Request], httpx.Response]


class FakeNetwork:
    """Route requests by host (and optional path prefix); record every call."""

    def __init__(self) -> None:
        self.routes: list[tuple[str, str, Route]] = []
        self.calls: list[httpx.Request] = []

    def add(self, host: str, handler: Route, path: str = "") -> None:
        self.routes.append((host, path, handler))

    def json(self, host: str, payload, status: int = 200, path: str = "") -> None:
        self.add(host, lambda request: httpx.Response(status, json=payload), path=path)

    def fail(self, host: str, path: str = "") -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        self.add(host, _raise, path=path)

    def hosts_called(self) -> list[str]:
        return [r.url.host for r in self.calls]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        for host, path, route in self.routes:
            if request.url.host == host and request.url.path.startswith(path):
                return route(request)
        return httpx.Response(404, json={"error": "no route"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_net() -> FakeNetwork:
    return FakeNetwork()
