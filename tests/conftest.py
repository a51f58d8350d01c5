"""Shared fixtures: a fake NASA upstream, controllable clocks and app clients."""

from typing import Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

from main import create_app
from space_explorer.config import Settings


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = 1_750_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeNASA:
    """Records upstream requests and answers them with ``responder``."""

    def __init__(self):
        self.calls: List[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(200, json={})
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        return self.responder(request)

    def respond_json(self, payload, status_code: int = 200) -> None:
        self.responder = lambda request: httpx.Response(status_code, json=payload)

    def respond_status(self, status_code: int, body=None) -> None:
        self.responder = lambda request: httpx.Response(
            status_code, json=body if body is not None else {"msg": "upstream said no"}
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def settings() -> Settings:
    """Settings with limits high enough not to interfere with most tests."""
    return Settings(
        nasa_api_key="TEST_KEY",
        environment="development",
        rate_limit_max_requests=1000,
        nasa_rate_limit_max_requests=1000,
    )


@pytest.fixture
def nasa() -> FakeNASA:
    return FakeNASA()


@pytest.fixture
def cache_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_client(nasa, cache_clock, limiter_clock):
    """Factory building a TestClient around a fresh app."""

    def _make(settings: Settings, **kwargs) -> TestClient:
        app = create_app(
            settings,
            transport=nasa.transport,
            cache_clock=cache_clock,
            limiter_clock=limiter_clock,
        )
        return TestClient(app, **kwargs)

    return _make


@pytest.fixture
def client(make_client, settings) -> TestClient:
    return make_client(settings)
