"""Pytest fixtures for testing"""

import json
from typing import Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

from commission_gateway.api.dependencies import get_calculator
from commission_gateway.api.main import create_app
from commission_gateway.domain.commission import CommissionCalculator
from commission_gateway.domain.interfaces import CountryResolver, RateResolver
from commission_gateway.infrastructure.cache import InMemoryCache
from commission_gateway.infrastructure.clients.base import build_http_client
from commission_gateway.infrastructure.clients.binlist import BinListClient
from commission_gateway.infrastructure.clients.exchange_rates import ExchangeRatesClient

BIN_BASE_URL = "https://lookup.binlist.test/"
RATES_BASE_URL = "https://rates.test/"

LIVE_RATES = {
    "success": True,
    "timestamp": 1744435392,
    "source": "USD",
    "quotes": {
        "USDEUR": 0.90,
        "USDJPY": 150.00,
        "USDGBP": 0.80,
        "USDAUD": 1.50,
    },
}


class FakeClock:
    """Manually advanced epoch clock for TTL tests"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream:
    """httpx MockTransport backend that records every request"""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._responder: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(500)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    def client(self, base_url: str) -> httpx.Client:
        return build_http_client(base_url, timeout=5.0, transport=httpx.MockTransport(self._handle))

    def respond_json(self, payload, status_code: int = 200) -> None:
        self._responder = lambda request: httpx.Response(status_code, json=payload)

    def respond_text(self, text: str, status_code: int = 200) -> None:
        self._responder = lambda request: httpx.Response(status_code, text=text)

    def respond_with(self, responder: Callable[[httpx.Request], httpx.Response]) -> None:
        self._responder = responder

    def fail_with(self, exc_factory: Callable[[httpx.Request], Exception]) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise exc_factory(request)

        self._responder = _raise


class StubCountryResolver(CountryResolver):
    def __init__(self, country_code: str = "DE", error: Exception | None = None):
        self.country_code = country_code
        self.error = error
        self.calls: List[str] = []

    def resolve_country(self, bin: str) -> str:
        self.calls.append(bin)
        if self.error is not None:
            raise self.error
        return self.country_code


class StubRateResolver(RateResolver):
    def __init__(self, rate: float = 1.0, error: Exception | None = None, reference_currency: str = "EUR"):
        self.rate = rate
        self.error = error
        self.reference_currency = reference_currency
        self.calls: List[str] = []

    def resolve_rate(self, currency: str) -> float:
        self.calls.append(currency)
        if self.error is not None:
            raise self.error
        return self.rate


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> InMemoryCache:
    """Shared in-memory reference-data cache"""
    return InMemoryCache(clock=clock)


@pytest.fixture
def bin_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def rates_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def live_rates_body() -> str:
    """Raw live-rates payload as the upstream sends it"""
    return json.dumps(LIVE_RATES)


@pytest.fixture
def bin_client(bin_upstream: FakeUpstream, cache: InMemoryCache) -> BinListClient:
    return BinListClient(client=bin_upstream.client(BIN_BASE_URL), cache=cache)


@pytest.fixture
def rates_client(rates_upstream: FakeUpstream, cache: InMemoryCache) -> ExchangeRatesClient:
    return ExchangeRatesClient(
        client=rates_upstream.client(RATES_BASE_URL),
        cache=cache,
        api_key="test-key",
        reference_currency="EUR",
    )


@pytest.fixture
def make_calculator() -> Callable[..., CommissionCalculator]:
    """Build a calculator around stub resolvers"""

    def _make(
        country_code: str = "DE",
        rate: float = 1.0,
        country_error: Exception | None = None,
        rate_error: Exception | None = None,
    ) -> CommissionCalculator:
        return CommissionCalculator(
            StubCountryResolver(country_code, country_error),
            StubRateResolver(rate, rate_error),
        )

    return _make


@pytest.fixture
def api_calculator(make_calculator) -> CommissionCalculator:
    return make_calculator(country_code="DE", rate=1.0)


@pytest.fixture
def client(api_calculator: CommissionCalculator) -> TestClient:
    """Create FastAPI test client with stubbed reference data"""
    app = create_app()
    app.dependency_overrides[get_calculator] = lambda: api_calculator
    return TestClient(app)
