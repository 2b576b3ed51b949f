"""
Shared fixtures: an in-process stand-in for aiohttp.ClientSession, gateway
settings with known secrets, and a web client backed by a temporary SQLite file.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import GatewaySettings
from crypto_gateway.app import create_app
from crypto_gateway.payments import CryptoPaymentService
from main import build_engine, init_database

BTCPAY_SECRET = "btcpay-test-secret"
NOWPAYMENTS_SECRET = "nowpayments-test-secret"


# =============================================================================
# FAKE HTTP LAYER
# =============================================================================

@dataclass
class RecordedCall:
    method: str
    url: str
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @property
    def json(self) -> Any:
        return self.kwargs.get("json")

    @property
    def params(self) -> Any:
        return self.kwargs.get("params")

    @property
    def headers(self) -> Dict[str, str]:
        return self.kwargs.get("headers") or {}


class FakeResponse:
    def __init__(self, status: int = 200, payload: Any = None) -> None:
        self.status = status
        self._payload = payload

    async def json(self, content_type: Optional[str] = "application/json") -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False


class FakeHTTP:
    """Serves queued responses in order and records every request made."""

    def __init__(self) -> None:
        self.calls: List[RecordedCall] = []
        self._queue: List[Any] = []

    def respond(self, payload: Any = None, status: int = 200) -> "FakeHTTP":
        self._queue.append(FakeResponse(status, payload))
        return self

    def fail(self, exc: Exception) -> "FakeHTTP":
        self._queue.append(exc)
        return self

    def __call__(self) -> "_FakeSession":
        return _FakeSession(self)

    def _next(self, method: str, url: str, kwargs: Dict[str, Any]) -> FakeResponse:
        self.calls.append(RecordedCall(method, url, kwargs))
        assert self._queue, f"Unexpected HTTP call: {method} {url}"
        item = self._queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class _FakeSession:
    def __init__(self, http: FakeHTTP) -> None:
        self._http = http

    async def __aenter__(self) -> "_FakeSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        return self._http._next(method, url, kwargs)


def sign(payload: bytes, gateway: str) -> str:
    if gateway == "btcpay":
        return hmac.new(BTCPAY_SECRET.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.new(NOWPAYMENTS_SECRET.encode(), payload, hashlib.sha512).hexdigest()


# =============================================================================
# SHARED FIXTURES
# =============================================================================

@pytest.fixture
def fake_http() -> FakeHTTP:
    return FakeHTTP()


@pytest.fixture
def signer():
    """HMAC signer using the secrets configured in ``base_settings``."""
    return sign


@pytest.fixture
def base_settings() -> GatewaySettings:
    return GatewaySettings(
        gateway="nowpayments",
        btcpay_url="https://btcpay.mock",
        btcpay_api_key="btcpay-key",
        btcpay_store_id="store-1",
        btcpay_webhook_secret=BTCPAY_SECRET,
        nowpayments_api_key="np-key",
        nowpayments_base_url="https://nowpayments.mock/v1",
        nowpayments_webhook_secret=NOWPAYMENTS_SECRET,
        base_url="https://members.mock",
        frontend_url="https://app.mock",
        http_timeout=5,
    )


@pytest.fixture
def make_service(base_settings, fake_http):
    def _make(gateway: str = "nowpayments", **overrides: Any) -> CryptoPaymentService:
        settings = replace(base_settings, gateway=gateway, **overrides)
        return CryptoPaymentService(settings, session_factory=fake_http)

    return _make


@pytest.fixture
def nowpayments_service(make_service) -> CryptoPaymentService:
    return make_service("nowpayments")


@pytest.fixture
def btcpay_service(make_service) -> CryptoPaymentService:
    return make_service("btcpay")


@pytest_asyncio.fixture
async def sessionmaker(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}")
    await init_database(engine)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest_asyncio.fixture
async def client_factory(sessionmaker):
    created: List[TestClient] = []

    async def _make(service: CryptoPaymentService) -> TestClient:
        client = TestClient(TestServer(create_app(service, sessionmaker)))
        await client.start_server()
        created.append(client)
        return client

    yield _make
    for client in created:
        await client.close()
