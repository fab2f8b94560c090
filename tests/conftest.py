"""
Pytest configuration and fixtures.
"""
from typing import Any, AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app_main import create_app
from config import Settings
from gateway import (
    CreateOutcome,
    CreatePaymentResult,
    VerifyOutcome,
    VerifyPaymentResult,
)
from transactions import TransactionCorrelator

MERCHANT_ID = "4b90fe3f-360f-40c6-b092-3be91e41fc99"


class StubGateway:
    """Stands in for ZarinpalHTTP; records calls and replays canned answers."""

    base_url = "https://sandbox.zarinpal.com"

    def __init__(self) -> None:
        self.create_calls: List[Dict[str, Any]] = []
        self.verify_calls: List[Dict[str, Any]] = []
        self.create_result: Any = CreatePaymentResult(
            outcome=CreateOutcome.ACCEPTED, code=100, authority="AUTH-1"
        )
        self.verify_result: Any = VerifyPaymentResult(
            outcome=VerifyOutcome.VERIFIED, code=100, ref_id="201", card_pan="502229******5995"
        )

    def start_pay_url(self, authority: str) -> str:
        return f"{self.base_url}/pg/StartPay/{authority}"

    async def create_payment(self, **kwargs: Any) -> CreatePaymentResult:
        self.create_calls.append(kwargs)
        if isinstance(self.create_result, Exception):
            raise self.create_result
        return self.create_result

    async def verify_payment(self, **kwargs: Any) -> VerifyPaymentResult:
        self.verify_calls.append(kwargs)
        if isinstance(self.verify_result, Exception):
            raise self.verify_result
        return self.verify_result


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = dict(
        app_env="test",
        app_debug=True,
        app_host="127.0.0.1",
        app_port=3000,
        log_level="DEBUG",
        merchant_id=MERCHANT_ID,
        sandbox=True,
        callback_url="http://localhost:3000/api/payment-verify",
        default_currency="IRT",
        gateway_timeout_sec=None,
        pending_ttl_sec=0,
        cors_origins=["*"],
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def correlator() -> TransactionCorrelator:
    return TransactionCorrelator()


@pytest.fixture
def stub_gateway() -> StubGateway:
    return StubGateway()


@pytest_asyncio.fixture
async def client(
    test_settings: Settings,
    stub_gateway: StubGateway,
    correlator: TransactionCorrelator,
) -> AsyncGenerator[AsyncClient, Any]:
    """HTTP client bound to an app wired with the stub gateway."""
    app = create_app(test_settings, gateway=stub_gateway, correlator=correlator)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
