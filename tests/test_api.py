"""
Endpoint tests: FastAPI app wired with a stub gateway.
"""
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from app_main import create_app
from conftest import StubGateway, make_settings
from gateway import CreateOutcome, CreatePaymentResult, GatewayHTTPError, VerifyOutcome, VerifyPaymentResult
from payments import MSG_INTERNAL_ERROR, MSG_REQUIRED_FIELDS
from transactions import TransactionCorrelator


@pytest.mark.asyncio
async def test_payment_request_end_to_end(
    client: AsyncClient, stub_gateway: StubGateway, correlator: TransactionCorrelator
) -> None:
    resp = await client.post("/api/payment-request", json={"amount": 5000, "description": "order #7"})

    assert resp.status_code == 200
    data = resp.json()
    assert data == {"success": True, "payment_url": "https://sandbox.zarinpal.com/pg/StartPay/AUTH-1"}
    assert await correlator.take_amount("AUTH-1") == 5000


@pytest.mark.asyncio
async def test_payment_request_accepts_form_body(
    client: AsyncClient, stub_gateway: StubGateway, correlator: TransactionCorrelator
) -> None:
    resp = await client.post("/api/payment-request", data={"amount": "5000", "description": "order #7"})

    assert resp.status_code == 200
    assert resp.json()["payment_url"].endswith("/pg/StartPay/AUTH-1")
    assert stub_gateway.create_calls[0]["amount"] == 5000
    assert stub_gateway.create_calls[0]["description"] == "order #7"
    assert await correlator.take_amount("AUTH-1") == 5000


@pytest.mark.asyncio
async def test_payment_request_form_body_is_validated(client: AsyncClient, stub_gateway: StubGateway) -> None:
    resp = await client.post("/api/payment-request", data={"amount": "0", "description": "order #7"})

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": MSG_REQUIRED_FIELDS}
    assert stub_gateway.create_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"amount": 0, "description": "x"},
        {"amount": -1, "description": "x"},
        {"amount": 100},
        {"amount": True, "description": "x"},
    ],
)
async def test_payment_request_validation_error(client: AsyncClient, stub_gateway: StubGateway, body) -> None:
    resp = await client.post("/api/payment-request", json=body)

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": MSG_REQUIRED_FIELDS}
    assert stub_gateway.create_calls == []


@pytest.mark.asyncio
async def test_payment_request_malformed_json(client: AsyncClient, stub_gateway: StubGateway) -> None:
    resp = await client.post(
        "/api/payment-request", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert stub_gateway.create_calls == []


@pytest.mark.asyncio
async def test_payment_request_gateway_rejection(client: AsyncClient, stub_gateway: StubGateway) -> None:
    errors = {"code": -10, "message": "Terminal is not valid"}
    stub_gateway.create_result = CreatePaymentResult(outcome=CreateOutcome.REJECTED, code=-10, errors=errors)

    resp = await client.post("/api/payment-request", json={"amount": 5000, "description": "d"})

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Terminal is not valid", "errors": errors}


@pytest.mark.asyncio
async def test_payment_request_upstream_status(client: AsyncClient, stub_gateway: StubGateway) -> None:
    stub_gateway.create_result = GatewayHTTPError(401, errors={"message": "unauthorized"}, body="")

    resp = await client.post("/api/payment-request", json={"amount": 5000, "description": "d"})

    assert resp.status_code == 401
    assert resp.json()["message"] == "unauthorized"


@pytest.mark.asyncio
async def test_payment_request_unexpected_error_is_500(client: AsyncClient, stub_gateway: StubGateway) -> None:
    stub_gateway.create_result = KeyError("boom")

    resp = await client.post("/api/payment-request", json={"amount": 5000, "description": "d"})

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": MSG_INTERNAL_ERROR}


@pytest.mark.asyncio
async def test_verify_success_page(client: AsyncClient, correlator: TransactionCorrelator) -> None:
    await correlator.record("A123", 10000)

    resp = await client.get("/api/payment-verify", params={"Authority": "A123", "Status": "OK"})

    assert resp.status_code == 200
    assert "text/html" in resp.headers["content-type"]
    assert "پرداخت موفق" in resp.text
    assert "201" in resp.text
    assert "502229******5995" in resp.text
    assert "سندباکس" in resp.text


@pytest.mark.asyncio
async def test_verify_replay_is_amount_unknown(client: AsyncClient, correlator: TransactionCorrelator) -> None:
    await correlator.record("A123", 10000)

    first = await client.get("/api/payment-verify", params={"Authority": "A123", "Status": "OK"})
    replay = await client.get("/api/payment-verify", params={"Authority": "A123", "Status": "OK"})

    assert first.status_code == 200
    assert replay.status_code == 400
    assert "اطلاعات تراکنش یافت نشد" in replay.text


@pytest.mark.asyncio
async def test_verify_cancelled(client: AsyncClient, stub_gateway: StubGateway) -> None:
    resp = await client.get("/api/payment-verify", params={"Authority": "A1", "Status": "NOK"})

    assert resp.status_code == 400
    assert "پرداخت ناموفق" in resp.text
    assert stub_gateway.verify_calls == []


@pytest.mark.asyncio
async def test_verify_missing_params_is_cancelled(client: AsyncClient) -> None:
    resp = await client.get("/api/payment-verify")

    assert resp.status_code == 400
    assert "پرداخت ناموفق" in resp.text


@pytest.mark.asyncio
async def test_verify_duplicate_page(
    client: AsyncClient, stub_gateway: StubGateway, correlator: TransactionCorrelator
) -> None:
    stub_gateway.verify_result = VerifyPaymentResult(outcome=VerifyOutcome.ALREADY_VERIFIED, code=101)
    await correlator.record("A1", 100)

    resp = await client.get("/api/payment-verify", params={"Authority": "A1", "Status": "OK"})

    assert resp.status_code == 200
    assert "پرداخت تکراری" in resp.text


@pytest.mark.asyncio
async def test_verify_failed_page_escapes_gateway_message(
    client: AsyncClient, stub_gateway: StubGateway, correlator: TransactionCorrelator
) -> None:
    stub_gateway.verify_result = VerifyPaymentResult(
        outcome=VerifyOutcome.FAILED, code=-50, errors={"message": "<script>alert(1)</script>"}
    )
    await correlator.record("A1", 100)

    resp = await client.get("/api/payment-verify", params={"Authority": "A1", "Status": "OK"})

    assert resp.status_code == 400
    assert "&lt;script&gt;" in resp.text
    assert "<script>alert(1)</script>" not in resp.text


@pytest.mark.asyncio
async def test_verify_unexpected_error_is_internal_error_page(
    client: AsyncClient, stub_gateway: StubGateway, correlator: TransactionCorrelator
) -> None:
    stub_gateway.verify_result = KeyError("boom")
    await correlator.record("A1", 100)

    resp = await client.get("/api/payment-verify", params={"Authority": "A1", "Status": "OK"})

    assert resp.status_code == 500
    assert "خطای سرور" in resp.text
    assert not await correlator.contains("A1")


@pytest.mark.asyncio
async def test_live_mode_has_no_sandbox_notice(stub_gateway: StubGateway) -> None:
    app = create_app(make_settings(sandbox=False), gateway=stub_gateway, correlator=TransactionCorrelator())

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.get("/api/payment-verify", params={"Authority": "A1", "Status": "NOK"})

    assert "سندباکس" not in resp.text


@pytest.mark.asyncio
async def test_health(client: AsyncClient, correlator: TransactionCorrelator) -> None:
    await correlator.record("A1", 100)

    resp = await client.get("/health")

    assert resp.status_code == 200
    data: Any = resp.json()
    assert data["status"] == "ok"
    assert data["sandbox"] is True
    assert data["pending_transactions"] == 1


@pytest.mark.asyncio
async def test_index_page(client: AsyncClient) -> None:
    resp = await client.get("/")

    assert resp.status_code == 200
    assert "/api/payment-request" in resp.text


def test_default_app_uses_zarinpal_client() -> None:
    from zarinpal_http import ZarinpalHTTP

    app = create_app(make_settings(sandbox=False, gateway_timeout_sec=7.5))

    assert isinstance(app.state.gateway, ZarinpalHTTP)
    assert app.state.gateway.base_url == "https://payment.zarinpal.com"
    assert app.state.gateway.timeout_sec == 7.5
