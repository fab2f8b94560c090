# ----------------------------------------------------------
# File version: 1.0.0
# Description: Zarinpal payment backend (FastAPI + aiohttp)
# Modified: 2026-10-18
#
# Main points:
#  - Configuration from environment variables (.env supported)
#  - Pending amounts kept in an in-process TransactionCorrelator
#  - Zarinpal v4 through the native aiohttp client (sandbox or live)
#  - Endpoints:
#       /                      (payment form, static/index.html)
#       /health
#       /api/payment-request   (POST, JSON or form)
#       /api/payment-verify    (GET, gateway callback)
# ----------------------------------------------------------

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import uvicorn
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, Response

from config import Settings, get_settings
from pages import render_verification_page
from payments import (
    MSG_INTERNAL_ERROR,
    PaymentValidationError,
    VerificationKind,
    VerificationResult,
    parse_payment_request,
    request_payment,
    verify_payment,
)
from schemas import HealthResponse, PaymentRequestOut
from transactions import TransactionCorrelator
from zarinpal_http import ZarinpalHTTP

logger = logging.getLogger("zarinpal-backend")

STATIC_DIR = Path(__file__).resolve().parent / "static"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


# -----------------------------
# Dependencies
# -----------------------------

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_correlator(request: Request) -> TransactionCorrelator:
    return request.app.state.correlator


def get_gateway(request: Request) -> Any:
    return request.app.state.gateway


FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def _read_body(request: Request) -> Any:
    """JSON object or HTML form fields; None when the body cannot be parsed."""
    content_type = (request.headers.get("content-type") or "").lower()
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return dict(form)
    try:
        return await request.json()
    except ValueError:
        return None


def _json(out: PaymentRequestOut, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=out.model_dump(exclude_none=True))


# -----------------------------
# FastAPI init
# -----------------------------

def create_app(
    settings: Optional[Settings] = None,
    *,
    gateway: Any = None,
    correlator: Optional[TransactionCorrelator] = None,
) -> FastAPI:
    """
    Build the application. The gateway client and correlator can be passed in
    (tests use stubs); otherwise they are built from settings.
    """
    settings = settings or get_settings()
    _configure_logging(settings.log_level)

    if gateway is None:
        gateway = ZarinpalHTTP(base_url=settings.gateway_base_url, timeout_sec=settings.gateway_timeout_sec)
    if correlator is None:
        correlator = TransactionCorrelator(ttl_sec=settings.pending_ttl_sec)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("zarinpal-backend: starting (env=%s)", settings.app_env)
        logger.info("Sandbox mode: %s", "Enabled" if settings.sandbox else "Disabled")
        logger.info("Callback URL: %s", settings.callback_url)
        yield
        remaining = await app.state.correlator.pending_count()
        if remaining:
            logger.warning("zarinpal-backend: stopping with %s unverified pending transaction(s)", remaining)

    app = FastAPI(
        title="Zarinpal Payment Backend",
        description="Forwards payment requests and verification callbacks to Zarinpal",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.gateway = gateway
    app.state.correlator = correlator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------
    # Endpoints
    # -----------------------------

    @app.get("/", include_in_schema=False)
    async def index() -> Any:
        page = STATIC_DIR / "index.html"
        if not page.is_file():
            return JSONResponse(status_code=404, content={"detail": "Not Found"})
        return FileResponse(page)

    @app.get("/health", response_model=HealthResponse)
    async def health(
        cfg: Settings = Depends(get_app_settings),
        store: TransactionCorrelator = Depends(get_correlator),
    ) -> HealthResponse:
        return HealthResponse(
            status="ok",
            timestamp=utcnow(),
            sandbox=cfg.sandbox,
            pending_transactions=await store.pending_count(),
        )

    @app.post(
        "/api/payment-request",
        response_model=PaymentRequestOut,
        summary="Create a Zarinpal payment and return the StartPay URL",
    )
    async def payment_request(
        request: Request,
        cfg: Settings = Depends(get_app_settings),
        store: TransactionCorrelator = Depends(get_correlator),
        gw: Any = Depends(get_gateway),
    ) -> JSONResponse:
        try:
            body = await _read_body(request)

            try:
                payload = parse_payment_request(body)
            except PaymentValidationError as exc:
                logger.info("Payment request rejected: %s details=%s", exc.message, exc.details)
                return _json(PaymentRequestOut(success=False, message=exc.message), 400)

            result = await request_payment(payload, gateway=gw, correlator=store, settings=cfg)
            return _json(
                PaymentRequestOut(
                    success=result.success,
                    payment_url=result.payment_url,
                    message=result.message,
                    errors=result.errors,
                ),
                result.http_status,
            )
        except Exception as exc:
            logger.error("Payment request error: %s", exc, exc_info=True)
            return _json(PaymentRequestOut(success=False, message=MSG_INTERNAL_ERROR), 500)

    @app.get(
        "/api/payment-verify",
        response_class=HTMLResponse,
        summary="Zarinpal callback: verify the payment and render the result page",
    )
    async def payment_verify(
        request: Request,
        authority: Optional[str] = Query(None, alias="Authority"),
        status_param: Optional[str] = Query(None, alias="Status"),
        cfg: Settings = Depends(get_app_settings),
        store: TransactionCorrelator = Depends(get_correlator),
        gw: Any = Depends(get_gateway),
    ) -> Response:
        try:
            result = await verify_payment(authority, status_param, gateway=gw, correlator=store, settings=cfg)
        except Exception as exc:
            logger.error("Payment verification error: %s", exc, exc_info=True)
            result = VerificationResult(kind=VerificationKind.INTERNAL_ERROR, authority=authority)
        return render_verification_page(request, result, sandbox=cfg.sandbox)

    return app


if __name__ == "__main__":
    _settings = get_settings()
    uvicorn.run(create_app(_settings), host=_settings.app_host, port=_settings.app_port)
