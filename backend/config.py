"""
# ----------------------------------------------------------
# File version: 1.0.0
# Description: Backend configuration (environment loading, .env via python-dotenv)
# Modified: 2026-10-18
# ----------------------------------------------------------
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

SANDBOX_BASE_URL = "https://sandbox.zarinpal.com"
LIVE_BASE_URL = "https://payment.zarinpal.com"


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _getenv_bool(name: str, default: bool = False) -> bool:
    v = _getenv(name)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "y", "on")


def _getenv_int(name: str, default: Optional[int] = None) -> Optional[int]:
    v = _getenv(name)
    if v is None:
        return default
    try:
        return int(v)
    except ValueError as exc:
        raise RuntimeError(f"Invalid value for {name}: expected int, got {v!r}") from exc


def _getenv_float(name: str, default: Optional[float] = None) -> Optional[float]:
    v = _getenv(name)
    if v is None:
        return default
    try:
        return float(v)
    except ValueError as exc:
        raise RuntimeError(f"Invalid value for {name}: expected float, got {v!r}") from exc


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    parts = [p.strip() for p in value.split(",")]
    return [p for p in parts if p]


def _require(name: str) -> str:
    v = _getenv(name)
    if not v:
        raise RuntimeError(f"Required environment variable is not set: {name}")
    return v


@dataclass(frozen=True)
class Settings:
    # -----------------------
    # General
    # -----------------------
    app_env: str
    app_debug: bool
    app_host: str
    app_port: int
    log_level: str

    # -----------------------
    # Zarinpal
    # -----------------------
    merchant_id: str
    sandbox: bool
    callback_url: str
    default_currency: str
    gateway_timeout_sec: Optional[float]

    # -----------------------
    # Pending transactions
    # -----------------------
    pending_ttl_sec: int

    cors_origins: List[str]

    @property
    def gateway_base_url(self) -> str:
        return SANDBOX_BASE_URL if self.sandbox else LIVE_BASE_URL

    @staticmethod
    def load() -> "Settings":
        load_dotenv(find_dotenv(usecwd=True))

        app_env = _getenv("APP_ENV", "development") or "development"
        app_debug = _getenv_bool("APP_DEBUG", False)
        app_host = _getenv("APP_HOST", "0.0.0.0") or "0.0.0.0"
        app_port = _getenv_int("APP_PORT", 3000) or 3000
        log_level = (_getenv("LOG_LEVEL", "INFO") or "INFO").upper()

        merchant_id = _require("ZARINPAL_MERCHANT_ID")
        sandbox = _getenv_bool("ZARINPAL_SANDBOX", True)

        # The gateway redirects the payer back here with ?Authority=..&Status=..
        callback_url = (
            _getenv("PAYMENT_CALLBACK_URL")
            or f"http://localhost:{app_port}/api/payment-verify"
        )
        default_currency = _getenv("DEFAULT_CURRENCY", "IRT") or "IRT"

        gateway_timeout_sec = _getenv_float("GATEWAY_TIMEOUT_SEC")
        if gateway_timeout_sec is not None and gateway_timeout_sec <= 0:
            raise RuntimeError("GATEWAY_TIMEOUT_SEC must be > 0")

        pending_ttl_sec = _getenv_int("PENDING_TTL_SEC", 0) or 0
        if pending_ttl_sec < 0:
            raise RuntimeError("PENDING_TTL_SEC must be >= 0 (0 disables expiry)")

        cors_origins = _split_csv(_getenv("CORS_ORIGINS", "*")) or ["*"]

        return Settings(
            app_env=app_env,
            app_debug=app_debug,
            app_host=app_host,
            app_port=app_port,
            log_level=log_level,
            merchant_id=merchant_id,
            sandbox=sandbox,
            callback_url=callback_url,
            default_currency=default_currency,
            gateway_timeout_sec=gateway_timeout_sec,
            pending_ttl_sec=pending_ttl_sec,
            cors_origins=cors_origins,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.load()
