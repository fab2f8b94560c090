"""
# ----------------------------------------------------------
# File version: 1.0.0
# Description: Zarinpal v4 protocol translation (payloads, response codes, errors)
# Modified: 2026-10-18
#
# Response shape (both endpoints):
#   {"data": {"code": 100, ...}, "errors": []}            - accepted
#   {"data": [], "errors": {"code": -9, "message": ...}}  - rejected
# Codes: 100 = success, 101 = already verified; anything else is a failure.
# ----------------------------------------------------------
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional

__all__ = [
    "CODE_SUCCESS",
    "CODE_ALREADY_VERIFIED",
    "GatewayError",
    "GatewayHTTPError",
    "CreateOutcome",
    "CreatePaymentResult",
    "VerifyOutcome",
    "VerifyPaymentResult",
    "build_request_payload",
    "build_verify_payload",
    "interpret_create_response",
    "interpret_verify_response",
    "extract_error_message",
]

CODE_SUCCESS = 100
CODE_ALREADY_VERIFIED = 101


class GatewayError(RuntimeError):
    """The gateway could not be reached or answered with something unusable."""


class GatewayHTTPError(GatewayError):
    """The gateway answered with a non-2xx HTTP status."""

    def __init__(self, status: int, errors: Any = None, body: str = "") -> None:
        self.status = status
        self.errors = errors
        self.body = body
        super().__init__(f"Zarinpal HTTP {status}: {body[:300]}")


class CreateOutcome(enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class VerifyOutcome(enum.Enum):
    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"
    FAILED = "failed"


@dataclass(frozen=True)
class CreatePaymentResult:
    outcome: CreateOutcome
    code: Optional[int]
    authority: Optional[str] = None
    errors: Any = None

    @property
    def ok(self) -> bool:
        return self.outcome is CreateOutcome.ACCEPTED


@dataclass(frozen=True)
class VerifyPaymentResult:
    outcome: VerifyOutcome
    code: Optional[int]
    ref_id: Optional[str] = None
    card_pan: Optional[str] = None
    errors: Any = None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _code_of(data: Dict[str, Any]) -> Optional[int]:
    raw = data.get("code")
    if isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def extract_error_message(errors: Any) -> Optional[str]:
    """Pull ``errors.message`` out of a gateway error block, if there is one."""
    if isinstance(errors, dict):
        msg = errors.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return None


def build_request_payload(
    *,
    merchant_id: str,
    amount: int,
    description: str,
    callback_url: str,
    currency: str,
    mobile: Optional[str] = None,
    email: Optional[str] = None,
) -> Dict[str, Any]:
    metadata: Dict[str, str] = {}
    if mobile:
        metadata["mobile"] = mobile
    if email:
        metadata["email"] = email
    return {
        "merchant_id": merchant_id,
        "amount": int(amount),
        "description": description,
        "callback_url": callback_url,
        "currency": currency,
        "metadata": metadata,
    }


def build_verify_payload(*, merchant_id: str, amount: int, authority: str) -> Dict[str, Any]:
    return {
        "merchant_id": merchant_id,
        "amount": int(amount),
        "authority": authority,
    }


def interpret_create_response(payload: Any) -> CreatePaymentResult:
    body = _as_dict(payload)
    data = _as_dict(body.get("data"))
    errors = body.get("errors") or None
    code = _code_of(data)
    authority = data.get("authority")
    if isinstance(authority, str):
        authority = authority.strip()

    if code == CODE_SUCCESS and isinstance(authority, str) and authority:
        return CreatePaymentResult(outcome=CreateOutcome.ACCEPTED, code=code, authority=authority)
    return CreatePaymentResult(outcome=CreateOutcome.REJECTED, code=code, errors=errors)


def interpret_verify_response(payload: Any) -> VerifyPaymentResult:
    body = _as_dict(payload)
    data = _as_dict(body.get("data"))
    errors = body.get("errors") or None
    code = _code_of(data)

    if code == CODE_SUCCESS:
        ref_id = data.get("ref_id")
        return VerifyPaymentResult(
            outcome=VerifyOutcome.VERIFIED,
            code=code,
            ref_id=None if ref_id is None else str(ref_id),
            card_pan=data.get("card_pan"),
        )
    if code == CODE_ALREADY_VERIFIED:
        ref_id = data.get("ref_id")
        return VerifyPaymentResult(
            outcome=VerifyOutcome.ALREADY_VERIFIED,
            code=code,
            ref_id=None if ref_id is None else str(ref_id),
            card_pan=data.get("card_pan"),
        )
    return VerifyPaymentResult(outcome=VerifyOutcome.FAILED, code=code, errors=errors)
