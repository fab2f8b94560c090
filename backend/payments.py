"""
# ----------------------------------------------------------
# File version: 1.0.0
# Description: Payment request / verification flows (Zarinpal)
# Modified: 2026-10-18
#
# Flow:
#  - request_payment: validate -> gateway create -> record(authority, amount) -> StartPay URL
#  - verify_payment:  Status != OK -> cancelled
#                     take_amount(authority) -> unknown? -> amount_unknown
#                     gateway verify -> verified | duplicate | failed
# Nothing raised by the gateway client escapes these functions.
# ----------------------------------------------------------
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from config import Settings
from gateway import (
    CreateOutcome,
    GatewayError,
    GatewayHTTPError,
    VerifyOutcome,
    extract_error_message,
)
from schemas import PaymentRequestIn
from transactions import TransactionCorrelator

logger = logging.getLogger("zarinpal-backend.payments")

MSG_REQUIRED_FIELDS = "مبلغ و توضیحات الزامی هستند"
MSG_GATEWAY_ERROR = "خطا در ارتباط با درگاه پرداخت"
MSG_INTERNAL_ERROR = "خطای داخلی سرور"
MSG_UNKNOWN_ERROR = "خطای ناشناخته"

STATUS_OK = "OK"


class PaymentValidationError(ValueError):
    """Payment request input rejected before any gateway call."""

    def __init__(self, message: str = MSG_REQUIRED_FIELDS, details: Any = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


@dataclass(frozen=True)
class PaymentRequestResult:
    success: bool
    http_status: int
    payment_url: Optional[str] = None
    authority: Optional[str] = None
    message: Optional[str] = None
    errors: Any = None


class VerificationKind(enum.Enum):
    VERIFIED = "verified"
    DUPLICATE = "duplicate"
    CANCELLED = "cancelled"
    AMOUNT_UNKNOWN = "amount_unknown"
    FAILED = "failed"
    INTERNAL_ERROR = "internal_error"


_HTTP_STATUS_BY_KIND = {
    VerificationKind.VERIFIED: 200,
    VerificationKind.DUPLICATE: 200,
    VerificationKind.CANCELLED: 400,
    VerificationKind.AMOUNT_UNKNOWN: 400,
    VerificationKind.FAILED: 400,
    VerificationKind.INTERNAL_ERROR: 500,
}


@dataclass(frozen=True)
class VerificationResult:
    kind: VerificationKind
    authority: Optional[str] = None
    amount: Optional[int] = None
    ref_id: Optional[str] = None
    card_pan: Optional[str] = None
    message: Optional[str] = None
    errors: Any = None

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS_BY_KIND[self.kind]


def parse_payment_request(body: Any) -> PaymentRequestIn:
    """
    Validate a raw request body.

    Raises:
        PaymentValidationError: missing/invalid amount or description,
            or the body is not an object at all.
    """
    if not isinstance(body, Mapping):
        raise PaymentValidationError()
    try:
        return PaymentRequestIn.model_validate(dict(body))
    except ValidationError as exc:
        raise PaymentValidationError(details=exc.errors(include_url=False)) from exc


async def request_payment(
    payload: PaymentRequestIn,
    *,
    gateway: Any,
    correlator: TransactionCorrelator,
    settings: Settings,
) -> PaymentRequestResult:
    currency = payload.currency or settings.default_currency

    try:
        created = await gateway.create_payment(
            merchant_id=settings.merchant_id,
            amount=payload.amount,
            description=payload.description,
            callback_url=settings.callback_url,
            currency=currency,
            mobile=payload.mobile,
            email=payload.email,
        )
    except GatewayHTTPError as exc:
        logger.error("Payment request: gateway HTTP %s: %s", exc.status, exc.body[:1500])
        return PaymentRequestResult(
            success=False,
            http_status=exc.status,
            message=extract_error_message(exc.errors) or MSG_GATEWAY_ERROR,
            errors=exc.errors,
        )
    except GatewayError as exc:
        logger.error("Payment request: gateway unreachable: %s", exc, exc_info=True)
        return PaymentRequestResult(success=False, http_status=502, message=MSG_GATEWAY_ERROR)

    if created.outcome is not CreateOutcome.ACCEPTED or not created.authority:
        logger.error("Payment request rejected by gateway: code=%s errors=%s", created.code, created.errors)
        return PaymentRequestResult(
            success=False,
            http_status=400,
            message=extract_error_message(created.errors) or MSG_GATEWAY_ERROR,
            errors=created.errors,
        )

    await correlator.record(created.authority, payload.amount)
    return PaymentRequestResult(
        success=True,
        http_status=200,
        payment_url=gateway.start_pay_url(created.authority),
        authority=created.authority,
    )


async def verify_payment(
    authority: Optional[str],
    status: Optional[str],
    *,
    gateway: Any,
    correlator: TransactionCorrelator,
    settings: Settings,
) -> VerificationResult:
    logger.info("Payment verification callback: authority=%s status=%s", authority, status)

    if status != STATUS_OK:
        return VerificationResult(kind=VerificationKind.CANCELLED, authority=authority)

    amount = await correlator.take_amount(authority) if authority else None
    if amount is None:
        logger.error("Amount not found for authority: %s", authority)
        return VerificationResult(kind=VerificationKind.AMOUNT_UNKNOWN, authority=authority)

    try:
        verified = await gateway.verify_payment(
            merchant_id=settings.merchant_id,
            amount=amount,
            authority=authority,
        )
    except GatewayHTTPError as exc:
        logger.error("Verification: gateway HTTP %s for %s: %s", exc.status, authority, exc.body[:1500])
        return VerificationResult(
            kind=VerificationKind.FAILED,
            authority=authority,
            amount=amount,
            message=extract_error_message(exc.errors) or MSG_UNKNOWN_ERROR,
            errors=exc.errors,
        )
    except GatewayError as exc:
        logger.error("Verification: gateway unreachable for %s: %s", authority, exc, exc_info=True)
        return VerificationResult(
            kind=VerificationKind.FAILED,
            authority=authority,
            amount=amount,
            message=MSG_GATEWAY_ERROR,
        )

    if verified.outcome is VerifyOutcome.VERIFIED:
        logger.info("Payment verified: authority=%s ref_id=%s amount=%s", authority, verified.ref_id, amount)
        return VerificationResult(
            kind=VerificationKind.VERIFIED,
            authority=authority,
            amount=amount,
            ref_id=verified.ref_id,
            card_pan=verified.card_pan,
        )
    if verified.outcome is VerifyOutcome.ALREADY_VERIFIED:
        logger.info("Payment already verified: authority=%s ref_id=%s", authority, verified.ref_id)
        return VerificationResult(
            kind=VerificationKind.DUPLICATE,
            authority=authority,
            amount=amount,
            ref_id=verified.ref_id,
        )

    logger.warning("Verification failed: authority=%s code=%s errors=%s", authority, verified.code, verified.errors)
    return VerificationResult(
        kind=VerificationKind.FAILED,
        authority=authority,
        amount=amount,
        message=extract_error_message(verified.errors) or MSG_UNKNOWN_ERROR,
        errors=verified.errors,
    )
