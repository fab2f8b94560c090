# ----------------------------------------------------------
# File version: 1.0.0
# Description: Native Zarinpal HTTP client (aiohttp): payment request, verify, StartPay URL
# Modified: 2026-10-18
# ----------------------------------------------------------

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from gateway import (
    CreatePaymentResult,
    GatewayError,
    GatewayHTTPError,
    VerifyPaymentResult,
    build_request_payload,
    build_verify_payload,
    interpret_create_response,
    interpret_verify_response,
)

logger = logging.getLogger("zarinpal-backend.gateway")

REQUEST_PATH = "/pg/v4/payment/request.json"
VERIFY_PATH = "/pg/v4/payment/verify.json"
START_PAY_PATH = "/pg/StartPay/"


def _mask(value: str) -> str:
    v = value or ""
    if len(v) <= 8:
        return "***"
    return f"{v[:4]}...{v[-4:]}"


@dataclass
class ZarinpalHTTP:
    """
    Zarinpal v4 client over aiohttp. One ClientSession per call:
      POST /pg/v4/payment/request.json -> {"data": {"code", "authority"}, "errors"}
      POST /pg/v4/payment/verify.json  -> {"data": {"code", "ref_id", "card_pan"}, "errors"}
      GET  /pg/StartPay/{authority}     (the payer is redirected here)
    """

    base_url: str
    timeout_sec: Optional[float] = None

    def _base(self) -> str:
        return (self.base_url or "").rstrip("/")

    def _timeout(self) -> Optional[aiohttp.ClientTimeout]:
        if self.timeout_sec is None:
            return None
        return aiohttp.ClientTimeout(total=self.timeout_sec)

    def start_pay_url(self, authority: str) -> str:
        return f"{self._base()}{START_PAY_PATH}{authority}"

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        url = f"{self._base()}{path}"
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        session_kwargs: Dict[str, Any] = {}
        timeout = self._timeout()
        if timeout is not None:
            session_kwargs["timeout"] = timeout

        try:
            async with aiohttp.ClientSession(**session_kwargs) as session:
                async with session.post(url, json=payload, headers=headers) as r:
                    text = await r.text()
                    data: Any = None
                    if "application/json" in (r.headers.get("Content-Type") or ""):
                        try:
                            data = await r.json()
                        except ValueError:
                            data = None

                    if r.status >= 400:
                        errors = data.get("errors") if isinstance(data, dict) else None
                        logger.error(
                            "Zarinpal HTTP error: url=%s status=%s body=%s",
                            url,
                            r.status,
                            text[:1500],
                        )
                        raise GatewayHTTPError(r.status, errors=errors, body=text)

                    if data is None:
                        raise GatewayError(f"Zarinpal returned non-JSON response: url={url} body={text[:300]!r}")
                    return data
        except GatewayError:
            raise
        except Exception as exc:
            raise GatewayError(f"Zarinpal request failed: url={url} err={exc!r}") from exc

    async def create_payment(
        self,
        *,
        merchant_id: str,
        amount: int,
        description: str,
        callback_url: str,
        currency: str,
        mobile: Optional[str] = None,
        email: Optional[str] = None,
    ) -> CreatePaymentResult:
        payload = build_request_payload(
            merchant_id=merchant_id,
            amount=amount,
            description=description,
            callback_url=callback_url,
            currency=currency,
            mobile=mobile,
            email=email,
        )
        logger.info(
            "Sending payment request: url=%s merchant=%s amount=%s currency=%s",
            f"{self._base()}{REQUEST_PATH}",
            _mask(merchant_id),
            amount,
            currency,
        )
        data = await self._post_json(REQUEST_PATH, payload)
        logger.info("Zarinpal payment request response: %s", data)
        return interpret_create_response(data)

    async def verify_payment(self, *, merchant_id: str, amount: int, authority: str) -> VerifyPaymentResult:
        payload = build_verify_payload(merchant_id=merchant_id, amount=amount, authority=authority)
        logger.info(
            "Sending verification request: url=%s authority=%s amount=%s",
            f"{self._base()}{VERIFY_PATH}",
            authority,
            amount,
        )
        data = await self._post_json(VERIFY_PATH, payload)
        logger.info("Zarinpal verification response: %s", data)
        return interpret_verify_response(data)
