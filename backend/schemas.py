"""
# ----------------------------------------------------------
# File version: 1.0.0
# Description: Pydantic schemas for the backend API
#  - PaymentRequestIn / PaymentRequestOut
#  - HealthResponse
# Modified: 2026-10-18
# ----------------------------------------------------------
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class PaymentRequestIn(BaseModel):
    """
    Body of POST /api/payment-request.
    Amount is in the gateway's smallest unit; "5000" and 5000 are both accepted.
    """

    amount: int = Field(..., gt=0, description="Amount to charge")
    description: str = Field(..., min_length=1, description="Payment description shown to the payer")
    currency: Optional[str] = Field(None, description="Currency code (IRT/IRR), defaults to server setting")
    mobile: Optional[str] = Field(None, description="Payer mobile number (metadata)")
    email: Optional[str] = Field(None, description="Payer e-mail (metadata)")

    @field_validator("amount", mode="before")
    @classmethod
    def _reject_bool_amount(cls, v: Any) -> Any:
        # lax int mode would turn true into 1
        if isinstance(v, bool):
            raise ValueError("amount must be a number, not a boolean")
        return v

    @field_validator("description", mode="before")
    @classmethod
    def _strip_description(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("currency", "mobile", "email", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class PaymentRequestOut(BaseModel):
    success: bool
    payment_url: Optional[str] = None
    message: Optional[str] = None
    errors: Optional[Any] = None


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service status (ok)")
    timestamp: datetime = Field(..., description="Response time (UTC)")
    sandbox: bool = Field(..., description="Whether the sandbox gateway is used")
    pending_transactions: int = Field(..., description="Payments waiting for the verification callback")
