"""HTML result pages for the verification callback.

The payer lands on these pages after the gateway redirects back to us, so
the text is Persian and the layout right-to-left. Pages are Jinja2
templates under ``templates/``; autoescaping covers every value that came
from the gateway or the query string.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from fastapi import Request
from fastapi.templating import Jinja2Templates
from starlette.responses import Response

from payments import VerificationKind, VerificationResult

__all__ = ["render_verification_page", "templates"]

templates_dir = Path(__file__).resolve().parent / "templates"
templates = Jinja2Templates(directory=str(templates_dir))


@dataclass(frozen=True)
class _Theme:
    title: str
    background: str
    heading_color: str


_THEMES = {
    VerificationKind.VERIFIED: _Theme("پرداخت موفق", "#d4edda", "#155724"),
    VerificationKind.DUPLICATE: _Theme("پرداخت تکراری", "#d1ecf1", "#0c5460"),
    VerificationKind.CANCELLED: _Theme("پرداخت ناموفق", "#f8d7da", "#721c24"),
    VerificationKind.AMOUNT_UNKNOWN: _Theme("خطا در تایید پرداخت", "#f8d7da", "#721c24"),
    VerificationKind.FAILED: _Theme("خطا در تایید پرداخت", "#f8d7da", "#721c24"),
    VerificationKind.INTERNAL_ERROR: _Theme("خطای سرور", "#f8d7da", "#721c24"),
}


def render_verification_page(request: Request, result: VerificationResult, *, sandbox: bool) -> Response:
    return templates.TemplateResponse(
        request,
        "verify_result.html",
        {
            "result": result,
            "kind": result.kind.value,
            "theme": _THEMES[result.kind],
            "sandbox": sandbox,
        },
        status_code=result.http_status,
    )
