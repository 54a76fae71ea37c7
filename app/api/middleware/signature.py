"""
Webhook Signature Validation

Meta signs every webhook POST with HMAC-SHA256 of the raw body using the
app secret, sent as `X-Hub-Signature-256: sha256=<hex>`. Validation runs
as a route dependency, before the body is parsed for anything else.
"""

import hashlib
import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Request, status

from app.config import settings

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="


class WebhookSignatureError(Exception):
    """Webhook request could not be authenticated."""
    pass


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Header value for `raw_body` signed with `secret`."""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def validate_signature(signature_header: Optional[str], raw_body: bytes, secret: Optional[str]) -> bool:
    """
    Check a webhook signature.

    Args:
        signature_header: Value of X-Hub-Signature-256 (may be None)
        raw_body: Exact request bytes
        secret: App secret; an empty secret never validates

    Returns:
        True only for a well-formed, matching signature
    """
    if not secret or not signature_header:
        return False

    if not signature_header.startswith(SIGNATURE_PREFIX):
        return False

    expected = compute_signature(raw_body, secret)

    # compare_digest is constant-time and handles length mismatch
    return hmac.compare_digest(
        expected.encode("ascii"),
        signature_header.strip().encode("ascii", errors="replace"),
    )


def check_signature(signature_header: Optional[str], raw_body: bytes) -> None:
    """
    Validate against configured settings.

    Raises:
        WebhookSignatureError: If the request is not authentic
    """
    if settings.webhook_validation_bypassed:
        logger.warning(
            "Webhook signature validation is DISABLED (DISABLE_WEBHOOK_VALIDATION). "
            "Never run this way in production."
        )
        return

    if not signature_header:
        raise WebhookSignatureError("Missing signature header")

    if not settings.whatsapp_app_secret:
        logger.error("WHATSAPP_APP_SECRET is not configured - rejecting webhook")
        raise WebhookSignatureError("Webhook secret not configured")

    if not validate_signature(signature_header, raw_body, settings.whatsapp_app_secret):
        raise WebhookSignatureError("Signature mismatch")


async def verify_webhook_signature(request: Request) -> bytes:
    """
    FastAPI dependency: authenticate the webhook and return the raw body.

    Raises:
        HTTPException: 401 if the signature is missing or invalid
    """
    raw_body = await request.body()

    try:
        check_signature(request.headers.get(SIGNATURE_HEADER), raw_body)
    except WebhookSignatureError as e:
        client = request.client.host if request.client else "unknown"
        logger.warning(f"Rejected webhook from {client}: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
        )

    return raw_body
