"""
Webhook Security Module

Signature verification for payment gateway callbacks:
- Constant-time signature comparison
- Signature computed over the raw request body, before any JSON parsing
- Detailed logging for security auditing
"""

import hashlib
import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Request

from .config import PAYMENT_WEBHOOK_VERIFY, RAZORPAY_KEY_SECRET, RAZORPAY_WEBHOOK_SECRET

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Razorpay-Signature"


def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload (lowercase hex)"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def create_webhook_signature(secret: str, payload: bytes) -> str:
    """Signature the gateway sends for a given body. Used by tests and local tooling."""
    return compute_hmac_sha256(secret, payload)


async def verify_razorpay_webhook(
    request: Request,
    secret: Optional[str] = None,
) -> bytes:
    """
    Verify a Razorpay webhook: hex HMAC-SHA256 of the raw body keyed with the
    webhook secret, carried in the X-Razorpay-Signature header.

    Args:
        request: FastAPI request object
        secret: Webhook secret (defaults to RAZORPAY_WEBHOOK_SECRET)

    Returns:
        The raw body, for parsing once the signature checks out

    Raises:
        HTTPException: 400 "Invalid signature" when verification fails
    """
    # Get raw body BEFORE any parsing
    raw_body = await request.body()

    if not PAYMENT_WEBHOOK_VERIFY:
        logger.warning("⚠️ Payment webhook signature verification is DISABLED")
        return raw_body

    secret = secret or RAZORPAY_WEBHOOK_SECRET
    signature = request.headers.get(SIGNATURE_HEADER, "")

    if not secret:
        logger.error("❌ Payment webhook secret not configured")
        raise HTTPException(status_code=400, detail="Invalid signature")

    if not signature:
        logger.error(f"❌ Missing {SIGNATURE_HEADER} header")
        raise HTTPException(status_code=400, detail="Invalid signature")

    expected = compute_hmac_sha256(secret, raw_body)
    if not constant_time_compare(signature.strip().lower(), expected):
        logger.error("❌ Payment webhook signature mismatch")
        raise HTTPException(status_code=400, detail="Invalid signature")

    logger.info("✅ Payment webhook signature verified")
    return raw_body


def verify_payment_signature(
    payment_order_id: str,
    payment_id: str,
    signature: str,
    secret: Optional[str] = None,
) -> bool:
    """
    Verify the checkout callback signature: HMAC-SHA256 of
    "<payment_order_id>|<payment_id>" keyed with the API key secret.
    """
    secret = secret or RAZORPAY_KEY_SECRET
    if not secret or not payment_order_id or not payment_id:
        return False
    expected = compute_hmac_sha256(secret, f"{payment_order_id}|{payment_id}".encode("utf-8"))
    return constant_time_compare((signature or "").strip().lower(), expected)
