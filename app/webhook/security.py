"""
Webhook Security Module

This module handles verification of Meta webhook requests:
- HMAC-SHA256 signature of POSTed events (X-Hub-Signature-256)
- The hub.verify_token handshake used when subscribing

Design Decisions:
- Hash the exact bytes received, never a re-serialized JSON body
- Use constant-time comparison to prevent timing attacks
- Verification returns a boolean; rejecting the request is the caller's call
"""

import hashlib
import hmac
from typing import Optional

from app.logging_config import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="


def compute_signature(raw_body: bytes, app_secret: str) -> str:
    """Hex HMAC-SHA256 of ``raw_body`` keyed with ``app_secret``."""
    return hmac.new(app_secret.encode(), raw_body, hashlib.sha256).hexdigest()


def verify_signature(
    raw_body: bytes,
    signature_header: Optional[str],
    app_secret: str
) -> bool:
    """
    Verify a Meta webhook signature.

    Args:
        raw_body: Request body exactly as received
        signature_header: Value of X-Hub-Signature-256, if any
        app_secret: Shared app secret

    Returns:
        True only if the header carries the expected ``sha256=<hex>`` value
    """
    if not signature_header:
        logger.warning("Missing webhook signature header")
        return False

    if not app_secret:
        logger.error("App secret not configured, cannot verify signature")
        return False

    if not signature_header.startswith(SIGNATURE_PREFIX):
        logger.warning(
            "Invalid signature format",
            prefix=signature_header.split("=", 1)[0][:20]
        )
        return False

    provided = signature_header[len(SIGNATURE_PREFIX):].strip().lower()
    expected = compute_signature(raw_body, app_secret)

    if not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Webhook signature mismatch")
        return False

    logger.debug("Webhook signature verified successfully")
    return True


def verify_subscription(
    mode: Optional[str],
    token: Optional[str],
    challenge: Optional[str],
    verify_token: str
) -> Optional[str]:
    """
    Check a webhook subscription handshake.

    Args:
        mode: hub.mode query parameter
        token: hub.verify_token query parameter
        challenge: hub.challenge query parameter
        verify_token: Configured verify token

    Returns:
        The challenge to echo back, or None if the handshake is rejected
    """
    if mode != "subscribe" or token is None or not verify_token:
        return None

    if not hmac.compare_digest(token.encode(), verify_token.encode()):
        return None

    return challenge if challenge is not None else ""
