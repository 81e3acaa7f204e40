"""
HMAC-SHA256 verification of inbound vendor webhooks.
"""
import hashlib
import hmac
from typing import Optional

from notetaker.logging_config import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Nylas-Signature"
_HEX_DIGEST_LENGTH = hashlib.sha256().digest_size * 2


def compute_signature(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the raw body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(
    body: bytes,
    signature: Optional[str],
    secret: Optional[str],
    skip_verification: bool = False,
) -> bool:
    """
    Check a webhook signature against the raw request body.

    The digest is computed over the exact bytes received. Re-serializing the
    parsed JSON would change whitespace and key order and break the match.

    Args:
        body: Raw request body bytes
        signature: Value of the signature header, if any
        secret: Shared webhook secret; None accepts everything
        skip_verification: Accept everything (local development only)

    Returns:
        True if the request is authentic or verification is disabled
    """
    if skip_verification:
        logger.warning("webhook_verification_skipped", reason="skip_webhook_verification enabled")
        return True

    if not secret:
        logger.warning("webhook_verification_skipped", reason="no webhook secret configured")
        return True

    if not signature:
        logger.error("webhook_signature_missing")
        return False

    signature = signature.strip().lower()
    if len(signature) != _HEX_DIGEST_LENGTH:
        logger.error("webhook_signature_malformed", length=len(signature))
        return False
    try:
        bytes.fromhex(signature)
    except ValueError:
        logger.error("webhook_signature_malformed", reason="not hex")
        return False

    expected = compute_signature(body, secret)
    valid = hmac.compare_digest(expected, signature)
    if not valid:
        logger.error("webhook_signature_mismatch", body_length=len(body))
    return valid
