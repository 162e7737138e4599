"""
GitHub webhook signature validation utilities
"""

import hashlib
import hmac
from typing import Optional, Union

import structlog

logger = structlog.get_logger()

SIGNATURE_PREFIX = "sha256="


def compute_webhook_signature(secret: str, payload: Union[bytes, str]) -> str:
    """
    Compute the X-Hub-Signature-256 value GitHub would send for a payload

    Args:
        secret: Webhook secret configured in GitHub
        payload: Raw request body

    Returns:
        str: "sha256=" followed by the hex HMAC-SHA256 digest
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def validate_github_webhook(
    payload: Optional[bytes], signature: Optional[str], secret: Optional[str]
) -> bool:
    """
    Validate GitHub webhook signature

    Must be called with the untouched request body; re-serialized JSON
    produces a different digest.

    Args:
        payload: Raw request body as bytes
        signature: X-Hub-Signature-256 header value, with or without "sha256="
        secret: Webhook secret configured in GitHub

    Returns:
        bool: True if signature is valid, False otherwise (never raises)
    """
    if not payload or not signature or not secret:
        logger.warning(
            "Incomplete signature input",
            has_payload=bool(payload),
            has_signature=bool(signature),
            has_secret=bool(secret),
        )
        return False

    try:
        expected_hash = compute_webhook_signature(secret, payload)[len(SIGNATURE_PREFIX):]
    except (TypeError, UnicodeEncodeError) as e:
        logger.warning("Unable to compute webhook signature", error=str(e))
        return False

    # Extract the signature hash
    signature_hash = signature
    if signature_hash.startswith(SIGNATURE_PREFIX):
        signature_hash = signature_hash[len(SIGNATURE_PREFIX):]

    if len(signature_hash) != len(expected_hash):
        logger.warning("Invalid signature length", received_length=len(signature_hash))
        return False

    # compare_digest on bytes: non-ASCII header text must not raise
    is_valid = hmac.compare_digest(
        signature_hash.encode("utf-8", "replace"), expected_hash.encode("ascii")
    )

    if not is_valid:
        logger.warning(
            "Invalid webhook signature",
            received_prefix=signature_hash[:8],
        )

    return is_valid

