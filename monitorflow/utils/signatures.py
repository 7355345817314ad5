"""
Webhook payload signing - lets receivers verify a payload came from us.

Signature = lowercase hex HMAC-SHA256 of the exact JSON body using the
webhook's secret. Receivers recompute it over the raw request body.
"""
import hashlib
import hmac
import json
import logging
import secrets
from typing import Any, Union

logger = logging.getLogger(__name__)

SECRET_BYTES = 32


def serialize_payload(payload: Any) -> str:
    """Canonical JSON: sorted keys, compact separators, UTF-8 kept as-is."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def sign(payload: Union[str, bytes], secret: str) -> str:
    """Compute the hex HMAC-SHA256 signature of a serialized payload."""
    return hmac.new(_to_bytes(secret), _to_bytes(payload), hashlib.sha256).hexdigest()


def verify(payload: Union[str, bytes], signature: str, secret: str) -> bool:
    """
    Verify a signature in constant time.
    Returns False (never raises) for missing secrets or malformed signatures.
    """
    if not secret or not signature:
        return False

    try:
        expected = sign(payload, secret)
        return hmac.compare_digest(expected, signature.strip().lower())
    except (TypeError, UnicodeError) as e:
        logger.warning("Signature verification error: %s", str(e))
        return False


def generate_secret() -> str:
    """Random webhook signing secret (64 hex chars)."""
    return secrets.token_hex(SECRET_BYTES)
