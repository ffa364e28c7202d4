"""
Signature Functions
===================
HMAC signature computation and verification for request authentication.
"""

import hashlib
import hmac
import secrets
import time
from typing import Optional, Union

from reqsign_core.config import (
    DEFAULT_NONCE_LENGTH,
    DEFAULT_TOLERANCE_SECONDS,
    SIGNATURE_ALGORITHM,
)

SIGNATURE_HEX_LENGTH = 64  # SHA-256 digest as hex
_DELIMITER = b"\n"


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def build_signing_string(
    method: str,
    path: str,
    body: Union[str, bytes],
    timestamp: int,
    nonce: str,
) -> bytes:
    """
    Build the canonical message that gets signed.

    The fields are joined with newlines in a fixed order:
    method, path, body, timestamp (decimal seconds), nonce.

    Raises:
        ValueError: if a field is missing or the timestamp is not an int
    """
    for name, value in (("method", method), ("path", path), ("nonce", nonce)):
        if value is None:
            raise ValueError(f"{name} is required to build a signature")
    if body is None:
        raise ValueError("body is required to build a signature (use '' for none)")
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        raise ValueError(f"timestamp must be an int, got {type(timestamp).__name__}")

    return _DELIMITER.join([
        _to_bytes(method),
        _to_bytes(path),
        _to_bytes(body),
        str(timestamp).encode("ascii"),
        _to_bytes(nonce),
    ])


def generate_signature(
    secret: Union[str, bytes],
    method: str,
    path: str,
    body: Union[str, bytes],
    timestamp: int,
    nonce: str,
) -> str:
    """
    Compute HMAC-SHA256 signature for request authentication.

    Args:
        secret: API key secret
        method: HTTP method, signed exactly as given
        path: Request path (e.g., /api/cache)
        body: Raw request body, exactly as sent ('' for none)
        timestamp: Unix timestamp in seconds
        nonce: Single-use random token

    Returns:
        Lowercase hex-encoded HMAC-SHA256 signature
    """
    if secret is None:
        raise ValueError("secret is required to build a signature")
    message = build_signing_string(method, path, body, timestamp, nonce)
    return hmac.new(_to_bytes(secret), message, getattr(hashlib, SIGNATURE_ALGORITHM)).hexdigest()


def verify_signature(
    secret: Union[str, bytes],
    candidate_signature: str,
    method: str,
    path: str,
    body: Union[str, bytes],
    timestamp: int,
    nonce: str,
) -> bool:
    """
    Verify request signature using constant-time comparison.

    Malformed candidates (wrong type, non-ASCII, wrong length) are simply
    reported as not matching.

    Returns:
        True if signature is valid
    """
    if not isinstance(candidate_signature, str):
        return False
    try:
        provided = candidate_signature.strip().lower().encode("ascii")
    except UnicodeEncodeError:
        return False

    expected = generate_signature(secret, method, path, body, timestamp, nonce)
    return hmac.compare_digest(expected.encode("ascii"), provided)


def verify_timestamp(
    timestamp: int,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[int] = None,
) -> bool:
    """
    Check that a timestamp is within the freshness window.

    Both stale and future timestamps are rejected. The boundary is
    inclusive: a skew of exactly ``tolerance_seconds`` is accepted.

    Args:
        timestamp: Unix timestamp from request
        tolerance_seconds: Maximum allowed skew in seconds
        now: Current Unix time (defaults to the system clock)

    Returns:
        True if timestamp is acceptable
    """
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        return False
    current_time = int(time.time()) if now is None else now
    return abs(current_time - timestamp) <= tolerance_seconds


def generate_nonce(length: int = DEFAULT_NONCE_LENGTH) -> str:
    """Generate a random hex nonce from the OS CSPRNG."""
    return secrets.token_hex(length)


def hash_body(body: Union[str, bytes]) -> str:
    """
    Compute SHA-256 hash of request body.

    Used to reference a body in audit logs without logging it.
    """
    return hashlib.sha256(_to_bytes(body or b"")).hexdigest()
