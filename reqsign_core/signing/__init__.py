"""
Request Signing Module
======================
HMAC request signing with timestamp windows and replay protection.
"""

from .models import (
    ApiKeyInfo,
    ApiKeyRecord,
    FailureReason,
    SignedRequestContext,
    ValidationResult,
    WILDCARD_PERMISSION,
)
from .signature import (
    build_signing_string,
    generate_nonce,
    generate_signature,
    hash_body,
    verify_signature,
    verify_timestamp,
    SIGNATURE_HEX_LENGTH,
)
from .key_registry import KeyRegistry, DEV_KEY_ID
from .nonce_store import (
    NonceStore,
    InMemoryNonceStore,
    RedisNonceStore,
    build_nonce_store,
)
from .headers import ClientSigner, HMACAuth, get_header, sign_request
from .validator import (
    SignableRequest,
    SignatureValidator,
    MISSING_HEADERS_ERROR,
    UNKNOWN_KEY_ERROR,
    INVALID_TIMESTAMP_FORMAT_ERROR,
    TIMESTAMP_WINDOW_ERROR,
    NONCE_REUSED_ERROR,
    INVALID_SIGNATURE_ERROR,
)

__all__ = [
    # Models
    "ApiKeyInfo",
    "ApiKeyRecord",
    "FailureReason",
    "SignedRequestContext",
    "ValidationResult",
    "WILDCARD_PERMISSION",
    # Signature
    "build_signing_string",
    "generate_nonce",
    "generate_signature",
    "hash_body",
    "verify_signature",
    "verify_timestamp",
    "SIGNATURE_HEX_LENGTH",
    # Keys
    "KeyRegistry",
    "DEV_KEY_ID",
    # Nonces
    "NonceStore",
    "InMemoryNonceStore",
    "RedisNonceStore",
    "build_nonce_store",
    # Client
    "ClientSigner",
    "HMACAuth",
    "get_header",
    "sign_request",
    # Validator
    "SignableRequest",
    "SignatureValidator",
    "MISSING_HEADERS_ERROR",
    "UNKNOWN_KEY_ERROR",
    "INVALID_TIMESTAMP_FORMAT_ERROR",
    "TIMESTAMP_WINDOW_ERROR",
    "NONCE_REUSED_ERROR",
    "INVALID_SIGNATURE_ERROR",
]
