"""
reqsign-core
============
HMAC request signing and verification for server-to-server and admin APIs.
"""

__version__ = "0.1.0"

from typing import Optional

# Config
from reqsign_core.config import SignatureHeaders, SignatureSettings

# Errors
from reqsign_core.errors import (
    ReqsignError,
    ConfigurationError,
    StoreUnavailableError,
    create_error_response,
)

# Signing
from reqsign_core.signing import (
    ApiKeyInfo,
    ApiKeyRecord,
    ClientSigner,
    FailureReason,
    HMACAuth,
    InMemoryNonceStore,
    KeyRegistry,
    NonceStore,
    RedisNonceStore,
    SignatureValidator,
    SignedRequestContext,
    ValidationResult,
    build_nonce_store,
    generate_nonce,
    generate_signature,
    sign_request,
    verify_signature,
    verify_timestamp,
)

# Middleware
from reqsign_core.middleware import (
    SignatureMiddleware,
    get_validated_key_id,
    require_permission,
)


def build_validator(settings: Optional[SignatureSettings] = None) -> SignatureValidator:
    """
    Wire a validator from settings.

    Construct once per process and share it; the registry and nonce store
    it holds are the only mutable state.
    """
    settings = settings or SignatureSettings.from_env()
    return SignatureValidator(
        key_registry=KeyRegistry.from_settings(settings),
        nonce_store=build_nonce_store(settings),
        settings=settings,
    )


__all__ = [
    "__version__",
    "build_validator",
    # Config
    "SignatureHeaders",
    "SignatureSettings",
    # Errors
    "ReqsignError",
    "ConfigurationError",
    "StoreUnavailableError",
    "create_error_response",
    # Signing
    "ApiKeyInfo",
    "ApiKeyRecord",
    "ClientSigner",
    "FailureReason",
    "HMACAuth",
    "InMemoryNonceStore",
    "KeyRegistry",
    "NonceStore",
    "RedisNonceStore",
    "SignatureValidator",
    "SignedRequestContext",
    "ValidationResult",
    "build_nonce_store",
    "generate_nonce",
    "generate_signature",
    "sign_request",
    "verify_signature",
    "verify_timestamp",
    # Middleware
    "SignatureMiddleware",
    "get_validated_key_id",
    "require_permission",
]
