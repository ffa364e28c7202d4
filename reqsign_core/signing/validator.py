"""
Signature Validator
===================
Orchestrates key lookup, timestamp, replay and signature checks for one
inbound request.
"""

import re
from typing import Mapping, Optional, Protocol, Union

import structlog

from reqsign_core.config import SignatureSettings
from .headers import get_header
from .key_registry import KeyRegistry
from .models import FailureReason, ValidationResult
from .nonce_store import NonceStore
from .signature import verify_signature, verify_timestamp

logger = structlog.get_logger(__name__)

MISSING_HEADERS_ERROR = "Missing required signature headers"
UNKNOWN_KEY_ERROR = "Unknown or inactive API key"
INVALID_TIMESTAMP_FORMAT_ERROR = "Invalid timestamp format"
TIMESTAMP_WINDOW_ERROR = "Request timestamp is outside acceptable window"
NONCE_REUSED_ERROR = "Nonce has already been used"
INVALID_SIGNATURE_ERROR = "Invalid signature"

_TIMESTAMP_PATTERN = re.compile(r"[0-9]{1,12}")


class SignableRequest(Protocol):
    """What the validator needs from an inbound request."""
    method: str
    path: str
    headers: Mapping[str, str]
    body: Union[str, bytes]


class SignatureValidator:
    """
    Validates signed requests against a key registry and nonce store.

    Steps run in a fixed order and stop at the first failure:
    headers present, key resolves, timestamp fresh, nonce unused,
    signature matches. The nonce is consumed only after every check has
    passed, so a forged request cannot burn a legitimate nonce.
    """

    def __init__(
        self,
        key_registry: KeyRegistry,
        nonce_store: NonceStore,
        settings: Optional[SignatureSettings] = None,
    ):
        self.key_registry = key_registry
        self.nonce_store = nonce_store
        self.settings = settings or SignatureSettings()

    def validate(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str],
        body: Union[str, bytes] = "",
    ) -> ValidationResult:
        """
        Validate one request.

        Args:
            method: HTTP method
            path: Request path
            headers: Request headers (looked up case-insensitively)
            body: Raw body exactly as received

        Returns:
            ValidationResult; expected failures never raise

        Raises:
            StoreUnavailableError: if a remote store cannot be reached
        """
        names = self.settings.headers
        signature = get_header(headers, names.signature)
        timestamp_value = get_header(headers, names.timestamp)
        nonce = get_header(headers, names.nonce)
        key_id = get_header(headers, names.key_id)

        if not (signature and timestamp_value and nonce and key_id):
            return self._reject(FailureReason.MISSING_HEADERS, MISSING_HEADERS_ERROR, path)

        api_key = self.key_registry.get_key(key_id)
        if api_key is None:
            return self._reject(FailureReason.UNKNOWN_KEY, UNKNOWN_KEY_ERROR, path)

        timestamp_value = timestamp_value.strip()
        if not _TIMESTAMP_PATTERN.fullmatch(timestamp_value):
            return self._reject(
                FailureReason.INVALID_TIMESTAMP_FORMAT, INVALID_TIMESTAMP_FORMAT_ERROR, path, key_id
            )
        timestamp = int(timestamp_value)

        if not verify_timestamp(timestamp, self.settings.tolerance_seconds):
            return self._reject(FailureReason.TIMESTAMP_SKEW, TIMESTAMP_WINDOW_ERROR, path, key_id)

        if self.nonce_store.is_nonce_used(nonce):
            return self._reject(FailureReason.REPLAY_DETECTED, NONCE_REUSED_ERROR, path, key_id)

        if not verify_signature(api_key.secret, signature, method, path, body or "", timestamp, nonce):
            return self._reject(FailureReason.INVALID_SIGNATURE, INVALID_SIGNATURE_ERROR, path, key_id)

        # A concurrent request carrying the same nonce may have won the race
        if not self.nonce_store.claim_nonce(nonce):
            return self._reject(FailureReason.REPLAY_DETECTED, NONCE_REUSED_ERROR, path, key_id)

        logger.debug("signature_validated", key_id=key_id, path=path)
        return ValidationResult.ok(key_id)

    def validate_request(self, request: SignableRequest) -> ValidationResult:
        return self.validate(request.method, request.path, request.headers, request.body)

    def check_permission(self, key_id: str, scope: str) -> bool:
        return self.key_registry.has_permission(key_id, scope)

    def _reject(
        self,
        reason: FailureReason,
        error: str,
        path: str,
        key_id: Optional[str] = None,
    ) -> ValidationResult:
        logger.warning(
            "signature_validation_failed",
            reason=reason.value,
            key_id=key_id,
            path=path,
        )
        return ValidationResult.fail(reason, error)
