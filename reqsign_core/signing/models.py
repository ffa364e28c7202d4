"""
Signing Models
==============
Data models and enums for request signature authentication.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, List, Optional, Union

from .signature import generate_signature

WILDCARD_PERMISSION = "*"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FailureReason(str, Enum):
    """Why a signed request was refused."""
    MISSING_HEADERS = "missing_headers"
    INVALID_TIMESTAMP_FORMAT = "invalid_timestamp_format"
    UNKNOWN_KEY = "unknown_key"
    TIMESTAMP_SKEW = "timestamp_skew"
    REPLAY_DETECTED = "replay_detected"
    INVALID_SIGNATURE = "invalid_signature"


@dataclass
class ApiKeyRecord:
    """A provisioned signing credential."""
    id: str
    secret: Union[str, bytes] = field(repr=False)
    name: str = ""
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    created_at: datetime = field(default_factory=utcnow)
    expires_at: Optional[datetime] = None
    is_active: bool = True

    def __post_init__(self):
        self.permissions = frozenset(self.permissions)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    def is_usable(self, now: Optional[datetime] = None) -> bool:
        """Active and not past its expiry."""
        return self.is_active and not self.is_expired(now)

    def allows(self, scope: str) -> bool:
        return WILDCARD_PERMISSION in self.permissions or scope in self.permissions


@dataclass
class ApiKeyInfo:
    """API key metadata (never includes the secret)."""
    id: str
    name: str
    permissions: List[str]
    created_at: datetime
    expires_at: Optional[datetime] = None
    is_active: bool = True

    @classmethod
    def from_record(cls, record: ApiKeyRecord) -> "ApiKeyInfo":
        return cls(
            id=record.id,
            name=record.name,
            permissions=sorted(record.permissions),
            created_at=record.created_at,
            expires_at=record.expires_at,
            is_active=record.is_active,
        )


@dataclass
class SignedRequestContext:
    """The fields a request signature is computed over."""
    secret: Union[str, bytes] = field(repr=False)
    method: str
    path: str
    body: Union[str, bytes]
    timestamp: int
    nonce: str

    def signature(self) -> str:
        return generate_signature(
            self.secret, self.method, self.path, self.body, self.timestamp, self.nonce
        )


@dataclass
class ValidationResult:
    """Outcome of validating one signed request."""
    valid: bool
    key_id: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[FailureReason] = None

    @classmethod
    def ok(cls, key_id: str) -> "ValidationResult":
        return cls(valid=True, key_id=key_id)

    @classmethod
    def fail(cls, reason: FailureReason, error: str) -> "ValidationResult":
        return cls(valid=False, error=error, reason=reason)

    def __bool__(self) -> bool:
        return self.valid
