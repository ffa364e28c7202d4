"""
Configuration
=============
Environment-driven settings for request signing.
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from reqsign_core.errors import ConfigurationError

# Defaults
DEFAULT_TOLERANCE_SECONDS = 300  # 5 minutes
DEFAULT_NONCE_LENGTH = 16  # bytes -> 32 hex chars
SIGNATURE_ALGORITHM = "sha256"


@dataclass(frozen=True)
class SignatureHeaders:
    """Names of the four headers carried by a signed request."""
    signature: str = "X-Signature"
    timestamp: str = "X-Timestamp"
    nonce: str = "X-Nonce"
    key_id: str = "X-Key-Id"

    def all(self) -> List[str]:
        return [self.signature, self.timestamp, self.nonce, self.key_id]


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


@dataclass
class SignatureSettings:
    """Settings for signature validation and key bootstrap."""

    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS
    nonce_length: int = DEFAULT_NONCE_LENGTH

    # Defaults to twice the tolerance when unset
    nonce_ttl_seconds: Optional[int] = None

    environment: str = "production"

    # Empty means in-process nonce storage (single instance only)
    redis_url: str = ""

    headers: SignatureHeaders = field(default_factory=SignatureHeaders)

    # Bootstrap keys
    dev_secret: str = "dev-secret-key"
    api_key_id: str = ""
    api_key_secret: str = ""
    api_key_permissions: List[str] = field(default_factory=lambda: ["*"])

    def __post_init__(self):
        if self.tolerance_seconds <= 0:
            raise ConfigurationError("tolerance_seconds must be positive")
        if self.nonce_length < 16:
            raise ConfigurationError("nonce_length must be at least 16 bytes")
        if self.nonce_ttl_seconds is None:
            self.nonce_ttl_seconds = 2 * self.tolerance_seconds

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "SignatureSettings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read from (defaults to os.environ)

        Returns:
            SignatureSettings

        Raises:
            ConfigurationError: if a numeric variable is malformed
        """
        env = os.environ if env is None else env

        tolerance = _int_setting(env, "SIGNATURE_TIMESTAMP_TOLERANCE", DEFAULT_TOLERANCE_SECONDS)
        permissions = [
            p.strip()
            for p in env.get("API_KEY_PERMISSIONS", "*").split(",")
            if p.strip()
        ]

        return cls(
            tolerance_seconds=tolerance,
            nonce_length=_int_setting(env, "SIGNATURE_NONCE_LENGTH", DEFAULT_NONCE_LENGTH),
            nonce_ttl_seconds=_int_setting(env, "SIGNATURE_NONCE_TTL", 2 * tolerance),
            environment=env.get("APP_ENV", "production"),
            redis_url=env.get("NONCE_REDIS_URL", ""),
            dev_secret=env.get("API_SIGNATURE_SECRET", "dev-secret-key"),
            api_key_id=env.get("API_KEY_ID", ""),
            api_key_secret=env.get("API_KEY_SECRET", ""),
            api_key_permissions=permissions or ["*"],
        )
