"""
Tests for settings, wiring and logging
======================================
"""

import pytest

from reqsign_core import build_validator
from reqsign_core.config import SignatureSettings
from reqsign_core.errors import ConfigurationError
from reqsign_core.logging import redact_secrets
from reqsign_core.signing import DEV_KEY_ID, InMemoryNonceStore, sign_request


class TestSignatureSettings:
    """Tests for environment parsing."""

    def test_defaults(self):
        settings = SignatureSettings.from_env({})

        assert settings.tolerance_seconds == 300
        assert settings.nonce_length == 16
        assert settings.nonce_ttl_seconds == 600
        assert settings.environment == "production"
        assert settings.redis_url == ""
        assert settings.headers.signature == "X-Signature"

    def test_reads_environment(self):
        settings = SignatureSettings.from_env({
            "SIGNATURE_TIMESTAMP_TOLERANCE": "120",
            "SIGNATURE_NONCE_LENGTH": "24",
            "APP_ENV": "development",
            "NONCE_REDIS_URL": "redis://cache:6379/1",
            "API_KEY_ID": "prod-1",
            "API_KEY_SECRET": "prod-secret",
            "API_KEY_PERMISSIONS": "cache:manage, analytics:read",
        })

        assert settings.tolerance_seconds == 120
        assert settings.nonce_ttl_seconds == 240
        assert settings.nonce_length == 24
        assert settings.is_development is True
        assert settings.redis_url == "redis://cache:6379/1"
        assert settings.api_key_permissions == ["cache:manage", "analytics:read"]

    @pytest.mark.parametrize("env", [
        {"SIGNATURE_TIMESTAMP_TOLERANCE": "five minutes"},
        {"SIGNATURE_TIMESTAMP_TOLERANCE": "-1"},
        {"SIGNATURE_NONCE_LENGTH": "8"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ConfigurationError):
            SignatureSettings.from_env(env)


class TestBuildValidator:
    """Tests for wiring a validator from settings."""

    def test_development_wiring(self):
        settings = SignatureSettings(environment="development", dev_secret="dev-secret")
        validator = build_validator(settings)

        headers = sign_request(DEV_KEY_ID, "dev-secret", "GET", "/api/admin/stats")

        assert isinstance(validator.nonce_store, InMemoryNonceStore)
        assert validator.validate("GET", "/api/admin/stats", headers).valid is True


def test_redact_secrets():
    event = {"event": "api_key_registered", "secret": "s3cr3t", "signature": "abcd", "key_id": "key1"}

    redacted = redact_secrets(None, "info", dict(event))

    assert redacted["secret"] == "[REDACTED]"
    assert redacted["signature"] == "[REDACTED]"
    assert redacted["key_id"] == "key1"
