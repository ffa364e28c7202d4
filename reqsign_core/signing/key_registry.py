"""
Key Registry
============
Thread-safe registry of API keys allowed to sign requests.
"""

import dataclasses
import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Union

import structlog

from reqsign_core.config import SignatureSettings
from .models import ApiKeyInfo, ApiKeyRecord, utcnow

logger = structlog.get_logger(__name__)

DEV_KEY_ID = "dev-key-001"

_UNCHANGED = object()


class KeyRegistry:
    """
    Authoritative store of signing credentials.

    Lookups filter out inactive and expired records on every read, so a
    key that expires after registration stops resolving without any sweep.
    Callers always receive copies; the registry owns its records.
    """

    def __init__(self, records: Optional[Iterable[ApiKeyRecord]] = None):
        self._keys: Dict[str, ApiKeyRecord] = {}
        self._lock = threading.RLock()
        for record in records or ():
            self.add_key(record)

    def add_key(self, record: ApiKeyRecord) -> None:
        """Insert or replace a key by id."""
        if not record.id:
            raise ValueError("API key id must not be empty")
        if not record.secret:
            raise ValueError("API key secret must not be empty")

        with self._lock:
            replaced = record.id in self._keys
            self._keys[record.id] = dataclasses.replace(record)

        logger.info(
            "api_key_registered",
            key_id=record.id,
            name=record.name,
            replaced=replaced,
        )

    def get_key(self, key_id: str, now: Optional[datetime] = None) -> Optional[ApiKeyRecord]:
        """
        Resolve a usable key.

        Returns:
            A copy of the record, or None if unknown, inactive or expired
        """
        with self._lock:
            record = self._keys.get(key_id)
            if record is None or not record.is_usable(now):
                return None
            return dataclasses.replace(record)

    def has_permission(self, key_id: str, scope: str) -> bool:
        """True if the key resolves and grants ``scope`` (or ``*``)."""
        record = self.get_key(key_id)
        return record.allows(scope) if record else False

    def remove_key(self, key_id: str) -> bool:
        with self._lock:
            removed = self._keys.pop(key_id, None) is not None
        if removed:
            logger.info("api_key_removed", key_id=key_id)
        return removed

    def deactivate_key(self, key_id: str) -> bool:
        """Soft-disable a key without deleting it."""
        with self._lock:
            record = self._keys.get(key_id)
            if record is None:
                return False
            self._keys[key_id] = dataclasses.replace(record, is_active=False)
        logger.info("api_key_deactivated", key_id=key_id)
        return True

    def rotate_secret(
        self,
        key_id: str,
        new_secret: Union[str, bytes],
        expires_at=_UNCHANGED,
    ) -> bool:
        """
        Replace a key's secret, optionally updating its expiry.

        Args:
            key_id: Key to rotate
            new_secret: Replacement secret
            expires_at: New expiry (None clears it); omitted keeps the current one

        Returns:
            False if the key does not exist
        """
        if not new_secret:
            raise ValueError("API key secret must not be empty")

        with self._lock:
            record = self._keys.get(key_id)
            if record is None:
                return False
            changes = {"secret": new_secret}
            if expires_at is not _UNCHANGED:
                changes["expires_at"] = expires_at
            self._keys[key_id] = dataclasses.replace(record, **changes)

        logger.info("api_key_secret_rotated", key_id=key_id)
        return True

    def list_keys(self) -> List[ApiKeyInfo]:
        """Metadata for every stored key, usable or not."""
        with self._lock:
            return [ApiKeyInfo.from_record(r) for r in self._keys.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def __contains__(self, key_id: str) -> bool:
        with self._lock:
            return key_id in self._keys

    @classmethod
    def from_settings(cls, settings: SignatureSettings) -> "KeyRegistry":
        """
        Build a registry seeded with bootstrap keys.

        In development a wildcard key ``dev-key-001`` is registered. When
        ``api_key_id`` and ``api_key_secret`` are configured a production
        key is registered with the configured permissions.
        """
        registry = cls()

        if settings.is_development:
            registry.add_key(ApiKeyRecord(
                id=DEV_KEY_ID,
                secret=settings.dev_secret,
                name="Development Key",
                permissions=frozenset({"*"}),
                created_at=utcnow(),
            ))

        if settings.api_key_id and settings.api_key_secret:
            registry.add_key(ApiKeyRecord(
                id=settings.api_key_id,
                secret=settings.api_key_secret,
                name="Production Key",
                permissions=frozenset(settings.api_key_permissions),
                created_at=utcnow(),
            ))

        if not len(registry):
            logger.warning("api_key_registry_empty", environment=settings.environment)

        return registry
