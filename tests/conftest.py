import pytest

from reqsign_core.signing import (
    ApiKeyRecord,
    InMemoryNonceStore,
    KeyRegistry,
    SignatureValidator,
)

TEST_KEY_ID = "key1"
TEST_SECRET = "s3cr3t"


@pytest.fixture
def registry():
    return KeyRegistry([
        ApiKeyRecord(
            id=TEST_KEY_ID,
            secret=TEST_SECRET,
            name="Test Key",
            permissions=frozenset({"*"}),
        ),
    ])


@pytest.fixture
def nonce_store():
    return InMemoryNonceStore()


@pytest.fixture
def validator(registry, nonce_store):
    return SignatureValidator(registry, nonce_store)
