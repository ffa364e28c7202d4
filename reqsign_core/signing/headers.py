"""
Header Functions
================
Creating signed request headers on the client side and reading them back
on the server side.
"""

import time
from typing import Dict, Generator, Mapping, Optional, Union

import httpx

from reqsign_core.config import DEFAULT_NONCE_LENGTH, SignatureHeaders
from .signature import generate_nonce, generate_signature

DEFAULT_HEADERS = SignatureHeaders()


def sign_request(
    key_id: str,
    secret: Union[str, bytes],
    method: str,
    path: str,
    body: Union[str, bytes] = "",
    header_names: Optional[SignatureHeaders] = None,
    nonce_length: int = DEFAULT_NONCE_LENGTH,
) -> Dict[str, str]:
    """
    Create headers for a signed request.

    Every call uses a fresh nonce and the current time, and shares no state
    with other calls.

    Args:
        key_id: API key ID for identification
        secret: API key secret
        method: HTTP method
        path: Request path
        body: Request body exactly as it will be sent
        header_names: Header names (defaults to X-Signature etc.)
        nonce_length: Random bytes per nonce

    Returns:
        Dictionary of headers to include in the request
    """
    names = header_names or DEFAULT_HEADERS
    timestamp = int(time.time())
    nonce = generate_nonce(nonce_length)
    signature = generate_signature(secret, method, path, body or "", timestamp, nonce)

    return {
        names.key_id: key_id,
        names.timestamp: str(timestamp),
        names.nonce: nonce,
        names.signature: signature,
    }


class ClientSigner:
    """Signs outgoing requests with one API key."""

    def __init__(
        self,
        key_id: str,
        secret: Union[str, bytes],
        header_names: Optional[SignatureHeaders] = None,
    ):
        self.key_id = key_id
        self._secret = secret
        self.header_names = header_names or DEFAULT_HEADERS

    def sign(self, method: str, path: str, body: Union[str, bytes] = "") -> Dict[str, str]:
        return sign_request(
            self.key_id, self._secret, method, path, body, header_names=self.header_names
        )

    def __repr__(self) -> str:
        return f"ClientSigner(key_id={self.key_id!r})"


class HMACAuth(httpx.Auth):
    """
    httpx auth hook that signs every request.

    Usage:
        client = httpx.Client(base_url=url, auth=HMACAuth("key1", secret))
        client.post("/api/cache", content=b"{}")
    """

    requires_request_body = True

    def __init__(self, key_id: str, secret: Union[str, bytes], header_names: Optional[SignatureHeaders] = None):
        self.signer = ClientSigner(key_id, secret, header_names)

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        signed = self.signer.sign(request.method, request.url.path, request.content)
        request.headers.update(signed)
        yield request


def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup over any mapping."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None
