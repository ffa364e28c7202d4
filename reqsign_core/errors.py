"""
Errors
======
Exceptions raised by the signing subsystem and the standard error
responses returned to API callers.

Expected authentication failures are never raised; they come back as a
ValidationResult. Only infrastructure problems are exceptions.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from starlette.responses import JSONResponse
import structlog

logger = structlog.get_logger(__name__)


class ReqsignError(Exception):
    """Base exception for the request signing library."""


class ConfigurationError(ReqsignError):
    """Raised when settings cannot be parsed."""


class StoreUnavailableError(ReqsignError):
    """Raised when a remote key or nonce store cannot be reached."""

    def __init__(self, message: str, store: str = "unknown"):
        self.store = store
        super().__init__(f"[{store}] {message}")


# Headers added to every authentication error response
SECURITY_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}

GENERIC_MESSAGES: Dict[str, str] = {
    "SIGNATURE_VALIDATION_FAILED": "Signature validation failed",
    "PERMISSION_DENIED": "Insufficient permissions",
    "RATE_LIMITED": "Too many requests",
    "SERVICE_UNAVAILABLE": "Service temporarily unavailable",
}


def create_error_response(
    code: str,
    status_code: int = 401,
    log_message: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Create a generic JSON error response.

    The specific reason a request was refused goes to the log only, so the
    network never learns which check failed.

    Args:
        code: Internal error code (returned to the caller)
        status_code: HTTP status code
        log_message: Technical detail for logs
        headers: Extra response headers

    Returns:
        JSONResponse with a generic message
    """
    if log_message:
        logger.warning("request_rejected", code=code, detail=log_message)

    response_headers = dict(SECURITY_HEADERS)
    if headers:
        response_headers.update(headers)

    return JSONResponse(
        status_code=status_code,
        content={
            "error": GENERIC_MESSAGES.get(code, "Request rejected"),
            "code": code,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        headers=response_headers,
    )
