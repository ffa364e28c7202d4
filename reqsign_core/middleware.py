"""
Signature Middleware
====================
Requires a valid request signature on protected API paths.

Usage:
    from reqsign_core import build_validator, SignatureMiddleware, require_permission

    validator = build_validator()
    app.add_middleware(SignatureMiddleware, validator=validator)

    @app.post("/api/cache/purge")
    async def purge(key_id: str = Depends(require_permission("cache:manage"))):
        ...
"""

from typing import Dict, Iterable, Optional

from fastapi import HTTPException, Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
import structlog

from reqsign_core.errors import StoreUnavailableError, create_error_response
from reqsign_core.signing import SignatureValidator, hash_body

logger = structlog.get_logger(__name__)

DEFAULT_PROTECTED_PREFIXES = (
    "/api/admin",
    "/api/cache",
    "/api/analytics/dashboard",
)

DEFAULT_PERMISSION_MAP: Dict[str, str] = {
    "/api/admin": "admin",
    "/api/cache": "cache:manage",
    "/api/analytics/dashboard": "analytics:read",
}

DEFAULT_PERMISSION = "api:access"

BODYLESS_METHODS = {"GET", "HEAD"}


def get_client_ip(request: Request) -> str:
    """Extract real client IP from headers."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class SignatureMiddleware(BaseHTTPMiddleware):
    """
    Middleware that validates signed requests on protected paths.

    Rejections return a generic body; the specific failure is only logged.
    Store outages fail closed with 503.
    """

    def __init__(
        self,
        app,
        validator: SignatureValidator,
        protected_prefixes: Optional[Iterable[str]] = None,
        permission_map: Optional[Dict[str, str]] = None,
        default_permission: str = DEFAULT_PERMISSION,
        rate_limiter=None,
    ):
        super().__init__(app)
        self.validator = validator
        self.protected_prefixes = tuple(protected_prefixes or DEFAULT_PROTECTED_PREFIXES)
        self.permission_map = permission_map if permission_map is not None else dict(DEFAULT_PERMISSION_MAP)
        self.default_permission = default_permission
        self.rate_limiter = rate_limiter

    def requires_signature(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.protected_prefixes)

    def required_permission(self, path: str) -> str:
        """Scope for the longest matching prefix in the permission map."""
        matches = [p for p in self.permission_map if path.startswith(p)]
        if not matches:
            return self.default_permission
        return self.permission_map[max(matches, key=len)]

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        request.state.signature_validator = self.validator

        if not self.requires_signature(path):
            return await call_next(request)

        client_ip = get_client_ip(request)

        if self.rate_limiter is not None:
            limit = self.rate_limiter.check(client_ip)
            if not limit.allowed:
                return create_error_response(
                    "RATE_LIMITED",
                    status_code=429,
                    log_message=f"rate limit exceeded for {client_ip} on {path}",
                )

        body = b""
        if request.method not in BODYLESS_METHODS:
            body = await request.body()

        try:
            result = await run_in_threadpool(
                self.validator.validate,
                request.method,
                path,
                request.headers,
                body,
            )
        except StoreUnavailableError as e:
            logger.error("signature_store_unavailable", path=path, error=str(e))
            return create_error_response("SERVICE_UNAVAILABLE", status_code=503)

        if not result.valid:
            logger.warning(
                "signature_request_rejected",
                path=path,
                method=request.method,
                client_ip=client_ip,
                reason=result.reason.value if result.reason else None,
            )
            return create_error_response(
                "SIGNATURE_VALIDATION_FAILED",
                status_code=401,
                log_message=result.error,
                headers={"WWW-Authenticate": 'Signature realm="API"'},
            )

        permission = self.required_permission(path)
        if not self.validator.check_permission(result.key_id, permission):
            return create_error_response(
                "PERMISSION_DENIED",
                status_code=403,
                log_message=f"key {result.key_id} lacks {permission} for {path}",
            )

        logger.info(
            "signature_request_accepted",
            key_id=result.key_id,
            path=path,
            method=request.method,
            body_sha256=hash_body(body),
        )

        request.state.signature_key_id = result.key_id
        response = await call_next(request)
        response.headers["X-Signature-Validated"] = "true"
        return response


def get_validated_key_id(request: Request) -> str:
    """
    Dependency returning the key id that signed this request.

    Raises 401 if the request did not pass signature validation.
    """
    key_id = getattr(request.state, "signature_key_id", None)
    if not key_id:
        raise HTTPException(status_code=401, detail="Signed request required")
    return key_id


def require_permission(scope: str):
    """
    Dependency factory requiring the signing key to hold ``scope``.

    Usage:
        @app.get("/api/analytics/dashboard")
        async def dashboard(key_id: str = Depends(require_permission("analytics:read"))):
            ...
    """

    def dependency(request: Request) -> str:
        key_id = get_validated_key_id(request)
        validator = getattr(request.state, "signature_validator", None)
        if validator is None or not validator.check_permission(key_id, scope):
            logger.warning("permission_denied", key_id=key_id, scope=scope)
            raise HTTPException(
                status_code=403,
                detail=f"Permission denied. Required permission: {scope}",
            )
        return key_id

    return dependency
