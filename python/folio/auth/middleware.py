"""Internal-access middleware for FastAPI.

Authentication and roles are decided by the caller in front of this service
(the BFF). In staging and prod the authoring surface only accepts requests
carrying the shared internal secret; public reads under /p/ never do.
"""

import hmac

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from folio.errors import ApiError, ApiErrorCode, ForbiddenError
from folio.logging import get_logger
from folio.responses import error_response

logger = get_logger(__name__)

# Header names
INTERNAL_HEADER = "x-folio-internal"

# Paths that never require the internal header
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}
PUBLIC_PREFIXES = ("/p/",)


def is_public_path(path: str) -> bool:
    """Whether a path is served without the internal header."""
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


class AuthMiddleware(BaseHTTPMiddleware):
    """Internal header enforcement.

    Order of checks:
    1. Skip if public path
    2. Skip if the header is not required (local/test)
    3. Constant-time compare the header with the configured secret
    """

    def __init__(
        self,
        app: ASGIApp,
        requires_internal_header: bool = False,
        internal_secret: str | None = None,
    ):
        super().__init__(app)
        self.requires_internal_header = requires_internal_header
        self.internal_secret = internal_secret

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        """Process the request through the internal header check."""
        if is_public_path(request.url.path) or not self.requires_internal_header:
            return await call_next(request)

        error = self._verify_internal_header(request)
        if error is not None:
            return error

        return await call_next(request)

    def _verify_internal_header(self, request: Request) -> JSONResponse | None:
        """Verify the internal header using constant-time comparison.

        Returns:
            JSONResponse if verification fails, None if successful.
        """
        header_value = request.headers.get(INTERNAL_HEADER)

        if header_value is None:
            logger.warning(
                "auth_failure", reason="internal_header_missing", request_path=request.url.path
            )
            return self._error_json_response(
                ForbiddenError(ApiErrorCode.E_INTERNAL_ONLY, "Internal API access required")
            )

        if not self.internal_secret:
            # Startup validation makes this unreachable in staging/prod
            logger.error("internal_secret_missing")
            return self._error_json_response(ApiError(ApiErrorCode.E_INTERNAL, "Internal server error"))

        if not hmac.compare_digest(header_value.encode(), self.internal_secret.encode()):
            logger.warning(
                "auth_failure", reason="internal_header_mismatch", request_path=request.url.path
            )
            return self._error_json_response(
                ForbiddenError(ApiErrorCode.E_INTERNAL_ONLY, "Internal API access required")
            )

        return None

    def _error_json_response(self, error: ApiError) -> JSONResponse:
        """Render an ApiError as a JSON error response."""
        return JSONResponse(
            status_code=error.status_code, content=error_response(error.code, error.message)
        )
