"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_INTERNAL_ONLY = "E_INTERNAL_ONLY"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_SPACE_NOT_FOUND = "E_SPACE_NOT_FOUND"
    E_DOCUMENT_NOT_FOUND = "E_DOCUMENT_NOT_FOUND"
    E_PUBLICATION_NOT_FOUND = "E_PUBLICATION_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_SLUG_INVALID = "E_SLUG_INVALID"
    E_TITLE_INVALID = "E_TITLE_INVALID"
    E_OPTIONS_INVALID = "E_OPTIONS_INVALID"

    # Conflict errors (409)
    E_CONFLICT = "E_CONFLICT"
    E_SLUG_TAKEN = "E_SLUG_TAKEN"
    E_PUBLISH_CONFLICT = "E_PUBLISH_CONFLICT"
    E_PUBLICATION_ACTIVE = "E_PUBLICATION_ACTIVE"
    E_REVISION_MISMATCH = "E_REVISION_MISMATCH"
    E_AUTOSAVE_FULL = "E_AUTOSAVE_FULL"
    E_CYCLE = "E_CYCLE"
    E_INVALID_STATE = "E_INVALID_STATE"

    # Server errors
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_INTERNAL_ONLY: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_SPACE_NOT_FOUND: 404,
    ApiErrorCode.E_DOCUMENT_NOT_FOUND: 404,
    ApiErrorCode.E_PUBLICATION_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_SLUG_INVALID: 400,
    ApiErrorCode.E_TITLE_INVALID: 400,
    ApiErrorCode.E_OPTIONS_INVALID: 400,
    ApiErrorCode.E_CONFLICT: 409,
    ApiErrorCode.E_SLUG_TAKEN: 409,
    ApiErrorCode.E_PUBLISH_CONFLICT: 409,
    ApiErrorCode.E_PUBLICATION_ACTIVE: 409,
    ApiErrorCode.E_REVISION_MISMATCH: 409,
    ApiErrorCode.E_AUTOSAVE_FULL: 409,
    ApiErrorCode.E_CYCLE: 409,
    ApiErrorCode.E_INVALID_STATE: 409,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error.

    Raised on behalf of the external authorization layer; this core never
    decides roles itself.
    """

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error. Always raised before any write."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class ConflictError(ApiError):
    """Conflicting state error. Safe for the caller to retry.

    Attributes:
        suggestion: Optional alternate value the caller may retry with
            (e.g. a free slug after a slug collision).
    """

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_CONFLICT,
        message: str = "Conflict",
        suggestion: str | None = None,
    ):
        self.suggestion = suggestion
        super().__init__(code, message)


class CycleError(ApiError):
    """A move would make a document its own ancestor, or stored data is cyclic."""

    def __init__(self, message: str = "Document cannot be moved under its own descendant"):
        super().__init__(ApiErrorCode.E_CYCLE, message)


class StateError(ApiError):
    """Operation is not valid for the current lifecycle state."""

    def __init__(self, message: str = "Operation not allowed in current state"):
        super().__init__(ApiErrorCode.E_INVALID_STATE, message)
