"""
HTTP exceptions carrying a machine-readable error code.

The error kinds map one-to-one onto status codes: NotFound 404, Forbidden
403, Conflict 409, validation 422, and TransientIO 503 for store or network
failures the client may retry unchanged. Every response body is
``{"detail": {"message": ..., "code": ...}}``.

Example:
    from common.utils import NotFoundException, ForbiddenException

    if circle is None or not circle.is_member(uid):
        raise NotFoundException("Circle not found", code="CIRCLE_NOT_FOUND")
    if circle.ownerUid != uid:
        raise ForbiddenException("Only the circle owner can do this", code="NOT_CIRCLE_OWNER")
"""

from typing import Optional, Any, Dict
from fastapi import HTTPException


class APIException(HTTPException):
    """Base for every error a route handler raises on purpose."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        detail: Dict[str, Any] = {"message": message}

        if code:
            detail["code"] = code

        if details is not None:
            detail["details"] = details

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    @property
    def code(self) -> Optional[str]:
        return self.detail.get("code")

    @property
    def message(self) -> str:
        return self.detail["message"]


class UnauthorizedException(APIException):
    """401 - missing or rejected identity token."""

    def __init__(self, message: str = "Unauthorized", code: str = "UNAUTHORIZED"):
        super().__init__(401, message, code)


class ForbiddenException(APIException):
    """403 - caller is a member but lacks the role (e.g. not the owner)."""

    def __init__(self, message: str = "Forbidden", code: str = "FORBIDDEN", details: Optional[Any] = None):
        super().__init__(403, message, code, details)


class NotFoundException(APIException):
    """404 - resource absent, purged, or hidden from the caller."""

    def __init__(self, message: str = "Not found", code: str = "NOT_FOUND", details: Optional[Any] = None):
        super().__init__(404, message, code, details)


class ConflictException(APIException):
    """409 - request clashes with current state (closed circle, pending request)."""

    def __init__(self, message: str = "Conflict", code: str = "CONFLICT", details: Optional[Any] = None):
        super().__init__(409, message, code, details)


class ValidationException(APIException):
    """422 - request body passed parsing but breaks a domain rule."""

    def __init__(
        self,
        message: str = "Validation error",
        code: str = "VALIDATION_ERROR",
        details: Optional[Any] = None,
    ):
        super().__init__(422, message, code, details)


class TransientIOException(APIException):
    """503 - store or network failure; the same call is safe to retry."""

    def __init__(
        self,
        message: str = "Temporary storage or network failure, please retry",
        code: str = "TRANSIENT_IO",
        retry_after: Optional[int] = 1,
    ):
        headers = {"Retry-After": str(retry_after)} if retry_after else None
        super().__init__(503, message, code, headers=headers)
