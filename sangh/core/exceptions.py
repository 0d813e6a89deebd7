"""
Domain error taxonomy.

Every error carries an HTTP status, a machine code and a human message so an
outer API layer can render it as ``{"detail": {"code": ..., "message": ...}}``.
"""

from __future__ import annotations

from fastapi import status

if hasattr(status, "HTTP_422_UNPROCESSABLE_CONTENT"):
    _HTTP_422 = status.HTTP_422_UNPROCESSABLE_CONTENT
else:  # older Starlette
    _HTTP_422 = status.HTTP_422_UNPROCESSABLE_ENTITY


class SanghError(Exception):
    """Base class for all hierarchy engine errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "SANGH_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_detail(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} code={self.code!r} message={self.message!r}>"


class ValidationError(SanghError):
    """Incomplete or contradictory input (location, documents, membership)."""

    status_code = _HTTP_422
    code = "VALIDATION_ERROR"


class InvalidTenureError(ValidationError):
    """An office bearer term whose end is not exactly two years after its start."""

    code = "INVALID_TENURE"


class ConflictError(SanghError):
    """Duplicate unit, office bearer, member, or re-review of a decided application."""

    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class AuthorityError(SanghError):
    """Caller's role or unit does not grant authority over the target."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "INSUFFICIENT_AUTHORITY"


class NotFoundError(SanghError):
    """Unit, member, application or user missing."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class InvariantViolation(SanghError):
    """Operation would break a structural invariant (e.g. minimum city members)."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVARIANT_VIOLATION"
