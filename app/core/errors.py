"""
Domain errors raised by feature services.

Services raise these instead of HTTPException so they stay usable outside a
request; app.main translates them into JSON responses.
"""
from typing import Any, Optional

from fastapi import status


class AppError(Exception):
    """Base class for errors that map onto a transport-level response."""
    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: str = "Request could not be processed"
    headers: Optional[dict[str, str]] = None

    def __init__(self, detail: str | None = None, status_code: int | None = None):
        if detail is not None:
            self.detail = detail
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.detail)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.detail}


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Access denied"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Conflict"


class AccessDeniedError(ForbiddenError):
    """
    An authorization denial with its machine-checkable category.

    Rendered as ``{"error", "reason", "category"}``; unauthenticated denials
    carry status 401 and a Bearer challenge.
    """

    def __init__(self, reason: str, category: str):
        self.reason = reason
        self.category = category
        if category == "unauthenticated":
            super().__init__("Not authenticated", status.HTTP_401_UNAUTHORIZED)
            self.headers = {"WWW-Authenticate": "Bearer"}
        else:
            super().__init__(reason)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.detail, "reason": self.reason, "category": self.category}
