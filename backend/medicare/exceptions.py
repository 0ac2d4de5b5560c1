"""Error taxonomy shared by services and routers.

Every error is an ``HTTPException`` so the handlers registered in
``medicare.main`` render it without a translation table.
"""

from fastapi import HTTPException, status


class MedicareError(HTTPException):
    """Base class for all domain errors."""

    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str, headers: dict[str, str] | None = None) -> None:
        super().__init__(status_code=self.default_status, detail=detail, headers=headers)

    def __str__(self) -> str:
        return str(self.detail)


class NotFoundError(MedicareError):
    """Raised when an entity id does not resolve."""

    default_status = status.HTTP_404_NOT_FOUND


class UnauthorizedError(MedicareError):
    """Raised when the caller cannot be authenticated."""

    default_status = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str) -> None:
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(MedicareError):
    """Raised when the actor does not own, or may not perform, the action."""

    default_status = status.HTTP_403_FORBIDDEN


class InvalidInputError(MedicareError):
    """Raised for missing or malformed fields, before any mutation."""

    default_status = status.HTTP_400_BAD_REQUEST


class ConflictError(MedicareError):
    """Raised when a state guard is violated."""

    default_status = status.HTTP_409_CONFLICT


class InternalError(MedicareError):
    """Raised for unexpected storage or infrastructure failures."""


class DuplicateRecordError(Exception):
    """Raised by repositories when a unique index rejects a write."""

    def __init__(self, index: str) -> None:
        self.index = index
        super().__init__(f"Duplicate key for index {index}")
