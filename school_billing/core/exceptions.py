from typing import Optional

from fastapi import status


INTERNAL_ERROR_MESSAGE = "Internal server error"


class ServiceError(Exception):
    """Base exception for service layer errors; routers turn it into an HTTP error response."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    """Unique constraint clash: duplicate student number, invoice number, username."""

    status_code = status.HTTP_409_CONFLICT
