"""
HTTP error taxonomy for the JustHike API.

Every error a handler raises is one of these. The application renders them
as ``{"success": false, "message": ...}`` (see ``main.py``).
"""

from fastapi import HTTPException, status


class ApiError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message=None, headers=None):
        super().__init__(
            status_code=self.status_code,
            detail=message or self.default_message,
            headers=headers,
        )


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class Conflict(ApiError):
    # Duplicate records are reported as a plain bad request.
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Already exists"


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InternalError(ApiError):
    pass
