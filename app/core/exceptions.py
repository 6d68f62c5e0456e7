"""
Domain exceptions for the fleet management API.

Services raise these directly; the handlers installed in ``main.py`` render
them as ``{"success": false, "error": {"message", "statusCode"}}``.
"""

from fastapi import HTTPException, status


class APIException(HTTPException):
    """
    Base class for all application-specific exceptions.

    Provides default handling of status_code, detail, and headers.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = None
    headers = None

    def __init__(self, detail=None, **kwargs):
        kwargs.setdefault("status_code", self.status_code)
        kwargs.setdefault("headers", self.headers)
        super().__init__(detail=detail or self.detail, **kwargs)


class ValidationFailed(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid request"


class InvalidHierarchy(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid vendor hierarchy"


class InvalidCredentials(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Please authenticate"
    headers = {"WWW-Authenticate": "Bearer"}


class PermissionDenied(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Permission denied"


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Resource not found"


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    detail = "Resource already exists"


class ServiceUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Service unavailable"


def error_body(message, status_code: int) -> dict:
    return {"success": False, "error": {"message": message, "statusCode": status_code}}
