"""
shared/exceptions.py
Domain exceptions raised by services and routers.

Every class is an HTTPException so FastAPI renders it as
{"detail": ...} with the class's status code; no extra handler is needed.
"""

from fastapi import HTTPException, status


class APIException(HTTPException):
    """
    Base class for application-specific exceptions.
    Subclasses set default status_code, detail and headers.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = None
    headers = None

    def __init__(self, detail=None, **kwargs):
        kwargs.setdefault("status_code", self.status_code)
        kwargs.setdefault("headers", self.headers)
        super().__init__(detail=detail if detail is not None else self.detail, **kwargs)


class ValidationError(APIException):
    """Malformed or missing input the user can correct."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = "Invalid input"


class NotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Resource not found"


class InvalidTransitionError(APIException):
    """Requested booking status is not reachable from the current one."""
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid status transition"


class AuthError(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Authentication required"
    headers = {"WWW-Authenticate": "Bearer"}


class PermissionDeniedError(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Not authorized"


class ConflictError(APIException):
    """Unique constraint violation or a state that blocks the request."""
    status_code = status.HTTP_409_CONFLICT
    detail = "Resource already exists"


class UpstreamError(APIException):
    """Third-party provider failed. Callers recover with local data."""
    status_code = status.HTTP_502_BAD_GATEWAY
    detail = "Upstream service unavailable"
