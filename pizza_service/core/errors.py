"""Error taxonomy shared by services and the HTTP layer.

Services raise these; ``pizza_service.main`` renders them as
``{"message": ...}`` bodies with the matching status code. Messages are
part of the public contract, clients match on the exact text.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ServiceError(RuntimeError):
    status_code = 500

    def __init__(self, message: str, *, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_body(self) -> Dict[str, Any]:
        return {"message": self.message, **self.extra}


class ValidationError(ServiceError):
    status_code = 400


class UnauthorizedError(ServiceError):
    status_code = 401

    def __init__(self, message: str = "unauthorized", **kwargs: Any):
        super().__init__(message, **kwargs)


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class ExternalFailureError(ServiceError):
    status_code = 500
