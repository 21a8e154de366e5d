# pizza_service/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from pizza_service.core.context import ServiceContext
from pizza_service.core.database import get_db
from pizza_service.core.errors import UnauthorizedError
from pizza_service.core.request_context import set_request_context
from pizza_service.services.auth_manager import AuthManager
from pizza_service.services.catalog import CatalogService
from pizza_service.services.identity import Identity
from pizza_service.services.orders import OrderService

# auto_error=False: we answer 401 with our own body, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


def get_context(request: Request) -> ServiceContext:
    return request.app.state.services


def get_auth_manager(ctx: ServiceContext = Depends(get_context)) -> AuthManager:
    return ctx.auth


def get_catalog_service(ctx: ServiceContext = Depends(get_context)) -> CatalogService:
    return ctx.catalog


def get_order_service(ctx: ServiceContext = Depends(get_context)) -> OrderService:
    return ctx.orders


def get_optional_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    auth: AuthManager = Depends(get_auth_manager),
) -> Optional[Identity]:
    """Caller behind the bearer token, or ``None`` for anonymous/invalid tokens."""
    token = credentials.credentials if credentials else None
    identity = auth.authenticate(db, token)
    if identity is not None:
        # read back by the observability middleware
        request.state.user = identity
        set_request_context(user_id=str(identity.id))
    return identity


def require_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise UnauthorizedError()
    return identity
