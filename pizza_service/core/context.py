"""Explicitly constructed service graph.

The app builds one ``ServiceContext`` at import time and keeps it on
``app.state.services``; tests build their own with ``build_context(...)``
overrides so each test gets isolated signing keys and registries.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

import httpx

from pizza_service.core import config
from pizza_service.core.metrics import InMemoryRequestMetrics, request_metrics
from pizza_service.integrations.factory import FactoryClient
from pizza_service.services.auth_manager import AuthManager
from pizza_service.services.catalog import CatalogService
from pizza_service.services.orders import OrderService
from pizza_service.services.passwords import PasswordHasher
from pizza_service.services.revocation import DatabaseRevocationRegistry, RevocationRegistry
from pizza_service.services.tokens import TokenCodec

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    hasher: PasswordHasher
    codec: TokenCodec
    registry: RevocationRegistry
    factory: FactoryClient
    auth: AuthManager
    catalog: CatalogService
    orders: OrderService
    metrics: InMemoryRequestMetrics


def _resolve_secret(secret: Optional[str]) -> str:
    if secret:
        return secret
    if config.IS_PROD:
        raise RuntimeError("JWT_SECRET_KEY must be set in production")
    logger.warning("JWT_SECRET_KEY not set; using an ephemeral key, sessions will not survive restarts")
    return secrets.token_urlsafe(32)


def build_context(
    *,
    jwt_secret: Optional[str] = None,
    bcrypt_rounds: Optional[int] = None,
    registry: Optional[RevocationRegistry] = None,
    factory_url: Optional[str] = None,
    factory_api_key: Optional[str] = None,
    factory_transport: Optional[httpx.BaseTransport] = None,
    factory: Optional[FactoryClient] = None,
    profile_update_revocation: Optional[str] = None,
    strict_order_pricing: Optional[bool] = None,
    metrics: Optional[InMemoryRequestMetrics] = None,
) -> ServiceContext:
    metrics = metrics or request_metrics
    hasher = PasswordHasher(rounds=bcrypt_rounds or config.BCRYPT_ROUNDS)
    codec = TokenCodec(
        _resolve_secret(jwt_secret or config.JWT_SECRET_KEY),
        algorithm=config.JWT_ALGORITHM,
        expire_minutes=config.JWT_EXPIRE_MINUTES,
    )
    registry = registry or DatabaseRevocationRegistry()
    factory = factory or FactoryClient(
        factory_url if factory_url is not None else config.FACTORY_URL,
        factory_api_key if factory_api_key is not None else config.FACTORY_API_KEY,
        timeout=config.FACTORY_TIMEOUT_SECONDS,
        transport=factory_transport,
    )
    auth = AuthManager(
        hasher,
        codec,
        registry,
        profile_update_revocation=profile_update_revocation or config.PROFILE_UPDATE_REVOCATION,
        metrics=metrics,
    )
    orders = OrderService(
        factory,
        strict_pricing=config.STRICT_ORDER_PRICING if strict_order_pricing is None else strict_order_pricing,
        metrics=metrics,
    )
    return ServiceContext(
        hasher=hasher,
        codec=codec,
        registry=registry,
        factory=factory,
        auth=auth,
        catalog=CatalogService(),
        orders=orders,
        metrics=metrics,
    )
