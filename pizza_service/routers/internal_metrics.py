from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from pizza_service.core.context import ServiceContext
from pizza_service.deps import get_context, get_optional_identity
from pizza_service.services.access_policy import Action, ensure_allowed
from pizza_service.services.identity import Identity

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("")
def request_metrics_snapshot(
    identity: Optional[Identity] = Depends(get_optional_identity),
    ctx: ServiceContext = Depends(get_context),
):
    ensure_allowed(identity, Action.VIEW_METRICS)
    return {"endpoints": ctx.metrics.snapshot(), "events": ctx.metrics.events()}
