"""Health, readiness and metrics endpoints.

  /health   liveness: the process answers.  Reports which store and
            content backends are wired and whether the store responds,
            but always 200; a degraded store is not a reason to restart.
  /ready    readiness: 503 while a configured Redis or SQL store cannot
            be reached, so the load balancer routes elsewhere.
  /metrics  Prometheus text exposition.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from learnx.api.dependencies import get_context
from learnx.repos.kv_store import PersistenceUnavailable
from learnx.services.context import AppContext

router = APIRouter(tags=["health"])

_PROBE_NAMESPACE = "health"
_PROBE_KEY = "probe"


async def _store_ok(ctx: AppContext) -> bool:
    try:
        await ctx.kv.get(_PROBE_NAMESPACE, _PROBE_KEY)
    except PersistenceUnavailable:
        return False
    return True


@router.get("/health")
async def health(ctx: Annotated[AppContext, Depends(get_context)]) -> dict:
    store_ok = await _store_ok(ctx)
    return {
        "status": "ok" if store_ok else "degraded",
        "checks": {
            "store": ctx.store_backend if store_ok else "degraded",
            "content": ctx.settings.content_backend,
        },
        "active_sessions": len(ctx.sessions),
    }


@router.get("/ready")
async def ready(ctx: Annotated[AppContext, Depends(get_context)]) -> Response:
    if not await _store_ok(ctx):
        return Response(status_code=503)
    return Response(status_code=200)


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose all Prometheus metrics in text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
