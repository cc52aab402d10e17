# datecoach/routes/health.py
"""
Health check endpoints for the analysis backend.
"""

import time

import httpx
from fastapi import APIRouter, Request

from datecoach.config import settings
from datecoach.models.api.analysis_response import HealthResponse

router = APIRouter()


async def _database_check(client: httpx.AsyncClient | None) -> dict:
    """Ping the Supabase REST root when it is configured."""
    if not settings.supabase_configured():
        return {"ok": True, "mode": "in_memory"}
    if client is None:
        return {"ok": False, "error": "HTTP client not initialized"}

    t0 = time.time()
    try:
        response = await client.get(
            f"{settings.SUPABASE_URL.rstrip('/')}/rest/v1/",
            headers={"apikey": settings.SUPABASE_SERVICE_ROLE_KEY},
            timeout=5.0,
        )
        return {
            "ok": response.status_code < 500,
            "status_code": response.status_code,
            "latency_ms": round((time.time() - t0) * 1000, 1),
            "mode": "supabase",
        }
    except httpx.HTTPError as e:
        return {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "datecoach-analysis"}


@router.get("/api/health", response_model=HealthResponse)
async def api_health():
    """Service summary polled by the broker's health check."""
    providers = settings.configured_providers()
    return HealthResponse(
        status="healthy" if providers else "degraded",
        services={
            "api": "ok",
            "analysis_engine": "ok" if providers else "unconfigured",
            "database": "supabase" if settings.supabase_configured() else "in_memory",
        },
        providers=providers,
    )


@router.get("/readyz")
async def readyz(request: Request):
    """Readiness check with providers, database and configuration."""
    checks = {}
    overall_ok = True

    # 1) AI providers
    providers = settings.configured_providers()
    checks["providers"] = {"ok": bool(providers), "configured": providers}
    overall_ok = overall_ok and bool(providers)

    # 2) Database
    checks["database"] = await _database_check(getattr(request.app.state, "http_client", None))
    overall_ok = overall_ok and checks["database"]["ok"]

    # 3) Configuration
    config_issues = []
    if not settings.jwks_url():
        config_issues.append("SUPABASE_URL not set")
    if settings.SUPABASE_URL and not settings.SUPABASE_SERVICE_ROLE_KEY:
        config_issues.append("SUPABASE_SERVICE_ROLE_KEY not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
