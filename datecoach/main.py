# datecoach/main.py
"""
Analysis backend with provider and persistence lifecycle management.
"""

import time
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request

from datecoach.config import settings
from datecoach.infrastructure.observability.logging import get_logger, setup_logging
from datecoach.repositories.analysis_repository import (
    InMemoryAnalysisRepository,
    SupabaseAnalysisRepository,
)
from datecoach.routes import analysis, health
from datecoach.services.analysis_service import AnalysisRequestService
from datecoach.services.orchestration.orchestrator import ProviderOrchestrator
from datecoach.services.orchestration.providers import build_providers
from datecoach.services.photo_analysis_service import PhotoAnalysisService

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


def _build_repository(client: httpx.AsyncClient, table: str):
    if settings.supabase_configured():
        return SupabaseAnalysisRepository(
            settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY, table, client
        )
    logger.warning("Supabase not configured, analyses kept in memory", table=table)
    return InMemoryAnalysisRepository(table)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build shared clients and services on startup, release them on shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.PROVIDER_TIMEOUT_SECONDS))
    providers = build_providers(settings, client=http_client)
    orchestrator = ProviderOrchestrator(providers)

    app.state.http_client = http_client
    app.state.orchestrator = orchestrator
    app.state.analysis_service = AnalysisRequestService(
        orchestrator, _build_repository(http_client, settings.SUPABASE_ANALYSIS_TABLE)
    )
    app.state.photo_analysis_service = PhotoAnalysisService(
        orchestrator, _build_repository(http_client, settings.SUPABASE_PHOTO_ANALYSIS_TABLE)
    )

    logger.info("All services initialized successfully", providers=settings.configured_providers())

    yield

    logger.info("Application shutting down")

    shutdown_errors = []
    closers = [(name.value, provider.aclose) for name, provider in providers.items()]
    for name, close in [*closers, ("http_client", http_client.aclose)]:
        try:
            await close()
        except Exception as e:
            logger.error("Error closing client", client=name, error=str(e))
            shutdown_errors.append(f"{name}: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="DateCoach Analysis",
    description="Dual-provider AI analysis backend for the dating coach clients",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(analysis.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
