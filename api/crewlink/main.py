from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from starlette.requests import Request

from crewlink.api.router import api_router
from crewlink.core.config import get_settings
from crewlink.core.telemetry import TelemetryRuntime, setup_api_telemetry, shutdown_api_telemetry
from crewlink.services.notifications import build_event_bus
from crewlink.services.repository import get_repository
from crewlink.services.skills import SkillCatalogCache

settings = get_settings()
_telemetry_runtime: TelemetryRuntime | None = None
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app_: FastAPI):
    global _telemetry_runtime
    repository = get_repository()
    app_.state.event_bus = build_event_bus(repository, settings)
    app_.state.skill_cache = SkillCatalogCache(
        repository.list_skills,
        ttl_seconds=settings.skill_cache_ttl_seconds,
    )
    try:
        yield
    finally:
        await app_.state.event_bus.drain()
        if _telemetry_runtime is not None:
            shutdown_api_telemetry(app_, _telemetry_runtime)
            _telemetry_runtime = None
        await repository.close()
        get_repository.cache_clear()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
_telemetry_runtime = setup_api_telemetry(app, settings)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app.include_router(api_router)
