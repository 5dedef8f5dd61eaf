"""Campus assistant - FastAPI application"""
from contextlib import asynccontextmanager
import logging
import time
from datetime import datetime

import httpx
from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings, _running_tests
from .database import init_db, engine
from .services.cache_service import cache_service
from .services.message_router import build_message_router
from .routers import api_router, webhook
from .middleware.logging_middleware import RequestLoggingMiddleware
from .utils.logging_config import setup_logging
from .utils.turn_dispatcher import TurnDispatcher

settings = get_settings()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not _running_tests():
        setup_logging(log_level=settings.log_level, log_dir=settings.log_dir)

    await init_db()

    if settings.redis_url:
        _ = await cache_service.connect(settings.redis_url)

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(float(settings.oracle_timeout_seconds)))
    app.state.message_router = build_message_router(settings, http_client=http_client, cache=cache_service)
    app.state.dispatcher = TurnDispatcher(logger=logging.getLogger("campus_assistant.turns"))

    logger.info(
        "Startup complete whatsapp=%s ai=%s",
        "configured" if settings.whatsapp_configured else "not configured",
        "configured" if settings.ai_configured else "rule-based",
    )

    yield

    await app.state.dispatcher.drain(timeout=30.0)
    await http_client.aclose()
    await cache_service.disconnect()

    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="WhatsApp campus assistant: navigation, university Q&A and credit-metered usage.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(webhook.router)
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/health/detailed")
async def health_check_detailed():
    checks: dict[str, object] = {}
    result: dict[str, object] = {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": "1.0.0",
        "checks": checks,
    }

    try:
        start = time.time()
        async with engine.connect() as conn:
            _ = await conn.execute(text("SELECT 1"))
        checks["database"] = {"status": "ok", "response_time_ms": round((time.time() - start) * 1000, 2)}
    except SQLAlchemyError as e:
        result["status"] = "degraded"
        checks["database"] = {"status": "error", "error": str(e)}

    checks["cache"] = {"status": "redis" if cache_service.is_connected else "memory"}
    checks["ai_service"] = {"status": "configured" if settings.ai_configured else "not_configured"}
    checks["whatsapp"] = {"status": "configured" if settings.whatsapp_configured else "not_configured"}
    return result


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("campus_assistant.main:app", host="0.0.0.0", port=8000, reload=True)
