from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from newsadmin.api.content import news_router, videos_router
from newsadmin.api.dependencies import get_optional_user
from newsadmin.api.error_handling import register_exception_handlers
from newsadmin.api.feedback import feedback_router
from newsadmin.api.routes import admin_router, auth_router
from newsadmin.api.schemas import ok
from newsadmin.config import get_settings
from newsadmin.logging import get_logger, set_correlation_id
from newsadmin.service.auth import IdentityContext

logger = get_logger(__name__)

__version__ = "1.0.0"

HEALTH_CHECK_TIMEOUT_SECONDS = 3


@asynccontextmanager
async def lifespan(app: FastAPI):
    from newsadmin.service.runtime import get_runtime

    runtime = get_runtime()
    await runtime.bootstrap_admin()
    logger.info("app_started", environment=runtime.settings.environment.value)

    yield

    try:
        get_runtime().close()
        logger.info("runtime_cleanup_complete")
    except Exception as exc:
        logger.error("shutdown_failed", error=str(exc))


app = FastAPI(title="News Admin API", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
    max_age=3600,
)


@app.middleware("http")
async def add_correlation_id(request, call_next):
    """Tag each request with an X-Request-ID, taken from the client or generated."""
    correlation_id = set_correlation_id(request.headers.get("X-Request-ID"))
    response = await call_next(request)
    response.headers["X-Request-ID"] = correlation_id
    return response


register_exception_handlers(app)
app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(news_router)
app.include_router(videos_router)
app.include_router(feedback_router)


@app.get("/health")
async def health():
    from newsadmin.service.runtime import get_runtime

    runtime = get_runtime()
    try:
        db_ok = await asyncio.wait_for(
            asyncio.to_thread(runtime.store.ping), HEALTH_CHECK_TIMEOUT_SECONDS
        )
    except asyncio.TimeoutError:
        logger.error("health_check_timeout", timeout=HEALTH_CHECK_TIMEOUT_SECONDS)
        db_ok = False
    except Exception as exc:
        logger.error("health_check_database_failed", error=str(exc))
        db_ok = False

    body: Dict[str, Any] = ok(
        {
            "status": "healthy" if db_ok else "unhealthy",
            "database": "connected" if db_ok else "disconnected",
            "environment": runtime.settings.environment.value,
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        "Server is running" if db_ok else "Database unavailable",
    )
    if not db_ok:
        body["success"] = False
        return JSONResponse(status_code=503, content=body)
    return body


@app.get("/")
async def index(principal: Optional[IdentityContext] = Depends(get_optional_user)):
    caller = {"id": principal.id, "role": principal.role} if principal else None
    return ok(
        {
            "caller": caller,
            "name": app.title,
            "version": __version__,
            "endpoints": {
                "auth": "/api/auth",
                "admin": "/api/admin",
                "news": "/api/news",
                "videos": "/api/videos",
                "feedback": "/api/feedback",
                "health": "/health",
            },
        },
        "News admin API",
    )


def create_app() -> FastAPI:
    return app
