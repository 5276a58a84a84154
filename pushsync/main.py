"""
pushsync delivery registry service entry point.

Serves the device registry, notification feed and preference endpoints the
client core in pushsync.client talks to.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pushsync.api import health, notifications, push
from pushsync.config import settings
from pushsync.services import push_service

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not push_service.is_configured():
        logger.warning("VAPID keys not configured, clients will see push as unavailable")
    yield


app = FastAPI(
    title="pushsync",
    description="Push subscription registry, notification feed and delivery preferences",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
# allow_origins=["*"] is incompatible with allow_credentials=True, so a
# wildcard entry is turned into allow_origin_regex=".*" instead.
_cors_origins = [o for o in settings.CORS_ORIGINS if o != "*"]
_cors_regex = ".*" if len(_cors_origins) < len(settings.CORS_ORIGINS) else None

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_origin_regex=_cors_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(health.router)
app.include_router(push.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")


# ---------------------------------------------------------------------------
# Custom exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})
