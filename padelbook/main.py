"""PadelBook API application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from padelbook.core.config import settings
from padelbook.core.errors import BookingError, InfrastructureError
from padelbook.routes import admin, courts, members, reservations

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("%s starting", settings.app_name)
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    docs_url=f"{settings.api_prefix}/docs",
    openapi_url=f"{settings.api_prefix}/openapi.json",
    lifespan=lifespan,
)

# CORS - permissive in dev, lock down in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(status_code=exc.status_code, content={"detail": [exc.to_detail()]}, headers=headers)


@app.exception_handler(OperationalError)
async def store_error_handler(request: Request, exc: OperationalError):
    """Store failures outside a retried write, e.g. on a plain read."""
    logger.warning("%s %s store failure: %s", request.method, request.url.path, exc.orig)
    return await booking_error_handler(request, InfrastructureError())


# Mount routes
app.include_router(members.router, prefix=settings.api_prefix)
app.include_router(courts.router, prefix=settings.api_prefix)
app.include_router(reservations.router, prefix=settings.api_prefix)
app.include_router(admin.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.app_name}
