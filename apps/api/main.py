"""
VideoTube - FastAPI Backend
Main application entry point: lifespan, error boundary and API routing.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings, validate_security_settings
from database import DocumentStore
import models  # noqa: F401
from routers import (
    health,
    users,
    videos,
    comments,
    tweets,
    likes,
    subscriptions,
    playlists,
    dashboard,
)
from routers.envelope import error_body
from services.errors import ApiError
from services.object_store import LocalObjectStore

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
SIZE_CAPPED_CONTENT_TYPES = ("application/json", "application/x-www-form-urlencoded")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting VideoTube API...")
    validate_security_settings()
    store = DocumentStore(settings.DATABASE_URL)
    await store.connect()
    if settings.AUTO_CREATE_DB_SCHEMA:
        await store.create_schema()
        print("🗄️ Database schema verified.")
    app.state.store = store
    app.state.object_store = LocalObjectStore(settings.MEDIA_ROOT, settings.MEDIA_BASE_URL)
    yield
    # Shutdown
    print("👋 Shutting down API...")
    await store.close(drain_seconds=settings.SHUTDOWN_DRAIN_SECONDS)


app = FastAPI(
    title="VideoTube API",
    description="Video sharing backend: channels, videos, comments, tweets, likes and playlists",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def limit_body_size(request: Request, call_next):
    """Reject JSON and url-encoded bodies above MAX_JSON_BODY_BYTES."""
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(SIZE_CAPPED_CONTENT_TYPES):
        length = request.headers.get("content-length", "")
        if length.isdigit():
            size = int(length)
        else:
            # Chunked bodies carry no length; the body read here is replayed to the endpoint.
            size = len(await request.body())
        if size > settings.MAX_JSON_BODY_BYTES:
            return JSONResponse(status_code=413, content=error_body(413, "Request body too large"))
    return await call_next(request)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc, ApiError):
        message, errors = exc.message, exc.errors
    elif isinstance(exc.detail, str):
        message, errors = exc.detail, []
    else:
        message, errors = "Request failed", [exc.detail]
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, message, errors),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content=error_body(400, "Invalid request", exc.errors()))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body(500, "Internal server error"))


# Include routers
app.include_router(health.router, prefix=f"{API_PREFIX}/healthcheck", tags=["Health"])
app.include_router(users.router, prefix=f"{API_PREFIX}/users", tags=["Users"])
app.include_router(videos.router, prefix=f"{API_PREFIX}/videos", tags=["Videos"])
app.include_router(comments.router, prefix=f"{API_PREFIX}/comments", tags=["Comments"])
app.include_router(tweets.router, prefix=f"{API_PREFIX}/tweets", tags=["Tweets"])
app.include_router(likes.router, prefix=f"{API_PREFIX}/likes", tags=["Likes"])
app.include_router(subscriptions.router, prefix=f"{API_PREFIX}/subscriptions", tags=["Subscriptions"])
app.include_router(playlists.router, prefix=f"{API_PREFIX}/playlist", tags=["Playlists"])
app.include_router(dashboard.router, prefix=f"{API_PREFIX}/dashboard", tags=["Dashboard"])

app.mount("/media", StaticFiles(directory=settings.MEDIA_ROOT, check_dir=False), name="media")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "VideoTube API",
        "version": "0.1.0",
        "status": "running",
    }
