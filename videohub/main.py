"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from videohub.core.config import settings
from videohub.core.logging import setup_logging
from videohub.core.metrics import get_content_type, get_metrics, set_app_info
from videohub.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
    TracingMiddleware,
)
from videohub.core.storage import get_media_storage
from videohub.core.tracing import setup_tracing, shutdown_tracing
from videohub.modules.transcoding import router as transcoding_router
from videohub.modules.transcoding import ws_router as transcoding_ws_router
from videohub.modules.transcoding.exceptions import TranscodeError
from videohub.modules.transcoding.registry import get_progress_registry, run_reaper
from videohub.modules.transcoding.service import shutdown_transcode_service
from videohub.modules.video import VideoServiceError
from videohub.modules.video import router as video_router

logger = logging.getLogger(__name__)

# Set up logging with correlation IDs
setup_logging(
    level=settings.log_level,
    json_format=settings.LOG_JSON_FORMAT,
    include_stack_trace=True,
)

# Set up distributed tracing
if settings.TRACING_ENABLED:
    setup_tracing(
        service_name=settings.PROJECT_NAME,
        service_version=settings.VERSION,
        environment=settings.environment,
        otlp_endpoint=settings.OTLP_ENDPOINT,
        enable_console_export=settings.TRACING_CONSOLE_EXPORT,
    )

# Set application info for metrics
set_app_info(version=settings.VERSION, environment=settings.environment)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create storage roots, run the progress reaper, stop jobs on exit."""
    get_media_storage().ensure_directories()
    reaper = asyncio.create_task(
        run_reaper(
            get_progress_registry(),
            ttl_seconds=settings.PROGRESS_ENTRY_TTL_SECONDS,
            interval_seconds=settings.PROGRESS_REAPER_INTERVAL_SECONDS,
        ),
        name="progress-reaper",
    )
    logger.info(f"{settings.PROJECT_NAME} v{settings.VERSION} started")
    try:
        yield
    finally:
        reaper.cancel()
        await asyncio.gather(reaper, return_exceptions=True)
        await shutdown_transcode_service()
        shutdown_tracing()
        logger.info(f"{settings.PROJECT_NAME} stopped")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
## Video upload and transcoding API

* **Videos** - Upload, list, inspect and delete source videos
* **Transcoding** - MP4, HLS and DASH renditions via FFmpeg
* **Progress** - Poll `/api/transcode/progress/{id}` or subscribe to `/ws/transcode/{id}`
    """,
    openapi_tags=[
        {"name": "health", "description": "Health check endpoints"},
        {"name": "videos", "description": "Source video management"},
        {"name": "transcoding", "description": "Transcode jobs and their progress"},
    ],
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add monitoring middleware
app.add_middleware(RequestLoggingMiddleware, log_request_body=False)
app.add_middleware(TracingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(MetricsMiddleware)


@app.exception_handler(TranscodeError)
async def transcode_error_handler(request: Request, exc: TranscodeError) -> JSONResponse:
    """Render transcode errors as ``{"error": message}``."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(VideoServiceError)
async def video_error_handler(request: Request, exc: VideoServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        dict: Health status with "healthy" value.
    """
    return {"status": "healthy"}


@app.get("/metrics", tags=["health"], include_in_schema=False)
async def prometheus_metrics() -> Response:
    """Metrics in Prometheus text format."""
    return Response(content=get_metrics(), media_type=get_content_type())


# Include routers
app.include_router(video_router, prefix=settings.API_PREFIX)
app.include_router(transcoding_router, prefix=settings.API_PREFIX)
app.include_router(transcoding_ws_router)

# Static delivery of sources and renditions
app.mount("/videos", StaticFiles(directory=settings.UPLOADS_DIR, check_dir=False), name="videos")
app.mount("/transcoded", StaticFiles(directory=settings.TRANSCODED_DIR, check_dir=False), name="transcoded")
