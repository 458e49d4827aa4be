"""
Proxy Guard Service - FastAPI application

Run with:
    uvicorn proxy_guard.main:app --port 8002
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import logging
import time

from . import __version__
from .config import settings
from .monitor import router as monitor_router
from .utils.logging import log_startup, log_request, log_error, setup_logger


# Colored output for every proxy_guard.* logger
setup_logger("proxy_guard", level=logging.DEBUG if settings.DEBUG else logging.INFO)

app = FastAPI(
    title=settings.APP_NAME,
    description="Proxy detection for remote test-taking: faces, gaze, devices and audio",
    version=__version__,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)

# Polled at frame rate; too noisy to trace
QUIET_PATHS = {"/health", "/favicon.ico", "/api/monitor/frame", "/api/monitor/audio"}
QUIET_PREFIXES = ("/api/monitor/state/",)


@app.middleware("http")
async def trace_requests(request: Request, call_next):
    """Trace each request with its status and duration."""
    path = request.url.path
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception as e:
        log_error("RequestError", f"{request.method} {path}: {e}")
        raise

    if path not in QUIET_PATHS and not path.startswith(QUIET_PREFIXES):
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        log_request(request.method, path, response.status_code, elapsed_ms)
    return response


# The capture page may be served from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # wildcard origins forbid credentials
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(monitor_router)


@app.on_event("startup")
async def startup_event():
    """Print the banner and optionally load the dlib models."""
    log_startup(settings.APP_NAME, settings.PORT, {
        "Video source": settings.VIDEO_SOURCE,
        "Head turn": f"{settings.HEAD_MOVEMENT_THRESHOLD} deg for {settings.HEAD_MOVEMENT_DURATION_THRESHOLD}s",
        "Gaze down": f"{settings.EYE_DOWN_THRESHOLD}s",
        "Device window": f"{settings.DETECTION_FRAME_THRESHOLD} ticks every {settings.OBJECT_DETECTION_INTERVAL}s",
        "Audio debounce": settings.AUDIO_DEBOUNCE_EVENTS,
        "Debug": settings.DEBUG,
    })

    if settings.PRELOAD_MODELS:
        from .monitor.models import preload_models
        try:
            preload_models()
        except Exception as e:
            log_error("ModelPreload", str(e))


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": __version__
    }


@app.get("/")
async def root():
    return {
        "message": settings.APP_NAME,
        "docs": "/docs" if settings.DEBUG else None,
        "monitor": "/api/monitor"
    }
