"""
LightX Relay - Main Application

FastAPI application with:
- One relay endpoint: POST /lightx/run-tool (also /api/v1/lightx/run-tool)
- Structured logging with structlog
- Prometheus metrics
- Global exception handling
- Shared outbound httpx client
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from lightx_relay.core.config import settings
from lightx_relay.core.logging import setup_logging, get_logger, LogContext
from lightx_relay.core.exceptions import register_exception_handlers
from lightx_relay.core.metrics import set_app_info, http_requests_total, http_request_duration_seconds
from lightx_relay.api.v1 import api_v1_router
from lightx_relay.api.v1.run_tool import router as run_tool_router
from lightx_relay.api.dependencies import create_http_client


# =============================================================================
# Initialize Logging
# =============================================================================
setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=settings.LOG_FORMAT_JSON
)
logger = get_logger(__name__)


# =============================================================================
# Lifespan Handler
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - startup and shutdown."""
    logger.info(
        "application_starting",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        lightx_base_url=settings.LIGHTX_BASE_URL
    )

    if not settings.LIGHTX_API_KEY:
        logger.warning("lightx_api_key_missing", message="run-tool requests will fail until LIGHTX_API_KEY is set")

    app.state.http_client = create_http_client(settings)

    set_app_info(
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT
    )

    logger.info("application_ready")

    yield

    logger.info("application_shutting_down")
    await app.state.http_client.aclose()
    logger.info("application_shutdown_complete")


# =============================================================================
# Create FastAPI Application
# =============================================================================
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Relay for the LightX image-editing API.

    `POST /lightx/run-tool` takes `{imageUrl, tool, params}` and:

    1. **Probe** - HEAD the source image for size and type
    2. **Slot** - request a LightX upload slot
    3. **Fetch** - download the source image
    4. **Transfer** - PUT it into the slot
    5. **Invoke** - POST /<tool> with the staged image
    6. **Poll** - POST /order-status until active or failed

    `text2image` skips the image stages.
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# =============================================================================
# Middleware
# =============================================================================

# CORS
cors_origins = settings.CORS_ORIGINS.split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_request_timing(request: Request, call_next):
    """Track request timing for metrics."""
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    http_request_duration_seconds.labels(
        method=request.method,
        endpoint=request.url.path
    ).observe(duration)

    http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code
    ).inc()

    response.headers["X-Process-Time"] = str(duration)

    return response


# Request context middleware (registered last, so it runs first)
@app.middleware("http")
async def add_request_context(request: Request, call_next):
    """Tag every log line of a request with one request id."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    with LogContext(request_id=request_id):
        response = await call_next(request)

    response.headers["X-Request-ID"] = request_id
    return response


# =============================================================================
# Register Exception Handlers
# =============================================================================
register_exception_handlers(app)


# =============================================================================
# Include API Routers
# =============================================================================
app.include_router(api_v1_router)

# Unversioned path used by existing client apps
app.include_router(run_tool_router, prefix="/lightx", tags=["relay"])


# =============================================================================
# Root Endpoints
# =============================================================================

@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": "LightX proxy is running",
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "docs": "/api/docs",
        "run_tool": "/lightx/run-tool",
        "metrics": "/api/v1/metrics"
    }


@app.get("/health", tags=["health"])
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }


# =============================================================================
# Development Server
# =============================================================================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "lightx_relay.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower()
    )
