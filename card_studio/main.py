"""Main FastAPI application - Shopee Card Studio"""

import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from card_studio.config import get_settings
from card_studio.api import cache, cards, descriptions, products, schedule, system, videos
from card_studio.rate_limit import limiter, rate_limit_exceeded_handler
from card_studio.services.cache_store import get_cache_store
from card_studio.services.renderer import ffmpeg_available

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Initialize Sentry if DSN is provided
if settings.SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        release="0.1.0",
        integrations=[
            FastApiIntegration(),
        ],
    )
    logging.info("Sentry initialized for environment: %s", settings.SENTRY_ENVIRONMENT)
else:
    logging.info("Sentry disabled (no DSN configured)")

# Prometheus metrics (low-cardinality labels only)
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)
HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
)

# Create FastAPI app
app = FastAPI(
    title="Shopee Card Studio API",
    description="Promotional cards and videos for Shopee affiliate products",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=["Content-Disposition", "X-Video-Id"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    """Errors in the ``{success: false, message}`` shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Catch-all for unhandled exceptions: log, report to Sentry, clean 500."""
    logger.exception("Unhandled exception: %s %s", request.method, request.url)
    if settings.SENTRY_DSN:
        import sentry_sdk
        sentry_sdk.capture_exception(exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"}
    )


@app.on_event("startup")
async def startup_event():
    logger.info("Starting Shopee Card Studio API...")
    store = get_cache_store()
    logger.info("Cache backend: %s", store.backend)
    if not settings.SHOPEE_APP_ID or not settings.SHOPEE_APP_SECRET:
        logger.warning("Shopee credentials not configured - serving sample products")
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY not configured - descriptions use the local template")
    if not ffmpeg_available():
        logger.warning("%s not found on PATH - video generation will fail", settings.FFMPEG_BINARY)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Shopee Card Studio API...")
    await get_cache_store().close()


@app.middleware("http")
async def prometheus_http_middleware(request, call_next):
    """
    Record request metrics with low-cardinality path templates.
    """
    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = getattr(response, "status_code", 500) or 500
        return response
    finally:
        route = request.scope.get("route")
        path = getattr(route, "path", None) or "unmatched"
        if path not in {"/api/metrics", "/metrics"}:
            HTTP_REQUESTS_TOTAL.labels(
                method=request.method,
                path=path,
                status_code=str(status_code),
            ).inc()
            HTTP_REQUEST_DURATION_SECONDS.labels(
                method=request.method,
                path=path,
            ).observe(time.perf_counter() - start)


# Health check
@app.get("/health")
async def health_check():
    """Liveness plus cache backend reachability."""
    store = get_cache_store()
    if store.backend == "redis" and not await store.ping():
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "service": "shopee-card-studio", "error": "Redis unreachable"}
        )
    return {"status": "healthy", "service": "shopee-card-studio", "version": "0.1.0", "cache": store.backend}


@app.get("/api/health")
async def health_check_api():
    """Health check endpoint (API namespace, for reverse proxies)."""
    return await health_check()


@app.get("/api/metrics")
async def prometheus_metrics():
    """Prometheus scrape endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Include routers
app.include_router(products.router, prefix="/api")
app.include_router(descriptions.router, prefix="/api")
app.include_router(cards.router, prefix="/api")
app.include_router(videos.router, prefix="/api")
app.include_router(schedule.router, prefix="/api")
app.include_router(cache.router, prefix="/api")
app.include_router(system.router, prefix="/api")


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "service": "Shopee Card Studio API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "products": "/api/products",
            "descriptions": "/api/generate-description",
            "cards": "/api/generate-product-card",
            "videos": "/api/generate-product-video",
            "schedule": "/api/schedule",
            "cache": "/api/cache/status",
            "status": "/api/system-status",
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "card_studio.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
