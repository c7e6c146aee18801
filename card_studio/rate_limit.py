"""
Rate limiting for the expensive generation routes (slowapi).

Usage on a route (the handler must accept ``request: Request``)::

    @router.post("/generate-product-video")
    @limiter.limit(GENERATION_LIMIT)
    async def generate_product_video(request: Request, ...):
        ...
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request, Response
from fastapi.responses import JSONResponse

from card_studio.config import get_settings

settings = get_settings()

GENERATION_LIMIT = settings.GENERATION_RATE_LIMIT

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Rate limit errors in the API's ``{success, message}`` shape."""
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": f"Rate limit exceeded: {exc.detail}. Please try again later.",
        },
        headers={"Retry-After": "60"},
    )
