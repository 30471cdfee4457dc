from fastapi import Request
from slowapi import Limiter
import logging
import os

from utils.config import Settings

logger = logging.getLogger("backend.limiter")

_submit_limit = "30/minute"


def forwarded_for_ip(request: Request) -> str:
    """Resolve client IP using X-Forwarded-For first, then fallback to socket IP."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        ip = xff.split(",")[0].strip()
        if ip:
            return ip
    return request.client.host if request.client else ""


def _create_limiter() -> Limiter:
    """Create limiter with Redis storage if REDIS_URL is set, otherwise in-memory."""
    redis_url = os.environ.get("REDIS_URL")
    if redis_url:
        logger.info("Using Redis for rate limiting")
        return Limiter(key_func=forwarded_for_ip, storage_uri=redis_url)
    logger.info("Using in-memory rate limiting (Redis not configured)")
    return Limiter(key_func=forwarded_for_ip)


def configure_limiter(settings: Settings) -> Limiter:
    """Apply per-app settings to the shared limiter and return it."""
    global _submit_limit
    _submit_limit = settings.submit_rate_limit
    limiter.enabled = settings.rate_limit_enabled
    return limiter


def submit_limit() -> str:
    return _submit_limit


# Global limiter instance shared by the app and the routers' decorators
limiter = _create_limiter()
