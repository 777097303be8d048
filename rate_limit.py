from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from config import RATE_LIMIT, RATE_LIMIT_ENABLED


def build_limiter(limit: str = RATE_LIMIT, enabled: bool = RATE_LIMIT_ENABLED) -> Limiter:
    """One fixed window per client address, shared by every non-exempt route.

    Application limits live in a single global scope, so requests to different
    endpoints draw from the same budget. SlowAPIMiddleware enforces them.
    """
    return Limiter(
        key_func=get_remote_address,
        application_limits=[limit],
        strategy="fixed-window",
        enabled=enabled,
    )


limiter = build_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": "Too many requests from this IP, please try again later.",
        },
    )
