"""
Rate limit dependency for FastAPI routes.
"""
from fastapi import Depends, HTTPException

from app.dependencies.auth import require_api_key
from app.routes.metrics import track_rate_limit_exceeded
from app.services.rate_limiter import rate_limiter


async def check_rate_limit(api_key: str = Depends(require_api_key)):
    """
    Check rate limit for the calling API key.

    Raises 429 if limit exceeded.
    """
    allowed, retry_after = await rate_limiter.is_allowed(api_key)

    if not allowed:
        track_rate_limit_exceeded()
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded. Please try again later.",
            headers={"Retry-After": str(retry_after)}
        )
