"""
Authentication dependencies for FastAPI.

Callers authenticate with the gateway API key, sent either as
`x-api-key` or as a bearer token.
"""
import hmac

from fastapi import Header, HTTPException, status

from app.config import settings


async def require_api_key(
    x_api_key: str | None = Header(default=None),
    authorization: str | None = Header(default=None)
) -> str:
    """
    Dependency that requires a valid API key.

    Returns the key if valid, raises 401 otherwise.

    Usage:
        @app.get("/protected")
        async def protected_route(api_key: str = Depends(require_api_key)):
            ...
    """
    api_key = x_api_key
    if not api_key and authorization and authorization.startswith("Bearer "):
        api_key = authorization[len("Bearer "):]

    if not api_key or not hmac.compare_digest(api_key, settings.API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )

    return api_key
