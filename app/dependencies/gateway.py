"""
Gateway dependency for FastAPI routes.
"""
from fastapi import HTTPException, Request, status

from app.gateway import DeliveryGateway


def get_gateway(request: Request) -> DeliveryGateway:
    """Return the delivery gateway created at startup."""
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Delivery gateway not initialised"
        )
    return gateway
