"""
Delivery API routes.

Read-only inspection of callback delivery records.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.auth import require_api_key
from app.dependencies.gateway import get_gateway
from app.gateway import DeliveryGateway


router = APIRouter(prefix="/api/deliveries", tags=["deliveries"])


@router.get("/counts", response_model=dict)
async def get_delivery_counts(
    _: str = Depends(require_api_key),
    gateway: DeliveryGateway = Depends(get_gateway)
):
    """Number of in-memory delivery records per state."""
    return gateway.ledger.counts()


@router.get("/{delivery_id}", response_model=dict)
async def get_delivery(
    delivery_id: str,
    _: str = Depends(require_api_key),
    gateway: DeliveryGateway = Depends(get_gateway)
):
    """Get a delivery record by id."""
    record = await gateway.get_delivery(delivery_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Delivery not found"
        )
    return record.to_dict()
