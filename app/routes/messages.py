"""
Bulk message API routes.
"""
from fastapi import APIRouter, Depends, status

from app.dependencies.gateway import get_gateway
from app.dependencies.rate_limit import check_rate_limit
from app.gateway import DeliveryGateway
from app.schemas.messages import BulkMessagesRequest


router = APIRouter(prefix="/api", tags=["messages"])


@router.post("/send-bulk-messages", status_code=status.HTTP_202_ACCEPTED, response_model=dict)
async def send_bulk_messages(
    request: BulkMessagesRequest,
    _: None = Depends(check_rate_limit),
    gateway: DeliveryGateway = Depends(get_gateway)
):
    """
    Queue up to MAX_BATCH_SIZE messages.

    Returns one job id per message as soon as they are queued.
    Poll /api/jobs/{job_id} for delivery status.
    """
    results = await gateway.submit_batch(request.messages)

    return {
        "success": True,
        "queued": len(results),
        "results": results
    }
