"""
Event API routes.

The messaging bridge reports inbound activity here; each event is validated
against its kind's schema and handed to the dispatcher.
"""
from fastapi import APIRouter, Depends, status

from app.dependencies.auth import require_api_key
from app.dependencies.gateway import get_gateway
from app.gateway import DeliveryGateway
from app.schemas.events import EventEnvelope, validate_event


router = APIRouter(prefix="/api/events", tags=["events"])


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=dict)
async def receive_event(
    request: EventEnvelope,
    _: str = Depends(require_api_key),
    gateway: DeliveryGateway = Depends(get_gateway)
):
    """
    Accept an event for callback delivery.

    Returns immediately; delivery status is tracked in the delivery ledger.
    """
    payload = validate_event(request.eventKind, request.payload)
    gateway.dispatch_event(request.eventKind, payload)

    return {
        "accepted": True,
        "eventKind": request.eventKind,
        "callbackEnabled": gateway.dispatcher.enabled
    }
