"""
Job API routes.

Read-only status inspection for send jobs.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.auth import require_api_key
from app.dependencies.gateway import get_gateway
from app.gateway import DeliveryGateway


router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.get("/counts", response_model=dict)
async def get_job_counts(
    _: str = Depends(require_api_key),
    gateway: DeliveryGateway = Depends(get_gateway)
):
    """Current number of jobs per state."""
    return gateway.job_counts()


@router.get("/{job_id}", response_model=dict)
async def get_job(
    job_id: str,
    _: str = Depends(require_api_key),
    gateway: DeliveryGateway = Depends(get_gateway)
):
    """Get a send job by id."""
    job = await gateway.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found"
        )
    return job.to_dict()
