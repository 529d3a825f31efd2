"""
Job endpoints for API v1.

Jobs are the anchor of budgets: every budget, milestone and payment
belongs to exactly one job.  The event log records what happened to a
job's budget over time.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from freelance_marketplace_api.app.core.exceptions import to_http_exception
from freelance_marketplace_api.app.core.security import ROLE_ADMIN, ROLE_CLIENT, get_current_user, require_roles
from freelance_marketplace_api.app.schemas.job import JobCreate, JobEventRead, JobRead
from freelance_marketplace_api.app.services.job_event_service import JobEventService
from freelance_marketplace_api.app.services.job_service import JobService


router = APIRouter()


@router.post("/", response_model=JobRead, status_code=status.HTTP_201_CREATED)
async def create_job(
    job: JobCreate,
    current_user: dict = Depends(require_roles(ROLE_CLIENT, ROLE_ADMIN)),
) -> JobRead:
    return await JobService.create_job(job, current_user.get("user_id"))


@router.get("/", response_model=List[JobRead])
async def list_jobs(
    client_id: Optional[int] = Query(None),
    job_status: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(get_current_user),
) -> List[JobRead]:
    return await JobService.list_jobs(client_id=client_id, status=job_status, limit=limit, offset=offset)


@router.get("/{job_id}", response_model=JobRead)
async def get_job(job_id: int, current_user: dict = Depends(get_current_user)) -> JobRead:
    try:
        return await JobService.get_job(job_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/{job_id}/events", response_model=List[JobEventRead])
async def list_job_events(
    job_id: int,
    event_type: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(get_current_user),
) -> List[JobEventRead]:
    """Return the job's event log, newest first."""
    try:
        await JobService.get_job(job_id)
    except ValueError as e:
        raise to_http_exception(e) from e
    return await JobEventService.list_events(job_id=job_id, event_type=event_type, limit=limit, offset=offset)
