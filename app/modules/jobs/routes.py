from fastapi import APIRouter, Depends
from app.config.permissions_config import Capability
from app.database.supabase_client import get_supabase
from app.modules.jobs.schemas import (
    Job, JobCreate, JobUpdate, JobStatus, JobType, PipelineCreate,
    TransitionRequest, TransitionResponse, JobPreviewResponse,
)
from app.modules.jobs.service import JobService
from app.core.access_policy import Actor
from app.core.dependencies import require_capability, get_current_actor
from supabase import Client
from typing import List, Optional

router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_job_service(supabase: Client = Depends(get_supabase)) -> JobService:
    return JobService(supabase)


@router.post("", response_model=Job, status_code=201)
async def create_job(
    job_data: JobCreate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_JOBS)),
    service: JobService = Depends(get_job_service)
):
    """Create a new job (always starts pending)"""
    return service.create_job(job_data, actor)


@router.post("/pipeline", response_model=List[Job], status_code=201)
async def create_pipeline(
    pipeline_data: PipelineCreate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_JOBS)),
    service: JobService = Depends(get_job_service)
):
    """Create a photo session -> video editing -> design pipeline"""
    return service.create_pipeline(pipeline_data, actor)


@router.get("", response_model=List[Job])
async def list_jobs(
    status: Optional[JobStatus] = None,
    type: Optional[JobType] = None,
    assigned_to: Optional[str] = None,
    client_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    actor: Actor = Depends(get_current_actor),
    service: JobService = Depends(get_job_service)
):
    """List jobs visible to the current user"""
    return service.list_jobs(
        actor,
        status=status,
        job_type=type,
        assigned_to=assigned_to,
        client_id=client_id,
        limit=limit,
        offset=offset,
    )


@router.get("/{job_id}", response_model=Job)
async def get_job(
    job_id: str,
    actor: Actor = Depends(get_current_actor),
    service: JobService = Depends(get_job_service)
):
    """Get job by ID (404 when outside the user's scope)"""
    return service.get_job(job_id, actor)


@router.get("/{job_id}/preview", response_model=JobPreviewResponse)
async def preview_job(
    job_id: str,
    actor: Actor = Depends(get_current_actor),
    service: JobService = Depends(get_job_service)
):
    """Next legal status and the jobs that completing this one unlocks"""
    return service.preview(job_id, actor)


@router.post("/{job_id}/transition", response_model=TransitionResponse)
async def transition_job(
    job_id: str,
    body: TransitionRequest,
    actor: Actor = Depends(get_current_actor),
    service: JobService = Depends(get_job_service)
):
    """Move a job to its next status. The only way to change a job's status."""
    return service.transition_job(job_id, body.status, actor)


@router.put("/{job_id}", response_model=Job)
async def update_job(
    job_id: str,
    job_data: JobUpdate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_JOBS)),
    service: JobService = Depends(get_job_service)
):
    """Edit job details without changing its status"""
    return service.update_job(job_id, job_data, actor)


@router.delete("/{job_id}", status_code=204)
async def delete_job(
    job_id: str,
    actor: Actor = Depends(require_capability(Capability.MANAGE_JOBS)),
    service: JobService = Depends(get_job_service)
):
    """Delete a job that has not been delivered"""
    service.delete_job(job_id, actor)
    return None
