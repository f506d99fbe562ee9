from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import date, datetime
from enum import Enum

from app.modules.notifications.schemas import NotificationIntent


class JobStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"
    DELIVERED = "delivered"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


class JobType(str, Enum):
    PHOTO_SESSION = "photo_session"
    VIDEO_EDITING = "video_editing"
    DESIGN = "design"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


# Order of the multi-stage pipeline: each stage depends on the previous one
PIPELINE_STAGES = (JobType.PHOTO_SESSION, JobType.VIDEO_EDITING, JobType.DESIGN)


class WorkflowHistoryEntry(BaseModel):
    previous_stage: str
    new_stage: str
    transitioned_at: datetime
    transitioned_by: str

    class Config:
        frozen = True


class Job(BaseModel):
    id: str
    title: str
    type: JobType
    status: JobStatus = JobStatus.PENDING
    client_id: Optional[str] = None
    assigned_to: Optional[str] = None
    created_by: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[date] = None
    session_date: Optional[datetime] = None
    price: Optional[float] = None
    depends_on_job_id: Optional[str] = None
    workflow_stage: Optional[str] = None
    workflow_order: Optional[int] = None
    workflow_history: Optional[List[WorkflowHistoryEntry]] = None  # None means history is not tracked
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        frozen = True


class JobCreate(BaseModel):
    title: str
    type: JobType
    client_id: str
    due_date: date
    assigned_to: Optional[str] = None
    session_date: Optional[datetime] = None
    description: Optional[str] = None
    price: Optional[float] = None


class PipelineStageCreate(BaseModel):
    title: Optional[str] = None  # defaults to "<pipeline title> - <stage>"
    assigned_to: Optional[str] = None
    due_date: Optional[date] = None
    price: Optional[float] = None


class PipelineCreate(BaseModel):
    title: str
    client_id: str
    due_date: date
    session_date: Optional[datetime] = None
    description: Optional[str] = None
    photo_session: PipelineStageCreate = Field(default_factory=PipelineStageCreate)
    video_editing: PipelineStageCreate = Field(default_factory=PipelineStageCreate)
    design: PipelineStageCreate = Field(default_factory=PipelineStageCreate)


class JobUpdate(BaseModel):
    """Same-stage edits. Status changes go through the transition endpoint."""
    title: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    due_date: Optional[date] = None
    session_date: Optional[datetime] = None
    price: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def reject_status(cls, data):
        if isinstance(data, dict) and "status" in data:
            raise ValueError("status cannot be edited directly, use the transition endpoint")
        return data


class TransitionRequest(BaseModel):
    status: str


class TransitionResponse(BaseModel):
    job: Job
    notifications: List[NotificationIntent]
    notifications_dispatched: bool = True


class JobPreviewResponse(BaseModel):
    job_id: str
    status: JobStatus
    allowed_transitions: List[JobStatus]
    unlocks: List[Job]
