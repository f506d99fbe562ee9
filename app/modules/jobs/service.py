from supabase import Client
from app.config.settings import settings
from app.core import access_policy
from app.core.access_policy import Actor, JobScope
from app.core.exceptions import AccessDenied, AppError, ConcurrentUpdate, InvalidTransition, NotFound
from app.modules.clients.service import ClientService
from app.modules.jobs.schemas import (
    Job, JobCreate, JobPreviewResponse, JobStatus, JobType, JobUpdate,
    PipelineCreate, PIPELINE_STAGES, TransitionResponse,
)
from app.modules.jobs.workflow import INITIAL_STATUS, TERMINAL_STATUSES, JobWorkflowEngine, TransitionContext
from app.modules.notifications.schemas import NotificationIntent
from app.modules.notifications.service import NotificationService
from app.modules.users.service import UserService
from typing import Any, Dict, List, Optional, Sequence
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class JobService:
    def __init__(
        self,
        supabase: Client,
        engine: Optional[JobWorkflowEngine] = None,
        optimistic_locking: Optional[bool] = None,
    ):
        self.supabase = supabase
        self.engine = engine or JobWorkflowEngine(notify_self=settings.notify_self)
        self.optimistic_locking = settings.optimistic_locking if optimistic_locking is None else optimistic_locking
        self.notifications = NotificationService(supabase)
        self.users = UserService(supabase)
        self.clients = ClientService(supabase)

    # Reads

    def _get_job_row(self, job_id: str) -> Dict[str, Any]:
        try:
            result = self.supabase.table("jobs")\
                .select("*")\
                .eq("id", job_id)\
                .maybe_single()\
                .execute()

            if not result or not result.data:
                raise NotFound("Job", job_id)

            return result.data
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting job {job_id}: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    def get_job_by_id(self, job_id: str) -> Job:
        """Get job by ID without scope checks"""
        return Job(**self._get_job_row(job_id))

    def get_dependents(self, job_id: str) -> List[Job]:
        """Jobs whose prerequisite is job_id"""
        try:
            result = self.supabase.table("jobs")\
                .select("*")\
                .eq("depends_on_job_id", job_id)\
                .execute()
            jobs = [Job(**row) for row in (result.data or [])]
        except Exception as e:
            logger.error(f"Error getting dependents of job {job_id}: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))
        return self.engine.unlock_dependents(job_id, jobs)

    def _client_email(self, client_id: Optional[str]) -> Optional[str]:
        if not client_id:
            return None
        try:
            return self.clients.get_client_by_id(client_id).email
        except NotFound:
            return None

    def _is_client_owner(self, job: Job, actor: Actor) -> bool:
        return access_policy.is_client_owner(self._client_email(job.client_id), actor.email)

    def _can_read(self, job: Job, actor: Actor) -> bool:
        scope = access_policy.job_scope(actor.role)
        if scope is JobScope.ALL:
            return True
        if scope is JobScope.ASSIGNED:
            return job.assigned_to == actor.id
        if scope is JobScope.CLIENT:
            return self._is_client_owner(job, actor)
        return False

    def get_job(self, job_id: str, actor: Actor) -> Job:
        """Get job by ID. Jobs outside the actor's scope are reported as missing."""
        job = self.get_job_by_id(job_id)
        if not self._can_read(job, actor):
            raise NotFound("Job", job_id)
        return job

    def list_jobs(
        self,
        actor: Actor,
        status: Optional[JobStatus] = None,
        job_type: Optional[JobType] = None,
        assigned_to: Optional[str] = None,
        client_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Job]:
        """List jobs visible to the actor: all, assigned to them, or their own as a client"""
        scope = access_policy.job_scope(actor.role)
        if scope is JobScope.NONE:
            raise AccessDenied("Insufficient permissions. Required: view_jobs", role=actor.role, capability="view_jobs")

        client_ids = None
        if scope is JobScope.CLIENT:
            client_ids = self.clients.get_client_ids_for_email(actor.email)
            if not client_ids:
                return []
        try:
            query = self.supabase.table("jobs").select("*")
            if scope is JobScope.ASSIGNED:
                query = query.eq("assigned_to", actor.id)
            elif assigned_to:
                query = query.eq("assigned_to", assigned_to)
            if client_ids is not None:
                query = query.in_("client_id", client_ids)
            if client_id:
                query = query.eq("client_id", client_id)
            if status:
                query = query.eq("status", status.value)
            if job_type:
                query = query.eq("type", job_type.value)
            result = query.order("created_at", desc=True)\
                .limit(limit)\
                .offset(offset)\
                .execute()
            return [Job(**row) for row in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def preview(self, job_id: str, actor: Actor) -> JobPreviewResponse:
        """What happens next: the next legal status and the jobs completing this one would unlock"""
        job = self.get_job(job_id, actor)
        return JobPreviewResponse(
            job_id=job.id,
            status=job.status,
            allowed_transitions=self.engine.allowed_transitions(job.status),
            unlocks=self.get_dependents(job.id),
        )

    # Notifications

    def _context(self, client_id: Optional[str], dependents_of: Optional[str] = None) -> TransitionContext:
        """Recipients for a job of client_id, plus the dependents of dependents_of when given"""
        staff_ids = self.users.list_active_staff_ids(settings.get_staff_notification_roles())
        client_user_id = self.users.find_client_user_id(self._client_email(client_id))
        dependents = self.get_dependents(dependents_of) if dependents_of else []
        return TransitionContext(
            staff_ids=tuple(staff_ids),
            jobs=tuple(dependents),
            client_user_id=client_user_id,
        )

    def _dispatch(self, intents: Sequence[NotificationIntent]) -> bool:
        """Send intents after the job write. A failure here does not undo the write."""
        try:
            self.notifications.dispatch(intents)
            return True
        except HTTPException as e:
            logger.error(f"Job saved but {len(intents)} notification(s) were not sent: {e.detail}")
            return False

    # Writes

    def _insert_job(self, insert_data: Dict[str, Any]) -> Job:
        try:
            result = self.supabase.table("jobs").insert(insert_data).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create job")

            return Job(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error creating job: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    def create_job(self, job_data: JobCreate, actor: Actor) -> Job:
        """Create a single job. New jobs always start pending."""
        self.clients.get_client_by_id(job_data.client_id)
        if job_data.assigned_to:
            self.users.get_user_by_id(job_data.assigned_to)
        # resolved before the insert: a failed lookup must not leave a stored job
        context = self._context(job_data.client_id)

        insert_data = job_data.model_dump(mode="json")
        insert_data["status"] = INITIAL_STATUS.value
        insert_data["created_by"] = actor.id
        job = self._insert_job(insert_data)

        self._dispatch(self.engine.announce([job], actor, context))
        logger.info(f"Job created: {job.title} ({job.id}) by {actor.id}")
        return job

    def create_pipeline(self, pipeline_data: PipelineCreate, actor: Actor) -> List[Job]:
        """
        Create the photo session -> video editing -> design chain, each stage
        depending on the previous one. Either every stage is stored or none is.
        """
        self.clients.get_client_by_id(pipeline_data.client_id)
        stages = [(stage, getattr(pipeline_data, stage.value)) for stage in PIPELINE_STAGES]
        for _, stage_data in stages:
            if stage_data.assigned_to:
                self.users.get_user_by_id(stage_data.assigned_to)
        context = self._context(pipeline_data.client_id)

        jobs: List[Job] = []
        previous_id = None
        try:
            for order, (stage, stage_data) in enumerate(stages, start=1):
                due_date = stage_data.due_date or pipeline_data.due_date
                job = self._insert_job({
                    "title": stage_data.title or f"{pipeline_data.title} - {stage.label.title()}",
                    "type": stage.value,
                    "status": INITIAL_STATUS.value,
                    "client_id": pipeline_data.client_id,
                    "assigned_to": stage_data.assigned_to,
                    "created_by": actor.id,
                    "description": pipeline_data.description,
                    "due_date": due_date.isoformat(),
                    "session_date": pipeline_data.session_date.isoformat() if pipeline_data.session_date else None,
                    "price": stage_data.price,
                    "depends_on_job_id": previous_id,
                    "workflow_stage": stage.value,
                    "workflow_order": order,
                    "workflow_history": [],
                })
                jobs.append(job)
                previous_id = job.id
        except HTTPException:
            self._discard_stages(jobs)
            raise

        intents = self.engine.announce(jobs, actor, context, workflow_title=pipeline_data.title)
        self._dispatch(intents)
        logger.info(f"Pipeline created: {pipeline_data.title} ({len(jobs)} stages) by {actor.id}")
        return jobs

    def _discard_stages(self, jobs: Sequence[Job]) -> None:
        """Remove the stages of a pipeline whose later insert failed, last stage first"""
        for job in reversed(jobs):
            try:
                self.supabase.table("jobs").delete().eq("id", job.id).execute()
            except Exception as e:
                logger.error(f"Could not remove partial pipeline stage {job.id}: {str(e)}")
        if jobs:
            logger.warning(f"Pipeline creation failed, removed {len(jobs)} stored stage(s)")

    def update_job(self, job_id: str, job_data: JobUpdate, actor: Actor) -> Job:
        """Same-stage edits (title, description, dates, price, assignee)"""
        job = self.get_job_by_id(job_id)
        if job.status in TERMINAL_STATUSES:
            raise HTTPException(status_code=409, detail="Delivered jobs are archived and cannot be edited")

        update_data = job_data.model_dump(mode="json", exclude_unset=True)
        if not update_data:
            return job
        if update_data.get("assigned_to"):
            self.users.get_user_by_id(update_data["assigned_to"])
        update_data["updated_at"] = self.engine.now().isoformat()

        try:
            result = self.supabase.table("jobs")\
                .update(update_data)\
                .eq("id", job_id)\
                .execute()

            if not result.data:
                raise NotFound("Job", job_id)

            updated = Job(**result.data[0])
        except AppError:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        if "assigned_to" in update_data:
            self._dispatch(self.engine.reassignment_intents(updated, job.assigned_to, actor))
        logger.info(f"Job {job_id} updated by {actor.id}")
        return updated

    def delete_job(self, job_id: str, actor: Actor) -> bool:
        """Delete a job that has not been delivered yet"""
        job = self.get_job_by_id(job_id)
        if job.status in TERMINAL_STATUSES:
            raise HTTPException(status_code=409, detail="Delivered jobs are archived and cannot be deleted")
        try:
            result = self.supabase.table("jobs")\
                .delete()\
                .eq("id", job_id)\
                .execute()

            logger.info(f"Job {job_id} deleted by {actor.id}")
            return len(result.data or []) > 0
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def transition_job(self, job_id: str, requested_status: str, actor: Actor) -> TransitionResponse:
        """
        Single entry point for status changes.
        Authorize, validate through the workflow engine, persist with a
        compare-and-swap on updated_at, then send the resulting notifications.
        """
        row = self._get_job_row(job_id)
        job = Job(**row)

        is_owner = False
        if access_policy.job_scope(actor.role) is JobScope.CLIENT:
            is_owner = self._is_client_owner(job, actor)
        if not access_policy.may_transition(
            actor.role,
            requested_status,
            is_assignee=job.assigned_to is not None and job.assigned_to == actor.id,
            is_owner=is_owner,
        ):
            raise AccessDenied("You are not allowed to change the status of this job", role=actor.role)

        if not self.engine.can_transition(job.status, requested_status):
            raise InvalidTransition(job.status.value, str(getattr(requested_status, "value", requested_status)))

        completing = requested_status == JobStatus.COMPLETED.value
        context = self._context(job.client_id, dependents_of=job.id if completing else None)
        result = self.engine.transition(job, requested_status, actor, context)

        updated = self._persist_transition(job_id, row.get("updated_at"), result.job)
        dispatched = self._dispatch(result.intents)
        if result.changed:
            logger.info(f"Job {job_id} moved {job.status.value} -> {updated.status.value} by {actor.id}")
        return TransitionResponse(
            job=updated,
            notifications=list(result.intents),
            notifications_dispatched=dispatched,
        )

    def _persist_transition(self, job_id: str, expected_updated_at: Optional[str], job: Job) -> Job:
        payload = {
            "status": job.status.value,
            "updated_at": job.updated_at.isoformat() if job.updated_at else None,
        }
        if job.workflow_history is not None:
            payload["workflow_history"] = [entry.model_dump(mode="json") for entry in job.workflow_history]
        try:
            query = self.supabase.table("jobs")\
                .update(payload)\
                .eq("id", job_id)
            if self.optimistic_locking:
                if expected_updated_at:
                    query = query.eq("updated_at", expected_updated_at)
                else:
                    query = query.is_("updated_at", "null")
            result = query.execute()
        except Exception as e:
            logger.error(f"Error saving transition of job {job_id}: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

        if not result.data:
            if self.optimistic_locking:
                raise ConcurrentUpdate("Job", job_id)
            raise NotFound("Job", job_id)
        return job
