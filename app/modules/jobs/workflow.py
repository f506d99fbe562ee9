"""
Job workflow state machine.

Validates a single status change and works out which notifications it
causes. Everything here is a pure function of its inputs: reading jobs and
recipients, persisting the updated job and sending the notifications is
done by JobService.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple, Union

from app.core.access_policy import Actor
from app.core.exceptions import InvalidTransition
from app.modules.jobs.schemas import Job, JobStatus, WorkflowHistoryEntry
from app.modules.notifications.schemas import NotificationIntent, NotificationType

# Legal forward edges. No backward edges exist and delivered is terminal.
NEXT_STATUS = {
    JobStatus.PENDING: JobStatus.IN_PROGRESS,
    JobStatus.IN_PROGRESS: JobStatus.REVIEW,
    JobStatus.REVIEW: JobStatus.COMPLETED,
    JobStatus.COMPLETED: JobStatus.DELIVERED,
}
INITIAL_STATUS = JobStatus.PENDING
TERMINAL_STATUSES = frozenset({JobStatus.DELIVERED})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TransitionContext:
    """Data the engine needs besides the job itself, fetched by the caller."""
    staff_ids: Tuple[str, ...] = ()  # active admins and receptionists
    jobs: Tuple[Job, ...] = ()  # snapshot to look for dependents in
    client_user_id: Optional[str] = None  # user account of the job's client, if any


@dataclass(frozen=True)
class TransitionResult:
    job: Job
    intents: Tuple[NotificationIntent, ...]
    changed: bool


class _Outbox:
    """Collects intents, skipping the actor and duplicate (recipient, title, job) triples."""

    def __init__(self, actor_id: str, notify_self: bool):
        self.actor_id = actor_id
        self.notify_self = notify_self
        self.intents: List[NotificationIntent] = []
        self._seen: Set[Tuple[str, str, Optional[str]]] = set()

    def add(
        self,
        user_id: Optional[str],
        title: str,
        message: str,
        related_job_id: Optional[str],
        type: NotificationType = NotificationType.INFO,
    ) -> None:
        if not user_id:
            return
        if user_id == self.actor_id and not self.notify_self:
            return
        key = (user_id, title, related_job_id)
        if key in self._seen:
            return
        self._seen.add(key)
        self.intents.append(NotificationIntent(
            user_id=user_id,
            title=title,
            message=message,
            related_job_id=related_job_id,
            type=type,
        ))


def _coerce_status(value: Union[JobStatus, str]) -> Optional[JobStatus]:
    if isinstance(value, JobStatus):
        return value
    try:
        return JobStatus(value)
    except (ValueError, TypeError):
        return None


def _actor_id(actor: Union[Actor, str]) -> str:
    return actor.id if isinstance(actor, Actor) else actor


def _actor_name(actor: Union[Actor, str]) -> str:
    return actor.display_name if isinstance(actor, Actor) else actor


class JobWorkflowEngine:
    def __init__(self, clock: Callable[[], datetime] = utcnow, notify_self: bool = False):
        self._clock = clock
        self.notify_self = notify_self

    def now(self) -> datetime:
        return self._clock()

    @staticmethod
    def allowed_transitions(status: Union[JobStatus, str]) -> List[JobStatus]:
        """Statuses reachable from status in one step (excluding the same-status no-op)."""
        current = _coerce_status(status)
        if current is None or current not in NEXT_STATUS:
            return []
        return [NEXT_STATUS[current]]

    @staticmethod
    def can_transition(current: Union[JobStatus, str], requested: Union[JobStatus, str]) -> bool:
        current_status = _coerce_status(current)
        requested_status = _coerce_status(requested)
        if current_status is None or requested_status is None:
            return False
        return requested_status == current_status or NEXT_STATUS.get(current_status) == requested_status

    @staticmethod
    def unlock_dependents(completed_job_id: str, all_jobs: Iterable[Job]) -> List[Job]:
        """Jobs that declare completed_job_id as their prerequisite. Single hop only."""
        return [
            job for job in all_jobs
            if job.depends_on_job_id == completed_job_id and job.id != completed_job_id
        ]

    def transition(
        self,
        job: Job,
        requested_status: Union[JobStatus, str],
        actor: Union[Actor, str],
        context: Optional[TransitionContext] = None,
    ) -> TransitionResult:
        """
        Move job to requested_status.

        Returns a new Job value and the notification intents the change causes.
        Raises InvalidTransition when requested_status is unknown or not the next
        status; the given job is never modified.
        """
        context = context or TransitionContext()
        requested = _coerce_status(requested_status)
        if requested is None:
            raise InvalidTransition(job.status.value, str(requested_status))

        now = self.now()
        if requested == job.status:
            return TransitionResult(job=job.model_copy(update={"updated_at": now}), intents=(), changed=False)

        if NEXT_STATUS.get(job.status) != requested:
            raise InvalidTransition(job.status.value, requested.value)

        update = {"status": requested, "updated_at": now}
        if job.workflow_history is not None:
            entry = WorkflowHistoryEntry(
                previous_stage=job.status.value,
                new_stage=requested.value,
                transitioned_at=now,
                transitioned_by=_actor_id(actor),
            )
            update["workflow_history"] = [*job.workflow_history, entry]
        updated = job.model_copy(update=update)

        intents = self._transition_intents(job, updated, actor, context)
        return TransitionResult(job=updated, intents=tuple(intents), changed=True)

    def _transition_intents(
        self,
        previous: Job,
        job: Job,
        actor: Union[Actor, str],
        context: TransitionContext,
    ) -> List[NotificationIntent]:
        outbox = _Outbox(_actor_id(actor), self.notify_self)
        old_status, new_status = previous.status, job.status
        finished = new_status in (JobStatus.COMPLETED, JobStatus.DELIVERED)
        severity = NotificationType.SUCCESS if finished else NotificationType.INFO

        if new_status == JobStatus.DELIVERED:
            for user_id in context.staff_ids:
                outbox.add(
                    user_id,
                    "Job Completed and Accepted",
                    f'Job "{job.title}" has been completed and accepted as delivered',
                    job.id,
                    NotificationType.SUCCESS,
                )
        else:
            for user_id in context.staff_ids:
                outbox.add(
                    user_id,
                    "Job Status Updated",
                    f'Job "{job.title}" status changed from {old_status.label} to {new_status.label} by {_actor_name(actor)}',
                    job.id,
                    severity,
                )

        if new_status == JobStatus.COMPLETED:
            for dependent in self.unlock_dependents(job.id, context.jobs):
                stage = (dependent.workflow_stage or dependent.type.value).replace("_", " ")
                outbox.add(
                    dependent.assigned_to,
                    "Job Ready to Start",
                    f'Your {stage} job "{dependent.title}" is now ready to start!',
                    dependent.id,
                    NotificationType.SUCCESS,
                )

        outbox.add(
            job.assigned_to,
            "Job Status Updated",
            f'Your job "{job.title}" moved from {old_status.label} to {new_status.label}',
            job.id,
            severity,
        )

        if new_status == JobStatus.COMPLETED:
            outbox.add(
                context.client_user_id,
                "Job Completed",
                f'Your job "{job.title}" has been completed and is ready for review',
                job.id,
                NotificationType.SUCCESS,
            )
        elif new_status != JobStatus.DELIVERED:
            outbox.add(
                context.client_user_id,
                "Job Status Updated",
                f'Your job "{job.title}" status has been updated to {new_status.label}',
                job.id,
                severity,
            )

        return outbox.intents

    def announce(
        self,
        jobs: Sequence[Job],
        actor: Union[Actor, str],
        context: Optional[TransitionContext] = None,
        workflow_title: Optional[str] = None,
    ) -> List[NotificationIntent]:
        """Intents for newly created jobs: one job, or the stages of a pipeline in order."""
        if not jobs:
            return []
        context = context or TransitionContext()
        outbox = _Outbox(_actor_id(actor), self.notify_self)
        first = jobs[0]
        assignees = {job.assigned_to for job in jobs if job.assigned_to}

        for job in jobs:
            if job.depends_on_job_id:
                outbox.add(
                    job.assigned_to,
                    "Upcoming Job Assigned",
                    f'You have been assigned to upcoming {job.type.label} job "{job.title}". '
                    f"It starts once the previous stage is completed.",
                    job.id,
                )
            else:
                due = job.due_date.isoformat() if job.due_date else "No due date set"
                outbox.add(
                    job.assigned_to,
                    "New Job Assigned",
                    f'You have been assigned to "{job.title}". Due: {due}',
                    job.id,
                )

        if len(jobs) == 1:
            staff_title = client_title = "New Job Created"
            staff_message = f'New {first.type.label} job "{first.title}" has been created'
            client_message = f'A new {first.type.label} job "{first.title}" has been created for you.'
        else:
            name = workflow_title or first.title
            stages = " -> ".join(job.type.label for job in jobs)
            staff_title = client_title = "New Workflow Created"
            staff_message = f'New workflow "{name}" has been created: {stages}'
            client_message = f'A new workflow "{name}" has been created for you: {stages}'

        for user_id in context.staff_ids:
            if user_id in assignees:
                continue
            outbox.add(user_id, staff_title, staff_message, first.id)
        outbox.add(context.client_user_id, client_title, client_message, first.id)
        return outbox.intents

    def reassignment_intents(
        self,
        job: Job,
        previous_assignee: Optional[str],
        actor: Union[Actor, str],
    ) -> List[NotificationIntent]:
        if job.assigned_to == previous_assignee:
            return []
        outbox = _Outbox(_actor_id(actor), self.notify_self)
        outbox.add(
            job.assigned_to,
            "Job Assigned",
            f"You have been assigned to: {job.title}",
            job.id,
        )
        outbox.add(
            previous_assignee,
            "Job Reassigned",
            f'Job "{job.title}" has been reassigned to another team member',
            job.id,
            NotificationType.WARNING,
        )
        return outbox.intents
