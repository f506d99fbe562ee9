from datetime import date, datetime, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from app.core.access_policy import Actor
from app.core.exceptions import AccessDenied, ConcurrentUpdate, InvalidTransition, NotFound
from app.modules.jobs.schemas import JobCreate, JobStatus, JobType, JobUpdate, PipelineCreate, PipelineStageCreate
from app.modules.jobs.service import JobService
from app.modules.jobs.workflow import JobWorkflowEngine

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(fake_db):
    return JobService(fake_db, engine=JobWorkflowEngine(clock=lambda: NOW), optimistic_locking=True)


def notifications(fake_db):
    return [(n["user_id"], n["title"]) for n in fake_db.rows("notifications")]


def test_transition_persists_status_and_notifications(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job(status="review"))

    response = service.transition_job("job-1", "completed", actor("admin-1"))

    stored = fake_db.rows("jobs")[0]
    assert stored["status"] == "completed"
    assert stored["updated_at"] == NOW.isoformat()
    assert response.job.status == JobStatus.COMPLETED
    assert response.notifications_dispatched is True
    assert sorted(notifications(fake_db)) == [
        ("admin-2", "Job Status Updated"),
        ("client-user-1", "Job Completed"),
        ("photographer-1", "Job Status Updated"),
        ("recep-1", "Job Status Updated"),
    ]
    # inactive admins are not part of the audience
    assert "admin-3" not in {n["user_id"] for n in fake_db.rows("notifications")}
    assert all(n["is_read"] is False for n in fake_db.rows("notifications"))


def test_completing_a_stage_notifies_next_stage_assignee(service, fake_db, make_job, actor):
    fake_db.seed(
        "jobs",
        make_job(status="review", assigned_to="editor-1", type="video_editing"),
        make_job(id="job-2", title="Album", type="design", assigned_to="designer-1", depends_on_job_id="job-1"),
    )

    service.transition_job("job-1", "completed", actor("editor-1"))

    ready = [n for n in fake_db.rows("notifications") if n["title"] == "Job Ready to Start"]
    assert [(n["user_id"], n["related_job_id"]) for n in ready] == [("designer-1", "job-2")]


def test_concurrent_change_is_rejected(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job(status="pending"))

    def someone_else_writes_first(table, op):
        if (table, op) == ("jobs", "update"):
            fake_db.rows("jobs")[0]["updated_at"] = "2026-10-01T09:30:00+00:00"

    fake_db.hooks.append(someone_else_writes_first)

    with pytest.raises(ConcurrentUpdate):
        service.transition_job("job-1", "in_progress", actor("admin-1"))

    assert fake_db.rows("jobs")[0]["status"] == "pending"
    assert fake_db.rows("notifications") == []


def test_without_locking_last_write_wins(fake_db, make_job, actor):
    service = JobService(fake_db, engine=JobWorkflowEngine(clock=lambda: NOW), optimistic_locking=False)
    fake_db.seed("jobs", make_job(status="pending"))

    def someone_else_writes_first(table, op):
        if (table, op) == ("jobs", "update"):
            fake_db.rows("jobs")[0]["updated_at"] = "2026-10-02T00:00:00+00:00"

    fake_db.hooks.append(someone_else_writes_first)

    service.transition_job("job-1", "in_progress", actor("admin-1"))

    assert fake_db.rows("jobs")[0]["status"] == "in_progress"


def test_illegal_transition_writes_nothing(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job(status="pending"))

    with pytest.raises(InvalidTransition) as exc_info:
        service.transition_job("job-1", "completed", actor("admin-1"))

    assert exc_info.value.to_dict()["current_status"] == "pending"
    assert fake_db.rows("jobs")[0]["status"] == "pending"
    assert ("jobs", "update") not in fake_db.calls
    assert fake_db.rows("notifications") == []


def test_same_status_refreshes_timestamp_only(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job(status="review"))

    response = service.transition_job("job-1", "review", actor("admin-1"))

    assert response.notifications == []
    assert fake_db.rows("jobs")[0]["status"] == "review"
    assert fake_db.rows("jobs")[0]["updated_at"] == NOW.isoformat()
    assert fake_db.rows("notifications") == []


def test_assignee_may_advance_own_job(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job(status="pending"))

    response = service.transition_job("job-1", "in_progress", actor("photographer-1"))

    assert response.job.status == JobStatus.IN_PROGRESS


def test_unassigned_team_member_is_denied(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job(status="pending"))

    with pytest.raises(AccessDenied):
        service.transition_job("job-1", "in_progress", actor("editor-1"))
    assert fake_db.rows("jobs")[0]["status"] == "pending"


def test_client_can_accept_delivery_of_own_job(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job(status="completed"))

    response = service.transition_job("job-1", "delivered", actor("client-user-1"))

    assert response.job.status == JobStatus.DELIVERED
    accepted = sorted(u for u, t in notifications(fake_db) if t == "Job Completed and Accepted")
    assert accepted == ["admin-1", "admin-2", "recep-1"]


def test_client_cannot_move_job_backwards(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job(status="completed"))

    with pytest.raises(AccessDenied):
        service.transition_job("job-1", "in_progress", actor("client-user-1"))


def test_client_cannot_deliver_someone_elses_job(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job(status="completed"))

    with pytest.raises(AccessDenied):
        service.transition_job("job-1", "delivered", actor("client-user-2"))


def test_notification_failure_keeps_the_transition(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job(status="in_progress"))
    fake_db.failing_tables.add("notifications")

    response = service.transition_job("job-1", "review", actor("admin-1"))

    assert response.notifications_dispatched is False
    assert response.notifications
    assert fake_db.rows("jobs")[0]["status"] == "review"


def test_tracked_history_is_persisted(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job(status="pending", workflow_history=[]))

    service.transition_job("job-1", "in_progress", actor("photographer-1"))

    history = fake_db.rows("jobs")[0]["workflow_history"]
    assert len(history) == 1
    assert history[0]["previous_stage"] == "pending"
    assert history[0]["new_stage"] == "in_progress"
    assert history[0]["transitioned_by"] == "photographer-1"
    assert history[0]["transitioned_at"].startswith("2026-10-18T12:00:00")


def test_missing_job(service, actor):
    with pytest.raises(NotFound):
        service.transition_job("nope", "in_progress", actor("admin-1"))


def test_create_job_starts_pending_and_announces(service, fake_db, actor):
    job = service.create_job(
        JobCreate(
            title="Portrait session",
            type=JobType.PHOTO_SESSION,
            client_id="client-1",
            due_date=date(2026, 11, 2),
            assigned_to="photographer-1",
        ),
        actor("recep-1"),
    )

    assert job.status == JobStatus.PENDING
    assert job.created_by == "recep-1"
    assert fake_db.rows("jobs")[0]["due_date"] == "2026-11-02"
    assert sorted(notifications(fake_db)) == [
        ("admin-1", "New Job Created"),
        ("admin-2", "New Job Created"),
        ("client-user-1", "New Job Created"),
        ("photographer-1", "New Job Assigned"),
    ]


def test_create_job_for_unknown_client(service, actor):
    with pytest.raises(NotFound):
        service.create_job(
            JobCreate(title="x", type=JobType.DESIGN, client_id="client-404", due_date=date(2026, 11, 2)),
            actor("admin-1"),
        )


def test_create_pipeline_chains_stages(service, fake_db, actor):
    jobs = service.create_pipeline(
        PipelineCreate(
            title="Smith",
            client_id="client-1",
            due_date=date(2026, 12, 1),
            photo_session=PipelineStageCreate(assigned_to="photographer-1"),
            video_editing=PipelineStageCreate(assigned_to="editor-1"),
            design=PipelineStageCreate(assigned_to="designer-1", title="Smith album"),
        ),
        actor("admin-1"),
    )

    assert [j.type for j in jobs] == [JobType.PHOTO_SESSION, JobType.VIDEO_EDITING, JobType.DESIGN]
    assert [j.title for j in jobs] == ["Smith - Photo Session", "Smith - Video Editing", "Smith album"]
    assert [j.workflow_order for j in jobs] == [1, 2, 3]
    assert jobs[0].depends_on_job_id is None
    assert jobs[1].depends_on_job_id == jobs[0].id
    assert jobs[2].depends_on_job_id == jobs[1].id
    assert all(j.status == JobStatus.PENDING and j.workflow_history == [] for j in jobs)

    sent = set(notifications(fake_db))
    assert ("photographer-1", "New Job Assigned") in sent
    assert ("editor-1", "Upcoming Job Assigned") in sent
    assert ("designer-1", "Upcoming Job Assigned") in sent
    assert ("client-user-1", "New Workflow Created") in sent


def test_update_job_reassigns_and_notifies(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job())

    updated = service.update_job("job-1", JobUpdate(assigned_to="editor-1", price=250.0), actor("admin-1"))

    assert updated.assigned_to == "editor-1"
    assert updated.status == JobStatus.PENDING
    assert sorted(notifications(fake_db)) == [
        ("editor-1", "Job Assigned"),
        ("photographer-1", "Job Reassigned"),
    ]


def test_job_update_cannot_carry_a_status():
    with pytest.raises(ValidationError):
        JobUpdate(**{"title": "x", "status": "delivered"})


def test_delivered_jobs_are_archived(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job(status="delivered"))

    with pytest.raises(HTTPException) as exc_info:
        service.delete_job("job-1", actor("admin-1"))
    assert exc_info.value.status_code == 409

    with pytest.raises(HTTPException):
        service.update_job("job-1", JobUpdate(title="renamed"), actor("admin-1"))
    assert fake_db.rows("jobs")[0]["title"] == "Smith wedding shoot"


def test_delete_pending_job(service, fake_db, make_job, actor):
    fake_db.seed("jobs", make_job())

    assert service.delete_job("job-1", actor("admin-1")) is True
    assert fake_db.rows("jobs") == []


@pytest.fixture
def seeded_jobs(fake_db, make_job):
    fake_db.seed(
        "jobs",
        make_job(id="job-1", assigned_to="photographer-1", client_id="client-1"),
        make_job(id="job-2", assigned_to="editor-1", client_id="client-2"),
        make_job(id="job-3", assigned_to=None, client_id="client-1", status="review"),
    )


@pytest.mark.parametrize(
    "user_id,expected",
    [
        ("admin-1", {"job-1", "job-2", "job-3"}),
        ("recep-1", {"job-1", "job-2", "job-3"}),
        ("photographer-1", {"job-1"}),
        ("designer-1", set()),
        ("client-user-1", {"job-1", "job-3"}),
        ("client-user-2", {"job-2"}),
    ],
)
def test_list_jobs_is_scoped_by_role(service, seeded_jobs, actor, user_id, expected):
    assert {j.id for j in service.list_jobs(actor(user_id))} == expected


def test_list_jobs_filters(service, seeded_jobs, actor):
    assert [j.id for j in service.list_jobs(actor("admin-1"), status=JobStatus.REVIEW)] == ["job-3"]
    assert [j.id for j in service.list_jobs(actor("admin-1"), assigned_to="editor-1")] == ["job-2"]
    # team members cannot widen their scope with a filter
    assert [j.id for j in service.list_jobs(actor("photographer-1"), assigned_to="editor-1")] == ["job-1"]


def test_list_jobs_for_unknown_role(service, seeded_jobs):
    with pytest.raises(AccessDenied):
        service.list_jobs(Actor(id="ghost", role="intern"))


def test_get_job_outside_scope_is_not_found(service, seeded_jobs, actor):
    assert service.get_job("job-2", actor("client-user-2")).id == "job-2"
    with pytest.raises(NotFound):
        service.get_job("job-2", actor("client-user-1"))
    with pytest.raises(NotFound):
        service.get_job("job-2", actor("photographer-1"))


def test_preview_lists_next_status_and_unlocks(service, fake_db, make_job, actor):
    fake_db.seed(
        "jobs",
        make_job(status="review"),
        make_job(id="job-2", depends_on_job_id="job-1", assigned_to="designer-1"),
    )

    preview = service.preview("job-1", actor("admin-1"))

    assert preview.allowed_transitions == [JobStatus.COMPLETED]
    assert [j.id for j in preview.unlocks] == ["job-2"]


def test_underscore_in_client_email_is_not_a_wildcard(service, fake_db, make_job):
    fake_db.seed("clients", {"id": "client-x", "name": "Axb Studio", "email": "axb@example.com"})
    fake_db.seed("jobs", make_job(id="job-x", client_id="client-x"))
    lookalike = Actor(id="client-user-9", role="client", email="a_b@example.com")

    assert service.list_jobs(lookalike) == []
    with pytest.raises(NotFound):
        service.get_job("job-x", lookalike)


def test_client_email_matches_regardless_of_case(service, fake_db, make_job):
    fake_db.seed("jobs", make_job())
    owner = Actor(id="client-user-1", role="client", email=" Client@Example.COM ")

    assert [j.id for j in service.list_jobs(owner)] == ["job-1"]
    assert service.get_job("job-1", owner).id == "job-1"


def test_failed_recipient_lookup_stores_no_job(service, fake_db, actor):
    fake_db.failing_tables.add("users")

    with pytest.raises(HTTPException):
        service.create_job(
            JobCreate(title="x", type=JobType.DESIGN, client_id="client-1", due_date=date(2026, 11, 2)),
            actor("admin-1"),
        )

    assert fake_db.rows("jobs") == []
    assert fake_db.rows("notifications") == []


def test_pipeline_is_all_or_nothing(service, fake_db, actor):
    inserts = []

    def third_stage_fails(table, op):
        if table == "jobs" and op == "insert":
            inserts.append(op)
            if len(inserts) == 3:
                raise RuntimeError("connection reset")

    fake_db.hooks.append(third_stage_fails)

    with pytest.raises(HTTPException) as exc_info:
        service.create_pipeline(
            PipelineCreate(title="Smith", client_id="client-1", due_date=date(2026, 12, 1)),
            actor("admin-1"),
        )

    assert exc_info.value.status_code == 500
    assert fake_db.rows("jobs") == []
    assert fake_db.rows("notifications") == []
