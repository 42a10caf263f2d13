"""
Revision workflow tests.

    owner opens a request      (completed project → revision cycle starts)
    respondent answers once    pending → responded, text frozen
    owner closes the cycle     project → completed, brief re-assembled (v+1)
"""

import uuid

import pytest

from briefed.core.actor import ActorContext
from briefed.core.exceptions import (
    AccessDeniedError,
    AlreadyRespondedError,
    AlreadySubmittedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from briefed.models import db
from briefed.models.notification import Notification
from briefed.models.project import LifecycleState, Project
from briefed.models.response import Brief
from briefed.models.revision import RevisionRequest
from briefed.services import revision_workflow, submission


@pytest.fixture()
def submitted(project, respondent_actor):
    """A project whose respondent has submitted a brief."""
    submission.save_response(respondent_actor, project.id, "color_preferences", {"palette": "earthy"})
    submission.submit(respondent_actor, project.id)
    return db.session.get(Project, project.id)


def _state(project_id):
    return db.session.execute(
        db.select(LifecycleState).where(LifecycleState.project_id == project_id)
    ).scalar_one()


# ── Opening ──────────────────────────────────────────────────────────────


def test_open_request_on_in_progress_project(owner_actor, make_project):
    p = make_project("in_progress")
    rev = revision_workflow.open_request(owner_actor, p.id, "business_info", "Who is the audience?")
    assert rev.status == "pending"
    assert rev.requester_id == owner_actor.owner_id
    assert db.session.get(Project, p.id).status == "in_progress"
    assert _state(p.id).revision_cycles == 0


def test_open_request_reopens_completed_project(owner_actor, make_project):
    p = make_project("completed", current_phase="delivery")
    revision_workflow.open_request(
        owner_actor, p.id, "color_preferences", "Warmer tones?", field_key="palette",
    )

    reopened = db.session.get(Project, p.id)
    assert reopened.status == "in_progress"
    assert reopened.completed_at is None
    state = _state(p.id)
    assert state.current_phase == "revision"
    assert state.revision_cycles == 1


def test_open_request_rejected_on_reviewed(owner_actor, make_project):
    p = make_project("reviewed")
    with pytest.raises(InvalidTransitionError):
        revision_workflow.open_request(owner_actor, p.id, "business_info", "Anything?")


@pytest.mark.parametrize("step_key, message, field_key", [
    ("unknown_step", "msg", None),
    ("business_info", "", None),
    ("business_info", "   ", None),
    ("business_info", "x" * 5001, None),
    ("business_info", "msg", ""),
    ("business_info", "msg", "f" * 101),
])
def test_open_request_validation(owner_actor, project, step_key, message, field_key):
    with pytest.raises(ValidationError):
        revision_workflow.open_request(owner_actor, project.id, step_key, message, field_key=field_key)
    assert RevisionRequest.query.count() == 0


def test_respondent_cannot_open_request(respondent_actor, project):
    with pytest.raises(AccessDeniedError):
        revision_workflow.open_request(respondent_actor, project.id, "business_info", "msg")


# ── Responding ───────────────────────────────────────────────────────────


def test_respond_once(owner, owner_actor, respondent_actor, project):
    rev = revision_workflow.open_request(owner_actor, project.id, "business_info", "Audience?")
    answered = revision_workflow.respond(respondent_actor, project.id, rev.id, "Young professionals")
    assert answered.status == "responded"
    assert answered.response == "Young professionals"
    assert answered.responded_at is not None

    notes = Notification.query.filter_by(recipient_id=owner.id, type="revision_response").all()
    assert len(notes) == 1


def test_second_response_is_rejected_and_text_frozen(owner_actor, respondent_actor, project):
    rev = revision_workflow.open_request(owner_actor, project.id, "business_info", "Audience?")
    revision_workflow.respond(respondent_actor, project.id, rev.id, "First answer")
    with pytest.raises(AlreadyRespondedError):
        revision_workflow.respond(respondent_actor, project.id, rev.id, "Second answer")
    assert db.session.get(RevisionRequest, rev.id).response == "First answer"


def test_respond_unknown_request(respondent_actor, project):
    with pytest.raises(NotFoundError):
        revision_workflow.respond(respondent_actor, project.id, str(uuid.uuid4()), "answer")


def test_respond_to_other_projects_request(owner_actor, make_project):
    a = make_project(respondent_email="a@example.com")
    b = make_project(respondent_email="b@example.com")
    rev = revision_workflow.open_request(owner_actor, b.id, "business_info", "Audience?")
    actor_a = ActorContext.for_respondent(a.id, a.respondent_email)
    with pytest.raises(NotFoundError):
        revision_workflow.respond(actor_a, a.id, rev.id, "sneaky")
    assert db.session.get(RevisionRequest, rev.id).status == "pending"


@pytest.mark.parametrize("revision_id, response", [
    ("not-a-uuid", "answer"),
    (None, "answer"),
    ("00000000-0000-0000-0000-000000000000", ""),
    ("00000000-0000-0000-0000-000000000000", "x" * 5001),
])
def test_respond_validation_runs_before_lookup(respondent_actor, project, revision_id, response):
    with pytest.raises(ValidationError):
        revision_workflow.respond(respondent_actor, project.id, revision_id, response)


def test_owner_cannot_respond(owner_actor, project):
    rev = revision_workflow.open_request(owner_actor, project.id, "business_info", "Audience?")
    with pytest.raises(AccessDeniedError):
        revision_workflow.respond(owner_actor, project.id, rev.id, "answer")


def test_list_requests_newest_first(owner_actor, respondent_actor, project):
    first = revision_workflow.open_request(owner_actor, project.id, "business_info", "First?")
    second = revision_workflow.open_request(owner_actor, project.id, "timeline_budget", "Second?")
    listed = revision_workflow.list_requests(respondent_actor, project.id)
    assert [r.id for r in listed] == [second.id, first.id]
    assert revision_workflow.pending_count(project.id) == 2


# ── Closing ──────────────────────────────────────────────────────────────


def test_full_revision_cycle(owner_actor, respondent_actor, submitted):
    rev = revision_workflow.open_request(
        owner_actor, submitted.id, "color_preferences", "Warmer tones?",
    )
    submission.save_response(respondent_actor, submitted.id, "color_preferences", {"palette": "terracotta"})
    revision_workflow.respond(respondent_actor, submitted.id, rev.id, "Updated the palette")

    brief = revision_workflow.close_cycle(owner_actor, submitted.id)
    assert brief.version == 2
    assert brief.content["raw_responses"]["color_preferences"] == {"palette": "terracotta"}

    p = db.session.get(Project, submitted.id)
    assert p.status == "completed"
    assert p.completed_at is not None
    assert Brief.query.filter_by(project_id=submitted.id).count() == 1


def test_close_cycle_with_pending_requests(owner_actor, submitted):
    revision_workflow.open_request(owner_actor, submitted.id, "color_preferences", "Warmer?")
    with pytest.raises(InvalidTransitionError) as exc:
        revision_workflow.close_cycle(owner_actor, submitted.id)
    assert "pending" in str(exc.value)
    assert db.session.get(Project, submitted.id).status == "in_progress"


def test_close_cycle_without_open_cycle(owner_actor, make_project):
    p = make_project("in_progress")
    with pytest.raises(InvalidTransitionError):
        revision_workflow.close_cycle(owner_actor, p.id)


def test_resubmit_during_cycle_is_already_submitted(owner_actor, respondent_actor, submitted):
    revision_workflow.open_request(owner_actor, submitted.id, "color_preferences", "Warmer?")
    with pytest.raises(AlreadySubmittedError):
        submission.submit(respondent_actor, submitted.id)
    assert Brief.query.filter_by(project_id=submitted.id).count() == 1
