"""
Revision Workflow Service

Bounded request/response sub-protocol between owner and respondent:

    owner opens a request     (step, optional field, message)
    respondent answers once   pending → responded, text then frozen
    owner closes the cycle    project back to completed, brief re-assembled

Opening a request on a completed project starts a revision cycle: the
project goes back to in_progress, ``completed_at`` is cleared, the phase
falls back to ``revision`` if it had moved past it, and the cycle counter
goes up.  That regression is logged at WARNING.

Design decisions:
    - Answering is a conditional ``UPDATE ... WHERE status = 'pending'``;
      a second answer (or a racing one) gets ALREADY_RESPONDED and the
      stored text is untouched.
    - Input checks run before any storage lookup.
    - Signed-off (reviewed) projects take no new requests.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import func, select, update

from briefed.core.actor import ActorContext, require_owner, require_respondent
from briefed.core.exceptions import (
    AlreadyRespondedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from briefed.models import db
from briefed.models.revision import RevisionRequest
from briefed.services import lifecycle, submission
from briefed.services.access import get_lifecycle_state, get_project
from briefed.services.events import RevisionRequested, RevisionResponded, StatusChanged
from briefed.services.notification import dispatch_for
from briefed.utils.helpers import commit_or_raise, is_uuid, utcnow

logger = logging.getLogger(__name__)

MAX_FIELD_KEY = 100


def _max_length() -> int:
    return int(current_app.config.get("RESPONSE_MAX_LENGTH", 5000))


def _clean_text(value, field: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"{field} is required", details={field: "required"})
    limit = _max_length()
    if len(text) > limit:
        raise ValidationError(
            f"{field} must be at most {limit} characters",
            details={field: "too long"},
        )
    return text


def pending_count(project_id: str) -> int:
    return db.session.execute(
        select(func.count(RevisionRequest.id)).where(
            RevisionRequest.project_id == project_id,
            RevisionRequest.status == "pending",
        )
    ).scalar_one()


def open_request(
    actor: ActorContext,
    project_id: str,
    step_key: str,
    message: str,
    field_key: str | None = None,
) -> RevisionRequest:
    """Owner asks the respondent to revisit one step."""
    require_owner(actor)
    step_key = submission.validate_step_key(step_key)
    message = _clean_text(message, "message")
    if field_key is not None:
        field_key = field_key.strip() if isinstance(field_key, str) else ""
        if not field_key or len(field_key) > MAX_FIELD_KEY:
            raise ValidationError("fieldKey is invalid", details={"fieldKey": "invalid"})

    project = get_project(actor, project_id)
    if project.status == "reviewed":
        raise InvalidTransitionError("reviewed", "revision", "project is signed off")

    if project.status == "completed":
        lifecycle.apply_transition(project, "reopen", completed_at=None)
        lifecycle.regress_for_revision(get_lifecycle_state(project))
        logger.warning(
            "Revision cycle started on completed project",
            extra={"project_id": project_id, "actor_kind": actor.kind},
        )

    revision = RevisionRequest(
        project_id=project_id,
        requester_id=actor.owner_id,
        step_key=step_key,
        field_key=field_key,
        message=message,
        status="pending",
    )
    db.session.add(revision)
    commit_or_raise(context="open_revision_request")
    logger.info("Revision requested on %s", step_key, extra={"project_id": project_id})

    dispatch_for(
        project, RevisionRequested,
        revision_id=revision.id,
        step_key=step_key,
        message=message,
    )
    return revision


def respond(
    actor: ActorContext,
    project_id: str,
    revision_id: str,
    response: str,
) -> RevisionRequest:
    """Respondent answers a pending request. Exactly once."""
    require_respondent(actor, project_id)
    if not is_uuid(revision_id):
        raise ValidationError("revisionId is invalid", details={"revisionId": "invalid format"})
    response = _clean_text(response, "response")

    project = get_project(actor, project_id)
    result = db.session.execute(
        update(RevisionRequest)
        .where(
            RevisionRequest.id == revision_id,
            RevisionRequest.project_id == project_id,
            RevisionRequest.status == "pending",
        )
        .values(status="responded", response=response, responded_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        exists = db.session.execute(
            select(RevisionRequest.id).where(
                RevisionRequest.id == revision_id,
                RevisionRequest.project_id == project_id,
            )
        ).scalar_one_or_none()
        if exists is None:
            raise NotFoundError(resource="RevisionRequest", resource_id=revision_id)
        logger.info("Revision already answered", extra={"project_id": project_id})
        raise AlreadyRespondedError(revision_id)

    lifecycle.record_respondent_activity(project)
    commit_or_raise(context="respond_revision_request")

    revision = db.session.get(RevisionRequest, revision_id, populate_existing=True)
    dispatch_for(
        project, RevisionResponded,
        revision_id=revision_id,
        step_key=revision.step_key,
        response=response,
    )
    return revision


def list_requests(actor: ActorContext, project_id: str) -> list[RevisionRequest]:
    """Newest first. Visible to the owner and to the token holder."""
    get_project(actor, project_id)
    return list(db.session.execute(
        select(RevisionRequest)
        .where(RevisionRequest.project_id == project_id)
        .order_by(RevisionRequest.created_at.desc())
    ).scalars())


def close_cycle(actor: ActorContext, project_id: str):
    """End a revision cycle: project → completed, brief re-assembled as a new version."""
    require_owner(actor)
    project = get_project(actor, project_id)
    state = get_lifecycle_state(project)

    if project.status != "in_progress" or not state.revision_cycles:
        raise InvalidTransitionError(project.status, "completed", "no open revision cycle")
    pending = pending_count(project_id)
    if pending:
        raise InvalidTransitionError(
            project.status, "completed", f"{pending} revision request(s) still pending",
        )

    brief = submission.rebuild_brief(project)
    lifecycle.apply_transition(project, "complete", completed_at=utcnow())
    commit_or_raise(context="close_revision_cycle")
    logger.info(
        "Revision cycle closed, brief now v%d", brief.version,
        extra={"project_id": project_id},
    )

    dispatch_for(project, StatusChanged, new_status="completed")
    return brief
