"""
Project service: creation, listing and link management for owners.

Link secrets:
    access token   issued once at creation; replaced only by rotate_access_token()
    share token    read-only brief link, switched on and off independently
"""

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select

from briefed.core.actor import ActorContext, require_owner
from briefed.core.exceptions import InvalidTransitionError, ValidationError
from briefed.models import db
from briefed.models.owner import Owner
from briefed.models.project import PROJECT_CATEGORIES, PROJECT_STATUSES, LifecycleState, Project
from briefed.services import lifecycle, revision_workflow
from briefed.services.access import get_lifecycle_state, get_project
from briefed.services.events import OnboardingLink
from briefed.services.notification import dispatch_for
from briefed.utils.helpers import commit_or_raise
from briefed.utils.tokens import issue_access_token, issue_share_token

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 150


def _normalise_email(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("respondentEmail is required", details={"respondentEmail": "required"})
    try:
        return validate_email(value.strip(), check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise ValidationError(
            "respondentEmail is not a valid address", details={"respondentEmail": str(exc)},
        ) from exc


def create_project(
    actor: ActorContext,
    *,
    respondent_email: str,
    category: str,
    respondent_name: str | None = None,
) -> Project:
    """Create a draft project with a fresh access token and lifecycle row."""
    require_owner(actor)
    email = _normalise_email(respondent_email)
    if category not in PROJECT_CATEGORIES:
        raise ValidationError(
            f"Unknown category '{category}'",
            details={"category": f"must be one of {', '.join(sorted(PROJECT_CATEGORIES))}"},
        )
    if respondent_name is not None:
        respondent_name = respondent_name.strip() if isinstance(respondent_name, str) else ""
        if len(respondent_name) > MAX_NAME_LENGTH:
            raise ValidationError("respondentName is too long", details={"respondentName": "too long"})
        respondent_name = respondent_name or None

    # A respondent who already has an account gets in-app notifications too
    linked = db.session.execute(
        select(Owner.id).where(Owner.email == email)
    ).scalar_one_or_none()

    project = Project(
        owner_id=actor.owner_id,
        respondent_email=email,
        respondent_name=respondent_name,
        respondent_account_id=linked if linked != actor.owner_id else None,
        category=category,
        status="draft",
        access_token=issue_access_token(),
    )
    db.session.add(project)
    db.session.flush()
    db.session.add(LifecycleState(
        project_id=project.id,
        current_phase="discovery",
        phases_completed=[],
        blockers=[],
        revision_cycles=0,
    ))
    commit_or_raise(context="create_project")
    logger.info("Project created (%s)", category, extra={"project_id": project.id})
    return project


def list_projects(actor: ActorContext, status: str | None = None) -> list[Project]:
    require_owner(actor)
    q = select(Project).where(Project.owner_id == actor.owner_id)
    if status:
        if status not in PROJECT_STATUSES:
            raise ValidationError(f"Unknown status '{status}'", details={"status": "unknown"})
        q = q.where(Project.status == status)
    return list(db.session.execute(q.order_by(Project.created_at.desc())).scalars())


def project_overview(actor: ActorContext, project_id: str) -> dict:
    """Owner dashboard view: project, lifecycle and advisory health."""
    require_owner(actor)
    project = get_project(actor, project_id)
    state = get_lifecycle_state(project)
    db.session.flush()
    pending = revision_workflow.pending_count(project_id)

    data = project.to_dict(include_secrets=True)
    data["lifecycle"] = state.to_dict()
    data["implied_phase"] = lifecycle.phase_implied_by_status(project.status)
    data["pending_revisions"] = pending
    data["health_score"] = lifecycle.compute_health_score(project, state, pending_revisions=pending)
    return data


def rotate_access_token(actor: ActorContext, project_id: str) -> Project:
    """Replace the respondent link. The old link stops working immediately."""
    require_owner(actor)
    project = get_project(actor, project_id)
    project.access_token = issue_access_token()
    commit_or_raise(context="rotate_access_token")
    logger.warning("Access token rotated", extra={"project_id": project_id})
    return project


def enable_sharing(actor: ActorContext, project_id: str) -> Project:
    """Turn on the read-only share link. Idempotent."""
    require_owner(actor)
    project = get_project(actor, project_id)
    if project.share_token is None:
        project.share_token = issue_share_token()
        commit_or_raise(context="enable_sharing")
        logger.info("Share link enabled", extra={"project_id": project_id})
    return project


def disable_sharing(actor: ActorContext, project_id: str) -> Project:
    require_owner(actor)
    project = get_project(actor, project_id)
    if project.share_token is not None:
        project.share_token = None
        commit_or_raise(context="disable_sharing")
        logger.info("Share link disabled", extra={"project_id": project_id})
    return project


def resend_link(actor: ActorContext, project_id: str) -> Project:
    """Email the respondent their existing link again."""
    require_owner(actor)
    project = get_project(actor, project_id)
    if project.status not in ("sent", "in_progress"):
        raise InvalidTransitionError(project.status, "sent", "link can only be resent while awaiting answers")
    dispatch_for(project, OnboardingLink)
    return project
