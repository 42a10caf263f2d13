"""
Project Lifecycle Engine

Owns the coarse project status and the fine-grained lifecycle phase:
  - Status transition validation (STATUS_TRANSITIONS)
  - Optimistic conditional updates: a transition is one
    ``UPDATE ... WHERE id = ? AND status IN (...)``; zero rows means someone
    else moved the project first and the caller gets INVALID_TRANSITION
  - Phase advancement (forward only, except the logged regression at the
    start of a revision cycle)
  - Blockers and the advisory health score
  - Irreversible project deletion

Status edges:
    draft → sent                 owner sends the link
    draft/sent → in_progress     first respondent activity
    in_progress → completed      submission, or closing a revision cycle
    completed → reviewed         owner sign-off (idempotent once reviewed)
    completed → in_progress      revision cycle start (Revision Workflow only)

Usage:
    from briefed.services.lifecycle import mark_sent, advance_phase

    project = mark_sent(actor, project_id)
    state = advance_phase(actor, project_id, confirm_delivery=True)
"""

import logging
import uuid

from sqlalchemy import delete, func, select, update

from briefed.core.actor import ActorContext, require_owner
from briefed.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from briefed.models import db
from briefed.models.deliverable import Deliverable, DeliverableFeedback
from briefed.models.notification import Notification
from briefed.models.project import (
    BLOCKER_SEVERITIES,
    LIFECYCLE_PHASES,
    PROJECT_STATUSES,
    LifecycleState,
    Project,
    phase_index,
)
from briefed.models.response import Asset, Brief, Response
from briefed.models.revision import Message, RevisionRequest
from briefed.services.access import get_lifecycle_state, get_project
from briefed.services.events import DeliverablesReady, OnboardingLink, StatusChanged
from briefed.services.message_service import add_message
from briefed.services.notification import dispatch_for
from briefed.utils.helpers import as_utc, commit_or_raise, utcnow

logger = logging.getLogger(__name__)


# Project status transition rules
STATUS_TRANSITIONS = {
    "send": {"from": ["draft"], "to": "sent"},
    "start": {"from": ["draft", "sent"], "to": "in_progress"},
    "complete": {"from": ["in_progress"], "to": "completed"},
    "review": {"from": ["completed"], "to": "reviewed"},
    "reopen": {"from": ["completed"], "to": "in_progress"},
}

# Status targets an owner may request directly through update_status()
OWNER_STATUS_TARGETS = {"sent": "send", "reviewed": "review"}

_STATUS_PHASE = {
    "draft": None,
    "sent": "discovery",
    "in_progress": "discovery",
    "completed": "proposal",
    "reviewed": "completed",
}

BLOCKER_PENALTY = {"low": 5, "medium": 10, "high": 20, "critical": 30}
INACTIVITY_GRACE_DAYS = 3
MAX_BLOCKER_DESCRIPTION = 500
MAX_DELIVERY_NOTES = 5000


def validate_transition(current: str, action: str) -> dict:
    """Validate whether an action is valid for the current status."""
    rule = STATUS_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": current, "to": None,
                "reason": f"Unknown action: {action}"}

    if current not in rule["from"]:
        return {"valid": False, "from": current, "to": rule["to"],
                "reason": f"Cannot '{action}' from status '{current}'"}

    return {"valid": True, "from": current, "to": rule["to"], "reason": None}


def apply_transition(project: Project, action: str, **values) -> None:
    """Run one conditional status update inside the caller's transaction.

    Raises InvalidTransitionError (after rollback) when the row was not in
    an allowed ``from`` state at write time.  The caller commits.
    """
    rule = STATUS_TRANSITIONS[action]
    result = db.session.execute(
        update(Project)
        .where(Project.id == project.id, Project.status.in_(rule["from"]))
        .values(status=rule["to"], **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = db.session.execute(
            select(Project.status).where(Project.id == project.id)
        ).scalar_one_or_none()
        db.session.rollback()
        raise InvalidTransitionError(
            current or "deleted", rule["to"], f"'{action}' is not allowed",
        )
    db.session.expire(project)
    logger.info(
        "Project status → %s via %s", rule["to"], action,
        extra={"project_id": project.id},
    )


def phase_implied_by_status(status: str) -> str | None:
    """Display helper: the phase a status roughly corresponds to."""
    return _STATUS_PHASE.get(status)


# ── Status operations ────────────────────────────────────────────────────


def mark_sent(actor: ActorContext, project_id: str) -> Project:
    """draft → sent, then email the respondent their link."""
    require_owner(actor)
    project = get_project(actor, project_id)
    apply_transition(project, "send", sent_at=utcnow())
    commit_or_raise(context="mark_sent")

    dispatch_for(project, OnboardingLink)
    return project


def record_respondent_activity(project: Project) -> None:
    """Stamp ``last_accessed_at`` and move a fresh project to in_progress.

    Runs inside the caller's transaction.  Losing the draft/sent race to a
    concurrent request is fine: the project is in_progress either way.
    """
    now = utcnow()
    result = db.session.execute(
        update(Project)
        .where(Project.id == project.id, Project.status.in_(STATUS_TRANSITIONS["start"]["from"]))
        .values(status="in_progress", last_accessed_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.execute(
            update(Project)
            .where(Project.id == project.id)
            .values(last_accessed_at=now)
            .execution_options(synchronize_session=False)
        )
    else:
        logger.info("Respondent started the questionnaire", extra={"project_id": project.id})
    db.session.expire(project)


def record_respondent_visit(actor: ActorContext, project_id: str) -> Project:
    """Respondent opened their link."""
    project = get_project(actor, project_id)
    record_respondent_activity(project)
    commit_or_raise(context="respondent_visit")
    return project


def _review(project: Project) -> None:
    apply_transition(
        project, "review",
        completed_at=func.coalesce(Project.completed_at, utcnow()),
    )


def mark_reviewed(actor: ActorContext, project_id: str) -> Project:
    """completed → reviewed. Calling it again on a reviewed project is a no-op."""
    require_owner(actor)
    project = get_project(actor, project_id)
    if project.status == "reviewed":
        return project

    _review(project)
    commit_or_raise(context="mark_reviewed")

    dispatch_for(project, StatusChanged, new_status="reviewed")
    return project


def update_status(actor: ActorContext, project_id: str, target: str) -> Project:
    """Owner-facing entry point over the permitted owner transitions."""
    require_owner(actor)
    if target not in PROJECT_STATUSES:
        raise ValidationError(
            f"Unknown status '{target}'",
            details={"status": f"must be one of {', '.join(PROJECT_STATUSES)}"},
        )
    action = OWNER_STATUS_TARGETS.get(target)
    if action is None:
        project = get_project(actor, project_id)
        raise InvalidTransitionError(project.status, target, "not an owner transition")
    if action == "send":
        return mark_sent(actor, project_id)
    return mark_reviewed(actor, project_id)


# ── Phase operations ─────────────────────────────────────────────────────


def _move_phase(state: LifecycleState, current: str, target: str, *, record: bool = True) -> None:
    """Conditional phase update keyed on the phase we read."""
    now = utcnow()
    completed = list(state.phases_completed or [])
    if record:
        started = as_utc(state.phase_started_at)
        completed.append({
            "phase": current,
            "started_at": started.isoformat() if started else None,
            "completed_at": now.isoformat(),
        })
    result = db.session.execute(
        update(LifecycleState)
        .where(LifecycleState.project_id == state.project_id,
               LifecycleState.current_phase == current)
        .values(current_phase=target, phase_started_at=now, phases_completed=completed)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise InvalidTransitionError(current, target, "phase changed concurrently")
    db.session.expire(state)


def advance_phase(
    actor: ActorContext,
    project_id: str,
    target: str | None = None,
    *,
    confirm_delivery: bool = False,
) -> LifecycleState:
    """Move the project forward to ``target`` (default: the next phase).

    Reaching ``completed`` with ``confirm_delivery`` on a completed project
    also signs the project off as reviewed, in the same transaction.
    """
    require_owner(actor)
    if target is not None and target not in LIFECYCLE_PHASES:
        raise ValidationError(
            f"Unknown phase '{target}'",
            details={"phase": f"must be one of {', '.join(LIFECYCLE_PHASES)}"},
        )
    project = get_project(actor, project_id)
    state = get_lifecycle_state(project)
    db.session.flush()

    current = state.current_phase
    if target is None:
        idx = phase_index(current)
        if idx == len(LIFECYCLE_PHASES) - 1:
            raise InvalidTransitionError(current, current, "already at the final phase")
        target = LIFECYCLE_PHASES[idx + 1]

    if phase_index(target) <= phase_index(current):
        raise InvalidTransitionError(current, target, "phases only move forward")

    reviewed = False
    if target == "completed" and confirm_delivery and project.status == "completed":
        _review(project)
        reviewed = True

    _move_phase(state, current, target)
    commit_or_raise(context="advance_phase")
    logger.info("Phase %s → %s", current, target, extra={"project_id": project_id})

    if reviewed:
        dispatch_for(project, StatusChanged, new_status="reviewed")
    return state


def deliver(actor: ActorContext, project_id: str, notes: str = "") -> LifecycleState:
    """Hand the final files over: phase → delivery, respondent notified.

    Only a project with a submitted brief can be delivered.  Delivering
    again (e.g. corrected files) re-notifies without moving the phase.
    """
    require_owner(actor)
    notes = (notes or "").strip() if isinstance(notes, str) else ""
    if len(notes) > MAX_DELIVERY_NOTES:
        raise ValidationError(
            f"notes must be at most {MAX_DELIVERY_NOTES} characters", details={"notes": "too long"},
        )
    project = get_project(actor, project_id)
    if project.status not in ("completed", "reviewed"):
        raise InvalidTransitionError(project.status, "delivery", "no submitted brief to deliver against")

    state = get_lifecycle_state(project)
    db.session.flush()
    current = state.current_phase
    if phase_index(current) < phase_index("delivery"):
        _move_phase(state, current, "delivery")

    add_message(
        project,
        sender_kind=actor.kind,
        sender_id=actor.identity,
        content=notes or "Deliverables are ready for review.",
        metadata={"type": "delivery"},
    )
    commit_or_raise(context="deliver")
    logger.info("Deliverables handed over", extra={"project_id": project_id})

    dispatch_for(project, DeliverablesReady, notes=notes)
    return state


def enter_feedback_phase(state: LifecycleState) -> bool:
    """Move to ``feedback`` when work is first shared for review.

    Runs inside the caller's transaction.  A project already at or past
    ``feedback`` keeps its phase; returns whether the phase moved.
    """
    current = state.current_phase
    if phase_index(current) >= phase_index("feedback"):
        return False
    _move_phase(state, current, "feedback")
    logger.info("Phase %s → feedback", current, extra={"project_id": state.project_id})
    return True


def regress_for_revision(state: LifecycleState) -> None:
    """Start-of-revision-cycle phase handling, inside the caller's transaction.

    The phase falls back to ``revision`` when it is already past it (the one
    permitted backwards move) and the cycle counter goes up.
    """
    current = state.current_phase
    cycles = (state.revision_cycles or 0) + 1
    if phase_index(current) > phase_index("revision"):
        logger.warning(
            "Phase regression %s → revision (revision cycle %d)", current, cycles,
            extra={"project_id": state.project_id},
        )
        _move_phase(state, current, "revision", record=False)
    db.session.execute(
        update(LifecycleState)
        .where(LifecycleState.project_id == state.project_id)
        .values(revision_cycles=LifecycleState.revision_cycles + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.expire(state)


# ── Blockers ─────────────────────────────────────────────────────────────


def add_blocker(
    actor: ActorContext,
    project_id: str,
    description: str,
    severity: str = "medium",
) -> LifecycleState:
    require_owner(actor)
    description = (description or "").strip()
    if not description:
        raise ValidationError("description is required", details={"description": "required"})
    if len(description) > MAX_BLOCKER_DESCRIPTION:
        raise ValidationError(
            f"description must be at most {MAX_BLOCKER_DESCRIPTION} characters",
            details={"description": "too long"},
        )
    if severity not in BLOCKER_SEVERITIES:
        raise ValidationError(
            f"Unknown severity '{severity}'",
            details={"severity": f"must be one of {', '.join(BLOCKER_SEVERITIES)}"},
        )

    project = get_project(actor, project_id)
    state = get_lifecycle_state(project)
    blocker = {
        "id": str(uuid.uuid4()),
        "description": description,
        "severity": severity,
        "created_at": utcnow().isoformat(),
        "resolved_at": None,
    }
    state.blockers = [*(state.blockers or []), blocker]
    commit_or_raise(context="add_blocker")
    logger.info("Blocker added (%s)", severity, extra={"project_id": project_id})
    return state


def resolve_blocker(actor: ActorContext, project_id: str, blocker_id: str) -> LifecycleState:
    require_owner(actor)
    project = get_project(actor, project_id)
    state = get_lifecycle_state(project)

    blockers = [dict(b) for b in (state.blockers or [])]
    target = next((b for b in blockers if b.get("id") == blocker_id), None)
    if target is None:
        raise NotFoundError(resource="Blocker", resource_id=blocker_id)
    if target.get("resolved_at"):
        return state

    target["resolved_at"] = utcnow().isoformat()
    state.blockers = blockers
    commit_or_raise(context="resolve_blocker")
    return state


# ── Health ───────────────────────────────────────────────────────────────


def compute_health_score(project: Project, state: LifecycleState, *,
                         pending_revisions: int = 0, now=None) -> int:
    """Advisory 0–100 score. Never gates a transition.

    Starts at 100 and subtracts for unresolved blockers (by severity), for a
    respondent going quiet while the project waits on them, for unanswered
    revision requests and for a phase lagging behind what the status implies.
    """
    now = now or utcnow()
    score = 100

    for blocker in state.active_blockers:
        score -= BLOCKER_PENALTY.get(blocker.get("severity"), BLOCKER_PENALTY["medium"])

    if project.status in ("sent", "in_progress"):
        last = as_utc(project.last_accessed_at or project.sent_at or project.created_at)
        if last is not None:
            idle_days = (now - last).days
            if idle_days > INACTIVITY_GRACE_DAYS:
                score -= min(30, (idle_days - INACTIVITY_GRACE_DAYS) * 2)

    score -= min(20, pending_revisions * 5)

    implied = phase_implied_by_status(project.status)
    if implied and phase_index(state.current_phase) < phase_index(implied):
        score -= 10 * (phase_index(implied) - phase_index(state.current_phase))

    return max(0, min(100, score))


# ── Deletion ─────────────────────────────────────────────────────────────

# Children first; the project row goes last
_CASCADE_ORDER = (
    Notification,
    DeliverableFeedback,
    Deliverable,
    RevisionRequest,
    Message,
    Brief,
    Asset,
    Response,
    LifecycleState,
)


def delete_project(actor: ActorContext, project_id: str) -> None:
    """Delete a project and everything hanging off it. Irreversible."""
    require_owner(actor)
    project = get_project(actor, project_id)

    counts = {}
    for model in _CASCADE_ORDER:
        result = db.session.execute(
            delete(model).where(model.project_id == project.id)
            .execution_options(synchronize_session=False)
        )
        counts[model.__tablename__] = result.rowcount
    db.session.expunge(project)
    db.session.execute(
        delete(Project).where(Project.id == project_id)
        .execution_options(synchronize_session=False)
    )
    commit_or_raise(context="delete_project")

    logger.info(
        "Project deleted with %s", counts,
        extra={"project_id": project_id},
    )
