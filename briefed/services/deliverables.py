"""
Deliverables Service

Design work the owner shares with the respondent, reviewed in rounds:

    owner creates        status draft, invisible to the respondent
    owner shares         draft → shared, shared_at set, phase → feedback
    respondent reviews   one verdict per round: approve → approved,
                         changes / neutral → feedback_given
    owner addresses      feedback_given → changes_addressed, next round

Design decisions:
    - Sharing and addressing are conditional ``UPDATE ... WHERE status``
      statements; a stale request gets INVALID_TRANSITION.
    - The (deliverable, round) unique constraint on feedback rows is the
      once-per-round guard; the status update only records the verdict.
    - Drafts are NOT_FOUND for the respondent, like any other id they
      cannot see.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from briefed.core.actor import ActorContext, require_owner, require_respondent
from briefed.core.exceptions import (
    AlreadyRespondedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from briefed.models import db
from briefed.models.deliverable import (
    FEEDBACK_CATEGORIES,
    OVERALL_RATINGS,
    REVIEWABLE_STATUSES,
    Deliverable,
    DeliverableFeedback,
)
from briefed.services import lifecycle
from briefed.services.access import get_lifecycle_state, get_project
from briefed.services.events import DeliverableFeedbackGiven, DeliverablesReady
from briefed.services.notification import dispatch_for
from briefed.utils.helpers import commit_or_raise, is_uuid, utcnow

logger = logging.getLogger(__name__)

MAX_TITLE = 200
MAX_FILE_URL = 1000
MAX_FILE_TYPE = 100
RATING_RANGE = range(1, 6)


def _optional_text(value, field: str, limit: int, errors: dict) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        errors[field] = "must be a string"
        return None
    value = value.strip()
    if len(value) > limit:
        errors[field] = "too long"
    return value or None


def _comments_limit() -> int:
    return int(current_app.config.get("RESPONSE_MAX_LENGTH", 5000))


def validate_category_ratings(ratings) -> dict:
    """Category → score 1..5. Unknown categories and odd scores are rejected."""
    if ratings is None:
        return {}
    if not isinstance(ratings, dict):
        raise ValidationError("categoryRatings must be an object", details={"categoryRatings": "invalid"})
    errors = {}
    for key, score in ratings.items():
        if key not in FEEDBACK_CATEGORIES:
            errors[key] = "unknown category"
        elif isinstance(score, bool) or not isinstance(score, int) or score not in RATING_RANGE:
            errors[key] = "must be an integer from 1 to 5"
    if errors:
        raise ValidationError("Invalid category ratings", details=errors)
    return dict(ratings)


def _get_deliverable(actor: ActorContext, project_id: str, deliverable_id: str) -> Deliverable:
    if not is_uuid(deliverable_id):
        raise NotFoundError(resource="Deliverable", resource_id=deliverable_id)
    query = select(Deliverable).where(
        Deliverable.id == deliverable_id,
        Deliverable.project_id == project_id,
    )
    if actor.is_respondent:
        query = query.where(Deliverable.status != "draft")
    deliverable = db.session.execute(query).scalar_one_or_none()
    if deliverable is None:
        raise NotFoundError(resource="Deliverable", resource_id=deliverable_id)
    return deliverable


# ── Owner side ───────────────────────────────────────────────────────────


def create_deliverable(
    actor: ActorContext,
    project_id: str,
    *,
    title: str,
    description: str | None = None,
    file_url: str | None = None,
    file_type: str | None = None,
) -> Deliverable:
    """Add a draft deliverable. Re-using a title starts the next version."""
    require_owner(actor)
    errors = {}
    title = title.strip() if isinstance(title, str) else ""
    if not title:
        errors["title"] = "required"
    elif len(title) > MAX_TITLE:
        errors["title"] = "too long"
    description = _optional_text(description, "description", _comments_limit(), errors)
    file_url = _optional_text(file_url, "fileUrl", MAX_FILE_URL, errors)
    file_type = _optional_text(file_type, "fileType", MAX_FILE_TYPE, errors)
    if errors:
        raise ValidationError("Invalid deliverable", details=errors)

    project = get_project(actor, project_id)
    previous = db.session.execute(
        select(func.max(Deliverable.version)).where(
            Deliverable.project_id == project_id,
            Deliverable.title == title,
        )
    ).scalar_one()

    deliverable = Deliverable(
        project_id=project.id,
        owner_id=actor.owner_id,
        title=title,
        description=description,
        file_url=file_url,
        file_type=file_type,
        version=(previous or 0) + 1,
        round_number=1,
        status="draft",
    )
    db.session.add(deliverable)
    commit_or_raise(context="create_deliverable")
    logger.info("Deliverable created (v%d)", deliverable.version, extra={"project_id": project_id})
    return deliverable


def share_deliverable(actor: ActorContext, project_id: str, deliverable_id: str) -> Deliverable:
    """draft → shared. The respondent is notified and the project enters feedback."""
    require_owner(actor)
    project = get_project(actor, project_id)
    deliverable = _get_deliverable(actor, project_id, deliverable_id)

    result = db.session.execute(
        update(Deliverable)
        .where(Deliverable.id == deliverable.id, Deliverable.status == "draft")
        .values(status="shared", shared_at=utcnow(), updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise InvalidTransitionError(deliverable.status, "shared", "only drafts can be shared")

    lifecycle.enter_feedback_phase(get_lifecycle_state(project))
    commit_or_raise(context="share_deliverable")
    db.session.expire(deliverable)
    logger.info("Deliverable shared", extra={"project_id": project_id})

    dispatch_for(project, DeliverablesReady, notes=f"{deliverable.title} is ready for your review.")
    return deliverable


def address_feedback(actor: ActorContext, project_id: str, deliverable_id: str) -> Deliverable:
    """feedback_given → changes_addressed; the respondent reviews the next round."""
    require_owner(actor)
    project = get_project(actor, project_id)
    deliverable = _get_deliverable(actor, project_id, deliverable_id)
    round_number = deliverable.round_number

    result = db.session.execute(
        update(Deliverable)
        .where(
            Deliverable.id == deliverable.id,
            Deliverable.status == "feedback_given",
            Deliverable.round_number == round_number,
        )
        .values(status="changes_addressed", round_number=round_number + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise InvalidTransitionError(
            deliverable.status, "changes_addressed", "no open feedback to address",
        )
    db.session.execute(
        update(DeliverableFeedback)
        .where(
            DeliverableFeedback.deliverable_id == deliverable.id,
            DeliverableFeedback.round_number <= round_number,
        )
        .values(addressed=True)
        .execution_options(synchronize_session=False)
    )
    commit_or_raise(context="address_feedback")
    db.session.expire(deliverable)
    logger.info("Feedback addressed, round %d open", round_number + 1, extra={"project_id": project_id})

    dispatch_for(
        project, DeliverablesReady,
        notes=f"{deliverable.title} has been updated (round {round_number + 1}).",
    )
    return deliverable


def delete_deliverable(actor: ActorContext, project_id: str, deliverable_id: str) -> None:
    require_owner(actor)
    get_project(actor, project_id)
    deliverable = _get_deliverable(actor, project_id, deliverable_id)
    db.session.delete(deliverable)
    commit_or_raise(context="delete_deliverable")
    logger.info("Deliverable deleted", extra={"project_id": project_id})


# ── Both sides ───────────────────────────────────────────────────────────


def list_deliverables(actor: ActorContext, project_id: str) -> list[Deliverable]:
    """Oldest round first. The respondent never sees drafts."""
    get_project(actor, project_id)
    query = select(Deliverable).where(Deliverable.project_id == project_id)
    if actor.is_respondent:
        query = query.where(Deliverable.status != "draft")
    return list(db.session.execute(
        query.order_by(Deliverable.created_at.asc(), Deliverable.version.asc())
    ).scalars())


def list_feedback(actor: ActorContext, project_id: str, deliverable_id: str) -> list[DeliverableFeedback]:
    get_project(actor, project_id)
    deliverable = _get_deliverable(actor, project_id, deliverable_id)
    return list(deliverable.feedback)


# ── Respondent side ──────────────────────────────────────────────────────


def give_feedback(
    actor: ActorContext,
    project_id: str,
    deliverable_id: str,
    *,
    overall_rating: str,
    category_ratings: dict | None = None,
    comments: str | None = None,
) -> DeliverableFeedback:
    """Respondent's verdict on the current round. Exactly once per round."""
    require_respondent(actor, project_id)
    if overall_rating not in OVERALL_RATINGS:
        raise ValidationError(
            f"Unknown rating '{overall_rating}'",
            details={"overallRating": f"must be one of {', '.join(OVERALL_RATINGS)}"},
        )
    category_ratings = validate_category_ratings(category_ratings)
    errors = {}
    comments = _optional_text(comments, "comments", _comments_limit(), errors)
    if errors:
        raise ValidationError("Invalid feedback", details=errors)

    project = get_project(actor, project_id)
    deliverable = _get_deliverable(actor, project_id, deliverable_id)
    if deliverable.status not in REVIEWABLE_STATUSES:
        raise AlreadyRespondedError(deliverable.id, "Feedback for this round has already been given")
    round_number = deliverable.round_number

    feedback = DeliverableFeedback(
        deliverable_id=deliverable.id,
        project_id=project.id,
        round_number=round_number,
        overall_rating=overall_rating,
        category_ratings=category_ratings,
        comments=comments,
    )
    db.session.add(feedback)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        logger.info("Round already reviewed", extra={"project_id": project_id})
        raise AlreadyRespondedError(
            deliverable_id, "Feedback for this round has already been given",
        ) from exc

    new_status = "approved" if overall_rating == "approve" else "feedback_given"
    result = db.session.execute(
        update(Deliverable)
        .where(
            Deliverable.id == deliverable.id,
            Deliverable.round_number == round_number,
            Deliverable.status.in_(REVIEWABLE_STATUSES),
        )
        .values(status=new_status, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise AlreadyRespondedError(deliverable_id, "Feedback for this round has already been given")

    lifecycle.record_respondent_activity(project)
    commit_or_raise(
        on_integrity=lambda: AlreadyRespondedError(
            deliverable_id, "Feedback for this round has already been given",
        ),
        context="give_deliverable_feedback",
    )
    db.session.expire(deliverable)
    logger.info("Deliverable reviewed: %s", overall_rating, extra={"project_id": project_id})

    dispatch_for(
        project, DeliverableFeedbackGiven,
        deliverable_id=deliverable_id,
        title=deliverable.title,
        rating=overall_rating,
        comments=comments or "",
    )
    return feedback
