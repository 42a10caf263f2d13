"""
Project conversation and activity feed.

Messages are append-only.  An optional ``metadata.type`` (approval,
feedback, revision, delivery) turns a message into an activity-feed event
as well as a line in the thread.
"""

import logging

from flask import current_app
from sqlalchemy import select

from briefed.core.actor import ActorContext
from briefed.core.exceptions import ValidationError
from briefed.models import db
from briefed.models.deliverable import Deliverable, DeliverableFeedback
from briefed.models.revision import MESSAGE_TYPES, Message, RevisionRequest
from briefed.services.access import get_project
from briefed.services.events import NewMessage
from briefed.services.notification import dispatch_for
from briefed.utils.helpers import as_utc, commit_or_raise

logger = logging.getLogger(__name__)


def _validate_metadata(metadata):
    if metadata is None:
        return None
    if not isinstance(metadata, dict):
        raise ValidationError("metadata must be an object", details={"metadata": "must be an object"})
    kind = metadata.get("type")
    if kind is not None and kind not in MESSAGE_TYPES:
        raise ValidationError(
            f"Unknown message type '{kind}'",
            details={"metadata.type": f"must be one of {', '.join(sorted(MESSAGE_TYPES))}"},
        )
    return metadata


def add_message(project, *, sender_kind: str, sender_id: str, content: str, metadata=None) -> Message:
    """Append a message inside the caller's transaction."""
    msg = Message(
        project_id=project.id,
        sender_kind=sender_kind,
        sender_id=sender_id,
        content=content,
        meta=metadata,
    )
    db.session.add(msg)
    return msg


def send_message(actor: ActorContext, project_id: str, content: str, metadata=None) -> Message:
    """Post to the project thread and notify the other party."""
    text = content.strip() if isinstance(content, str) else ""
    if not text:
        raise ValidationError("content is required", details={"content": "required"})
    limit = int(current_app.config.get("RESPONSE_MAX_LENGTH", 5000))
    if len(text) > limit:
        raise ValidationError(
            f"content must be at most {limit} characters", details={"content": "too long"},
        )
    metadata = _validate_metadata(metadata)

    project = get_project(actor, project_id)
    msg = add_message(
        project,
        sender_kind=actor.kind,
        sender_id=actor.identity,
        content=text,
        metadata=metadata,
    )
    commit_or_raise(context="send_message")

    dispatch_for(project, NewMessage, sender_kind=actor.kind, content=text)
    return msg


def list_messages(actor: ActorContext, project_id: str) -> list[Message]:
    get_project(actor, project_id)
    return list(db.session.execute(
        select(Message)
        .where(Message.project_id == project_id)
        .order_by(Message.created_at.asc(), Message.id)
    ).scalars())


def _event(event_id, kind, description, ts):
    ts = as_utc(ts)
    return {
        "id": event_id,
        "type": kind,
        "description": description,
        "timestamp": ts.isoformat() if ts else None,
    }


def activity_feed(actor: ActorContext, project_id: str) -> list[dict]:
    """Project timeline, newest first."""
    project = get_project(actor, project_id)
    events = [_event(f"created-{project.id}", "default", "Project created", project.created_at)]

    if project.completed_at:
        events.append(_event(f"submitted-{project.id}", "default", "Brief submitted", project.completed_at))

    messages = db.session.execute(
        select(Message).where(Message.project_id == project_id).order_by(Message.created_at)
    ).scalars()
    for msg in messages:
        meta = msg.meta or {}
        kind = meta.get("type")
        if kind == "approval":
            desc = "Project approved" if meta.get("action") == "approved" else "Changes requested"
            events.append(_event(msg.id, "approval", desc, msg.created_at))
        elif kind == "feedback" or meta.get("categories"):
            events.append(_event(msg.id, "feedback", "Feedback submitted", msg.created_at))
        elif kind == "delivery":
            events.append(_event(msg.id, "delivery", "Deliverables delivered", msg.created_at))
        elif kind == "revision":
            events.append(_event(msg.id, "revision", "Revision discussed", msg.created_at))

    revisions = db.session.execute(
        select(RevisionRequest).where(RevisionRequest.project_id == project_id)
        .order_by(RevisionRequest.created_at)
    ).scalars()
    for rev in revisions:
        events.append(_event(f"rev-{rev.id}", "revision", "Revision requested", rev.created_at))
        if rev.responded_at:
            events.append(_event(
                f"rev-resp-{rev.id}", "default", "Revision request answered", rev.responded_at,
            ))

    shared = db.session.execute(
        select(Deliverable).where(
            Deliverable.project_id == project_id, Deliverable.shared_at.is_not(None),
        )
    ).scalars()
    for item in shared:
        events.append(_event(f"shared-{item.id}", "delivery", f"{item.title} shared", item.shared_at))

    verdicts = db.session.execute(
        select(DeliverableFeedback, Deliverable.title)
        .join(Deliverable, Deliverable.id == DeliverableFeedback.deliverable_id)
        .where(DeliverableFeedback.project_id == project_id)
    ).all()
    for fb, title in verdicts:
        desc = f"{title} approved" if fb.overall_rating == "approve" else f"Feedback on {title}"
        events.append(_event(f"fb-{fb.id}", "feedback", desc, fb.created_at))

    if project.status == "reviewed":
        events.append(_event(
            f"reviewed-{project.id}", "approval", "Project marked as complete",
            project.completed_at or project.created_at,
        ))

    events.sort(key=lambda e: e["timestamp"] or "", reverse=True)
    return events
