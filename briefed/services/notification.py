"""
Briefed
Notification Service.

Entry points:

  NotificationService   in-app notification records for owner accounts
                        (create, list, unread count, mark read)
  dispatch(event)       cross-actor fan-out: one in-app record per account
                        plus templated email, each on its own error boundary
  dispatch_for(project, EventCls, **fields)
                        builds the addressing inside that same boundary

dispatch() is called after the primary change has committed and never
raises.  A failed in-app write is rolled back and logged; email goes out on
a detached task (or is only logged when SMTP is not configured).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import inspect as sa_inspect

from briefed.core.exceptions import NotFoundError
from briefed.models import db
from briefed.models.notification import Notification
from briefed.services.email_service import EmailService
from briefed.services.events import (
    STATUS_LABELS,
    Addressing,
    AssetUploaded,
    BriefSubmitted,
    DeliverableFeedbackGiven,
    DeliverablesReady,
    Event,
    NewMessage,
    OnboardingLink,
    RevisionRequested,
    RevisionResponded,
    StatusChanged,
    SubmissionReceipt,
)

logger = logging.getLogger(__name__)


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, recipient_id, type, title, message="", project_id=None):
        """
        Create a single notification record.

        Returns:
            The created Notification instance (already committed).
        """
        notif = Notification(
            recipient_id=recipient_id,
            project_id=project_id,
            type=type,
            title=title,
            message=message,
        )
        db.session.add(notif)
        db.session.commit()
        return notif

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_recipient(recipient_id, project_id=None, unread_only=False,
                           limit=50, offset=0):
        """
        Retrieve notifications for a recipient, newest first.
        """
        q = Notification.query.filter_by(recipient_id=recipient_id)
        if project_id:
            q = q.filter_by(project_id=project_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    @staticmethod
    def unread_count(recipient_id):
        """Return count of unread notifications."""
        return Notification.query.filter_by(recipient_id=recipient_id, is_read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(recipient_id, notification_id):
        """Mark a single notification as read. Other owners' records are invisible."""
        notif = db.session.get(Notification, notification_id)
        if not notif or notif.recipient_id != recipient_id:
            raise NotFoundError(resource="Notification", resource_id=notification_id)
        if not notif.is_read:
            notif.mark_read()
            db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(recipient_id):
        """Mark all notifications for a recipient as read."""
        now = datetime.now(timezone.utc)
        count = (
            Notification.query.filter_by(recipient_id=recipient_id, is_read=False)
            .update({"is_read": True, "read_at": now}, synchronize_session="fetch")
        )
        db.session.commit()
        return count


# ═══════════════════════════════════════════════════════════════════════════
#  Dispatcher
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class _InApp:
    recipient_id: int
    type: str
    title: str
    message: str = ""


@dataclass
class _Mail:
    to_email: str
    to_name: str | None
    template_name: str
    context: dict = field(default_factory=dict)


def _respondent_url(event: Event) -> str:
    base = current_app.config.get("APP_URL", "").rstrip("/")
    return f"{base}/brief/{event.project_id}?token={event.to.access_token}"


def _owner_url(event: Event) -> str:
    base = current_app.config.get("APP_URL", "").rstrip("/")
    return f"{base}/dashboard/projects/{event.project_id}"


def _base_context(event: Event) -> dict:
    return {
        "owner_name": event.to.owner_name,
        "respondent_name": event.to.respondent_label,
        "category": event.to.category_label,
    }


def _to_respondent(event: Event, template_name: str, **context) -> _Mail:
    ctx = _base_context(event)
    ctx["url"] = _respondent_url(event)
    ctx.update(context)
    return _Mail(event.to.respondent_email, event.to.respondent_name, template_name, ctx)


def _to_owner(event: Event, template_name: str, **context) -> list[_Mail]:
    if not event.to.owner_email:
        return []
    ctx = _base_context(event)
    ctx["url"] = _owner_url(event)
    ctx.update(context)
    return [_Mail(event.to.owner_email, event.to.owner_name, template_name, ctx)]


def _respondent_in_app(event: Event, type_: str, title: str, message: str = "") -> list[_InApp]:
    # Only respondents who linked an account have an in-app inbox
    if event.to.respondent_account_id is None:
        return []
    return [_InApp(event.to.respondent_account_id, type_, title, message)]


def _route_status_changed(event: StatusChanged):
    label = STATUS_LABELS.get(event.new_status, event.new_status)
    kind = "project_completed" if event.new_status == "reviewed" else "status_changed"
    return (
        _respondent_in_app(event, kind, event.summary),
        [_to_respondent(event, "status_change", status_label=label)],
    )


def _route_new_message(event: NewMessage):
    preview = event.content[:280]
    # Always the counterpart of the sender
    if event.sender_kind == "owner":
        mail = _to_respondent(
            event, "new_message",
            recipient_name=event.to.respondent_label,
            sender_name=event.to.owner_name,
            sender_role="designer",
            preview=preview,
        )
        return _respondent_in_app(event, "new_message", event.summary, preview), [mail]
    in_app = [_InApp(event.to.owner_id, "new_message", event.summary, preview)]
    mails = _to_owner(
        event, "new_message",
        recipient_name=event.to.owner_name,
        sender_name=event.to.respondent_label,
        sender_role="client",
        preview=preview,
    )
    return in_app, mails


def _route_revision_requested(event: RevisionRequested):
    step_label = event.step_key.replace("_", " ")
    return (
        _respondent_in_app(event, "revision_requested", event.summary, event.message),
        [_to_respondent(event, "revision_request", step_label=step_label, message=event.message)],
    )


def _route_revision_responded(event: RevisionResponded):
    step_label = event.step_key.replace("_", " ")
    in_app = [_InApp(event.to.owner_id, "revision_response", event.summary, event.response[:280])]
    return in_app, _to_owner(event, "revision_response", step_label=step_label, response=event.response)


def _route_deliverables_ready(event: DeliverablesReady):
    return (
        _respondent_in_app(event, "deliverables_ready", event.summary, event.notes),
        [_to_respondent(event, "deliverables_ready", notes=event.notes)],
    )


_VERDICTS = {"approve": "Approved", "changes": "Changes requested", "neutral": "Neutral"}


def _route_deliverable_feedback(event: DeliverableFeedbackGiven):
    in_app = [_InApp(event.to.owner_id, "deliverable_feedback", event.summary, event.comments[:280])]
    mails = _to_owner(
        event, "deliverable_feedback",
        title=event.title,
        verdict=_VERDICTS.get(event.rating, event.rating),
        comments=event.comments or "No comments.",
    )
    return in_app, mails


def _route_onboarding_link(event: OnboardingLink):
    return [], [_to_respondent(event, "onboarding_link")]


def _route_brief_submitted(event: BriefSubmitted):
    in_app = [_InApp(
        event.to.owner_id,
        "brief_submitted",
        event.summary,
        f"Brief quality {event.grade} ({round(event.confidence * 100)}% confidence)",
    )]
    mails = _to_owner(
        event, "brief_submitted",
        grade=event.grade, confidence=round(event.confidence * 100),
    )
    return in_app, mails


def _route_submission_receipt(event: SubmissionReceipt):
    return [], [_to_respondent(event, "client_receipt")]


def _route_asset_uploaded(event: AssetUploaded):
    return [_InApp(event.to.owner_id, "asset_uploaded", event.summary)], []


_ROUTES = {
    StatusChanged: _route_status_changed,
    NewMessage: _route_new_message,
    RevisionRequested: _route_revision_requested,
    RevisionResponded: _route_revision_responded,
    DeliverablesReady: _route_deliverables_ready,
    DeliverableFeedbackGiven: _route_deliverable_feedback,
    OnboardingLink: _route_onboarding_link,
    BriefSubmitted: _route_brief_submitted,
    SubmissionReceipt: _route_submission_receipt,
    AssetUploaded: _route_asset_uploaded,
}


def _write_in_app(item: _InApp, event: Event) -> None:
    try:
        NotificationService.create(
            recipient_id=item.recipient_id,
            type=item.type,
            title=item.title[:300],
            message=item.message,
            project_id=event.project_id,
        )
    except Exception:
        db.session.rollback()
        logger.warning(
            "In-app notification failed: %s for recipient %s",
            item.type, item.recipient_id,
            exc_info=True,
            extra={"project_id": event.project_id, "event_type": event.event_type},
        )


def _send_mail(mail: _Mail, event: Event) -> None:
    try:
        EmailService.send_from_template(
            to_email=mail.to_email,
            to_name=mail.to_name,
            template_name=mail.template_name,
            context=mail.context,
        )
    except Exception:
        logger.warning(
            "Email dispatch failed: %s to %s",
            mail.template_name, mail.to_email,
            exc_info=True,
            extra={"project_id": event.project_id, "event_type": event.event_type},
        )


def dispatch(event: Event) -> None:
    """Fan an event out to in-app and email channels. Never raises."""
    try:
        route = _ROUTES[type(event)]
        in_app, mails = route(event)
    except Exception:
        logger.warning(
            "Could not route notification event %s",
            getattr(event, "event_type", type(event).__name__),
            exc_info=True,
            extra={"project_id": getattr(event, "project_id", None)},
        )
        return

    logger.debug(
        "Dispatching %s: %d in-app, %d email",
        event.event_type, len(in_app), len(mails),
        extra={"project_id": event.project_id, "event_type": event.event_type},
    )
    for item in in_app:
        _write_in_app(item, event)
    for mail in mails:
        _send_mail(mail, event)


def dispatch_for(project, event_cls: type[Event], **fields) -> None:
    """Address ``event_cls`` to both parties of ``project`` and dispatch it.

    Building the addressing reloads the project and its owner after the
    caller's commit; a failure there is logged and dropped like any other
    dispatch failure.
    """
    try:
        event = event_cls(to=Addressing.from_project(project), **fields)
    except Exception:
        identity = sa_inspect(project).identity
        logger.warning(
            "Could not address %s notification", event_cls.__name__,
            exc_info=True,
            extra={"project_id": identity[0] if identity else None, "event_type": event_cls.__name__},
        )
        return
    dispatch(event)
