"""
Briefed
Email Service.

Provides email sending with template support.
When SMTP is not configured, emails are logged but not sent (dev/test mode).

Every real send runs as a detached task (see ``briefed.services.detached``):
the SMTP settings are snapshotted from the app config first, so the worker
thread never needs an application context.

Configuration (env vars):
    MAIL_SERVER     SMTP host (default: None → log-only mode)
    MAIL_PORT       SMTP port (default: 587)
    MAIL_USE_TLS    Use TLS (default: true)
    MAIL_USERNAME   SMTP username
    MAIL_PASSWORD   SMTP password
    MAIL_DEFAULT_SENDER  Default from address
    MAIL_TIMEOUT    Socket timeout in seconds (default: 5)
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from flask import current_app
from markupsafe import escape

from briefed.services import detached

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Email Templates
# ═══════════════════════════════════════════════════════════════════════════

_LAYOUT = """
<div style="font-family: 'Inter', Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <div style="background: #111827; color: white; padding: 16px 24px; border-radius: 8px 8px 0 0;">
        <h2 style="margin: 0; font-size: 18px;">{heading}</h2>
    </div>
    <div style="background: #f9fafb; padding: 24px; border: 1px solid #e5e7eb; border-top: none;">
        {body}
        <p style="margin-top: 24px;">
            <a href="{url}" style="background: #111827; color: white; padding: 10px 18px;
               border-radius: 6px; text-decoration: none;">{cta}</a>
        </p>
    </div>
    <div style="background: #f3f4f6; padding: 12px 24px; border-radius: 0 0 8px 8px;
                border: 1px solid #e5e7eb; border-top: none; text-align: center;">
        <p style="color: #9ca3af; font-size: 12px; margin: 0;">Sent by Briefed</p>
    </div>
</div>
"""

_TEMPLATES: dict[str, dict[str, str]] = {
    "onboarding_link": {
        "subject": "{owner_name} sent you a {category} brief to fill in",
        "heading": "Your project questionnaire",
        "body": (
            "<p>Hi {respondent_name},</p>"
            "<p>{owner_name} would like a few details about your {category} project. "
            "The questionnaire saves as you go, so you can come back any time.</p>"
        ),
        "cta": "Start the questionnaire",
    },
    "brief_submitted": {
        "subject": "New brief submitted by {respondent_name}",
        "heading": "A brief is ready",
        "body": (
            "<p>{respondent_name} finished the {category} questionnaire.</p>"
            "<p>Brief quality: <strong>{grade}</strong> "
            "({confidence}% confidence).</p>"
        ),
        "cta": "Review the brief",
    },
    "client_receipt": {
        "subject": "Your {category} brief has been submitted!",
        "heading": "Thanks, we've got it",
        "body": (
            "<p>Hi {respondent_name},</p>"
            "<p>Your answers are with {owner_name}. You will hear back soon.</p>"
        ),
        "cta": "View your brief",
    },
    "status_change": {
        "subject": "Your project status has been updated to {status_label}",
        "heading": "Project update",
        "body": (
            "<p>Hi {respondent_name},</p>"
            "<p>{owner_name} moved your {category} project to "
            "<strong>{status_label}</strong>.</p>"
        ),
        "cta": "Open your project",
    },
    "new_message": {
        "subject": "You have a new message from your {sender_role}",
        "heading": "New message",
        "body": (
            "<p>Hi {recipient_name},</p>"
            "<p>{sender_name} wrote:</p>"
            "<blockquote style=\"border-left: 3px solid #d1d5db; padding-left: 12px; color: #4b5563;\">"
            "{preview}</blockquote>"
        ),
        "cta": "Reply",
    },
    "revision_request": {
        "subject": "{owner_name} has a question about your {category} brief",
        "heading": "A quick follow-up",
        "body": (
            "<p>Hi {respondent_name},</p>"
            "<p>{owner_name} asked about <em>{step_label}</em>:</p>"
            "<blockquote style=\"border-left: 3px solid #d1d5db; padding-left: 12px; color: #4b5563;\">"
            "{message}</blockquote>"
        ),
        "cta": "Answer",
    },
    "revision_response": {
        "subject": "{respondent_name} answered your revision request",
        "heading": "Revision answered",
        "body": (
            "<p>{respondent_name} replied about <em>{step_label}</em>:</p>"
            "<blockquote style=\"border-left: 3px solid #d1d5db; padding-left: 12px; color: #4b5563;\">"
            "{response}</blockquote>"
        ),
        "cta": "Open the project",
    },
    "deliverables_ready": {
        "subject": "Your deliverables are ready for review!",
        "heading": "Deliverables ready",
        "body": (
            "<p>Hi {respondent_name},</p>"
            "<p>{owner_name} has delivered the files for your {category} project.</p>"
            "<p>{notes}</p>"
        ),
        "cta": "See the deliverables",
    },
    "deliverable_feedback": {
        "subject": "{respondent_name} reviewed {title}",
        "heading": "Deliverable feedback",
        "body": (
            "<p>{respondent_name} reviewed <em>{title}</em>: <strong>{verdict}</strong>.</p>"
            "<blockquote style=\"border-left: 3px solid #d1d5db; padding-left: 12px; color: #4b5563;\">"
            "{comments}</blockquote>"
        ),
        "cta": "Open the project",
    },
}


@dataclass(frozen=True)
class MailSettings:
    """Point-in-time copy of the SMTP config, safe to hand to a worker thread."""

    server: str | None
    port: int
    use_tls: bool
    username: str | None
    password: str | None
    sender: str
    timeout: float

    @property
    def configured(self) -> bool:
        return bool(self.server)


class EmailService:
    """
    Email sending service with template support.

    In development/test mode (no MAIL_SERVER configured), emails are
    logged but not sent and no worker thread is started.
    """

    @staticmethod
    def settings() -> MailSettings:
        cfg = current_app.config
        server = cfg.get("MAIL_SERVER")
        return MailSettings(
            server=server,
            port=int(cfg.get("MAIL_PORT", 587)),
            use_tls=bool(cfg.get("MAIL_USE_TLS", True)),
            username=cfg.get("MAIL_USERNAME"),
            password=cfg.get("MAIL_PASSWORD"),
            sender=cfg.get("MAIL_DEFAULT_SENDER") or f"noreply@{server}",
            timeout=float(cfg.get("MAIL_TIMEOUT", 5)),
        )

    @staticmethod
    def get_template(template_name: str) -> dict[str, str] | None:
        """Get an email template by name."""
        return _TEMPLATES.get(template_name)

    @classmethod
    def render(cls, template_name: str, context: dict[str, Any]) -> tuple[str, str]:
        """Return ``(subject, html)``. Context values are HTML-escaped in the body."""
        template = cls.get_template(template_name)
        if not template:
            raise KeyError(template_name)

        subject = template["subject"].format_map(_SafeDict(context))
        safe = _SafeDict({k: escape("" if v is None else v) for k, v in context.items()})
        html_body = _LAYOUT.format(
            heading=escape(template["heading"]),
            body=template["body"].format_map(safe),
            url=safe.get("url", "#"),
            cta=escape(template["cta"]),
        )
        return subject, html_body

    @classmethod
    def send(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        subject: str,
        html_body: str,
        template_name: str | None = None,
    ) -> str:
        """
        Send an email without blocking the caller.

        Returns:
            "logged" in dev mode, otherwise the detached task name.
        """
        settings = cls.settings()
        if not settings.configured:
            # Dev/test mode, log only
            logger.info(
                "Email (dev mode): to=%s subject='%s' template=%s",
                to_email, subject, template_name,
            )
            return "logged"

        return detached.spawn(
            f"email-{template_name or 'raw'}",
            cls.deliver,
            settings,
            to_email=to_email,
            to_name=to_name,
            subject=subject,
            html_body=html_body,
        )

    @classmethod
    def send_from_template(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        template_name: str,
        context: dict[str, Any],
    ) -> str | None:
        """
        Send an email using a named template.

        Template variables are interpolated from the context dict.
        """
        if not cls.get_template(template_name):
            logger.warning("Email template not found: %s", template_name)
            return None

        subject, html_body = cls.render(template_name, context)
        return cls.send(
            to_email=to_email,
            to_name=to_name,
            subject=subject,
            html_body=html_body,
            template_name=template_name,
        )

    @staticmethod
    def deliver(settings: MailSettings, *, to_email: str, to_name: str | None,
                subject: str, html_body: str) -> None:
        """Actually send via SMTP. Runs on a worker thread."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = settings.sender
        msg["To"] = f"{to_name} <{to_email}>" if to_name else to_email
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(settings.server, settings.port, timeout=settings.timeout) as smtp:
            if settings.use_tls:
                smtp.starttls()
            if settings.username and settings.password:
                smtp.login(settings.username, settings.password)
            smtp.send_message(msg)
        logger.info("Email sent: to=%s subject='%s'", to_email, subject)


class _SafeDict(dict):
    """Dict that returns {key} for missing keys instead of raising."""

    def __missing__(self, key):
        return f"{{{key}}}"
