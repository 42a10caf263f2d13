"""
Notification domain model.

Models:
    - Notification: in-app notification record with read tracking
"""

from datetime import datetime, timezone

from briefed.models import db


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_TYPES = {
    "brief_viewed",
    "brief_submitted",
    "revision_requested",
    "revision_response",
    "asset_uploaded",
    "project_completed",
    "new_message",
    "status_changed",
    "deliverables_ready",
    "deliverable_feedback",
}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient account per event.  Best-effort: created after
    the primary change has committed, never inside its transaction.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(
        db.Integer, db.ForeignKey("owners.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    type = db.Column(db.String(30), nullable=False, comment="brief_submitted | new_message | ...")
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")

    # Read tracking
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def mark_read(self):
        self.is_read = True
        self.read_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "project_id": self.project_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
