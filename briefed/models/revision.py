"""
Revision request and project message models.

Models:
    - RevisionRequest: owner asks the respondent to revisit one step/field
    - Message: append-only conversation between owner and respondent
"""

import uuid
from datetime import datetime, timezone

from briefed.models import db


def _uuid():
    return str(uuid.uuid4())


REVISION_STATUSES = ("pending", "responded")

SENDER_KINDS = ("owner", "respondent")
MESSAGE_TYPES = frozenset({"approval", "feedback", "revision", "delivery"})


class RevisionRequest(db.Model):
    """
    One owner request for clarification.

    Moves ``pending → responded`` exactly once; the response text is never
    overwritten afterwards.
    """

    __tablename__ = "revision_requests"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    requester_id = db.Column(db.Integer, db.ForeignKey("owners.id", ondelete="SET NULL"), nullable=True)
    step_key = db.Column(db.String(40), nullable=False)
    field_key = db.Column(db.String(100), nullable=True)
    message = db.Column(db.Text, nullable=False)

    status = db.Column(db.String(20), nullable=False, default="pending")
    response = db.Column(db.Text, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )
    responded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        db.CheckConstraint("status IN ('pending', 'responded')", name="ck_revision_requests_status"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "requester_id": self.requester_id,
            "step_key": self.step_key,
            "field_key": self.field_key,
            "message": self.message,
            "status": self.status,
            "response": self.response,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
        }

    def __repr__(self):
        return f"<RevisionRequest {self.id}: {self.status}>"


class Message(db.Model):
    __tablename__ = "messages"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    sender_kind = db.Column(db.String(20), nullable=False)
    sender_id = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)
    # "metadata" is reserved on declarative models
    meta = db.Column("metadata", db.JSON, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )

    @property
    def message_type(self):
        return (self.meta or {}).get("type")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "sender_kind": self.sender_kind,
            "sender_id": self.sender_id,
            "content": self.content,
            "metadata": self.meta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Message {self.id} from {self.sender_kind}>"
