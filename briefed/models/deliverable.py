"""
Deliverable models: design output shared with the respondent for review.

Models:
    - Deliverable: one piece of work (file link plus description) the owner
      shares once it is ready, reviewed in numbered rounds
    - DeliverableFeedback: the respondent's verdict on one round

Deliverable status flow:
    draft → shared                 owner shares it (shared_at set)
    shared → feedback_given        respondent asks for changes / neutral
    shared → approved              respondent approves
    feedback_given → changes_addressed   owner starts the next round
    changes_addressed → feedback_given | approved
"""

import uuid
from datetime import datetime, timezone

from briefed.models import db


def _uuid():
    return str(uuid.uuid4())


DELIVERABLE_STATUSES = ("draft", "shared", "feedback_given", "changes_addressed", "approved")
# Statuses in which the respondent can see the deliverable and review it
REVIEWABLE_STATUSES = frozenset({"shared", "changes_addressed"})

OVERALL_RATINGS = ("approve", "changes", "neutral")
FEEDBACK_CATEGORIES = (
    "visual_design",
    "brand_alignment",
    "layout_composition",
    "typography",
    "color_usage",
)


class Deliverable(db.Model):
    __tablename__ = "deliverables"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    owner_id = db.Column(db.Integer, db.ForeignKey("owners.id", ondelete="SET NULL"), nullable=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    file_url = db.Column(db.String(1000), nullable=True)
    file_type = db.Column(db.String(100), nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    round_number = db.Column(db.Integer, nullable=False, default=1)

    status = db.Column(db.String(20), nullable=False, default="draft")
    shared_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    feedback = db.relationship(
        "DeliverableFeedback",
        back_populates="deliverable",
        order_by="DeliverableFeedback.round_number",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('draft', 'shared', 'feedback_given', 'changes_addressed', 'approved')",
            name="ck_deliverables_status",
        ),
        db.CheckConstraint("version >= 1 AND round_number >= 1", name="ck_deliverables_counters"),
    )

    def to_dict(self, include_feedback=False):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "file_url": self.file_url,
            "file_type": self.file_type,
            "version": self.version,
            "round_number": self.round_number,
            "status": self.status,
            "shared_at": self.shared_at.isoformat() if self.shared_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_feedback:
            result["feedback"] = [f.to_dict() for f in self.feedback]
        return result

    def __repr__(self):
        return f"<Deliverable {self.id}: {self.title[:40]} ({self.status})>"


class DeliverableFeedback(db.Model):
    """
    One respondent verdict per deliverable per round.

    The (deliverable_id, round_number) unique constraint is what makes a
    second verdict on the same round fail, whatever the request timing.
    """

    __tablename__ = "deliverable_feedback"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    deliverable_id = db.Column(
        db.String(36), db.ForeignKey("deliverables.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    # Denormalised so project deletion can clear it in one statement
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    round_number = db.Column(db.Integer, nullable=False)
    overall_rating = db.Column(db.String(20), nullable=False)
    category_ratings = db.Column(db.JSON, nullable=False, default=dict)
    comments = db.Column(db.Text, nullable=True)
    addressed = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )

    deliverable = db.relationship("Deliverable", back_populates="feedback")

    __table_args__ = (
        db.UniqueConstraint("deliverable_id", "round_number", name="uq_deliverable_feedback_round"),
        db.CheckConstraint(
            "overall_rating IN ('approve', 'changes', 'neutral')",
            name="ck_deliverable_feedback_rating",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "deliverable_id": self.deliverable_id,
            "round_number": self.round_number,
            "overall_rating": self.overall_rating,
            "category_ratings": dict(self.category_ratings or {}),
            "comments": self.comments,
            "addressed": self.addressed,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<DeliverableFeedback {self.deliverable_id} r{self.round_number}: {self.overall_rating}>"
