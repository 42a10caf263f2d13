"""
Project domain model and its 1:1 lifecycle companion.

Models:
    - Project: the unit of collaboration between an owner and a respondent
    - LifecycleState: fine-grained phase tracking, blockers, revision cycles
"""

import uuid
from datetime import datetime, timezone

from briefed.models import db


def _uuid():
    return str(uuid.uuid4())


# ── Constants ────────────────────────────────────────────────────────────────

PROJECT_STATUSES = ("draft", "sent", "in_progress", "completed", "reviewed")
# completed_at is set iff status is one of these
FINISHED_STATUSES = frozenset({"completed", "reviewed"})

LIFECYCLE_PHASES = (
    "discovery",
    "proposal",
    "design",
    "feedback",
    "revision",
    "delivery",
    "completed",
)

PROJECT_CATEGORIES = frozenset({
    "branding",
    "web_design",
    "social_media",
    "packaging",
    "illustration",
    "ui_ux",
    "print",
    "motion",
    "app_design",
})

BLOCKER_SEVERITIES = ("low", "medium", "high", "critical")


def phase_index(phase: str) -> int:
    return LIFECYCLE_PHASES.index(phase)


class Project(db.Model):
    """
    Collaboration unit owned by an Owner and answered by a respondent.

    The respondent has no account; they reach the project only through the
    secret ``access_token``.  ``share_token`` is a separate read-only secret
    for distributing the finished brief.
    """

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey("owners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    respondent_email = db.Column(db.String(255), nullable=False, index=True)
    respondent_name = db.Column(db.String(150), nullable=True)
    respondent_account_id = db.Column(
        db.Integer,
        db.ForeignKey("owners.id", ondelete="SET NULL"),
        nullable=True,
        comment="Set when the respondent later links an account",
    )

    category = db.Column(db.String(30), nullable=False, comment="branding | web_design | social_media | ...")
    status = db.Column(db.String(20), nullable=False, default="draft")

    access_token = db.Column(db.String(64), nullable=False, unique=True)
    share_token = db.Column(db.String(64), nullable=True, unique=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    last_accessed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    owner = db.relationship("Owner", foreign_keys=[owner_id], lazy="joined")
    lifecycle = db.relationship(
        "LifecycleState", uselist=False, back_populates="project", lazy="select",
    )

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('draft', 'sent', 'in_progress', 'completed', 'reviewed')",
            name="ck_projects_status",
        ),
        db.CheckConstraint(
            "(status IN ('completed', 'reviewed')) = (completed_at IS NOT NULL)",
            name="ck_projects_completed_at",
        ),
        db.Index("ix_projects_owner_status", "owner_id", "status"),
    )

    @property
    def respondent_label(self) -> str:
        return self.respondent_name or self.respondent_email

    @property
    def category_label(self) -> str:
        return self.category.replace("_", " ")

    def to_dict(self, *, include_secrets: bool = False) -> dict:
        """Serialize for API responses.

        Secrets are only included for the owner's own views.
        """
        data = {
            "id": self.id,
            "owner_id": self.owner_id,
            "respondent_email": self.respondent_email,
            "respondent_name": self.respondent_name,
            "respondent_account_id": self.respondent_account_id,
            "category": self.category,
            "status": self.status,
            "sharing_enabled": self.share_token is not None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "last_accessed_at": self.last_accessed_at.isoformat() if self.last_accessed_at else None,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_secrets:
            data["access_token"] = self.access_token
            data["share_token"] = self.share_token
        return data

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.status}>"


class LifecycleState(db.Model):
    """
    Phase tracking for one project.

    ``phases_completed`` and ``blockers`` are JSON lists; they are always
    replaced wholesale (never mutated in place) so the ORM sees the change.
    """

    __tablename__ = "lifecycle_states"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    current_phase = db.Column(db.String(20), nullable=False, default="discovery")
    phase_started_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    phases_completed = db.Column(db.JSON, nullable=False, default=list)
    blockers = db.Column(db.JSON, nullable=False, default=list)
    revision_cycles = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    project = db.relationship("Project", back_populates="lifecycle")

    @property
    def active_blockers(self) -> list[dict]:
        return [b for b in (self.blockers or []) if not b.get("resolved_at")]

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "current_phase": self.current_phase,
            "phase_started_at": self.phase_started_at.isoformat() if self.phase_started_at else None,
            "phases_completed": list(self.phases_completed or []),
            "blockers": list(self.blockers or []),
            "active_blockers": self.active_blockers,
            "revision_cycles": self.revision_cycles,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<LifecycleState {self.project_id}: {self.current_phase}>"
