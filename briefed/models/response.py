"""
Questionnaire answers and their assembled output.

Models:
    - Response: one row per (project, step), upserted while the respondent works
    - Brief: the single assembled document for a project
    - Asset: metadata for a file the respondent uploaded (blob lives elsewhere)
"""

import uuid
from datetime import datetime, timezone

from briefed.models import db


def _uuid():
    return str(uuid.uuid4())


# ── Constants ────────────────────────────────────────────────────────────────

STEP_KEYS = (
    "welcome",
    "business_info",
    "project_scope",
    "style_direction",
    "color_preferences",
    "typography_feel",
    "pages_functionality",
    "platforms_content",
    "inspiration_upload",
    "timeline_budget",
    "final_thoughts",
)


class Response(db.Model):
    """Answers for one questionnaire step. Last write wins."""

    __tablename__ = "responses"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    step_key = db.Column(db.String(40), nullable=False)
    answers = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("project_id", "step_key", name="uq_responses_project_step"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "step_key": self.step_key,
            "answers": self.answers or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Response {self.project_id}/{self.step_key}>"


class Brief(db.Model):
    """
    Assembled brief.

    ``project_id`` is UNIQUE: this constraint, not an application check, is
    what keeps two concurrent submissions from both producing a brief.
    ``content`` is only rewritten when a revision cycle is closed, and each
    rewrite bumps ``version``.
    """

    __tablename__ = "briefs"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, unique=True,
    )
    version = db.Column(db.Integer, nullable=False, default=1)
    content = db.Column(db.JSON, nullable=False)
    artifact_ref = db.Column(db.String(500), nullable=True, comment="Rendered PDF location, if any")

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint("version >= 1", name="ck_briefs_version"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "version": self.version,
            "content": self.content,
            "artifact_ref": self.artifact_ref,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Brief {self.id} v{self.version}>"


class Asset(db.Model):
    __tablename__ = "assets"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    step_key = db.Column(db.String(40), nullable=True)
    file_name = db.Column(db.String(255), nullable=False)
    storage_path = db.Column(db.String(500), nullable=False)
    content_type = db.Column(db.String(100), nullable=True)
    size_bytes = db.Column(db.Integer, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "step_key": self.step_key,
            "file_name": self.file_name,
            "storage_path": self.storage_path,
            "content_type": self.content_type,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
