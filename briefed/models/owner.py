"""Owner account model (the session-authenticated side of a project)."""

from datetime import datetime, timezone

from briefed.models import db


class Owner(db.Model):
    """An account that creates projects and drives their lifecycle."""

    __tablename__ = "owners"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    full_name = db.Column(db.String(150), nullable=True)
    business_name = db.Column(db.String(200), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def display_name(self) -> str:
        return self.full_name or self.business_name or "Your Designer"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "business_name": self.business_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Owner {self.id}: {self.email}>"
