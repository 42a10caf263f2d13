"""
ActorContext: who is calling a service operation.

Every service function takes an explicit ActorContext instead of reading
the Flask session or request.  The HTTP layer (briefed.auth) builds it:

    owner       from the signed owner session
    respondent  only after the project's access token has been verified;
                the context is then pinned to that one project
"""

from __future__ import annotations

from dataclasses import dataclass

from briefed.core.exceptions import AccessDeniedError

OWNER = "owner"
RESPONDENT = "respondent"


@dataclass(frozen=True)
class ActorContext:
    kind: str
    owner_id: int | None = None
    project_id: str | None = None
    email: str | None = None

    @classmethod
    def for_owner(cls, owner_id: int) -> "ActorContext":
        return cls(kind=OWNER, owner_id=owner_id)

    @classmethod
    def for_respondent(cls, project_id: str, email: str | None = None) -> "ActorContext":
        return cls(kind=RESPONDENT, project_id=project_id, email=email)

    @property
    def is_owner(self) -> bool:
        return self.kind == OWNER

    @property
    def is_respondent(self) -> bool:
        return self.kind == RESPONDENT

    @property
    def identity(self) -> str:
        """Stable identity string for logs and message sender ids."""
        if self.is_owner:
            return str(self.owner_id)
        return self.email or f"respondent:{self.project_id}"


def require_owner(actor: ActorContext) -> None:
    """Role check, run before any storage access."""
    if not actor.is_owner or actor.owner_id is None:
        raise AccessDeniedError(reason=f"owner required, got {actor.kind}")


def require_respondent(actor: ActorContext, project_id: str) -> None:
    """Role + scope check for token holders."""
    if not actor.is_respondent or actor.project_id != project_id:
        raise AccessDeniedError(reason=f"respondent for {project_id} required")
