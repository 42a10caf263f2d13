"""
Actor-scoped project lookups.

Every service that touches a project goes through ``get_project`` instead of
``db.session.get(Project, pk)``.  Scoping rules:

    owner       the project must belong to ``actor.owner_id``; anything else
                (missing, malformed id, someone else's project) is the same
                NotFoundError, so existence never leaks
    respondent  the actor must already be pinned to this project by the
                token check; a project that vanished since is ACCESS_DENIED
"""

import logging

from sqlalchemy import select

from briefed.core.actor import ActorContext, require_respondent
from briefed.core.exceptions import AccessDeniedError, NotFoundError
from briefed.models import db
from briefed.models.project import LifecycleState, Project
from briefed.utils.helpers import is_uuid

logger = logging.getLogger(__name__)


def get_project(actor: ActorContext, project_id: str) -> Project:
    """Fetch a project visible to ``actor`` or raise."""
    if actor.is_owner:
        if actor.owner_id is None or not is_uuid(project_id):
            raise NotFoundError(resource="Project", resource_id=project_id)
        project = db.session.execute(
            select(Project).where(Project.id == project_id, Project.owner_id == actor.owner_id)
        ).scalar_one_or_none()
        if project is None:
            raise NotFoundError(resource="Project", resource_id=project_id)
        return project

    require_respondent(actor, project_id)
    project = db.session.get(Project, project_id)
    if project is None:
        raise AccessDeniedError(reason=f"project {project_id} no longer exists")
    return project


def get_lifecycle_state(project: Project) -> LifecycleState:
    """Return the project's lifecycle row, creating it (unflushed) if missing."""
    state = db.session.execute(
        select(LifecycleState).where(LifecycleState.project_id == project.id)
    ).scalar_one_or_none()
    if state is None:
        logger.info("Initialising missing lifecycle state", extra={"project_id": project.id})
        state = LifecycleState(
            project_id=project.id,
            current_phase="discovery",
            phases_completed=[],
            blockers=[],
            revision_cycles=0,
        )
        db.session.add(state)
    return state
