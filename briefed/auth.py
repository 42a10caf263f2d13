"""
Briefed
Request authentication.

Two kinds of caller, resolved here into an ``ActorContext`` and stored on
``g.actor`` before the view runs:

    owner       signed Flask session carrying ``owner_id`` (sign-in itself
                happens outside this service)
    respondent  bearer secret from the ``x-magic-token`` header or the
                ``?token=`` query parameter, checked against the project's
                access token in constant time

Every respondent failure (unknown project, malformed id, missing token,
wrong token) is the same ACCESS_DENIED with the same message, and costs
the same single comparison.

Usage:
    @projects_bp.route("/projects/<project_id>/submit", methods=["POST"])
    @respondent_required
    def submit(project_id): ...
"""

import functools
import logging

from flask import g, request, session

from briefed.core.actor import ActorContext
from briefed.core.exceptions import AccessDeniedError
from briefed.models import db
from briefed.models.owner import Owner
from briefed.models.project import Project
from briefed.utils.helpers import is_uuid
from briefed.utils.tokens import extract_presented_token, verify_or_dummy

logger = logging.getLogger(__name__)

SESSION_OWNER_KEY = "owner_id"

_NIL_PROJECT_ID = "00000000-0000-0000-0000-000000000000"


def current_owner() -> ActorContext:
    """Owner actor from the session, or ACCESS_DENIED."""
    owner_id = session.get(SESSION_OWNER_KEY)
    if owner_id is None:
        raise AccessDeniedError("Authentication required", reason="no owner session")
    owner = db.session.get(Owner, owner_id)
    if owner is None:
        session.pop(SESSION_OWNER_KEY, None)
        raise AccessDeniedError("Authentication required", reason=f"stale session for owner {owner_id}")
    return ActorContext.for_owner(owner.id)


def resolve_respondent(project_id, presented) -> tuple[ActorContext, Project]:
    """Verify ``presented`` against the project's access token."""
    # Malformed ids still cost one primary-key lookup
    lookup_id = project_id if is_uuid(project_id) else _NIL_PROJECT_ID
    project = db.session.get(Project, lookup_id)
    stored = project.access_token if project is not None else None
    if not verify_or_dummy(presented, stored):
        reason = "unknown project" if project is None else (
            "missing token" if not presented else "token mismatch"
        )
        raise AccessDeniedError(reason=f"{reason} for {project_id}")
    return ActorContext.for_respondent(project.id, project.respondent_email), project


def respondent_from_request(project_id) -> ActorContext:
    actor, _ = resolve_respondent(project_id, extract_presented_token(request))
    return actor


# ── Decorators ───────────────────────────────────────────────────────────────

def owner_required(f):
    """Decorator: require an owner session. Sets g.actor."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        g.actor = current_owner()
        return f(*args, **kwargs)

    return decorated


def respondent_required(f):
    """Decorator: require the project's access token. Sets g.actor.

    The view must take a ``project_id`` URL argument.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        g.actor = respondent_from_request(kwargs.get("project_id"))
        return f(*args, **kwargs)

    return decorated


def actor_required(f):
    """Decorator: accept either party.

    A presented token always means "respondent", even when an owner session
    is also present, so a bad token is never silently upgraded.  Without a
    token or an owner session the caller is a respondent with a missing
    token, and gets the same denial as a wrong one.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if not extract_presented_token(request) and SESSION_OWNER_KEY in session:
            g.actor = current_owner()
        else:
            g.actor = respondent_from_request(kwargs.get("project_id"))
        return f(*args, **kwargs)

    return decorated
