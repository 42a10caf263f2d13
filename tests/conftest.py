"""
Shared pytest fixtures for the Briefed test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - owner / other_owner: Pre-created Owner accounts
    - make_project: factory that creates a project at any status
    - owner_client: test client carrying the owner's session
"""

import pytest

from briefed import create_app
from briefed.auth import SESSION_OWNER_KEY
from briefed.core.actor import ActorContext
from briefed.models import db as _db
from briefed.models.owner import Owner
from briefed.models.project import FINISHED_STATUSES, LifecycleState, Project
from briefed.services.detached import wait_for_detached
from briefed.utils.helpers import utcnow
from briefed.utils.tokens import issue_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        wait_for_detached(timeout=5)
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Accounts ─────────────────────────────────────────────────────────────


def _owner(email, full_name):
    o = Owner(email=email, full_name=full_name)
    _db.session.add(o)
    _db.session.commit()
    return o


@pytest.fixture()
def owner():
    return _owner("dana@designstudio.com", "Dana Designer")


@pytest.fixture()
def other_owner():
    return _owner("sam@otherstudio.com", "Sam Other")


@pytest.fixture()
def owner_actor(owner):
    return ActorContext.for_owner(owner.id)


@pytest.fixture()
def owner_client(app, owner):
    """Test client signed in as ``owner``."""
    c = app.test_client()
    with c.session_transaction() as sess:
        sess[SESSION_OWNER_KEY] = owner.id
    return c


# ── Projects ─────────────────────────────────────────────────────────────


@pytest.fixture()
def make_project(owner):
    """Factory: create a project directly at the given status (bypasses guards)."""

    def _make(status="draft", *, project_owner=None, respondent_email="client@example.com",
              respondent_name="Casey Client", category="branding",
              respondent_account_id=None, current_phase="discovery"):
        now = utcnow()
        p = Project(
            owner_id=(project_owner or owner).id,
            respondent_email=respondent_email,
            respondent_name=respondent_name,
            respondent_account_id=respondent_account_id,
            category=category,
            status=status,
            access_token=issue_access_token(),
            sent_at=now if status != "draft" else None,
            completed_at=now if status in FINISHED_STATUSES else None,
        )
        _db.session.add(p)
        _db.session.flush()
        _db.session.add(LifecycleState(
            project_id=p.id,
            current_phase=current_phase,
            phases_completed=[],
            blockers=[],
            revision_cycles=0,
        ))
        _db.session.commit()
        return p

    return _make


@pytest.fixture()
def project(make_project):
    """A draft project owned by ``owner``."""
    return make_project()


@pytest.fixture()
def respondent_actor(project):
    """ActorContext for the holder of ``project``'s access token."""
    return ActorContext.for_respondent(project.id, project.respondent_email)
