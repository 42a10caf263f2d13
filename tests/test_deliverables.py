"""
Deliverable review tests.

    owner creates a draft        invisible to the respondent
    owner shares it              draft → shared, phase → feedback
    respondent reviews a round   approve → approved, otherwise feedback_given;
                                 once per round
    owner addresses feedback     next round opens for review
"""

import uuid

import pytest

from briefed.core.actor import ActorContext
from briefed.core.exceptions import (
    AccessDeniedError,
    AlreadyRespondedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from briefed.models import db
from briefed.models.deliverable import Deliverable, DeliverableFeedback
from briefed.models.notification import Notification
from briefed.models.project import LifecycleState
from briefed.services import deliverables, lifecycle, message_service

BASE = "/api/v1"


@pytest.fixture()
def delivered(make_project):
    """A submitted project in the design phase."""
    return make_project("completed", current_phase="design")


@pytest.fixture()
def client_actor(delivered):
    return ActorContext.for_respondent(delivered.id, delivered.respondent_email)


@pytest.fixture()
def shared(owner_actor, delivered):
    d = deliverables.create_deliverable(owner_actor, delivered.id, title="Logo concepts")
    return deliverables.share_deliverable(owner_actor, delivered.id, d.id)


def _phase(project_id):
    return db.session.execute(
        db.select(LifecycleState).where(LifecycleState.project_id == project_id)
    ).scalar_one().current_phase


# ── Creating ─────────────────────────────────────────────────────────────


def test_create_is_a_draft(owner_actor, delivered):
    d = deliverables.create_deliverable(
        owner_actor, delivered.id,
        title="  Logo concepts ",
        file_url="https://files.example.com/logo.pdf",
        file_type="application/pdf",
    )
    assert d.title == "Logo concepts"
    assert d.status == "draft"
    assert d.version == 1
    assert d.round_number == 1
    assert d.shared_at is None


def test_same_title_is_next_version(owner_actor, delivered):
    deliverables.create_deliverable(owner_actor, delivered.id, title="Logo concepts")
    again = deliverables.create_deliverable(owner_actor, delivered.id, title="Logo concepts")
    assert again.version == 2


@pytest.mark.parametrize("kwargs, field", [
    ({"title": ""}, "title"),
    ({"title": "x" * 201}, "title"),
    ({"title": "Logo", "file_url": "u" * 1001}, "fileUrl"),
    ({"title": "Logo", "file_type": 12}, "fileType"),
])
def test_create_validation(owner_actor, delivered, kwargs, field):
    with pytest.raises(ValidationError) as exc:
        deliverables.create_deliverable(owner_actor, delivered.id, **kwargs)
    assert field in exc.value.details


def test_respondent_cannot_create(client_actor, delivered):
    with pytest.raises(AccessDeniedError):
        deliverables.create_deliverable(client_actor, delivered.id, title="Mine")


def test_other_owner_cannot_create(other_owner, delivered):
    with pytest.raises(NotFoundError):
        deliverables.create_deliverable(
            ActorContext.for_owner(other_owner.id), delivered.id, title="Logo",
        )


# ── Sharing ──────────────────────────────────────────────────────────────


def test_share_moves_to_feedback_phase(delivered, shared):
    assert shared.status == "shared"
    assert shared.shared_at is not None
    assert _phase(delivered.id) == "feedback"


def test_share_keeps_later_phase(owner_actor, make_project):
    p = make_project("completed", current_phase="delivery")
    d = deliverables.create_deliverable(owner_actor, p.id, title="Final files")
    deliverables.share_deliverable(owner_actor, p.id, d.id)
    assert _phase(p.id) == "delivery"


def test_share_twice_is_invalid(owner_actor, delivered, shared):
    with pytest.raises(InvalidTransitionError):
        deliverables.share_deliverable(owner_actor, delivered.id, shared.id)


def test_share_notifies_linked_respondent(owner_actor, other_owner, make_project):
    p = make_project("completed", respondent_account_id=other_owner.id)
    d = deliverables.create_deliverable(owner_actor, p.id, title="Moodboard")
    deliverables.share_deliverable(owner_actor, p.id, d.id)
    notes = Notification.query.filter_by(recipient_id=other_owner.id, type="deliverables_ready").all()
    assert len(notes) == 1
    assert "Moodboard" in notes[0].message


def test_respondent_sees_only_shared(owner_actor, client_actor, delivered, shared):
    draft = deliverables.create_deliverable(owner_actor, delivered.id, title="Work in progress")

    assert {d.id for d in deliverables.list_deliverables(owner_actor, delivered.id)} == {
        shared.id, draft.id,
    }
    assert [d.id for d in deliverables.list_deliverables(client_actor, delivered.id)] == [shared.id]
    with pytest.raises(NotFoundError):
        deliverables.give_feedback(client_actor, delivered.id, draft.id, overall_rating="approve")


# ── Feedback ─────────────────────────────────────────────────────────────


def test_approve(owner, client_actor, delivered, shared):
    fb = deliverables.give_feedback(
        client_actor, delivered.id, shared.id,
        overall_rating="approve",
        category_ratings={"typography": 5, "color_usage": 4},
        comments="Love it",
    )
    assert fb.round_number == 1
    assert fb.category_ratings == {"typography": 5, "color_usage": 4}
    assert db.session.get(Deliverable, shared.id).status == "approved"

    notes = Notification.query.filter_by(recipient_id=owner.id, type="deliverable_feedback").all()
    assert len(notes) == 1
    assert "approved" in notes[0].title


@pytest.mark.parametrize("rating", ["changes", "neutral"])
def test_changes_or_neutral_is_feedback_given(client_actor, delivered, shared, rating):
    deliverables.give_feedback(client_actor, delivered.id, shared.id, overall_rating=rating)
    assert db.session.get(Deliverable, shared.id).status == "feedback_given"


def test_second_feedback_same_round_rejected(client_actor, delivered, shared):
    deliverables.give_feedback(
        client_actor, delivered.id, shared.id, overall_rating="changes", comments="Bigger logo",
    )
    with pytest.raises(AlreadyRespondedError):
        deliverables.give_feedback(client_actor, delivered.id, shared.id, overall_rating="approve")

    rows = DeliverableFeedback.query.filter_by(deliverable_id=shared.id).all()
    assert len(rows) == 1
    assert rows[0].overall_rating == "changes"
    assert db.session.get(Deliverable, shared.id).status == "feedback_given"


def test_existing_round_row_blocks_feedback(client_actor, delivered, shared):
    """A verdict committed by a concurrent request before the status moved."""
    db.session.add(DeliverableFeedback(
        deliverable_id=shared.id, project_id=delivered.id, round_number=1,
        overall_rating="neutral", category_ratings={},
    ))
    db.session.commit()

    with pytest.raises(AlreadyRespondedError):
        deliverables.give_feedback(client_actor, delivered.id, shared.id, overall_rating="approve")
    assert db.session.get(Deliverable, shared.id).status == "shared"


def test_address_feedback_opens_next_round(owner_actor, client_actor, delivered, shared):
    deliverables.give_feedback(client_actor, delivered.id, shared.id, overall_rating="changes")

    d = deliverables.address_feedback(owner_actor, delivered.id, shared.id)
    assert d.status == "changes_addressed"
    assert d.round_number == 2
    assert all(f.addressed for f in deliverables.list_feedback(owner_actor, delivered.id, shared.id))

    fb = deliverables.give_feedback(client_actor, delivered.id, shared.id, overall_rating="approve")
    assert fb.round_number == 2
    assert db.session.get(Deliverable, shared.id).status == "approved"
    rounds = [f.round_number for f in deliverables.list_feedback(client_actor, delivered.id, shared.id)]
    assert rounds == [1, 2]


def test_address_without_feedback_is_invalid(owner_actor, delivered, shared):
    with pytest.raises(InvalidTransitionError):
        deliverables.address_feedback(owner_actor, delivered.id, shared.id)


@pytest.mark.parametrize("kwargs", [
    {"overall_rating": "love"},
    {"overall_rating": None},
    {"overall_rating": "approve", "category_ratings": {"vibes": 3}},
    {"overall_rating": "approve", "category_ratings": {"typography": 6}},
    {"overall_rating": "approve", "category_ratings": {"typography": True}},
    {"overall_rating": "approve", "category_ratings": ["typography"]},
    {"overall_rating": "approve", "comments": "x" * 5001},
])
def test_feedback_validation(client_actor, delivered, shared, kwargs):
    with pytest.raises(ValidationError):
        deliverables.give_feedback(client_actor, delivered.id, shared.id, **kwargs)
    assert DeliverableFeedback.query.count() == 0


def test_owner_cannot_give_feedback(owner_actor, delivered, shared):
    with pytest.raises(AccessDeniedError):
        deliverables.give_feedback(owner_actor, delivered.id, shared.id, overall_rating="approve")


def test_unknown_deliverable(client_actor, delivered):
    with pytest.raises(NotFoundError):
        deliverables.give_feedback(
            client_actor, delivered.id, str(uuid.uuid4()), overall_rating="approve",
        )
    with pytest.raises(NotFoundError):
        deliverables.give_feedback(client_actor, delivered.id, "nope", overall_rating="approve")


# ── Timeline and deletion ────────────────────────────────────────────────


def test_review_shows_in_activity_feed(client_actor, delivered, shared):
    deliverables.give_feedback(client_actor, delivered.id, shared.id, overall_rating="approve")
    descriptions = [e["description"] for e in message_service.activity_feed(client_actor, delivered.id)]
    assert "Logo concepts shared" in descriptions
    assert "Logo concepts approved" in descriptions


def test_delete_deliverable_removes_feedback(owner_actor, client_actor, delivered, shared):
    deliverables.give_feedback(client_actor, delivered.id, shared.id, overall_rating="neutral")
    deliverables.delete_deliverable(owner_actor, delivered.id, shared.id)
    assert db.session.get(Deliverable, shared.id) is None
    assert DeliverableFeedback.query.count() == 0


def test_project_delete_removes_deliverables(owner_actor, client_actor, delivered, shared):
    deliverables.give_feedback(client_actor, delivered.id, shared.id, overall_rating="approve")
    lifecycle.delete_project(owner_actor, delivered.id)
    assert Deliverable.query.count() == 0
    assert DeliverableFeedback.query.count() == 0


# ── HTTP ─────────────────────────────────────────────────────────────────


def test_review_round_over_http(owner_client, client, delivered):
    url = f"{BASE}/projects/{delivered.id}/deliverables"
    headers = {"x-magic-token": delivered.access_token}

    res = owner_client.post(url, json={"title": "Homepage", "fileUrl": "https://files.example.com/h.png"})
    assert res.status_code == 201
    did = res.get_json()["deliverable"]["id"]

    assert client.get(url, headers=headers).get_json() == {"deliverables": []}

    res = owner_client.post(f"{url}/{did}/share")
    assert res.status_code == 200
    assert res.get_json()["deliverable"]["status"] == "shared"

    listed = client.get(url, headers=headers).get_json()["deliverables"]
    assert [d["id"] for d in listed] == [did]

    body = {"overallRating": "changes", "categoryRatings": {"layout_composition": 2}, "comments": "Tighter"}
    res = client.post(f"{url}/{did}/feedback", json=body, headers=headers)
    assert res.status_code == 201
    assert res.get_json()["feedback"]["round_number"] == 1

    res = client.post(f"{url}/{did}/feedback", json=body, headers=headers)
    assert res.status_code == 409
    assert res.get_json()["code"] == "ALREADY_RESPONDED"

    res = owner_client.post(f"{url}/{did}/address")
    assert res.get_json()["deliverable"]["round_number"] == 2

    feedback = owner_client.get(f"{url}/{did}/feedback").get_json()["feedback"]
    assert feedback[0]["addressed"] is True


def test_respondent_cannot_share_over_http(client, delivered, owner_actor):
    d = deliverables.create_deliverable(owner_actor, delivered.id, title="Logo")
    res = client.post(
        f"{BASE}/projects/{delivered.id}/deliverables/{d.id}/share",
        headers={"x-magic-token": delivered.access_token},
    )
    assert res.status_code in (401, 403)
    assert db.session.get(Deliverable, d.id).status == "draft"
