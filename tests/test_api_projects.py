"""
End-to-end API tests: owner session + respondent token over HTTP.

    A  create → send → respondent saves 3 steps → submit → one brief v1
    B  completed project → revision request → answer → one owner notification
    C  wrong-but-well-formed token ≡ no token
    D  delete with dependents → nothing left behind
plus the remaining owner routes (overview, blockers, sharing, messages,
notifications, health).
"""

import pytest

from briefed.models import db
from briefed.models.notification import Notification
from briefed.models.project import LifecycleState, Project
from briefed.models.response import Asset, Brief, Response
from briefed.models.revision import Message, RevisionRequest

BASE = "/api/v1"


def _tok(project_or_token):
    token = project_or_token if isinstance(project_or_token, str) else project_or_token.access_token
    return {"x-magic-token": token}


def _create(owner_client, **overrides):
    body = {"respondentEmail": "Client@Example.com", "respondentName": "Casey", "category": "branding"}
    body.update(overrides)
    res = owner_client.post(f"{BASE}/projects", json=body)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


# ═════════════════════════════════════════════════════════════════════════════
# Scenario A
# ═════════════════════════════════════════════════════════════════════════════


def test_scenario_a_questionnaire_to_brief(owner_client, client):
    created = _create(owner_client)
    pid, token = created["id"], created["access_token"]
    assert created["status"] == "draft"
    assert created["respondent_email"] == "Client@example.com"

    res = owner_client.post(f"{BASE}/projects/{pid}/send")
    assert res.status_code == 200
    assert res.get_json()["status"] == "sent"

    steps = {
        "business_info": {"company_name": "Acme", "industry": "coffee", "averageConfidence": 0.9},
        "style_direction": {"selected_styles": ["minimal"], "averageConfidence": 0.6},
        "timeline_budget": {"timeline": "6 weeks", "budget": "5k"},
    }
    for step_key, answers in steps.items():
        res = client.post(
            f"{BASE}/projects/{pid}/responses",
            json={"stepKey": step_key, "answers": answers},
            headers=_tok(token),
        )
        assert res.status_code == 200, res.get_json()

    res = client.post(f"{BASE}/projects/{pid}/submit", headers=_tok(token))
    assert res.status_code == 201
    brief = res.get_json()["brief"]
    assert brief["version"] == 1
    assert set(brief["content"]["raw_responses"]) == set(steps)

    project = db.session.get(Project, pid)
    assert project.status == "completed"
    assert Brief.query.filter_by(project_id=pid).count() == 1

    # Second submit and late saves are idempotency failures
    res = client.post(f"{BASE}/projects/{pid}/submit", headers=_tok(token))
    assert res.status_code == 409
    assert res.get_json()["code"] == "ALREADY_SUBMITTED"
    res = client.post(
        f"{BASE}/projects/{pid}/responses",
        json={"stepKey": "final_thoughts", "answers": {"notes": "late"}},
        headers=_tok(token),
    )
    assert res.get_json()["code"] == "ALREADY_SUBMITTED"

    res = owner_client.get(f"{BASE}/projects/{pid}/brief")
    assert res.status_code == 200
    assert res.get_json()["version"] == 1


# ═════════════════════════════════════════════════════════════════════════════
# Scenario B
# ═════════════════════════════════════════════════════════════════════════════


def test_scenario_b_revision_round_trip(owner, owner_client, client, make_project):
    project = make_project("completed")
    pid = project.id

    res = owner_client.post(
        f"{BASE}/projects/{pid}/revisions",
        json={"stepKey": "business_info", "message": "Who is the main audience?"},
    )
    assert res.status_code == 201
    revision_id = res.get_json()["revision"]["id"]
    assert db.session.get(Project, pid).status == "in_progress"

    res = client.get(f"{BASE}/projects/{pid}/revisions", headers=_tok(project))
    assert [r["id"] for r in res.get_json()["revisions"]] == [revision_id]

    res = client.patch(
        f"{BASE}/projects/{pid}/revisions",
        json={"revisionId": revision_id, "response": "Students and young professionals"},
        headers=_tok(project),
    )
    assert res.status_code == 200
    assert res.get_json()["revision"]["status"] == "responded"

    notes = Notification.query.filter_by(recipient_id=owner.id, type="revision_response").all()
    assert len(notes) == 1

    res = client.patch(
        f"{BASE}/projects/{pid}/revisions",
        json={"revisionId": revision_id, "response": "Changed my mind"},
        headers=_tok(project),
    )
    assert res.status_code == 409
    assert res.get_json()["code"] == "ALREADY_RESPONDED"


def test_revision_close_cycle_over_http(owner_client, client):
    created = _create(owner_client)
    pid, token = created["id"], created["access_token"]
    client.post(
        f"{BASE}/projects/{pid}/responses",
        json={"stepKey": "color_preferences", "answers": {"palette": "earthy"}},
        headers=_tok(token),
    )
    client.post(f"{BASE}/projects/{pid}/submit", headers=_tok(token))

    rev = owner_client.post(
        f"{BASE}/projects/{pid}/revisions",
        json={"stepKey": "color_preferences", "message": "Warmer?", "fieldKey": "palette"},
    ).get_json()["revision"]
    client.patch(
        f"{BASE}/projects/{pid}/revisions",
        json={"revisionId": rev["id"], "response": "Yes, terracotta"},
        headers=_tok(token),
    )

    res = owner_client.post(f"{BASE}/projects/{pid}/revisions/close")
    assert res.status_code == 200
    assert res.get_json()["brief"]["version"] == 2
    assert db.session.get(Project, pid).status == "completed"


# ═════════════════════════════════════════════════════════════════════════════
# Scenario C
# ═════════════════════════════════════════════════════════════════════════════


def test_scenario_c_wrong_token_same_as_no_token(client, project):
    url = f"{BASE}/projects/{project.id}/responses"
    wrong = client.get(url, headers=_tok("f" * 64))
    missing = client.get(url)

    assert wrong.status_code == missing.status_code == 403
    assert wrong.get_json() == missing.get_json()
    assert wrong.get_json()["code"] == "ACCESS_DENIED"


# ═════════════════════════════════════════════════════════════════════════════
# Scenario D
# ═════════════════════════════════════════════════════════════════════════════


def test_scenario_d_delete_leaves_no_orphans(owner, owner_client, make_project):
    project = make_project("completed")
    pid = project.id
    db.session.add_all([
        Response(project_id=pid, step_key="business_info", answers={"company_name": "Acme"}),
        Response(project_id=pid, step_key="timeline_budget", answers={"budget": "5k"}),
        Brief(project_id=pid, version=1, content={"summary": "s"}),
        RevisionRequest(project_id=pid, step_key="business_info", message="?", status="pending"),
        Message(project_id=pid, sender_kind="owner", sender_id=str(owner.id), content="hello"),
        Asset(project_id=pid, file_name="a.png", storage_path="uploads/a.png"),
        Notification(recipient_id=owner.id, project_id=pid, type="brief_submitted", title="t"),
    ])
    db.session.commit()

    res = owner_client.delete(f"{BASE}/projects/{pid}")
    assert res.status_code == 200
    assert res.get_json() == {"deleted": True, "id": pid}

    for model in (Response, Brief, RevisionRequest, Message, Asset, Notification, LifecycleState):
        assert model.query.filter_by(project_id=pid).count() == 0, model.__tablename__
    assert Project.query.filter_by(id=pid).count() == 0

    assert owner_client.get(f"{BASE}/projects/{pid}").status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# Owner routes
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize("body, field", [
    ({"respondentEmail": "not-an-email", "category": "branding"}, "respondentEmail"),
    ({"category": "branding"}, "respondentEmail"),
    ({"respondentEmail": "a@example.com", "category": "sculpture"}, "category"),
])
def test_create_project_validation(owner_client, body, field):
    res = owner_client.post(f"{BASE}/projects", json=body)
    assert res.status_code == 400
    assert res.get_json()["code"] == "VALIDATION_FAILED"
    assert field in res.get_json()["details"]


def test_create_project_links_existing_account(owner_client, other_owner):
    created = _create(owner_client, respondentEmail=other_owner.email)
    assert created["respondent_account_id"] == other_owner.id


def test_non_json_body_is_rejected(owner_client):
    res = owner_client.post(
        f"{BASE}/projects", data="respondentEmail=a@example.com", content_type="text/plain",
    )
    assert res.status_code == 415


def test_list_and_filter_projects(owner_client, make_project, other_owner):
    make_project("draft")
    make_project("sent", respondent_email="b@example.com")
    make_project("draft", project_owner=other_owner)

    res = owner_client.get(f"{BASE}/projects")
    assert res.get_json()["total"] == 2
    res = owner_client.get(f"{BASE}/projects?status=sent")
    assert [p["status"] for p in res.get_json()["items"]] == ["sent"]
    assert owner_client.get(f"{BASE}/projects?status=bogus").status_code == 400


def test_project_overview(owner_client, make_project):
    project = make_project("sent")
    res = owner_client.get(f"{BASE}/projects/{project.id}")
    body = res.get_json()
    assert res.status_code == 200
    assert body["lifecycle"]["current_phase"] == "discovery"
    assert body["implied_phase"] == "discovery"
    assert body["pending_revisions"] == 0
    assert body["health_score"] == 100
    assert body["access_token"] == project.access_token


def test_status_patch(owner_client, project):
    res = owner_client.patch(f"{BASE}/projects/{project.id}/status", json={"status": "sent"})
    assert res.status_code == 200
    res = owner_client.patch(f"{BASE}/projects/{project.id}/status", json={"status": "reviewed"})
    assert res.status_code == 409
    body = res.get_json()
    assert body["code"] == "INVALID_TRANSITION"
    assert body["details"] == {"current": "sent", "requested": "reviewed"}
    res = owner_client.patch(f"{BASE}/projects/{project.id}/status", json={"status": "exploded"})
    assert res.status_code == 400


def test_resend_link_only_while_awaiting(owner_client, project):
    assert owner_client.post(f"{BASE}/projects/{project.id}/resend").status_code == 409
    owner_client.post(f"{BASE}/projects/{project.id}/send")
    assert owner_client.post(f"{BASE}/projects/{project.id}/resend").status_code == 200


def test_phase_and_blockers(owner_client, project):
    res = owner_client.post(f"{BASE}/projects/{project.id}/phase", json={})
    assert res.get_json()["current_phase"] == "proposal"
    res = owner_client.post(f"{BASE}/projects/{project.id}/phase", json={"phase": "discovery"})
    assert res.status_code == 409

    res = owner_client.post(
        f"{BASE}/projects/{project.id}/blockers",
        json={"description": "Waiting on brand assets", "severity": "high"},
    )
    assert res.status_code == 201
    blocker_id = res.get_json()["blockers"][0]["id"]
    res = owner_client.post(f"{BASE}/projects/{project.id}/blockers/{blocker_id}/resolve")
    assert res.get_json()["active_blockers"] == []


def test_deliver_over_http(owner_client, client, make_project):
    project = make_project("completed")
    res = owner_client.post(f"{BASE}/projects/{project.id}/deliver", json={"notes": "Files attached"})
    assert res.status_code == 200
    assert res.get_json()["current_phase"] == "delivery"

    feed = client.get(f"{BASE}/projects/{project.id}/activity", headers=_tok(project)).get_json()
    assert feed["events"][0]["type"] == "delivery"


def test_share_link_round_trip(owner_client, client, make_project):
    project = make_project("completed")
    db.session.add(Brief(project_id=project.id, version=1, content={"summary": "Shared"}))
    db.session.commit()

    share = owner_client.post(f"{BASE}/projects/{project.id}/share").get_json()["share_token"]
    res = client.get(f"{BASE}/share/{share}")
    assert res.status_code == 200
    body = res.get_json()
    assert body["brief"]["content"] == {"summary": "Shared"}
    assert "access_token" not in body["project"]

    # The access token is not a share token
    assert client.get(f"{BASE}/share/{project.access_token}").status_code == 403

    owner_client.delete(f"{BASE}/projects/{project.id}/share")
    assert client.get(f"{BASE}/share/{share}").status_code == 403


# ═════════════════════════════════════════════════════════════════════════════
# Messages & notifications
# ═════════════════════════════════════════════════════════════════════════════


def test_message_thread(owner_client, client, project):
    res = client.post(
        f"{BASE}/projects/{project.id}/messages",
        json={"content": "Can we talk fonts?"},
        headers=_tok(project),
    )
    assert res.status_code == 201
    res = owner_client.post(
        f"{BASE}/projects/{project.id}/messages",
        json={"content": "Sure", "metadata": {"type": "feedback"}},
    )
    assert res.status_code == 201

    thread = owner_client.get(f"{BASE}/projects/{project.id}/messages").get_json()["messages"]
    assert [m["sender_kind"] for m in thread] == ["respondent", "owner"]

    res = owner_client.post(
        f"{BASE}/projects/{project.id}/messages",
        json={"content": "x", "metadata": {"type": "gossip"}},
    )
    assert res.status_code == 400


def test_notification_inbox(owner_client, client, project):
    client.post(
        f"{BASE}/projects/{project.id}/messages",
        json={"content": "Hello!"},
        headers=_tok(project),
    )
    assert owner_client.get(f"{BASE}/notifications/unread-count").get_json()["unread_count"] == 1

    items = owner_client.get(f"{BASE}/notifications").get_json()["items"]
    assert items[0]["type"] == "new_message"
    res = owner_client.post(f"{BASE}/notifications/{items[0]['id']}/read")
    assert res.get_json()["is_read"] is True
    assert owner_client.post(f"{BASE}/notifications/read-all").get_json()["marked_read"] == 0
    assert owner_client.post(f"{BASE}/notifications/999999/read").status_code == 404


def test_health_endpoints(client):
    assert client.get(f"{BASE}/health/ready").get_json() == {"status": "ok"}
    res = client.get(f"{BASE}/health/live")
    assert res.status_code == 200
    assert res.get_json()["checks"]["database"]["status"] == "ok"
