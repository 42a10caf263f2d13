"""
Briefed
Project Blueprint: owner-facing project management.

Endpoints (all require an owner session):
    POST   /api/v1/projects                                 create
    GET    /api/v1/projects                                 list own projects
    GET    /api/v1/projects/<id>                            project + lifecycle + health
    DELETE /api/v1/projects/<id>                            cascade delete
    POST   /api/v1/projects/<id>/send                       draft → sent, email link
    POST   /api/v1/projects/<id>/resend                     email link again
    PATCH  /api/v1/projects/<id>/status                     owner status change
    POST   /api/v1/projects/<id>/phase                      advance lifecycle phase
    POST   /api/v1/projects/<id>/deliver                    hand over deliverables
    POST   /api/v1/projects/<id>/blockers                   add blocker
    POST   /api/v1/projects/<id>/blockers/<bid>/resolve     resolve blocker
    POST   /api/v1/projects/<id>/token/rotate               replace respondent link
    POST   /api/v1/projects/<id>/share                      enable share link
    DELETE /api/v1/projects/<id>/share                      disable share link
"""

import logging

from flask import Blueprint, g, jsonify, request

from briefed.auth import owner_required
from briefed.blueprints import json_body
from briefed.core.exceptions import ValidationError
from briefed.services import lifecycle, project_service

logger = logging.getLogger(__name__)

project_bp = Blueprint("project_bp", __name__, url_prefix="/api/v1")


@project_bp.route("/projects", methods=["POST"])
@owner_required
def create_project():
    data = json_body()
    project = project_service.create_project(
        g.actor,
        respondent_email=data.get("respondentEmail"),
        category=data.get("category"),
        respondent_name=data.get("respondentName"),
    )
    return jsonify(project.to_dict(include_secrets=True)), 201


@project_bp.route("/projects", methods=["GET"])
@owner_required
def list_projects():
    projects = project_service.list_projects(g.actor, status=request.args.get("status"))
    return jsonify({"items": [p.to_dict() for p in projects], "total": len(projects)})


@project_bp.route("/projects/<project_id>", methods=["GET"])
@owner_required
def get_project(project_id):
    return jsonify(project_service.project_overview(g.actor, project_id))


@project_bp.route("/projects/<project_id>", methods=["DELETE"])
@owner_required
def delete_project(project_id):
    lifecycle.delete_project(g.actor, project_id)
    return jsonify({"deleted": True, "id": project_id})


# ── Status ───────────────────────────────────────────────────────────────


@project_bp.route("/projects/<project_id>/send", methods=["POST"])
@owner_required
def send_project(project_id):
    project = lifecycle.mark_sent(g.actor, project_id)
    return jsonify(project.to_dict())


@project_bp.route("/projects/<project_id>/resend", methods=["POST"])
@owner_required
def resend_link(project_id):
    project_service.resend_link(g.actor, project_id)
    return jsonify({"success": True})


@project_bp.route("/projects/<project_id>/status", methods=["PATCH"])
@owner_required
def update_status(project_id):
    target = json_body().get("status")
    if not isinstance(target, str) or not target:
        raise ValidationError("status is required", details={"status": "required"})
    project = lifecycle.update_status(g.actor, project_id, target)
    return jsonify(project.to_dict())


# ── Lifecycle ────────────────────────────────────────────────────────────


@project_bp.route("/projects/<project_id>/phase", methods=["POST"])
@owner_required
def advance_phase(project_id):
    data = json_body()
    state = lifecycle.advance_phase(
        g.actor,
        project_id,
        data.get("phase"),
        confirm_delivery=bool(data.get("confirmDelivery", False)),
    )
    return jsonify(state.to_dict())


@project_bp.route("/projects/<project_id>/deliver", methods=["POST"])
@owner_required
def deliver(project_id):
    state = lifecycle.deliver(g.actor, project_id, json_body().get("notes") or "")
    return jsonify(state.to_dict())


@project_bp.route("/projects/<project_id>/blockers", methods=["POST"])
@owner_required
def add_blocker(project_id):
    data = json_body()
    state = lifecycle.add_blocker(
        g.actor,
        project_id,
        data.get("description"),
        data.get("severity") or "medium",
    )
    return jsonify(state.to_dict()), 201


@project_bp.route("/projects/<project_id>/blockers/<blocker_id>/resolve", methods=["POST"])
@owner_required
def resolve_blocker(project_id, blocker_id):
    state = lifecycle.resolve_blocker(g.actor, project_id, blocker_id)
    return jsonify(state.to_dict())


# ── Link secrets ─────────────────────────────────────────────────────────


@project_bp.route("/projects/<project_id>/token/rotate", methods=["POST"])
@owner_required
def rotate_token(project_id):
    project = project_service.rotate_access_token(g.actor, project_id)
    return jsonify({"id": project.id, "access_token": project.access_token})


@project_bp.route("/projects/<project_id>/share", methods=["POST"])
@owner_required
def enable_sharing(project_id):
    project = project_service.enable_sharing(g.actor, project_id)
    return jsonify({"id": project.id, "share_token": project.share_token})


@project_bp.route("/projects/<project_id>/share", methods=["DELETE"])
@owner_required
def disable_sharing(project_id):
    project = project_service.disable_sharing(g.actor, project_id)
    return jsonify({"id": project.id, "share_token": None})
