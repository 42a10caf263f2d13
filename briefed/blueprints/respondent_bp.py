"""
Briefed
Respondent Blueprint: the questionnaire side of a project.

The respondent authenticates with the project's access token
(``x-magic-token`` header, or ``?token=``).  Read routes also accept the
owner session.

Endpoints:
    GET  /api/v1/respond/<id>                 respondent view (records activity)
    GET  /api/v1/projects/<id>/responses      list saved steps        (either)
    POST /api/v1/projects/<id>/responses      upsert one step         (either)
    POST /api/v1/projects/<id>/submit         build the brief         (respondent)
    GET  /api/v1/projects/<id>/brief          fetch the brief         (either)
    POST /api/v1/projects/<id>/assets         record upload metadata  (respondent)
"""

import logging

from flask import Blueprint, g, jsonify

from briefed.auth import actor_required, respondent_required
from briefed.blueprints import json_body
from briefed.services import lifecycle, revision_workflow, submission

logger = logging.getLogger(__name__)

respondent_bp = Blueprint("respondent_bp", __name__, url_prefix="/api/v1")


@respondent_bp.route("/respond/<project_id>", methods=["GET"])
@respondent_required
def respondent_view(project_id):
    project = lifecycle.record_respondent_visit(g.actor, project_id)
    responses = submission.list_responses(g.actor, project_id)
    revisions = revision_workflow.list_requests(g.actor, project_id)
    owner = project.owner
    return jsonify({
        "project": project.to_dict(),
        "owner": {"name": owner.display_name if owner else None},
        "responses": {r.step_key: r.answers for r in responses},
        "pending_revisions": [r.to_dict() for r in revisions if r.status == "pending"],
    })


@respondent_bp.route("/projects/<project_id>/responses", methods=["GET"])
@actor_required
def list_responses(project_id):
    items = submission.list_responses(g.actor, project_id)
    return jsonify({"items": [r.to_dict() for r in items], "total": len(items)})


@respondent_bp.route("/projects/<project_id>/responses", methods=["POST"])
@actor_required
def save_response(project_id):
    data = json_body()
    response = submission.save_response(
        g.actor, project_id, data.get("stepKey"), data.get("answers"),
    )
    return jsonify(response.to_dict())


@respondent_bp.route("/projects/<project_id>/submit", methods=["POST"])
@respondent_required
def submit(project_id):
    brief = submission.submit(g.actor, project_id)
    return jsonify({"success": True, "brief": brief.to_dict()}), 201


@respondent_bp.route("/projects/<project_id>/brief", methods=["GET"])
@actor_required
def get_brief(project_id):
    return jsonify(submission.get_brief(g.actor, project_id).to_dict())


@respondent_bp.route("/projects/<project_id>/assets", methods=["POST"])
@respondent_required
def record_asset(project_id):
    data = json_body()
    asset = submission.record_asset(
        g.actor,
        project_id,
        file_name=data.get("fileName"),
        storage_path=data.get("storagePath"),
        content_type=data.get("contentType"),
        size_bytes=data.get("sizeBytes"),
        step_key=data.get("stepKey"),
    )
    return jsonify(asset.to_dict()), 201
