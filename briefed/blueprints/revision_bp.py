"""
Briefed
Revision Blueprint.

Endpoints:
    GET   /api/v1/projects/<id>/revisions         list, newest first   (either)
    POST  /api/v1/projects/<id>/revisions         open a request       (owner)
          body: {stepKey, message, fieldKey?}
    PATCH /api/v1/projects/<id>/revisions         answer a request     (respondent)
          body: {revisionId, response}
    POST  /api/v1/projects/<id>/revisions/close   close the cycle      (owner)
"""

import logging

from flask import Blueprint, g, jsonify

from briefed.auth import actor_required, owner_required, respondent_required
from briefed.blueprints import json_body
from briefed.services import revision_workflow

logger = logging.getLogger(__name__)

revision_bp = Blueprint("revision_bp", __name__, url_prefix="/api/v1")


@revision_bp.route("/projects/<project_id>/revisions", methods=["GET"])
@actor_required
def list_revisions(project_id):
    items = revision_workflow.list_requests(g.actor, project_id)
    return jsonify({"revisions": [r.to_dict() for r in items]})


@revision_bp.route("/projects/<project_id>/revisions", methods=["POST"])
@owner_required
def open_revision(project_id):
    data = json_body()
    revision = revision_workflow.open_request(
        g.actor,
        project_id,
        data.get("stepKey"),
        data.get("message"),
        field_key=data.get("fieldKey"),
    )
    return jsonify({"revision": revision.to_dict()}), 201


@revision_bp.route("/projects/<project_id>/revisions", methods=["PATCH"])
@respondent_required
def answer_revision(project_id):
    data = json_body()
    revision = revision_workflow.respond(
        g.actor, project_id, data.get("revisionId"), data.get("response"),
    )
    return jsonify({"revision": revision.to_dict()})


@revision_bp.route("/projects/<project_id>/revisions/close", methods=["POST"])
@owner_required
def close_cycle(project_id):
    brief = revision_workflow.close_cycle(g.actor, project_id)
    return jsonify({"brief": brief.to_dict()})
