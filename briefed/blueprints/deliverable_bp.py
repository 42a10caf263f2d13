"""
Briefed
Deliverable Blueprint.

Endpoints:
    GET    /api/v1/projects/<id>/deliverables                   list          (either)
    POST   /api/v1/projects/<id>/deliverables                   create draft  (owner)
           body: {title, description?, fileUrl?, fileType?}
    POST   /api/v1/projects/<id>/deliverables/<did>/share       share         (owner)
    POST   /api/v1/projects/<id>/deliverables/<did>/address     next round    (owner)
    DELETE /api/v1/projects/<id>/deliverables/<did>             delete        (owner)
    GET    /api/v1/projects/<id>/deliverables/<did>/feedback    list verdicts (either)
    POST   /api/v1/projects/<id>/deliverables/<did>/feedback    review round  (respondent)
           body: {overallRating, categoryRatings?, comments?}
"""

import logging

from flask import Blueprint, g, jsonify

from briefed.auth import actor_required, owner_required, respondent_required
from briefed.blueprints import json_body
from briefed.services import deliverables

logger = logging.getLogger(__name__)

deliverable_bp = Blueprint("deliverable_bp", __name__, url_prefix="/api/v1")


@deliverable_bp.route("/projects/<project_id>/deliverables", methods=["GET"])
@actor_required
def list_deliverables(project_id):
    items = deliverables.list_deliverables(g.actor, project_id)
    return jsonify({"deliverables": [d.to_dict() for d in items]})


@deliverable_bp.route("/projects/<project_id>/deliverables", methods=["POST"])
@owner_required
def create_deliverable(project_id):
    data = json_body()
    deliverable = deliverables.create_deliverable(
        g.actor,
        project_id,
        title=data.get("title"),
        description=data.get("description"),
        file_url=data.get("fileUrl"),
        file_type=data.get("fileType"),
    )
    return jsonify({"deliverable": deliverable.to_dict()}), 201


@deliverable_bp.route("/projects/<project_id>/deliverables/<deliverable_id>/share", methods=["POST"])
@owner_required
def share_deliverable(project_id, deliverable_id):
    deliverable = deliverables.share_deliverable(g.actor, project_id, deliverable_id)
    return jsonify({"deliverable": deliverable.to_dict()})


@deliverable_bp.route("/projects/<project_id>/deliverables/<deliverable_id>/address", methods=["POST"])
@owner_required
def address_feedback(project_id, deliverable_id):
    deliverable = deliverables.address_feedback(g.actor, project_id, deliverable_id)
    return jsonify({"deliverable": deliverable.to_dict(include_feedback=True)})


@deliverable_bp.route("/projects/<project_id>/deliverables/<deliverable_id>", methods=["DELETE"])
@owner_required
def delete_deliverable(project_id, deliverable_id):
    deliverables.delete_deliverable(g.actor, project_id, deliverable_id)
    return jsonify({"deleted": True, "id": deliverable_id})


@deliverable_bp.route("/projects/<project_id>/deliverables/<deliverable_id>/feedback", methods=["GET"])
@actor_required
def list_feedback(project_id, deliverable_id):
    items = deliverables.list_feedback(g.actor, project_id, deliverable_id)
    return jsonify({"feedback": [f.to_dict() for f in items]})


@deliverable_bp.route("/projects/<project_id>/deliverables/<deliverable_id>/feedback", methods=["POST"])
@respondent_required
def give_feedback(project_id, deliverable_id):
    data = json_body()
    feedback = deliverables.give_feedback(
        g.actor,
        project_id,
        deliverable_id,
        overall_rating=data.get("overallRating"),
        category_ratings=data.get("categoryRatings"),
        comments=data.get("comments"),
    )
    return jsonify({"feedback": feedback.to_dict()}), 201
