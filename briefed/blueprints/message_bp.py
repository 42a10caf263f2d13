"""
Briefed
Message & Activity Blueprint.

Endpoints (owner session or respondent token):
    GET  /api/v1/projects/<id>/messages    thread, oldest first
    POST /api/v1/projects/<id>/messages    post; the other party is notified
         body: {content, metadata?}
    GET  /api/v1/projects/<id>/activity    timeline, newest first
"""

from flask import Blueprint, g, jsonify

from briefed.auth import actor_required
from briefed.blueprints import json_body
from briefed.services import message_service

message_bp = Blueprint("message_bp", __name__, url_prefix="/api/v1")


@message_bp.route("/projects/<project_id>/messages", methods=["GET"])
@actor_required
def list_messages(project_id):
    items = message_service.list_messages(g.actor, project_id)
    return jsonify({"messages": [m.to_dict() for m in items]})


@message_bp.route("/projects/<project_id>/messages", methods=["POST"])
@actor_required
def send_message(project_id):
    data = json_body()
    msg = message_service.send_message(
        g.actor, project_id, data.get("content"), data.get("metadata"),
    )
    return jsonify(msg.to_dict()), 201


@message_bp.route("/projects/<project_id>/activity", methods=["GET"])
@actor_required
def activity(project_id):
    return jsonify({"events": message_service.activity_feed(g.actor, project_id)})
