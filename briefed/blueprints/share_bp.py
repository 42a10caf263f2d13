"""
Briefed
Share Blueprint: read-only brief for anyone holding the share link.

    GET /api/v1/share/<share_token>
"""

from flask import Blueprint, jsonify

from briefed.services import submission

share_bp = Blueprint("share_bp", __name__, url_prefix="/api/v1")


@share_bp.route("/share/<share_token>", methods=["GET"])
def shared_brief(share_token):
    project, brief = submission.get_shared_brief(share_token)
    return jsonify({
        "project": {
            "category": project.category,
            "respondent_name": project.respondent_name,
            "completed_at": project.completed_at.isoformat() if project.completed_at else None,
        },
        "brief": {
            "version": brief.version,
            "content": brief.content,
            "created_at": brief.created_at.isoformat() if brief.created_at else None,
        },
    })
