"""
Briefed
Notification Blueprint: the owner's in-app inbox.

Endpoints (owner session):
    GET  /api/v1/notifications                  list (?unread=1, ?project_id=, ?limit=, ?offset=)
    GET  /api/v1/notifications/unread-count     badge count
    POST /api/v1/notifications/<nid>/read       mark one read
    POST /api/v1/notifications/read-all         mark all read
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

from briefed.auth import owner_required
from briefed.blueprints import paginate_args
from briefed.services.notification import NotificationService

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1")


@notification_bp.route("/notifications", methods=["GET"])
@owner_required
def list_notifications():
    limit, offset = paginate_args()
    unread_only = request.args.get("unread", "").lower() in ("1", "true", "yes")
    items, total = NotificationService.list_for_recipient(
        g.actor.owner_id,
        project_id=request.args.get("project_id"),
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": [n.to_dict() for n in items], "total": total})


@notification_bp.route("/notifications/unread-count", methods=["GET"])
@owner_required
def unread_count():
    return jsonify({"unread_count": NotificationService.unread_count(g.actor.owner_id)})


@notification_bp.route("/notifications/<int:nid>/read", methods=["POST"])
@owner_required
def mark_read(nid):
    notif = NotificationService.mark_read(g.actor.owner_id, nid)
    return jsonify(notif.to_dict())


@notification_bp.route("/notifications/read-all", methods=["POST"])
@owner_required
def mark_all_read():
    count = NotificationService.mark_all_read(g.actor.owner_id)
    return jsonify({"marked_read": count})
