"""
Startup Accelerator Platform
Notification Blueprint.

Endpoints:
    GET  /api/v1/notifications    caller's notifications, newest first
         Query: unread_only=true, limit, offset
    PUT  /api/v1/notifications    mark read
         Body: { "ids": [1, 2] }  (omit ids to mark everything read)
"""

import logging

from flask import Blueprint, jsonify, request

from accelerator.auth import current_actor, require_auth
from accelerator.blueprints import json_body, pagination_args
from accelerator.services.notification import NotificationService
from accelerator.utils.errors import E, api_error

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notifications", __name__, url_prefix="/api/v1")


@notification_bp.route("/notifications", methods=["GET"])
@require_auth
def list_notifications():
    unread_only = request.args.get("unread_only", "false").lower() in ("true", "1", "yes")
    limit, offset = pagination_args()

    items, total, unread = NotificationService.list_for_user(
        current_actor().user_id, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "unread_count": unread,
        "limit": limit,
        "offset": offset,
    })


@notification_bp.route("/notifications", methods=["PUT"])
@require_auth
def mark_notifications_read():
    ids = json_body().get("ids")
    if ids is not None and (
        not isinstance(ids, list) or not all(isinstance(i, int) and not isinstance(i, bool) for i in ids)
    ):
        return api_error(E.VALIDATION_INVALID, "ids must be a list of integers", details={"ids": "invalid"})

    updated = NotificationService.mark_read(current_actor().user_id, ids)
    return jsonify({"updated": updated})
