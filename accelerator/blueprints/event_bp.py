"""
Startup Accelerator Platform
Events & Advertisements Blueprint.

Endpoints:
    GET    /api/v1/events                          list (?from=&to= bound start_date)
    POST   /api/v1/events                          create (admin)
           Body: { "title", "start_date", "end_date", "description"?, "location"?,
                   "event_url"?, "is_public"? }
    GET    /api/v1/events/<id>                     detail
    PUT    /api/v1/events/<id>                     partial update (admin)
    DELETE /api/v1/events/<id>                     delete (admin)
    GET    /api/v1/advertisements                  list, latest scheduled first
    POST   /api/v1/advertisements                  schedule a DRAFT (admin)
           Body: { "title", "content", "scheduled_date", "image_url"?, "platforms"? }
    PATCH  /api/v1/advertisements/<id>/status      DRAFT | PUBLISHED | ARCHIVED (admin)
    DELETE /api/v1/advertisements/<id>             delete (admin)
    GET    /api/v1/public/events                   upcoming public events, no session
    GET    /api/v1/public/advertisements           published and due, no session
"""

import logging

from flask import Blueprint, jsonify, request

from accelerator.auth import current_actor, require_auth, require_role
from accelerator.blueprints import json_body
from accelerator.models.user import ROLE_ADMIN
from accelerator.services import event_service
from accelerator.utils.errors import E, api_error

logger = logging.getLogger(__name__)

event_bp = Blueprint("events", __name__, url_prefix="/api/v1")

PUBLIC_CACHE_CONTROL = "public, max-age=60"


def _items(rows):
    return jsonify({"items": [r.to_dict() for r in rows], "total": len(rows)})


# ── Events ───────────────────────────────────────────────────────────────────

@event_bp.route("/events", methods=["GET"])
@require_auth
def list_events():
    events = event_service.list_events(request.args.get("from"), request.args.get("to"))
    return _items(events)


@event_bp.route("/events", methods=["POST"])
@require_role(ROLE_ADMIN)
def create_event():
    event = event_service.create_event(json_body(), current_actor())
    return jsonify(event.to_dict()), 201


@event_bp.route("/events/<int:event_id>", methods=["GET"])
@require_auth
def get_event(event_id):
    return jsonify(event_service.get_event(event_id).to_dict())


@event_bp.route("/events/<int:event_id>", methods=["PUT"])
@require_role(ROLE_ADMIN)
def update_event(event_id):
    event = event_service.update_event(event_id, json_body(), current_actor())
    return jsonify(event.to_dict())


@event_bp.route("/events/<int:event_id>", methods=["DELETE"])
@require_role(ROLE_ADMIN)
def delete_event(event_id):
    event_service.delete_event(event_id, current_actor())
    return "", 204


# ── Advertisements ───────────────────────────────────────────────────────────

@event_bp.route("/advertisements", methods=["GET"])
@require_auth
def list_advertisements():
    return _items(event_service.list_advertisements())


@event_bp.route("/advertisements", methods=["POST"])
@require_role(ROLE_ADMIN)
def create_advertisement():
    ad = event_service.create_advertisement(json_body(), current_actor())
    return jsonify(ad.to_dict()), 201


@event_bp.route("/advertisements/<int:advertisement_id>/status", methods=["PATCH"])
@require_role(ROLE_ADMIN)
def set_advertisement_status(advertisement_id):
    data = json_body()
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required", details={"status": "required"})

    ad = event_service.set_advertisement_status(advertisement_id, data["status"], current_actor())
    return jsonify(ad.to_dict())


@event_bp.route("/advertisements/<int:advertisement_id>", methods=["DELETE"])
@require_role(ROLE_ADMIN)
def delete_advertisement(advertisement_id):
    event_service.delete_advertisement(advertisement_id, current_actor())
    return "", 204


# ── Public feed ──────────────────────────────────────────────────────────────

@event_bp.route("/public/events", methods=["GET"])
def public_events():
    response = _items(event_service.list_public_events())
    response.headers["Cache-Control"] = PUBLIC_CACHE_CONTROL
    return response


@event_bp.route("/public/advertisements", methods=["GET"])
def public_advertisements():
    response = _items(event_service.list_public_advertisements())
    response.headers["Cache-Control"] = PUBLIC_CACHE_CONTROL
    return response
