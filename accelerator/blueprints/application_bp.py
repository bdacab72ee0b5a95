"""
Startup Accelerator Platform
Startup call & application Blueprint.

Endpoints:
    GET    /api/v1/startup-calls                       list calls
    POST   /api/v1/startup-calls                       create call (admin)
    GET    /api/v1/startup-calls/<cid>                 call detail
    POST   /api/v1/startup-calls/<cid>/applications    apply (entrepreneur)
    GET    /api/v1/startup-calls/<cid>/applications    call applications (admin)
    GET    /api/v1/applications/mine                   caller's applications
    GET    /api/v1/applications/<aid>                  application detail
    PUT    /api/v1/applications/<aid>                  status transition (admin)
           Body: { "status": "UNDER_REVIEW|APPROVED|..." }
    POST   /api/v1/applications/<aid>/withdraw         withdraw (owner)

Layer contract:
    - Blueprint: role gate, parse input, call service, return JSON.
    - Service exceptions are mapped to HTTP by the app-level handlers.
"""

import logging

from flask import Blueprint, jsonify, request

from accelerator.auth import current_actor, require_auth, require_role
from accelerator.blueprints import json_body
from accelerator.models.user import ROLE_ADMIN, ROLE_ENTREPRENEUR
from accelerator.services import application_workflow
from accelerator.utils.errors import E, api_error

logger = logging.getLogger(__name__)

application_bp = Blueprint("applications", __name__, url_prefix="/api/v1")


# ── Startup calls ──────────────────────────────────────────────────────────────


@application_bp.route("/startup-calls", methods=["GET"])
@require_auth
def list_startup_calls():
    calls = application_workflow.list_startup_calls(current_actor())
    return jsonify({"items": [c.to_dict() for c in calls], "total": len(calls)})


@application_bp.route("/startup-calls", methods=["POST"])
@require_role(ROLE_ADMIN)
def create_startup_call():
    call = application_workflow.create_startup_call(json_body(), current_actor())
    return jsonify(call.to_dict()), 201


@application_bp.route("/startup-calls/<int:call_id>", methods=["GET"])
@require_auth
def get_startup_call(call_id):
    call = application_workflow.get_startup_call(call_id, current_actor())
    return jsonify(call.to_dict())


@application_bp.route("/startup-calls/<int:call_id>/applications", methods=["POST"])
@require_role(ROLE_ENTREPRENEUR)
def submit_application(call_id):
    application = application_workflow.submit_application(call_id, current_actor(), json_body())
    return jsonify(application.to_dict()), 201


@application_bp.route("/startup-calls/<int:call_id>/applications", methods=["GET"])
@require_role(ROLE_ADMIN)
def list_call_applications(call_id):
    applications = application_workflow.list_call_applications(call_id, request.args.get("status"))
    return jsonify({"items": [a.to_dict() for a in applications], "total": len(applications)})


# ── Applications ───────────────────────────────────────────────────────────────


@application_bp.route("/applications/mine", methods=["GET"])
@require_auth
def list_my_applications():
    applications = application_workflow.list_my_applications(current_actor())
    return jsonify({"items": [a.to_dict() for a in applications], "total": len(applications)})


@application_bp.route("/applications/<int:application_id>", methods=["GET"])
@require_auth
def get_application(application_id):
    application = application_workflow.get_application(application_id, current_actor())
    d = application.to_dict()
    d["call_title"] = application.call.title if application.call else None
    d["allowed_transitions"] = application_workflow.allowed_transitions(application.status)
    return jsonify(d)


@application_bp.route("/applications/<int:application_id>", methods=["PUT"])
@require_role(ROLE_ADMIN)
def transition_application(application_id):
    data = json_body()
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required", details={"status": "required"})

    application = application_workflow.transition_application(
        application_id, data["status"], current_actor(),
    )
    return jsonify(application.to_dict())


@application_bp.route("/applications/<int:application_id>/withdraw", methods=["POST"])
@require_auth
def withdraw_application(application_id):
    application = application_workflow.withdraw_application(application_id, current_actor())
    return jsonify(application.to_dict())
