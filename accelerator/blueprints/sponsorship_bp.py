"""
Startup Accelerator Platform
Sponsorship Blueprint.

Endpoints:
    GET    /api/v1/sponsorship-opportunities              list (OPEN for non-admins)
    POST   /api/v1/sponsorship-opportunities              create (admin)
    GET    /api/v1/sponsorship-opportunities/<oid>        detail
    POST   /api/v1/sponsorship-opportunities/<oid>/apply  pledge (sponsor)
           Body: { "amount": <number>, "currency": "USD", "message": "..." }
    GET    /api/v1/sponsors/me/applications               caller's pledges (sponsor)
    PATCH  /api/v1/sponsorship-applications/<id>          accept / reject (admin)
           Body: { "status": "ACCEPTED|REJECTED" }
    POST   /api/v1/sponsorship-applications/<id>/withdraw withdraw own PENDING pledge (sponsor)
"""

import logging

from flask import Blueprint, jsonify

from accelerator.auth import current_actor, require_auth, require_role
from accelerator.blueprints import json_body
from accelerator.models.user import ROLE_ADMIN, ROLE_SPONSOR
from accelerator.services import sponsorship_service
from accelerator.utils.errors import E, api_error

logger = logging.getLogger(__name__)

sponsorship_bp = Blueprint("sponsorships", __name__, url_prefix="/api/v1")


@sponsorship_bp.route("/sponsorship-opportunities", methods=["GET"])
@require_auth
def list_opportunities():
    opportunities = sponsorship_service.list_opportunities(current_actor())
    return jsonify({"items": [o.to_dict() for o in opportunities], "total": len(opportunities)})


@sponsorship_bp.route("/sponsorship-opportunities", methods=["POST"])
@require_role(ROLE_ADMIN)
def create_opportunity():
    opportunity = sponsorship_service.create_opportunity(json_body(), current_actor())
    return jsonify(opportunity.to_dict()), 201


@sponsorship_bp.route("/sponsorship-opportunities/<int:opportunity_id>", methods=["GET"])
@require_auth
def get_opportunity(opportunity_id):
    opportunity = sponsorship_service.get_opportunity(opportunity_id, current_actor())
    return jsonify(opportunity.to_dict())


@sponsorship_bp.route("/sponsorship-opportunities/<int:opportunity_id>/apply", methods=["POST"])
@require_role(ROLE_SPONSOR)
def apply_for_opportunity(opportunity_id):
    pledge = sponsorship_service.apply_for_opportunity(opportunity_id, json_body(), current_actor())
    return jsonify(pledge.to_dict()), 201


@sponsorship_bp.route("/sponsors/me/applications", methods=["GET"])
@require_role(ROLE_SPONSOR)
def list_my_applications():
    pledges = sponsorship_service.list_my_sponsorship_applications(current_actor())
    return jsonify({"items": [p.to_dict() for p in pledges], "total": len(pledges)})


@sponsorship_bp.route("/sponsorship-applications/<int:application_id>", methods=["PATCH"])
@require_role(ROLE_ADMIN)
def review_application(application_id):
    data = json_body()
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required", details={"status": "required"})

    pledge = sponsorship_service.review_sponsorship_application(
        application_id, data["status"], current_actor(),
    )
    return jsonify(pledge.to_dict())


@sponsorship_bp.route("/sponsorship-applications/<int:application_id>/withdraw", methods=["POST"])
@require_role(ROLE_SPONSOR)
def withdraw_application(application_id):
    pledge = sponsorship_service.withdraw_sponsorship_application(application_id, current_actor())
    return jsonify(pledge.to_dict())
