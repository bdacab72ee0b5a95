"""
Startup Accelerator Platform
Review Blueprint.

Endpoints:
    POST   /api/v1/applications/<aid>/reviewers        assign reviewer (admin)
           Body: { "reviewer_id": <int>, "due_date": "ISO-8601 (optional)" }
    POST   /api/v1/applications/<aid>/submit-review    submit scores (reviewer)
           Body: { "innovation_score", "market_score", "team_score",
                   "execution_score", "feedback" }
    GET    /api/v1/applications/<aid>/reviews          reviews visible to caller
    GET    /api/v1/applications/<aid>/review-summary   score aggregates (admin)
    GET    /api/v1/reviewer/assignments                caller's assignments
    POST   /api/v1/reviewer/assignments/<id>/start     start a review
"""

import logging

from flask import Blueprint, jsonify

from accelerator.auth import current_actor, require_auth, require_role
from accelerator.blueprints import json_body
from accelerator.models.user import ROLE_ADMIN, ROLE_REVIEWER
from accelerator.services import review_service

logger = logging.getLogger(__name__)

review_bp = Blueprint("reviews", __name__, url_prefix="/api/v1")


@review_bp.route("/applications/<int:application_id>/reviewers", methods=["POST"])
@require_role(ROLE_ADMIN)
def assign_reviewer(application_id):
    data = json_body()
    assignment = review_service.assign_reviewer(
        application_id,
        data.get("reviewer_id"),
        current_actor(),
        due_date=data.get("due_date"),
    )
    return jsonify(assignment.to_dict()), 201


@review_bp.route("/applications/<int:application_id>/submit-review", methods=["POST"])
@require_role(ROLE_REVIEWER)
def submit_review(application_id):
    assignment = review_service.submit_review(application_id, json_body(), current_actor())
    return jsonify(assignment.to_dict())


@review_bp.route("/applications/<int:application_id>/reviews", methods=["GET"])
@require_auth
def list_reviews(application_id):
    reviews = review_service.list_reviews(application_id, current_actor())
    return jsonify({"items": reviews, "total": len(reviews)})


@review_bp.route("/applications/<int:application_id>/review-summary", methods=["GET"])
@require_role(ROLE_ADMIN)
def review_summary(application_id):
    return jsonify(review_service.review_summary(application_id))


@review_bp.route("/reviewer/assignments", methods=["GET"])
@require_role(ROLE_REVIEWER)
def list_assignments():
    items = review_service.list_assignments(current_actor())
    return jsonify({"items": items, "total": len(items)})


@review_bp.route("/reviewer/assignments/<int:assignment_id>/start", methods=["POST"])
@require_role(ROLE_REVIEWER)
def start_review(assignment_id):
    assignment = review_service.start_review(assignment_id, current_actor())
    return jsonify(assignment.to_dict())
