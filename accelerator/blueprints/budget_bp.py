"""
Startup Accelerator Platform
Budget Blueprint.

Endpoints:
    GET    /api/v1/startup-calls/<cid>/budgets    readable budgets of a call (with figures)
    POST   /api/v1/startup-calls/<cid>/budgets    create budget + categories (admin)
    GET    /api/v1/budgets/<bid>                  budget, expenses and figures (admin or funded founder)
    POST   /api/v1/budgets/<bid>/expenses         record an expense
    PATCH  /api/v1/expenses/<eid>/status          approve / reject an expense
           Body: { "status": "APPROVED|REJECTED|PENDING", "feedback": "..." }
"""

import logging

from flask import Blueprint, jsonify

from accelerator.auth import current_actor, require_auth, require_role
from accelerator.blueprints import json_body
from accelerator.models.user import ROLE_ADMIN, ROLE_REVIEWER, ROLE_SPONSOR
from accelerator.services import budget_service
from accelerator.utils.errors import E, api_error

logger = logging.getLogger(__name__)

budget_bp = Blueprint("budgets", __name__, url_prefix="/api/v1")


@budget_bp.route("/startup-calls/<int:call_id>/budgets", methods=["GET"])
@require_auth
def list_budgets(call_id):
    budgets = budget_service.list_budgets(call_id, current_actor())
    items = []
    for budget in budgets:
        d = budget.to_dict()
        d["figures"] = budget_service.compute_budget_figures(budget)
        items.append(d)
    return jsonify({"items": items, "total": len(items)})


@budget_bp.route("/startup-calls/<int:call_id>/budgets", methods=["POST"])
@require_role(ROLE_ADMIN)
def create_budget(call_id):
    budget = budget_service.create_budget(call_id, json_body(), current_actor())
    return jsonify(budget_service.budget_detail(budget)), 201


@budget_bp.route("/budgets/<int:budget_id>", methods=["GET"])
@require_auth
def get_budget(budget_id):
    budget = budget_service.get_budget(budget_id, current_actor())
    return jsonify(budget_service.budget_detail(budget))


@budget_bp.route("/budgets/<int:budget_id>/expenses", methods=["POST"])
@require_auth
def create_expense(budget_id):
    expense = budget_service.create_expense(budget_id, json_body(), current_actor())
    return jsonify(expense.to_dict()), 201


@budget_bp.route("/expenses/<int:expense_id>/status", methods=["PATCH"])
@require_role(ROLE_ADMIN, ROLE_SPONSOR, ROLE_REVIEWER)
def update_expense_status(expense_id):
    data = json_body()
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required", details={"status": "required"})

    result = budget_service.update_expense_status(
        expense_id, data["status"], current_actor(), feedback=data.get("feedback"),
    )
    return jsonify(result)
