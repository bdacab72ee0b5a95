"""
Startup Accelerator Platform
Budget ledger service.

Budget figures (spent, remaining, per-category utilisation) are always
recomputed from expense rows; nothing derived is stored. Amounts are
handled as Decimal and serialised as floats rounded to cents.
"""

import logging
from decimal import Decimal

from flask import current_app
from sqlalchemy import select

from accelerator.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from accelerator.models import db, money, utcnow
from accelerator.models.budget import BUDGET_STATUSES, EXPENSE_STATUSES, Budget, BudgetCategory, Expense
from accelerator.models.startup_call import Application, StartupCall
from accelerator.models.user import ROLE_ADMIN, ROLE_REVIEWER, ROLE_SPONSOR
from accelerator.services.notification import NotificationService
from accelerator.utils.helpers import optional_str, parse_date, require_fields, require_str, to_decimal

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

EXPENSE_APPROVER_ROLES = frozenset({ROLE_ADMIN, ROLE_SPONSOR, ROLE_REVIEWER})

_CENT = Decimal("0.01")
_ZERO = Decimal("0")


def _dec(value):
    return Decimal(str(value)) if value is not None else _ZERO


def _get_budget(budget_id):
    budget = db.session.get(Budget, budget_id)
    if budget is None:
        raise NotFoundError("Budget", budget_id)
    return budget


# ═════════════════════════════════════════════════════════════════════════════
# Figures
# ═════════════════════════════════════════════════════════════════════════════

def compute_budget_figures(budget):
    """
    Recompute spent / remaining for a budget and each of its categories.

    Only APPROVED expenses count as spent. Category utilisation is
    ``spent / allocated * 100`` and 0 when nothing is allocated.
    """
    approved = [e for e in budget.expenses if e.status == "APPROVED"]
    spent = sum((_dec(e.amount) for e in approved), _ZERO)
    total = _dec(budget.total_amount)

    categories = []
    for category in budget.categories:
        allocated = _dec(category.allocated_amount)
        cat_spent = sum((_dec(e.amount) for e in approved if e.category_id == category.id), _ZERO)
        utilisation = (cat_spent / allocated * 100) if allocated > 0 else _ZERO
        categories.append({
            "id": category.id,
            "name": category.name,
            "allocated_amount": money(allocated),
            "spent": money(cat_spent),
            "remaining": money(allocated - cat_spent),
            "utilization_pct": money(utilisation),
        })

    return {
        "budget_id": budget.id,
        "total_amount": money(total),
        "spent": money(spent),
        "remaining": money(total - spent),
        "currency": budget.currency,
        "categories": categories,
    }


def budget_detail(budget):
    d = budget.to_dict()
    d["expenses"] = [e.to_dict() for e in budget.expenses]
    d["figures"] = compute_budget_figures(budget)
    return d


# ═════════════════════════════════════════════════════════════════════════════
# Budgets
# ═════════════════════════════════════════════════════════════════════════════

def can_read_budget(budget, actor):
    """Admins, and the founder the budget funds."""
    return actor.is_admin or resolve_budget_founder(budget) == actor.user_id


def list_budgets(call_id, actor):
    """Budgets of a call the caller may read; admins see all of them."""
    if db.session.get(StartupCall, call_id) is None:
        raise NotFoundError("StartupCall", call_id)
    budgets = db.session.execute(
        select(Budget).where(Budget.startup_call_id == call_id).order_by(Budget.id)
    ).scalars().all()
    return [b for b in budgets if can_read_budget(b, actor)]


def get_budget(budget_id, actor):
    budget = _get_budget(budget_id)
    if not can_read_budget(budget, actor):
        raise ForbiddenError("You do not have access to this budget")
    return budget


def _build_categories(raw_categories):
    categories = []
    for i, raw in enumerate(raw_categories or []):
        name = raw.get("name") if isinstance(raw, dict) else None
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Category name is required", details={f"categories[{i}].name": "required"})
        name = name.strip()
        allocated = to_decimal(raw.get("allocated_amount", 0), f"categories[{i}].allocated_amount")
        if allocated < 0:
            raise ValidationError(
                "Category allocation cannot be negative",
                details={f"categories[{i}].allocated_amount": "must be >= 0"},
            )
        categories.append(BudgetCategory(
            name=name,
            description=optional_str(raw, "description"),
            allocated_amount=allocated.quantize(_CENT),
        ))
    return categories


def create_budget(call_id, payload, actor):
    """Create a budget with its categories in a single commit (admin only)."""
    if not actor.is_admin:
        raise ForbiddenError("Only admins can create budgets")
    if db.session.get(StartupCall, call_id) is None:
        raise NotFoundError("StartupCall", call_id)

    require_str(payload, "title")
    require_fields(payload, "total_amount")
    total = to_decimal(payload["total_amount"], "total_amount")
    if total <= 0:
        raise ValidationError("total_amount must be positive", details={"total_amount": "must be > 0"})

    status = str(payload.get("status") or "DRAFT").upper()
    if status not in BUDGET_STATUSES:
        raise ValidationError(f"Invalid budget status: {status}",
                              details={"status": f"one of {sorted(BUDGET_STATUSES)}"})

    start = parse_date(payload.get("start_date"), "start_date")
    end = parse_date(payload.get("end_date"), "end_date")
    if start and end and end < start:
        raise ValidationError("end_date must not be before start_date", details={"end_date": "before start_date"})

    budget = Budget(
        startup_call_id=call_id,
        startup_id=payload.get("startup_id"),
        title=payload["title"].strip(),
        description=optional_str(payload, "description"),
        total_amount=total.quantize(_CENT),
        currency=str(payload.get("currency") or "USD").upper(),
        fiscal_year=str(payload.get("fiscal_year") or utcnow().year),
        status=status,
        start_date=start,
        end_date=end,
        created_by=actor.user_id,
    )
    budget.categories = _build_categories(payload.get("categories"))
    db.session.add(budget)
    db.session.commit()
    logger.info(
        "Budget %s created for call %s (%s %s)", budget.id, call_id, budget.total_amount, budget.currency,
        extra={"user_id": actor.user_id, "budget_id": budget.id},
    )
    return budget


def auto_provision_budget(call_id, application=None):
    """
    Create the default budget for a call unless it already has one.

    Called from the APPROVED transition; flushes only, the caller commits.
    Returns the new Budget, or None when the call already had a budget.
    """
    existing = db.session.execute(
        select(Budget.id).where(Budget.startup_call_id == call_id).limit(1)
    ).scalar()
    if existing is not None:
        logger.info(
            "Call %s already has budget %s; nothing provisioned", call_id, existing,
            extra={"budget_id": existing,
                   "application_id": application.id if application else None},
        )
        return None

    cfg = current_app.config
    call = db.session.get(StartupCall, call_id)
    total = Decimal(str(cfg["BUDGET_DEFAULT_TOTAL"])).quantize(_CENT)
    startup_name = "Unknown"
    if application is not None:
        startup_name = application.startup.name if application.startup else application.startup_name

    budget = Budget(
        startup_call_id=call_id,
        title=f"Budget for {call.title if call else f'call {call_id}'}",
        description=f"Auto-generated budget for the approved startup: {startup_name}",
        total_amount=total,
        currency=cfg["BUDGET_DEFAULT_CURRENCY"],
        fiscal_year=str(utcnow().year),
        status="ACTIVE",
    )
    budget.categories = [
        BudgetCategory(
            name=c["name"],
            description=c.get("description", ""),
            allocated_amount=(total * Decimal(str(c["share"]))).quantize(_CENT),
        )
        for c in cfg["BUDGET_DEFAULT_CATEGORIES"]
    ]
    db.session.add(budget)
    db.session.flush()
    logger.info(
        "Budget %s provisioned for call %s", budget.id, call_id,
        extra={"budget_id": budget.id,
               "application_id": application.id if application else None},
    )
    return budget


# ═════════════════════════════════════════════════════════════════════════════
# Expenses
# ═════════════════════════════════════════════════════════════════════════════

def _approved_application(call_id):
    return db.session.execute(
        select(Application)
        .where(Application.call_id == call_id, Application.status == "APPROVED")
        .order_by(Application.id)
        .limit(1)
    ).scalar_one_or_none()


def resolve_budget_founder(budget):
    """
    The entrepreneur who should hear about expense decisions on ``budget``.

    Budget's own startup first, then the call's approved application
    (its startup's founder, else its owner). None when unresolved.
    """
    if budget.startup is not None:
        return budget.startup.founder_id
    application = _approved_application(budget.startup_call_id)
    if application is None:
        return None
    if application.startup is not None:
        return application.startup.founder_id
    return application.user_id


def create_expense(budget_id, payload, actor):
    """
    Record a PENDING expense against a budget.

    Admins, or the entrepreneur whose approved application the budget funds.
    """
    budget = _get_budget(budget_id)
    if not actor.is_admin and resolve_budget_founder(budget) != actor.user_id:
        raise ForbiddenError("You cannot record expenses against this budget")

    require_str(payload, "title")
    require_fields(payload, "amount")
    amount = to_decimal(payload["amount"], "amount")
    if amount <= 0:
        raise ValidationError("amount must be positive", details={"amount": "must be > 0"})

    category_id = payload.get("category_id")
    if category_id is not None:
        category = None
        if isinstance(category_id, int) and not isinstance(category_id, bool):
            category = db.session.get(BudgetCategory, category_id)
        if category is None or category.budget_id != budget.id:
            raise ValidationError("Category does not belong to this budget",
                                  details={"category_id": "unknown category"})

    expense = Expense(
        budget_id=budget.id,
        category_id=category_id,
        user_id=actor.user_id,
        title=payload["title"].strip(),
        description=optional_str(payload, "description"),
        amount=amount.quantize(_CENT),
        status="PENDING",
        expense_date=parse_date(payload.get("expense_date"), "expense_date"),
    )
    db.session.add(expense)
    db.session.commit()
    logger.info(
        "Expense %s (%s) recorded on budget %s", expense.id, expense.amount, budget.id,
        extra={"user_id": actor.user_id, "budget_id": budget.id, "expense_id": expense.id},
    )
    return expense


def update_expense_status(expense_id, new_status, actor, feedback=None):
    """
    Approve, reject or reopen an expense and return it with fresh figures.

    Feedback is appended to the description as ``[STATUS comment: ...]``.
    Approving past the category allocation is refused. The founder is
    notified when the status actually changes.

    Returns:
        {"expense": {...}, "budget": {...figures}}
    """
    if actor.role not in EXPENSE_APPROVER_ROLES:
        raise ForbiddenError("You cannot change expense status")

    status = str(new_status or "").strip().upper()
    if status not in EXPENSE_STATUSES:
        raise ValidationError(
            f"Invalid expense status: {new_status!r}",
            details={"status": f"one of {sorted(EXPENSE_STATUSES)}"},
        )

    expense = db.session.get(Expense, expense_id)
    if expense is None:
        raise NotFoundError("Expense", expense_id)

    previous = expense.status
    category = expense.category
    if status == "APPROVED" and previous != "APPROVED" and category is not None:
        already = sum(
            (_dec(e.amount) for e in category.expenses if e.status == "APPROVED" and e.id != expense.id),
            _ZERO,
        )
        if already + _dec(expense.amount) > _dec(category.allocated_amount):
            raise ValidationError(
                f"Approving this expense would exceed the {category.name} allocation",
                details={
                    "category_id": category.id,
                    "allocated_amount": money(category.allocated_amount),
                    "approved_amount": money(already),
                },
            )

    if feedback and str(feedback).strip():
        note = f"[{status} comment: {str(feedback).strip()}]"
        expense.description = f"{expense.description}\n\n{note}" if expense.description else note

    expense.status = status
    expense.updated_at = utcnow()
    db.session.flush()

    budget = expense.budget
    if previous != status:
        founder_id = resolve_budget_founder(budget)
        if founder_id is not None:
            NotificationService.emit_safely(
                user_id=founder_id,
                title=f"Expense {status.lower()}",
                message=f'Your expense "{expense.title}" ({money(expense.amount)} {budget.currency}) '
                        f"is now {status}.",
                type="EXPENSE_STATUS",
                link=f"/budgets/{budget.id}",
            )
        else:
            logger.info("No founder resolved for budget %s; expense notification skipped", budget.id,
                        extra={"budget_id": budget.id, "expense_id": expense.id})

    figures = compute_budget_figures(budget)
    db.session.commit()
    logger.info(
        "Expense %s: %s -> %s", expense.id, previous, status,
        extra={"user_id": actor.user_id, "budget_id": budget.id, "expense_id": expense.id},
    )
    return {"expense": expense.to_dict(), "budget": figures}
