"""
Startup Accelerator Platform
Budget domain models.

Models:
    - Budget: funding envelope for a startup call (optionally one startup)
    - BudgetCategory: named allocation inside a budget
    - Expense: a spend record against a budget

Spent / remaining figures are never stored; see budget_service.
"""

from accelerator.models import db, iso, money, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

BUDGET_STATUSES = frozenset({"DRAFT", "ACTIVE", "CLOSED"})
EXPENSE_STATUSES = frozenset({"PENDING", "APPROVED", "REJECTED"})


class Budget(db.Model):
    __tablename__ = "budgets"

    id = db.Column(db.Integer, primary_key=True)
    startup_call_id = db.Column(
        db.Integer, db.ForeignKey("startup_calls.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    startup_id = db.Column(
        db.Integer, db.ForeignKey("startups.id", ondelete="SET NULL"), nullable=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    total_amount = db.Column(db.Numeric(14, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    fiscal_year = db.Column(db.String(4))
    status = db.Column(db.String(20), nullable=False, default="DRAFT")
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    startup_call = db.relationship("StartupCall")
    startup = db.relationship("Startup")
    categories = db.relationship(
        "BudgetCategory", back_populates="budget", cascade="all, delete-orphan",
        order_by="BudgetCategory.id",
    )
    expenses = db.relationship(
        "Expense", back_populates="budget", cascade="all, delete-orphan",
        order_by="Expense.id",
    )

    def to_dict(self, include_categories=True):
        d = {
            "id": self.id,
            "startup_call_id": self.startup_call_id,
            "startup_id": self.startup_id,
            "title": self.title,
            "description": self.description,
            "total_amount": money(self.total_amount),
            "currency": self.currency,
            "fiscal_year": self.fiscal_year,
            "status": self.status,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "created_at": iso(self.created_at),
        }
        if include_categories:
            d["categories"] = [c.to_dict() for c in self.categories]
        return d

    def __repr__(self):
        return f"<Budget {self.id}: call={self.startup_call_id} total={self.total_amount}>"


class BudgetCategory(db.Model):
    __tablename__ = "budget_categories"

    id = db.Column(db.Integer, primary_key=True)
    budget_id = db.Column(
        db.Integer, db.ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, default="")
    allocated_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    budget = db.relationship("Budget", back_populates="categories")
    expenses = db.relationship("Expense", back_populates="category")

    def to_dict(self):
        return {
            "id": self.id,
            "budget_id": self.budget_id,
            "name": self.name,
            "description": self.description,
            "allocated_amount": money(self.allocated_amount),
        }


class Expense(db.Model):
    __tablename__ = "expenses"

    id = db.Column(db.Integer, primary_key=True)
    budget_id = db.Column(
        db.Integer, db.ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    category_id = db.Column(
        db.Integer, db.ForeignKey("budget_categories.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="PENDING")
    expense_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    budget = db.relationship("Budget", back_populates="expenses")
    category = db.relationship("BudgetCategory", back_populates="expenses")

    def to_dict(self):
        return {
            "id": self.id,
            "budget_id": self.budget_id,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "amount": money(self.amount),
            "status": self.status,
            "expense_date": iso(self.expense_date),
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<Expense {self.id}: {self.amount} [{self.status}]>"
