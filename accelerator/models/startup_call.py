"""
Startup Accelerator Platform
Startup call domain models.

Models:
    - StartupCall: a funding round entrepreneurs apply to
    - Startup: the venture behind an application, owned by its founder
    - Application: one entrepreneur's submission to one call
"""

from accelerator.models import db, iso, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

CALL_STATUSES = frozenset({"DRAFT", "OPEN", "CLOSED"})

APPLICATION_STATUSES = frozenset({
    "SUBMITTED",
    "UNDER_REVIEW",
    "APPROVED",
    "REJECTED",
    "WITHDRAWN",
    "MORE_INFO_REQUIRED",
})

# Statuses after which the review outcome is final
DECIDED_STATUSES = frozenset({"APPROVED", "REJECTED"})


class StartupCall(db.Model):
    __tablename__ = "startup_calls"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    status = db.Column(db.String(20), nullable=False, default="OPEN")
    application_deadline = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    applications = db.relationship("Application", back_populates="call", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "application_deadline": iso(self.application_deadline),
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<StartupCall {self.id}: {self.title[:40]}>"


class Startup(db.Model):
    __tablename__ = "startups"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    founder_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    founder = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "founder_id": self.founder_id,
            "created_at": iso(self.created_at),
        }


class Application(db.Model):
    """
    A startup-call application.

    Invariant: reviews_completed <= reviews_total. Both counters are only
    ever changed through single UPDATE statements in review_service.
    """

    __tablename__ = "applications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    call_id = db.Column(
        db.Integer, db.ForeignKey("startup_calls.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    startup_id = db.Column(
        db.Integer, db.ForeignKey("startups.id", ondelete="SET NULL"), nullable=True,
    )

    startup_name = db.Column(db.String(200), nullable=False)
    industry = db.Column(db.String(100), default="")
    stage = db.Column(db.String(50), default="")
    description = db.Column(db.Text, default="")
    problem = db.Column(db.Text, default="")
    solution = db.Column(db.Text, default="")
    target_market = db.Column(db.Text, default="")

    status = db.Column(db.String(30), nullable=False, default="SUBMITTED")
    reviews_completed = db.Column(db.Integer, nullable=False, default=0)
    reviews_total = db.Column(db.Integer, nullable=False, default=0)

    submitted_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    call = db.relationship("StartupCall", back_populates="applications")
    startup = db.relationship("Startup")
    owner = db.relationship("User")
    review_assignments = db.relationship(
        "ReviewAssignment", back_populates="application", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.CheckConstraint("reviews_completed <= reviews_total", name="ck_applications_review_counts"),
        db.UniqueConstraint("user_id", "call_id", name="uq_application_user_call"),
        db.Index("ix_applications_call_status", "call_id", "status"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "call_id": self.call_id,
            "startup_id": self.startup_id,
            "startup_name": self.startup_name,
            "industry": self.industry,
            "stage": self.stage,
            "description": self.description,
            "problem": self.problem,
            "solution": self.solution,
            "target_market": self.target_market,
            "status": self.status,
            "reviews_completed": self.reviews_completed,
            "reviews_total": self.reviews_total,
            "submitted_at": iso(self.submitted_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Application {self.id}: {self.startup_name[:40]} [{self.status}]>"
