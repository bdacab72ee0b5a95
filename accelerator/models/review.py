"""
Startup Accelerator Platform
Review assignment model.

One row per (reviewer, application) obligation. The row doubles as the
review itself once the reviewer submits scores.
"""

from accelerator.models import db, iso, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

# Assignments still waiting on the reviewer
OPEN_REVIEW_STATUSES = frozenset({"PENDING", "IN_PROGRESS", "OVERDUE"})
TERMINAL_REVIEW_STATUSES = frozenset({"COMPLETED", "REJECTED", "WITHDRAWN"})

SUB_SCORE_FIELDS = ("innovation_score", "market_score", "team_score", "execution_score")


class ReviewAssignment(db.Model):
    __tablename__ = "review_assignments"

    id = db.Column(db.Integer, primary_key=True)
    application_id = db.Column(
        db.Integer, db.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    reviewer_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    status = db.Column(db.String(20), nullable=False, default="PENDING")
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # Scores are 0-100; `score` is derived from the four sub-scores
    score = db.Column(db.Integer, nullable=True)
    innovation_score = db.Column(db.Float, nullable=True)
    market_score = db.Column(db.Float, nullable=True)
    team_score = db.Column(db.Float, nullable=True)
    execution_score = db.Column(db.Float, nullable=True)
    feedback = db.Column(db.Text, nullable=True)

    assigned_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    application = db.relationship("Application", back_populates="review_assignments")
    reviewer = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("application_id", "reviewer_id", name="uq_review_application_reviewer"),
    )

    def to_dict(self, include_reviewer=True):
        d = {
            "id": self.id,
            "application_id": self.application_id,
            "status": self.status,
            "due_date": iso(self.due_date),
            "score": self.score,
            "innovation_score": self.innovation_score,
            "market_score": self.market_score,
            "team_score": self.team_score,
            "execution_score": self.execution_score,
            "feedback": self.feedback,
            "assigned_at": iso(self.assigned_at),
            "completed_at": iso(self.completed_at),
        }
        if include_reviewer:
            d["reviewer_id"] = self.reviewer_id
            d["reviewer"] = self.reviewer.to_public_dict() if self.reviewer else None
        return d

    def __repr__(self):
        return f"<ReviewAssignment {self.id}: app={self.application_id} reviewer={self.reviewer_id} [{self.status}]>"
