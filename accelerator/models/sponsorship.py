"""
Startup Accelerator Platform
Sponsorship domain models.

Models:
    - SponsorshipOpportunity: a sponsor-facing funding slot with an amount range
    - SponsorshipApplication: one sponsor's pledge against an opportunity
"""

from accelerator.models import db, iso, money, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

OPPORTUNITY_STATUSES = frozenset({"DRAFT", "OPEN", "CLOSED"})

# A sponsor may hold at most one pledge in these states per opportunity
ACTIVE_PLEDGE_STATUSES = frozenset({"PENDING", "ACCEPTED"})


class SponsorshipOpportunity(db.Model):
    __tablename__ = "sponsorship_opportunities"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    min_amount = db.Column(db.Numeric(14, 2), nullable=False)
    max_amount = db.Column(db.Numeric(14, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    deadline = db.Column(db.DateTime(timezone=True), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="OPEN")
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    applications = db.relationship(
        "SponsorshipApplication", back_populates="opportunity", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "min_amount": money(self.min_amount),
            "max_amount": money(self.max_amount),
            "currency": self.currency,
            "deadline": iso(self.deadline),
            "status": self.status,
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
        }


class SponsorshipApplication(db.Model):
    __tablename__ = "sponsorship_applications"

    id = db.Column(db.Integer, primary_key=True)
    opportunity_id = db.Column(
        db.Integer, db.ForeignKey("sponsorship_opportunities.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    sponsor_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    message = db.Column(db.Text, default="")
    status = db.Column(db.String(20), nullable=False, default="PENDING")
    reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    opportunity = db.relationship("SponsorshipOpportunity", back_populates="applications")

    def to_dict(self):
        return {
            "id": self.id,
            "opportunity_id": self.opportunity_id,
            "opportunity_title": self.opportunity.title if self.opportunity else None,
            "sponsor_id": self.sponsor_id,
            "amount": money(self.amount),
            "currency": self.currency,
            "message": self.message,
            "status": self.status,
            "reviewed_at": iso(self.reviewed_at),
            "created_at": iso(self.created_at),
        }
