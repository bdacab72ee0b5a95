"""
Startup Accelerator Platform
User model.

Accounts are created by the external identity provider; this table mirrors
them so that roles can be resolved per request and notifications addressed.
"""

from accelerator.models import db, iso, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

ROLE_ADMIN = "ADMIN"
ROLE_ENTREPRENEUR = "ENTREPRENEUR"
ROLE_REVIEWER = "REVIEWER"
ROLE_SPONSOR = "SPONSOR"

ROLES = frozenset({ROLE_ADMIN, ROLE_ENTREPRENEUR, ROLE_REVIEWER, ROLE_SPONSOR})


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), unique=True, nullable=False)
    name = db.Column(db.String(200))
    role = db.Column(db.String(20), nullable=False, default=ROLE_ENTREPRENEUR,
                     comment="ADMIN | ENTREPRENEUR | REVIEWER | SPONSOR")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index("ix_users_role", "role"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": iso(self.created_at),
        }

    def to_public_dict(self):
        """Identity fields safe to show next to a review."""
        return {"id": self.id, "name": self.name}

    def __repr__(self):
        return f"<User {self.id}: {self.email} ({self.role})>"
