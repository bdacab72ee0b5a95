"""
Startup Accelerator Platform
Notification domain models.

Models:
    - Notification: in-app notification record with read tracking
    - EmailLog: audit row for every best-effort email attempt
"""

from accelerator.models import db, iso, utcnow


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_TYPES = {
    "APPLICATION_STATUS",
    "APPLICATION_SUBMITTED",
    "REVIEW_ASSIGNMENT",
    "REVIEW_SUBMISSION",
    "ALL_REVIEWS_COMPLETED",
    "EXPENSE_STATUS",
    "SPONSORSHIP_APPLICATION",
    "SPONSORSHIP_STATUS",
    "INFO",
}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event. Append-only apart from read tracking.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    type = db.Column(db.String(40), default="INFO")
    link = db.Column(db.String(500), nullable=True)

    # Read tracking
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "link": self.link,
            "is_read": self.is_read,
            "read_at": iso(self.read_at),
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"


class EmailLog(db.Model):
    __tablename__ = "email_logs"

    id = db.Column(db.Integer, primary_key=True)
    recipient_email = db.Column(db.String(200), nullable=False)
    recipient_name = db.Column(db.String(200), nullable=True)
    subject = db.Column(db.String(500), nullable=False)
    template_name = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="queued")
    error_message = db.Column(db.Text, nullable=True)
    notification_id = db.Column(
        db.Integer, db.ForeignKey("notifications.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "recipient_email": self.recipient_email,
            "recipient_name": self.recipient_name,
            "subject": self.subject,
            "template_name": self.template_name,
            "status": self.status,
            "error_message": self.error_message,
            "notification_id": self.notification_id,
            "created_at": iso(self.created_at),
            "sent_at": iso(self.sent_at),
        }
