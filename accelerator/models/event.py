"""
Startup Accelerator Platform
Event & advertisement models.

Models:
    - Event: an admin-published programme event (demo day, workshop, ...)
    - Advertisement: an admin-scheduled announcement shown on the public feed
"""

from accelerator.models import db, iso, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

ADVERTISEMENT_STATUSES = frozenset({"DRAFT", "PUBLISHED", "ARCHIVED"})


class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    start_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False)
    location = db.Column(db.String(300), default="")
    event_url = db.Column(db.String(500), nullable=True)
    # Public events are listed without a session
    is_public = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "location": self.location,
            "event_url": self.event_url,
            "is_public": self.is_public,
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<Event {self.id}: {self.title[:40]}>"


class Advertisement(db.Model):
    __tablename__ = "advertisements"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    content = db.Column(db.Text, nullable=False)
    image_url = db.Column(db.String(500), nullable=True)
    # Channels the announcement is meant for, e.g. ["website", "newsletter"]
    platforms = db.Column(db.JSON, nullable=False, default=list)
    scheduled_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="DRAFT")
    published_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "image_url": self.image_url,
            "platforms": list(self.platforms or []),
            "scheduled_date": iso(self.scheduled_date),
            "status": self.status,
            "published_at": iso(self.published_at),
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
        }
