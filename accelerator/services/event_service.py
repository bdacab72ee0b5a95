"""
Startup Accelerator Platform
Event & advertisement service.

Admins publish programme events and schedule advertisements. Any signed-in
user can browse both; the public feed shows upcoming public events and
advertisements that are PUBLISHED and already due.
"""

import logging
from datetime import datetime, time, timezone

from sqlalchemy import select

from accelerator.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from accelerator.models import db, utcnow
from accelerator.models.event import ADVERTISEMENT_STATUSES, Advertisement, Event
from accelerator.utils.helpers import ensure_aware, optional_str, parse_datetime, require_fields, require_str

logger = logging.getLogger(__name__)

_EVENT_TEXT_FIELDS = ("description", "location", "event_url")


def _require_admin(actor, what):
    if not actor.is_admin:
        raise ForbiddenError(f"Only admins can manage {what}")


def _get_event(event_id):
    event = db.session.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event", event_id)
    return event


def _get_advertisement(advertisement_id):
    ad = db.session.get(Advertisement, advertisement_id)
    if ad is None:
        raise NotFoundError("Advertisement", advertisement_id)
    return ad


def _is_public_flag(payload):
    value = payload.get("is_public", True)
    if not isinstance(value, bool):
        raise ValidationError("is_public must be a boolean", details={"is_public": "must be true or false"})
    return value


def _event_text(payload, field):
    value = optional_str(payload, field)
    # A blank link is stored as no link
    if field == "event_url":
        return value.strip() or None
    return value


def _check_window(start, end):
    if ensure_aware(end) < ensure_aware(start):
        raise ValidationError("end_date cannot be before start_date",
                              details={"end_date": "before start_date"})


# ── Events ───────────────────────────────────────────────────────────────────

def create_event(payload, actor):
    _require_admin(actor, "events")
    require_str(payload, "title")
    require_fields(payload, "start_date", "end_date")
    start = parse_datetime(payload["start_date"], "start_date")
    end = parse_datetime(payload["end_date"], "end_date")
    _check_window(start, end)

    event = Event(
        title=payload["title"].strip(),
        start_date=start,
        end_date=end,
        is_public=_is_public_flag(payload),
        created_by=actor.user_id,
        **{f: _event_text(payload, f) for f in _EVENT_TEXT_FIELDS},
    )
    db.session.add(event)
    db.session.commit()
    logger.info("Event %s created", event.id, extra={"event_id": event.id})
    return event


def list_events(date_from=None, date_to=None):
    """All events ordered by start; ``date_from`` / ``date_to`` bound the start date."""
    stmt = select(Event).order_by(Event.start_date.asc(), Event.id.asc())
    lower = parse_datetime(date_from, "from")
    upper = parse_datetime(date_to, "to")
    if lower is not None:
        stmt = stmt.where(Event.start_date >= lower)
    if upper is not None:
        stmt = stmt.where(Event.start_date <= upper)
    return db.session.execute(stmt).scalars().all()


def get_event(event_id):
    return _get_event(event_id)


def update_event(event_id, payload, actor):
    """
    Partial update; the resulting window must still end after it starts.

    Every field is validated before the row is touched.
    """
    _require_admin(actor, "events")
    event = _get_event(event_id)

    changes = {}
    if "title" in payload:
        require_str(payload, "title")
        changes["title"] = payload["title"].strip()
    for field in _EVENT_TEXT_FIELDS:
        if field in payload:
            changes[field] = _event_text(payload, field)
    for field in ("start_date", "end_date"):
        if field in payload:
            require_fields(payload, field)
            changes[field] = parse_datetime(payload[field], field)
    if "is_public" in payload:
        changes["is_public"] = _is_public_flag(payload)
    _check_window(changes.get("start_date", event.start_date), changes.get("end_date", event.end_date))

    for field, value in changes.items():
        setattr(event, field, value)
    db.session.commit()
    logger.info("Event %s updated", event.id, extra={"event_id": event.id})
    return event


def delete_event(event_id, actor):
    _require_admin(actor, "events")
    event = _get_event(event_id)
    db.session.delete(event)
    db.session.commit()
    logger.info("Event %s deleted", event_id, extra={"event_id": event_id})


def list_public_events():
    """Public events starting today (UTC) or later, soonest first."""
    today = datetime.combine(utcnow().date(), time.min, tzinfo=timezone.utc)
    return db.session.execute(
        select(Event)
        .where(Event.is_public.is_(True), Event.start_date >= today)
        .order_by(Event.start_date.asc(), Event.id.asc())
    ).scalars().all()


# ── Advertisements ───────────────────────────────────────────────────────────

def _platforms(payload):
    value = payload.get("platforms") or []
    if not isinstance(value, list) or not all(isinstance(p, str) and p.strip() for p in value):
        raise ValidationError("platforms must be a list of names", details={"platforms": "list of strings"})
    return [p.strip().lower() for p in value]


def create_advertisement(payload, actor):
    _require_admin(actor, "advertisements")
    require_str(payload, "title", "content")
    require_fields(payload, "scheduled_date")

    ad = Advertisement(
        title=payload["title"].strip(),
        content=payload["content"],
        image_url=optional_str(payload, "image_url") or None,
        platforms=_platforms(payload),
        scheduled_date=parse_datetime(payload["scheduled_date"], "scheduled_date"),
        status="DRAFT",
        created_by=actor.user_id,
    )
    db.session.add(ad)
    db.session.commit()
    logger.info("Advertisement %s scheduled for %s", ad.id, ad.scheduled_date.isoformat(),
                extra={"advertisement_id": ad.id})
    return ad


def list_advertisements():
    return db.session.execute(
        select(Advertisement).order_by(Advertisement.scheduled_date.desc(), Advertisement.id.desc())
    ).scalars().all()


def set_advertisement_status(advertisement_id, new_status, actor):
    """
    Move an advertisement between DRAFT and PUBLISHED, or retire it.

    ARCHIVED is final. ``published_at`` records the latest publication.
    """
    _require_admin(actor, "advertisements")
    status = str(new_status or "").strip().upper()
    if status not in ADVERTISEMENT_STATUSES:
        raise ValidationError(f"Invalid advertisement status: {new_status!r}",
                              details={"status": f"one of {sorted(ADVERTISEMENT_STATUSES)}"})

    ad = _get_advertisement(advertisement_id)
    if ad.status == "ARCHIVED" and status != "ARCHIVED":
        raise ConflictError("Advertisement is archived", details={"status": ad.status})

    previous = ad.status
    if previous != status:
        ad.status = status
        if status == "PUBLISHED":
            ad.published_at = utcnow()
    db.session.commit()
    logger.info("Advertisement %s: %s -> %s", ad.id, previous, status, extra={"advertisement_id": ad.id})
    return ad


def delete_advertisement(advertisement_id, actor):
    _require_admin(actor, "advertisements")
    ad = _get_advertisement(advertisement_id)
    db.session.delete(ad)
    db.session.commit()
    logger.info("Advertisement %s deleted", advertisement_id, extra={"advertisement_id": advertisement_id})


def list_public_advertisements():
    """PUBLISHED advertisements whose scheduled date has arrived, newest first."""
    return db.session.execute(
        select(Advertisement)
        .where(Advertisement.status == "PUBLISHED", Advertisement.scheduled_date <= utcnow())
        .order_by(Advertisement.scheduled_date.desc(), Advertisement.id.desc())
    ).scalars().all()
