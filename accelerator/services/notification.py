"""
Startup Accelerator Platform
Notification Service.

Central service for creating, broadcasting and querying in-app
notifications. Workflow services call ``emit_safely`` / ``notify_admins_safely``
after their primary write: each emission runs inside a SAVEPOINT, and a
failure is logged and rolled back to the savepoint so the caller's
transaction still commits.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update

from accelerator.models import db
from accelerator.models.notification import NOTIFICATION_TYPES, Notification
from accelerator.models.user import ROLE_ADMIN, User

logger = logging.getLogger(__name__)


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def emit(*, user_id, title, message="", type="INFO", link=None):
        """
        Append one notification row for ``user_id``.

        Flushes but does not commit; the caller owns the transaction.
        Raises ValueError for a type outside NOTIFICATION_TYPES.
        """
        if type not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type: {type!r}")
        notif = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            link=link,
        )
        db.session.add(notif)
        db.session.flush()
        logger.info(
            "Notification %s emitted to user %s", type, user_id,
            extra={"user_id": user_id, "event_type": type},
        )
        return notif

    @staticmethod
    def admin_ids():
        return db.session.execute(
            select(User.id).where(User.role == ROLE_ADMIN, User.is_active.is_(True))
        ).scalars().all()

    @staticmethod
    def notify_admins(*, title, message="", type="INFO", link=None):
        """One notification per active admin. Returns the created rows."""
        return [
            NotificationService.emit(user_id=uid, title=title, message=message, type=type, link=link)
            for uid in NotificationService.admin_ids()
        ]

    # ── Side-channel wrappers ─────────────────────────────────────────────

    @staticmethod
    def emit_safely(*, user_id, title, message="", type="INFO", link=None, send_email=False):
        """
        Emit inside a SAVEPOINT; never raises.

        With ``send_email`` the notification is also mirrored through
        EmailService (best-effort, recorded in EmailLog).

        Returns the Notification, or None when emission failed.
        """
        try:
            with db.session.begin_nested():
                notif = NotificationService.emit(
                    user_id=user_id, title=title, message=message, type=type, link=link,
                )
                if send_email:
                    from accelerator.services.email_service import EmailService

                    user = db.session.get(User, user_id)
                    if user is not None:
                        EmailService.send_notification_email(user=user, notification=notif)
            return notif
        except Exception:
            logger.exception(
                "Notification %s to user %s failed; continuing", type, user_id,
                extra={"user_id": user_id, "event_type": type},
            )
            return None

    @staticmethod
    def notify_admins_safely(*, title, message="", type="INFO", link=None):
        try:
            with db.session.begin_nested():
                return NotificationService.notify_admins(
                    title=title, message=message, type=type, link=link,
                )
        except Exception:
            logger.exception("Admin notification %s failed; continuing", type,
                             extra={"event_type": type})
            return []

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id, unread_only=False, limit=50, offset=0):
        """
        Retrieve notifications for a user, newest first.

        Returns:
            (items, total, unread_count)
        """
        q = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total, NotificationService.unread_count(user_id)

    @staticmethod
    def unread_count(user_id):
        """Return count of unread notifications."""
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(user_id, ids=None):
        """
        Mark the caller's notifications as read.

        ``ids`` limits the update to those notifications; rows that belong to
        another user are never touched. Without ``ids`` every unread row of
        the user is marked. Returns the number of rows updated.
        """
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        if ids is not None:
            stmt = stmt.where(Notification.id.in_(ids))
        count = db.session.execute(stmt, execution_options={"synchronize_session": False}).rowcount
        db.session.commit()
        logger.info("Marked %d notifications read", count, extra={"user_id": user_id})
        return count
