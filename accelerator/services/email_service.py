"""
Startup Accelerator Platform
Email Service.

Best-effort email delivery for workflow notifications.
When SMTP is not configured, emails are logged but not sent (dev/test mode).

Uses:
    - MAIL_* config (MAIL_SERVER, MAIL_PORT, etc.)
    - Falls back to logging-only mode when SMTP is not configured
    - All emails are recorded in EmailLog for audit

Configuration (env vars):
    MAIL_SERVER     SMTP host (default: None → log-only mode)
    MAIL_PORT       SMTP port (default: 587)
    MAIL_USE_TLS    Use TLS (default: true)
    MAIL_USERNAME   SMTP username
    MAIL_PASSWORD   SMTP password
    MAIL_DEFAULT_SENDER  Default from address
    APP_BASE_URL    Prefix for links embedded in emails
"""

from __future__ import annotations

import html
import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from flask import current_app

from accelerator.models import db
from accelerator.models.notification import EmailLog

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Email Templates
# ═══════════════════════════════════════════════════════════════════════════

_TEMPLATES: dict[str, dict[str, str]] = {
    "notification_alert": {
        "subject": "[Accelerator] {title}",
        "html": """
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <div style="background: #0f172a; color: white; padding: 16px 24px; border-radius: 8px 8px 0 0;">
                <h2 style="margin: 0; font-size: 18px;">Startup Accelerator</h2>
            </div>
            <div style="background: #f8fafc; padding: 24px; border: 1px solid #e2e8f0; border-top: none;">
                <p style="color: #334155;">Hello {name},</p>
                <h3 style="margin: 16px 0 8px; color: #0f172a;">{title}</h3>
                <p style="color: #64748b; line-height: 1.6;">{message}</p>
                {link_html}
            </div>
        </div>
        """,
    },
}


class EmailService:
    """
    Email sending service with template support.

    In development/test mode (no MAIL_SERVER configured), emails are
    logged to the database but not actually sent via SMTP.
    """

    @staticmethod
    def is_configured() -> bool:
        """Check if SMTP is configured."""
        return bool(current_app.config.get("MAIL_SERVER"))

    @classmethod
    def send(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        subject: str,
        html_body: str,
        template_name: str | None = None,
        notification_id: int | None = None,
    ) -> EmailLog:
        """
        Send an email and log it.

        SMTP failures are recorded on the EmailLog row and logged; they are
        never raised or retried.

        Returns:
            The EmailLog record for this email.
        """
        log = EmailLog(
            recipient_email=to_email,
            recipient_name=to_name,
            subject=subject,
            template_name=template_name,
            status="queued",
            notification_id=notification_id,
        )
        db.session.add(log)
        db.session.flush()

        if not cls.is_configured():
            log.status = "sent"
            log.sent_at = datetime.now(timezone.utc)
            logger.info(
                "Email (dev mode): to=%s subject='%s' template=%s",
                to_email, subject, template_name,
            )
            return log

        try:
            cls._send_smtp(to_email=to_email, to_name=to_name,
                           subject=subject, html_body=html_body)
            log.status = "sent"
            log.sent_at = datetime.now(timezone.utc)
            logger.info("Email sent: to=%s subject='%s'", to_email, subject)
        except (smtplib.SMTPException, OSError) as exc:
            log.status = "failed"
            log.error_message = str(exc)[:1000]
            logger.error("Email failed: to=%s error=%s", to_email, exc)

        return log

    @classmethod
    def send_notification_email(cls, *, user, notification) -> EmailLog | None:
        """Mirror an in-app notification to the recipient's inbox."""
        if not user.email:
            return None

        link_html = ""
        if notification.link:
            base = current_app.config.get("APP_BASE_URL", "").rstrip("/")
            href = html.escape(f"{base}{notification.link}")
            link_html = f'<p><a href="{href}">Open in the platform</a></p>'

        context: dict[str, Any] = {
            "name": html.escape(user.name or user.email),
            "title": html.escape(notification.title),
            "message": html.escape(notification.message or ""),
            "link_html": link_html,
        }
        template = _TEMPLATES["notification_alert"]
        return cls.send(
            to_email=user.email,
            to_name=user.name,
            subject=template["subject"].format_map(_SafeDict(title=notification.title)),
            html_body=template["html"].format_map(_SafeDict(context)),
            template_name="notification_alert",
            notification_id=notification.id,
        )

    @staticmethod
    def _send_smtp(*, to_email: str, to_name: str | None,
                   subject: str, html_body: str) -> None:
        """Actually send via SMTP."""
        cfg = current_app.config
        server = cfg.get("MAIL_SERVER")
        port = cfg.get("MAIL_PORT", 587)
        use_tls = cfg.get("MAIL_USE_TLS", True)
        username = cfg.get("MAIL_USERNAME")
        password = cfg.get("MAIL_PASSWORD")
        sender = cfg.get("MAIL_DEFAULT_SENDER", f"noreply@{server}")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = f"{to_name} <{to_email}>" if to_name else to_email
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(server, port, timeout=30) as smtp:
            if use_tls:
                smtp.starttls()
            if username and password:
                smtp.login(username, password)
            smtp.send_message(msg)


class _SafeDict(dict):
    """Dict that returns {key} for missing keys instead of raising."""

    def __missing__(self, key):
        return f"{{{key}}}"
