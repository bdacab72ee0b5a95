"""
Startup Accelerator Platform
Application workflow service.

Owns the startup-call application lifecycle:

    SUBMITTED          -> UNDER_REVIEW, REJECTED, MORE_INFO_REQUIRED
    UNDER_REVIEW       -> APPROVED, REJECTED, MORE_INFO_REQUIRED
    MORE_INFO_REQUIRED -> UNDER_REVIEW, REJECTED
    APPROVED, REJECTED, WITHDRAWN are terminal

``TRANSITIONS`` is the only status policy; admin status changes and the
entrepreneur's withdrawal both go through it. Entering APPROVED provisions
the call budget. Owner notifications are a side channel (see
NotificationService.emit_safely).
"""

import logging

from sqlalchemy import select

from accelerator.core.exceptions import (
    DuplicateError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from accelerator.models import db, utcnow
from accelerator.models.review import ReviewAssignment
from accelerator.models.startup_call import (
    APPLICATION_STATUSES,
    CALL_STATUSES,
    Application,
    Startup,
    StartupCall,
)
from accelerator.models.user import ROLE_ENTREPRENEUR
from accelerator.services.notification import NotificationService
from accelerator.utils.helpers import ensure_aware, optional_str, parse_datetime, require_str

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

TRANSITIONS = {
    "SUBMITTED": ("UNDER_REVIEW", "REJECTED", "MORE_INFO_REQUIRED"),
    "UNDER_REVIEW": ("APPROVED", "REJECTED", "MORE_INFO_REQUIRED"),
    "MORE_INFO_REQUIRED": ("UNDER_REVIEW", "REJECTED"),
    "APPROVED": (),
    "REJECTED": (),
    "WITHDRAWN": (),
}

# The entrepreneur may pull an application out while it is still undecided
WITHDRAWABLE_STATUSES = frozenset({"SUBMITTED", "UNDER_REVIEW", "MORE_INFO_REQUIRED"})

STATUS_MESSAGES = {
    "UNDER_REVIEW": "Your application for {call} is now under review.",
    "APPROVED": "Congratulations! Your application for {call} has been approved.",
    "REJECTED": "We regret to inform you that your application for {call} was not selected.",
    "MORE_INFO_REQUIRED": "Reviewers need more information about your application for {call}.",
    "SUBMITTED": "Your application for {call} has been returned to submitted.",
}

_APPLICATION_FIELDS = (
    "startup_name", "industry", "stage", "description",
    "problem", "solution", "target_market",
)


def allowed_transitions(status):
    return list(TRANSITIONS.get(status, ()))


def _get_application(application_id):
    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFoundError("Application", application_id)
    return application


def _get_call(call_id):
    call = db.session.get(StartupCall, call_id)
    if call is None:
        raise NotFoundError("StartupCall", call_id)
    return call


def _is_assigned_reviewer(application_id, user_id):
    return db.session.execute(
        select(ReviewAssignment.id).where(
            ReviewAssignment.application_id == application_id,
            ReviewAssignment.reviewer_id == user_id,
        )
    ).first() is not None


# ═════════════════════════════════════════════════════════════════════════════
# Startup calls
# ═════════════════════════════════════════════════════════════════════════════

def create_startup_call(payload, actor):
    require_str(payload, "title")
    status = str(payload.get("status") or "OPEN").upper()
    if status not in CALL_STATUSES:
        raise ValidationError(f"Invalid call status: {status}",
                              details={"status": f"one of {sorted(CALL_STATUSES)}"})

    call = StartupCall(
        title=payload["title"].strip(),
        description=optional_str(payload, "description"),
        status=status,
        application_deadline=parse_datetime(payload.get("application_deadline"), "application_deadline"),
        created_by=actor.user_id,
    )
    db.session.add(call)
    db.session.commit()
    logger.info("Startup call %s created", call.id, extra={"user_id": actor.user_id})
    return call


def list_startup_calls(actor):
    """Admins see every call; everyone else only OPEN calls."""
    stmt = select(StartupCall).order_by(StartupCall.created_at.desc(), StartupCall.id.desc())
    if not actor.is_admin:
        stmt = stmt.where(StartupCall.status == "OPEN")
    return db.session.execute(stmt).scalars().all()


def get_startup_call(call_id, actor):
    call = _get_call(call_id)
    if not actor.is_admin and call.status != "OPEN":
        raise NotFoundError("StartupCall", call_id)
    return call


# ═════════════════════════════════════════════════════════════════════════════
# Applications
# ═════════════════════════════════════════════════════════════════════════════

def submit_application(call_id, actor, payload):
    """
    Entrepreneur applies to an OPEN call before its deadline.

    One application per (entrepreneur, call). When no ``startup_id`` is
    given a Startup owned by the applicant is created from ``startup_name``.
    """
    if actor.role != ROLE_ENTREPRENEUR:
        raise ForbiddenError("Only entrepreneurs can apply to startup calls")

    call = _get_call(call_id)
    if call.status != "OPEN":
        raise ValidationError("This startup call is not accepting applications",
                              details={"call_status": call.status})
    deadline = ensure_aware(call.application_deadline)
    if deadline is not None and deadline < utcnow():
        raise ValidationError("The application deadline has passed",
                              details={"application_deadline": deadline.isoformat()})

    require_str(payload, "startup_name")
    texts = {f: optional_str(payload, f) for f in _APPLICATION_FIELDS}

    existing = db.session.execute(
        select(Application.id).where(Application.call_id == call.id, Application.user_id == actor.user_id)
    ).first()
    if existing is not None:
        raise DuplicateError("Application", "call_id", call.id)

    startup_id = payload.get("startup_id")
    if startup_id is not None:
        if not isinstance(startup_id, int) or isinstance(startup_id, bool):
            raise ValidationError("startup_id must be an integer", details={"startup_id": "invalid id"})
        startup = db.session.get(Startup, startup_id)
        if startup is None:
            raise NotFoundError("Startup", startup_id)
        if startup.founder_id != actor.user_id:
            raise ForbiddenError("You can only apply with your own startup")
    else:
        startup = Startup(
            name=payload["startup_name"].strip(),
            description=texts["description"],
            founder_id=actor.user_id,
        )
        db.session.add(startup)
        db.session.flush()

    application = Application(
        user_id=actor.user_id,
        call_id=call.id,
        startup_id=startup.id,
        status="SUBMITTED",
        reviews_completed=0,
        reviews_total=0,
        **texts,
    )
    application.startup_name = payload["startup_name"].strip()
    db.session.add(application)
    db.session.flush()

    NotificationService.notify_admins_safely(
        title="New application submitted",
        message=f"{application.startup_name} applied to {call.title}.",
        type="APPLICATION_SUBMITTED",
        link=f"/applications/{application.id}",
    )
    db.session.commit()
    logger.info(
        "Application %s submitted to call %s", application.id, call.id,
        extra={"user_id": actor.user_id, "application_id": application.id},
    )
    return application


def get_application(application_id, actor):
    """Admin, owner, or an assigned reviewer; anybody else gets 403."""
    application = _get_application(application_id)
    if actor.is_admin or application.user_id == actor.user_id:
        return application
    if _is_assigned_reviewer(application.id, actor.user_id):
        return application
    raise ForbiddenError("You do not have access to this application")


def list_my_applications(actor):
    return db.session.execute(
        select(Application)
        .where(Application.user_id == actor.user_id)
        .order_by(Application.submitted_at.desc(), Application.id.desc())
    ).scalars().all()


def list_call_applications(call_id, status=None):
    _get_call(call_id)
    stmt = select(Application).where(Application.call_id == call_id).order_by(Application.id)
    if status:
        stmt = stmt.where(Application.status == status.upper())
    return db.session.execute(stmt).scalars().all()


def transition_application(application_id, target_status, actor):
    """
    Move an application to ``target_status`` (admin only).

    Raises:
        ForbiddenError: caller is not an admin.
        ValidationError: unknown target status.
        NotFoundError: no such application.
        InvalidTransitionError: the pair is not in TRANSITIONS.

    Requesting the current status is a successful no-op: nothing is
    written, notified or provisioned.
    """
    if not actor.is_admin:
        raise ForbiddenError("Only admins can change application status")

    target = str(target_status or "").strip().upper()
    if target not in APPLICATION_STATUSES:
        raise ValidationError(
            f"Invalid application status: {target_status!r}",
            details={"status": f"one of {sorted(APPLICATION_STATUSES)}"},
        )

    application = _get_application(application_id)
    current = application.status
    if current == target:
        return application

    allowed = allowed_transitions(current)
    if target not in allowed:
        raise InvalidTransitionError(current, target, allowed)

    application.status = target
    application.updated_at = utcnow()
    db.session.flush()

    if target == "APPROVED":
        from accelerator.services.budget_service import auto_provision_budget

        auto_provision_budget(application.call_id, application)

    call_title = application.call.title if application.call else "the startup call"
    NotificationService.emit_safely(
        user_id=application.user_id,
        title=f"Application {target.replace('_', ' ').lower()}",
        message=STATUS_MESSAGES.get(target, "").format(call=call_title),
        type="APPLICATION_STATUS",
        link=f"/applications/{application.id}",
        send_email=True,
    )
    db.session.commit()
    logger.info(
        "Application %s: %s -> %s", application.id, current, target,
        extra={"user_id": actor.user_id, "application_id": application.id},
    )
    return application


def withdraw_application(application_id, actor):
    """Owner pulls an undecided application; WITHDRAWN is terminal."""
    application = _get_application(application_id)
    if application.user_id != actor.user_id:
        raise ForbiddenError("Only the applicant can withdraw an application")
    if application.status not in WITHDRAWABLE_STATUSES:
        raise InvalidTransitionError(application.status, "WITHDRAWN", [])

    previous = application.status
    application.status = "WITHDRAWN"
    application.updated_at = utcnow()
    db.session.flush()

    NotificationService.notify_admins_safely(
        title="Application withdrawn",
        message=f"{application.startup_name} withdrew its application.",
        type="APPLICATION_STATUS",
        link=f"/applications/{application.id}",
    )
    db.session.commit()
    logger.info(
        "Application %s withdrawn (was %s)", application.id, previous,
        extra={"user_id": actor.user_id, "application_id": application.id},
    )
    return application
