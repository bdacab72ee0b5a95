"""
Startup Accelerator Platform
Review aggregation service.

Reviewer assignment, score submission, and the per-application counters
``reviews_total`` / ``reviews_completed``. Both counters are only changed
through single UPDATE statements so ``reviews_completed <= reviews_total``
holds under concurrent submissions.
"""

import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy import select, update

from accelerator.core.exceptions import (
    ConflictError,
    DuplicateError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from accelerator.models import db, utcnow
from accelerator.models.review import (
    OPEN_REVIEW_STATUSES,
    SUB_SCORE_FIELDS,
    TERMINAL_REVIEW_STATUSES,
    ReviewAssignment,
)
from accelerator.models.startup_call import DECIDED_STATUSES, Application
from accelerator.models.user import ROLE_REVIEWER, User
from accelerator.services.notification import NotificationService
from accelerator.utils.helpers import ensure_aware, parse_datetime

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

DEFAULT_REVIEW_DUE_DAYS = 7
SCORE_MIN, SCORE_MAX = 0, 100

# Assignments that can still go overdue
_DUE_TRACKED_STATUSES = frozenset({"PENDING", "IN_PROGRESS"})

# Application states in which no more reviewers can be assigned
_CLOSED_APPLICATION_STATUSES = frozenset({"APPROVED", "REJECTED", "WITHDRAWN"})

ANONYMOUS_REVIEWER = {"id": "anonymous"}

_NO_SYNC = {"synchronize_session": False}


def _get_application(application_id):
    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFoundError("Application", application_id)
    return application


def _assignment_for(application_id, reviewer_id):
    return db.session.execute(
        select(ReviewAssignment).where(
            ReviewAssignment.application_id == application_id,
            ReviewAssignment.reviewer_id == reviewer_id,
        )
    ).scalar_one_or_none()


def overall_score(scores):
    """Mean of the four sub-scores, rounded half-up to an integer."""
    total = sum(Decimal(str(scores[f])) for f in SUB_SCORE_FIELDS)
    return int((total / len(SUB_SCORE_FIELDS)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _validate_score(field, value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number", details={field: "must be a number"})
    if not SCORE_MIN <= value <= SCORE_MAX:
        raise ValidationError(
            f"{field} must be between {SCORE_MIN} and {SCORE_MAX}",
            details={field: f"out of range {SCORE_MIN}-{SCORE_MAX}"},
        )
    return value


def validate_review_payload(payload):
    """
    Check the four sub-scores, the optional overall score and feedback.

    Returns (sub_scores, feedback). A caller-supplied ``score`` is range
    checked but never stored; the stored score is always derived.
    """
    missing = [f for f in SUB_SCORE_FIELDS if payload.get(f) is None]
    if missing:
        raise ValidationError(
            f"Missing required score(s): {', '.join(missing)}",
            details={f: "required" for f in missing},
        )
    scores = {f: _validate_score(f, payload[f]) for f in SUB_SCORE_FIELDS}

    if payload.get("score") is not None:
        _validate_score("score", payload["score"])

    feedback = payload.get("feedback")
    if not isinstance(feedback, str) or not feedback.strip():
        raise ValidationError("feedback is required", details={"feedback": "required"})
    return scores, feedback.strip()


# ═════════════════════════════════════════════════════════════════════════════
# Assignment
# ═════════════════════════════════════════════════════════════════════════════

def assign_reviewer(application_id, reviewer_id, actor, due_date=None):
    """
    Assign ``reviewer_id`` to an application (admin only).

    Increments ``reviews_total`` and advances a SUBMITTED application to
    UNDER_REVIEW. The due date defaults to now + REVIEW_DUE_DAYS.
    """
    if not actor.is_admin:
        raise ForbiddenError("Only admins can assign reviewers")

    application = _get_application(application_id)
    if application.status in _CLOSED_APPLICATION_STATUSES:
        raise ConflictError(
            f"Cannot assign reviewers to a {application.status} application",
            details={"status": application.status},
        )

    if reviewer_id is None:
        raise ValidationError("reviewer_id is required", details={"reviewer_id": "required"})
    reviewer = db.session.get(User, reviewer_id)
    if reviewer is None:
        raise NotFoundError("User", reviewer_id)
    if (reviewer.role or "").upper() != ROLE_REVIEWER:
        raise ValidationError("User is not a reviewer", details={"reviewer_id": "must have role REVIEWER"})

    if _assignment_for(application.id, reviewer.id) is not None:
        raise DuplicateError("ReviewAssignment", "reviewer_id", reviewer.id)

    due = parse_datetime(due_date, "due_date")
    if due is None:
        days = current_app.config.get("REVIEW_DUE_DAYS", DEFAULT_REVIEW_DUE_DAYS)
        due = utcnow() + timedelta(days=days)

    assignment = ReviewAssignment(
        application_id=application.id,
        reviewer_id=reviewer.id,
        status="PENDING",
        due_date=due,
        assigned_at=utcnow(),
    )
    db.session.add(assignment)
    previous_status = application.status
    if previous_status == "SUBMITTED":
        application.status = "UNDER_REVIEW"
    db.session.flush()

    db.session.execute(
        update(Application)
        .where(Application.id == application.id)
        .values(reviews_total=Application.reviews_total + 1),
        execution_options=_NO_SYNC,
    )
    db.session.refresh(application)

    NotificationService.emit_safely(
        user_id=reviewer.id,
        title="New review assignment",
        message=f"You have been assigned to review {application.startup_name}. "
                f"Due {ensure_aware(due).date().isoformat()}.",
        type="REVIEW_ASSIGNMENT",
        link="/reviewer/assignments",
        send_email=True,
    )
    if previous_status != application.status:
        NotificationService.emit_safely(
            user_id=application.user_id,
            title="Application under review",
            message=f"Your application {application.startup_name} is now under review.",
            type="APPLICATION_STATUS",
            link=f"/applications/{application.id}",
        )
    db.session.commit()
    logger.info(
        "Reviewer %s assigned to application %s (%d total)",
        reviewer.id, application.id, application.reviews_total,
        extra={"user_id": actor.user_id, "application_id": application.id,
               "assignment_id": assignment.id},
    )
    return assignment


def start_review(assignment_id, actor):
    """The assigned reviewer marks a PENDING or OVERDUE assignment IN_PROGRESS."""
    assignment = db.session.get(ReviewAssignment, assignment_id)
    if assignment is None:
        raise NotFoundError("ReviewAssignment", assignment_id)
    if assignment.reviewer_id != actor.user_id:
        raise ForbiddenError("This assignment belongs to another reviewer")
    if assignment.status in TERMINAL_REVIEW_STATUSES:
        raise ConflictError(
            f"Assignment is already {assignment.status}",
            details={"status": assignment.status},
        )
    if assignment.status != "IN_PROGRESS":
        assignment.status = "IN_PROGRESS"
        db.session.commit()
        logger.info("Assignment %s started", assignment.id,
                    extra={"user_id": actor.user_id, "assignment_id": assignment.id})
    return assignment


# ═════════════════════════════════════════════════════════════════════════════
# Submission
# ═════════════════════════════════════════════════════════════════════════════

def submit_review(application_id, payload, actor):
    """
    Record the caller's review for an application.

    Raises:
        ForbiddenError: caller is not a reviewer assigned to the application.
        ConflictError: the assignment is already closed; nothing is changed.
        ValidationError: missing or out-of-range scores, missing feedback.
    """
    if actor.role != ROLE_REVIEWER:
        raise ForbiddenError("Only reviewers can submit reviews")

    application = _get_application(application_id)
    assignment = _assignment_for(application.id, actor.user_id)
    if assignment is None:
        raise ForbiddenError("You are not assigned to review this application")
    if assignment.status in TERMINAL_REVIEW_STATUSES:
        raise ConflictError(
            f"Review already {assignment.status}",
            details={"status": assignment.status},
        )

    scores, feedback = validate_review_payload(payload)

    for field, value in scores.items():
        setattr(assignment, field, value)
    assignment.score = overall_score(scores)
    assignment.feedback = feedback
    assignment.status = "COMPLETED"
    assignment.completed_at = utcnow()
    db.session.flush()

    result = db.session.execute(
        update(Application)
        .where(
            Application.id == application.id,
            Application.reviews_completed < Application.reviews_total,
        )
        .values(reviews_completed=Application.reviews_completed + 1),
        execution_options=_NO_SYNC,
    )
    if result.rowcount == 0:
        logger.warning(
            "reviews_completed already at reviews_total for application %s", application.id,
            extra={"application_id": application.id},
        )
    db.session.refresh(application)

    NotificationService.emit_safely(
        user_id=application.user_id,
        title="Review submitted",
        message=f"A reviewer has submitted a review for {application.startup_name}.",
        type="REVIEW_SUBMISSION",
        link=f"/applications/{application.id}",
    )
    if application.reviews_total and application.reviews_completed == application.reviews_total:
        NotificationService.notify_admins_safely(
            title="All reviews completed",
            message=f"All {application.reviews_total} reviews for {application.startup_name} are in.",
            type="ALL_REVIEWS_COMPLETED",
            link=f"/applications/{application.id}",
        )
    db.session.commit()
    logger.info(
        "Review submitted for application %s (%d/%d), score=%d",
        application.id, application.reviews_completed, application.reviews_total, assignment.score,
        extra={"user_id": actor.user_id, "application_id": application.id,
               "assignment_id": assignment.id},
    )
    return assignment


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════

def _assignment_sort_key(assignment):
    due = ensure_aware(assignment.due_date)
    return (
        0 if assignment.status in OPEN_REVIEW_STATUSES else 1,
        due is None,
        due.timestamp() if due is not None else 0,
        assignment.id,
    )


def list_assignments(actor):
    """
    The caller's assignments, flipping past-due PENDING / IN_PROGRESS rows
    to OVERDUE (committed as part of the read).

    Open assignments sort before closed ones, then by due date ascending
    with undated assignments last.
    """
    if actor.role != ROLE_REVIEWER:
        raise ForbiddenError("Only reviewers have review assignments")

    assignments = db.session.execute(
        select(ReviewAssignment).where(ReviewAssignment.reviewer_id == actor.user_id)
    ).scalars().all()

    now = utcnow()
    overdue = [
        a for a in assignments
        if a.status in _DUE_TRACKED_STATUSES and a.due_date is not None and ensure_aware(a.due_date) < now
    ]
    if overdue:
        for a in overdue:
            a.status = "OVERDUE"
        db.session.commit()
        logger.info("Marked %d assignments overdue", len(overdue), extra={"user_id": actor.user_id})

    items = []
    for a in sorted(assignments, key=_assignment_sort_key):
        d = a.to_dict(include_reviewer=False)
        app = a.application
        d["application"] = {
            "id": app.id,
            "startup_name": app.startup_name,
            "industry": app.industry,
            "stage": app.stage,
            "status": app.status,
            "call_id": app.call_id,
            "call_title": app.call.title if app.call else None,
        }
        items.append(d)
    return items


def list_reviews(application_id, actor):
    """
    Reviews visible to the caller.

    Admins and reviewers assigned to the application see every review with
    the reviewer identity. The owner sees nothing until the application is
    APPROVED or REJECTED, then only COMPLETED reviews with the reviewer
    replaced by ``{"id": "anonymous"}``. Anybody else is refused.
    """
    application = _get_application(application_id)
    assignments = application.review_assignments.order_by(ReviewAssignment.id).all()

    if actor.is_admin or any(a.reviewer_id == actor.user_id for a in assignments):
        return [a.to_dict() for a in assignments]

    if application.user_id == actor.user_id:
        if application.status not in DECIDED_STATUSES:
            return []
        reviews = []
        for a in assignments:
            if a.status != "COMPLETED":
                continue
            d = a.to_dict(include_reviewer=False)
            d["reviewer"] = dict(ANONYMOUS_REVIEWER)
            reviews.append(d)
        return reviews

    raise ForbiddenError("You do not have access to these reviews")


def review_summary(application_id):
    """Completed/total counts and per-score averages over completed reviews."""
    application = _get_application(application_id)
    completed = application.review_assignments.filter(ReviewAssignment.status == "COMPLETED").all()

    def _avg(field):
        values = [getattr(a, field) for a in completed if getattr(a, field) is not None]
        return round(sum(values) / len(values), 2) if values else None

    return {
        "application_id": application.id,
        "status": application.status,
        "reviews_completed": application.reviews_completed,
        "reviews_total": application.reviews_total,
        "average_score": _avg("score"),
        **{f"average_{f}": _avg(f) for f in SUB_SCORE_FIELDS},
    }
