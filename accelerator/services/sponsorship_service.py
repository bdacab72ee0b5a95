"""
Startup Accelerator Platform
Sponsorship service.

Admins publish opportunities with an amount range; sponsors pledge
against them; admins accept or reject pledges.
"""

import logging

from sqlalchemy import select

from accelerator.core.exceptions import (
    ConflictError,
    DuplicateError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from accelerator.models import db, money, utcnow
from accelerator.models.sponsorship import (
    ACTIVE_PLEDGE_STATUSES,
    OPPORTUNITY_STATUSES,
    SponsorshipApplication,
    SponsorshipOpportunity,
)
from accelerator.models.user import ROLE_SPONSOR
from accelerator.services.notification import NotificationService
from accelerator.utils.helpers import (
    ensure_aware,
    optional_str,
    parse_datetime,
    require_fields,
    require_str,
    to_decimal,
)

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = frozenset({"ACCEPTED", "REJECTED"})


def _get_opportunity(opportunity_id):
    opportunity = db.session.get(SponsorshipOpportunity, opportunity_id)
    if opportunity is None:
        raise NotFoundError("SponsorshipOpportunity", opportunity_id)
    return opportunity


# ── Opportunities ────────────────────────────────────────────────────────────

def create_opportunity(payload, actor):
    if not actor.is_admin:
        raise ForbiddenError("Only admins can create sponsorship opportunities")

    require_str(payload, "title")
    require_fields(payload, "min_amount", "max_amount")
    min_amount = to_decimal(payload["min_amount"], "min_amount")
    max_amount = to_decimal(payload["max_amount"], "max_amount")
    if min_amount <= 0 or max_amount <= 0:
        raise ValidationError("Amounts must be positive",
                              details={"min_amount": "must be > 0", "max_amount": "must be > 0"})
    if min_amount > max_amount:
        raise ValidationError("min_amount cannot exceed max_amount",
                              details={"min_amount": "greater than max_amount"})

    status = str(payload.get("status") or "OPEN").upper()
    if status not in OPPORTUNITY_STATUSES:
        raise ValidationError(f"Invalid opportunity status: {status}",
                              details={"status": f"one of {sorted(OPPORTUNITY_STATUSES)}"})

    opportunity = SponsorshipOpportunity(
        title=payload["title"].strip(),
        description=optional_str(payload, "description"),
        min_amount=min_amount,
        max_amount=max_amount,
        currency=str(payload.get("currency") or "USD").upper(),
        deadline=parse_datetime(payload.get("deadline"), "deadline"),
        status=status,
        created_by=actor.user_id,
    )
    db.session.add(opportunity)
    db.session.commit()
    logger.info("Sponsorship opportunity %s created", opportunity.id, extra={"user_id": actor.user_id})
    return opportunity


def list_opportunities(actor):
    stmt = select(SponsorshipOpportunity).order_by(SponsorshipOpportunity.id.desc())
    if not actor.is_admin:
        stmt = stmt.where(SponsorshipOpportunity.status == "OPEN")
    return db.session.execute(stmt).scalars().all()


def get_opportunity(opportunity_id, actor):
    opportunity = _get_opportunity(opportunity_id)
    if not actor.is_admin and opportunity.status != "OPEN":
        raise NotFoundError("SponsorshipOpportunity", opportunity_id)
    return opportunity


# ── Pledges ──────────────────────────────────────────────────────────────────

def apply_for_opportunity(opportunity_id, payload, actor):
    """
    Sponsor pledges ``amount`` against an OPEN opportunity.

    The pledge must be in the opportunity's currency and range, before its
    deadline, and the sponsor may not already hold a PENDING or ACCEPTED
    pledge on it.
    """
    if actor.role != ROLE_SPONSOR:
        raise ForbiddenError("Only sponsors can apply for sponsorship opportunities")

    opportunity = _get_opportunity(opportunity_id)
    if opportunity.status != "OPEN":
        raise ValidationError("This opportunity is not open", details={"status": opportunity.status})
    deadline = ensure_aware(opportunity.deadline)
    if deadline is not None and deadline < utcnow():
        raise ValidationError("The opportunity deadline has passed",
                              details={"deadline": deadline.isoformat()})

    require_fields(payload, "amount")
    amount = to_decimal(payload["amount"], "amount")
    currency = str(payload.get("currency") or opportunity.currency).upper()
    if currency != opportunity.currency:
        raise ValidationError(
            f"Pledges for this opportunity must be in {opportunity.currency}",
            details={"currency": opportunity.currency},
        )
    if not opportunity.min_amount <= amount <= opportunity.max_amount:
        raise ValidationError(
            "amount is outside the opportunity range",
            details={"min_amount": money(opportunity.min_amount), "max_amount": money(opportunity.max_amount)},
        )

    existing = db.session.execute(
        select(SponsorshipApplication.id).where(
            SponsorshipApplication.opportunity_id == opportunity.id,
            SponsorshipApplication.sponsor_id == actor.user_id,
            SponsorshipApplication.status.in_(ACTIVE_PLEDGE_STATUSES),
        )
    ).first()
    if existing is not None:
        raise DuplicateError("SponsorshipApplication", "opportunity_id", opportunity.id)

    pledge = SponsorshipApplication(
        opportunity_id=opportunity.id,
        sponsor_id=actor.user_id,
        amount=amount,
        currency=currency,
        message=optional_str(payload, "message"),
        status="PENDING",
    )
    db.session.add(pledge)
    db.session.flush()

    NotificationService.notify_admins_safely(
        title="New sponsorship application",
        message=f"A sponsor pledged {money(amount)} {currency} to {opportunity.title}.",
        type="SPONSORSHIP_APPLICATION",
        link=f"/sponsorship-opportunities/{opportunity.id}",
    )
    db.session.commit()
    logger.info("Sponsorship application %s on opportunity %s", pledge.id, opportunity.id,
                extra={"user_id": actor.user_id})
    return pledge


def review_sponsorship_application(application_id, new_status, actor):
    """Admin accepts or rejects a pledge; the sponsor hears about a change."""
    if not actor.is_admin:
        raise ForbiddenError("Only admins can review sponsorship applications")

    status = str(new_status or "").strip().upper()
    if status not in REVIEW_DECISIONS:
        raise ValidationError(f"Invalid decision: {new_status!r}",
                              details={"status": f"one of {sorted(REVIEW_DECISIONS)}"})

    pledge = db.session.get(SponsorshipApplication, application_id)
    if pledge is None:
        raise NotFoundError("SponsorshipApplication", application_id)
    if pledge.status == "WITHDRAWN":
        raise ConflictError("Sponsorship application was withdrawn", details={"status": pledge.status})

    previous = pledge.status
    if previous != status:
        pledge.status = status
        pledge.reviewed_by = actor.user_id
        pledge.reviewed_at = utcnow()
        db.session.flush()
        NotificationService.emit_safely(
            user_id=pledge.sponsor_id,
            title=f"Sponsorship application {status.lower()}",
            message=f"Your pledge to {pledge.opportunity.title} was {status.lower()}.",
            type="SPONSORSHIP_STATUS",
            link="/sponsors/me/applications",
            send_email=True,
        )
    db.session.commit()
    logger.info("Sponsorship application %s: %s -> %s", pledge.id, previous, status,
                extra={"user_id": actor.user_id})
    return pledge


def withdraw_sponsorship_application(application_id, actor):
    """The sponsor pulls their own PENDING pledge; WITHDRAWN is final."""
    pledge = db.session.get(SponsorshipApplication, application_id)
    if pledge is None:
        raise NotFoundError("SponsorshipApplication", application_id)
    if pledge.sponsor_id != actor.user_id:
        raise ForbiddenError("You can only withdraw your own sponsorship application")
    if pledge.status != "PENDING":
        raise ValidationError(
            f"Cannot withdraw a {pledge.status} sponsorship application",
            details={"status": pledge.status},
        )

    pledge.status = "WITHDRAWN"
    db.session.flush()
    NotificationService.notify_admins_safely(
        title="Sponsorship application withdrawn",
        message=f"A sponsor withdrew their pledge to {pledge.opportunity.title}.",
        type="SPONSORSHIP_APPLICATION",
        link=f"/sponsorship-opportunities/{pledge.opportunity_id}",
    )
    db.session.commit()
    logger.info("Sponsorship application %s withdrawn", pledge.id, extra={"user_id": actor.user_id})
    return pledge


def list_my_sponsorship_applications(actor):
    if actor.role != ROLE_SPONSOR:
        raise ForbiddenError("Only sponsors have sponsorship applications")
    return db.session.execute(
        select(SponsorshipApplication)
        .where(SponsorshipApplication.sponsor_id == actor.user_id)
        .order_by(SponsorshipApplication.id.desc())
    ).scalars().all()
