"""
Sponsorship tests.

Tests cover:
    - Opportunity creation and visibility
    - Pledges: role, range, currency, deadline, one active pledge per sponsor
    - Admin decisions and sponsor notification
    - Withdrawal: owning sponsor only, PENDING only, final
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from accelerator.models import db
from accelerator.models.notification import Notification
from accelerator.models.sponsorship import SponsorshipApplication, SponsorshipOpportunity


@pytest.fixture()
def opportunity(admin):
    row = SponsorshipOpportunity(
        title="Demo Day headline",
        min_amount=Decimal("1000"),
        max_amount=Decimal("5000"),
        currency="USD",
        status="OPEN",
        deadline=datetime.now(timezone.utc) + timedelta(days=14),
        created_by=admin.id,
    )
    db.session.add(row)
    db.session.commit()
    return row


def _apply(client, auth, user, opportunity, **body):
    body.setdefault("amount", 2500)
    return client.post(f"/api/v1/sponsorship-opportunities/{opportunity.id}/apply",
                       json=body, headers=auth(user))


@pytest.fixture()
def pledge(client, auth, sponsor, opportunity):
    """Id of a PENDING pledge by ``sponsor``."""
    return _apply(client, auth, sponsor, opportunity).get_json()["id"]


# ═════════════════════════════════════════════════════════════════════════════
# Opportunities
# ═════════════════════════════════════════════════════════════════════════════


class TestOpportunities:
    def test_admin_creates(self, client, auth, admin):
        res = client.post("/api/v1/sponsorship-opportunities", json={
            "title": "Pitch night", "min_amount": 100, "max_amount": "750.25", "currency": "gbp",
        }, headers=auth(admin))
        assert res.status_code == 201, res.get_json()
        body = res.get_json()
        assert body["status"] == "OPEN"
        assert body["currency"] == "GBP"
        assert body["max_amount"] == 750.25

    @pytest.mark.parametrize("body", [
        {"title": "X", "min_amount": 500, "max_amount": 100},
        {"title": "X", "min_amount": 0, "max_amount": 100},
        {"title": "X", "min_amount": 1},
        {"title": "X", "min_amount": 1, "max_amount": 2, "status": "ARCHIVED"},
        {"title": 500, "min_amount": 1, "max_amount": 2},
        {"title": "X", "description": ["a"], "min_amount": 1, "max_amount": 2},
    ])
    def test_invalid_is_400(self, client, auth, admin, body):
        res = client.post("/api/v1/sponsorship-opportunities", json=body, headers=auth(admin))
        assert res.status_code == 400
        assert SponsorshipOpportunity.query.count() == 0

    def test_sponsor_cannot_create(self, client, auth, sponsor):
        res = client.post("/api/v1/sponsorship-opportunities",
                          json={"title": "X", "min_amount": 1, "max_amount": 2}, headers=auth(sponsor))
        assert res.status_code == 403

    def test_closed_hidden_from_non_admins(self, client, auth, admin, sponsor, opportunity):
        closed = SponsorshipOpportunity(title="Old", min_amount=1, max_amount=2, status="CLOSED")
        db.session.add(closed)
        db.session.commit()

        listed = client.get("/api/v1/sponsorship-opportunities", headers=auth(sponsor)).get_json()
        assert [o["title"] for o in listed["items"]] == ["Demo Day headline"]
        assert client.get(f"/api/v1/sponsorship-opportunities/{closed.id}", headers=auth(sponsor)).status_code == 404
        assert client.get(f"/api/v1/sponsorship-opportunities/{closed.id}", headers=auth(admin)).status_code == 200


# ═════════════════════════════════════════════════════════════════════════════
# Pledges
# ═════════════════════════════════════════════════════════════════════════════


class TestApply:
    def test_sponsor_pledges(self, client, auth, admin, sponsor, opportunity):
        res = _apply(client, auth, sponsor, opportunity, message="Happy to help")
        assert res.status_code == 201, res.get_json()
        body = res.get_json()
        assert body["status"] == "PENDING"
        assert body["currency"] == "USD"
        assert body["opportunity_title"] == "Demo Day headline"
        assert Notification.query.filter_by(user_id=admin.id, type="SPONSORSHIP_APPLICATION").count() == 1

    @pytest.mark.parametrize("amount", [999.99, 5000.01])
    def test_amount_out_of_range(self, client, auth, sponsor, opportunity, amount):
        res = _apply(client, auth, sponsor, opportunity, amount=amount)
        assert res.status_code == 400

    @pytest.mark.parametrize("amount", [1000, 5000])
    def test_range_is_inclusive(self, client, auth, sponsor, opportunity, amount):
        assert _apply(client, auth, sponsor, opportunity, amount=amount).status_code == 201

    def test_currency_mismatch(self, client, auth, sponsor, opportunity):
        res = _apply(client, auth, sponsor, opportunity, currency="EUR")
        assert res.status_code == 400
        assert res.get_json()["details"]["currency"] == "USD"

    def test_past_deadline(self, client, auth, sponsor, opportunity):
        opportunity.deadline = datetime.now(timezone.utc) - timedelta(hours=1)
        db.session.commit()
        assert _apply(client, auth, sponsor, opportunity).status_code == 400

    def test_closed_opportunity(self, client, auth, sponsor, opportunity):
        opportunity.status = "CLOSED"
        db.session.commit()
        assert _apply(client, auth, sponsor, opportunity).status_code == 400

    def test_second_active_pledge_is_409(self, client, auth, sponsor, opportunity):
        _apply(client, auth, sponsor, opportunity)
        res = _apply(client, auth, sponsor, opportunity, amount=3000)
        assert res.status_code == 409
        assert SponsorshipApplication.query.count() == 1

    def test_may_reapply_after_rejection(self, client, auth, admin, sponsor, opportunity):
        pledge_id = _apply(client, auth, sponsor, opportunity).get_json()["id"]
        client.patch(f"/api/v1/sponsorship-applications/{pledge_id}",
                     json={"status": "REJECTED"}, headers=auth(admin))
        assert _apply(client, auth, sponsor, opportunity).status_code == 201

    def test_entrepreneur_cannot_pledge(self, client, auth, entrepreneur, opportunity):
        assert _apply(client, auth, entrepreneur, opportunity).status_code == 403

    def test_list_mine(self, client, auth, sponsor, make_user, opportunity):
        _apply(client, auth, sponsor, opportunity)
        _apply(client, auth, make_user("SPONSOR"), opportunity)
        res = client.get("/api/v1/sponsors/me/applications", headers=auth(sponsor))
        assert res.get_json()["total"] == 1


class TestReviewPledge:
    def _patch(self, client, auth, user, pledge_id, body):
        return client.patch(f"/api/v1/sponsorship-applications/{pledge_id}", json=body, headers=auth(user))

    def test_accept_notifies_sponsor(self, client, auth, admin, sponsor, pledge):
        res = self._patch(client, auth, admin, pledge, {"status": "accepted"})
        assert res.status_code == 200
        assert res.get_json()["status"] == "ACCEPTED"
        notes = Notification.query.filter_by(user_id=sponsor.id, type="SPONSORSHIP_STATUS").all()
        assert len(notes) == 1
        assert "accepted" in notes[0].message

    def test_repeat_decision_is_silent(self, client, auth, admin, sponsor, pledge):
        self._patch(client, auth, admin, pledge, {"status": "ACCEPTED"})
        self._patch(client, auth, admin, pledge, {"status": "ACCEPTED"})
        assert Notification.query.filter_by(user_id=sponsor.id, type="SPONSORSHIP_STATUS").count() == 1

    def test_invalid_decision_is_400(self, client, auth, admin, pledge):
        assert self._patch(client, auth, admin, pledge, {"status": "PENDING"}).status_code == 400

    def test_missing_status_is_400(self, client, auth, admin, pledge):
        res = self._patch(client, auth, admin, pledge, {})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_withdrawn_pledge_is_409(self, client, auth, admin, sponsor, pledge):
        client.post(f"/api/v1/sponsorship-applications/{pledge}/withdraw", json={}, headers=auth(sponsor))
        assert self._patch(client, auth, admin, pledge, {"status": "ACCEPTED"}).status_code == 409

    def test_sponsor_cannot_decide(self, client, auth, sponsor, pledge):
        assert self._patch(client, auth, sponsor, pledge, {"status": "ACCEPTED"}).status_code == 403

    def test_missing_pledge_is_404(self, client, auth, admin):
        assert self._patch(client, auth, admin, 777, {"status": "ACCEPTED"}).status_code == 404


class TestWithdrawPledge:
    def _withdraw(self, client, auth, user, pledge_id):
        return client.post(f"/api/v1/sponsorship-applications/{pledge_id}/withdraw", json={}, headers=auth(user))

    def test_sponsor_withdraws_pending(self, client, auth, admin, sponsor, pledge):
        res = self._withdraw(client, auth, sponsor, pledge)
        assert res.status_code == 200, res.get_json()
        assert res.get_json()["status"] == "WITHDRAWN"
        notes = Notification.query.filter_by(user_id=admin.id, type="SPONSORSHIP_APPLICATION").order_by(Notification.id).all()
        assert [n.title for n in notes] == ["New sponsorship application", "Sponsorship application withdrawn"]

    def test_other_sponsor_is_403(self, client, auth, make_user, pledge):
        res = self._withdraw(client, auth, make_user("SPONSOR"), pledge)
        assert res.status_code == 403
        assert db.session.get(SponsorshipApplication, pledge).status == "PENDING"

    def test_admin_cannot_withdraw_for_sponsor(self, client, auth, admin, pledge):
        assert self._withdraw(client, auth, admin, pledge).status_code == 403

    @pytest.mark.parametrize("status", ["ACCEPTED", "REJECTED", "WITHDRAWN"])
    def test_only_pending_can_be_withdrawn(self, client, auth, sponsor, pledge, status):
        row = db.session.get(SponsorshipApplication, pledge)
        row.status = status
        db.session.commit()
        res = self._withdraw(client, auth, sponsor, pledge)
        assert res.status_code == 400
        assert res.get_json()["details"]["status"] == status
        db.session.expire_all()
        assert db.session.get(SponsorshipApplication, pledge).status == status

    def test_missing_pledge_is_404(self, client, auth, sponsor):
        assert self._withdraw(client, auth, sponsor, 4040).status_code == 404

    def test_may_reapply_after_withdrawal(self, client, auth, sponsor, opportunity, pledge):
        self._withdraw(client, auth, sponsor, pledge)
        assert _apply(client, auth, sponsor, opportunity, amount=1500).status_code == 201
        statuses = sorted(p.status for p in SponsorshipApplication.query.all())
        assert statuses == ["PENDING", "WITHDRAWN"]
