"""
Application state machine tests.

Tests cover:
    - Every legal edge of TRANSITIONS succeeds; every other pair is 400
      with the allowed transitions and leaves the status untouched
    - Same-status requests are no-ops (no notification, no budget)
    - Only admins transition; owners included get 403
    - APPROVED provisions the default call budget exactly once
    - Submission (text fields must be strings), withdrawal, visibility
      and startup call endpoints
    - Full lifecycle: submit, assign, review, approve, funded budget
"""

from datetime import datetime, timedelta, timezone

import pytest

from accelerator.auth import Actor
from accelerator.core.exceptions import ForbiddenError, InvalidTransitionError
from accelerator.models import db
from accelerator.models.budget import Budget
from accelerator.models.notification import EmailLog, Notification
from accelerator.models.review import ReviewAssignment
from accelerator.models.startup_call import APPLICATION_STATUSES, Application, StartupCall
from accelerator.services import application_workflow
from accelerator.services.application_workflow import TRANSITIONS

LEGAL_EDGES = [(src, dst) for src, targets in TRANSITIONS.items() for dst in targets]
ILLEGAL_EDGES = [
    (src, dst)
    for src in sorted(APPLICATION_STATUSES)
    for dst in sorted(APPLICATION_STATUSES)
    if src != dst and dst not in TRANSITIONS[src]
]


def _set_status(application, status):
    application.status = status
    db.session.commit()


def _status_notifications(user_id):
    return Notification.query.filter_by(user_id=user_id, type="APPLICATION_STATUS").all()


# ═════════════════════════════════════════════════════════════════════════════
# Transition table
# ═════════════════════════════════════════════════════════════════════════════


class TestTransitionTable:
    def test_terminal_states_have_no_exits(self):
        for status in ("APPROVED", "REJECTED", "WITHDRAWN"):
            assert TRANSITIONS[status] == ()

    def test_every_status_has_an_entry(self):
        assert set(TRANSITIONS) == set(APPLICATION_STATUSES)

    @pytest.mark.parametrize("src,dst", LEGAL_EDGES)
    def test_legal_edge(self, client, auth, admin, application, src, dst):
        _set_status(application, src)
        res = client.put(f"/api/v1/applications/{application.id}", json={"status": dst}, headers=auth(admin))
        assert res.status_code == 200, res.get_json()
        assert res.get_json()["status"] == dst
        assert db.session.get(Application, application.id).status == dst

    @pytest.mark.parametrize("src,dst", ILLEGAL_EDGES)
    def test_illegal_edge(self, client, auth, admin, application, src, dst):
        _set_status(application, src)
        res = client.put(f"/api/v1/applications/{application.id}", json={"status": dst}, headers=auth(admin))
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert body["details"]["allowed_transitions"] == list(TRANSITIONS[src])
        db.session.expire_all()
        assert db.session.get(Application, application.id).status == src

    def test_service_raises_invalid_transition(self, admin, application):
        _set_status(application, "APPROVED")
        with pytest.raises(InvalidTransitionError) as exc:
            application_workflow.transition_application(
                application.id, "UNDER_REVIEW", Actor(admin.id, "ADMIN"),
            )
        assert exc.value.allowed_transitions == []


# ═════════════════════════════════════════════════════════════════════════════
# Transition endpoint behaviour
# ═════════════════════════════════════════════════════════════════════════════


class TestTransitionEndpoint:
    def test_lowercase_target_accepted(self, client, auth, admin, application):
        res = client.put(f"/api/v1/applications/{application.id}",
                         json={"status": "under_review"}, headers=auth(admin))
        assert res.status_code == 200
        assert res.get_json()["status"] == "UNDER_REVIEW"

    def test_unknown_status_is_400(self, client, auth, admin, application):
        res = client.put(f"/api/v1/applications/{application.id}",
                         json={"status": "ON_HOLD"}, headers=auth(admin))
        assert res.status_code == 400
        assert db.session.get(Application, application.id).status == "SUBMITTED"

    def test_missing_status_is_400(self, client, auth, admin, application):
        res = client.put(f"/api/v1/applications/{application.id}", json={}, headers=auth(admin))
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_missing_application_is_404(self, client, auth, admin):
        res = client.put("/api/v1/applications/4242", json={"status": "REJECTED"}, headers=auth(admin))
        assert res.status_code == 404

    def test_owner_cannot_transition(self, client, auth, entrepreneur, application):
        res = client.put(f"/api/v1/applications/{application.id}",
                         json={"status": "UNDER_REVIEW"}, headers=auth(entrepreneur))
        assert res.status_code == 403
        assert db.session.get(Application, application.id).status == "SUBMITTED"

    def test_service_refuses_non_admin(self, entrepreneur, application):
        with pytest.raises(ForbiddenError):
            application_workflow.transition_application(
                application.id, "UNDER_REVIEW", Actor(entrepreneur.id, "ENTREPRENEUR"),
            )

    def test_unauthenticated_is_401(self, client, application):
        res = client.put(f"/api/v1/applications/{application.id}", json={"status": "REJECTED"})
        assert res.status_code == 401

    def test_same_status_is_noop(self, client, auth, admin, application, entrepreneur):
        _set_status(application, "UNDER_REVIEW")
        res = client.put(f"/api/v1/applications/{application.id}",
                         json={"status": "UNDER_REVIEW"}, headers=auth(admin))
        assert res.status_code == 200
        assert res.get_json()["status"] == "UNDER_REVIEW"
        assert _status_notifications(entrepreneur.id) == []

    def test_same_status_approved_does_not_provision(self, client, auth, admin, application):
        _set_status(application, "APPROVED")
        res = client.put(f"/api/v1/applications/{application.id}",
                         json={"status": "APPROVED"}, headers=auth(admin))
        assert res.status_code == 200
        assert Budget.query.count() == 0

    def test_owner_notified_with_email(self, client, auth, admin, application, entrepreneur):
        res = client.put(f"/api/v1/applications/{application.id}",
                         json={"status": "MORE_INFO_REQUIRED"}, headers=auth(admin))
        assert res.status_code == 200
        notes = _status_notifications(entrepreneur.id)
        assert len(notes) == 1
        assert "more information" in notes[0].message
        assert notes[0].link == f"/applications/{application.id}"
        emails = EmailLog.query.filter_by(recipient_email=entrepreneur.email).all()
        assert len(emails) == 1
        assert emails[0].status == "sent"
        assert emails[0].notification_id == notes[0].id


# ═════════════════════════════════════════════════════════════════════════════
# Budget auto-provisioning
# ═════════════════════════════════════════════════════════════════════════════


class TestAutoProvision:
    def test_approval_creates_default_budget(self, client, auth, admin, application, open_call):
        _set_status(application, "UNDER_REVIEW")
        res = client.put(f"/api/v1/applications/{application.id}",
                         json={"status": "APPROVED"}, headers=auth(admin))
        assert res.status_code == 200

        budgets = Budget.query.filter_by(startup_call_id=open_call.id).all()
        assert len(budgets) == 1
        budget = budgets[0]
        assert float(budget.total_amount) == 10000
        assert budget.currency == "USD"
        assert budget.status == "ACTIVE"
        assert budget.fiscal_year == str(datetime.now(timezone.utc).year)
        assert budget.title == f"Budget for {open_call.title}"
        allocations = {c.name: float(c.allocated_amount) for c in budget.categories}
        assert allocations == {
            "Operations": 4000.0,
            "Marketing": 3000.0,
            "Development": 2000.0,
            "Miscellaneous": 1000.0,
        }

    def test_second_approval_reuses_budget(self, client, auth, admin, application, open_call, make_user):
        other_owner = make_user("ENTREPRENEUR")
        other = Application(user_id=other_owner.id, call_id=open_call.id,
                            startup_name="BlueWave", status="UNDER_REVIEW")
        db.session.add(other)
        _set_status(application, "UNDER_REVIEW")

        for app_id in (application.id, other.id):
            res = client.put(f"/api/v1/applications/{app_id}",
                             json={"status": "APPROVED"}, headers=auth(admin))
            assert res.status_code == 200
        assert Budget.query.filter_by(startup_call_id=open_call.id).count() == 1

    def test_configured_defaults_are_used(self, app, client, auth, admin, application, monkeypatch):
        monkeypatch.setitem(app.config, "BUDGET_DEFAULT_TOTAL", "500")
        monkeypatch.setitem(app.config, "BUDGET_DEFAULT_CURRENCY", "EUR")
        monkeypatch.setitem(app.config, "BUDGET_DEFAULT_CATEGORIES",
                            [{"name": "Everything", "description": "", "share": "1"}])
        _set_status(application, "UNDER_REVIEW")
        client.put(f"/api/v1/applications/{application.id}", json={"status": "APPROVED"}, headers=auth(admin))

        budget = Budget.query.one()
        assert float(budget.total_amount) == 500
        assert budget.currency == "EUR"
        assert [(c.name, float(c.allocated_amount)) for c in budget.categories] == [("Everything", 500.0)]


# ═════════════════════════════════════════════════════════════════════════════
# Submission & withdrawal
# ═════════════════════════════════════════════════════════════════════════════


class TestSubmitApplication:
    def _payload(self, **overrides):
        data = {"startup_name": "SolarLoop", "industry": "Energy", "stage": "Pre-seed",
                "problem": "Grid waste", "solution": "Storage"}
        data.update(overrides)
        return data

    def test_submit(self, client, auth, entrepreneur, open_call, admin):
        res = client.post(f"/api/v1/startup-calls/{open_call.id}/applications",
                          json=self._payload(), headers=auth(entrepreneur))
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "SUBMITTED"
        assert body["reviews_total"] == 0
        assert body["reviews_completed"] == 0
        assert body["startup_id"] is not None
        assert Notification.query.filter_by(user_id=admin.id, type="APPLICATION_SUBMITTED").count() == 1

    def test_duplicate_is_409(self, client, auth, entrepreneur, open_call):
        url = f"/api/v1/startup-calls/{open_call.id}/applications"
        assert client.post(url, json=self._payload(), headers=auth(entrepreneur)).status_code == 201
        res = client.post(url, json=self._payload(), headers=auth(entrepreneur))
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_closed_call_rejected(self, client, auth, entrepreneur, open_call):
        open_call.status = "CLOSED"
        db.session.commit()
        res = client.post(f"/api/v1/startup-calls/{open_call.id}/applications",
                          json=self._payload(), headers=auth(entrepreneur))
        assert res.status_code == 400

    def test_past_deadline_rejected(self, client, auth, entrepreneur, open_call):
        open_call.application_deadline = datetime.now(timezone.utc) - timedelta(days=1)
        db.session.commit()
        res = client.post(f"/api/v1/startup-calls/{open_call.id}/applications",
                          json=self._payload(), headers=auth(entrepreneur))
        assert res.status_code == 400

    def test_startup_name_required(self, client, auth, entrepreneur, open_call):
        res = client.post(f"/api/v1/startup-calls/{open_call.id}/applications",
                          json={"industry": "Energy"}, headers=auth(entrepreneur))
        assert res.status_code == 400
        assert "startup_name" in res.get_json()["details"]

    @pytest.mark.parametrize("overrides", [
        {"startup_name": 42},
        {"startup_name": ["GreenGrid"]},
        {"industry": 7},
        {"problem": {"text": "x"}},
    ])
    def test_non_text_fields_are_400(self, client, auth, entrepreneur, open_call, overrides):
        res = client.post(f"/api/v1/startup-calls/{open_call.id}/applications",
                          json=self._payload(**overrides), headers=auth(entrepreneur))
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == set(overrides)
        assert Application.query.count() == 0

    def test_only_entrepreneurs_apply(self, client, auth, reviewer, open_call):
        res = client.post(f"/api/v1/startup-calls/{open_call.id}/applications",
                          json=self._payload(), headers=auth(reviewer))
        assert res.status_code == 403


class TestWithdraw:
    def test_owner_withdraws(self, client, auth, entrepreneur, application):
        res = client.post(f"/api/v1/applications/{application.id}/withdraw", json={}, headers=auth(entrepreneur))
        assert res.status_code == 200
        assert res.get_json()["status"] == "WITHDRAWN"

    def test_withdrawn_is_terminal(self, client, auth, admin, entrepreneur, application):
        client.post(f"/api/v1/applications/{application.id}/withdraw", json={}, headers=auth(entrepreneur))
        res = client.put(f"/api/v1/applications/{application.id}",
                         json={"status": "UNDER_REVIEW"}, headers=auth(admin))
        assert res.status_code == 400
        assert res.get_json()["details"]["allowed_transitions"] == []

    def test_decided_application_cannot_be_withdrawn(self, client, auth, entrepreneur, application):
        _set_status(application, "REJECTED")
        res = client.post(f"/api/v1/applications/{application.id}/withdraw", json={}, headers=auth(entrepreneur))
        assert res.status_code == 400

    def test_other_user_cannot_withdraw(self, client, auth, make_user, application):
        stranger = make_user("ENTREPRENEUR")
        res = client.post(f"/api/v1/applications/{application.id}/withdraw", json={}, headers=auth(stranger))
        assert res.status_code == 403


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════


class TestApplicationReads:
    def test_owner_reads_detail(self, client, auth, entrepreneur, application):
        res = client.get(f"/api/v1/applications/{application.id}", headers=auth(entrepreneur))
        assert res.status_code == 200
        body = res.get_json()
        assert body["allowed_transitions"] == ["UNDER_REVIEW", "REJECTED", "MORE_INFO_REQUIRED"]
        assert body["call_title"] == "Spring Cohort 2026"

    def test_assigned_reviewer_reads_detail(self, client, auth, reviewer, application):
        db.session.add(ReviewAssignment(application_id=application.id, reviewer_id=reviewer.id))
        db.session.commit()
        res = client.get(f"/api/v1/applications/{application.id}", headers=auth(reviewer))
        assert res.status_code == 200

    def test_unassigned_reviewer_forbidden(self, client, auth, reviewer, application):
        res = client.get(f"/api/v1/applications/{application.id}", headers=auth(reviewer))
        assert res.status_code == 403

    def test_list_mine(self, client, auth, entrepreneur, application):
        res = client.get("/api/v1/applications/mine", headers=auth(entrepreneur))
        assert [a["id"] for a in res.get_json()["items"]] == [application.id]

    def test_call_applications_admin_only(self, client, auth, admin, entrepreneur, application, open_call):
        url = f"/api/v1/startup-calls/{open_call.id}/applications"
        assert client.get(url, headers=auth(entrepreneur)).status_code == 403
        res = client.get(url, headers=auth(admin))
        assert res.status_code == 200
        assert res.get_json()["total"] == 1


class TestStartupCalls:
    def test_admin_creates_call(self, client, auth, admin):
        res = client.post("/api/v1/startup-calls", json={
            "title": "Fintech Sprint", "application_deadline": "2030-01-31T23:59:00Z",
        }, headers=auth(admin))
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "OPEN"
        assert body["application_deadline"].startswith("2030-01-31T23:59")

    def test_invalid_deadline_is_400(self, client, auth, admin):
        res = client.post("/api/v1/startup-calls", json={"title": "X", "application_deadline": "soon"},
                          headers=auth(admin))
        assert res.status_code == 400

    @pytest.mark.parametrize("body", [{"title": 123}, {"title": "X", "description": 5}])
    def test_non_text_title_or_description_is_400(self, client, auth, admin, body):
        res = client.post("/api/v1/startup-calls", json=body, headers=auth(admin))
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        assert StartupCall.query.count() == 0

    def test_non_admins_only_see_open_calls(self, client, auth, admin, entrepreneur, open_call):
        db.session.add(StartupCall(title="Draft call", status="DRAFT", created_by=admin.id))
        db.session.commit()

        mine = client.get("/api/v1/startup-calls", headers=auth(entrepreneur)).get_json()
        assert [c["title"] for c in mine["items"]] == ["Spring Cohort 2026"]
        everything = client.get("/api/v1/startup-calls", headers=auth(admin)).get_json()
        assert everything["total"] == 2


# ═════════════════════════════════════════════════════════════════════════════
# Full lifecycle
# ═════════════════════════════════════════════════════════════════════════════


class TestLifecycle:
    def test_submit_review_approve_funds_the_call(self, client, auth, admin, entrepreneur, reviewer, open_call):
        res = client.post(f"/api/v1/startup-calls/{open_call.id}/applications", json={
            "startup_name": "SolarLoop", "industry": "Energy", "stage": "Seed",
        }, headers=auth(entrepreneur))
        assert res.status_code == 201
        app_id = res.get_json()["id"]

        res = client.post(f"/api/v1/applications/{app_id}/reviewers",
                          json={"reviewer_id": reviewer.id}, headers=auth(admin))
        assert res.status_code == 201, res.get_json()
        assert client.get(f"/api/v1/applications/{app_id}", headers=auth(admin)).get_json()["status"] == "UNDER_REVIEW"

        res = client.post(f"/api/v1/applications/{app_id}/submit-review", json={
            "innovation_score": 80, "market_score": 70, "team_score": 90, "execution_score": 60,
            "feedback": "Solid all round.",
        }, headers=auth(reviewer))
        assert res.status_code == 200, res.get_json()
        db.session.expire_all()
        assert ReviewAssignment.query.filter_by(application_id=app_id).one().score == 75

        res = client.put(f"/api/v1/applications/{app_id}", json={"status": "APPROVED"}, headers=auth(admin))
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "APPROVED"
        assert body["reviews_completed"] == body["reviews_total"] == 1

        budget = Budget.query.filter_by(startup_call_id=open_call.id).one()
        assert float(budget.total_amount) == 10000
        assert len(budget.categories) == 4
        assert sum(float(c.allocated_amount) for c in budget.categories) == 10000

        # The funded founder can now read the budget
        res = client.get(f"/api/v1/budgets/{budget.id}", headers=auth(entrepreneur))
        assert res.status_code == 200
