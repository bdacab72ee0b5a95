"""
Shared pytest fixtures for the Startup Accelerator Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / admin / entrepreneur / reviewer / sponsor: user factories
    - auth: builds Authorization headers for a user
    - open_call / application: a call and a SUBMITTED application in it
"""

from datetime import datetime, timedelta, timezone

import pytest

from accelerator import create_app
from accelerator.models import db as _db
from accelerator.models.startup_call import Application, Startup, StartupCall
from accelerator.models.user import User
from accelerator.services.jwt_service import generate_session_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Users & tokens ───────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Factory: make_user("REVIEWER", email=..., is_active=...)."""
    counter = {"n": 0}

    def _make(role, email=None, name=None, is_active=True):
        counter["n"] += 1
        user = User(
            email=email or f"{role.lower()}{counter['n']}@example.com",
            name=name or f"{role.title()} {counter['n']}",
            role=role,
            is_active=is_active,
        )
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def admin(make_user):
    return make_user("ADMIN", email="admin@example.com", name="Ada Admin")


@pytest.fixture()
def entrepreneur(make_user):
    return make_user("ENTREPRENEUR", email="founder@example.com", name="Frida Founder")


@pytest.fixture()
def reviewer(make_user):
    return make_user("REVIEWER", email="reviewer@example.com", name="Rene Reviewer")


@pytest.fixture()
def sponsor(make_user):
    return make_user("SPONSOR", email="sponsor@example.com", name="Sam Sponsor")


@pytest.fixture()
def auth():
    """auth(user) -> headers carrying a fresh session token for the user."""
    def _headers(user, **kwargs):
        return {"Authorization": f"Bearer {generate_session_token(user.id, **kwargs)}"}
    return _headers


# ── Domain fixtures ──────────────────────────────────────────────────────


@pytest.fixture()
def open_call(admin):
    call = StartupCall(
        title="Spring Cohort 2026",
        description="Early-stage climate startups",
        status="OPEN",
        application_deadline=datetime.now(timezone.utc) + timedelta(days=30),
        created_by=admin.id,
    )
    _db.session.add(call)
    _db.session.commit()
    return call


@pytest.fixture()
def application(open_call, entrepreneur):
    """A SUBMITTED application owned by ``entrepreneur`` with its startup."""
    startup = Startup(name="GreenGrid", founder_id=entrepreneur.id)
    _db.session.add(startup)
    _db.session.flush()
    app_row = Application(
        user_id=entrepreneur.id,
        call_id=open_call.id,
        startup_id=startup.id,
        startup_name="GreenGrid",
        industry="Energy",
        stage="Seed",
        status="SUBMITTED",
    )
    _db.session.add(app_row)
    _db.session.commit()
    return app_row
