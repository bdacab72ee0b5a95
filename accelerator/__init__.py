"""
Startup Accelerator Platform
Flask Application Factory.

Usage:
    from accelerator import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from accelerator.auth import init_auth
from accelerator.config import config
from accelerator.middleware.logging_config import configure_logging
from accelerator.middleware.rate_limiter import init_rate_limits
from accelerator.middleware.timing import init_request_timing
from accelerator.models import db
from accelerator.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)


# ── SQLite engine events (global) ───────────────────────────────────────
# FK enforcement, and SAVEPOINT support: pysqlite's own transaction
# handling is switched off and BEGIN is emitted by SQLAlchemy instead.

@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _configure_sqlite(dbapi_conn, connection_record):
    if "sqlite" in type(dbapi_conn).__module__:
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@_sa_event.listens_for(_sa_engine.Engine, "begin")
def _sqlite_begin(conn):
    if conn.dialect.name == "sqlite":
        conn.exec_driver_sql("BEGIN")


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # limits are per-blueprint
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    # ProductionConfig validates required env vars on instantiation
    app.config.from_object(config_cls() if config_name == "production" else config_cls)
    app.config.setdefault("RATELIMIT_STORAGE_URI", app.config.get("REDIS_URL", "memory://"))

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Authentication & request middleware ──────────────────────────────
    init_auth(app)
    init_request_timing(app)
    register_error_handlers(app)

    # ── Import all models so create_all / Alembic see them ───────────────
    from accelerator.models import budget as _budget_models              # noqa: F401
    from accelerator.models import event as _event_models                # noqa: F401
    from accelerator.models import notification as _notification_models  # noqa: F401
    from accelerator.models import review as _review_models              # noqa: F401
    from accelerator.models import sponsorship as _sponsorship_models    # noqa: F401
    from accelerator.models import startup_call as _startup_call_models  # noqa: F401
    from accelerator.models import user as _user_models                  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if config_name == "development":
        os.makedirs(os.path.join(os.path.dirname(app.root_path), "instance"), exist_ok=True)
    with app.app_context():
        db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from accelerator.blueprints.application_bp import application_bp
    from accelerator.blueprints.budget_bp import budget_bp
    from accelerator.blueprints.event_bp import event_bp
    from accelerator.blueprints.notification_bp import notification_bp
    from accelerator.blueprints.review_bp import review_bp
    from accelerator.blueprints.sponsorship_bp import sponsorship_bp

    app.register_blueprint(application_bp)
    app.register_blueprint(review_bp)
    app.register_blueprint(budget_bp)
    app.register_blueprint(sponsorship_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(event_bp)

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    @limiter.exempt
    def health():
        return {"status": "ok", "app": "Startup Accelerator Platform"}

    # ── CLI commands ─────────────────────────────────────────────────────
    _register_cli(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app


def _register_cli(app):
    from accelerator.models.user import ROLES, User
    from accelerator.services.jwt_service import generate_session_token

    @app.cli.command("create-user")
    @click.option("--email", required=True)
    @click.option("--name", default=None)
    @click.option("--role", default="ENTREPRENEUR", show_default=True)
    def create_user_cmd(email, name, role):
        """Mirror an identity-provider account into the users table."""
        role = role.strip().upper()
        if role not in ROLES:
            raise click.BadParameter(f"role must be one of {sorted(ROLES)}", param_hint="--role")
        if User.query.filter_by(email=email).first():
            raise click.ClickException(f"User {email} already exists")
        user = User(email=email, name=name or email.split("@")[0], role=role)
        db.session.add(user)
        db.session.commit()
        logger.info("User %s created with role %s", user.id, role, extra={"user_id": user.id})
        click.echo(f"Created user {user.id} ({email}, {role})")

    @app.cli.command("issue-token")
    @click.argument("email")
    @click.option("--expires-in", type=int, default=None, help="Lifetime in seconds.")
    def issue_token_cmd(email, expires_in):
        """Print a session token for an existing user."""
        user = User.query.filter_by(email=email).first()
        if user is None:
            raise click.ClickException(f"No user with email {email}")
        click.echo(generate_session_token(user.id, expires_in=expires_in))
