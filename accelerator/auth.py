"""
Startup Accelerator Platform
Authentication & Authorization Middleware.

Provides:
    - Session-token identity resolution (Authorization: Bearer or
      ``session_token`` cookie)
    - Role-based access control decorators
    - Content-Type enforcement for state-changing requests

Security model:
    - All /api/v1/* endpoints resolve an identity (except /api/v1/health)
    - Roles are read from the users table on every request, never from
      the token, and normalised to upper case
    - Roles are flat: ADMIN | ENTREPRENEUR | REVIEWER | SPONSOR
    - Ownership checks live in the service layer (ForbiddenError)
"""

import functools
import logging
from dataclasses import dataclass
from typing import Optional

from flask import g, jsonify, request

from accelerator.models import db
from accelerator.models.user import ROLE_ADMIN, User
from accelerator.services.jwt_service import user_id_from_token
from accelerator.core.exceptions import AuthenticationError, ForbiddenError

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session_token"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as seen by the service layer."""

    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def normalize_role(role: Optional[str]) -> str:
    return (role or "").strip().upper()


def _get_token_from_request() -> Optional[str]:
    """Extract the session token from the Authorization header or cookie."""
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE) or None


def resolve_identity() -> Optional[Actor]:
    """Resolve the caller from the request token; None when there is no valid identity."""
    token = _get_token_from_request()
    if not token:
        return None

    user_id = user_id_from_token(token)
    if user_id is None:
        logger.warning("Invalid session token presented on %s", request.path)
        return None

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        logger.warning("Session token for unknown or inactive user %s", user_id)
        return None

    return Actor(user_id=user.id, role=normalize_role(user.role))


def current_actor() -> Optional[Actor]:
    return getattr(g, "actor", None)


# ── Authentication decorator ─────────────────────────────────────────────────

def require_auth(f):
    """Decorator: require a resolved identity for the endpoint."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_actor() is None:
            raise AuthenticationError()
        return f(*args, **kwargs)

    return decorated


def require_role(*roles: str):
    """
    Decorator: require the caller's role to be one of ``roles``.

    Usage:
        @require_role("ADMIN")
        def transition(application_id): ...

        @require_role("ADMIN", "SPONSOR", "REVIEWER")
        def update_expense_status(expense_id): ...

    Raises AuthenticationError (401) without an identity and
    ForbiddenError (403) on a role mismatch.
    """
    allowed = {normalize_role(r) for r in roles}

    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            actor = current_actor()
            if actor is None:
                raise AuthenticationError()

            if actor.role not in allowed:
                logger.warning(
                    "Access denied: role '%s' tried to access %s (requires %s)",
                    actor.role, request.path, ", ".join(sorted(allowed)),
                    extra={"user_id": actor.user_id, "role": actor.role},
                )
                raise ForbiddenError("Insufficient permissions")

            return f(*args, **kwargs)
        return decorated
    return decorator


# ── CSRF protection for API ──────────────────────────────────────────────────

def _check_content_type():
    """
    For state-changing requests (POST/PUT/PATCH/DELETE), require
    Content-Type: application/json. HTML forms cannot send that content type.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if "application/json" not in ct and request.content_length and request.content_length > 0:
            return jsonify({
                "error": "Content-Type must be application/json for state-changing requests"
            }), 415
    return None


# ── before_request hook installer ────────────────────────────────────────────

def init_auth(app):
    """
    Install authentication middleware on the Flask app.

    - Resolves g.actor for every API route
    - Skips health check and non-API routes
    """
    @app.before_request
    def _before_request_auth():
        g.actor = None
        if not request.path.startswith("/api/v1/"):
            return None
        if request.path == "/api/v1/health":
            return None
        if request.method == "OPTIONS":
            return None

        csrf_error = _check_content_type()
        if csrf_error:
            return csrf_error

        actor = resolve_identity()
        g.actor = actor
        return None

    logger.info("Auth middleware installed")
