"""Standardised API error responses.

Usage
-----
    from accelerator.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Application not found")
    return api_error(E.VALIDATION_REQUIRED, "status is required")

``register_error_handlers(app)`` maps the platform exception hierarchy
(``accelerator.core.exceptions``) onto these responses once, app-wide.
"""

from __future__ import annotations

import logging

from flask import current_app, jsonify, request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from accelerator.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Auth – HTTP 401 / 403
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (allowed transitions, field errors, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_error_handlers(app):
    """Install app-level handlers for service exceptions and HTTP errors."""

    @app.errorhandler(AuthenticationError)
    def _handle_unauthenticated(exc):
        return api_error(E.UNAUTHENTICATED, str(exc))

    @app.errorhandler(ForbiddenError)
    def _handle_forbidden(exc):
        logger.warning("Forbidden: %s", exc, extra={"path": request.path})
        return api_error(E.FORBIDDEN, str(exc))

    @app.errorhandler(ValidationError)
    def _handle_validation(exc):
        return api_error(E.VALIDATION_INVALID, str(exc), details=exc.details)

    @app.errorhandler(NotFoundError)
    def _handle_not_found(exc):
        return api_error(E.NOT_FOUND, str(exc))

    @app.errorhandler(ConflictError)
    def _handle_conflict(exc):
        return api_error(exc.code, str(exc), details=exc.details)

    @app.errorhandler(IntegrityError)
    def _handle_integrity(exc):
        from accelerator.models import db

        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Conflicting record already exists")

    @app.errorhandler(HTTPException)
    def _handle_http(exc):
        if request.path.startswith("/api/"):
            return jsonify({"error": exc.description or exc.name, "code": exc.name}), exc.code
        return exc

    @app.errorhandler(Exception)
    def _handle_unexpected(exc):
        from accelerator.models import db

        db.session.rollback()
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        details = {"detail": str(exc)} if current_app.debug else None
        return api_error(E.INTERNAL, "Internal server error", details=details)
