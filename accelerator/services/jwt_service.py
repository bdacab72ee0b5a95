"""
JWT Service: session token generation and verification.

Session token: 1 day (configurable via SESSION_TOKEN_EXPIRES)
Algorithm:     HS256

Token payload:
{
    "sub": "<user_id>",
    "type": "session",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}

Roles are never read from the token; the access guard looks them up in
the users table on every request.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app


# ─── Defaults ────────────────────────────────────────────────
DEFAULT_SESSION_EXPIRES = 86400    # 1 day
ALGORITHM = "HS256"
TOKEN_TYPE = "session"


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_session_expires():
    return current_app.config.get("SESSION_TOKEN_EXPIRES", DEFAULT_SESSION_EXPIRES)


def generate_session_token(user_id: int, expires_in: int | None = None) -> str:
    """Sign a session token for ``user_id``."""
    now = datetime.now(timezone.utc)
    lifetime = _get_session_expires() if expires_in is None else expires_in
    payload = {
        # PyJWT validates that "sub" is a string
        "sub": str(user_id),
        "type": TOKEN_TYPE,
        "iat": now,
        "exp": now + timedelta(seconds=lifetime),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def decode_session_token(token: str) -> dict:
    """
    Decode and verify a session token.

    Returns the payload dict on success.
    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])

    if payload.get("type") != TOKEN_TYPE:
        raise jwt.InvalidTokenError(f"Expected {TOKEN_TYPE} token, got {payload.get('type')}")

    return payload


def user_id_from_token(token: str) -> int | None:
    """Return the user id carried by a valid token, or None."""
    try:
        payload = decode_session_token(token)
        return int(payload["sub"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError):
        return None
