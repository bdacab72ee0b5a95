"""
Startup Accelerator Platform
SQLAlchemy models package.

Every model module imports the shared ``db`` instance from here; the
instance is bound to the Flask app in ``accelerator.create_app``.
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    """Timezone-aware UTC now, used as the column default everywhere."""
    return datetime.now(timezone.utc)


def iso(value):
    """Serialize an optional date/datetime for ``to_dict``."""
    return value.isoformat() if value else None


def money(value):
    """Serialize an optional Numeric amount as a float rounded to cents."""
    return round(float(value), 2) if value is not None else None
