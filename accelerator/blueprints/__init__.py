"""
Startup Accelerator Platform
Blueprint registry.
"""

from flask import request


def pagination_args(default_limit=50, max_limit=200):
    """Read limit/offset pagination from the query string.

    Query params:
        limit:  max items (default 50, capped at max_limit)
        offset: starting position (default 0)

    Returns:
        (limit, offset)
    """
    try:
        limit = min(max(int(request.args.get("limit", default_limit)), 1), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return limit, offset


def json_body():
    """The request JSON object, or an empty dict for anything else."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
