"""
Briefed
Blueprint helpers.
"""

from flask import request

from briefed.core.exceptions import ValidationError


def json_body() -> dict:
    """Request JSON as a dict; anything else is a VALIDATION_FAILED."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def paginate_args(default_limit=50, max_limit=200):
    """Read limit/offset query params.

    Returns:
        (limit, offset)
    """
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return max(limit, 1), offset
