"""
Token Guard: respondent link secrets.

Two independent secrets live on every project:

  access token   64 hex chars (256 bits).  Grants the respondent read/write
                 access to their questionnaire.  Issued once at project
                 creation, replaced only by an explicit owner rotation.
  share token    URL-safe random string.  Grants read-only access to the
                 finished brief.  Enabled/disabled independently; knowing
                 one secret reveals nothing about the other.

verify_token() is CPU-bound and never touches storage: the comparison time
depends only on the length of the inputs, not on where they first differ.
"""

import hmac
import secrets

ACCESS_TOKEN_BYTES = 32
SHARE_TOKEN_BYTES = 24

TOKEN_HEADER = "x-magic-token"
TOKEN_QUERY_PARAM = "token"

# Compared against when there is nothing real to compare, so a missing
# project or missing token costs the same as a wrong one.
_DUMMY_TOKEN = secrets.token_hex(ACCESS_TOKEN_BYTES)


def issue_access_token() -> str:
    """Return a fresh respondent access token."""
    return secrets.token_hex(ACCESS_TOKEN_BYTES)


def issue_share_token() -> str:
    """Return a fresh read-only share token."""
    return secrets.token_urlsafe(SHARE_TOKEN_BYTES)


def verify_token(presented, stored) -> bool:
    """Constant-time comparison of a presented token against the stored one.

    Returns False (never raises) when either side is empty or not a string,
    when the encoded lengths differ, or when encoding fails.
    """
    try:
        if not isinstance(presented, str) or not isinstance(stored, str):
            return False
        if not presented or not stored:
            return False
        a = presented.encode("utf-8")
        b = stored.encode("utf-8")
        if len(a) != len(b):
            return False
        return hmac.compare_digest(a, b)
    except Exception:
        return False


def verify_or_dummy(presented, stored) -> bool:
    """verify_token() that still burns one comparison when inputs are missing."""
    if not presented or not stored:
        hmac.compare_digest(_DUMMY_TOKEN.encode(), _DUMMY_TOKEN.encode())
        return False
    return verify_token(presented, stored)


def extract_presented_token(req) -> str | None:
    """Pull the respondent token from a Flask request.

    The ``x-magic-token`` header wins over the ``token`` query parameter
    when both are present.
    """
    token = (req.headers.get(TOKEN_HEADER) or "").strip()
    if token:
        return token
    return (req.args.get(TOKEN_QUERY_PARAM) or "").strip() or None
