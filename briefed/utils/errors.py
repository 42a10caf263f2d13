"""Standardised API error responses.

Usage
-----
    from briefed.utils.errors import api_error, E

    return api_error(E.VALIDATION_FAILED, "stepKey is required")
    return api_error(E.ACCESS_DENIED, "Invalid or expired link")

``register_error_handlers(app)`` maps every ``BriefedError`` raised by the
service layer to the same envelope.
"""

from __future__ import annotations

import logging

from flask import jsonify, request

from briefed.core.exceptions import (
    AccessDeniedError,
    BriefedError,
    NotFoundError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (wire values)."""

    ACCESS_DENIED = "ACCESS_DENIED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    ALREADY_SUBMITTED = "ALREADY_SUBMITTED"
    ALREADY_RESPONDED = "ALREADY_RESPONDED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    NOT_FOUND = "NOT_FOUND"
    STORAGE_FAILURE = "STORAGE_FAILURE"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.ACCESS_DENIED: 403,
    E.INVALID_TRANSITION: 409,
    E.ALREADY_SUBMITTED: 409,
    E.ALREADY_RESPONDED: 409,
    E.VALIDATION_FAILED: 400,
    E.NOT_FOUND: 404,
    E.STORAGE_FAILURE: 500,
}

# Expected, user-facing outcomes: logged at INFO, not as failures
_EXPECTED = frozenset({E.ALREADY_SUBMITTED, E.ALREADY_RESPONDED, E.INVALID_TRANSITION})


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
        Human-readable explanation.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field errors, current/requested state).

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


def _handle_briefed_error(error: BriefedError):
    extra = {"error_code": error.code, "path": request.path}

    if isinstance(error, AccessDeniedError):
        logger.info("Access denied: %s", error.reason or "no reason", extra=extra)
        return api_error(error.code, str(error))

    if isinstance(error, NotFoundError):
        logger.info("%s", error, extra=extra)
        return api_error(error.code, error.public_message)

    if isinstance(error, ValidationError):
        return api_error(error.code, str(error), details=error.details)

    if isinstance(error, StorageError):
        logger.error("Storage failure surfaced to caller: %s", error, extra=extra)
        return api_error(error.code, "Internal server error")

    if error.code in _EXPECTED:
        logger.info("%s", error, extra=extra)
    details = None
    if hasattr(error, "current") and hasattr(error, "requested"):
        details = {"current": error.current, "requested": error.requested}
    return api_error(error.code, str(error), details=details)


def register_error_handlers(app) -> None:
    """Attach the domain error handler plus the generic HTTP fallbacks."""

    app.register_error_handler(BriefedError, _handle_briefed_error)

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": E.NOT_FOUND, "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large", "code": E.VALIDATION_FAILED}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description, "code": E.VALIDATION_FAILED}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": E.STORAGE_FAILURE}, 500
