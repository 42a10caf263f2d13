"""
Rate limiting configuration.

Applies per-blueprint and per-route limits using Flask-Limiter.
The Limiter instance is created in briefed/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from briefed.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

RESPONDENT_LIMIT = "60/minute"
OWNER_LIMIT = "200/minute"
RESEND_LIMIT = "3/minute"

# Endpoints that get their own, stricter limit
_ROUTE_LIMITS = {
    "project_bp.resend_link": RESEND_LIMIT,
}


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Respondent endpoints:  60/minute  (token-authenticated, public links)
        - Owner endpoints:       200/minute
        - Resend link:           3/minute   (each call sends an email)
        - Health check:          exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled (TESTING=%s)", app.config.get("TESTING"))
        return

    for endpoint, limit in _ROUTE_LIMITS.items():
        view = app.view_functions.get(endpoint)
        if view is not None:
            app.view_functions[endpoint] = limiter.limit(limit)(view)

    for bp_name in ("respondent_bp", "revision_bp", "message_bp", "share_bp", "deliverable_bp"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(RESPONDENT_LIMIT)(bp)

    for bp_name in ("project_bp", "notification_bp"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(OWNER_LIMIT)(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured: respondent %s, owner %s, resend %s",
        RESPONDENT_LIMIT, OWNER_LIMIT, RESEND_LIMIT,
    )
