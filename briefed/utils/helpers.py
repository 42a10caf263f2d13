"""Shared helpers for the service layer.

commit_or_raise:  the one place a service turns SQLAlchemy failures into
                  domain errors (rollback first, then raise).
utcnow:           timezone-aware "now" used for every timestamp column.
as_utc:           normalise a stored timestamp before comparing it with utcnow.
is_uuid:          strict identifier format check run before storage lookups.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from briefed.core.exceptions import BriefedError, StorageError
from briefed.models import db

logger = logging.getLogger(__name__)

_UUID_RE = re.compile(r"^[0-9a-f-]{36}$", re.IGNORECASE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def is_uuid(value) -> bool:
    """True when ``value`` is a 36-char hex/dash string (the wire id format)."""
    return isinstance(value, str) and bool(_UUID_RE.match(value))


def commit_or_raise(
    *,
    on_integrity: Callable[[], BriefedError] | None = None,
    context: str = "",
) -> None:
    """Commit the current session or raise a domain error.

    IntegrityError   → ``on_integrity()`` when given (e.g. AlreadySubmittedError
                       for the one-brief-per-project constraint), else StorageError
    other DB errors  → StorageError, logged with ``context``

    The session is always rolled back before raising.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if on_integrity is not None:
            logger.info("Integrity guard tripped (%s): %s", context, exc.orig)
            raise on_integrity() from exc
        logger.warning("Integrity error on commit (%s): %s", context, exc.orig)
        raise StorageError() from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database error on commit (%s)", context)
        raise StorageError() from exc
