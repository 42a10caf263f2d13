"""
Platform-wide exception hierarchy.

Every service raises one of these types; ``briefed.utils.errors`` registers
a single app-level handler against ``BriefedError`` and turns the ``code``
attribute into the HTTP status and JSON envelope.

Usage:
    from briefed.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=project_id)
    raise ValidationError("message is required", details={"message": "required"})
"""


class BriefedError(Exception):
    """Base class. ``code`` is the machine-readable wire value."""

    code = "STORAGE_FAILURE"


class AccessDeniedError(BriefedError):
    """Bad, missing or expired token, or a session that does not own the project.

    The public message is deliberately generic: a respondent must not be able
    to tell a wrong token from a missing project.
    """

    code = "ACCESS_DENIED"

    def __init__(self, message: str = "Invalid or expired link", reason: str | None = None) -> None:
        # reason is for logs only, never serialised
        self.reason = reason
        super().__init__(message)


class NotFoundError(BriefedError):
    """Raised when a requested resource does not exist within the caller's scope.

    Used for BOTH genuinely missing records AND records owned by someone
    else, so existence never leaks.

    Args:
        resource: Human-readable model name (e.g. "Project", "RevisionRequest").
        resource_id: The key that was looked up. Included in logs, not in HTTP response.
    """

    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)

    @property
    def public_message(self) -> str:
        return f"{self.resource} not found"


class InvalidTransitionError(BriefedError):
    """Lifecycle rule violation. Identifies current and requested state."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str, reason: str | None = None) -> None:
        self.current = current
        self.requested = requested
        msg = f"Cannot move from '{current}' to '{requested}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class AlreadySubmittedError(BriefedError):
    """Idempotency guard: the project already produced its brief."""

    code = "ALREADY_SUBMITTED"

    def __init__(self, project_id: str | None = None) -> None:
        self.project_id = project_id
        super().__init__("This brief has already been submitted")


class AlreadyRespondedError(BriefedError):
    """Idempotency guard: a revision request (or a deliverable review round) is answered once."""

    code = "ALREADY_RESPONDED"

    def __init__(
        self,
        revision_id: str | None = None,
        message: str = "This revision request has already been answered",
    ) -> None:
        self.revision_id = revision_id
        super().__init__(message)


class ValidationError(BriefedError):
    """Malformed input caught before any storage access.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    code = "VALIDATION_FAILED"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class StorageError(BriefedError):
    """Opaque downstream failure. Logged with context, surfaced generically."""

    code = "STORAGE_FAILURE"

    def __init__(self, message: str = "Storage failure") -> None:
        super().__init__(message)
