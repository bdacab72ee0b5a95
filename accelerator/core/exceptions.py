"""
Platform-wide exception hierarchy.

Services raise these types; the app-level error handlers registered in
``accelerator.utils.errors`` map each one to a single HTTP status and
error code, so blueprints never build error responses for business rules.

Usage:
    from accelerator.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Application", resource_id=42)
    raise ValidationError("feedback is required", details={"feedback": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Application", "Budget").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is malformed or violates a business rule.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidTransitionError(ValidationError):
    """An application status change that the transition table does not allow."""

    def __init__(self, current: str, target: str, allowed: list[str]) -> None:
        self.current = current
        self.target = target
        self.allowed_transitions = allowed
        super().__init__(
            f"Cannot transition application from {current} to {target}",
            details={"current_status": current, "allowed_transitions": allowed},
        )


class ConflictError(Exception):
    """Raised when an operation clashes with the current state of a resource.

    Maps to HTTP 409 (ERR_CONFLICT_STATE).
    """

    code = "ERR_CONFLICT_STATE"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class DuplicateError(ConflictError):
    """Raised when an operation would create a duplicate of a unique record.

    Maps to HTTP 409 (ERR_CONFLICT_DUPLICATE).

    Args:
        resource: Model name.
        field: The unique field (or field combination) that would be duplicated.
        value: The conflicting value.
    """

    code = "ERR_CONFLICT_DUPLICATE"

    def __init__(self, resource: str, field: str, value=None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(
            f"{resource} with {field}={value!r} already exists",
            details={"field": field},
        )


class ForbiddenError(Exception):
    """The caller is authenticated but may not act on this resource. Maps to 403."""

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class AuthenticationError(Exception):
    """No valid session identity accompanies the request. Maps to 401."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)
