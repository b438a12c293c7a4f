class DomainError(Exception):
    """Base exception for business rule violations."""

    status_code = 400


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    status_code = 400


class AuthenticationError(DomainError):
    """Raised when credentials or the bearer token are missing or invalid."""

    status_code = 401


class AuthorizationError(DomainError):
    """Raised when an authenticated user lacks permission for an action."""

    status_code = 403


class NotFoundError(DomainError):
    """Raised when the requested resource does not exist."""

    status_code = 404


class InvalidStateError(DomainError):
    """Raised when a workflow transition is attempted from the wrong state."""

    status_code = 409


class ConflictError(DomainError):
    """Raised on duplicate or overlapping resources and lost write races."""

    status_code = 409
