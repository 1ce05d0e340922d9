"""Domain exceptions."""


class DomainException(Exception):
    """Base exception for domain layer errors."""


class RepositoryError(DomainException):
    """A storage read or write failed."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class EntityNotFoundError(RepositoryError):
    def __init__(self, entity_type: str, entity_id: str, *, message: str | None = None):
        super().__init__(message or f"{entity_type} not found: {entity_id}")
        self.entity_id = entity_id


class EntityValidationError(DomainException):
    """A request argument was rejected before any work started."""

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid {field}: {reason}")
        self.field = field
        self.reason = reason


class InvalidStatusTransitionError(DomainException):
    """Raised when a lot or page is asked to move to a status it cannot reach."""

    def __init__(self, entity_type: str, entity_id: str, current: str, requested: str):
        super().__init__(
            f"{entity_type} {entity_id}: invalid status transition from {current} to {requested}"
        )
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
