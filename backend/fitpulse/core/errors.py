"""Domain errors raised by the progress engine and mapped to HTTP responses in main."""


class EngineError(Exception):
    """Base class for progress-engine errors."""


class ValidationError(EngineError):
    """Bad input, rejected before any computation."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class NotFoundError(EngineError):
    """Resource is missing or does not belong to the requester."""

    def __init__(self, resource: str, resource_id: object | None = None) -> None:
        detail = f"{resource.capitalize()} not found."
        super().__init__(detail)
        self.resource = resource
        self.resource_id = resource_id
        self.message = detail


class InconsistentStateError(EngineError):
    """Stored data refers to a goal or badge kind the engine does not know."""


class ConcurrencyConflict(EngineError):
    """A conditional write lost to a concurrent writer; callers treat it as already handled."""
