"""Domain exceptions for the planning core."""


class PlanningError(Exception):
    """Base class for planning errors."""


class ValidationError(PlanningError):
    """Raised when a client lacks enough liked ingredients for a plan type."""


class StateConflictError(PlanningError):
    """Raised when an action is not allowed in the current plan state."""


class PersistenceError(PlanningError):
    """Raised when the backing store fails to read or write."""


class PreconditionError(PlanningError):
    """Raised when the snapshot builder receives an unlocked plan."""


class NotFoundError(PlanningError):
    """Raised when a referenced record does not exist."""


class GenerationError(PlanningError):
    """Raised when the external plan generator fails or returns bad data."""
