"""Exception hierarchy for the kids_gate package."""


class KidsGateError(Exception):
    """Base class for all kids_gate errors."""


class BackendError(KidsGateError):
    """Raised when the record store cannot be reached or rejects a request."""


class ExerciseNotCompleteError(KidsGateError):
    """Raised when a session record is requested before the run finished."""


class InvalidTransitionError(KidsGateError):
    """Raised when a gate operation is not allowed in the current phase."""
