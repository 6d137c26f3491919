"""Exception hierarchy for the timer engine."""


class TimerError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(TimerError, ValueError):
    """Raised by ``start()`` when the supplied configuration is unusable."""


class InvalidDuration(ConfigurationError):
    """A segment duration is non-positive, NaN, infinite or too long."""


class InvalidCycleCount(ConfigurationError):
    """The target cycle count is not a positive integer in range."""


class InvalidStateError(TimerError):
    """Raised when an operation is called from the wrong lifecycle state."""


class AlreadyRunning(InvalidStateError):
    """A session is already active."""


class NotRunning(InvalidStateError):
    """The operation needs a running session."""


class NotPaused(InvalidStateError):
    """The operation needs a paused session."""


class UnsupportedOperation(TimerError):
    """The operation does not exist for the active timer mode."""
