"""Exception types raised by the simulation core."""


class MjControlError(Exception):
    """Base class for all mjcontrol errors."""

    pass


class DimensionMismatch(MjControlError, ValueError):
    """A vector's length does not match the live model.

    Raised when restoring a snapshot or writing a state/control vector whose
    size differs from ``nq``/``nv``/``nu``. Values are never truncated.
    """

    def __init__(self, field: str, expected: int, actual: int):
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Dimension mismatch for '{field}': expected {expected}, got {actual}"
        )


class ReentrantMutationError(MjControlError, RuntimeError):
    """A callback tried to mutate the phase that is currently being dispatched."""

    pass


class SchedulerDisposedError(MjControlError, RuntimeError):
    """The scheduler was detached and can no longer be attached to a simulation."""

    pass
