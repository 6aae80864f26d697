"""Ordered callback registry for the step and reset phases.

Callbacks are keyed by opaque handles, so the same function registered twice
produces two independent entries. Iteration order is registration order and
is frozen for the duration of one dispatch.
"""

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator
from loguru import logger

from mjcontrol.engine import Model, State
from mjcontrol.errors import ReentrantMutationError

StepCallback = Callable[[Model, State], None]


class Phase(str, Enum):
    """Points in a frame where callbacks run."""

    BEFORE_STEP = "before_step"
    AFTER_STEP = "after_step"
    RESET = "reset"


@dataclass(frozen=True)
class CallbackHandle:
    """Opaque token returned by :meth:`CallbackRegistry.register`.

    Attributes:
        id: Unique, monotonically increasing registration id.
        phase: The phase the callback was registered in.
    """

    id: int
    phase: Phase


class CallbackRegistry:
    """Holds ordered callback sets per :class:`Phase`.

    Registering or unregistering a callback in a phase that is currently being
    dispatched is not allowed and raises :class:`ReentrantMutationError`.
    Mutating a *different* phase from inside a callback is fine.
    """

    _entries: dict[Phase, dict[int, StepCallback]]
    _dispatching: set[Phase]

    def __init__(self):
        self._entries = {phase: {} for phase in Phase}
        self._dispatching = set()
        self._ids = itertools.count(1)

    def register(self, phase: Phase, callback: StepCallback) -> CallbackHandle:
        """Add ``callback`` to ``phase`` and return its handle.

        Args:
            phase: Phase to run the callback in.
            callback: Callable taking ``(model, state)``.

        Returns:
            CallbackHandle: Token to pass to :meth:`unregister`.

        Raises:
            ReentrantMutationError: If ``phase`` is being dispatched.
            TypeError: If ``callback`` is not callable.
        """
        phase = Phase(phase)
        if not callable(callback):
            raise TypeError(f"Callback must be callable, got {type(callback).__name__}")
        self._check_mutable(phase)
        handle = CallbackHandle(id=next(self._ids), phase=phase)
        self._entries[phase][handle.id] = callback
        logger.debug(f"[CallbackRegistry] Registered {phase.value} callback #{handle.id}")
        return handle

    def unregister(self, handle: CallbackHandle) -> bool:
        """Remove a callback. Returns False if the handle is unknown or already removed."""
        self._check_mutable(handle.phase)
        removed = self._entries[handle.phase].pop(handle.id, None) is not None
        if removed:
            logger.debug(
                f"[CallbackRegistry] Unregistered {handle.phase.value} callback #{handle.id}"
            )
        return removed

    def snapshot(self, phase: Phase) -> tuple[StepCallback, ...]:
        return tuple(self._entries[Phase(phase)].values())

    def dispatch(self, phase: Phase, model: Model, state: State) -> int:
        """Run every callback of ``phase`` once, in registration order.

        Returns:
            int: Number of callbacks invoked.
        """
        phase = Phase(phase)
        callbacks = self.snapshot(phase)
        self._dispatching.add(phase)
        try:
            for callback in callbacks:
                callback(model, state)
        finally:
            self._dispatching.discard(phase)
        return len(callbacks)

    def clear(self) -> None:
        for phase in Phase:
            self._check_mutable(phase)
            self._entries[phase].clear()

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def __iter__(self) -> Iterator[CallbackHandle]:
        for phase, entries in self._entries.items():
            for handle_id in entries:
                yield CallbackHandle(id=handle_id, phase=phase)

    def count(self, phase: Phase) -> int:
        return len(self._entries[Phase(phase)])

    def _check_mutable(self, phase: Phase) -> None:
        if phase in self._dispatching:
            raise ReentrantMutationError(
                f"Cannot modify '{phase.value}' callbacks while they are being dispatched"
            )
