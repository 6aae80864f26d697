from dataclasses import dataclass, field
import numpy as np

from mjcontrol.engine import Model, PhysicsEngine, State
from mjcontrol.errors import DimensionMismatch

SNAPSHOT_FIELDS = ("qpos", "qvel", "ctrl", "act", "qfrc_applied")


def _empty() -> np.ndarray:
    return np.zeros(0, dtype=np.float64)


@dataclass
class StateSnapshot:
    """Owned copy of the restorable part of a simulation state.

    Attributes:
        time: Simulation time in seconds.
        qpos: Generalized positions (nq,).
        qvel: Generalized velocities (nv,).
        ctrl: Actuator controls (nu,).
        act: Actuator activations (na,).
        qfrc_applied: Applied generalized forces (nv,).
    """

    time: float = 0.0
    qpos: np.ndarray = field(default_factory=_empty)
    qvel: np.ndarray = field(default_factory=_empty)
    ctrl: np.ndarray = field(default_factory=_empty)
    act: np.ndarray = field(default_factory=_empty)
    qfrc_applied: np.ndarray = field(default_factory=_empty)

    def copy(self) -> "StateSnapshot":
        return StateSnapshot(
            time=self.time,
            **{name: getattr(self, name).copy() for name in SNAPSHOT_FIELDS},
        )

    def allclose(self, other: "StateSnapshot", atol: float = 0.0) -> bool:
        if self.time != other.time:
            return False
        return all(
            getattr(self, name).shape == getattr(other, name).shape
            and np.allclose(getattr(self, name), getattr(other, name), rtol=0.0, atol=atol)
            for name in SNAPSHOT_FIELDS
        )


def capture_state(state: State) -> StateSnapshot:
    """Deep-copy ``time, qpos, qvel, ctrl, act, qfrc_applied`` out of ``state``."""
    return StateSnapshot(
        time=float(state.time),
        **{
            name: np.array(getattr(state, name), dtype=np.float64, copy=True)
            for name in SNAPSHOT_FIELDS
        },
    )


def restore_state(
    engine: PhysicsEngine, model: Model, state: State, snapshot: StateSnapshot
) -> None:
    """
    Write a snapshot back into ``state`` and recompute derived poses.

    Every length is checked before anything is written, so a mismatching
    snapshot leaves ``state`` untouched.

    Raises:
        DimensionMismatch: If any array length differs from the live state.
    """
    for name in SNAPSHOT_FIELDS:
        expected = len(getattr(state, name))
        actual = len(getattr(snapshot, name))
        if expected != actual:
            raise DimensionMismatch(name, expected, actual)

    state.time = snapshot.time
    for name in SNAPSHOT_FIELDS:
        getattr(state, name)[:] = getattr(snapshot, name)
    engine.forward(model, state)
