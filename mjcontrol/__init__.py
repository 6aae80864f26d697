"""
Controller scheduling and generic IK for MuJoCo simulations.

The host owns the model/state pair and calls :meth:`StepScheduler.tick` once
per render frame. Controllers plug into the before-step, after-step and reset
phases of the scheduler; the IK session is one such controller.
"""

from mjcontrol.config import (
    CtrlNoiseConfig,
    IkSolverParams,
    SimulationSettings,
    StepSettings,
    TrajectoryConfig,
)
from mjcontrol.engine import MujocoEngine, PhysicsEngine
from mjcontrol.errors import (
    DimensionMismatch,
    MjControlError,
    ReentrantMutationError,
    SchedulerDisposedError,
)
from mjcontrol.registry import CallbackHandle, CallbackRegistry, Phase
from mjcontrol.scheduler import SchedulerStatus, StepScheduler
from mjcontrol.snapshot import StateSnapshot, capture_state, restore_state

__version__ = "0.1.0"

__all__ = [
    "CallbackHandle",
    "CallbackRegistry",
    "CtrlNoiseConfig",
    "DimensionMismatch",
    "IkSolverParams",
    "MjControlError",
    "MujocoEngine",
    "Phase",
    "PhysicsEngine",
    "ReentrantMutationError",
    "SchedulerDisposedError",
    "SchedulerStatus",
    "SimulationSettings",
    "StateSnapshot",
    "StepScheduler",
    "StepSettings",
    "TrajectoryConfig",
    "capture_state",
    "restore_state",
]
