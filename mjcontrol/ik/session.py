import time
from typing import Callable
import numpy as np
from loguru import logger

from mjcontrol.config import IkSolverParams, SimulationSettings
from mjcontrol.controllers.base import Controller
from mjcontrol.engine import Model, State
from mjcontrol.errors import DimensionMismatch
from mjcontrol.ik.solver import GenericIKSolver
from mjcontrol.ik.target import DEFAULT_TARGET_QUAT, IkTarget
from mjcontrol.utils.rotations import mat_to_quat

IKSolveFn = Callable[[np.ndarray, np.ndarray, np.ndarray], "np.ndarray | None"]


class IKSession(Controller):
    """
    Stateful IK controller that steers a site towards an (optionally animated) target.

    While enabled, every before-step callback solves IK from the current
    first ``num_joints`` entries of ``qpos`` and writes the solution into
    ``ctrl[:num_joints]``; the arm is driven by position actuators, never
    teleported. On reset the target is re-synced to the post-reset site pose
    and the session is disabled.
    """

    name = "ik"

    site: int | str
    num_joints: int
    params: IkSolverParams
    solver: GenericIKSolver | None
    enabled: bool
    calculating: bool
    _target: IkTarget | None
    _needs_sync: bool

    def __init__(
        self,
        site: int | str,
        num_joints: int,
        params: IkSolverParams | None = None,
        solver: GenericIKSolver | None = None,
        solve_fn: IKSolveFn | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """
        Initialize a disabled IK session.

        Args:
            site: End-effector site id, or a site name resolved through the engine.
            num_joints: Number of leading joints (qpos and ctrl entries) the session drives.
            params: Solver parameters for the generic solver.
            solver: Solver instance to use. Created from the scheduler's engine on activation if None.
            solve_fn: Optional replacement for the generic solver, called as ``fn(pos, quat, current_q)``.
            clock: Monotonic clock in seconds, used to time target animations.
        """
        super().__init__()
        if num_joints <= 0:
            raise ValueError(f"num_joints must be positive, got {num_joints}")
        self.site = site
        self.num_joints = num_joints
        self.params = params if params is not None else IkSolverParams()
        self.solver = solver
        self.solve_fn = solve_fn
        self._clock = clock
        self.enabled = False
        self.calculating = False
        self._target = None
        self._needs_sync = True

    @classmethod
    def from_settings(cls, settings: SimulationSettings, **kwargs) -> "IKSession":
        if settings.tcp_site_name is None:
            raise ValueError("SimulationSettings.tcp_site_name is required for an IK session")
        return cls(settings.tcp_site_name, settings.num_arm_joints, **kwargs)

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    # ------------------------------------------------------------------
    # Site helpers
    # ------------------------------------------------------------------

    def site_id(self) -> int:
        """Resolve the tracked site to an id, or -1 when no model is attached."""
        scheduler = self.scheduler
        if scheduler is None or not scheduler.attached:
            return -1
        if isinstance(self.site, str):
            return scheduler.engine.name_to_id(scheduler.model, "site", self.site)
        return int(self.site)

    def sync_target_to_site(self) -> bool:
        """Snap the target onto the tracked site's current world pose."""
        scheduler = self.scheduler
        site_id = self.site_id()
        if scheduler is None or site_id < 0:
            return False
        pos, mat = scheduler.engine.site_pose(scheduler.model, scheduler.state, site_id)
        if self._target is None:
            self._target = IkTarget(position=pos, orientation=mat_to_quat(mat))
        else:
            self._target.set_pose(pos, mat_to_quat(mat))
        self._needs_sync = False
        return True

    def _ensure_synced(self) -> None:
        if self._needs_sync:
            self.sync_target_to_site()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def activate(self, scheduler) -> None:
        super().activate(scheduler)
        if self.solver is None:
            self.solver = GenericIKSolver(scheduler.engine, self.params)
        self._needs_sync = True
        self._ensure_synced()

    def deactivate(self) -> None:
        super().deactivate()
        self.enabled = False
        self.calculating = False

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = bool(enabled)
        if self.enabled and not (self._target is not None and self._target.animating):
            self.sync_target_to_site()
        logger.info(f"[IKSession] IK {'enabled' if self.enabled else 'disabled'}")

    def move_target_to(self, position, orientation=None, duration_ms: float = 0.0) -> bool:
        """
        Move the IK target, enabling the session if it is disabled.

        Args:
            position: Target world position (3,).
            orientation: Target (w, x, y, z); defaults to the tool pointing down.
            duration_ms: Animate over this many milliseconds; 0 jumps immediately.

        Returns:
            bool: False if no target exists yet (nothing attached).
        """
        self._ensure_synced()
        if self._target is None:
            return False
        if not self.enabled:
            self.set_enabled(True)
        quat = DEFAULT_TARGET_QUAT if orientation is None else orientation
        self._target.animate_to(position, quat, self._now_ms(), duration_ms)
        return True

    def get_current_target(self) -> IkTarget | None:
        """Return a copy of the target after advancing any running animation."""
        self._ensure_synced()
        if self._target is None:
            return None
        self._target.advance(self._now_ms())
        return self._target.copy()

    def active_target(self) -> IkTarget | None:
        """The target while IK is actively solving, else None."""
        if not self.calculating:
            return None
        return self.get_current_target()

    def solve(self, position, orientation, current_q) -> np.ndarray | None:
        """Solve IK for a pose with the session's site, joints and parameters."""
        if self.solve_fn is not None:
            return self.solve_fn(
                np.asarray(position, dtype=np.float64),
                np.asarray(orientation, dtype=np.float64),
                np.asarray(current_q, dtype=np.float64),
            )
        scheduler = self.scheduler
        if scheduler is None or self.solver is None:
            return None
        return self.solver.solve(
            scheduler.model,
            scheduler.state,
            self.site_id(),
            self.num_joints,
            position,
            orientation,
            current_q,
            self.params,
        )

    # ------------------------------------------------------------------
    # Scheduler hooks
    # ------------------------------------------------------------------

    def before_step(self, model: Model, state: State) -> None:
        self._ensure_synced()
        if self._target is not None:
            self._target.advance(self._now_ms())

        if not self.enabled or self._target is None:
            self.calculating = False
            return

        if len(state.ctrl) < self.num_joints:
            raise DimensionMismatch("ctrl", self.num_joints, len(state.ctrl))

        self.calculating = True
        current_q = np.array(state.qpos[: self.num_joints], dtype=np.float64)
        solution = self.solve(self._target.position, self._target.orientation, current_q)
        if solution is not None:
            state.ctrl[: self.num_joints] = solution

    def on_reset(self, model: Model, state: State) -> None:
        self.enabled = False
        self.calculating = False
        self._needs_sync = True
        self.sync_target_to_site()
        logger.debug("[IKSession] Target re-synced after reset")
