"""Fixed-cadence step scheduler.

The host calls :meth:`StepScheduler.tick` once per render frame. Each tick that
steps the simulation zeroes ``qfrc_applied``, runs the before-step callbacks,
advances physics, runs the after-step callbacks and reports the new time.
"""

from enum import Enum
from typing import Callable, Sequence
import numpy as np
from loguru import logger

from mjcontrol.config import DEFAULT_FRAME_DT, SimulationSettings
from mjcontrol.engine import Model, MujocoEngine, PhysicsEngine, State
from mjcontrol.errors import DimensionMismatch, SchedulerDisposedError
from mjcontrol.registry import CallbackHandle, CallbackRegistry, Phase, StepCallback
from mjcontrol.snapshot import StateSnapshot, capture_state, restore_state

StepObserver = Callable[[float], None]


class SchedulerStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    DISPOSED = "disposed"


class StepScheduler:
    """
    Owns simulation time advancement for one model/state pair.

    The scheduler is single-threaded and cooperative: nothing happens between
    calls to :meth:`tick`. Callbacks may not tick the scheduler themselves and
    may not register or unregister callbacks of the phase being dispatched.

    Example:
        ```python
        scheduler = StepScheduler(MujocoEngine())
        scheduler.attach(model, data)
        handle = scheduler.register_before_step(lambda m, d: ...)

        # Once per render frame:
        scheduler.tick(frame_dt)
        ```
    """

    engine: PhysicsEngine
    settings: SimulationSettings
    registry: CallbackRegistry
    on_step: StepObserver | None
    on_reset: StepCallback | None
    frame_count: int
    physics_steps: int

    def __init__(
        self,
        engine: PhysicsEngine | None = None,
        settings: SimulationSettings | None = None,
        on_step: StepObserver | None = None,
        on_reset: StepCallback | None = None,
    ):
        """
        Initialize an idle scheduler.

        Args:
            engine: Physics engine adapter. Defaults to :class:`MujocoEngine`.
            settings: Stepping and reset configuration.
            on_step: Optional observer called with the new simulation time after each stepping tick.
            on_reset: Optional host hook run during :meth:`reset`, before reset observers.
        """
        self.engine = engine if engine is not None else MujocoEngine()
        self.settings = settings if settings is not None else SimulationSettings()
        self.registry = CallbackRegistry()
        self.on_step = on_step
        self.on_reset = on_reset
        self.frame_count = 0
        self.physics_steps = 0
        self._model: Model | None = None
        self._state: State | None = None
        self._disposed = False
        self._in_tick = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def model(self) -> Model | None:
        return self._model

    @property
    def state(self) -> State | None:
        return self._state

    @property
    def attached(self) -> bool:
        return self._model is not None and self._state is not None

    @property
    def status(self) -> SchedulerStatus:
        if self._disposed:
            return SchedulerStatus.DISPOSED
        if not self.attached:
            return SchedulerStatus.IDLE
        if self.settings.step.paused:
            return SchedulerStatus.PAUSED
        return SchedulerStatus.RUNNING

    def attach(self, model: Model, state: State) -> None:
        """
        Attach a model/state pair and make derived poses consistent.

        Attaching again swaps the simulation (e.g. after loading a new scene).

        Raises:
            SchedulerDisposedError: If the scheduler was detached before.
        """
        if self._disposed:
            raise SchedulerDisposedError("Cannot attach a disposed scheduler")
        self._model = model
        self._state = state
        self.engine.forward(model, state)
        logger.info(
            f"[StepScheduler] Attached model (nq={len(state.qpos)}, nv={len(state.qvel)}, nu={len(state.ctrl)})"
        )

    def detach(self) -> None:
        """Drop the model/state pair. Further ticks are no-ops."""
        self._model = None
        self._state = None
        self._disposed = True
        logger.info("[StepScheduler] Detached, scheduler disposed")

    # ------------------------------------------------------------------
    # Per-frame loop
    # ------------------------------------------------------------------

    def tick(self, real_dt: float = DEFAULT_FRAME_DT) -> bool:
        """
        Run one frame of the control loop.

        Args:
            real_dt: Real seconds since the previous frame. Clamped to
                ``[0, max_frame_dt]`` before the speed multiplier is applied.

        Returns:
            bool: True if physics was stepped during this tick.

        Raises:
            RuntimeError: If called from inside a running callback.
        """
        if self._in_tick:
            raise RuntimeError("StepScheduler.tick() is not re-entrant")
        model, state = self._model, self._state
        if model is None or state is None:
            return False

        step = self.settings.step
        if step.paused and step.pending_single_steps == 0:
            return False

        self._in_tick = True
        try:
            state.qfrc_applied[:] = 0.0
            self.registry.dispatch(Phase.BEFORE_STEP, model, state)
            steps = self._advance(model, state, real_dt)
            self.registry.dispatch(Phase.AFTER_STEP, model, state)
        finally:
            self._in_tick = False

        self.frame_count += 1
        self.physics_steps += steps
        if self.on_step is not None:
            self.on_step(float(state.time))
        return True

    def _advance(self, model: Model, state: State, real_dt: float) -> int:
        step = self.settings.step
        pending = step.pending_single_steps
        if pending > 0:
            # The request is spent even if the engine raises mid-batch.
            try:
                for _ in range(pending):
                    self.engine.step(model, state)
            finally:
                step.pending_single_steps = 0
            logger.debug(f"[StepScheduler] Consumed {pending} single step(s)")
            return pending

        dt = min(max(float(real_dt), 0.0), step.max_frame_dt)
        frame_time = dt * step.speed
        start_time = state.time
        steps = 0
        while state.time - start_time < frame_time:
            before = state.time
            for _ in range(step.substeps):
                self.engine.step(model, state)
            steps += step.substeps
            if state.time <= before:
                logger.warning(
                    "[StepScheduler] Physics step did not advance time, ending frame early"
                )
                break
        return steps

    # ------------------------------------------------------------------
    # Host controls
    # ------------------------------------------------------------------

    @property
    def paused(self) -> bool:
        return self.settings.step.paused

    @property
    def speed(self) -> float:
        return self.settings.step.speed

    @property
    def pending_single_steps(self) -> int:
        return self.settings.step.pending_single_steps

    def set_paused(self, paused: bool) -> None:
        self.settings.step.paused = bool(paused)

    def toggle_pause(self) -> bool:
        self.settings.step.paused = not self.settings.step.paused
        return self.settings.step.paused

    def set_speed(self, multiplier: float) -> None:
        """Set the simulated-seconds-per-real-second multiplier (must be > 0)."""
        self.settings.step.speed = multiplier

    def set_substeps(self, substeps: int) -> None:
        self.settings.step.substeps = substeps

    def request_single_steps(self, n: int = 1) -> None:
        """
        Request exactly ``n`` physics steps on the next tick, even while paused.

        The whole request is consumed by the next tick; a new request replaces
        one that has not been consumed yet.
        """
        self.settings.step.pending_single_steps = n

    def get_time(self) -> float:
        return float(self._state.time) if self._state is not None else 0.0

    def get_timestep(self) -> float:
        if self._model is None:
            return 0.002
        return float(self._model.opt.timestep)

    def set_timestep(self, dt: float) -> None:
        if dt <= 0.0:
            raise ValueError(f"Timestep must be positive, got {dt}")
        if self._model is not None:
            self._model.opt.timestep = dt

    def set_gravity(self, gravity: Sequence[float]) -> None:
        if self._model is not None:
            self._model.opt.gravity[:] = np.asarray(gravity, dtype=np.float64).reshape(3)

    # ------------------------------------------------------------------
    # Callback registration
    # ------------------------------------------------------------------

    def register_before_step(self, callback: StepCallback) -> CallbackHandle:
        return self.registry.register(Phase.BEFORE_STEP, callback)

    def register_after_step(self, callback: StepCallback) -> CallbackHandle:
        return self.registry.register(Phase.AFTER_STEP, callback)

    def register_reset_observer(self, callback: StepCallback) -> CallbackHandle:
        return self.registry.register(Phase.RESET, callback)

    def unregister(self, handle: CallbackHandle) -> bool:
        return self.registry.unregister(handle)

    # ------------------------------------------------------------------
    # Reset and snapshots
    # ------------------------------------------------------------------

    def reset(self) -> bool:
        """
        Reset the simulation and re-apply the configured home pose.

        Order: engine reset, home pose, forward kinematics, host ``on_reset``
        hook, reset observers. Observers therefore see the final pose.

        Returns:
            bool: False if no simulation is attached.

        Raises:
            DimensionMismatch: If ``home_joints`` lists more entries than actuators.
        """
        model, state = self._model, self._state
        if model is None or state is None:
            return False

        home = self.settings.home_joints or []
        nu = len(state.ctrl)
        if len(home) > nu:
            raise DimensionMismatch("home_joints", nu, len(home))

        self.engine.reset_state(model, state)
        for actuator_id, value in enumerate(home):
            if value is None:
                continue
            state.ctrl[actuator_id] = value
            qpos_adr = self.engine.actuator_home_qpos_address(model, actuator_id)
            if qpos_adr is not None:
                state.qpos[qpos_adr] = value
        self.engine.forward(model, state)

        if self.on_reset is not None:
            self.on_reset(model, state)
        observers = self.registry.dispatch(Phase.RESET, model, state)
        logger.info(f"[StepScheduler] Reset complete, notified {observers} observer(s)")
        return True

    def save_state(self) -> StateSnapshot | None:
        if self._state is None:
            return None
        return capture_state(self._state)

    def restore_state(self, snapshot: StateSnapshot) -> bool:
        """
        Restore a snapshot taken from this model and recompute derived poses.

        Returns:
            bool: False if no simulation is attached.

        Raises:
            DimensionMismatch: If the snapshot does not match the live model.
        """
        model, state = self._model, self._state
        if model is None or state is None:
            return False
        restore_state(self.engine, model, state, snapshot)
        return True

    def apply_keyframe(self, key: int | str) -> bool:
        """Load a model keyframe's qpos, ctrl and qvel, then run forward kinematics."""
        model, state = self._model, self._state
        if model is None or state is None:
            return False
        key_id = self.engine.name_to_id(model, "key", key) if isinstance(key, str) else key
        if key_id < 0 or key_id >= model.nkey:
            logger.warning(f"[StepScheduler] Keyframe '{key}' not found")
            return False
        state.qpos[:] = model.key_qpos[key_id]
        state.ctrl[:] = model.key_ctrl[key_id]
        state.qvel[:] = model.key_qvel[key_id]
        self.engine.forward(model, state)
        return True

    # ------------------------------------------------------------------
    # Direct state access
    # ------------------------------------------------------------------

    def _write_vector(self, name: str, values) -> np.ndarray:
        target = getattr(self._state, name)
        arr = np.asarray(values, dtype=np.float64).reshape(-1)
        if arr.shape[0] != len(target):
            raise DimensionMismatch(name, len(target), arr.shape[0])
        return arr

    def _read_vector(self, name: str) -> np.ndarray:
        if self._state is None:
            return np.zeros(0)
        return np.array(getattr(self._state, name), dtype=np.float64, copy=True)

    def get_qpos(self) -> np.ndarray:
        return self._read_vector("qpos")

    def get_qvel(self) -> np.ndarray:
        return self._read_vector("qvel")

    def get_ctrl(self) -> np.ndarray:
        return self._read_vector("ctrl")

    def set_qpos(self, values) -> bool:
        if not self.attached:
            return False
        self._state.qpos[:] = self._write_vector("qpos", values)
        self.engine.forward(self._model, self._state)
        return True

    def set_qvel(self, values) -> bool:
        if not self.attached:
            return False
        self._state.qvel[:] = self._write_vector("qvel", values)
        return True

    def set_ctrl(self, values) -> bool:
        if not self.attached:
            return False
        self._state.ctrl[:] = self._write_vector("ctrl", values)
        return True

    def set_actuator(self, name: str, value: float) -> bool:
        if not self.attached:
            return False
        actuator_id = self.engine.name_to_id(self._model, "actuator", name)
        if actuator_id < 0:
            logger.debug(f"[StepScheduler] Unknown actuator '{name}'")
            return False
        self._state.ctrl[actuator_id] = value
        return True

    # ------------------------------------------------------------------
    # Force accumulation (always additive into qfrc_applied)
    # ------------------------------------------------------------------

    def _body_id(self, body: int | str) -> int:
        if isinstance(body, str):
            return self.engine.name_to_id(self._model, "body", body)
        if 0 <= body < len(self._state.xpos):
            return int(body)
        return -1

    def apply_force(self, body: int | str, force, point=None) -> bool:
        """Add a world-frame force at ``point`` (default: body origin) to ``qfrc_applied``."""
        if not self.attached:
            return False
        body_id = self._body_id(body)
        if body_id < 0:
            logger.debug(f"[StepScheduler] Unknown body '{body}', force ignored")
            return False
        if point is None:
            point = self.engine.body_position(self._state, body_id)
        self.engine.apply_force_torque(
            self._model,
            self._state,
            np.asarray(force, dtype=np.float64),
            np.zeros(3),
            np.asarray(point, dtype=np.float64),
            body_id,
            self._state.qfrc_applied,
        )
        return True

    def apply_torque(self, body: int | str, torque) -> bool:
        if not self.attached:
            return False
        body_id = self._body_id(body)
        if body_id < 0:
            logger.debug(f"[StepScheduler] Unknown body '{body}', torque ignored")
            return False
        self.engine.apply_force_torque(
            self._model,
            self._state,
            np.zeros(3),
            np.asarray(torque, dtype=np.float64),
            self.engine.body_position(self._state, body_id),
            body_id,
            self._state.qfrc_applied,
        )
        return True

    def apply_generalized_force(self, values) -> bool:
        if not self.attached:
            return False
        self._state.qfrc_applied[:] += self._write_vector("qfrc_applied", values)
        return True

    def set_external_force(self, body: int | str, force, torque=None) -> bool:
        """
        Set a persistent world-frame wrench on a body through ``xfrc_applied``.

        Unlike :meth:`apply_force` this overwrites the body's wrench and is not
        cleared between ticks; pass zeros to remove it. An engine reset clears it.
        """
        if not self.attached:
            return False
        body_id = self._body_id(body)
        if body_id < 0:
            logger.debug(f"[StepScheduler] Unknown body '{body}', external force ignored")
            return False
        self.engine.set_external_wrench(
            self._state,
            body_id,
            np.asarray(force, dtype=np.float64),
            np.zeros(3) if torque is None else np.asarray(torque, dtype=np.float64),
        )
        return True

    # ------------------------------------------------------------------
    # Sensors and model parameters
    # ------------------------------------------------------------------

    def get_sensor_data(self, sensor: int | str) -> np.ndarray | None:
        """Return a copy of one sensor's readings, or None if it does not exist."""
        if not self.attached:
            return None
        if isinstance(sensor, str):
            sensor_id = self.engine.name_to_id(self._model, "sensor", sensor)
        else:
            sensor_id = int(sensor) if 0 <= sensor < self._model.nsensor else -1
        if sensor_id < 0:
            logger.debug(f"[StepScheduler] Unknown sensor '{sensor}'")
            return None
        return self.engine.sensor_data(self._model, self._state, sensor_id)

    def get_body_mass(self, body: int | str) -> float | None:
        if not self.attached:
            return None
        body_id = self._body_id(body)
        if body_id < 0:
            return None
        return self.engine.body_mass(self._model, body_id)

    def set_body_mass(self, body: int | str, mass: float) -> bool:
        """
        Overwrite a body's mass, e.g. for domain randomization.

        Raises:
            ValueError: If ``mass`` is negative.
        """
        if mass < 0.0:
            raise ValueError(f"Body mass must be non-negative, got {mass}")
        if not self.attached:
            return False
        body_id = self._body_id(body)
        if body_id < 0:
            logger.debug(f"[StepScheduler] Unknown body '{body}', mass unchanged")
            return False
        self.engine.set_body_mass(self._model, body_id, float(mass))
        return True
