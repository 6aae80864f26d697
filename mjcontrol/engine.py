import mujoco
import numpy as np
from abc import ABC, abstractmethod
from typing import Any, Literal

# The core only touches models and states through the engine below, so any
# object exposing the MuJoCo field names (qpos, qvel, ctrl, ...) will do.
Model = Any
State = Any

ObjectKind = Literal["body", "site", "actuator", "joint", "key", "sensor"]

_OBJ_TYPES: dict[str, mujoco.mjtObj] = {
    "body": mujoco.mjtObj.mjOBJ_BODY,
    "site": mujoco.mjtObj.mjOBJ_SITE,
    "actuator": mujoco.mjtObj.mjOBJ_ACTUATOR,
    "joint": mujoco.mjtObj.mjOBJ_JOINT,
    "key": mujoco.mjtObj.mjOBJ_KEY,
    "sensor": mujoco.mjtObj.mjOBJ_SENSOR,
}

_SCALAR_JOINTS = (int(mujoco.mjtJoint.mjJNT_HINGE), int(mujoco.mjtJoint.mjJNT_SLIDE))


class PhysicsEngine(ABC):
    """
    Narrow interface the scheduler, snapshots and IK solver need from a physics engine.

    All calls are synchronous, mutate ``state`` in place, and must never be
    invoked concurrently with each other.
    """

    @abstractmethod
    def step(self, model: Model, state: State) -> None:
        """Advance the simulation by one engine timestep."""
        pass  # pragma: no cover

    @abstractmethod
    def forward(self, model: Model, state: State) -> None:
        """Recompute derived quantities (body/site world poses) from ``qpos``."""
        pass  # pragma: no cover

    @abstractmethod
    def reset_state(self, model: Model, state: State) -> None:
        """Reset ``state`` to the model's default configuration."""
        pass  # pragma: no cover

    @abstractmethod
    def apply_force_torque(
        self,
        model: Model,
        state: State,
        force: np.ndarray,
        torque: np.ndarray,
        point: np.ndarray,
        body_id: int,
        qfrc_target: np.ndarray,
    ) -> None:
        """Add the generalized force of a Cartesian wrench to ``qfrc_target``."""
        pass  # pragma: no cover

    @abstractmethod
    def name_to_id(self, model: Model, kind: ObjectKind, name: str) -> int:
        """Resolve an object name to its id, or -1 when it does not exist."""
        pass  # pragma: no cover

    @abstractmethod
    def actuator_home_qpos_address(self, model: Model, actuator_id: int) -> int | None:
        """
        Return the qpos address driven directly by an actuator.

        Only actuators whose transmission targets a scalar (hinge or slide)
        joint have one; everything else returns None.
        """
        pass  # pragma: no cover

    def site_pose(
        self, model: Model, state: State, site_id: int
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Read a site's world pose from the forward-kinematics caches.

        Returns:
            tuple[np.ndarray, np.ndarray]: Position (3,) and row-major rotation (3, 3), both copies.
        """
        pos = np.array(state.site_xpos[site_id], dtype=np.float64).reshape(3)
        mat = np.array(state.site_xmat[site_id], dtype=np.float64).reshape(3, 3)
        return pos, mat

    def body_position(self, state: State, body_id: int) -> np.ndarray:
        return np.array(state.xpos[body_id], dtype=np.float64).reshape(3)

    def body_mass(self, model: Model, body_id: int) -> float:
        return float(model.body_mass[body_id])

    def set_body_mass(self, model: Model, body_id: int, mass: float) -> None:
        model.body_mass[body_id] = mass

    def sensor_data(self, model: Model, state: State, sensor_id: int) -> np.ndarray:
        """Copy of one sensor's ``sensor_dim`` values starting at ``sensor_adr``."""
        adr = int(model.sensor_adr[sensor_id])
        dim = int(model.sensor_dim[sensor_id])
        return np.array(state.sensordata[adr : adr + dim], dtype=np.float64, copy=True)

    def set_external_wrench(
        self, state: State, body_id: int, force: np.ndarray, torque: np.ndarray
    ) -> None:
        """Overwrite a body's ``xfrc_applied`` row: world-frame force then torque."""
        state.xfrc_applied[body_id, :3] = np.asarray(force, dtype=np.float64).reshape(3)
        state.xfrc_applied[body_id, 3:] = np.asarray(torque, dtype=np.float64).reshape(3)


class MujocoEngine(PhysicsEngine):
    """PhysicsEngine backed by the official ``mujoco`` Python bindings."""

    def step(self, model: mujoco.MjModel, state: mujoco.MjData) -> None:
        mujoco.mj_step(model, state)

    def forward(self, model: mujoco.MjModel, state: mujoco.MjData) -> None:
        mujoco.mj_forward(model, state)

    def reset_state(self, model: mujoco.MjModel, state: mujoco.MjData) -> None:
        mujoco.mj_resetData(model, state)

    def apply_force_torque(
        self,
        model: mujoco.MjModel,
        state: mujoco.MjData,
        force: np.ndarray,
        torque: np.ndarray,
        point: np.ndarray,
        body_id: int,
        qfrc_target: np.ndarray,
    ) -> None:
        mujoco.mj_applyFT(
            model,
            state,
            np.asarray(force, dtype=np.float64).reshape(3),
            np.asarray(torque, dtype=np.float64).reshape(3),
            np.asarray(point, dtype=np.float64).reshape(3),
            int(body_id),
            qfrc_target,
        )

    def name_to_id(self, model: mujoco.MjModel, kind: ObjectKind, name: str) -> int:
        try:
            obj_type = _OBJ_TYPES[kind]
        except KeyError:
            raise ValueError(f"Unknown object kind: {kind}") from None
        return mujoco.mj_name2id(model, obj_type, name)

    def actuator_home_qpos_address(
        self, model: mujoco.MjModel, actuator_id: int
    ) -> int | None:
        if actuator_id < 0 or actuator_id >= model.nu:
            return None
        if int(model.actuator_trntype[actuator_id]) != int(mujoco.mjtTrn.mjTRN_JOINT):
            return None
        joint_id = int(model.actuator_trnid[actuator_id, 0])
        if joint_id < 0 or joint_id >= model.njnt:
            return None
        if int(model.jnt_type[joint_id]) not in _SCALAR_JOINTS:
            return None
        return int(model.jnt_qposadr[joint_id])
