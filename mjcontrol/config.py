from typing import List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


DEFAULT_FRAME_DT = 1.0 / 60.0

TrajectoryField = Literal["qpos", "qvel", "ctrl", "sensordata"]


class IkSolverParams(BaseModel):
    max_iterations: int = Field(default=50, ge=1)
    damping: float = Field(default=0.01, ge=0.0)
    tolerance: float = Field(default=1e-3, gt=0.0)
    epsilon: float = Field(default=1e-6, gt=0.0)
    pos_weight: float = Field(default=1.0, ge=0.0)
    rot_weight: float = Field(default=0.3, ge=0.0)


class StepSettings(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    paused: bool = False
    speed: float = Field(default=1.0, gt=0.0)
    substeps: int = Field(default=1, ge=1)
    pending_single_steps: int = Field(default=0, ge=0)
    # Upper bound on the real frame delta, bounds catch-up after a stall.
    max_frame_dt: float = Field(default=1.0 / 15.0, gt=0.0)


class SimulationSettings(BaseModel):
    step: StepSettings = Field(default_factory=StepSettings)
    home_joints: Optional[List[Optional[float]]] = None
    num_arm_joints: int = Field(default=7, ge=1)
    tcp_site_name: Optional[str] = None


class CtrlNoiseConfig(BaseModel):
    enabled: bool = True
    rate: float = Field(default=0.01, ge=0.0, le=1.0)
    std: float = Field(default=0.05, ge=0.0)
    seed: Optional[int] = None


class TrajectoryConfig(BaseModel):
    fields: Tuple[TrajectoryField, ...] = ("qpos",)
