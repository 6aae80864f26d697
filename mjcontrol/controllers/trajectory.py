from dataclasses import dataclass
import numpy as np

from mjcontrol.config import TrajectoryConfig
from mjcontrol.controllers.base import Controller
from mjcontrol.engine import Model, State


@dataclass
class TrajectoryFrame:
    time: float
    qpos: np.ndarray
    qvel: np.ndarray | None = None
    ctrl: np.ndarray | None = None
    sensordata: np.ndarray | None = None

    def to_dict(self) -> dict:
        out: dict = {"time": self.time, "qpos": self.qpos.tolist()}
        for name in ("qvel", "ctrl", "sensordata"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value.tolist()
        return out


class TrajectoryRecorder(Controller):
    """Records a copy of the selected state fields after every stepping tick."""

    name = "trajectory_recorder"

    def __init__(self, config: TrajectoryConfig | None = None, **overrides):
        super().__init__()
        base = config if config is not None else TrajectoryConfig()
        self.config = TrajectoryConfig.model_validate({**base.model_dump(), **overrides})
        self.recording = False
        self.frames: list[TrajectoryFrame] = []

    def start(self) -> None:
        self.frames = []
        self.recording = True

    def stop(self) -> list[TrajectoryFrame]:
        self.recording = False
        return self.frames

    def to_dicts(self) -> list[dict]:
        return [frame.to_dict() for frame in self.frames]

    def after_step(self, model: Model, state: State) -> None:
        if not self.recording:
            return
        fields = self.config.fields
        frame = TrajectoryFrame(time=float(state.time), qpos=np.array(state.qpos, copy=True))
        if "qvel" in fields:
            frame.qvel = np.array(state.qvel, copy=True)
        if "ctrl" in fields:
            frame.ctrl = np.array(state.ctrl, copy=True)
        if "sensordata" in fields and getattr(state, "sensordata", None) is not None:
            frame.sensordata = np.array(state.sensordata, copy=True)
        self.frames.append(frame)
