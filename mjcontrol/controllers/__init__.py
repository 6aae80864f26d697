from mjcontrol.controllers.base import Controller
from mjcontrol.controllers.gravity import GravityCompensation
from mjcontrol.controllers.noise import CtrlNoise
from mjcontrol.controllers.trajectory import TrajectoryFrame, TrajectoryRecorder

__all__ = [
    "Controller",
    "CtrlNoise",
    "GravityCompensation",
    "TrajectoryFrame",
    "TrajectoryRecorder",
]
