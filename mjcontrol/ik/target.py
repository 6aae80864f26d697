from dataclasses import dataclass, field
import numpy as np

from mjcontrol.utils.rotations import ease_out_cubic, euler_to_quat, slerp

# Tool pointing straight down: 180 degrees about x.
DEFAULT_TARGET_QUAT = euler_to_quat(np.pi, 0.0, 0.0)


def _vec3(values) -> np.ndarray:
    return np.array(values, dtype=np.float64).reshape(3)


def _quat(values) -> np.ndarray:
    q = np.array(values, dtype=np.float64).reshape(4)
    return q / np.linalg.norm(q)


@dataclass
class PoseAnimation:
    """Timed transition of the IK target between two poses.

    Position is interpolated linearly and orientation with slerp, both driven
    by an ease-out cubic of the normalized elapsed time.

    Attributes:
        start_pos: Position at ``start_time_ms``.
        end_pos: Position once the animation completes.
        start_quat: Orientation (w, x, y, z) at ``start_time_ms``.
        end_quat: Orientation (w, x, y, z) once the animation completes.
        start_time_ms: Clock reading when the animation began.
        duration_ms: Length of the animation in milliseconds.
    """

    start_pos: np.ndarray
    end_pos: np.ndarray
    start_quat: np.ndarray
    end_quat: np.ndarray
    start_time_ms: float
    duration_ms: float

    def progress(self, now_ms: float) -> float:
        if self.duration_ms <= 0.0:
            return 1.0
        return min(max((now_ms - self.start_time_ms) / self.duration_ms, 0.0), 1.0)

    def sample(self, now_ms: float) -> tuple[np.ndarray, np.ndarray, bool]:
        """Return ``(position, orientation, finished)`` at ``now_ms``."""
        t = self.progress(now_ms)
        ease = ease_out_cubic(t)
        pos = self.start_pos + (self.end_pos - self.start_pos) * ease
        quat = slerp(self.start_quat, self.end_quat, ease)
        return pos, quat, t >= 1.0


@dataclass
class IkTarget:
    """World-frame pose the IK session steers the end-effector towards."""

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: np.ndarray = field(default_factory=lambda: DEFAULT_TARGET_QUAT.copy())
    animation: PoseAnimation | None = None

    def __post_init__(self):
        self.position = _vec3(self.position)
        self.orientation = _quat(self.orientation)

    @property
    def animating(self) -> bool:
        return self.animation is not None

    def set_pose(self, position, orientation) -> None:
        """Jump to a pose, cancelling any running animation."""
        self.animation = None
        self.position = _vec3(position)
        self.orientation = _quat(orientation)

    def animate_to(self, position, orientation, now_ms: float, duration_ms: float) -> None:
        if duration_ms <= 0.0:
            self.set_pose(position, orientation)
            return
        self.animation = PoseAnimation(
            start_pos=self.position.copy(),
            end_pos=_vec3(position),
            start_quat=self.orientation.copy(),
            end_quat=_quat(orientation),
            start_time_ms=now_ms,
            duration_ms=float(duration_ms),
        )

    def advance(self, now_ms: float) -> None:
        """Move the pose along the running animation, if any."""
        if self.animation is None:
            return
        self.position, self.orientation, finished = self.animation.sample(now_ms)
        if finished:
            self.position = self.animation.end_pos.copy()
            self.orientation = self.animation.end_quat.copy()
            self.animation = None

    def copy(self) -> "IkTarget":
        return IkTarget(
            position=self.position.copy(),
            orientation=self.orientation.copy(),
            animation=self.animation,
        )
