import numpy as np
from transforms3d.euler import euler2quat
from transforms3d.quaternions import mat2quat, quat2mat

# Quaternions are (w, x, y, z) throughout, matching MuJoCo and transforms3d.

_ZERO_ANGLE = 1e-6


def quat_to_mat(quat) -> np.ndarray:
    """Convert a (w, x, y, z) quaternion to a 3x3 rotation matrix."""
    q = np.asarray(quat, dtype=np.float64)
    norm = np.linalg.norm(q)
    if norm < 1e-12:
        return np.eye(3)
    return quat2mat(q / norm)


def mat_to_quat(mat) -> np.ndarray:
    """Convert a 3x3 (or flat 9) rotation matrix to a unit (w, x, y, z) quaternion."""
    q = mat2quat(np.asarray(mat, dtype=np.float64).reshape(3, 3))
    # Keep w >= 0 so equal rotations compare equal.
    if q[0] < 0.0:
        q = -q
    return q / np.linalg.norm(q)


def euler_to_quat(roll: float, pitch: float, yaw: float) -> np.ndarray:
    return np.asarray(euler2quat(roll, pitch, yaw, axes="sxyz"), dtype=np.float64)


def _vee(m: np.ndarray) -> np.ndarray:
    # Antisymmetric part of m as a vector: [m21 - m12, m02 - m20, m10 - m01].
    return np.array([m[2, 1] - m[1, 2], m[0, 2] - m[2, 0], m[1, 0] - m[0, 1]])


def orientation_error(r_current: np.ndarray, r_target: np.ndarray) -> np.ndarray:
    """
    Axis-angle vector (log map) of ``r_target @ r_current.T``.

    Near zero rotation the error is exactly zero. Near pi the axis cannot be
    recovered from the skew part through ``sin(angle)``, so the small-angle
    extraction ``0.5 * vee(R - R.T)`` is returned instead.

    Args:
        r_current: Current rotation (3, 3).
        r_target: Target rotation (3, 3).

    Returns:
        np.ndarray: Rotation vector (3,) taking current to target in the world frame.
    """
    r_err = np.asarray(r_target).reshape(3, 3) @ np.asarray(r_current).reshape(3, 3).T
    cos_angle = np.clip((np.trace(r_err) - 1.0) * 0.5, -1.0, 1.0)
    angle = float(np.arccos(cos_angle))

    if angle < _ZERO_ANGLE:
        return np.zeros(3)
    if angle > np.pi - _ZERO_ANGLE:
        return 0.5 * _vee(r_err)
    return (angle / (2.0 * np.sin(angle))) * _vee(r_err)


def angular_delta(r_base: np.ndarray, r_perturbed: np.ndarray) -> np.ndarray:
    """Small-angle rotation vector of ``r_perturbed @ r_base.T``."""
    d_r = np.asarray(r_perturbed).reshape(3, 3) @ np.asarray(r_base).reshape(3, 3).T
    return 0.5 * _vee(d_r)


def slerp(q1, q2, t: float) -> np.ndarray:
    """
    Interpolate along the great arc from ``q1`` to ``q2`` (both w, x, y, z).

    ``q2`` is taken in the hemisphere of ``q1`` so the rotation goes the short
    way. Near-identical inputs fall back to a normalized lerp.
    """
    a = np.asarray(q1, dtype=np.float64)
    b = np.asarray(q2, dtype=np.float64)
    a = a / np.linalg.norm(a)
    b = b / np.linalg.norm(b)

    cos_omega = float(np.dot(a, b))
    if cos_omega < 0.0:
        b, cos_omega = -b, -cos_omega

    omega = np.arccos(min(cos_omega, 1.0))
    sin_omega = np.sin(omega)
    if sin_omega < 1e-3:
        blended = (1.0 - t) * a + t * b
        return blended / np.linalg.norm(blended)
    return (np.sin((1.0 - t) * omega) * a + np.sin(t * omega) * b) / sin_omega


def ease_out_cubic(t: float) -> float:
    t = min(max(t, 0.0), 1.0)
    return 1.0 - (1.0 - t) ** 3
