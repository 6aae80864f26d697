from dataclasses import dataclass
import numpy as np
from loguru import logger

from mjcontrol.config import IkSolverParams
from mjcontrol.engine import Model, PhysicsEngine, State
from mjcontrol.errors import DimensionMismatch
from mjcontrol.utils.linalg import solve_damped_system
from mjcontrol.utils.rotations import angular_delta, orientation_error, quat_to_mat


@dataclass
class IKResult:
    """
    Outcome of a generic IK solve.

    Attributes:
        q: Best joint vector seen during the solve.
        error_norm: Weighted 6D error norm at ``q``.
        iterations: Number of iterations that evaluated the error.
        converged: Whether ``error_norm`` dropped below the tolerance.
        singular_iterations: Iterations whose damped system was singular (zero update).
    """

    q: np.ndarray
    error_norm: float
    iterations: int
    converged: bool
    singular_iterations: int = 0


class _Scratch:
    """Work buffers for one joint count, owned by a single solver instance."""

    def __init__(self, num_joints: int):
        self.num_joints = num_joints
        self.jacobian = np.zeros((6, num_joints))
        self.jjt = np.zeros((6, 6))
        self.error = np.zeros(6)
        self.x = np.zeros(6)
        self.q = np.zeros(num_joints)
        self.dq = np.zeros(num_joints)


class GenericIKSolver:
    """
    Model-agnostic damped least-squares IK solver.

    The Jacobian is estimated by forward finite differences through the
    engine's forward kinematics, so any joint chain works without per-robot
    code. The solve costs ``num_joints + 1`` forward passes per iteration.

    The first ``num_joints`` entries of ``qpos`` are assumed to be the chain
    being solved. ``qpos`` is perturbed during the solve and restored
    bit-for-bit before returning, followed by a final forward pass.

    Each instance keeps its own scratch buffers; use one solver per
    concurrently solving session.
    """

    engine: PhysicsEngine
    params: IkSolverParams
    last_result: IKResult | None
    _scratch: _Scratch | None

    def __init__(self, engine: PhysicsEngine, params: IkSolverParams | None = None):
        """
        Initialize the solver.

        Args:
            engine: Physics engine used for forward kinematics.
            params: Default solver parameters, overridable per call.
        """
        self.engine = engine
        self.params = params if params is not None else IkSolverParams()
        self.last_result = None
        self._scratch = None

    def _scratch_for(self, num_joints: int) -> _Scratch:
        if self._scratch is None or self._scratch.num_joints != num_joints:
            self._scratch = _Scratch(num_joints)
        return self._scratch

    def _weighted_error(
        self,
        site_pos: np.ndarray,
        site_mat: np.ndarray,
        target_pos: np.ndarray,
        target_mat: np.ndarray,
        params: IkSolverParams,
        out: np.ndarray,
    ) -> float:
        out[:3] = (target_pos - site_pos) * params.pos_weight
        out[3:] = orientation_error(site_mat, target_mat) * params.rot_weight
        return float(np.linalg.norm(out))

    def solve_detailed(
        self,
        model: Model | None,
        state: State | None,
        site_id: int,
        num_joints: int,
        target_pos,
        target_quat,
        current_q,
        params: IkSolverParams | None = None,
    ) -> IKResult | None:
        """
        Solve IK for a target world pose of a site.

        Args:
            model: Simulation model, or None if not loaded yet.
            state: Simulation state, or None if not loaded yet.
            site_id: Index of the end-effector site.
            num_joints: Number of leading qpos entries to solve for.
            target_pos: Target position (3,).
            target_quat: Target orientation as (w, x, y, z).
            current_q: Initial joint vector (num_joints,).
            params: Per-call parameters; defaults to ``self.params``.

        Returns:
            IKResult | None: Best-effort result, or None when model/state/site
            are missing or ``num_joints`` is zero.

        Raises:
            DimensionMismatch: If ``current_q`` or ``num_joints`` does not fit the model.
        """
        if model is None or state is None or num_joints <= 0:
            return None
        if site_id is None or site_id < 0 or site_id >= len(state.site_xpos):
            return None

        nq = len(state.qpos)
        if num_joints > nq:
            raise DimensionMismatch("num_joints", nq, num_joints)
        current_q = np.asarray(current_q, dtype=np.float64).reshape(-1)
        if current_q.shape[0] != num_joints:
            raise DimensionMismatch("current_q", num_joints, current_q.shape[0])

        o = params if params is not None else self.params
        n = num_joints
        s = self._scratch_for(n)
        target_pos = np.asarray(target_pos, dtype=np.float64).reshape(3)
        target_mat = quat_to_mat(target_quat)

        saved_qpos = np.array(state.qpos, dtype=np.float64, copy=True)
        q = s.q
        q[:] = current_q

        best_q: np.ndarray | None = None
        best_err = np.inf
        iterations = 0
        singular = 0
        converged = False

        try:
            for _ in range(o.max_iterations):
                iterations += 1
                state.qpos[:n] = q
                self.engine.forward(model, state)
                base_pos, base_mat = self.engine.site_pose(model, state, site_id)

                err_norm = self._weighted_error(
                    base_pos, base_mat, target_pos, target_mat, o, s.error
                )

                if err_norm < best_err:
                    best_err = err_norm
                    best_q = q.copy()

                if err_norm < o.tolerance:
                    converged = True
                    break

                # Forward-difference Jacobian, one column per joint
                for j in range(n):
                    state.qpos[j] = q[j] + o.epsilon
                    self.engine.forward(model, state)
                    pert_pos, pert_mat = self.engine.site_pose(model, state, site_id)
                    s.jacobian[:3, j] = (pert_pos - base_pos) / o.epsilon * o.pos_weight
                    s.jacobian[3:, j] = (
                        angular_delta(base_mat, pert_mat) / o.epsilon * o.rot_weight
                    )
                    state.qpos[j] = q[j]

                # dq = J^T (J J^T + damping I)^-1 e
                np.matmul(s.jacobian, s.jacobian.T, out=s.jjt)
                s.jjt[np.diag_indices(6)] += o.damping
                if not solve_damped_system(s.jjt, s.error, out=s.x):
                    singular += 1
                    logger.debug(
                        "[GenericIKSolver] Singular damped system, skipping update"
                    )
                np.matmul(s.jacobian.T, s.x, out=s.dq)
                q += s.dq
        finally:
            state.qpos[:] = saved_qpos
            self.engine.forward(model, state)

        result = IKResult(
            q=best_q if best_q is not None else current_q.copy(),
            error_norm=float(best_err),
            iterations=iterations,
            converged=converged,
            singular_iterations=singular,
        )
        self.last_result = result
        return result

    def solve(
        self,
        model: Model | None,
        state: State | None,
        site_id: int,
        num_joints: int,
        target_pos,
        target_quat,
        current_q,
        params: IkSolverParams | None = None,
    ) -> np.ndarray | None:
        """
        Same as :meth:`solve_detailed` but returns only the joint vector.

        Non-convergence is not an error; inspect ``last_result`` for the
        final error norm.
        """
        result = self.solve_detailed(
            model, state, site_id, num_joints, target_pos, target_quat, current_q, params
        )
        return None if result is None else result.q


def solve_ik(
    engine: PhysicsEngine,
    model: Model | None,
    state: State | None,
    site_id: int,
    num_joints: int,
    target_pos,
    target_quat,
    current_q,
    params: IkSolverParams | None = None,
) -> np.ndarray | None:
    """One-shot generic IK solve with a throwaway solver."""
    return GenericIKSolver(engine).solve(
        model, state, site_id, num_joints, target_pos, target_quat, current_q, params
    )
