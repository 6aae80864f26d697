"""
Inverse Kinematics (IK) module.

Main components:
- GenericIKSolver: Damped least-squares solver with a finite-difference Jacobian.
- IKSession: Controller that solves towards an animated target every tick.
- IkTarget: Target pose plus optional timed animation.

Example:
    ```python
    from mjcontrol import StepScheduler
    from mjcontrol.ik import IKSession

    scheduler = StepScheduler()
    scheduler.attach(model, data)

    session = IKSession("tcp", num_joints=6)
    session.activate(scheduler)
    session.move_target_to([0.4, 0.0, 0.3], duration_ms=500)

    # In your render loop:
    scheduler.tick(frame_dt)
    ```
"""

from mjcontrol.ik.solver import GenericIKSolver, IKResult, solve_ik
from mjcontrol.ik.target import IkTarget, PoseAnimation
from mjcontrol.ik.session import IKSession

__all__ = ["GenericIKSolver", "IKResult", "IKSession", "IkTarget", "PoseAnimation", "solve_ik"]
