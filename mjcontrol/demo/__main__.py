import sys
from dataclasses import dataclass
import numpy as np
import tyro
from loguru import logger

from mjcontrol.config import SimulationSettings, StepSettings
from mjcontrol.controllers import GravityCompensation
from mjcontrol.ik import IKSession
from mjcontrol.model_loader import load_simulation
from mjcontrol.scheduler import StepScheduler

ARM_XML = """
<mujoco model="four_dof_arm">
  <option timestep="0.002" gravity="0 0 -9.81"/>
  <default>
    <joint damping="2" armature="0.01"/>
    <position kp="100" ctrlrange="-3.14 3.14"/>
  </default>
  <worldbody>
    <geom name="floor" type="plane" size="1 1 0.1"/>
    <body name="base" pos="0 0 0.1">
      <joint name="yaw" type="hinge" axis="0 0 1"/>
      <geom type="cylinder" size="0.05 0.05"/>
      <body name="upper_arm" pos="0 0 0.05">
        <joint name="shoulder" type="hinge" axis="0 1 0"/>
        <geom type="capsule" fromto="0 0 0 0 0 0.3" size="0.03"/>
        <body name="forearm" pos="0 0 0.3">
          <joint name="elbow" type="hinge" axis="0 1 0"/>
          <geom type="capsule" fromto="0 0 0 0.25 0 0" size="0.025"/>
          <body name="hand" pos="0.25 0 0">
            <joint name="wrist" type="hinge" axis="0 1 0"/>
            <geom type="box" size="0.02 0.02 0.04" pos="0 0 -0.04"/>
            <site name="tcp" pos="0 0 -0.08" quat="0 1 0 0"/>
          </body>
        </body>
      </body>
    </body>
  </worldbody>
  <actuator>
    <position name="yaw" joint="yaw"/>
    <position name="shoulder" joint="shoulder"/>
    <position name="elbow" joint="elbow"/>
    <position name="wrist" joint="wrist"/>
  </actuator>
  <keyframe>
    <key name="home" qpos="0 0 0 0" ctrl="0 0 0 0"/>
  </keyframe>
</mujoco>
"""


@dataclass
class DemoCLI:
    model: str | None = None
    """Path to an MJCF file. The built-in four-joint arm is used when omitted."""
    site: str = "tcp"
    num_joints: int = 4
    ticks: int = 300
    frame_dt: float = 1.0 / 60.0
    speed: float = 1.0
    substeps: int = 1
    target: tuple[float, float, float] = (0.3, 0.0, 0.3)
    duration_ms: float = 1000.0
    gravity_compensation: bool = True
    log_level: str = "INFO"


def run(cli: DemoCLI) -> dict:
    """Run the headless demo and return a summary of the final tracking state."""
    model, data = load_simulation(cli.model if cli.model is not None else ARM_XML)

    settings = SimulationSettings(
        step=StepSettings(speed=cli.speed, substeps=cli.substeps),
        num_arm_joints=cli.num_joints,
        tcp_site_name=cli.site,
    )
    scheduler = StepScheduler(settings=settings)
    scheduler.attach(model, data)

    gravity = GravityCompensation(enabled=cli.gravity_compensation)
    gravity.activate(scheduler)

    # Animations follow simulated time so the demo behaves the same headless.
    session = IKSession.from_settings(settings, clock=scheduler.get_time)
    session.activate(scheduler)
    if session.site_id() < 0:
        raise ValueError(f"Site '{cli.site}' not found in model")
    session.move_target_to(np.asarray(cli.target), duration_ms=cli.duration_ms)

    for _ in range(cli.ticks):
        scheduler.tick(cli.frame_dt)

    site_pos, _ = scheduler.engine.site_pose(model, data, session.site_id())
    target = session.get_current_target()
    position_error = float(np.linalg.norm(target.position - site_pos))
    last = session.solver.last_result if session.solver is not None else None

    summary = {
        "time": scheduler.get_time(),
        "ticks": scheduler.frame_count,
        "physics_steps": scheduler.physics_steps,
        "site_position": site_pos.tolist(),
        "target_position": target.position.tolist(),
        "position_error": position_error,
        "ik_error_norm": None if last is None else last.error_norm,
    }
    logger.info(
        f"[demo] t={summary['time']:.3f}s after {summary['ticks']} ticks, "
        f"position error {position_error:.4f} m"
    )
    return summary


def main():
    cli = tyro.cli(DemoCLI)
    logger.remove()
    logger.add(sys.stderr, level=cli.log_level)
    run(cli)


if __name__ == "__main__":
    main()
