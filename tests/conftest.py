import mujoco
import pytest

from mjcontrol.demo.__main__ import ARM_XML
from mjcontrol.engine import MujocoEngine
from mjcontrol.scheduler import StepScheduler

LINK_LENGTH = 0.5

# Single hinge about world z with a site at the end of a 0.5 m link.
HINGE_XML = f"""
<mujoco model="hinge">
  <option timestep="0.002"/>
  <worldbody>
    <body name="link">
      <joint name="hinge" type="hinge" axis="0 0 1" damping="1"/>
      <geom type="capsule" fromto="0 0 0 {LINK_LENGTH} 0 0" size="0.02" mass="1"/>
      <site name="tip" pos="{LINK_LENGTH} 0 0"/>
    </body>
  </worldbody>
  <actuator>
    <position name="hinge" joint="hinge" kp="50"/>
  </actuator>
</mujoco>
"""


class CountingEngine(MujocoEngine):
    """MujocoEngine that counts calls for assertions."""

    def __init__(self):
        self.steps = 0
        self.forwards = 0
        self.resets = 0

    def step(self, model, state):
        self.steps += 1
        super().step(model, state)

    def forward(self, model, state):
        self.forwards += 1
        super().forward(model, state)

    def reset_state(self, model, state):
        self.resets += 1
        super().reset_state(model, state)


@pytest.fixture
def hinge_sim():
    model = mujoco.MjModel.from_xml_string(HINGE_XML)
    data = mujoco.MjData(model)
    mujoco.mj_forward(model, data)
    return model, data


@pytest.fixture
def arm_sim():
    model = mujoco.MjModel.from_xml_string(ARM_XML)
    data = mujoco.MjData(model)
    mujoco.mj_forward(model, data)
    return model, data


@pytest.fixture
def engine():
    return CountingEngine()


@pytest.fixture
def scheduler(engine, hinge_sim):
    sched = StepScheduler(engine)
    sched.attach(*hinge_sim)
    return sched


@pytest.fixture
def arm_scheduler(engine, arm_sim):
    sched = StepScheduler(engine)
    sched.attach(*arm_sim)
    return sched
