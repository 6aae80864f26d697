import mujoco
import numpy as np
import pytest

from mjcontrol.engine import MujocoEngine

# A site transmission has no home qpos address.
MIXED_XML = """
<mujoco model="mixed">
  <worldbody>
    <body name="slider">
      <joint name="slide" type="slide" axis="1 0 0"/>
      <geom type="box" size="0.05 0.05 0.05" mass="1"/>
      <site name="s"/>
    </body>
  </worldbody>
  <actuator>
    <position name="slide" joint="slide" kp="10"/>
    <motor name="site_motor" site="s" gear="1 0 0 0 0 0"/>
  </actuator>
</mujoco>
"""


@pytest.fixture
def mixed_sim():
    model = mujoco.MjModel.from_xml_string(MIXED_XML)
    return model, mujoco.MjData(model)


def test_home_qpos_address_for_joint_actuators(arm_sim, hinge_sim):
    engine = MujocoEngine()
    model, _ = arm_sim
    assert [engine.actuator_home_qpos_address(model, i) for i in range(model.nu)] == [0, 1, 2, 3]
    assert engine.actuator_home_qpos_address(hinge_sim[0], 0) == 0


def test_home_qpos_address_out_of_range(hinge_sim):
    engine = MujocoEngine()
    model, _ = hinge_sim
    assert engine.actuator_home_qpos_address(model, -1) is None
    assert engine.actuator_home_qpos_address(model, model.nu) is None


def test_home_qpos_address_skips_non_joint_transmission(mixed_sim):
    engine = MujocoEngine()
    model, _ = mixed_sim
    assert engine.actuator_home_qpos_address(model, 0) == 0
    assert engine.actuator_home_qpos_address(model, 1) is None


def test_name_to_id(hinge_sim):
    engine = MujocoEngine()
    model, _ = hinge_sim
    assert engine.name_to_id(model, "body", "link") == 1
    assert engine.name_to_id(model, "site", "missing") == -1
    with pytest.raises(ValueError, match="Unknown object kind"):
        engine.name_to_id(model, "camera", "x")


def test_external_wrench_layout(hinge_sim):
    engine = MujocoEngine()
    _, data = hinge_sim
    engine.set_external_wrench(data, 1, np.array([1.0, 2.0, 3.0]), np.array([4.0, 5.0, 6.0]))
    np.testing.assert_array_equal(data.xfrc_applied[1], [1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
    np.testing.assert_array_equal(data.xfrc_applied[0], np.zeros(6))
