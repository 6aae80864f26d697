import numpy as np
import pytest
from unittest.mock import MagicMock

from mjcontrol.config import IkSolverParams, SimulationSettings
from mjcontrol.errors import DimensionMismatch
from mjcontrol.ik import IKSession
from mjcontrol.ik.target import DEFAULT_TARGET_QUAT
from mjcontrol.scheduler import StepScheduler
from mjcontrol.utils.rotations import ease_out_cubic

LINK_LENGTH = 0.5


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def hinge_pose(theta: float):
    pos = np.array([LINK_LENGTH * np.cos(theta), LINK_LENGTH * np.sin(theta), 0.0])
    quat = np.array([np.cos(theta / 2.0), 0.0, 0.0, np.sin(theta / 2.0)])
    return pos, quat


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session(scheduler, clock):
    s = IKSession("tip", 1, clock=clock)
    s.activate(scheduler)
    return s


def test_activation_syncs_target_to_site(session):
    target = session.get_current_target()
    np.testing.assert_allclose(target.position, [LINK_LENGTH, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(target.orientation, [1.0, 0.0, 0.0, 0.0], atol=1e-12)
    assert session.enabled is False
    assert session.solver is not None


def test_disabled_session_leaves_ctrl(session, scheduler, hinge_sim):
    _, data = hinge_sim
    data.ctrl[:] = 0.3
    scheduler.tick()
    assert data.ctrl[0] == 0.3
    assert session.calculating is False
    assert session.active_target() is None


def test_enabled_session_writes_ctrl(session, scheduler, hinge_sim):
    _, data = hinge_sim
    pos, quat = hinge_pose(0.6)

    assert session.move_target_to(pos, quat) is True
    assert session.enabled is True

    scheduler.tick()

    assert session.calculating is True
    assert data.ctrl[0] == pytest.approx(0.6, abs=1e-2)
    # The arm is driven by the actuator, not teleported
    assert abs(data.qpos[0] - 0.6) > 0.1
    np.testing.assert_allclose(session.active_target().position, pos)


def test_session_tracks_target_over_time(session, scheduler, hinge_sim):
    _, data = hinge_sim
    pos, quat = hinge_pose(0.5)
    session.move_target_to(pos, quat)

    for _ in range(300):
        scheduler.tick()

    assert data.qpos[0] == pytest.approx(0.5, abs=2e-2)


def test_move_target_defaults_to_pointing_down(session):
    session.move_target_to([0.3, 0.0, 0.2])
    target = session.get_current_target()
    np.testing.assert_allclose(target.orientation, DEFAULT_TARGET_QUAT)


def test_animated_move(session, clock):
    start = np.array([LINK_LENGTH, 0.0, 0.0])
    end, quat = hinge_pose(0.8)

    session.move_target_to(end, quat, duration_ms=1000.0)
    assert session.get_current_target().animating

    clock.now = 0.5
    mid = session.get_current_target()
    np.testing.assert_allclose(mid.position, start + (end - start) * ease_out_cubic(0.5))

    clock.now = 1.5
    done = session.get_current_target()
    np.testing.assert_allclose(done.position, end)
    np.testing.assert_allclose(done.orientation, quat)
    assert not done.animating


def test_target_copy_is_independent(session):
    target = session.get_current_target()
    target.position[:] = 9.0
    np.testing.assert_allclose(session.get_current_target().position, [LINK_LENGTH, 0.0, 0.0])


def test_enabling_resyncs_target(session, scheduler):
    session.move_target_to([0.0, 0.4, 0.0])
    session.set_enabled(False)
    scheduler.set_qpos([0.2])

    session.set_enabled(True)
    expected, _ = hinge_pose(0.2)
    np.testing.assert_allclose(session.get_current_target().position, expected, atol=1e-12)


def test_reset_disables_and_resyncs(engine, hinge_sim, clock):
    sched = StepScheduler(engine, settings=SimulationSettings(home_joints=[0.4]))
    sched.attach(*hinge_sim)
    session = IKSession("tip", 1, clock=clock)
    session.activate(sched)
    session.move_target_to([0.0, 0.5, 0.0])
    sched.tick()

    sched.reset()

    assert session.enabled is False
    assert session.calculating is False
    expected, _ = hinge_pose(0.4)
    np.testing.assert_allclose(session.get_current_target().position, expected, atol=1e-12)


def test_deactivate_unregisters(session, scheduler):
    assert len(scheduler.registry) == 2
    session.move_target_to([0.0, 0.5, 0.0])

    session.deactivate()

    assert len(scheduler.registry) == 0
    assert session.enabled is False
    assert not session.active


def test_custom_solve_fn(scheduler, hinge_sim, clock):
    _, data = hinge_sim
    solve_fn = MagicMock(return_value=np.array([0.25]))
    session = IKSession("tip", 1, solve_fn=solve_fn, clock=clock)
    session.activate(scheduler)
    session.move_target_to([0.0, 0.5, 0.0], [1.0, 0.0, 0.0, 0.0])

    scheduler.tick()

    assert data.ctrl[0] == 0.25
    pos, quat, current_q = solve_fn.call_args[0]
    np.testing.assert_allclose(pos, [0.0, 0.5, 0.0])
    np.testing.assert_allclose(quat, [1.0, 0.0, 0.0, 0.0])
    np.testing.assert_array_equal(current_q, [0.0])


def test_solve_failure_keeps_ctrl(scheduler, hinge_sim, clock):
    _, data = hinge_sim
    data.ctrl[:] = 0.1
    session = IKSession("tip", 1, solve_fn=lambda p, q, c: None, clock=clock)
    session.activate(scheduler)
    session.move_target_to([0.0, 0.5, 0.0])

    scheduler.tick()
    assert data.ctrl[0] == 0.1


def test_site_by_id(scheduler, clock):
    session = IKSession(0, 1, params=IkSolverParams(max_iterations=5), clock=clock)
    session.activate(scheduler)
    assert session.site_id() == 0
    assert session.solver.params.max_iterations == 5


def test_unknown_site(scheduler, clock):
    session = IKSession("missing", 1, clock=clock)
    session.activate(scheduler)
    assert session.site_id() == -1
    assert session.get_current_target() is None
    assert session.move_target_to([0.0, 0.0, 0.0]) is False
    assert session.enabled is False


def test_unattached_scheduler(clock):
    session = IKSession("tip", 1, clock=clock)
    session.activate(StepScheduler())
    assert session.site_id() == -1
    assert session.get_current_target() is None
    assert session.move_target_to([0.0, 0.0, 0.0]) is False
    assert session.enabled is False


def test_ctrl_too_short_raises(scheduler, clock):
    session = IKSession("tip", 2, clock=clock)
    session.activate(scheduler)
    session.set_enabled(True)
    with pytest.raises(DimensionMismatch):
        scheduler.tick()


def test_invalid_joint_count():
    with pytest.raises(ValueError):
        IKSession("tip", 0)


def test_from_settings():
    session = IKSession.from_settings(SimulationSettings(tcp_site_name="tcp", num_arm_joints=4))
    assert session.site == "tcp"
    assert session.num_joints == 4

    with pytest.raises(ValueError):
        IKSession.from_settings(SimulationSettings())
