import pytest
from unittest.mock import MagicMock

from mjcontrol.errors import ReentrantMutationError
from mjcontrol.registry import CallbackHandle, CallbackRegistry, Phase


class TestPhaseEnum:
    def test_values(self):
        assert Phase.BEFORE_STEP == "before_step"
        assert Phase.AFTER_STEP == "after_step"
        assert Phase.RESET == "reset"

    def test_is_str_enum(self):
        for phase in Phase:
            assert isinstance(phase, str)


def test_same_callback_registered_twice_is_two_entries():
    registry = CallbackRegistry()
    cb = MagicMock()

    h1 = registry.register(Phase.BEFORE_STEP, cb)
    h2 = registry.register(Phase.BEFORE_STEP, cb)

    assert h1 != h2
    assert registry.count(Phase.BEFORE_STEP) == 2

    assert registry.dispatch(Phase.BEFORE_STEP, "model", "state") == 2
    assert cb.call_count == 2
    cb.assert_called_with("model", "state")

    assert registry.unregister(h1) is True
    registry.dispatch(Phase.BEFORE_STEP, "model", "state")
    assert cb.call_count == 3


def test_dispatch_order_is_registration_order():
    registry = CallbackRegistry()
    calls = []
    for i in range(5):
        registry.register(Phase.AFTER_STEP, lambda m, d, i=i: calls.append(i))

    registry.dispatch(Phase.AFTER_STEP, None, None)
    registry.dispatch(Phase.AFTER_STEP, None, None)
    assert calls == [0, 1, 2, 3, 4, 0, 1, 2, 3, 4]


def test_phases_are_independent():
    registry = CallbackRegistry()
    before = MagicMock()
    after = MagicMock()
    registry.register(Phase.BEFORE_STEP, before)
    registry.register(Phase.AFTER_STEP, after)

    registry.dispatch(Phase.BEFORE_STEP, None, None)
    assert before.call_count == 1
    assert after.call_count == 0


def test_unregister_unknown_handle_returns_false():
    registry = CallbackRegistry()
    handle = registry.register(Phase.RESET, MagicMock())
    assert registry.unregister(handle) is True
    assert registry.unregister(handle) is False
    assert registry.unregister(CallbackHandle(id=999, phase=Phase.RESET)) is False


def test_register_rejects_non_callable():
    registry = CallbackRegistry()
    with pytest.raises(TypeError):
        registry.register(Phase.BEFORE_STEP, 42)


def test_register_into_dispatching_phase_raises():
    registry = CallbackRegistry()
    errors = []

    def cb(model, state):
        try:
            registry.register(Phase.BEFORE_STEP, MagicMock())
        except ReentrantMutationError as e:
            errors.append(e)

    registry.register(Phase.BEFORE_STEP, cb)
    registry.dispatch(Phase.BEFORE_STEP, None, None)

    assert len(errors) == 1
    assert isinstance(errors[0], RuntimeError)
    assert registry.count(Phase.BEFORE_STEP) == 1


def test_unregister_from_dispatching_phase_raises():
    registry = CallbackRegistry()
    handles = []

    def cb(model, state):
        registry.unregister(handles[0])

    handles.append(registry.register(Phase.AFTER_STEP, cb))
    with pytest.raises(ReentrantMutationError):
        registry.dispatch(Phase.AFTER_STEP, None, None)

    # Guard is released after the failed dispatch
    assert registry.unregister(handles[0]) is True


def test_mutating_other_phase_during_dispatch_is_allowed():
    registry = CallbackRegistry()
    after = MagicMock()

    def cb(model, state):
        registry.register(Phase.AFTER_STEP, after)

    registry.register(Phase.BEFORE_STEP, cb)
    registry.dispatch(Phase.BEFORE_STEP, None, None)
    assert registry.count(Phase.AFTER_STEP) == 1


def test_snapshot_and_iteration():
    registry = CallbackRegistry()
    a, b = MagicMock(), MagicMock()
    registry.register(Phase.BEFORE_STEP, a)
    registry.register(Phase.RESET, b)

    assert registry.snapshot(Phase.BEFORE_STEP) == (a,)
    assert len(registry) == 2
    assert {h.phase for h in registry} == {Phase.BEFORE_STEP, Phase.RESET}

    registry.clear()
    assert len(registry) == 0
