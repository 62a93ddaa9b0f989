import pytest

from core.exceptions import StageError
from core.lifecycle import Stage, StageMachine


def _machine(calls, fail=None):
    def step(stage):
        def run():
            calls.append(stage)
            if fail is not None and stage is fail:
                raise RuntimeError(f"{stage.name} failed")

        return run

    return StageMachine(
        {
            Stage.CORE_LOADED: step(Stage.CORE_LOADED),
            Stage.BODY_CONFIGURED: step(Stage.BODY_CONFIGURED),
        }
    )


def test_advance_runs_pending_steps_in_order():
    calls = []
    machine = _machine(calls)
    assert machine.advance_to(Stage.BODY_CONFIGURED) is True
    assert calls == [Stage.CORE_LOADED, Stage.BODY_CONFIGURED]
    assert machine.stage is Stage.BODY_CONFIGURED


def test_advance_is_idempotent_and_monotonic():
    calls = []
    machine = _machine(calls)
    machine.advance_to(Stage.CORE_LOADED)
    assert machine.advance_to(Stage.CORE_LOADED) is False
    machine.advance_to(Stage.LISTENING)
    # asking for an earlier stage never moves backwards
    assert machine.advance_to(Stage.CORE_LOADED) is False
    assert machine.stage is Stage.LISTENING
    assert calls == [Stage.CORE_LOADED, Stage.BODY_CONFIGURED]


def test_failed_step_keeps_last_completed_stage_and_retries():
    calls = []
    machine = _machine(calls, fail=Stage.BODY_CONFIGURED)
    with pytest.raises(RuntimeError):
        machine.advance_to(Stage.LISTENING)
    assert machine.stage is Stage.CORE_LOADED
    assert machine.reached(Stage.CORE_LOADED)
    assert not machine.reached(Stage.BODY_CONFIGURED)
    with pytest.raises(RuntimeError):
        machine.advance_to(Stage.BODY_CONFIGURED)
    assert calls == [
        Stage.CORE_LOADED,
        Stage.BODY_CONFIGURED,
        Stage.BODY_CONFIGURED,
    ]


def test_reentrant_advance_raises():
    machine = StageMachine()

    def reenter():
        machine.advance_to(Stage.BODY_CONFIGURED)

    machine.on(Stage.CORE_LOADED, reenter)
    with pytest.raises(StageError):
        machine.advance_to(Stage.CORE_LOADED)
    assert machine.stage is Stage.UNINITIALIZED


def test_on_rejects_reached_stage():
    machine = StageMachine()
    machine.advance_to(Stage.CORE_LOADED)
    with pytest.raises(StageError):
        machine.on(Stage.CORE_LOADED, lambda: None)
