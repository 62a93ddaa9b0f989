"""Boot stage machine.

Stages are totally ordered; ``advance_to`` runs every pending step up to the
requested stage, in order, and is a no-op for stages already reached. A
stage without a registered step is simply marked. A failing step leaves the
machine at the last stage that completed, so the call may be retried.
"""
from __future__ import annotations

from enum import IntEnum
from typing import Callable, Dict

from core.exceptions import StageError


class Stage(IntEnum):
    UNINITIALIZED = 0
    CORE_LOADED = 1
    BODY_CONFIGURED = 2
    LISTENING = 3
    CLOSED = 4


Step = Callable[[], None]


class StageMachine:
    def __init__(self, steps: Dict[Stage, Step] | None = None) -> None:
        self._stage = Stage.UNINITIALIZED
        self._steps: Dict[Stage, Step] = dict(steps or {})
        self._advancing: Stage | None = None

    @property
    def stage(self) -> Stage:
        return self._stage

    def reached(self, stage: Stage) -> bool:
        return self._stage >= stage

    def on(self, stage: Stage, step: Step) -> None:
        if self.reached(stage):
            raise StageError(f"stage {stage.name} already reached")
        self._steps[stage] = step

    def advance_to(self, target: Stage) -> bool:
        """Run pending steps up to ``target``; True if anything ran."""
        target = Stage(target)
        if self._stage >= target:
            return False
        if self._advancing is not None:
            raise StageError(
                f"advance_to({target.name}) re-entered while running "
                f"step {self._advancing.name}"
            )
        for stage in Stage:
            if stage <= self._stage or stage > target:
                continue
            step = self._steps.get(stage)
            self._advancing = stage
            try:
                if step is not None:
                    step()
            finally:
                self._advancing = None
            self._stage = stage
        return True

    def __repr__(self) -> str:
        return f"StageMachine(stage={self._stage.name})"


__all__ = ["Stage", "StageMachine"]
