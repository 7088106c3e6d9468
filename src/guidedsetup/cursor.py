from __future__ import annotations

from typing import Any

from .catalog import Stage, StepCatalog
from .state_schema import OnboardingState, SessionContext, StageId


class InvalidTransition(ValueError):
    """Requested stage is not applicable for this session."""


class StepCursor:
    """Current-stage pointer over the applicable stages plus collected stage data."""

    def __init__(self, stages: list[Stage], state: OnboardingState):
        if not stages:
            raise ValueError("StepCursor needs at least one applicable stage")
        self.stages = list(stages)
        self.state = state
        self._positions = {s.id: i for i, s in enumerate(self.stages)}
        if not 0 <= state.current_stage_index < len(self.stages):
            raise InvalidTransition(f"Stage index {state.current_stage_index} is out of range")

    @classmethod
    def for_session(cls, catalog: StepCatalog, context: SessionContext, state: OnboardingState) -> "StepCursor":
        return cls(catalog.applicable_stages(context), state)

    def current(self) -> Stage:
        return self.stages[self.state.current_stage_index]

    def is_applicable(self, stage_id: StageId | str) -> bool:
        try:
            return StageId(stage_id) in self._positions
        except ValueError:
            return False

    def position(self, stage_id: StageId | str) -> int:
        if not self.is_applicable(stage_id):
            raise InvalidTransition(f"Stage '{stage_id}' is not available in this session")
        return self._positions[StageId(stage_id)]

    def next_stage(self, after: StageId | None = None) -> Stage | None:
        idx = self.state.current_stage_index if after is None else self.position(after)
        if idx + 1 >= len(self.stages):
            return None
        return self.stages[idx + 1]

    def advance_to(self, stage_id: StageId | str) -> bool:
        """Moves the pointer. Returns False when already on that stage."""
        target = self.position(stage_id)
        old = self.state.current_stage_index
        if target == old:
            return False
        self.state.current_stage_index = target
        self.state.log_update("current_stage_index", old, target, f"advance_to:{self.stages[target].id.value}")
        return True

    def record_stage_data(self, stage_id: StageId | str, payload: dict[str, Any]) -> None:
        stage = self.stages[self.position(stage_id)].id
        existing = self.state.per_stage_data.setdefault(stage, {})
        before = dict(existing)
        existing.update(payload)
        if before != existing:
            self.state.log_update(f"per_stage_data.{stage.value}", before, dict(existing), "record_stage_data")

    def progress_fraction(self) -> float:
        if len(self.stages) == 1:
            return 1.0
        fraction = self.state.current_stage_index / (len(self.stages) - 1)
        return max(0.0, min(1.0, fraction))

    def step_label(self) -> str:
        return f"Step {self.state.current_stage_index + 1} of {len(self.stages)}"
