from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .gateway import ImportSummary
    from .ingestion import UploadedFile


class ActorRole(str, Enum):
    PLATFORM_ADMIN = "platform_admin"
    ORG_ADMIN = "org_admin"


class StageId(str, Enum):
    MANUFACTURER = "manufacturer"
    TEAM = "team"
    EQUIPMENT = "equipment"
    PARTS = "parts"
    ENGINEERS = "engineers"
    INSTALLATIONS = "installations"
    REVIEW = "review"


class Speaker(str, Enum):
    SYSTEM = "system"
    USER = "user"


class TurnKind(str, Enum):
    TEXT = "text"
    FILE = "file"
    CHOICE_PROMPT = "choice-prompt"


class SideEffectKind(str, Enum):
    INVITATIONS = "invitations"
    IMPORT_DRY_RUN = "import_dry_run"
    IMPORT_PERSIST = "import_persist"


@dataclass(frozen=True, slots=True)
class SessionContext:
    """Identity of the person running the wizard, captured once at start."""

    actor_role: ActorRole
    organization_id: str | None = None
    is_authenticated: bool = False
    access_token: str | None = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.organization_id) and bool(self.access_token)


@dataclass(frozen=True, slots=True)
class PendingSideEffect:
    stage: StageId
    kind: SideEffectKind


@dataclass(slots=True)
class StagedImport:
    """A dry-run-validated upload waiting for confirm or cancel."""

    file: UploadedFile
    summary: ImportSummary


@dataclass(slots=True)
class OnboardingState:
    session_id: str
    current_stage_index: int = 0
    per_stage_data: dict[StageId, dict[str, Any]] = field(default_factory=dict)
    pending_side_effects: dict[StageId, PendingSideEffect] = field(default_factory=dict)
    staged_imports: dict[StageId, StagedImport] = field(default_factory=dict)
    failed_invitations: dict[StageId, tuple[str, ...]] = field(default_factory=dict)
    completed: bool = False
    exited: bool = False
    value_updates: list[dict[str, Any]] = field(default_factory=list)

    def is_pending(self, stage: StageId) -> bool:
        return stage in self.pending_side_effects

    def begin_side_effect(self, stage: StageId, kind: SideEffectKind) -> bool:
        """Marks a side effect in flight for a stage; refuses while one is pending."""
        if stage in self.pending_side_effects:
            return False
        self.pending_side_effects[stage] = PendingSideEffect(stage=stage, kind=kind)
        self.log_update("pending_side_effects", None, kind.value, f"begin:{stage.value}")
        return True

    def finish_side_effect(self, stage: StageId) -> None:
        pending = self.pending_side_effects.pop(stage, None)
        if pending is not None:
            self.log_update("pending_side_effects", pending.kind.value, None, f"finish:{stage.value}")

    def stages_with_data(self) -> list[StageId]:
        return [stage for stage, payload in self.per_stage_data.items() if payload]

    def log_update(self, variable: str, old_value: Any, new_value: Any, reason: str) -> None:
        self.value_updates.append(
            {
                "variable": variable,
                "old_value": old_value,
                "new_value": new_value,
                "reason": reason,
            }
        )
