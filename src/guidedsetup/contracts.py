from __future__ import annotations

from dataclasses import dataclass

from .actions import SKIP_ACTIONS, UPLOAD_ACTIONS, Action
from .catalog import StepCatalog
from .cursor import StepCursor
from .router import ActionRouter
from .state_schema import ActorRole, OnboardingState, SessionContext, SideEffectKind, StageId


CONTRACT_VERSIONS = {
    "state_schema": "v2",
    "trace_schema": "v2",
    "stage_catalog": "v1",
    "import_summary": "v2",
}


REQUIRED_STATE_FIELDS = {
    "session_id",
    "current_stage_index",
    "per_stage_data",
    "pending_side_effects",
    "staged_imports",
    "failed_invitations",
    "completed",
    "exited",
    "value_updates",
}


EXPECTED_STAGE_IDS = {
    StageId.MANUFACTURER.value,
    StageId.TEAM.value,
    StageId.EQUIPMENT.value,
    StageId.PARTS.value,
    StageId.ENGINEERS.value,
    StageId.INSTALLATIONS.value,
    StageId.REVIEW.value,
}

EXPECTED_SIDE_EFFECT_KINDS = {
    SideEffectKind.INVITATIONS.value,
    SideEffectKind.IMPORT_DRY_RUN.value,
    SideEffectKind.IMPORT_PERSIST.value,
}


@dataclass(frozen=True, slots=True)
class ContractValidationResult:
    is_valid: bool
    errors: list[str]


def _full_router(catalog: StepCatalog) -> ActionRouter:
    # Platform admins see every stage, so their router covers the whole table.
    context = SessionContext(actor_role=ActorRole.PLATFORM_ADMIN)
    cursor = StepCursor.for_session(catalog, context, OnboardingState(session_id="contract-check"))
    return ActionRouter(cursor, context)


def router_gaps(catalog: StepCatalog | None = None) -> list[str]:
    """Transitions every stage must have for the wizard to be completable by buttons alone."""
    catalog = catalog or StepCatalog()
    router = _full_router(catalog)
    keys = router.transition_keys()
    gaps: list[str] = []

    for stage in catalog.stages:
        if stage.id == StageId.REVIEW:
            if (stage.id, Action.COMPLETE) not in keys:
                gaps.append("review:complete")
            continue
        skip = SKIP_ACTIONS.get(stage.id)
        if skip is None or (stage.id, skip) not in keys:
            gaps.append(f"{stage.id.value}:skip")
        if stage.accepts_uploads:
            required = (UPLOAD_ACTIONS.get(stage.id), Action.CONFIRM_IMPORT, Action.CANCEL_IMPORT)
            for action in required:
                if action is None or (stage.id, action) not in keys:
                    gaps.append(f"{stage.id.value}:{action.value if action else 'upload'}")

    routed = {action for _, action in keys}
    for action in Action:
        if action == Action.MANUAL:
            continue
        if action not in routed:
            gaps.append(f"unrouted_action:{action.value}")
    return gaps


def validate_contract_freeze() -> ContractValidationResult:
    errors: list[str] = []

    if set(CONTRACT_VERSIONS.keys()) != {"state_schema", "trace_schema", "stage_catalog", "import_summary"}:
        errors.append("contract_versions_missing_required_keys")

    current_state_fields = set(OnboardingState.__dataclass_fields__.keys())
    missing_state = REQUIRED_STATE_FIELDS.difference(current_state_fields)
    if missing_state:
        errors.append(f"missing_state_fields:{sorted(missing_state)}")

    unexpected_state = current_state_fields.difference(REQUIRED_STATE_FIELDS)
    if unexpected_state:
        errors.append(f"unexpected_state_fields:{sorted(unexpected_state)}")

    if EXPECTED_STAGE_IDS != {s.value for s in StageId}:
        errors.append("stage_ids_changed")

    if EXPECTED_SIDE_EFFECT_KINDS != {k.value for k in SideEffectKind}:
        errors.append("side_effect_kinds_changed")

    gaps = router_gaps()
    if gaps:
        errors.append(f"router_gaps:{gaps}")

    return ContractValidationResult(is_valid=not errors, errors=errors)
