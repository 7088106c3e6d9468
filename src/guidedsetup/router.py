"""Stage state machine.

`ActionRouter.handle` is a total function over (StageId, Action): every pair
either has a handler in the transition table or falls through to the soft
"not sure how to help" reply. Handlers never mutate state and never perform
I/O; they return a `RouteOutcome` that the graph commits, and they describe
network work as a `SideEffectRequest` for the gateway.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from . import prompts
from .actions import SKIP_ACTIONS, UPLOAD_ACTIONS, Action
from .catalog import ImportTarget, Stage
from .conversation import TurnDraft
from .cursor import StepCursor
from .gateway import BatchResult, ImportSummary
from .ingestion import UploadedFile
from .state_schema import SessionContext, SideEffectKind, StagedImport, StageId
from .team import TeamMemberDraft, parse_team_input


@dataclass(frozen=True, slots=True)
class SendInvitations:
    stage: StageId
    recipients: tuple[TeamMemberDraft, ...]

    @property
    def kind(self) -> SideEffectKind:
        return SideEffectKind.INVITATIONS


@dataclass(frozen=True, slots=True)
class SubmitImport:
    stage: StageId
    target: ImportTarget
    file: UploadedFile
    dry_run: bool

    @property
    def kind(self) -> SideEffectKind:
        return SideEffectKind.IMPORT_DRY_RUN if self.dry_run else SideEffectKind.IMPORT_PERSIST


SideEffectRequest = SendInvitations | SubmitImport


@dataclass(slots=True)
class RouteOutcome:
    turns: list[TurnDraft] = field(default_factory=list)
    stage_data: dict[StageId, dict[str, Any]] = field(default_factory=dict)
    transition: StageId | None = None
    side_effect: SideEffectRequest | None = None
    staged_import: tuple[StageId, StagedImport] | None = None
    clear_staged_import: StageId | None = None
    # Replaces the stage's failed invitation lines; an empty tuple clears them.
    failed_invitations: tuple[StageId, tuple[str, ...]] | None = None
    exit_requested: bool = False
    completed: bool = False
    recognized: bool = True
    reason: str = ""


Handler = Callable[[Stage, str], RouteOutcome]

UPLOAD_STAGES = (StageId.EQUIPMENT, StageId.PARTS, StageId.ENGINEERS, StageId.INSTALLATIONS)


class ActionRouter:
    def __init__(self, cursor: StepCursor, context: SessionContext):
        self.cursor = cursor
        self.context = context
        self._table: dict[tuple[StageId, Action], Handler] = self._build_table()

    # ------------------------------------------------------------------
    # Transition table
    # ------------------------------------------------------------------

    def _build_table(self) -> dict[tuple[StageId, Action], Handler]:
        table: dict[tuple[StageId, Action], Handler] = {
            (StageId.MANUFACTURER, Action.FREE_TEXT): self._record_company,
            (StageId.TEAM, Action.INVITE_TEAM): self._team_instructions,
            (StageId.TEAM, Action.RETRY_FAILED): self._retry_failed,
            (StageId.TEAM, Action.FREE_TEXT): self._team_members,
            (StageId.TEAM, Action.CONTINUE_ANYWAY): self._continue_anyway,
            (StageId.TEAM, Action.CONTINUE_EQUIPMENT): self._continue_to_equipment,
            (StageId.EQUIPMENT, Action.CONTINUE_EQUIPMENT): self._continue_to_equipment,
            (StageId.EQUIPMENT, Action.FREE_TEXT): self._record_equipment_types,
            (StageId.REVIEW, Action.COMPLETE): self._complete,
            (StageId.REVIEW, Action.REVIEW_DATA): self._review_again,
        }
        for stage_id, action in SKIP_ACTIONS.items():
            table[(stage_id, action)] = self._skip
        for stage_id, action in UPLOAD_ACTIONS.items():
            table[(stage_id, action)] = self._upload_request
        for stage_id in UPLOAD_STAGES:
            table[(stage_id, Action.DOWNLOAD_TEMPLATE)] = self._template
            table[(stage_id, Action.CONFIRM_IMPORT)] = self._confirm_import
            table[(stage_id, Action.CANCEL_IMPORT)] = self._cancel_import
        return table

    def transition_keys(self) -> set[tuple[StageId, Action]]:
        return set(self._table)

    def handles(self, stage_id: StageId, action: Action) -> bool:
        return action == Action.MANUAL or (stage_id, action) in self._table

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def handle(self, stage_id: StageId, action: Action | None, text: str = "") -> RouteOutcome:
        state = self.cursor.state
        if state.completed:
            return RouteOutcome(turns=[prompts.already_complete()], recognized=False, reason="already_complete")

        if action == Action.MANUAL:
            return RouteOutcome(turns=[prompts.manual_switch()], exit_requested=True, reason="manual_exit")

        handler = self._table.get((stage_id, action)) if action is not None else None
        if handler is None or not self.cursor.is_applicable(stage_id):
            return RouteOutcome(turns=[prompts.unrecognized()], recognized=False, reason="unrecognized_input")

        stage = self.cursor.stages[self.cursor.position(stage_id)]
        return handler(stage, text)

    def intro(self, stage: Stage, extra_data: dict[StageId, dict[str, Any]] | None = None) -> TurnDraft:
        return prompts.stage_intro(stage, self._merged_data(extra_data), self.cursor.stages)

    def _merged_data(self, extra: dict[StageId, dict[str, Any]] | None) -> dict[StageId, dict[str, Any]]:
        merged = {k: dict(v) for k, v in self.cursor.state.per_stage_data.items()}
        for stage_id, payload in (extra or {}).items():
            merged.setdefault(stage_id, {}).update(payload)
        return merged

    def _advance(
        self,
        from_stage: StageId,
        message: str,
        *,
        reason: str,
        stage_data: dict[StageId, dict[str, Any]] | None = None,
    ) -> RouteOutcome:
        """Moves to the stage after `from_stage` with `message` prefixed to its introduction.

        A settlement that lands after the user navigated elsewhere only reports
        its message and leaves the cursor alone.
        """
        stage_data = stage_data or {}
        nxt = self.cursor.next_stage(after=from_stage)
        if nxt is None or self.cursor.current().id != from_stage:
            return RouteOutcome(turns=[TurnDraft.system(message)], stage_data=stage_data, reason=reason)
        turn = prompts.join_with_intro(message, self.intro(nxt, stage_data))
        return RouteOutcome(turns=[turn], stage_data=stage_data, transition=nxt.id, reason=reason)

    def _in_progress(self, stage: Stage) -> RouteOutcome:
        return RouteOutcome(turns=[prompts.already_in_progress(stage)], reason="side_effect_in_flight")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _record_company(self, stage: Stage, text: str) -> RouteOutcome:
        name = text.strip()
        if not name:
            return RouteOutcome(turns=[prompts.company_name_missing()], reason="company_name_missing")
        return self._advance(
            stage.id,
            prompts.company_recorded(name),
            reason="company_recorded",
            stage_data={stage.id: {"company_name": name}},
        )

    def _team_instructions(self, stage: Stage, text: str) -> RouteOutcome:
        return RouteOutcome(turns=[prompts.team_instructions()], reason="team_instructions")

    def _retry_failed(self, stage: Stage, text: str) -> RouteOutcome:
        lines = self.cursor.state.failed_invitations.get(stage.id, ())
        return RouteOutcome(
            turns=[prompts.team_instructions(retry=True, lines=lines)],
            reason="team_retry_instructions",
        )

    def _team_members(self, stage: Stage, text: str) -> RouteOutcome:
        if self.cursor.state.is_pending(stage.id):
            return self._in_progress(stage)
        members = parse_team_input(text)
        if not members:
            return RouteOutcome(turns=[prompts.team_not_understood()], reason="team_input_empty")
        return RouteOutcome(
            turns=[prompts.team_noted(members)],
            side_effect=SendInvitations(stage=stage.id, recipients=tuple(members)),
            reason="team_invitations_requested",
        )

    def _continue_anyway(self, stage: Stage, text: str) -> RouteOutcome:
        return self._advance(stage.id, prompts.continue_without_invites(), reason="team_continue_anyway")

    def _continue_to_equipment(self, stage: Stage, text: str) -> RouteOutcome:
        equipment = self.cursor.stages[self.cursor.position(StageId.EQUIPMENT)]
        return RouteOutcome(
            turns=[self.intro(equipment)],
            transition=None if stage.id == StageId.EQUIPMENT else StageId.EQUIPMENT,
            reason="continue_equipment",
        )

    def _record_equipment_types(self, stage: Stage, text: str) -> RouteOutcome:
        types = text.strip()
        if not types:
            return RouteOutcome(turns=[prompts.unrecognized()], recognized=False, reason="unrecognized_input")
        return self._advance(
            stage.id,
            prompts.equipment_recorded(types),
            reason="equipment_types_recorded",
            stage_data={stage.id: {"equipment_types": types}},
        )

    def _skip(self, stage: Stage, text: str) -> RouteOutcome:
        return self._advance(stage.id, prompts.skip_acknowledged(stage), reason=f"skip_{stage.id.value}")

    def _upload_request(self, stage: Stage, text: str) -> RouteOutcome:
        return RouteOutcome(turns=[prompts.upload_request(stage)], reason=f"upload_requested_{stage.id.value}")

    def _template(self, stage: Stage, text: str) -> RouteOutcome:
        return RouteOutcome(turns=[prompts.template_info(stage)], reason="template_info")

    def _confirm_import(self, stage: Stage, text: str) -> RouteOutcome:
        if self.cursor.state.is_pending(stage.id):
            return self._in_progress(stage)
        staged = self.cursor.state.staged_imports.get(stage.id)
        if staged is None or staged.summary.has_failures or stage.import_target is None:
            return RouteOutcome(turns=[prompts.nothing_to_confirm(stage.id)], reason="nothing_to_confirm")
        return RouteOutcome(
            turns=[TurnDraft.system(f"⏳ Importing \"{staged.file.name}\"...")],
            side_effect=SubmitImport(stage=stage.id, target=stage.import_target, file=staged.file, dry_run=False),
            reason="import_confirmed",
        )

    def _cancel_import(self, stage: Stage, text: str) -> RouteOutcome:
        message = prompts.import_cancelled()
        return RouteOutcome(
            turns=[prompts.join_with_intro(message, self.intro(stage))],
            clear_staged_import=stage.id,
            reason="import_cancelled",
        )

    def _review_again(self, stage: Stage, text: str) -> RouteOutcome:
        return RouteOutcome(turns=[self.intro(stage)], reason="review_data")

    def _complete(self, stage: Stage, text: str) -> RouteOutcome:
        summary = prompts.completion_summary(self.cursor.state.per_stage_data, self.cursor.stages)
        return RouteOutcome(turns=[summary], completed=True, reason="onboarding_complete")

    # ------------------------------------------------------------------
    # File hand-off
    # ------------------------------------------------------------------

    def file_selected(self, stage_id: StageId, upload: UploadedFile) -> RouteOutcome:
        """Routes a prepared upload: team rosters are handled by the caller."""
        if not self.cursor.is_applicable(stage_id):
            return RouteOutcome(turns=[prompts.unrecognized()], recognized=False, reason="upload_not_accepted")
        stage = self.cursor.stages[self.cursor.position(stage_id)]
        if self.cursor.state.completed:
            return RouteOutcome(turns=[prompts.already_complete()], recognized=False, reason="already_complete")
        if stage.import_target is None:
            return RouteOutcome(turns=[prompts.unrecognized()], recognized=False, reason="upload_not_accepted")
        if self.cursor.state.is_pending(stage.id):
            return self._in_progress(stage)
        return RouteOutcome(
            turns=[TurnDraft.system(f"⏳ Checking \"{upload.name}\"...")],
            side_effect=SubmitImport(stage=stage.id, target=stage.import_target, file=upload, dry_run=True),
            clear_staged_import=stage.id,
            reason="import_dry_run_requested",
        )

    def upload_rejected(self, stage_id: StageId, reason: str) -> RouteOutcome:
        return RouteOutcome(turns=[prompts.upload_failed(stage_id, reason)], reason="upload_rejected")

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def settle_invitations(self, request: SendInvitations, result: BatchResult) -> RouteOutcome:
        stage = request.stage
        if result.is_unreachable:
            return self.settle_unreachable(request, result.unreachable_reason or "unavailable")

        already_sent = self.cursor.state.per_stage_data.get(stage, {}).get("invitations_sent", 0)
        sent = {stage: {"invitations_sent": already_sent + result.succeeded}}

        if result.is_full_success:
            outcome = self._advance(
                stage,
                prompts.invitations_sent(result.succeeded),
                reason="invitations_full_success",
                stage_data=sent,
            )
            outcome.failed_invitations = (stage, ())
            return outcome

        failures = [f"{o.recipient.email} ({o.error_detail or 'unknown error'})" for o in result.failed]
        retry_lines = (stage, tuple(o.recipient.as_line() for o in result.failed))
        if result.is_partial:
            return RouteOutcome(
                turns=[prompts.invitations_partial(result.succeeded, failures)],
                stage_data=sent,
                failed_invitations=retry_lines,
                reason="invitations_partial_failure",
            )
        return RouteOutcome(
            turns=[prompts.invitations_failed(failures)],
            failed_invitations=retry_lines,
            reason="invitations_full_failure",
        )

    def settle_import(self, request: SubmitImport, summary: ImportSummary) -> RouteOutcome:
        stage = request.stage
        rendered = [e.render() for e in summary.errors]
        if request.dry_run:
            if summary.has_failures:
                return RouteOutcome(
                    turns=[
                        prompts.import_errors(
                            stage,
                            request.file.name,
                            summary.total_rows,
                            summary.failure_count or len(rendered),
                            rendered,
                        )
                    ],
                    reason="import_validation_failed",
                )
            return RouteOutcome(
                turns=[prompts.import_validated(request.file.name, summary.total_rows)],
                staged_import=(stage, StagedImport(file=request.file, summary=summary)),
                reason="import_validated",
            )

        data = {stage: {"file_name": request.file.name, "imported_rows": summary.success_count}}
        if summary.has_failures:
            return RouteOutcome(
                turns=[prompts.import_persist_partial(stage, request.file.name, summary.success_count, rendered)],
                stage_data=data if summary.success_count else {},
                clear_staged_import=stage,
                reason="import_persist_partial",
            )
        outcome = self._advance(
            stage,
            prompts.import_persisted(request.file.name, summary.success_count),
            reason="import_persisted",
            stage_data=data,
        )
        outcome.clear_staged_import = stage
        return outcome

    def settle_import_rejected(self, request: SubmitImport, detail: str) -> RouteOutcome:
        return RouteOutcome(
            turns=[prompts.import_rejected(request.stage, detail)],
            clear_staged_import=request.stage,
            reason="import_rejected",
        )

    def settle_unreachable(self, request: SideEffectRequest, reason: str) -> RouteOutcome:
        """Gateway could not be used at all: report and keep moving forward."""
        if isinstance(request, SendInvitations):
            message = prompts.saved_locally("send invitations", reason)
            data = {request.stage: {"invitations_deferred": len(request.recipients)}}
        else:
            message = prompts.import_unreachable(request.file.name, reason)
            data = {}
        outcome = self._advance(request.stage, message, reason="side_effect_unreachable", stage_data=data)
        if isinstance(request, SubmitImport):
            outcome.clear_staged_import = request.stage
        return outcome
