"""LangGraph-based event pipeline for the guided setup wizard.

Every user event (typed text, clicked action, selected file) runs through a
small state graph:
  receive_event             -> entry point, branches on the event kind
  route_input / route_file  -> commit the router's outcome
  run_side_effect           -> call the gateway, settle, commit the result

Routing is synchronous and total; the only suspension point is the gateway
call in `run_side_effect`. All nodes are coroutines so that they execute on
the event loop thread and never in parallel with each other.
"""
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

import structlog
from langgraph.graph import END, StateGraph

from . import prompts
from .actions import Action, parse_action_token
from .catalog import Stage, StepCatalog
from .config import WizardConfig
from .conversation import ConversationLog, ConversationTurn, TurnDraft
from .cursor import InvalidTransition, StepCursor
from .gateway import ExternalGateway, GatewayUnavailable, ImportRejected
from .ingestion import UploadedFile, UploadRejected, prepare_for_import, read_upload_text
from .router import ActionRouter, RouteOutcome, SendInvitations
from .state_schema import OnboardingState, SessionContext, StageId, TurnKind
from .trace import build_session_snapshot

logger = structlog.get_logger()


@dataclass(slots=True)
class TurnOutput:
    new_turns: list[ConversationTurn]
    current_stage: StageId
    completed: bool
    exit_requested: bool
    redirect_to: str | None = None


class OnboardingGraph:
    """The onboarding engine: owns the conversation log and onboarding state for one session."""

    def __init__(
        self,
        context: SessionContext,
        gateway: ExternalGateway,
        *,
        config: WizardConfig | None = None,
        catalog: StepCatalog | None = None,
        session_id: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.context = context
        self.gateway = gateway
        self.config = config or WizardConfig()
        self.catalog = catalog or StepCatalog()
        self.state = OnboardingState(session_id=session_id or f"session_{uuid.uuid4().hex[:8]}")
        self.cursor = StepCursor.for_session(self.catalog, context, self.state)
        self.router = ActionRouter(self.cursor, context)
        self.log = ConversationLog(clock) if clock else ConversationLog()
        self.trace_log: list[dict[str, Any]] = []
        self.redirect_to: str | None = None

        self.graph = self._build_graph()

    def _build_graph(self) -> Any:
        builder = StateGraph(dict)

        builder.add_node("receive_event", self._node_receive_event)
        builder.add_node("route_input", self._node_route_input)
        builder.add_node("route_file", self._node_route_file)
        builder.add_node("run_side_effect", self._node_run_side_effect)

        builder.set_entry_point("receive_event")
        builder.add_conditional_edges(
            "receive_event",
            self._route_event_kind,
            {"input": "route_input", "file": "route_file"},
        )
        builder.add_conditional_edges(
            "route_input",
            self._route_after_commit,
            {"side_effect": "run_side_effect", "done": END},
        )
        builder.add_conditional_edges(
            "route_file",
            self._route_after_commit,
            {"side_effect": "run_side_effect", "done": END},
        )
        builder.add_edge("run_side_effect", END)

        return builder.compile()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def stages(self) -> list[Stage]:
        return self.cursor.stages

    @property
    def current_stage(self) -> Stage:
        return self.cursor.current()

    @property
    def is_closed(self) -> bool:
        return self.state.completed or self.state.exited

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def _commit(self, outcome: RouteOutcome, event: dict) -> None:
        """Applies a router outcome. Only place that mutates log, cursor and state."""
        side_effect = outcome.side_effect
        turns = list(outcome.turns)
        if side_effect is not None and not self.state.begin_side_effect(side_effect.stage, side_effect.kind):
            stage = self.cursor.stages[self.cursor.position(side_effect.stage)]
            turns = [prompts.already_in_progress(stage)]
            side_effect = None

        for stage_id, payload in outcome.stage_data.items():
            self.cursor.record_stage_data(stage_id, payload)

        if outcome.clear_staged_import is not None:
            self.state.staged_imports.pop(outcome.clear_staged_import, None)
        if outcome.staged_import is not None:
            staged_stage, staged = outcome.staged_import
            self.state.staged_imports[staged_stage] = staged
        if outcome.failed_invitations is not None:
            failed_stage, lines = outcome.failed_invitations
            if lines:
                self.state.failed_invitations[failed_stage] = lines
            else:
                self.state.failed_invitations.pop(failed_stage, None)

        for draft in turns:
            self.log.append(draft)

        if outcome.transition is not None:
            self.cursor.advance_to(outcome.transition)
        if outcome.completed:
            self.state.completed = True
            self.state.log_update("completed", False, True, outcome.reason)
        if outcome.exit_requested:
            self.state.exited = True
            self.redirect_to = self.config.manual_redirect
            self.state.log_update("exited", False, True, outcome.reason)

        self.trace_log.append(
            {
                "event": "outcome_committed",
                "node": event.get("node", ""),
                "reason": outcome.reason,
                "recognized": outcome.recognized,
                "stage": self.cursor.current().id.value,
                "transition": outcome.transition.value if outcome.transition else None,
                "side_effect": side_effect.kind.value if side_effect else None,
            }
        )
        logger.info(
            "Wizard outcome committed",
            session_id=self.state.session_id,
            reason=outcome.reason,
            stage=self.cursor.current().id.value,
            transition=outcome.transition.value if outcome.transition else None,
            side_effect=side_effect.kind.value if side_effect else None,
        )
        event["side_effect"] = side_effect

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def _route_event_kind(self, event: dict) -> str:
        return "file" if event.get("kind") == "file" else "input"

    def _route_after_commit(self, event: dict) -> str:
        return "side_effect" if event.get("side_effect") is not None else "done"

    async def _node_receive_event(self, event: dict) -> dict:
        event["node"] = "receive_event"
        event["side_effect"] = None
        return event

    async def _node_route_input(self, event: dict) -> dict:
        event["node"] = "route_input"
        stage = self.cursor.current()
        outcome = self.router.handle(stage.id, event.get("action"), event.get("text", ""))
        self._commit(outcome, event)
        return event

    async def _node_route_file(self, event: dict) -> dict:
        event["node"] = "route_file"
        upload: UploadedFile = event["file"]
        stage_id = event.get("stage")

        if self.state.completed:
            outcome = self.router.handle(self.cursor.current().id, None)
        elif stage_id == StageId.TEAM:
            try:
                text = read_upload_text(upload, max_upload_mb=self.config.max_upload_mb)
            except UploadRejected as exc:
                outcome = self.router.upload_rejected(StageId.TEAM, str(exc))
            else:
                outcome = self.router.handle(StageId.TEAM, Action.FREE_TEXT, text)
        elif stage_id is None or not self._accepts_upload(stage_id):
            outcome = RouteOutcome(turns=[prompts.unrecognized()], recognized=False, reason="upload_not_accepted")
        else:
            try:
                prepared = prepare_for_import(upload, max_upload_mb=self.config.max_upload_mb)
            except UploadRejected as exc:
                outcome = self.router.upload_rejected(stage_id, str(exc))
            else:
                outcome = self.router.file_selected(stage_id, prepared)

        self._commit(outcome, event)
        return event

    def _accepts_upload(self, stage_id: StageId) -> bool:
        return self.cursor.is_applicable(stage_id) and self.catalog.get(stage_id).accepts_uploads

    async def _node_run_side_effect(self, event: dict) -> dict:
        event["node"] = "run_side_effect"
        request = event["side_effect"]
        try:
            if isinstance(request, SendInvitations):
                result = await self.gateway.send_invitations(
                    self.context.organization_id,
                    self.context.access_token,
                    list(request.recipients),
                )
                outcome = self.router.settle_invitations(request, result)
            else:
                summary = await self.gateway.submit_import(
                    request.target,
                    request.file,
                    dry_run=request.dry_run,
                    auth_token=self.context.access_token,
                )
                outcome = self.router.settle_import(request, summary)
        except ImportRejected as exc:
            logger.warning("Import rejected", session_id=self.state.session_id, stage=request.stage.value, error=str(exc))
            outcome = self.router.settle_import_rejected(request, str(exc))
        except GatewayUnavailable as exc:
            logger.warning("Gateway unreachable", session_id=self.state.session_id, stage=request.stage.value, error=str(exc))
            outcome = self.router.settle_unreachable(request, str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Side effect failed", session_id=self.state.session_id, stage=request.stage.value)
            outcome = self.router.settle_unreachable(request, f"unexpected error: {type(exc).__name__}")
        finally:
            self.state.finish_side_effect(request.stage)

        self._commit(outcome, event)
        return event

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_session(self) -> list[ConversationTurn]:
        """Appends the opening greeting with the first stage's choices."""
        if len(self.log):
            return []
        first = self.cursor.current()
        intro = self.router.intro(first)
        greeting = prompts.greeting(self.context, self.stages)
        choices = intro.choices
        if prompts.MANUAL_CHOICE not in choices:
            choices = choices + (prompts.MANUAL_CHOICE,)
        self.log.append(TurnDraft.system(greeting + "\n\n" + intro.body, choices))
        self.trace_log.append({"event": "session_start", "stage": first.id.value})
        logger.info(
            "Onboarding session started",
            session_id=self.state.session_id,
            actor_role=self.context.actor_role.value,
            first_stage=first.id.value,
            stage_count=len(self.stages),
        )
        return list(self.log.all_turns())

    async def _run(self, event: dict) -> TurnOutput:
        before = len(self.log)
        if self.state.exited:
            return self._output(before)
        await self.graph.ainvoke(event)
        return self._output(before)

    def _output(self, before: int) -> TurnOutput:
        return TurnOutput(
            new_turns=list(self.log.all_turns()[before:]),
            current_stage=self.cursor.current().id,
            completed=self.state.completed,
            exit_requested=self.state.exited,
            redirect_to=self.redirect_to,
        )

    async def process_message(self, text: str) -> TurnOutput:
        if not text.strip():
            return self._output(len(self.log))
        before = len(self.log)
        if not self.state.exited:
            self.log.append_user(text)
        out = await self._run({"kind": "input", "action": Action.FREE_TEXT, "text": text})
        out.new_turns = list(self.log.all_turns()[before:])
        return out

    async def process_action(self, token: str) -> TurnOutput:
        before = len(self.log)
        if not self.state.exited:
            self.log.append_user(self.log.label_for_token(token))
        out = await self._run({"kind": "input", "action": parse_action_token(token), "text": ""})
        out.new_turns = list(self.log.all_turns()[before:])
        return out

    async def process_file(self, stage_id: StageId | str, upload: UploadedFile) -> TurnOutput:
        before = len(self.log)
        try:
            stage = StageId(stage_id)
        except ValueError:
            stage = None
        if not self.state.exited:
            self.log.append_user(f"Uploaded: {upload.name}", TurnKind.FILE)
        out = await self._run({"kind": "file", "stage": stage, "file": upload})
        out.new_turns = list(self.log.all_turns()[before:])
        return out

    def jump_to(self, stage_id: StageId | str) -> list[ConversationTurn]:
        """Sidebar navigation: move to any applicable stage and re-show its opening prompt."""
        if self.is_closed:
            raise InvalidTransition("Onboarding session is closed")
        before = len(self.log)
        self.cursor.advance_to(stage_id)
        stage = self.cursor.current()
        self.log.append(self.router.intro(stage))
        self.trace_log.append({"event": "jump", "stage": stage.id.value})
        logger.info("Stage jump", session_id=self.state.session_id, stage=stage.id.value)
        return list(self.log.all_turns()[before:])

    def snapshot(self) -> dict:
        return build_session_snapshot(self.context, self.cursor, self.log, trace_events=self.trace_log)

    def get_trace_json(self) -> str:
        return json.dumps(self.snapshot(), indent=2, default=str)
