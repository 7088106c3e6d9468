from __future__ import annotations

from .conversation import ConversationLog
from .cursor import StepCursor
from .pii_guard import redact_payload
from .state_schema import SessionContext


def build_session_snapshot(
    context: SessionContext,
    cursor: StepCursor,
    log: ConversationLog,
    *,
    trace_events: list[dict],
) -> dict:
    """JSON-friendly view of a session, built only from engine-owned state."""
    state = cursor.state
    return {
        "session_id": state.session_id,
        "context": redact_payload(
            {
                "actor_role": context.actor_role.value,
                "organization_id": context.organization_id,
                "is_authenticated": context.is_authenticated,
                "access_token": context.access_token,
            }
        ),
        "current_stage": cursor.current().id.value,
        "applicable_stages": [s.id.value for s in cursor.stages],
        "progress": round(cursor.progress_fraction(), 4),
        "per_stage_data": {k.value: dict(v) for k, v in state.per_stage_data.items()},
        "pending_side_effects": {k.value: v.kind.value for k, v in state.pending_side_effects.items()},
        "staged_imports": {k.value: v.file.name for k, v in state.staged_imports.items()},
        "failed_invitations": {k.value: len(v) for k, v in state.failed_invitations.items()},
        "completed": state.completed,
        "exited": state.exited,
        "value_updates": list(state.value_updates),
        "trace_events": list(trace_events),
        "turns": [t.as_dict() for t in log.all_turns()],
    }
