"""CLI chat interface for walking through the guided setup wizard.

Usage:
    python -m src.guidedsetup.cli
    python -m src.guidedsetup.cli --role org_admin --org org-123 --token <token>
    python -m src.guidedsetup.cli --api-base-url http://localhost:8081/api

Commands inside the session:
    1..n            pick one of the numbered choices
    /jump <stage>   jump to a stage (manufacturer, team, equipment, ...)
    /upload <path>  submit a CSV/XLSX file for the current stage
    /state          print the session snapshot
    quit            end the session
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import replace

from .config import WizardConfig, session_from_env
from .conversation import ConversationTurn
from .cursor import InvalidTransition
from .ingestion import UploadedFile
from .log import configure_logging, get_logger
from .state_schema import ActorRole, SessionContext, Speaker

logger = get_logger()


def main():
    parser = argparse.ArgumentParser(description="Guided setup wizard CLI")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--role", choices=[r.value for r in ActorRole], default=None, help="Actor role for the session")
    parser.add_argument("--org", default=None, help="Organization id used for invitations")
    parser.add_argument("--token", default=None, help="Access token for the onboarding API")
    parser.add_argument("--api-base-url", default=None, help="Override ONBOARDING_API_BASE_URL")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON logs instead of console logs")
    args = parser.parse_args()

    try:
        config = WizardConfig.from_env(args.env_file)
        session = session_from_env()
    except ValueError as e:
        print(f"\n[ERROR] {e}")
        sys.exit(1)

    if args.api_base_url:
        config = replace(config, api_base_url=args.api_base_url)
    session = _override_session(session, args)

    configure_logging(config.log_level, json_output=args.json_logs)

    from .runtime import build_graph

    graph = build_graph(session, config)

    print("\n" + "=" * 60)
    print("  Guided Setup Wizard")
    print("=" * 60)
    print(f"  Role: {session.actor_role.value}")
    print(f"  API: {config.api_base_url or '(not configured)'}")
    print("  Type a number to pick a choice, or type your answer")
    print("  /jump <stage>, /upload <path>, /state, quit")
    print("=" * 60)

    for turn in graph.start_session():
        _print_turn(turn)

    while not graph.is_closed:
        _print_progress(graph)
        try:
            user_input = input("\n  You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\n\n  Session ended by user.")
            break

        if not user_input:
            continue

        if user_input.lower() in ("quit", "exit"):
            print("\n  Session ended.")
            break

        if user_input.lower() == "/state":
            _print_state(graph.get_trace_json())
            continue

        if user_input.startswith("/jump"):
            target = user_input[len("/jump"):].strip()
            try:
                turns = graph.jump_to(target)
            except InvalidTransition as e:
                print(f"  [ERROR] {e}")
                continue
            for turn in turns:
                _print_turn(turn)
            continue

        if user_input.startswith("/upload"):
            path = user_input[len("/upload"):].strip()
            try:
                upload = UploadedFile.from_path(path)
            except OSError as e:
                print(f"  [ERROR] Could not read {path}: {e}")
                continue
            out = asyncio.run(graph.process_file(graph.current_stage.id, upload))
        else:
            token = _choice_token(graph, user_input)
            if token is not None:
                out = asyncio.run(graph.process_action(token))
            else:
                out = asyncio.run(graph.process_message(user_input))

        for turn in out.new_turns:
            if turn.speaker == Speaker.SYSTEM:
                _print_turn(turn)

        if out.exit_requested:
            print(f"\n  Switching to the manual form: {out.redirect_to}")
        elif out.completed:
            print("\n  " + "-" * 40)
            print("  Onboarding complete.")

    snapshot = json.loads(graph.get_trace_json())
    logger.info("CLI session ended", session_id=snapshot["session_id"], stage=snapshot["current_stage"])
    print("\n" + "=" * 60)
    print("  Session Statistics:")
    print(f"    Stage reached: {snapshot['current_stage']}")
    print(f"    Stages with data: {sorted(snapshot['per_stage_data'])}")
    print(f"    Completed: {snapshot['completed']}")
    print(f"    Turns: {len(snapshot['turns'])}")
    print("=" * 60 + "\n")


def _override_session(session: SessionContext, args: argparse.Namespace) -> SessionContext:
    role = ActorRole(args.role) if args.role else session.actor_role
    token = args.token or session.access_token
    return SessionContext(
        actor_role=role,
        organization_id=args.org or session.organization_id,
        is_authenticated=token is not None,
        access_token=token,
    )


def _choice_token(graph, user_input: str) -> str | None:
    if not user_input.isdigit():
        return None
    prompt = graph.log.latest_prompt()
    if prompt is None:
        return None
    idx = int(user_input) - 1
    if 0 <= idx < len(prompt.choices):
        return prompt.choices[idx].token
    return None


def _print_turn(turn: ConversationTurn):
    """Print a system turn with word wrap and numbered choices."""
    print()
    print("  " + "-" * 40)
    for line in turn.body.split("\n"):
        while len(line) > 70:
            split_at = line[:70].rfind(" ")
            if split_at == -1:
                split_at = 70
            print(f"  Bot: {line[:split_at]}")
            line = line[split_at:].lstrip()
        print(f"  Bot: {line}")
    for idx, choice in enumerate(turn.choices, start=1):
        print(f"    [{idx}] {choice.label}")
    print("  " + "-" * 40)


def _print_progress(graph):
    stage = graph.current_stage
    print(f"\n  [{graph.cursor.step_label()}] {stage.icon} {stage.label}")


def _print_state(trace_json: str):
    snapshot = json.loads(trace_json)
    print("\n  === STATE SUMMARY ===")
    print(f"    Stage: {snapshot['current_stage']}")
    print(f"    Progress: {snapshot['progress']:.0%}")
    print(f"    Applicable stages: {snapshot['applicable_stages']}")
    print(f"    Stage data: {json.dumps(snapshot['per_stage_data'])}")
    print(f"    Pending: {snapshot['pending_side_effects']}")
    print(f"    Staged imports: {snapshot['staged_imports']}")
    print(f"    Completed: {snapshot['completed']}")
    print("  =====================")


if __name__ == "__main__":
    main()
