"""Canned wizard copy and choice lists.

Everything user-facing that the router emits is built here so the state
machine itself stays free of presentation text.
"""
from __future__ import annotations

from typing import Any, Mapping

from .actions import SKIP_ACTIONS, UPLOAD_ACTIONS, Action
from .catalog import Stage
from .conversation import Choice, TurnDraft
from .state_schema import ActorRole, SessionContext, StageId
from .team import TeamMemberDraft

MANUAL_CHOICE = Choice("📝 Switch to Manual Form", Action.MANUAL.value)

_NOUNS = {
    StageId.TEAM: "team member list",
    StageId.EQUIPMENT: "equipment catalog",
    StageId.PARTS: "parts catalog",
    StageId.ENGINEERS: "service engineers list",
    StageId.INSTALLATIONS: "equipment installations",
}


def _choice(label: str, action: Action) -> Choice:
    return Choice(label, action.value)


def _skip_choice(stage_id: StageId, label: str = "⏭️ Skip for now") -> Choice:
    return _choice(label, SKIP_ACTIONS[stage_id])


def _upload_choice(stage_id: StageId, label: str = "📤 Yes, upload file") -> Choice:
    return _choice(label, UPLOAD_ACTIONS[stage_id])


# ---------------------------------------------------------------------------
# Stage introductions
# ---------------------------------------------------------------------------

def greeting(context: SessionContext, stages: list[Stage]) -> str:
    lines = [f"{idx}. {s.icon} {s.label}" for idx, s in enumerate(stages[:-1], start=1)]
    if context.actor_role == ActorRole.ORG_ADMIN:
        opener = "Hi! 👋 I'm your setup assistant. I'll help you set up your complete system."
    else:
        opener = "Hi! 👋 I'm your onboarding assistant for setting up a new manufacturer."
    return opener + "\n\nHere's what we'll configure:\n" + "\n".join(lines)


def stage_intro(stage: Stage, per_stage_data: Mapping[StageId, Mapping[str, Any]], stages: list[Stage]) -> TurnDraft:
    sid = stage.id
    if sid == StageId.MANUFACTURER:
        return TurnDraft.system(
            "🏢 **Manufacturer Information**\n\n"
            "Let's start with the basic company details.\n\n"
            "What's the manufacturer's registered company name?",
            [_skip_choice(sid, "⏭️ Skip, add company details later"), MANUAL_CHOICE],
        )
    if sid == StageId.TEAM:
        return TurnDraft.system(
            "👥 **Team Members**\n\n"
            "Would you like to invite team members to help manage the system?\n"
            "Example: CEO, Operations Manager, Service Manager",
            [
                _choice("👥 Yes, invite team members", Action.INVITE_TEAM),
                _upload_choice(sid, "📧 I have a list (upload CSV)"),
                _skip_choice(sid, "⏭️ Skip, just me for now"),
            ],
        )
    if sid == StageId.EQUIPMENT:
        return TurnDraft.system(
            "🔧 **Equipment Catalog**\n\n"
            "Let's add the equipment you manufacture.\n\n"
            "Upload a CSV or Excel file, or just type the equipment types "
            "(e.g. \"Ventilators, MRI Machines\").",
            _upload_stage_choices(sid),
        )
    if sid == StageId.PARTS:
        return TurnDraft.system(
            "📦 **Parts Catalog**\n\n"
            "Parts are essential for:\n"
            "• Service ticket management\n"
            "• Inventory tracking\n"
            "• Cost estimation\n\n"
            "Do you have a parts list in Excel or CSV format?",
            _upload_stage_choices(sid),
        )
    if sid == StageId.ENGINEERS:
        return TurnDraft.system(
            "👷 **Service Engineers**\n\n"
            "Let's add your service engineers who will handle equipment maintenance.\n\n"
            "Do you have a list of your service engineers?",
            _upload_stage_choices(sid, upload_label="📤 Yes, upload engineer list"),
        )
    if sid == StageId.INSTALLATIONS:
        return TurnDraft.system(
            "📋 **Equipment Installations**\n\n"
            "Let's register where your equipment is installed:\n"
            "• Customer/Hospital locations\n"
            "• Equipment serial numbers\n"
            "• Installation dates\n\n"
            "Do you have an installations list?",
            _upload_stage_choices(sid),
        )
    return TurnDraft.system(
        "✅ **Review & Complete**\n\n"
        + review_summary(per_stage_data, stages)
        + "\n\nReady to complete the setup?",
        [
            _choice("✅ Complete Setup", Action.COMPLETE),
            _choice("📝 Review Data", Action.REVIEW_DATA),
        ],
    )


def _upload_stage_choices(stage_id: StageId, upload_label: str = "📤 Yes, upload file") -> list[Choice]:
    return [
        _upload_choice(stage_id, upload_label),
        _choice("📥 Download template first", Action.DOWNLOAD_TEMPLATE),
        _skip_choice(stage_id),
    ]


def join_with_intro(message: str, intro: TurnDraft) -> TurnDraft:
    return TurnDraft.system(message + "\n\n" + intro.body, intro.choices)


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

def describe_stage_data(stage_id: StageId, payload: Mapping[str, Any]) -> str:
    if stage_id == StageId.MANUFACTURER and payload.get("company_name"):
        return f"\"{payload['company_name']}\""
    if stage_id == StageId.TEAM and "invitations_sent" in payload:
        return f"{payload['invitations_sent']} invitation(s) sent"
    if stage_id == StageId.TEAM and "invitations_deferred" in payload:
        return f"{payload['invitations_deferred']} invitation(s) saved to send later"
    parts = []
    if payload.get("equipment_types"):
        parts.append(str(payload["equipment_types"]))
    if "imported_rows" in payload:
        parts.append(f"{payload['imported_rows']} row(s) imported from {payload.get('file_name', 'file')}")
    return "; ".join(parts) if parts else "recorded"


def review_summary(per_stage_data: Mapping[StageId, Mapping[str, Any]], stages: list[Stage]) -> str:
    lines = ["Here's what we've set up:"]
    for stage in stages:
        if stage.id == StageId.REVIEW:
            continue
        payload = per_stage_data.get(stage.id)
        if payload:
            lines.append(f"✅ {stage.label}: {describe_stage_data(stage.id, payload)}")
        else:
            lines.append(f"⏭️ {stage.label}: skipped")
    return "\n".join(lines)


def completion_summary(per_stage_data: Mapping[StageId, Mapping[str, Any]], stages: list[Stage]) -> TurnDraft:
    configured = [s.label for s in stages if per_stage_data.get(s.id)]
    body = "All set! 🎉\n\nYou've completed the onboarding wizard.\n\n"
    if configured:
        body += "Configured: " + ", ".join(configured) + "."
    else:
        body += "Nothing was configured yet; everything can be added later from the dashboard."
    return TurnDraft.system(body + "\n\nYou can now manage everything from your dashboard!")


# ---------------------------------------------------------------------------
# Stage-specific replies
# ---------------------------------------------------------------------------

def company_recorded(name: str) -> str:
    return f"Perfect! I've registered \"{name}\" as the manufacturer. ✅"


def company_name_missing() -> TurnDraft:
    return TurnDraft.system(
        "I didn't catch a company name. What's the manufacturer's registered company name?",
        [_skip_choice(StageId.MANUFACTURER, "⏭️ Skip, add company details later"), MANUAL_CHOICE],
    )


def team_instructions(retry: bool = False, lines: tuple[str, ...] | list[str] = ()) -> TurnDraft:
    choices = [
        _upload_choice(StageId.TEAM, "📧 Upload CSV file"),
        _skip_choice(StageId.TEAM),
    ]
    if retry and lines:
        return TurnDraft.system(
            "Let's retry the failed invitations. These didn't go through:\n\n"
            + "\n".join(lines)
            + "\n\nFix any typos and send the lines back in the same format (Name, Email, Role).",
            choices,
        )
    opener = (
        "Let's retry the failed invitations. Re-enter those team members "
        "(fix any typos in the email addresses) in this format:\n"
        if retry
        else "Great! Let's invite your team members.\n\nPlease provide their details in this format:\n"
    )
    return TurnDraft.system(
        opener
        + "Name, Email, Role\n\n"
        "Example:\n"
        "Rajesh Kumar, ceo@company.com, admin\n"
        "Priya Sharma, ops@company.com, manager\n\n"
        "Role defaults to manager when omitted.",
        choices,
    )


def team_not_understood() -> TurnDraft:
    return TurnDraft.system(
        "I couldn't find any team members in that. Please use one line per person:\n"
        "Name, Email, Role",
        [
            _choice("👥 Show me the format", Action.INVITE_TEAM),
            _skip_choice(StageId.TEAM),
        ],
    )


def team_noted(members: list[TeamMemberDraft]) -> TurnDraft:
    listing = "\n".join(f"• {m.name} ({m.email}) - {m.role}" for m in members)
    return TurnDraft.system(
        f"Excellent! I've noted {len(members)} team member(s):\n{listing}\n\n⏳ Sending invitations now..."
    )


def invitations_sent(count: int) -> str:
    return (
        f"✅ Success! Sent {count} invitation(s)!\n\n"
        "📧 Your team members will receive invitation emails shortly."
    )


def _retry_choices() -> list[Choice]:
    return [
        _choice("🔄 Retry failed invitations", Action.RETRY_FAILED),
        _choice("➡️ Continue anyway", Action.CONTINUE_ANYWAY),
    ]


def invitations_partial(succeeded: int, failures: list[str]) -> TurnDraft:
    listing = "\n".join(f"❌ {line}" for line in failures)
    return TurnDraft.system(
        "⚠️ Partially successful:\n"
        f"✅ Sent {succeeded} invitation(s)\n"
        f"Failed ({len(failures)}):\n{listing}\n\n"
        "Would you like to retry the failed invitations or continue?",
        _retry_choices(),
    )


def invitations_failed(failures: list[str]) -> TurnDraft:
    listing = "\n".join(f"❌ {line}" for line in failures)
    return TurnDraft.system(
        f"❌ Failed to send invitations:\n{listing}\n\n"
        "You can retry now or continue and send invitations later from the dashboard.",
        _retry_choices(),
    )


def saved_locally(what: str, reason: str) -> str:
    return (
        f"⚠️ I couldn't reach the server to {what} ({reason}).\n"
        "Your details are saved locally for this session; you can retry later from the dashboard."
    )


def import_unreachable(file_name: str, reason: str) -> str:
    return (
        f"⚠️ I couldn't reach the server to import \"{file_name}\" ({reason}).\n"
        "Nothing was imported; you can upload the file again later from the dashboard."
    )


def equipment_recorded(types: str) -> str:
    return f"Excellent! {types} equipment registered. ✅"


def continue_without_invites() -> str:
    return "Okay, moving on. You can resend invitations later from the dashboard."


def skip_acknowledged(stage: Stage) -> str:
    return f"No problem! You can add {stage.label.lower()} later from the dashboard."


def upload_request(stage: Stage) -> TurnDraft:
    noun = _NOUNS.get(stage.id, stage.label.lower())
    extra = "\n\nCSV format:\nname,email,role" if stage.id == StageId.TEAM else ""
    return TurnDraft.system(
        f"Please upload your {noun} file (CSV or Excel).{extra}",
        [_skip_choice(stage.id)],
    )


def template_info(stage: Stage) -> TurnDraft:
    target = stage.import_target
    columns = ", ".join(target.required_columns) if target else ""
    path = target.template_path if target else ""
    return TurnDraft.system(
        f"📥 **{stage.label} template**: {path}\n\n"
        f"Required columns: {columns}\n\n"
        "Fill it out and upload it here when you're ready.",
        [
            _upload_choice(stage.id, "📤 Upload completed template"),
            _skip_choice(stage.id),
        ],
    )


# ---------------------------------------------------------------------------
# File hand-off
# ---------------------------------------------------------------------------

def import_validated(file_name: str, total_rows: int) -> TurnDraft:
    return TurnDraft.system(
        f"✅ File \"{file_name}\" checked!\n\n"
        "Found:\n"
        f"• {total_rows} row(s) detected\n"
        "• All required columns present\n"
        "• No errors\n\n"
        "Should I proceed with import?",
        [
            _choice("✅ Yes, import", Action.CONFIRM_IMPORT),
            _choice("❌ Cancel", Action.CANCEL_IMPORT),
        ],
    )


def _reupload_choices(stage_id: StageId) -> list[Choice]:
    return [
        _upload_choice(stage_id, "📤 Upload a corrected file"),
        _skip_choice(stage_id),
    ]


def import_errors(stage_id: StageId, file_name: str, total_rows: int, failure_count: int, rendered: list[str]) -> TurnDraft:
    listing = "\n".join(rendered)
    return TurnDraft.system(
        f"⚠️ \"{file_name}\" has {failure_count} problem(s) in {total_rows} row(s):\n"
        f"{listing}\n\n"
        "Please fix these rows and upload the file again.",
        _reupload_choices(stage_id),
    )


def import_persisted(file_name: str, imported_rows: int) -> str:
    return f"✅ Imported {imported_rows} row(s) from \"{file_name}\"."


def import_persist_partial(stage_id: StageId, file_name: str, imported_rows: int, rendered: list[str]) -> TurnDraft:
    listing = "\n".join(rendered)
    return TurnDraft.system(
        f"⚠️ Imported {imported_rows} row(s) from \"{file_name}\", but some rows failed:\n"
        f"{listing}\n\n"
        "Upload a corrected file for the failed rows, or continue.",
        [
            _upload_choice(stage_id, "📤 Upload a corrected file"),
            _skip_choice(stage_id, "➡️ Continue"),
        ],
    )


def upload_failed(stage_id: StageId, reason: str) -> TurnDraft:
    return TurnDraft.system(f"❌ {reason}\n\nPlease check the file and try again.", _reupload_choices(stage_id))


def import_rejected(stage_id: StageId, detail: str) -> TurnDraft:
    return TurnDraft.system(f"❌ The import service rejected the file: {detail}", _reupload_choices(stage_id))


def import_cancelled() -> str:
    return "Import cancelled. Nothing was saved."


def nothing_to_confirm(stage_id: StageId) -> TurnDraft:
    return TurnDraft.system(
        "There's no checked file waiting to be imported. Please upload the file first.",
        [_upload_choice(stage_id, "📤 Upload file"), _skip_choice(stage_id)],
    )


# ---------------------------------------------------------------------------
# Generic replies
# ---------------------------------------------------------------------------

def unrecognized() -> TurnDraft:
    return TurnDraft.system("I'm not sure how to help with that. Can you rephrase?")


def already_in_progress(stage: Stage) -> TurnDraft:
    return TurnDraft.system(f"⏳ Still working on the {stage.label.lower()} request. Please wait for it to finish.")


def already_complete() -> TurnDraft:
    return TurnDraft.system("Onboarding is already complete. You can manage everything from your dashboard.")


def manual_switch() -> TurnDraft:
    return TurnDraft.system("No problem! Switching to manual entry mode.\n\nYou can fill out the forms directly.")
