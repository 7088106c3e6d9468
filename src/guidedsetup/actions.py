from __future__ import annotations

from enum import Enum

from .state_schema import StageId


class Action(str, Enum):
    """Every action token the wizard can put on a button."""

    FREE_TEXT = "free_text"
    MANUAL = "manual"
    SKIP_MANUFACTURER = "skip_manufacturer"
    INVITE_TEAM = "invite_team"
    UPLOAD_TEAM = "upload_team"
    SKIP_TEAM = "skip_team"
    RETRY_FAILED = "retry_failed"
    CONTINUE_ANYWAY = "continue_anyway"
    CONTINUE_EQUIPMENT = "continue_equipment"
    UPLOAD_EQUIPMENT = "upload_equipment"
    SKIP_EQUIPMENT = "skip_equipment"
    UPLOAD_PARTS = "upload_parts"
    SKIP_PARTS = "skip_parts"
    UPLOAD_ENGINEERS = "upload_engineers"
    SKIP_ENGINEERS = "skip_engineers"
    UPLOAD_INSTALLATIONS = "upload_installations"
    SKIP_INSTALLATIONS = "skip_installations"
    DOWNLOAD_TEMPLATE = "download_template"
    CONFIRM_IMPORT = "confirm_import"
    CANCEL_IMPORT = "cancel_import"
    REVIEW_DATA = "review_data"
    COMPLETE = "complete"


FREE_TEXT = Action.FREE_TEXT


SKIP_ACTIONS: dict[StageId, Action] = {
    StageId.MANUFACTURER: Action.SKIP_MANUFACTURER,
    StageId.TEAM: Action.SKIP_TEAM,
    StageId.EQUIPMENT: Action.SKIP_EQUIPMENT,
    StageId.PARTS: Action.SKIP_PARTS,
    StageId.ENGINEERS: Action.SKIP_ENGINEERS,
    StageId.INSTALLATIONS: Action.SKIP_INSTALLATIONS,
}

UPLOAD_ACTIONS: dict[StageId, Action] = {
    StageId.TEAM: Action.UPLOAD_TEAM,
    StageId.EQUIPMENT: Action.UPLOAD_EQUIPMENT,
    StageId.PARTS: Action.UPLOAD_PARTS,
    StageId.ENGINEERS: Action.UPLOAD_ENGINEERS,
    StageId.INSTALLATIONS: Action.UPLOAD_INSTALLATIONS,
}


def parse_action_token(token: str) -> Action | None:
    """Maps a raw button value to an Action; unknown tokens map to None."""
    normalized = str(token).strip().lower()
    try:
        return Action(normalized)
    except ValueError:
        return None
