from __future__ import annotations

from dataclasses import dataclass

DEFAULT_TEAM_ROLE = "manager"

_HEADER_FIELDS = ("name", "email")


@dataclass(frozen=True, slots=True)
class TeamMemberDraft:
    name: str
    email: str
    role: str = DEFAULT_TEAM_ROLE

    def as_line(self) -> str:
        return f"{self.name}, {self.email}, {self.role}"


def parse_team_input(text: str) -> list[TeamMemberDraft]:
    """Parses `Name, Email[, Role]` lines; lines with fewer than two fields are ignored."""
    members: list[TeamMemberDraft] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        parts = [p.strip() for p in line.split(",")]
        if len(parts) < 2:
            continue
        if tuple(p.lower() for p in parts[:2]) == _HEADER_FIELDS:
            continue
        role = parts[2].lower() if len(parts) > 2 and parts[2] else DEFAULT_TEAM_ROLE
        members.append(TeamMemberDraft(name=parts[0], email=parts[1], role=role))
    return members
