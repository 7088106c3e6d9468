from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterator

from .state_schema import Speaker, TurnKind


@dataclass(frozen=True, slots=True)
class Choice:
    label: str
    token: str


@dataclass(frozen=True, slots=True)
class TurnDraft:
    """A turn a handler wants appended; ids and timestamps are assigned by the log."""

    speaker: Speaker
    body: str
    kind: TurnKind = TurnKind.TEXT
    choices: tuple[Choice, ...] = ()

    @classmethod
    def system(cls, body: str, choices: tuple[Choice, ...] | list[Choice] = ()) -> "TurnDraft":
        choices = tuple(choices)
        kind = TurnKind.CHOICE_PROMPT if choices else TurnKind.TEXT
        return cls(speaker=Speaker.SYSTEM, body=body, kind=kind, choices=choices)


@dataclass(frozen=True, slots=True)
class ConversationTurn:
    id: str
    speaker: Speaker
    body: str
    kind: TurnKind
    choices: tuple[Choice, ...]
    timestamp: datetime

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "speaker": self.speaker.value,
            "body": self.body,
            "kind": self.kind.value,
            "choices": [{"label": c.label, "token": c.token} for c in self.choices],
            "timestamp": self.timestamp.isoformat(),
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationLog:
    """Append-only chat log. Insertion order is display order."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._turns: list[ConversationTurn] = []
        self._clock = clock

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[ConversationTurn]:
        return iter(tuple(self._turns))

    def append(self, draft: TurnDraft) -> str:
        turn_id = f"turn-{len(self._turns) + 1:04d}"
        self._turns.append(
            ConversationTurn(
                id=turn_id,
                speaker=draft.speaker,
                body=draft.body,
                kind=draft.kind,
                choices=tuple(draft.choices),
                timestamp=self._clock(),
            )
        )
        return turn_id

    def append_system(self, body: str, choices: tuple[Choice, ...] | list[Choice] | None = None) -> str:
        return self.append(TurnDraft.system(body, choices or ()))

    def append_user(self, body: str, kind: TurnKind = TurnKind.TEXT) -> str:
        return self.append(TurnDraft(speaker=Speaker.USER, body=body, kind=kind))

    def all_turns(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    def latest_prompt(self) -> ConversationTurn | None:
        for turn in reversed(self._turns):
            if turn.speaker == Speaker.SYSTEM and turn.choices:
                return turn
        return None

    def label_for_token(self, token: str) -> str:
        """Display text for a clicked choice, falling back to the raw token."""
        for turn in reversed(self._turns):
            for choice in turn.choices:
                if choice.token == token:
                    return choice.label
        return token
