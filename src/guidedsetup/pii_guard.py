from __future__ import annotations

import re
from typing import Iterable

_EMAIL_RE = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")
_PHONE_RE = re.compile(r"\b(?:\+?\d{1,3}[ -]?)?(?:\d[ -]?){9,12}\b")


DEFAULT_SECRET_KEYS = {"access_token", "auth_token", "token", "password"}


def redact_text(text: str) -> str:
    """Masks emails down to first letter and domain, and drops phone numbers."""
    text = _EMAIL_RE.sub(r"\1***@\2", text)
    text = _PHONE_RE.sub("[REDACTED_PHONE]", text)
    return text


def redact_payload(payload: dict, secret_keys: Iterable[str] = DEFAULT_SECRET_KEYS) -> dict:
    redacted = {}
    secret_keys = set(secret_keys)
    for key, value in payload.items():
        if key in secret_keys:
            redacted[key] = "[REDACTED]" if value else value
        elif isinstance(value, str):
            redacted[key] = redact_text(value)
        elif isinstance(value, dict):
            redacted[key] = redact_payload(value, secret_keys)
        else:
            redacted[key] = value
    return redacted
