from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .state_schema import ActorRole, SessionContext

DEFAULT_API_BASE_URL = "http://localhost:8081/api"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True, slots=True)
class WizardConfig:
    api_base_url: str = DEFAULT_API_BASE_URL
    http_timeout: float = 30.0
    max_upload_mb: int = 10
    created_by: str = "onboarding-wizard"
    log_level: str = "INFO"
    manual_redirect: str = "/onboarding/wizard"

    @classmethod
    def from_env(cls, env_file: Path | str | None = None) -> "WizardConfig":
        """Resolve settings from a .env file (if present) and the environment."""
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv()

        return cls(
            api_base_url=os.environ.get("ONBOARDING_API_BASE_URL", DEFAULT_API_BASE_URL).strip(),
            http_timeout=_env_float("ONBOARDING_HTTP_TIMEOUT", 30.0),
            max_upload_mb=_env_int("ONBOARDING_MAX_UPLOAD_MB", 10),
            created_by=os.environ.get("ONBOARDING_CREATED_BY", "onboarding-wizard").strip() or "onboarding-wizard",
            log_level=os.environ.get("ONBOARDING_LOG_LEVEL", "INFO").strip().upper() or "INFO",
            manual_redirect=os.environ.get("ONBOARDING_MANUAL_REDIRECT", "/onboarding/wizard").strip(),
        )


def session_from_env() -> SessionContext:
    """Session identity for hosts without a login flow (CLI, local Streamlit)."""
    raw_role = os.environ.get("ONBOARDING_ACTOR_ROLE", ActorRole.PLATFORM_ADMIN.value).strip().lower()
    try:
        role = ActorRole(raw_role)
    except ValueError as exc:
        allowed = ", ".join(r.value for r in ActorRole)
        raise ValueError(f"ONBOARDING_ACTOR_ROLE must be one of: {allowed}") from exc

    token = os.environ.get("ONBOARDING_ACCESS_TOKEN", "").strip() or None
    return SessionContext(
        actor_role=role,
        organization_id=os.environ.get("ONBOARDING_ORGANIZATION_ID", "").strip() or None,
        is_authenticated=token is not None,
        access_token=token,
    )
