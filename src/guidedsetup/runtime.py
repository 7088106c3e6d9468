from __future__ import annotations

from .config import WizardConfig
from .gateway import ExternalGateway
from .graph import OnboardingGraph
from .state_schema import SessionContext


def build_gateway(config: WizardConfig) -> ExternalGateway:
    return ExternalGateway(
        config.api_base_url,
        timeout=config.http_timeout,
        created_by=config.created_by,
    )


def build_graph(
    session: SessionContext,
    config: WizardConfig | None = None,
    *,
    gateway: ExternalGateway | None = None,
    session_id: str | None = None,
) -> OnboardingGraph:
    config = config or WizardConfig()
    return OnboardingGraph(
        session,
        gateway or build_gateway(config),
        config=config,
        session_id=session_id,
    )
