"""Guided setup wizard: a scripted onboarding conversation over a fixed stage sequence."""

from .actions import Action, parse_action_token
from .catalog import ImportTarget, Stage, StepCatalog, STAGES
from .config import WizardConfig, session_from_env
from .contracts import CONTRACT_VERSIONS, ContractValidationResult, validate_contract_freeze
from .conversation import Choice, ConversationLog, ConversationTurn, TurnDraft
from .cursor import InvalidTransition, StepCursor
from .gateway import (
    BatchInviteCoordinator,
    BatchResult,
    ExternalGateway,
    GatewayUnavailable,
    ImportRejected,
    ImportRowError,
    ImportSummary,
    InvitationOutcome,
)
from .graph import OnboardingGraph, TurnOutput
from .ingestion import UploadedFile, UploadRejected, prepare_for_import
from .router import ActionRouter, RouteOutcome, SendInvitations, SubmitImport
from .runtime import build_gateway, build_graph
from .state_schema import ActorRole, OnboardingState, SessionContext, Speaker, StageId, TurnKind
from .team import TeamMemberDraft, parse_team_input

__all__ = [
    "Action",
    "parse_action_token",
    "ImportTarget",
    "Stage",
    "StepCatalog",
    "STAGES",
    "WizardConfig",
    "session_from_env",
    "CONTRACT_VERSIONS",
    "ContractValidationResult",
    "validate_contract_freeze",
    "Choice",
    "ConversationLog",
    "ConversationTurn",
    "TurnDraft",
    "InvalidTransition",
    "StepCursor",
    "BatchInviteCoordinator",
    "BatchResult",
    "ExternalGateway",
    "GatewayUnavailable",
    "ImportRejected",
    "ImportRowError",
    "ImportSummary",
    "InvitationOutcome",
    "OnboardingGraph",
    "TurnOutput",
    "UploadedFile",
    "UploadRejected",
    "prepare_for_import",
    "ActionRouter",
    "RouteOutcome",
    "SendInvitations",
    "SubmitImport",
    "build_gateway",
    "build_graph",
    "ActorRole",
    "OnboardingState",
    "SessionContext",
    "Speaker",
    "StageId",
    "TurnKind",
    "TeamMemberDraft",
    "parse_team_input",
]
