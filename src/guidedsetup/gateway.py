"""Network side effects of the wizard: invitation batches and bulk import submissions.

Nothing else in the package performs I/O. Handlers describe what they want
done; the graph calls into this module and turns the results into turns.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx
import structlog

from .catalog import ImportTarget
from .ingestion import UploadedFile
from .pii_guard import redact_text
from .team import TeamMemberDraft

logger = structlog.get_logger()

MISSING_CREDENTIALS_REASON = "no organization or credential available for this session"


class GatewayUnavailable(RuntimeError):
    """The external service cannot be called at all."""


class ImportRejected(RuntimeError):
    """The import endpoint refused the submission or answered with something that is not a summary."""


class InvitationRejected(RuntimeError):
    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class InvitationOutcome:
    recipient: TeamMemberDraft
    succeeded: bool
    error_detail: str | None = None


@dataclass(frozen=True, slots=True)
class BatchResult:
    attempted: int
    succeeded: int
    failed: tuple[InvitationOutcome, ...] = ()
    unreachable_reason: str | None = None

    @classmethod
    def from_outcomes(cls, outcomes: list[InvitationOutcome]) -> "BatchResult":
        return cls(
            attempted=len(outcomes),
            succeeded=sum(1 for o in outcomes if o.succeeded),
            failed=tuple(o for o in outcomes if not o.succeeded),
        )

    @classmethod
    def unreachable(cls, reason: str) -> "BatchResult":
        return cls(attempted=0, succeeded=0, failed=(), unreachable_reason=reason)

    @property
    def is_unreachable(self) -> bool:
        return self.unreachable_reason is not None

    @property
    def is_full_success(self) -> bool:
        return not self.is_unreachable and self.succeeded == self.attempted

    @property
    def is_partial(self) -> bool:
        return 0 < self.succeeded < self.attempted


def _parse_row(raw: Any) -> int | str | None:
    """Numeric rows become ints; labels such as "header" are kept as text."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    return int(text) if text.isdigit() else text


def _count(payload: dict[str, Any], key: str) -> int:
    try:
        return int(payload.get(key) or 0)
    except (TypeError, ValueError) as exc:
        raise ImportRejected(f"Import service returned a non-numeric {key}") from exc


@dataclass(frozen=True, slots=True)
class ImportRowError:
    row: int | str | None
    message: str

    def render(self) -> str:
        if self.row is None:
            return self.message
        return f"Row {self.row}: {self.message}"


@dataclass(frozen=True, slots=True)
class ImportSummary:
    total_rows: int
    success_count: int
    failure_count: int
    errors: tuple[ImportRowError, ...] = ()
    dry_run: bool = True

    @property
    def has_failures(self) -> bool:
        return self.failure_count > 0 or bool(self.errors)

    @classmethod
    def from_payload(cls, payload: Any, *, dry_run: bool) -> "ImportSummary":
        """Builds a summary from the import endpoint's JSON body.

        Raises ImportRejected when the body is not an import summary at all.
        """
        if not isinstance(payload, dict):
            raise ImportRejected("Import service returned an unreadable response")

        raw_errors = payload.get("errors") or []
        if not isinstance(raw_errors, list):
            raw_errors = [raw_errors]

        errors: list[ImportRowError] = []
        for item in raw_errors:
            if isinstance(item, dict):
                errors.append(
                    ImportRowError(
                        row=_parse_row(item.get("row")),
                        message=str(item.get("message", "")).strip(),
                    )
                )
            elif item:
                errors.append(ImportRowError(row=None, message=str(item).strip()))

        return cls(
            total_rows=_count(payload, "total_rows"),
            success_count=_count(payload, "success_count"),
            failure_count=_count(payload, "failure_count"),
            errors=tuple(errors),
            dry_run=bool(payload.get("dry_run", dry_run)),
        )


# ---------------------------------------------------------------------------
# Batch invitations
# ---------------------------------------------------------------------------

InviteOne = Callable[[str, str, TeamMemberDraft], Awaitable[None]]


class BatchInviteCoordinator:
    """Sends one invitation per recipient and aggregates the outcomes.

    A failing recipient never aborts the batch. Without an organization id or
    credential no request is made and a single synthetic failure is reported.
    """

    def __init__(self, invite_one: InviteOne):
        self.invite_one = invite_one

    async def send_invitations(
        self,
        org_id: str | None,
        auth_token: str | None,
        recipients: list[TeamMemberDraft],
    ) -> BatchResult:
        if not org_id or not auth_token:
            logger.warning(
                "Invitation batch skipped",
                reason=MISSING_CREDENTIALS_REASON,
                has_org=bool(org_id),
                has_token=bool(auth_token),
            )
            return BatchResult.unreachable(MISSING_CREDENTIALS_REASON)

        outcomes: list[InvitationOutcome] = []
        for member in recipients:
            try:
                await self.invite_one(org_id, auth_token, member)
            except InvitationRejected as exc:
                outcomes.append(InvitationOutcome(recipient=member, succeeded=False, error_detail=exc.detail))
            except httpx.HTTPError as exc:
                logger.warning("Invitation network error", email=redact_text(member.email), error=str(exc))
                outcomes.append(InvitationOutcome(recipient=member, succeeded=False, error_detail="network error"))
            else:
                outcomes.append(InvitationOutcome(recipient=member, succeeded=True))

        result = BatchResult.from_outcomes(outcomes)
        logger.info(
            "Invitation batch settled",
            org_id=org_id,
            attempted=result.attempted,
            succeeded=result.succeeded,
            failed=len(result.failed),
        )
        return result


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    text = response.text.strip()
    return text or f"HTTP {response.status_code}"


class ExternalGateway:
    """Stateless executor for the backend calls the wizard needs."""

    def __init__(
        self,
        base_url: str | None,
        *,
        timeout: float = 30.0,
        created_by: str = "onboarding-wizard",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.created_by = created_by
        self.transport = transport
        self.invitations = BatchInviteCoordinator(self._invite_one)

    def _client(self, auth_token: str | None) -> httpx.AsyncClient:
        if not self.base_url:
            raise GatewayUnavailable("No API base URL configured")
        headers = {"Authorization": f"Bearer {auth_token}"} if auth_token else {}
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=headers,
            transport=self.transport,
        )

    async def _invite_one(self, org_id: str, auth_token: str, member: TeamMemberDraft) -> None:
        async with self._client(auth_token) as client:
            response = await client.post(
                f"/v1/organizations/{org_id}/invitations",
                json={"email": member.email, "name": member.name, "role": member.role},
            )
        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.warning(
                "Invitation rejected",
                email=redact_text(member.email),
                status_code=response.status_code,
                error=detail,
            )
            raise InvitationRejected(response.status_code, detail)

    async def send_invitations(
        self,
        org_id: str | None,
        auth_token: str | None,
        recipients: list[TeamMemberDraft],
    ) -> BatchResult:
        if org_id and auth_token and not self.base_url:
            raise GatewayUnavailable("No API base URL configured")
        return await self.invitations.send_invitations(org_id, auth_token, recipients)

    async def submit_import(
        self,
        target: ImportTarget,
        upload: UploadedFile,
        *,
        dry_run: bool,
        auth_token: str | None = None,
        update_mode: bool = False,
    ) -> ImportSummary:
        data = {
            "created_by": self.created_by,
            "dry_run": "true" if dry_run else "false",
            "update_mode": "true" if update_mode else "false",
        }
        files = {"csv_file": (upload.name, upload.content, "text/csv")}
        try:
            async with self._client(auth_token) as client:
                response = await client.post(target.path, data=data, files=files)
        except httpx.HTTPError as exc:
            raise GatewayUnavailable(f"Import service unreachable: {exc}") from exc

        if response.status_code >= 400:
            raise ImportRejected(_error_detail(response))

        try:
            payload = response.json()
        except ValueError as exc:
            raise ImportRejected("Import service returned an unreadable response") from exc

        summary = ImportSummary.from_payload(payload, dry_run=dry_run)
        logger.info(
            "Import submitted",
            path=target.path,
            file_name=upload.name,
            dry_run=dry_run,
            total_rows=summary.total_rows,
            success_count=summary.success_count,
            failure_count=summary.failure_count,
        )
        return summary
