"""Tests for the external gateway with simulated HTTP (no network)."""
import json
import unittest
from unittest.mock import AsyncMock

import httpx

from src.guidedsetup.catalog import StepCatalog
from src.guidedsetup.gateway import (
    BatchInviteCoordinator,
    ExternalGateway,
    GatewayUnavailable,
    ImportRejected,
    ImportSummary,
    InvitationRejected,
)
from src.guidedsetup.ingestion import UploadedFile
from src.guidedsetup.state_schema import StageId
from src.guidedsetup.team import TeamMemberDraft


BASE_URL = "http://api.test/api"
EQUIPMENT_TARGET = StepCatalog().get(StageId.EQUIPMENT).import_target
CSV = UploadedFile(name="equipment.csv", content=b"product_code,product_name\nP1,Vent\n")


def _members(n: int) -> list[TeamMemberDraft]:
    return [TeamMemberDraft(name=f"M{i}", email=f"m{i}@x.com") for i in range(n)]


class TestInvitations(unittest.IsolatedAsyncioTestCase):
    async def test_partial_batch_reports_per_recipient_errors(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            body = json.loads(request.content)
            if body["email"] == "b@x.com":
                return httpx.Response(409, json={"error": "Email already exists"})
            return httpx.Response(201, json={"id": "inv-1"})

        gateway = ExternalGateway(BASE_URL, transport=httpx.MockTransport(handler))
        result = await gateway.send_invitations(
            "org-1",
            "tok",
            [TeamMemberDraft("A", "a@x.com", "admin"), TeamMemberDraft("B", "b@x.com")],
        )

        self.assertEqual(result.attempted, 2)
        self.assertEqual(result.succeeded, 1)
        self.assertTrue(result.is_partial)
        self.assertEqual(result.failed[0].recipient.email, "b@x.com")
        self.assertEqual(result.failed[0].error_detail, "Email already exists")
        self.assertEqual(seen[0].url.path, "/api/v1/organizations/org-1/invitations")
        self.assertEqual(seen[0].headers["Authorization"], "Bearer tok")
        self.assertEqual(json.loads(seen[0].content), {"email": "a@x.com", "name": "A", "role": "admin"})

    async def test_missing_credentials_makes_no_request(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(201)

        gateway = ExternalGateway(BASE_URL, transport=httpx.MockTransport(handler))
        result = await gateway.send_invitations(None, "tok", _members(2))
        self.assertTrue(result.is_unreachable)
        self.assertEqual(result.attempted, 0)
        result = await gateway.send_invitations("org-1", None, _members(2))
        self.assertTrue(result.is_unreachable)
        self.assertEqual(calls, [])

    async def test_network_error_counts_as_recipient_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if json.loads(request.content)["email"] == "m1@x.com":
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(201)

        gateway = ExternalGateway(BASE_URL, transport=httpx.MockTransport(handler))
        result = await gateway.send_invitations("org-1", "tok", _members(3))
        self.assertEqual(result.succeeded, 2)
        self.assertEqual(result.failed[0].error_detail, "network error")

    async def test_missing_base_url_is_unavailable(self):
        gateway = ExternalGateway(None)
        with self.assertRaises(GatewayUnavailable):
            await gateway.send_invitations("org-1", "tok", _members(1))


class TestBatchInviteCoordinator(unittest.IsolatedAsyncioTestCase):
    async def test_counts_match_for_any_failure_mix(self):
        for total in range(1, 6):
            for failing in range(total + 1):
                members = _members(total)
                bad = {m.email for m in members[:failing]}

                async def invite_one(org_id, token, member, bad=bad):
                    if member.email in bad:
                        raise InvitationRejected(400, f"rejected {member.email}")

                result = await BatchInviteCoordinator(invite_one).send_invitations("org", "tok", members)
                self.assertEqual(result.attempted, total)
                self.assertEqual(result.succeeded, total - failing)
                self.assertEqual(len(result.failed), failing)
                self.assertEqual({o.recipient.email for o in result.failed}, bad)

    async def test_one_call_per_recipient_in_order(self):
        invite_one = AsyncMock(return_value=None)
        members = _members(3)
        await BatchInviteCoordinator(invite_one).send_invitations("org", "tok", members)
        self.assertEqual([c.args[2] for c in invite_one.await_args_list], members)

    async def test_no_credentials_no_calls(self):
        invite_one = AsyncMock(return_value=None)
        result = await BatchInviteCoordinator(invite_one).send_invitations("", "tok", _members(2))
        invite_one.assert_not_awaited()
        self.assertTrue(result.is_unreachable)


class TestImports(unittest.IsolatedAsyncioTestCase):
    async def test_dry_run_submission_and_parsing(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "total_rows": 3,
                    "success_count": 1,
                    "failure_count": 2,
                    "errors": [{"row": 2, "message": "Invalid category"}, {"row": 3, "message": "Missing name"}],
                    "dry_run": True,
                },
            )

        gateway = ExternalGateway(BASE_URL, transport=httpx.MockTransport(handler))
        summary = await gateway.submit_import(EQUIPMENT_TARGET, CSV, dry_run=True, auth_token="tok")

        self.assertEqual(summary.total_rows, 3)
        self.assertTrue(summary.has_failures)
        self.assertEqual([e.render() for e in summary.errors], ["Row 2: Invalid category", "Row 3: Missing name"])
        request = seen[0]
        self.assertEqual(request.url.path, "/api/v1/equipment/catalog/import")
        body = request.content
        self.assertIn(b'name="csv_file"; filename="equipment.csv"', body)
        self.assertIn(b'name="dry_run"\r\n\r\ntrue', body)
        self.assertIn(b'name="update_mode"\r\n\r\nfalse', body)
        self.assertIn(b'name="created_by"\r\n\r\nonboarding-wizard', body)

    async def test_plain_string_errors_are_rendered_verbatim(self):
        summary = ImportSummary.from_payload(
            {"total_rows": 2, "success_count": 1, "failure_count": 1, "errors": ["Row 2: invalid phone"]},
            dry_run=True,
        )
        self.assertEqual(summary.errors[0].render(), "Row 2: invalid phone")

    async def test_row_labels_are_kept_as_text(self):
        summary = ImportSummary.from_payload(
            {"errors": [{"row": "header", "message": "missing column product_code"}, {"row": "4", "message": "bad"}]},
            dry_run=True,
        )
        self.assertTrue(summary.has_failures)
        self.assertEqual(
            [e.render() for e in summary.errors],
            ["Row header: missing column product_code", "Row 4: bad"],
        )
        self.assertEqual(summary.errors[1].row, 4)

    async def test_unreadable_summary_raises_import_rejected(self):
        for body in (["unexpected"], {"total_rows": "many"}):
            def handler(request: httpx.Request, body=body) -> httpx.Response:
                return httpx.Response(200, json=body)

            gateway = ExternalGateway(BASE_URL, transport=httpx.MockTransport(handler))
            with self.assertRaises(ImportRejected):
                await gateway.submit_import(EQUIPMENT_TARGET, CSV, dry_run=True)

    async def test_non_2xx_raises_import_rejected(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "csv_file is required"})

        gateway = ExternalGateway(BASE_URL, transport=httpx.MockTransport(handler))
        with self.assertRaises(ImportRejected) as ctx:
            await gateway.submit_import(EQUIPMENT_TARGET, CSV, dry_run=True)
        self.assertEqual(str(ctx.exception), "csv_file is required")

    async def test_transport_error_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway = ExternalGateway(BASE_URL, transport=httpx.MockTransport(handler))
        with self.assertRaises(GatewayUnavailable):
            await gateway.submit_import(EQUIPMENT_TARGET, CSV, dry_run=False)

    async def test_no_base_url_is_unavailable(self):
        with self.assertRaises(GatewayUnavailable):
            await ExternalGateway("").submit_import(EQUIPMENT_TARGET, CSV, dry_run=True)


if __name__ == "__main__":
    unittest.main()
