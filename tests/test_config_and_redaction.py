import io
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from src.guidedsetup import cli
from src.guidedsetup.config import WizardConfig, session_from_env
from src.guidedsetup.pii_guard import redact_payload, redact_text
from src.guidedsetup.runtime import build_gateway, build_graph
from src.guidedsetup.state_schema import ActorRole, SessionContext


class TestWizardConfig(unittest.TestCase):
    def test_defaults(self):
        config = WizardConfig()
        self.assertEqual(config.max_upload_mb, 10)
        self.assertEqual(config.created_by, "onboarding-wizard")
        self.assertEqual(config.manual_redirect, "/onboarding/wizard")

    @patch.dict(
        os.environ,
        {
            "ONBOARDING_API_BASE_URL": "https://api.example.com/api",
            "ONBOARDING_HTTP_TIMEOUT": "5",
            "ONBOARDING_MAX_UPLOAD_MB": "2",
            "ONBOARDING_LOG_LEVEL": "debug",
        },
        clear=True,
    )
    def test_from_env(self):
        config = WizardConfig.from_env(Path(tempfile.gettempdir()) / "missing.env")
        self.assertEqual(config.api_base_url, "https://api.example.com/api")
        self.assertEqual(config.http_timeout, 5.0)
        self.assertEqual(config.max_upload_mb, 2)
        self.assertEqual(config.log_level, "DEBUG")

    @patch.dict(os.environ, {"ONBOARDING_MAX_UPLOAD_MB": "lots"}, clear=True)
    def test_bad_integer_raises(self):
        with self.assertRaises(ValueError):
            WizardConfig.from_env(Path(tempfile.gettempdir()) / "missing.env")

    def test_dotenv_file_is_read(self):
        with tempfile.NamedTemporaryFile("w", suffix=".env", delete=False) as fh:
            fh.write("ONBOARDING_CREATED_BY=setup-bot\n")
        with patch.dict(os.environ, {}, clear=True):
            config = WizardConfig.from_env(fh.name)
        self.assertEqual(config.created_by, "setup-bot")


class TestSessionFromEnv(unittest.TestCase):
    @patch.dict(
        os.environ,
        {
            "ONBOARDING_ACTOR_ROLE": "org_admin",
            "ONBOARDING_ORGANIZATION_ID": "org-9",
            "ONBOARDING_ACCESS_TOKEN": "tok",
        },
        clear=True,
    )
    def test_org_admin_session(self):
        session = session_from_env()
        self.assertEqual(session.actor_role, ActorRole.ORG_ADMIN)
        self.assertTrue(session.is_authenticated)
        self.assertTrue(session.has_credentials)

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults_to_platform_admin_without_credentials(self):
        session = session_from_env()
        self.assertEqual(session.actor_role, ActorRole.PLATFORM_ADMIN)
        self.assertFalse(session.has_credentials)

    @patch.dict(os.environ, {"ONBOARDING_ACTOR_ROLE": "superuser"}, clear=True)
    def test_unknown_role_rejected(self):
        with self.assertRaises(ValueError):
            session_from_env()


class TestRuntime(unittest.TestCase):
    def test_build_graph_uses_config(self):
        config = WizardConfig(api_base_url="http://api.test", http_timeout=3.0, created_by="cli")
        gateway = build_gateway(config)
        self.assertEqual(gateway.base_url, "http://api.test")
        self.assertEqual(gateway.timeout, 3.0)
        graph = build_graph(SessionContext(actor_role=ActorRole.ORG_ADMIN), config, session_id="rt")
        self.assertEqual(graph.state.session_id, "rt")
        self.assertEqual(graph.gateway.created_by, "cli")


class TestCliEnvLoading(unittest.TestCase):
    @patch.dict(os.environ, {}, clear=True)
    def test_env_file_is_loaded_once(self):
        argv = ["guided-setup", "--env-file", "custom.env"]
        with (
            patch("sys.argv", argv),
            patch("src.guidedsetup.config.load_dotenv") as load,
            patch("builtins.input", side_effect=EOFError),
            redirect_stdout(io.StringIO()) as out,
        ):
            cli.main()
        load.assert_called_once_with("custom.env")
        self.assertIn("Session ended by user", out.getvalue())


class TestRedaction(unittest.TestCase):
    def test_redacts_email_and_phone(self):
        text = "Reach me at priya@company.com or +91 98765 43210"
        redacted = redact_text(text)
        self.assertIn("p***@company.com", redacted)
        self.assertIn("[REDACTED_PHONE]", redacted)
        self.assertNotIn("priya@", redacted)

    def test_redacts_secret_keys_recursively(self):
        payload = {"access_token": "abc", "nested": {"token": "x", "note": "ops@company.com"}, "count": 2}
        redacted = redact_payload(payload)
        self.assertEqual(redacted["access_token"], "[REDACTED]")
        self.assertEqual(redacted["nested"]["token"], "[REDACTED]")
        self.assertEqual(redacted["nested"]["note"], "o***@company.com")
        self.assertEqual(redacted["count"], 2)


if __name__ == "__main__":
    unittest.main()
