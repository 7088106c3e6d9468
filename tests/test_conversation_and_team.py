import unittest
from datetime import datetime, timezone

from src.guidedsetup.actions import Action, parse_action_token
from src.guidedsetup.conversation import Choice, ConversationLog, TurnDraft
from src.guidedsetup.state_schema import Speaker, TurnKind
from src.guidedsetup.team import DEFAULT_TEAM_ROLE, parse_team_input


class TestConversationLog(unittest.TestCase):
    def test_append_assigns_ids_and_timestamps(self):
        fixed = datetime(2024, 1, 1, tzinfo=timezone.utc)
        log = ConversationLog(clock=lambda: fixed)
        first = log.append_system("hello")
        second = log.append_user("hi")
        self.assertEqual(first, "turn-0001")
        self.assertEqual(second, "turn-0002")
        self.assertEqual(log.all_turns()[0].timestamp, fixed)
        self.assertEqual(log.all_turns()[1].speaker, Speaker.USER)

    def test_iteration_is_restartable(self):
        log = ConversationLog()
        log.append_system("a")
        log.append_system("b")
        self.assertEqual([t.body for t in log], ["a", "b"])
        self.assertEqual([t.body for t in log], ["a", "b"])

    def test_earlier_snapshot_is_prefix(self):
        log = ConversationLog()
        log.append_system("a")
        before = log.all_turns()
        log.append_user("b")
        after = log.all_turns()
        self.assertEqual(after[: len(before)], before)

    def test_choices_make_choice_prompt(self):
        draft = TurnDraft.system("pick", [Choice("One", "skip_team")])
        self.assertEqual(draft.kind, TurnKind.CHOICE_PROMPT)
        self.assertEqual(TurnDraft.system("plain").kind, TurnKind.TEXT)

    def test_label_for_token_and_latest_prompt(self):
        log = ConversationLog()
        log.append_system("pick", [Choice("⏭️ Skip", "skip_team")])
        log.append_system("no choices")
        self.assertEqual(log.label_for_token("skip_team"), "⏭️ Skip")
        self.assertEqual(log.label_for_token("unknown"), "unknown")
        self.assertEqual(log.latest_prompt().body, "pick")

    def test_as_dict(self):
        log = ConversationLog()
        log.append_system("pick", [Choice("Go", "complete")])
        data = log.all_turns()[0].as_dict()
        self.assertEqual(data["kind"], "choice-prompt")
        self.assertEqual(data["choices"], [{"label": "Go", "token": "complete"}])


class TestTeamParsing(unittest.TestCase):
    def test_parses_lines_with_and_without_role(self):
        members = parse_team_input(
            "A,a@x.com,admin\n"
            "B,b@x.com\n"
            "garbage\n"
        )
        self.assertEqual(len(members), 2)
        self.assertEqual(members[0].role, "admin")
        self.assertEqual(members[1].role, DEFAULT_TEAM_ROLE)

    def test_trims_whitespace_and_lowercases_role(self):
        members = parse_team_input("  Rajesh Kumar ,  ceo@company.com , Admin ")
        self.assertEqual(members[0].name, "Rajesh Kumar")
        self.assertEqual(members[0].email, "ceo@company.com")
        self.assertEqual(members[0].role, "admin")

    def test_ignores_header_and_blank_lines(self):
        members = parse_team_input("name,email,role\n\nA,a@x.com,manager\n")
        self.assertEqual([m.email for m in members], ["a@x.com"])

    def test_empty_role_defaults(self):
        self.assertEqual(parse_team_input("A,a@x.com,")[0].role, DEFAULT_TEAM_ROLE)

    def test_nothing_parsable(self):
        self.assertEqual(parse_team_input("just some words"), [])


class TestActionTokens(unittest.TestCase):
    def test_known_tokens(self):
        self.assertEqual(parse_action_token("skip_team"), Action.SKIP_TEAM)
        self.assertEqual(parse_action_token(" Complete "), Action.COMPLETE)

    def test_unknown_token_is_none(self):
        self.assertIsNone(parse_action_token("launch_rockets"))


if __name__ == "__main__":
    unittest.main()
