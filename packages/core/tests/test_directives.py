"""Tests for directive recognition in comment bodies."""

import pytest

from laforge_core.directives import AGENT, CRITIQUE, parse_directive, strip_non_prose


class TestParseDirective:
    def test_agent_inside_prose(self):
        directive = parse_directive("Looks good, /agent haiku please", actor="alice", timestamp="t")
        assert directive.kind == AGENT
        assert directive.target_agent == "haiku"
        assert directive.actor == "alice"
        assert directive.timestamp == "t"

    def test_critique_alone(self):
        directive = parse_directive("/critique opus")
        assert directive.kind == CRITIQUE
        assert directive.target_agent == "opus"

    def test_critique_wins_over_agent(self):
        directive = parse_directive("/agent haiku\n\nand also /critique opus")
        assert directive.kind == CRITIQUE
        assert directive.target_agent == "opus"

    def test_first_agent_match_wins(self):
        assert parse_directive("/agent haiku then /agent opus").target_agent == "haiku"

    @pytest.mark.parametrize("body", [None, "", "Thanks!", "/agent", "/agent   ", "see /agents list"])
    def test_no_directive(self, body):
        assert parse_directive(body) is None

    def test_unregistered_name_still_parsed(self):
        assert parse_directive("/agent gpt5").target_agent == "gpt5"

    def test_ignored_inside_fenced_code(self):
        body = "Example:\n```\n/agent opus\n```\nNothing else."
        assert parse_directive(body) is None

    def test_ignored_inside_tilde_fence(self):
        assert parse_directive("~~~text\n/critique opus\n~~~") is None

    def test_recognised_after_fence_closes(self):
        body = "```\n/agent opus\n```\n/agent haiku"
        assert parse_directive(body).target_agent == "haiku"

    def test_ignored_inside_inline_code(self):
        assert parse_directive("Type `/agent opus` to switch.") is None

    def test_ignored_in_blockquote(self):
        body = "> /agent opus\n\nI disagree with the above."
        assert parse_directive(body) is None

    def test_not_matched_inside_url(self):
        assert parse_directive("See https://example.com/agent docs") is None

    def test_directive_on_its_own_line(self):
        assert parse_directive("Please switch.\n/agent sonnet\nThanks").target_agent == "sonnet"

    @pytest.mark.parametrize("body", ["**/agent opus**", "(/agent opus)", "Switch:/agent opus", "\"/agent opus\""])
    def test_recognised_after_punctuation(self, body):
        assert parse_directive(body).target_agent == "opus"

    @pytest.mark.parametrize("body", ["see docs/agent opus", "path//agent opus"])
    def test_not_matched_inside_paths(self, body):
        assert parse_directive(body) is None


def test_strip_non_prose_keeps_line_count():
    body = "a\n```\ncode\n```\n> quote\nb"
    assert strip_non_prose(body).split("\n") == ["a", "", "", "", "", "b"]
