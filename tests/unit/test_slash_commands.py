"""Tests for slash command parsing and local command output."""

from datetime import datetime

import pytest

from turnloop.commands import (
    BuiltInCommand,
    cost_summary,
    export_markdown,
    help_text,
    parse_command,
)
from turnloop.models.config import ModelTier
from turnloop.models.conversation import StoredMessage


def _reply(tier: ModelTier | None, input_tokens: int, output_tokens: int) -> StoredMessage:
    return StoredMessage(
        role="assistant",
        content="ok",
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        model_id=tier.model_id if tier is not None else "",
    )


class TestParseCommand:
    """Tests for parse_command."""

    def test_passthrough_with_text(self) -> None:
        """Model overrides carry the rest of the message."""
        parsed = parse_command("/opus explain monads")
        assert parsed is not None
        assert parsed.command is BuiltInCommand.OPUS
        assert parsed.command.forced_tier is ModelTier.OPUS
        assert parsed.message_text == "explain monads"

    def test_bare_passthrough_sends_original(self) -> None:
        """A bare override sends the original text."""
        parsed = parse_command("/haiku")
        assert parsed is not None
        assert parsed.message_text == "/haiku"

    def test_case_and_whitespace(self) -> None:
        """Commands are case-insensitive and tolerate surrounding space."""
        parsed = parse_command("  /SONNET\n  multi\nline  ")
        assert parsed is not None
        assert parsed.command is BuiltInCommand.SONNET
        assert parsed.message_text == "multi\nline"

    @pytest.mark.parametrize("text", ["hello", "/unknown thing", "/", "path /opus", ""])
    def test_not_a_command(self, text: str) -> None:
        """Unknown or non-leading commands are ordinary text."""
        assert parse_command(text) is None

    @pytest.mark.parametrize(
        "command",
        [BuiltInCommand.COST, BuiltInCommand.HELP, BuiltInCommand.CLEAR, BuiltInCommand.EXPORT],
    )
    def test_local_commands(self, command: BuiltInCommand) -> None:
        """Local commands are not passed to the model."""
        parsed = parse_command(f"/{command.value}")
        assert parsed is not None
        assert not parsed.command.is_passthrough
        assert parsed.command.forced_tier is None


class TestHelpText:
    """Tests for /help output."""

    def test_lists_every_command(self) -> None:
        """Each command appears with its description."""
        text = help_text()
        assert text.startswith("**Available Slash Commands**")
        for command in BuiltInCommand:
            assert f"  /{command.value} - {command.description}" in text


class TestCostSummary:
    """Tests for /cost output."""

    def test_empty(self) -> None:
        """Without replies there is nothing to total."""
        history = [StoredMessage(role="user", content="hi")]
        assert cost_summary(history) == "**Token Cost Summary**\n\nNo assistant messages yet."

    def test_per_tier_and_total(self) -> None:
        """Usage is grouped by tier and priced."""
        history = [
            StoredMessage(role="user", content="q", input_tokens=999),
            _reply(ModelTier.HAIKU, 1000, 500),
            _reply(ModelTier.HAIKU, 1000, 500),
            _reply(ModelTier.SONNET, 2000, 1000),
        ]
        assert cost_summary(history) == (
            "**Token Cost Summary**\n"
            "\n"
            "  Haiku 4.5: 2 response(s), 2,000 in / 1,000 out, $0.0056\n"
            "  Sonnet 4.5: 1 response(s), 2,000 in / 1,000 out, $0.0210\n"
            "\n"
            "Total: $0.0266"
        )

    def test_unknown_model(self) -> None:
        """Unrecognized model ids are counted but not priced."""
        summary = cost_summary([_reply(None, 10, 10)])
        assert "  Unknown: 1 response(s), 10 in / 10 out, $0.0000" in summary
        assert summary.endswith("Total: $0.0000")


class TestExportMarkdown:
    """Tests for /export output."""

    def test_export(self) -> None:
        """Final turns are exported with markers stripped."""
        history = [
            StoredMessage(role="user", content='<!--image:{"id":"1","media_type":"image/png","data":"A"}-->\nLook'),
            StoredMessage(role="assistant", content="step", is_final_response=False),
            StoredMessage(role="assistant", content="A cat.\n<!--tip:Described image-->"),
            StoredMessage(role="user", content="skip me", text_grade=1),
            StoredMessage(role="assistant", content="skipped"),
        ]
        text = export_markdown("Pets", history, threshold=2, exported_at=datetime(2026, 3, 7))
        assert text == (
            "# Pets\n"
            "\n"
            "Exported: March 7, 2026 | Turns: 1 of 2 (threshold ≥ 2)\n"
            "\n"
            "---\n"
            "\n"
            "**User:**\n"
            "Look\n"
            "\n"
            "**Assistant:**\n"
            "A cat.\n"
            "\n"
            "---"
        )

    def test_unanswered_turn(self) -> None:
        """A user message without a reply is exported alone."""
        history = [StoredMessage(role="user", content="hello?")]
        text = export_markdown("Chat", history, exported_at=datetime(2026, 1, 2))
        assert "**User:**\nhello?\n" in text
        assert "**Assistant:**" not in text

    def test_empty(self) -> None:
        """An empty chat has only the header."""
        text = export_markdown("Empty", [], exported_at=datetime(2026, 1, 2))
        assert text == "# Empty\n\nExported: January 2, 2026 | Turns: 0 of 0 (threshold ≥ 0)\n"
