"""Slash commands typed at the start of a user message.

Model overrides (``/opus``, ``/sonnet``, ``/haiku``) pass the rest of the
message through to the API on a forced tier. Local commands (``/cost``,
``/help``, ``/clear``, ``/export``) are handled without an API call.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from turnloop.markers import strip_all_markers
from turnloop.models.config import ModelTier
from turnloop.models.conversation import StoredMessage


class BuiltInCommand(str, Enum):
    """Commands available in every session."""

    OPUS = "opus"
    SONNET = "sonnet"
    HAIKU = "haiku"
    COST = "cost"
    HELP = "help"
    CLEAR = "clear"
    EXPORT = "export"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def is_passthrough(self) -> bool:
        return self.forced_tier is not None

    @property
    def forced_tier(self) -> ModelTier | None:
        return _FORCED_TIERS.get(self)


_DESCRIPTIONS = {
    BuiltInCommand.OPUS: "Force Opus model for this message",
    BuiltInCommand.SONNET: "Force Sonnet model for this message",
    BuiltInCommand.HAIKU: "Force Haiku model for this message",
    BuiltInCommand.COST: "Show token cost summary for this chat",
    BuiltInCommand.HELP: "List available slash commands",
    BuiltInCommand.CLEAR: "Clear the current chat",
    BuiltInCommand.EXPORT: "Export chat to markdown",
}

_FORCED_TIERS = {
    BuiltInCommand.OPUS: ModelTier.OPUS,
    BuiltInCommand.SONNET: ModelTier.SONNET,
    BuiltInCommand.HAIKU: ModelTier.HAIKU,
}


@dataclass(frozen=True)
class SlashCommand:
    """A parsed command and the text that followed it."""

    command: BuiltInCommand
    remainder: str
    original: str

    @property
    def message_text(self) -> str:
        """Text to send for a passthrough command.

        A bare ``/opus`` sends the original text unchanged.
        """
        return self.remainder or self.original


def parse_command(text: str) -> SlashCommand | None:
    """Parse a leading slash command.

    Args:
        text: Raw user input.

    Returns:
        The parsed command, or None when the text does not start with a
        known command.
    """
    trimmed = text.strip()
    if not trimmed.startswith("/"):
        return None

    words = trimmed[1:].split(maxsplit=1)
    if not words:
        return None
    try:
        command = BuiltInCommand(words[0].lower())
    except ValueError:
        return None
    rest = words[1].strip() if len(words) > 1 else ""
    return SlashCommand(command=command, remainder=rest, original=text)


def help_text() -> str:
    lines = ["**Available Slash Commands**", "", "*Built-in:*"]
    for command in BuiltInCommand:
        lines.append(f"  /{command.value} - {command.description}")
    return "\n".join(lines)


@dataclass
class _TierUsage:
    responses: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0


def cost_summary(history: Sequence[StoredMessage]) -> str:
    """Summarize token usage and estimated cost per tier.

    Only assistant messages carry usage. Messages without a recognizable
    model id are counted under "Unknown" at no cost.
    """
    usage: dict[str, _TierUsage] = {}
    for message in history:
        if message.role != "assistant":
            continue
        tier = message.tier
        label = tier.display_name if tier is not None else "Unknown"
        bucket = usage.setdefault(label, _TierUsage())
        bucket.responses += 1
        bucket.input_tokens += message.input_tokens
        bucket.output_tokens += message.output_tokens
        if tier is not None:
            bucket.cost += tier.cost(message.input_tokens, message.output_tokens)

    if not usage:
        return "**Token Cost Summary**\n\nNo assistant messages yet."

    lines = ["**Token Cost Summary**", ""]
    for label, bucket in usage.items():
        lines.append(
            f"  {label}: {bucket.responses} response(s), {bucket.input_tokens:,} in / "
            f"{bucket.output_tokens:,} out, ${bucket.cost:.4f}"
        )
    lines.append("")
    lines.append(f"Total: ${sum(bucket.cost for bucket in usage.values()):.4f}")
    return "\n".join(lines)


def export_markdown(
    name: str,
    history: Sequence[StoredMessage],
    threshold: int = 0,
    exported_at: datetime | None = None,
) -> str:
    """Render a chat as markdown.

    Only final messages are exported. A turn (user message plus its reply)
    is included when the user message's grade is at least ``threshold``.
    Markers are stripped from every message.
    """
    finals = [message for message in history if message.is_final_response]

    turns: list[tuple[StoredMessage, StoredMessage | None]] = []
    total_turns = 0
    index = 0
    while index < len(finals):
        message = finals[index]
        if message.role != "user":
            index += 1
            continue
        total_turns += 1
        reply = finals[index + 1] if index + 1 < len(finals) else None
        if reply is not None and reply.role != "assistant":
            reply = None
        if message.text_grade >= threshold:
            turns.append((message, reply))
        index += 2 if reply is not None else 1

    moment = exported_at or datetime.now()
    date = f"{moment:%B} {moment.day}, {moment.year}"
    lines = [
        f"# {name}",
        "",
        f"Exported: {date} | Turns: {len(turns)} of {total_turns} (threshold ≥ {threshold})",
        "",
    ]
    for user, reply in turns:
        lines.extend(["---", "", "**User:**", strip_all_markers(user.content), ""])
        if reply is not None:
            lines.extend(["**Assistant:**", strip_all_markers(reply.content), ""])
    if turns:
        lines.append("---")
    return "\n".join(lines)
