"""Tests for model tiers and stored-message models."""

import pytest

from turnloop.models.config import ModelTier, ToolSettings
from turnloop.models.conversation import AssembledMessage, StopReason, StoredMessage


class TestModelTier:
    """Tests for ModelTier."""

    def test_order(self) -> None:
        """Tiers are ordered cheapest first."""
        assert ModelTier.ordered() == [ModelTier.HAIKU, ModelTier.SONNET, ModelTier.OPUS]
        assert [tier.rank for tier in ModelTier.ordered()] == [0, 1, 2]

    def test_step_up(self) -> None:
        """Stepping up moves one tier and stops at the top."""
        assert ModelTier.HAIKU.step_up() is ModelTier.SONNET
        assert ModelTier.SONNET.step_up() is ModelTier.OPUS
        assert ModelTier.OPUS.step_up() is ModelTier.OPUS

    def test_model_ids(self) -> None:
        """The enum value is the wire model id."""
        assert ModelTier.HAIKU.model_id == "claude-haiku-4-5-20251001"
        assert ModelTier.SONNET.model_id == "claude-sonnet-4-5-20250929"
        assert ModelTier.OPUS.model_id == "claude-opus-4-6"

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("haiku", ModelTier.HAIKU),
            ("SONNET", ModelTier.SONNET),
            (" Opus ", ModelTier.OPUS),
            ("claude-opus-4-6", ModelTier.OPUS),
            ("gpt-4", None),
            ("", None),
        ],
    )
    def test_from_name(self, name: str, expected: ModelTier | None) -> None:
        """Tiers are found by short name, enum name or model id."""
        assert ModelTier.from_name(name) is expected

    def test_cost(self) -> None:
        """Cost uses per-million prices."""
        assert ModelTier.HAIKU.cost(1_000_000, 0) == pytest.approx(0.80)
        assert ModelTier.SONNET.cost(0, 1_000_000) == pytest.approx(15.00)
        assert ModelTier.OPUS.cost(1_000_000, 1_000_000) == pytest.approx(30.00)

    def test_display_names(self) -> None:
        """Every tier has a display name."""
        assert ModelTier.HAIKU.display_name == "Haiku 4.5"
        assert ModelTier.OPUS.display_name == "Opus 4.6"


class TestToolSettings:
    """Tests for tool settings parsing."""

    def test_extraction_tier_short_name(self) -> None:
        """Short tier names are accepted."""
        assert ToolSettings(extraction_tier="sonnet").extraction_tier is ModelTier.SONNET

    def test_extraction_tier_invalid(self) -> None:
        """Unknown tier names fail validation."""
        with pytest.raises(ValueError):
            ToolSettings(extraction_tier="gpt-4")


class TestMessages:
    """Tests for stop reasons and message conversion."""

    def test_stop_reason_parse(self) -> None:
        """Known values map to members; others map to OTHER."""
        assert StopReason.parse("tool_use") is StopReason.TOOL_USE
        assert StopReason.parse("pause_turn") is StopReason.OTHER

    def test_assembled_to_stored(self) -> None:
        """Assembled messages convert to final stored assistant messages."""
        assembled = AssembledMessage(
            content="Hi",
            tip="Greeted",
            input_tokens=10,
            output_tokens=2,
            router_input_tokens=100,
            tier=ModelTier.SONNET,
            turn_id="t1",
        )
        stored = assembled.to_stored()
        assert stored.role == "assistant"
        assert stored.is_final_response
        assert stored.turn_id == "t1"
        assert stored.tip == "Greeted"
        assert (stored.input_tokens, stored.output_tokens) == (10, 2)
        assert stored.tier is ModelTier.SONNET
        assert stored.text_grade == 5

    def test_stored_tier_unknown(self) -> None:
        """Messages without a model id have no tier."""
        assert StoredMessage(role="user", content="x").tier is None

    def test_grade_bounds(self) -> None:
        """Grades must be 0-5."""
        with pytest.raises(ValueError):
            StoredMessage(role="user", content="x", text_grade=6)
