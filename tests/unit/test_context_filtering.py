"""Tests for context filtering and wire formatting of past turns."""

import pytest

from turnloop.markers import make_marker
from turnloop.models.conversation import MediaAttachment, StoredMessage, TextPart
from turnloop.orchestrator.context import (
    PAST_IMAGE_PLACEHOLDER,
    build_api_message,
    build_messages,
    build_user_message,
    filter_context,
)


def _user(content: str, grade: int = 5) -> StoredMessage:
    return StoredMessage(role="user", content=content, text_grade=grade)


def _assistant(content: str, final: bool = True) -> StoredMessage:
    return StoredMessage(role="assistant", content=content, is_final_response=final)


class TestFilterContext:
    """Tests for filter_context."""

    def test_default_keeps_everything_graded(self) -> None:
        """With threshold 0 every turn above grade zero is kept."""
        history = [_user("a", 1), _assistant("A"), _user("b"), _assistant("B")]
        assert [m.content for m in filter_context(history)] == ["a", "A", "b", "B"]

    def test_grade_zero_always_dropped(self) -> None:
        """Grade zero excludes a turn even at threshold 0."""
        history = [_user("a", 0), _assistant("A"), _user("b"), _assistant("B")]
        assert [m.content for m in filter_context(history, 0)] == ["b", "B"]

    @pytest.mark.parametrize(
        ("threshold", "expected"),
        [
            (1, ["low", "LOW", "high", "HIGH"]),
            (3, ["high", "HIGH"]),
            (5, []),
        ],
    )
    def test_threshold(self, threshold: int, expected: list[str]) -> None:
        """A turn survives when its user grade meets the threshold."""
        history = [_user("low", 2), _assistant("LOW"), _user("high", 4), _assistant("HIGH")]
        assert [m.content for m in filter_context(history, threshold)] == expected

    def test_intermediate_messages_skipped(self) -> None:
        """Tool-round messages never reach the payload, and the final reply still does."""
        history = [_user("q"), _assistant("thinking", final=False), _assistant("answer")]
        assert [m.content for m in filter_context(history)] == ["q", "answer"]

    def test_dropped_turn_takes_its_reply(self) -> None:
        """The reply of a dropped user message is dropped with it."""
        history = [
            _user("drop", 0),
            _assistant("step", final=False),
            _assistant("dropped reply"),
            _user("keep"),
            _assistant("kept reply"),
        ]
        assert [m.content for m in filter_context(history)] == ["keep", "kept reply"]

    def test_unanswered_user_message_kept(self) -> None:
        """A user message whose turn failed is still context."""
        history = [_user("lost"), _user("retry"), _assistant("ok")]
        assert [m.content for m in filter_context(history)] == ["lost", "retry", "ok"]


class TestBuildApiMessage:
    """Tests for past-message wire formatting."""

    def test_assistant_markers_stripped(self) -> None:
        """Weather markers and tips never go back to the model."""
        marker = make_marker("weather", {"city": "X"})
        message = build_api_message(_assistant(f"{marker}\nSunny.\n<!--tip:Gave weather-->"))
        assert message.to_api() == {"role": "assistant", "content": "Sunny."}

    def test_past_images_become_placeholder(self) -> None:
        """Images from earlier turns are not resent."""
        marker = make_marker("image", {"id": "i", "media_type": "image/png", "data": "AAAA"})
        message = build_api_message(_user(f"{marker}\nWhat is this?"))
        assert message.content == [
            TextPart(text=PAST_IMAGE_PLACEHOLDER),
            TextPart(text="What is this?"),
        ]

    def test_image_only_message(self) -> None:
        """An image without text becomes just the placeholder."""
        marker = make_marker("image", {"id": "i", "media_type": "image/png", "data": "AAAA"})
        assert build_api_message(_user(marker)).content == [TextPart(text=PAST_IMAGE_PLACEHOLDER)]

    def test_plain_user_message(self) -> None:
        """Plain user text stays a string."""
        assert build_api_message(_user("hello")).content == "hello"


class TestBuildUserMessage:
    """Tests for the current user message."""

    def test_plain(self) -> None:
        """Without attachments the content is a string."""
        assert build_user_message("hi").content == "hi"

    def test_images_then_text(self) -> None:
        """Attachments keep their order and precede the text."""
        message = build_user_message(
            "compare",
            [
                MediaAttachment(media_type="image/png", data="A"),
                MediaAttachment(media_type="image/jpeg", data="B"),
            ],
        )
        parts = message.to_api()["content"]
        assert [part["type"] for part in parts] == ["image", "image", "text"]
        assert [parts[0]["source"]["data"], parts[1]["source"]["data"]] == ["A", "B"]

    def test_blank_text_omitted(self) -> None:
        """A whitespace-only caption adds no text part."""
        message = build_user_message("  ", [MediaAttachment(media_type="image/png", data="A")])
        assert len(message.content) == 1

    def test_build_messages(self) -> None:
        """Filtered history comes before the current input."""
        history = [_user("old", 1), _assistant("reply")]
        messages = build_messages(history, 2, "new")
        assert [m.to_api() for m in messages] == [{"role": "user", "content": "new"}]

    @pytest.mark.parametrize(
        "reply",
        ["", "<!--tip:Ran out of rounds-->", make_marker("weather", {"city": "X"})],
    )
    def test_empty_reply_dropped_with_its_question(self, reply: str) -> None:
        """A reply with no text after marker stripping is dropped with its user message."""
        history = [_user("first"), _assistant("one"), _user("stuck"), _assistant(reply)]
        messages = build_messages(history, 0, "next")
        assert [m.to_api() for m in messages] == [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "one"},
            {"role": "user", "content": "next"},
        ]

    def test_leading_empty_reply_dropped(self) -> None:
        """An empty reply with no user message before it is simply skipped."""
        messages = build_messages([_assistant("")], 0, "next")
        assert [m.to_api() for m in messages] == [{"role": "user", "content": "next"}]
