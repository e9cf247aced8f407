"""Context filtering and API payload formatting for past turns."""

from collections.abc import Sequence

from turnloop.markers import extract_images_and_clean_text, strip_all_markers
from turnloop.models.conversation import (
    ConversationMessage,
    ImagePart,
    ImageSource,
    MediaAttachment,
    StoredMessage,
    TextPart,
)

PAST_IMAGE_PLACEHOLDER = "[Image previously shared and analyzed]"


def filter_context(history: Sequence[StoredMessage], threshold: int = 0) -> list[StoredMessage]:
    """Select the stored messages that go into the API payload.

    Intermediate tool-loop messages are always dropped. A turn is a user
    message plus the final assistant message right after it; the turn is
    kept only when the user message's grade is at least ``threshold`` and
    above zero. Dropped turns stay in persisted history.

    Args:
        history: Stored messages, oldest first.
        threshold: Session context threshold (0-5).

    Returns:
        Messages to include, in order.
    """
    minimum = max(threshold, 1)
    kept: list[StoredMessage] = []
    # Assistant messages follow the decision made for the user message before them
    include = True
    for message in history:
        if not message.is_final_response:
            continue
        if message.role == "user":
            include = message.text_grade >= minimum
        if include:
            kept.append(message)
    return kept


def build_api_message(message: StoredMessage) -> ConversationMessage:
    """Convert a past stored message to wire form.

    Past images are replaced by a short placeholder, since the model has
    already seen them. Every marker is stripped from the text.
    """
    if message.role == "user":
        images, clean_text = extract_images_and_clean_text(message.content)
        if images:
            parts: list[TextPart] = [TextPart(text=PAST_IMAGE_PLACEHOLDER)]
            text = strip_all_markers(clean_text)
            if text:
                parts.append(TextPart(text=text))
            return ConversationMessage(role="user", content=parts)

    return ConversationMessage(role=message.role, content=strip_all_markers(message.content))


def build_user_message(text: str, attachments: Sequence[MediaAttachment] = ()) -> ConversationMessage:
    """Wire form of the current user input.

    Attached images come first, then the text. Without attachments the
    content is a plain string.
    """
    if not attachments:
        return ConversationMessage(role="user", content=text)

    parts: list[ImagePart | TextPart] = [
        ImagePart(source=ImageSource(media_type=item.media_type, data=item.data))
        for item in attachments
    ]
    if text.strip():
        parts.append(TextPart(text=text))
    return ConversationMessage(role="user", content=parts)


def build_messages(
    history: Sequence[StoredMessage],
    threshold: int,
    text: str,
    attachments: Sequence[MediaAttachment] = (),
) -> list[ConversationMessage]:
    """Filtered history followed by the current user message.

    A past reply with no text left after marker stripping (a turn cut off
    at the iteration cap mid tool round) is dropped along with the user
    message it answered, since the API rejects empty assistant content.
    """
    messages: list[ConversationMessage] = []
    for message in filter_context(history, threshold):
        api_message = build_api_message(message)
        if api_message.role == "assistant" and not api_message.content:
            if messages and messages[-1].role == "user":
                messages.pop()
            continue
        messages.append(api_message)
    messages.append(build_user_message(text, attachments))
    return messages
