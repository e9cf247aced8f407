"""Chat session: slash commands, persistence and one-turn-at-a-time."""

import asyncio
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from turnloop.commands import (
    BuiltInCommand,
    SlashCommand,
    cost_summary,
    export_markdown,
    help_text,
    parse_command,
)
from turnloop.exceptions import TurnInProgressError
from turnloop.markers import make_marker
from turnloop.models.config import ModelTier
from turnloop.models.conversation import (
    AssembledMessage,
    ConversationTurn,
    ImageMarker,
    MediaAttachment,
    StoredMessage,
)
from turnloop.orchestrator.orchestrator import TurnObserver, TurnOrchestrator, TurnRequest
from turnloop.persistence.storage import ConversationStore

logger = logging.getLogger(__name__)

CLEARED_TEXT = "Chat cleared."


@dataclass
class SessionReply:
    """What a submitted message produced.

    ``message`` is set when the model answered; local commands only
    carry ``text``.
    """

    text: str
    message: AssembledMessage | None = None
    command: BuiltInCommand | None = None

    @property
    def is_local(self) -> bool:
        return self.message is None


def persisted_user_content(text: str, attachments: Sequence[MediaAttachment] = ()) -> str:
    """User message text with one image marker per attachment in front."""
    markers = [
        make_marker(
            "image",
            ImageMarker(id=uuid.uuid4().hex, media_type=item.media_type, data=item.data),
        )
        for item in attachments
    ]
    if not markers:
        return text
    return "\n".join(markers) + "\n" + text


class ChatSession:
    """A persisted conversation driven through the orchestrator."""

    def __init__(
        self,
        session_id: str,
        orchestrator: TurnOrchestrator,
        store: ConversationStore,
        system_prompt: str,
    ) -> None:
        """Initialize the session.

        Args:
            session_id: Identifier of the stored session.
            orchestrator: Runs each turn.
            store: Persistence collaborator.
            system_prompt: Rendered system prompt sent with every turn.
        """
        self._session_id = session_id
        self._orchestrator = orchestrator
        self._store = store
        self._system_prompt = system_prompt
        self._lock = asyncio.Lock()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def submit(
        self,
        text: str,
        attachments: Sequence[MediaAttachment] = (),
        observer: TurnObserver | None = None,
    ) -> SessionReply:
        """Handle one user input.

        Args:
            text: Raw user input, possibly starting with a slash command.
            attachments: Images attached to this input.
            observer: Progress callbacks for the turn.

        Returns:
            The model's reply, or the output of a local command.

        Raises:
            TurnInProgressError: If another turn is still running.
            TransportError: If the main streaming exchange fails.
            APIStatusError: If the provider rejects the main exchange.
        """
        if self._lock.locked():
            msg = f"A turn is already running in session {self._session_id}"
            raise TurnInProgressError(msg)

        async with self._lock:
            command = parse_command(text)
            if command is not None and not command.command.is_passthrough:
                return self._run_local(command)

            override = command.command.forced_tier if command is not None else None
            message_text = command.message_text if command is not None else text
            return await self._run_turn(message_text, attachments, observer, command, override)

    async def _run_turn(
        self,
        text: str,
        attachments: Sequence[MediaAttachment],
        observer: TurnObserver | None,
        command: SlashCommand | None,
        override: ModelTier | None,
    ) -> SessionReply:
        history = self._store.load_messages(self._session_id)
        threshold = self._store.load_context_threshold(self._session_id)
        turn = ConversationTurn(user_text=text, attachments=list(attachments))

        user_message = StoredMessage(
            role="user",
            content=persisted_user_content(text, attachments),
            turn_id=turn.turn_id,
        )

        assembled = await self._orchestrator.run_turn(
            TurnRequest(
                turn=turn,
                history=history,
                context_threshold=threshold,
                system_prompt=self._system_prompt,
                override_tier=override,
            ),
            observer,
        )
        # Nothing is written for a turn that fails or is cancelled
        self._store.append_message(self._session_id, user_message)
        self._store.append_message(self._session_id, assembled.to_stored())
        logger.info(
            "Turn %s done: %s, %d in / %d out, %d iteration(s)",
            turn.turn_id,
            assembled.tier.display_name,
            assembled.input_tokens,
            assembled.output_tokens,
            assembled.iterations,
        )
        return SessionReply(
            text=assembled.content,
            message=assembled,
            command=command.command if command is not None else None,
        )

    def _run_local(self, command: SlashCommand) -> SessionReply:
        history = self._store.load_messages(self._session_id)
        name = command.command
        if name is BuiltInCommand.HELP:
            text = help_text()
        elif name is BuiltInCommand.COST:
            text = cost_summary(history)
        elif name is BuiltInCommand.CLEAR:
            self._store.clear(self._session_id)
            text = CLEARED_TEXT
        elif name is BuiltInCommand.EXPORT:
            text = export_markdown(
                self._store.session_name(self._session_id),
                history,
                self._store.load_context_threshold(self._session_id),
            )
        else:
            msg = f"Not a local command: /{name.value}"
            raise ValueError(msg)
        return SessionReply(text=text, command=command.command)
