"""Tool loop orchestrator.

Drives one user turn through routing, streaming passes and tool rounds
until the model finishes or the iteration cap is reached, then assembles
the final assistant message.
"""

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum

from pydantic import BaseModel, Field

from turnloop.markers import embedded_marker, extract_and_strip_tip
from turnloop.models.config import ModelTier, OrchestratorConfig
from turnloop.models.conversation import (
    AssembledMessage,
    ConversationMessage,
    ConversationTurn,
    StopReason,
    StoredMessage,
    StreamResult,
    TextPart,
    ToolCall,
    ToolResultPart,
    ToolUsePart,
)
from turnloop.models.tools import ToolResult
from turnloop.orchestrator.context import build_messages
from turnloop.providers.base import ChatRequest, ChatTransport
from turnloop.router.router import Classification, TierRouter, collect_tips
from turnloop.tools.registry import ToolDispatcher

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    """Lifecycle of one turn."""

    ROUTING = "routing"
    STREAMING = "streaming"
    TOOL_EXECUTING = "tool_executing"
    ASSEMBLING = "assembling"
    DONE = "done"


class TurnObserver:
    """Receives progress events while a turn runs.

    Every method is a no-op; subclass and override what you need.
    """

    def on_state(self, state: TurnState) -> None:
        pass

    def on_routed(self, classification: Classification | None, tier: ModelTier) -> None:
        pass

    def on_text(self, text: str) -> None:
        pass

    def on_tool_start(self, name: str, label: str) -> None:
        pass

    def on_tool_end(self, name: str) -> None:
        pass


class TurnRequest(BaseModel):
    """Explicit inputs for one turn."""

    turn: ConversationTurn
    # Prior stored messages, oldest first, excluding the current input
    history: list[StoredMessage] = Field(default_factory=list)
    context_threshold: int = Field(default=0, ge=0, le=5)
    system_prompt: str
    override_tier: ModelTier | None = None


class TurnOrchestrator:
    """Runs the streaming tool loop for a single turn.

    The orchestrator holds no per-turn state between calls. Everything a
    turn needs arrives in a TurnRequest, and everything it produces comes
    back as an AssembledMessage or through the observer.
    """

    def __init__(
        self,
        transport: ChatTransport,
        router: TierRouter,
        dispatcher: ToolDispatcher,
        config: OrchestratorConfig | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            transport: Transport for the streaming exchanges.
            router: Router used when no tier override is given.
            dispatcher: Offers and executes tools.
            config: Loop settings; defaults apply when omitted.
        """
        self._transport = transport
        self._router = router
        self._dispatcher = dispatcher
        self._config = config or OrchestratorConfig()

    async def run_turn(
        self,
        request: TurnRequest,
        observer: TurnObserver | None = None,
    ) -> AssembledMessage:
        """Run one turn to completion.

        Args:
            request: The turn, prior history and prompt settings.
            observer: Progress callbacks; optional.

        Returns:
            The assembled assistant message. Nothing is persisted here.

        Raises:
            TransportError: If a streaming exchange fails at the network level.
            APIStatusError: If a streaming exchange gets a non-2xx answer.
        """
        observer = observer or TurnObserver()
        turn = request.turn

        observer.on_state(TurnState.ROUTING)
        classification: Classification | None = None
        if request.override_tier is not None:
            tier = request.override_tier
            logger.info("Routing skipped, using override %s", tier.display_name)
        else:
            classification = await self._router.classify(
                turn.user_text, collect_tips(request.history)
            )
            tier = classification.tier
        observer.on_routed(classification, tier)

        messages = build_messages(
            request.history,
            request.context_threshold,
            turn.user_text,
            turn.attachments,
        )
        tools = self._dispatcher.available_tools()

        buffer: list[str] = []

        def on_text(text: str) -> None:
            buffer.append(text)
            observer.on_text(text)

        results: list[StreamResult] = []
        tool_results: list[ToolResult] = []
        markers: list[str] = []
        truncated = False
        max_iterations = self._config.max_iterations

        while True:
            observer.on_state(TurnState.STREAMING)
            result = await self._transport.stream(
                ChatRequest(
                    tier=tier,
                    system=request.system_prompt,
                    messages=messages,
                    tools=tools,
                ),
                on_text,
            )
            results.append(result)
            turn.iteration += 1

            if result.stop is not StopReason.TOOL_USE or not result.tool_calls:
                break
            if turn.iteration >= max_iterations:
                truncated = True
                logger.warning(
                    "Turn %s hit the %d-iteration cap with %d tool call(s) pending",
                    turn.turn_id,
                    max_iterations,
                    len(result.tool_calls),
                )
                break

            observer.on_state(TurnState.TOOL_EXECUTING)
            messages.append(_assistant_tool_message(result))
            round_results = await self._run_tools(result.tool_calls, observer)

            parts: list[ToolResultPart] = []
            for call, tool_result in zip(result.tool_calls, round_results, strict=True):
                parts.append(ToolResultPart(tool_use_id=call.id, content=tool_result.text))
                tool_results.append(tool_result)
                marker = embedded_marker(tool_result)
                if marker is not None:
                    markers.append(marker)
            messages.append(ConversationMessage(role="user", content=parts))

            if buffer:
                on_text("\n\n")

        observer.on_state(TurnState.ASSEMBLING)
        assembled = _assemble(
            "".join(buffer),
            markers=markers,
            results=results,
            tool_results=tool_results,
            classification=classification,
            tier=tier,
            turn_id=turn.turn_id,
            truncated=truncated,
        )
        observer.on_state(TurnState.DONE)
        return assembled

    async def _run_tools(
        self,
        calls: Sequence[ToolCall],
        observer: TurnObserver,
    ) -> list[ToolResult]:
        """Execute one round of tool calls, keeping call order."""

        async def run(call: ToolCall) -> ToolResult:
            observer.on_tool_start(call.name, self._dispatcher.display_label(call))
            try:
                return await self._dispatcher.execute(call.name, call.input)
            finally:
                observer.on_tool_end(call.name)

        if self._config.parallel_tools:
            return list(await asyncio.gather(*(run(call) for call in calls)))
        return [await run(call) for call in calls]


def _assistant_tool_message(result: StreamResult) -> ConversationMessage:
    parts: list[TextPart | ToolUsePart] = []
    if result.text:
        parts.append(TextPart(text=result.text))
    parts.extend(
        ToolUsePart(id=call.id, name=call.name, input=call.input) for call in result.tool_calls
    )
    return ConversationMessage(role="assistant", content=parts)


def _assemble(
    text: str,
    *,
    markers: Sequence[str],
    results: Sequence[StreamResult],
    tool_results: Sequence[ToolResult],
    classification: Classification | None,
    tier: ModelTier,
    turn_id: str,
    truncated: bool,
) -> AssembledMessage:
    cleaned, tip = extract_and_strip_tip(text)
    content = "\n".join(markers) + "\n" + cleaned if markers else cleaned

    input_tokens = sum(r.input_tokens for r in results)
    input_tokens += sum(t.overhead_input_tokens for t in tool_results)
    output_tokens = sum(r.output_tokens for r in results)
    output_tokens += sum(t.overhead_output_tokens for t in tool_results)

    return AssembledMessage(
        content=content,
        tip=tip or "",
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        router_input_tokens=classification.input_tokens if classification else 0,
        router_output_tokens=classification.output_tokens if classification else 0,
        tier=tier,
        turn_id=turn_id,
        iterations=len(results),
        truncated=truncated,
    )
