"""Model-tier router.

One cheap, non-streaming classification call per turn picks the tier that
will handle the message. The router never raises: parse failures and API
failures map to the policy's fallback answers.
"""

import json
import logging
import math
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel

from turnloop.models.config import ModelTier
from turnloop.models.conversation import ConversationMessage, StoredMessage
from turnloop.providers.base import ChatRequest, ChatTransport
from turnloop.router.policy import RouterResponse, RoutingPolicy
from turnloop.router.prompts import build_classification_prompt

logger = logging.getLogger(__name__)


class Classification(BaseModel):
    """Router output for one message."""

    tier: ModelTier
    response: RouterResponse
    input_tokens: int = 0
    output_tokens: int = 0


def parse_response(text: str, policy: RoutingPolicy) -> RouterResponse:
    """Parse the classifier's reply defensively.

    Code fences are removed. If the remainder spans several lines, only the
    text from the first ``{`` to the last ``}`` is parsed. Unrecognized tier
    names map to ``policy.unknown_tier``; anything unparseable, including a
    non-finite confidence, returns ``policy.parse_failure``.
    """
    cleaned = text.replace("```json", "").replace("```", "").strip()
    if "\n" in cleaned:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start != -1 and end > start:
            cleaned = cleaned[start : end + 1]

    try:
        data: Any = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.info("Router reply is not JSON (%.60r), using parse fallback", text)
        return policy.parse_failure

    if not isinstance(data, dict):
        return policy.parse_failure
    tier_name = data.get("tier")
    confidence = data.get("confidence")
    if not isinstance(tier_name, str) or isinstance(confidence, bool):
        return policy.parse_failure
    if not isinstance(confidence, int | float):
        return policy.parse_failure
    # json.loads accepts NaN and Infinity literals
    if not math.isfinite(confidence):
        logger.info("Router confidence is not finite (%r), using parse fallback", confidence)
        return policy.parse_failure

    tier = ModelTier.from_name(tier_name) or policy.unknown_tier
    return RouterResponse(tier=policy.cap(tier), confidence=float(confidence))


def collect_tips(history: Sequence[StoredMessage]) -> list[str]:
    """Tips from final assistant messages, oldest first."""
    finals = [
        message
        for message in history
        if message.role == "assistant" and message.is_final_response and message.tip
    ]
    finals.sort(key=lambda message: message.created_at)
    return [message.tip for message in finals]


class TierRouter:
    """Classifies user messages to pick a model tier."""

    def __init__(self, transport: ChatTransport, policy: RoutingPolicy | None = None) -> None:
        """Initialize the router.

        Args:
            transport: Transport used for the single-shot classification call.
            policy: Tier table; defaults to the two-tier policy.
        """
        self._transport = transport
        self._policy = policy or RoutingPolicy.two_tier()

    @property
    def policy(self) -> RoutingPolicy:
        return self._policy

    async def classify(self, user_message: str, tips: Sequence[str] = ()) -> Classification:
        """Classify a message.

        Args:
            user_message: Text of the current user message.
            tips: Tips from earlier turns, oldest first.

        Returns:
            Classification with the effective tier, the parsed response and
            the classification call's token usage.
        """
        request = ChatRequest(
            tier=self._policy.classifier_tier,
            system=self._policy.prompt,
            messages=[
                ConversationMessage(
                    role="user",
                    content=build_classification_prompt(user_message, list(tips)),
                )
            ],
            max_tokens=self._policy.classifier_max_tokens,
        )

        try:
            result = await self._transport.single_shot(request)
        except Exception as e:
            fallback = self._policy.api_failure
            logger.warning(
                "Router call failed (%s), defaulting to %s", e, fallback.tier.display_name
            )
            return Classification(tier=fallback.tier, response=fallback)

        parsed = parse_response(result.text, self._policy)
        tier = self._policy.escalate(parsed)
        logger.info(
            "Router: %s (confidence %.2f) -> %s",
            parsed.tier.display_name,
            parsed.confidence,
            tier.display_name,
        )
        return Classification(
            tier=tier,
            response=parsed,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
        )
