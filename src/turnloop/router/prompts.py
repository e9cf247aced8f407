"""Classification prompts for the model-tier router."""

TWO_TIER_CLASSIFICATION_PROMPT = """\
Classify the user's message into a processing tier based on the message \
and conversation arc provided.

HAIKU: Greetings, questions, casual chat, acknowledgments, follow-ups, \
emotional support, small talk, advice, planning, opinions, preferences, \
everyday conversation, simple explanations, simple code questions, \
short creative writing, factual lookups, recommendations, scheduling, \
reminders, anything that can be answered well without deep multi-step \
reasoning and without using external tools.

SONNET: Weather queries, web search queries, any request requiring \
tool use, complex multi-step reasoning, writing or debugging substantial \
code, detailed document analysis, extended creative writing requiring \
craft, comparative analysis across multiple dimensions, technical \
architecture, research synthesis from multiple sources, anything \
requiring careful structured thought across multiple paragraphs.

When in doubt between HAIKU and SONNET, choose HAIKU.
Most messages should be HAIKU. SONNET is for tasks that genuinely \
require deeper reasoning OR that require using tools (weather, search, etc).

Do NOT classify as OPUS. The OPUS tier is not available for \
automatic routing.

Respond with ONLY a JSON object, no other text:
{"tier": "HAIKU|SONNET", "confidence": 0.0-1.0}
"""

THREE_TIER_CLASSIFICATION_PROMPT = """\
Classify the user's message into a processing tier based on the message \
and conversation arc provided.

HAIKU: Greetings, casual chat, acknowledgments, simple follow-ups, small \
talk, simple explanations, short factual answers, anything that can be \
answered well without multi-step reasoning or external tools.

SONNET: Tool use (weather, web search, lookups), writing or debugging \
code, document analysis, comparative analysis, research synthesis, \
structured multi-paragraph answers.

OPUS: Deep open-ended reasoning, novel system design, philosophical or \
strategic questions with many interacting tradeoffs, requests that \
explicitly ask for careful, extended thought.

When in doubt, choose the cheaper tier.

Respond with ONLY a JSON object, no other text:
{"tier": "HAIKU|SONNET|OPUS", "confidence": 0.0-1.0}
"""


def build_classification_prompt(user_message: str, tips: list[str]) -> str:
    """Build the router's user prompt.

    Prior-turn tips, when present, become a numbered conversation-arc block
    ahead of the current message.

    Args:
        user_message: The message being classified.
        tips: Tips from earlier assistant responses, oldest first.

    Returns:
        The prompt text.
    """
    prompt = ""
    if tips:
        prompt += "[Conversation arc]\n"
        for index, tip in enumerate(tips, start=1):
            prompt += f"Turn {index}: {tip}\n"
        prompt += "\n"
    prompt += f"[Current message]\n{user_message}"
    return prompt
