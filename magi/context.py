"""Running per-user memory: fold each deliberation into a bounded summary."""

import logging
from collections.abc import Sequence

from magi import prompts
from magi.consensus import deliberation_outcome
from magi.models import LANGUAGE_NAMES, Deliberation
from magi.providers.base import ChatProvider
from magi.ratelimits import RateLimitTracker
from magi.router import ChainExhaustedError, route
from magi.shaping import truncate

logger = logging.getLogger(__name__)

CONTEXT_LIMIT = 800


def build_interaction(previous: str | None, question: str, deliberation: Deliberation) -> str:
    parts = []
    if previous:
        parts.append(f"PREVIOUS CONTEXT:\n{previous}")
    parts.append(f"NEW QUERY: {question}")
    if deliberation.approval_condition:
        parts.append(f"CONDITION: {deliberation.approval_condition}")
    for response in deliberation.responses:
        label = response.persona.split("-")[0]
        parts.append(f"{label}({response.verdict.value}): {response.content}")
    parts.append(f"RESULT: {deliberation_outcome(deliberation).value}")
    return "\n".join(parts)


async def compress_context(
    provider: ChatProvider,
    tracker: RateLimitTracker,
    models: Sequence[str],
    previous: str | None,
    question: str,
    deliberation: Deliberation,
    limit: int = CONTEXT_LIMIT,
) -> str | None:
    """New accumulated summary, or None if compression failed (keep the old one)."""
    messages = [
        {
            "role": "system",
            "content": prompts.COMPRESSION_SYSTEM.format(
                limit=limit, language_name=LANGUAGE_NAMES[deliberation.language],
            ),
        },
        {"role": "user", "content": build_interaction(previous, question, deliberation)},
    ]

    async def attempt(model: str) -> str:
        result = await provider.chat(model, messages, temperature=0)
        return result.content.strip()

    try:
        routed = await route(models, attempt, tracker, stage="context")
    except ChainExhaustedError as exc:
        logger.warning("Context compression failed: %s", exc)
        return None

    if not routed.value:
        return None
    summary = truncate(routed.value, limit)
    logger.info("Context compressed: %d chars", len(summary))
    return summary
