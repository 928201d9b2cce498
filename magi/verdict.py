"""Verdict classification of a persona's free-text answer."""

import logging
import re
from collections.abc import Sequence

from magi import prompts
from magi.models import Verdict
from magi.providers.base import ChatProvider
from magi.ratelimits import RateLimitTracker
from magi.router import route

logger = logging.getLogger(__name__)

_ORDER = (Verdict.APPROVE, Verdict.DENY, Verdict.CONDITIONAL, Verdict.REFUSE)
_KEYWORD_RES = {v: re.compile(rf"\b{v.value.lower()}\b") for v in _ORDER}


def extract_verdict_tag(text: str) -> Verdict | None:
    """Bracketed tags first; bare keywords for models that drop the brackets."""
    lower = text.lower()
    for verdict in _ORDER:
        if f"[{verdict.value.lower()}]" in lower:
            return verdict
    for verdict in _ORDER:
        if _KEYWORD_RES[verdict].search(lower):
            return verdict
    return None


async def classify_verdict(
    provider: ChatProvider,
    tracker: RateLimitTracker,
    models: Sequence[str],
    content: str,
    approval_condition: str,
) -> Verdict:
    """Classify ``content`` against the condition. Any failure is REFUSE."""
    messages = [
        {"role": "system", "content": prompts.VERDICT_SYSTEM},
        {"role": "user", "content": prompts.VERDICT_USER.format(condition=approval_condition, content=content)},
    ]

    async def attempt(model: str) -> str:
        result = await provider.chat(model, messages, temperature=0)
        return result.content

    try:
        routed = await route(models, attempt, tracker, stage="verdict")
    except Exception as exc:
        logger.warning("Classification failed, defaulting to REFUSE: %s", exc)
        return Verdict.REFUSE

    verdict = extract_verdict_tag(routed.value) or Verdict.REFUSE
    logger.debug("Classification: %r -> %s", routed.value[:100], verdict.value)
    return verdict
