"""Search-context fetch over the search-capable model chain."""

import logging
from collections.abc import Sequence

from magi import prompts
from magi.extraction import context_blocks
from magi.models import LANGUAGE_NAMES, Language, SearchResult
from magi.providers.base import ChatProvider
from magi.ratelimits import RateLimitTracker
from magi.router import ChainExhaustedError, route
from magi.shaping import truncate

logger = logging.getLogger(__name__)

NO_CONTEXT_SENTINEL = "NONE"
SEARCH_QUESTION_LIMIT = 500


async def fetch_search_context(
    provider: ChatProvider,
    tracker: RateLimitTracker,
    models: Sequence[str],
    question: str,
    approval_condition: str,
    language: Language,
    image_context: str | None = None,
    question_limit: int = SEARCH_QUESTION_LIMIT,
) -> SearchResult:
    """Gather factual context for the condition.

    ``NONE`` from the model is a valid empty result (failed=False).
    Exhausting the chain yields failed=True so personas can be told the
    data link is offline.
    """
    # Compound models have strict request size limits
    q = truncate(question, question_limit)
    messages = [
        {"role": "system", "content": prompts.SEARCH_SYSTEM.format(language_name=LANGUAGE_NAMES[language])},
        {
            "role": "user",
            "content": prompts.SEARCH_USER.format(
                context_blocks=context_blocks(image_context),
                question=q,
                condition=approval_condition,
                context_note=" (considering the attached image)" if image_context else "",
            ),
        },
    ]

    async def attempt(model: str) -> str:
        result = await provider.chat(model, messages, temperature=0)
        logger.debug("Raw search response (%s): %s", model, result.content[:500])
        return result.content.strip()

    try:
        routed = await route(models, attempt, tracker, stage="search")
    except ChainExhaustedError as exc:
        logger.warning("Search context fetch failed: %s", exc)
        return SearchResult(context=None, failed=True)

    if not routed.value or routed.value == NO_CONTEXT_SENTINEL:
        logger.info("No search context needed (%s)", routed.model)
        return SearchResult(context=None, failed=False)

    logger.info("Search context fetched (%s): %d chars", routed.model, len(routed.value))
    return SearchResult(context=routed.value, failed=False)
