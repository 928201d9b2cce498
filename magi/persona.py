"""One persona's deliberation call: prompt layering, fallback, shaping."""

import logging
import time
from dataclasses import dataclass

from magi import prompts
from magi.i18n import Translator
from magi.models import Language, PersonaConfig, PersonaResponse
from magi.providers.base import ChatProvider, FailureKind, ProviderError
from magi.ratelimits import RateLimitTracker
from magi.router import ChainExhaustedError, route
from magi.shaping import condense, has_language_mixing, purify_language, sanitize_content

logger = logging.getLogger(__name__)

CHAR_LIMIT = 240


@dataclass(frozen=True)
class PersonaInput:
    """Inputs shared by all three personas in one deliberation."""
    question: str
    approval_condition: str
    language: Language
    search_context: str | None = None
    search_failed: bool = False
    image_context: str | None = None
    file_context: str | None = None
    user_context: str | None = None


def build_persona_input(shared: PersonaInput) -> str:
    """MEMORY, REFERENCE DATA (or the offline notice), then DELIBERATION INPUT."""
    memory = prompts.MEMORY_BLOCK.format(memory=shared.user_context) if shared.user_context else ""

    data_lines = []
    if shared.file_context:
        data_lines.append(shared.file_context)
    if shared.image_context:
        data_lines.append(f"[IMAGE ANALYSIS] {shared.image_context}")
    if shared.search_context:
        data_lines.append(shared.search_context)

    if data_lines:
        reference = prompts.REFERENCE_BLOCK.format(data="\n".join(data_lines))
    elif shared.search_failed:
        reference = prompts.OFFLINE_NOTICE
    else:
        reference = ""

    condition_line = f"\n[{shared.approval_condition}]" if shared.approval_condition else ""
    return memory + reference + prompts.DELIBERATION_INPUT.format(
        question=shared.question, condition_line=condition_line,
    )


async def query_persona(
    provider: ChatProvider,
    tracker: RateLimitTracker,
    translator: Translator,
    config: PersonaConfig,
    shared: PersonaInput,
    char_limit: int = CHAR_LIMIT,
) -> PersonaResponse:
    """Run the persona's model chain and shape the answer.

    Never raises for model failures: an exhausted chain yields the
    "core malfunction" message with ``error`` set, and a response that
    cannot be condensed yields the "output overflow" message with ``error``
    set.
    """
    start = time.monotonic()
    language = shared.language
    messages = [
        {"role": "system", "content": config.system_prompt},
        {"role": "user", "content": build_persona_input(shared)},
    ]

    async def attempt(model: str) -> str:
        result = await provider.chat(model, messages, temperature=config.temperature)
        content = result.content.strip()
        if not content:
            raise ProviderError(model, "Empty response from model", kind=FailureKind.TRANSIENT)
        return content

    try:
        routed = await route(config.models, attempt, tracker, stage=config.name)
    except ChainExhaustedError as exc:
        logger.warning("%s: all models failed: %s", config.name, exc)
        return PersonaResponse(
            persona=config.name,
            content=translator.translate(language, "coreMalfunction"),
            model=config.models[-1],
            latency_sec=time.monotonic() - start,
            error=str(exc.last_error),
        )

    model = routed.model
    final = routed.value

    if has_language_mixing(final, language):
        purified = await purify_language(provider, model, final, language, shared.question)
        if purified:
            logger.debug("%s: language purified (%s, %s)", config.name, model, language)
            final = purified

    if len(final) > char_limit:
        logger.debug("%s: condensing %d chars -> %d (%s)", config.name, len(final), char_limit, model)
        condensed = await condense(provider, model, final, language, "response", char_limit)
        if condensed is None:
            return PersonaResponse(
                persona=config.name,
                content=translator.translate(language, "outputOverflow"),
                model=model,
                latency_sec=time.monotonic() - start,
                error="Condense failed",
            )
        final = condensed

    final = sanitize_content(final)
    latency = time.monotonic() - start
    logger.debug(
        "%s: response from %s (tier=%d, %.2fs, %d chars)",
        config.name, model, routed.index, latency, len(final),
    )
    return PersonaResponse(persona=config.name, content=final, model=model, latency_sec=latency)
