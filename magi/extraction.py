"""Condition extraction: raw question -> one declarative approval condition."""

import logging
import re
from collections.abc import Sequence

from magi import prompts
from magi.models import LANGUAGE_NAMES, ExtractionResult, Language, LanguageMode
from magi.providers.base import ChatProvider
from magi.ratelimits import RateLimitTracker
from magi.router import ChainExhaustedError, SoftFormatError, route
from magi.shaping import condense, truncate

logger = logging.getLogger(__name__)

CONDITION_LIMIT = 120

_LANG_RE = re.compile(r"^\W*LANG:[ \t]*\**[ \t]*(en|ja|ko)\b", re.IGNORECASE | re.MULTILINE)
_CONDITION_RE = re.compile(r"^\W*CONDITION:[ \t]*\**[ \t]*(.*)$", re.MULTILINE)


def parse_extraction(text: str, auto: bool) -> tuple[str | None, Language | None]:
    """Pull CONDITION (and LANG in auto mode) out of a line-formatted response."""
    detected: Language | None = None
    if auto and (lang_match := _LANG_RE.search(text)):
        detected = lang_match.group(1).lower()  # type: ignore[assignment]
    cond_match = _CONDITION_RE.search(text)
    # bold labels leave stray asterisks around the value
    condition = cond_match.group(1).strip(" \t*") if cond_match else ""
    return condition or None, detected


def context_blocks(image_context: str | None, file_context: str | None = None) -> str:
    parts = []
    if image_context:
        parts.append(f"──── IMAGE CONTEXT ────\n{image_context}\n──── END IMAGE ────\n")
    if file_context:
        parts.append(f"──── FILE CONTEXT ────\n{file_context}\n──── END FILE ────\n")
    return "".join(parts)


def build_extraction_messages(
    question: str,
    language: LanguageMode,
    image_context: str | None = None,
    file_context: str | None = None,
    condition_limit: int = CONDITION_LIMIT,
) -> list[dict[str, str]]:
    auto = language == "auto"
    system = prompts.EXTRACTION_SYSTEM.format(
        line_count=3 if auto else 2,
        format_block=prompts.EXTRACTION_FORMAT_AUTO if auto else prompts.EXTRACTION_FORMAT_FIXED,
        condition_limit=condition_limit,
        language_rule=(
            prompts.EXTRACTION_LANGUAGE_AUTO if auto
            else prompts.EXTRACTION_LANGUAGE_FIXED.format(language_name=LANGUAGE_NAMES[language])
        ),
    )
    has_context = bool(image_context or file_context)
    user = prompts.EXTRACTION_USER.format(
        context_blocks=context_blocks(image_context, file_context),
        question=question,
        context_note=" (with the attached context)" if has_context else "",
        fields="LANG, PROPOSITION and CONDITION" if auto else "PROPOSITION and CONDITION",
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


async def extract_condition(
    provider: ChatProvider,
    tracker: RateLimitTracker,
    models: Sequence[str],
    question: str,
    language: LanguageMode,
    image_context: str | None = None,
    file_context: str | None = None,
    condition_limit: int = CONDITION_LIMIT,
) -> ExtractionResult:
    """Extract the approval condition, falling back across ``models``.

    A response without a non-empty CONDITION line is a soft failure and moves
    on to the next model. Returns ExtractionResult(None, None) when every
    model fails.
    """
    auto = language == "auto"
    messages = build_extraction_messages(question, language, image_context, file_context, condition_limit)

    async def attempt(model: str) -> ExtractionResult:
        result = await provider.chat(model, messages, temperature=0)
        logger.debug("Raw extraction response (%s): %s", model, result.content[:300])

        condition, detected = parse_extraction(result.content, auto)
        if condition is None:
            raise SoftFormatError(f"no CONDITION in output from {model}")

        if len(condition) > condition_limit:
            effective: Language = (detected or "en") if auto else language  # type: ignore[assignment]
            condensed = await condense(provider, model, condition, effective, "condition", condition_limit)
            condition = condensed if condensed is not None else truncate(condition, condition_limit)

        return ExtractionResult(condition=condition, detected_language=detected)

    try:
        routed = await route(models, attempt, tracker, stage="extract")
    except ChainExhaustedError as exc:
        logger.warning("Condition extraction failed for %r: %s", question[:80], exc)
        return ExtractionResult(condition=None, detected_language=None)

    logger.debug(
        "Condition extracted: %r (model=%s, lang=%s, fallback=%s)",
        routed.value.condition, routed.model, routed.value.detected_language, routed.index > 0,
    )
    return routed.value
