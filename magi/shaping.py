"""Response shaping: script-mixing checks, rewrite calls, markup stripping."""

import logging
import re
from typing import Literal

from magi import prompts
from magi.models import LANGUAGE_NAMES
from magi.providers.base import ChatProvider

logger = logging.getLogger(__name__)

ELLIPSIS = "…"

CondenseTarget = Literal["response", "condition"]

# ko: no CJK ideographs, kana, or accented Latin (Vietnamese etc.)
_KO_FOREIGN_RE = re.compile(r"[\u4E00-\u9FFF\u3040-\u309F\u30A0-\u30FF\u00C0-\u024F\u1E00-\u1EFF]")
# en: no CJK, kana, or Hangul
_EN_FOREIGN_RE = re.compile(r"[\u4E00-\u9FFF\u3040-\u309F\u30A0-\u30FF\uAC00-\uD7AF]")
# ja: kanji and kana are native; flag runs of Latin words (short abbreviations like AI/DNA pass)
_LATIN_WORD_RE = re.compile(r"[a-zA-Z]{3,}")
_JA_LATIN_WORD_LIMIT = 3

_MARKUP_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),
    (re.compile(r"__(.+?)__"), r"\1"),
    (re.compile(r"(?<!\*)\*(?!\*)(.+?)(?<!\*)\*(?!\*)"), r"\1"),
    (re.compile(r"(?<!_)_(?!_)(.+?)(?<!_)_(?!_)"), r"\1"),
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),
    (re.compile(r"`(.+?)`"), r"\1"),
    (re.compile(r"\n{2,}"), "\n"),
]

_CONDENSE_PROMPTS: dict[CondenseTarget, str] = {
    "response": prompts.CONDENSE_RESPONSE,
    "condition": prompts.CONDENSE_CONDITION,
}


def truncate(text: str, limit: int) -> str:
    """Hard cut to ``limit`` characters, ellipsis included."""
    if len(text) <= limit:
        return text
    return text[: limit - 1] + ELLIPSIS


def has_language_mixing(text: str, language: str) -> bool:
    if language == "ko":
        return bool(_KO_FOREIGN_RE.search(text))
    if language == "en":
        return bool(_EN_FOREIGN_RE.search(text))
    if language == "ja":
        return len(_LATIN_WORD_RE.findall(text)) >= _JA_LATIN_WORD_LIMIT
    return False


def sanitize_content(text: str) -> str:
    """Collapse markdown emphasis, headers and code spans to plain text."""
    for pattern, replacement in _MARKUP_RULES:
        text = pattern.sub(replacement, text)
    return text


async def purify_language(
    provider: ChatProvider,
    model: str,
    text: str,
    language: str,
    question: str,
) -> str | None:
    """One rewrite into ``language`` on the same model. None on any failure."""
    try:
        result = await provider.chat(
            model,
            [
                {
                    "role": "system",
                    "content": prompts.PURIFY_SYSTEM.format(
                        language_name=LANGUAGE_NAMES[language], question=question,
                    ),
                },
                {"role": "user", "content": text},
            ],
            temperature=0.2,
        )
    except Exception as exc:
        logger.warning("Language purification failed (%s, %s): %s", model, language, exc)
        return None
    purified = result.content.strip()
    return purified or None


async def condense(
    provider: ChatProvider,
    model: str,
    text: str,
    language: str,
    target: CondenseTarget,
    limit: int,
) -> str | None:
    """Constrained shortening rewrite. Over-long rewrites are truncated; None on failure."""
    system = _CONDENSE_PROMPTS[target].format(
        current=len(text),
        limit=limit,
        excess=len(text) - limit,
        language_name=LANGUAGE_NAMES[language],
    )
    try:
        result = await provider.chat(
            model,
            [
                {"role": "system", "content": system},
                {"role": "user", "content": text},
            ],
            temperature=0,
        )
    except Exception as exc:
        logger.warning("Condense failed (%s, target=%s, limit=%d): %s", model, target, limit, exc)
        return None
    condensed = result.content.strip()
    if not condensed:
        return None
    return truncate(condensed, limit)
