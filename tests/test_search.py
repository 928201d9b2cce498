"""Tests for magi/search.py."""

from magi.providers.base import ProviderError, RateLimitedError
from magi.search import fetch_search_context
from tests.conftest import MockProvider

MODELS = ["groq/compound", "groq/compound-mini"]


async def test_context_returned(tracker):
    provider = MockProvider({"groq/compound": ["  - Fact one\n- Fact two  "]})
    result = await fetch_search_context(provider, tracker, MODELS, "q", "cond", "en")
    assert result.context == "- Fact one\n- Fact two"
    assert result.failed is False


async def test_none_sentinel_is_not_a_failure(tracker):
    provider = MockProvider({"groq/compound": ["NONE"]})
    result = await fetch_search_context(provider, tracker, MODELS, "q", "cond", "en")
    assert result.context is None
    assert result.failed is False


async def test_fallback_to_mini(tracker):
    provider = MockProvider({
        "groq/compound": [RateLimitedError("groq/compound", 429, "limit")],
        "groq/compound-mini": ["- From mini"],
    })
    result = await fetch_search_context(provider, tracker, MODELS, "q", "cond", "ko")
    assert result.context == "- From mini"
    assert provider.models_called() == MODELS


async def test_exhausted_chain_marks_failed(tracker):
    provider = MockProvider({
        "groq/compound": [ProviderError("groq/compound", "down")],
        "groq/compound-mini": [ProviderError("groq/compound-mini", "down")],
    })
    result = await fetch_search_context(provider, tracker, MODELS, "q", "cond", "en")
    assert result.context is None
    assert result.failed is True


async def test_long_question_is_truncated(tracker):
    provider = MockProvider({"groq/compound": ["NONE"]})
    question = "q" * 900
    await fetch_search_context(provider, tracker, MODELS, question, "cond", "en", question_limit=500)
    user = provider.calls[0][1][1]["content"]
    assert "q" * 499 + "…" in user
    assert "q" * 500 not in user


async def test_prompt_names_language_and_condition(tracker):
    provider = MockProvider({"groq/compound": ["NONE"]})
    await fetch_search_context(
        provider, tracker, MODELS, "Is it safe?", "climbing the ladder", "ja", image_context="ladder on ice",
    )
    system, user = (m["content"] for m in provider.calls[0][1])
    assert "Japanese" in system
    assert "climbing the ladder" in user
    assert "ladder on ice" in user
