"""Tests for magi/shaping.py: mixing checks, markup stripping, rewrite calls."""

import pytest

from magi.providers.base import ProviderError
from magi.shaping import ELLIPSIS, condense, has_language_mixing, purify_language, sanitize_content, truncate
from tests.conftest import MockProvider


def test_truncate_keeps_short_text():
    assert truncate("short", 10) == "short"


def test_truncate_includes_ellipsis_in_limit():
    out = truncate("abcdefghij", 5)
    assert out == "abcd" + ELLIPSIS
    assert len(out) == 5


@pytest.mark.parametrize(
    "text, language, mixed",
    [
        ("이 계획은 필요합니다", "ko", False),
        ("이 계획은 必要합니다", "ko", True),
        ("Tiếng Việt 계획", "ko", True),
        ("The plan is sound.", "en", False),
        ("The plan is 良い.", "en", True),
        ("The plan is 좋다.", "en", True),
        ("AIとDNAの研究を承認する", "ja", False),
        ("この計画は the quick brown 方針です", "ja", True),
        ("anything", "fr", False),
    ],
)
def test_has_language_mixing(text, language, mixed):
    assert has_language_mixing(text, language) is mixed


def test_sanitize_strips_markup():
    text = "**Approve**, with *caveats* and `code`.\n\n## Reason\nCost."
    assert sanitize_content(text) == "Approve, with caveats and code.\nReason\nCost."


def test_sanitize_leaves_plain_text():
    assert sanitize_content("Plain answer. Deny.") == "Plain answer. Deny."


async def test_purify_returns_rewrite():
    provider = MockProvider({"m": ["  The plan is good.  "]})
    out = await purify_language(provider, "m", "The plan is 良い.", "en", "Is the plan good?")
    assert out == "The plan is good."
    system = provider.calls[0][1][0]["content"]
    assert "English" in system
    assert "Is the plan good?" in system


async def test_purify_failure_returns_none():
    provider = MockProvider({"m": [ProviderError("m", "boom")]})
    assert await purify_language(provider, "m", "text", "ko", "q") is None


async def test_condense_truncates_overlong_rewrite():
    provider = MockProvider({"m": ["z" * 50]})
    out = await condense(provider, "m", "z" * 80, "en", "response", 30)
    assert len(out) == 30
    assert out.endswith(ELLIPSIS)


async def test_condense_prompt_reports_sizes():
    provider = MockProvider({"m": ["short"]})
    await condense(provider, "m", "a" * 150, "ja", "condition", 120)
    system = provider.calls[0][1][0]["content"]
    assert "Current: 150 chars" in system
    assert "<= 120 chars" in system
    assert "~30" in system
    assert "Japanese" in system


async def test_condense_empty_or_failed_returns_none():
    empty = MockProvider({"m": ["   "]})
    assert await condense(empty, "m", "text", "en", "response", 3) is None
    failing = MockProvider({"m": [ProviderError("m", "down")]})
    assert await condense(failing, "m", "text", "en", "response", 3) is None
