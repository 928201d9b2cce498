"""Tests for magi/verdict.py."""

import pytest

from magi.models import Verdict
from magi.providers.base import ProviderError
from magi.verdict import classify_verdict, extract_verdict_tag
from tests.conftest import MockProvider

MODELS = ["scout", "instant"]


@pytest.mark.parametrize(
    "text, expected",
    [
        ("[APPROVE]", Verdict.APPROVE),
        ("[deny]", Verdict.DENY),
        ("Tag: [CONDITIONAL] approve with caveats", Verdict.CONDITIONAL),
        ("[REFUSE]", Verdict.REFUSE),
        ("APPROVE", Verdict.APPROVE),
        ("I would deny this.", Verdict.DENY),
        ("approve or deny", Verdict.APPROVE),
        ("approved", None),
        ("no idea", None),
    ],
)
def test_extract_verdict_tag(text, expected):
    assert extract_verdict_tag(text) is expected


async def test_classify_primary(tracker):
    provider = MockProvider({"scout": ["[APPROVE]"]})
    verdict = await classify_verdict(provider, tracker, MODELS, "Approve. Low risk.", "shipping")
    assert verdict is Verdict.APPROVE
    user = provider.calls[0][1][1]["content"]
    assert "Approval condition: shipping" in user
    assert "Approve. Low risk." in user


async def test_classify_falls_back(tracker):
    provider = MockProvider({
        "scout": [ProviderError("scout", "down")],
        "instant": ["[DENY]"],
    })
    assert await classify_verdict(provider, tracker, MODELS, "No.", "x") is Verdict.DENY


async def test_unparseable_output_is_refuse(tracker):
    provider = MockProvider({"scout": ["I cannot say."]})
    assert await classify_verdict(provider, tracker, MODELS, "Hmm.", "x") is Verdict.REFUSE


async def test_classifier_failure_is_refuse(tracker):
    provider = MockProvider({
        "scout": [ProviderError("scout", "down")],
        "instant": [ProviderError("instant", "down")],
    })
    assert await classify_verdict(provider, tracker, MODELS, "Approve.", "x") is Verdict.REFUSE
