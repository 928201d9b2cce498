"""Tests for magi/vision.py."""

import base64

from magi.providers.base import ProviderError
from magi.vision import describe_image
from tests.conftest import MockProvider


async def test_image_sent_as_data_url():
    provider = MockProvider({"scout": ["A red bicycle leaning on a wall."]})

    description = await describe_image(provider, "scout", b"\x89PNG-bytes", "en", mime_type="image/png")

    assert description == "A red bicycle leaning on a wall."
    parts = provider.calls[0][1][0]["content"]
    assert parts[0]["type"] == "text"
    assert "under 200 characters" in parts[0]["text"]
    expected = "data:image/png;base64," + base64.b64encode(b"\x89PNG-bytes").decode("ascii")
    assert parts[1]["image_url"]["url"] == expected


async def test_description_truncated_to_limit():
    provider = MockProvider({"scout": ["d" * 300]})
    description = await describe_image(provider, "scout", b"img", "ja", limit=50)
    assert len(description) == 50


async def test_failure_returns_none():
    provider = MockProvider({"scout": [ProviderError("scout", "vision unsupported")]})
    assert await describe_image(provider, "scout", b"img", "en") is None
