"""Integration tests: real Groq calls, no mocks. Requires GROQ_API_KEY in .env."""

import os

import pytest
from dotenv import load_dotenv

load_dotenv()

pytestmark = pytest.mark.integration

if not os.environ.get("GROQ_API_KEY", "").strip():
    pytestmark = pytest.mark.skip(reason="GROQ_API_KEY not set")


async def test_full_deliberation_pipeline():
    """Run one real deliberation end to end, verify shape and limits."""
    from config.config_loader import load_config
    from magi.consensus import deliberation_outcome
    from magi.engine import MagiEngine
    from magi.models import ConsensusOutcome
    from magi.providers.groq import GroqProvider
    from magi.ratelimits import RateLimitTracker
    from magi.storage import MemoryStore

    config = load_config()
    tracker = RateLimitTracker(config.limits, MemoryStore(), skip_threshold=config.pipeline.skip_threshold)
    engine = MagiEngine(config, GroqProvider(config.groq, tracker), tracker)

    deliberation = await engine.deliberate(
        "Should a five-person team adopt trunk-based development?", language="en",
    )
    await tracker.flush()

    assert deliberation.approval_condition
    assert len(deliberation.responses) == 3
    for response in deliberation.responses:
        assert response.content
        assert len(response.content) <= config.pipeline.char_limit
    assert isinstance(deliberation_outcome(deliberation), ConsensusOutcome)

    # At least one model reported rate-limit headers
    assert tracker.snapshots
