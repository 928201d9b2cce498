"""Shared pytest fixtures."""

from collections.abc import Callable
from typing import Any

import pytest

from config.config_loader import AppConfig, load_config
from magi.i18n import Translator
from magi.models import Deliberation, PersonaConfig, PersonaResponse, Verdict
from magi.providers.base import ChatProvider, ChatResult, Message
from magi.ratelimits import RateLimitTracker
from magi.storage import MemoryStore

Responder = Callable[[str, list[Message]], str]


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class MockProvider(ChatProvider):
    """Test double ChatProvider.

    ``script`` maps a model id to a queue of outcomes: a string is returned as
    content, an exception instance is raised. ``responder`` handles any model
    without a scripted entry.
    """

    def __init__(
        self,
        script: dict[str, list[Any]] | None = None,
        responder: Responder | None = None,
    ) -> None:
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.responder = responder
        self.calls: list[tuple[str, list[Message]]] = []

    def name(self) -> str:
        return "mock"

    def models_called(self) -> list[str]:
        return [model for model, _ in self.calls]

    async def chat(
        self,
        model: str,
        messages: list[Message],
        temperature: float,
        max_tokens: int | None = None,
    ) -> ChatResult:
        self.calls.append((model, messages))
        queue = self.script.get(model)
        if queue:
            outcome = queue.pop(0)
        elif self.responder is not None:
            outcome = self.responder(model, messages)
        else:
            raise AssertionError(f"Unexpected call to {model}")
        if isinstance(outcome, BaseException):
            raise outcome
        return ChatResult(content=outcome, model=model, total_tokens=10, latency_sec=0.01)


def system_text(messages: list[Message]) -> str:
    first = messages[0]
    return first["content"] if first["role"] == "system" else ""


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_config() -> AppConfig:
    return load_config()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def tracker(app_config: AppConfig, store: MemoryStore, clock: FakeClock) -> RateLimitTracker:
    return RateLimitTracker(app_config.limits, store, clock=clock)


@pytest.fixture
def translator() -> Translator:
    return Translator()


@pytest.fixture
def persona_config() -> PersonaConfig:
    return PersonaConfig(
        name="MELCHIOR-1",
        model="primary",
        fallback_models=("fallback",),
        emergency_model="emergency",
        temperature=0.1,
        system_prompt="You are MELCHIOR-1.",
    )


def make_response(persona: str, verdict: Verdict = Verdict.APPROVE, error: str | None = None) -> PersonaResponse:
    return PersonaResponse(
        persona=persona,
        content=f"{persona} computed. Approve.",
        model="mock-model",
        latency_sec=0.5,
        verdict=verdict,
        error=error,
    )


@pytest.fixture
def sample_deliberation() -> Deliberation:
    return Deliberation(
        question="Should we adopt a four-day work week?",
        approval_condition="adopting a four-day work week",
        search_context="- Trials report stable output",
        search_failed=False,
        image_context=None,
        file_context=None,
        user_context=None,
        language="en",
        melchior=make_response("MELCHIOR-1", Verdict.APPROVE),
        balthasar=make_response("BALTHASAR-2", Verdict.CONDITIONAL),
        casper=make_response("CASPER-3", Verdict.DENY),
    )
