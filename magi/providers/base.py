"""Abstract base for inference providers, plus the provider error taxonomy."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    TRANSIENT = "transient"        # timeout, 429/503, empty body: try the next model
    SOFT_FORMAT = "soft_format"    # call succeeded but a required field is missing
    TERMINAL = "terminal"          # anything else the provider rejected


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(
        self,
        provider_name: str,
        message: str,
        kind: FailureKind = FailureKind.TERMINAL,
        status: int | None = None,
    ) -> None:
        self.provider_name = provider_name
        self.kind = kind
        self.status = status
        super().__init__(f"[{provider_name}] {message}")


class RateLimitedError(ProviderError):
    """HTTP 429 / 503 from the provider."""

    def __init__(self, provider_name: str, status: int, body: str) -> None:
        super().__init__(
            provider_name,
            f"Rate limited ({status}): {body[:200]}",
            kind=FailureKind.TRANSIENT,
            status=status,
        )


@dataclass
class ChatResult:
    content: str
    model: str
    total_tokens: int | None
    latency_sec: float


Message = dict[str, Any]


class ChatProvider(ABC):
    """Abstract base for chat-completion providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'groq')."""
        ...

    @abstractmethod
    async def chat(
        self,
        model: str,
        messages: list[Message],
        temperature: float,
        max_tokens: int | None = None,
    ) -> ChatResult:
        """Run one chat completion against ``model``.

        Args:
            model: Provider model identifier.
            messages: OpenAI-style message dicts. ``content`` may be a string
                or a list of content parts (text / image_url).
            temperature: Sampling temperature.
            max_tokens: Optional completion cap.

        Returns:
            ChatResult with the response text and usage metadata.

        Raises:
            RateLimitedError: On HTTP 429 or 503.
            ProviderError: On timeout, empty response, or any other failure.
        """
        ...
