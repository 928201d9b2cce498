"""Groq provider using the openai SDK (OpenAI-compatible API)."""

import asyncio
import logging
import os
import re
import time

import openai
from openai import AsyncOpenAI

from config.config_loader import GroqConfig
from magi.providers.base import ChatProvider, ChatResult, FailureKind, Message, ProviderError, RateLimitedError
from magi.ratelimits import RateLimitTracker

logger = logging.getLogger(__name__)

_THINK_RE = re.compile(r"<think>([\s\S]*?)</think>")


def strip_think_blocks(content: str) -> str:
    """Drop <think>...</think> reasoning (e.g. qwen3). Keeps the raw text if nothing else is left."""
    stripped = _THINK_RE.sub("", content).strip()
    return stripped if stripped else content.strip()


class GroqProvider(ChatProvider):
    """Groq chat completions, feeding every response into the rate tracker."""

    def __init__(
        self,
        config: GroqConfig,
        tracker: RateLimitTracker,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._config = config
        self._tracker = tracker
        if client is None:
            api_key = os.environ.get(config.api_key_env, "").strip()
            if not api_key:
                raise ProviderError("groq", f"Missing API key: {config.api_key_env}")
            # Fallback across models replaces SDK-level retries
            client = AsyncOpenAI(api_key=api_key, base_url=config.base_url, max_retries=0)
        self._client = client

    def name(self) -> str:
        return "groq"

    async def chat(
        self,
        model: str,
        messages: list[Message],
        temperature: float,
        max_tokens: int | None = None,
    ) -> ChatResult:
        self._tracker.record_request(model)
        start = time.monotonic()

        kwargs = {"model": model, "messages": messages, "temperature": temperature}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        try:
            raw = await asyncio.wait_for(
                self._client.chat.completions.with_raw_response.create(**kwargs),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(
                model, f"Request timed out after {self._config.timeout_sec}s", kind=FailureKind.TRANSIENT,
            ) from exc
        except openai.APIStatusError as exc:
            # Usage headers arrive on 4xx/5xx too
            self._tracker.update_from_headers(model, exc.response.headers)
            body = exc.response.text if exc.response is not None else str(exc)
            logger.error(
                "Groq API error: model=%s status=%d latency=%.2fs body=%s",
                model, exc.status_code, time.monotonic() - start, body[:200],
            )
            if exc.status_code in (429, 503):
                raise RateLimitedError(model, exc.status_code, body) from exc
            kind = FailureKind.TRANSIENT if exc.status_code >= 500 else FailureKind.TERMINAL
            raise ProviderError(model, f"API error {exc.status_code}: {body[:200]}", kind=kind, status=exc.status_code) from exc
        except openai.APIConnectionError as exc:
            raise ProviderError(model, f"Connection failed: {exc}", kind=FailureKind.TRANSIENT) from exc

        self._tracker.update_from_headers(model, raw.headers)
        completion = raw.parse()
        latency = time.monotonic() - start

        choice = completion.choices[0] if completion.choices else None
        raw_content = (choice.message.content if choice else None) or ""

        if think := _THINK_RE.search(raw_content):
            logger.debug("Think block (%s): %s", model, think.group(1).strip()[:500])
        content = strip_think_blocks(raw_content)

        token_count: int | None = None
        if completion.usage:
            token_count = completion.usage.total_tokens
            self._tracker.record_tokens(model, token_count)

        if not content:
            raise ProviderError(model, "Empty response content", kind=FailureKind.TRANSIENT)

        logger.debug(
            "Groq response: model=%s latency=%.2fs tokens=%s length=%d",
            model, latency, token_count, len(content),
        )

        return ChatResult(
            content=content,
            model=model,
            total_tokens=token_count,
            latency_sec=latency,
        )
