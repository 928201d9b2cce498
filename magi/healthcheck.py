"""Model health checks: ping each model directly, bypassing the fallback chain."""

import asyncio
import logging
import time
from dataclasses import dataclass

from magi.providers.base import ChatProvider, RateLimitedError

logger = logging.getLogger(__name__)

_PING_MESSAGES = [{"role": "user", "content": "Reply with the word OK only."}]
_TIMEOUT_SEC = 15.0


@dataclass
class ModelHealth:
    ok: bool
    latency_sec: float = 0.0
    error: str = ""
    rate_limited: bool = False  # reachable, but out of quota right now


async def _ping(provider: ChatProvider, model: str) -> ModelHealth:
    start = time.monotonic()
    try:
        await asyncio.wait_for(
            provider.chat(model, _PING_MESSAGES, temperature=0, max_tokens=5),
            timeout=_TIMEOUT_SEC,
        )
    except RateLimitedError as exc:
        return ModelHealth(ok=False, error=str(exc), rate_limited=True)
    except TimeoutError:
        return ModelHealth(ok=False, error=f"no answer within {_TIMEOUT_SEC:.0f}s")
    except Exception as exc:
        return ModelHealth(ok=False, error=str(exc))
    return ModelHealth(ok=True, latency_sec=time.monotonic() - start)


async def run_health_checks(provider: ChatProvider, models: list[str]) -> dict[str, ModelHealth]:
    """Ping every distinct model in parallel, keyed by model id in first-seen order."""
    unique = list(dict.fromkeys(models))
    results = await asyncio.gather(*(_ping(provider, m) for m in unique))
    failed = [m for m, health in zip(unique, results) if not health.ok]
    if failed:
        logger.warning("Health check: %d/%d models failing: %s", len(failed), len(unique), ", ".join(failed))
    return dict(zip(unique, results))
