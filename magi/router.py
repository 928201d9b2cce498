"""Fallback-chain execution shared by every model-backed stage.

A chain is an ordered list of models. Non-final models that the tracker
reports as overloaded are skipped; failures fall through to the next model.
The last model is always attempted and its failure is the only one that
leaves ``route``.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from magi.providers.base import FailureKind, ProviderError
from magi.ratelimits import RateLimitTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChainState(str, Enum):
    TRYING = "trying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class SoftFormatError(Exception):
    """Call succeeded but the response is missing a required field."""

    kind = FailureKind.SOFT_FORMAT


class ChainExhaustedError(Exception):
    """Every model in the chain failed; carries the last failure."""

    def __init__(self, stage: str, models: Sequence[str], last_error: BaseException) -> None:
        self.stage = stage
        self.models = list(models)
        self.last_error = last_error
        self.kind: FailureKind = failure_kind(last_error)
        super().__init__(f"{stage}: all {len(self.models)} models failed ({last_error})")


@dataclass
class Routed(Generic[T]):
    value: T
    model: str
    index: int  # position in the chain (0 = primary)


def failure_kind(exc: BaseException) -> FailureKind:
    if isinstance(exc, (ProviderError, SoftFormatError)):
        return exc.kind
    if isinstance(exc, TimeoutError):
        return FailureKind.TRANSIENT
    return FailureKind.TERMINAL


async def route(
    models: Sequence[str],
    op: Callable[[str], Awaitable[T]],
    tracker: RateLimitTracker,
    stage: str = "chain",
    validate: Callable[[T], str | None] | None = None,
) -> Routed[T]:
    """Run ``op`` over ``models`` in priority order.

    Args:
        models: Candidate models; the last one is the emergency tier.
        op: Unary async operation, called with the model id.
        tracker: Consulted for preemptive skips of non-final models.
        stage: Label used in log records.
        validate: Optional check on a successful result. Returning a reason
            string turns the result into a soft failure.

    Returns:
        Routed with the first successful result and the model that produced it.

    Raises:
        ChainExhaustedError: If the final model fails.
        ValueError: If ``models`` is empty.
    """
    if not models:
        raise ValueError(f"{stage}: empty model chain")

    last = len(models) - 1
    for i, model in enumerate(models):
        if i < last and tracker.should_skip(model):
            logger.warning(
                "[%s] %s near rate limit, skipping -> %s (state=%s)",
                stage, model, models[i + 1], ChainState.TRYING.value,
            )
            continue

        try:
            value = await op(model)
            if validate is not None:
                reason = validate(value)
                if reason:
                    raise SoftFormatError(reason)
        except Exception as exc:
            kind = failure_kind(exc)
            if i < last:
                if kind is FailureKind.SOFT_FORMAT:
                    logger.warning("[%s] soft failure on %s (%s), falling back -> %s", stage, model, exc, models[i + 1])
                else:
                    logger.warning("[%s] %s failed (%s: %s), falling back -> %s", stage, model, kind.value, exc, models[i + 1])
                continue
            logger.warning("[%s] last model %s failed (%s: %s), state=%s", stage, model, kind.value, exc, ChainState.EXHAUSTED.value)
            raise ChainExhaustedError(stage, models, exc) from exc

        logger.debug("[%s] %s answered (tier=%d, state=%s)", stage, model, i, ChainState.SUCCEEDED.value)
        return Routed(value=value, model=model, index=i)

    # Unreachable: the last model is never skipped
    raise ChainExhaustedError(stage, models, RuntimeError("no model attempted"))
