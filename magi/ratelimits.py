"""Per-model rate limit tracking with best-effort persistence.

Header mapping is asymmetric on Groq:
  x-ratelimit-*-requests -> RPD (requests per day)
  x-ratelimit-*-tokens   -> TPM (tokens per minute)

RPM and TPD are not exposed in headers and are tracked locally:
  RPM -- sliding window of request timestamps (60 s)
  TPD -- cumulative token counter with a 24 h window
"""

import asyncio
import logging
import re
import time
from collections.abc import Callable, Mapping
from dataclasses import asdict, fields

from config.config_loader import ModelLimits
from magi.models import LoadInfo, RateLimitSnapshot, TokenWindow
from magi.storage import Store

logger = logging.getLogger(__name__)

RPM_WINDOW_MS = 60_000
TPD_WINDOW_MS = 86_400_000
SKIP_THRESHOLD = 95.0

_HOURS_RE = re.compile(r"([\d.]+)h")
_MINUTES_RE = re.compile(r"([\d.]+)m(?!s)")
_SECONDS_RE = re.compile(r"([\d.]+)s")
_MILLIS_RE = re.compile(r"([\d.]+)ms")

_SNAPSHOT_FIELDS = {f.name for f in fields(RateLimitSnapshot)}


def _epoch_ms() -> float:
    return time.time() * 1000


def parse_duration(value: str) -> float:
    """Parse Go-style durations ("6m30.123s", "59.23s", "1h2m3s", "120ms") to ms."""
    ms = 0.0
    if match := _HOURS_RE.search(value):
        ms += float(match.group(1)) * 3_600_000
    if match := _MINUTES_RE.search(value):
        ms += float(match.group(1)) * 60_000
    if match := _SECONDS_RE.search(value):
        ms += float(match.group(1)) * 1000
    if match := _MILLIS_RE.search(value):
        ms += float(match.group(1))
    return ms


def dimension_usage(limit: int, remaining: int, reset_at: float, now: float) -> float:
    """Usage percent for one header-based dimension.

    -1 if the limit is unknown, 0 once the reset time has passed,
    otherwise 0-100.
    """
    if limit <= 0:
        return -1
    if reset_at > 0 and now > reset_at:
        return 0
    return max(0.0, min(100.0, (limit - remaining) / limit * 100))


def _header_int(value: str | None) -> int:
    if not value:
        return 0
    try:
        return int(float(value))
    except ValueError:
        return 0


class RateLimitTracker:
    """Live load estimate for every model across TPM, RPM, RPD and TPD."""

    def __init__(
        self,
        limits: Mapping[str, ModelLimits] | None = None,
        store: Store | None = None,
        clock: Callable[[], float] = _epoch_ms,
        skip_threshold: float = SKIP_THRESHOLD,
    ) -> None:
        self.limits = dict(limits or {})
        self.store = store
        self.clock = clock
        self.skip_threshold = skip_threshold
        self.snapshots: dict[str, RateLimitSnapshot] = {}
        self._rpm_windows: dict[str, list[float]] = {}
        self._tpd_windows: dict[str, TokenWindow] = {}
        self._pending: set[asyncio.Task] = set()

    # ── Persistence ─────────────────────────────────────────────

    async def load(self) -> None:
        """Seed in-memory state from the store. Call before any traffic."""
        if self.store is None:
            return
        info_count = rpm_count = tpd_count = 0
        async for key, value in self.store.list(("ratelimit",)):
            if len(key) != 3 or not value:
                continue
            _, model, kind = key
            if kind == "info" and isinstance(value, dict):
                self.snapshots[model] = RateLimitSnapshot(
                    **{k: v for k, v in value.items() if k in _SNAPSHOT_FIELDS}
                )
                info_count += 1
            elif kind == "rpm" and isinstance(value, list):
                self._rpm_windows[model] = [float(ts) for ts in value]
                rpm_count += 1
            elif kind == "tpd" and isinstance(value, dict):
                self._tpd_windows[model] = TokenWindow(
                    tokens=int(value["tokens"]),
                    window_start=float(value["window_start"]),
                )
                tpd_count += 1
        logger.info(
            "Rate limits loaded: %d models, %d RPM windows, %d TPD windows",
            info_count, rpm_count, tpd_count,
        )

    def _save(self, model: str, kind: str, value: object) -> None:
        """Schedule a fire-and-forget write; never blocks the caller."""
        if self.store is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No event loop, %s save for %s skipped", kind, model)
            return
        task = loop.create_task(self._write(("ratelimit", model, kind), value))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, key: tuple[str, ...], value: object) -> None:
        try:
            await self.store.set(key, value)
        except Exception as exc:
            logger.debug("Rate limit save failed for %s: %s", "/".join(key), exc)

    async def flush(self) -> None:
        """Wait for pending writes (shutdown and tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ── RPM sliding window ──────────────────────────────────────

    def record_request(self, model: str) -> None:
        """Count a request against RPM. Call BEFORE the API call is made."""
        now = self.clock()
        cutoff = now - RPM_WINDOW_MS
        window = [ts for ts in self._rpm_windows.get(model, []) if ts > cutoff]
        window.append(now)
        self._rpm_windows[model] = window
        self._save(model, "rpm", list(window))

    def _rpm_usage(self, model: str) -> float:
        limits = self.limits.get(model)
        if limits is None or limits.rpm <= 0 or model not in self._rpm_windows:
            return -1
        cutoff = self.clock() - RPM_WINDOW_MS
        recent = [ts for ts in self._rpm_windows[model] if ts > cutoff]
        self._rpm_windows[model] = recent
        return min(100.0, len(recent) / limits.rpm * 100)

    # ── TPD accumulator ─────────────────────────────────────────

    def record_tokens(self, model: str, tokens: int) -> None:
        """Accumulate tokens. Call AFTER a successful response."""
        now = self.clock()
        entry = self._tpd_windows.get(model)
        if entry is None or now - entry.window_start >= TPD_WINDOW_MS:
            entry = TokenWindow(tokens=tokens, window_start=now)
            self._tpd_windows[model] = entry
        else:
            entry.tokens += tokens
        self._save(model, "tpd", asdict(entry))

    def _tpd_usage(self, model: str) -> float:
        limits = self.limits.get(model)
        if limits is None or not limits.tpd:
            return -1
        entry = self._tpd_windows.get(model)
        if entry is None:
            return -1
        if self.clock() - entry.window_start >= TPD_WINDOW_MS:
            return 0
        return min(100.0, entry.tokens / limits.tpd * 100)

    # ── Header snapshot (RPD / TPM) ─────────────────────────────

    def update_from_headers(self, model: str, headers: Mapping[str, str]) -> None:
        """Overwrite the RPD/TPM snapshot. Call on every response, errors included."""
        limit_req = headers.get("x-ratelimit-limit-requests")
        remain_req = headers.get("x-ratelimit-remaining-requests")
        if not limit_req and not remain_req:
            return
        reset_req = headers.get("x-ratelimit-reset-requests")
        reset_tok = headers.get("x-ratelimit-reset-tokens")
        now = self.clock()
        snapshot = RateLimitSnapshot(
            rpd_limit=_header_int(limit_req),
            rpd_remaining=_header_int(remain_req),
            rpd_reset_at=now + parse_duration(reset_req) if reset_req else 0,
            tpm_limit=_header_int(headers.get("x-ratelimit-limit-tokens")),
            tpm_remaining=_header_int(headers.get("x-ratelimit-remaining-tokens")),
            tpm_reset_at=now + parse_duration(reset_tok) if reset_tok else 0,
            updated_at=now,
        )
        self.snapshots[model] = snapshot
        self._save(model, "info", asdict(snapshot))

    # ── Load ────────────────────────────────────────────────────

    def load_info(self, model: str) -> LoadInfo:
        rpm = self._rpm_usage(model)
        tpd = self._tpd_usage(model)
        snapshot = self.snapshots.get(model)
        if snapshot is None:
            return LoadInfo(tpm=-1, rpm=rpm, rpd=-1, tpd=tpd)
        now = self.clock()
        return LoadInfo(
            tpm=dimension_usage(snapshot.tpm_limit, snapshot.tpm_remaining, snapshot.tpm_reset_at, now),
            rpm=rpm,
            rpd=dimension_usage(snapshot.rpd_limit, snapshot.rpd_remaining, snapshot.rpd_reset_at, now),
            tpd=tpd,
        )

    def should_skip(self, model: str) -> bool:
        """True if any dimension is at or above the threshold. No data = try it."""
        load = self.load_info(model)
        skip = any(v >= self.skip_threshold for v in load.dimensions())
        if skip:
            logger.debug(
                "Skip %s: tpm=%.1f rpm=%.1f rpd=%.1f tpd=%.1f",
                model, load.tpm, load.rpm, load.rpd, load.tpd,
            )
        return skip
