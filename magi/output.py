"""Rich console output and markdown file save for deliberation results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from magi.consensus import deliberation_outcome
from magi.healthcheck import ModelHealth
from magi.i18n import Translator
from magi.models import ConsensusOutcome, Deliberation, LoadInfo, PersonaConfig, Verdict
from magi.ratelimits import RateLimitTracker

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_VERDICT_STYLES = {
    Verdict.APPROVE: "green",
    Verdict.DENY: "red",
    Verdict.CONDITIONAL: "yellow",
    Verdict.REFUSE: "dim",
}

_OUTCOME_STYLES = {
    ConsensusOutcome.APPROVED: "bold green",
    ConsensusOutcome.DENIED: "bold red",
    ConsensusOutcome.CONDITIONAL: "bold yellow",
    ConsensusOutcome.NO_CONSENSUS: "bold white",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def format_load(load: LoadInfo) -> str:
    """"TM:12.0% / RM:-- / RD:3.5% / TD:--" with -- for unmeasured dimensions."""

    def fmt(value: float) -> str:
        return "--" if value < 0 else f"{value:.1f}%"
    return f"TM:{fmt(load.tpm)} / RM:{fmt(load.rpm)} / RD:{fmt(load.rpd)} / TD:{fmt(load.tpd)}"


def _ping_cell(health: ModelHealth | None) -> str:
    if health is None:
        return "[dim]not checked[/dim]"
    if health.ok:
        return f"[green]OK[/green] {health.latency_sec:.1f}s"
    reason = escape(health.error.splitlines()[0][:60]) if health.error else ""
    if health.rate_limited:
        return f"[yellow]LIMITED[/yellow] {reason}"
    return f"[red]FAIL[/red] {reason}"


def print_deliberation(deliberation: Deliberation, translator: Translator) -> None:
    """Print the three persona answers and the consensus outcome."""
    lang = deliberation.language
    outcome = deliberation_outcome(deliberation)

    console.print(Rule("[bold cyan]MAGI SYSTEM: DELIBERATION COMPLETE[/bold cyan]"))
    if deliberation.approval_condition:
        console.print(Text(f"{translator.translate(lang, 'conditionLabel')}: {deliberation.approval_condition}"))
    if deliberation.search_failed:
        console.print(Text(translator.translate(lang, "searchOffline"), style="dim red"))

    for resp in deliberation.responses:
        style = _VERDICT_STYLES[resp.verdict]
        console.print(
            Panel(
                Text(resp.content),
                title=f"[bold]{resp.persona}[/bold] [{style}]{translator.verdict(lang, resp.verdict)}[/{style}]",
                subtitle=f"{resp.model} | {resp.latency_sec:.1f}s",
                border_style="red" if resp.error else "dim",
            )
        )

    console.print(
        Text(
            f"{translator.translate(lang, 'resultLabel')}: {translator.outcome(lang, outcome)}",
            style=_OUTCOME_STYLES[outcome],
        )
    )


def print_load_table(
    tracker: RateLimitTracker,
    configs: list[PersonaConfig],
    extra_models: list[str] | None = None,
    health: dict[str, ModelHealth] | None = None,
) -> None:
    """Per-model load for every persona chain (plus data/search models)."""
    table = Table(title="MAGI model load")
    table.add_column("Chain")
    table.add_column("Model")
    table.add_column("Load")
    table.add_column("Skip")
    if health is not None:
        table.add_column("Ping")

    rows: list[tuple[str, str]] = []
    for cfg in configs:
        rows.extend((cfg.name, model) for model in cfg.models)
    rows.extend(("data", model) for model in extra_models or [])

    for chain, model in rows:
        load = tracker.load_info(model)
        cells = [chain, model, format_load(load), "yes" if tracker.should_skip(model) else ""]
        if health is not None:
            cells.append(_ping_cell(health.get(model)))
        table.add_row(*cells)
    console.print(table)


def save_to_file(deliberation: Deliberation, translator: Translator, output_dir: Path) -> Path:
    """Save the deliberation as a markdown file and return its path."""
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(deliberation.question) or 'deliberation'}.md"
    lang = deliberation.language
    outcome = deliberation_outcome(deliberation)

    lines: list[str] = [
        f"# MAGI Deliberation: {deliberation.question[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Language:** {lang}",
        f"**Approval condition:** {deliberation.approval_condition or '(none)'}",
        f"**Search:** {'offline' if deliberation.search_failed else ('context' if deliberation.search_context else 'none needed')}",
        f"**Result:** {translator.outcome(lang, outcome)} ({outcome.value})",
        "",
        "---",
        "",
    ]
    for resp in deliberation.responses:
        lines.append(f"## {resp.persona}: {resp.verdict.value}")
        lines.append("")
        lines.append(resp.content)
        lines.append("")
        lines.append(
            f"*Model: {resp.model} | Latency: {resp.latency_sec:.2f}s"
            + (f" | Error: {resp.error}" if resp.error else "")
            + "*"
        )
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Deliberation saved to: %s", filepath)
    return filepath
