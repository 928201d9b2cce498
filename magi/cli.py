"""Click CLI: config loading, store/tracker wiring, deliberation and status output."""

import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from magi.engine import DeliberationFailedError, MagiEngine
from magi.healthcheck import run_health_checks
from magi.i18n import Translator
from magi.models import Deliberation
from magi.output import print_deliberation, print_load_table, save_to_file
from magi.personas import get_persona_configs
from magi.providers.base import ProviderError
from magi.providers.groq import GroqProvider
from magi.ratelimits import RateLimitTracker
from magi.storage import JsonFileStore

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

MAX_ATTACHMENT_CHARS = 8000


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # SDK request logs drown out the pipeline's own records
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_config_or_exit() -> AppConfig:
    try:
        return load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)


async def _build_tracker(config: AppConfig) -> RateLimitTracker:
    store = JsonFileStore(config.storage.path)
    tracker = RateLimitTracker(config.limits, store, skip_threshold=config.pipeline.skip_threshold)
    await tracker.load()
    return tracker


async def _build_engine(config: AppConfig) -> MagiEngine:
    """Wire store -> tracker -> provider -> engine, seeding the tracker first."""
    tracker = await _build_tracker(config)
    try:
        provider = GroqProvider(config.groq, tracker)
    except ProviderError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}. Check .env.")
        sys.exit(1)
    return MagiEngine(config, provider, tracker, Translator(), tracker.store)


def _read_attachment(path: Path) -> str:
    content = path.read_text(encoding="utf-8", errors="replace")
    if len(content) > MAX_ATTACHMENT_CHARS:
        console.print(f"[bold red]Error:[/bold red] {path.name} exceeds {MAX_ATTACHMENT_CHARS} characters.")
        sys.exit(1)
    return f"[FILE: {path.name}]\n{content}"


async def _run_ask(
    config: AppConfig,
    question: str,
    language: str,
    image_path: Path | None,
    attachment: str | None,
    user_id: str | None,
    output_dir: Path | None,
) -> None:
    engine = await _build_engine(config)

    image = image_path.read_bytes() if image_path else None

    async def reply(deliberation: Deliberation) -> None:
        print_deliberation(deliberation, engine.translator)
        if output_dir is not None:
            saved = save_to_file(deliberation, engine.translator, output_dir)
            console.print(f"\n[dim]Saved to: {saved}[/dim]")

    try:
        with console.status("MAGI deliberating..."):
            await engine.run_query(
                question,
                user_id=user_id,
                language=language,  # type: ignore[arg-type]
                image=image,
                file_context=attachment,
                on_reply=reply,
            )
    except DeliberationFailedError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        sys.exit(1)
    finally:
        await engine.tracker.flush()


async def _run_status(config: AppConfig, ping: bool) -> None:
    configs = get_persona_configs(config, "en")
    extra = [*config.pipeline.data_models, *config.pipeline.search_models]
    health = None
    if ping:
        engine = await _build_engine(config)
        tracker = engine.tracker
        models = [m for cfg in configs for m in cfg.models] + extra
        health = await run_health_checks(engine.provider, models)
    else:
        tracker = await _build_tracker(config)
    print_load_table(tracker, configs, extra_models=extra, health=health)
    await tracker.flush()


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(verbose: bool) -> None:
    """MAGI -- three-core deliberation over a question.

    \b
    Examples:
      magi ask "Should we migrate to Kubernetes?"
      magi ask "この計画は承認すべきか" --lang ja
      magi ask "What is in this photo, and is it safe?" --image photo.jpg
      magi ask "Review this plan" --attach plan.md --user alice
      magi status --ping
    """
    # Model output can contain characters the Windows console codepage lacks
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)


@main.command()
@click.argument("question")
@click.option("--lang", "language", type=click.Choice(["auto", "en", "ja", "ko"]), default="auto",
              help="Response language (default: detect from the question)")
@click.option("--image", "image_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Attach an image; it is described and fed to the deliberation")
@click.option("--attach", "attach_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Attach a text file as reference data")
@click.option("--user", "user_id", default=None, help="User id for persistent conversation memory")
@click.option("--output", "output_path", default=None, type=click.Path(file_okay=False, path_type=Path),
              help="Also save the deliberation as markdown in this directory")
def ask(
    question: str,
    language: str,
    image_path: Path | None,
    attach_path: Path | None,
    user_id: str | None,
    output_path: Path | None,
) -> None:
    """Deliberate on QUESTION with all three cores."""
    config = _load_config_or_exit()
    if not config.api_key_available:
        console.print(f"[bold red]Error:[/bold red] Set {config.groq.api_key_env} in .env.")
        sys.exit(1)

    if image_path is not None:
        mime, _ = mimetypes.guess_type(image_path.name)
        if not mime or not mime.startswith("image/"):
            console.print(f"[bold red]Error:[/bold red] {image_path.name} is not an image.")
            sys.exit(1)

    attachment = _read_attachment(attach_path) if attach_path else None

    asyncio.run(
        _run_ask(config, question, language, image_path, attachment, user_id, output_path)
    )


@main.command()
@click.option("--ping", is_flag=True, default=False, help="Ping every configured model")
def status(ping: bool) -> None:
    """Show per-model load across TPM / RPM / RPD / TPD."""
    config = _load_config_or_exit()
    if ping and not config.api_key_available:
        console.print(f"[bold red]Error:[/bold red] Set {config.groq.api_key_env} in .env.")
        sys.exit(1)
    asyncio.run(_run_status(config, ping))


if __name__ == "__main__":
    main()
