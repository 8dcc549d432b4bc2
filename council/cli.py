"""Click CLI: config loading, panel selection, council run, and output."""

import asyncio
import logging
import sys
from pathlib import Path

import click
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from council.errors import OrchestrationError
from council.gateway import BackendGateway
from council.healthcheck import run_health_checks
from council.inbox import archive_file, ensure_dirs, parse_file, scan_inbox
from council.models import CouncilResult, Member, Question
from council.orchestrator import STAGE_ANSWER, STAGE_REVIEW, run_council
from council.output import print_failures, print_rankings, print_responses, print_synthesis, save_to_file
from council.providers.anthropic import AnthropicProvider
from council.providers.base import AIProvider
from council.providers.deepseek import DeepSeekProvider
from council.providers.gemini import GeminiProvider
from council.providers.openai_provider import OpenAIProvider
from council.providers.xai import XAIProvider

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "gemini": GeminiProvider,
    "openai": OpenAIProvider,
    "claude": AnthropicProvider,
    "grok": XAIProvider,
    "deepseek": DeepSeekProvider,
}

_STAGE_NEXT = {
    STAGE_ANSWER: "Stage 2: peer review...",
    STAGE_REVIEW: "Stage 3: synthesis...",
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available providers. Returns dict keyed by name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        if name not in PROVIDER_CLASSES:
            logger.warning("Provider '%s' unknown, skipping", name)
            continue
        try:
            providers[name] = PROVIDER_CLASSES[name](config.models[name])
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _determine_panel(
    config: AppConfig,
    models_arg: str | None,
    full_flag: bool,
) -> tuple[list[str], str]:
    """Returns (panel_names, panel_mode). --models overrides all."""
    if models_arg:
        return [m.strip() for m in models_arg.split(",") if m.strip()], "custom"
    elif full_flag:
        return list(config.defaults.full_panel), "full"
    else:
        return list(config.defaults.default_panel), "default"


def _exclude_aggregator_from_panel(
    panel_names: list[str],
    aggregator_name: str,
    all_providers: dict[str, AIProvider],
) -> list[str]:
    """Remove the aggregator from the panel when at least 2 available members remain."""
    if aggregator_name not in panel_names:
        return panel_names
    remaining = [n for n in panel_names if n != aggregator_name]
    if len([n for n in remaining if n in all_providers]) >= 2:
        return remaining
    return panel_names


def _pick_aggregator(
    all_providers: dict[str, AIProvider],
    panel_names: list[str],
    preferred: str,
) -> tuple[str, bool]:
    """Pick the aggregator. Returns (name, is_participant).

    The preferred aggregator wins when available. Otherwise a non-participant
    is chosen, falling back to a panel member.
    """
    if preferred in all_providers:
        return preferred, preferred in panel_names
    not_in_panel = sorted(n for n in all_providers if n not in panel_names)
    if not_in_panel:
        return not_in_panel[0], False
    return next(iter(all_providers)), True


def _check_and_filter_providers(all_providers: dict[str, AIProvider]) -> dict[str, AIProvider]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results = asyncio.run(run_health_checks(BackendGateway(all_providers), list(all_providers)))

    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {escape(short_err)}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}

    if not working:
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(
        f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}"
    )
    console.print(f"Working providers: {', '.join(sorted(working))}")

    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


async def _run_single(
    question_text: str,
    source: str,
    config: AppConfig,
    all_providers: dict[str, AIProvider],
    models_arg: str | None,
    full_flag: bool,
    aggregator_name: str,
    timeout_sec: float,
    output_dir: Path,
    verbose: bool,
    slug_override: str | None = None,
) -> Path:
    """Convene one council and return the saved transcript path.

    Raises:
        click.UsageError: If fewer than 2 panel members are available.
        OrchestrationError: If the run fails.
    """
    panel_names, panel_mode = _determine_panel(config, models_arg, full_flag)
    panel_names = _exclude_aggregator_from_panel(panel_names, aggregator_name, all_providers)
    panel_names = [n for n in panel_names if n in all_providers]

    if len(panel_names) < 2:
        raise click.UsageError(
            f"Need at least 2 providers in panel, got {len(panel_names)}. "
            "Check API keys in .env or adjust --models."
        )

    aggregator_id, is_participant = _pick_aggregator(all_providers, panel_names, aggregator_name)
    participants = [Member(n, is_participant=True, is_aggregator=n == aggregator_id) for n in panel_names]
    aggregator = Member(aggregator_id, is_participant=is_participant, is_aggregator=True)

    question = Question(text=question_text, source=source)
    role = "participant" if is_participant else "non-participant"
    mode_tag = escape(f"[{panel_mode}]")

    console.print(f"\n[bold cyan]Model Council[/bold cyan] - {len(participants)} members {mode_tag}")
    console.print(f"Panel: {', '.join(panel_names)}")
    console.print(f"Aggregator: {aggregator_id} ({role})")
    console.print(f"Question: [italic]{escape(question_text[:80])}{'...' if len(question_text) > 80 else ''}[/italic]\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Stage 1: collecting responses...", total=None)

        def on_stage_complete(stage: int, summary: str) -> None:
            progress.print(f"[green]OK[/green] Stage {stage} complete ({summary})")
            if stage in _STAGE_NEXT:
                progress.update(task, description=_STAGE_NEXT[stage])

        result: CouncilResult = await run_council(
            question=question,
            participants=participants,
            aggregator=aggregator,
            gateway=BackendGateway(all_providers),
            prompts=config.prompts,
            per_call_timeout=timeout_sec,
            on_stage_complete=on_stage_complete,
        )

    if verbose:
        print_responses(result)
        print_rankings(result)

    print_synthesis(result)

    saved_path = save_to_file(result, output_dir, slug_override=slug_override)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    return saved_path


def _frontmatter_timeout(value: object) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise click.UsageError(f"Invalid timeout in frontmatter: {value!r}") from None


async def _run_inbox(
    config: AppConfig,
    all_providers: dict[str, AIProvider],
    inbox_dir: Path,
    archive_dir: Path,
    models_cli: str | None,
    full_cli: bool,
    aggregator_cli: str | None,
    timeout_cli: float | None,
    output_dir: Path,
    verbose: bool,
) -> None:
    """Process all .md files in the inbox folder.

    Precedence for per-file settings: CLI flag > frontmatter > config default.
    """
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No files in inbox.")
        return

    for file_path in files:
        try:
            question_text, meta = parse_file(file_path)

            effective_models = (
                models_cli if models_cli is not None
                else str(meta["models"]) if "models" in meta
                else None
            )
            effective_full = full_cli or bool(meta.get("full", False))
            effective_aggregator = aggregator_cli or str(meta.get("aggregator", config.defaults.aggregator))
            effective_timeout = (
                timeout_cli if timeout_cli is not None
                else _frontmatter_timeout(meta["timeout"]) if "timeout" in meta
                else config.defaults.timeout_sec
            )

            saved = await _run_single(
                question_text=question_text,
                source=str(file_path),
                config=config,
                all_providers=all_providers,
                models_arg=effective_models,
                full_flag=effective_full,
                aggregator_name=effective_aggregator,
                timeout_sec=effective_timeout,
                output_dir=output_dir,
                verbose=verbose,
                slug_override=file_path.stem,
            )
            archived = archive_file(file_path, archive_dir)
            click.echo(f"Processed: {file_path.name} -> {saved} (archived: {archived.name})")
        except (OrchestrationError, click.UsageError, yaml.YAMLError) as exc:
            logger.error("Failed: %s -- %s", file_path.name, exc)
            archive_file(file_path, archive_dir, failed=True)


@click.command()
@click.argument("question", required=False)
@click.option("--file", "question_file", type=click.Path(exists=True), help="Read question from .md file")
@click.option("--models", default=None, help="Comma-separated member list, overrides panel selection")
@click.option("--full", "use_full_panel", is_flag=True, help="Use the full panel from config.")
@click.option("--aggregator", default=None, help="Which model writes the final answer (default: from config)")
@click.option("--timeout", "timeout_sec", default=None, type=float, help="Per-call deadline in seconds")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Show responses and rankings, enable DEBUG logging")
@click.option("--inbox", "use_inbox", is_flag=True, default=False,
              help="Process all .md files in inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None,
              help="Override inbox folder path (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    question: str | None,
    question_file: str | None,
    models: str | None,
    use_full_panel: bool,
    aggregator: str | None,
    timeout_sec: float | None,
    output_path: str | None,
    verbose: bool,
    use_inbox: bool,
    inbox_dir_override: str | None,
    skip_health_check: bool,
) -> None:
    """Model Council -- ask several models, let them rank each other, get one answer.

    \b
    Examples:
      model-council "Should we use REST or GraphQL?"
      model-council "Monorepo vs polyrepo?" --full
      model-council "SQL or NoSQL?" --models claude,openai,gemini --aggregator grok
      model-council --file question.md --verbose
      model-council --inbox --inbox-dir ./my_queue
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        _setup_logging(verbose)
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    verbose = verbose or config.defaults.verbose
    _setup_logging(verbose)

    effective_output = Path(output_path) if output_path else config.defaults.output_dir
    effective_aggregator = aggregator if aggregator else config.defaults.aggregator
    effective_timeout = timeout_sec if timeout_sec is not None else config.defaults.timeout_sec

    all_providers = _build_all_providers(config)

    if not all_providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        all_providers = _check_and_filter_providers(all_providers)

    if use_inbox:
        inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
        asyncio.run(
            _run_inbox(
                config=config,
                all_providers=all_providers,
                inbox_dir=inbox_dir,
                archive_dir=config.inbox.archive_dir,
                models_cli=models,
                full_cli=use_full_panel,
                aggregator_cli=aggregator,
                timeout_cli=timeout_sec,
                output_dir=effective_output,
                verbose=verbose,
            )
        )
        return

    if question_file:
        question_text = Path(question_file).read_text(encoding="utf-8").strip()
        question_source = question_file
    elif question:
        question_text = question
        question_source = "cli"
    else:
        console.print("[bold red]Error:[/bold red] Provide a QUESTION argument, --file, or --inbox.")
        sys.exit(1)

    try:
        asyncio.run(
            _run_single(
                question_text=question_text,
                source=question_source,
                config=config,
                all_providers=all_providers,
                models_arg=models,
                full_flag=use_full_panel,
                aggregator_name=effective_aggregator,
                timeout_sec=effective_timeout,
                output_dir=effective_output,
                verbose=verbose,
            )
        )
    except OrchestrationError as exc:
        console.print(f"[bold red]Council failed:[/bold red] {escape(str(exc))}")
        print_failures(exc.failures)
        sys.exit(1)


if __name__ == "__main__":
    main()
