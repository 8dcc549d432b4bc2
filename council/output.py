"""Rich console output and markdown file save for council results."""

import logging
import re
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from council.models import CouncilResult, MemberFailure, ModelResponse, Ranking

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _response_preview(response: ModelResponse, words: int = 50) -> str:
    """Return first N words of a response."""
    all_words = response.content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _aggregator_label(result: CouncilResult) -> str:
    role = "participant" if result.aggregator_is_participant else "non-participant"
    return f"{result.aggregator} ({role})"


def _failure_line(failure: MemberFailure) -> str:
    return f"{failure.member}: stage {failure.stage} {failure.kind} ({failure.message})"


def print_failures(failures: Iterable[MemberFailure]) -> None:
    for failure in failures:
        console.print(f"  [yellow]-[/yellow] {escape(_failure_line(failure))}")


def print_responses(result: CouncilResult) -> None:
    """Print a preview of every Stage 1 response."""
    console.print(Rule("[bold cyan]Stage 1: Responses[/bold cyan]"))
    for member in sorted(result.responses):
        resp = result.responses[member]
        console.print(
            Panel(
                escape(_response_preview(resp)),
                title=f"[bold]{resp.provider}[/bold] ({resp.model})",
                subtitle=f"{resp.latency_sec:.1f}s",
                border_style="dim",
            )
        )


def print_rankings(result: CouncilResult) -> None:
    """Print every parsed peer ranking and the aggregate table."""
    console.print(Rule("[bold cyan]Stage 2: Peer Rankings[/bold cyan]"))
    if not result.rankings:
        console.print("[dim]No peer rankings were parsed.[/dim]")
        return

    for reviewer in sorted(result.rankings):
        ranking: Ranking = result.rankings[reviewer]
        lines = [
            f"{i}. {entry.member}" + (f" - {entry.reasoning}" if entry.reasoning else "")
            for i, entry in enumerate(ranking.entries, start=1)
        ]
        console.print(Panel(escape("\n".join(lines)), title=f"Review by [bold]{reviewer}[/bold]", border_style="dim"))

    table = Table(title="Aggregate ranking")
    table.add_column("#", justify="right")
    table.add_column("Member")
    table.add_column("Avg position", justify="right")
    table.add_column("Votes", justify="right")
    for i, agg in enumerate(result.aggregate, start=1):
        table.add_row(str(i), agg.member, f"{agg.average_position:.2f}", str(agg.votes))
    console.print(table)


def print_synthesis(result: CouncilResult) -> None:
    """Print the final answer, disclosing any missing members or reviewers."""
    console.print(Rule("[bold green]Council Synthesis[/bold green]"))
    console.print(
        Text(
            f"Synthesized by: {_aggregator_label(result)} | "
            f"Duration: {result.total_duration_sec:.1f}s | "
            f"Responses: {len(result.responses)}/{len(result.participants)} | "
            f"Rankings: {len(result.rankings)}/{len(result.responses)}",
            style="dim",
        )
    )
    if result.failures:
        console.print("[yellow]Missing from this council:[/yellow]")
        print_failures(result.failures)
    console.print(Markdown(result.synthesis))


def save_to_file(result: CouncilResult, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save the full council transcript as a markdown file.

    Args:
        result: The completed CouncilResult.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the question text. Useful for inbox mode.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    now = datetime.now()
    slug = slug_override if slug_override is not None else _slug(result.question.text)
    filepath = output_dir / f"{now.strftime('%Y%m%d_%H%M%S')}_{slug}.md"

    lines: list[str] = [
        f"# Model Council: {result.question.text[:80]}",
        "",
        f"**Date:** {now.strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Panel:** {', '.join(result.participants)}",
        f"**Aggregator:** {_aggregator_label(result)}",
        f"**Duration:** {result.total_duration_sec:.1f}s",
        f"**Source:** {result.question.source}",
        "",
        "---",
        "",
        "## Stage 1: Responses",
        "",
    ]

    for member in sorted(result.responses):
        resp = result.responses[member]
        lines += [f"### {resp.provider} ({resp.model})", "", resp.content, ""]
        lines.append(
            f"*Latency: {resp.latency_sec:.2f}s"
            + (f" | Tokens: {resp.token_count}" if resp.token_count else "")
            + "*"
        )
        lines.append("")

    lines += ["## Stage 2: Peer Rankings", ""]
    if not result.rankings:
        lines += ["No peer rankings were parsed.", ""]
    for reviewer in sorted(result.rankings):
        lines += [f"### Review by {reviewer}", ""]
        for i, entry in enumerate(result.rankings[reviewer].entries, start=1):
            lines.append(f"{i}. {entry.member}" + (f" - {entry.reasoning}" if entry.reasoning else ""))
        lines.append("")

    if result.aggregate:
        lines += ["### Aggregate ranking", "", "| # | Member | Avg position | Votes |", "|---|---|---|---|"]
        for i, agg in enumerate(result.aggregate, start=1):
            lines.append(f"| {i} | {agg.member} | {agg.average_position:.2f} | {agg.votes} |")
        lines.append("")

    if result.failures:
        lines += ["## Missing", ""]
        lines += [f"- {_failure_line(f)}" for f in result.failures]
        lines.append("")

    lines += [
        f"## Synthesis (by {_aggregator_label(result)})",
        "",
        result.synthesis,
        "",
    ]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Council transcript saved to: %s", filepath)
    return filepath
