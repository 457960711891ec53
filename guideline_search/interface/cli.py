# guideline_search/interface/cli.py

import logging
from typing import List

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.prompt import Prompt
from rich import box
from rich.text import Text

from guideline_search.domain.models import (
    BookmarkEntry,
    EngineStats,
    IndexingReport,
    SearchResult,
)


console = Console()


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def display_welcome_banner() -> None:
    console.print(Panel.fit(
        "[bold cyan]🔍 Guideline Search[/bold cyan]\n"
        "[dim]Offline semantic search over the guidelines manual[/dim]",
        box=box.DOUBLE,
        border_style="cyan",
    ))


def display_stats(stats: EngineStats) -> None:
    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column(style="dim")
    table.add_column(style="bold")
    table.add_row("Documents", str(stats.document_count))
    table.add_row("Dimension", str(stats.dimension))
    table.add_row("Model", stats.model_name)
    table.add_row("Index path", stats.db_path)
    console.print(table)


def display_indexing_report(report: IndexingReport) -> None:
    console.print(
        f"\n[green]✓[/green] Index built: [bold]{report.indexed_count}[/bold] "
        f"documents ready for search.\n"
    )
    if report.duplicate_ids:
        console.print(
            f"[yellow]⚠ {len(report.duplicate_ids)} duplicate id(s), last one kept:[/yellow] "
            + ", ".join(report.duplicate_ids)
        )
    if report.skipped_ids:
        console.print(
            f"[yellow]⚠ {len(report.skipped_ids)} document(s) skipped:[/yellow] "
            + ", ".join(report.skipped_ids)
        )


def prompt_for_query() -> str:
    return Prompt.ask("\n[bold yellow]❓ Search the guidelines[/bold yellow]")


def display_results(query: str, results: List[SearchResult]) -> None:
    console.print(f"\n[bold]Results for:[/bold] [italic]\"{query}\"[/italic]\n")

    if not results:
        console.print("[dim]No matching passages.[/dim]")
        return

    for rank, result in enumerate(results, start=1):
        score_color = _score_to_color(result.score)
        score_display = f"[{score_color}]{result.score:.4f}[/{score_color}]"

        panel_content = Text()
        panel_content.append("📖 Section: ", style="dim")
        panel_content.append(result.section, style="bold white")
        if result.metadata.page_number is not None:
            panel_content.append(f"\n📄 Page: {result.metadata.page_number}")
        panel_content.append("\n🎯 Score: ")
        panel_content.append_text(Text.from_markup(score_display))
        panel_content.append(f"\n\n{result.text}")

        console.print(Panel(
            panel_content,
            title=f"[bold]#{rank}[/bold]",
            border_style=score_color,
            box=box.ROUNDED,
            padding=(1, 2),
        ))


def display_bookmarks(bookmarks: List[BookmarkEntry]) -> None:
    if not bookmarks:
        console.print("[dim]No bookmarks available.[/dim]")
        return

    table = Table(title="Contents", box=box.ROUNDED)
    table.add_column("Page", justify="right", style="cyan")
    table.add_column("Section")
    for entry in bookmarks:
        table.add_row(str(entry.page_number), entry.title)
    console.print(table)


def display_error(message: str) -> None:
    console.print(f"\n[bold red]✗ Error:[/bold red] {message}\n")


def ask_continue() -> bool:
    answer = Prompt.ask(
        "\n[dim]Search again?[/dim]",
        choices=["y", "n"],
        default="y",
    )
    return answer.lower() == "y"


def _score_to_color(score: float) -> str:
    if score >= 0.75:
        return "green"
    elif score >= 0.50:
        return "yellow"
    else:
        return "red"
