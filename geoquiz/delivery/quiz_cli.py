"""
GeoQuiz: terminal geography quiz.

A Rich terminal interface for learning Dutch municipalities and roads
with an adaptive learning queue.

Commands:
- geoquiz play      - Play a round (learn mode with --learn)
- geoquiz progress  - Show per-item mastery
- geoquiz export    - Write progress to a JSON file
- geoquiz import    - Load progress from a file or URL
- geoquiz reset     - Clear all progress
- geoquiz alias     - Manage custom answer aliases
"""
from __future__ import annotations

import asyncio
import random
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from geoquiz.config import Settings, get_settings
from geoquiz.core.modes import (
    AnswerMode,
    City,
    GameModeAdapter,
    ReplayOptions,
    Road,
    available_modes,
    get_mode,
)
from geoquiz.core.report import (
    build_progress_rows,
    filter_rows,
    page_count,
    paginate,
    sort_rows,
    summarize,
)
from geoquiz.delivery.alias_store import AliasStore
from geoquiz.delivery.item_deck import ItemDeck
from geoquiz.delivery.progress_store import ProgressStore
from geoquiz.delivery.storage import create_storage
from geoquiz.delivery.transfer import import_from_source, write_export_file
from geoquiz.quiz.answers import is_give_up
from geoquiz.quiz.session import Question, QuizSession

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="geoquiz",
    help="GeoQuiz: learn the cities and roads of the Netherlands",
    no_args_is_help=True,
)
alias_app = typer.Typer(help="Manage custom answer aliases", no_args_is_help=True)
app.add_typer(alias_app, name="alias")

console = Console()

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "dim": "dim",
    "status": {
        "new": "blue",
        "active": "yellow",
        "mastered": "green",
    },
}

POINT_CHOICES = 4
STATUS_FILTERS = ("all", "new", "active", "mastered")
SORT_KEYS = ("name", "level", "streak", "correct", "wrong", "score")


def configure_logging(settings: Settings) -> None:
    """Route loguru output to stderr and, optionally, a rotating log file."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
            rotation="1 MB",
            retention=3,
            encoding="utf-8",
        )


@dataclass
class QuizContext:
    """Everything a command needs, wired from settings."""

    settings: Settings
    store: ProgressStore
    aliases: AliasStore
    deck: ItemDeck


def open_context(settings: Settings | None = None) -> QuizContext:
    settings = settings or get_settings()
    storage = create_storage(settings)
    store = ProgressStore(
        storage,
        config=settings.learning_config(),
        storage_key=settings.progress_key,
        backup_dir=settings.state_dir / "backups" if settings.backup_on_reset else None,
    ).init()
    aliases = AliasStore(storage, storage_key=settings.aliases_key)
    aliases.load()
    return QuizContext(
        settings=settings,
        store=store,
        aliases=aliases,
        deck=ItemDeck(settings.data_dir),
    )


def _resolve_mode(mode_id: str) -> GameModeAdapter:
    try:
        return get_mode(mode_id)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None


# =============================================================================
# Display Helpers
# =============================================================================


def describe_item(item: Any) -> str:
    """Hint shown instead of the map when the name is asked."""
    if isinstance(item, City):
        province = f"{item.province}, " if item.province else ""
        return f"A municipality in {province}population {item.population:,}"
    if isinstance(item, Road):
        return f"A type {item.type} road, {item.length_km:.0f} km long"
    return item.id


def style_status(status: str) -> str:
    color = STYLES["status"].get(status, "white")
    return f"[{color}]{status}[/{color}]"


def point_choices(
    question: Question,
    pool: list[Any],
    rng: random.Random,
    count: int = POINT_CHOICES,
) -> list[Any]:
    """The target plus random distractors from the same pool, shuffled."""
    others = [item for item in pool if item.id != question.id]
    picked = rng.sample(others, min(count - 1, len(others)))
    choices = [question.payload, *picked]
    rng.shuffle(choices)
    return choices


def display_question(question: Question, answer_mode: AnswerMode, index: int, total: int) -> None:
    if answer_mode is AnswerMode.NAME:
        content = f"{describe_item(question.payload)}\n\n[bold]What is it called?[/bold]"
    else:
        content = f"Where is [bold]{question.prompt}[/bold]?"

    console.print(Panel(
        content,
        title=f"Question {index}/{total}",
        title_align="left",
        border_style="cyan",
        padding=(1, 2),
    ))


def display_round_summary(session: QuizSession) -> None:
    stats = session.stats
    answered = stats.correct_count + stats.wrong_count
    accuracy = stats.correct_count * 100 / answered if answered else 0.0

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Correct", f"[green]{stats.correct_count}[/green]")
    table.add_row("Wrong", f"[red]{stats.wrong_count}[/red]")
    table.add_row("Accuracy", f"{accuracy:.0f}%")
    table.add_row("Score", f"{session.score:,.0f}")

    console.print()
    console.print(Panel(table, title="[bold]Round Complete[/bold]", border_style="green"))

    missed = session.state.history.wrong
    if missed:
        console.print("[bold]Missed:[/bold] " + ", ".join(q.prompt for q in missed))


# =============================================================================
# Round Loop
# =============================================================================


def _ask_name(session: QuizSession, mode: GameModeAdapter, aliases: AliasStore) -> None:
    question = session.current_question
    answer = Prompt.ask(
        "Name [dim](? = give up, Enter = skip)[/dim]",
        default="",
        show_default=False,
        console=console,
    )

    if not answer.strip():
        session.skip()
        console.print("[dim]Skipped[/dim]")
        return

    if is_give_up(answer):
        session.give_up()
        console.print(f"[yellow]It was {question.prompt}[/yellow]")
        return

    if mode.validate(question, answer, aliases.aliases):
        session.submit_answer(True)
        console.print(f"[{STYLES['correct']}]Correct![/{STYLES['correct']}]")
    else:
        session.submit_answer(False)
        console.print(f"[{STYLES['incorrect']}]Wrong[/{STYLES['incorrect']}], it was {question.prompt}")


def _ask_point(session: QuizSession, mode: GameModeAdapter, pool: list[Any], rng: random.Random) -> None:
    question = session.current_question
    choices = point_choices(question, pool, rng)
    for i, item in enumerate(choices, 1):
        console.print(f"  {i}. {describe_item(item)}")

    pick = IntPrompt.ask(
        "Pick [dim](0 = give up)[/dim]",
        choices=[str(i) for i in range(len(choices) + 1)],
        show_choices=False,
        console=console,
    )

    if pick == 0:
        session.give_up()
        console.print(f"[yellow]It was option {choices.index(question.payload) + 1}[/yellow]")
        return

    is_correct = mode.validate(question, choices[pick - 1])
    session.submit_answer(is_correct)
    if is_correct:
        console.print(f"[{STYLES['correct']}]Correct![/{STYLES['correct']}]")
    else:
        console.print(
            f"[{STYLES['incorrect']}]Wrong[/{STYLES['incorrect']}], "
            f"it was option {choices.index(question.payload) + 1}"
        )


def run_round(
    ctx: QuizContext,
    mode: GameModeAdapter,
    config: Any,
    pool: list[Any],
    rng: random.Random,
    replay: Optional[ReplayOptions] = None,
) -> Optional[QuizSession]:
    """
    Play one round and record its outcome.

    Returns:
        The finished session, or None if the round was empty or interrupted
    """
    generated = mode.generate_questions(
        pool,
        config,
        replay=replay,
        progress=ctx.store.progress,
        rng=rng,
        max_level=ctx.settings.max_level,
    )
    if not generated.queue:
        console.print("\n[yellow]No items match this configuration.[/yellow]")
        return None

    session = QuizSession(
        generated.queue,
        mode.score_value,
        initial_correct=generated.initial_correct,
        feedback_clear_ms=ctx.settings.feedback_clear_ms,
    )

    try:
        while not session.is_finished:
            stats = session.stats
            index = stats.correct_count + stats.wrong_count + 1
            console.print()
            display_question(session.current_question, config.mode, index, stats.total)
            if config.mode is AnswerMode.NAME:
                _ask_name(session, mode, ctx.aliases)
            else:
                _ask_point(session, mode, pool, rng)
    except (KeyboardInterrupt, EOFError):
        console.print("\n\n[yellow]Round interrupted, progress not recorded.[/yellow]")
        return None
    finally:
        session.close()

    correct_ids, wrong_ids = session.outcome_ids()
    ctx.store.update_progress(correct_ids, wrong_ids)
    display_round_summary(session)
    return session


# =============================================================================
# Commands
# =============================================================================


@app.command()
def play(
    mode_id: str = typer.Option(
        "city-quiz",
        "--mode", "-m",
        help="Game mode (city-quiz or road-quiz)",
    ),
    learn: bool = typer.Option(
        False,
        "--learn", "-l",
        help="Adaptive learning round built from your progress",
    ),
    batch: Optional[int] = typer.Option(
        None,
        "--batch", "-b",
        min=1,
        help="Questions per learning round",
    ),
    name_mode: bool = typer.Option(
        False,
        "--name/--point",
        help="Type names instead of picking locations",
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        hidden=True,
        help="Seed the random source",
    ),
) -> None:
    """
    Play a quiz round.

    In learn mode the round mixes new, in-progress and mastered items
    based on stored progress. Missed items can be replayed at the end.
    """
    mode = _resolve_mode(mode_id)
    ctx = open_context()
    rng = random.Random(seed)

    pool = ctx.deck.items(mode.id)
    if not pool:
        console.print(f"\n[red]No items found for {mode.label}![/red]")
        console.print(f"Looking in: {ctx.deck.data_dir.absolute()}")
        raise typer.Exit(1)

    options = ctx.settings.mix_options().with_overrides(batch_size=batch)
    config = mode.default_config().model_copy(update={
        "mode": AnswerMode.NAME if name_mode else AnswerMode.POINT,
        "learn_mode": learn,
        "learning_options": options,
    })

    console.print(f"\n[{STYLES['info']}]GeoQuiz[/{STYLES['info']}] - {mode.label}")
    console.print("=" * 40)

    replay: Optional[ReplayOptions] = None
    while True:
        session = run_round(ctx, mode, config, pool, rng, replay=replay)
        if session is None:
            return

        replay = ReplayOptions.from_state(session.state)
        if replay is None:
            return
        if not Confirm.ask(f"Replay the {len(replay.to_play_ids)} missed items?", default=False, console=console):
            return


@app.command()
def progress(
    mode_id: str = typer.Option(
        "city-quiz",
        "--mode", "-m",
        help="Game mode (city-quiz or road-quiz)",
    ),
    status: str = typer.Option(
        "all",
        "--status", "-s",
        help="Filter: all, new, active or mastered",
    ),
    sort: str = typer.Option(
        "score",
        "--sort",
        help="Sort by name, level, streak, correct, wrong or score",
    ),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    page_size: int = typer.Option(50, "--page-size", help="Rows per page (0 = all)"),
) -> None:
    """Show learning progress per item."""
    mode = _resolve_mode(mode_id)
    if status not in STATUS_FILTERS:
        console.print(f"[red]Unknown status filter: {status}[/red]")
        raise typer.Exit(1)
    if sort not in SORT_KEYS:
        console.print(f"[red]Unknown sort key: {sort}[/red]")
        raise typer.Exit(1)

    ctx = open_context()
    rows = build_progress_rows(
        ctx.deck.items(mode.id),
        ctx.store.progress,
        mode.score_value,
        max_level=ctx.settings.max_level,
    )
    summary = summarize(rows)

    console.print(f"\n[{STYLES['info']}]Learning Progress[/{STYLES['info']}] - {mode.label}")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Items", str(summary.total))
    table.add_row("New", str(summary.new))
    table.add_row("Active", str(summary.active))
    table.add_row("Mastered", str(summary.mastered))
    table.add_row("Accuracy", f"{summary.accuracy_percent:.1f}%")
    console.print(table)

    visible = sort_rows(filter_rows(rows, status), sort)
    if not visible:
        console.print("\n[dim]No items to show.[/dim]")
        return

    row_table = Table()
    row_table.add_column("Name")
    row_table.add_column("ID", style="dim")
    row_table.add_column("Status")
    row_table.add_column("Level", justify="right")
    row_table.add_column("Streak", justify="right")
    row_table.add_column("Correct", justify="right")
    row_table.add_column("Wrong", justify="right")
    row_table.add_column("Score", justify="right")

    for row in paginate(visible, page=page, page_size=page_size):
        row_table.add_row(
            row.name,
            row.item.id,
            style_status(row.status.value),
            f"{row.progress.level}/{ctx.settings.max_level}",
            str(row.progress.streak),
            str(row.progress.total_correct),
            str(row.progress.total_wrong),
            f"{row.score:,.0f}",
        )

    console.print()
    console.print(row_table)

    pages = page_count(len(visible), page_size)
    if pages > 1:
        current = min(max(page, 1), pages)
        console.print(f"[dim]Page {current} of {pages}[/dim]")


@app.command("export")
def export_progress(
    output_dir: Path = typer.Option(
        Path("."),
        "--dir", "-d",
        help="Directory to write the export file to",
    ),
) -> None:
    """Export progress to a JSON file."""
    ctx = open_context()
    try:
        path = write_export_file(ctx.store.export_progress_data(), output_dir)
    except OSError as e:
        console.print(f"[red]Export failed: {e}[/red]")
        raise typer.Exit(1) from None

    console.print(f"[green]Exported {len(ctx.store)} records to {path}[/green]")


@app.command("import")
def import_progress(
    source: str = typer.Argument(..., help="JSON file path or http(s) URL"),
    merge: bool = typer.Option(
        False,
        "--merge",
        help="Merge with existing progress instead of replacing it",
    ),
) -> None:
    """Import progress from a file or URL."""
    ctx = open_context()
    mode = "merge" if merge else "replace"

    result = asyncio.run(
        import_from_source(ctx.store, source, mode=mode, timeout=ctx.settings.import_timeout_seconds)
    )
    if not result.ok:
        console.print(f"[red]Import failed: {result.message}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Imported {result.imported} records ({mode}).[/green]")


@app.command()
def reset(
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
) -> None:
    """Clear all learning progress."""
    if not confirm and not Confirm.ask("Reset ALL progress? This cannot be undone!", default=False, console=console):
        raise typer.Exit(0)

    ctx = open_context()
    count = ctx.store.reset_progress()
    console.print(f"[green]Progress reset ({count} records removed).[/green]")


@app.command()
def modes() -> None:
    """List the available game modes."""
    table = Table()
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Description", style="dim")
    for mode in available_modes():
        table.add_row(mode.id, mode.label, mode.description)
    console.print(table)


# =============================================================================
# Alias Commands
# =============================================================================


def _find_item(ctx: QuizContext, item_id: str) -> Any | None:
    for mode in available_modes():
        item = ctx.deck.find(mode.id, item_id)
        if item is not None:
            return item
    return None


@alias_app.command("add")
def alias_add(
    item_id: str = typer.Argument(..., help="Item id"),
    alias: str = typer.Argument(..., help="Extra accepted name"),
) -> None:
    """Accept an extra name for an item."""
    ctx = open_context()
    item = _find_item(ctx, item_id)
    if item is None:
        console.print(f"[red]Unknown item: {item_id}[/red]")
        raise typer.Exit(1)

    if ctx.aliases.add_alias(item_id, alias):
        console.print(f"[green]{item.name} now also accepts '{alias.strip()}'[/green]")
    else:
        console.print("[yellow]Alias not added (blank or already present).[/yellow]")


@alias_app.command("remove")
def alias_remove(
    item_id: str = typer.Argument(..., help="Item id"),
    alias: str = typer.Argument(..., help="Alias to remove"),
) -> None:
    """Stop accepting a custom alias."""
    ctx = open_context()
    if ctx.aliases.remove_alias(item_id, alias):
        console.print(f"[green]Removed '{alias}' from {item_id}[/green]")
    else:
        console.print(f"[yellow]No alias '{alias}' for {item_id}[/yellow]")


@alias_app.command("list")
def alias_list() -> None:
    """Show all custom aliases."""
    ctx = open_context()
    aliases = ctx.aliases.aliases
    if not aliases:
        console.print("[dim]No custom aliases.[/dim]")
        return

    table = Table()
    table.add_column("ID")
    table.add_column("Aliases")
    for item_id, names in sorted(aliases.items()):
        table.add_row(item_id, ", ".join(names))
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    configure_logging(get_settings())
    app()


if __name__ == "__main__":
    main()
