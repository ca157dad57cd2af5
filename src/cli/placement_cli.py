"""
Placement CLI - adaptive placement tests from the terminal.

Usage:
    placement validate data/placement_config.yaml
    placement take --config data/placement_config.yaml --bank data/question_bank.yaml
    placement practice --bank data/question_bank.yaml -n 5
    placement mastery vocab-001 --bank data/question_bank.yaml
    placement config

Paths default to PLACEMENT settings (BRANCH_CONFIG_PATH, QUESTION_BANK_PATH).
"""

from __future__ import annotations

import os
import sys
import time
from pathlib import Path
from typing import Annotated, Any

# Fix Windows encoding issues for Unicode characters (box drawing)
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

sys.path.insert(0, str(Path(__file__).parent.parent.parent))
from config import Settings, get_settings
from src.placement.controller import AdvanceView, PhaseController, TerminalView
from src.placement.exceptions import (
    ContentUnavailableError,
    PhaseExpiredError,
    PlacementError,
    SessionFinalizedError,
)
from src.placement.interfaces import InMemoryLedger, InMemoryResultSink
from src.placement.loader import load_branch_config
from src.placement.models import (
    FillBlankQuestion,
    MultipleChoiceQuestion,
    Phase,
    ReadingComprehensionQuestion,
    Result,
    SentenceOrderQuestion,
)
from src.quiz.question_bank import QuestionBank
from src.study.mastery_validator import MasteryStatus, MasteryValidator
from src.study.practice_session import PracticeSession

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="placement",
    help="Adaptive placement tests, mastery quizzes and practice",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

PHASE_STYLES = {
    Phase.INITIAL: "cyan",
    Phase.FOLLOWUP: "yellow",
    Phase.FINAL: "magenta",
    Phase.COMPLETED: "green",
}


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    """Route loguru to stderr (and optionally a file) at the configured level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB")


def _resolve(path: Path | None, fallback: str | None, what: str) -> Path:
    if path is not None:
        return path
    if fallback:
        return Path(fallback)
    console.print(f"[red]No {what} given and none configured[/red]")
    raise typer.Exit(code=1)


def _load_bank(path: Path | None, settings: Settings, seed: str | None = None) -> QuestionBank:
    try:
        return QuestionBank.from_file(
            _resolve(path, settings.question_bank_path, "question bank"), seed=seed
        )
    except PlacementError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    configure_logging(get_settings(), verbose)


# =============================================================================
# Question rendering
# =============================================================================


def _render_question(question: Any, index: int, total: int, remaining: int | None = None) -> None:
    header = f"Question {index + 1}/{total}"
    if remaining is not None:
        minutes, seconds = divmod(max(remaining, 0), 60)
        header += f"  [dim]{minutes:02d}:{seconds:02d} left[/dim]"

    body = escape(question.prompt or "")
    if isinstance(question, ReadingComprehensionQuestion) and question.passage:
        body = f"{escape(question.passage)}\n\n{body}".strip()
    if isinstance(question, MultipleChoiceQuestion):
        body += "\n" + "\n".join(f"  [cyan]{i}[/cyan]. {escape(opt)}" for i, opt in enumerate(question.options))
        if question.is_multi_select:
            body += f"\n[dim]Select {len(question.correct_answer)} (comma separated)[/dim]"
    elif isinstance(question, SentenceOrderQuestion):
        body += "\n" + "\n".join(f"  [cyan]{i}[/cyan]. {escape(s)}" for i, s in enumerate(question.sentences))
        body += "\n[dim]Enter the order as comma separated indices[/dim]"

    console.print(Panel(body, title=header, border_style="blue"))


def _split(text: str) -> list[str]:
    return [part.strip() for part in text.split(",") if part.strip()]


def _ask_answer(question: Any) -> Any:
    """Read one answer in the shape the question's evaluator expects."""
    if isinstance(question, MultipleChoiceQuestion):
        text = Prompt.ask("[cyan]>_[/cyan]", default="")
        return _split(text) if question.is_multi_select else text
    if isinstance(question, SentenceOrderQuestion):
        return _split(Prompt.ask("[cyan]Order[/cyan]", default=""))
    if isinstance(question, ReadingComprehensionQuestion):
        answers = []
        for sub in question.sub_questions:
            console.print(escape(sub.prompt))
            for i, opt in enumerate(sub.options):
                console.print(f"  [cyan]{i}[/cyan]. {escape(opt)}")
            answers.append(Prompt.ask("[cyan]>_[/cyan]", default=""))
        return answers
    if isinstance(question, FillBlankQuestion):
        return Prompt.ask("[cyan]Answer[/cyan]", default="")
    return Prompt.ask("[cyan]>_[/cyan]", default="")


def _print_result(result: Result) -> None:
    table = Table(title="Placement Result", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Level", str(result.level))
    table.add_row("Score", f"{result.score}% ({result.correct_count}/{result.total_questions})")
    table.add_row("Path", " -> ".join(result.branch_name_trail))
    table.add_row("Experience", f"+{result.rewards.experience:g}")
    table.add_row("Currency", f"+{result.rewards.currency:g}")
    table.add_row("Time", f"{result.time_spent_seconds}s")
    console.print(table)


# =============================================================================
# Commands
# =============================================================================


@app.command()
def validate(
    config_path: Annotated[
        Path | None, typer.Argument(help="Branch table (YAML/JSON)")
    ] = None,
) -> None:
    """
    Validate a branch table without running it.

    Exits non-zero on a coverage gap or malformed branch.
    """
    path = _resolve(config_path, get_settings().branch_config_path, "branch table")
    try:
        config = load_branch_config(path)
    except PlacementError as e:
        console.print(f"[red]✗ {path}[/red]\n{escape(str(e))}")
        raise typer.Exit(code=1)

    table = Table(title=f"{config.name} ({len(config.branches)} branches)")
    table.add_column("Branch", style="cyan")
    table.add_column("Phase")
    table.add_column("Correct", justify="right")
    table.add_column("Then", style="green")
    for branch in config.branches:
        lo, hi = branch.condition.correct_range
        then = (
            f"level {branch.result_level}" if branch.is_terminal
            else f"{branch.next_phase.value} ({branch.batch_size} q)"
        )
        table.add_row(branch.name, branch.condition.from_phase.value, f"{lo}-{hi}", then)
    console.print(table)
    console.print(f"[green]✓[/green] {path} is valid")


@app.command()
def take(
    config_path: Annotated[
        Path | None, typer.Option("--config", "-c", help="Branch table (YAML/JSON)")
    ] = None,
    bank_path: Annotated[
        Path | None, typer.Option("--bank", "-b", help="Question bank (YAML/JSON)")
    ] = None,
    seed: Annotated[
        str | None, typer.Option("--seed", help="Reproducible question selection")
    ] = None,
    no_timer: Annotated[
        bool, typer.Option("--no-timer", help="Disable the phase clock")
    ] = False,
) -> None:
    """Take a placement test interactively."""
    settings = get_settings()
    try:
        config = load_branch_config(_resolve(config_path, settings.branch_config_path, "branch table"))
    except PlacementError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    bank = _load_bank(bank_path, settings, seed=seed)

    sink = InMemoryResultSink()
    ledger = InMemoryLedger()
    controller = PhaseController(bank, sink, ledger, settings=settings, autostart_clock=not no_timer)

    console.print(Panel(
        f"[bold cyan]{config.name}[/]\n{config.description or ''}".rstrip(),
        title="Placement",
        border_style="cyan",
    ))
    try:
        controller.start(config)
    except PlacementError as e:
        console.print(f"[red]Cannot start: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    try:
        _run_attempt(controller, timed=not no_timer)
    except KeyboardInterrupt:
        controller.abandon()
        console.print("\n[yellow]Placement abandoned[/yellow]")
        raise typer.Exit(code=130)

    if controller.result is None:
        console.print(f"[red]Placement did not finish: {escape(str(controller.last_error))}[/red]")
        raise typer.Exit(code=1)
    _print_result(controller.result)


def _run_attempt(controller: PhaseController, timed: bool) -> None:
    """Prompt phase by phase until the controller produces a result."""
    while controller.is_live:
        phase = controller.phase
        batch = controller.batch
        step = len(controller.branch_name_trail)
        console.print(f"\n[bold {PHASE_STYLES[phase]}]{phase.value.upper()} PHASE[/] ({len(batch)} questions)")

        expired = False
        for i, question in enumerate(batch):
            _render_question(question, i, len(batch), controller.remaining_seconds if timed else None)
            value = _ask_answer(question)
            if len(controller.branch_name_trail) != step:
                expired = True
                break
            try:
                controller.submit_answer(i, value)
            except PhaseExpiredError:
                expired = True
                break

        if expired:
            console.print("[yellow]⏰ Time is up, scoring submitted answers[/yellow]")
            while (
                controller.is_live
                and len(controller.branch_name_trail) == step
                and controller.last_error is None
            ):
                time.sleep(0.05)
            if controller.last_error is None:
                continue

        try:
            view = controller.submit_phase()
        except SessionFinalizedError:
            continue
        except ContentUnavailableError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            controller.abandon()
            return

        if isinstance(view, AdvanceView):
            console.print(
                f"[dim]{view.correct_count}/{view.total_questions} correct -> {view.branch_name}[/dim]"
            )
        elif isinstance(view, TerminalView):
            return


@app.command()
def practice(
    bank_path: Annotated[
        Path | None, typer.Option("--bank", "-b", help="Question bank (YAML/JSON)")
    ] = None,
    count: Annotated[
        int | None, typer.Option("--count", "-n", help="Number of questions (1-20)")
    ] = None,
) -> None:
    """Immediate practice: each answer is checked as soon as it is given."""
    settings = get_settings()
    bank = _load_bank(bank_path, settings)
    ledger = InMemoryLedger()
    session = PracticeSession(bank, ledger, settings=settings)

    questions = session.start(count)
    if not questions:
        console.print("[yellow]No practice questions available[/yellow]")
        raise typer.Exit(code=1)

    for i, question in enumerate(questions):
        _render_question(question, i, len(questions))
        result = session.check(i, _ask_answer(question))
        if result.correct:
            console.print(f"[green]✓ Correct[/green] [dim]+{settings.practice_reward_experience:g} XP[/dim]")
        else:
            console.print(f"[red]✗ {escape(result.feedback)}[/red]")
        if question.explanation:
            console.print(f"[dim]{escape(question.explanation)}[/dim]")

    report = session.finish()
    console.print(Panel(
        f"Correct: [green]{report.correct}[/green]  Wrong: [red]{report.wrong}[/red]  "
        f"Score: {report.score}%\n"
        f"Experience: +{report.reward.experience:g}  Currency: +{report.reward.currency:g}",
        title="Practice complete",
        border_style="green",
    ))


@app.command()
def mastery(
    item_id: Annotated[str, typer.Argument(help="Learning item to validate")],
    bank_path: Annotated[
        Path | None, typer.Option("--bank", "-b", help="Question bank (YAML/JSON)")
    ] = None,
) -> None:
    """Validate a single item: every answer must be correct."""
    settings = get_settings()
    bank = _load_bank(bank_path, settings)
    validator = MasteryValidator(bank, InMemoryLedger(), settings=settings)

    quiz = validator.start(item_id)
    if quiz.status is MasteryStatus.NO_QUIZ:
        console.print(f"[yellow]Item {item_id} has no quiz questions[/yellow]")
        raise typer.Exit(code=1)

    for i, question in enumerate(quiz.questions):
        _render_question(question, i, len(quiz.questions))
        quiz.answer(i, _ask_answer(question))

    outcome = quiz.submit()
    if outcome.learned:
        console.print(
            f"[green]✓ {item_id} learned[/green] "
            f"[dim]+{outcome.reward.experience:g} XP, +{outcome.reward.currency:g} currency[/dim]"
        )
    else:
        console.print(
            f"[yellow]{item_id}: {outcome.correct_count}/{outcome.total_questions} correct, "
            f"keep studying[/yellow]"
        )


@app.command("config")
def show_config() -> None:
    """Show current configuration."""
    settings = get_settings()

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Branch table", settings.branch_config_path or "Not set")
    table.add_row("Question bank", settings.question_bank_path or "Not set")
    table.add_row("Phase time limit", f"{settings.phase_time_limit_minutes:g} min")
    table.add_row("Mastery quiz size", str(settings.mastery_quiz_size))
    for key, value in settings.get_practice_config().items():
        table.add_row(f"Practice {key.replace('_', ' ')}", f"{value:g}")
    table.add_row("Log Level", settings.log_level)

    console.print(table)


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
