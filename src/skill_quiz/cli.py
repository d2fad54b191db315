"""
cli.py – Terminal demo: take a skill quiz

Run:
    skill-quiz                    # practice quiz over the demo candidate's skills
    skill-quiz --job backend      # job quiz for the Backend Engineer application
    skill-quiz --job ambassador   # job without skills → single general-fit question

Without LLM credentials (or with FORCE_MOCK_MODE=true) every question comes
from the deterministic fallback generator.  See .env.example.

The per-question timer is cooperative: it is checked when you press Enter,
so an answer typed after the limit is replaced by the timeout answer.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from skill_quiz.config import get_settings
from skill_quiz.database import QuizStore
from skill_quiz.engine import AssessmentEngine, SubmissionResult
from skill_quiz.errors import QuizEngineError
from skill_quiz.models import SKIPPED, Principal, QuizResultView, ViewerRole
from skill_quiz.scoring import score_band
from skill_quiz.seed_demo_data import seed_demo_data
from skill_quiz.session import QuizSession

console = Console()

OUTCOME_STYLE = {
    "correct":    "bold green",
    "incorrect":  "bold red",
    "skipped":    "yellow",
    "unanswered": "dim",
}


# ─── Display helpers ─────────────────────────────────────────────────────────

def _bar(pct: int, width: int = 20) -> str:
    filled = round(pct / 100 * width)
    return "█" * filled + "░" * (width - filled) + f" {pct}%"


def show_status(settings) -> None:
    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 1))
    table.add_column("Service", style="bold cyan")
    table.add_column("Status")
    for service, badge in settings.status_summary().items():
        table.add_row(service, badge)
    console.print(Panel(table, title="[bold]Generation tiers[/bold]", border_style="blue", expand=False))


def _wait_for_advance(session: QuizSession) -> None:
    while session.advance_pending:
        time.sleep(0.05)
        session.poll()


def run_session(session: QuizSession) -> None:
    """Drive the session from keyboard input until the candidate stops."""
    while True:
        sq = session.active_question
        if sq is None:
            if session.all_skills_complete:
                console.print("[bold green]✓ All skills complete.[/bold green]")
                return
            console.print(f"[green]✓ Skill [bold]{session.current_skill}[/bold] complete.[/green]")
            if not Confirm.ask("Continue to next skill?", default=True):
                return
            session.next_skill()
            continue

        q = sq.question
        body = Table(box=None, show_header=False, padding=(0, 1))
        body.add_column("n", style="bold cyan", no_wrap=True)
        body.add_column("option")
        for n, option in enumerate(q.options, start=1):
            body.add_row(str(n), option)
        console.print()
        console.print(Panel(
            body,
            title=f"[bold]{q.question_text}[/bold]",
            subtitle=f"skill: {q.skill_id} • {session.time_remaining():.0f}s left",
            border_style="magenta",
        ))
        choice = Prompt.ask("Answer", choices=["1", "2", "3", "4", "s", "q"],
                            show_choices=True)

        if "timeout" in session.poll():
            console.print(f"[yellow]⏱ Time's up, recorded:[/yellow] {sq.answer_text}")
            _wait_for_advance(session)
            continue
        if choice == "q":
            if session.can_submit:
                return
            console.print("[yellow]Answer or skip at least one question first.[/yellow]")
        elif choice == "s":
            session.skip(q.id)
        else:
            session.answer(q.id, q.options[int(choice) - 1])
            _wait_for_advance(session)


def show_submission(result: SubmissionResult) -> None:
    if result.already_completed:
        console.print("[dim]Quiz was already submitted; showing the stored result.[/dim]")
    table = Table(box=box.ROUNDED, header_style="bold cyan")
    table.add_column("Skill")
    table.add_column("Score", justify="left")
    for skill, pct in result.score.per_skill.items():
        table.add_row(skill, _bar(pct))
    table.add_row("[bold]Overall[/bold]", f"[bold]{_bar(result.score.overall)}[/bold]")
    console.print(Panel(table, title=f"[bold]Result — {score_band(result.score.overall)}[/bold]",
                        border_style="green"))


def show_result_view(view: QuizResultView, title: str) -> None:
    table = Table(box=box.SIMPLE, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Skill")
    table.add_column("Your answer")
    table.add_column("Correct answer")
    table.add_column("Outcome")
    for n, row in enumerate(view.rows, start=1):
        answer = "—" if row.answer_text is None else ("(skipped)" if row.answer_text == SKIPPED else row.answer_text)
        style = OUTCOME_STYLE[row.outcome]
        table.add_row(str(n), row.skill_id, answer, row.correct_answer, f"[{style}]{row.outcome}[/{style}]")
    console.print(Panel(table, title=f"[bold]{title}[/bold] • {view.score}% ({view.band})",
                        border_style="cyan"))


# ─── Main ────────────────────────────────────────────────────────────────────

def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="skill-quiz", description="Take a skill quiz in the terminal.")
    parser.add_argument("--db", help="SQLite file (default: QUIZ_DB_PATH)")
    parser.add_argument("--job", choices=["backend", "ambassador"],
                        help="take the quiz of a demo job application instead of a practice quiz")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=settings.app.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    console.print()
    console.print(Panel(
        "[bold]Skill Quiz[/bold]\n[dim]Skill-based assessment  •  demo candidate: emp-alex[/dim]",
        style="on dark_violet",
        expand=False,
    ))
    show_status(settings)

    try:
        store = QuizStore(args.db or settings.database.path)
        ids = seed_demo_data(store)
        engine = AssessmentEngine(store, settings=settings)
        candidate = Principal(user_id=str(ids["employee_id"]), role=ViewerRole.EMPLOYEE)

        if args.job:
            app_id = ids[f"{args.job}_application_id"]
            quiz_id = engine.create_job_quiz(candidate, app_id)
        else:
            quiz_id = engine.create_practice_quiz(candidate)

        poll = engine.fetch_questions(candidate, quiz_id)
        if not poll.ready:
            console.print("[yellow]Questions are not ready yet. Refresh manually by re-running.[/yellow]")
            sys.exit(1)

        session = engine.start_session(candidate, quiz_id)
        console.print(f"[bold]Quiz {quiz_id}[/bold]: {len(session.questions)} question(s), "
                      f"{session.timer.limit:.0f}s each. [dim](s = skip, q = submit now)[/dim]")
        run_session(session)
        result = engine.submit(candidate, quiz_id, session)

        if args.job:
            console.print("[bold green]✓ Quiz submitted.[/bold green] "
                          "Your score becomes visible once the employer moves your application "
                          "to interview.")
            employer = Principal(user_id="employer-demo", role=ViewerRole.EMPLOYER)
            show_result_view(engine.get_result(employer, quiz_id), "Employer view")
        else:
            show_submission(result)
            show_result_view(engine.get_result(candidate, quiz_id), "Your answers")

    except QuizEngineError as e:
        console.print(f"\n[bold red]Quiz error:[/bold red] {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(0)

    except Exception:
        console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    main()
