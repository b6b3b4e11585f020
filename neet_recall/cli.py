"""
neet-recall CLI - Spaced repetition and weak-concept tracking from the terminal.

Usage:
    neet-recall init-db                  # Create tables in the configured database
    neet-recall classify "Mitochondria"  # Show the concept id for a label
    neet-recall review CARD_ID 4         # Record a review with quality 4
    neet-recall due                      # List cards due now
    neet-recall stats                    # Dashboard summary
    neet-recall record-quiz quiz.json    # Log a finished quiz attempt
    neet-recall weak --subject biology   # Top weak concepts
    neet-recall reviewed PATTERN_ID      # Mark a weak concept as reviewed once
    neet-recall remediate CONCEPT_ID     # Study material for a concept
"""

from __future__ import annotations

import json
import sys
from datetime import timedelta
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from neet_recall.clock import utc_now
from neet_recall.concepts.classifier import (
    ConceptClassifier,
    concept_display_name,
    subject_from_concept_id,
    topic_from_concept_id,
)
from neet_recall.config import Settings, get_settings
from neet_recall.exceptions import NeetRecallError
from neet_recall.mistakes.aggregator import MistakeAggregator
from neet_recall.models import MistakePattern, QuizAttemptCreate
from neet_recall.remediation import RemediationCache, RemediationService
from neet_recall.scheduling.sm2 import SM2Config, SM2Scheduler
from neet_recall.services import MistakeTrackingService, ReviewService
from neet_recall.stats.engine import StatsEngine
from neet_recall.store.sql import SqlMistakeStore, SqlReviewStore, build_engine, init_schema

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="neet-recall",
    help="Spaced repetition scheduling and weak-concept tracking for NEET flashcards",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

UserOption = Annotated[
    str | None, typer.Option("--user", "-u", help="User id (defaults to settings)")
]

SEVERITY_STYLES = {"high": "red", "medium": "yellow", "low": "green"}


def _configure_logging(settings: Settings) -> None:
    """Route loguru output to stderr, plus a rotating file when configured."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB", retention=5)


class _Context:
    """Collaborators wired from settings for one CLI invocation."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = build_engine(settings.database_url)
        sm2_config = SM2Config.from_settings(settings)
        self.review_store = SqlReviewStore(self.engine, max_retries=settings.store_max_retries)
        self.mistake_store = SqlMistakeStore(self.engine, max_retries=settings.store_max_retries)
        self.reviews = ReviewService(
            self.review_store,
            scheduler=SM2Scheduler(sm2_config),
            stats=StatsEngine(sm2_config),
        )
        thresholds = settings.get_severity_thresholds()
        self.aggregator = MistakeAggregator(
            self.mistake_store,
            high_threshold=thresholds["high"],
            medium_threshold=thresholds["medium"],
        )
        self.mistakes = MistakeTrackingService(
            self.mistake_store,
            aggregator=self.aggregator,
            weak_concepts_limit=settings.weak_concepts_limit,
            attempts_limit=settings.attempts_list_limit,
        )
        self.remediation = RemediationService(
            cache=RemediationCache(ttl=timedelta(days=settings.remediation_cache_ttl_days)),
        )

    def user(self, user_id: str | None) -> str:
        return user_id or self.settings.default_user_id


def _context() -> _Context:
    settings = get_settings()
    _configure_logging(settings)
    return _Context(settings)


def _fail(exc: Exception) -> typer.Exit:
    console.print(f"[red]Error:[/] {escape(str(exc))}")
    return typer.Exit(1)


# =============================================================================
# Setup Commands
# =============================================================================


@app.command("init-db")
def init_db() -> None:
    """Create the review, mistake and quiz-attempt tables."""
    ctx = _context()
    try:
        init_schema(ctx.engine)
    except NeetRecallError as exc:
        raise _fail(exc) from exc
    console.print(f"[green]Schema ready[/] at {ctx.settings.database_url}")


@app.command()
def classify(
    text: Annotated[str, typer.Argument(help="Label or answer text")],
) -> None:
    """Show the concept id a label maps to."""
    classifier = ConceptClassifier()
    concept_id = classifier.classify(text)
    match = classifier.match(text)

    console.print(f"[bold cyan]{concept_id}[/]")
    if match is None:
        console.print("[dim]No keyword matched; using fallback subject/topic[/]")
    else:
        console.print(f"[dim]Matched keyword '{match.keyword}' ({match.rule.subject}.{match.rule.topic})[/]")


# =============================================================================
# Review Commands
# =============================================================================


@app.command()
def review(
    card_id: Annotated[str, typer.Argument(help="Card identifier")],
    quality: Annotated[int, typer.Argument(help="Recall quality 0-5")],
    user: UserOption = None,
) -> None:
    """Record a flashcard review."""
    ctx = _context()
    try:
        result = ctx.reviews.submit_review(card_id, ctx.user(user), quality)
    except NeetRecallError as exc:
        raise _fail(exc) from exc

    status = ctx.reviews.status_of(result)
    console.print(
        f"[green]Reviewed[/] {card_id}: status [bold]{status.value}[/], "
        f"next review {result.next_review_date:%Y-%m-%d} "
        f"(interval {result.interval}d, ease {result.ease_factor:.2f}, reps {result.repetitions})"
    )


@app.command()
def due(
    card: Annotated[
        list[str] | None,
        typer.Option("--card", "-c", help="Restrict to these card ids (repeatable)"),
    ] = None,
    user: UserOption = None,
) -> None:
    """List cards due for review now, earliest first."""
    ctx = _context()
    try:
        card_ids = ctx.reviews.due_card_ids(ctx.user(user), deck_card_ids=card or None)
    except NeetRecallError as exc:
        raise _fail(exc) from exc

    if not card_ids:
        console.print("[green]Nothing due.[/]")
        return
    for card_id in card_ids:
        console.print(card_id)
    console.print(f"[dim]{len(card_ids)} due[/]")


@app.command()
def stats(user: UserOption = None) -> None:
    """Show the review dashboard summary."""
    ctx = _context()
    try:
        summary = ctx.reviews.get_stats(ctx.user(user))
    except NeetRecallError as exc:
        raise _fail(exc) from exc

    table = Table(title="Review Stats")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Due today", str(summary.total_due))
    table.add_row("Reviewed today", str(summary.reviewed_today))
    table.add_row("New", str(summary.new_cards))
    table.add_row("Learning", str(summary.learning_cards))
    table.add_row("Review", str(summary.review_cards))
    table.add_row("Mastered", str(summary.mastered_cards))
    table.add_row("Streak", str(summary.streak_days))
    table.add_row("Due tomorrow", str(summary.forecast.tomorrow))
    table.add_row("Due next week", str(summary.forecast.next_week))
    console.print(table)


# =============================================================================
# Mistake Tracking Commands
# =============================================================================


@app.command("record-quiz")
def record_quiz(
    file: Annotated[Path, typer.Argument(help="JSON file describing the quiz attempt")],
    user: UserOption = None,
) -> None:
    """Log a finished quiz attempt and its wrong answers."""
    try:
        attempt = QuizAttemptCreate.model_validate(json.loads(file.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise _fail(exc) from exc

    ctx = _context()
    try:
        stored, result = ctx.mistakes.log_quiz_attempt(ctx.user(user), attempt)
    except NeetRecallError as exc:
        raise _fail(exc) from exc

    console.print(
        f"[green]Logged attempt[/] {stored.attempt_id}: score {stored.score}%, "
        f"{len(result.succeeded)} mistakes recorded"
    )
    if not result.ok:
        for item in result.failed:
            console.print(f"[red]Failed[/] {item.answer.question_id}: {item.error}")
        raise typer.Exit(1)


@app.command()
def weak(
    subject: Annotated[
        str | None, typer.Option("--subject", "-s", help="biology, physics or chemistry")
    ] = None,
    limit: Annotated[
        int | None, typer.Option("--limit", "-n", help="Number of concepts to show")
    ] = None,
    user: UserOption = None,
) -> None:
    """Show the concepts with the most mistakes."""
    ctx = _context()
    try:
        patterns = ctx.mistakes.weak_concepts(ctx.user(user), subject=subject, limit=limit)
    except NeetRecallError as exc:
        raise _fail(exc) from exc

    if not patterns:
        console.print("[green]No weak concepts recorded.[/]")
        return

    table = Table(title="Weak Concepts")
    table.add_column("Concept", style="cyan")
    table.add_column("Subject")
    table.add_column("Mistakes", justify="right")
    table.add_column("Severity")
    table.add_column("Pattern ID", style="dim")
    for pattern in patterns:
        level = ctx.aggregator.severity(pattern.mistake_count)
        table.add_row(
            concept_display_name(pattern.concept_id),
            pattern.subject,
            str(pattern.mistake_count),
            f"[{SEVERITY_STYLES[level]}]{level}[/]",
            pattern.pattern_id or "",
        )
    console.print(table)


@app.command()
def reviewed(
    pattern_id: Annotated[str, typer.Argument(help="Mistake pattern id")],
) -> None:
    """Mark a weak concept as reviewed (one fewer mistake)."""
    ctx = _context()
    try:
        pattern = ctx.mistakes.mark_reviewed(pattern_id)
    except NeetRecallError as exc:
        raise _fail(exc) from exc
    console.print(f"[green]{pattern.concept_id}[/] now at {pattern.mistake_count} mistakes")


@app.command()
def remediate(
    concept_id: Annotated[str, typer.Argument(help="Concept id (subject.topic.slug)")],
    user: UserOption = None,
) -> None:
    """Show study material for a concept."""
    ctx = _context()
    try:
        pattern = ctx.mistake_store.get(ctx.user(user), concept_id)
        content = ctx.remediation.get_remediation(
            pattern
            or MistakePattern(
                user_id=ctx.user(user),
                subject=subject_from_concept_id(concept_id),
                topic=topic_from_concept_id(concept_id),
                concept_id=concept_id,
                last_occurrence=utc_now(),
            )
        )
    except NeetRecallError as exc:
        raise _fail(exc) from exc

    title = concept_display_name(concept_id)
    if content.is_fallback:
        title += " (offline template)"
    console.print(Panel(content.explanation, title=title, border_style="cyan"))
    for number, question in enumerate(content.practice_questions, start=1):
        console.print(f"\n[bold]{number}. {question.question}[/]")
        for option in question.options:
            marker = "[green]*[/]" if option == question.correct_answer else " "
            console.print(f"  {marker} {option}")
        if question.explanation:
            console.print(f"  [dim]{question.explanation}[/]")
    if content.misconception:
        console.print(f"\n[yellow]Common misconception:[/] {content.misconception}")


if __name__ == "__main__":
    app()
