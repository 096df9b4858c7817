"""
Tutor CLI - offline tooling for the tutoring engine.

Usage:
    tutor fit vlan                      # Fit one skill from the learner store
    tutor fit --all                     # Fit every skill with stored attempts
    tutor fit --attempts log.json       # Fit from an exported attempt log
    tutor validate --attempts log.json  # AUC / Brier / calibration per skill
    tutor interleave vlan=0.4 ospf stp  # Preview an interleaved session
    tutor assess --minutes 25 -n 30     # Ask the micro-assessment trigger

Attempt logs are JSON lists of objects with `skill_id`, `is_correct` and
optional `learner_id`, `timestamp` (ISO 8601), `response_time_ms` and
`expected_time_ms`.
"""

from __future__ import annotations

import json
import random
from collections import defaultdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from tutorcore.adaptive.micro_assessment import (
    AssessmentTriggerContext,
    get_assessment_type_name,
    should_trigger_micro_assessment,
)
from tutorcore.core.logging import configure_logging
from tutorcore.learning.bkt import (
    BKTParams,
    FitResult,
    PracticeAttempt,
    ValidationQuality,
    fit_skill_bkt,
    validate_skills,
)
from tutorcore.study.desirable_difficulties import PracticeSkill, generate_interleaved_session

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="tutor",
    help="Tutor CLI - fit, validate and preview the adaptive tutoring engine",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

QUALITY_STYLE = {"good": "green", "fair": "yellow", "acceptable": "yellow", "poor": "red", "needs_improvement": "red"}


# =============================================================================
# Attempt sources
# =============================================================================


def _load_attempt_log(path: Path) -> dict[str, list[PracticeAttempt]]:
    """Read an exported attempt log, grouped by skill."""
    try:
        rows = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Cannot read attempt log {path}: {e}[/]")
        raise typer.Exit(1)

    if not isinstance(rows, list):
        console.print(f"[red]{path}: expected a JSON list of attempts[/]")
        raise typer.Exit(1)

    grouped: dict[str, list[PracticeAttempt]] = defaultdict(list)
    for index, row in enumerate(rows):
        try:
            skill_id = str(row["skill_id"])
            timestamp = datetime.fromisoformat(row["timestamp"]) if row.get("timestamp") else None
            attempt = PracticeAttempt(
                is_correct=bool(row["is_correct"]),
                timestamp=timestamp or datetime.min + timedelta(seconds=index),
                skill_id=skill_id,
                response_time_ms=row.get("response_time_ms"),
                expected_time_ms=row.get("expected_time_ms"),
                learner_id=str(row["learner_id"]) if row.get("learner_id") is not None else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            console.print(f"[red]{path}: invalid attempt at index {index}: {e}[/]")
            raise typer.Exit(1)
        grouped[skill_id].append(attempt)
    return dict(grouped)


def _load_attempts_from_store() -> dict[str, list[PracticeAttempt]]:
    from tutorcore.db.database import init_db, session_scope
    from tutorcore.db.repository import TutorRepository

    init_db()
    with session_scope() as session:
        return TutorRepository(session).get_attempts_by_skill()


def _stored_params(skill_ids: list[str]) -> dict[str, BKTParams]:
    from tutorcore.db.database import session_scope
    from tutorcore.db.repository import TutorRepository

    params = {}
    with session_scope() as session:
        repo = TutorRepository(session)
        for skill_id in skill_ids:
            latest = repo.get_latest_params(skill_id)
            if latest is not None:
                params[skill_id] = latest
    return params


def _store_fits(results: dict[str, tuple[FitResult, int]]) -> int:
    from tutorcore.db.database import session_scope
    from tutorcore.db.repository import TutorRepository

    stored = 0
    with session_scope() as session:
        repo = TutorRepository(session)
        for skill_id, (result, n_attempts) in results.items():
            if repo.save_fitted_params(skill_id, result, n_attempts) is not None:
                stored += 1
    return stored


# =============================================================================
# Commands
# =============================================================================


@app.command()
def fit(
    skill_id: Annotated[
        str | None, typer.Argument(help="Skill to fit (omit with --all)")
    ] = None,
    all_skills: Annotated[
        bool, typer.Option("--all", "-a", help="Fit every skill with attempts")
    ] = False,
    attempts_file: Annotated[
        Path | None, typer.Option("--attempts", "-f", help="Read attempts from a JSON log instead of the store")
    ] = None,
    store: Annotated[
        bool, typer.Option("--store/--no-store", help="Persist accepted fits to the learner store")
    ] = True,
) -> None:
    """
    Fit per-skill BKT parameters with Expectation-Maximization.

    Skills with fewer than 5 attempts keep the default parameters. Fits that
    land at slip or guess >= 0.5 are rejected.

    Exit codes:
        0 - At least one skill fitted
        1 - No usable attempts
    """
    if not skill_id and not all_skills:
        console.print("[red]Give a skill id or --all[/]")
        raise typer.Exit(1)

    attempts_by_skill = _load_attempt_log(attempts_file) if attempts_file else _load_attempts_from_store()
    if skill_id:
        attempts_by_skill = {skill_id: attempts_by_skill.get(skill_id, [])}

    if not any(attempts_by_skill.values()):
        console.print("[yellow]No attempts found[/]")
        raise typer.Exit(1)

    defaults = BKTParams.from_settings()
    results: dict[str, tuple[FitResult, int]] = {}

    table = Table(title="BKT Fit Results")
    table.add_column("Skill", style="cyan")
    table.add_column("n", justify="right")
    table.add_column("pL0", justify="right")
    table.add_column("pT", justify="right")
    table.add_column("pS", justify="right")
    table.add_column("pG", justify="right")
    table.add_column("Iter", justify="right")
    table.add_column("Quality")
    table.add_column("Note", style="dim")

    for sid, attempts in sorted(attempts_by_skill.items()):
        result = fit_skill_bkt(attempts, initial=defaults)
        results[sid] = (result, len(attempts))
        quality = result.fit_quality.value
        note = "insufficient data" if result.insufficient_data else (result.rejected_reason or "")
        table.add_row(
            sid,
            str(len(attempts)),
            f"{result.params.p_l0:.3f}",
            f"{result.params.p_t:.3f}",
            f"{result.params.p_s:.3f}",
            f"{result.params.p_g:.3f}",
            str(result.iterations),
            f"[{QUALITY_STYLE[quality]}]{quality}[/]",
            note,
        )

    console.print(table)

    if store and not attempts_file:
        stored = _store_fits(results)
        console.print(f"[dim]Stored {stored} of {len(results)} fits[/]")


@app.command()
def validate(
    attempts_file: Annotated[
        Path | None, typer.Option("--attempts", "-f", help="Read attempts from a JSON log instead of the store")
    ] = None,
    strict: Annotated[
        bool, typer.Option("--strict", "-s", help="Fail when overall quality needs improvement")
    ] = False,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write a JSON report")
    ] = None,
) -> None:
    """
    Validate BKT predictions per skill (AUC, Brier, calibration, log loss).

    Exit codes:
        0 - Validation ran
        1 - No attempts
        2 - Quality needs improvement (with --strict)
    """
    if attempts_file:
        attempts_by_skill = _load_attempt_log(attempts_file)
        params_by_skill: dict[str, BKTParams] = {}
    else:
        attempts_by_skill = _load_attempts_from_store()
        params_by_skill = _stored_params(list(attempts_by_skill))

    if not attempts_by_skill:
        console.print("[yellow]No attempts found[/]")
        raise typer.Exit(1)

    report = validate_skills(attempts_by_skill, params_by_skill, BKTParams.from_settings())

    table = Table(title="BKT Validation")
    table.add_column("Skill", style="cyan")
    table.add_column("n", justify="right")
    table.add_column("AUC", justify="right")
    table.add_column("Brier", justify="right")
    table.add_column("Calibration", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Log loss", justify="right")

    for sid, metrics in sorted(report.per_skill.items()):
        table.add_row(
            sid,
            str(metrics.sample_size),
            f"{metrics.auc:.3f}",
            f"{metrics.brier_score:.3f}",
            f"{metrics.calibration_error:.3f}",
            f"{metrics.accuracy:.1%}",
            f"{metrics.log_loss:.3f}",
        )

    console.print(table)
    quality = report.overall_quality.value
    console.print(
        f"\nAverage AUC: {report.avg_auc:.3f} | Average Brier: {report.avg_brier:.3f} | "
        f"Quality: [{QUALITY_STYLE[quality]}]{quality}[/]"
    )

    if output:
        payload = {"timestamp": datetime.now().isoformat(), **report.to_dict()}
        output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        console.print(f"[dim]Report written to {output}[/]")

    if strict and report.overall_quality == ValidationQuality.NEEDS_IMPROVEMENT:
        raise typer.Exit(2)


@app.command()
def interleave(
    skills: Annotated[
        list[str], typer.Argument(help="Skills as id or id=mastery (mastery 0-1)")
    ],
    questions: Annotated[
        int, typer.Option("--questions", "-n", help="Number of questions")
    ] = 12,
    challenge: Annotated[
        float, typer.Option("--challenge", "-c", min=0.0, max=1.0, help="Challenge preference 0-1")
    ] = 0.5,
    seed: Annotated[
        int | None, typer.Option("--seed", help="Random seed for a reproducible order")
    ] = None,
) -> None:
    """
    Preview an interleaved practice session.

    Weaker skills get more questions; runs of the same skill are broken up.
    """
    practice_skills = []
    for entry in skills:
        skill_id, _, mastery = entry.partition("=")
        try:
            p_mastery = float(mastery) if mastery else None
        except ValueError:
            console.print(f"[red]Invalid mastery for {skill_id}: {mastery}[/]")
            raise typer.Exit(1)
        practice_skills.append(PracticeSkill(skill_id=skill_id, name=skill_id, p_mastery=p_mastery))

    session = generate_interleaved_session(
        practice_skills,
        questions,
        challenge_preference=challenge,
        rng=random.Random(seed),
    )

    table = Table(title=f"Interleaved Session ({len(session.questions)} questions)")
    table.add_column("#", justify="right")
    table.add_column("Skill", style="cyan")
    table.add_column("Switch")

    for question in session.questions:
        table.add_row(str(question.position + 1), question.skill_id, "↺" if question.is_switch_point else "")

    console.print(table)
    mix = ", ".join(f"{k}: {v:.0%}" for k, v in session.skill_mix_ratio.items())
    console.print(
        f"[dim]Mix: {mix} | Switches: {session.switches} | Max run: {session.max_run_length} | "
        f"Retention boost: +{session.estimated_retention_boost:.0%}[/]"
    )


@app.command()
def assess(
    minutes: Annotated[
        float, typer.Option("--minutes", "-m", help="Minutes since the last assessment")
    ],
    interactions: Annotated[
        int, typer.Option("--interactions", "-n", help="Interactions since the last assessment")
    ],
    session_minutes: Annotated[
        float, typer.Option("--session-minutes", help="Length of the current session")
    ] = 0.0,
    accuracy: Annotated[
        float | None, typer.Option("--accuracy", help="Recent accuracy 0-1")
    ] = None,
    seed: Annotated[
        int | None, typer.Option("--seed", help="Random seed for question selection")
    ] = None,
) -> None:
    """
    Ask whether a micro-assessment should interrupt practice now.
    """
    context = AssessmentTriggerContext(
        time_since_last_assessment=timedelta(minutes=minutes),
        interactions_since_last_assessment=interactions,
        current_session_duration=timedelta(minutes=session_minutes),
        recent_accuracy=accuracy,
    )
    recommendation = should_trigger_micro_assessment(context, rng=random.Random(seed))

    if not recommendation.should_trigger:
        console.print(f"[dim]No assessment: {recommendation.reason}[/]")
        return

    console.print(
        Panel(
            f"[bold]{get_assessment_type_name(recommendation.assessment_type)}[/]\n"
            f"Priority: {recommendation.priority.value}\n"
            f"{recommendation.reason}",
            title="Micro-Assessment",
            border_style="cyan",
        )
    )
    for i, question in enumerate(recommendation.questions, 1):
        console.print(f"  {i}. {question.question}")
        for option in question.options:
            console.print(f"     [dim]- {option}[/]")


# =============================================================================
# Entry Point
# =============================================================================


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Verbose output")
    ] = False,
) -> None:
    """
    Tutor CLI - offline tooling for the adaptive tutoring engine.

    \b
    Quick Start:
      tutor fit --all                 # Fit every skill in the store
      tutor validate -f log.json      # Validate against an attempt log
      tutor interleave a=0.3 b c      # Preview interleaving
      tutor assess -m 30 -n 20        # Micro-assessment trigger
    """
    settings = get_settings()
    configure_logging("DEBUG" if verbose else "WARNING", settings.log_file)
    logger.debug("Verbose logging enabled")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
