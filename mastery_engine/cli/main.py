"""
Typer CLI for the abacus mastery engine.

Commands:
    mastery-engine db init                  - Create tables
    mastery-engine skills                   - List the skill catalog
    mastery-engine record PLAYER SKILL      - Record one practice attempt
    mastery-engine skip PLAYER SKILL        - Record a tutorial skip
    mastery-engine readiness PLAYER         - Four-dimension readiness per skill
    mastery-engine plan PLAYER              - Choose the next session mode
    mastery-engine anomalies PLAYER         - Teacher review flags
    mastery-engine defer PLAYER SKILL       - Defer progression past a skill
    mastery-engine clear-deferral PLAYER SKILL
    mastery-engine reap-deferrals           - Delete expired deferral rows

Usage:
    mastery-engine --help
    mastery-engine record alice "tenComplements.9=10-1" --correct --time-ms 2400 --session s1
    mastery-engine plan alice --json
"""

from __future__ import annotations

import json
import sys
from datetime import UTC, datetime, timedelta
from typing import Any

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from mastery_engine.bkt.params import classify_skill
from mastery_engine.core.errors import EngineError
from mastery_engine.core.models import AttemptRecord
from mastery_engine.readiness.assessor import readiness_map_to_record

app = typer.Typer(
    help="Abacus mastery engine: BKT skill tracking, readiness, and session planning",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Context Builder
# ========================================


def _build_engine():
    """Engine over the configured SQL database."""
    from mastery_engine.db.database import get_session_factory, init_db
    from mastery_engine.db.store import SqlDeferralStore, SqlSkillStateStore, SqlSkipLog
    from mastery_engine.service import MasteryEngine

    settings = get_settings()
    init_db()
    factory = get_session_factory()
    return MasteryEngine.with_stores(
        state_store=SqlSkillStateStore(factory, max_retries=settings.store_max_retries),
        deferral_store=SqlDeferralStore(factory),
        skip_log=SqlSkipLog(factory),
        settings=settings,
    )


def _parse_when(value: str | None) -> datetime:
    if value is None:
        return datetime.now(UTC)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Not an ISO timestamp: {value}")
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _emit_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _fail(error: EngineError) -> None:
    rprint(f"[red]Error:[/red] {error}")
    raise typer.Exit(code=1)


def _yes_no(met: bool) -> str:
    return "[green]yes[/green]" if met else "[red]no[/red]"


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from mastery_engine.db.database import init_db

    logger.info("Initializing database tables...")
    init_db()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# CATALOG
# ========================================


@app.command("skills")
def list_skills(
    category: str = typer.Option(None, "--category", "-c", help="Only this category"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """List the skill catalog."""
    from mastery_engine.core.catalog import default_catalog

    catalog = default_catalog()
    skills = catalog.by_category(category) if category else list(catalog)

    if as_json:
        _emit_json(
            [
                {
                    "skill_id": s.skill_id,
                    "display_name": s.display_name,
                    "category": s.category,
                    "prerequisites": list(s.prerequisites),
                }
                for s in skills
            ]
        )
        return

    table = Table(title=f"Skill Catalog ({len(skills)})")
    table.add_column("Skill", style="cyan")
    table.add_column("Name")
    table.add_column("Category", style="dim")
    for skill in skills:
        table.add_row(skill.skill_id, skill.display_name, skill.category)
    console.print(table)


# ========================================
# EVENTS
# ========================================


@app.command("record")
def record_attempt(
    player_id: str = typer.Argument(..., help="Player id"),
    skill_id: str = typer.Argument(..., help="Catalog skill id"),
    correct: bool = typer.Option(True, "--correct/--incorrect", help="Answer outcome"),
    time_ms: int = typer.Option(None, "--time-ms", "-t", help="Response time in ms"),
    session_id: str = typer.Option("cli", "--session", "-s", help="Practice session id"),
    terms: int = typer.Option(1, "--terms", help="Number of terms in the problem"),
    used_help: bool = typer.Option(False, "--used-help", help="Learner used help"),
    retry: bool = typer.Option(False, "--retry", help="Second try at the same problem"),
    at: str = typer.Option(None, "--at", help="ISO timestamp (default: now)"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """Record one practice attempt and show the updated belief."""
    engine = _build_engine()
    attempt = AttemptRecord(
        skill_id=skill_id,
        is_correct=correct,
        response_time_ms=time_ms,
        used_help=used_help,
        timestamp=_parse_when(at),
        session_id=session_id,
        term_count=terms,
        is_retry=retry,
    )
    try:
        state = engine.record_attempt(player_id, attempt)
    except EngineError as e:
        _fail(e)

    if as_json:
        _emit_json(state.to_dict())
        return
    rprint(
        f"[green]✓[/green] {skill_id}: P(known)={state.p_known:.3f} "
        f"confidence={state.confidence:.2f} opportunities={state.opportunities}"
    )


@app.command("skip")
def record_skip(
    player_id: str = typer.Argument(..., help="Player id"),
    skill_id: str = typer.Argument(..., help="Catalog skill id"),
    at: str = typer.Option(None, "--at", help="ISO timestamp (default: now)"),
) -> None:
    """Record that the player skipped a skill's tutorial."""
    engine = _build_engine()
    try:
        engine.record_tutorial_skip(player_id, skill_id, _parse_when(at))
    except EngineError as e:
        _fail(e)
    rprint(f"[green]✓[/green] Recorded tutorial skip for {skill_id}")


# ========================================
# READINESS / PLANNING / REVIEW
# ========================================


@app.command("readiness")
def show_readiness(
    player_id: str = typer.Argument(..., help="Player id"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """Show the four-dimension readiness gate for every attempted skill."""
    engine = _build_engine()
    results = engine.readiness(player_id)

    if as_json:
        _emit_json(readiness_map_to_record(results))
        return

    if not results:
        rprint(f"[yellow]No attempts recorded for {player_id}[/yellow]")
        return

    table = Table(title=f"Readiness for {player_id}")
    table.add_column("Skill", style="cyan")
    table.add_column("Mastery")
    table.add_column("Volume")
    table.add_column("Speed")
    table.add_column("Consistency")
    table.add_column("Solid", style="bold")
    table.add_column("Level", style="dim")
    for skill_id, result in sorted(results.items()):
        d = result.dimensions
        level = classify_skill(d.mastery.p_known, d.mastery.confidence)
        table.add_row(
            skill_id,
            _yes_no(d.mastery.met),
            _yes_no(d.volume.met),
            _yes_no(d.speed.met),
            _yes_no(d.consistency.met),
            _yes_no(result.is_solid),
            level or "-",
        )
    console.print(table)


@app.command("plan")
def plan_session(
    player_id: str = typer.Argument(..., help="Player id"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """Choose the mode of the player's next practice session."""
    engine = _build_engine()
    result = engine.session_mode(player_id)

    if as_json:
        _emit_json(result.to_dict())
        return

    rprint(f"[bold]Mode:[/bold] {result.mode.display_name}")
    rprint(f"[bold]Focus:[/bold] {result.focus_description}")

    table = Table(title="Comfort estimate")
    table.add_column("Mode", style="cyan")
    table.add_column("Comfort", justify="right")
    for mode, comfort in result.comfort_by_mode.items():
        table.add_row(mode.value, f"{comfort:.2f}")
    table.add_row("overall", f"{result.comfort_overall:.2f}", style="bold")
    console.print(table)


@app.command("anomalies")
def show_anomalies(
    player_id: str = typer.Argument(..., help="Player id"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """Show skills flagged for teacher review."""
    engine = _build_engine()
    found = engine.anomalies(player_id)

    if as_json:
        _emit_json([a.to_dict() for a in found])
        return

    if not found:
        rprint(f"[green]No anomalies for {player_id}[/green]")
        return

    table = Table(title=f"Anomalies for {player_id}")
    table.add_column("Skill", style="cyan")
    table.add_column("Kind", style="yellow")
    table.add_column("Details", style="dim")
    for anomaly in found:
        details = ", ".join(f"{k}={v}" for k, v in anomaly.metrics.items())
        table.add_row(anomaly.skill_id, anomaly.kind, details)
    console.print(table)


# ========================================
# DEFERRALS
# ========================================


@app.command("defer")
def defer_progression(
    player_id: str = typer.Argument(..., help="Player id"),
    skill_id: str = typer.Argument(..., help="Catalog skill id"),
    days: float = typer.Option(None, "--days", "-d", help="Deferral length (default from settings)"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """Suppress progression past a skill for a while."""
    engine = _build_engine()
    duration = timedelta(days=days) if days is not None else None
    try:
        deferral = engine.defer_progression(player_id, skill_id, duration=duration)
    except EngineError as e:
        _fail(e)

    if as_json:
        _emit_json(deferral.to_dict())
        return
    rprint(
        f"[green]✓[/green] Deferred {skill_id} for {player_id} "
        f"until {deferral.expires_at:%Y-%m-%d %H:%M} UTC"
    )


@app.command("clear-deferral")
def clear_deferral(
    player_id: str = typer.Argument(..., help="Player id"),
    skill_id: str = typer.Argument(..., help="Catalog skill id"),
) -> None:
    """Remove a progression deferral."""
    engine = _build_engine()
    engine.clear_deferral(player_id, skill_id)
    rprint(f"[green]✓[/green] Cleared deferral for {skill_id}")


@app.command("reap-deferrals")
def reap_deferrals() -> None:
    """Delete deferral rows that have already expired."""
    engine = _build_engine()
    removed = engine.deferral_registry.reap_expired(datetime.now(UTC))
    rprint(f"[green]✓[/green] Removed {removed} expired deferrals")


def main() -> None:
    """Entry point for the CLI."""
    logger.remove()
    logger.add(sys.stderr, level=get_settings().log_level)
    app()


if __name__ == "__main__":
    main()
