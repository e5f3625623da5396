"""CLI interface using typer + rich."""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from resume_fit.clients.llm_client import LLMClient
from resume_fit.config import AppConfig, load_config
from resume_fit.errors import ResumeFitError
from resume_fit.models.validation import Violation
from resume_fit.parsers.experience_loader import load_experience_bank
from resume_fit.parsers.job_parser import load_job_profile
from resume_fit.pipeline.orchestrator import TailoringPipeline
from resume_fit.scoring.ranker import rank
from resume_fit.selection.planner import index_stories, select
from resume_fit.storage.artifact_store import ArtifactStore

app = typer.Typer(
    name="resume-fit",
    help="Select, render and repair a one-page resume for a job posting.",
    no_args_is_help=True,
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_inputs(experience: Path, job: Path, config_path: Path | None):
    for path in (experience, job):
        if not path.exists():
            console.print(f"[red]File not found: {path}[/red]")
            raise typer.Exit(1)
    try:
        config = load_config(config_path)
        stories = load_experience_bank(experience)
        requirements = load_job_profile(job)
    except (ValueError, ResumeFitError) as exc:
        console.print(f"[red]Invalid input: {exc}[/red]")
        raise typer.Exit(1)
    return config, stories, requirements


def _print_violations(violations: list[Violation]) -> None:
    if not violations:
        return
    console.print("\n[yellow]Remaining violations:[/yellow]")
    for violation in violations:
        console.print(f"  - [{violation.type.value}] {violation.message}")


ExperienceOpt = typer.Option(..., "--experience", "-e", help="Experience bank (.json/.yaml)")
JobOpt = typer.Option(..., "--job", "-j", help="Job profile (.json/.yaml)")
ConfigOpt = typer.Option(None, "--config", "-c", help="config.yaml path")
VerboseOpt = typer.Option(False, "--verbose", "-v", help="Verbose logging")


@app.command("rank")
def rank_cmd(
    experience: Path = ExperienceOpt,
    job: Path = JobOpt,
    config_path: Path = ConfigOpt,
    verbose: bool = VerboseOpt,
) -> None:
    """Rank experience stories against a job profile (heuristic scores only)."""
    _setup_logging(verbose)
    config, stories, requirements = _load_inputs(experience, job, config_path)
    ranked = rank(requirements, stories, config=config.scoring)

    table = Table(title=f"Ranked stories: {requirements.role_title or 'job'}")
    table.add_column("#", justify="right")
    table.add_column("Story")
    table.add_column("Score", justify="right")
    table.add_column("Matched skills")
    table.add_column("Notes")
    for i, story in enumerate(ranked, 1):
        table.add_row(
            str(i),
            story.story_id,
            f"{story.relevance_score:.3f}",
            ", ".join(story.matched_skills),
            story.notes,
        )
    console.print(table)


@app.command("plan")
def plan_cmd(
    experience: Path = ExperienceOpt,
    job: Path = JobOpt,
    config_path: Path = ConfigOpt,
    max_bullets: int = typer.Option(None, "--max-bullets", help="Override selection.max_bullets"),
    max_lines: int = typer.Option(None, "--max-lines", help="Override selection.max_lines"),
    verbose: bool = VerboseOpt,
) -> None:
    """Select bullets under the space budget and print the plan."""
    _setup_logging(verbose)
    config, stories, requirements = _load_inputs(experience, job, config_path)
    budget = config.selection.space_budget()
    if max_bullets is not None:
        budget.max_bullets = max_bullets
    if max_lines is not None:
        budget.max_lines = max_lines

    ranked = rank(requirements, stories, config=config.scoring)
    try:
        plan = select(ranked, requirements, index_stories(stories), budget, config.selection)
    except ResumeFitError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    for selected in plan.selected_stories:
        console.print(
            f"[bold]{selected.story_id}[/bold] ({selected.section}, "
            f"{selected.estimated_lines} lines): {', '.join(selected.bullet_ids)}"
        )
    console.print(
        Panel(
            f"Bullets: {plan.total_bullets}/{budget.max_bullets} | "
            f"Lines: {plan.total_lines}/{budget.max_lines} | "
            f"Coverage: {plan.coverage.coverage_score:.3f}\n"
            f"Top skills: {', '.join(plan.coverage.top_skills_covered) or '-'}",
            title="Plan",
        )
    )


@app.command()
def tailor(
    experience: Path = ExperienceOpt,
    job: Path = JobOpt,
    config_path: Path = ConfigOpt,
    output: Path = typer.Option(None, "--output", "-o", help="Output text file"),
    name: str = typer.Option("", "--name", help="Candidate name for the header"),
    no_llm: bool = typer.Option(False, "--no-llm", help="Skip judgment and rewrite calls"),
    rewrite_first: bool = typer.Option(False, "--rewrite", help="Rewrite every bullet before rendering"),
    save: bool = typer.Option(True, "--save/--no-save", help="Store run artifacts"),
    verbose: bool = VerboseOpt,
) -> None:
    """Run the full rank/select/render/repair pipeline."""
    _setup_logging(verbose)
    config, stories, requirements = _load_inputs(experience, job, config_path)

    llm = None if no_llm else LLMClient(timeout=config.llm.timeout, max_retries=config.llm.max_retries)
    pipeline = TailoringPipeline(config, llm, candidate_name=name)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Tailoring...", total=None)

        def on_phase(phase: str, detail: str) -> None:
            progress.update(task, description=f"{phase}: {detail}")

        try:
            result = asyncio.run(
                pipeline.run(requirements, stories, rewrite_first=rewrite_first, on_phase=on_phase)
            )
        except ResumeFitError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(1)

    outcome = result.outcome
    if outcome.document is not None:
        if output is None:
            output = Path("./output") / f"{(requirements.company or 'resume').replace(' ', '_')}.txt"
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(outcome.document.text + "\n", encoding="utf-8")
        console.print(f"\n[green]Saved: {output}[/green]")

    color = "green" if outcome.resolved else "yellow"
    console.print(
        Panel(
            f"[bold {color}]{outcome.state.value}[/bold {color}] | "
            f"cycles: {outcome.cycles} | repairs: {outcome.iterations} | "
            f"coverage: {outcome.plan.coverage.coverage_score:.3f}\n"
            f"elapsed: {result.elapsed_seconds:.1f}s"
            + (f" | tokens: {result.token_usage.get('input', 0)} in / "
               f"{result.token_usage.get('output', 0)} out" if result.token_usage else ""),
            title="Result",
        )
    )
    _print_violations(outcome.violations)

    if save:
        run_id = uuid.uuid4().hex[:12]
        _save_run(config, run_id, result)
        console.print(f"[dim]Run id: {run_id}[/dim]")


def _save_run(config: AppConfig, run_id: str, result) -> None:
    store = ArtifactStore(config.storage.resolved_db_path)
    store.save_ranked(run_id, result.ranked)
    store.save_plan(run_id, result.outcome.plan)
    store.save_violations(run_id, result.outcome.violations)
    store.save_summary(
        run_id,
        {
            "state": result.outcome.state.value,
            "cycles": result.outcome.cycles,
            "iterations": result.outcome.iterations,
            "elapsed_seconds": round(result.elapsed_seconds, 2),
            "tokens": {k: v for k, v in result.token_usage.items() if k != "calls"},
        },
    )


@app.command("show-run")
def show_run(
    run_id: str = typer.Argument(None, help="Run id (omit to list runs)"),
    config_path: Path = ConfigOpt,
) -> None:
    """Show stored artifacts of a previous run."""
    config = load_config(config_path)
    store = ArtifactStore(config.storage.resolved_db_path)
    if run_id is None:
        runs = store.list_runs()
        if not runs:
            console.print("[dim]No stored runs.[/dim]")
        for rid in runs:
            summary = store.get_summary(rid) or {}
            console.print(f"  {rid}  {summary.get('state', '?')}")
        return

    plan = store.get_plan(run_id)
    if plan is None:
        console.print(f"[red]Run not found: {run_id}[/red]")
        raise typer.Exit(1)
    summary = store.get_summary(run_id) or {}
    console.print(Panel(
        f"State: {summary.get('state', '?')} | cycles: {summary.get('cycles', '?')}\n"
        f"Coverage: {plan.coverage.coverage_score:.3f} | bullets: {plan.total_bullets}",
        title=f"Run {run_id}",
    ))
    for selected in plan.selected_stories:
        console.print(f"  {selected.story_id}: {', '.join(selected.bullet_ids)}")
    _print_violations(store.get_violations(run_id) or [])


@app.command("delete-run")
def delete_run(
    run_id: str = typer.Argument(..., help="Run id to delete"),
    config_path: Path = ConfigOpt,
) -> None:
    """Delete every stored artifact of a run."""
    config = load_config(config_path)
    store = ArtifactStore(config.storage.resolved_db_path)
    deleted = store.delete_run(run_id)
    if not deleted:
        console.print(f"[red]Run not found: {run_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted run {run_id} ({deleted} artifacts)[/green]")


if __name__ == "__main__":
    app()
