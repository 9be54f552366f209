"""Revision planner: main CLI.

Usage:
  revision-planner init                       Write the default configuration
  revision-planner config show                Show the configuration
  revision-planner demo                       Write a demo request (GCSE)
  revision-planner check <request.json>       Input check
  revision-planner brief <request.json>       Show the generation brief
  revision-planner generate <request.json>    Generate and validate a timetable
  revision-planner move <entry-id> <date>     Move one entry to another day
  revision-planner coverage <request.json>    Coverage of the saved timetable
  revision-planner export                     Excel + PDF export
"""

import functools
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich import box

console = Console()

SCHEDULE_FILE = "schedule.json"
LEDGER_FILE = "ledger.json"


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _setup_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _config():
    """PlannerConfig of the current invocation (defaults if no file exists)."""
    return click.get_current_context().obj["config"]


def _output_dir() -> Path:
    return Path(_config().output.directory)


def _load_request(path: Path):
    from models.request import StudyRequest
    try:
        return StudyRequest.load_json(path)
    except ValidationError as e:
        console.print(f"[red]Request file invalid: {path}[/red]\n{e}")
        sys.exit(1)


def _load_schedule(path: Path):
    from models.schedule import Schedule
    if not path.exists():
        console.print(
            f"[red]No timetable found: {path}[/red]\n"
            "Run [bold]revision-planner generate[/bold] first."
        )
        sys.exit(1)
    return Schedule.load_json(path)


def _planner_errors(fn):
    """Expected planner errors end the command with a panel and exit code 1."""
    from planner.errors import PlannerError

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except PlannerError as e:
            console.print(Panel(
                f"[bold]{e.code}[/bold]\n{e.message}",
                title="Generation failed",
                border_style="red",
            ))
            sys.exit(1)
    return wrapper


# ─── INIT ─────────────────────────────────────────────────────────────────────

@click.command("init")
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing config.")
def cmd_init(force: bool):
    """Write the default configuration to config/planner_config.yaml."""
    from config.defaults import default_planner_config
    from config.manager import ConfigManager

    mgr = ConfigManager()
    if not mgr.first_run_check() and not force:
        console.print(
            "[yellow]A configuration already exists.[/yellow]\n"
            "Use [bold]--force[/bold] to overwrite it."
        )
        return
    mgr.save(default_planner_config())
    console.print("Next: [bold]revision-planner demo[/bold] writes a demo request.")


# ─── CONFIG ───────────────────────────────────────────────────────────────────

@click.group("config")
def cmd_config():
    """Show the configuration."""


@cmd_config.command("show")
def config_show():
    """Show the active configuration."""
    from config.manager import ConfigManager
    ConfigManager().print_config(_config())


# ─── DEMO ─────────────────────────────────────────────────────────────────────

@click.command("demo")
@click.option("--seed", default=42, help="Random seed for reproducible data.")
@click.option("--days", default=28, type=click.IntRange(1, 120), help="Window length in days.")
@click.option("--start", "start", default=None, type=click.DateTime(formats=["%Y-%m-%d"]),
              help="First day of the window (default: today).")
@click.option("--output", "-o", default="output/request.json", help="Path of the request file.")
def cmd_demo(seed: int, days: int, start, output: str):
    """Write a demo request (GCSE subjects, tests, homework, events)."""
    from data.fake_data import FakeRequestGenerator

    start_date = start.date() if start else date.today()
    request = FakeRequestGenerator(seed=seed).generate(start_date, days)
    out_path = Path(output)
    request.save_json(out_path)

    console.print(Panel(request.summary(), title="Demo request", border_style="cyan"))
    console.print(f"[green]✓[/green] Request saved: {out_path}")


# ─── CHECK ────────────────────────────────────────────────────────────────────

@click.command("check")
@click.argument("request_file", type=click.Path(exists=True, path_type=Path))
def cmd_check(request_file: Path):
    """Run the input check on a request file."""
    request = _load_request(request_file)
    console.print(f"\n{request.summary()}\n")
    report = request.check()
    report.print_rich()
    sys.exit(0 if report.is_valid else 1)


# ─── BRIEF ────────────────────────────────────────────────────────────────────

@click.command("brief")
@click.argument("request_file", type=click.Path(exists=True, path_type=Path))
@click.option("--json", "as_json", is_flag=True, default=False,
              help="Print the brief as JSON instead of the prompt text.")
@_planner_errors
def cmd_brief(request_file: Path, as_json: bool):
    """Show the generation brief compiled from a request."""
    from planner.brief import render_prompt
    from planner.engine import TimetableEngine

    request = _load_request(request_file)
    _, brief = TimetableEngine(_config(), source=None).prepare(request)
    if as_json:
        click.echo(brief.model_dump_json(indent=2))
    else:
        click.echo(render_prompt(brief))


# ─── GENERATE ─────────────────────────────────────────────────────────────────

@click.command("generate")
@click.argument("request_file", type=click.Path(exists=True, path_type=Path))
@click.option("--candidate", type=click.Path(exists=True, path_type=Path), default=None,
              help="Validate a saved candidate (model response or hand-written JSON).")
@click.option("--offline", is_flag=True, default=False,
              help="Draft with the local CP-SAT planner instead of Gemini.")
@click.option("--output-dir", default=None, help="Directory for schedule and ledger.")
@_planner_errors
def cmd_generate(request_file: Path, candidate: Optional[Path], offline: bool,
                 output_dir: Optional[str]):
    """Generate a validated timetable and save it with its rejection ledger."""
    from config.schema import AcquisitionProvider
    from planner.acquisition import GeminiCandidateSource, StaticCandidateSource
    from planner.engine import TimetableEngine
    from planner.errors import EmptyScheduleError
    from planner.local_solver import CpSatCandidateSource
    from planner.reconcile import ScheduleStore

    if candidate and offline:
        raise click.UsageError("--candidate and --offline exclude each other.")

    config = _config()
    request = _load_request(request_file)

    if candidate:
        source = StaticCandidateSource.from_file(candidate)
    elif offline or config.acquisition.provider == AcquisitionProvider.LOCAL:
        source = CpSatCandidateSource(config.solver)
    else:
        source = GeminiCandidateSource(config.acquisition)
    console.print(f"[bold]Candidate source:[/bold] {source.name}")

    try:
        result = TimetableEngine(config, source).generate(request)
    except EmptyScheduleError as e:
        e.ledger.print_rich()
        raise

    out_dir = Path(output_dir) if output_dir else _output_dir()
    ScheduleStore(out_dir / SCHEDULE_FILE).save(result.schedule)
    result.ledger.save_json(out_dir / LEDGER_FILE)

    result.ledger.print_rich()
    if result.excluded_homework:
        table = Table(title="Homework not scheduled", box=box.ROUNDED)
        table.add_column("Title")
        table.add_column("Due")
        table.add_column("Reason")
        for hw in result.excluded_homework:
            table.add_row(hw.title, hw.due_date.isoformat(), hw.reason)
        console.print(table)

    console.print(
        f"[green]✓[/green] {result.schedule.entry_count} entries over "
        f"{len(result.schedule.days)} days (repaired: {result.repaired})\n"
        f"[green]✓[/green] Timetable saved: {out_dir / SCHEDULE_FILE}\n"
        f"[green]✓[/green] Ledger saved: {out_dir / LEDGER_FILE}"
    )


# ─── MOVE ─────────────────────────────────────────────────────────────────────

@click.command("move")
@click.argument("entry_id")
@click.argument("target", type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option("--schedule", "schedule_file", type=click.Path(path_type=Path), default=None,
              help="Timetable file (default: <output>/schedule.json).")
@click.option("--request", "request_file", type=click.Path(exists=True, path_type=Path),
              default=None, help="Request file, used to re-check blocked time.")
@_planner_errors
def cmd_move(entry_id: str, target, schedule_file: Optional[Path],
             request_file: Optional[Path]):
    """Move one entry to another day, keeping its start time."""
    from planner.constraints import build_constraints
    from planner.reconcile import ScheduleStore

    path = schedule_file or _output_dir() / SCHEDULE_FILE
    _load_schedule(path)

    blocked = ()
    if request_file is not None:
        blocked = build_constraints(_load_request(request_file), _config()).blocked_intervals

    result = ScheduleStore(path).move(entry_id, target.date(),
                                      blocked_intervals=blocked, strict=True)
    console.print(
        f"[green]✓[/green] '{result.entry.topic}' moved "
        f"{result.source_date.isoformat()} → {target.date().isoformat()}"
    )
    if result.warning:
        console.print(f"[yellow]⚠ {result.warning}[/yellow]")


# ─── COVERAGE ─────────────────────────────────────────────────────────────────

@click.command("coverage")
@click.argument("request_file", type=click.Path(exists=True, path_type=Path))
@click.option("--schedule", "schedule_file", type=click.Path(path_type=Path), default=None,
              help="Timetable file (default: <output>/schedule.json).")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the report as JSON.")
@_planner_errors
def cmd_coverage(request_file: Path, schedule_file: Optional[Path], as_json: bool):
    """Compare the saved timetable with the request's obligations."""
    from analysis.coverage_report import CoverageAnalyzer
    from planner.constraints import build_constraints

    schedule = _load_schedule(schedule_file or _output_dir() / SCHEDULE_FILE)
    constraints = build_constraints(_load_request(request_file), _config())

    analyzer = CoverageAnalyzer()
    report = analyzer.analyze(schedule, constraints)
    if as_json:
        click.echo(json.dumps(report.model_dump(mode="json"), indent=2))
    else:
        analyzer.print_rich(report)


# ─── EXPORT ───────────────────────────────────────────────────────────────────

@click.command("export")
@click.option("--schedule", "schedule_file", type=click.Path(path_type=Path), default=None,
              help="Timetable file (default: <output>/schedule.json).")
@click.option("--format", "fmt", type=click.Choice(["xlsx", "pdf", "all"]), default="all",
              help="Export format.")
@click.option("--title", default="Revision timetable", help="Document title.")
def cmd_export(schedule_file: Optional[Path], fmt: str, title: str):
    """Export the saved timetable as Excel and/or PDF."""
    from export.excel_export import ExcelExporter
    from export.pdf_export import PdfExporter
    from planner.validator import RejectionLedger

    out_dir = _output_dir()
    path = schedule_file or out_dir / SCHEDULE_FILE
    schedule = _load_schedule(path)
    ledger_path = path.parent / LEDGER_FILE
    ledger = RejectionLedger.load_json(ledger_path) if ledger_path.exists() else None

    if fmt in ("xlsx", "all"):
        xlsx = out_dir / "timetable.xlsx"
        ExcelExporter(schedule, ledger, title=title).export(xlsx)
        console.print(f"[green]✓[/green] Excel: {xlsx}")
    if fmt in ("pdf", "all"):
        pdf = out_dir / "timetable.pdf"
        PdfExporter(schedule, title=title).export(pdf)
        console.print(f"[green]✓[/green] PDF: {pdf}")


# ─── MAIN CLI ─────────────────────────────────────────────────────────────────

@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None,
              help="Config file (default: config/planner_config.yaml).")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool):
    """Revision planner: validated study timetables from subjects, tests and homework.

    Start with: revision-planner demo
    """
    from config.manager import ConfigManager

    mgr = ConfigManager()
    try:
        config = mgr.load(config_path) if config_path else mgr.load_or_default()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    _setup_logging(config.logging.level, verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


def main():
    """Entry point. Offers `init` when called without arguments on a fresh checkout."""
    from config.manager import ConfigManager

    if len(sys.argv) == 1 and ConfigManager().first_run_check():
        console.print(Panel(
            "[bold]Welcome to the revision planner![/bold]\n\n"
            "No configuration found.\n"
            "Writing the default configuration...",
            border_style="cyan",
        ))
        sys.argv.append("init")

    cli()


# Register commands
cli.add_command(cmd_init)
cli.add_command(cmd_config)
cli.add_command(cmd_demo)
cli.add_command(cmd_check)
cli.add_command(cmd_brief)
cli.add_command(cmd_generate)
cli.add_command(cmd_move)
cli.add_command(cmd_coverage)
cli.add_command(cmd_export)


if __name__ == "__main__":
    main()
