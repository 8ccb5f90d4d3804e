"""
Command-line interface for the merging-rebase tool.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import os
import sys
from pathlib import Path
from typing import List, Optional
from datetime import datetime

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .rebase_orchestrator import RebaseOrchestrator
from .cli_prompt import CliScriptEditor
from .models import OperationKind, PlanOptions, RebaseError, RebaseScript, ReplayStoppedError, RewrittenEntry
from . import __version__ as PACKAGE_VERSION


console = Console()
logger = logging.getLogger(__name__)


def _print_version(ctx, param, value):
    """Eager option callback to print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    click.echo(f"merging-rebase {PACKAGE_VERSION}")
    ctx.exit()


def _default_log_path() -> Path:
    """Determine default log file path (~/.merging-rebase/merging-rebase.log)."""
    env_path = os.environ.get("MERGING_REBASE_LOG")
    if env_path:
        p = Path(env_path).expanduser()
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    base = Path.home() / ".merging-rebase"
    base.mkdir(parents=True, exist_ok=True)
    return base / "merging-rebase.log"


class SafeConsoleFilter(logging.Filter):
    """Sanitize record messages for console by replacing unencodable characters.

    Runs before handler emission, so it also covers RichHandler, which
    renders message text itself.
    """

    def __init__(self, encoding: Optional[str] = None):
        super().__init__()
        self.encoding = encoding or getattr(sys.stderr, "encoding", None) or "utf-8"

    def filter(self, record: logging.LogRecord) -> bool:  # always keep the record
        try:
            message = record.getMessage()
        except Exception:
            return True
        try:
            message.encode(self.encoding, errors="strict")
            return True
        except UnicodeEncodeError:
            safe = message.encode(self.encoding, errors="replace").decode(self.encoding, errors="replace")
            # Replace the message and clear args to avoid double formatting
            record.msg = safe
            record.args = ()
            return True


def setup_logging(verbose: bool = False, console_level: Optional[str] = None, log_file: Optional[Path] = None) -> Path:
    """Setup logging with a per-run file and a rotated aggregate:
    - Per-run log file: <stem>-YYYYMMDD_HHMMSS.log
    - Stable aggregate log: <stem>.log (rotated)
    - Best-effort hardlink: <stem>-current.log -> per-run file
    - Console logging disabled by default; enable via --verbose or --log-level
    Returns the best path to open for this run.
    """
    provided = Path(log_file) if log_file else _default_log_path()
    if provided.exists() and provided.is_dir():
        base_dir = provided
        base_stem = "merging-rebase"
        stable_aggregate_path = base_dir / f"{base_stem}.log"
    else:
        base_dir = provided.parent
        base_stem = provided.stem or "merging-rebase"
        stable_aggregate_path = provided
    base_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    per_run_path = base_dir / f"{base_stem}-{timestamp}.log"
    current_link_path = base_dir / f"{base_stem}-current.log"

    root = logging.getLogger()
    # Clear existing handlers to avoid duplication in tests / repeated invocations
    root.handlers.clear()
    root.setLevel(logging.DEBUG)

    run_file_handler = logging.FileHandler(str(per_run_path), encoding="utf-8")
    run_file_handler.setLevel(logging.DEBUG)
    file_fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    run_file_handler.setFormatter(file_fmt)
    root.addHandler(run_file_handler)

    aggregate_handler = RotatingFileHandler(
        str(stable_aggregate_path), maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    aggregate_handler.setLevel(logging.DEBUG)
    aggregate_handler.setFormatter(file_fmt)
    root.addHandler(aggregate_handler)

    created_hardlink = False
    try:
        if current_link_path.exists():
            current_link_path.unlink()
        os.link(per_run_path, current_link_path)
        created_hardlink = True
    except OSError:
        # Hardlinks may be unsupported across volumes or filesystems
        created_hardlink = False

    if verbose or console_level:
        level_map = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
        }
        ch_level = level_map.get((console_level or "info").lower(), logging.INFO)
        console_handler = RichHandler(console=console, rich_tracebacks=True)
        console_handler.setLevel(ch_level)
        stream = getattr(console, "file", sys.stderr)
        enc = getattr(stream, "encoding", None) or getattr(sys.stderr, "encoding", None) or "utf-8"
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        console_handler.addFilter(SafeConsoleFilter(encoding=enc))
        root.addHandler(console_handler)

    return current_link_path if created_hardlink else stable_aggregate_path


def _maybe_print_log_notice(verbose: bool, console_level: Optional[str], log_path: Path) -> None:
    """Inform user about logging destination and how to enable console logs."""
    if verbose or console_level:
        return
    console.print(f"[dim]Logs are written to {log_path}. Use -v or --log-level to see them here.[/dim]")


def _orchestrator(ctx: click.Context) -> RebaseOrchestrator:
    _maybe_print_log_notice(ctx.obj.get("verbose"), ctx.obj.get("console_level"), ctx.obj.get("log_path"))
    return RebaseOrchestrator(ctx.obj.get("repo_path"))


def _plan_options(
    upstream: str, onto: Optional[str], merging: bool, merging_message: Optional[str]
) -> PlanOptions:
    return PlanOptions(
        upstream=upstream,
        onto=onto,
        merging=merging or merging_message is not None,
        merging_note=merging_message or "",
    )


class MergingCommand(click.Command):
    """Command accepting `--merging=<message>` for `--merging --merging-message <message>`.

    A bare `-m` or `--merging` is a flag and never consumes the next word.
    """

    def parse_args(self, ctx: click.Context, args: List[str]) -> List[str]:
        expanded: List[str] = []
        for index, arg in enumerate(args):
            if arg == "--":
                expanded.extend(args[index:])
                break
            if arg.startswith("--merging="):
                expanded += ["--merging", "--merging-message", arg[len("--merging="):]]
            else:
                expanded.append(arg)
        return super().parse_args(ctx, expanded)


def plan_arguments(f):
    """Options shared by the commands that plan a rebase."""
    f = click.option(
        "--merging-message",
        type=str,
        default=None,
        metavar="MESSAGE",
        help="Note appended to the starting merge message (implies --merging).",
    )(f)
    f = click.option(
        "-m",
        "--merging",
        is_flag=True,
        help="Start with a merge of the current state so the result fast-forwards from it.",
    )(f)
    f = click.option("--onto", type=str, default=None, help="Rebase onto the given commit (default: UPSTREAM)")(f)
    f = click.argument("upstream")(f)
    return f


@click.group()
@click.option(
    "--version",
    "-V",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose console logging (INFO)")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Console log level. By default, console logging is disabled.",
)
@click.option(
    "--repo-path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to repository (defaults to current directory)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_level: Optional[str], repo_path: Optional[Path]) -> None:
    """Merging Rebase - rebase a branch while keeping its merges."""
    log_path = setup_logging(verbose, console_level=log_level)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["console_level"] = log_level
    ctx.obj["log_path"] = log_path
    ctx.obj["repo_path"] = repo_path.resolve() if isinstance(repo_path, Path) else None
    logger.debug(f"CLI init: cwd={Path.cwd()} repo_path={ctx.obj['repo_path']}")


@cli.command(cls=MergingCommand)
@plan_arguments
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="Write the script to a file instead of printing it",
)
@click.pass_context
def plan(
    ctx: click.Context,
    upstream: str,
    onto: Optional[str],
    merging: bool,
    merging_message: Optional[str],
    output: Optional[Path],
) -> None:
    """
    Print the replay script for rebasing onto UPSTREAM without changing anything.

    Example: merging-rebase plan origin/main
    """
    try:
        orchestrator = _orchestrator(ctx)
        script = orchestrator.plan(_plan_options(upstream, onto, merging, merging_message))
        if output:
            output.write_text(script.to_text(), encoding="utf-8")
            console.print(f"📝 Wrote {len(script)} operation(s) to {output}")
        else:
            console.print(script.to_text(), markup=False, highlight=False, end="")
    except RebaseError as e:
        console.print(f"\n❌ **Planning Error:** {e}", style="bold red")
        logger.debug("Planning aborted due to RebaseError", exc_info=True)
        sys.exit(1)
    except Exception as e:
        console.print(f"\n💥 **Unexpected Error:** {e}", style="bold red")
        logger.debug("Unexpected error during planning", exc_info=True)
        sys.exit(1)


@cli.command(cls=MergingCommand)
@plan_arguments
@click.option("--edit", "-e", is_flag=True, help="Review and edit the script in your editor first")
@click.option("--dry-run", is_flag=True, help="Show what would be done without executing")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def run(
    ctx: click.Context,
    upstream: str,
    onto: Optional[str],
    merging: bool,
    merging_message: Optional[str],
    edit: bool,
    dry_run: bool,
    yes: bool,
) -> None:
    """
    Rebase the current branch onto UPSTREAM, recreating its merges.

    Example: merging-rebase run --onto=v2.0 origin/main
    """
    try:
        orchestrator = _orchestrator(ctx)

        validation_errors = orchestrator.validate_repository_state()
        if validation_errors:
            console.print("\n❌ **Validation Errors:**", style="bold red")
            for error in validation_errors:
                console.print(f"  • {error}")
            sys.exit(1)

        options = _plan_options(upstream, onto, merging, merging_message)
        console.print("\n📋 **Planning Merging Rebase**")
        console.print(f"Upstream: {upstream}")
        console.print(f"Onto: {onto or upstream}")
        script = orchestrator.plan(options)
        _display_plan_summary(script)

        if dry_run:
            console.print(script.to_text(), markup=False, highlight=False, end="")
            console.print("\n🔍 **Dry Run Complete** - No changes made")
            return

        if not yes and not edit and not click.confirm("\nProceed with merging rebase?"):
            console.print("Operation cancelled.")
            return

        reviewer = CliScriptEditor(console) if edit else None
        head = orchestrator.execute(script, options, reviewer)
        if head is None:
            console.print("Operation cancelled.")
            return
        console.print(f"\n🎉 **Merging rebase completed at {head[:8]}**", style="bold green")
        _display_rewritten(orchestrator.last_rewritten)
    except ReplayStoppedError as e:
        _report_stop(e)
        sys.exit(1)
    except RebaseError as e:
        console.print(f"\n❌ **Rebase Error:** {e}", style="bold red")
        # Debug stack trace to file logs for diagnostics
        logger.debug("Rebase aborted due to RebaseError", exc_info=True)
        sys.exit(1)
    except (click.Abort, KeyboardInterrupt):
        console.print("\n\n🚫 **Operation cancelled by user**", style="bold yellow")
        logger.debug("Operation cancelled by user", exc_info=True)
        sys.exit(130)
    except Exception as e:
        console.print(f"\n💥 **Unexpected Error:** {e}", style="bold red")
        if ctx.obj.get("verbose"):
            console.print_exception()
        logger.debug("Unexpected error during rebase", exc_info=True)
        sys.exit(1)


@cli.command("continue")
@click.pass_context
def continue_(ctx: click.Context) -> None:
    """Continue a merging rebase that stopped for conflicts or a failed exec."""
    try:
        orchestrator = _orchestrator(ctx)
        head = orchestrator.continue_rebase()
        console.print(f"\n🎉 **Merging rebase completed at {head[:8]}**", style="bold green")
        _display_rewritten(orchestrator.last_rewritten)
    except ReplayStoppedError as e:
        _report_stop(e)
        sys.exit(1)
    except RebaseError as e:
        console.print(f"\n❌ **Rebase Error:** {e}", style="bold red")
        logger.debug("Continue aborted due to RebaseError", exc_info=True)
        sys.exit(1)
    except Exception as e:
        console.print(f"\n💥 **Unexpected Error:** {e}", style="bold red")
        logger.debug("Unexpected error in continue", exc_info=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the progress of the merging rebase in progress, if any."""
    try:
        orchestrator = _orchestrator(ctx)
        state = orchestrator.get_session()
        if state is None:
            console.print("No merging rebase in progress.")
            return

        console.print("\n📊 **Merging Rebase Status**")
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Branch", style="cyan")
        table.add_column("Onto", style="dim")
        table.add_column("Progress", justify="center", style="yellow")
        table.add_column("State", style="blue")
        table.add_column("Next", style="green")
        current = state.current
        table.add_row(
            state.head_name or "(detached)",
            state.onto[:8],
            f"{state.position}/{len(state.script)}",
            f"⏸️ Stopped at {state.stopped.value}" if state.stopped else "🔄 Replaying",
            current.to_line() if current else "",
        )
        console.print(table)
    except Exception as e:
        console.print(f"\n❌ **Error getting status:** {e}", style="bold red")
        logger.debug("Error in status command", exc_info=True)
        sys.exit(1)


@cli.command("quit")
@click.pass_context
def quit_(ctx: click.Context) -> None:
    """Forget the merging rebase in progress and delete its bookmarks."""
    try:
        orchestrator = _orchestrator(ctx)
        deleted = orchestrator.quit_rebase()
        console.print(f"🧹 Deleted {deleted} bookmark(s); HEAD left where it is")
    except RebaseError as e:
        console.print(f"\n❌ **Rebase Error:** {e}", style="bold red")
        logger.debug("Quit failed", exc_info=True)
        sys.exit(1)


@cli.command()
def version() -> None:
    """Print the current merging-rebase version."""
    console.print(f"merging-rebase {PACKAGE_VERSION}")


def _report_stop(error: ReplayStoppedError) -> None:
    console.print(f"\n⏸️  **Replay stopped:** {error}", style="bold yellow")
    for path in error.conflict_files:
        console.print(f"  • {path}")
    console.print("Resolve and stage the changes, then run 'merging-rebase continue'.")
    logger.debug("Replay stopped", exc_info=True)


def _display_plan_summary(script: RebaseScript) -> None:
    """Display operation counts of the planned script."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Operation", style="cyan")
    table.add_column("Count", justify="right", style="yellow")
    for kind in OperationKind:
        count = script.count(kind)
        if count:
            table.add_row(kind.value, str(count))
    console.print(table)


def _display_rewritten(entries: List[RewrittenEntry]) -> None:
    """Display bookmarked commits and the ids they were rewritten to."""
    if not entries:
        return
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Original", style="red")
    table.add_column("Rewritten", style="green")
    table.add_column("Subject", style="dim")
    for entry in entries:
        table.add_row(entry.original, (entry.rewritten or "")[:8], entry.subject)
    console.print(table)


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n\n🚫 **Operation cancelled by user**", style="bold yellow")
        logger.debug("Top-level cancellation (KeyboardInterrupt)", exc_info=True)
        sys.exit(130)
    except Exception as e:
        console.print(f"\n💥 **Unexpected error:** {e}", style="bold red")
        logger.debug("Unexpected error in main()", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
