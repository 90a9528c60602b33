"""Main CLI entry point for confluence-sync command.

This module provides the Typer application that serves as the entry point
for the confluence-sync command-line tool, with one subcommand each for
pull, push, diff and validate.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from src.cli.diff_command import DiffCommand
from src.cli.models import ExitCode
from src.cli.output import OutputHandler
from src.cli.pull_command import PullCommand
from src.cli.push_command import PushCommand
from src.cli.validate_command import ValidateCommand

app = typer.Typer(
    name="confluence-sync",
    help="""Two-way sync between a Confluence space and a git-tracked Markdown tree.

QUICK START:
  confluence-sync pull docs/TEAM --space TEAM       # Confluence → local (commit + tag)
  confluence-sync validate docs/TEAM --space TEAM   # Check local files before pushing
  confluence-sync diff docs/TEAM --space TEAM       # Show how Confluence differs from local
  confluence-sync push docs/TEAM --space TEAM       # Local → Confluence (one commit per page)
  confluence-sync push docs/TEAM --space TEAM --dry-run""",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

VERBOSITY_OPTION = typer.Option(0, "--verbosity", "-v", help="Verbosity level: 0=summary, 1=info, 2=debug")
LOGDIR_OPTION = typer.Option(None, "--logdir", help="Directory for log files (creates timestamped log file)")
NO_COLOR_OPTION = typer.Option(False, "--no-color", help="Disable colored output")


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Configures only the 'src' namespace logger to avoid affecting third-party
    libraries. The root logger is left unchanged.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
        logdir: Optional directory for log files (creates timestamped log file)
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    app_logger = logging.getLogger("src")
    app_logger.setLevel(level)

    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter("%(asctime)s [%(levelname)8s] %(message)s", datefmt=date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"confluence-sync_{timestamp}.log"

        file_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt=date_format
        )
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo("confluence-sync version 0.1.0")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Two-way sync between a Confluence space and a git-tracked Markdown tree."""


@app.command("pull")
def pull_command(
    space_dir: str = typer.Argument(..., help="Space directory inside a git repository"),
    space: str = typer.Option(..., "--space", "-s", help="Confluence space key"),
    page: str = typer.Option("", "--page", help="Only pull this page ID"),
    force: bool = typer.Option(False, "--force", help="Pull every page, ignoring the last pull watermark"),
    skip_missing_assets: bool = typer.Option(
        False, "--skip-missing-assets",
        help="Skip attachments that no longer exist remotely",
    ),
    discard_local: bool = typer.Option(
        False, "--discard-local",
        help="Drop uncommitted local edits in the space instead of restoring them",
    ),
    logdir: Optional[str] = LOGDIR_OPTION,
    verbosity: int = VERBOSITY_OPTION,
    no_color: bool = NO_COLOR_OPTION,
) -> None:
    """Pull a Confluence space into SPACE_DIR, then commit and tag the result."""
    _configure_logging(verbosity, logdir)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    exit_code = PullCommand(output_handler=output).run(
        space_dir, space,
        target_page_id=page,
        force=force,
        skip_missing_assets=skip_missing_assets,
        discard_local=discard_local,
    )
    raise typer.Exit(exit_code)


@app.command("push")
def push_command(
    space_dir: str = typer.Argument(..., help="Space directory inside a git repository"),
    space: str = typer.Option(..., "--space", "-s", help="Confluence space key"),
    on_conflict: str = typer.Option(
        "cancel", "--on-conflict",
        help="When a page changed remotely: cancel, pull-merge or force",
    ),
    hard_delete: bool = typer.Option(
        False, "--hard-delete",
        help="Delete removed pages instead of archiving them",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "--dryrun",
        help="Print the remote writes without performing them",
    ),
    logdir: Optional[str] = LOGDIR_OPTION,
    verbosity: int = VERBOSITY_OPTION,
    no_color: bool = NO_COLOR_OPTION,
) -> None:
    """Push local changes in SPACE_DIR to Confluence, one commit per page."""
    _configure_logging(verbosity, logdir)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    if on_conflict not in ("cancel", "pull-merge", "force"):
        output.error(f"Invalid --on-conflict value: {on_conflict} (expected cancel, pull-merge or force)")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    exit_code = PushCommand(output_handler=output).run(
        space_dir, space,
        on_conflict=on_conflict,
        hard_delete=hard_delete,
        dry_run=dry_run,
    )
    raise typer.Exit(exit_code)


@app.command("diff")
def diff_command(
    space_dir: str = typer.Argument(..., help="Space directory inside a git repository"),
    space: str = typer.Option(..., "--space", "-s", help="Confluence space key"),
    page: str = typer.Option("", "--page", help="Only compare this page ID"),
    logdir: Optional[str] = LOGDIR_OPTION,
    verbosity: int = VERBOSITY_OPTION,
    no_color: bool = NO_COLOR_OPTION,
) -> None:
    """Show how the remote space differs from the Markdown files in SPACE_DIR."""
    _configure_logging(verbosity, logdir)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    exit_code = DiffCommand(output_handler=output).run(space_dir, space, page_id=page)
    raise typer.Exit(exit_code)


@app.command("validate")
def validate_command(
    space_dir: str = typer.Argument(..., help="Space directory to check"),
    space: str = typer.Option("", "--space", "-s", help="Expected Confluence space key"),
    logdir: Optional[str] = LOGDIR_OPTION,
    verbosity: int = VERBOSITY_OPTION,
    no_color: bool = NO_COLOR_OPTION,
) -> None:
    """Check every Markdown file in SPACE_DIR the way push would."""
    _configure_logging(verbosity, logdir)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    exit_code = ValidateCommand(output_handler=output).run(space_dir, space)
    raise typer.Exit(exit_code)


def main() -> None:
    """Main entry point for the CLI application.

    This function is called when the module is executed directly or
    when the console script is invoked.
    """
    app()


# Allow running as: python -m src.cli.main
if __name__ == "__main__":
    main()
