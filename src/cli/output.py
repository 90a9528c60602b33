"""Terminal output handling using Rich library.

This module provides the OutputHandler class for all CLI terminal output:
colored status lines, spinners, and the pull, push, diff and validation
reports. Supports verbosity levels and the --no-color flag.
"""

from contextlib import contextmanager
from typing import Dict, Iterator, List

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.spinner import Spinner

from src.cli.models import DiffSummary, PullSummary, PushSummary
from src.file_mapper.models import ValidationIssue
from src.sync_engine.models import PullDiagnostic


class OutputHandler:
    """Handles all terminal output using Rich library.

    Attributes:
        verbosity: Verbosity level (0=summary, 1=info, 2=debug)
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(verbosity=1, no_color=False)
        >>> handler.success("Operation completed")
        >>> with handler.spinner("Processing..."):
        ...     pass
    """

    def __init__(self, verbosity: int = 0, no_color: bool = False, console: Console = None):
        """Initialize output handler.

        Args:
            verbosity: Verbosity level (0=summary, 1=info, 2=debug)
            no_color: Disable color output if True
            console: Console to write to (defaults to a new stdout console)
        """
        self.verbosity = verbosity
        self.console = console or Console(
            force_terminal=not no_color,
            no_color=no_color,
            highlight=False,
        )

    def success(self, message: str) -> None:
        """Display success message in green."""
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def error(self, message: str) -> None:
        """Display error message in red."""
        self.console.print(f"[red]✗[/red] {escape(message)}", style="red")

    def warning(self, message: str) -> None:
        """Display warning message in yellow."""
        self.console.print(f"[yellow]⚠[/yellow] {escape(message)}", style="yellow")

    def info(self, message: str) -> None:
        """Display info message (only if verbosity >= 1)."""
        if self.verbosity >= 1:
            self.console.print(escape(message))

    def debug(self, message: str) -> None:
        """Display debug message (only if verbosity >= 2)."""
        if self.verbosity >= 2:
            self.console.print(f"[dim]{escape(message)}[/dim]")

    def print(self, message: str) -> None:
        """Display message without formatting."""
        self.console.print(escape(message))

    @contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Display spinner for single operations.

        Example:
            >>> with handler.spinner("Fetching pages..."):
            ...     pass
        """
        spinner = Spinner("dots", text=message)
        with Live(spinner, console=self.console, refresh_per_second=10, transient=True):
            yield

    def print_diagnostics(self, diagnostics: List[PullDiagnostic]) -> None:
        """Display pull diagnostics as `path [CODE] message` lines."""
        for diagnostic in diagnostics:
            self.warning(f"{diagnostic.path} [{diagnostic.code}] {diagnostic.message}")

    def print_validation_issues(self, issues: Dict[str, List[ValidationIssue]]) -> None:
        """Display validation issues grouped by file."""
        for path in sorted(issues):
            self.console.print(f"[bold]{escape(path)}[/bold]")
            for issue in issues[path]:
                field = f" {issue.field}:" if issue.field else ""
                self.console.print(f"  - [{issue.code}]{field} {issue.message}", markup=False)

    def print_pull_summary(self, summary: PullSummary) -> None:
        """Display pull summary with color coding."""
        self.console.print(f"\n[bold]Pull Summary ({escape(summary.space_key)}):[/bold]")

        if summary.updated:
            self.console.print(f"  [blue]↓[/blue] Updated: {len(summary.updated)} page(s)")
        if summary.deleted:
            self.console.print(f"  [red]✗[/red] Deleted: {len(summary.deleted)} page(s)")
        if summary.downloaded_assets:
            self.console.print(f"  [blue]↓[/blue] Downloaded: {len(summary.downloaded_assets)} attachment(s)")
        if summary.deleted_assets:
            self.console.print(f"  [red]✗[/red] Removed: {len(summary.deleted_assets)} attachment(s)")

        if summary.commit is None:
            self.console.print("\n[green]Already up to date. No changes pulled.[/green]")
        else:
            self.console.print(f"\n[green]Pull committed as {summary.commit[:12]}[/green]")

    def print_push_summary(self, summary: PushSummary) -> None:
        """Display push summary with color coding."""
        title = "Dry Run - Push Preview" if summary.dry_run else "Push Summary"
        self.console.print(f"\n[bold]{title} ({escape(summary.space_key)}):[/bold]")

        for path in summary.pushed:
            self.console.print(f"  [green]↑[/green] {escape(path)}")
        for path in summary.deleted:
            self.console.print(f"  [red]✗[/red] {escape(path)}")

        if summary.is_noop:
            self.console.print("\n[green]Nothing to push.[/green]")
        elif summary.dry_run:
            self.console.print("\n[yellow]Dry run: nothing was written to Confluence or git[/yellow]")
        else:
            self.console.print(
                f"\n[green]Pushed {len(summary.pushed)} page(s), "
                f"removed {len(summary.deleted)} page(s)[/green]"
            )

    def print_diff(self, summary: DiffSummary) -> None:
        """Display a diff report, additions in green and removals in red."""
        self.print_diagnostics(summary.diagnostics)
        if not summary.diff:
            self.console.print(f"[green]No differences between local files and {escape(summary.space_key)}[/green]")
            return

        for line in summary.diff.splitlines():
            if line.startswith(("+++", "---")):
                style = "bold"
            elif line.startswith("+"):
                style = "green"
            elif line.startswith("-"):
                style = "red"
            elif line.startswith("@@"):
                style = "cyan"
            else:
                style = None
            self.console.print(line, style=style, markup=False, highlight=False, soft_wrap=True)
