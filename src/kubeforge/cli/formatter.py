# src/kubeforge/cli/formatter.py
import logging
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from kubeforge.core.engine import ModuleResult
from kubeforge.core.errors import KubeForgeError, format_errors


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Routes the kubeforge.* loggers through a RichHandler.
    Only the package logger is touched; the root logger is left alone.
    """
    logger = logging.getLogger("kubeforge")
    logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(rich_tracebacks=True, show_path=False))
    return logger


class ForgeReporter:
    """
    ForgeReporter: console rendering for build results.
    Responsible for per-module reports, error lists and the final summary.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_errors(self, errors: List[KubeForgeError], title: str = "Errors"):
        if not errors:
            return
        for line in format_errors(errors):
            self.console.print(f"[bold red]✖ {escape(title)}:[/bold red] {escape(line)}")

    def print_result(self, result: ModuleResult):
        """One module: status line, written files, defaults applied and errors."""
        icon = "✅" if result.success else "❌"
        self.console.print(f"{icon} [bold]{escape(result.module_id)}[/bold] [dim]{result.state.value}[/dim]")
        for path in result.written:
            self.console.print(f"   [green]+[/green] {escape(str(path))}")
        for log in result.render_log:
            self.console.print(f"   [bold cyan]Default applied:[/bold cyan] {escape(log)}")
        if result.build_command:
            self.console.print(f"   [dim]Build:[/dim] {escape(result.build_command)}")
        self.print_errors(result.errors, title=result.module_id)

    def print_final_table(self, results: List[ModuleResult]):
        """
        Builds the summary table shown at the end of a build.
        """
        table = Table(title="KubeForge Build Report", show_header=True, header_style="bold magenta")
        table.add_column("Module", style="dim")
        table.add_column("State")
        table.add_column("Files", justify="right")
        table.add_column("Errors", justify="right")
        table.add_column("Result", justify="center")

        for r in results:
            table.add_row(
                r.module_id,
                r.state.value,
                str(len(r.written)),
                str(len(r.errors)),
                "✅" if r.success else "❌"
            )

        self.console.print(table)

    def print_summary(self, summary: dict):
        rate = summary.get("success_rate", 0) * 100
        body = (f"Modules: {summary.get('total_modules', 0)}  "
                f"Successful: {summary.get('successful', 0)}  "
                f"Failed: {summary.get('failed', 0)}\n"
                f"Files written: {summary.get('files_written', 0)}  "
                f"Success rate: {rate:.0f}%")
        style = "green" if summary.get("failed", 0) == 0 else "red"
        self.console.print(Panel(body, title="Build Summary", border_style=style))
