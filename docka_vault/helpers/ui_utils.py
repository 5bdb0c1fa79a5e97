"""
CLI Utilities for docka-vault

Rich-based helpers for CLI output plus the subprocess wrapper used for
every external command (docker compose). Commands started through
run_command() are tracked by the SafeExitManager so an interrupt can
terminate them before rollback handlers run.
"""

import os
import subprocess
from typing import Any, Dict, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from .logging import get_logger

console = Console()
logger = get_logger(__name__)


class SubprocessError(Exception):
    """Raised by run_command() when a command fails or cannot be started."""

    def __init__(self, cmd: Sequence[str], returncode: int, stderr: str = "", stdout: str = ""):
        self.cmd = list(cmd) if not isinstance(cmd, str) else [cmd]
        self.returncode = returncode
        self.stderr = stderr or ""
        self.stdout = stdout or ""
        detail = self.stderr.strip() or self.stdout.strip() or "no output"
        super().__init__(f"Command failed ({returncode}): {' '.join(self.cmd)}: {detail}")


def run_command(
    cmd: List[str],
    description: str,
    timeout: Optional[int] = None,
    check: bool = True,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
) -> subprocess.CompletedProcess:
    """
    Run an external command with logging and SafeExitManager tracking.

    Args:
        cmd: Command and arguments
        description: Human readable description for logs
        timeout: Optional timeout in seconds
        check: Raise SubprocessError on non-zero exit if True
        env: Extra environment variables
        cwd: Working directory

    Returns:
        CompletedProcess with text stdout/stderr

    Raises:
        SubprocessError: Command missing, timed out, or failed with check=True
    """
    from ..cores.safe_exit_manager import SafeExitManager

    logger.debug(f"{description}: {' '.join(cmd)}")

    full_env = None
    if env:
        full_env = os.environ.copy()
        full_env.update(env)

    safe_exit = SafeExitManager.get_instance()
    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=full_env,
            cwd=cwd,
        )
    except FileNotFoundError as e:
        raise SubprocessError(cmd, 127, stderr=str(e))

    cleanup_id = safe_exit.register_process(process.pid, description)
    try:
        stdout, stderr = process.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        process.kill()
        stdout, stderr = process.communicate()
        raise SubprocessError(cmd, -1, stderr=f"Timed out after {timeout}s: {stderr or ''}")
    finally:
        safe_exit.unregister_process(cleanup_id)

    result = subprocess.CompletedProcess(cmd, process.returncode, stdout=stdout, stderr=stderr)
    if check and result.returncode != 0:
        raise SubprocessError(cmd, result.returncode, stderr=stderr, stdout=stdout)
    return result


def print_header(title: str, subtitle: str = ""):
    """Print styled header with optional subtitle"""
    content = f"[bold cyan]{escape(title)}[/bold cyan]"
    if subtitle:
        content += f"\n[dim]{escape(subtitle)}[/dim]"

    panel = Panel(content, border_style="cyan")
    console.print(panel)


def print_success(message: str):
    """Print success message with green checkmark"""
    console.print(f"[green]✓[/green] {escape(message)}")


def print_error(message: str):
    """Print error message with red X"""
    console.print(f"[red]✗[/red] {escape(message)}")


def print_warning(message: str):
    """Print warning message with yellow warning symbol"""
    console.print(f"[yellow]⚠[/yellow]  {escape(message)}")


def print_info(message: str):
    """Print info message with cyan arrow"""
    console.print(f"[cyan]→[/cyan] {escape(message)}")


def create_table(title: str, columns: List[tuple]) -> Table:
    """
    Create a styled Rich table

    Args:
        title: Table title
        columns: List of (name, style, width) tuples; width may be None

    Returns:
        Rich Table instance
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    for name, style, width in columns:
        table.add_column(name, style=style, width=width)
    return table


def create_status_table(title: str = "") -> Table:
    """
    Create a pre-configured status table (Property | Value format).

    Args:
        title: Optional table title

    Returns:
        Configured Rich Table
    """
    table = Table(title=title, box=box.SIMPLE, show_header=False)
    table.add_column("Property", style="cyan", width=20)
    table.add_column("Value", style="white")
    return table


def prompt_confirm(message: str, default: bool = False) -> bool:
    """
    Prompt user for yes/no confirmation

    Args:
        message: Prompt message
        default: Default answer (True=Yes, False=No)

    Returns:
        True if user confirmed, False otherwise
    """
    return Confirm.ask(message, default=default, console=console)


def print_error_panel(message: str, title: str = "Error") -> None:
    """Print error message in red panel."""
    console.print()
    console.print(Panel.fit(
        f"[red]✗ {escape(message)}[/red]",
        title=f"[bold red]{title}[/bold red]",
        border_style="red"
    ))
    console.print()


def print_warning_panel(message: str, title: str = "Warning") -> None:
    """Print warning message in yellow panel."""
    console.print()
    console.print(Panel.fit(
        f"[yellow]⚠ {escape(message)}[/yellow]",
        title=f"[bold yellow]{title}[/bold yellow]",
        border_style="yellow"
    ))
    console.print()


def format_bytes(size: Any) -> str:
    """Human readable byte size."""
    try:
        size = float(size)
    except (TypeError, ValueError):
        return "-"
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if size < 1024 or unit == "TB":
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024
    return f"{size:.1f} TB"
