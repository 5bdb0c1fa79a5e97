"""Backup and listing commands."""

from typing import Optional

import typer
from rich.markup import escape

from ..cores import BackupManager, BackupSelector
from ..exceptions import FatalError
from ..helpers import Config, get_logger
from ..helpers.ui_utils import (
    console,
    create_table,
    format_bytes,
    print_error_panel,
    print_header,
    print_info,
    print_success,
    print_warning,
)
from ..manifest import load_or_infer
from ..types import RunOutcome

logger = get_logger(__name__)


def get_config(ctx: typer.Context) -> Optional[Config]:
    """Get config from context."""
    return ctx.obj.get("config") if ctx.obj else None


def ensure_config(ctx: typer.Context) -> Config:
    """Ensure config exists or exit."""
    cfg = get_config(ctx)
    if not cfg:
        print_error_panel("No configuration found. Run: docka-vault config init")
        raise typer.Exit(code=1)
    return cfg


def print_outcome(outcome: RunOutcome):
    """Render the per-project/per-volume report."""
    table = create_table(
        f"{outcome.operation.capitalize()} report",
        [("Project", "cyan", None), ("State", None, None), ("Volumes", None, None), ("Notes", "dim", None)],
    )
    for result in outcome.projects:
        state = result.state.value
        state = f"[red]{state}[/red]" if result.failed else f"[green]{state}[/green]"
        volumes = ", ".join(
            f"{name} {'✓' if ok else '✗'}" for name, ok in result.volumes.items()
        ) or "-"
        notes = "; ".join(result.errors + result.warnings) or "-"
        table.add_row(escape(result.name), state, escape(volumes), escape(notes))
    console.print(table)

    if outcome.fatal_error:
        print_error_panel(outcome.fatal_error, title="Aborted")
    elif outcome.has_failures:
        print_warning(
            f"Finished with failures in {len(outcome.failed_projects)} project(s): "
            f"{', '.join(outcome.failed_projects)}"
        )
    else:
        print_success(f"{outcome.operation.capitalize()} completed in {outcome.duration_seconds:.1f}s")


# -------------------------
# Commands
# -------------------------

def cmd_backup(ctx: typer.Context):
    """Back up every project below the configured source root."""
    cfg = ensure_config(ctx)

    print_header("docka-vault backup", f"{cfg.source_root} -> {cfg.backup_root}")
    try:
        outcome = BackupManager(cfg).run()
    except FatalError as e:
        logger.error(f"Backup failed: {e}")
        print_error_panel(str(e), title="Backup failed")
        raise typer.Exit(code=e.exit_code)

    print_outcome(outcome)
    if outcome.backup_set is not None:
        print_info(f"Backup stored in {outcome.backup_set.path}")


def cmd_list(ctx: typer.Context):
    """List backup sets under the configured backup root."""
    cfg = ensure_config(ctx)
    selector = BackupSelector(cfg.backup_root)
    sets = selector.list_backups()

    if not sets:
        print_warning(f"No backups found in {cfg.backup_root}")
        return

    table = create_table(
        f"Backups in {cfg.backup_root}",
        [("Backup", "cyan", None), ("Projects", None, None), ("Size", None, None), ("Status", None, None)],
    )
    for backup_set in sets:
        size = sum(f.stat().st_size for f in backup_set.path.rglob("*") if f.is_file())
        if not backup_set.is_valid():
            status = f"[red]invalid (missing {', '.join(backup_set.missing_parts())})[/red]"
            projects = "-"
        else:
            try:
                manifest = load_or_infer(backup_set)
                projects = str(len(manifest.projects))
                status = "[green]ok[/green]" if manifest.completed else "[yellow]incomplete[/yellow]"
            except FatalError as e:
                projects = "-"
                status = f"[red]{escape(str(e))}[/red]"
        table.add_row(backup_set.backup_id, projects, format_bytes(size), status)
    console.print(table)


# -------------------------
# Registration
# -------------------------

def register(app: typer.Typer):
    """Register backup commands."""

    @app.command("backup")
    def _backup_cmd(ctx: typer.Context):
        """Stop, archive and restart every project (cold backup)."""
        cmd_backup(ctx)

    @app.command("list")
    def _list_cmd(ctx: typer.Context):
        """List available backups."""
        cmd_list(ctx)
