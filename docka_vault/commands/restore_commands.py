"""Restore command."""

from pathlib import Path
from typing import Optional

import typer

from ..cores import BackupSelector, RestoreManager
from ..exceptions import FatalError
from ..helpers import get_logger
from ..helpers.ui_utils import (
    print_error_panel,
    print_header,
    print_info,
    print_warning_panel,
    prompt_confirm,
)
from .backup_commands import ensure_config, print_outcome

logger = get_logger(__name__)


def cmd_restore(
    ctx: typer.Context,
    backup_path: Optional[Path] = None,
    target_root: Optional[Path] = None,
    yes: bool = False,
):
    """Restore a backup set (latest if none given) into the target root."""
    cfg = ensure_config(ctx)
    target = target_root or cfg.target_root

    try:
        backup_set = BackupSelector(cfg.backup_root).select(backup_path)
    except FatalError as e:
        logger.error(f"Restore failed: {e}")
        print_error_panel(str(e), title="Restore failed")
        raise typer.Exit(code=e.exit_code)

    print_header("docka-vault restore", f"{backup_set.path} -> {target}")

    if not yes:
        print_warning_panel(
            "Existing projects with the same name will be stopped and their files "
            "and volumes overwritten.",
            title="Restore",
        )
        if not prompt_confirm("Proceed with restore?", default=False):
            print_info("Restore cancelled.")
            logger.info("Restore cancelled by user")
            raise typer.Exit(code=0)

    try:
        outcome = RestoreManager(cfg).restore(backup_set, target)
    except FatalError as e:
        logger.error(f"Restore failed: {e}")
        print_error_panel(str(e), title="Restore failed")
        raise typer.Exit(code=e.exit_code)

    print_outcome(outcome)


def register(app: typer.Typer):
    """Register restore command."""

    @app.command("restore")
    def _restore_cmd(
        ctx: typer.Context,
        backup_path: Optional[Path] = typer.Argument(
            None, help="Backup directory (default: latest under backup_root)"
        ),
        target_root: Optional[Path] = typer.Argument(
            None, help="Where to restore projects (default: paths.target_root)"
        ),
        yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    ):
        """Restore projects, compose files and volumes from a backup."""
        cmd_restore(ctx, backup_path, target_root, yes)
