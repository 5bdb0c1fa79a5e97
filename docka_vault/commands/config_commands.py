"""Configuration management commands."""

from pathlib import Path
from typing import Optional

import typer

from ..helpers import Config, create_default_config, get_logger
from ..helpers.ui_utils import (
    console,
    create_status_table,
    print_error,
    print_success,
    print_warning,
)
from .backup_commands import ensure_config

logger = get_logger(__name__)


def cmd_config_show(ctx: typer.Context):
    """Show effective configuration (file values, env overrides, defaults)."""
    cfg = ensure_config(ctx)

    console.print(f"Configuration file: [cyan]{cfg.config_file}[/cyan]")
    for section, options in cfg.as_dict().items():
        table = create_status_table(f"[{section}]")
        for option, value in options.items():
            table.add_row(option, value)
        console.print(table)

    errors = cfg.validate()
    if errors:
        for error in errors:
            print_warning(error)
    else:
        print_success("Configuration valid")


def cmd_config_init(path: Optional[Path] = None, force: bool = False):
    """Create a configuration file with default values."""
    target = path or Config(create=False).config_file
    if target.exists() and not force:
        print_warning(f"Config already exists at: {target}")
        console.print("Use --force to overwrite.")
        raise typer.Exit(code=1)

    try:
        created = create_default_config(target, force=True)
    except OSError as e:
        print_error(f"Could not write {target}: {e}")
        raise typer.Exit(code=1)
    print_success(f"Config created at: {created}")


def register(app: typer.Typer):
    """Register configuration commands under 'config'."""
    config_app = typer.Typer(help="Show or create the configuration file.", add_completion=False)

    @config_app.command("show")
    def _show_cmd(ctx: typer.Context):
        """Show current configuration."""
        cmd_config_show(ctx)

    @config_app.command("init")
    def _init_cmd(
        ctx: typer.Context,
        path: Optional[Path] = typer.Option(None, "--path", help="Custom config path"),
        force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
    ):
        """Create a new configuration file with defaults."""
        if path is None and ctx.obj and ctx.obj.get("config_path"):
            path = ctx.obj["config_path"]
        cmd_config_init(path, force)

    app.add_typer(config_app, name="config")
