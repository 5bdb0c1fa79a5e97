#!/usr/bin/env python3
################################################################################
# DOCKA-VAULT
#
# @file:        __main__.py
# @module:      docka_vault.__main__
# @description: Typer-based CLI entry point orchestrating docka-vault operations.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
################################################################################

"""
docka-vault main CLI

Typer CLI following the "Werkzeugtisch" (tool bench) pattern:
- Configuration and logging are set up once in the app callback
- Commands retrieve the config from the context
- SIGINT/SIGTERM are routed through the SafeExitManager (exit 130/143)
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

from .commands import backup_commands, config_commands, restore_commands
from .cores.safe_exit_manager import SafeExitManager
from .helpers import Config, VERSION, get_logger, log_manager
from .helpers.ui_utils import print_error_panel

app = typer.Typer(
    add_completion=False,
    help="docka-vault - cold backup & restore for Docker Compose projects.",
)
logger = get_logger(__name__)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# -------------------------
# Application Context
# -------------------------

@app.callback()
def initialize_context(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to configuration file."
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)."
    ),
):
    """
    Initialize application context before any command runs.
    Loads configuration once and sets up logging.
    """
    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        raise typer.BadParameter(
            f"must be one of {', '.join(VALID_LOG_LEVELS)}", param_hint="--log-level"
        )

    ctx.ensure_object(dict)

    # 'config init' must be able to create the file itself
    create = ctx.invoked_subcommand != "config"
    cfg = Config(config_path, create=create)

    level = (log_level or str(cfg.get("logging", "level", "INFO"))).upper()
    log_manager.setup(
        level=level if level in VALID_LOG_LEVELS else "INFO",
        log_file=cfg.log_file if ctx.invoked_subcommand in ("backup", "restore") else None,
        max_size_mb=cfg.getint("logging", "max_size_mb", 50),
        backup_count=cfg.getint("logging", "backup_count", 5),
    )

    ctx.obj["config"] = cfg
    ctx.obj["config_path"] = config_path


# -------------------------
# Version
# -------------------------

@app.command("version")
def cmd_version():
    """Show docka-vault version."""
    typer.echo(f"docka-vault {VERSION}")


backup_commands.register(app)
restore_commands.register(app)
config_commands.register(app)


# -------------------------
# Entrypoint
# -------------------------

def main():
    """Main entry point for the application."""
    SafeExitManager.get_instance().install_handlers()
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("\nInterrupted.")
        sys.exit(130)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        print_error_panel(str(e), title="Unexpected error")
        sys.exit(1)


if __name__ == "__main__":
    main()
