################################################################################
# DOCKA-VAULT
#
# @file:        lifecycle_controller.py
# @module:      docka_vault.cores.lifecycle_controller
# @description: Stops and starts project services via docker compose around backup/restore.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Every state change is recorded in the caller's RunOutcome
# - Only projects with stopped_by_run=True are ever restarted
# - Failures are logged and recorded, never raised to the caller
################################################################################

"""
Lifecycle controller.

Thin layer over ``docker compose`` (run through ``run_command()`` so the
SafeExitManager can terminate it on interrupt).
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from ..helpers.constants import CANONICAL_COMPOSE_FILE, COMPOSE_TIMEOUT
from ..helpers.logging import get_logger
from ..helpers.ui_utils import SubprocessError, run_command
from ..types import Project, ProjectState, RunOutcome

logger = get_logger(__name__)


class LifecycleController:
    """Stop, restart, take down and start compose projects."""

    def __init__(self, compose_timeout: int = COMPOSE_TIMEOUT):
        self.compose_timeout = compose_timeout

    @staticmethod
    def compose_command(compose_file: Path, project_name: str, *args: str) -> List[str]:
        compose_file = Path(compose_file)
        return [
            "docker", "compose",
            "--project-directory", str(compose_file.parent),
            "-f", str(compose_file),
            "--project-name", project_name,
            *args,
        ]

    def is_compose_available(self) -> bool:
        """Check that the docker compose plugin responds."""
        try:
            run_command(["docker", "compose", "version"], "Checking docker compose", timeout=30)
            return True
        except SubprocessError as e:
            logger.debug(f"docker compose not available: {e}")
            return False

    # ---------------------------------------------------------------------
    # Backup side
    # ---------------------------------------------------------------------

    def stop_project(self, project: Project, outcome: RunOutcome) -> bool:
        """
        Stop a project's services.

        Projects without a compose file are left alone and return False.
        On failure the project is marked stop-failed and will never be
        restarted by this run.
        """
        if not project.compose_file:
            logger.info(
                f"Project {project.name} has no compose file, not stopping",
                extra={"project": project.name},
            )
            return False

        logger.info(f"Stopping project {project.name}...", extra={"project": project.name})
        try:
            run_command(
                self.compose_command(project.compose_file, project.name, "stop"),
                f"Stopping {project.name}",
                timeout=self.compose_timeout,
            )
        except SubprocessError as e:
            logger.error(
                f"Failed to stop project {project.name}: {e.stderr.strip() or e}",
                extra={"project": project.name, "operation": "stop"},
            )
            outcome.mark_stop_failed(project.name, f"stop failed: {e}")
            return False

        outcome.mark_stopped(project.name)
        return True

    def restart_project(self, project: Project, outcome: Optional[RunOutcome] = None) -> bool:
        """Start a project's existing containers again (``compose start``)."""
        if outcome is not None:
            entry = outcome.get(project.name)
            if entry is None or not entry.stopped_by_run:
                logger.debug(f"Not restarting {project.name}: not stopped by this run")
                return False

        logger.info(f"Restarting project {project.name}...", extra={"project": project.name})
        try:
            run_command(
                self.compose_command(project.compose_file, project.name, "start"),
                f"Restarting {project.name}",
                timeout=self.compose_timeout,
            )
        except SubprocessError as e:
            logger.error(
                f"Failed to restart project {project.name}: {e.stderr.strip() or e}",
                extra={"project": project.name, "operation": "restart"},
            )
            if outcome is not None:
                outcome.mark_restart_failed(project.name, f"restart failed: {e}")
            return False

        if outcome is not None:
            outcome.mark_restarted(project.name)
        return True

    def restart_stopped(self, projects: List[Project], outcome: RunOutcome) -> List[str]:
        """
        Restart every project this run stopped and has not restarted yet.

        Returns:
            Names of projects restarted successfully
        """
        by_name = {p.name: p for p in projects}
        restarted = []
        for name in outcome.restart_candidates():
            project = by_name.get(name)
            if project is None or project.compose_file is None:
                continue
            if self.restart_project(project, outcome):
                restarted.append(name)
        return restarted

    # ---------------------------------------------------------------------
    # Restore side
    # ---------------------------------------------------------------------

    def take_down(self, project_dir: Path, project_name: str) -> bool:
        """
        ``compose down --remove-orphans`` for an existing project before it
        is overwritten. Returns False (and logs a warning) on failure.
        """
        compose_file = Path(project_dir) / CANONICAL_COMPOSE_FILE
        if not compose_file.is_file():
            return False

        logger.info(
            f"Stopping existing project {project_name} before restore...",
            extra={"project": project_name},
        )
        try:
            run_command(
                self.compose_command(compose_file, project_name, "down", "--remove-orphans"),
                f"Taking down {project_name}",
                timeout=self.compose_timeout,
            )
            return True
        except SubprocessError as e:
            logger.warning(
                f"Could not take down project {project_name}: {e.stderr.strip() or e}",
                extra={"project": project_name, "operation": "down"},
            )
            return False

    def start_project(self, project_dir: Path, project_name: str, outcome: RunOutcome) -> bool:
        compose_file = Path(project_dir) / CANONICAL_COMPOSE_FILE
        logger.info(f"Starting project {project_name}...", extra={"project": project_name})
        try:
            run_command(
                self.compose_command(compose_file, project_name, "up", "-d", "--remove-orphans"),
                f"Starting {project_name}",
                timeout=self.compose_timeout,
            )
        except SubprocessError as e:
            logger.error(
                f"Failed to start project {project_name}: {e.stderr.strip() or e}",
                extra={"project": project_name, "operation": "start"},
            )
            outcome.mark_start_failed(project_name, f"start failed: {e}")
            return False

        outcome.mark_started(project_name)
        return True

    def start_restored(self, project_dirs: List[Path], outcome: RunOutcome) -> List[str]:
        """
        Bring up every restored project that has a canonical compose file.

        Returns:
            Names of projects started successfully
        """
        started = []
        for project_dir in project_dirs:
            project_dir = Path(project_dir)
            name = project_dir.name
            if not (project_dir / CANONICAL_COMPOSE_FILE).is_file():
                logger.info(
                    f"No {CANONICAL_COMPOSE_FILE} for {name}, not starting",
                    extra={"project": name},
                )
                continue
            entry = outcome.get(name)
            if entry is not None and entry.state == ProjectState.RESTORE_FAILED:
                logger.warning(
                    f"Starting {name} although parts of its restore failed",
                    extra={"project": name},
                )
            if self.start_project(project_dir, name, outcome):
                started.append(name)
        return started
