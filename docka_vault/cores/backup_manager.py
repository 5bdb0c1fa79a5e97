################################################################################
# DOCKA-VAULT
#
# @file:        backup_manager.py
# @module:      docka_vault.cores.backup_manager
# @description: Orchestrates a full backup run: preflight, stop, archive, export, restart, manifest.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Strictly sequential: one project, one volume at a time
# - Per-project failures are recorded and the run continues
# - Fatal errors and signals restart every project this run has stopped
################################################################################

"""
Backup orchestration.

Run order:
  1. preflight (Docker, source root, backup root, free space)
  2. discover projects
  3. create ``docker-backup-<id>/`` with projects/, compose/, volumes/
  4. per project: stop, pack tree, copy compose/env, export volumes
  5. restart every project this run stopped
  6. write manifest.json and log the report
"""

from __future__ import annotations

import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import docker
import psutil
from docker.errors import DockerException

from ..exceptions import (
    ArchiveError,
    PlatformUnavailableError,
    PreconditionError,
    VolumeTransferError,
)
from ..helpers.config import Config
from ..helpers.constants import (
    BACKUP_SET_PREFIX,
    BACKUP_ID_FORMAT,
    DOCKER_PING_TIMEOUT,
    ENV_ARCHIVE_SUFFIX,
    PROJECT_ARCHIVE_SUFFIX,
    VOLUME_ARCHIVE_SUFFIX,
)
from ..helpers.logging import get_logger
from ..manifest import BackupManifest, ProjectEntry, VolumeEntry
from ..types import BackupSet, Project, RunOutcome
from . import archive_transport
from .lifecycle_controller import LifecycleController
from .project_discovery import ProjectDiscovery
from .volume_mover import VolumeDataMover

logger = get_logger(__name__)


def connect_docker(client=None):
    """
    Return a reachable Docker client.

    Raises:
        PlatformUnavailableError: Daemon not reachable
    """
    try:
        if client is None:
            client = docker.from_env(timeout=DOCKER_PING_TIMEOUT)
        client.ping()
    except DockerException as e:
        raise PlatformUnavailableError(f"Docker daemon not reachable: {e}")
    return client


def _relative(path: Path, root: Path) -> str:
    return Path(path).relative_to(root).as_posix()


class BackupManager:
    """Runs one backup of every project below the source root."""

    def __init__(self, config: Config, client=None):
        self.config = config
        self.source_root = config.source_root
        self.backup_root = config.backup_root
        self.min_free_space_gb = config.min_free_space_gb
        self.helper_image = config.helper_image
        self.controller = LifecycleController(config.compose_timeout)
        self.client = client

    # ---------------------------------------------------------------------
    # Entry point
    # ---------------------------------------------------------------------

    def run(self) -> RunOutcome:
        """
        Execute a backup run.

        Returns:
            RunOutcome with one entry per project

        Raises:
            FatalError: Preflight failed or the run was aborted (after rollback)
        """
        from .safe_exit_manager import SafeExitManager, ServiceContinuityHandler, CleanupHandler

        outcome = RunOutcome("backup")
        logger.info("Starting backup run", extra={"operation": "backup"})

        self.preflight()
        mover = VolumeDataMover(self.client, self.helper_image)
        projects = ProjectDiscovery(
            self.source_root, self.client, skip=[self.backup_root]
        ).discover_projects()

        backup_set = self.create_backup_set()
        outcome.backup_set = backup_set
        entries: Dict[str, ProjectEntry] = {}

        safe_exit = SafeExitManager.get_instance()
        continuity = ServiceContinuityHandler(self.controller, outcome)
        cleanup = CleanupHandler(name="backup")
        cleanup.register_cleanup("partial_archives", lambda: self._remove_partial_files(backup_set))
        cleanup.register_cleanup(
            "manifest",
            lambda: self.write_manifest(backup_set, entries, outcome, fatal_error="interrupted"),
        )
        safe_exit.register_handler(continuity)
        safe_exit.register_handler(cleanup)

        try:
            for project in projects:
                entries[project.name] = self.backup_project(
                    project, backup_set, outcome, mover, continuity
                )

            logger.info("Restarting stopped projects...", extra={"operation": "backup"})
            self.controller.restart_stopped(projects, outcome)
            for project in projects:
                continuity.unregister_project(project.name)

        except Exception as e:
            outcome.fatal_error = str(e)
            logger.error(f"Backup aborted: {e}", extra={"operation": "backup"})
            continuity.cleanup()
            self._remove_partial_files(backup_set)
            self.write_manifest(backup_set, entries, outcome, fatal_error=str(e))
            raise
        finally:
            safe_exit.unregister_handler(continuity)
            safe_exit.unregister_handler(cleanup)
            outcome.finish()
            log_outcome(outcome)

        self.write_manifest(backup_set, entries, outcome)
        logger.info(
            f"Backup finished: {backup_set.path}",
            extra={"operation": "backup", "failed": len(outcome.failed_projects)},
        )
        return outcome

    # ---------------------------------------------------------------------
    # Steps
    # ---------------------------------------------------------------------

    def preflight(self):
        """
        Raises:
            PlatformUnavailableError: Docker not reachable
            PreconditionError: Source root missing or backup root not writable
        """
        self.client = connect_docker(self.client)

        if not self.source_root.is_dir():
            raise PreconditionError(f"Source root not found: {self.source_root}")

        try:
            self.backup_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PreconditionError(f"Cannot create backup root {self.backup_root}: {e}")
        if not os.access(self.backup_root, os.W_OK):
            raise PreconditionError(f"Backup root is not writable: {self.backup_root}")

        self.check_free_space()

    def check_free_space(self) -> Optional[int]:
        """Warn when free space on the backup root is below the configured minimum."""
        try:
            free = psutil.disk_usage(str(self.backup_root)).free
        except OSError as e:
            logger.warning(f"Could not determine free space on {self.backup_root}: {e}")
            return None

        required = self.min_free_space_gb * 1024 ** 3
        if free < required:
            logger.warning(
                f"Low disk space on {self.backup_root}: "
                f"{free / 1024 ** 3:.1f} GB free, {self.min_free_space_gb} GB recommended"
            )
        return free

    def create_backup_set(self, now: Optional[datetime] = None) -> BackupSet:
        """
        Raises:
            PreconditionError: A set with the same id exists or cannot be created
        """
        backup_id = BACKUP_SET_PREFIX + (now or datetime.now()).strftime(BACKUP_ID_FORMAT)
        path = self.backup_root / backup_id
        try:
            path.mkdir()
        except FileExistsError:
            raise PreconditionError(f"Backup directory already exists: {path}")
        except OSError as e:
            raise PreconditionError(f"Cannot create backup directory {path}: {e}")

        backup_set = BackupSet.from_path(path)
        for sub in (backup_set.projects_dir, backup_set.compose_dir, backup_set.volumes_dir):
            sub.mkdir()
        logger.info(f"Backup directory: {path}", extra={"operation": "backup"})
        return backup_set

    def backup_project(
        self,
        project: Project,
        backup_set: BackupSet,
        outcome: RunOutcome,
        mover: VolumeDataMover,
        continuity=None,
    ) -> ProjectEntry:
        """Stop, archive and export one project. Never raises for per-project failures."""
        name = project.name
        outcome.track(name)
        entry = ProjectEntry(name=name)
        logger.info(f"Backing up project {name}...", extra={"project": name, "operation": "backup"})

        if self.controller.stop_project(project, outcome) and continuity is not None:
            continuity.register_project(project)

        # project tree
        tree_archive = backup_set.projects_dir / f"{name}{PROJECT_ARCHIVE_SUFFIX}"
        try:
            archive_transport.pack(project.path, tree_archive, exclude=[self.backup_root])
            entry.tree_archive = _relative(tree_archive, backup_set.path)
            outcome.mark_archived(name)
        except ArchiveError as e:
            logger.error(str(e), extra={"project": name})
            outcome.mark_archive_failed(name, str(e))

        # compose + env
        if project.compose_file:
            target = backup_set.compose_dir / f"{name}-{project.compose_file.name}"
            try:
                shutil.copy2(project.compose_file, target)
                entry.compose_archive = _relative(target, backup_set.path)
                entry.compose_basename = project.compose_file.name
            except OSError as e:
                logger.error(f"Failed to copy compose file for {name}: {e}", extra={"project": name})
                outcome.add_error(name, f"compose copy failed: {e}")

        if project.env_file:
            target = backup_set.compose_dir / f"{name}{ENV_ARCHIVE_SUFFIX}"
            try:
                shutil.copy2(project.env_file, target)
                entry.env_archive = _relative(target, backup_set.path)
            except OSError as e:
                logger.error(f"Failed to copy env file for {name}: {e}", extra={"project": name})
                outcome.add_error(name, f"env copy failed: {e}")

        # volumes
        for volume in project.volumes:
            archive = backup_set.volumes_dir / f"{volume.name}{VOLUME_ARCHIVE_SUFFIX}"
            try:
                mover.export_volume(volume.name, archive)
                volume.archive_path = archive
                entry.volumes.append(
                    VolumeEntry(name=volume.name, archive=_relative(archive, backup_set.path))
                )
                outcome.record_volume(name, volume.name, True)
            except (VolumeTransferError, OSError) as e:
                logger.error(str(e), extra={"project": name, "volume": volume.name})
                entry.volumes.append(VolumeEntry(name=volume.name))
                outcome.record_volume(name, volume.name, False, str(e))

        return entry

    def write_manifest(
        self,
        backup_set: BackupSet,
        entries: Dict[str, ProjectEntry],
        outcome: RunOutcome,
        fatal_error: Optional[str] = None,
    ) -> Path:
        """Write manifest.json with the final state of every project."""
        projects = []
        for name, entry in entries.items():
            result = outcome.get(name)
            if result is not None:
                entry.state = result.state.value
                entry.errors = list(result.errors)
            projects.append(entry)

        manifest = BackupManifest(
            backup_id=backup_set.backup_id,
            created_at=backup_set.timestamp or outcome.started_at,
            source_root=str(self.source_root),
            completed=fatal_error is None,
            fatal_error=fatal_error,
            projects=projects,
        )
        try:
            manifest.save(backup_set.manifest_path)
        except OSError as e:
            logger.error(f"Failed to write manifest {backup_set.manifest_path}: {e}")
        return backup_set.manifest_path

    @staticmethod
    def _remove_partial_files(backup_set: BackupSet):
        for partial in backup_set.path.rglob("*.part"):
            try:
                partial.unlink()
                logger.debug(f"Removed partial file {partial}")
            except OSError as e:
                logger.warning(f"Could not remove partial file {partial}: {e}")


def log_outcome(outcome: RunOutcome):
    """Write the per-project/per-volume report to the log."""
    logger.info(
        f"{outcome.operation.capitalize()} report: {len(outcome)} project(s), "
        f"{len(outcome.failed_projects)} with failures, {outcome.duration_seconds:.1f}s",
        extra={"operation": outcome.operation},
    )
    for result in outcome.projects:
        log = logger.warning if result.failed else logger.info
        log(
            f"  {result.name}: {result.state.value}",
            extra={"project": result.name, "operation": outcome.operation},
        )
        for volume, ok in result.volumes.items():
            log(f"    volume {volume}: {'ok' if ok else 'FAILED'}", extra={"volume": volume})
        for error in result.errors:
            logger.warning(f"    error: {error}", extra={"project": result.name})
        for warning in result.warnings:
            logger.info(f"    warning: {warning}", extra={"project": result.name})
    if outcome.fatal_error:
        logger.error(f"  fatal: {outcome.fatal_error}", extra={"operation": outcome.operation})
