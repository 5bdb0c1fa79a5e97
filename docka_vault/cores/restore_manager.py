################################################################################
# DOCKA-VAULT
#
# @file:        restore_manager.py
# @module:      docka_vault.cores.restore_manager
# @description: Restores project trees, compose/env files and volumes from a backup set.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Existing projects are taken down (compose down) before being overwritten
# - Volumes are restored in overlay mode (no wipe before extraction)
# - Projects are started only after every tree has been extracted
################################################################################

"""
Restore orchestration.

Phases:
  1. preflight: Docker reachable, docker compose available, target root writable
  2. per project: take down existing stack, copy compose file to
     docker-compose.yml and env file to .env, import volumes
  3. extract every project tree
  4. ``docker compose up -d`` for every project with docker-compose.yml
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import List, Optional

from ..exceptions import ArchiveError, PlatformUnavailableError, PreconditionError, VolumeTransferError
from ..helpers.config import Config
from ..helpers.constants import CANONICAL_COMPOSE_FILE, ENV_FILE_NAME
from ..helpers.logging import get_logger
from ..manifest import BackupManifest, ProjectEntry, load_or_infer
from ..types import BackupSet, RunOutcome
from . import archive_transport
from .backup_manager import connect_docker, log_outcome
from .lifecycle_controller import LifecycleController
from .volume_mover import VolumeDataMover

logger = get_logger(__name__)


def _is_plain_name(name: str) -> bool:
    return bool(name) and name not in (".", "..") and Path(name).name == name


class RestoreManager:
    """Restores a backup set into a target root."""

    def __init__(self, config: Config, client=None):
        self.config = config
        self.target_root = config.target_root
        self.helper_image = config.helper_image
        self.controller = LifecycleController(config.compose_timeout)
        self.client = client

    def restore(self, backup_set: BackupSet, target_root: Optional[Path] = None) -> RunOutcome:
        """
        Restore ``backup_set`` below ``target_root``.

        Raises:
            FatalError: Preflight failed or manifest unreadable
        """
        from .safe_exit_manager import SafeExitManager, DataSafetyHandler

        target_root = Path(target_root) if target_root else self.target_root
        outcome = RunOutcome("restore")
        outcome.backup_set = backup_set
        logger.info(
            f"Restoring {backup_set.backup_id} into {target_root}",
            extra={"operation": "restore"},
        )

        self.preflight(target_root)
        manifest = load_or_infer(backup_set)
        mover = VolumeDataMover(self.client, self.helper_image)

        safe_exit = SafeExitManager.get_instance()
        data_safety = DataSafetyHandler()
        safe_exit.register_handler(data_safety)

        try:
            project_dirs = self.restore_configs_and_volumes(
                manifest, backup_set, target_root, outcome, mover, data_safety
            )
            self.restore_trees(manifest, backup_set, target_root, outcome)

            logger.info("Starting restored projects...", extra={"operation": "restore"})
            self.controller.start_restored(project_dirs, outcome)
            for project_dir in project_dirs:
                data_safety.unregister_taken_down(project_dir.name)
        except Exception as e:
            outcome.fatal_error = str(e)
            logger.error(f"Restore aborted: {e}", extra={"operation": "restore"})
            data_safety.cleanup()
            raise
        finally:
            safe_exit.unregister_handler(data_safety)
            outcome.finish()
            log_outcome(outcome)

        logger.info("Restore finished", extra={"operation": "restore"})
        return outcome

    # ---------------------------------------------------------------------
    # Steps
    # ---------------------------------------------------------------------

    def preflight(self, target_root: Path):
        """
        Raises:
            PlatformUnavailableError: Docker or docker compose unavailable
            PreconditionError: Target root cannot be created or written
        """
        self.client = connect_docker(self.client)
        if not self.controller.is_compose_available():
            raise PlatformUnavailableError("docker compose is not available")

        parent = target_root.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PreconditionError(f"Cannot create {parent}: {e}")
        if not os.access(parent, os.W_OK) and not target_root.is_dir():
            raise PreconditionError(f"No write permission on {parent}")

        try:
            target_root.mkdir(exist_ok=True)
        except OSError as e:
            raise PreconditionError(f"Cannot create target root {target_root}: {e}")
        if not os.access(target_root, os.W_OK):
            raise PreconditionError(f"Target root is not writable: {target_root}")

    def restore_configs_and_volumes(
        self,
        manifest: BackupManifest,
        backup_set: BackupSet,
        target_root: Path,
        outcome: RunOutcome,
        mover: VolumeDataMover,
        data_safety=None,
    ) -> List[Path]:
        """
        Prepare every project directory and restore its volumes.

        Returns:
            Project directories that were processed
        """
        project_dirs = []
        for entry in manifest.projects:
            name = entry.name
            outcome.track(name)
            if not _is_plain_name(name):
                outcome.mark_restore_failed(name, f"invalid project name: {name!r}")
                logger.error(f"Skipping project with invalid name {name!r}")
                continue

            project_dir = target_root / name
            logger.info(f"Restoring project {name}...", extra={"project": name, "operation": "restore"})

            if (project_dir / CANONICAL_COMPOSE_FILE).is_file():
                if not self.controller.take_down(project_dir, name):
                    outcome.add_warning(name, "existing project could not be taken down")
                elif data_safety is not None:
                    data_safety.register_taken_down(name, str(project_dir))

            try:
                project_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                outcome.mark_restore_failed(name, f"cannot create {project_dir}: {e}")
                logger.error(f"Cannot create {project_dir}: {e}", extra={"project": name})
                continue
            project_dirs.append(project_dir)

            self._restore_file(
                backup_set, entry.compose_archive, project_dir / CANONICAL_COMPOSE_FILE,
                name, "compose file", outcome,
            )
            self._restore_file(
                backup_set, entry.env_archive, project_dir / ENV_FILE_NAME,
                name, "env file", outcome,
            )
            self.restore_volumes(entry, backup_set, outcome, mover)

        return project_dirs

    def _restore_file(
        self,
        backup_set: BackupSet,
        relative: Optional[str],
        target: Path,
        project: str,
        label: str,
        outcome: RunOutcome,
    ):
        if relative is None:
            logger.warning(f"No {label} in backup for {project}", extra={"project": project})
            outcome.add_warning(project, f"no {label} in backup")
            return

        source = backup_set.path / relative
        try:
            shutil.copy2(source, target)
            logger.info(f"Restored {label} -> {target}", extra={"project": project})
        except OSError as e:
            logger.error(f"Failed to restore {label} for {project}: {e}", extra={"project": project})
            outcome.mark_restore_failed(project, f"{label} restore failed: {e}")

    def restore_volumes(
        self,
        entry: ProjectEntry,
        backup_set: BackupSet,
        outcome: RunOutcome,
        mover: VolumeDataMover,
    ):
        if not entry.volumes:
            logger.info(f"No volumes to restore for {entry.name}", extra={"project": entry.name})
            return

        for volume in entry.volumes:
            if volume.archive is None:
                logger.warning(
                    f"Volume {volume.name} was not exported in this backup, skipping",
                    extra={"project": entry.name, "volume": volume.name},
                )
                outcome.add_warning(entry.name, f"volume {volume.name} missing from backup")
                continue
            try:
                created = mover.import_volume(
                    volume.name, backup_set.path / volume.archive, project=entry.name
                )
                outcome.record_volume(entry.name, volume.name, True)
                if created:
                    outcome.add_warning(entry.name, f"volume {volume.name} was created")
            except VolumeTransferError as e:
                logger.error(str(e), extra={"project": entry.name, "volume": volume.name})
                outcome.record_volume(entry.name, volume.name, False, str(e))

    def restore_trees(
        self,
        manifest: BackupManifest,
        backup_set: BackupSet,
        target_root: Path,
        outcome: RunOutcome,
    ):
        """Extract every project tree archive; failures only affect their project."""
        for entry in manifest.projects:
            name = entry.name
            if not _is_plain_name(name):
                continue
            if entry.tree_archive is None:
                logger.warning(f"No project archive for {name}", extra={"project": name})
                outcome.add_warning(name, "no project archive in backup")
                outcome.mark_restored(name)
                continue
            try:
                root = archive_transport.unpack(backup_set.path / entry.tree_archive, target_root)
                if root.name != name:
                    outcome.add_warning(name, f"project archive extracted as {root.name}")
                    logger.warning(
                        f"Project archive for {name} has root {root.name}",
                        extra={"project": name},
                    )
                outcome.mark_restored(name)
                logger.info(f"Restored project tree {root}", extra={"project": name})
            except ArchiveError as e:
                logger.error(str(e), extra={"project": name})
                outcome.mark_restore_failed(name, str(e))
