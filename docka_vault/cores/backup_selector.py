################################################################################
# DOCKA-VAULT
#
# @file:        backup_selector.py
# @module:      docka_vault.cores.backup_selector
# @description: Validates an explicit backup set or picks the most recent one under the backup root.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
################################################################################

"""
Backup set selection.

A backup set is valid when its ``projects/``, ``compose/`` and ``volumes/``
sub-directories all exist, even if empty. Selection has no side effects.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..exceptions import InvalidBackupError, NoBackupFoundError
from ..helpers.logging import get_logger
from ..types import BackupSet, parse_backup_id

logger = get_logger(__name__)


class BackupSelector:
    """Finds backup sets under a backup root."""

    def __init__(self, backup_root: Path):
        self.backup_root = Path(backup_root)

    def select(self, explicit_path: Optional[Path] = None) -> BackupSet:
        """
        Return the backup set to restore.

        Args:
            explicit_path: Use exactly this directory; no fallback to the latest

        Raises:
            InvalidBackupError: explicit_path missing or structurally invalid
            NoBackupFoundError: No valid set under the backup root
        """
        if explicit_path is not None:
            return self.validate(Path(explicit_path))

        candidates = [s for s in self.list_backups() if s.is_valid()]
        if not candidates:
            raise NoBackupFoundError(f"No backup found in {self.backup_root}")

        latest = candidates[-1]
        logger.info(f"Using latest backup: {latest.path}")
        return latest

    def validate(self, path: Path) -> BackupSet:
        if not path.is_dir():
            raise InvalidBackupError(f"Backup directory not found: {path}")

        backup_set = BackupSet.from_path(path)
        missing = backup_set.missing_parts()
        if missing:
            raise InvalidBackupError(
                f"Invalid backup structure in {path}: missing {', '.join(missing)}",
                details={"missing": missing},
            )
        logger.info(f"Using backup: {path}")
        return backup_set

    def list_backups(self) -> List[BackupSet]:
        """
        All ``docker-backup-*`` directories under the root, oldest first.

        Ordered by the timestamp parsed from the name, ties broken by name.
        Invalid sets are included; callers check ``is_valid()``.
        """
        if not self.backup_root.is_dir():
            logger.debug(f"Backup root does not exist: {self.backup_root}")
            return []

        sets = []
        for entry in self.backup_root.iterdir():
            if not entry.is_dir():
                continue
            timestamp = parse_backup_id(entry.name)
            if timestamp is None:
                continue
            sets.append(BackupSet(path=entry, backup_id=entry.name, timestamp=timestamp))

        sets.sort(key=lambda s: (s.timestamp or datetime.min, s.backup_id))
        return sets
