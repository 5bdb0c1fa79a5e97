################################################################################
# DOCKA-VAULT
#
# @file:        types.py
# @module:      docka_vault.types
# @description: Shared data models for projects, backup sets and run outcomes.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Project and VolumeInfo are discovered fresh on every run
# - BackupSet wraps one docker-backup-<id> directory
# - RunOutcome is created per run and returned, never stored globally
################################################################################

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .helpers.constants import (
    BACKUP_SET_PATTERN,
    PROJECTS_BACKUP_DIR,
    COMPOSE_BACKUP_DIR,
    VOLUME_BACKUP_DIR,
    MANIFEST_FILE,
)

_BACKUP_SET_RE = re.compile(BACKUP_SET_PATTERN)


# ---- Discovery DTOs ----

@dataclass
class VolumeInfo:
    name: str
    project: str
    archive_path: Optional[Path] = None


@dataclass
class Project:
    name: str
    path: Path
    compose_file: Optional[Path] = None
    env_file: Optional[Path] = None
    volumes: List[VolumeInfo] = field(default_factory=list)

    @property
    def has_compose(self) -> bool:
        return self.compose_file is not None


# ---- Backup sets ----

def parse_backup_id(name: str) -> Optional[datetime]:
    """Return the timestamp embedded in a backup id, or None if it does not match."""
    match = _BACKUP_SET_RE.match(name)
    if not match:
        return None
    stamp = match.group("date")
    fmt = "%Y-%m-%d"
    if match.group("time"):
        stamp = f"{stamp}_{match.group('time')}"
        fmt = "%Y-%m-%d_%H-%M-%S"
    try:
        return datetime.strptime(stamp, fmt)
    except ValueError:
        return None


@dataclass
class BackupSet:
    path: Path
    backup_id: str
    timestamp: Optional[datetime] = None

    @classmethod
    def from_path(cls, path: Path) -> "BackupSet":
        path = Path(path)
        return cls(path=path, backup_id=path.name, timestamp=parse_backup_id(path.name))

    @property
    def projects_dir(self) -> Path:
        return self.path / PROJECTS_BACKUP_DIR

    @property
    def compose_dir(self) -> Path:
        return self.path / COMPOSE_BACKUP_DIR

    @property
    def volumes_dir(self) -> Path:
        return self.path / VOLUME_BACKUP_DIR

    @property
    def manifest_path(self) -> Path:
        return self.path / MANIFEST_FILE

    def missing_parts(self) -> List[str]:
        return [
            d.name
            for d in (self.projects_dir, self.compose_dir, self.volumes_dir)
            if not d.is_dir()
        ]

    def is_valid(self) -> bool:
        return self.path.is_dir() and not self.missing_parts()


# ---- Run outcome ----

class ProjectState(str, Enum):
    NOT_ATTEMPTED = "not-attempted"
    STOPPED = "stopped"
    STOP_FAILED = "stop-failed"
    ARCHIVED = "archived"
    ARCHIVE_FAILED = "archive-failed"
    RESTART_FAILED = "restart-failed"
    RESTARTED = "restarted"
    RESTORED = "restored"
    RESTORE_FAILED = "restore-failed"
    START_FAILED = "start-failed"
    STARTED = "started"


FAILED_STATES = {
    ProjectState.STOP_FAILED,
    ProjectState.ARCHIVE_FAILED,
    ProjectState.RESTART_FAILED,
    ProjectState.RESTORE_FAILED,
    ProjectState.START_FAILED,
}


@dataclass
class ProjectOutcome:
    name: str
    state: ProjectState = ProjectState.NOT_ATTEMPTED
    stopped_by_run: bool = False
    restarted: bool = False
    volumes: Dict[str, bool] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return (
            self.state in FAILED_STATES
            or bool(self.errors)
            or not all(self.volumes.values())
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "stopped_by_run": self.stopped_by_run,
            "restarted": self.restarted,
            "volumes": dict(self.volumes),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


class RunOutcome:
    """
    Per-run record of what happened to every project.

    A project is only ever restarted if this same run stopped it
    (stopped_by_run). The stop-failed state never sets that flag, so
    restart_candidates() can not return it.
    """

    def __init__(self, operation: str):
        self.operation = operation
        self.started_at = datetime.now()
        self.finished_at: Optional[datetime] = None
        self.fatal_error: Optional[str] = None
        self.backup_set: Optional[BackupSet] = None
        self._projects: Dict[str, ProjectOutcome] = {}

    # ---- access ----

    def track(self, name: str) -> ProjectOutcome:
        """Return the outcome entry for a project, creating it on first use."""
        if name not in self._projects:
            self._projects[name] = ProjectOutcome(name=name)
        return self._projects[name]

    def get(self, name: str) -> Optional[ProjectOutcome]:
        return self._projects.get(name)

    @property
    def projects(self) -> List[ProjectOutcome]:
        return list(self._projects.values())

    def __contains__(self, name: str) -> bool:
        return name in self._projects

    def __len__(self) -> int:
        return len(self._projects)

    # ---- backup side ----

    def mark_stopped(self, name: str):
        entry = self.track(name)
        entry.state = ProjectState.STOPPED
        entry.stopped_by_run = True

    def mark_stop_failed(self, name: str, error: str):
        entry = self.track(name)
        entry.state = ProjectState.STOP_FAILED
        entry.errors.append(error)

    def mark_archived(self, name: str):
        entry = self.track(name)
        # stop-failed wins over archived: the project stays ineligible and flagged
        if entry.state != ProjectState.STOP_FAILED:
            entry.state = ProjectState.ARCHIVED

    def mark_archive_failed(self, name: str, error: str):
        entry = self.track(name)
        entry.errors.append(error)
        if entry.state != ProjectState.STOP_FAILED:
            entry.state = ProjectState.ARCHIVE_FAILED

    def record_volume(self, name: str, volume: str, ok: bool, error: Optional[str] = None):
        entry = self.track(name)
        entry.volumes[volume] = ok
        if error:
            entry.errors.append(error)

    def add_error(self, name: str, error: str):
        self.track(name).errors.append(error)

    def add_warning(self, name: str, warning: str):
        self.track(name).warnings.append(warning)

    def restart_candidates(self) -> List[str]:
        """Projects stopped by this run that have not been restarted yet, in stop order."""
        return [
            p.name for p in self._projects.values()
            if p.stopped_by_run and not p.restarted
        ]

    def mark_restarted(self, name: str):
        entry = self.track(name)
        entry.restarted = True
        entry.state = ProjectState.RESTARTED

    def mark_restart_failed(self, name: str, error: str):
        entry = self.track(name)
        entry.state = ProjectState.RESTART_FAILED
        entry.errors.append(error)

    # ---- restore side ----

    def mark_restored(self, name: str):
        entry = self.track(name)
        if entry.state != ProjectState.RESTORE_FAILED:
            entry.state = ProjectState.RESTORED

    def mark_restore_failed(self, name: str, error: str):
        entry = self.track(name)
        entry.state = ProjectState.RESTORE_FAILED
        entry.errors.append(error)

    def mark_started(self, name: str):
        self.track(name).state = ProjectState.STARTED

    def mark_start_failed(self, name: str, error: str):
        entry = self.track(name)
        entry.state = ProjectState.START_FAILED
        entry.errors.append(error)

    # ---- summary ----

    @property
    def has_failures(self) -> bool:
        return self.fatal_error is not None or any(p.failed for p in self._projects.values())

    @property
    def failed_projects(self) -> List[str]:
        return [p.name for p in self._projects.values() if p.failed]

    def finish(self):
        self.finished_at = datetime.now()

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or datetime.now()
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "started_at": self.started_at.isoformat(timespec="seconds"),
            "finished_at": self.finished_at.isoformat(timespec="seconds") if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 2),
            "fatal_error": self.fatal_error,
            "backup_set": str(self.backup_set.path) if self.backup_set else None,
            "projects": [p.to_dict() for p in self._projects.values()],
        }
