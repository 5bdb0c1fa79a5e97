################################################################################
# DOCKA-VAULT
#
# @file:        manifest.py
# @module:      docka_vault.manifest
# @description: Pydantic models for manifest.json plus the filename-based fallback index.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Artifact paths are stored relative to the backup set directory
# - Sets without manifest.json are indexed from their file names
################################################################################

"""
Backup manifest.

Every backup set written by docka-vault carries a ``manifest.json`` listing
which archive belongs to which project. Restore prefers it over file name
parsing. ``infer_manifest()`` rebuilds the same structure from file names
for sets that have no manifest (older sets or interrupted runs).
"""

from __future__ import annotations

import json
import os
import re
import socket
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import InvalidBackupError
from .helpers.constants import (
    CANONICAL_COMPOSE_FILE,
    MANIFEST_FORMAT_VERSION,
    VERSION,
    VOLUME_ARCHIVE_SUFFIX,
    VOLUME_PREFIX_SEPARATOR,
)
from .helpers.logging import get_logger
from .types import BackupSet

logger = get_logger(__name__)

# Date stamp appended by date-suffixed sets: <YYYY-MM-DD>[_<HH-MM-SS>]
_DATE_STAMP = r"\d{4}-\d{2}-\d{2}(?:_\d{2}-\d{2}-\d{2})?"

TREE_ARCHIVE_RE = re.compile(r"^(?P<name>.+)-project(-.*)?\.tar\.gz$")
COMPOSE_ARCHIVE_RE = re.compile(
    r"^(?P<name>[A-Za-z0-9_-]+)-(?P<basename>docker-compose\.ya?ml|compose\.ya?ml)$"
)
DATED_COMPOSE_ARCHIVE_RE = re.compile(rf"^(?P<name>[A-Za-z0-9_-]+)-compose-{_DATE_STAMP}\.ya?ml$")
ENV_ARCHIVE_RE = re.compile(rf"^(?P<name>[A-Za-z0-9_-]+)-env(?:-{_DATE_STAMP})?\.env$")
DATED_VOLUME_RE = re.compile(rf"^(?P<stem>.+)_{_DATE_STAMP}$")


def _check_relative(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    path = PurePosixPath(value)
    if path.is_absolute() or ".." in path.parts:
        raise ValueError(f"Artifact path must be relative to the backup set: {value}")
    return value


class VolumeEntry(BaseModel):
    """One exported named volume"""

    name: str = Field(..., description="Fully qualified Docker volume name")
    archive: Optional[str] = Field(
        default=None,
        description="Archive path relative to the backup set (None if the export failed)"
    )

    @field_validator("archive")
    @classmethod
    def validate_archive(cls, v: Optional[str]) -> Optional[str]:
        return _check_relative(v)


class ProjectEntry(BaseModel):
    """Artifacts and backup state of one project"""

    name: str
    tree_archive: Optional[str] = None
    compose_archive: Optional[str] = None
    compose_basename: Optional[str] = None
    env_archive: Optional[str] = None
    volumes: List[VolumeEntry] = Field(default_factory=list)
    state: str = "not-attempted"
    errors: List[str] = Field(default_factory=list)

    @field_validator("tree_archive", "compose_archive", "env_archive")
    @classmethod
    def validate_paths(cls, v: Optional[str]) -> Optional[str]:
        return _check_relative(v)


class BackupManifest(BaseModel):
    """Content index of one backup set"""

    format_version: int = Field(default=MANIFEST_FORMAT_VERSION)
    backup_id: str
    created_at: datetime = Field(default_factory=datetime.now)
    source_root: str = ""
    hostname: str = Field(default_factory=socket.gethostname)
    tool_version: str = VERSION
    completed: bool = False
    fatal_error: Optional[str] = None
    projects: List[ProjectEntry] = Field(default_factory=list)

    @field_validator("format_version")
    @classmethod
    def validate_format_version(cls, v: int) -> int:
        if v > MANIFEST_FORMAT_VERSION:
            raise ValueError(
                f"Manifest format {v} is newer than supported ({MANIFEST_FORMAT_VERSION})"
            )
        return v

    def get_project(self, name: str) -> Optional[ProjectEntry]:
        for entry in self.projects:
            if entry.name == name:
                return entry
        return None

    def save(self, path: Path) -> None:
        """Write atomically (tmp file + rename)."""
        path = Path(path)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(self.model_dump_json(indent=2))
        os.replace(tmp, path)

    @classmethod
    def load(cls, path: Path) -> BackupManifest:
        """
        Raises:
            InvalidBackupError: File unreadable or not a valid manifest
        """
        path = Path(path)
        try:
            return cls.model_validate_json(path.read_text())
        except OSError as e:
            raise InvalidBackupError(f"Cannot read manifest {path}: {e}")
        except (ValidationError, json.JSONDecodeError) as e:
            raise InvalidBackupError(f"Invalid manifest {path}: {e}")


def _owner_of_volume(volume_name: str, project_names: List[str]) -> Optional[str]:
    """Longest project name that is a ``<project>_`` prefix of the volume name."""
    owners = [
        name for name in project_names
        if volume_name.startswith(f"{name}{VOLUME_PREFIX_SEPARATOR}")
    ]
    if not owners:
        return None
    if len(owners) > 1:
        logger.warning(
            f"Volume {volume_name} matches several projects ({', '.join(sorted(owners))}); "
            f"assigning it to the longest match"
        )
    return max(owners, key=len)


def infer_manifest(backup_set: BackupSet) -> BackupManifest:
    """
    Build a manifest from artifact file names.

    Used for sets without ``manifest.json``. Project names containing ``_``
    can make volume ownership ambiguous; the longest matching project wins.
    """
    entries: Dict[str, ProjectEntry] = {}

    def entry(name: str) -> ProjectEntry:
        if name not in entries:
            entries[name] = ProjectEntry(name=name, state="archived")
        return entries[name]

    if backup_set.projects_dir.is_dir():
        for path in sorted(backup_set.projects_dir.iterdir()):
            match = TREE_ARCHIVE_RE.match(path.name)
            if path.is_file() and match:
                entry(match.group("name")).tree_archive = f"{path.parent.name}/{path.name}"

    if backup_set.compose_dir.is_dir():
        for path in sorted(backup_set.compose_dir.iterdir()):
            if not path.is_file():
                continue
            compose = COMPOSE_ARCHIVE_RE.match(path.name)
            dated_compose = DATED_COMPOSE_ARCHIVE_RE.match(path.name)
            env = ENV_ARCHIVE_RE.match(path.name)
            if compose or dated_compose:
                project = entry((compose or dated_compose).group("name"))
                if project.compose_archive is None:
                    project.compose_archive = f"{path.parent.name}/{path.name}"
                    # dated copies do not record the original basename
                    project.compose_basename = (
                        compose.group("basename") if compose else CANONICAL_COMPOSE_FILE
                    )
                else:
                    logger.warning(f"Ignoring second compose file {path.name} for {project.name}")
            elif env:
                entry(env.group("name")).env_archive = f"{path.parent.name}/{path.name}"
            else:
                logger.debug(f"Unrecognized compose artifact: {path.name}")

    project_names = sorted(entries)
    if backup_set.volumes_dir.is_dir():
        for path in sorted(backup_set.volumes_dir.iterdir()):
            if not (path.is_file() and path.name.endswith(VOLUME_ARCHIVE_SUFFIX)):
                continue
            volume_name = path.name[: -len(VOLUME_ARCHIVE_SUFFIX)]
            owner = _owner_of_volume(volume_name, project_names)
            if owner is None:
                logger.warning(f"Volume archive {path.name} does not belong to any project, skipping")
                continue
            dated = DATED_VOLUME_RE.match(volume_name)
            if dated:
                # <project>_<volume-name>_<date>.tar.gz
                volume_name = dated.group("stem")[len(owner) + len(VOLUME_PREFIX_SEPARATOR):]
                if not volume_name:
                    logger.warning(f"Volume archive {path.name} carries no volume name, skipping")
                    continue
            entries[owner].volumes.append(
                VolumeEntry(name=volume_name, archive=f"{path.parent.name}/{path.name}")
            )

    logger.info(
        f"Indexed {len(entries)} project(s) from file names in {backup_set.path}",
        extra={"operation": "restore"},
    )
    return BackupManifest(
        backup_id=backup_set.backup_id,
        created_at=backup_set.timestamp or datetime.now(),
        hostname="",
        tool_version="",
        completed=True,
        projects=[entries[name] for name in project_names],
    )


def load_or_infer(backup_set: BackupSet) -> BackupManifest:
    """Load ``manifest.json`` if present, otherwise index by file names."""
    if backup_set.manifest_path.is_file():
        manifest = BackupManifest.load(backup_set.manifest_path)
        logger.info(f"Loaded manifest with {len(manifest.projects)} project(s)")
        if not manifest.completed:
            logger.warning(
                f"Backup {backup_set.backup_id} did not complete"
                + (f": {manifest.fatal_error}" if manifest.fatal_error else "")
            )
        return manifest
    logger.info(f"No manifest in {backup_set.path}, falling back to file name parsing")
    return infer_manifest(backup_set)
