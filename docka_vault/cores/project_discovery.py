################################################################################
# DOCKA-VAULT
#
# @file:        project_discovery.py
# @module:      docka_vault.cores.project_discovery
# @description: Enumerates project directories and resolves their compose, env and volume artifacts.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Projects are the immediate sub-directories of the source root, sorted by name
# - Volume ownership comes only from the com.docker.compose.project label
################################################################################

"""
Project discovery.

Discovers the projects below a source root and groups each with its
compose file, env file and owned named volumes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

from docker.errors import DockerException

from ..exceptions import PlatformUnavailableError, PreconditionError
from ..helpers.constants import COMPOSE_FILE_NAMES, DOCKER_COMPOSE_PROJECT_LABEL, ENV_FILE_NAME
from ..helpers.logging import get_logger
from ..types import Project, VolumeInfo

logger = get_logger(__name__)


class ProjectDiscovery:
    """
    Discovers projects below a source root.

    Args:
        source_root: Directory holding one sub-directory per project
        client: docker.DockerClient used to look up owned volumes
        skip: Additional paths never treated as projects (e.g. a backup
              root nested inside the source root)
    """

    def __init__(self, source_root: Path, client, skip: Iterable[Path] = ()):
        self.source_root = Path(source_root)
        self.client = client
        self.skip = [Path(p).resolve() for p in skip]

    def discover_projects(self) -> List[Project]:
        """
        Discover all projects.

        Returns:
            Projects sorted by name

        Raises:
            PreconditionError: Source root missing
            PlatformUnavailableError: Docker not reachable while listing volumes
        """
        if not self.source_root.is_dir():
            raise PreconditionError(f"Source root not found: {self.source_root}")

        logger.info(f"Discovering projects in {self.source_root}...")

        projects = []
        for entry in sorted(self.source_root.iterdir(), key=lambda p: p.name):
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            if entry.resolve() in self.skip:
                logger.debug(f"Skipping {entry} (excluded path)")
                continue
            projects.append(self.discover_project(entry))

        logger.info(f"Discovered {len(projects)} project(s)")
        for project in projects:
            logger.info(
                f"  - {project.name}: "
                f"compose={'yes' if project.compose_file else 'no'}, "
                f"env={'yes' if project.env_file else 'no'}, "
                f"{len(project.volumes)} volume(s)"
            )
        return projects

    def discover_project(self, project_dir: Path) -> Project:
        project_dir = Path(project_dir)
        name = project_dir.name
        return Project(
            name=name,
            path=project_dir,
            compose_file=self.resolve_compose_file(project_dir),
            env_file=self.resolve_env_file(project_dir),
            volumes=self.resolve_volumes(name),
        )

    def resolve_compose_file(self, project_dir: Path) -> Optional[Path]:
        """Return the first existing compose file by priority, or None."""
        for candidate in COMPOSE_FILE_NAMES:
            path = Path(project_dir) / candidate
            if path.is_file():
                return path
        logger.warning(
            f"No compose file found in {project_dir}; project tree will be archived only",
            extra={"project": Path(project_dir).name},
        )
        return None

    def resolve_env_file(self, project_dir: Path) -> Optional[Path]:
        path = Path(project_dir) / ENV_FILE_NAME
        if path.is_file():
            return path
        logger.warning(
            f"No {ENV_FILE_NAME} file found in {project_dir}",
            extra={"project": Path(project_dir).name},
        )
        return None

    def resolve_volumes(self, project_name: str) -> List[VolumeInfo]:
        """
        Return the named volumes owned by ``project_name``.

        Ownership is decided solely by the compose project label; volumes
        without it are never returned.
        """
        try:
            volumes = self.client.volumes.list(
                filters={"label": f"{DOCKER_COMPOSE_PROJECT_LABEL}={project_name}"}
            )
        except DockerException as e:
            raise PlatformUnavailableError(f"Cannot list Docker volumes: {e}")

        result = sorted(
            (VolumeInfo(name=v.name, project=project_name) for v in volumes),
            key=lambda v: v.name,
        )
        if not result:
            logger.warning(
                f"No volumes found for project {project_name}",
                extra={"project": project_name},
            )
        return result
