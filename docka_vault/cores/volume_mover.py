################################################################################
# DOCKA-VAULT
#
# @file:        volume_mover.py
# @module:      docka_vault.cores.volume_mover
# @description: Streams named volumes to/from tar.gz files via throwaway helper containers.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Helper sees exactly one volume and one archive file, nothing else
# - No network, read-only rootfs, minimal capabilities, auto-removed
# - Import is an overlay: files missing from the archive are not deleted
################################################################################

"""
Volume data mover.

Volume contents never pass through the host process. A disposable helper
container mounts the volume at /data and the single archive file at
/archive/<file> and runs tar inside.

Known limitation: import_volume() extracts on top of the existing volume
contents. Files that exist in the volume but not in the archive survive a
restore.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import docker
from docker.errors import APIError, ContainerError, DockerException, ImageNotFound, NotFound

from ..exceptions import VolumeTransferError
from ..helpers.constants import (
    DEFAULT_HELPER_IMAGE,
    HELPER_DATA_MOUNT,
    HELPER_ARCHIVE_MOUNT,
    HELPER_CAPABILITIES,
    HELPER_LABEL,
    DOCKER_COMPOSE_PROJECT_LABEL,
    DOCKER_COMPOSE_VOLUME_LABEL,
    VOLUME_PREFIX_SEPARATOR,
)
from ..helpers.logging import get_logger

logger = get_logger(__name__)


class VolumeDataMover:
    """Export and import named volumes through an isolated helper container."""

    def __init__(self, client: "docker.DockerClient", image: str = DEFAULT_HELPER_IMAGE):
        self.client = client
        self.image = image
        self._image_ready = False

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------

    def export_volume(self, volume_name: str, archive_path: Path) -> Path:
        """
        Write the full contents of ``volume_name`` into ``archive_path``.

        The volume is mounted read-only. The archive file is created empty
        on the host first so that only this one file is bind-mounted.

        Raises:
            VolumeTransferError: Volume missing or helper failed
        """
        archive_path = Path(archive_path).resolve()
        self._require_volume(volume_name)
        self._ensure_image()

        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
            archive_path.touch(mode=0o600, exist_ok=True)
        except OSError as e:
            raise VolumeTransferError(f"Cannot create archive file {archive_path}: {e}")
        container_archive = f"{HELPER_ARCHIVE_MOUNT}/{archive_path.name}"

        try:
            self._run_helper(
                ["tar", "-czf", container_archive, "-C", HELPER_DATA_MOUNT, "."],
                volumes={
                    volume_name: {"bind": HELPER_DATA_MOUNT, "mode": "ro"},
                    str(archive_path): {"bind": container_archive, "mode": "rw"},
                },
                purpose=f"export {volume_name}",
            )
        except VolumeTransferError:
            if archive_path.exists():
                archive_path.unlink()
            raise

        logger.info(
            f"Exported volume {volume_name}",
            extra={"volume": volume_name, "archive": archive_path.name},
        )
        return archive_path

    def import_volume(self, volume_name: str, archive_path: Path, project: Optional[str] = None) -> bool:
        """
        Extract ``archive_path`` into ``volume_name``.

        Creates the volume first when it does not exist. Existing files with
        the same path are overwritten.

        Args:
            volume_name: Fully qualified volume name
            archive_path: tar.gz produced by export_volume()
            project: Owning project; used to label a newly created volume so
                     later backups discover it again

        Returns:
            True if the volume had to be created

        Raises:
            VolumeTransferError: Archive missing, volume creation or helper failed
        """
        archive_path = Path(archive_path).resolve()
        if not archive_path.is_file():
            raise VolumeTransferError(f"Volume archive not found: {archive_path}")

        created = False
        if not self.volume_exists(volume_name):
            logger.info(
                f"Volume {volume_name} does not exist. Creating...",
                extra={"volume": volume_name},
            )
            self.create_volume(volume_name, project)
            created = True
        else:
            logger.info(
                f"Volume {volume_name} already exists. Contents will be overwritten.",
                extra={"volume": volume_name},
            )

        self._ensure_image()
        container_archive = f"{HELPER_ARCHIVE_MOUNT}/{archive_path.name}"
        self._run_helper(
            ["tar", "-xzf", container_archive, "-C", HELPER_DATA_MOUNT],
            volumes={
                volume_name: {"bind": HELPER_DATA_MOUNT, "mode": "rw"},
                str(archive_path): {"bind": container_archive, "mode": "ro"},
            },
            purpose=f"import {volume_name}",
        )

        logger.info(
            f"Imported volume {volume_name}",
            extra={"volume": volume_name, "archive": archive_path.name},
        )
        return created

    def volume_exists(self, volume_name: str) -> bool:
        try:
            self.client.volumes.get(volume_name)
            return True
        except NotFound:
            return False
        except DockerException as e:
            raise VolumeTransferError(f"Cannot inspect volume {volume_name}: {e}")

    def create_volume(self, volume_name: str, project: Optional[str] = None):
        labels: Dict[str, str] = {}
        if project:
            labels[DOCKER_COMPOSE_PROJECT_LABEL] = project
            prefix = f"{project}{VOLUME_PREFIX_SEPARATOR}"
            if volume_name.startswith(prefix) and len(volume_name) > len(prefix):
                labels[DOCKER_COMPOSE_VOLUME_LABEL] = volume_name[len(prefix):]
        try:
            self.client.volumes.create(name=volume_name, labels=labels or None)
        except DockerException as e:
            raise VolumeTransferError(f"Failed to create volume {volume_name}: {e}")

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    def _require_volume(self, volume_name: str):
        if not self.volume_exists(volume_name):
            raise VolumeTransferError(f"Volume not found: {volume_name}")

    def _ensure_image(self):
        if self._image_ready:
            return
        try:
            self.client.images.get(self.image)
        except ImageNotFound:
            logger.info(f"Pulling helper image {self.image}")
            try:
                self.client.images.pull(self.image)
            except DockerException as e:
                raise VolumeTransferError(f"Cannot pull helper image {self.image}: {e}")
        except DockerException as e:
            raise VolumeTransferError(f"Cannot inspect helper image {self.image}: {e}")
        self._image_ready = True

    def _run_helper(self, command: List[str], volumes: Dict[str, Dict[str, Any]], purpose: str) -> str:
        """Run the helper container to completion; raise VolumeTransferError on failure."""
        logger.debug(f"Helper container ({purpose}): {' '.join(command)}")
        try:
            output = self.client.containers.run(
                self.image,
                command,
                volumes=volumes,
                network_mode="none",
                read_only=True,
                cap_drop=["ALL"],
                cap_add=HELPER_CAPABILITIES,
                security_opt=["no-new-privileges"],
                labels={HELPER_LABEL: "true"},
                remove=True,
                stdout=True,
                stderr=True,
            )
        except ContainerError as e:
            stderr = e.stderr.decode(errors="ignore") if isinstance(e.stderr, bytes) else str(e.stderr or "")
            raise VolumeTransferError(
                f"Helper container failed to {purpose} (exit {e.exit_status}): {stderr.strip()}"
            )
        except (APIError, DockerException) as e:
            raise VolumeTransferError(f"Helper container could not {purpose}: {e}")

        if isinstance(output, bytes):
            return output.decode(errors="ignore")
        return str(output or "")
