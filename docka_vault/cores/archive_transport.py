################################################################################
# DOCKA-VAULT
#
# @file:        archive_transport.py
# @module:      docka_vault.cores.archive_transport
# @description: Packs project trees into tar.gz archives and unpacks them safely.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Archives carry one root entry named after the project directory
# - Writes go to <archive>.part and are renamed on success
# - Extraction refuses members escaping the destination root
################################################################################

"""
Archive transport for project trees.

``pack()`` stores ``<project>/...`` so ``unpack()`` recreates the project
below any destination root, independent of where it was backed up from.

Semantics:
  - regular files and directories keep their mode bits and mtimes
  - symlinks are stored as links (never followed); on extraction a link is
    only created when its target resolves inside the destination root
  - device nodes, FIFOs and sockets are skipped
  - owner/group are restored only when running as root
"""

from __future__ import annotations

import os
import tarfile
from pathlib import Path
from typing import Iterable, Optional

from ..exceptions import ArchiveError
from ..helpers.logging import get_logger

logger = get_logger(__name__)


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def pack(source_dir: Path, archive_path: Path, exclude: Iterable[Path] = ()) -> Path:
    """
    Create ``archive_path`` (tar.gz) from ``source_dir``.

    Args:
        source_dir: Project directory; becomes the single root entry
        archive_path: Target file
        exclude: Paths (files or directories) left out of the archive,
                 typically the backup output directory when it lives
                 inside the tree

    Returns:
        archive_path

    Raises:
        ArchiveError: Source missing or archive could not be written
    """
    source_dir = Path(source_dir)
    archive_path = Path(archive_path)
    if not source_dir.is_dir():
        raise ArchiveError(f"Source directory not found: {source_dir}")

    source_resolved = source_dir.resolve()
    part_path = archive_path.with_name(archive_path.name + ".part")
    excluded = [Path(p).resolve() for p in exclude]
    excluded.extend([archive_path.resolve(), part_path.resolve()])
    root_name = source_resolved.name

    def _filter(info: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
        relative = Path(info.name).relative_to(root_name) if info.name != root_name else Path()
        on_disk = source_resolved / relative
        if any(on_disk == ex or _is_within(on_disk, ex) for ex in excluded):
            logger.debug(f"Excluding {on_disk} from archive")
            return None
        if not (info.isreg() or info.isdir() or info.issym() or info.islnk()):
            logger.debug(f"Skipping special file {on_disk}")
            return None
        return info

    try:
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(part_path, "w:gz") as tar:
            tar.add(str(source_resolved), arcname=root_name, recursive=True, filter=_filter)
        os.replace(part_path, archive_path)
    except (OSError, tarfile.TarError) as e:
        if part_path.exists():
            part_path.unlink()
        raise ArchiveError(f"Failed to pack {source_dir} into {archive_path}: {e}")

    logger.debug(
        f"Packed {source_dir} -> {archive_path}",
        extra={"archive": archive_path.name, "size_bytes": archive_path.stat().st_size},
    )
    return archive_path


def _root_name(members) -> Optional[str]:
    """Single top-level entry name of the members (None if not exactly one)."""
    roots = {Path(m.name).parts[0] for m in members if m.name not in ("", ".")}
    return roots.pop() if len(roots) == 1 else None


def _safe_members(members, destination: Path):
    for member in members:
        target = (destination / member.name).resolve()
        if Path(member.name).is_absolute() or not _is_within(target, destination):
            raise ArchiveError(f"Archive member escapes destination: {member.name}")
        if member.issym():
            link_target = (target.parent / member.linkname).resolve()
            if not _is_within(link_target, destination):
                logger.warning(f"Skipping symlink pointing outside destination: {member.name}")
                continue
        elif member.islnk():
            link_target = (destination / member.linkname).resolve()
            if not _is_within(link_target, destination):
                logger.warning(f"Skipping hardlink pointing outside destination: {member.name}")
                continue
        elif not (member.isreg() or member.isdir()):
            logger.debug(f"Skipping special member {member.name}")
            continue
        yield member


def unpack(archive_path: Path, destination_root: Path) -> Path:
    """
    Extract ``archive_path`` below ``destination_root``.

    Existing files are overwritten; files not present in the archive
    are left alone.

    Returns:
        Path of the extracted root entry (``destination_root/<project>``)

    Raises:
        ArchiveError: Archive unreadable, unsafe, or extraction failed
    """
    archive_path = Path(archive_path)
    destination_root = Path(destination_root)
    if not archive_path.is_file():
        raise ArchiveError(f"Archive not found: {archive_path}")

    try:
        with tarfile.open(archive_path, "r:*") as tar:
            all_members = tar.getmembers()
            root_name = _root_name(all_members)
            if root_name is None:
                raise ArchiveError(f"Archive {archive_path} does not have a single root entry")

            destination_root.mkdir(parents=True, exist_ok=True)
            destination = destination_root.resolve()
            members = list(_safe_members(all_members, destination))
            extract_kwargs = {"numeric_owner": True}
            if hasattr(tarfile, "data_filter"):
                # fully_trusted keeps mode bits; _safe_members already enforced containment
                extract_kwargs["filter"] = "fully_trusted"
            tar.extractall(path=str(destination), members=members, **extract_kwargs)
    except ArchiveError:
        raise
    except (OSError, tarfile.TarError) as e:
        raise ArchiveError(f"Failed to unpack {archive_path} into {destination_root}: {e}")

    logger.debug(f"Unpacked {archive_path} -> {destination_root / root_name}")
    return destination_root / root_name
