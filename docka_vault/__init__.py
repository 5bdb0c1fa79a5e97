################################################################################
# DOCKA-VAULT
#
# @file:        __init__.py
# @module:      docka_vault
# @description: Exposes version, logging, data types and core managers for package consumers.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Sets __version__ from helpers.constants.VERSION
# - Re-exports Config, BackupManager, RestoreManager and the run types
################################################################################

"""
docka-vault: cold backup and restore for Docker Compose projects.

Backs up every project directory below a root together with its compose
file, env file and named volumes, and restores them into a target root.
"""

from .helpers.constants import VERSION

__version__ = VERSION
__author__ = "docka-vault Development Team"

from .helpers.logging import (
    get_logger,
    log_manager,
    setup_logging,
    StructuredFormatter,
    Colors,
)

from .types import (
    Project,
    VolumeInfo,
    BackupSet,
    ProjectState,
    ProjectOutcome,
    RunOutcome,
)

from .helpers.config import Config
from .cores.backup_manager import BackupManager
from .cores.restore_manager import RestoreManager
from .cores.backup_selector import BackupSelector

__all__ = [
    "VERSION",
    "Project",
    "VolumeInfo",
    "BackupSet",
    "ProjectState",
    "ProjectOutcome",
    "RunOutcome",
    "Config",
    "BackupManager",
    "RestoreManager",
    "BackupSelector",
    "get_logger",
    "log_manager",
    "setup_logging",
    "StructuredFormatter",
    "Colors",
]
