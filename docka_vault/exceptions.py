################################################################################
# DOCKA-VAULT
#
# @file:        exceptions.py
# @module:      docka_vault.exceptions
# @description: Exception hierarchy separating fatal from per-project failures.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
################################################################################

"""
Exception hierarchy for docka-vault.

FatalError subclasses abort the whole run (non-zero exit, rollback of
already-stopped projects). The remaining errors are recoverable: the
orchestrators catch them per project or per volume, record them in the
RunOutcome and continue.
"""

from typing import Any, Dict, Optional


class DockaVaultError(Exception):
    """Base exception carrying an exit code and optional details."""

    exit_code = 1

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---- Fatal ----

class FatalError(DockaVaultError):
    """Aborts the run."""


class PlatformUnavailableError(FatalError):
    """Docker daemon (or docker compose) cannot be reached."""


class PreconditionError(FatalError):
    """Required directories are missing, uncreatable or not writable."""


class InvalidBackupError(FatalError):
    """An explicitly given backup path is not a valid backup set."""


class NoBackupFoundError(FatalError):
    """Auto-selection found nothing to restore."""


# ---- Recoverable ----

class ArchiveError(DockaVaultError):
    """Packing or unpacking a project tree failed."""


class VolumeTransferError(DockaVaultError):
    """Exporting or importing a volume failed."""
