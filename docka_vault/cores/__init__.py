"""Core business logic modules for docka-vault."""

from .backup_manager import BackupManager
from .restore_manager import RestoreManager
from .backup_selector import BackupSelector
from .project_discovery import ProjectDiscovery
from .lifecycle_controller import LifecycleController
from .volume_mover import VolumeDataMover
from .safe_exit_manager import SafeExitManager

__all__ = [
    'BackupManager',
    'RestoreManager',
    'BackupSelector',
    'ProjectDiscovery',
    'LifecycleController',
    'VolumeDataMover',
    'SafeExitManager',
]
