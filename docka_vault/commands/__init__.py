"""CLI command modules for docka-vault."""

from . import backup_commands, restore_commands, config_commands

__all__ = [
    'backup_commands',
    'restore_commands',
    'config_commands',
]
