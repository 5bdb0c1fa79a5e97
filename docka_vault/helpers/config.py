################################################################################
# DOCKA-VAULT
#
# @file:        config.py
# @module:      docka_vault.helpers.config
# @description: Manages configuration discovery, defaults, validation, and persistence.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Searches DEFAULT_CONFIG_PATHS before creating a fresh config file
# - Offers typed getters with sane defaults and environment overrides
# - validate() reports problems instead of raising
################################################################################

"""
Configuration management for docka-vault.

Handles reading, writing, and validating configuration files,
and creates default configurations when needed.
"""

import configparser
import os
import tempfile
from pathlib import Path
from typing import Optional, Dict, Any, List

from .constants import (
    DEFAULT_CONFIG_PATHS,
    DEFAULT_SOURCE_ROOT,
    DEFAULT_BACKUP_ROOT,
    DEFAULT_TARGET_ROOT,
    DEFAULT_HELPER_IMAGE,
    DEFAULT_MIN_FREE_SPACE_GB,
    COMPOSE_TIMEOUT,
)
from .logging import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "DOCKA_VAULT"


def _get_defaults() -> Dict[str, Dict[str, Any]]:
    """Default configuration values."""
    return {
        "paths": {
            "source_root": DEFAULT_SOURCE_ROOT,
            "backup_root": DEFAULT_BACKUP_ROOT,
            "target_root": DEFAULT_TARGET_ROOT,
        },
        "docker": {
            "helper_image": DEFAULT_HELPER_IMAGE,
            "compose_timeout": COMPOSE_TIMEOUT,
        },
        "backup": {
            "min_free_space_gb": DEFAULT_MIN_FREE_SPACE_GB,
        },
        "logging": {
            "level": "INFO",
            "file": "/var/log/docka-vault.log",
            "max_size_mb": 50,
            "backup_count": 5,
        },
    }


class Config:
    """
    Manages application configuration.

    Loads configuration from INI files, provides defaults and validation.

    Attributes:
        config_file: Path to the configuration file
        _config: ConfigParser instance
        _defaults: Default configuration values
    """

    def __init__(self, config_path: Optional[Path] = None, create: bool = True):
        """
        Initialize configuration.

        Args:
            config_path: Optional path to configuration file.
                         If not provided, searches standard locations.
            create: Write a default file if none exists
        """
        self._defaults = _get_defaults()
        # Interpolation off: values are paths and image names, % must stay literal
        self._config = configparser.ConfigParser(interpolation=None)

        self.config_file = self._find_config_file(config_path)

        if not self.config_file.exists() and create:
            try:
                logger.info(f"Creating default configuration at {self.config_file}")
                create_default_config(self.config_file)
            except OSError as e:
                logger.warning(f"Could not create configuration file, using defaults: {e}")

        if self.config_file.exists():
            self._load_config()

    def _find_config_file(self, config_path: Optional[Path] = None) -> Path:
        """Find or determine configuration file path."""
        if config_path:
            return Path(config_path).expanduser()

        search_order = [DEFAULT_CONFIG_PATHS["user"], DEFAULT_CONFIG_PATHS["root"]]

        for location in search_order:
            p = Path(location).expanduser()
            if p.exists():
                if os.access(p, os.R_OK):
                    logger.debug(f"Using config file: {p}")
                    return p
                logger.warning(f"Config file exists but not readable: {p}")

        path = Path(
            DEFAULT_CONFIG_PATHS["root"]
            if os.geteuid() == 0
            else DEFAULT_CONFIG_PATHS["user"]
        ).expanduser()
        logger.debug(f"Using default config path: {path}")
        return path

    def _load_config(self):
        """Load configuration from file with UTF-8 encoding."""
        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                self._config.read_file(f)
            logger.debug(f"Configuration loaded from {self.config_file}")
        except UnicodeDecodeError as e:
            logger.error(f"Config file encoding error (expected UTF-8): {e}")
            raise
        except configparser.Error as e:
            logger.error(f"Failed to parse configuration {self.config_file}: {e}")
            raise

    def get(self, section: str, option: str, fallback: Any = None) -> Any:
        """
        Get configuration value with environment override support.

        DOCKA_VAULT_<SECTION>_<OPTION> wins over the file, the file wins
        over built-in defaults.
        """
        env_var = f"{ENV_PREFIX}_{section.upper()}_{option.upper()}"
        env_value = os.environ.get(env_var)
        if env_value:
            logger.debug(f"Using environment override for {section}.{option}")
            return env_value

        try:
            return self._config.get(section, option)
        except (configparser.NoSectionError, configparser.NoOptionError):
            if section in self._defaults and option in self._defaults[section]:
                return self._defaults[section][option]
            return fallback

    def getint(self, section: str, option: str, fallback: int = 0) -> int:
        """Get integer configuration value."""
        value = self.get(section, option, fallback)
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                logger.warning(f"Invalid integer value for {section}.{option}: {value}")
                return fallback
        return int(value) if value is not None else fallback

    def getpath(self, section: str, option: str, fallback: Optional[str] = None) -> Optional[Path]:
        """Get a path value with ~ expanded."""
        value = self.get(section, option, fallback)
        if not value:
            return None
        return Path(str(value)).expanduser()

    def as_dict(self) -> Dict[str, Dict[str, str]]:
        """Effective configuration (defaults, file, environment) as strings."""
        effective: Dict[str, Dict[str, str]] = {}
        sections = list(self._defaults.keys()) + [
            s for s in self._config.sections() if s not in self._defaults
        ]
        for section in sections:
            options = list(self._defaults.get(section, {}).keys())
            if self._config.has_section(section):
                options += [o for o in self._config.options(section) if o not in options]
            effective[section] = {o: str(self.get(section, o)) for o in options}
        return effective

    def validate(self) -> List[str]:
        """Validate configuration ranges & paths."""
        errors = []

        source_root = self.source_root
        if not source_root.is_absolute():
            errors.append(f"source_root must be absolute: {source_root}")

        backup_root = self.backup_root
        if not backup_root.is_absolute():
            errors.append(f"backup_root must be absolute: {backup_root}")
        elif backup_root.exists() and not os.access(backup_root, os.W_OK):
            errors.append(f"No write access to backup root: {backup_root}")

        if not self.target_root.is_absolute():
            errors.append(f"target_root must be absolute: {self.target_root}")

        if not self.helper_image:
            errors.append("docker.helper_image must not be empty")

        compose_timeout = self.getint("docker", "compose_timeout")
        if not 0 < compose_timeout <= 3600:
            errors.append(f"compose_timeout out of range (1-3600): {compose_timeout}")

        min_free = self.getint("backup", "min_free_space_gb")
        if min_free < 0:
            errors.append(f"min_free_space_gb must not be negative: {min_free}")

        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        log_level = str(self.get("logging", "level", "INFO")).upper()
        if log_level not in valid_levels:
            errors.append(
                f"Invalid log level: {log_level}. Valid: {', '.join(valid_levels)}"
            )

        return errors

    @property
    def source_root(self) -> Path:
        return self.getpath("paths", "source_root", DEFAULT_SOURCE_ROOT)

    @property
    def backup_root(self) -> Path:
        return self.getpath("paths", "backup_root", DEFAULT_BACKUP_ROOT)

    @property
    def target_root(self) -> Path:
        return self.getpath("paths", "target_root", DEFAULT_TARGET_ROOT)

    @property
    def helper_image(self) -> str:
        return str(self.get("docker", "helper_image", DEFAULT_HELPER_IMAGE)).strip()

    @property
    def compose_timeout(self) -> int:
        return self.getint("docker", "compose_timeout", COMPOSE_TIMEOUT)

    @property
    def min_free_space_gb(self) -> int:
        return self.getint("backup", "min_free_space_gb", DEFAULT_MIN_FREE_SPACE_GB)

    @property
    def log_file(self) -> Optional[Path]:
        return self.getpath("logging", "file")


def create_default_config(path: Optional[Path] = None, force: bool = False) -> Path:
    """
    Create default configuration file.

    Args:
        path: Path where to create config file
        force: Overwrite existing file if True

    Returns:
        Path of the configuration file
    """
    if path is None:
        path = Path(
            DEFAULT_CONFIG_PATHS["root"]
            if os.geteuid() == 0
            else DEFAULT_CONFIG_PATHS["user"]
        )
    path = Path(path).expanduser()

    if path.exists() and not force:
        logger.warning(f"Configuration file already exists at {path}")
        return path

    path.parent.mkdir(parents=True, exist_ok=True, mode=0o755)

    config = configparser.ConfigParser(interpolation=None)
    for section, options in _get_defaults().items():
        config.add_section(section)
        for option, value in options.items():
            config.set(section, option, str(value))

    temp_fd, temp_path = tempfile.mkstemp(
        dir=path.parent, prefix=".docka-vault-config-", suffix=".tmp"
    )
    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
            f.write("# docka-vault Configuration File\n")
            f.write("# ==============================\n")
            f.write("# Generated automatically\n")
            f.write("# Edit as needed\n")
            f.write("#\n")
            f.write("# Environment variable overrides:\n")
            f.write(f"#   {ENV_PREFIX}_<SECTION>_<OPTION> - Override any option\n")
            f.write(f"#   e.g. {ENV_PREFIX}_PATHS_BACKUP_ROOT=/srv/backup\n\n")
            config.write(f)
        os.replace(temp_path, path)
        os.chmod(path, 0o644)
        logger.info(f"Default configuration created at {path}")
    except OSError as e:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        logger.error(f"Failed to create default config: {e}")
        raise
    return path
