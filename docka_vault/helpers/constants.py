################################################################################
# DOCKA-VAULT
#
# @file:        constants.py
# @module:      docka_vault.helpers.constants
# @description: Shared constants for paths, labels, archive naming and timeouts.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
################################################################################

"""
Constants used throughout the docka-vault application.

This module defines all constant values used across different modules
to ensure consistency and ease of maintenance.
"""

from pathlib import Path

# Version information
VERSION = "1.0.0"

# Default paths
DEFAULT_CONFIG_PATHS = {
    'root': Path('/etc/docka-vault.conf'),
    'user': Path.home() / '.config' / 'docka-vault' / 'config.conf'
}

DEFAULT_SOURCE_ROOT = '/docker'
DEFAULT_BACKUP_ROOT = '/mnt/backup'
DEFAULT_TARGET_ROOT = '/docker'

# Docker labels
DOCKER_COMPOSE_PROJECT_LABEL = 'com.docker.compose.project'

# Compose file probing order (first match wins)
COMPOSE_FILE_NAMES = (
    'docker-compose.yml',
    'docker-compose.yaml',
    'compose.yml',
    'compose.yaml',
)
CANONICAL_COMPOSE_FILE = 'docker-compose.yml'
ENV_FILE_NAME = '.env'

# Backup set layout
BACKUP_SET_PREFIX = 'docker-backup-'
BACKUP_ID_FORMAT = '%Y-%m-%d_%H-%M-%S'
BACKUP_SET_PATTERN = r'^docker-backup-(?P<date>\d{4}-\d{2}-\d{2})(?:_(?P<time>\d{2}-\d{2}-\d{2}))?$'
PROJECTS_BACKUP_DIR = 'projects'
COMPOSE_BACKUP_DIR = 'compose'
VOLUME_BACKUP_DIR = 'volumes'
MANIFEST_FILE = 'manifest.json'
MANIFEST_FORMAT_VERSION = 1

# Artifact naming
PROJECT_ARCHIVE_SUFFIX = '-project.tar.gz'
ENV_ARCHIVE_SUFFIX = '-env.env'
VOLUME_ARCHIVE_SUFFIX = '.tar.gz'
VOLUME_PREFIX_SEPARATOR = '_'

# Helper container used to move volume data
DEFAULT_HELPER_IMAGE = 'alpine:3.20'
HELPER_DATA_MOUNT = '/data'
HELPER_ARCHIVE_MOUNT = '/archive'
HELPER_CAPABILITIES = ['CHOWN', 'DAC_OVERRIDE', 'DAC_READ_SEARCH', 'FOWNER', 'FSETID']
HELPER_LABEL = 'io.docka-vault.helper'
DOCKER_COMPOSE_VOLUME_LABEL = 'com.docker.compose.volume'

# Timeouts (in seconds)
COMPOSE_TIMEOUT = 300
DOCKER_PING_TIMEOUT = 10

# Disk space
DEFAULT_MIN_FREE_SPACE_GB = 1

# Logging
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
