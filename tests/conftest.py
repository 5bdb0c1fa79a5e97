"""
Shared pytest fixtures for docka-vault tests.

Provides common fixtures for mocking, temporary files, and test data.
"""

import configparser
import pytest
from pathlib import Path
from unittest.mock import Mock, MagicMock, patch
from typer.testing import CliRunner


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external dependencies")
    config.addinivalue_line("markers", "integration: tests touching real Docker or the filesystem at scale")
    config.addinivalue_line("markers", "requires_docker: needs a reachable Docker daemon")


@pytest.fixture(autouse=True)
def reset_safe_exit():
    """Reset the SafeExitManager singleton around every test."""
    from docka_vault.cores.safe_exit_manager import SafeExitManager

    SafeExitManager.reset_instance()
    yield
    SafeExitManager.reset_instance()


@pytest.fixture
def cli_runner():
    """Typer CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def tmp_dirs(tmp_path):
    """Source, backup and target roots below tmp_path."""
    dirs = {
        "source": tmp_path / "docker",
        "backup": tmp_path / "backup",
        "target": tmp_path / "restore",
    }
    dirs["source"].mkdir()
    dirs["backup"].mkdir()
    return dirs


@pytest.fixture
def tmp_config(tmp_path, tmp_dirs):
    """Create a temporary docka-vault INI config file."""
    parser = configparser.ConfigParser(interpolation=None)
    parser["paths"] = {
        "source_root": str(tmp_dirs["source"]),
        "backup_root": str(tmp_dirs["backup"]),
        "target_root": str(tmp_dirs["target"]),
    }
    parser["docker"] = {"helper_image": "alpine:3.20", "compose_timeout": "60"}
    parser["backup"] = {"min_free_space_gb": "0"}
    parser["logging"] = {
        "level": "INFO",
        "file": str(tmp_path / "logs" / "docka-vault.log"),
        "max_size_mb": "1",
        "backup_count": "1",
    }

    config_file = tmp_path / "docka-vault.conf"
    with open(config_file, "w") as f:
        parser.write(f)
    return config_file


@pytest.fixture
def config(tmp_config):
    """Config instance backed by tmp_config."""
    from docka_vault.helpers.config import Config

    return Config(tmp_config)


@pytest.fixture
def mock_ctx(config):
    """Create mock Typer context with config.

    Use this for direct function tests instead of cli_runner.invoke().
    """
    ctx = MagicMock()
    ctx.obj = {"config": config}
    return ctx


@pytest.fixture
def mock_docker_client():
    """Mock Docker client for volume and container operations."""
    mock_client = MagicMock()
    mock_client.ping.return_value = True
    mock_client.volumes.list.return_value = []
    mock_client.containers.run.return_value = b""

    with patch("docker.from_env", return_value=mock_client):
        yield mock_client


@pytest.fixture
def project_factory(tmp_dirs):
    """Factory fixture creating project directories below the source root.

    Usage:
        def test_something(project_factory):
            path = project_factory("app", compose="compose.yaml", env=True)
    """

    def _make_project(
        name: str = "app",
        compose: str = "docker-compose.yml",
        env: bool = True,
        files: dict = None,
    ) -> Path:
        path = tmp_dirs["source"] / name
        path.mkdir(parents=True)
        if compose:
            (path / compose).write_text(f"services:\n  {name}:\n    image: nginx:alpine\n")
        if env:
            (path / ".env").write_text(f"PROJECT={name}\n")
        for rel, content in (files or {"data/readme.txt": f"{name} data\n"}).items():
            target = path / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return path

    return _make_project
