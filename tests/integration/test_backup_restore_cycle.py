"""
Integration tests for the backup/restore cycle.

These tests need a running Docker daemon with the compose plugin and
pull small alpine images. They are skipped when Docker is unavailable.
"""

import configparser
import shutil
import subprocess
import uuid
import pytest

from docka_vault.cores.backup_manager import BackupManager
from docka_vault.cores.backup_selector import BackupSelector
from docka_vault.cores.restore_manager import RestoreManager
from docka_vault.helpers.config import Config
from docka_vault.types import ProjectState


def docker_available() -> bool:
    """Docker daemon and compose plugin reachable."""
    if shutil.which("docker") is None:
        return False
    try:
        for cmd in (["docker", "version"], ["docker", "compose", "version"]):
            if subprocess.run(cmd, capture_output=True, timeout=10).returncode != 0:
                return False
    except (OSError, subprocess.TimeoutExpired):
        return False
    return True


pytestmark = [
    pytest.mark.integration,
    pytest.mark.requires_docker,
    pytest.mark.skipif(not docker_available(), reason="Docker daemon not available"),
]

COMPOSE_TEMPLATE = """\
services:
  app:
    image: alpine:3.20
    command: ["sleep", "3600"]
    volumes:
      - data:/data
volumes:
  data:
"""


def docker(*args, check=True):
    return subprocess.run(["docker", *args], capture_output=True, text=True, check=check)


def compose(project_dir, name, *args):
    return docker(
        "compose", "--project-directory", str(project_dir),
        "-f", str(project_dir / "docker-compose.yml"),
        "--project-name", name, *args,
    )


def read_volume(volume, path):
    return docker("run", "--rm", "-v", f"{volume}:/data:ro", "alpine:3.20", "cat", f"/data/{path}").stdout


@pytest.fixture
def project(tmp_dirs):
    name = f"dvit{uuid.uuid4().hex[:8]}"
    project_dir = tmp_dirs["source"] / name
    project_dir.mkdir()
    (project_dir / "docker-compose.yml").write_text(COMPOSE_TEMPLATE)
    (project_dir / ".env").write_text("MODE=test\n")
    (project_dir / "config").mkdir()
    (project_dir / "config" / "settings.ini").write_text("[app]\nkey=value\n")

    compose(project_dir, name, "up", "-d")
    volume = f"{name}_data"
    docker("run", "--rm", "-v", f"{volume}:/data", "alpine:3.20", "sh", "-c", "echo payload > /data/file.txt")

    yield name, project_dir, volume

    compose(project_dir, name, "down", "-v", "--remove-orphans")
    docker("volume", "rm", "-f", volume, check=False)


@pytest.fixture
def integration_config(tmp_path, tmp_dirs):
    parser = configparser.ConfigParser(interpolation=None)
    parser["paths"] = {
        "source_root": str(tmp_dirs["source"]),
        "backup_root": str(tmp_dirs["backup"]),
        "target_root": str(tmp_dirs["target"]),
    }
    parser["docker"] = {"helper_image": "alpine:3.20", "compose_timeout": "120"}
    parser["backup"] = {"min_free_space_gb": "0"}
    path = tmp_path / "integration.conf"
    with open(path, "w") as f:
        parser.write(f)
    return Config(path)


@pytest.mark.integration
class TestBackupRestoreCycle:
    def test_backup_then_restore_after_data_loss(self, integration_config, project):
        name, project_dir, volume = project

        outcome = BackupManager(integration_config).run()

        assert outcome.get(name).state == ProjectState.RESTARTED
        assert not outcome.has_failures
        backup_set = outcome.backup_set
        assert (backup_set.volumes_dir / f"{volume}.tar.gz").is_file()
        assert (backup_set.manifest_path).is_file()
        running = compose(project_dir, name, "ps", "-q").stdout.strip()
        assert running

        # simulate data loss
        compose(project_dir, name, "down", "-v")
        assert docker("volume", "inspect", volume, check=False).returncode != 0

        selected = BackupSelector(integration_config.backup_root).select()
        assert selected.backup_id == backup_set.backup_id

        restore_outcome = RestoreManager(integration_config).restore(selected)

        restored = integration_config.target_root / name
        assert restore_outcome.get(name).state == ProjectState.STARTED
        assert (restored / "docker-compose.yml").is_file()
        assert (restored / ".env").read_text() == "MODE=test\n"
        assert (restored / "config" / "settings.ini").is_file()
        assert read_volume(volume, "file.txt").strip() == "payload"

        compose(restored, name, "down", "--remove-orphans")
