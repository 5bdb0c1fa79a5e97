"""
Unit tests for manifest.json models and the file name fallback index.
"""

import json
import pytest
from pathlib import Path

from pydantic import ValidationError

from docka_vault.exceptions import InvalidBackupError
from docka_vault.manifest import (
    BackupManifest,
    ProjectEntry,
    VolumeEntry,
    infer_manifest,
    load_or_infer,
)
from docka_vault.types import BackupSet


@pytest.fixture
def backup_set(tmp_path) -> BackupSet:
    path = tmp_path / "docker-backup-2025-05-07"
    for sub in ("projects", "compose", "volumes"):
        (path / sub).mkdir(parents=True)
    return BackupSet.from_path(path)


def touch(path: Path, content: str = "x"):
    path.write_text(content)


@pytest.mark.unit
class TestModels:
    """Tests for the pydantic models."""

    def test_save_and_load(self, backup_set):
        manifest = BackupManifest(
            backup_id=backup_set.backup_id,
            source_root="/srv/docker",
            completed=True,
            projects=[
                ProjectEntry(
                    name="app",
                    tree_archive="projects/app-project.tar.gz",
                    compose_archive="compose/app-compose.yaml",
                    compose_basename="compose.yaml",
                    volumes=[VolumeEntry(name="app_db", archive="volumes/app_db.tar.gz")],
                    state="restarted",
                )
            ],
        )

        manifest.save(backup_set.manifest_path)
        loaded = BackupManifest.load(backup_set.manifest_path)

        assert loaded.completed is True
        assert loaded.get_project("app").volumes[0].name == "app_db"
        assert loaded.get_project("missing") is None
        assert not backup_set.manifest_path.with_name("manifest.json.tmp").exists()

    @pytest.mark.parametrize("path", ["/etc/passwd", "../outside.tar.gz", "projects/../../x"])
    def test_rejects_paths_outside_the_set(self, path):
        with pytest.raises(ValidationError):
            ProjectEntry(name="app", tree_archive=path)

    def test_rejects_newer_format(self):
        with pytest.raises(ValidationError):
            BackupManifest(backup_id="x", format_version=99)

    def test_load_garbage(self, tmp_path):
        path = tmp_path / "manifest.json"
        path.write_text("{not json")

        with pytest.raises(InvalidBackupError, match="Invalid manifest"):
            BackupManifest.load(path)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(InvalidBackupError, match="Cannot read manifest"):
            BackupManifest.load(tmp_path / "manifest.json")


@pytest.mark.unit
class TestInferManifest:
    """Tests for infer_manifest() on sets without manifest.json."""

    def test_indexes_all_artifact_kinds(self, backup_set):
        touch(backup_set.projects_dir / "app-project.tar.gz")
        touch(backup_set.compose_dir / "app-compose.yaml")
        touch(backup_set.compose_dir / "app-env.env")
        touch(backup_set.volumes_dir / "app_db.tar.gz")
        touch(backup_set.volumes_dir / "app_cache.tar.gz")

        manifest = infer_manifest(backup_set)

        assert manifest.completed is True
        app = manifest.get_project("app")
        assert app.tree_archive == "projects/app-project.tar.gz"
        assert app.compose_archive == "compose/app-compose.yaml"
        assert app.compose_basename == "compose.yaml"
        assert app.env_archive == "compose/app-env.env"
        assert [v.name for v in app.volumes] == ["app_cache", "app_db"]

    def test_longest_project_prefix_owns_volume(self, backup_set):
        touch(backup_set.projects_dir / "app-project.tar.gz")
        touch(backup_set.projects_dir / "app_db-project.tar.gz")
        touch(backup_set.volumes_dir / "app_db_data.tar.gz")
        touch(backup_set.volumes_dir / "app_cache.tar.gz")

        manifest = infer_manifest(backup_set)

        assert [v.name for v in manifest.get_project("app_db").volumes] == ["app_db_data"]
        assert [v.name for v in manifest.get_project("app").volumes] == ["app_cache"]

    def test_orphan_volume_skipped(self, backup_set):
        touch(backup_set.projects_dir / "app-project.tar.gz")
        touch(backup_set.volumes_dir / "other_data.tar.gz")

        manifest = infer_manifest(backup_set)

        assert manifest.get_project("app").volumes == []
        assert manifest.get_project("other") is None

    def test_compose_only_project(self, backup_set):
        touch(backup_set.compose_dir / "web-docker-compose.yml")

        web = infer_manifest(backup_set).get_project("web")

        assert web.tree_archive is None
        assert web.compose_basename == "docker-compose.yml"

    def test_date_suffixed_artifact_names(self, backup_set):
        touch(backup_set.projects_dir / "app-project-2025-05-07.tar.gz")
        touch(backup_set.compose_dir / "app-compose-2025-05-07.yml")
        touch(backup_set.compose_dir / "app-env-2025-05-07.env")
        touch(backup_set.volumes_dir / "app_app_data_2025-05-07.tar.gz")
        touch(backup_set.volumes_dir / "app_app_cache_2025-05-07_10-30-00.tar.gz")

        app = infer_manifest(backup_set).get_project("app")

        assert app.tree_archive == "projects/app-project-2025-05-07.tar.gz"
        assert app.compose_archive == "compose/app-compose-2025-05-07.yml"
        assert app.compose_basename == "docker-compose.yml"
        assert app.env_archive == "compose/app-env-2025-05-07.env"
        assert [(v.name, v.archive) for v in app.volumes] == [
            ("app_cache", "volumes/app_app_cache_2025-05-07_10-30-00.tar.gz"),
            ("app_data", "volumes/app_app_data_2025-05-07.tar.gz"),
        ]

    def test_date_suffixed_volume_without_name_skipped(self, backup_set):
        touch(backup_set.projects_dir / "app-project.tar.gz")
        touch(backup_set.volumes_dir / "app_2025-05-07.tar.gz")

        assert infer_manifest(backup_set).get_project("app").volumes == []

    def test_env_name_with_dashes(self, backup_set):
        touch(backup_set.compose_dir / "my-env-app-env.env")

        assert infer_manifest(backup_set).get_project("my-env-app").env_archive == (
            "compose/my-env-app-env.env"
        )

    def test_empty_set(self, backup_set):
        assert infer_manifest(backup_set).projects == []


@pytest.mark.unit
class TestLoadOrInfer:
    """Tests for load_or_infer()."""

    def test_prefers_manifest(self, backup_set):
        touch(backup_set.projects_dir / "fromname-project.tar.gz")
        BackupManifest(
            backup_id=backup_set.backup_id,
            completed=True,
            projects=[ProjectEntry(name="frommanifest")],
        ).save(backup_set.manifest_path)

        manifest = load_or_infer(backup_set)

        assert [p.name for p in manifest.projects] == ["frommanifest"]

    def test_incomplete_manifest_still_loaded(self, backup_set):
        backup_set.manifest_path.write_text(json.dumps({
            "backup_id": backup_set.backup_id,
            "completed": False,
            "fatal_error": "interrupted",
            "projects": [{"name": "app", "state": "archived"}],
        }))

        manifest = load_or_infer(backup_set)

        assert manifest.completed is False
        assert manifest.fatal_error == "interrupted"

    def test_falls_back_to_file_names(self, backup_set):
        touch(backup_set.projects_dir / "app-project.tar.gz")

        assert [p.name for p in load_or_infer(backup_set).projects] == ["app"]
