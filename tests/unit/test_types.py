"""
Unit tests for shared data models (BackupSet, RunOutcome).
"""

import pytest
from datetime import datetime
from pathlib import Path

from docka_vault.types import (
    BackupSet,
    ProjectState,
    RunOutcome,
    parse_backup_id,
)


@pytest.mark.unit
class TestParseBackupId:
    """Tests for backup id timestamp parsing."""

    def test_full_id(self):
        assert parse_backup_id("docker-backup-2025-05-07_13-45-01") == datetime(2025, 5, 7, 13, 45, 1)

    def test_date_only_id(self):
        assert parse_backup_id("docker-backup-2025-04-30") == datetime(2025, 4, 30)

    @pytest.mark.parametrize("name", [
        "backup-2025-05-07",
        "docker-backup-2025-13-01",
        "docker-backup-latest",
        "docker-backup-2025-05-07_13-45",
    ])
    def test_invalid_ids(self, name):
        assert parse_backup_id(name) is None


@pytest.mark.unit
class TestBackupSet:
    """Tests for BackupSet structure validation."""

    def test_valid_with_empty_subdirs(self, tmp_path):
        path = tmp_path / "docker-backup-2025-05-07"
        for sub in ("projects", "compose", "volumes"):
            (path / sub).mkdir(parents=True)

        backup_set = BackupSet.from_path(path)

        assert backup_set.is_valid()
        assert backup_set.timestamp == datetime(2025, 5, 7)
        assert backup_set.manifest_path == path / "manifest.json"

    def test_missing_volumes_dir(self, tmp_path):
        path = tmp_path / "docker-backup-2025-05-07"
        (path / "projects").mkdir(parents=True)
        (path / "compose").mkdir()

        backup_set = BackupSet.from_path(path)

        assert not backup_set.is_valid()
        assert backup_set.missing_parts() == ["volumes"]

    def test_nonexistent_path(self, tmp_path):
        assert not BackupSet.from_path(tmp_path / "nope").is_valid()


@pytest.mark.unit
class TestRunOutcome:
    """Tests for per-run outcome tracking and restart scoping."""

    def test_mark_stopped_sets_flag(self):
        outcome = RunOutcome("backup")
        outcome.mark_stopped("app")

        entry = outcome.get("app")
        assert entry.state == ProjectState.STOPPED
        assert entry.stopped_by_run is True
        assert outcome.restart_candidates() == ["app"]

    def test_stop_failed_is_never_a_restart_candidate(self):
        outcome = RunOutcome("backup")
        outcome.mark_stop_failed("app", "boom")
        outcome.mark_archived("app")

        entry = outcome.get("app")
        assert entry.state == ProjectState.STOP_FAILED
        assert entry.stopped_by_run is False
        assert outcome.restart_candidates() == []
        assert outcome.has_failures

    def test_restart_candidates_keep_stop_order(self):
        outcome = RunOutcome("backup")
        for name in ("b", "a", "c"):
            outcome.mark_stopped(name)
        outcome.mark_restarted("a")

        assert outcome.restart_candidates() == ["b", "c"]

    def test_archive_failure_keeps_project_restartable(self):
        outcome = RunOutcome("backup")
        outcome.mark_stopped("app")
        outcome.mark_archive_failed("app", "disk full")

        assert outcome.get("app").state == ProjectState.ARCHIVE_FAILED
        assert outcome.restart_candidates() == ["app"]

    def test_volume_failure_marks_project_failed(self):
        outcome = RunOutcome("backup")
        outcome.mark_stopped("app")
        outcome.mark_archived("app")
        outcome.record_volume("app", "app_db", True)
        outcome.record_volume("app", "app_cache", False, "helper failed")

        assert outcome.failed_projects == ["app"]
        assert outcome.get("app").errors == ["helper failed"]

    def test_clean_run_has_no_failures(self):
        outcome = RunOutcome("backup")
        outcome.mark_stopped("app")
        outcome.mark_archived("app")
        outcome.record_volume("app", "app_db", True)
        outcome.mark_restarted("app")

        assert not outcome.has_failures
        assert outcome.get("app").state == ProjectState.RESTARTED

    def test_restore_failed_not_overwritten_by_restored(self):
        outcome = RunOutcome("restore")
        outcome.mark_restore_failed("app", "unpack failed")
        outcome.mark_restored("app")

        assert outcome.get("app").state == ProjectState.RESTORE_FAILED

    def test_fatal_error_counts_as_failure(self):
        outcome = RunOutcome("backup")
        outcome.fatal_error = "Docker gone"
        assert outcome.has_failures

    def test_to_dict(self):
        outcome = RunOutcome("backup")
        outcome.backup_set = BackupSet.from_path(Path("/backup/docker-backup-2025-05-07"))
        outcome.mark_stopped("app")
        outcome.finish()

        data = outcome.to_dict()

        assert data["operation"] == "backup"
        assert data["backup_set"] == "/backup/docker-backup-2025-05-07"
        assert data["projects"][0]["name"] == "app"
        assert data["projects"][0]["state"] == "stopped"
        assert data["finished_at"] is not None

    def test_track_is_idempotent(self):
        outcome = RunOutcome("backup")
        first = outcome.track("app")
        second = outcome.track("app")

        assert first is second
        assert len(outcome) == 1
        assert "app" in outcome
