"""
Unit tests for the CLI entry point (__main__.py) and command modules.

Commands are invoked through CliRunner; the orchestrators are patched
so no Docker daemon is needed.
"""

import logging
import pytest
from unittest.mock import patch

from docka_vault.__main__ import app
from docka_vault.exceptions import NoBackupFoundError, PlatformUnavailableError
from docka_vault.helpers.logging import ROOT_LOGGER_NAME
from docka_vault.types import BackupSet, RunOutcome


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True


def make_set(root, name, valid=True):
    path = root / name
    for sub in ("projects", "compose", "volumes") if valid else ("projects",):
        (path / sub).mkdir(parents=True)
    return path


def invoke(cli_runner, tmp_config, *args, **kwargs):
    return cli_runner.invoke(app, ["--config", str(tmp_config), *args], **kwargs)


@pytest.mark.unit
class TestVersionCommand:
    def test_version(self, cli_runner, tmp_config):
        result = invoke(cli_runner, tmp_config, "version")

        assert result.exit_code == 0
        assert result.stdout.strip() == "docka-vault 1.0.0"

    def test_invalid_log_level(self, cli_runner, tmp_config):
        result = invoke(cli_runner, tmp_config, "--log-level", "LOUD", "version")
        assert result.exit_code == 2


@pytest.mark.unit
class TestBackupCommand:
    @patch("docka_vault.commands.backup_commands.BackupManager")
    def test_success(self, mock_manager, cli_runner, tmp_config, tmp_dirs):
        outcome = RunOutcome("backup")
        outcome.mark_stopped("app")
        outcome.mark_archived("app")
        outcome.mark_restarted("app")
        outcome.backup_set = BackupSet.from_path(tmp_dirs["backup"] / "docker-backup-2025-05-07")
        outcome.finish()
        mock_manager.return_value.run.return_value = outcome

        result = invoke(cli_runner, tmp_config, "backup")

        assert result.exit_code == 0
        assert "restarted" in result.stdout
        assert "Backup completed" in result.stdout

    @patch("docka_vault.commands.backup_commands.BackupManager")
    def test_failures_reported_but_exit_zero(self, mock_manager, cli_runner, tmp_config):
        outcome = RunOutcome("backup")
        outcome.mark_stop_failed("db", "stop failed: daemon error")
        outcome.finish()
        mock_manager.return_value.run.return_value = outcome

        result = invoke(cli_runner, tmp_config, "backup")

        assert result.exit_code == 0
        assert "stop-failed" in result.stdout
        assert "failures in 1 project" in result.stdout

    @patch("docka_vault.commands.backup_commands.BackupManager")
    def test_fatal_error_exit_code(self, mock_manager, cli_runner, tmp_config):
        mock_manager.return_value.run.side_effect = PlatformUnavailableError("Docker daemon not reachable")

        result = invoke(cli_runner, tmp_config, "backup")

        assert result.exit_code == 1
        assert "Docker daemon not reachable" in result.stdout

    @patch("docka_vault.commands.backup_commands.BackupManager")
    def test_log_file_attached(self, mock_manager, cli_runner, tmp_config, tmp_path):
        mock_manager.return_value.run.return_value = RunOutcome("backup")

        invoke(cli_runner, tmp_config, "backup")

        assert (tmp_path / "logs" / "docka-vault.log").exists()


@pytest.mark.unit
class TestListCommand:
    def test_empty(self, cli_runner, tmp_config):
        result = invoke(cli_runner, tmp_config, "list")

        assert result.exit_code == 0
        assert "No backups found" in result.stdout

    def test_lists_sets(self, cli_runner, tmp_config, tmp_dirs):
        make_set(tmp_dirs["backup"], "docker-backup-2025-04-30")
        make_set(tmp_dirs["backup"], "docker-backup-2025-05-07", valid=False)

        result = invoke(cli_runner, tmp_config, "list")

        assert result.exit_code == 0
        assert "docker-backup-2025-04-30" in result.stdout
        assert "invalid" in result.stdout


@pytest.mark.unit
class TestRestoreCommand:
    def test_no_backup_found(self, cli_runner, tmp_config):
        result = invoke(cli_runner, tmp_config, "restore", "--yes")

        assert result.exit_code == NoBackupFoundError.exit_code
        assert "No backup found" in result.stdout

    @patch("docka_vault.commands.restore_commands.RestoreManager")
    def test_latest_with_yes(self, mock_manager, cli_runner, tmp_config, tmp_dirs):
        make_set(tmp_dirs["backup"], "docker-backup-2025-04-30")
        make_set(tmp_dirs["backup"], "docker-backup-2025-05-07")
        mock_manager.return_value.restore.return_value = RunOutcome("restore")

        result = invoke(cli_runner, tmp_config, "restore", "--yes")

        assert result.exit_code == 0
        backup_set, target = mock_manager.return_value.restore.call_args[0]
        assert backup_set.backup_id == "docker-backup-2025-05-07"
        assert target == tmp_dirs["target"]

    @patch("docka_vault.commands.restore_commands.RestoreManager")
    def test_explicit_path_and_target(self, mock_manager, cli_runner, tmp_config, tmp_dirs, tmp_path):
        path = make_set(tmp_path, "my-backup")
        mock_manager.return_value.restore.return_value = RunOutcome("restore")

        result = invoke(cli_runner, tmp_config, "restore", str(path), str(tmp_path / "out"), "-y")

        assert result.exit_code == 0
        backup_set, target = mock_manager.return_value.restore.call_args[0]
        assert backup_set.path == path
        assert target == tmp_path / "out"

    @patch("docka_vault.commands.restore_commands.RestoreManager")
    def test_invalid_explicit_path(self, mock_manager, cli_runner, tmp_config, tmp_path):
        path = make_set(tmp_path, "broken", valid=False)

        result = invoke(cli_runner, tmp_config, "restore", str(path), "-y")

        assert result.exit_code == 1
        mock_manager.assert_not_called()

    @patch("docka_vault.commands.restore_commands.RestoreManager")
    def test_declined_confirmation(self, mock_manager, cli_runner, tmp_config, tmp_dirs):
        make_set(tmp_dirs["backup"], "docker-backup-2025-05-07")

        result = invoke(cli_runner, tmp_config, "restore", input="n\n")

        assert result.exit_code == 0
        assert "cancelled" in result.stdout
        mock_manager.return_value.restore.assert_not_called()


@pytest.mark.unit
class TestConfigCommands:
    def test_show(self, cli_runner, tmp_config):
        result = invoke(cli_runner, tmp_config, "config", "show")

        assert result.exit_code == 0
        assert "source_root" in result.stdout
        assert "Configuration valid" in result.stdout

    def test_init_new_file(self, cli_runner, tmp_path):
        path = tmp_path / "new.conf"

        result = cli_runner.invoke(app, ["config", "init", "--path", str(path)])

        assert result.exit_code == 0
        assert path.is_file()

    def test_init_via_global_config_option(self, cli_runner, tmp_path):
        path = tmp_path / "global.conf"

        result = cli_runner.invoke(app, ["--config", str(path), "config", "init"])

        assert result.exit_code == 0
        assert path.is_file()

    def test_init_refuses_overwrite(self, cli_runner, tmp_config):
        result = cli_runner.invoke(app, ["config", "init", "--path", str(tmp_config)])

        assert result.exit_code == 1
        assert "--force" in result.stdout

        result = cli_runner.invoke(app, ["config", "init", "--path", str(tmp_config), "--force"])
        assert result.exit_code == 0
