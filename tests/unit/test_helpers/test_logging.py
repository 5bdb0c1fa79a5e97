"""
Unit tests for the logging setup.
"""

import logging
import pytest

from docka_vault.helpers.logging import (
    LogManager,
    StructuredFormatter,
    get_logger,
    ROOT_LOGGER_NAME,
)


@pytest.fixture
def manager():
    manager = LogManager()
    yield manager
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)


def make_record(msg="Stopped", **extra):
    record = logging.LogRecord("docka_vault.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestStructuredFormatter:
    def test_extras_appended_sorted(self):
        line = StructuredFormatter().format(make_record(project="web", operation="backup"))

        assert line.endswith("Stopped [operation=backup project=web]")

    def test_no_extras(self):
        assert StructuredFormatter().format(make_record()).endswith("INFO - Stopped")

    def test_colors(self):
        line = StructuredFormatter(use_colors=True).format(make_record())
        assert line.startswith("\033[36m")
        assert line.endswith("\033[0m")


@pytest.mark.unit
class TestGetLogger:
    def test_namespaced(self):
        assert get_logger("docka_vault.cores.x").name == "docka_vault.cores.x"
        assert get_logger("other").name == "docka_vault.other"


@pytest.mark.unit
class TestLogManager:
    def test_console_only(self, manager):
        root = manager.setup("DEBUG", use_colors=False)

        assert manager.configured
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert manager.log_file is None

    def test_file_handler(self, manager, tmp_path):
        log_file = tmp_path / "logs" / "docka-vault.log"

        manager.setup("INFO", log_file=log_file, max_size_mb=1, backup_count=2, use_colors=False)
        get_logger("docka_vault.test").info("Backup finished", extra={"project": "app"})
        for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
            handler.flush()

        assert manager.log_file == log_file
        assert "Backup finished [project=app]" in log_file.read_text()

    def test_unwritable_log_file_is_not_fatal(self, manager, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file")

        root = manager.setup("INFO", log_file=blocker / "docka-vault.log", use_colors=False)

        assert manager.log_file is None
        assert len(root.handlers) == 1

    def test_setup_is_idempotent(self, manager):
        manager.setup("INFO", use_colors=False)
        root = manager.setup("WARNING", use_colors=False)

        assert len(root.handlers) == 1
        assert root.level == logging.WARNING

