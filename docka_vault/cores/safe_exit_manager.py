################################################################################
# DOCKA-VAULT
#
# @file:        safe_exit_manager.py
# @module:      docka_vault.cores.safe_exit_manager
# @description: Signal-aware exit safety: subprocess tracking plus prioritized cleanup handlers.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Process layer: every run_command() child is registered and terminated on abort
# - Strategy layer: handlers run by priority (lower first), errors never propagate
# - A second signal during cleanup forces an immediate exit
################################################################################

"""
Safe exit handling.

Two layers:

Process layer
    ``register_process()`` / ``unregister_process()`` keep track of child
    processes started via ``run_command()``. On SIGINT/SIGTERM they receive
    SIGTERM, then SIGKILL after a grace period.

Strategy layer
    ``ExitHandler`` subclasses registered via ``register_handler()``:

    - ServiceContinuityHandler (10): restarts projects the current backup
      run has stopped (LIFO)
    - DataSafetyHandler (20): reports projects a restore has taken down
    - CleanupHandler (50): generic callbacks (partial files, manifests)

Exit code after a signal is ``128 + signum`` (130 for SIGINT, 143 for SIGTERM).
"""

from __future__ import annotations

import os
import signal
import sys
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from ..helpers.logging import get_logger

if TYPE_CHECKING:
    from ..types import Project, RunOutcome
    from .lifecycle_controller import LifecycleController

logger = get_logger(__name__)

TERMINATE_GRACE_SECONDS = 5


@dataclass
class TrackedProcess:
    pid: int
    name: str
    registered_at: float = field(default_factory=time.time)


class ExitHandler:
    """Base class for cleanup strategies."""

    name: str = "exit_handler"
    priority: int = 100

    def cleanup(self):
        raise NotImplementedError


class SafeExitManager:
    """Process-wide singleton coordinating shutdown on signals."""

    _instance: Optional["SafeExitManager"] = None
    _instance_lock = threading.Lock()
    _creating = False

    def __init__(self):
        if not SafeExitManager._creating:
            raise RuntimeError("Use SafeExitManager.get_instance()")

        self._lock = threading.RLock()
        self._processes: Dict[str, TrackedProcess] = {}
        self._handlers: List[Tuple[ExitHandler, int]] = []
        self._cleanup_in_progress = False
        self._original_sigint = None
        self._original_sigterm = None

    @classmethod
    def get_instance(cls) -> "SafeExitManager":
        with cls._instance_lock:
            if cls._instance is None:
                cls._creating = True
                try:
                    cls._instance = cls()
                finally:
                    cls._creating = False
            return cls._instance

    @classmethod
    def reset_instance(cls):
        """Drop the singleton (tests only)."""
        with cls._instance_lock:
            cls._instance = None

    def install_handlers(self):
        """Install SIGINT and SIGTERM handlers."""
        self._original_sigint = signal.signal(signal.SIGINT, self._signal_handler)
        self._original_sigterm = signal.signal(signal.SIGTERM, self._signal_handler)
        logger.debug("Signal handlers installed")

    # ---------------------------------------------------------------------
    # Process layer
    # ---------------------------------------------------------------------

    def register_process(self, pid: int, name: str) -> str:
        cleanup_id = uuid.uuid4().hex
        with self._lock:
            self._processes[cleanup_id] = TrackedProcess(pid=pid, name=name)
        return cleanup_id

    def unregister_process(self, cleanup_id: str):
        with self._lock:
            self._processes.pop(cleanup_id, None)

    def _terminate_all_processes(self):
        with self._lock:
            processes = list(self._processes.values())
            self._processes.clear()

        if not processes:
            return

        signalled = []
        for proc in processes:
            try:
                os.kill(proc.pid, signal.SIGTERM)
                signalled.append(proc)
                logger.info(f"Sent SIGTERM to {proc.name} (PID {proc.pid})")
            except ProcessLookupError:
                pass

        if not signalled:
            return

        time.sleep(TERMINATE_GRACE_SECONDS)

        for proc in signalled:
            try:
                os.kill(proc.pid, 0)
            except ProcessLookupError:
                continue
            try:
                os.kill(proc.pid, signal.SIGKILL)
                logger.warning(f"Sent SIGKILL to {proc.name} (PID {proc.pid})")
            except ProcessLookupError:
                pass

    # ---------------------------------------------------------------------
    # Strategy layer
    # ---------------------------------------------------------------------

    def register_handler(self, handler: ExitHandler):
        with self._lock:
            self._handlers.append((handler, handler.priority))
            self._handlers.sort(key=lambda item: item[1])

    def unregister_handler(self, handler: ExitHandler):
        with self._lock:
            self._handlers = [(h, p) for h, p in self._handlers if h is not handler]

    def _run_all_handlers(self):
        with self._lock:
            handlers = list(self._handlers)

        for handler, priority in handlers:
            try:
                logger.debug(f"Running exit handler {handler.name} (priority {priority})")
                handler.cleanup()
            except Exception as e:
                logger.error(f"Exit handler {handler.name} failed: {e}")

    # ---------------------------------------------------------------------
    # Signal entry point
    # ---------------------------------------------------------------------

    def _signal_handler(self, signum, frame):
        exit_code = 128 + signum

        if self._cleanup_in_progress:
            logger.warning("Second signal received during cleanup, forcing exit")
            sys.exit(exit_code)
            return

        self._cleanup_in_progress = True
        try:
            sig_name = signal.Signals(signum).name
        except ValueError:
            sig_name = str(signum)
        logger.warning(f"Received {sig_name}, running cleanup before exit...")

        self._terminate_all_processes()
        self._run_all_handlers()

        logger.info(f"Cleanup complete, exiting with code {exit_code}")
        sys.exit(exit_code)


# =============================================================================
# Handlers
# =============================================================================


class ServiceContinuityHandler(ExitHandler):
    """
    Restart projects the running backup has stopped.

    Only projects registered after a successful stop are ever restarted.
    Restart order is LIFO: the project stopped last comes back first.
    """

    name = "service_continuity"
    priority = 10

    def __init__(self, controller: "LifecycleController", outcome: Optional["RunOutcome"] = None):
        self.controller = controller
        self.outcome = outcome
        self._projects: List["Project"] = []
        self._lock = threading.Lock()

    def register_project(self, project: "Project"):
        with self._lock:
            self._projects.append(project)

    def unregister_project(self, name: str):
        with self._lock:
            self._projects = [p for p in self._projects if p.name != name]

    @property
    def pending(self) -> List[str]:
        return [p.name for p in self._projects]

    def cleanup(self):
        with self._lock:
            projects = list(reversed(self._projects))
            self._projects.clear()

        if not projects:
            return

        logger.warning(f"ServiceContinuityHandler: restarting {len(projects)} stopped project(s)")
        for project in projects:
            if self.outcome is not None:
                entry = self.outcome.get(project.name)
                if entry is not None and entry.restarted:
                    continue
            try:
                self.controller.restart_project(project, self.outcome)
            except Exception as e:
                logger.error(f"ServiceContinuityHandler: restart of {project.name} failed: {e}")


class DataSafetyHandler(ExitHandler):
    """
    Report restore targets left down by an interrupted restore.

    They are not started automatically: their data may be half restored.
    """

    name = "data_safety"
    priority = 20

    def __init__(self):
        self._taken_down: List[Tuple[str, str]] = []

    def register_taken_down(self, name: str, project_dir: str):
        self._taken_down.append((name, str(project_dir)))

    def unregister_taken_down(self, name: str):
        self._taken_down = [(n, d) for n, d in self._taken_down if n != name]

    def cleanup(self):
        for name, project_dir in self._taken_down:
            logger.warning(
                f"DataSafetyHandler: project {name} was taken down and is not restarted; "
                f"verify {project_dir} and start it manually (docker compose up -d)",
                extra={"project": name},
            )


class CleanupHandler(ExitHandler):
    """Generic callback runner."""

    priority = 50

    def __init__(self, name: str = "cleanup", callback: Optional[Callable[[], None]] = None):
        self.name = name
        self._callback = callback
        self._cleanup_items: List[Tuple[str, Callable[[], None]]] = []

    def register_cleanup(self, name: str, callback: Callable[[], None]):
        self._cleanup_items.append((name, callback))

    def cleanup(self):
        for item_name, callback in self._cleanup_items:
            try:
                callback()
            except Exception as e:
                logger.error(f"CleanupHandler {self.name}: {item_name} failed: {e}")

        if self._callback is not None:
            try:
                self._callback()
            except Exception as e:
                logger.error(f"CleanupHandler {self.name}: callback failed: {e}")
