"""
Pytest configuration and shared fixtures for the worker supervisor tests.

This module provides fixtures for:
- Temporary data directory (settings / metrics database)
- Temporary model server home holding a fake worker script
- Supervisor factory with recording metric sink and test logger
- Capture of spawned child processes for liveness probes
"""

import logging
import subprocess
import sys
import textwrap
import threading
from pathlib import Path
from typing import Callable, Generator, List

import pytest

from model_server.config import MMS_DATA_DIR_ENV, MMS_HOME_ENV
from model_server.db.db_config import get_db
from model_server.db.settings import init_settings_table
from model_server.worker import Metric, MetricSink, WorkerLifeCycle, WorkerLifeCycleConfig

WORKER_ENTRY = "mms/model_service_worker.py"
TEST_LOGGER = "tests.worker"


class RecordingMetricSink(MetricSink):
    """Metric sink keeping every batch in memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.batches: List[List[Metric]] = []

    def emit(self, records: List[Metric]) -> None:
        with self._lock:
            self.batches.append(list(records))


# ============================================================================
# Function-level Fixtures - Test Environment
# ============================================================================

@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the settings / metrics database at a temporary directory."""
    path = tmp_path / "data"
    monkeypatch.setenv(MMS_DATA_DIR_ENV, str(path))
    monkeypatch.delenv(MMS_HOME_ENV, raising=False)
    return path


@pytest.fixture
def put_setting(data_dir: Path) -> Callable[[str, str], None]:
    """Write a settings row the way an operator edits the database."""
    init_settings_table()

    def _put(key: str, value: str) -> None:
        with get_db() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (key, value),
            )

    return _put


@pytest.fixture
def model_home(tmp_path: Path) -> Path:
    """Temporary model server home with an empty mms/ package."""
    home = tmp_path / "home"
    (home / "mms").mkdir(parents=True)
    return home


@pytest.fixture
def write_worker(model_home: Path) -> Callable[[str], Path]:
    """Write the fake worker script run by the supervisor."""

    def _write(body: str) -> Path:
        script = model_home / WORKER_ENTRY
        script.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
        return script

    return _write


@pytest.fixture
def metrics_sink() -> RecordingMetricSink:
    return RecordingMetricSink()


@pytest.fixture
def worker_log(caplog: pytest.LogCaptureFixture) -> logging.Logger:
    """Logger injected into supervisors; captured by caplog."""
    caplog.set_level(logging.DEBUG, logger=TEST_LOGGER)
    return logging.getLogger(TEST_LOGGER)


@pytest.fixture
def spawned(monkeypatch: pytest.MonkeyPatch) -> List[subprocess.Popen]:
    """Record every child process started through subprocess.Popen."""
    processes: List[subprocess.Popen] = []
    real_popen = subprocess.Popen

    def _popen(*args, **kwargs):
        proc = real_popen(*args, **kwargs)
        processes.append(proc)
        return proc

    monkeypatch.setattr(subprocess, "Popen", _popen)
    yield processes

    for proc in processes:
        if proc.poll() is None:
            proc.kill()
            proc.wait(timeout=5)


@pytest.fixture
def make_lifecycle(
    model_home: Path,
    metrics_sink: RecordingMetricSink,
    worker_log: logging.Logger,
) -> Generator[Callable[..., WorkerLifeCycle], None, None]:
    """
    Create supervisors running the fake worker with the current interpreter.

    Yields:
        Factory accepting WorkerLifeCycleConfig overrides
    """
    created: List[WorkerLifeCycle] = []

    def _make(**overrides) -> WorkerLifeCycle:
        params = dict(
            model_server_home=str(model_home),
            worker_entry=WORKER_ENTRY,
            python=sys.executable,
            prefer_unix_socket=False,
            startup_timeout=20.0,
        )
        params.update(overrides)
        lifecycle = WorkerLifeCycle(
            WorkerLifeCycleConfig(**params),
            log=worker_log,
            metrics_sink=metrics_sink,
        )
        created.append(lifecycle)
        return lifecycle

    yield _make

    for lifecycle in created:
        lifecycle.exit()
        lifecycle.wait_for_readers(timeout=5)


@pytest.fixture
def log_messages(caplog: pytest.LogCaptureFixture) -> Callable[[int], List[str]]:
    """Messages logged by supervisors at exactly the given level."""

    def _messages(level: int) -> List[str]:
        return [
            r.getMessage() for r in caplog.records
            if r.name == TEST_LOGGER and r.levelno == level
        ]

    return _messages
