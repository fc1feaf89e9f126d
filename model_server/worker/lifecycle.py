"""WorkerLifeCycle - Supervisor for one backend worker process.

Responsibilities:
- Build the worker command line, environment and working directory
- Spawn the worker and drain its stdout/stderr on reader threads
- Wait (bounded) for the worker's readiness line
- Kill the worker on any failed start, and on exit()
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .address import WorkerEndpoint, resolve
from .gate import ReadinessGate
from .metrics import LoggingMetricSink, MetricSink
from .protocol import StreamKind, WorkerState
from .reader import StreamReader
from ..config import PYTHONPATH_ENV

logger = logging.getLogger(__name__)

DEFAULT_WORKER_ENTRY = "mms/model_service_worker.py"
DEFAULT_STARTUP_TIMEOUT = 120.0


@dataclass
class WorkerLifeCycleConfig:
    """Configuration for launching the backend worker."""

    model_server_home: str  # Working directory, canonicalized at start
    worker_entry: str = DEFAULT_WORKER_ENTRY  # Relative to model_server_home
    python: str = "python"  # Interpreter launching worker_entry
    prefer_unix_socket: bool = False  # Host policy for the endpoint
    socket_dir: str = "/tmp"
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT  # Seconds


class WorkerLifeCycle:
    """
    Launches one backend worker and waits for it to report readiness.

    start() returns True only if the worker printed the readiness line before
    the startup deadline. On every False return the worker has been killed and reaped.
    exit() is idempotent and safe to call from any thread at any time.

    A supervisor is single use: create a new one to start another worker.
    """

    def __init__(
        self,
        config: WorkerLifeCycleConfig,
        log: Optional[logging.Logger] = None,
        metrics_sink: Optional[MetricSink] = None,
    ):
        """
        Initialize supervisor.

        Args:
            config: Worker launch configuration
            log: Receives worker output lines and supervisor diagnostics
            metrics_sink: Receives decoded [METRICS] batches
        """
        self.config = config
        self.log = log or logger
        self.metrics_sink = metrics_sink or LoggingMetricSink()

        self._lock = threading.Lock()  # Excludes exit() from spawn
        self._process: Optional[subprocess.Popen] = None
        self._readers: List[StreamReader] = []
        self._started = False
        self._terminated = False
        self._state = WorkerState.NOT_STARTED

        self.port: Optional[int] = None
        self.endpoint: Optional[WorkerEndpoint] = None
        self.pid: Optional[int] = None

    @property
    def process(self) -> Optional[subprocess.Popen]:
        """Live child handle, None before spawn and after exit()."""
        with self._lock:
            return self._process

    @property
    def state(self) -> WorkerState:
        with self._lock:
            if self._state is WorkerState.READY and self._process is not None:
                if self._process.poll() is not None:
                    return WorkerState.TERMINATED
            return self._state

    def is_alive(self) -> bool:
        """Check if the worker process is still running."""
        proc = self.process
        return proc is not None and proc.poll() is None

    def _build_command(self, port: int) -> List[str]:
        self.endpoint, fragment = resolve(
            port,
            prefer_unix=self.config.prefer_unix_socket,
            socket_dir=self.config.socket_dir,
        )
        return [self.config.python, self.config.worker_entry, *fragment]

    def _build_env(self, working_dir: Path) -> Dict[str, str]:
        env = os.environ.copy()
        python_path = env.get(PYTHONPATH_ENV)
        if python_path:
            env[PYTHONPATH_ENV] = python_path + os.pathsep + str(working_dir)
        else:
            env[PYTHONPATH_ENV] = str(working_dir)
        return env

    def start(self, port: int) -> bool:
        """
        Start the worker and wait for its readiness line.

        Args:
            port: Worker port (names the UNIX socket when one is used)

        Returns:
            True if the worker reported readiness before the deadline

        Raises:
            RuntimeError: If this supervisor was already started
            ValueError: If port is outside 0..65535
        """
        with self._lock:
            if self._started:
                raise RuntimeError("Worker lifecycle already started")
            cmd = self._build_command(port)
            self._started = True
            self._state = WorkerState.STARTING
        self.port = port

        try:
            working_dir = Path(self.config.model_server_home).resolve(strict=True)
        except (OSError, RuntimeError) as e:
            self.log.error(f"Failed start worker process: invalid model server home: {e}")
            self._set_state(WorkerState.FAILED)
            return False

        env = self._build_env(working_dir)
        gate = ReadinessGate()
        proc: Optional[subprocess.Popen] = None

        with self._lock:
            if self._terminated:
                self.log.warning("Worker lifecycle exited before spawn")
            else:
                try:
                    self.log.info(f"Spawning worker on {self.endpoint}: {' '.join(cmd)}")
                    proc = subprocess.Popen(
                        cmd,
                        cwd=str(working_dir),
                        env=env,
                        stdin=subprocess.DEVNULL,
                        stdout=subprocess.PIPE,
                        stderr=subprocess.PIPE,
                    )
                except (OSError, ValueError, subprocess.SubprocessError) as e:
                    self.log.error(f"Failed start worker process: {e}", exc_info=True)
                else:
                    self._process = proc
                    self.pid = proc.pid
                    thread_name = f"W-{port}"
                    self._readers = [
                        StreamReader(
                            thread_name, proc.stderr, StreamKind.STDERR,
                            gate, self.metrics_sink, self.log,
                        ),
                        StreamReader(
                            thread_name, proc.stdout, StreamKind.STDOUT,
                            gate, self.metrics_sink, self.log,
                        ),
                    ]
                    for reader in self._readers:
                        reader.start()

        if proc is None:
            self._set_state(WorkerState.FAILED)
            return False

        try:
            outcome = gate.wait(timeout=self.config.startup_timeout)
        except KeyboardInterrupt:
            self.log.error("Backend worker startup interrupted.")
            self._fail(proc)
            return False

        if outcome is None:
            self.log.error("Backend worker startup time out.")
            self._fail(proc)
            return False

        if not outcome:
            self.log.error(f"Backend worker on {self.endpoint} exited before becoming ready")
            self._fail(proc)
            return False

        self._set_state(WorkerState.READY)
        self.log.info(f"Backend worker ready on {self.endpoint} (pid {self.pid})")
        return True

    def _fail(self, proc: subprocess.Popen) -> None:
        # Killed by exit(), so the wait is short; no child outlives a failed start
        self.exit()
        proc.wait()
        self._set_state(WorkerState.FAILED)

    def _set_state(self, state: WorkerState) -> None:
        with self._lock:
            # exit() wins over a late success
            if self._terminated and state is WorkerState.READY:
                return
            self._state = state

    def exit(self) -> None:
        """Kill the worker, if any. Idempotent, never blocks."""
        with self._lock:
            self._terminated = True
            proc = self._process
            if proc is None:
                return
            self._process = None
            if self._state is not WorkerState.FAILED:
                self._state = WorkerState.TERMINATED
            try:
                proc.kill()
            except OSError as e:
                self.log.debug(f"Worker {proc.pid} already gone: {e}")

        # Reap in background so exit() stays non-blocking
        threading.Thread(
            target=proc.wait, name=f"W-{self.port}-reaper", daemon=True
        ).start()

    def wait_for_readers(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for both reader threads to drain their streams.

        Returns:
            True if all readers finished within the timeout
        """
        for reader in list(self._readers):
            reader.join(timeout)
        return not any(reader.is_alive() for reader in self._readers)


def get_lifecycle_config() -> WorkerLifeCycleConfig:
    """
    Build the worker launch configuration from the settings store.

    Returns:
        WorkerLifeCycleConfig for the configured model server home
    """
    from ..config import get_model_server_home
    from ..db.settings import get_setting, get_setting_bool, get_setting_float

    return WorkerLifeCycleConfig(
        model_server_home=str(get_model_server_home()),
        worker_entry=get_setting("worker_entry") or DEFAULT_WORKER_ENTRY,
        python=get_setting("worker_python") or "python",
        prefer_unix_socket=get_setting_bool("worker_prefer_unix_socket", True),
        socket_dir=get_setting("worker_socket_dir") or "/tmp",
        startup_timeout=get_setting_float(
            "worker_startup_timeout_seconds", DEFAULT_STARTUP_TIMEOUT
        ),
    )
