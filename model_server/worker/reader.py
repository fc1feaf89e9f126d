"""Reader threads draining the worker's standard streams.

Each line is one of:
- the readiness sentinel: release the gate with success, keep reading
- a [METRICS] batch: decode and hand to the metric sink
- a log line: stderr -> ERROR, stdout -> INFO

The pipe must be drained until EOF or the worker blocks on a full pipe.
"""

from __future__ import annotations

import logging
import threading
from typing import BinaryIO, Optional

from .gate import ReadinessGate
from .metrics import MetricSink, MetricsDecodeError, decode_metrics
from .protocol import METRICS_PREFIX, READY_SENTINEL, StreamKind

logger = logging.getLogger(__name__)


class StreamReader(threading.Thread):
    """Drains one worker stream, reporting readiness through the gate."""

    def __init__(
        self,
        name: str,
        stream: BinaryIO,
        kind: StreamKind,
        gate: ReadinessGate,
        metrics_sink: MetricSink,
        log: Optional[logging.Logger] = None,
    ):
        super().__init__(name=f"{name}-{kind.value}", daemon=True)
        self.stream = stream
        self.kind = kind
        self.gate = gate
        self.metrics_sink = metrics_sink
        self.log = log or logger

    def run(self) -> None:
        try:
            for raw in iter(self.stream.readline, b""):
                self.handle_line(self._decode(raw))
        except (OSError, ValueError) as e:
            # Closed or broken pipe ends the stream
            self.log.debug(f"{self.name}: stream read failed: {e}")
        finally:
            self.gate.release(False)
            try:
                self.stream.close()
            except OSError:
                pass

    def _decode(self, raw: bytes) -> str:
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            self.log.warning(f"{self.name}: non UTF-8 output from worker")
            text = raw.decode("utf-8", errors="replace")
        # Strip the terminator only: one \n, then one optional \r
        if text.endswith("\n"):
            text = text[:-1]
            if text.endswith("\r"):
                text = text[:-1]
        return text

    def handle_line(self, line: str) -> None:
        """Classify and dispatch one line (terminator already stripped)."""
        if line == READY_SENTINEL:
            self.gate.release(True)
            return

        if line.startswith(METRICS_PREFIX):
            payload = line[len(METRICS_PREFIX):]
            try:
                records = decode_metrics(payload)
            except MetricsDecodeError as e:
                self.log.warning(f"{self.name}: dropping metrics batch: {e}")
                return
            try:
                self.metrics_sink.emit(records)
            except Exception as e:
                self.log.warning(f"{self.name}: metric sink failed: {e}")
            return

        if self.kind is StreamKind.STDERR:
            self.log.error(line)
        else:
            self.log.info(line)
