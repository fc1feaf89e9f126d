"""Backend worker supervision.

This module launches the backend inference worker as a child process and
decides whether it started, enabling:
- Bounded-time startup handshake over the worker's stdout
- Continuous draining of stdout/stderr into logs and metric sinks
- Deterministic kill of the worker on any failed start

Key components:
- lifecycle: WorkerLifeCycle supervisor and its configuration
- address: UNIX socket / TCP endpoint resolution
- reader: Stream reader threads
- metrics: Metric records, [METRICS] decoder and metric sinks
- gate: Single-shot readiness gate
- protocol: Wire constants shared with the worker
"""

from .address import TcpEndpoint, UnixEndpoint, WorkerEndpoint, resolve
from .gate import ReadinessGate
from .lifecycle import (
    WorkerLifeCycle,
    WorkerLifeCycleConfig,
    get_lifecycle_config,
)
from .metrics import (
    DatabaseMetricSink,
    LoggingMetricSink,
    Metric,
    MetricSink,
    MetricsDecodeError,
    decode_metrics,
)
from .protocol import METRICS_PREFIX, READY_SENTINEL, StreamKind, WorkerState
from .reader import StreamReader

__all__ = [
    "WorkerLifeCycle",
    "WorkerLifeCycleConfig",
    "get_lifecycle_config",
    "TcpEndpoint",
    "UnixEndpoint",
    "WorkerEndpoint",
    "resolve",
    "ReadinessGate",
    "DatabaseMetricSink",
    "LoggingMetricSink",
    "Metric",
    "MetricSink",
    "MetricsDecodeError",
    "decode_metrics",
    "METRICS_PREFIX",
    "READY_SENTINEL",
    "StreamKind",
    "WorkerState",
    "StreamReader",
]
