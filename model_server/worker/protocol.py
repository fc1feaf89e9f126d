"""Wire constants and lifecycle states shared with the backend worker.

The worker talks to the supervisor only through its standard streams:
- One line equal to READY_SENTINEL once it accepts connections
- Lines starting with METRICS_PREFIX carry a JSON list of metric records
- Everything else is free-form log text
"""

from __future__ import annotations

from enum import Enum

# Printed by the worker on stdout once it is accepting connections
READY_SENTINEL = "MxNet worker started."

# Prefix of a metrics batch line
METRICS_PREFIX = "[METRICS]"

# Logger receiving decoded metric batches
MODEL_METRICS_LOGGER = "model_metrics"


class WorkerState(str, Enum):
    """Worker lifecycle states."""

    NOT_STARTED = "not_started"  # Supervisor created, start() not called
    STARTING = "starting"  # Process spawned, waiting for readiness line
    READY = "ready"  # Readiness line observed
    FAILED = "failed"  # Start attempt returned False
    TERMINATED = "terminated"  # exit() killed the process


class StreamKind(str, Enum):
    """Standard stream a reader is bound to."""

    STDOUT = "stdout"
    STDERR = "stderr"
