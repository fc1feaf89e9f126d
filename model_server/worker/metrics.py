"""Metric batches reported by the worker on [METRICS] lines.

The worker prints one JSON list of metric records per line, e.g.:

    [METRICS][{"MetricName": "PredictionTime", "Value": 12.5, "Unit": "ms",
               "Dimensions": [{"Name": "ModelName", "Value": "squeezenet"}]}]

Records are decoded into Metric models and handed to a metric sink.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .protocol import MODEL_METRICS_LOGGER

logger = logging.getLogger(__name__)


class MetricsDecodeError(ValueError):
    """Payload of a [METRICS] line is not a list of metric records."""


class Dimension(BaseModel):
    """Name/value pair qualifying a metric."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: Optional[str] = Field(None, alias="Name")
    value: Any = Field(None, alias="Value")


class Metric(BaseModel):
    """One metric record. Unknown fields are kept as reported."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    metric_name: Optional[str] = Field(None, alias="MetricName")
    value: Any = Field(None, alias="Value")
    unit: Optional[str] = Field(None, alias="Unit")
    dimensions: List[Dimension] = Field(default_factory=list, alias="Dimensions")
    hostname: Optional[str] = Field(None, alias="HostName")
    request_id: Optional[str] = Field(None, alias="RequestId")
    timestamp: Any = Field(None, alias="Timestamp")

    def to_wire(self) -> dict:
        """Record in the form the worker reported it."""
        return self.model_dump(by_alias=True, exclude_unset=True)


def decode_metrics(payload: str) -> List[Metric]:
    """
    Decode the text following the [METRICS] prefix.

    A JSON list of records is the batch. A JSON object carrying a "records"
    list is accepted as the same batch.

    Args:
        payload: Line suffix after the prefix

    Returns:
        Records in reported order

    Raises:
        MetricsDecodeError: If the payload is not a valid batch
    """
    try:
        data = json.loads(payload)
    except (ValueError, RecursionError) as e:
        # RecursionError: nesting deeper than the interpreter stack
        raise MetricsDecodeError(f"Invalid metrics JSON: {e}") from e

    if isinstance(data, dict) and "records" in data:
        data = data["records"]
    if not isinstance(data, list):
        raise MetricsDecodeError(
            f"Metrics payload must be a list, got {type(data).__name__}"
        )

    try:
        return [Metric.model_validate(item) for item in data]
    except (ValidationError, RecursionError) as e:
        raise MetricsDecodeError(f"Invalid metric record: {e}") from e


class MetricSink:
    """Receives decoded metric batches. Called from reader threads."""

    def emit(self, records: List[Metric]) -> None:
        raise NotImplementedError


class LoggingMetricSink(MetricSink):
    """Writes each batch as JSON to the model metrics logger."""

    def __init__(self, metrics_logger: Optional[logging.Logger] = None):
        self.logger = metrics_logger or logging.getLogger(MODEL_METRICS_LOGGER)

    def emit(self, records: List[Metric]) -> None:
        self.logger.info(json.dumps([r.to_wire() for r in records]))


class DatabaseMetricSink(MetricSink):
    """Persists each batch in the worker_metrics table."""

    def __init__(self, worker_port: Optional[int] = None):
        from ..db import worker_metrics

        self.worker_port = worker_port
        self._store = worker_metrics
        self._store.ensure_table()

    def emit(self, records: List[Metric]) -> None:
        self._store.insert_metrics(
            [r.to_wire() for r in records], worker_port=self.worker_port
        )
