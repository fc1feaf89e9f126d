"""Worker metric records reported on the worker's [METRICS] lines.

Stores each decoded record for observability and debugging.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from .db_config import get_db


def ensure_table() -> None:
    """Create worker_metrics table if it doesn't exist."""
    with get_db() as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS worker_metrics (
                id INTEGER PRIMARY KEY AUTOINCREMENT,

                -- Worker identification
                worker_port INTEGER,

                -- Metric fields
                metric_name TEXT,
                value,
                unit TEXT,
                dimensions TEXT,  -- JSON list of {Name, Value}
                hostname TEXT,
                request_id TEXT,
                timestamp TEXT,

                -- Full record as reported by the worker
                payload TEXT NOT NULL,

                received_at DATETIME NOT NULL
            )
        """)

        # Index for querying by metric name and time
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_worker_metrics_name_time
            ON worker_metrics (metric_name, received_at DESC)
        """)


def insert_metrics(
    records: Iterable[Dict[str, Any]],
    worker_port: Optional[int] = None,
) -> int:
    """
    Insert one batch of metric records.

    Args:
        records: Metric records in wire form (MetricName, Value, ...)
        worker_port: Port of the worker that reported the batch

    Returns:
        Number of inserted rows
    """
    received_at = datetime.now(timezone.utc).isoformat()
    rows = []
    for record in records:
        dimensions = record.get("Dimensions")
        rows.append((
            worker_port,
            record.get("MetricName"),
            _scalar(record.get("Value")),
            record.get("Unit"),
            json.dumps(dimensions) if dimensions is not None else None,
            record.get("HostName"),
            record.get("RequestId"),
            _scalar(record.get("Timestamp")),
            json.dumps(record),
            received_at,
        ))

    if not rows:
        return 0

    with get_db() as conn:
        conn.executemany(
            """
            INSERT INTO worker_metrics (
                worker_port, metric_name, value, unit, dimensions,
                hostname, request_id, timestamp, payload, received_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return len(rows)


def _scalar(value: Any) -> Any:
    """Keep SQLite-native values, JSON-encode the rest."""
    if value is None or isinstance(value, (int, float, str)):
        return value
    return json.dumps(value)


def get_recent_metrics(
    limit: int = 100,
    metric_name: Optional[str] = None,
    worker_port: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Get recent metric records with optional filtering.

    Returns list of records in wire form, newest first.
    """
    ensure_table()

    conditions = []
    params: List[Any] = []

    if metric_name:
        conditions.append("metric_name = ?")
        params.append(metric_name)
    if worker_port is not None:
        conditions.append("worker_port = ?")
        params.append(worker_port)

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    params.append(limit)

    with get_db() as conn:
        cursor = conn.execute(
            f"""
            SELECT payload FROM worker_metrics
            {where_clause}
            ORDER BY id DESC
            LIMIT ?
            """,
            params
        )
        return [json.loads(row["payload"]) for row in cursor.fetchall()]


def cleanup_old_metrics(days: int = 30) -> int:
    """
    Delete metrics older than specified days.

    Returns number of deleted rows.
    """
    ensure_table()

    with get_db() as conn:
        cursor = conn.execute(
            """
            DELETE FROM worker_metrics
            WHERE received_at < ?
            """,
            ((datetime.now(timezone.utc) - timedelta(days=days)).isoformat(),)
        )
        return cursor.rowcount
