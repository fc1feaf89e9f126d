"""Worker status and metrics API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from ..models.workers import WorkerMetricsResponse, WorkerStatusResponse
from ...db import worker_metrics
from ...worker import WorkerLifeCycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["worker"])


def _lifecycle(request: Request) -> WorkerLifeCycle:
    lifecycle = getattr(request.app.state, "worker_lifecycle", None)
    if lifecycle is None:
        raise HTTPException(
            status_code=503,
            detail={"code": "WORKER_NOT_CONFIGURED", "message": "No worker supervisor"},
        )
    return lifecycle


@router.get("/worker", response_model=WorkerStatusResponse)
async def get_worker_status(request: Request) -> WorkerStatusResponse:
    """Get state and endpoint of the supervised worker."""
    lifecycle = _lifecycle(request)
    endpoint = lifecycle.endpoint
    return WorkerStatusResponse(
        state=lifecycle.state.value,
        alive=lifecycle.is_alive(),
        port=lifecycle.port,
        endpoint=str(endpoint) if endpoint is not None else None,
        sock_type=endpoint.kind if endpoint is not None else None,
        pid=lifecycle.pid,
    )


@router.get("/worker/metrics", response_model=WorkerMetricsResponse)
async def get_worker_metrics(
    limit: int = Query(100, ge=1, le=1000),
    metric_name: Optional[str] = None,
) -> WorkerMetricsResponse:
    """
    Get recent metric records reported by the worker.

    Args:
        limit: Max records to return
        metric_name: Only return records with this MetricName

    Returns:
        Metric records, newest first
    """
    try:
        metrics = worker_metrics.get_recent_metrics(limit=limit, metric_name=metric_name)
    except Exception as e:
        logger.error(f"Error getting worker metrics: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={
                "code": "METRICS_ERROR",
                "message": f"Failed to get worker metrics: {str(e)}"
            }
        )
    return WorkerMetricsResponse(metrics=metrics, count=len(metrics))
