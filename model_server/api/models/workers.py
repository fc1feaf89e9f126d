"""Pydantic models for worker API endpoints."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class WorkerStatusResponse(BaseModel):
    """Response model for the supervised worker."""

    state: str = Field(..., description="Worker lifecycle state")
    alive: bool = Field(..., description="True while the worker process runs")
    port: Optional[int] = Field(None, description="Worker port")
    endpoint: Optional[str] = Field(None, description="Socket the worker listens on")
    sock_type: Optional[str] = Field(None, description="'unix' or 'tcp'")
    pid: Optional[int] = Field(None, description="Worker process ID")


class WorkerMetricsResponse(BaseModel):
    """Response model for recent worker metrics."""

    metrics: List[Dict[str, Any]] = Field(..., description="Metric records, newest first")
    count: int = Field(..., description="Number of records returned")
