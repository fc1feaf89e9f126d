"""Main FastAPI application hosting the backend worker supervisor.

The API server itself does no inference. On startup it launches the backend
worker once through WorkerLifeCycle and reports its state; restarting a
failed worker is left to the operator.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from model_server.api.routers import workers
from model_server.db.settings import get_setting_int, init_settings_table
from model_server.db.worker_metrics import cleanup_old_metrics
from model_server.worker import (
    DatabaseMetricSink,
    WorkerLifeCycle,
    get_lifecycle_config,
)
from model_server.worker.utils import find_free_port

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


async def start_worker(lifecycle: WorkerLifeCycle, port: int) -> bool:
    """Run the blocking startup handshake off the event loop."""
    logger = logging.getLogger(__name__)

    started = await asyncio.to_thread(lifecycle.start, port)
    if started:
        logger.info(f"Backend worker started on {lifecycle.endpoint}")
    else:
        logger.error(f"Backend worker failed to start on port {port}")
    return started


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events (startup and shutdown)."""
    logger = logging.getLogger(__name__)

    lifecycle: WorkerLifeCycle | None = None
    start_task: asyncio.Task | None = None

    try:
        # Startup
        logger.info("Starting up application...")

        logger.info("Initializing database...")
        init_settings_table()
        try:
            removed = cleanup_old_metrics(days=get_setting_int("metrics_retention_days", 30))
            if removed:
                logger.info(f"Removed {removed} expired worker metrics")
        except Exception as e:
            logger.warning(f"Failed to clean up worker metrics: {e}")

        # 0 picks a free port
        port = get_setting_int("worker_port", 9000) or find_free_port()
        config = get_lifecycle_config()
        logger.info(
            f"Worker config: home={config.model_server_home} entry={config.worker_entry} "
            f"unix={config.prefer_unix_socket} startup_timeout={config.startup_timeout}s"
        )

        lifecycle = WorkerLifeCycle(config, metrics_sink=DatabaseMetricSink(worker_port=port))
        app.state.worker_lifecycle = lifecycle
        start_task = asyncio.create_task(start_worker(lifecycle, port))

        logger.info("Startup complete")

        yield  # Application runs here

    finally:
        # Shutdown
        logger.info("Shutting down application...")

        if lifecycle is not None:
            lifecycle.exit()
            logger.info("Backend worker stopped")

        if start_task is not None:
            try:
                await start_task
            except Exception as e:
                logger.warning(f"Error waiting for worker startup: {e}")

        logger.info("Shutdown complete")


# Create FastAPI app with lifespan handler
app = FastAPI(
    title="Model Server API",
    description="Hosts and supervises the backend inference worker",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

app.include_router(workers.router)


@app.get("/api")
async def root():
    """Root API endpoint with service information."""
    return {
        "name": "Model Server API",
        "version": "0.1.0",
        "status": "running",
        "endpoints": {
            "worker": "/api/worker",
            "worker_metrics": "/api/worker/metrics",
            "docs": "/api/docs",
            "health": "/api/health",
        },
    }


@app.get("/api/health")
async def health():
    """Health check endpoint with worker status."""
    lifecycle = getattr(app.state, "worker_lifecycle", None)
    if lifecycle is None:
        return {"status": "starting", "worker": None}

    state = lifecycle.state
    return {
        "status": "healthy" if lifecycle.is_alive() else "degraded",
        "worker": {
            "state": state.value,
            "endpoint": str(lifecycle.endpoint) if lifecycle.endpoint else None,
            "pid": lifecycle.pid,
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
