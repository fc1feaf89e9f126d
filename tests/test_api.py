"""
Tests for the host application and worker API endpoints.
"""

import sys
import time

import pytest
from fastapi.testclient import TestClient

import main
from model_server.db import worker_metrics
from model_server.worker import WorkerLifeCycle, WorkerLifeCycleConfig


@pytest.fixture
def client(data_dir):
    """Client without lifespan; tests install the supervisor themselves."""
    if hasattr(main.app.state, "worker_lifecycle"):
        del main.app.state.worker_lifecycle
    yield TestClient(main.app)
    if hasattr(main.app.state, "worker_lifecycle"):
        del main.app.state.worker_lifecycle


class TestWorkerEndpoints:
    """GET /api/worker and /api/worker/metrics."""

    def test_no_supervisor(self, client):
        response = client.get("/api/worker")

        assert response.status_code == 503

    def test_not_started(self, client, model_home):
        main.app.state.worker_lifecycle = WorkerLifeCycle(
            WorkerLifeCycleConfig(model_server_home=str(model_home))
        )

        body = client.get("/api/worker").json()

        assert body["state"] == "not_started"
        assert body["alive"] is False
        assert body["endpoint"] is None

    def test_running_worker(self, client, make_lifecycle, write_worker):
        write_worker("""
            import time
            print("MxNet worker started.", flush=True)
            time.sleep(60)
        """)
        lifecycle = make_lifecycle()
        assert lifecycle.start(9000) is True
        main.app.state.worker_lifecycle = lifecycle

        body = client.get("/api/worker").json()

        assert body["state"] == "ready"
        assert body["alive"] is True
        assert body["port"] == 9000
        assert body["sock_type"] == "tcp"
        assert body["endpoint"] == "tcp:127.0.0.1:9000"
        assert body["pid"] == lifecycle.pid

        health = client.get("/api/health").json()
        assert health["status"] == "healthy"
        assert health["worker"]["state"] == "ready"

    def test_metrics(self, client):
        worker_metrics.ensure_table()
        worker_metrics.insert_metrics(
            [{"MetricName": "A", "Value": 1}, {"MetricName": "B", "Value": 2}],
            worker_port=9000,
        )

        body = client.get("/api/worker/metrics", params={"metric_name": "A"}).json()

        assert body == {"metrics": [{"MetricName": "A", "Value": 1}], "count": 1}

    def test_metrics_limit_validated(self, client):
        response = client.get("/api/worker/metrics", params={"limit": 0})

        assert response.status_code == 422


class TestLifespan:
    """Application startup launches the worker; shutdown kills it."""

    def test_starts_and_stops_worker(self, put_setting, model_home, write_worker, spawned):
        write_worker("""
            import time
            print('[METRICS][{"MetricName": "WorkerLoadTime", "Value": 3}]', flush=True)
            print("MxNet worker started.", flush=True)
            time.sleep(60)
        """)
        put_setting("model_server_home", str(model_home))
        put_setting("worker_python", sys.executable)
        put_setting("worker_prefer_unix_socket", "false")
        put_setting("worker_port", "9123")

        with TestClient(main.app) as client:
            deadline = time.time() + 20
            body = client.get("/api/worker").json()
            while body["state"] in ("not_started", "starting") and time.time() < deadline:
                time.sleep(0.05)
                body = client.get("/api/worker").json()

            assert body["state"] == "ready"
            assert body["port"] == 9123

            metrics = client.get("/api/worker/metrics").json()
            assert metrics["metrics"] == [{"MetricName": "WorkerLoadTime", "Value": 3}]

        assert spawned[0].wait(timeout=5) is not None
        del main.app.state.worker_lifecycle
