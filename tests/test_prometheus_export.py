"""Prometheus export endpoint contract tests.

Validates that the scrape endpoint is reachable and lists the stager's metric
names. Absolute values are process-global and not asserted.
"""

from datetime import date

from fastapi.testclient import TestClient

from apkstage.api.main import app
from apkstage.core.versioning.context import InvocationFlags
from apkstage.core.versioning.counter_store import InMemoryCounterStore
from apkstage.core.versioning.deriver import derive


def test_prometheus_metrics_endpoint_returns_200():
    derive(InMemoryCounterStore(), InvocationFlags(task_names=["assembleRelease"]), date(2026, 1, 31))
    r = TestClient(app).get("/metrics")
    assert r.status_code == 200
    assert "apkstage_counter_increments_total" in r.text
    assert "apkstage_artifacts_copied_total" in r.text
