"""Stager metrics for CI dashboards.

/metrics is the Prometheus scrape: counter increments per group, artifacts
copied and copy failures per build mode. /api/v1/metrics/named returns the
in-process named counters (health checks, previews, increments, copies) as
JSON for quick inspection without a Prometheus server.
"""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from apkstage.core.observability.metrics import snapshot_named

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
def prometheus_metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/api/v1/metrics/named")
def named_metrics():
    return {"kind": "named_metrics", "counters": dict(sorted(snapshot_named().items()))}
