from __future__ import annotations

from collections import Counter
from typing import Dict

from prometheus_client import Counter as PromCounter

# Named counters (in-process, resettable)
_NAMED = Counter()

_PROM_INCREMENTS = PromCounter(
    "apkstage_counter_increments_total",
    "Build counter increments persisted by qualifying builds",
    ["group"],
)

_PROM_COPIED = PromCounter(
    "apkstage_artifacts_copied_total",
    "Artifacts copied into a destination directory",
    ["build_mode"],
)

_PROM_COPY_FAILURES = PromCounter(
    "apkstage_artifact_copy_failures_total",
    "Artifacts that could not be copied",
    ["build_mode"],
)


def reset_metrics() -> None:
    """
    Test helper: clears the named counters to avoid cross-test leakage.
    Prometheus counters are process-global and are not reset.
    """
    _NAMED.clear()


def inc_named(name: str, value: int = 1) -> None:
    if not name:
        return
    _NAMED[name] += int(value)


def inc_counter_increment(group: str) -> None:
    _NAMED[f"counter_increments_{group}"] += 1
    _PROM_INCREMENTS.labels(group=group).inc()


def inc_artifact_copied(build_mode: str) -> None:
    _NAMED["artifacts_copied"] += 1
    _PROM_COPIED.labels(build_mode=build_mode).inc()


def inc_artifact_copy_failure(build_mode: str) -> None:
    _NAMED["artifact_copy_failures"] += 1
    _PROM_COPY_FAILURES.labels(build_mode=build_mode).inc()


def snapshot_named() -> Dict[str, int]:
    return dict(_NAMED)
