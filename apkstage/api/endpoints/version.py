from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Query

from apkstage.core.config import load_stager_config
from apkstage.core.observability.metrics import inc_named
from apkstage.core.versioning.context import InvocationFlags, group_key_for
from apkstage.core.versioning.counter_store import CounterStore, InMemoryCounterStore, PropertiesCounterStore
from apkstage.core.versioning.deriver import derive

router = APIRouter(tags=["version"])


def _open_store() -> tuple[CounterStore, bool]:
    """Store for read-only queries. A missing file is served as empty, never created."""
    cfg = load_stager_config()
    path = Path(cfg.counter_file)
    if not path.exists():
        return InMemoryCounterStore(), cfg.shared_prerelease_group
    return PropertiesCounterStore(path, header=cfg.store_header), cfg.shared_prerelease_group


@router.get("/api/v1/version/preview")
def preview_version(ctx: Optional[str] = Query(None, description="alpha|beta|rc|stable")):
    inc_named("version_preview")
    store, shared = _open_store()
    # no task names: never a qualifying build, so the store is not advanced
    identity = derive(store, InvocationFlags(ctx=ctx), date.today(), shared_prerelease_group=shared)

    return {
        "kind": "version_preview",
        "group": group_key_for(identity.context, shared_prerelease_group=shared),
        **identity.to_dict(),
    }


@router.get("/api/v1/counters")
def list_counters():
    inc_named("counters_list")
    store, _ = _open_store()
    counts = store.counts()
    return {"kind": "counters", "counters": dict(sorted(counts.items()))}

