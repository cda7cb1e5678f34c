from .context import (
    BuildContext,
    InvocationFlags,
    build_mode_for_task,
    group_key_for,
    is_install_flow,
    is_qualifying_build,
    resolve_build_context,
)
from .counter_store import CounterStore, InMemoryCounterStore, PropertiesCounterStore
from .deriver import VersionIdentity, derive

__all__ = [
    "BuildContext",
    "InvocationFlags",
    "build_mode_for_task",
    "group_key_for",
    "is_install_flow",
    "is_qualifying_build",
    "resolve_build_context",
    "CounterStore",
    "InMemoryCounterStore",
    "PropertiesCounterStore",
    "VersionIdentity",
    "derive",
]
