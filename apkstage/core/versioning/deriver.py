from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

from apkstage.core.errors import ConfigError, StoreIOError
from apkstage.core.observability.metrics import inc_counter_increment
from apkstage.core.versioning.context import (
    BuildContext,
    InvocationFlags,
    group_key_for,
    is_qualifying_build,
    parse_context,
    resolve_build_context,
    version_label,
)
from apkstage.core.versioning.counter_store import CounterStore, count_key, read_count

_log = logging.getLogger("apkstage.versioning")

# version_code = YYMMDD * 100 + build: two decimal digits per day.
# A 100th build collides with the next day's codes; logged, not corrected.
DAILY_BUILD_CEILING = 99


@dataclass(frozen=True)
class VersionIdentity:
    version_code: int
    version_name: str
    label: str
    context: BuildContext
    build_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version_code": self.version_code,
            "version_name": self.version_name,
            "label": self.label,
            "context": self.context.value,
            "build": self.build_number,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionIdentity":
        try:
            return cls(
                version_code=int(data["version_code"]),
                version_name=str(data["version_name"]),
                label=str(data["label"]),
                context=parse_context(str(data["context"])),
                build_number=int(data["build"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigError(f"malformed version identity: {exc}") from exc


def date_prefix(current_date: date) -> int:
    return int(current_date.strftime("%y%m%d"))


def version_code_for(current_date: date, build_number: int) -> int:
    return date_prefix(current_date) * 100 + build_number


def derive(
    store: CounterStore,
    flags: InvocationFlags,
    current_date: Optional[date] = None,
    *,
    shared_prerelease_group: bool = False,
) -> VersionIdentity:
    """
    Compute the version identity for this invocation.

    Qualifying builds (standalone release assemble/bundle, no install task)
    advance the context's counter and persist it before returning. Everything
    else reads the current counter and leaves the store untouched.
    """
    context = resolve_build_context(flags)
    group_key = group_key_for(context, shared_prerelease_group=shared_prerelease_group)
    today = current_date or date.today()

    if is_qualifying_build(flags.task_names):
        with store.locked():
            props = store.load()
            build_number = read_count(props, group_key) + 1
            props[count_key(group_key)] = str(build_number)
            store.save(props)
        inc_counter_increment(group_key)
        _log.info("Advanced %s to %d", count_key(group_key), build_number)
    else:
        build_number = read_count(store.load(), group_key)
        _log.debug("Non-qualifying invocation; %s stays at %d", count_key(group_key), build_number)

    if build_number > DAILY_BUILD_CEILING:
        _log.warning(
            "Build number %d exceeds %d; version_code will overlap the next day's range",
            build_number,
            DAILY_BUILD_CEILING,
        )

    label = version_label(context, build_number)
    return VersionIdentity(
        version_code=version_code_for(today, build_number),
        version_name=f"{label}-{context.value}",
        label=label,
        context=context,
        build_number=build_number,
    )


def write_identity(identity: VersionIdentity, path: Path) -> None:
    try:
        path.write_text(json.dumps(identity.to_dict(), indent=2, sort_keys=True), encoding="utf-8")
    except OSError as exc:
        raise StoreIOError(f"cannot write version identity to {path}: {exc}") from exc


def load_identity(path: Path) -> VersionIdentity:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise StoreIOError(f"cannot read version identity {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"version identity {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"version identity {path} must be a JSON object")
    return VersionIdentity.from_dict(data)
