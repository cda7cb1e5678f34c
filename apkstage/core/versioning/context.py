from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from apkstage.core.errors import ConfigError


class BuildContext(str, Enum):
    ALPHA = "alpha"
    BETA = "beta"
    RC = "rc"
    STABLE = "stable"


# Shorthand flags are checked in this order when no explicit context is given.
SHORTHAND_PRIORITY = (BuildContext.ALPHA, BuildContext.BETA, BuildContext.RC, BuildContext.STABLE)

SHARED_PRERELEASE_GROUP = "prerelease"

DISTRIBUTABLE_TASK_MARKERS = ("assemble", "bundle")
RELEASE_VARIANT_MARKER = "Release"
INSTALL_TASK_MARKER = "install"


@dataclass(frozen=True)
class InvocationFlags:
    """What the build tool was asked to do, as seen by this invocation."""

    ctx: Optional[str] = None
    alpha: bool = False
    beta: bool = False
    rc: bool = False
    stable: bool = False
    task_names: List[str] = field(default_factory=list)

    def shorthand(self, context: BuildContext) -> bool:
        return bool(getattr(self, context.value))


def parse_context(value: str) -> BuildContext:
    v = (value or "").strip().lower()
    try:
        return BuildContext(v)
    except ValueError:
        allowed = ", ".join(c.value for c in BuildContext)
        raise ConfigError(f"unknown build context {value!r} (expected one of: {allowed})") from None


def resolve_build_context(flags: InvocationFlags) -> BuildContext:
    if flags.ctx is not None:
        return parse_context(flags.ctx)
    for candidate in SHORTHAND_PRIORITY:
        if flags.shorthand(candidate):
            return candidate
    return BuildContext.STABLE


def group_key_for(context: BuildContext, *, shared_prerelease_group: bool = False) -> str:
    """Counter group for a context.

    Identity by default. With shared_prerelease_group, alpha and beta advance
    one counter so their 0.9.N labels never repeat across the two channels.
    """
    if shared_prerelease_group and context in (BuildContext.ALPHA, BuildContext.BETA):
        return SHARED_PRERELEASE_GROUP
    return context.value


def _validated_task_names(task_names: Iterable[str]) -> List[str]:
    names = list(task_names)
    for n in names:
        if not isinstance(n, str):
            raise ConfigError(f"task names must be strings, got {type(n).__name__}")
    return names


def is_install_flow(task_names: Iterable[str]) -> bool:
    return any(INSTALL_TASK_MARKER in n for n in _validated_task_names(task_names))


def is_qualifying_build(task_names: Iterable[str]) -> bool:
    """True for a standalone release package/bundle, false for development installs."""
    names = _validated_task_names(task_names)
    builds_distributable = any(
        any(m in n for m in DISTRIBUTABLE_TASK_MARKERS) and RELEASE_VARIANT_MARKER in n
        for n in names
    )
    return builds_distributable and not is_install_flow(names)


def build_mode_for_task(task_name: str) -> str:
    if "Profile" in task_name:
        return "profile"
    if "Debug" in task_name:
        return "debug"
    return "release"


def version_label(context: BuildContext, build_number: int) -> str:
    if context in (BuildContext.ALPHA, BuildContext.BETA):
        return f"0.9.{build_number}"
    if context == BuildContext.RC:
        return f"0.9.9.{build_number}"
    return f"1.0.{build_number}"
