from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from apkstage.core.errors import ConfigError

BUILD_MODES = ("debug", "profile", "release")

# Checked in order; first substring hit wins.
ARCHITECTURES = ("arm64-v8a", "armeabi-v7a")

UNIVERSAL_TAG = "universal"


@dataclass(frozen=True)
class Artifact:
    source_path: Path
    build_mode: str
    architecture: Optional[str]

    @property
    def name(self) -> str:
        return self.source_path.name


def validate_build_mode(build_mode: str) -> str:
    if build_mode not in BUILD_MODES:
        raise ConfigError(f"unknown build mode {build_mode!r} (expected one of: {', '.join(BUILD_MODES)})")
    return build_mode


def classify_architecture(filename: str, policy: str = "restrictive") -> Optional[str]:
    for arch in ARCHITECTURES:
        if arch in filename:
            return arch
    if policy == "permissive":
        return UNIVERSAL_TAG
    return None


def matches_build_mode(filename: str, build_mode: str, *, prefix: str = "app-", extension: str = ".apk") -> bool:
    return filename.startswith(prefix) and filename.endswith(f"-{build_mode}{extension}")


def select_artifacts(
    candidates: Iterable[Path],
    build_mode: str,
    *,
    prefix: str = "app-",
    extension: str = ".apk",
    policy: str = "restrictive",
) -> List[Artifact]:
    """Filter candidate files by build mode, then tag each with its ABI."""
    validate_build_mode(build_mode)
    out: List[Artifact] = []
    for p in sorted(candidates, key=lambda x: x.name):
        if not matches_build_mode(p.name, build_mode, prefix=prefix, extension=extension):
            continue
        arch = classify_architecture(p.name, policy)
        if arch is None:
            continue
        out.append(Artifact(source_path=p, build_mode=build_mode, architecture=arch))
    return out


def destination_filename(
    *,
    app_name: str,
    architecture: str,
    label: str,
    context: str,
    date_stamp: str,
    build_number: int,
    build_mode: str,
    run: bool = False,
    extension: str = ".apk",
) -> str:
    runtime_meta = "-run" if run else ""
    return f"{app_name}-{architecture}-{label}-{context}-{date_stamp}-b{build_number}-{build_mode}{runtime_meta}{extension}"
