from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from apkstage.core.config import StagerConfig
from apkstage.core.errors import PublishIOError
from apkstage.core.observability.metrics import inc_artifact_copied, inc_artifact_copy_failure
from apkstage.core.publishing.artifacts import Artifact, destination_filename, select_artifacts, validate_build_mode
from apkstage.core.versioning.context import BuildContext, InvocationFlags, is_install_flow
from apkstage.core.versioning.deriver import VersionIdentity

_log = logging.getLogger("apkstage.publish")


@dataclass(frozen=True)
class CopyRecord:
    source: Path
    destination: Path

    def to_dict(self) -> Dict[str, str]:
        return {"source": str(self.source), "destination": str(self.destination)}


@dataclass
class PublishResult:
    destination_dir: Path
    install_flow: bool
    copied: List[CopyRecord] = field(default_factory=list)
    failures: List[PublishIOError] = field(default_factory=list)

    @property
    def copied_paths(self) -> List[Path]:
        return [c.destination for c in self.copied]

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "destination_dir": str(self.destination_dir),
            "install_flow": self.install_flow,
            "copied": [c.to_dict() for c in self.copied],
            "failures": [f.to_dict() for f in self.failures],
            "failed_count": self.failed_count,
        }


def display_path(path: Path, home_dir: Path) -> str:
    return str(path).replace(str(home_dir), "~", 1)


def destination_dir_for(
    home_dir: Path,
    context: BuildContext,
    *,
    install_flow: bool,
    now: datetime,
    config: StagerConfig,
) -> Path:
    apps_root = home_dir / config.apps_dir_name
    if install_flow:
        # one directory per development run so earlier runs are never clobbered
        return apps_root / config.run_dir_name / f"{now.strftime('%H-%M-%S')}.run"
    return apps_root / context.value.capitalize()


def _copy_one(artifact: Artifact, dest: Path) -> None:
    # content only, without permission bits
    try:
        if dest.is_symlink() or dest.is_file():
            dest.unlink()
        shutil.copyfile(artifact.source_path, dest)
    except OSError as exc:
        raise PublishIOError(artifact.source_path, dest, exc) from exc


def publish(
    output_dir: Path,
    identity: VersionIdentity,
    flags: InvocationFlags,
    build_mode: str,
    home_dir: Path,
    *,
    config: Optional[StagerConfig] = None,
    now: Optional[datetime] = None,
) -> PublishResult:
    """
    Copy this build's artifacts into the staging directory under home_dir.

    The destination directory is created even when there is nothing to copy.
    Per-file copy failures are collected in the result; the remaining
    artifacts are still copied. An existing file with the same computed name
    is replaced. An output directory that cannot be listed is recorded as a
    single failure.
    """
    cfg = config or StagerConfig()
    validate_build_mode(build_mode)
    ts = now or datetime.now()
    home_dir = Path(home_dir)
    output_dir = Path(output_dir)

    install_flow = is_install_flow(flags.task_names)
    dest_dir = destination_dir_for(home_dir, identity.context, install_flow=install_flow, now=ts, config=cfg)
    result = PublishResult(destination_dir=dest_dir, install_flow=install_flow)

    mkdir_error: Optional[OSError] = None
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        _log.error("Cannot create destination %s: %s", dest_dir, exc)
        mkdir_error = exc

    if not output_dir.is_dir():
        _log.info("No build output at %s; nothing to publish", output_dir)
        if mkdir_error is not None:
            result.failures.append(PublishIOError(output_dir, dest_dir, mkdir_error))
            inc_artifact_copy_failure(build_mode)
        return result

    try:
        candidates = [p for p in output_dir.iterdir() if p.is_file()]
    except OSError as exc:
        _log.error("Cannot list build output %s: %s", output_dir, exc)
        result.failures.append(PublishIOError(output_dir, dest_dir, exc))
        inc_artifact_copy_failure(build_mode)
        return result

    artifacts = select_artifacts(
        candidates,
        build_mode,
        prefix=cfg.artifact_prefix,
        extension=cfg.artifact_extension,
        policy=cfg.architecture_policy,
    )
    if not artifacts:
        _log.info("No %s artifacts matched in %s", build_mode, output_dir)

    date_stamp = ts.strftime("%Y%m%d")
    planned = [
        (
            a,
            dest_dir
            / destination_filename(
                app_name=cfg.app_name,
                architecture=a.architecture or "",
                label=identity.label,
                context=identity.context.value,
                date_stamp=date_stamp,
                build_number=identity.build_number,
                build_mode=build_mode,
                run=install_flow,
                extension=cfg.artifact_extension,
            ),
        )
        for a in artifacts
    ]

    if mkdir_error is not None:
        if not planned:
            result.failures.append(PublishIOError(output_dir, dest_dir, mkdir_error))
            inc_artifact_copy_failure(build_mode)
        for a, dest in planned:
            result.failures.append(PublishIOError(a.source_path, dest, mkdir_error))
            inc_artifact_copy_failure(build_mode)
        return result

    shown_dir = display_path(dest_dir, home_dir)
    for a, dest in planned:
        try:
            _copy_one(a, dest)
        except PublishIOError as err:
            _log.error("%s", err)
            result.failures.append(err)
            inc_artifact_copy_failure(build_mode)
            continue
        result.copied.append(CopyRecord(source=a.source_path, destination=dest))
        inc_artifact_copied(build_mode)
        _log.info("Success: %s -> %s/", dest.name, shown_dir)

    return result
