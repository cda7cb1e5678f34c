"""
Derive the version for this invocation, then stage every finished APK build.

Intended to be called once by the build wrapper after the build tool exits,
with the same task names the build tool was given:

    python tools/post_build.py --beta assembleRelease
    python tools/post_build.py installDebug assembleDebug
"""
from __future__ import annotations

import argparse
from datetime import datetime
import json
from pathlib import Path
import sys

# ---- sys.path bootstrap (Windows-friendly) ----
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
# ---------------------------------------------

from apkstage.cli import (  # noqa: E402
    EXIT_OK,
    EXIT_PUBLISH_FAILURES,
    add_invocation_arguments,
    config_from_args,
    configure_logging,
    flags_from_args,
    run_guarded,
    store_from_args,
)
from apkstage.core.publishing.publisher import publish  # noqa: E402
from apkstage.core.versioning.context import build_mode_for_task  # noqa: E402
from apkstage.core.versioning.deriver import derive  # noqa: E402

POST_BUILD_TASKS = ("assembleDebug", "assembleProfile", "assembleRelease")
DEFAULT_OUTPUT_DIR = "build/app/outputs/flutter-apk"


def _now() -> datetime:
    return datetime.now()


def finished_post_build_tasks(task_names: list[str]) -> list[str]:
    out: list[str] = []
    for name in task_names:
        short = name.rsplit(":", 1)[-1]
        # installX runs assembleX first
        if short.startswith("install"):
            short = "assemble" + short[len("install"):]
        if short in POST_BUILD_TASKS and short not in out:
            out.append(short)
    return out


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Derive version metadata and stage finished APKs")
    add_invocation_arguments(ap)
    ap.add_argument("--output-dir", default=DEFAULT_OUTPUT_DIR)
    ap.add_argument("--home", default=None)
    ap.add_argument("--strict", action="store_true")
    args = ap.parse_args(argv)
    configure_logging(args.verbose)

    def _run() -> int:
        cfg = config_from_args(args)
        flags = flags_from_args(args)
        # single clock reading shared by the version code, file names and run dir
        now = _now()
        identity = derive(
            store_from_args(args, cfg), flags, now.date(), shared_prerelease_group=cfg.shared_prerelease_group
        )
        home = Path(args.home) if args.home else Path.home()

        failed = 0
        report = {"identity": identity.to_dict(), "publish": []}
        for task in finished_post_build_tasks(flags.task_names):
            result = publish(Path(args.output_dir), identity, flags, build_mode_for_task(task), home, config=cfg, now=now)
            failed += result.failed_count
            report["publish"].append({"task": task, **result.to_dict()})

        print(json.dumps(report, sort_keys=True))
        if failed and args.strict:
            return EXIT_PUBLISH_FAILURES
        return EXIT_OK

    return run_guarded(_run)


if __name__ == "__main__":
    raise SystemExit(main())
