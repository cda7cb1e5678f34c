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
from apkstage.core.publishing.artifacts import BUILD_MODES  # noqa: E402
from apkstage.core.publishing.publisher import publish  # noqa: E402
from apkstage.core.versioning.context import InvocationFlags, build_mode_for_task  # noqa: E402
from apkstage.core.versioning.deriver import derive, load_identity  # noqa: E402

DEFAULT_OUTPUT_DIR = "build/app/outputs/flutter-apk"


def _now() -> datetime:
    return datetime.now()


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Copy built APKs into ~/Apps with versioned names")
    add_invocation_arguments(ap)
    ap.add_argument("--output-dir", default=DEFAULT_OUTPUT_DIR, help="Build tool APK output directory")
    mode = ap.add_mutually_exclusive_group()
    mode.add_argument("--build-mode", choices=BUILD_MODES, default=None)
    mode.add_argument("--task", default=None, help="Finished task; build mode is inferred (assembleProfile -> profile)")
    ap.add_argument("--home", default=None, help="Home directory (default: current user's)")
    ap.add_argument("--identity", default=None, help="Identity JSON written by derive_version.py --out")
    ap.add_argument("--strict", action="store_true", help="Exit 1 if any artifact failed to copy")
    args = ap.parse_args(argv)
    configure_logging(args.verbose)

    def _run() -> int:
        cfg = config_from_args(args)
        flags = flags_from_args(args)
        now = _now()

        if args.identity:
            identity = load_identity(Path(args.identity))
        else:
            # Re-derive without advancing the counter: only task names drive qualification,
            # and the counter was already advanced (if at all) by derive_version.py.
            identity = derive(
                store_from_args(args, cfg),
                InvocationFlags(ctx=flags.ctx, alpha=flags.alpha, beta=flags.beta, rc=flags.rc, stable=flags.stable),
                now.date(),
                shared_prerelease_group=cfg.shared_prerelease_group,
            )

        build_mode = args.build_mode or (build_mode_for_task(args.task) if args.task else "release")
        result = publish(
            Path(args.output_dir),
            identity,
            flags,
            build_mode,
            Path(args.home) if args.home else Path.home(),
            config=cfg,
            now=now,
        )
        print(json.dumps(result.to_dict(), sort_keys=True))
        if result.failed_count:
            print(f"WARNING: {result.failed_count} artifact(s) failed to copy", file=sys.stderr)
            if args.strict:
                return EXIT_PUBLISH_FAILURES
        return EXIT_OK

    return run_guarded(_run)


if __name__ == "__main__":
    raise SystemExit(main())
