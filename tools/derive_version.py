from __future__ import annotations

import argparse
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
    add_invocation_arguments,
    config_from_args,
    configure_logging,
    flags_from_args,
    parse_date,
    run_guarded,
    store_from_args,
)
from apkstage.core.versioning.deriver import derive, write_identity  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Compute version_code/version_name for this build invocation")
    add_invocation_arguments(ap)
    ap.add_argument("--date", default=None, help="Override build date (YYYY-MM-DD)")
    ap.add_argument("--out", default=None, help="Also write the identity JSON to this path")
    args = ap.parse_args(argv)
    configure_logging(args.verbose)

    def _run() -> int:
        cfg = config_from_args(args)
        identity = derive(
            store_from_args(args, cfg),
            flags_from_args(args),
            parse_date(args.date),
            shared_prerelease_group=cfg.shared_prerelease_group,
        )
        if args.out:
            write_identity(identity, Path(args.out))
        print(json.dumps(identity.to_dict(), sort_keys=True))
        return EXIT_OK

    return run_guarded(_run)


if __name__ == "__main__":
    raise SystemExit(main())
