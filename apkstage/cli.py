"""Argument and exit-status helpers shared by the scripts under tools/."""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from apkstage.core.config import StagerConfig, load_stager_config
from apkstage.core.errors import ConfigError, StoreIOError
from apkstage.core.versioning.context import InvocationFlags
from apkstage.core.versioning.counter_store import PropertiesCounterStore

EXIT_OK = 0
EXIT_PUBLISH_FAILURES = 1
EXIT_FATAL = 2


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
    )


def add_invocation_arguments(ap: argparse.ArgumentParser) -> None:
    ap.add_argument("tasks", nargs="*", help="Task names requested from the build tool (e.g. assembleRelease)")
    ap.add_argument("--ctx", default=None, help="Build context: alpha|beta|rc|stable")
    for name in ("alpha", "beta", "rc", "stable"):
        ap.add_argument(f"--{name}", action="store_true", help=f"Shorthand for --ctx {name}")
    ap.add_argument("--config", default=None, help="Stager config file (YAML or JSON)")
    ap.add_argument("--store", default=None, help="Counter store path (default from config)")
    ap.add_argument("-v", "--verbose", action="store_true")


def flags_from_args(args: argparse.Namespace) -> InvocationFlags:
    return InvocationFlags(
        ctx=args.ctx,
        alpha=args.alpha,
        beta=args.beta,
        rc=args.rc,
        stable=args.stable,
        task_names=list(args.tasks or []),
    )


def config_from_args(args: argparse.Namespace) -> StagerConfig:
    return load_stager_config(Path(args.config) if args.config else None)


def store_from_args(args: argparse.Namespace, cfg: StagerConfig) -> PropertiesCounterStore:
    return PropertiesCounterStore(Path(args.store or cfg.counter_file), header=cfg.store_header)


def run_guarded(fn: Callable[[], int], *, stream=None) -> int:
    """Run a tool body, turning fatal errors into a one-line message and exit 2."""
    out = stream if stream is not None else sys.stderr
    try:
        return fn()
    except ConfigError as e:
        print(f"ERROR: configuration: {e}", file=out)
        return EXIT_FATAL
    except StoreIOError as e:
        print(f"ERROR: counter store: {e}", file=out)
        return EXIT_FATAL


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ConfigError(f"--date must be YYYY-MM-DD, got {value!r}") from None
