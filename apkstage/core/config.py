"""
Stager configuration loader.

Reads an optional YAML/JSON file and merges it over the built-in defaults.

Config file format (YAML or JSON):
    app_name: rootify
    architecture_policy: permissive
    shared_prerelease_group: true
    counter_file: android/app/version.properties

Environment variables:
    APKSTAGE_CONFIG_FILE: path to the config file (optional).
        Default search path: <cwd>/apkstage.yaml
    APKSTAGE_ARCH_POLICY: overrides architecture_policy.
    APKSTAGE_COUNTER_FILE: overrides counter_file.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from apkstage.core.errors import ConfigError

_log = logging.getLogger("apkstage.config")

ArchitecturePolicy = Literal["restrictive", "permissive"]

DEFAULT_STORE_HEADER: List[str] = [
    "#",
    "# Copyright (C) 2026 Rootify - Aby - FoxLabs",
    "# Licensed under the Apache License, Version 2.0",
    "#",
]


class StagerConfig(BaseModel):
    app_name: str = "rootify"

    # Build tool output naming: app-<abi>-<mode>.apk
    artifact_prefix: str = "app-"
    artifact_extension: str = ".apk"

    # Destination layout under the user's home directory
    apps_dir_name: str = "Apps"
    run_dir_name: str = "Run"

    counter_file: str = "version.properties"
    store_header: List[str] = Field(default_factory=lambda: list(DEFAULT_STORE_HEADER))

    # restrictive: skip artifacts with no known ABI; permissive: tag them "universal"
    architecture_policy: ArchitecturePolicy = "restrictive"

    # true: alpha and beta advance one shared "prerelease" counter
    shared_prerelease_group: bool = False


def load_stager_config(path: Optional[Path] = None) -> StagerConfig:
    """
    Load the stager config from a YAML or JSON file.

    A missing file yields the defaults. A file that exists but cannot be
    parsed or validated raises ConfigError: the build must not continue with
    a half-understood configuration.
    """
    resolved = _resolve_path(path)
    data: dict = {}

    if resolved is not None and resolved.exists():
        try:
            raw_text = resolved.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"cannot read config file {resolved}: {exc}") from exc

        try:
            parsed = json.loads(raw_text)
        except json.JSONDecodeError:
            try:
                parsed = yaml.safe_load(raw_text)
            except yaml.YAMLError as exc:
                raise ConfigError(f"config file {resolved} is neither JSON nor YAML: {exc}") from exc

        if parsed is None:
            parsed = {}
        if not isinstance(parsed, dict):
            raise ConfigError(f"config file {resolved} must be a mapping, got {type(parsed).__name__}")
        data = parsed
        _log.info("Loaded stager config from %s", resolved)

    policy = os.getenv("APKSTAGE_ARCH_POLICY", "").strip().lower()
    if policy:
        data["architecture_policy"] = policy
    counter_file = os.getenv("APKSTAGE_COUNTER_FILE", "").strip()
    if counter_file:
        data["counter_file"] = counter_file

    try:
        return StagerConfig(**data)
    except ValidationError as exc:
        raise ConfigError(f"invalid stager config: {exc}") from exc


def _resolve_path(path: Optional[Path]) -> Optional[Path]:
    if path is not None:
        return Path(path)
    env_path = os.getenv("APKSTAGE_CONFIG_FILE", "").strip()
    if env_path:
        return Path(env_path)
    return Path.cwd() / "apkstage.yaml"
