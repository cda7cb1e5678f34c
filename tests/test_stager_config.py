"""Stager config loader tests."""
from __future__ import annotations

import json

import pytest

from apkstage.core.config import DEFAULT_STORE_HEADER, StagerConfig, load_stager_config
from apkstage.core.errors import ConfigError


def test_defaults_when_file_missing(tmp_path):
    cfg = load_stager_config(tmp_path / "nonexistent.yaml")
    assert cfg == StagerConfig()
    assert cfg.app_name == "rootify"
    assert cfg.architecture_policy == "restrictive"
    assert cfg.shared_prerelease_group is False
    assert cfg.store_header == DEFAULT_STORE_HEADER


def test_load_yaml_file(tmp_path):
    f = tmp_path / "apkstage.yaml"
    f.write_text("app_name: demo\narchitecture_policy: permissive\nshared_prerelease_group: true\n", encoding="utf-8")
    cfg = load_stager_config(f)
    assert cfg.app_name == "demo"
    assert cfg.architecture_policy == "permissive"
    assert cfg.shared_prerelease_group is True


def test_load_json_file(tmp_path):
    f = tmp_path / "apkstage.json"
    f.write_text(json.dumps({"counter_file": "android/app/version.properties"}), encoding="utf-8")
    assert load_stager_config(f).counter_file == "android/app/version.properties"


def test_empty_file_gives_defaults(tmp_path):
    f = tmp_path / "apkstage.yaml"
    f.write_text("", encoding="utf-8")
    assert load_stager_config(f) == StagerConfig()


def test_malformed_file_is_config_error(tmp_path):
    f = tmp_path / "bad.yaml"
    f.write_text("this: is: not: valid: yaml:\n  {{{{", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_stager_config(f)


def test_non_mapping_is_config_error(tmp_path):
    f = tmp_path / "list.json"
    f.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
    with pytest.raises(ConfigError):
        load_stager_config(f)


def test_invalid_policy_is_config_error(tmp_path):
    f = tmp_path / "apkstage.yaml"
    f.write_text("architecture_policy: lenient\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_stager_config(f)


def test_default_search_path_is_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "apkstage.yaml").write_text("app_name: fromcwd\n", encoding="utf-8")
    assert load_stager_config().app_name == "fromcwd"


def test_env_var_selects_file(tmp_path, monkeypatch):
    f = tmp_path / "elsewhere.json"
    f.write_text(json.dumps({"app_name": "fromenv"}), encoding="utf-8")
    monkeypatch.setenv("APKSTAGE_CONFIG_FILE", str(f))
    assert load_stager_config().app_name == "fromenv"


def test_env_overrides_win_over_file(tmp_path, monkeypatch):
    f = tmp_path / "apkstage.yaml"
    f.write_text("architecture_policy: restrictive\ncounter_file: a.properties\n", encoding="utf-8")
    monkeypatch.setenv("APKSTAGE_ARCH_POLICY", "Permissive")
    monkeypatch.setenv("APKSTAGE_COUNTER_FILE", "b.properties")
    cfg = load_stager_config(f)
    assert cfg.architecture_policy == "permissive"
    assert cfg.counter_file == "b.properties"
