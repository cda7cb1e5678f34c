from __future__ import annotations

import json
import logging
from datetime import date

import pytest

from apkstage.core.errors import ConfigError, StoreIOError
from apkstage.core.observability.metrics import snapshot_named
from apkstage.core.versioning.context import BuildContext, InvocationFlags
from apkstage.core.versioning.counter_store import InMemoryCounterStore, PropertiesCounterStore
from apkstage.core.versioning.deriver import (
    VersionIdentity,
    derive,
    load_identity,
    version_code_for,
    write_identity,
)

RELEASE = ["assembleRelease"]
DEV_RUN = ["installDebug"]

EXPECTED_FIRST_LABEL = {
    "alpha": "0.9.1",
    "beta": "0.9.1",
    "rc": "0.9.9.1",
    "stable": "1.0.1",
}


@pytest.mark.parametrize("ctx", ["alpha", "beta", "rc", "stable"])
def test_fresh_store_first_release_build(ctx, build_date):
    store = InMemoryCounterStore()
    ident = derive(store, InvocationFlags(ctx=ctx, task_names=RELEASE), build_date)

    assert ident.build_number == 1
    assert ident.label == EXPECTED_FIRST_LABEL[ctx]
    assert ident.version_name == f"{EXPECTED_FIRST_LABEL[ctx]}-{ctx}"
    assert ident.context == BuildContext(ctx)
    assert ident.version_code == 26013101
    assert store.load() == {f"{ctx}_count": "1"}


def test_non_qualifying_never_mutates(build_date):
    store = InMemoryCounterStore({"beta_count": "4"})
    flags = InvocationFlags(beta=True, task_names=DEV_RUN)

    results = [derive(store, flags, build_date) for _ in range(5)]

    assert {r.build_number for r in results} == {4}
    assert store.load() == {"beta_count": "4"}
    assert store.save_calls == 0


def test_no_tasks_is_non_qualifying(build_date):
    store = InMemoryCounterStore()
    ident = derive(store, InvocationFlags(), build_date)
    assert ident.build_number == 0
    assert ident.version_name == "1.0.0-stable"
    assert store.save_calls == 0


def test_successive_release_builds_increase_by_one(build_date):
    store = InMemoryCounterStore()
    flags = InvocationFlags(ctx="rc", task_names=["bundleRelease"])
    numbers = [derive(store, flags, build_date).build_number for _ in range(5)]
    assert numbers == [1, 2, 3, 4, 5]


def test_contexts_have_independent_counters(build_date):
    store = InMemoryCounterStore()
    derive(store, InvocationFlags(alpha=True, task_names=RELEASE), build_date)
    derive(store, InvocationFlags(alpha=True, task_names=RELEASE), build_date)
    beta = derive(store, InvocationFlags(beta=True, task_names=RELEASE), build_date)
    assert beta.build_number == 1
    assert store.load() == {"alpha_count": "2", "beta_count": "1"}


def test_shared_prerelease_group(build_date):
    store = InMemoryCounterStore()
    derive(store, InvocationFlags(alpha=True, task_names=RELEASE), build_date, shared_prerelease_group=True)
    beta = derive(store, InvocationFlags(beta=True, task_names=RELEASE), build_date, shared_prerelease_group=True)
    assert beta.build_number == 2
    assert beta.version_name == "0.9.2-beta"
    assert store.load() == {"prerelease_count": "2"}


def test_install_flow_does_not_advance_even_with_release_assemble(build_date):
    store = InMemoryCounterStore({"stable_count": "7"})
    ident = derive(store, InvocationFlags(task_names=["assembleRelease", "installRelease"]), build_date)
    assert ident.build_number == 7
    assert store.save_calls == 0


def test_version_code_strictly_increases_within_day():
    d = date(2026, 1, 31)
    codes = [version_code_for(d, n) for n in range(0, 100)]
    assert codes == sorted(set(codes))
    assert version_code_for(d, 7) == version_code_for(d, 7) == 26013107


def test_version_code_next_day_is_larger_under_ceiling():
    assert version_code_for(date(2026, 2, 1), 0) > version_code_for(date(2026, 1, 31), 99)


def test_ceiling_overflow_is_logged_not_corrected(build_date, caplog):
    store = InMemoryCounterStore({"stable_count": "99"})
    with caplog.at_level(logging.WARNING, logger="apkstage.versioning"):
        ident = derive(store, InvocationFlags(task_names=RELEASE), build_date)
    assert ident.build_number == 100
    assert ident.version_code == 260131 * 100 + 100
    assert any("exceeds 99" in r.getMessage() for r in caplog.records)


def test_corrupt_counter_is_config_error(build_date):
    store = InMemoryCounterStore({"stable_count": "lots"})
    with pytest.raises(ConfigError):
        derive(store, InvocationFlags(task_names=RELEASE), build_date)
    assert store.save_calls == 0


def test_store_write_failure_is_fatal(build_date):
    class ReadOnlyStore(InMemoryCounterStore):
        def save(self, props):
            raise StoreIOError("read-only filesystem")

    with pytest.raises(StoreIOError):
        derive(ReadOnlyStore(), InvocationFlags(task_names=RELEASE), build_date)


def test_unknown_context_fails_before_touching_store(build_date):
    store = InMemoryCounterStore()
    with pytest.raises(ConfigError):
        derive(store, InvocationFlags(ctx="nightly", task_names=RELEASE), build_date)
    assert store.load() == {}


def test_release_build_persists_to_properties_file(tmp_path, build_date):
    p = tmp_path / "version.properties"
    flags = InvocationFlags(ctx="stable", task_names=RELEASE)

    derive(PropertiesCounterStore(p), flags, build_date)
    ident = derive(PropertiesCounterStore(p), flags, build_date)

    assert ident.build_number == 2
    text = p.read_text(encoding="utf-8")
    assert text.startswith("#\n# Copyright (C) 2026 Rootify - Aby - FoxLabs\n")
    assert "stable_count=2" in text


def test_increment_metric_recorded(build_date):
    derive(InMemoryCounterStore(), InvocationFlags(rc=True, task_names=RELEASE), build_date)
    assert snapshot_named().get("counter_increments_rc") == 1


def test_identity_json_roundtrip(tmp_path, build_date):
    ident = derive(InMemoryCounterStore(), InvocationFlags(beta=True, task_names=RELEASE), build_date)
    out = tmp_path / "version.json"
    write_identity(ident, out)

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data == {
        "build": 1,
        "context": "beta",
        "label": "0.9.1",
        "version_code": 26013101,
        "version_name": "0.9.1-beta",
    }
    assert load_identity(out) == ident


def test_load_identity_rejects_malformed(tmp_path):
    out = tmp_path / "version.json"
    out.write_text(json.dumps({"label": "1.0.1"}), encoding="utf-8")
    with pytest.raises(ConfigError):
        load_identity(out)


def test_identity_from_dict_rejects_unknown_context():
    with pytest.raises(ConfigError):
        VersionIdentity.from_dict(
            {"version_code": 1, "version_name": "x", "label": "x", "context": "nightly", "build": 1}
        )
