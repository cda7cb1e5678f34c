from datetime import date, datetime
from pathlib import Path

import pytest

from apkstage.core.observability.metrics import reset_metrics
from apkstage.core.versioning.counter_store import InMemoryCounterStore


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path: Path):
    # Keep every test away from a real apkstage.yaml / version.properties in cwd
    for key in ("APKSTAGE_CONFIG_FILE", "APKSTAGE_ARCH_POLICY", "APKSTAGE_COUNTER_FILE"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_metrics()


@pytest.fixture()
def memory_store():
    return InMemoryCounterStore()


@pytest.fixture()
def build_date():
    return date(2026, 1, 31)


@pytest.fixture()
def build_time():
    return datetime(2026, 1, 31, 14, 5, 9)


@pytest.fixture()
def home_dir(tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture()
def make_output_dir(tmp_path: Path):
    """
    Returns a factory: make_output_dir({"app-arm64-v8a-release.apk": b"..."}) -> Path
    """

    def _make(files: dict) -> Path:
        out = tmp_path / "outputs" / "flutter-apk"
        out.mkdir(parents=True, exist_ok=True)
        for name, content in files.items():
            (out / name).write_bytes(content)
        return out

    return _make
