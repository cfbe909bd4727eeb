from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _isolate_runtime_fetcher_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    """Keep caches and logs written during tests away from real user data."""

    monkeypatch.setenv("RUNTIME_FETCHER_INSTALL_ROOT", str(tmp_path_factory.mktemp("install_root")))
    monkeypatch.setenv("RUNTIME_FETCHER_LOG_DIR", str(tmp_path_factory.mktemp("logs")))
    monkeypatch.delenv("RUNTIME_FETCHER_LOG_FILE", raising=False)
    monkeypatch.delenv("RUNTIME_FETCHER_CATALOG_URL", raising=False)
    monkeypatch.delenv("RUNTIME_FETCHER_VERSION", raising=False)
    yield
