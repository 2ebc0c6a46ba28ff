"""Shared test fixtures for confstore tests."""

from __future__ import annotations

import pathlib

import pytest

import confstore.settings


@pytest.fixture(autouse=True)
def isolated_settings(
    tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
) -> pathlib.Path:
    """Keep settings lookups away from the real home and working directory."""
    global_toml = tmp_path / "global_config" / "config.toml"
    monkeypatch.setattr(confstore.settings, "_global_path", lambda: global_toml)
    monkeypatch.delenv(confstore.settings.CONFIG_DIR_ENV, raising=False)
    monkeypatch.chdir(tmp_path)
    return global_toml


@pytest.fixture
def store_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """An empty directory to hold a configuration store."""
    path = tmp_path / "store"
    path.mkdir()
    return path
