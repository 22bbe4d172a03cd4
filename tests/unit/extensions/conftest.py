from __future__ import annotations

from pathlib import Path

import pytest

from extension_archives import BINARY, build_archive, fragment_toml
from plugctl.config.cli_settings import SettingsManager
from plugctl.core.config import PlugctlConfig


@pytest.fixture
def hello_archive(tmp_path: Path) -> Path:
    return build_archive(
        tmp_path / "pkg.tar.gz",
        {
            "manifest.toml": fragment_toml(),
            "stripe-cli-hello": BINARY,
        },
    )


@pytest.fixture
def settings(tmp_path: Path) -> SettingsManager:
    return SettingsManager(tmp_path / "home" / "config.json")


@pytest.fixture
def config(tmp_path: Path) -> PlugctlConfig:
    return PlugctlConfig(
        catalog_path=tmp_path / "home" / "plugins.toml",
        extensions_dir=tmp_path / "home" / "plugins",
        api_base_url="https://api.example/v1",
        api_key="sk_test_123",
        lock_timeout=0.2,
    )
