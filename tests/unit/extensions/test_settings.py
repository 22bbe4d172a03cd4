from __future__ import annotations

import json
from pathlib import Path

import pytest

from plugctl.config.cli_settings import SettingsManager
from plugctl.core.extensions.exceptions import StorageError


def test_missing_file_gives_defaults(settings: SettingsManager) -> None:
    assert settings.get_installed_extensions() == []
    assert settings.get_api_key() is None


def test_installed_index_has_set_semantics(settings: SettingsManager) -> None:
    assert settings.add_installed_extension("hello") is True
    assert settings.add_installed_extension("hello") is False
    assert settings.add_installed_extension("apps") is True

    data = json.loads(settings.settings_path.read_text(encoding="utf-8"))
    assert data["installed_extensions"] == ["hello", "apps"]


def test_remove_installed_extension(settings: SettingsManager) -> None:
    settings.add_installed_extension("hello")

    assert settings.remove_installed_extension("hello") is True
    assert settings.remove_installed_extension("hello") is False
    assert settings.get_installed_extensions() == []


def test_other_settings_survive_index_updates(settings: SettingsManager) -> None:
    settings.settings_path.parent.mkdir(parents=True)
    settings.settings_path.write_text(json.dumps({"api_key": "sk_test_123"}), encoding="utf-8")

    settings.add_installed_extension("hello")

    assert settings.get_api_key() == "sk_test_123"


def test_corrupt_settings_file_is_storage_error(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageError):
        SettingsManager(path).load()


def test_wrong_index_type_is_storage_error(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"installed_extensions": "hello"}), encoding="utf-8")

    with pytest.raises(StorageError):
        SettingsManager(path).get_installed_extensions()
