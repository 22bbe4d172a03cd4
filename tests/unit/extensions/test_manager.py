from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest
import responses

from extension_archives import BINARY, BINARY_SHA256, build_archive, fragment_toml
from plugctl.config.cli_settings import SettingsManager
from plugctl.core.config import PlugctlConfig
from plugctl.core.extensions.exceptions import (
    ExtensionNotFoundError,
    IntegrityError,
    NotFoundError,
    UnsupportedEntryTypeError,
)
from plugctl.core.extensions.manager import ExtensionManager
from plugctl.core.extensions.models import TargetPlatform

LINUX = TargetPlatform(os="linux", arch="amd64")
WINDOWS = TargetPlatform(os="windows", arch="amd64")


def test_install_from_archive_end_to_end(config, settings, hello_archive: Path) -> None:
    manager = ExtensionManager(config=config, settings=settings)

    result = manager.install_from_archive(hello_archive, LINUX)

    # catalog now lists hello 1.0.0
    hello = manager.lookup("hello")
    assert [r.version for r in hello.releases] == ["1.0.0"]
    assert hello.releases[0].digests["linux/amd64"] == f"sha256:{BINARY_SHA256}"

    # installed index records the name
    assert manager.list_installed() == ["hello"]

    # executable binary named after the extension
    assert result.name == "hello"
    assert result.version == "1.0.0"
    assert result.path.name == "hello"
    assert result.path.read_bytes() == BINARY
    assert os.access(result.path, os.X_OK)
    assert result.path.is_relative_to(config.plugins_dir)


def test_install_for_windows_platform_uses_exe(config, settings, hello_archive: Path) -> None:
    result = ExtensionManager(config=config, settings=settings).install_from_archive(hello_archive, WINDOWS)

    assert result.path.name == "hello.exe"
    assert result.path.read_bytes() == BINARY


def test_tampered_binary_leaves_no_trace(config, settings, tmp_path: Path) -> None:
    archive = build_archive(
        tmp_path / "pkg.tar.gz",
        {"manifest.toml": fragment_toml(), "stripe-cli-hello": BINARY + b"!"},
    )
    manager = ExtensionManager(config=config, settings=settings)

    with pytest.raises(IntegrityError):
        manager.install_from_archive(archive, LINUX)

    assert not config.catalog_file.exists()
    assert not config.plugins_dir.exists()
    assert manager.list_installed() == []


def test_archive_with_symlink_installs_nothing(config, settings, tmp_path: Path) -> None:
    archive = build_archive(
        tmp_path / "pkg.tar.gz",
        {"manifest.toml": fragment_toml(), "stripe-cli-hello": BINARY},
        symlinks=[("link", "/etc/shadow")],
    )

    with pytest.raises(UnsupportedEntryTypeError):
        ExtensionManager(config=config, settings=settings).install_from_archive(archive, LINUX)

    assert not config.catalog_file.exists()
    assert not config.plugins_dir.exists()


def test_upgrade_appends_release_and_keeps_index_unique(config, settings, tmp_path: Path) -> None:
    manager = ExtensionManager(config=config, settings=settings)
    for version in ("1.0.0", "1.1.0"):
        archive = build_archive(
            tmp_path / f"hello-{version}.tar.gz",
            {"manifest.toml": fragment_toml(version=version), "stripe-cli-hello": BINARY},
        )
        manager.install_from_archive(archive, LINUX)

    assert [r.version for r in manager.lookup("hello").releases] == ["1.0.0", "1.1.0"]
    assert manager.list_installed() == ["hello"]
    assert manager.installer.installed_versions("hello") == ["1.0.0", "1.1.0"]


@responses.activate
def test_install_from_url(config, settings, hello_archive: Path) -> None:
    url = "https://dl.example/hello/1.0.0/pkg.tar.gz"
    responses.add(responses.GET, url, body=hello_archive.read_bytes())

    with ExtensionManager(config=config, settings=settings) as manager:
        result = manager.install_from_url(url, LINUX)

    assert result.path.read_bytes() == BINARY
    assert manager.list_installed() == ["hello"]


@responses.activate
def test_install_by_name_bootstraps_catalog_and_downloads_release(config, settings, hello_archive: Path) -> None:
    archive_url = "https://dl.example/acct_123/hello/1.0.0/pkg.tar.gz"
    catalog_body = (
        fragment_toml().decode("utf-8").replace(
            'version = "1.0.0"', f'version = "1.0.0"\nurl = "{archive_url}"'
        )
    ).encode("utf-8")

    responses.add(
        responses.GET,
        "https://api.example/v1/extensions/distribution",
        json={"extension_base_url": "https://dl.example/acct_123"},
    )
    responses.add(responses.GET, "https://dl.example/acct_123/plugins.toml", body=catalog_body)
    responses.add(responses.GET, archive_url, body=hello_archive.read_bytes())

    with ExtensionManager(config=config, settings=settings) as manager:
        result = manager.install("hello", platform=LINUX)

    assert result.version == "1.0.0"
    assert result.path.read_bytes() == BINARY
    # the downloaded catalog got the installed release appended
    assert [r.version for r in manager.lookup("hello").releases] == ["1.0.0", "1.0.0"]


def test_install_by_name_requires_download_url(config, settings) -> None:
    config.catalog_file.parent.mkdir(parents=True)
    config.catalog_file.write_bytes(fragment_toml())

    with pytest.raises(NotFoundError, match="no download URL"):
        ExtensionManager(config=config, settings=settings).install("hello", platform=LINUX)


def test_install_unknown_version(config, settings) -> None:
    config.catalog_file.parent.mkdir(parents=True)
    config.catalog_file.write_bytes(fragment_toml())

    with pytest.raises(NotFoundError, match="no release 9.9.9"):
        ExtensionManager(config=config, settings=settings).install("hello", "9.9.9", LINUX)


def test_uninstall(config, settings, hello_archive: Path) -> None:
    manager = ExtensionManager(config=config, settings=settings)
    result = manager.install_from_archive(hello_archive, LINUX)

    manager.uninstall("hello")

    assert not result.path.exists()
    assert manager.list_installed() == []
    # catalog keeps the release history
    assert manager.lookup("hello").releases[0].version == "1.0.0"

    with pytest.raises(ExtensionNotFoundError):
        manager.uninstall("hello")


def test_default_settings_file_follows_configured_home(tmp_path: Path, hello_archive: Path) -> None:
    config = PlugctlConfig(home=tmp_path / "cfg", api_key="sk_test_123")

    ExtensionManager(config=config).install_from_archive(hello_archive, LINUX)

    settings_file = tmp_path / "cfg" / "config.json"
    assert settings_file.is_file()
    assert SettingsManager(settings_file).get_installed_extensions() == ["hello"]
    assert (tmp_path / "cfg" / "plugins.toml").is_file()
    assert (tmp_path / "cfg" / "plugins" / "hello" / "1.0.0" / "hello").is_file()


def test_uninstall_clears_index_when_binaries_were_removed(config, settings, hello_archive: Path) -> None:
    manager = ExtensionManager(config=config, settings=settings)
    manager.install_from_archive(hello_archive, LINUX)
    shutil.rmtree(config.plugins_dir / "hello")

    manager.uninstall("hello")

    assert manager.list_installed() == []
    with pytest.raises(ExtensionNotFoundError):
        manager.uninstall("hello")
