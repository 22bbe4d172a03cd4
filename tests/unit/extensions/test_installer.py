from __future__ import annotations

import hashlib
import os
import stat
from pathlib import Path

import pytest

from extension_archives import BINARY, BINARY_SHA256
from plugctl.core.extensions.exceptions import ExtensionNotFoundError, IntegrityError
from plugctl.core.extensions.installer import BinaryInstaller, parse_digest
from plugctl.core.extensions.models import Release, TargetPlatform

LINUX = TargetPlatform(os="linux", arch="amd64")
WINDOWS = TargetPlatform(os="windows", arch="amd64")


def _release(digest: str = f"sha256:{BINARY_SHA256}", version: str = "1.0.0") -> Release:
    return Release(version=version, digests={"linux/amd64": digest, "windows/amd64": digest})


def test_install_writes_executable_binary(tmp_path: Path) -> None:
    installer = BinaryInstaller(tmp_path / "plugins")

    path = installer.install("hello", BINARY, _release(), LINUX)

    assert path == tmp_path / "plugins" / "hello" / "1.0.0" / "hello"
    assert path.read_bytes() == BINARY
    mode = path.stat().st_mode
    assert mode & stat.S_IXUSR
    assert os.access(path, os.X_OK)
    assert installer.is_installed("hello", "1.0.0", LINUX)
    assert installer.installed_versions("hello") == ["1.0.0"]


def test_install_uses_exe_suffix_on_windows(tmp_path: Path) -> None:
    path = BinaryInstaller(tmp_path).install("hello", BINARY, _release(), WINDOWS)

    assert path.name == "hello.exe"
    assert path.read_bytes() == BINARY


def test_mismatched_binary_is_rejected_and_nothing_written(tmp_path: Path) -> None:
    installer = BinaryInstaller(tmp_path / "plugins")

    with pytest.raises(IntegrityError, match="verification failed"):
        installer.install("hello", BINARY + b"tampered", _release(), LINUX)

    assert not (tmp_path / "plugins").exists()


def test_missing_platform_digest_is_rejected(tmp_path: Path) -> None:
    installer = BinaryInstaller(tmp_path)

    with pytest.raises(IntegrityError, match="no digest for platform darwin/arm64"):
        installer.install("hello", BINARY, _release(), TargetPlatform(os="darwin", arch="arm64"))

    assert list(tmp_path.iterdir()) == []


def test_bare_hex_digest_means_sha256(tmp_path: Path) -> None:
    path = BinaryInstaller(tmp_path).install("hello", BINARY, _release(BINARY_SHA256), LINUX)
    assert path.is_file()


def test_other_algorithms_are_honoured(tmp_path: Path) -> None:
    digest = "sha512:" + hashlib.sha512(BINARY).hexdigest()
    path = BinaryInstaller(tmp_path).install("hello", BINARY, _release(digest), LINUX)
    assert path.is_file()


def test_digest_comparison_ignores_hex_case(tmp_path: Path) -> None:
    path = BinaryInstaller(tmp_path).install("hello", BINARY, _release(f"SHA256:{BINARY_SHA256.upper()}"), LINUX)
    assert path.is_file()


def test_unknown_algorithm_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(IntegrityError, match="Unsupported digest algorithm"):
        BinaryInstaller(tmp_path).install("hello", BINARY, _release("crc32:deadbeef"), LINUX)
    assert list(tmp_path.iterdir()) == []


def test_parse_digest() -> None:
    assert parse_digest("sha256:ABC") == ("sha256", "abc")
    assert parse_digest("abc") == ("sha256", "abc")
    with pytest.raises(IntegrityError):
        parse_digest("shake_128:abc")


def test_versions_install_side_by_side(tmp_path: Path) -> None:
    installer = BinaryInstaller(tmp_path)
    installer.install("hello", BINARY, _release(version="1.0.0"), LINUX)
    installer.install("hello", BINARY, _release(version="1.1.0"), LINUX)

    assert installer.installed_versions("hello") == ["1.0.0", "1.1.0"]


def test_reinstall_replaces_binary(tmp_path: Path) -> None:
    installer = BinaryInstaller(tmp_path)
    path = installer.install("hello", BINARY, _release(), LINUX)
    path.write_bytes(b"stale")

    installer.install("hello", BINARY, _release(), LINUX)
    assert path.read_bytes() == BINARY


def test_uninstall_removes_every_version(tmp_path: Path) -> None:
    installer = BinaryInstaller(tmp_path)
    installer.install("hello", BINARY, _release(version="1.0.0"), LINUX)
    installer.install("hello", BINARY, _release(version="1.1.0"), LINUX)

    installer.uninstall("hello")

    assert not (tmp_path / "hello").exists()
    assert installer.installed_versions("hello") == []
    with pytest.raises(ExtensionNotFoundError):
        installer.uninstall("hello")
