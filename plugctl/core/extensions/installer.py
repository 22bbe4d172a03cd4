"""Checksum-gated installer for extension binaries"""

import hashlib
import hmac
import logging
import shutil
from pathlib import Path
from typing import List, Optional, Tuple

from plugctl.core.extensions.exceptions import (
    ExtensionNotFoundError,
    IntegrityError,
    StorageError,
)
from plugctl.core.extensions.models import Release, TargetPlatform
from plugctl.core.storage import paths
from plugctl.core.utils.atomic_write import write_atomic

logger = logging.getLogger(__name__)

DEFAULT_DIGEST_ALGORITHM = "sha256"
EXECUTABLE_MODE = 0o755


def parse_digest(digest: str) -> Tuple[str, str]:
    """
    Split '<algorithm>:<hex>' into its parts; a bare hex string is sha256

    Raises:
        IntegrityError: Unknown or unusable algorithm
    """
    if ":" in digest:
        algorithm, hex_value = digest.split(":", 1)
        algorithm = algorithm.strip().lower()
    else:
        algorithm, hex_value = DEFAULT_DIGEST_ALGORITHM, digest

    # shake_* need an output length and are not valid checksum algorithms here
    if algorithm not in hashlib.algorithms_available or algorithm.startswith("shake_"):
        raise IntegrityError(f"Unsupported digest algorithm: {algorithm}")

    return algorithm, hex_value.strip().lower()


def compute_digest(data: bytes, algorithm: str = DEFAULT_DIGEST_ALGORITHM) -> str:
    """Hex digest of data"""
    return hashlib.new(algorithm, data).hexdigest()


class BinaryInstaller:
    """Verifies and writes extension binaries into the extensions directory"""

    def __init__(self, extensions_dir: Optional[Path] = None):
        """
        Initialize installer

        Args:
            extensions_dir: Directory to install extensions to
        """
        self.extensions_dir = extensions_dir or paths.default_extensions_dir()

    def _get_extension_dir(self, name: str) -> Path:
        return self.extensions_dir / name

    def binary_path(self, name: str, version: str, platform: Optional[TargetPlatform] = None) -> Path:
        """Location of an installed binary: <dir>/<name>/<version>/<name>[.exe]"""
        platform = platform or TargetPlatform.current()
        return self._get_extension_dir(name) / version / f"{name}{platform.executable_suffix}"

    @staticmethod
    def verify_checksum(binary: bytes, release: Release, platform: TargetPlatform) -> str:
        """
        Check binary against the release digest for platform

        Returns:
            Hex digest of binary

        Raises:
            IntegrityError: No digest for platform, unknown algorithm, or mismatch
        """
        expected = release.digest_for(platform)
        if not expected:
            raise IntegrityError(
                f"Release {release.version} has no digest for platform {platform.key}"
            )

        algorithm, expected_hex = parse_digest(expected)
        actual_hex = compute_digest(binary, algorithm)

        if not hmac.compare_digest(actual_hex, expected_hex):
            raise IntegrityError(
                f"{algorithm} verification failed: expected {expected_hex}, got {actual_hex}"
            )

        logger.info(f"{algorithm} verification passed: {actual_hex}")
        return actual_hex

    def install(
        self,
        extension_name: str,
        binary: bytes,
        release: Release,
        platform: Optional[TargetPlatform] = None
    ) -> Path:
        """
        Verify binary and write it as an executable

        The digest check runs to completion before anything is written.

        Args:
            extension_name: Extension name
            binary: Binary bytes
            release: Release record carrying the expected digests
            platform: Target platform (default: current)

        Returns:
            Path of the installed binary

        Raises:
            IntegrityError: Digest missing or mismatched; nothing is written
            StorageError: Write failed
        """
        platform = platform or TargetPlatform.current()

        self.verify_checksum(binary, release, platform)

        target = self.binary_path(extension_name, release.version, platform)
        try:
            write_atomic(target, binary, mode=EXECUTABLE_MODE)
        except OSError as e:
            raise StorageError(f"Failed to write extension binary {target}: {e}") from e

        logger.info(f"Extension installed: {extension_name} v{release.version} -> {target}")
        return target

    def installed_versions(self, name: str) -> List[str]:
        """Versions with a directory under the extension's install dir"""
        extension_dir = self._get_extension_dir(name)
        if not extension_dir.is_dir():
            return []
        return sorted(item.name for item in extension_dir.iterdir() if item.is_dir())

    def is_installed(self, name: str, version: str, platform: Optional[TargetPlatform] = None) -> bool:
        return self.binary_path(name, version, platform).is_file()

    def uninstall(self, name: str) -> None:
        """
        Remove every installed version of an extension

        Raises:
            ExtensionNotFoundError: Nothing installed under that name
            StorageError: Removal failed
        """
        extension_dir = self._get_extension_dir(name)

        if not extension_dir.exists():
            raise ExtensionNotFoundError(name)

        logger.info(f"Uninstalling extension: {name} from {extension_dir}")

        try:
            shutil.rmtree(extension_dir)
        except OSError as e:
            raise StorageError(f"Failed to uninstall extension: {e}") from e

        logger.info(f"Extension uninstalled: {name}")
