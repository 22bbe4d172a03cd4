"""Extension manager: wires fetcher, store, extractor, installer and reconciler together"""

import logging
from pathlib import Path
from typing import List, Optional

import requests

from plugctl.config.cli_settings import SettingsManager
from plugctl.core.config import PlugctlConfig, get_config
from plugctl.core.extensions.archive import ArchiveExtractor
from plugctl.core.extensions.catalog import CatalogStore
from plugctl.core.extensions.exceptions import ExtensionNotFoundError, NotFoundError
from plugctl.core.extensions.fetcher import RemoteCatalogFetcher
from plugctl.core.extensions.installer import BinaryInstaller
from plugctl.core.extensions.models import (
    Extension,
    ExtractedPackage,
    InstallResult,
    TargetPlatform,
)
from plugctl.core.extensions.reconciler import ManifestReconciler

logger = logging.getLogger(__name__)


class ExtensionManager:
    """
    Entry point for the extension commands

    Example:
        >>> with ExtensionManager() as manager:
        ...     manager.install_from_archive(Path("hello.tar.gz"))
    """

    def __init__(
        self,
        config: Optional[PlugctlConfig] = None,
        settings: Optional[SettingsManager] = None,
        session: Optional[requests.Session] = None
    ):
        self.config = config or get_config()
        self.settings = settings or SettingsManager(self.config.settings_file)

        self.fetcher = RemoteCatalogFetcher(
            credential_provider=self._get_api_key,
            base_url=self.config.api_base_url,
            target_path=self.config.catalog_file,
            catalog_filename=self.config.catalog_filename,
            session=session,
            timeout=self.config.http_timeout,
        )
        self.store = CatalogStore(
            self.config.catalog_file,
            fetcher=self.fetcher,
            lock_timeout=self.config.lock_timeout,
        )
        self.extractor = ArchiveExtractor(
            fragment_filename=self.config.fragment_filename,
            binary_prefix=self.config.binary_prefix,
            max_fragment_size=self.config.max_fragment_size,
            max_binary_size=self.config.max_binary_size,
        )
        self.installer = BinaryInstaller(self.config.plugins_dir)
        self.reconciler = ManifestReconciler(self.store, self.settings)

    def _get_api_key(self) -> Optional[str]:
        return self.config.api_key or self.settings.get_api_key()

    # ============================================
    # Catalog
    # ============================================

    def refresh_catalog(self) -> Path:
        """Download the latest catalog over the local copy"""
        return self.fetcher.refresh()

    def lookup(self, name: str) -> Extension:
        return self.store.lookup(name)

    def list_available(self) -> List[Extension]:
        return self.store.load().extensions

    def list_installed(self) -> List[str]:
        return self.settings.get_installed_extensions()

    # ============================================
    # Install / uninstall
    # ============================================

    def _complete_install(
        self,
        package: ExtractedPackage,
        platform: Optional[TargetPlatform]
    ) -> InstallResult:
        platform = platform or TargetPlatform.current()
        name = package.extension.name

        # Verify and write first so a rejected binary leaves no catalog entry behind
        path = self.installer.install(name, package.binary, package.release, platform)
        self.reconciler.reconcile(package.extension, package.release)

        return InstallResult(
            name=name,
            version=package.release.version,
            path=path,
            platform=platform,
        )

    def install_from_archive(self, source: Path, platform: Optional[TargetPlatform] = None) -> InstallResult:
        """Install from a distribution archive on disk"""
        package = self.extractor.extract_local_archive(source)
        return self._complete_install(package, platform)

    def install_from_url(self, url: str, platform: Optional[TargetPlatform] = None) -> InstallResult:
        """Install from a distribution archive served over HTTP"""
        package = self.extractor.fetch_and_extract_remote_archive(
            url,
            session=self.fetcher.session,
            timeout=self.config.http_timeout,
        )
        return self._complete_install(package, platform)

    def install(
        self,
        name: str,
        version: Optional[str] = None,
        platform: Optional[TargetPlatform] = None
    ) -> InstallResult:
        """
        Install a catalog release by name

        Args:
            name: Extension name
            version: Release version (default: the most recent release)
            platform: Target platform (default: current)

        Raises:
            NotFoundError: Unknown name or version, or the release has no download URL
        """
        extension = self.lookup(name)
        release = extension.find_release(version) if version else extension.latest
        if release is None:
            raise NotFoundError(
                f"Extension '{name}' has no release {version}" if version
                else f"Extension '{name}' has no releases"
            )
        if not release.url:
            raise NotFoundError(f"Release {release.version} of '{name}' has no download URL")

        return self.install_from_url(release.url, platform)

    def uninstall(self, name: str) -> None:
        """
        Remove an extension's binaries and drop it from the installed index

        A name still listed in the index is dropped even when its binaries
        are already gone.

        Raises:
            ExtensionNotFoundError: Neither binaries nor an index entry exist
        """
        try:
            self.installer.uninstall(name)
        except ExtensionNotFoundError:
            if name not in self.list_installed():
                raise
            logger.warning(f"No binaries found for '{name}'; removing it from the installed list")

        with self.store.transaction():
            self.settings.remove_installed_extension(name)

    def close(self):
        self.fetcher.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
