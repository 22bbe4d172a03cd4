"""Merges newly extracted catalog fragments into the local catalog"""

import logging
from typing import Optional, Protocol

from plugctl.core.extensions.catalog import CatalogStore
from plugctl.core.extensions.models import Catalog, Extension, Release

logger = logging.getLogger(__name__)


class InstalledIndex(Protocol):
    """Set of installed extension names, persisted by the settings layer"""

    def add_installed_extension(self, name: str) -> bool:
        ...


class ManifestReconciler:
    """Append-or-insert of one extension release into the catalog store"""

    def __init__(self, store: CatalogStore, installed_index: InstalledIndex):
        self.store = store
        self.installed_index = installed_index

    @staticmethod
    def merge(catalog: Catalog, extension: Extension, release: Release) -> Catalog:
        """
        Add release to the catalog in place

        A known name gets the release appended to its release list (no
        dedup by version). An unknown name is appended as a new extension
        carrying only this release. Existing releases are never touched.

        Returns:
            The same catalog object
        """
        for existing in catalog.extensions:
            if existing.name == extension.name:
                # extension already in the catalog: add the new release version
                existing.releases.append(release)
                logger.info(
                    f"Appended release {release.version} to '{extension.name}' "
                    f"({len(existing.releases)} releases)"
                )
                return catalog

        # unseen extension: add it with just the new release
        catalog.extensions.append(extension.model_copy(update={"releases": [release]}))
        logger.info(f"Added extension '{extension.name}' with release {release.version}")
        return catalog

    def reconcile(self, extension: Extension, release: Optional[Release] = None) -> Catalog:
        """
        Record a release in the catalog and mark the extension installed

        Load, merge and save run under the catalog lock; a missing catalog
        is treated as empty.

        Args:
            extension: Extension from the archive fragment
            release: Release to record (default: the extension's only release)

        Returns:
            The catalog as written

        Raises:
            ConflictError: Catalog lock not acquired in time
            ParseError: Existing catalog is invalid
            StorageError: Catalog or settings write failed
        """
        if release is None:
            if len(extension.releases) != 1:
                raise ValueError(
                    f"Extension '{extension.name}' must carry exactly one release to reconcile"
                )
            release = extension.releases[0]

        with self.store.transaction():
            catalog = self.store.load_or_empty()
            self.merge(catalog, extension, release)
            self.store.save(catalog)

            # sync list of installed extensions to the settings file
            self.installed_index.add_installed_extension(extension.name)

        return catalog
