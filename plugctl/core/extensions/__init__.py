"""plugctl Extensions System

Acquisition and bookkeeping of third-party extension binaries.

Core principles:
1. The local catalog lists every known extension and its releases
2. Releases are append-only; the catalog is rewritten whole, atomically, under a lock
3. Archives are read as streams and rejected on any entry that is not a file or directory
4. No binary reaches the disk before its digest matches the release record

Components:
- models: Pydantic data models
- catalog: TOML catalog serialization and local store
- fetcher: Remote catalog download
- archive: Distribution archive extraction
- reconciler: Catalog merge and installed index update
- installer: Checksum-gated binary installer
- lifecycle: Extension client teardown at exit
- manager: Orchestration used by the CLI (import from plugctl.core.extensions.manager)
- exceptions: Custom exceptions
"""

from plugctl.core.extensions.exceptions import (
    ExtensionError,
    NotFoundError,
    CatalogNotFoundError,
    ExtensionNotFoundError,
    ParseError,
    MalformedArchiveError,
    UnsupportedEntryTypeError,
    IntegrityError,
    NetworkError,
    AuthError,
    StorageError,
    ConflictError,
)
from plugctl.core.extensions.models import (
    Catalog,
    Extension,
    Release,
    TargetPlatform,
    ExtractedPackage,
    InstallResult,
)
from plugctl.core.extensions.catalog import CatalogStore, parse_catalog, dump_catalog, find_by_name
from plugctl.core.extensions.fetcher import RemoteCatalogFetcher, ApiDistributionResolver
from plugctl.core.extensions.archive import ArchiveExtractor
from plugctl.core.extensions.reconciler import ManifestReconciler
from plugctl.core.extensions.installer import BinaryInstaller
from plugctl.core.extensions.lifecycle import ClientLifecycle

__all__ = [
    # Exceptions
    "ExtensionError",
    "NotFoundError",
    "CatalogNotFoundError",
    "ExtensionNotFoundError",
    "ParseError",
    "MalformedArchiveError",
    "UnsupportedEntryTypeError",
    "IntegrityError",
    "NetworkError",
    "AuthError",
    "StorageError",
    "ConflictError",
    # Models
    "Catalog",
    "Extension",
    "Release",
    "TargetPlatform",
    "ExtractedPackage",
    "InstallResult",
    # Components
    "CatalogStore",
    "parse_catalog",
    "dump_catalog",
    "find_by_name",
    "RemoteCatalogFetcher",
    "ApiDistributionResolver",
    "ArchiveExtractor",
    "ManifestReconciler",
    "BinaryInstaller",
    "ClientLifecycle",
]
