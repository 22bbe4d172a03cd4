"""Local catalog document: TOML (de)serialization and the on-disk store"""

import logging
import tomllib
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional, Union

import tomli_w
from pydantic import ValidationError as PydanticValidationError

from plugctl.core.extensions.exceptions import (
    CatalogNotFoundError,
    ConflictError,
    ExtensionNotFoundError,
    ParseError,
    StorageError,
)
from plugctl.core.extensions.models import Catalog, Extension
from plugctl.core.utils.atomic_write import write_atomic
from plugctl.core.utils.filelock import FileLockError, LockAcquisitionError, exclusive_lock

if TYPE_CHECKING:
    from plugctl.core.extensions.fetcher import RemoteCatalogFetcher

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 10.0


def parse_catalog(data: Union[bytes, str], source: str = "<catalog>") -> Catalog:
    """
    Decode a TOML catalog document

    Args:
        data: Raw document
        source: Name used in error messages

    Returns:
        Validated Catalog

    Raises:
        ParseError: If the bytes are not TOML or do not match the catalog schema
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"{source} is not valid UTF-8: {e}") from e

    try:
        document = tomllib.loads(data)
    except tomllib.TOMLDecodeError as e:
        raise ParseError(f"Invalid TOML in {source}: {e}") from e

    try:
        return Catalog.model_validate(document)
    except PydanticValidationError as e:
        raise ParseError(f"Invalid catalog schema in {source}: {e}") from e


def dump_catalog(catalog: Catalog) -> str:
    """Serialize a catalog to TOML. Equal catalogs give identical output."""
    document = catalog.model_dump(mode="json", by_alias=True, exclude_none=True)
    for extension in document["extension"]:
        for release in extension["release"]:
            release["digests"] = dict(sorted(release["digests"].items()))
    return tomli_w.dumps(document)


def find_by_name(catalog: Catalog, name: str) -> Extension:
    """
    Look up an extension by name

    Raises:
        ExtensionNotFoundError: If no extension has that name
    """
    for extension in catalog.extensions:
        if extension.name == name:
            return extension
    raise ExtensionNotFoundError(name)


class CatalogStore:
    """The local catalog file"""

    def __init__(
        self,
        path: Path,
        fetcher: Optional["RemoteCatalogFetcher"] = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    ):
        """
        Initialize store

        Args:
            path: Catalog document location
            fetcher: Used to bootstrap the catalog when the file is missing
            lock_timeout: Seconds to wait for the catalog lock in transaction()
        """
        self.path = path
        self.fetcher = fetcher
        self.lock_timeout = lock_timeout

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def _read(self) -> bytes:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StorageError(f"Failed to read catalog {self.path}: {e}") from e

    def load(self) -> Catalog:
        """
        Load the catalog, downloading it first if there is no local copy

        Raises:
            CatalogNotFoundError: No local copy and none could be bootstrapped
            ParseError: Stored bytes are not a valid catalog
            AuthError, NetworkError, StorageError: Bootstrap failed
        """
        try:
            data = self._read()
        except FileNotFoundError:
            if self.fetcher is None:
                raise CatalogNotFoundError(f"Catalog not found: {self.path}")

            logger.debug("The extension catalog does not exist. Downloading...")
            self.fetcher.refresh(target_path=self.path)

            try:
                data = self._read()
            except FileNotFoundError:
                raise CatalogNotFoundError(
                    f"Catalog not found after download: {self.path}"
                )

        return parse_catalog(data, source=str(self.path))

    def load_or_empty(self) -> Catalog:
        """Load the catalog; a missing file is an empty catalog"""
        try:
            data = self._read()
        except FileNotFoundError:
            logger.debug(f"No catalog at {self.path}, starting empty")
            return Catalog()
        return parse_catalog(data, source=str(self.path))

    def lookup(self, name: str) -> Extension:
        """Find an extension in the (possibly bootstrapped) catalog"""
        return find_by_name(self.load(), name)

    def save(self, catalog: Catalog) -> None:
        """
        Replace the catalog file with the full serialized document

        Raises:
            StorageError: If the write fails (the previous file stays intact)
        """
        try:
            write_atomic(self.path, dump_catalog(catalog).encode("utf-8"), mode=0o644)
        except OSError as e:
            raise StorageError(f"Failed to write catalog {self.path}: {e}") from e

        logger.info(f"Catalog saved: {self.path} ({len(catalog.extensions)} extensions)")

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Hold the catalog lock around a load-modify-save sequence

        Raises:
            ConflictError: Another process kept the lock past lock_timeout
            StorageError: Lock file could not be used
        """
        try:
            with exclusive_lock(self.lock_path, timeout=self.lock_timeout):
                yield
        except LockAcquisitionError as e:
            raise ConflictError(
                f"Catalog {self.path} is locked by another process; try again"
            ) from e
        except FileLockError as e:
            raise StorageError(f"Catalog lock failed: {e}") from e
