"""Extraction of extension distribution archives

A distribution archive is a gzip-compressed tar holding two payloads:

- the catalog fragment (``manifest.toml``): a catalog document describing
  exactly one extension with exactly one release
- the binary: the single regular file whose name contains the binary
  prefix (``stripe-cli-``)

The archive is read as a stream, one entry at a time, so it never has to
fit in memory or touch the disk. Directories and unrelated regular files
are skipped. Every other entry type (symlinks, hard links, devices, FIFOs)
aborts extraction: nothing from an archive carrying such an entry is
trusted.
"""

import logging
import tarfile
import zlib
from pathlib import Path
from typing import BinaryIO, Optional

import requests
import urllib3

from plugctl.core.extensions.catalog import parse_catalog
from plugctl.core.extensions.exceptions import (
    MalformedArchiveError,
    NetworkError,
    ParseError,
    StorageError,
    UnsupportedEntryTypeError,
)
from plugctl.core.extensions.fetcher import new_traced_session, validate_url
from plugctl.core.extensions.models import Catalog, ExtractedPackage

logger = logging.getLogger(__name__)

DEFAULT_FRAGMENT_FILENAME = "manifest.toml"
DEFAULT_BINARY_PREFIX = "stripe-cli-"
DEFAULT_MAX_FRAGMENT_SIZE = 100 * 1024         # 100KB
DEFAULT_MAX_BINARY_SIZE = 200 * 1024 * 1024    # 200MB


def _type_marker(member: tarfile.TarInfo) -> str:
    return member.type.decode("ascii", errors="replace")


class ArchiveExtractor:
    """Pulls the catalog fragment and binary out of a distribution archive"""

    def __init__(
        self,
        fragment_filename: str = DEFAULT_FRAGMENT_FILENAME,
        binary_prefix: str = DEFAULT_BINARY_PREFIX,
        max_fragment_size: int = DEFAULT_MAX_FRAGMENT_SIZE,
        max_binary_size: int = DEFAULT_MAX_BINARY_SIZE
    ):
        self.fragment_filename = fragment_filename
        self.binary_prefix = binary_prefix
        self.max_fragment_size = max_fragment_size
        self.max_binary_size = max_binary_size

    def _read_member(self, tar: tarfile.TarFile, member: tarfile.TarInfo, limit: int) -> bytes:
        if member.size > limit:
            raise MalformedArchiveError(
                f"Archive entry {member.name} too large: {member.size} bytes (max: {limit})"
            )
        source = tar.extractfile(member)
        if source is None:
            raise MalformedArchiveError(f"Cannot read archive entry {member.name}")
        return source.read()

    def _parse_fragment(self, name: str, data: bytes) -> Catalog:
        try:
            return parse_catalog(data, source=name)
        except ParseError as e:
            raise MalformedArchiveError(f"Invalid catalog fragment {name}: {e}") from e

    def extract_from_stream(self, fileobj: BinaryIO) -> ExtractedPackage:
        """
        Extract the fragment and binary from a gzip tar stream

        Args:
            fileobj: Readable binary stream positioned at the start of the archive

        Returns:
            ExtractedPackage with the single extension, its release and the binary bytes

        Raises:
            UnsupportedEntryTypeError: Entry is neither a regular file nor a directory
            MalformedArchiveError: Corrupt stream, missing or duplicate payloads
        """
        fragment: Optional[Catalog] = None
        binary: Optional[bytes] = None
        binary_name = ""

        try:
            with tarfile.open(fileobj=fileobj, mode="r|gz") as tar:
                for member in tar:
                    name = member.name

                    if member.isdir():
                        continue

                    if not member.isreg():
                        raise UnsupportedEntryTypeError(name, _type_marker(member))

                    if name == self.fragment_filename:
                        if fragment is not None:
                            raise MalformedArchiveError(f"Archive contains more than one {name}")
                        data = self._read_member(tar, member, self.max_fragment_size)
                        fragment = self._parse_fragment(name, data)
                        logger.info(f"Extracted manifest '{name}'")

                    elif self.binary_prefix in name:
                        if binary is not None:
                            raise MalformedArchiveError(
                                f"Archive contains more than one binary: {binary_name}, {name}"
                            )
                        binary = self._read_member(tar, member, self.max_binary_size)
                        binary_name = name
                        logger.info(f"Extracted binary '{name}' ({len(binary)} bytes)")

                    else:
                        logger.debug(f"Ignoring archive entry '{name}'")

        except (tarfile.TarError, EOFError, zlib.error) as e:
            raise MalformedArchiveError(f"Corrupt archive: {e}") from e

        if fragment is None or not binary:
            raise MalformedArchiveError(
                f"Missing required {self.fragment_filename} or binary in the archive"
            )

        if len(fragment.extensions) != 1:
            raise MalformedArchiveError(
                f"{self.fragment_filename} must describe exactly one extension "
                f"(found {len(fragment.extensions)})"
            )

        extension = fragment.extensions[0]
        if len(extension.releases) != 1:
            raise MalformedArchiveError(
                f"{self.fragment_filename} must describe exactly one release of "
                f"'{extension.name}' (found {len(extension.releases)})"
            )

        return ExtractedPackage(
            extension=extension,
            release=extension.releases[0],
            binary=binary,
            binary_entry_name=binary_name,
        )

    def extract_local_archive(self, source: Path) -> ExtractedPackage:
        """
        Extract a distribution archive from disk

        Raises:
            StorageError: File cannot be opened
            MalformedArchiveError, UnsupportedEntryTypeError: see extract_from_stream
        """
        logger.info(f"Extracting archive at {source}...")

        try:
            f = open(source, "rb")
        except OSError as e:
            raise StorageError(f"Cannot open archive {source}: {e}") from e

        with f:
            return self.extract_from_stream(f)

    def fetch_and_extract_remote_archive(
        self,
        url: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None
    ) -> ExtractedPackage:
        """
        Stream a distribution archive over HTTP and extract it

        Raises:
            NetworkError: Transport failure or non-2xx status
            MalformedArchiveError, UnsupportedEntryTypeError: see extract_from_stream
        """
        logger.info(f"Fetching archive at {url}...")
        validate_url(url)

        own_session = session is None
        session = session or new_traced_session()
        try:
            try:
                response = session.get(url, stream=True, timeout=timeout)
                response.raise_for_status()
            except requests.RequestException as e:
                raise NetworkError(f"Failed to fetch archive {url}: {e}") from e

            with response:
                # Undo any transfer-level Content-Encoding; the tar layer handles its own gzip
                response.raw.decode_content = True
                try:
                    return self.extract_from_stream(response.raw)
                except (requests.RequestException, urllib3.exceptions.HTTPError) as e:
                    raise NetworkError(f"Connection lost while reading archive {url}: {e}") from e
        finally:
            if own_session:
                session.close()
