"""Data models for the Extension system"""

import platform as _platform
import sys
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator


# Normalized names for platform.machine() values
_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv6l": "arm",
    "armv7l": "arm",
}


class TargetPlatform(BaseModel):
    """An (OS, architecture) pair a release digest is keyed by"""
    model_config = ConfigDict(frozen=True)

    os: str = Field(description="Operating system (e.g., 'linux', 'darwin', 'windows')")
    arch: str = Field(description="CPU architecture (e.g., 'amd64', 'arm64')")

    @field_validator('os', 'arch')
    @classmethod
    def validate_part(cls, v: str) -> str:
        """Platform parts are lowercase and cannot contain '/'"""
        v = v.strip().lower()
        if not v or '/' in v:
            raise ValueError("Platform parts must be non-empty and cannot contain '/'")
        return v

    @property
    def key(self) -> str:
        """Digest mapping key, e.g. 'linux/amd64'"""
        return f"{self.os}/{self.arch}"

    @property
    def executable_suffix(self) -> str:
        """File extension for extension binaries on this platform"""
        return ".exe" if self.os == "windows" else ""

    @classmethod
    def current(cls) -> "TargetPlatform":
        """Platform of the running interpreter"""
        if sys.platform == "win32":
            os_name = "windows"
        elif sys.platform == "darwin":
            os_name = "darwin"
        elif sys.platform.startswith("linux"):
            os_name = "linux"
        else:
            os_name = sys.platform

        machine = _platform.machine().lower()
        return cls(os=os_name, arch=_ARCH_ALIASES.get(machine, machine))

    def __str__(self) -> str:
        return self.key


class Release(BaseModel):
    """One published version of an extension. Immutable once recorded."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str = Field(description="Release version (e.g., '1.0.0')")
    digests: Mapping[str, str] = Field(
        default_factory=dict,
        validate_default=True,
        description="Expected digest per platform, keyed '<os>/<arch>', valued '<algorithm>:<hex>'"
    )
    url: Optional[str] = Field(default=None, description="Download location of the release archive")

    @field_validator('version')
    @classmethod
    def validate_version(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Release version cannot be empty")
        # Versions name a directory under the extension's install dir
        if '/' in v or '\\' in v or v in ('.', '..'):
            raise ValueError(f"Invalid release version '{v}'")
        return v

    @field_validator('digests')
    @classmethod
    def validate_digests(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        for key, digest in v.items():
            if key.count('/') != 1:
                raise ValueError(f"Invalid platform key '{key}'. Expected '<os>/<arch>'")
            if not digest or not digest.strip():
                raise ValueError(f"Empty digest for platform '{key}'")
        # read-only view; a recorded release never changes
        return MappingProxyType(dict(v))

    @field_serializer('digests')
    def serialize_digests(self, v: Mapping[str, str]) -> Dict[str, str]:
        return dict(v)

    def digest_for(self, target: TargetPlatform) -> Optional[str]:
        """Expected digest for a platform, or None if the release does not ship one"""
        return self.digests.get(target.key)


class Extension(BaseModel):
    """A named, independently installable extension and its releases"""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(description="Unique extension name (e.g., 'hello')")
    description: Optional[str] = Field(default=None, description="One-line summary")
    binary: Optional[str] = Field(default=None, description="Binary name inside release archives")
    releases: List[Release] = Field(
        default_factory=list,
        alias="release",
        description="Releases in publication order, most recent last"
    )

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Names become directory and file names on disk"""
        if not v or not v.strip():
            raise ValueError("Extension name cannot be empty")
        if not all(c.isalnum() or c in '._-' for c in v) or v in ('.', '..'):
            raise ValueError("Extension name can only contain alphanumeric characters, dots, underscores, and hyphens")
        return v

    def find_release(self, version: str) -> Optional[Release]:
        """Most recently recorded release with the given version"""
        for release in reversed(self.releases):
            if release.version == version:
                return release
        return None

    @property
    def latest(self) -> Optional[Release]:
        return self.releases[-1] if self.releases else None


class Catalog(BaseModel):
    """The catalog document: known extensions, in document order"""
    model_config = ConfigDict(populate_by_name=True)

    extensions: List[Extension] = Field(default_factory=list, alias="extension")

    @model_validator(mode='after')
    def validate_unique_names(self) -> "Catalog":
        seen = set()
        for extension in self.extensions:
            if extension.name in seen:
                raise ValueError(f"Duplicate extension name in catalog: {extension.name}")
            seen.add(extension.name)
        return self

    def names(self) -> List[str]:
        return [extension.name for extension in self.extensions]


class ExtractedPackage(BaseModel):
    """Payloads pulled out of a distribution archive"""
    extension: Extension
    release: Release
    binary: bytes
    binary_entry_name: str


class InstallResult(BaseModel):
    """Outcome of a successful install"""
    name: str
    version: str
    path: Path
    platform: TargetPlatform
