"""CLI Settings: persistent per-user configuration file"""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from plugctl.core.extensions.exceptions import StorageError
from plugctl.core.storage import paths
from plugctl.core.utils.atomic_write import write_atomic

logger = logging.getLogger(__name__)

INSTALLED_EXTENSIONS_FIELD = "installed_extensions"


@dataclass
class CLISettings:
    """CLI Settings: what the user has configured and installed"""

    api_key: Optional[str] = None
    installed_extensions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "CLISettings":
        """Create from dictionary"""
        installed = data.get(INSTALLED_EXTENSIONS_FIELD, [])
        if not isinstance(installed, list) or not all(isinstance(n, str) for n in installed):
            raise ValueError(f"'{INSTALLED_EXTENSIONS_FIELD}' must be a list of names")
        return cls(
            api_key=data.get("api_key"),
            installed_extensions=list(dict.fromkeys(installed)),
        )


class SettingsManager:
    """Manage CLI settings persistence"""

    def __init__(self, settings_path: Optional[Path] = None):
        """Initialize settings manager"""
        # Default: <config dir>/config.json
        self.settings_path = settings_path or paths.settings_path()

    def load(self) -> CLISettings:
        """
        Load settings from file; a missing file gives the defaults

        Raises:
            StorageError: File unreadable or not a valid settings document
        """
        if not self.settings_path.exists():
            return CLISettings()  # Return defaults

        try:
            with open(self.settings_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return CLISettings.from_dict(data)
        except (OSError, ValueError, AttributeError) as e:
            raise StorageError(f"Failed to load settings {self.settings_path}: {e}") from e

    def save(self, settings: CLISettings) -> None:
        """
        Save settings to file

        Raises:
            StorageError: Write failed
        """
        data = json.dumps(settings.to_dict(), indent=2).encode("utf-8")
        try:
            write_atomic(self.settings_path, data, mode=0o600)
        except OSError as e:
            raise StorageError(f"Failed to save settings {self.settings_path}: {e}") from e

    def get_api_key(self) -> Optional[str]:
        return self.load().api_key

    def get_installed_extensions(self) -> List[str]:
        """Names in the installed index, in order of first install"""
        return self.load().installed_extensions

    def add_installed_extension(self, name: str) -> bool:
        """
        Add a name to the installed index

        Returns:
            True if the name was added, False if it was already present
        """
        settings = self.load()
        if name in settings.installed_extensions:
            logger.debug(f"Extension already in installed index: {name}")
            return False

        settings.installed_extensions.append(name)
        self.save(settings)
        logger.debug(f"Added to installed index: {name}")
        return True

    def remove_installed_extension(self, name: str) -> bool:
        """
        Remove a name from the installed index

        Returns:
            True if the name was removed, False if it was not present
        """
        settings = self.load()
        if name not in settings.installed_extensions:
            return False

        settings.installed_extensions.remove(name)
        self.save(settings)
        return True
