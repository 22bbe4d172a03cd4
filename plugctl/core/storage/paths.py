# plugctl/core/storage/paths.py
from __future__ import annotations
from pathlib import Path
import os

# Well-known file names under the config directory
CATALOG_FILENAME = "plugins.toml"
SETTINGS_FILENAME = "config.json"
EXTENSIONS_DIRNAME = "plugins"


def plugctl_home() -> Path:
    """Config directory: PLUGCTL_HOME, then $XDG_CONFIG_HOME/plugctl, then ~/.config/plugctl"""
    override = os.environ.get("PLUGCTL_HOME")
    if override:
        return Path(override).expanduser()

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg).expanduser() / "plugctl"

    return Path.home() / ".config" / "plugctl"


def default_catalog_path() -> Path:
    """Local catalog document"""
    return plugctl_home() / CATALOG_FILENAME


def default_extensions_dir() -> Path:
    """Where extension binaries are installed"""
    return plugctl_home() / EXTENSIONS_DIRNAME


def settings_path() -> Path:
    """Settings file holding the installed-extensions list"""
    return plugctl_home() / SETTINGS_FILENAME
