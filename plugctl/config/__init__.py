"""Persistent CLI settings"""

from plugctl.config.cli_settings import CLISettings, SettingsManager

__all__ = ["CLISettings", "SettingsManager"]
