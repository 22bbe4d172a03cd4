"""
Centralized Configuration Management for plugctl

Provides pydantic-based configuration with:
- Environment variable loading (PLUGCTL_ prefix)
- Type validation
- Default values

Usage:
    from plugctl.core.config import get_config

    config = get_config()
    print(config.catalog_file)
    print(config.plugins_dir)
"""

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from plugctl.core.storage import paths


class PlugctlConfig(BaseSettings):
    """
    Central configuration for plugctl

    All settings can be overridden via environment variables with PLUGCTL_ prefix.
    For example: PLUGCTL_API_KEY, PLUGCTL_CATALOG_PATH, etc.
    """

    model_config = SettingsConfigDict(
        env_prefix="PLUGCTL_",
        populate_by_name=True,
        extra="ignore",
    )

    # ============================================
    # Locations
    # ============================================

    home: Optional[Path] = Field(
        default=None,
        description="Config directory (default: $XDG_CONFIG_HOME/plugctl or ~/.config/plugctl)"
    )

    catalog_path: Optional[Path] = Field(
        default=None,
        description="Local catalog document (default: <config dir>/plugins.toml)"
    )

    extensions_dir: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("PLUGCTL_PLUGINS_PATH", "PLUGCTL_EXTENSIONS_DIR", "extensions_dir"),
        description="Directory extension binaries are installed into (default: <config dir>/plugins)"
    )

    # ============================================
    # Remote origin
    # ============================================

    api_base_url: str = Field(
        default="https://api.stripe.com/v1",
        description="API origin used to resolve the per-account distribution URL"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="API credential; falls back to the settings file when unset"
    )

    http_timeout: Optional[float] = Field(
        default=None,
        description="Timeout in seconds for remote requests (None: no timeout)"
    )

    # ============================================
    # Package layout
    # ============================================

    catalog_filename: str = Field(
        default=paths.CATALOG_FILENAME,
        description="Well-known name of the catalog document on the distribution server"
    )

    fragment_filename: str = Field(
        default="manifest.toml",
        description="Name of the catalog fragment inside a distribution archive"
    )

    binary_prefix: str = Field(
        default="stripe-cli-",
        description="Token identifying the binary payload inside a distribution archive"
    )

    max_fragment_size: int = Field(
        default=100 * 1024,  # 100KB
        description="Maximum size of the catalog fragment in bytes"
    )

    max_binary_size: int = Field(
        default=200 * 1024 * 1024,  # 200MB
        description="Maximum size of the binary payload in bytes"
    )

    # ============================================
    # Runtime
    # ============================================

    lock_timeout: float = Field(
        default=10.0,
        description="Seconds to wait for the catalog lock before giving up"
    )

    log_level: str = Field(
        default="WARNING",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate logging level name"""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level '{v}'. Must be one of: {valid_levels}")
        return upper

    @property
    def config_dir(self) -> Path:
        return self.home or paths.plugctl_home()

    @property
    def catalog_file(self) -> Path:
        """Resolved catalog path"""
        return self.catalog_path or self.config_dir / paths.CATALOG_FILENAME

    @property
    def plugins_dir(self) -> Path:
        """Resolved extensions directory"""
        return self.extensions_dir or self.config_dir / paths.EXTENSIONS_DIRNAME

    @property
    def settings_file(self) -> Path:
        """Settings file holding the installed-extensions list"""
        return self.config_dir / paths.SETTINGS_FILENAME


# Global config instance
_config: Optional[PlugctlConfig] = None


def get_config(force_reload: bool = False) -> PlugctlConfig:
    """
    Get the global configuration instance

    Args:
        force_reload: Force reload configuration from environment

    Returns:
        PlugctlConfig instance
    """
    global _config

    if _config is None or force_reload:
        _config = PlugctlConfig()

    return _config


def reset_config():
    """Drop the cached configuration (used by tests)"""
    global _config
    _config = None
