"""Configuration loader for SnapMemo."""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Set

import filelock
import ruamel.yaml
from ruamel.yaml.error import YAMLError

from snapmemo.config.validators import (
    SnapMemoConfig,
    find_invalid_sections,
    validate_config,
)
from snapmemo.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _yaml() -> ruamel.yaml.YAML:
    yaml_loader = ruamel.yaml.YAML()
    yaml_loader.preserve_quotes = True
    yaml_loader.width = 4096
    return yaml_loader


class ConfigLoader:
    """Loads and manages application configuration from a YAML file."""

    def __init__(self, config_path: str = "config.yml") -> None:
        """Initialize the configuration loader.

        Args:
            config_path: Path to the main configuration file.
        """
        self.config_path = Path(config_path)
        self.backup_path = Path(f"{config_path}.backup")
        self.config: Dict[str, Any] = {}
        self.validated_config: Optional[SnapMemoConfig] = None
        self.invalid_sections: Set[str] = set()
        self.load()

    def load(self) -> None:
        """Load configuration from the YAML file, or defaults if it is missing."""
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    self.config = _yaml().load(f) or {}
            except YAMLError as e:
                raise ConfigurationError(
                    f"Failed to parse {self.config_path}: {e}"
                ) from e
        else:
            logger.warning(
                f"🟡 Config file not found: {self.config_path}, using defaults"
            )
            self.config = {}

        self._validate_config()

    def save(self) -> None:
        """Save configuration to YAML file with atomic write and backup."""
        temp_name = None
        try:
            self._create_backup()
            self._validate_config()

            with tempfile.NamedTemporaryFile(
                mode="w",
                delete=False,
                suffix=".tmp",
                dir=self.config_path.parent.resolve(),
            ) as temp_file:
                temp_name = temp_file.name
                _yaml().dump(self.config, temp_file)
                temp_file.flush()

            lock = filelock.FileLock(f"{self.config_path}.lock")
            with lock.acquire(timeout=10):
                shutil.move(temp_name, self.config_path)

        except Exception as e:
            if temp_name and Path(temp_name).exists():
                Path(temp_name).unlink()
            raise ConfigurationError(f"Failed to save configuration: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dot-notation key.

        Values from a section that failed validation are read from that
        section's defaults instead.

        Args:
            key: Configuration key (e.g., "audio.sample_rate").
            default: Default value if key not found.

        Returns:
            Configuration value or default.
        """
        keys = key.split(".")
        value = self.config
        if keys[0] in self.invalid_sections:
            value = SnapMemoConfig().model_dump()

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by dot-notation key.

        Args:
            key: Configuration key (e.g., "audio.min_hold_duration").
            value: Value to set.
        """
        keys = key.split(".")
        config_ref = self.config

        for k in keys[:-1]:
            if k not in config_ref:
                config_ref[k] = {}
            config_ref = config_ref[k]

        config_ref[keys[-1]] = value

    def get_all(self) -> Dict[str, Any]:
        """Get a shallow copy of the entire configuration dictionary."""
        return dict(self.config)

    def _validate_config(self) -> None:
        """Validate the loaded configuration using Pydantic schemas."""
        try:
            self.validated_config = validate_config(self.config)
            self.invalid_sections = set()
        except ValueError as e:
            self.validated_config = None
            self.invalid_sections = find_invalid_sections(self.config)
            logger.error(f"🛑 {e}")
            if self.invalid_sections:
                logger.warning(
                    f"🟡 Using defaults for: {', '.join(sorted(self.invalid_sections))}"
                )

    def _create_backup(self) -> None:
        """Create a backup of the current configuration file."""
        if not self.config_path.exists():
            return
        try:
            shutil.copy2(self.config_path, self.backup_path)
            logger.debug(f"Configuration backup created: {self.backup_path}")
        except OSError as e:
            logger.warning(f"🟡 Failed to create configuration backup: {e}")

    def restore_from_backup(self) -> bool:
        """Restore configuration from backup file.

        Returns:
            True if restore was successful, False otherwise.
        """
        if not self.backup_path.exists():
            logger.error("🛑 No backup file found for restore")
            return False

        try:
            shutil.copy2(self.backup_path, self.config_path)
            self.load()
            logger.info("🟢 Configuration restored from backup successfully")
            return True
        except (OSError, ConfigurationError) as e:
            logger.error(f"🛑 Failed to restore configuration from backup: {e}")
            return False


# Global config instance
config = ConfigLoader(os.environ.get("SNAPMEMO_CONFIG", "config.yml"))
