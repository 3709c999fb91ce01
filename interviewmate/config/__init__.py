"""Simple YAML configuration loader for InterviewMate."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Literal
import logging

from pydantic import BaseModel, ValidationError

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "interviewmate.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "chat": {
        "api_key": "",
        "model": "gpt-4o",
        "api_base": "",
        "api_call_method": "direct",
        "timeout_seconds": 60.0,
    },
    "transcription": {
        "credentials_path": "",
        "primary_language": "auto",
        "secondary_language": "",
    },
    "audio": {
        "sample_rate": 16000,
        "block_size": 4096,
        "channels": 1,
        "input_device_index": None,
    },
    "auto_submit": {
        "quiet_interval_seconds": 2.0,
        "poll_interval_seconds": 1.0,
    },
    "render": {
        "reveal_tick_seconds": 0.035,
        "reveal_pause_seconds": 0.5,
    },
    "storage": {
        "data_directory": "data",
    },
    "logging": {
        "level": "INFO",
        "file_path": "data/logs/interviewmate.log",
        "console_output": True,
    },
}

# Flat settings name -> dot path in the YAML file
SETTINGS_KEYS: Dict[str, str] = {
    "chat_api_key": "chat.api_key",
    "chat_model": "chat.model",
    "api_base": "chat.api_base",
    "api_call_method": "chat.api_call_method",
    "transcription_api_key": "transcription.credentials_path",
    "primary_language": "transcription.primary_language",
    "secondary_language": "transcription.secondary_language",
}

# Settings holding filesystem paths, relative to the config file
PATH_KEYS = (
    "transcription.credentials_path",
    "storage.data_directory",
    "logging.file_path",
)


class ProviderSettings(BaseModel):
    """Provider credentials and model choices used by the chat and transcription calls."""

    chat_api_key: str = ""
    chat_model: str = "gpt-4o"
    api_base: str = ""
    api_call_method: Literal["direct", "proxy"] = "direct"
    transcription_api_key: str = ""
    primary_language: str = "auto"
    secondary_language: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.chat_api_key and self.transcription_api_key)


class InterviewMateConfig:
    """InterviewMate configuration loader.

    ``config`` holds the effective values with relative paths resolved
    against the config file; ``raw`` holds the values as written in the
    file, and is what ``save()`` writes back.
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, uses interviewmate.yaml
                        in the current directory. A missing file starts from defaults
                        and is created on the first save.
        """
        self.config_file = Path(config_path or DEFAULT_CONFIG_FILE)

        if self.config_file.exists():
            logger.info(f"Loading configuration from: {self.config_file}")
            self.raw = self._load_config()
        else:
            logger.warning(f"Configuration file not found, using defaults: {self.config_file}")
            self.raw = copy.deepcopy(DEFAULT_CONFIG)

        self.config = copy.deepcopy(self.raw)
        self._resolve_paths(self.config)

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file, layered over the defaults."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}

            if not isinstance(loaded, dict):
                raise ValueError("Configuration file must contain a mapping")

            config = copy.deepcopy(DEFAULT_CONFIG)
            _deep_merge(config, loaded)

            logger.info("Configuration loaded successfully")
            return config

        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")
        except Exception as e:
            raise ValueError(f"Failed to load configuration: {e}")

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        for key_path in PATH_KEYS:
            value = _get_path(config, key_path)
            if value:
                _set_path(config, key_path, self._resolve_path(value))

    def _resolve_path(self, value: str) -> str:
        if value and not os.path.isabs(value):
            return str(self.config_file.parent / value)
        return value

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'chat.model').

        Args:
            key_path: Dot-separated key path (e.g., 'transcription.credentials_path')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return _get_path(self.config, key_path, default)

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Path settings are stored as given and resolved for lookups.

        Args:
            key_path: Dot-separated path to config value (e.g., 'chat.model')
            value: Value to set
        """
        _set_path(self.raw, key_path, value)
        if key_path in PATH_KEYS and isinstance(value, str):
            value = self._resolve_path(value)
        _set_path(self.config, key_path, value)
        logger.debug(f"Configuration key '{key_path}' set")

    def save(self) -> None:
        """Write the configuration back to the YAML file, paths as the user wrote them."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.raw, f, sort_keys=False)
        logger.info(f"Configuration saved to: {self.config_file}")

    def get_settings(self) -> ProviderSettings:
        """Return the provider settings snapshot used for provider calls."""
        values = {}
        for name, key_path in SETTINGS_KEYS.items():
            value = self.get(key_path)
            if value is not None:
                values[name] = value
        try:
            return ProviderSettings(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid provider settings: {e}") from e

    def update_settings(self, partial: Dict[str, Any]) -> ProviderSettings:
        """Merge a partial settings mapping into the configuration and persist it.

        Args:
            partial: Flat settings names (see SETTINGS_KEYS) to new values

        Returns:
            The validated settings after the update
        """
        unknown = set(partial) - set(SETTINGS_KEYS)
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(sorted(unknown))}")

        merged = self.get_settings().model_dump()
        merged.update(partial)
        try:
            settings = ProviderSettings(**merged)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid provider settings: {e}") from e

        for name in partial:
            self.set(SETTINGS_KEYS[name], getattr(settings, name))
        self.save()
        return self.get_settings()

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _get_path(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    value = config
    for key in key_path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def _set_path(config: Dict[str, Any], key_path: str, value: Any) -> None:
    keys = key_path.split('.')
    for key in keys[:-1]:
        config = config.setdefault(key, {})
    config[keys[-1]] = value
