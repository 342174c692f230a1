"""
Configuration loading and management.

Builds a ClientConfig from defaults, an optional JSON file, environment
variables and explicit overrides, in that order of precedence.
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

from pydantic import ValidationError

from core.exceptions import KeenConfigurationError
from core.models.config import ClientConfig
from .defaults import ENV_VAR_MAPPING, STRING_CONFIG_PATHS, get_default_client_config

logger = logging.getLogger(__name__)


class ConfigurationLoader:
    """Load and save client configurations"""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        # Environment snapshot; defaults to the live process environment
        self.environ = environ if environ is not None else os.environ

    def load_client_config(
        self,
        config_file: Optional[Union[str, Path]] = None,
        testing: bool = False,
        **overrides: Any
    ) -> ClientConfig:
        """
        Load client configuration.

        Args:
            config_file: Optional JSON file with client settings
            testing: Start from the small-queue, inline-upload test settings
            **overrides: Explicit values (dot-free top-level keys, nested dicts allowed)

        Raises:
            KeenConfigurationError: the merged configuration is invalid
        """
        config_data = get_default_client_config(testing=testing)

        if config_file is not None:
            file_data = self._load_config_file(Path(config_file))
            self._deep_merge(config_data, file_data)

        config_data = self._apply_env_overrides(config_data)
        self._deep_merge(config_data, {k: v for k, v in overrides.items() if v is not None})

        if 'cache_dir' in config_data and config_data['cache_dir'] is not None:
            config_data['cache_dir'] = Path(config_data['cache_dir'])

        try:
            return ClientConfig(**config_data)
        except ValidationError as e:
            raise KeenConfigurationError(f"Invalid client configuration: {e}") from e

    def _load_config_file(self, config_file: Path) -> Dict[str, Any]:
        """Load a JSON config file; unreadable files are logged and ignored"""
        if not config_file.exists():
            logger.warning(f"Config file {config_file} does not exist, using defaults")
            return {}

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load config from {config_file}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Config file {config_file} does not contain a JSON object, ignoring it")
            return {}
        return data

    def _deep_merge(self, target: Dict[str, Any], source: Dict[str, Any]) -> None:
        """Recursively merge source into target (modified in place)"""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._deep_merge(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration"""
        for env_var, config_path in ENV_VAR_MAPPING.items():
            env_value = self.environ.get(env_var)
            if env_value is not None:
                self._set_nested_value(config_data, config_path, env_value)

        return config_data

    def _set_nested_value(self, data: Dict[str, Any], path: str, value: str) -> None:
        """Set nested dictionary value using dot notation path"""
        keys = path.split('.')
        current = data

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        final_key = keys[-1]
        if path in STRING_CONFIG_PATHS:
            current[final_key] = value
        else:
            current[final_key] = self._convert_env_value(value)

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable string to appropriate type"""
        # Boolean conversion
        if value.lower() in ('true', 'yes', 'on'):
            return True
        elif value.lower() in ('false', 'no', 'off'):
            return False

        # Numeric conversion
        try:
            if '.' in value:
                return float(value)
            else:
                return int(value)
        except ValueError:
            pass

        # Return as string
        return value

    def save_client_config(self, config: ClientConfig, config_file: Union[str, Path]) -> bool:
        """Save client configuration to disk (credentials included)"""
        config_file = Path(config_file)
        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)

            with open(config_file, 'w', encoding='utf-8') as f:
                json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)

            logger.info(f"Saved configuration to {config_file}")
            return True

        except (OSError, TypeError) as e:
            logger.error(f"Failed to save config to {config_file}: {e}")
            return False
