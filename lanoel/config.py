"""
Configuration management for the LAN event voting app.
Supports both JSON file configuration and environment variable overrides.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

logger = logging.getLogger(__name__)


class EventConfig:
    """Configuration management for the voting app."""

    DEFAULT_CONFIG = {
        "event_name": "LAN Noel",
        "server": {
            "host": "0.0.0.0",
            "port": 3000,
        },
        "database": {
            "path": "data/lanoel.db",
        },
        "auth": {
            "secret_key": "",  # empty: a random key is generated per process
            "bcrypt_rounds": 10,
            "admin_email": "admin@lanoel.local",
            "admin_handle": "admin",
            "admin_password": "Admin",
        },
        "voting": {
            "max_votes": 8,
        },
        "uploads": {
            "public_dir": "public",
            "upload_dir": "public/uploads",
            "max_upload_mb": 10,
        },
    }

    # env var -> (config path, converter)
    ENV_MAPPINGS: Dict[str, Tuple[Tuple[str, ...], Callable[[str], Any]]] = {
        "EVENT_NAME": (("event_name",), str),
        "HOST": (("server", "host"), str),
        "PORT": (("server", "port"), int),
        "DB_PATH": (("database", "path"), str),
        "SECRET_KEY": (("auth", "secret_key"), str),
        "BCRYPT_ROUNDS": (("auth", "bcrypt_rounds"), int),
        "ADMIN_EMAIL": (("auth", "admin_email"), str),
        "ADMIN_HANDLE": (("auth", "admin_handle"), str),
        "ADMIN_PASSWORD": (("auth", "admin_password"), str),
        "MAX_VOTES": (("voting", "max_votes"), int),
        "PUBLIC_DIR": (("uploads", "public_dir"), str),
        "UPLOAD_DIR": (("uploads", "upload_dir"), str),
        "MAX_UPLOAD_MB": (("uploads", "max_upload_mb"), int),
    }

    def __init__(
        self,
        config_path: str = "lanoel_config.json",
    ) -> None:
        """Initialize configuration from file, environment variables, or defaults."""
        self.config_path = Path(config_path)
        self.config = self._load_config()
        self._apply_env_overrides()
        self._validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from JSON file or create default.

        @return: Dictionary containing the loaded configuration
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    loaded_config = json.load(f)

                config = copy.deepcopy(self.DEFAULT_CONFIG)
                self._deep_merge(config, loaded_config)
                return config

            except (json.JSONDecodeError, IOError) as e:
                logger.error("Error loading config from %s: %s", self.config_path, e)
                logger.warning("Using default configuration")
                return copy.deepcopy(self.DEFAULT_CONFIG)
        else:
            self._create_default_config()
            return copy.deepcopy(self.DEFAULT_CONFIG)

    def _deep_merge(
        self,
        base_dict: Dict[str, Any],
        update_dict: Dict[str, Any],
    ) -> None:
        """
        Recursively merge dictionaries.

        @param base_dict: Base dictionary to merge into
        @param update_dict: Dictionary with updates to merge
        """
        for key, value in update_dict.items():
            if (
                key in base_dict
                and isinstance(base_dict[key], dict)
                and isinstance(value, dict)
            ):
                self._deep_merge(base_dict[key], value)
            else:
                base_dict[key] = value

    def _apply_env_overrides(self) -> None:
        """
        Apply environment variable overrides to configuration.

        Values that fail their converter are ignored with a warning.
        """
        for env_var, (config_path, converter) in self.ENV_MAPPINGS.items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue
            try:
                converted_value = converter(env_value)
            except ValueError:
                logger.warning("Ignoring %s=%r: not a valid value", env_var, env_value)
                continue
            self._set_nested_config(config_path, converted_value)

    def _set_nested_config(self, path: tuple, value: Any) -> None:
        """
        Set a nested configuration value using a path tuple.

        @param path: Tuple representing the nested path (e.g., ("server", "port"))
        @param value: Value to set
        """
        current = self.config
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _create_default_config(self) -> None:
        """Write the default configuration to the configured file path."""
        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self.DEFAULT_CONFIG, f, indent=2)
            logger.info("Created default configuration file: %s", self.config_path)
        except IOError as e:
            logger.warning("Could not create config file %s: %s", self.config_path, e)

    def _validate_config(self) -> None:
        """
        Validate configuration values.

        Checks configuration values for validity and sets defaults for invalid values.
        """
        port = self.config["server"]["port"]
        if not isinstance(port, int) or not 1 <= port <= 65535:
            logger.warning("Invalid port %r, using 3000", port)
            self.config["server"]["port"] = 3000

        max_votes = self.config["voting"]["max_votes"]
        if not isinstance(max_votes, int) or max_votes < 1:
            logger.warning("Invalid max_votes %r, using 8", max_votes)
            self.config["voting"]["max_votes"] = 8

        rounds = self.config["auth"]["bcrypt_rounds"]
        if not isinstance(rounds, int) or not 4 <= rounds <= 31:
            logger.warning("Invalid bcrypt_rounds %r, using 10", rounds)
            self.config["auth"]["bcrypt_rounds"] = 10

    def get(
        self,
        *keys: str,
    ) -> Any:
        """
        Get nested configuration value.

        @param keys: Variable arguments representing nested keys to traverse
        @return: Configuration value at the specified path, None if not found
        """
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return None
        return value

    @property
    def max_votes(self) -> int:
        return self.get("voting", "max_votes")
