import os
from functools import lru_cache
from typing import Any, Dict, Union

import dotenv
import yaml
from pydantic import BaseModel

from config.database.database_manager import DatabaseManager
from utils.logger_init import logger

# Get the absolute path of the current file
CURRENT_FILE_PATH = os.path.abspath(__file__)
# Get the directory containing the current file
BASE_DIR = os.path.dirname(CURRENT_FILE_PATH)

DEFAULT_DB_URI = "sqlite:///./content_lock.db"
# 14400 seconds = 4 hours
DEFAULT_LOCK_DURATION = 14400


class ContentLockSettings(BaseModel):
    """Administrative switches consumed by the lock engine on every call."""
    disabled: bool = False
    duration: int = DEFAULT_LOCK_DURATION


class CommonConfig:
    def __init__(self, config_path: str = None):
        self.logger = logger
        dotenv.load_dotenv(dotenv_path=BASE_DIR + '/../.env')

        if config_path:
            path = BASE_DIR + config_path
            if not os.path.exists(path):
                raise ConfigError("Config file not found")
            self.config = self.load_yaml_file(path)
        else:
            default_path = BASE_DIR + "/app.yaml"
            if not os.path.exists(default_path):
                raise ConfigError("Config file not found")
            self.config = self.load_yaml_file(default_path)

        if not self.config:
            raise ConfigError("Invalid configuration")

    def check_config(self, config, path, message):
        """Helper function to check configuration and raise an error if necessary."""
        current = config
        for key in path:
            if not isinstance(current, dict) or key not in current:
                raise ConfigError(message)
            current = current[key]

    def get_content_lock_config(self, key: str = None, default_value: Any = None) -> Any:
        self.check_config(self.config, ["app", "content_lock"], "app content_lock is not found.")
        section = self.config["app"]["content_lock"] or {}
        maintenance = section.get("maintenance") or {}
        content_lock_config = {
            "disabled": bool(section.get("disabled", False)),
            "duration": section.get("duration", DEFAULT_LOCK_DURATION),
            "maintenance": {
                "enabled": bool(maintenance.get("enabled", False)),
                "interval_minutes": maintenance.get("interval_minutes", 60),
                "max_age_hours": maintenance.get("max_age_hours", 24),
                "owner_ids": maintenance.get("owner_ids") or [],
            },
        }

        if key is None:
            return content_lock_config

        # Handle nested key access
        keys = key.split(".")
        value = content_lock_config
        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default_value

    def get_content_lock_settings(self) -> ContentLockSettings:
        duration = self.get_content_lock_config("duration", DEFAULT_LOCK_DURATION)
        try:
            duration = int(duration or 0)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid content lock duration: {duration!r}")
        return ContentLockSettings(
            disabled=self.get_content_lock_config("disabled", False),
            duration=duration,
        )

    def get_database_uri(self) -> str:
        uri = os.environ.get("CONTENT_LOCK_DB_URI")
        if uri:
            return uri
        return self.config.get("app", {}).get("database", {}).get("uri", DEFAULT_DB_URI)

    @lru_cache(maxsize=1)
    def get_db_manager(self) -> DatabaseManager:
        uri = self.get_database_uri()
        self.logger.debug(f"Creating database manager for {uri.split('@')[-1]}")
        return DatabaseManager(uri)

    @staticmethod
    def load_yaml_file(file_path: str):
        try:
            with open(file_path, 'r') as file:
                # Use the safe loader to avoid security risks
                data = yaml.safe_load(file)
                return data
        except FileNotFoundError:
            logger.error(f"File not found: {file_path}")
            return None
        except yaml.YAMLError as exc:
            logger.error(f"Error in YAML file: {exc}")
            return None

    @lru_cache(maxsize=100)
    def get_logging_config(self, package_name: str = None) -> Union[Dict[str, str], str]:
        """
        Get logging configuration for packages with hierarchical path support.
        Args:
            package_name: Optional package name to get specific log level
        Returns:
            Dict of package log levels or specific level string
        """
        logging_levels = self.config.get("app", {}).get("logging.level", {}) or {}
        root_level = logging_levels.get("root", "INFO")

        if package_name:
            # Find the most specific matching package path
            matching_level = root_level
            matching_length = 0

            for pkg_path, level in logging_levels.items():
                if pkg_path != "root" and package_name.startswith(pkg_path):
                    path_length = len(pkg_path.split('.'))
                    if path_length > matching_length:
                        matching_level = level
                        matching_length = path_length

            return matching_level

        return logging_levels


class ConfigError(Exception):
    """Custom exception for configuration errors."""
    pass


if __name__ == "__main__":
    config = CommonConfig()
    print(config.get_content_lock_settings())
    print(config.get_logging_config("content_lock.conflict_guard"))
