"""Configuration management for tasktrack."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .task import Category, TaskFilter

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "~/.tasktrack"


def default_data_dir() -> str:
    """Data directory, overridable with the TASKTRACK_HOME environment variable."""
    return os.environ.get("TASKTRACK_HOME", DEFAULT_DATA_DIR)


@dataclass
class ConfigModel:
    """Global configuration model for tasktrack."""

    # Storage
    data_dir: str = ""
    database_file: str = "tasktrack.db"
    tasks_collection: str = "tasks"
    users_collection: str = "users"

    # Defaults
    default_category: str = Category.WORK.value
    default_filter: str = TaskFilter.ALL

    # Display preferences
    dashboard_recent_limit: int = 5
    notification_seconds: float = 3.0
    date_format: str = ""  # strftime pattern; empty renders "Mar 5, 2024"
    no_color: bool = False

    # Behavior settings
    mutation_timeout: Optional[float] = 10.0  # seconds, None disables
    confirm_deletion: bool = True

    # Logging
    log_level: str = "WARNING"

    def __post_init__(self):
        """Post-initialization setup."""
        if not self.data_dir:
            self.data_dir = default_data_dir()
        self.data_dir = os.path.expanduser(self.data_dir)
        Path(self.data_dir).mkdir(parents=True, exist_ok=True)

        if Category.parse(self.default_category) is None:
            logger.warning("Unknown default_category %r, using 'work'", self.default_category)
            self.default_category = Category.WORK.value
        if self.default_filter not in TaskFilter.choices():
            logger.warning("Unknown default_filter %r, using 'all'", self.default_filter)
            self.default_filter = TaskFilter.ALL

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        data = {
            "data_dir": self.data_dir,
            "database_file": self.database_file,
            "tasks_collection": self.tasks_collection,
            "users_collection": self.users_collection,
            "default_category": self.default_category,
            "default_filter": self.default_filter,
            "dashboard_recent_limit": self.dashboard_recent_limit,
            "notification_seconds": self.notification_seconds,
            "date_format": self.date_format,
            "no_color": self.no_color,
            "mutation_timeout": self.mutation_timeout,
            "confirm_deletion": self.confirm_deletion,
            "log_level": self.log_level,
        }
        return yaml.dump(data, default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML, ignoring unknown keys."""
        data = yaml.safe_load(yaml_str) or {}
        if not isinstance(data, dict):
            logger.warning("Config must be a mapping, got %s; using defaults", type(data).__name__)
            data = {}
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in data.items() if k in known})

    def get_config_path(self) -> Path:
        """Get the config file path."""
        return Path(self.data_dir) / "config.yaml"

    def get_database_path(self) -> Path:
        """Get the backend database file path."""
        return Path(self.data_dir) / self.database_file


class Config:
    """Configuration manager for tasktrack."""

    _instance: Optional[ConfigModel] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Load configuration from file or create default."""
        if cls._instance is not None and config_path is None:
            return cls._instance

        config = ConfigModel()

        if config_path is None:
            config_path = config.get_config_path()

        if config_path.exists():
            try:
                with open(config_path, "r") as f:
                    config = ConfigModel.from_yaml(f.read())
                logger.debug("Loaded configuration from %s", config_path)
            except (OSError, yaml.YAMLError, TypeError) as e:
                logger.warning("Failed to load config from %s: %s; using defaults", config_path, e)
        else:
            cls.save(config, config_path)
            logger.debug("Created default configuration at %s", config_path)

        cls._instance = config
        return config

    @classmethod
    def save(cls, config: ConfigModel, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = config.get_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(config_path, "w") as f:
                f.write(config.to_yaml())
            logger.debug("Configuration saved to %s", config_path)
        except OSError as e:
            logger.error("Failed to save config to %s: %s", config_path, e)

    @classmethod
    def get(cls) -> ConfigModel:
        """Get the current configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reload(cls) -> ConfigModel:
        """Reload configuration from file."""
        cls._instance = None
        return cls.load()

    @classmethod
    def reset(cls) -> None:
        """Forget the cached configuration."""
        cls._instance = None


def get_config() -> ConfigModel:
    """Get the current configuration."""
    return Config.get()


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load configuration from file."""
    return Config.load(config_path)


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    Config.save(config, config_path)
