"""Configuration management for TaskPulse."""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from .task import Priority

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "~/.taskpulse"
CONFIG_ENV_VAR = "TASKPULSE_CONFIG"


@dataclass
class ConfigModel:
    """Global configuration model for TaskPulse."""

    # Storage
    data_dir: str = DEFAULT_DATA_DIR

    # Task defaults
    default_priority: Priority = Priority.MEDIUM
    default_estimate_minutes: int = 30
    default_estimate_intensity: int = 3

    # Date preferences
    date_format: str = "%Y-%m-%d"
    first_day_of_week: int = 0  # 0=Monday, 6=Sunday

    # Output
    log_level: str = "WARNING"
    no_color: bool = False

    def __post_init__(self):
        """Post-initialization setup."""
        self.data_dir = os.path.expanduser(self.data_dir)
        if isinstance(self.default_priority, str):
            try:
                self.default_priority = Priority(self.default_priority)
            except ValueError:
                logger.warning(f"Unknown default_priority '{self.default_priority}', using medium")
                self.default_priority = Priority.MEDIUM
        if not 0 <= self.first_day_of_week <= 6:
            logger.warning(f"first_day_of_week must be 0-6, got {self.first_day_of_week}; using 0")
            self.first_day_of_week = 0

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        data = {
            "data_dir": self.data_dir,
            "default_priority": self.default_priority.value,
            "default_estimate_minutes": self.default_estimate_minutes,
            "default_estimate_intensity": self.default_estimate_intensity,
            "date_format": self.date_format,
            "first_day_of_week": self.first_day_of_week,
            "log_level": self.log_level,
            "no_color": self.no_color,
        }
        return yaml.dump(data, default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML, ignoring unknown keys."""
        data = yaml.safe_load(yaml_str) or {}
        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def get_config_path(self) -> Path:
        """Get the config file path."""
        return Path(self.data_dir) / "config.yaml"


def default_config_path() -> Path:
    """Config path from the environment, or the default location."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return ConfigModel(data_dir=DEFAULT_DATA_DIR).get_config_path()


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load configuration from file, creating a default one if missing.

    An unreadable file falls back to defaults with a logged warning.
    """
    if config_path is None:
        config_path = default_config_path()
    config_path = Path(config_path)

    if not config_path.exists():
        config = ConfigModel()
        save_config(config, config_path)
        logger.info(f"Created default configuration at {config_path}")
        return config

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = ConfigModel.from_yaml(f.read())
        logger.debug(f"Loaded configuration from {config_path}")
        return config
    except (OSError, yaml.YAMLError, TypeError, ValueError) as e:
        logger.warning(f"Failed to load config from {config_path}: {e}. Using defaults.")
        return ConfigModel()


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    if config_path is None:
        config_path = config.get_config_path()
    config_path = Path(config_path)

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write(config.to_yaml())
    except OSError as e:
        logger.error(f"Failed to save config to {config_path}: {e}")
