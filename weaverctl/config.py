"""weaverctl configuration management.

Configuration is loaded from the following sources, highest precedence first:
1. Environment variables (``WEAVER_*``, a ``.env`` file is honoured)
2. Configuration file (explicit path or the first of DEFAULT_CONFIG_PATHS)
3. Default values
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from weaverctl.modules.software.downloader import DEFAULT_ALLOWED_DOMAINS, DEFAULT_TIMEOUT
from weaverctl.modules.software.errors import ConfigLoadError
from weaverctl.modules.software.paths import DEFAULT_WEAVER_HOME, WeaverPaths

logger = logging.getLogger("weaver.config")

# Default configuration paths
DEFAULT_CONFIG_PATHS = [
    Path("/etc/weaver/config.yaml"),
    Path("~/.config/weaver/config.yaml").expanduser(),
    Path("weaver-config.yaml").absolute(),
]

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class PathsConfig(BaseModel):
    """Directory layout configuration."""
    home: str = Field(
        default=DEFAULT_WEAVER_HOME,
        description="Weaver home holding downloads, state and the sandbox"
    )
    root_dir: str = Field(
        default="/",
        description="Prefix for host paths such as /usr/local/bin"
    )

    @field_validator('home', 'root_dir')
    @classmethod
    def expand_path(cls, v: str) -> str:
        """Expand the user home directory in paths."""
        return os.path.expanduser(v)

    def to_weaver_paths(self) -> WeaverPaths:
        return WeaverPaths(home=self.home, root_dir=self.root_dir)


class DownloadConfig(BaseModel):
    """Download configuration."""
    timeout_seconds: int = Field(
        default=DEFAULT_TIMEOUT,
        description="Overall deadline for one download or extraction"
    )
    allowed_domains: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_DOMAINS),
        description="Hosts (and their subdomains) downloads may come from"
    )

    @field_validator('timeout_seconds')
    @classmethod
    def positive_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    file: Optional[str] = Field(
        default=None,
        description="Path to log file (if None, logs to stderr only)"
    )
    max_size_mb: int = Field(
        default=100,
        description="Maximum log file size in MB before rotation"
    )
    backup_count: int = Field(
        default=5,
        description="Number of backup log files to keep"
    )

    @field_validator('level')
    @classmethod
    def valid_level(cls, v: str) -> str:
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"level must be one of {', '.join(LOG_LEVELS)}")
        return v


class WeaverConfig(BaseModel):
    """weaverctl configuration."""
    model_config = ConfigDict(extra="ignore")

    paths: PathsConfig = Field(default_factory=PathsConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    catalog_path: Optional[str] = Field(
        default=None,
        description="Artifact catalog to use instead of the bundled one"
    )

    @classmethod
    def load(cls, config_path: Optional[Union[str, Path]] = None) -> 'WeaverConfig':
        """Load configuration from file and environment variables.

        Raises:
            ConfigLoadError: If the merged values are invalid
        """
        load_dotenv(find_dotenv(usecwd=True))
        config_data: Dict[str, Any] = {}

        if config_path:
            path = Path(config_path).expanduser().absolute()
            if path.exists():
                config_data = cls._load_config_file(path)
            else:
                logger.warning(f"Config file {path} not found, using defaults")
        else:
            for path in DEFAULT_CONFIG_PATHS:
                path = path.expanduser().absolute()
                if path.exists():
                    config_data = cls._load_config_file(path)
                    break

        _apply_env_overrides(config_data)
        try:
            return cls.model_validate(config_data)
        except ValidationError as e:
            raise ConfigLoadError(e, str(config_path) if config_path else None) from e

    @classmethod
    def _load_config_file(cls, path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML file."""
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {path}: top level must be a mapping")
            return {}
        return data

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to a file."""
        path = Path(path).expanduser().absolute()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.safe_dump(self.model_dump(exclude_none=True), f, default_flow_style=False, sort_keys=False)


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


# env var -> (section, key, converter); section None means top level
ENV_OVERRIDES: Dict[str, tuple] = {
    "WEAVER_HOME": ("paths", "home", str),
    "WEAVER_ROOT_DIR": ("paths", "root_dir", str),
    "WEAVER_DOWNLOAD_TIMEOUT": ("download", "timeout_seconds", int),
    "WEAVER_ALLOWED_DOMAINS": ("download", "allowed_domains", _split_list),
    "WEAVER_LOG_LEVEL": ("logging", "level", str),
    "WEAVER_LOG_FILE": ("logging", "file", str),
    "WEAVER_CATALOG_PATH": (None, "catalog_path", str),
}


def _apply_env_overrides(config_data: Dict[str, Any]) -> None:
    for env_name, (section, key, convert) in ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        try:
            value = convert(raw)
        except ValueError as e:
            raise ConfigLoadError(e) from e
        if section is None:
            config_data[key] = value
        else:
            target = config_data.get(section)
            if not isinstance(target, dict):
                target = {}
                config_data[section] = target
            target[key] = value


# Global configuration instance
_config: Optional[WeaverConfig] = None


def get_config(config_path: Optional[Union[str, Path]] = None) -> WeaverConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = WeaverConfig.load(config_path)
    return _config


def set_config(config: WeaverConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Drop the global configuration so the next get_config() reloads it."""
    global _config
    _config = None
