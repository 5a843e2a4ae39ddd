"""
Configuration file support for linksync.

Provides:
- Config dataclass for holding configuration values
- TOML config file loading (linksync.toml)
- Precedence: CLI > environment > config file > defaults

Example::

    [paths]
    db = "data/linksync.db"
    schema = "schema.json"

    [sync]
    allow_self_links = false

    [logging]
    level = "INFO"

    [[links]]
    key = "Article,Article,related,Article,Article,related"
    label = "Related articles"
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

# Python 3.11+ has tomllib in stdlib, earlier versions need tomli
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .dispatcher import LinkDefinition
from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "linksync.toml"
DEFAULT_DB_PATH = Path("linksync.db")

ENV_DB_PATH = "LINKSYNC_DB"
ENV_SCHEMA_PATH = "LINKSYNC_SCHEMA"


@dataclass
class PathsConfig:
    """Path configuration."""

    db: Optional[str] = None
    schema: Optional[str] = None


@dataclass
class SyncConfig:
    """Link synchronization settings."""

    allow_self_links: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "WARNING"
    log_file: Optional[str] = None


@dataclass
class Config:
    """Complete configuration for linksync."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    links: List[LinkDefinition] = field(default_factory=list)
    config_path: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config_path: Optional[Path] = None) -> "Config":
        """Create Config from a dictionary (parsed TOML)."""
        paths_data = data.get("paths", {})
        sync_data = data.get("sync", {})
        logging_data = data.get("logging", {})

        links = []
        for index, item in enumerate(data.get("links", [])):
            if not isinstance(item, dict) or "key" not in item:
                raise ConfigError(f"[[links]] entry {index} has no 'key'")
            links.append(LinkDefinition.from_dict(item))

        return cls(
            paths=PathsConfig(
                db=paths_data.get("db"),
                schema=paths_data.get("schema"),
            ),
            sync=SyncConfig(
                allow_self_links=bool(sync_data.get("allow_self_links", False)),
            ),
            logging=LoggingConfig(
                level=logging_data.get("level", "WARNING"),
                log_file=logging_data.get("log_file"),
            ),
            links=links,
            config_path=config_path,
        )

    @property
    def base_dir(self) -> Path:
        """Directory relative paths in the config are resolved against."""
        return self.config_path.parent if self.config_path else Path.cwd()

    def _resolve(self, value: Optional[str]) -> Optional[Path]:
        if not value:
            return None
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.base_dir / path

    def db_path(self, override: Optional[str] = None) -> Path:
        """Database path: explicit value, then $LINKSYNC_DB, then config, then default."""
        if override:
            return Path(override)
        env_db = os.getenv(ENV_DB_PATH)
        if env_db:
            return Path(env_db).expanduser()
        return self._resolve(self.paths.db) or self.base_dir / DEFAULT_DB_PATH

    def schema_path(self, override: Optional[str] = None) -> Optional[Path]:
        """Field schema path: explicit value, then $LINKSYNC_SCHEMA, then config."""
        if override:
            return Path(override)
        env_schema = os.getenv(ENV_SCHEMA_PATH)
        if env_schema:
            return Path(env_schema).expanduser()
        return self._resolve(self.paths.schema)

    def log_file_path(self) -> Optional[Path]:
        return self._resolve(self.logging.log_file)


def find_config_file(config_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find the configuration file.

    Search order:
    1. Explicit path if provided
    2. linksync.toml in current directory

    Raises:
        ConfigError: If an explicit path does not exist.
    """
    if config_path is not None:
        if config_path.exists():
            return config_path
        raise ConfigError(f"Config file not found: {config_path}")

    cwd_config = Path.cwd() / DEFAULT_CONFIG_NAME
    if cwd_config.exists():
        return cwd_config

    return None


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from a TOML file.

    If no config file is found, returns default configuration.

    Raises:
        ConfigError: If the config file exists but cannot be parsed.
    """
    config_file = find_config_file(config_path)

    if config_file is None:
        logger.debug("No config file found, using defaults")
        return Config()

    logger.debug(f"Loading config from: {config_file}")

    try:
        with open(config_file, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_file}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_file}: {e}")

    config = Config.from_dict(data, config_path=config_file)
    logger.info(f"Loaded config from: {config_file} ({len(config.links)} link definition(s))")
    return config
