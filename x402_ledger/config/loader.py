"""
Configuration management and loading.

Handles ledger settings read from a YAML file. Settings are plain frozen
values handed to loggers and services at startup.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from x402_ledger.storage.db import DEFAULT_DB_PATH

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("dev", "json")


@dataclass(frozen=True)
class StorageConfig:
    """Where events are persisted."""
    db_path: str = DEFAULT_DB_PATH

    def __post_init__(self):
        if not self.db_path or not str(self.db_path).strip():
            raise ValueError("db_path cannot be empty")


@dataclass(frozen=True)
class TenancyConfig:
    """Defaults recorded when callers leave attribution open."""
    default_tenant_id: Optional[str] = None
    default_buyer_id: Optional[str] = None
    default_buyer_name: Optional[str] = None


@dataclass(frozen=True)
class ReportingConfig:
    """Defaults for read paths."""
    timezone: str = "UTC"
    default_days: int = 7
    top_limit: int = 10
    recent_limit: int = 20

    def __post_init__(self):
        """Validate reporting values."""
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {self.timezone}")
        if self.default_days < 1:
            raise ValueError("default_days must be >= 1")
        if self.top_limit < 1:
            raise ValueError("top_limit must be >= 1")
        if self.recent_limit < 1:
            raise ValueError("recent_limit must be >= 1")


@dataclass(frozen=True)
class LoggingConfig:
    """Log output settings."""
    level: str = "INFO"
    format: str = "dev"

    def __post_init__(self):
        if self.level.upper() not in LOG_LEVELS:
            raise ValueError(f"logging level must be one of: {list(LOG_LEVELS)}")
        if self.format not in LOG_FORMATS:
            raise ValueError(f"logging format must be one of: {list(LOG_FORMATS)}")


@dataclass(frozen=True)
class LedgerConfig:
    """Complete ledger configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    tenancy: TenancyConfig = field(default_factory=TenancyConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS = {
    "storage": (StorageConfig, {"db_path": str}),
    "tenancy": (TenancyConfig, {
        "default_tenant_id": str,
        "default_buyer_id": str,
        "default_buyer_name": str,
    }),
    "reporting": (ReportingConfig, {
        "timezone": str,
        "default_days": int,
        "top_limit": int,
        "recent_limit": int,
    }),
    "logging": (LoggingConfig, {"level": str, "format": str}),
}


def load_config(path: Optional[str] = None) -> LedgerConfig:
    """Load and validate ledger configuration from a YAML file.

    Every section is optional; omitted values take their defaults. Unknown
    sections or keys are rejected rather than ignored.

    Args:
        path: Path to YAML configuration file, or None for all defaults

    Returns:
        Validated LedgerConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return LedgerConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Ledger config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return LedgerConfig()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping of sections")

    unknown_keys = set(raw_config.keys()) - set(_SECTIONS)
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    sections = {}
    for name, data in raw_config.items():
        sections[name] = _parse_section(name, data)
    return LedgerConfig(**sections)


def _parse_section(name: str, data: Any):
    """Parse and validate one configuration section.

    Args:
        name: Section name
        data: Raw section mapping

    Returns:
        The section's config object

    Raises:
        ValueError: If the section is invalid
    """
    config_cls, schema = _SECTIONS[name]
    if data is None:
        return config_cls()
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")

    unknown_keys = set(data.keys()) - set(schema)
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")

    values: Dict[str, Any] = {}
    for key, value in data.items():
        expected = schema[key]
        if value is None:
            values[key] = None
            continue
        # bool is an int subclass; YAML "yes" must not pass as a number
        if isinstance(value, bool) or not isinstance(value, expected):
            raise ValueError(f"'{name}.{key}' must be of type {expected.__name__}")
        values[key] = value

    # None means "use the default" for everything but the tenancy ids
    if config_cls is not TenancyConfig:
        values = {k: v for k, v in values.items() if v is not None}
    return config_cls(**values)
