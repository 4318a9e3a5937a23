"""RegistrationConfig dataclass and global configuration state.

Configuration is layered the same way for the library and the CLI:

1. Environment variables (``METRICFIELDS_*``)
2. TOML file (``[metrics]`` table) from an explicit path or
   ``METRICFIELDS_CONFIG_FILE``
3. Default values
"""

import json
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_BUCKETS: Tuple[float, ...] = (
    0.001,
    0.01,
    0.05,
    0.1,
    0.2,
    0.3,
    0.5,
    1.0,
    2.0,
    10.0,
    20.0,
)

DEFAULT_METADATA_KEY = "metrics"

_CONFIG_FILE_ENV_VAR = "METRICFIELDS_CONFIG_FILE"
LOG_LEVELS: Tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# extra={} keys emitted by the package loggers
_CONTEXT_FIELDS = ("record", "field", "fields", "metric", "attributes", "count", "spec")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _parse_buckets(value: Any) -> Optional[Tuple[float, ...]]:
    """Parse a bucket ladder from a TOML list or a comma-separated string.

    Returns None when any element is not a number.
    """
    if isinstance(value, str):
        items: List[Any] = [item for item in value.split(",") if item.strip()]
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        return None

    buckets: List[float] = []
    for item in items:
        if isinstance(item, bool):
            return None
        try:
            buckets.append(float(item))
        except (TypeError, ValueError):
            return None
    return tuple(buckets)


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, carrying the registration context fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


@dataclass
class RegistrationConfig:
    """Settings applied while turning record fields into collectors.

    Attributes:
        metadata_key: Dataclass field-metadata key holding annotation text
        default_buckets: Histogram bucket ladder used when a field sets none
        namespace: Prefix for exposed metric names (empty for none)
        log_level: Level for the ``metricfields`` logger
        structured_logging: Emit JSON-style log lines
    """

    metadata_key: str = DEFAULT_METADATA_KEY
    default_buckets: Tuple[float, ...] = DEFAULT_BUCKETS
    namespace: str = ""
    log_level: str = "INFO"
    structured_logging: bool = False

    startup_warnings: List[str] = field(default_factory=list, repr=False)

    def _add_startup_warning(self, message: str) -> None:
        if message and message not in self.startup_warnings:
            self.startup_warnings.append(message)
            logger.warning(message)

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "RegistrationConfig":
        """Create config from a TOML dict (the ``[metrics]`` table).

        Args:
            data: Dict from TOML parsing

        Returns:
            RegistrationConfig instance
        """
        config = cls()
        config._apply_toml_dict(data)
        return config

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "RegistrationConfig":
        """Create configuration from an optional TOML file and the environment.

        Environment variables take priority over the TOML file.
        """
        config = cls()

        toml_path = config_file or os.environ.get(_CONFIG_FILE_ENV_VAR)
        if toml_path:
            config._load_toml(Path(toml_path))

        config._load_env()
        return config

    def _load_toml(self, path: Path) -> None:
        try:
            with path.open("rb") as fh:
                data = tomllib.load(fh)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            self._add_startup_warning(f"Ignoring config file {path}: {exc}")
            return
        self._apply_toml_dict(data.get("metrics", {}))
        logger.debug(f"Loaded metricfields config from {path}")

    def _apply_toml_dict(self, data: Dict[str, Any]) -> None:
        if "metadata_key" in data:
            self.metadata_key = str(data["metadata_key"])
        if "default_buckets" in data:
            self._set_buckets(data["default_buckets"], source="TOML")
        if "namespace" in data:
            self.namespace = str(data["namespace"])
        if "log_level" in data:
            self._set_log_level(str(data["log_level"]), source="TOML")
        if "structured_logging" in data:
            self.structured_logging = _parse_bool(data["structured_logging"])

    def _load_env(self) -> None:
        if key := os.environ.get("METRICFIELDS_METADATA_KEY"):
            self.metadata_key = key
        if buckets := os.environ.get("METRICFIELDS_DEFAULT_BUCKETS"):
            self._set_buckets(buckets, source="METRICFIELDS_DEFAULT_BUCKETS")
        if namespace := os.environ.get("METRICFIELDS_NAMESPACE"):
            self.namespace = namespace
        if level := os.environ.get("METRICFIELDS_LOG_LEVEL"):
            self._set_log_level(level, source="METRICFIELDS_LOG_LEVEL")
        if structured := os.environ.get("METRICFIELDS_STRUCTURED_LOGGING"):
            self.structured_logging = _parse_bool(structured)

    def _set_buckets(self, value: Any, *, source: str) -> None:
        parsed = _parse_buckets(value)
        if parsed is None:
            self._add_startup_warning(
                f"Ignoring default_buckets from {source}: expected a list of numbers, got {value!r}"
            )
            return
        self.default_buckets = parsed

    def _set_log_level(self, value: str, *, source: str) -> None:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            self._add_startup_warning(
                f"Ignoring log_level from {source}: {value!r} is not one of "
                f"{', '.join(LOG_LEVELS)}"
            )
            return
        self.log_level = level

    def setup_logging(self) -> None:
        """Configure the ``metricfields`` logger based on settings."""
        handler = logging.StreamHandler()
        handler.setFormatter(
            StructuredFormatter()
            if self.structured_logging
            else logging.Formatter("%(levelname)s %(name)s: %(message)s")
        )
        handler.set_name("metricfields")

        package_logger = logging.getLogger("metricfields")
        package_logger.setLevel(getattr(logging, self.log_level, logging.INFO))
        # Replace the handler from a previous call instead of stacking them
        for existing in list(package_logger.handlers):
            if existing.get_name() == "metricfields":
                package_logger.removeHandler(existing)
        package_logger.addHandler(handler)


# Global configuration instance
_config: Optional[RegistrationConfig] = None


def get_config() -> RegistrationConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = RegistrationConfig.from_env()
    return _config


def set_config(config: Optional[RegistrationConfig]) -> None:
    """Set the global configuration instance (None resets to env loading)."""
    global _config
    _config = config
