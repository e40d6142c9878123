"""Tracker configuration."""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bytetally.common.constants import CONFIG_DIR_NAME, DEFAULT_WRITE_COOLDOWN, LOG_FORMAT, USAGE_FILE_NAME

logger = logging.getLogger("bytetally.config")


class TrackerSettings(BaseSettings):
    """Tracker settings loaded from environment or config file."""

    model_config = SettingsConfigDict(env_prefix="BYTETALLY_")

    # Storage
    config_dir: Path = Field(
        Path.home() / CONFIG_DIR_NAME,
        description="Directory holding the usage file. Env: BYTETALLY_CONFIG_DIR",
    )
    usage_file_name: str = Field(USAGE_FILE_NAME, description="Name of the usage file inside config_dir")

    # Persistence
    write_cooldown: float = Field(
        DEFAULT_WRITE_COOLDOWN,
        gt=0,
        description="Seconds of quiet after the last update before usage is written. "
        "Env: BYTETALLY_WRITE_COOLDOWN (supports suffixes: 250ms, 5s, 1m)",
    )
    flush_on_shutdown: bool = Field(
        True,
        description="Write any pending usage synchronously when the tracker stops. "
        "Env: BYTETALLY_FLUSH_ON_SHUTDOWN",
    )

    # Logging
    log_level: str = Field("INFO", description="Log level for the bytetally logger. Env: BYTETALLY_LOG_LEVEL")

    @field_validator("write_cooldown", mode="before")
    @classmethod
    def _parse_cooldown(cls, v: object) -> object:
        if isinstance(v, str):
            return parse_duration(v)
        return v

    @property
    def usage_path(self) -> Path:
        """Full path of the persisted usage document."""
        return self.config_dir / self.usage_file_name


def parse_duration(value: str) -> float:
    """Parse a human-readable duration string to seconds.

    Examples: '5', '5s', '250ms', '1m', '1.5s'
    """
    value = value.strip().lower()
    multipliers = {
        "ms": 0.001,
        "s": 1.0,
        "m": 60.0,
        "h": 3600.0,
    }
    for suffix, mult in sorted(multipliers.items(), key=lambda x: -len(x[0])):
        if value.endswith(suffix):
            num = value[: -len(suffix)].strip()
            return float(num) * mult
    return float(value)


def configure_logging(level: str = "INFO") -> None:
    """Set the bytetally log level, installing a root handler if none exists."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.getLogger("bytetally").setLevel(numeric_level)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=numeric_level, format=LOG_FORMAT)


def _parse_yaml_to_settings_dict(config: dict) -> dict:
    """Convert a parsed YAML config dict into a flat settings dict."""
    d: dict = {}

    if "tracker" in config:
        tr = config["tracker"] or {}
        if "dir" in tr:
            d["config_dir"] = tr["dir"]
        if "file" in tr:
            d["usage_file_name"] = tr["file"]
        if "cooldown" in tr:
            v = tr["cooldown"]
            d["write_cooldown"] = parse_duration(v) if isinstance(v, str) else v
        if "flush_on_shutdown" in tr:
            d["flush_on_shutdown"] = tr["flush_on_shutdown"]
    if "logging" in config:
        lg = config["logging"] or {}
        if "level" in lg:
            d["log_level"] = lg["level"]

    return d


def _apply_env_overrides(settings_dict: dict) -> None:
    """Drop YAML values that an environment variable will override (in-place).

    Init kwargs win over env in pydantic-settings, so a YAML value left in
    the dict would shadow the environment.
    """
    env_fields = {
        "BYTETALLY_CONFIG_DIR": "config_dir",
        "BYTETALLY_USAGE_FILE_NAME": "usage_file_name",
        "BYTETALLY_WRITE_COOLDOWN": "write_cooldown",
        "BYTETALLY_FLUSH_ON_SHUTDOWN": "flush_on_shutdown",
        "BYTETALLY_LOG_LEVEL": "log_level",
    }
    for env_key, field in env_fields.items():
        if os.environ.get(env_key, ""):
            settings_dict.pop(field, None)


# ── Config file auto-discovery ────────────────────────────────

# Paths searched in order when no explicit config is given.
_CONFIG_SEARCH_PATHS = [
    Path("./bytetally.yaml"),
    Path.home() / CONFIG_DIR_NAME / "config.yaml",
]


def discover_config_path() -> Optional[Path]:
    """Find a config file using auto-discovery.

    Search order:
      1. ``$BYTETALLY_CONFIG`` environment variable
      2. ``./bytetally.yaml``
      3. ``~/.bytetally/config.yaml``

    Returns:
        Path to the discovered config file, or None.
    """
    env_path = os.environ.get("BYTETALLY_CONFIG", "")
    if env_path:
        p = Path(env_path)
        if p.exists():
            return p
        logger.warning("$BYTETALLY_CONFIG=%s does not exist", env_path)

    for candidate in _CONFIG_SEARCH_PATHS:
        if candidate.exists():
            return candidate
    return None


def load_tracker_settings(config_path: Optional[Union[str, Path]] = None) -> TrackerSettings:
    """Load tracker settings from config file + environment variables.

    Args:
        config_path: Explicit path to config file.  When ``None``,
            auto-discovery is used (see :func:`discover_config_path`).
    """
    import yaml

    resolved_path = Path(config_path) if config_path is not None else discover_config_path()

    settings_dict: dict = {}

    if resolved_path and resolved_path.exists():
        with open(resolved_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        settings_dict = _parse_yaml_to_settings_dict(config)
        logger.info("Loaded config from %s", resolved_path.resolve())
    else:
        logger.debug("No config file found, using defaults + environment variables")

    _apply_env_overrides(settings_dict)

    return TrackerSettings(**settings_dict)
