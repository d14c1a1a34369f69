from __future__ import annotations

import copy
import os
import threading
from pathlib import Path
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from cindy.models import AppConfig


ENV_CONFIG_PATH = "CINDY_CONFIG_PATH"

# environment variable -> (section, key)
ENV_KEYS: dict[str, tuple[str, str]] = {
    "CINDY_MASTODON_HOST": ("mastodon", "host"),
    "CINDY_MASTODON_ACCESS_TOKEN": ("mastodon", "access_token"),
    "CINDY_MAX_POST_LENGTH": ("mastodon", "max_post_length"),
    "CINDY_POLLING_SECONDS": ("polling", "interval_seconds"),
    "CINDY_CALENDAR_SOURCES": ("polling", "sources"),
    "CINDY_LAST_RUN_FILE": ("polling", "last_run_file"),
    "CINDY_TIME_ZONE": ("polling", "time_zone"),
    "CINDY_REDIRECTIONS_LIMIT": ("http", "redirections_limit"),
    "CINDY_HTTP_TIMEOUT_SECONDS": ("http", "timeout_seconds"),
    "CINDY_HOST": ("server", "host"),
    "CINDY_IP_PORT": ("server", "port"),
    "CINDY_LOG_LEVEL": ("logging", "level"),
}


class ConfigError(ValueError):
    pass


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for env_key, (section, key) in ENV_KEYS.items():
        value = environ.get(env_key)
        if value is None:
            continue
        overrides.setdefault(section, {})[key] = value
    return overrides


class ConfigManager:
    """Reads settings from an optional YAML file overlaid by ``CINDY_*`` variables."""

    def __init__(
        self,
        config_path: str | os.PathLike[str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.environ = os.environ if environ is None else environ
        if config_path is None:
            config_path = self.environ.get(ENV_CONFIG_PATH) or None
        self.config_path = Path(config_path) if config_path else None
        self._lock = threading.RLock()

    def _load_file(self) -> dict[str, Any]:
        if self.config_path is None or not self.config_path.exists():
            return {}
        with self.config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping: {self.config_path}")
        return data

    def load(self) -> AppConfig:
        with self._lock:
            merged = _deep_merge(self._load_file(), _env_overrides(self.environ))
            try:
                return AppConfig.from_dict(merged)
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"Invalid configuration: {exc}") from exc

    def load_validated(self) -> AppConfig:
        config = self.load()
        if not config.mastodon.host:
            raise ConfigError("CINDY_MASTODON_HOST is missing")
        if not config.mastodon.access_token:
            raise ConfigError("CINDY_MASTODON_ACCESS_TOKEN is missing")
        try:
            ZoneInfo(config.polling.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown time zone '{config.polling.time_zone}'") from exc
        return config

    def masked(self) -> dict[str, Any]:
        config = self.load().to_dict()
        if config.get("mastodon", {}).get("access_token"):
            config["mastodon"]["access_token"] = "***"
        return config
