# config.py
"""
FILE: config.py
DESCRIPTION:
  Loads bridge settings from the environment (and an optional .env file).
  - Values are read once at import into a frozen Settings object.
  - Module-level constants mirror the settings; other modules read them at
    call time (config.TOPIC_PREFIX, config.MQTT_SETTINGS[...]) so tests can patch them.
  - TOPIC_PREFIX is required, but the check happens in main() so importing never fails.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


_TRUE_WORDS = {"1", "true", "on", "yes"}
_FALSE_WORDS = {"0", "false", "off", "no"}


def _env_str(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    """Parse on/off style switches. Anything unrecognised keeps the default."""
    raw = _env_str(name)
    if raw is None:
        return default
    v = raw.lower()
    if v in _TRUE_WORDS:
        return True
    if v in _FALSE_WORDS:
        return False
    return default


@dataclass(frozen=True)
class Settings:
    topic_prefix: str | None

    deconz_host: str
    deconz_port: int

    mqtt_host: str
    mqtt_port: int
    mqtt_user: str | None
    mqtt_pass: str | None
    mqtt_retain: bool

    reconnect_delay: float
    process_all_categories: bool
    verbose_events: bool


def load_settings() -> Settings:
    # Real environment variables win over the .env file.
    env_file = os.getenv("BRIDGE_ENV_FILE", ".env")
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    prefix = _env_str("TOPIC_PREFIX")
    if prefix is not None:
        prefix = prefix.rstrip("/") or None

    return Settings(
        topic_prefix=prefix,
        deconz_host=_env_str("DECONZ_IP", "localhost"),
        deconz_port=_env_int("DECONZ_PORT", 443),
        mqtt_host=_env_str("MQTT_HOST", "localhost"),
        mqtt_port=_env_int("MQTT_PORT", 1883),
        mqtt_user=_env_str("MQTT_USER"),
        mqtt_pass=_env_str("MQTT_PASS"),
        mqtt_retain=_env_bool("MQTT_RETAIN", True),
        reconnect_delay=_env_float("RECONNECT_DELAY", 30.0),
        process_all_categories=_env_bool("PROCESS_ALL_CATEGORIES", False),
        verbose_events=_env_bool("VERBOSE_EVENTS", False),
    )


settings = load_settings()

TOPIC_PREFIX = settings.topic_prefix

DECONZ_SETTINGS = {
    "host": settings.deconz_host,
    "port": settings.deconz_port,
}

MQTT_SETTINGS = {
    "host": settings.mqtt_host,
    "port": settings.mqtt_port,
    "user": settings.mqtt_user,
    "pass": settings.mqtt_pass,
}

MQTT_RETAIN = settings.mqtt_retain
RECONNECT_DELAY = settings.reconnect_delay
PROCESS_ALL_CATEGORIES = settings.process_all_categories
VERBOSE_EVENTS = settings.verbose_events
