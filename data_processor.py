# data_processor.py
"""
FILE: data_processor.py
DESCRIPTION:
  Turns deCONZ websocket events into MQTT readings.
  - classify_event(): Works out which kind of sensor an event describes.
  - dispatch_event(): Pure function, event -> ordered list of Readings.
  - DataProcessor.handle_message(): Decodes a raw frame and publishes its readings.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum

import config
from utils import build_topic, format_value, is_present


class SensorCategory(str, Enum):
    CONFIG = "config"
    CLIMATE = "climate"
    MOTION = "motion"
    CONTACT = "contact"


@dataclass(frozen=True)
class Reading:
    topic: str
    value: str


# Per category: which sub-object the fields come from, then (field, topic path) in publish order.
CATEGORY_FIELDS = {
    SensorCategory.CONFIG: ("config", [
        ("battery", ("battery",)),
        ("reachable", ("reachable",)),
        ("temperature", ("temperature",)),
    ]),
    SensorCategory.CLIMATE: ("state", [
        ("temperature", ("climate", "temperature")),
        ("humidity", ("climate", "humidity")),
        ("pressure", ("climate", "pressure")),
    ]),
    SensorCategory.MOTION: ("state", [
        ("lux", ("lux",)),
        ("dark", ("dark",)),
        ("daylight", ("daylight",)),
        ("lightlevel", ("lightlevel",)),
        ("presence", ("presence",)),
    ]),
    SensorCategory.CONTACT: ("state", [
        ("open", ("contact",)),
    ]),
}

# Checked in this order. A payload can match several rules; the first one wins.
_STATE_RULES = [
    (("humidity", "temperature", "pressure"), SensorCategory.CLIMATE),
    (("lux",), SensorCategory.MOTION),
    (("presence",), SensorCategory.MOTION),
    (("open",), SensorCategory.CONTACT),
]


class MalformedEvent(ValueError):
    """Raised internally when an event is missing the structure we need to read it."""


def matching_categories(event: dict) -> list[SensorCategory]:
    """Every category the event satisfies, highest precedence first."""
    found = []
    if event.get("config") is not None:
        found.append(SensorCategory.CONFIG)

    state = event.get("state")
    for keys, category in _STATE_RULES:
        if category in found:
            continue
        if any(is_present(state, k) for k in keys):
            found.append(category)
    return found


def classify_event(event: dict) -> SensorCategory | None:
    categories = matching_categories(event)
    return categories[0] if categories else None


def _readings_for(event: dict, category: SensorCategory, topic_prefix: str) -> list[Reading]:
    source_key, fields = CATEGORY_FIELDS[category]
    source = event.get(source_key)
    if not isinstance(source, dict):
        raise MalformedEvent(f"'{source_key}' is not an object")

    readings = []
    for field, path in fields:
        if not is_present(source, field):
            continue
        readings.append(
            Reading(
                topic=build_topic(topic_prefix, *path, event["id"]),
                value=format_value(field, source[field]),
            )
        )
    return readings


def dispatch_event(event, topic_prefix: str, all_categories: bool = False) -> list[Reading]:
    """Return the readings to publish for one decoded event.

    Only 'changed' events produce readings. Malformed events are logged and
    yield nothing; they never raise.
    """
    if not event or not isinstance(event, dict):
        print(f"[EVENT] ERROR: Empty or non-object event, ignoring: {event!r}")
        return []

    kind = event.get("e")
    if kind is None:
        print("[EVENT] ERROR: Event has no 'e' field, ignoring.")
        return []
    if kind != "changed":
        return []

    categories = matching_categories(event)
    if not categories:
        return []
    if not all_categories:
        categories = categories[:1]

    if event.get("id") is None:
        print(f"[EVENT] ERROR: Changed event without sensor id, ignoring: {json.dumps(event, default=str)}")
        return []

    readings = []
    try:
        for category in categories:
            readings.extend(_readings_for(event, category, topic_prefix))
    except MalformedEvent as e:
        print(f"[EVENT] ERROR: Malformed event for sensor {event.get('id')}: {e}")
        return []
    return readings


class DataProcessor:
    def __init__(self, mqtt_handler):
        self.mqtt_handler = mqtt_handler

    def handle_message(self, raw):
        """
        Ingests one websocket frame.
        Decode failures are logged and dropped; the connection is left alone.
        """
        if not raw:
            print("[DECONZ] ERROR: Received empty message, bailing")
            return

        if config.VERBOSE_EVENTS:
            print(f"[DEBUG] Received: {raw}")

        try:
            event = json.loads(raw)
        except (TypeError, ValueError) as e:
            print(f"[DECONZ] ERROR: Could not decode message ({e}): {raw!r}")
            return

        readings = dispatch_event(
            event,
            config.TOPIC_PREFIX,
            all_categories=getattr(config, "PROCESS_ALL_CATEGORIES", False),
        )

        if readings and config.VERBOSE_EVENTS:
            category = classify_event(event)
            print(f"[DEBUG] {category.value.capitalize()}: {json.dumps(event, default=str)}")

        for reading in readings:
            self.mqtt_handler.publish(reading.topic, reading.value)
