# utils.py
"""
FILE: utils.py
DESCRIPTION:
  Shared helper functions used across the project.
  - is_present(): deCONZ presence test (key exists and is not null).
  - format_value(): Converts a raw sensor value into the string we publish.
  - build_topic(): Joins the topic prefix, path segments and sensor id.
  - deconz_ws_url(): Builds the websocket URL from host/port settings.
"""

# deCONZ reports these as integers scaled by 100 (2150 -> 21.50).
SCALED_BY_100_FIELDS = {"temperature", "humidity"}


def is_present(mapping, key):
    """True if `key` exists in `mapping` and is not None. 0 and False count as present."""
    if not isinstance(mapping, dict):
        return False
    return mapping.get(key) is not None


def format_value(key, value):
    """Return the canonical string form of a raw field value.

    Never raises; anything odd falls back to str().
    """
    if value is None:
        return "0"
    # bool before the numeric checks: True is an int in Python.
    if isinstance(value, bool):
        return "1" if value else "0"

    if key in SCALED_BY_100_FIELDS:
        try:
            return f"{float(value) / 100.0:.2f}"
        except (TypeError, ValueError):
            pass

    # Avoid publishing floats for integer-like readings.
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_topic(prefix, *segments):
    parts = [str(prefix).rstrip("/")]
    parts.extend(str(s) for s in segments)
    return "/".join(parts)


def deconz_ws_url(host, port):
    return f"ws://{host}:{port}"
