#!/usr/bin/env python3
"""
FILE: main.py
DESCRIPTION:
  The main executable script.
  - Installs the timestamped/colored print hook used for all logging.
  - Exits before importing the bridge modules if paho-mqtt or websocket-client is missing.
  - Refuses to start without TOPIC_PREFIX.
  - Wires deCONZ websocket -> DataProcessor -> MQTT and keeps the process alive.
"""
import os
import sys
import re

# --- 0. FORCE COLOR ENVIRONMENT ---
os.environ.setdefault("TERM", "xterm-256color")
os.environ.setdefault("CLICOLOR_FORCE", "1")

import builtins
from datetime import datetime
import threading
import time
import importlib.util
import importlib.metadata

# --- 1. GLOBAL LOGGING & COLOR SETUP ---
c_cyan    = "\033[1;36m"   # Bold Cyan (Sensor IDs / JSON Keys)
c_magenta = "\033[1;35m"   # Bold Magenta (System Tags / DEBUG Header)
c_blue    = "\033[1;34m"   # Bold Blue (Logo)
c_green   = "\033[1;32m"   # Bold Green (DATA Header / INFO)
c_yellow  = "\033[1;33m"   # Bold Yellow (WARN Only)
c_red     = "\033[1;31m"   # Bold Red (ERROR)
c_white   = "\033[1;37m"   # Bold White (Values / Brackets / Colons)
c_dim     = "\033[37m"     # Standard White (Timestamp)
c_reset   = "\033[0m"

_original_print = builtins.print

def get_source_color(clean_text):
    clean = clean_text.lower()
    if "mqtt" in clean: return c_magenta
    if "deconz" in clean: return c_magenta
    if "startup" in clean: return c_magenta
    if "shutdown" in clean: return c_magenta
    if "event" in clean: return c_yellow
    return c_cyan

def highlight_json(text):
    text = re.sub(r'("[^"]+")\s*:', f'{c_cyan}\\1{c_reset}{c_white}:{c_reset}', text)
    text = re.sub(r':\s*("[^"]+")', f': {c_white}\\1{c_reset}', text)
    text = re.sub(r':\s*(-?\d+\.?\d*)', f': {c_white}\\1{c_reset}', text)
    text = re.sub(r':\s*(true|false|null)', f': {c_white}\\1{c_reset}', text)
    return text

def timestamped_print(*args, **kwargs):
    now = datetime.now().strftime("%H:%M:%S")
    time_prefix = f"{c_dim}[{now}]{c_reset}"
    msg = " ".join(map(str, args))
    lower_msg = msg.lower()

    header = f"{c_green}INFO{c_reset}{c_white}:{c_reset}"
    special_formatting_applied = False

    if any(x in lower_msg for x in ["error", "critical", "failed"]):
        header = f"{c_red}ERROR{c_reset}{c_white}:{c_reset}"
        msg = msg.replace("CRITICAL:", "").replace("ERROR:", "").strip()
    elif "warning" in lower_msg:
        header = f"{c_yellow}WARN{c_reset}{c_white}:{c_reset}"
        msg = msg.replace("WARNING:", "").strip()
    elif "debug" in lower_msg:
        header = f"{c_magenta}DEBUG{c_reset}{c_white}:{c_reset}"
        msg = msg.replace("[DEBUG]", "").replace("[debug]", "").strip()
        if "{" in msg and "}" in msg: msg = highlight_json(msg)
    elif "-> tx" in lower_msg:
        header = f"{c_green}DATA{c_reset}{c_white}:{c_reset}"
        msg = msg.replace("-> TX", "").strip()
        match = re.match(r".*?\[(.*?)(?:\])?:\s+(.*)", msg)
        if match:
            src_text = match.group(1).replace("]", "")
            val = match.group(2)
            msg = f"{c_white}[{c_reset}{c_cyan}{src_text}{c_reset}{c_white}]:{c_reset} {c_white}{val}{c_reset}"
            special_formatting_applied = True

    if not special_formatting_applied:
        match = re.match(r"^\[(.*?)\]\s*(.*)", msg)
        if match:
            src_text = match.group(1)
            rest_of_msg = match.group(2).strip()
            s_color = get_source_color(src_text)
            msg = f"{c_white}[{c_reset}{s_color}{src_text}{c_reset}{c_white}]:{c_reset} {rest_of_msg}"

    kwargs.setdefault("flush", True)
    _original_print(f"{time_prefix} {header} {msg}", **kwargs)

builtins.print = timestamped_print

def check_dependencies():
    if importlib.util.find_spec("paho") is None:
        print("CRITICAL: Python dependency 'paho-mqtt' not found.")
        sys.exit(1)
    if importlib.util.find_spec("websocket") is None:
        print("CRITICAL: Python dependency 'websocket-client' not found.")
        sys.exit(1)


# mqtt_handler and deconz_manager import paho and websocket at module level.
check_dependencies()

import config
from mqtt_handler import BridgeMQTT
from data_processor import DataProcessor
from deconz_manager import DeconzConnection
from utils import deconz_ws_url

def get_version():
    """Return display version for logs, from the installed package metadata."""
    try:
        return f"v{importlib.metadata.version('deconz-mqtt-bridge')}"
    except importlib.metadata.PackageNotFoundError:
        return "Unknown"


def show_logo(version):
    logo_lines = [
        r"       _        ____ ___  _   _ _____",
        r"    __| | ___  / ___/ _ \| \ | |__  /",
        r"   / _` |/ _ \| |  | | | |  \| | / / ",
        r"  | (_| |  __/| |__| |_| | |\  |/ /_ ",
        r"   \__,_|\___| \____\___/|_| \_/____|",
    ]
    for line in logo_lines: sys.stdout.write(f"{c_blue}{line}{c_reset}\n")
    sys.stdout.write(f"\n{c_cyan}>>> deCONZ to MQTT Bridge ({c_reset}{c_yellow}{version}{c_reset}{c_cyan}) <<<{c_reset}\n\n\n")
    sys.stdout.flush()

def main():
    if not config.TOPIC_PREFIX:
        print("CRITICAL: TOPIC_PREFIX not set, not starting")
        sys.exit(1)

    ver = get_version()
    show_logo(ver)

    print(f"[STARTUP] Topic prefix: {config.TOPIC_PREFIX} (retain={config.MQTT_RETAIN})")
    if getattr(config, "PROCESS_ALL_CATEGORIES", False):
        print("[STARTUP] Processing every matching sensor category per event.")

    mqtt_handler = BridgeMQTT(version=ver)
    mqtt_handler.start()

    processor = DataProcessor(mqtt_handler)

    url = deconz_ws_url(config.DECONZ_SETTINGS["host"], config.DECONZ_SETTINGS["port"])
    connection = DeconzConnection(
        url,
        on_message=processor.handle_message,
        on_healthy=mqtt_handler.healthy_event,
        on_unhealthy=mqtt_handler.unhealthy_event,
        reconnect_delay=config.RECONNECT_DELAY,
    )
    connection.start()
    threading.Thread(target=connection.run, daemon=True).start()

    try:
        while True: time.sleep(1)
    except KeyboardInterrupt:
        print("\n[SHUTDOWN] Closing deCONZ connection...")
        connection.stop()
        print("[SHUTDOWN] Stopping MQTT...")
        mqtt_handler.stop()

if __name__ == "__main__":
    main()
