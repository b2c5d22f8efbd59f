# mqtt_handler.py
"""
FILE: mqtt_handler.py
DESCRIPTION:
  Manages the connection to the MQTT Broker.
  - publish(): Fire-and-forget sensor publish with the configured retain flag.
  - healthy_event() / unhealthy_event(): Bridge health, mirrored to a retained
    availability topic so it survives broker reconnects.
"""
import sys
import threading

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

import config
from utils import build_topic


class BridgeMQTT:
    def __init__(self, version="Unknown"):
        self.sw_version = version
        self.client = mqtt.Client(callback_api_version=CallbackAPIVersion.VERSION2)
        self.TOPIC_AVAILABILITY = build_topic(config.TOPIC_PREFIX, "bridge", "availability")

        if config.MQTT_SETTINGS.get("user"):
            self.client.username_pw_set(config.MQTT_SETTINGS["user"], config.MQTT_SETTINGS["pass"])
        self.client.will_set(self.TOPIC_AVAILABILITY, "offline", retain=True)

        # Callbacks
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        self._health_lock = threading.Lock()
        self.healthy = False

    def _on_connect(self, c, u, f, rc, p=None):
        if rc == 0:
            print("[MQTT] Connected Successfully.")
            # Re-send whatever health we last knew; the broker may have fired our will.
            self._publish_health()
        else:
            print(f"[MQTT] Connection Failed! Code: {rc}")

    def _on_disconnect(self, c, u, flags, rc, p=None):
        if rc != 0:
            print(f"[MQTT] Disconnected unexpectedly (code {rc}); paho will reconnect.")
        else:
            print("[MQTT] Disconnected.")

    def _publish_health(self):
        with self._health_lock:
            payload = "online" if self.healthy else "offline"
        self.client.publish(self.TOPIC_AVAILABILITY, payload, retain=True)

    def healthy_event(self):
        with self._health_lock:
            changed = not self.healthy
            self.healthy = True
        if changed:
            print("[MQTT] Bridge healthy.")
        self._publish_health()

    def unhealthy_event(self):
        with self._health_lock:
            changed = self.healthy
            self.healthy = False
        if changed:
            print("[MQTT] WARNING: Bridge unhealthy.")
        self._publish_health()

    def publish(self, topic, value):
        """Publishes one reading. No ack is awaited and failures are not retried."""
        self.client.publish(topic, str(value), retain=bool(config.MQTT_RETAIN))
        if config.VERBOSE_EVENTS:
            print(f" -> TX [{topic}]: {value}")

    def start(self):
        print(f"[STARTUP] Connecting to MQTT Broker at {config.MQTT_SETTINGS['host']}:{config.MQTT_SETTINGS['port']}...")
        try:
            self.client.connect(config.MQTT_SETTINGS["host"], config.MQTT_SETTINGS["port"])
            self.client.loop_start()
        except Exception as e:
            print(f"[CRITICAL] MQTT Connect Failed: {e}")
            sys.exit(1)

    def stop(self):
        self.client.publish(self.TOPIC_AVAILABILITY, "offline", retain=True)
        self.client.loop_stop()
        self.client.disconnect()
