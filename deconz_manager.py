# deconz_manager.py
"""
FILE: deconz_manager.py
DESCRIPTION:
  Owns the websocket connection to the deCONZ gateway.
  - Socket callbacks and the reconnect timer only post events onto a queue.
  - run() is the single consumer: it applies every event in order, so the
    connection state has exactly one writer and needs no lock.
  - Failed or closed connections are retried every RECONNECT_DELAY seconds, forever.
"""
from __future__ import annotations

import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import websocket

import config


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# Socket events carry the WebSocketApp that raised them, so late events from a
# replaced socket can be told apart from the current one. None means "current".
@dataclass(frozen=True)
class Opened:
    source: object = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class MessageReceived:
    data: str
    source: object = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Errored:
    error: object
    source: object = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Closed:
    status_code: Optional[int] = None
    reason: Optional[str] = None
    source: object = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ReconnectDue:
    pass


class DeconzConnection:
    def __init__(
        self,
        url: str,
        on_message: Callable[[str], None],
        on_healthy: Optional[Callable[[], None]] = None,
        on_unhealthy: Optional[Callable[[], None]] = None,
        reconnect_delay: Optional[float] = None,
    ):
        self.url = url
        self.on_message = on_message
        self.on_healthy = on_healthy
        self.on_unhealthy = on_unhealthy
        if reconnect_delay is None:
            reconnect_delay = getattr(config, "RECONNECT_DELAY", 30)
        self.reconnect_delay = reconnect_delay

        self.events: queue.Queue = queue.Queue()
        self._state = ConnectionState.DISCONNECTED
        self._ws = None
        self._reconnect_timer = None
        self._stop = threading.Event()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    # ------------------------------------------------------------------
    # Socket callbacks (websocket-client thread): post only, never mutate.
    # ------------------------------------------------------------------
    def _on_open(self, ws):
        self.events.put(Opened(source=ws))

    def _on_message(self, ws, message):
        self.events.put(MessageReceived(message, source=ws))

    def _on_error(self, ws, error):
        self.events.put(Errored(error, source=ws))

    def _on_close(self, ws, close_status_code=None, close_msg=None):
        self.events.put(Closed(close_status_code, close_msg, source=ws))

    # ------------------------------------------------------------------
    # State machine (consumer thread only)
    # ------------------------------------------------------------------
    def _is_stale(self, event) -> bool:
        source = getattr(event, "source", None)
        return source is not None and source is not self._ws

    def process_event(self, event):
        if self._is_stale(event):
            print(f"[DECONZ] Ignoring {type(event).__name__} from a replaced socket.")
            return

        if isinstance(event, MessageReceived):
            try:
                self.on_message(event.data)
            except Exception as e:
                print(f"[DECONZ] ERROR: Failed to handle message: {e}")

        elif isinstance(event, Opened):
            print(f"[DECONZ] Connected to deCONZ at {self.url}")
            self._state = ConnectionState.CONNECTED
            if self.on_healthy:
                self.on_healthy()

        elif isinstance(event, Errored):
            print(f"[DECONZ] Connection error: {event.error}")
            self._disconnected()

        elif isinstance(event, Closed):
            print(f"[DECONZ] Connection closed (code={event.status_code}, reason={event.reason})")
            self._disconnected()

        elif isinstance(event, ReconnectDue):
            self._reconnect_timer = None
            # A connection already succeeded or is in flight.
            if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
                return
            print("[DECONZ] Reconnecting...")
            self._connect()

    def _disconnected(self):
        self._state = ConnectionState.DISCONNECTED
        if self.on_unhealthy:
            self.on_unhealthy()
        self._schedule_reconnect()

    def _schedule_reconnect(self):
        if self._stop.is_set() or self._reconnect_timer is not None:
            return
        timer = threading.Timer(self.reconnect_delay, self.events.put, args=(ReconnectDue(),))
        timer.daemon = True
        self._reconnect_timer = timer
        timer.start()
        print(f"[DECONZ] Retrying in {self.reconnect_delay:g}s.")

    def _connect(self):
        self._state = ConnectionState.CONNECTING
        if self._ws is not None:
            self._ws.close()
        self._ws = websocket.WebSocketApp(
            self.url,
            on_open=self._on_open,
            on_message=self._on_message,
            on_error=self._on_error,
            on_close=self._on_close,
        )
        threading.Thread(target=self._ws.run_forever, daemon=True).start()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self):
        print(f"[STARTUP] Connecting to deCONZ at {self.url}...")
        self._connect()

    def run(self):
        """Consumer loop. Blocks until stop() is called."""
        while not self._stop.is_set():
            try:
                event = self.events.get(timeout=0.5)
            except queue.Empty:
                continue
            self.process_event(event)

    def stop(self):
        self._stop.set()
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None
        if self._ws is not None:
            self._ws.close()
        self._state = ConnectionState.DISCONNECTED
