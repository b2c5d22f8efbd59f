# tests/test_main.py
import builtins
import importlib
import sys
import pytest


_ORIG_PRINT = builtins.print


def import_main_safely():
    """
    main.py patches builtins.print at import time.
    For unit tests, we import it, then immediately restore builtins.print so it
    doesn't affect other test modules.
    """
    sys.modules.pop("main", None)
    builtins.print = _ORIG_PRINT
    m = importlib.import_module("main")

    # Undo the import-time print hook side effect
    builtins.print = _ORIG_PRINT
    if hasattr(m, "_original_print"):
        m._original_print = _ORIG_PRINT
    return m


class DummyMQTT:
    instances = []

    def __init__(self, version=None):
        self.version = version
        self.started = False
        self.stopped = False
        DummyMQTT.instances.append(self)
    def start(self): self.started = True
    def stop(self): self.stopped = True
    def healthy_event(self): pass
    def unhealthy_event(self): pass
    def publish(self, topic, value): pass


class DummyConnection:
    instances = []

    def __init__(self, url, on_message=None, on_healthy=None, on_unhealthy=None, reconnect_delay=None):
        self.url = url
        self.on_message = on_message
        self.on_healthy = on_healthy
        self.on_unhealthy = on_unhealthy
        self.reconnect_delay = reconnect_delay
        self.started = False
        self.stopped = False
        DummyConnection.instances.append(self)
    def start(self): self.started = True
    def run(self): return
    def stop(self): self.stopped = True


class DummyThread:
    def __init__(self, target=None, args=(), daemon=None):
        self.target = target
        self.daemon = daemon
    def start(self): return


def test_check_dependencies_missing_paho_exits(mocker):
    main = import_main_safely()
    mocker.patch("importlib.util.find_spec", return_value=None)

    with pytest.raises(SystemExit):
        main.check_dependencies()


def test_check_dependencies_missing_websocket_exits(mocker):
    main = import_main_safely()
    mocker.patch("importlib.util.find_spec", side_effect=lambda name: None if name == "websocket" else object())

    with pytest.raises(SystemExit):
        main.check_dependencies()


def test_importing_main_without_websocket_exits_cleanly(monkeypatch, capsys):
    # A None entry makes both find_spec and import report the module as missing.
    monkeypatch.setitem(sys.modules, "websocket", None)
    monkeypatch.delitem(sys.modules, "main", raising=False)
    monkeypatch.delitem(sys.modules, "deconz_manager", raising=False)
    builtins.print = _ORIG_PRINT

    try:
        with pytest.raises(SystemExit) as exc:
            importlib.import_module("main")
    finally:
        builtins.print = _ORIG_PRINT
        sys.modules.pop("main", None)

    assert exc.value.code == 1
    assert "websocket-client" in capsys.readouterr().out


def test_main_refuses_to_start_without_topic_prefix(mocker, capsys):
    main = import_main_safely()
    mocker.patch.object(main.config, "TOPIC_PREFIX", None)
    DummyMQTT.instances = []
    mocker.patch.object(main, "BridgeMQTT", DummyMQTT)

    with pytest.raises(SystemExit) as exc:
        main.main()

    assert exc.value.code == 1
    assert DummyMQTT.instances == []
    assert "TOPIC_PREFIX not set" in capsys.readouterr().out


def test_get_version_unknown_when_not_installed(mocker):
    main = import_main_safely()
    mocker.patch.object(
        main.importlib.metadata, "version",
        side_effect=main.importlib.metadata.PackageNotFoundError("deconz-mqtt-bridge"),
    )
    assert main.get_version() == "Unknown"


def test_main_smoke_run_wires_and_shuts_down(mocker):
    main = import_main_safely()

    mocker.patch.object(main, "show_logo", lambda *_: None)
    mocker.patch.object(main, "get_version", return_value="vtest")

    DummyMQTT.instances = []
    DummyConnection.instances = []
    mocker.patch.object(main, "BridgeMQTT", DummyMQTT)
    mocker.patch.object(main, "DeconzConnection", DummyConnection)
    mocker.patch.object(main.threading, "Thread", DummyThread)

    mocker.patch.object(main.config, "TOPIC_PREFIX", "home")
    mocker.patch.object(main.config, "DECONZ_SETTINGS", {"host": "10.0.0.2", "port": 8088})
    mocker.patch.object(main.config, "RECONNECT_DELAY", 30)

    # Break the infinite loop in main
    calls = {"n": 0}
    def fake_sleep(_):
        calls["n"] += 1
        if calls["n"] >= 2:
            raise KeyboardInterrupt()

    mocker.patch.object(main.time, "sleep", side_effect=fake_sleep)

    main.main()

    mqtt = DummyMQTT.instances[0]
    conn = DummyConnection.instances[0]
    assert mqtt.version == "vtest"
    assert mqtt.started and mqtt.stopped
    assert conn.url == "ws://10.0.0.2:8088"
    assert conn.started and conn.stopped
    assert conn.reconnect_delay == 30
    assert conn.on_healthy == mqtt.healthy_event
    assert conn.on_unhealthy == mqtt.unhealthy_event
    assert conn.on_message.__self__.mqtt_handler is mqtt
