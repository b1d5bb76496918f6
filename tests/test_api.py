import pytest
import serial
from fastapi.testclient import TestClient

from drawermaster.api import create_app
from drawermaster.drawermaster import DrawerMaster
from drawermaster.updater import AutoUpdateService

from .fakes_http import FakeResponse, FakeSession


@pytest.fixture
def feed(settings):
    return FakeSession({settings.update_feed_url: FakeResponse(
        {"version": "1.1.0", "url": "https://updates.example.test/DrawerMaster-1.1.0.exe"})})


@pytest.fixture
def client(settings, driver, feed):
    updater = AutoUpdateService(settings, session=feed, current_version="1.0.0")
    app = create_app(settings, master=DrawerMaster(driver), updater=updater)
    with TestClient(app) as c:
        yield c


def test_status_starts_disconnected(client):
    r = client.get("/cash-drawer/status")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "status": {
        "connected": False, "port": None, "baud_rate": 9600,
        "state": "disconnected", "last_error": None}}


def test_list_ports(client):
    r = client.get("/cash-drawer/ports")
    assert r.json() == {"ok": True, "ports": [{"path": "/dev/ttyUSB0", "manufacturer": "FTDI"}]}


def test_connect_open_and_status(client, registry):
    r = client.post("/cash-drawer/connect", json={"port": "COM3", "baud_rate": 19200})
    assert r.status_code == 200
    assert r.json()["connected"] is True

    r = client.post("/cash-drawer/open")
    assert r.status_code == 200
    assert r.json()["opened"] is True
    assert registry.last.written == [bytes.fromhex("1B 70 00 19 19")]

    status = client.get("/cash-drawer/status").json()["status"]
    assert (status["connected"], status["port"], status["baud_rate"]) == (True, "COM3", 19200)


def test_open_with_vendor_command(client, registry):
    client.post("/cash-drawer/connect", json={"port": "COM3"})
    r = client.post("/cash-drawer/open", json={"command": "STAR"})
    assert r.status_code == 200
    assert registry.last.written == [b"\x1b\x07"]


def test_open_unknown_command_is_rejected(client):
    r = client.post("/cash-drawer/open", json={"command": "PIN9"})
    assert r.status_code == 422


def test_open_when_disconnected(client, registry):
    r = client.post("/cash-drawer/open")
    assert r.status_code == 409
    assert r.json()["ok"] is False
    assert r.json()["error"] == "not_connected"
    assert registry.opened == []


def test_connect_failure_is_specific(client, registry):
    registry.open_error = serial.SerialException("[Errno 2] could not open port COM9")
    r = client.post("/cash-drawer/connect", json={"port": "COM9"})
    assert r.status_code == 502
    body = r.json()
    assert body["error"] == "connection_error"
    assert "COM9" in body["message"]
    assert client.get("/cash-drawer/status").json()["status"]["connected"] is False


def test_connect_rejects_out_of_range_baud(client, registry):
    r = client.post("/cash-drawer/connect", json={"port": "COM3", "baud_rate": 5_000_000})
    assert r.status_code == 422
    assert registry.opened == []
    assert client.get("/cash-drawer/status").json()["status"]["state"] == "disconnected"


def test_test_drawer_drain_failure(client, registry):
    client.post("/cash-drawer/connect", json={"port": "COM3"})
    registry.flush_error = serial.SerialException("tcdrain failed")
    r = client.post("/cash-drawer/test")
    assert r.status_code == 502
    assert r.json()["error"] == "transmit_error"


def test_auto_connect(client):
    r = client.post("/cash-drawer/auto-connect")
    assert r.status_code == 200
    assert r.json()["connected"] is True
    assert client.get("/cash-drawer/status").json()["status"]["port"] == "/dev/ttyUSB0"


def test_auto_connect_without_ports(client, lister, registry):
    lister.ports = []
    r = client.post("/cash-drawer/auto-connect")
    assert r.status_code == 404
    assert r.json()["error"] == "no_ports_available"
    assert registry.opened == []


def test_reconnect(client, registry):
    r = client.post("/cash-drawer/reconnect")
    assert r.status_code == 409
    assert r.json()["error"] == "no_prior_connection"

    client.post("/cash-drawer/connect", json={"port": "COM3", "baud_rate": 19200})
    client.post("/cash-drawer/disconnect")
    r = client.post("/cash-drawer/reconnect")
    assert r.status_code == 200
    assert (registry.last.kwargs["port"], registry.last.kwargs["baudrate"]) == ("COM3", 19200)


def test_disconnect_is_idempotent(client):
    assert client.post("/cash-drawer/disconnect").json()["ok"] is True
    assert client.post("/cash-drawer/disconnect").json()["ok"] is True


def test_preferences_roundtrip(client, settings):
    assert client.get("/cash-drawer/preferences").json()["preferences"] == {
        "enabled": False, "command_type": "STANDARD"}
    r = client.put("/cash-drawer/preferences", json={"enabled": True, "command_type": "EPSON"})
    assert r.status_code == 200
    assert settings.preferences_path.exists()
    assert client.get("/cash-drawer/preferences").json()["preferences"]["command_type"] == "EPSON"


def test_update_endpoints(client):
    assert client.get("/auto-update/version").json() == {"ok": True, "version": "1.0.0"}
    r = client.post("/auto-update/check")
    assert r.json()["available"] is True
    assert r.json()["release"]["version"] == "1.1.0"
    assert client.get("/auto-update/status").json()["status"] == {
        "checking": False, "downloading": False, "current_version": "1.0.0"}


def test_install_without_download_is_an_update_error(client):
    r = client.post("/auto-update/install")
    assert r.status_code == 502
    assert r.json()["error"] == "update_error"


def test_shutdown_closes_port(settings, driver, feed, registry):
    updater = AutoUpdateService(settings, session=feed, current_version="1.0.0")
    app = create_app(settings, master=DrawerMaster(driver), updater=updater)
    with TestClient(app) as c:
        c.post("/cash-drawer/connect", json={"port": "COM3"})
        assert registry.open_count == 1
    assert registry.open_count == 0
    assert driver.get_status().connected is False


def test_startup_auto_connect(settings, driver, feed, registry):
    settings = settings.model_copy(update={"auto_connect": True})
    updater = AutoUpdateService(settings, session=feed, current_version="1.0.0")
    app = create_app(settings, master=DrawerMaster(driver), updater=updater)
    with TestClient(app) as c:
        assert c.get("/cash-drawer/status").json()["status"]["port"] == "/dev/ttyUSB0"


def test_startup_auto_connect_failure_does_not_block_startup(settings, driver, feed, lister):
    lister.ports = []
    settings = settings.model_copy(update={"auto_connect": True})
    updater = AutoUpdateService(settings, session=feed, current_version="1.0.0")
    app = create_app(settings, master=DrawerMaster(driver), updater=updater)
    with TestClient(app) as c:
        assert c.get("/cash-drawer/status").json()["status"]["connected"] is False
