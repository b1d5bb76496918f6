import threading

import pytest
import serial

from drawermaster.config import Settings
from drawermaster.escpos.config_ext import DriverCfg
from drawermaster.escpos.driver import DrawerDriver
from drawermaster.models import PortInfo


class FakeSerial:
    """Stand-in for serial.Serial that records traffic instead of touching hardware."""

    def __init__(self, registry, **kwargs):
        self.registry = registry
        self.kwargs = kwargs
        self.port = kwargs.get("port")
        self.baudrate = kwargs.get("baudrate")
        self.written = []
        self.is_open = True
        self.flushed = 0
        registry.opened.append(self)

    @property
    def in_waiting(self):
        if self.registry.line_error:
            raise serial.SerialException("device reports readiness to read but returned no data")
        return 0

    def write(self, data):
        if self.registry.write_error is not None:
            raise self.registry.write_error
        self.written.append(bytes(data))
        return len(data)

    def flush(self):
        if self.registry.flush_error is not None:
            raise self.registry.flush_error
        self.flushed += 1

    def close(self):
        self.is_open = False
        self.registry.close_calls += 1
        if self.registry.close_error is not None:
            raise self.registry.close_error


class SerialRegistry:
    """Factory for FakeSerial plus knobs to make the next operation fail."""

    def __init__(self):
        self.opened = []
        self.open_error = None
        self.write_error = None
        self.flush_error = None
        self.close_error = None
        self.line_error = False
        self.close_calls = 0
        self.max_open = 0
        self._lock = threading.Lock()

    def __call__(self, **kwargs):
        if self.open_error is not None:
            raise self.open_error
        with self._lock:
            ser = FakeSerial(self, **kwargs)
            self.max_open = max(self.max_open, self.open_count)
        return ser

    @property
    def open_count(self):
        return sum(1 for s in self.opened if s.is_open)

    @property
    def last(self):
        return self.opened[-1]


class FakeLister:
    def __init__(self, ports=None):
        self.ports = list(ports or [])
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return list(self.ports)


@pytest.fixture
def registry():
    return SerialRegistry()


@pytest.fixture
def lister():
    return FakeLister([PortInfo(path="/dev/ttyUSB0", manufacturer="FTDI")])


@pytest.fixture
def driver_cfg():
    # long monitor interval so the background thread stays out of the way
    return DriverCfg(monitor_interval=60.0)


@pytest.fixture
def driver(registry, lister, driver_cfg):
    drv = DrawerDriver(driver_cfg, serial_factory=registry, port_lister=lister)
    yield drv
    drv.disconnect()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        configure_logging=False,
        log_to_file=False,
        update_check_interval=0,
        download_dir=tmp_path / "updates",
        preferences_path=tmp_path / "preferences.json",
        update_feed_url="https://updates.example.test/latest.json",
    )
