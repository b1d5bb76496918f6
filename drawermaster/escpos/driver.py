"""
driver.py – serial line to the cash drawer.
* at most one open port per driver; connect() closes the previous one first
* a kick command counts as sent only after the drain (tcdrain) returns
* a monitor thread watches the line and drops to DISCONNECTED when the port goes away
"""

from __future__ import annotations
import threading
import logging
from typing import Callable, List, Optional, Tuple
import serial

from .config_ext import DriverCfg, get as get_config
from .commands import kick_bytes
from .ports import list_ports
from ..enums import ConnectionState, DrawerEvent, KickCommand
from ..errors import (
    DrawerConnectionError, NoPortsAvailable, NoPriorConnection, NotConnected, TransmitError,
)
from ..logging_config import get_logger, log_command_summary, log_hex_data
from ..state import DrawerStatus

_log = get_logger("escpos.driver")

PARITY = {
    "O": serial.PARITY_ODD,
    "E": serial.PARITY_EVEN,
    "N": serial.PARITY_NONE,
}

Listener = Callable[[str, dict], None]


class DrawerDriver:
    """
    Connection manager and command dispatcher for one cash drawer.

    All operations that touch the port run under ``self._lock``, including the
    line monitor, so bytes of two commands can never interleave on the wire.
    ``get_status()`` reads an immutable snapshot and never takes the lock.
    """

    def __init__(self, cfg: DriverCfg | None = None,
                 serial_factory: Callable[..., serial.Serial] = serial.Serial,
                 port_lister: Callable[[], list] = list_ports):
        self._cfg = cfg or get_config()
        self._serial_factory = serial_factory
        self._port_lister = port_lister
        self._lock = threading.RLock()
        self._ser: Optional[serial.Serial] = None
        self._monitor_stop: Optional[threading.Event] = None
        self._last_known: Optional[Tuple[str, int]] = None
        self._listeners: List[Listener] = []
        self._status = DrawerStatus(baud_rate=self._cfg.baud_rate)

    # ───── events ──────────────────────────────────────────────
    def add_listener(self, fn: Listener) -> None:
        self._listeners.append(fn)

    def remove_listener(self, fn: Listener) -> None:
        if fn in self._listeners:
            self._listeners.remove(fn)

    def _emit(self, event: DrawerEvent, **data) -> None:
        for fn in list(self._listeners):
            try:
                fn(event.value, data)
            except Exception:
                _log.exception("Drawer event listener failed on %s", event.value)

    # ───── status ──────────────────────────────────────────────
    def get_status(self) -> DrawerStatus:
        return self._status

    def is_connected(self) -> bool:
        return self._status.connected

    def _set_status(self, state: ConnectionState, port: str | None = None,
                    baud_rate: int | None = None, last_error: str | None = None) -> None:
        self._status = DrawerStatus(
            connected=state is ConnectionState.CONNECTED,
            port=port,
            baud_rate=baud_rate if baud_rate is not None else self._status.baud_rate,
            state=state,
            last_error=last_error,
        )

    # ───── ports ───────────────────────────────────────────────
    def list_ports(self):
        return self._port_lister()

    # ───── connection ──────────────────────────────────────────
    def connect(self, port: str, baud_rate: int | None = None) -> bool:
        """
        Open ``port`` with 8N1 framing. A port that is already open is closed first.
        Raises DrawerConnectionError if the OS refuses to open the port.
        """
        if baud_rate is None:
            baud_rate = self._cfg.baud_rate
        with self._lock:
            if self._ser is not None:
                _log.info("Closing %s before connecting to %s", self._status.port, port)
                self._close_locked()

            previous_baud = self._status.baud_rate
            _log.info("Connecting to %s at %d baud", port, baud_rate)
            self._set_status(ConnectionState.CONNECTING, port, baud_rate)
            try:
                ser = self._serial_factory(
                    port=port,
                    baudrate=baud_rate,
                    bytesize=self._cfg.bytesize,
                    parity=PARITY[self._cfg.parity],
                    stopbits=self._cfg.stopbits,
                    timeout=self._cfg.timeout,
                    write_timeout=self._cfg.write_timeout,
                )
            except Exception as e:
                # includes OverflowError from an out-of-range custom baud
                _log.error("Failed to open %s: %s", port, e)
                self._set_status(ConnectionState.DISCONNECTED, None, previous_baud, str(e))
                raise DrawerConnectionError(port, str(e)) from e

            self._ser = ser
            self._last_known = (port, baud_rate)
            self._set_status(ConnectionState.CONNECTED, port, baud_rate)
            self._start_monitor(ser)
            _log.info("Connected to %s successfully", port)
            self._emit(DrawerEvent.CONNECTED, port=port, baud_rate=baud_rate)
        return True

    def disconnect(self) -> None:
        """Close the port. Does nothing when already disconnected, never raises."""
        with self._lock:
            if self._ser is None:
                _log.debug("Disconnect requested while not connected")
                return
            self._close_locked()

    def reconnect(self) -> bool:
        with self._lock:
            if self._last_known is None:
                _log.warning("No previous port to reconnect to")
                raise NoPriorConnection()
            port, baud_rate = self._last_known
            _log.info("Reconnecting to %s at %d baud", port, baud_rate)
            return self.connect(port, baud_rate)

    def auto_connect(self) -> bool:
        """Single attempt on the first enumerated port, no fallback to the others."""
        ports = self._port_lister()
        if not ports:
            _log.warning("No serial ports found")
            raise NoPortsAvailable()
        _log.info("Auto-connecting to %s", ports[0].path)
        return self.connect(ports[0].path)

    def _close_locked(self) -> None:
        ser, port = self._ser, self._status.port
        self._ser = None
        self._stop_monitor()
        try:
            ser.close()
        except (serial.SerialException, OSError) as e:
            _log.warning("Error closing %s, handle discarded: %s", port, e)
        self._set_status(ConnectionState.DISCONNECTED)
        _log.info("Disconnected from %s", port)
        self._emit(DrawerEvent.DISCONNECTED, port=port)

    # ───── commands ────────────────────────────────────────────
    def send(self, cmd: KickCommand = KickCommand.STANDARD) -> bool:
        """
        Write the kick command and block until the bytes are drained.
        Raises NotConnected without touching the port, TransmitError on write/drain failure.
        A transmit failure leaves the connection state as it was.
        """
        cmd = KickCommand(cmd)
        payload = kick_bytes(cmd)
        with self._lock:
            ser = self._ser
            if ser is None or self._status.state is not ConnectionState.CONNECTED:
                _log.warning("Not connected. Cannot send %s kick command", cmd.value)
                raise NotConnected()

            port = self._status.port
            log_command_summary(_log, "TX", port, f"KICK_{cmd.value}", f"{len(payload)} bytes")
            log_hex_data(_log, logging.DEBUG, f"SENDING to {port}", payload)
            try:
                written = ser.write(payload)
                if written is not None and written != len(payload):
                    raise TransmitError(
                        f"Short write to {port}: {written} of {len(payload)} bytes")
                ser.flush()     # tcdrain
            except (serial.SerialException, OSError) as e:
                _log.error("Error sending %s kick command to %s: %s", cmd.value, port, e)
                raise TransmitError(f"Failed to send {cmd.value} kick command to {port}: {e}") from e

            _log.info("Drawer opened with %s command", cmd.value)
            self._emit(DrawerEvent.DRAWER_OPENED, port=port, command=cmd.value)
        return True

    def test_drawer(self) -> bool:
        if not self.is_connected():
            _log.warning("Not connected. Cannot test drawer.")
            raise NotConnected()
        _log.info("Testing drawer...")
        return self.send(KickCommand.STANDARD)

    # ───── line monitor ────────────────────────────────────────
    def check_line(self) -> bool:
        """Probe the open port once; a dead line is dropped to DISCONNECTED."""
        with self._lock:
            if self._ser is None:
                return False
            return self._check_locked(self._ser)

    def _check_locked(self, ser: serial.Serial) -> bool:
        try:
            if not ser.is_open:
                raise serial.SerialException("port closed")
            _ = ser.in_waiting
        except (serial.SerialException, OSError) as e:
            self._fault_locked(ser, str(e) or e.__class__.__name__)
            return False
        return True

    def _fault_locked(self, ser: serial.Serial, reason: str) -> None:
        port = self._status.port
        _log.error("Serial line fault on %s: %s", port, reason)
        self._ser = None
        self._stop_monitor()
        try:
            ser.close()
        except (serial.SerialException, OSError) as e:
            _log.debug("Close after fault on %s failed: %s", port, e)
        self._set_status(ConnectionState.DISCONNECTED, last_error=reason)
        self._emit(DrawerEvent.FAULT, port=port, reason=reason)

    def _start_monitor(self, ser: serial.Serial) -> None:
        stop = threading.Event()
        self._monitor_stop = stop
        threading.Thread(
            target=self._monitor_loop, args=(ser, stop),
            name="drawer-line-monitor", daemon=True,
        ).start()

    def _stop_monitor(self) -> None:
        if self._monitor_stop is not None:
            self._monitor_stop.set()
            self._monitor_stop = None

    def _monitor_loop(self, ser: serial.Serial, stop: threading.Event) -> None:
        while not stop.wait(self._cfg.monitor_interval):
            with self._lock:
                if stop.is_set() or self._ser is not ser:
                    return
                if not self._check_locked(ser):
                    return
