"""
ports.py – serial port enumeration.
Each call re-queries the host; an enumeration failure degrades to an empty list.
"""

from __future__ import annotations
from typing import Callable, Iterable, List

from serial.tools.list_ports import comports

from ..logging_config import get_logger
from ..models import PortInfo

_log = get_logger("escpos.driver")


def list_ports(lister: Callable[[], Iterable] = comports) -> List[PortInfo]:
    """Snapshot of the serial ports visible to the host, in platform order."""
    try:
        found = list(lister())
    except Exception as e:
        _log.error("Error listing serial ports: %s", e)
        return []

    ports = [
        PortInfo(path=p.device, manufacturer=getattr(p, "manufacturer", None))
        for p in found
    ]
    _log.debug("Found %d serial port(s): %s", len(ports), [p.path for p in ports])
    return ports
