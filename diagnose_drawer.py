#!/usr/bin/env python3
"""
Cash drawer diagnostic tool.

    python diagnose_drawer.py                      # list ports
    python diagnose_drawer.py /dev/ttyUSB0         # probe-open a port
    python diagnose_drawer.py /dev/ttyUSB0 --kick EPSON --baud 19200
"""

import argparse
import sys

from drawermaster.enums import KickCommand
from drawermaster.errors import DrawerError
from drawermaster.escpos.commands import kick_bytes
from drawermaster.escpos.driver import DrawerDriver
from drawermaster.escpos.ports import list_ports
from drawermaster.logging_config import setup_logging


def print_ports():
    """List all available serial ports"""
    ports = list_ports()
    if not ports:
        print("❌ No serial ports found")
        return
    print("Available serial ports:")
    for port in ports:
        print(f"  {port.path}")
        if port.manufacturer:
            print(f"    Manufacturer: {port.manufacturer}")


def probe_port(driver: DrawerDriver, port: str, baud_rate: int, kick: KickCommand | None) -> bool:
    print(f"Testing port {port} at {baud_rate} baud (8N1)...")
    try:
        driver.connect(port, baud_rate)
        print(f"✅ Successfully opened {port}")
        if kick is not None:
            print(f"Sending {kick.value} kick command: {kick_bytes(kick).hex(' ').upper()}")
            driver.send(kick)
            print("✅ Command drained. Did the drawer open?")
        return True
    except DrawerError as e:
        print(f"❌ {e.code}: {e.message}")
        return False
    finally:
        driver.disconnect()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Cash drawer serial diagnostic")
    parser.add_argument("port", nargs="?", help="serial port to probe")
    parser.add_argument("--baud", type=int, default=9600)
    parser.add_argument("--kick", choices=[c.value for c in KickCommand],
                        help="send a kick command after opening the port")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else "WARNING", log_to_file=False)
    print("🔧 Cash Drawer Diagnostic Tool\n")
    print_ports()

    if not args.port:
        return 0
    print()
    kick = KickCommand(args.kick) if args.kick else None
    return 0 if probe_port(DrawerDriver(), args.port, args.baud, kick) else 1


if __name__ == "__main__":
    sys.exit(main())
