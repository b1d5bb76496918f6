"""
ESC/POS drawer kick commands.

ESC p m t1 t2: pulse connector pin ``m`` (0 = pin 2, 1 = pin 5) for
t1 × 2 ms on, t2 × 2 ms off. Star printers use a bare 2-byte pulse.
The byte values are what the drawers are known to accept; do not tune them.
"""

from types import MappingProxyType
from typing import Mapping

from ..enums import KickCommand

ESC = 0x1B

KICK_COMMANDS: Mapping[KickCommand, bytes] = MappingProxyType({
    KickCommand.STANDARD:    bytes([ESC, 0x70, 0x00, 0x19, 0x19]),
    KickCommand.ALTERNATIVE: bytes([ESC, 0x70, 0x01, 0x19, 0x19]),
    KickCommand.EPSON:       bytes([ESC, 0x70, 0x00, 0x32, 0xFA]),
    KickCommand.STAR:        bytes([ESC, 0x07]),
})


def kick_bytes(cmd: KickCommand) -> bytes:
    return KICK_COMMANDS[KickCommand(cmd)]
