from enum import Enum

class KickCommand(str, Enum):
    STANDARD    = "STANDARD"       # ESC p 0 25 25, pin 2
    ALTERNATIVE = "ALTERNATIVE"    # ESC p 1 25 25, pin 5
    EPSON       = "EPSON"          # ESC p 0 50 250
    STAR        = "STAR"           # Star Micronics BEL

class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING   = "connecting"
    CONNECTED    = "connected"

class DrawerEvent(str, Enum):
    CONNECTED     = "connected"
    DISCONNECTED  = "disconnected"
    FAULT         = "fault"
    DRAWER_OPENED = "drawer-opened"

class UpdateEvent(str, Enum):
    CHECKING         = "checking"
    AVAILABLE        = "available"
    NOT_AVAILABLE    = "not-available"
    ERROR            = "error"
    DOWNLOAD_STARTED = "download-started"
    PROGRESS         = "progress"
    DOWNLOADED       = "downloaded"
