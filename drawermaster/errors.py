"""
Exceptions raised by the drawer core.

Every error carries a machine-readable ``code`` and an HTTP ``status_code``
so the API layer can render a specific message instead of a generic failure.
"""


class DrawerError(Exception):
    code = "drawer_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.code, "message": self.message}


class DrawerConnectionError(DrawerError):
    """Opening the serial port failed: bad path, permission, busy device."""
    code = "connection_error"
    status_code = 502

    def __init__(self, port: str, reason: str):
        super().__init__(f"Failed to open {port}: {reason}")
        self.port = port
        self.reason = reason


class NotConnected(DrawerError):
    code = "not_connected"
    status_code = 409

    def __init__(self, message: str = "Cash drawer is not connected"):
        super().__init__(message)


class TransmitError(DrawerError):
    """Write or drain failed on an open handle."""
    code = "transmit_error"
    status_code = 502


class NoPortsAvailable(DrawerError):
    code = "no_ports_available"
    status_code = 404

    def __init__(self, message: str = "No serial ports found"):
        super().__init__(message)


class NoPriorConnection(DrawerError):
    code = "no_prior_connection"
    status_code = 409

    def __init__(self, message: str = "No previous port to reconnect to"):
        super().__init__(message)


class UpdateError(DrawerError):
    code = "update_error"
    status_code = 502
