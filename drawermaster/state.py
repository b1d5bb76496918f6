from pydantic import BaseModel, ConfigDict
from .enums import ConnectionState, KickCommand

class DrawerStatus(BaseModel):
    """Snapshot of the drawer line. Replaced as a whole, never mutated."""
    model_config = ConfigDict(frozen=True)

    connected: bool = False
    port: str | None = None
    baud_rate: int = 9600
    state: ConnectionState = ConnectionState.DISCONNECTED
    last_error: str | None = None

class UpdateStatus(BaseModel):
    checking: bool = False
    downloading: bool = False
    current_version: str = "0.0.0"

class DrawerPreferences(BaseModel):
    enabled: bool = False
    command_type: KickCommand = KickCommand.STANDARD
