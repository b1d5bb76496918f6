from pydantic import BaseModel, Field, conint
from typing import Any, Optional
from .enums import KickCommand


class PortInfo(BaseModel):
    path: str
    manufacturer: Optional[str] = None


class ConnectRq(BaseModel):
    port: str = Field(..., examples=["/dev/ttyUSB0"])
    baud_rate: conint(gt=0, le=4_000_000) = Field(9600, examples=[9600])


class OpenRq(BaseModel):
    command: KickCommand = KickCommand.STANDARD


class ReleaseInfo(BaseModel):
    version: str
    url: str
    sha256: Optional[str] = None
    release_date: Optional[str] = None
    release_notes: Optional[str | list[str]] = None


class Event(BaseModel):
    event: str
    data: dict[str, Any] = {}
