from pydantic import BaseModel, Field
from functools import lru_cache

class DriverCfg(BaseModel):
    baud_rate:   int  = Field(9600)
    # 8N1, the drawer interface does not negotiate framing
    bytesize:    int  = 8
    parity:      str  = Field("N")       # «O», «E», «N»
    stopbits:    int  = 1
    timeout:     float= Field(0.5)
    write_timeout: float | None = Field(2.0)   # None = block until the OS accepts the bytes
    monitor_interval: float = Field(0.5)       # line health poll, seconds

@lru_cache
def get() -> DriverCfg:
    return DriverCfg()
