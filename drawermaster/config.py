import os
from pathlib import Path
from pydantic import BaseModel, Field
from functools import lru_cache

ENV_PREFIX = "DRAWER_MASTER_"

class Settings(BaseModel):
    default_port: str | None = Field(None)
    baud_rate:  int  = Field(9600)
    auto_connect: bool = False            # try the first enumerated port on startup

    update_feed_url: str = Field("https://updates.drawermaster.local/latest.json")
    update_check_interval: float = 4 * 60 * 60   # 4 hours
    update_initial_delay:  float = 10.0
    allow_prerelease: bool = False
    download_dir: Path = Field(default_factory=lambda: Path.home() / ".drawermaster" / "updates")

    preferences_path: Path = Field(default_factory=lambda: Path.home() / ".drawermaster" / "preferences.json")

    log_level: str = Field("INFO")
    log_to_file: bool = True
    configure_logging: bool = True


def _env_overrides() -> dict:
    values = {}
    for name in Settings.model_fields:
        raw = os.getenv(ENV_PREFIX + name.upper())
        if raw is not None:
            values[name] = raw
    return values

@lru_cache
def get_settings() -> Settings:
    return Settings(**_env_overrides())
