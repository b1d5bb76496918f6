# prefs.py — drawer preferences shown on the settings screen
import logging
from pathlib import Path

from pydantic import ValidationError

from .state import DrawerPreferences

log = logging.getLogger("DrawerMaster")


def load_preferences(path: Path) -> DrawerPreferences:
    """Missing or unreadable file gives the defaults."""
    path = Path(path)
    if not path.exists():
        return DrawerPreferences()
    try:
        return DrawerPreferences.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        log.warning("Failed to load drawer preferences from %s: %s", path, e)
        return DrawerPreferences()


def save_preferences(prefs: DrawerPreferences, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(prefs.model_dump_json(indent=2), encoding="utf-8")
    tmp.replace(path)
    log.info("Drawer preferences saved to %s", path)
