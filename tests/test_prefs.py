from drawermaster.enums import KickCommand
from drawermaster.prefs import load_preferences, save_preferences
from drawermaster.state import DrawerPreferences


def test_preferences_save_load(tmp_path):
    path = tmp_path / "nested" / "preferences.json"
    save_preferences(DrawerPreferences(enabled=True, command_type=KickCommand.STAR), path)
    assert path.exists()

    loaded = load_preferences(path)
    assert loaded.enabled is True
    assert loaded.command_type is KickCommand.STAR


def test_missing_preferences_give_defaults(tmp_path):
    prefs = load_preferences(tmp_path / "nope.json")
    assert prefs == DrawerPreferences()


def test_corrupt_preferences_give_defaults(tmp_path):
    path = tmp_path / "preferences.json"
    path.write_text('{"enabled": true, "command_type": "PIN9"}', encoding="utf-8")
    assert load_preferences(path) == DrawerPreferences()
