"""Settings management for persistent configuration."""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

CONFIG_ENV = "MODMANAGER_CONFIG"
CURSEFORGE_KEY_ENV = "CURSEFORGE_API_KEY"

DEFAULTS: Dict[str, Any] = {
    "database": "modlist.csv",
    "default_game_version": "1.21.5",
    "cache_dir": "download",
    "release_dir": "release",
    "backup_dir": "",
    "user_agent": "modpack-manager/0.4",
    "timeout": 15.0,
    "retry": {
        "max_attempts": 4,
        "base_delay": 1.0,
        "max_delay": 30.0
    },
    "curseforge_api_key": "",
    "jdk": {
        "os": "linux",
        "arch": "x64"
    },
    "api": {
        "modrinth": "https://api.modrinth.com/v2",
        "curseforge": "https://api.curseforge.com/v1",
        "mojang": "https://piston-meta.mojang.com",
        "fabric": "https://meta.fabricmc.net/v2",
        "adoptium": "https://api.adoptium.net/v3"
    }
}


def get_settings_dir() -> Path:
    """Get the user settings directory."""
    if os.name == 'nt':
        # Windows
        settings_base = Path(os.environ.get('USERPROFILE', '~')).expanduser()
    else:
        # Unix-like
        settings_base = Path(os.environ.get('HOME', '~')).expanduser()

    return settings_base / '.modpack-manager'


def get_config_file() -> Path:
    """Get the path to the configuration file ($MODMANAGER_CONFIG wins)."""
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return get_settings_dir() / 'config.json'


def load_settings(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load settings from the configuration file.

    Args:
        config_file: Explicit file; defaults to get_config_file()

    Returns:
        Dictionary with settings, with defaults for missing values
    """
    config_file = Path(config_file) if config_file else get_config_file()
    merged = copy.deepcopy(DEFAULTS)

    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                settings = json.load(f)
            if isinstance(settings, dict):
                _deep_update(merged, settings)
            else:
                log.warning("Ignoring %s: top level is not an object", config_file)
        except (OSError, ValueError) as e:
            log.warning("Ignoring unreadable config %s: %s", config_file, e)

    return merged


def save_settings(settings: Dict[str, Any], config_file: Optional[Path] = None) -> bool:
    """
    Save settings to the configuration file.

    Returns:
        True if successful, False otherwise
    """
    config_file = Path(config_file) if config_file else get_config_file()

    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, 'w', encoding='utf-8') as f:
            json.dump(settings, f, ensure_ascii=False, indent=2)
        return True
    except OSError as e:
        log.error("Cannot save config %s: %s", config_file, e)
        return False


class Settings:
    """Settings bound to one config file."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = Path(config_file) if config_file else get_config_file()
        self.data = load_settings(self.config_file)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a single setting value.

        Args:
            key: Setting key (supports dot notation for nested keys)
            default: Default value if key doesn't exist
        """
        current = self.data
        try:
            for k in key.split('.'):
                current = current[k]
            return current
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set a value in memory; dot notation creates nested objects."""
        keys = key.split('.')
        current = self.data
        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                current[k] = {}
            current = current[k]
        current[keys[-1]] = value

    def save(self) -> bool:
        return save_settings(self.data, self.config_file)

    def get_curseforge_api_key(self) -> str:
        return os.environ.get(CURSEFORGE_KEY_ENV) or self.get("curseforge_api_key") or ""

    def path(self, key: str, base: Optional[Path] = None) -> Path:
        """Resolve a path setting; relative values are taken from base (or cwd)."""
        value = Path(str(self.get(key) or "")).expanduser()
        if value.is_absolute() or base is None:
            return value
        return Path(base) / value


def _deep_update(base_dict: dict, update_dict: dict) -> None:
    """
    Deep update base_dict with values from update_dict.

    Args:
        base_dict: Dictionary to update (modified in place)
        update_dict: Dictionary with new values
    """
    for key, value in update_dict.items():
        if (key in base_dict and
                isinstance(base_dict[key], dict) and
                isinstance(value, dict)):
            _deep_update(base_dict[key], value)
        else:
            base_dict[key] = value
