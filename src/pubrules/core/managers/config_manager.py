# src/pubrules/core/managers/config_manager.py
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pubrules.core.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)

# Extra settings file applied after the user's, e.g. for CI runs
SETTINGS_ENV_VAR = "PUBRULES_SETTINGS"


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_json(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"top level of {path} is not an object")
    return data


def _coerce(current: Any, value: Any, key_path: str) -> Any:
    """Casts a new scalar to the type of the one it replaces ('20' -> 20)."""
    if current is None or isinstance(current, (dict, list)) or isinstance(value, type(current)):
        return value
    if isinstance(current, bool) and isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    try:
        return type(current)(value)
    except (ValueError, TypeError):
        logger.warning("Could not cast '%s' to %s; storing it as given.", key_path, type(current).__name__)
        return value


class ConfigManager:
    """
    Process-wide settings: HTTP session limits, the run timeout, the host
    reliability policy, the linkchecker allow-list and logging.

    Layers, each deep-merged over the previous one:
      1. settings.json shipped inside the package
      2. ~/.pubrules/settings.json, when present
      3. the file named by $PUBRULES_SETTINGS, when set
      4. files passed to load_file() and set_nested() calls at runtime
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._config = {}
            cls._instance.sources = []
            cls._instance.reset()
        return cls._instance

    _config: Dict[str, Any]
    sources: List[Path]

    def get_nested(self, key_path: str, default: Optional[Any] = None) -> Any:
        """
        Retrieves a nested value, e.g. 'session.time_out'. Returns default
        when any part of the path is missing or the value is null.
        """
        value: Any = self._config
        for key in key_path.split('.'):
            if not isinstance(value, dict):
                return default
            value = value.get(key)
        return default if value is None else value

    def set_nested(self, key_path: str, value: Any) -> bool:
        """Sets a value in memory, creating intermediate sections as needed."""
        *parents, leaf = key_path.split('.')
        node = self._config
        for key in parents:
            node = node.setdefault(key, {})
            if not isinstance(node, dict):
                logger.error("Cannot set '%s': '%s' is not a section.", key_path, key)
                return False
        node[leaf] = _coerce(node.get(leaf), value, key_path)
        logger.debug("Setting %s = %r", key_path, node[leaf])
        return True

    def load_file(self, path: Path) -> bool:
        """Merges a JSON settings file over the current configuration."""
        path = Path(path).expanduser()
        try:
            overrides = _read_json(path)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.error("Failed to load settings from %s: %s", path, e)
            return False
        self._config = _deep_merge(self._config, overrides)
        self.sources.append(path)
        logger.debug("Settings merged from %s", path)
        return True

    def reset(self):
        """Rebuilds the configuration from the file layers, dropping runtime changes."""
        self._config = {}
        self.sources = []

        packaged = PathUtils.get_settings_file()
        if not self.load_file(packaged):
            logger.warning("Packaged settings unavailable at %s; running on built-in defaults.", packaged)

        user_file = PathUtils.get_user_settings_file()
        if user_file.exists():
            self.load_file(user_file)

        env_file = os.environ.get(SETTINGS_ENV_VAR)
        if env_file:
            self.load_file(Path(env_file))


# The global singleton instance that the entire application will use.
config_manager = ConfigManager()
