"""
YAML configuration for modledger.

``config/app_config.yml`` has three sections::

    database:   {path}
    api:        {host, port}
    moderation: {default_reversal_reason, mute_roles: {guild_id: role_id}}

Secrets never live here; the entry point reads them from the environment.
"""

from __future__ import annotations

import fcntl
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from modledger.util.logger import get_logger

logger = get_logger("app_configuration")

DEFAULT_DB_PATH = "./data/modledger.db"
DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8080
DEFAULT_REVERSAL_REASON = "Removed via dashboard"


def read_yaml_mapping(path: Path) -> Dict[str, Any]:
    """
    Parse ``path`` under a shared ``flock`` so a concurrent writer can't hand
    us half a file.

    Anything other than a readable YAML mapping is logged and treated as empty.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_SH)
            try:
                parsed = yaml.safe_load(handle)
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    except FileNotFoundError:
        logger.error("[APP CONFIGURATION] %s does not exist; using defaults", path)
        return {}
    except (OSError, yaml.YAMLError) as exc:
        logger.error("[APP CONFIGURATION] Could not read %s (%s); using defaults", path, exc)
        return {}

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        logger.error("[APP CONFIGURATION] %s must contain a mapping, got %s", path, type(parsed).__name__)
        return {}
    return parsed


class AppConfig:
    """Cached view of the YAML config with typed accessors that never raise."""

    def __init__(self, config_path: Path) -> None:
        self.config_path = Path(config_path)
        self._data: Dict[str, Any] = {}
        self.reload()

    def reload(self) -> Dict[str, Any]:
        """Re-read the file and return the new mapping."""
        self._data = read_yaml_mapping(self.config_path)
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def section(self, name: str) -> Mapping[str, Any]:
        value = self._data.get(name)
        return value if isinstance(value, dict) else {}

    @property
    def database_path(self) -> Path:
        return Path(str(self.section("database").get("path") or DEFAULT_DB_PATH))

    @property
    def api_host(self) -> str:
        return str(self.section("api").get("host") or DEFAULT_API_HOST)

    @property
    def api_port(self) -> int:
        raw = self.section("api").get("port", DEFAULT_API_PORT)
        try:
            port = int(raw)
        except (TypeError, ValueError):
            port = -1
        if not 0 < port < 65536:
            logger.warning("[APP CONFIGURATION] api.port %r is not a valid port; using %d", raw, DEFAULT_API_PORT)
            return DEFAULT_API_PORT
        return port

    @property
    def default_reversal_reason(self) -> str:
        reason = str(self.section("moderation").get("default_reversal_reason") or "").strip()
        return reason or DEFAULT_REVERSAL_REASON

    @property
    def mute_roles(self) -> Dict[str, str]:
        """Guild id -> mute role id. Unquoted YAML snowflakes load as ints, so both sides are stringified."""
        roles = self.section("moderation").get("mute_roles")
        if not isinstance(roles, dict):
            return {}
        return {str(guild): str(role) for guild, role in roles.items() if role}
