from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from .schemas.messages import ScopeEntry
from .utils.json_utils import read_json, write_json

ROOT_ENV = "BOARD_ARCHIVE_ROOT"

DEFAULTS: Dict[str, Any] = {
    "archive": {
        "root_dir": "archive",
        "groups_config": "groups-config.json",
    },
    "export": {
        "output_dir": "exports",
    },
}


class ConfigError(Exception):
    pass


def _merge_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for section, defaults in DEFAULTS.items():
        given = data.get(section) or {}
        if not isinstance(given, dict):
            raise ConfigError(f"'{section}' must be a mapping")
        out[section] = {**defaults, **given}
    for key, value in data.items():
        out.setdefault(key, value)
    return out


def load_config(path: Path) -> Dict[str, Any]:
    """
    Load config.yml and fill in defaults.
    The archive root may be overridden with BOARD_ARCHIVE_ROOT (e.g. from .env).
    Relative paths are resolved against the config file's directory.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML at {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Top-level config must be a mapping")

    cfg = _merge_defaults(data)
    env_root = os.getenv(ROOT_ENV)
    if env_root:
        cfg["archive"]["root_dir"] = env_root

    base = path.parent
    for section, key in (("archive", "root_dir"), ("archive", "groups_config"), ("export", "output_dir")):
        p = Path(str(cfg[section][key]))
        cfg[section][key] = str(p if p.is_absolute() else base / p)
    return cfg


def _scope_items(doc: Any) -> List[Any]:
    if isinstance(doc, dict):
        doc = doc.get("groups")
    if not isinstance(doc, list):
        raise ConfigError("Scope config must be a list of groups or an object with a 'groups' list")
    return doc


def load_scopes(path: Path) -> List[ScopeEntry]:
    """
    Read groups-config.json. Entries are {groupName, groupId, lastMessageId} objects or bare group names.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scope config not found: {path}")
    try:
        doc = read_json(path)
    except ValueError as e:
        raise ConfigError(f"Failed to parse scope config {path}: {e}") from e

    scopes: List[ScopeEntry] = []
    for item in _scope_items(doc):
        if isinstance(item, str):
            item = {"groupName": item}
        try:
            scopes.append(ScopeEntry.model_validate(item))
        except ValidationError as e:
            raise ConfigError(f"Invalid scope entry {item!r}: {e}") from e
    return scopes


def save_scopes(path: Path, scopes: List[ScopeEntry]) -> None:
    write_json(path, [s.model_dump(by_alias=True) for s in scopes])


def find_scope(scopes: List[ScopeEntry], group_name: str) -> Optional[ScopeEntry]:
    for scope in scopes:
        if scope.group_name == group_name:
            return scope
    return None


def update_checkpoint(
    scopes: List[ScopeEntry],
    group_name: str,
    last_message_id: Optional[Union[int, str]],
) -> List[ScopeEntry]:
    """Return a new scope list with the group's delta checkpoint replaced."""
    if find_scope(scopes, group_name) is None:
        raise ConfigError(f"Unknown group: {group_name}")
    return [
        s.model_copy(update={"last_message_id": last_message_id}) if s.group_name == group_name else s
        for s in scopes
    ]


def group_names(scopes: List[ScopeEntry]) -> List[str]:
    return sorted(s.group_name for s in scopes)
