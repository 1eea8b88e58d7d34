"""Runner settings: defaults deep-merged with ~/.romrunner/settings.json."""
from __future__ import annotations

import json
import logging
import os
from copy import deepcopy
from typing import Any, Dict, List

from .shared_config import (
    DEFAULT_CACHE_DIR,
    MUPEN_CACHE_SUBDIR,
    MUPEN_HIRES_SUBDIR,
    RETROARCH_ROOTS,
    SCUMMVM_CONFIG_CANDIDATES,
    SETTINGS_PATH,
)

DEFAULT_SETTINGS_PATH = SETTINGS_PATH

log = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "cache_dir": DEFAULT_CACHE_DIR,
    "archive_extensions": [".7z"],
    "bundle_extension": ".scummvm",
    "tools": {
        "archiver": "7z",
        "crudini": "crudini",
        "ffmpeg": "ffmpeg",
        "sudo": "sudo",
        "mount": "mount",
        "umount": "umount",
        "erofsfuse": "erofsfuse",
        "fusermount": "fusermount",
    },
    "content": {
        "n64_extensions": [".z64", ".n64", ".v64"],
        "snes_extensions": [".sfc", ".smc"],
    },
    "textures": {
        "enabled": True,
        "dir_name": "hires_texture",
        "image_extensions": [".erofs", ".img"],
        "emulator_roots": list(RETROARCH_ROOTS),
        "mount_subdir": MUPEN_HIRES_SUBDIR,
        "cache_subdir": MUPEN_CACHE_SUBDIR,
        "redirect_dir": "mupen64plus_cache",
    },
    "audio": {
        "enabled": True,
        "marker_extension": ".msu",
        "source_formats": [".wv", ".flac"],
        "max_workers": 0,
        "sample_rate": 44100,
        "channels": 2,
    },
    "scummvm": {
        "enabled": True,
        "fragment_extension": ".ini",
        "config_candidates": list(SCUMMVM_CONFIG_CANDIDATES),
    },
    "logging": {
        "file_enabled": False,
        "file": "",
        "verbose": False,
    },
    "locking": {
        "enabled": True,
    },
}


def _deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    out = deepcopy(base)
    for k, v in (updates or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = deepcopy(v)
    return out


def load_settings(path: str = DEFAULT_SETTINGS_PATH) -> Dict[str, Any]:
    if not os.path.exists(path):
        return deepcopy(DEFAULT_SETTINGS)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        log.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return deepcopy(DEFAULT_SETTINGS)
    if not isinstance(data, dict):
        log.warning("Ignoring settings file %s: top level is not an object", path)
        return deepcopy(DEFAULT_SETTINGS)
    return _deep_merge(DEFAULT_SETTINGS, data)


def save_settings(settings: Dict[str, Any], path: str = DEFAULT_SETTINGS_PATH) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings, f, ensure_ascii=False, indent=2)


def tool(settings: Dict[str, Any], name: str) -> str:
    """Executable configured for an external tool"""
    return settings.get("tools", {}).get(name) or name


def extensions(values: List[str]) -> tuple:
    """Normalize configured extensions to lowercase with a leading dot"""
    out = []
    for value in values or []:
        value = value.lower()
        out.append(value if value.startswith(".") else f".{value}")
    return tuple(out)


def apply_overrides(settings: Dict[str, Any], **overrides: Any) -> Dict[str, Any]:
    """Apply command-line overrides; None values are ignored."""
    updates: Dict[str, Any] = {}
    if overrides.get("cache_dir"):
        updates["cache_dir"] = overrides["cache_dir"]
    if overrides.get("log_file"):
        updates["logging"] = {"file_enabled": True, "file": overrides["log_file"]}
    if overrides.get("verbose"):
        updates.setdefault("logging", {})["verbose"] = True
    if overrides.get("no_lock"):
        updates["locking"] = {"enabled": False}
    return _deep_merge(settings, updates)
