"""JSON file persistence for the study session.

Three independent slots live in the state directory:

``session_state.json``
    The deck, progress table, last shown index and category filter.
``selected_categories.json``
    The category filter on its own, so a choice survives deck changes.
``settings.json``
    Small user preferences such as the saved CSV URL.

Unreadable files are treated as absent; callers decide how to recover.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Paths and constants
# ---------------------------------------------------------------------------
STATE_ROOT = Path(os.environ.get("VOCAB_SRS_STATE_DIR", "res/state"))
SESSION_FILE_NAME = "session_state.json"
CATEGORIES_FILE_NAME = "selected_categories.json"
SETTINGS_FILE_NAME = "settings.json"
STATE_VERSION = 3


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _write_json(path: Path, payload: Any) -> None:
    _ensure_parent(path)
    tmp_path = path.with_name(path.name + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=4, ensure_ascii=False)
    os.replace(tmp_path, path)


def _read_json(path: Path) -> Optional[Any]:
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable state file %s: %s", path, exc)
        return None


class JsonStateStore:
    """Durable store backed by JSON files under *root*."""

    def __init__(self, root: Optional[Union[str, Path]] = None) -> None:
        self.root = Path(root) if root is not None else STATE_ROOT

    @property
    def session_path(self) -> Path:
        return self.root / SESSION_FILE_NAME

    @property
    def categories_path(self) -> Path:
        return self.root / CATEGORIES_FILE_NAME

    @property
    def settings_path(self) -> Path:
        return self.root / SETTINGS_FILE_NAME

    # ------------------------------------------------------------------
    # Session snapshot
    # ------------------------------------------------------------------
    def load(self) -> Optional[Dict[str, Any]]:
        payload = _read_json(self.session_path)
        if payload is None:
            return None
        if not isinstance(payload, dict):
            logger.warning("Session file %s does not hold an object", self.session_path)
            return None
        return payload

    def save(self, payload: Mapping[str, Any]) -> None:
        record = dict(payload)
        record.setdefault("version", STATE_VERSION)
        _write_json(self.session_path, record)

    # ------------------------------------------------------------------
    # Independent category slot
    # ------------------------------------------------------------------
    def load_selected_categories(self) -> Optional[List[str]]:
        payload = _read_json(self.categories_path)
        if not isinstance(payload, list):
            return None
        return [str(label) for label in payload if isinstance(label, str)]

    def save_selected_categories(self, labels: Sequence[str]) -> None:
        _write_json(self.categories_path, list(labels))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def _load_settings(self) -> Dict[str, Any]:
        payload = _read_json(self.settings_path)
        return payload if isinstance(payload, dict) else {}

    def load_setting(self, key: str, default: Any = None) -> Any:
        return self._load_settings().get(key, default)

    def save_setting(self, key: str, value: Any) -> None:
        settings = self._load_settings()
        settings[key] = value
        _write_json(self.settings_path, settings)


__all__ = [
    "JsonStateStore",
    "STATE_ROOT",
    "STATE_VERSION",
]
