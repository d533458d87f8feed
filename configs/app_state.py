"""Persist namespaced application state (match history, user settings) as JSON."""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from exceptions import StorageError
from log_config.logger import get_logger

logger = get_logger(__name__)

CORRUPT_SUFFIX = ".corrupt"


def state_path(root: Optional[Path] = None) -> Path:
    base = root or Path("data")
    return base / "app_state.json"


def backup_path(root: Optional[Path] = None) -> Path:
    path = state_path(root)
    return path.with_name(path.name + CORRUPT_SUFFIX)


def load_state(root: Optional[Path] = None) -> Dict[str, Any]:
    """Read the state file.

    An unreadable file is moved aside to ``app_state.json.corrupt`` (replacing
    any earlier backup) so the next write cannot destroy it, and the state
    starts empty.
    """
    path = state_path(root)
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error(f"Unreadable app state at {path}, starting empty: {e}")
        _backup_corrupt(root)
        return {}
    if not isinstance(data, dict):
        logger.error(f"App state at {path} is not an object, starting empty")
        _backup_corrupt(root)
        return {}
    return data


def _backup_corrupt(root: Optional[Path]) -> None:
    path = state_path(root)
    backup = backup_path(root)
    try:
        os.replace(path, backup)
        logger.warning(f"Corrupt app state kept at {backup}")
    except OSError as e:
        logger.warning(f"Could not back up corrupt app state {path}: {e}")


def save_state(state: Mapping[str, Any], root: Optional[Path] = None) -> None:
    """Write the whole state atomically (temp file + replace).

    Raises:
        StorageError: If the file cannot be written
    """
    path = state_path(root)
    tmp_name: Optional[str] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".app_state.", dir=str(path.parent))
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(state, handle, indent=2)
        os.replace(tmp_name, path)
        tmp_name = None
    except (OSError, TypeError, ValueError) as e:
        raise StorageError(f"Failed to write app state to {path}: {e}") from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.warning(f"Could not remove temporary state file {tmp_name}")


class AppStateStore:
    """Key-value view over the app state file.

    Values are cached after the first load and the cache is updated
    synchronously by every setter. Writes from ``set_item`` (caller's thread)
    and ``set_item_async`` (worker thread) share one lock and snapshot the
    cache while holding it, so the file always ends at the newest state
    whatever order the writers finish in. An in-memory store
    (``persist=False``) is used by tests and the demo.
    """

    def __init__(self, root: Optional[Path] = None, persist: bool = True):
        self._root = root
        self._persist = persist
        self._state: Optional[Dict[str, Any]] = None
        self._write_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return state_path(self._root)

    def _loaded(self) -> Dict[str, Any]:
        if self._state is None:
            self._state = load_state(self._root) if self._persist else {}
        return self._state

    def get_item(self, key: str, default: Any = None) -> Any:
        return self._loaded().get(key, default)

    def set_item(self, key: str, value: Any) -> None:
        self._loaded()[key] = value
        self._flush()

    async def set_item_async(self, key: str, value: Any) -> None:
        """Like ``set_item`` but writes the file on a worker thread."""
        await self.update_async({key: value})

    async def update_async(self, values: Mapping[str, Any]) -> None:
        """Set several keys and write them in one file replace."""
        self._loaded().update(values)
        if self._persist:
            await asyncio.to_thread(self._flush)

    def remove_item(self, key: str) -> None:
        if self._loaded().pop(key, None) is not None:
            self._flush()

    def _flush(self) -> None:
        if not self._persist:
            return
        with self._write_lock:
            save_state(dict(self._loaded()), self._root)
