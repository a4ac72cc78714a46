"""Key-value store boundary (JSON files + fcntl.flock + atomic write)."""

import asyncio
import fcntl
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

RATINGS_STORE = "user-ratings"
CALIBRATION_STORE = "calibration-state"
SESSION_STORE = "active-solve-session"


def ratings_key(username: str) -> str:
    return f"{username}|ratings"


def calibration_key(username: str) -> str:
    return f"{username}|calibration"


def session_key(username: str) -> str:
    return f"{username}|session"


class KeyValueStore(Protocol):
    """Async storage collaborator. Absence is reported as ``None``, not an error."""

    async def get(self, store: str, key: str) -> Any | None: ...

    async def put(self, store: str, value: Any, key: str) -> None: ...

    async def delete(self, store: str, key: str) -> None: ...


class MemoryStore:
    """In-process store holding JSON-compatible values."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    async def get(self, store: str, key: str) -> Any | None:
        value = self._data.get(store, {}).get(key)
        # Copy through JSON so callers never share state with the store
        return None if value is None else json.loads(json.dumps(value))

    async def put(self, store: str, value: Any, key: str) -> None:
        self._data.setdefault(store, {})[key] = json.loads(json.dumps(value, default=str))

    async def delete(self, store: str, key: str) -> None:
        self._data.get(store, {}).pop(key, None)


class JsonFileStore:
    """One JSON file per key under ``<root>/<store>/``.

    Args:
        root_dir: Directory holding one sub-directory per store.
    """

    def __init__(self, root_dir: Path):
        self.root_dir = Path(root_dir)

    def _path(self, store: str, key: str) -> Path:
        store_dir = self.root_dir / store
        store_dir.mkdir(parents=True, exist_ok=True)
        return store_dir / f"{quote(key, safe='')}.json"

    def _read(self, path: Path) -> Any | None:
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            data = json.load(f)
            fcntl.flock(f, fcntl.LOCK_UN)
        return data

    def _write(self, path: Path, value: Any) -> None:
        with tempfile.NamedTemporaryFile(
            "w", dir=path.parent, delete=False, suffix=".json", encoding="utf-8"
        ) as tmp:
            json.dump(value, tmp, default=str)
        os.replace(tmp.name, path)

    async def get(self, store: str, key: str) -> Any | None:
        return await asyncio.to_thread(self._read, self._path(store, key))

    async def put(self, store: str, value: Any, key: str) -> None:
        await asyncio.to_thread(self._write, self._path(store, key), value)

    async def delete(self, store: str, key: str) -> None:
        path = self._path(store, key)
        await asyncio.to_thread(path.unlink, missing_ok=True)
