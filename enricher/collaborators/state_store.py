"""Persisted key -> JSON blob state (checkpoint, schema override, triggers).

Mutual exclusion is by named lock:
- ``invocation``: held for a whole resume() call, never waited on. A second
  invocation that finds it held raises InvocationInProgress.
- ``checkpoint``: held around every read-modify-write of the checkpoint.
  Sections are short and synchronous, so callers may wait for it.
"""

import fcntl
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import ContextManager, Iterator, Protocol

from enricher.core.errors import InvocationInProgress

logger = logging.getLogger(__name__)

INVOCATION_LOCK = "invocation"
CHECKPOINT_LOCK = "checkpoint"


class StateStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def exclusive(self, name: str, blocking: bool = False) -> ContextManager: ...


class InMemoryStateStore:
    """State kept in a dict. Locks are process-local mutexes."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})
        self._locks: dict[str, threading.Lock] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    @contextmanager
    def exclusive(self, name: str, blocking: bool = False) -> Iterator[None]:
        lock = self._locks.setdefault(name, threading.Lock())
        if not lock.acquire(blocking=blocking):
            raise InvocationInProgress(f"{name} lock is already held")
        try:
            yield
        finally:
            lock.release()


class FileStateStore:
    """One file per key under a directory, written atomically."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(value)
        os.replace(tmp, path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    @contextmanager
    def exclusive(self, name: str, blocking: bool = False) -> Iterator[Path]:
        lock_path = self.directory / f".{name}.lock"
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = lock_path.open("w", encoding="utf-8")
        flags = fcntl.LOCK_EX if blocking else fcntl.LOCK_EX | fcntl.LOCK_NB
        try:
            fcntl.flock(handle.fileno(), flags)
        except BlockingIOError as exc:
            handle.close()
            raise InvocationInProgress(f"{name} lock is already held") from exc

        try:
            yield lock_path
        finally:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            finally:
                handle.close()
