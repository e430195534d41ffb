"""Single-file JSON document store with serialized transactions.

The whole catalog, every order and the shipping settings live in one
JSON document so a unit of work can change several of them and commit
atomically.  Transactions are serialized twice over: an ``asyncio.Lock``
inside the process and an exclusive ``flock`` on a side lock file
across processes.  Commits write a temp file and ``os.replace`` it over
the document.
"""

from __future__ import annotations

import asyncio
import fcntl
import json
import os
import time
import weakref
from pathlib import Path
from typing import Any, TextIO

import structlog

from shopcore.domain.exceptions import ConcurrencyConflictError

logger = structlog.get_logger(__name__)

_LOCK_POLL_SECONDS = 0.02


def empty_document() -> dict[str, Any]:
    return {"products": [], "orders": [], "shipping_settings": None}


class StoreSession:
    """Exclusive access to the document for one unit of work."""

    def __init__(
        self,
        store: JsonDocumentStore,
        document: dict[str, Any],
        lock_file: TextIO,
        loop_lock: asyncio.Lock,
    ) -> None:
        self.document = document
        self._store = store
        self._lock_file = lock_file
        self._loop_lock = loop_lock
        self.closed = False

    def write(self) -> None:
        if self.closed:
            raise RuntimeError("Store session already closed")
        self._store.replace(self.document)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._store.unlock_file(self._lock_file)
        finally:
            self._loop_lock.release()


class JsonDocumentStore:

    def __init__(self, file_path: Path, lock_timeout: float = 10.0) -> None:
        self._file_path = file_path
        self._lock_path = file_path.with_name(file_path.name + ".lock")
        self._lock_timeout = lock_timeout
        # one asyncio.Lock per event loop; a Lock must not cross loops
        self._loop_locks: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, asyncio.Lock
        ] = weakref.WeakKeyDictionary()
        self._ensure_file()

    @property
    def file_path(self) -> Path:
        return self._file_path

    async def open_session(self) -> StoreSession:
        """Wait for exclusive access and load a fresh working copy.

        Raises ConcurrencyConflictError if access is not granted within
        the lock timeout.
        """
        loop_lock = self._loop_lock()
        deadline = time.monotonic() + self._lock_timeout
        try:
            await asyncio.wait_for(loop_lock.acquire(), timeout=self._lock_timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for store lock", scope="process")
            raise ConcurrencyConflictError(
                "Store is busy, please retry the operation"
            ) from None

        try:
            lock_file = await self._lock_across_processes(deadline)
        except BaseException:
            loop_lock.release()
            raise

        try:
            document = self._load()
        except BaseException:
            self.unlock_file(lock_file)
            loop_lock.release()
            raise
        return StoreSession(self, document, lock_file, loop_lock)

    # --- Locking --------------------------------------------------------------

    def _loop_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        lock = self._loop_locks.get(loop)
        if lock is None:
            lock = asyncio.Lock()
            self._loop_locks[loop] = lock
        return lock

    async def _lock_across_processes(self, deadline: float) -> TextIO:
        lock_file = open(self._lock_path, "a+", encoding="utf-8")
        while True:
            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return lock_file
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    lock_file.close()
                    logger.warning("Timed out waiting for store lock", scope="file")
                    raise ConcurrencyConflictError(
                        "Store is locked by another process, please retry the operation"
                    ) from None
                await asyncio.sleep(_LOCK_POLL_SECONDS)
            except BaseException:
                lock_file.close()
                raise

    @staticmethod
    def unlock_file(lock_file: TextIO) -> None:
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
        finally:
            lock_file.close()

    # --- File helpers ---------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        raw = json.loads(self._file_path.read_text(encoding="utf-8"))
        document = empty_document()
        if isinstance(raw, dict):
            document.update(raw)
        return document

    def replace(self, document: dict[str, Any]) -> None:
        tmp_path = self._file_path.with_name(f".{self._file_path.name}.{os.getpid()}.tmp")
        with open(tmp_path, "w", encoding="utf-8") as fh:
            json.dump(document, fh, indent=2)
            fh.write("\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, self._file_path)

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self.replace(empty_document())
