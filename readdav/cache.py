"""
Directory listing cache.

The store is written by exactly one thread, the coordinator's worker.
Request threads only ever call :meth:`CacheStore.get`. Mutations reach the
worker as :class:`CacheEntry` commands on an unbounded queue; an entry with
``inserted_at == 0`` is the prune signal.
"""

import logging
import queue
import threading
import time
from collections import deque
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: bytes
    inserted_at: float

    @property
    def is_prune_signal(self) -> bool:
        return self.inserted_at <= 0


PRUNE = CacheEntry(key="", payload=b"", inserted_at=0)


class CacheStore:
    """
    Rendered PROPFIND bodies keyed by request path.

    Keeps a key -> payload mapping for lookups and a deque of entries in
    insertion order for pruning. Both are changed together under the lock,
    and only by the writer thread.

    Pruning stops at the first entry younger than the TTL. That is only
    equivalent to a full expiry scan because every entry shares one TTL.
    """

    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds
        self._payloads: dict[str, bytes] = {}
        self._order: deque[CacheEntry] = deque()
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        """Return the cached payload for ``key``, or None. Safe from any thread."""
        with self._lock:
            return self._payloads.get(key)

    def add(self, entry: CacheEntry) -> bool:
        """
        Store ``entry`` unless its key is already cached.

        Returns:
            True if the entry was stored, False if an earlier one won.
        """
        with self._lock:
            if entry.key in self._payloads:
                logger.debug("Already cached: %s", entry.key)
                return False
            self._payloads[entry.key] = entry.payload
            self._order.append(entry)
        logger.debug("Cached %s (%d bytes)", entry.key, len(entry.payload))
        return True

    def prune(self, now: float | None = None) -> int:
        """
        Drop entries older than the TTL, oldest first.

        Returns:
            Number of entries removed.
        """
        if now is None:
            now = time.time()
        removed = 0
        with self._lock:
            while self._order:
                oldest = self._order[0]
                if now - oldest.inserted_at <= self.ttl_seconds:
                    break
                self._order.popleft()
                del self._payloads[oldest.key]
                removed += 1
        if removed:
            logger.debug("Pruned %d cache entries, %d left", removed, len(self))
        return removed

    def keys(self) -> list[str]:
        """Cached keys, oldest first."""
        with self._lock:
            return [entry.key for entry in self._order]

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._payloads

    def __len__(self) -> int:
        with self._lock:
            return len(self._payloads)


class CacheCoordinator:
    """
    Serializes every cache mutation through one worker thread.

    A second thread sends a prune signal every ``prune_interval`` seconds.
    Both threads are daemons and run until :meth:`stop`.
    """

    def __init__(self, store: CacheStore, prune_interval: float = 1.0):
        self.store = store
        self.prune_interval = prune_interval
        self._commands: queue.Queue[CacheEntry | None] = queue.Queue()
        self._stop_event = threading.Event()
        self._worker: threading.Thread | None = None
        self._pruner: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> None:
        """Start the worker and the prune signal threads."""
        if self.running:
            logger.warning("Cache coordinator already running")
            return
        self._stop_event.clear()
        self._worker = threading.Thread(target=self._run, name="cache-worker", daemon=True)
        self._pruner = threading.Thread(
            target=self._emit_prune_signals, name="cache-pruner", daemon=True
        )
        self._worker.start()
        self._pruner.start()
        logger.info(
            "Cache coordinator started (ttl=%ss, prune every %ss)",
            self.store.ttl_seconds,
            self.prune_interval,
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop both threads. Commands queued before the call are still applied."""
        if self._worker is None:
            return
        self._stop_event.set()
        self._commands.put(None)
        self._worker.join(timeout)
        if self._pruner is not None:
            self._pruner.join(timeout)
        self._worker = None
        self._pruner = None
        logger.info("Cache coordinator stopped")

    def insert(self, key: str, payload: bytes, inserted_at: float | None = None) -> None:
        """Queue a new entry. Returns immediately."""
        if inserted_at is None:
            inserted_at = time.time()
        self._commands.put(CacheEntry(key=key, payload=payload, inserted_at=inserted_at))

    def signal_prune(self) -> None:
        self._commands.put(PRUNE)

    def drain(self) -> None:
        """Block until every queued command has been applied."""
        self._commands.join()

    def _run(self) -> None:
        while True:
            command = self._commands.get()
            try:
                if command is None:
                    return
                if command.is_prune_signal:
                    self.store.prune()
                else:
                    self.store.add(command)
            except Exception:
                logger.exception("Cache worker failed on command for %r", command.key)
            finally:
                self._commands.task_done()

    def _emit_prune_signals(self) -> None:
        while not self._stop_event.wait(self.prune_interval):
            self.signal_prune()
