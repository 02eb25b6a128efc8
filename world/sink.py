"""Single-consumer sink: many producers, exactly one owner applies results.

Workers hand finished items over with :meth:`SerialSink.put`, which never
blocks. One owner thread calls the consumer for every item. The owner is
either the sink's own drain thread (:meth:`start`) or whichever thread first
pumps it with :meth:`drain`, e.g. a render loop doing a bounded amount of
integration per frame.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Consumer = Callable[[Any], None]
DoneCallback = Callable[[Any, Optional[BaseException]], None]

_STOP = object()


class SerialSink:
    def __init__(self, consumer: Consumer):
        self.consumer = consumer
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._thread: threading.Thread | None = None
        self._owner: int | None = None
        self._owner_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self.integrated = 0
        self.errors = 0

    # ── Producer side ──────────────────────────────────────────────────

    def put(self, item: Any, done: DoneCallback | None = None) -> None:
        """Queue ``item`` for the owner. ``done(item, error)`` runs on the owner after the consumer."""
        self._queue.put((item, done))

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ── Owner side ─────────────────────────────────────────────────────

    def start(self, name: str = "block-sink") -> "SerialSink":
        with self._owner_lock:
            if self._thread is not None:
                raise RuntimeError("sink already started")
            if self._owner is not None:
                raise RuntimeError("sink is already drained by another thread")
            self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()
        return self

    def drain(self, max_items: int | None = None) -> int:
        """Integrate queued items on the calling thread. Returns how many were handled."""
        me = threading.get_ident()
        with self._owner_lock:
            if self._thread is not None:
                raise RuntimeError("sink has its own drain thread")
            if self._owner is None:
                self._owner = me
            elif self._owner != me:
                raise RuntimeError("sink can only be drained by its owning thread")

        handled = 0
        while max_items is None or handled < max_items:
            try:
                entry = self._queue.get_nowait()
            except queue.Empty:
                break
            if entry is _STOP:
                continue
            self._integrate(*entry)
            handled += 1
        return handled

    def stop(self) -> None:
        """Ask the drain thread to exit after what is already queued. Safe to call from the owner."""
        if self._thread is not None:
            self._queue.put(_STOP)

    def close(self, timeout: float | None = None) -> None:
        """Stop the drain thread and wait for it."""
        thread = self._thread
        if thread is None:
            return
        self.stop()
        thread.join(timeout)
        if thread.is_alive():
            logger.warning(f"Sink thread {thread.name} did not stop within {timeout}s")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def owner_ident(self) -> int | None:
        if self._thread is not None:
            return self._thread.ident
        return self._owner

    def _run(self) -> None:
        self._owner = threading.get_ident()
        while True:
            entry = self._queue.get()
            if entry is _STOP:
                break
            self._integrate(*entry)

    def _integrate(self, item: Any, done: DoneCallback | None) -> None:
        error: BaseException | None = None
        try:
            self.consumer(item)
        except Exception as e:
            error = e
            logger.warning(f"Sink consumer failed on {item!r}: {e}")
        with self._stats_lock:
            if error is None:
                self.integrated += 1
            else:
                self.errors += 1
        if done is not None:
            done(item, error)
