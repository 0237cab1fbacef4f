"""Debounced writer for the persisted week mapping.

Writes are coalesced: scheduling a new payload before the timer fires
replaces the pending one, so only the latest mapping reaches storage.
``flush`` writes the pending payload synchronously.
"""

import logging
import threading
from typing import Callable, Optional

from crewschedule.exceptions import StorageError

logger = logging.getLogger(__name__)


class WriteQueue:
    """Last-write-wins debounced writer.

    Example:
        >>> queue = WriteQueue(lambda payload: storage.set_item("key", payload))
        >>> queue.schedule('{"2024-01-01": []}')
        >>> queue.flush()
    """

    def __init__(self, write: Callable[[str], None], delay_seconds: float = 0.3):
        self._write = write
        self.delay_seconds = delay_seconds
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._pending: Optional[str] = None
        self._timer: Optional[threading.Timer] = None
        self.last_error: Optional[StorageError] = None

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def schedule(self, payload: str) -> None:
        """Queue a payload, replacing any pending one and restarting the timer."""
        with self._lock:
            self._pending = payload
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay_seconds, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def write_now(self, payload: str) -> None:
        """Write a payload synchronously, superseding anything pending.

        Raises:
            StorageError: If the write fails. Nothing is queued in that case.
        """
        with self._write_lock:
            with self._lock:
                self._pending = None
                self._cancel_timer()
            self._write(payload)
            self.last_error = None

    def discard(self) -> None:
        """Drop the pending payload without writing it."""
        with self._lock:
            self._pending = None
            self._cancel_timer()

    def flush(self) -> None:
        """Write the pending payload now.

        Raises:
            StorageError: If the write fails. The payload stays pending.
        """
        with self._lock:
            self._cancel_timer()
        self._drain()

    def close(self) -> None:
        """Stop the timer. Pending data is kept until flushed or discarded."""
        with self._lock:
            self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        try:
            self._drain()
        except StorageError as exc:
            # No caller to raise to on the timer thread; flush() will retry
            logger.error("Debounced schedule write failed: %s", exc)
            self.last_error = exc

    def _drain(self) -> None:
        with self._write_lock:
            with self._lock:
                payload, self._pending = self._pending, None
                self._timer = None
            if payload is None:
                return
            try:
                self._write(payload)
            except StorageError:
                with self._lock:
                    if self._pending is None:
                        self._pending = payload
                raise
            self.last_error = None
            logger.debug("Flushed queued schedule write (%d bytes)", len(payload))
