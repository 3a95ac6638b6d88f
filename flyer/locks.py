"""Per-key mutual exclusion for read-modify-write cycles on storage objects.

The storage backend has no atomic append or compare-and-swap, so two
concurrent appends to the same object would each read the same snapshot and
the later upload would discard the earlier one. ``KeyedLock`` serializes work
per key in arrival order while different keys proceed in parallel.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

__all__ = ["KeyedLock"]


class KeyedLock:
    """FIFO lock table keyed by string (the storage object path).

    Each holder gets an event; the next arrival for the same key waits on the
    previous holder's event. The event is always set on exit, whether the
    block returned, raised or was interrupted, so a failed request can never
    wedge later ones.

    Usage:
        locks = KeyedLock()
        with locks.hold("databazy/sk/slovakia.json"):
            ...  # download, merge, upload
    """

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._tails: Dict[str, threading.Event] = {}

    @contextmanager
    def hold(self, key: str, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold ``key`` for the duration of the block.

        Args:
            key: Serialization key.
            timeout: Max seconds to wait for the previous holder. ``None``
                waits forever.

        Raises:
            TimeoutError: If ``timeout`` elapsed before the key was free.
                Later arrivals still wait for the timed-out waiter's
                predecessor, so ordering is preserved.
        """
        done = threading.Event()
        with self._mutex:
            previous = self._tails.get(key)
            self._tails[key] = done

        try:
            if previous is not None and not previous.wait(timeout):
                raise TimeoutError(f"Timed out waiting for lock on {key!r}")
        except BaseException:
            self._release_when_free(key, previous, done)
            raise

        try:
            yield
        finally:
            self._release(key, done)

    def _release_when_free(
        self,
        key: str,
        previous: Optional[threading.Event],
        done: threading.Event,
    ) -> None:
        # Successors wait on ``done``; it may only fire after ``previous`` has.
        if previous is None or previous.is_set():
            self._release(key, done)
            return

        def _wait_then_release() -> None:
            previous.wait()
            self._release(key, done)

        threading.Thread(target=_wait_then_release, daemon=True).start()

    def _release(self, key: str, done: threading.Event) -> None:
        with self._mutex:
            if self._tails.get(key) is done:
                del self._tails[key]
        done.set()

    def is_held(self, key: str) -> bool:
        """Whether anyone currently holds or waits for ``key``."""
        with self._mutex:
            return key in self._tails
