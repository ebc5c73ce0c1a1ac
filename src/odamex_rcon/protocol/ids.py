"""Message id allocation."""

from __future__ import annotations

import itertools
import threading


class IdSource:
    """Hands out message ids.

    Ids are monotonically increasing and never reused. Allocation is atomic,
    so one source may be shared between sessions and threads when ids must
    be unique across all of them.
    """

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError(f"start must be non-negative, got {start}")
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self) -> int:
        """Allocate the next id."""
        with self._lock:
            return next(self._counter)
