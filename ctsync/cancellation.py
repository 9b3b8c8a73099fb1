"""Cooperative cancellation shared by the source adapter and the write scheduler.

The write scheduler requests a stop once the write budget is spent; the
source adapter checks the token between reads and ends its byte stream. The
pipeline reads :meth:`CancellationToken.is_cancelled` afterwards to tell a
self-requested stop apart from a genuine stream failure.
"""

from __future__ import annotations

import threading
from typing import Optional


class CancellationToken:
    """Thread-safe flag for cooperative early termination.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel("budget reached")
        >>> token.is_cancelled(), token.reason
        (True, 'budget reached')
    """

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()
        self._lock = threading.Lock()
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        """Signal that the stream should stop at the next read boundary."""
        with self._lock:
            if not self._is_cancelled.is_set():
                self.reason = reason
            self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        return self._is_cancelled.is_set()
