"""Shutdown coordination for stream-testkit sessions."""

import logging
import threading

logger = logging.getLogger(__name__)


class ShutdownSignal:
    """Stop flag shared by every worker of a run.

    request() is the only way to set it. Workers poll is_set() once per
    loop iteration or block on wait() in place of a sleep.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def request(self) -> None:
        if not self._event.is_set():
            logger.debug("Shutdown requested")
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Wait up to timeout seconds; return True once shutdown is requested."""
        return self._event.wait(timeout)
