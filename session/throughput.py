"""Rolling throughput measurement for the receive loop."""

import time
from collections.abc import Callable
from dataclasses import dataclass

from common.protocol import DEFAULT_REPORT_INTERVAL_S


@dataclass(frozen=True)
class ThroughputSample:
    """Bytes received over one closed measurement window."""

    bytes: int
    elapsed_s: float

    @property
    def bytes_per_s(self) -> float:
        if self.elapsed_s <= 0:
            return 0.0
        return self.bytes / self.elapsed_s

    @property
    def kb_per_s(self) -> float:
        return self.bytes_per_s / 1000


class ThroughputMeter:
    """Accumulates byte counts and closes a window every window_s seconds."""

    def __init__(
        self,
        window_s: float = DEFAULT_REPORT_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_s <= 0:
            raise ValueError(f"window_s must be positive, got {window_s}")
        self.window_s = window_s
        self._clock = clock
        self._window_start = clock()
        self._window_bytes = 0
        self.total_bytes = 0

    def add(self, count: int) -> ThroughputSample | None:
        """Record count bytes; return a sample if the window has elapsed."""
        self._window_bytes += count
        self.total_bytes += count

        now = self._clock()
        elapsed = now - self._window_start
        if elapsed < self.window_s:
            return None

        sample = ThroughputSample(bytes=self._window_bytes, elapsed_s=elapsed)
        self._window_bytes = 0
        self._window_start = now
        return sample
