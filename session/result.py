"""Session result types for stream-testkit.

Contains:
- Direction: Transmit or receive side of a session
- SessionError: Raised when a session cannot be completed
- SessionResult: Counters and faults collected from one session
"""

from dataclasses import dataclass, field
from enum import Enum

from pattern.generator import MismatchError
from session.throughput import ThroughputSample


class Direction(Enum):
    """Worker direction within a session."""

    TX = "tx"
    RX = "rx"


class SessionError(Exception):
    """Raised when session workers do not shut down as requested."""

    pass


@dataclass
class SessionResult:
    """Result from one device session.

    Attributes:
        name: Session name (usually the device descriptor).
        bytes_sent: Bytes written by the transmit loop.
        chunks_sent: Chunks written by the transmit loop.
        bytes_received: Bytes read and validated by the receive loop.
        backlog: Bytes still pending in the receive generator at shutdown.
        elapsed_s: Time from worker start to both workers exiting.
        samples: Throughput samples, one per closed window.
        tx_error: Fault that stopped the transmit loop, if any.
        rx_error: Fault that stopped the receive loop, if any.
    """

    name: str
    bytes_sent: int = 0
    chunks_sent: int = 0
    bytes_received: int = 0
    backlog: int = 0
    elapsed_s: float = 0.0
    samples: list[ThroughputSample] = field(default_factory=list)
    tx_error: Exception | None = None
    rx_error: Exception | None = None

    @property
    def success(self) -> bool:
        """Return True if neither loop faulted."""
        return self.tx_error is None and self.rx_error is None

    @property
    def mismatch(self) -> bool:
        """Return True if the receive loop stopped on corrupted data."""
        return isinstance(self.rx_error, MismatchError)

    def errors(self) -> list[tuple[Direction, Exception]]:
        """Return the faults by direction."""
        faults = []
        if self.tx_error is not None:
            faults.append((Direction.TX, self.tx_error))
        if self.rx_error is not None:
            faults.append((Direction.RX, self.rx_error))
        return faults

    def avg_kb_per_s(self) -> float:
        """Average receive throughput over the whole session in KB/s."""
        if self.elapsed_s <= 0:
            return 0.0
        return self.bytes_received / self.elapsed_s / 1000

    def peak_kb_per_s(self) -> float:
        """Highest windowed receive throughput in KB/s."""
        if not self.samples:
            return 0.0
        return max(s.kb_per_s for s in self.samples)

    def throughput_baud(self, bits_per_byte: int = 10) -> float:
        """Average receive throughput in baud.

        Args:
            bits_per_byte: Bits per byte including start/stop (default 10 for 8N1).
        """
        if self.elapsed_s <= 0:
            return 0.0
        return (self.bytes_received / self.elapsed_s) * bits_per_byte
