"""Session reporting for stream-testkit.

Contains:
- ThroughputReport: Periodic receive throughput line
- FaultReport: Immediate report of a transport fault or mismatch
- SessionReport: Final report after a session shuts down
"""

from dataclasses import dataclass

from common.report import Report
from session.result import Direction, SessionResult
from session.throughput import ThroughputSample

# Minimum duration for reliable throughput measurement
THROUGHPUT_MIN_DURATION_S = 30


@dataclass
class ThroughputReport(Report):
    """Throughput observed over one measurement window."""

    name: str
    sample: ThroughputSample

    def print(self) -> None:
        s = self.sample
        print(
            f"[{self.name}] transmission speed: {s.kb_per_s:.2f} KB/s "
            f"({s.bytes} bytes in {s.elapsed_s:.2f}s)",
            flush=True,
        )

    def success(self) -> bool:
        return self.sample.bytes > 0


@dataclass
class FaultReport(Report):
    """A fault that stopped one direction of a session."""

    name: str
    direction: Direction
    error: Exception

    def print(self) -> None:
        print(
            f"[{self.name}] {self.direction.value} FAULT: "
            f"{type(self.error).__name__}: {self.error}",
            flush=True,
        )

    def success(self) -> bool:
        return False


@dataclass
class SessionReport(Report):
    """Report after a session shuts down."""

    result: SessionResult

    def print(self) -> None:
        """Print the session report."""
        r = self.result
        counts = (
            f"{r.bytes_sent} bytes sent, {r.bytes_received} bytes received, "
            f"{r.backlog} pending"
        )

        if not r.success:
            print(f"Session [{r.name}]: FAILED ({counts})")
            for direction, error in r.errors():
                print(f"         {direction.value}: {type(error).__name__}: {error}")
            return

        print(f"Session [{r.name}]: SUCCESS ({counts})")

        if r.elapsed_s > 0 and r.bytes_received > 0:
            print(
                f"Throughput: avg {r.avg_kb_per_s():.2f} KB/s, peak {r.peak_kb_per_s():.2f} KB/s "
                f"({r.throughput_baud():,.0f} baud) over {r.elapsed_s:.1f}s"
            )
            if r.elapsed_s < THROUGHPUT_MIN_DURATION_S:
                print("(Note: throughput from short test may not reflect sustained performance)")

    def success(self) -> bool:
        """Return True if the session had no faults and received data."""
        return self.result.success and self.result.bytes_received > 0
