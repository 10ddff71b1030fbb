"""Transmit/receive worker pair for stream-testkit.

Contains:
- WorkerConfig: Pacing, read size and report window for both loops
- WorkerState: Lifecycle of a single worker thread
- DuplexWorkerPair: Concurrent transmit and receive loops on one transport

The transmit loop pulls chunks from a PatternGenerator and writes them to
the transport. The receive loop reads whatever arrives, validates it
against a PatternGenerator and measures throughput. Passing the same
generator to both loops tests an echo path.

A transport fault or a validation mismatch stops the affected loop at
once. It is not retried: continuing after the backlog is out of step
with the wire would only produce meaningless mismatches.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from common.errors import TransportIOError
from common.protocol import (
    DEFAULT_REPORT_INTERVAL_S,
    DEFAULT_TX_INTERVAL_S,
    READ_BUFFER_SIZE,
    TRACE,
    DuplexStream,
)
from pattern.generator import MismatchError, PatternGenerator
from session.result import Direction
from session.shutdown import ShutdownSignal
from session.throughput import ThroughputMeter, ThroughputSample

logger = logging.getLogger(__name__)

ReportCallback = Callable[[str, ThroughputSample], None]
FaultCallback = Callable[[str, Direction, Exception], None]


@dataclass(frozen=True)
class WorkerConfig:
    """Timing and sizing for the worker loops."""

    tx_interval_s: float = DEFAULT_TX_INTERVAL_S
    read_size: int = READ_BUFFER_SIZE
    report_interval_s: float = DEFAULT_REPORT_INTERVAL_S


class WorkerState(Enum):
    """Lifecycle of one worker loop."""

    CREATED = "created"
    RUNNING = "running"
    STOPPING = "stopping"  # Loop exited, thread not yet joined
    STOPPED = "stopped"


class DuplexWorkerPair:
    """One transmit loop and one receive loop sharing a transport."""

    def __init__(
        self,
        name: str,
        transport: DuplexStream,
        tx_generator: PatternGenerator,
        rx_generator: PatternGenerator,
        shutdown: ShutdownSignal,
        config: WorkerConfig | None = None,
        on_report: ReportCallback | None = None,
        on_fault: FaultCallback | None = None,
    ) -> None:
        self.name = name
        self._transport = transport
        self._tx_generator = tx_generator
        self._rx_generator = rx_generator
        self._shutdown = shutdown
        self._config = config or WorkerConfig()
        self._on_report = on_report
        self._on_fault = on_fault

        self.bytes_sent = 0
        self.chunks_sent = 0
        self.bytes_received = 0
        self.samples: list[ThroughputSample] = []
        self.errors: dict[Direction, Exception] = {}

        self._states = {d: WorkerState.CREATED for d in Direction}
        self._threads: dict[Direction, threading.Thread] = {}
        self._started_at = 0.0
        self._stopped_at: dict[Direction, float] = {}

    def state(self, direction: Direction) -> WorkerState:
        return self._states[direction]

    @property
    def elapsed_s(self) -> float:
        """Time from start until the last loop exited (or until now)."""
        if not self._started_at:
            return 0.0
        if len(self._stopped_at) == len(Direction):
            return max(self._stopped_at.values()) - self._started_at
        return time.monotonic() - self._started_at

    def start(self) -> None:
        """Spawn both worker threads."""
        if self._threads:
            raise RuntimeError(f"{self.name}: workers already started")

        loops = {Direction.TX: self._tx_loop, Direction.RX: self._rx_loop}
        for direction, loop in loops.items():
            self._threads[direction] = threading.Thread(
                target=self._run,
                args=(direction, loop),
                name=f"{self.name}-{direction.value}",
                daemon=True,
            )

        self._started_at = time.monotonic()
        for direction, thread in self._threads.items():
            self._states[direction] = WorkerState.RUNNING
            thread.start()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for both threads to exit. Returns True if both did."""
        deadline = None if timeout is None else time.monotonic() + timeout
        for direction, thread in self._threads.items():
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
            if not thread.is_alive():
                self._states[direction] = WorkerState.STOPPED
        return all(not t.is_alive() for t in self._threads.values())

    def _run(self, direction: Direction, loop: Callable[[], None]) -> None:
        logger.info(f"{self.name}: {direction.value} started")
        try:
            loop()
        except (TransportIOError, MismatchError) as e:
            self._fault(direction, e)
        except Exception as e:
            logger.exception(f"{self.name}: unexpected {direction.value} error")
            self._fault(direction, e)
        finally:
            self._stopped_at[direction] = time.monotonic()
            self._states[direction] = WorkerState.STOPPING
            logger.info(f"{self.name}: {direction.value} stopped")

    def _fault(self, direction: Direction, error: Exception) -> None:
        self.errors[direction] = error
        logger.error(f"{self.name}: {direction.value} fault: {error}")
        if self._on_fault is not None:
            self._on_fault(self.name, direction, error)

    def _tx_loop(self) -> None:
        while not self._shutdown.is_set():
            chunk = self._tx_generator.generate()
            written = self._transport.write(chunk)
            if written is not None and written != len(chunk):
                raise TransportIOError(
                    f"{self.name}: partial write ({written}/{len(chunk)} bytes)"
                )
            self.bytes_sent += len(chunk)
            self.chunks_sent += 1
            logger.log(TRACE, f"{self.name}: sent chunk {self.chunks_sent} ({len(chunk)} bytes)")
            # Pace writes for transports without flow control
            self._shutdown.wait(self._config.tx_interval_s)

    def _rx_loop(self) -> None:
        meter = ThroughputMeter(self._config.report_interval_s)
        while not self._shutdown.is_set():
            data = self._transport.read(self._config.read_size)
            if data:
                self._rx_generator.validate(data)
                self.bytes_received += len(data)
                logger.log(TRACE, f"{self.name}: validated {len(data)} bytes")

            sample = meter.add(len(data))
            if sample is not None:
                self.samples.append(sample)
                if self._on_report is not None:
                    self._on_report(self.name, sample)
