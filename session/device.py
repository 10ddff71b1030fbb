"""Device session lifecycle for stream-testkit.

A DeviceSession binds a transport (opened elsewhere) and one or two
PatternGenerators to a DuplexWorkerPair and owns the worker threads.

Echo mode passes the same generator as tx_generator and rx_generator.
Paired mode runs two sessions with crossed generators so that what one
transport sends is validated by the other.
"""

import logging

from common.errors import TransportConstructionError, TransportIOError
from common.protocol import DuplexStream
from pattern.generator import PatternGenerator
from session.result import Direction, SessionError, SessionResult
from session.shutdown import ShutdownSignal
from session.worker import (
    DuplexWorkerPair,
    FaultCallback,
    ReportCallback,
    WorkerConfig,
    WorkerState,
)

logger = logging.getLogger(__name__)


class DeviceSession:
    """A running transmit/receive worker pair on one transport."""

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
        self.transport = transport
        self.tx_generator = tx_generator
        self.rx_generator = rx_generator
        self.workers = DuplexWorkerPair(
            name,
            transport,
            tx_generator,
            rx_generator,
            shutdown,
            config=config,
            on_report=on_report,
            on_fault=on_fault,
        )

    @classmethod
    def prepare(
        cls,
        name: str,
        transport: DuplexStream,
        tx_generator: PatternGenerator,
        rx_generator: PatternGenerator,
        shutdown: ShutdownSignal,
        config: WorkerConfig | None = None,
        on_report: ReportCallback | None = None,
        on_fault: FaultCallback | None = None,
    ) -> "DeviceSession":
        """Drain stale input from the transport and return an unstarted session.

        In paired mode, prepare every session before running any of them so
        the drain cannot discard bytes a peer has already sent.

        Raises TransportConstructionError if stale input cannot be drained.
        """
        try:
            transport.reset_input_buffer()
        except (TransportIOError, OSError) as e:
            raise TransportConstructionError(f"{name}: failed to prepare transport: {e}") from e

        return cls(
            name,
            transport,
            tx_generator,
            rx_generator,
            shutdown,
            config=config,
            on_report=on_report,
            on_fault=on_fault,
        )

    @classmethod
    def start(
        cls,
        name: str,
        transport: DuplexStream,
        tx_generator: PatternGenerator,
        rx_generator: PatternGenerator,
        shutdown: ShutdownSignal,
        config: WorkerConfig | None = None,
        on_report: ReportCallback | None = None,
        on_fault: FaultCallback | None = None,
    ) -> "DeviceSession":
        """Prepare the transport and spawn the transmit and receive loops."""
        session = cls.prepare(
            name,
            transport,
            tx_generator,
            rx_generator,
            shutdown,
            config=config,
            on_report=on_report,
            on_fault=on_fault,
        )
        session.run()
        return session

    def run(self) -> None:
        """Spawn the transmit and receive loops."""
        mode = "echo" if self.tx_generator is self.rx_generator else "paired"
        logger.info(
            f"{self.name}: starting session ({mode} mode, chunk={self.tx_generator.chunk_size})"
        )
        self.workers.start()

    @property
    def running(self) -> bool:
        """Return True while either loop is still running."""
        return any(self.workers.state(d) == WorkerState.RUNNING for d in Direction)

    def await_completion(self, timeout: float | None = None) -> SessionResult:
        """Block until both workers have exited and return the session result.

        Raises SessionError if the workers are still alive after timeout.
        """
        if not self.workers.join(timeout):
            raise SessionError(f"{self.name}: workers did not stop within {timeout}s")

        workers = self.workers
        result = SessionResult(
            name=self.name,
            bytes_sent=workers.bytes_sent,
            chunks_sent=workers.chunks_sent,
            bytes_received=workers.bytes_received,
            backlog=self.rx_generator.backlog_size,
            elapsed_s=workers.elapsed_s,
            samples=list(workers.samples),
            tx_error=workers.errors.get(Direction.TX),
            rx_error=workers.errors.get(Direction.RX),
        )
        logger.info(
            f"{self.name}: session complete ({result.bytes_sent} bytes sent, "
            f"{result.bytes_received} bytes received, {result.backlog} pending)"
        )
        return result
