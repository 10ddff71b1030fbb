"""Test runner for stream-testkit.

Contains run_test() which opens the requested transports, starts one
DeviceSession per transport, waits for SIGINT/SIGTERM, the duration
timer or the first fault, then joins the sessions and prints the
final reports.
"""

import logging
import signal
import time
from enum import IntEnum
from types import FrameType

from common.device import DeviceSpec, open_device
from common.errors import TransportConstructionError
from common.protocol import DEFAULT_CHUNK_SIZE, SHUTDOWN_POLL_S, DuplexStream
from pattern.generator import Pattern, PatternGenerator
from session.device import DeviceSession
from session.report import FaultReport, SessionReport, ThroughputReport
from session.result import Direction, SessionError, SessionResult
from session.shutdown import ShutdownSignal
from session.throughput import ThroughputSample
from session.worker import WorkerConfig

logger = logging.getLogger(__name__)

# Upper bound for workers to exit after shutdown (covers a blocked TCP write)
JOIN_GRACE_S = 15.0


class ExitCode(IntEnum):
    """Exit codes for a test run."""

    SUCCESS = 0  # No faults, data received
    TRANSPORT_FAILED = 1  # Transport could not be opened or prepared
    IO_ERROR = 2  # Read or write failed during the run
    MISMATCH = 3  # Received data did not match what was sent
    NO_DATA = 4  # Ran without faults but nothing was received


def _print_throughput(name: str, sample: ThroughputSample) -> None:
    ThroughputReport(name=name, sample=sample).print()


def _exit_code(results: list[SessionResult]) -> ExitCode:
    if any(r.mismatch for r in results):
        return ExitCode.MISMATCH
    if any(not r.success for r in results):
        return ExitCode.IO_ERROR
    if any(r.bytes_received == 0 for r in results):
        return ExitCode.NO_DATA
    return ExitCode.SUCCESS


def run_test(
    first: DeviceSpec,
    second: DeviceSpec | None,
    duration_s: float = 0,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    pattern: Pattern = Pattern.ZERO,
    seed: int = 0,
    config: WorkerConfig | None = None,
    read_timeout: float | None = None,
    rtscts: bool = False,
    shutdown: ShutdownSignal | None = None,
) -> int:
    """Run an echo test (second is None) or a paired test. Returns exit code.

    The run ends on SIGINT/SIGTERM, after duration_s seconds (0 = never),
    or on the first fault in any session.
    """
    shutdown = shutdown or ShutdownSignal()
    specs = [first] if second is None else [first, second]

    def handle_signal(_sig: int, _frame: FrameType | None) -> None:
        logger.info("Signal received - shutting down")
        shutdown.request()

    def handle_fault(name: str, direction: Direction, error: Exception) -> None:
        FaultReport(name=name, direction=direction, error=error).print()
        shutdown.request()

    previous_sigint = signal.signal(signal.SIGINT, handle_signal)
    previous_sigterm = signal.signal(signal.SIGTERM, handle_signal)

    transports: list[DuplexStream] = []
    sessions: list[DeviceSession] = []
    try:
        try:
            for spec in specs:
                transports.append(open_device(spec, read_timeout=read_timeout, rtscts=rtscts))
        except TransportConstructionError as e:
            logger.error(f"Failed to open transport: {e}")
            return ExitCode.TRANSPORT_FAILED

        def make_generator() -> PatternGenerator:
            return PatternGenerator(chunk_size, pattern, seed)

        if second is None:
            generator = make_generator()
            plan = [(str(first), transports[0], generator, generator)]
        else:
            # Each generator is written by one transport and checked by the other
            first_to_second = make_generator()
            second_to_first = make_generator()
            plan = [
                (str(first), transports[0], first_to_second, second_to_first),
                (str(second), transports[1], second_to_first, first_to_second),
            ]

        # Drain every transport before any session transmits
        try:
            for name, transport, tx_generator, rx_generator in plan:
                sessions.append(
                    DeviceSession.prepare(
                        name,
                        transport,
                        tx_generator,
                        rx_generator,
                        shutdown,
                        config=config,
                        on_report=_print_throughput,
                        on_fault=handle_fault,
                    )
                )
        except TransportConstructionError as e:
            logger.error(f"Failed to start session: {e}")
            return ExitCode.TRANSPORT_FAILED

        for session in sessions:
            session.run()

        duration_msg = "until interrupted" if duration_s == 0 else f"for {duration_s}s"
        logger.info(f"Running {len(sessions)} session(s) {duration_msg} (Ctrl-C to stop)")

        start = time.monotonic()
        while not shutdown.wait(SHUTDOWN_POLL_S):
            if duration_s and time.monotonic() - start >= duration_s:
                shutdown.request()
        print("Goodbye!", flush=True)

        results = []
        stuck = False
        for session in sessions:
            try:
                results.append(session.await_completion(timeout=JOIN_GRACE_S))
            except SessionError as e:
                logger.error(str(e))
                stuck = True
        for result in results:
            SessionReport(result=result).print()
        if stuck and not any(r.mismatch for r in results):
            return ExitCode.IO_ERROR
        return _exit_code(results)

    finally:
        for transport in transports:
            transport.close()
        signal.signal(signal.SIGINT, previous_sigint)
        signal.signal(signal.SIGTERM, previous_sigterm)
