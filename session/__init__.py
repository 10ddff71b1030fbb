"""Session package for stream-testkit.

This package drives a transport with generated traffic:
- Concurrent transmit and receive loops (DuplexWorkerPair)
- Session lifecycle and shutdown (DeviceSession, ShutdownSignal)
- Throughput measurement and reporting

Note: run_test is not exported here; import it from session.runner.
"""

from session.device import DeviceSession
from session.report import FaultReport, SessionReport, ThroughputReport
from session.result import Direction, SessionError, SessionResult
from session.shutdown import ShutdownSignal
from session.throughput import ThroughputMeter, ThroughputSample
from session.worker import DuplexWorkerPair, WorkerConfig, WorkerState

__all__ = [
    "DeviceSession",
    "Direction",
    "DuplexWorkerPair",
    "FaultReport",
    "SessionError",
    "SessionReport",
    "SessionResult",
    "ShutdownSignal",
    "ThroughputMeter",
    "ThroughputReport",
    "ThroughputSample",
    "WorkerConfig",
    "WorkerState",
]
