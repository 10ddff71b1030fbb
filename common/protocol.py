"""Protocol definitions for stream-testkit.

Contains:
- DuplexStream Protocol for type checking transports
- Timing and sizing defaults for the worker loops and transports
- Logging configuration
"""

import logging
import os
from typing import Protocol

# TRACE logging level (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class DuplexStream(Protocol):
    """Protocol for a transport usable concurrently from a reader and a writer.

    read() returns an empty bytes object when its timeout expires with no data.
    write() either writes the whole buffer or raises TransportIOError.
    """

    def read(self, size: int = ..., /) -> bytes: ...
    def write(self, data: bytes, /) -> int | None: ...
    def reset_input_buffer(self) -> None: ...
    def close(self) -> None: ...


# Generator chunk size in bytes
DEFAULT_CHUNK_SIZE = 100

# Receive buffer capacity (largest expected serial or network burst)
READ_BUFFER_SIZE = 2048

# Worker timing
DEFAULT_TX_INTERVAL_S = 0.001  # Pause between transmit iterations
DEFAULT_REPORT_INTERVAL_S = float(os.environ.get("STREAM_REPORT_INTERVAL", "1.0"))
SHUTDOWN_POLL_S = 0.1  # Main thread poll while waiting for shutdown

# TCP transport timeouts
DEFAULT_TCP_CONNECT_TIMEOUT_S = 10.0
DEFAULT_TCP_READ_TIMEOUT_S = 0.01
DEFAULT_TCP_WRITE_TIMEOUT_S = 10.0

# Serial transport defaults
DEFAULT_SERIAL_READ_TIMEOUT_S = 1.0
DEFAULT_SERIAL_WRITE_TIMEOUT_S = 1.0
