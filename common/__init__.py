"""Common modules for stream-testkit.

This package contains the transport-facing code shared by every session:
- protocol: DuplexStream Protocol, timing and sizing constants
- errors: Transport exceptions
- device: Device descriptors, serial transport, open_device
- tcp: TCP transport
- report: Reporting abstractions
"""

from common.device import ECHO, DeviceKind, DeviceSpec, open_device, parse_device_spec
from common.errors import TransportConstructionError, TransportIOError
from common.protocol import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_REPORT_INTERVAL_S,
    DEFAULT_TX_INTERVAL_S,
    READ_BUFFER_SIZE,
    DuplexStream,
)

__all__ = [
    # Protocol
    "DuplexStream",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_REPORT_INTERVAL_S",
    "DEFAULT_TX_INTERVAL_S",
    "READ_BUFFER_SIZE",
    # Devices
    "ECHO",
    "DeviceKind",
    "DeviceSpec",
    "open_device",
    "parse_device_spec",
    # Exceptions
    "TransportConstructionError",
    "TransportIOError",
]
