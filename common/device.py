"""Device descriptors and serial transport for stream-testkit.

Contains:
- DeviceKind / DeviceSpec: Parsed TYPE:DEVICE descriptors
- parse_device_spec: Parse tcp:HOST:PORT and serial:DEVICE:BAUD descriptors
- SerialStream: DuplexStream adapter over a pyserial port
- log_device_info: Log information about a serial device
- open_serial: Open and configure a serial port
- open_device: Open the transport described by a DeviceSpec
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum

import serial
import serial.tools.list_ports

from common.errors import TransportConstructionError, TransportIOError
from common.protocol import (
    DEFAULT_SERIAL_READ_TIMEOUT_S,
    DEFAULT_SERIAL_WRITE_TIMEOUT_S,
    DEFAULT_TCP_READ_TIMEOUT_S,
    READ_BUFFER_SIZE,
    DuplexStream,
)
from common.tcp import open_tcp

logger = logging.getLogger(__name__)

# Second-position descriptor selecting loopback mode against the first device
ECHO = "echo"


class DeviceKind(Enum):
    """Transport type named by the descriptor prefix."""

    TCP = "tcp"
    SERIAL = "serial"


@dataclass(frozen=True)
class DeviceSpec:
    """A parsed device descriptor.

    For TCP, address is the host and port is set.
    For serial, address is the device path or pyserial URL and baudrate is set.
    Construction raises ValueError if the field its kind needs is missing.
    """

    kind: DeviceKind
    address: str
    port: int | None = None
    baudrate: int | None = None

    def __post_init__(self) -> None:
        if self.kind == DeviceKind.TCP and self.port is None:
            raise ValueError(f"tcp device {self.address!r} needs a port")
        if self.kind == DeviceKind.SERIAL and self.baudrate is None:
            raise ValueError(f"serial device {self.address!r} needs a baud rate")

    def __str__(self) -> str:
        if self.kind == DeviceKind.TCP:
            host = f"[{self.address}]" if ":" in self.address else self.address
            return f"tcp:{host}:{self.port}"
        return f"serial:{self.address}:{self.baudrate}"


def _split_number(config: str, text: str, what: str) -> tuple[str, int]:
    """Split 'HEAD:NUMBER' on the last colon."""
    head, sep, tail = config.rpartition(":")
    if not sep or not head:
        raise ValueError(f"missing {what} in device {text!r}")
    try:
        value = int(tail)
    except ValueError:
        raise ValueError(f"invalid {what} {tail!r} in device {text!r}") from None
    if value <= 0:
        raise ValueError(f"invalid {what} {value} in device {text!r}")
    return head, value


def parse_device_spec(text: str) -> DeviceSpec:
    """Parse a tcp:HOST:PORT or serial:DEVICE:BAUD descriptor.

    Raises ValueError for anything else.
    """
    kind_name, sep, config = text.partition(":")
    if not sep or not config:
        raise ValueError(
            f"unsupported device {text!r} (expected tcp:HOST:PORT or serial:DEVICE:BAUD)"
        )

    match kind_name:
        case DeviceKind.TCP.value:
            host, port = _split_number(config, text, "port")
            if port > 65535:
                raise ValueError(f"invalid port {port} in device {text!r}")
            if host.startswith("[") and host.endswith("]"):
                host = host[1:-1]
            return DeviceSpec(kind=DeviceKind.TCP, address=host, port=port)
        case DeviceKind.SERIAL.value:
            device, baudrate = _split_number(config, text, "baud rate")
            return DeviceSpec(kind=DeviceKind.SERIAL, address=device, baudrate=baudrate)
        case _:
            raise ValueError(
                f"unsupported device {text!r} (expected tcp:HOST:PORT or serial:DEVICE:BAUD)"
            )


class SerialStream:
    """pyserial port exposed as a DuplexStream.

    pyserial supports one thread reading while another writes on the same port.
    """

    def __init__(self, ser: serial.Serial) -> None:
        self._serial = ser
        self.name = ser.name or ser.port

    def read(self, size: int = READ_BUFFER_SIZE, /) -> bytes:
        try:
            # Block for the first byte, then take whatever else is waiting
            waiting = self._serial.in_waiting
            return self._serial.read(min(size, max(1, waiting)))
        except serial.SerialException as e:
            raise TransportIOError(f"{self.name}: read failed: {e}") from e

    def write(self, data: bytes, /) -> int | None:
        try:
            return self._serial.write(data)
        except serial.SerialTimeoutException as e:
            raise TransportIOError(f"{self.name}: write timed out") from e
        except serial.SerialException as e:
            raise TransportIOError(f"{self.name}: write failed: {e}") from e

    def reset_input_buffer(self) -> None:
        try:
            self._serial.reset_input_buffer()
        except serial.SerialException as e:
            raise TransportIOError(f"{self.name}: failed to drain input: {e}") from e

    def close(self) -> None:
        if self._serial.is_open:
            self._serial.close()
            logger.info(f"Closed {self.name}")


def log_device_info(device: str) -> None:
    """Log information about a serial device."""
    if "://" in device:
        logger.info(f"Device: {device} (pyserial URL)")
        return

    real_path = os.path.realpath(device)
    if real_path.startswith("/dev/pts/"):
        logger.info(f"Device: {device} -> {real_path} (pty)")
        return

    ports = [p for p in serial.tools.list_ports.comports() if p.device == device]
    if len(ports) == 0:
        logger.info(f"Device: {device} (not in port list)")
        return
    if len(ports) > 1:
        raise TransportConstructionError(f"Multiple ports found for device {device}")

    info = ports[0]
    logger.info(f"Device: {info.device}")
    logger.info(f"Description: {info.description}")
    if info.vid is not None:
        logger.info(f"VID:PID: {info.vid:04x}:{info.pid:04x}")


def open_serial(
    device: str,
    baudrate: int,
    rtscts: bool = False,
    read_timeout: float = DEFAULT_SERIAL_READ_TIMEOUT_S,
    write_timeout: float = DEFAULT_SERIAL_WRITE_TIMEOUT_S,
) -> SerialStream:
    """Open and configure a serial port (8N1) or pyserial URL such as loop://."""
    log_device_info(device)
    try:
        ser = serial.serial_for_url(
            device,
            baudrate=baudrate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            xonxoff=False,
            rtscts=rtscts,
            timeout=read_timeout,
            write_timeout=write_timeout,
        )
        ser.reset_output_buffer()
    except (serial.SerialException, ValueError) as e:
        raise TransportConstructionError(
            f"Failed to open serial device {device} with baud rate {baudrate}: {e}"
        ) from e
    logger.debug(
        f"Serial port: baudrate={ser.baudrate}, rtscts={ser.rtscts}, "
        f"timeout={ser.timeout}s, write_timeout={ser.write_timeout}s"
    )
    return SerialStream(ser)


def open_device(
    spec: DeviceSpec,
    read_timeout: float | None = None,
    rtscts: bool = False,
) -> DuplexStream:
    """Open the transport described by spec.

    read_timeout overrides the per-transport default when given.
    Raises TransportConstructionError on failure.
    """
    match spec.kind:
        case DeviceKind.TCP:
            return open_tcp(
                spec.address,
                spec.port,
                read_timeout=read_timeout if read_timeout is not None else DEFAULT_TCP_READ_TIMEOUT_S,
            )
        case DeviceKind.SERIAL:
            return open_serial(
                spec.address,
                spec.baudrate,
                rtscts=rtscts,
                read_timeout=(
                    read_timeout if read_timeout is not None else DEFAULT_SERIAL_READ_TIMEOUT_S
                ),
            )
