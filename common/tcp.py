"""TCP transport for stream-testkit.

Contains:
- TcpStream: DuplexStream adapter over a connected socket
- open_tcp: Connect to a TCP endpoint and configure timeouts
"""

import logging
import socket

from common.errors import TransportConstructionError, TransportIOError
from common.protocol import (
    DEFAULT_TCP_CONNECT_TIMEOUT_S,
    DEFAULT_TCP_READ_TIMEOUT_S,
    DEFAULT_TCP_WRITE_TIMEOUT_S,
    READ_BUFFER_SIZE,
)

logger = logging.getLogger(__name__)


class TcpStream:
    """Connected TCP socket split into a read side and a write side.

    The write side is a duplicate of the read socket so each direction
    keeps its own timeout.
    """

    def __init__(
        self,
        reader: socket.socket,
        writer: socket.socket,
        name: str,
        read_timeout: float,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._read_timeout = read_timeout
        self.name = name

    def read(self, size: int = READ_BUFFER_SIZE, /) -> bytes:
        try:
            data = self._reader.recv(size)
        except TimeoutError:
            return b""
        except OSError as e:
            raise TransportIOError(f"{self.name}: read failed: {e}") from e
        if not data:
            raise TransportIOError(f"{self.name}: connection closed by peer")
        return data

    def write(self, data: bytes, /) -> int:
        try:
            self._writer.sendall(data)
        except TimeoutError as e:
            raise TransportIOError(f"{self.name}: write timed out") from e
        except OSError as e:
            raise TransportIOError(f"{self.name}: write failed: {e}") from e
        return len(data)

    def reset_input_buffer(self) -> None:
        """Discard any data already queued on the socket."""
        drained = 0
        self._reader.setblocking(False)
        try:
            while True:
                try:
                    data = self._reader.recv(READ_BUFFER_SIZE)
                except BlockingIOError:
                    break
                if not data:
                    raise TransportIOError(f"{self.name}: connection closed by peer")
                drained += len(data)
        except OSError as e:
            raise TransportIOError(f"{self.name}: failed to drain input: {e}") from e
        finally:
            self._reader.settimeout(self._read_timeout)
        if drained:
            logger.debug(f"Drained {drained} stale bytes from {self.name}")

    def close(self) -> None:
        self._writer.close()
        self._reader.close()
        logger.info(f"Closed {self.name}")


def open_tcp(
    host: str,
    port: int,
    read_timeout: float = DEFAULT_TCP_READ_TIMEOUT_S,
    write_timeout: float = DEFAULT_TCP_WRITE_TIMEOUT_S,
    connect_timeout: float = DEFAULT_TCP_CONNECT_TIMEOUT_S,
) -> TcpStream:
    """Connect to host:port with Nagle disabled and bounded read/write timeouts."""
    name = f"[{host}]:{port}" if ":" in host else f"{host}:{port}"
    try:
        sock = socket.create_connection((host, port), timeout=connect_timeout)
    except OSError as e:
        raise TransportConstructionError(f"Failed to connect to {name}: {e}") from e

    try:
        # Send each chunk as-is instead of coalescing small writes
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        writer = sock.dup()
    except OSError as e:
        sock.close()
        raise TransportConstructionError(f"Failed to configure {name}: {e}") from e

    sock.settimeout(read_timeout)
    writer.settimeout(write_timeout)
    logger.info(f"Connected to {name}")
    logger.debug(
        f"TCP settings: nodelay=1, read_timeout={read_timeout}s, write_timeout={write_timeout}s"
    )
    return TcpStream(sock, writer, name, read_timeout)
