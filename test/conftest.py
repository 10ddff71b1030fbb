"""pytest configuration and fixtures for stream-testkit tests.

Provides:
- LoopbackStream: In-process echo transport for worker and session tests
- ConnectedStreams: Crossed in-process transport pair for paired-mode tests
- TcpEchoServer: Threaded TCP echo server (optionally corrupting) for transport tests
- TcpRelayServer: Two-client TCP relay standing in for a serial-to-TCP bridge
- socat PTY echo fixture for serial integration tests
- Markers for unit vs integration tests
"""

import re
import socket
import subprocess
import sys
import threading
import time
from collections.abc import Callable, Generator
from pathlib import Path

import pytest


class _Pipe:
    """One-way byte buffer with blocking-with-timeout reads."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._cond = threading.Condition()

    def put(self, data: bytes) -> None:
        with self._cond:
            self._buffer += data
            self._cond.notify_all()

    def get(self, size: int, timeout: float) -> bytes:
        with self._cond:
            if not self._buffer:
                self._cond.wait(timeout)
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
            return data

    def clear(self) -> None:
        with self._cond:
            self._buffer.clear()


class _PipeStream:
    """DuplexStream that writes to one pipe and reads from another."""

    def __init__(self, tx: _Pipe, rx: _Pipe, read_timeout: float) -> None:
        self._tx = tx
        self._rx = rx
        self.read_timeout = read_timeout
        self.closed = False

    def write(self, data: bytes, /) -> int:
        self._tx.put(data)
        return len(data)

    def read(self, size: int = 2048, /) -> bytes:
        return self._rx.get(size, self.read_timeout)

    def reset_input_buffer(self) -> None:
        self._rx.clear()

    def close(self) -> None:
        self.closed = True

    def inject(self, data: bytes) -> None:
        """Inject data as if it came from the peer (for testing)."""
        self._rx.put(data)


class LoopbackStream(_PipeStream):
    """Perfect in-process echo: every written byte is read back unchanged."""

    def __init__(self, read_timeout: float = 0.01) -> None:
        pipe = _Pipe()
        super().__init__(pipe, pipe, read_timeout)


class ConnectedStreams:
    """Crossed transport pair: data written to port_a is read from port_b and vice versa."""

    def __init__(self, read_timeout: float = 0.01) -> None:
        a_to_b = _Pipe()
        b_to_a = _Pipe()
        self.port_a = _PipeStream(a_to_b, b_to_a, read_timeout)
        self.port_b = _PipeStream(b_to_a, a_to_b, read_timeout)


class TcpEchoServer(threading.Thread):
    """TCP echo server on an ephemeral localhost port.

    transform, if given, is applied to each received block before it is
    sent back (return b"" to swallow it).
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        transform: Callable[[bytes], bytes] | None = None,
    ) -> None:
        super().__init__(daemon=True)
        self.host = host
        self.transform = transform
        self.port = 0
        self.ready = threading.Event()
        self.running = True
        self._sock: socket.socket | None = None
        self._clients: list[socket.socket] = []

    def run(self) -> None:
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind((self.host, 0))
        self.port = self._sock.getsockname()[1]
        self._sock.listen(8)
        self._sock.settimeout(0.2)
        self.ready.set()

        while self.running:
            try:
                conn, _ = self._sock.accept()
            except TimeoutError:
                continue
            except OSError:
                break
            self._clients.append(conn)
            threading.Thread(target=self._echo, args=(conn,), daemon=True).start()

    def _echo(self, conn: socket.socket) -> None:
        try:
            while True:
                data = conn.recv(4096)
                if not data:
                    break
                if self.transform is not None:
                    data = self.transform(data)
                if data:
                    conn.sendall(data)
        except OSError:
            pass  # Client went away
        finally:
            conn.close()

    def disconnect_clients(self) -> None:
        """Close every accepted connection from the server side."""
        for conn in self._clients:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        self._clients.clear()

    def stop(self) -> None:
        self.running = False
        self.disconnect_clients()
        if self._sock:
            self._sock.close()
        self.join(timeout=2)


class TcpRelayServer(threading.Thread):
    """Accepts two TCP clients and forwards bytes between them.

    Stands in for a serial-to-TCP bridge where both ends are reachable
    over TCP.
    """

    def __init__(self, host: str = "127.0.0.1") -> None:
        super().__init__(daemon=True)
        self.host = host
        self.port = 0
        self.ready = threading.Event()
        self.running = True
        self._sock: socket.socket | None = None
        self._clients: list[socket.socket] = []

    def run(self) -> None:
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind((self.host, 0))
        self.port = self._sock.getsockname()[1]
        self._sock.listen(2)
        self._sock.settimeout(0.2)
        self.ready.set()

        while self.running and len(self._clients) < 2:
            try:
                conn, _ = self._sock.accept()
            except TimeoutError:
                continue
            except OSError:
                return
            conn.settimeout(None)
            self._clients.append(conn)
        if len(self._clients) < 2:
            return  # Stopped before both clients connected

        first, second = self._clients
        for src, dst in ((first, second), (second, first)):
            threading.Thread(target=self._forward, args=(src, dst), daemon=True).start()

    def _forward(self, src: socket.socket, dst: socket.socket) -> None:
        try:
            while True:
                data = src.recv(4096)
                if not data:
                    break
                dst.sendall(data)
        except OSError:
            pass  # Either side went away

    def stop(self) -> None:
        self.running = False
        if self._sock:
            self._sock.close()
        for conn in self._clients:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            conn.close()
        self.join(timeout=2)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test (requires socat)")


@pytest.fixture
def loopback() -> LoopbackStream:
    """A perfect in-process echo transport."""
    return LoopbackStream()


@pytest.fixture
def connected_streams() -> ConnectedStreams:
    """A crossed in-process transport pair."""
    return ConnectedStreams()


@pytest.fixture
def tcp_echo_server() -> Generator[TcpEchoServer, None, None]:
    """A running TCP echo server; use .host and .port to connect."""
    server = TcpEchoServer()
    server.start()
    if not server.ready.wait(5):
        pytest.fail("TCP echo server did not start")
    yield server
    server.stop()


@pytest.fixture
def tcp_server_factory() -> Generator[Callable[..., TcpEchoServer], None, None]:
    """Start TCP echo servers with a custom transform; all are stopped on teardown."""
    servers: list[TcpEchoServer] = []

    def factory(transform: Callable[[bytes], bytes] | None = None) -> TcpEchoServer:
        server = TcpEchoServer(transform=transform)
        server.start()
        if not server.ready.wait(5):
            pytest.fail("TCP echo server did not start")
        servers.append(server)
        return server

    yield factory
    for server in servers:
        server.stop()


@pytest.fixture
def tcp_relay_server() -> Generator[TcpRelayServer, None, None]:
    """A running two-client TCP relay; use .host and .port to connect."""
    server = TcpRelayServer()
    server.start()
    if not server.ready.wait(5):
        pytest.fail("TCP relay server did not start")
    yield server
    server.stop()


@pytest.fixture
def unused_tcp_port() -> int:
    """A localhost port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def serial_echo_pty() -> Generator[str, None, None]:
    """Create a PTY whose output is echoed back by socat through cat.

    Yields the PTY device path.

    Requires: socat installed and Linux platform.
    """
    if sys.platform != "linux":
        pytest.skip("socat PTY fixture requires Linux")

    try:
        subprocess.run(["which", "socat"], check=True, capture_output=True)
    except subprocess.CalledProcessError:
        pytest.skip("socat not installed")

    socat = subprocess.Popen(
        ["socat", "-d", "-d", "pty,raw,echo=0", "exec:/bin/cat"],
        stderr=subprocess.PIPE,
        text=True,
    )

    pty: str | None = None
    try:
        for _ in range(20):
            if socat.poll() is not None:
                raise RuntimeError(f"socat exited early with code {socat.returncode}")

            assert socat.stderr is not None
            line = socat.stderr.readline()
            match = re.search(r"PTY is (/dev/pts/\d+)", line)
            if match:
                pty = match.group(1)
                break
            time.sleep(0.05)
        else:
            raise RuntimeError("Failed to get PTY from socat")

        yield pty

    finally:
        if socat.poll() is None:
            socat.terminate()
            socat.wait(timeout=5)
        if socat.stderr:
            socat.stderr.close()


@pytest.fixture
def script_dir() -> Path:
    """Return path to the project root."""
    return Path(__file__).parent.parent


@pytest.fixture
def streamtest_path(script_dir: Path) -> Path:
    """Return path to streamtest.py."""
    return script_dir / "streamtest.py"

