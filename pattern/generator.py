"""Reference pattern generator and validator.

A PatternGenerator hands out fixed-size chunks of a reproducible byte
pattern and remembers every byte it produced until the receive side
confirms it. Validation pops bytes from the head of that backlog, so
received data is checked in transmission order without any framing or
sequence numbers in the payload.

Partial reads are fine: validate() may be called with fewer (or more)
bytes than one chunk, as long as the total never exceeds what was
generated.
"""

import random
import threading
from enum import Enum

from common.protocol import DEFAULT_CHUNK_SIZE


class Pattern(Enum):
    """Byte pattern produced by a generator."""

    ZERO = "zero"  # All-zero chunks
    COUNTER = "counter"  # Byte value = stream offset mod 256
    RANDOM = "random"  # Seeded pseudo-random bytes


class MismatchError(Exception):
    """Raised when received bytes do not match the oldest pending bytes.

    Also raised when more bytes arrive than were ever generated.

    Attributes:
        offset: Absolute stream offset of the first bad byte (or of the
            first byte past the backlog for an underflow).
        expected: Byte value the generator produced at offset, if any.
        actual: Byte value received at offset.
    """

    def __init__(
        self,
        message: str,
        offset: int,
        expected: int | None = None,
        actual: int | None = None,
    ) -> None:
        super().__init__(message)
        self.offset = offset
        self.expected = expected
        self.actual = actual


class PatternGenerator:
    """Deterministic chunk producer with a FIFO backlog of unconfirmed bytes.

    Safe to share between a transmit thread calling generate() and a receive
    thread calling validate(); the lock is only held inside each call.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        pattern: Pattern = Pattern.ZERO,
        seed: int = 0,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size
        self.pattern = pattern
        self._rng = random.Random(seed)
        self._backlog = bytearray()
        self._generated = 0
        self._validated = 0
        self._lock = threading.Lock()

    def _next_chunk(self) -> bytes:
        match self.pattern:
            case Pattern.ZERO:
                return bytes(self.chunk_size)
            case Pattern.COUNTER:
                start = self._generated
                return bytes((start + i) & 0xFF for i in range(self.chunk_size))
            case Pattern.RANDOM:
                return self._rng.randbytes(self.chunk_size)

    def generate(self) -> bytes:
        """Produce the next chunk, append it to the backlog and return it."""
        with self._lock:
            chunk = self._next_chunk()
            self._backlog += chunk
            self._generated += len(chunk)
        return chunk

    def validate(self, received: bytes) -> None:
        """Consume len(received) bytes from the backlog head and compare them.

        Raises:
            MismatchError: If any byte differs, or if received is longer than
                the backlog. On underflow the backlog is left untouched.
        """
        count = len(received)
        if count == 0:
            return

        with self._lock:
            available = len(self._backlog)
            if count > available:
                raise MismatchError(
                    f"received {count} bytes but only {available} pending "
                    f"(stream offset {self._validated})",
                    offset=self._validated + available,
                )
            expected = bytes(self._backlog[:count])
            del self._backlog[:count]
            base = self._validated
            self._validated += count

        if expected != received:
            index = next(i for i in range(count) if expected[i] != received[i])
            raise MismatchError(
                f"value mismatch at stream offset {base + index}: "
                f"expected 0x{expected[index]:02x}, got 0x{received[index]:02x}",
                offset=base + index,
                expected=expected[index],
                actual=received[index],
            )

    def pending(self) -> bytes:
        """Return a copy of the bytes still awaiting validation."""
        with self._lock:
            return bytes(self._backlog)

    @property
    def backlog_size(self) -> int:
        with self._lock:
            return len(self._backlog)

    @property
    def generated_bytes(self) -> int:
        return self._generated

    @property
    def validated_bytes(self) -> int:
        return self._validated
