"""A thread-safe fixed-size byte ring buffer."""

from __future__ import annotations

import threading


class RingBuffer:
    """Fixed-capacity FIFO of bytes; writes that do not fit are dropped whole."""

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValueError(f"ring buffer size must be positive, got {size}")
        self._buf = bytearray(size)
        self._size = size
        self._r = 0
        self._w = 0
        self._full = False
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        """Total capacity in bytes."""
        return self._size

    def _used(self) -> int:
        if self._w == self._r:
            return self._size if self._full else 0
        return (self._w - self._r) % self._size

    def __len__(self) -> int:
        with self._lock:
            return self._used()

    def free(self) -> int:
        """Number of bytes that can still be written."""
        with self._lock:
            return self._size - self._used()

    def read(self, size: int) -> bytes:
        """Remove and return up to ``size`` bytes; empty when nothing is buffered."""
        with self._lock:
            n = min(self._used(), max(size, 0))
            if n == 0:
                return b""
            end = self._r + n
            if end <= self._size:
                out = bytes(self._buf[self._r:end])
            else:
                out = bytes(self._buf[self._r:]) + bytes(self._buf[: end - self._size])
            self._r = end % self._size
            self._full = False
            return out

    def write(self, data: bytes) -> bool:
        """Append ``data`` if it fits entirely; return whether it was stored."""
        n = len(data)
        with self._lock:
            if n == 0:
                return True
            if self._size - self._used() < n:
                return False
            end = self._w + n
            if end <= self._size:
                self._buf[self._w:end] = data
            else:
                first = self._size - self._w
                self._buf[self._w:] = data[:first]
                self._buf[: n - first] = data[first:]
            self._w = end % self._size
            self._full = self._w == self._r
            return True

    def reset(self) -> None:
        """Discard all buffered data."""
        with self._lock:
            self._r = 0
            self._w = 0
            self._full = False