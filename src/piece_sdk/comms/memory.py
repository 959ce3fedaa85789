"""
Chunked Memory Reader
=====================

The P/ECE monitor answers at most 32 bytes per read request. This
module splits an arbitrary read into 32-byte requests and reassembles
the responses into one contiguous buffer.

Request Arithmetic
------------------
For a read of `length` bytes at `address`, each request covers

    offset = length - remaining
    chunk  = min(remaining, 32)
    frame  = [0x02, (address + offset) as LE32, chunk as LE32]

so a 50-byte read issues two requests, 32 bytes at `address` and 18
bytes at `address + 32`. The address is always recomputed from the
start address and the bytes still outstanding, never carried as a
running pointer.
"""

import logging
from typing import Callable, Optional

from piece_sdk.comms.protocol import MAX_ADDRESS, MAX_READ_CHUNK, build_read_memory

# Configure module logger
logger = logging.getLogger(__name__)


# Type alias for progress callback: (bytes_done, total_bytes) -> None
ProgressCallback = Callable[[int, int], None]


class MemoryReader:
    """
    Reads device memory through a transport, 32 bytes at a time.

    The transport must provide write(bytes) and read(n) -> bytes and
    must raise on any short read; this class performs no response
    validation of its own.
    """

    def __init__(self, transport):
        self.transport = transport

    def get_memory(
        self,
        address: int,
        length: int,
        progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        """
        Read `length` bytes starting at `address`.

        Args:
            address: Absolute start address.
            length: Number of bytes to read (0 reads nothing).
            progress: Optional callback invoked after every chunk.

        Returns:
            Exactly `length` bytes.

        Raises:
            ValueError: If the range does not fit in 32-bit address space.
            TransportError: If any request or response fails.
        """
        if length < 0:
            raise ValueError(f"Length must not be negative, got {length}")
        if not 0 <= address <= MAX_ADDRESS or address + length - 1 > MAX_ADDRESS:
            raise ValueError(
                f"Read of {length} bytes at {address:#x} exceeds 32-bit address space"
            )

        buffer = bytearray(length)
        self.read_into(address, length, buffer, progress=progress)
        return bytes(buffer)

    def read_into(
        self,
        address: int,
        length: int,
        buffer: bytearray,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Read `length` bytes at `address` into the start of `buffer`.

        The buffer may be larger than `length`; bytes past `length`
        are left untouched.
        """
        if len(buffer) < length:
            raise ValueError(
                f"Buffer of {len(buffer)} bytes cannot hold {length} bytes"
            )

        logger.debug("Reading %d bytes at %#010x", length, address)
        remaining = length
        while remaining > 0:
            chunk = min(remaining, MAX_READ_CHUNK)
            offset = length - remaining
            self.transport.write(build_read_memory(address + offset, chunk))
            buffer[offset:offset + chunk] = self.transport.read(chunk)
            remaining -= chunk
            if progress is not None:
                progress(length - remaining, length)
