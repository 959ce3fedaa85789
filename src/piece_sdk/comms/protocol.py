"""
P/ECE USB Monitor Protocol
==========================

This module defines the command frames understood by the P/ECE USB
monitor and the parsers for its fixed-size responses. It holds no
state and performs no I/O; the session and memory reader use it to
build what they send and to decode what they receive.

Protocol Overview
-----------------
Every exchange is a single command written to bulk endpoint 0x02,
optionally followed by a single response read from endpoint 0x82.
All multi-byte fields are little-endian.

    ┌────────────────┬──────────────────────────┬────────────────────────┐
    │ Command        │ Bytes sent               │ Response               │
    ├────────────────┼──────────────────────────┼────────────────────────┤
    │ Identify       │ 00 20                    │ 32 bytes, pffs_top @24 │
    │ Read memory    │ 02 addr(4) len(4)        │ len bytes (len <= 32)  │
    │ Pause          │ 10 01                    │ none                   │
    │ Resume         │ 10 00                    │ none                   │
    │ Query display  │ 11                       │ 12 bytes               │
    └────────────────┴──────────────────────────┴────────────────────────┘
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Final

from piece_sdk.errors import ProtocolError


# =============================================================================
# Protocol Constants
# =============================================================================

# Largest read the monitor answers in one request
MAX_READ_CHUNK: Final[int] = 32

# Size of the identify response
VERSION_INFO_SIZE: Final[int] = 32

# Offset of the little-endian pffs_top field in the identify response
PFFS_TOP_OFFSET: Final[int] = 24

# Size of the display query response
DISPLAY_DESCRIPTOR_SIZE: Final[int] = 12

# The only LCD geometry the monitor reports
LCD_WIDTH: Final[int] = 128
LCD_HEIGHT: Final[int] = 88

MAX_ADDRESS: Final[int] = 0xFFFFFFFF


class Command(IntEnum):
    """First byte of each monitor command."""

    IDENTIFY = 0x00
    READ_MEMORY = 0x02
    SET_PAUSE = 0x10
    QUERY_DISPLAY = 0x11


# Complete fixed frames
IDENTIFY_FRAME: Final[bytes] = bytes([Command.IDENTIFY, VERSION_INFO_SIZE])
PAUSE_FRAME: Final[bytes] = bytes([Command.SET_PAUSE, 0x01])
RESUME_FRAME: Final[bytes] = bytes([Command.SET_PAUSE, 0x00])
QUERY_DISPLAY_FRAME: Final[bytes] = bytes([Command.QUERY_DISPLAY])

_READ_MEMORY_FORMAT: Final[str] = "<BII"


# =============================================================================
# Command Builders
# =============================================================================

def build_read_memory(address: int, length: int) -> bytes:
    """
    Build a read memory command frame.

    Args:
        address: Absolute flash/RAM address of the first byte.
        length: Number of bytes to read (1 to MAX_READ_CHUNK).

    Returns:
        9-byte frame: opcode, address (LE32), length (LE32).

    Raises:
        ValueError: If address or length is out of range.
    """
    if not 0 <= address <= MAX_ADDRESS:
        raise ValueError(f"Address out of range: {address:#x}")
    if not 1 <= length <= MAX_READ_CHUNK:
        raise ValueError(
            f"Read length must be 1-{MAX_READ_CHUNK}, got {length}"
        )
    return struct.pack(_READ_MEMORY_FORMAT, Command.READ_MEMORY, address, length)


# =============================================================================
# Response Parsers
# =============================================================================

@dataclass(frozen=True)
class VersionInfo:
    """
    Decoded identify response.

    Only pffs_top has a known meaning; the remaining bytes are kept
    verbatim for display.

    Attributes:
        raw: The full 32-byte response
        pffs_top: Flash address where the PFFS master block begins
    """

    raw: bytes
    pffs_top: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "VersionInfo":
        if len(data) < VERSION_INFO_SIZE:
            raise ProtocolError(
                f"Identify response too short: {len(data)} bytes, "
                f"expected {VERSION_INFO_SIZE}"
            )
        (pffs_top,) = struct.unpack_from("<I", data, PFFS_TOP_OFFSET)
        return cls(raw=bytes(data[:VERSION_INFO_SIZE]), pffs_top=pffs_top)


@dataclass(frozen=True)
class DisplayDescriptor:
    """
    Decoded display query response.

    Attributes:
        width: LCD width in pixels (byte 2)
        height: LCD height in pixels (byte 4)
        address: Framebuffer base address (bytes 8-12, LE32)
    """

    width: int
    height: int
    address: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "DisplayDescriptor":
        """
        Parse and validate a display descriptor.

        Raises:
            ProtocolError: If the response is short or the geometry
                is not 128x88.
        """
        if len(data) < DISPLAY_DESCRIPTOR_SIZE:
            raise ProtocolError(
                f"Display descriptor too short: {len(data)} bytes, "
                f"expected {DISPLAY_DESCRIPTOR_SIZE}"
            )
        width = data[2]
        height = data[4]
        (address,) = struct.unpack_from("<I", data, 8)

        if width != LCD_WIDTH:
            raise ProtocolError(
                f"Unexpected LCD width {width}, expected {LCD_WIDTH}"
            )
        if height != LCD_HEIGHT:
            raise ProtocolError(
                f"Unexpected LCD height {height}, expected {LCD_HEIGHT}"
            )
        return cls(width=width, height=height, address=address)
