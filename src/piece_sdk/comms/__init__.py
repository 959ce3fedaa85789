"""
P/ECE Communication Module
==========================

This module provides USB communication with the P/ECE handheld's
built-in monitor: opening the device, the identify handshake, chunked
memory reads and the pause/resume/display control commands.

Module Structure
----------------
- **usb**: bulk transport over pyusb (device open/claim/close)
- **protocol**: command frames and response parsers
- **memory**: 32-byte chunked memory reader
- **session**: DeviceSession (handshake, pffs_top, pause/resume)

Quick Start
-----------
    from piece_sdk.comms import DeviceSession

    with DeviceSession.open() as session:
        print(f"PFFS at {session.pffs_top:#x}")
        header = session.get_memory(session.pffs_top, 32)

Error Handling
--------------
All communication errors inherit from `CommsError`:

- `DeviceNotFoundError`: No P/ECE attached
- `ConnectionError`: Interface cannot be claimed
- `TransportError` / `TimeoutError`: A bulk transfer failed
- `ProtocolError`: Unexpected response contents

These exceptions are defined in `piece_sdk.errors`.

Thread Safety
-------------
The communication classes are NOT thread-safe. Use only from a single
thread.
"""

from piece_sdk.comms.protocol import (
    DISPLAY_DESCRIPTOR_SIZE,
    IDENTIFY_FRAME,
    LCD_HEIGHT,
    LCD_WIDTH,
    MAX_READ_CHUNK,
    PAUSE_FRAME,
    PFFS_TOP_OFFSET,
    QUERY_DISPLAY_FRAME,
    RESUME_FRAME,
    VERSION_INFO_SIZE,
    Command,
    DisplayDescriptor,
    VersionInfo,
    build_read_memory,
)
from piece_sdk.comms.usb import (
    DEFAULT_INTERFACE,
    ENDPOINT_IN,
    ENDPOINT_OUT,
    PIECE_PRODUCT_ID,
    PIECE_VENDOR_ID,
    UsbTransport,
    close_usb_device,
    open_usb_device,
)
from piece_sdk.comms.memory import MemoryReader, ProgressCallback
from piece_sdk.comms.session import DeviceSession

__all__ = [
    # Protocol
    "DISPLAY_DESCRIPTOR_SIZE",
    "IDENTIFY_FRAME",
    "LCD_HEIGHT",
    "LCD_WIDTH",
    "MAX_READ_CHUNK",
    "PAUSE_FRAME",
    "PFFS_TOP_OFFSET",
    "QUERY_DISPLAY_FRAME",
    "RESUME_FRAME",
    "VERSION_INFO_SIZE",
    "Command",
    "DisplayDescriptor",
    "VersionInfo",
    "build_read_memory",
    # USB
    "DEFAULT_INTERFACE",
    "ENDPOINT_IN",
    "ENDPOINT_OUT",
    "PIECE_PRODUCT_ID",
    "PIECE_VENDOR_ID",
    "UsbTransport",
    "close_usb_device",
    "open_usb_device",
    # Memory
    "MemoryReader",
    "ProgressCallback",
    # Session
    "DeviceSession",
]
