"""
P/ECE SDK - USB Data Extraction for the Aquaplus P/ECE
======================================================

This package reads data off a P/ECE handheld over USB. It talks to the
device's built-in USB monitor, which answers memory read requests and
a handful of control commands.

Main Components
---------------
- **comms**: USB transport, monitor protocol, chunked memory reader and
  the DeviceSession that performs the identify handshake

- **pffs**: decoder for the PFFS flash filesystem (directory, cluster
  chain table, data clusters)

- **screen**: LCD framebuffer capture and text/PNG rendering

- **operations**: list, download, backup, screenshot and raw dump

Quick Start
-----------
List and download files:
    >>> from pathlib import Path
    >>> from piece_sdk import DeviceSession
    >>> with DeviceSession.open() as session:
    ...     fs = session.filesystem()
    ...     for entry in fs.list():
    ...         print(entry.name, entry.length)
    ...     fs.download("SAVE.DAT", Path("."))

Or use the command-line tool:
    $ piecelink ls
    $ piecelink download SAVE.DAT
    $ piecelink screenshot
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from piece_sdk.errors import (
    PieceError,
    CommsError,
    ConnectionError as PieceConnectionError,  # Avoid collision with builtin
    DeviceNotFoundError,
    TransportError,
    TimeoutError as PieceTimeoutError,  # Avoid collision with builtin
    ProtocolError,
    PFFSError,
    DeviceFileNotFoundError,
    NameDecodeError,
    ChainError,
)
from piece_sdk.config import LinkConfig, get_default_config, set_default_config
from piece_sdk.comms import (
    DeviceSession,
    DisplayDescriptor,
    MemoryReader,
    UsbTransport,
    VersionInfo,
)
from piece_sdk.pffs import (
    ClusterTable,
    DirectoryEntry,
    Filesystem,
    SlotState,
)
from piece_sdk.screen import Screenshot, capture_screen

__all__ = [
    "__version__",
    # Errors
    "PieceError",
    "CommsError",
    "PieceConnectionError",
    "DeviceNotFoundError",
    "TransportError",
    "PieceTimeoutError",
    "ProtocolError",
    "PFFSError",
    "DeviceFileNotFoundError",
    "NameDecodeError",
    "ChainError",
    # Configuration
    "LinkConfig",
    "get_default_config",
    "set_default_config",
    # Communication
    "DeviceSession",
    "DisplayDescriptor",
    "MemoryReader",
    "UsbTransport",
    "VersionInfo",
    # Filesystem
    "ClusterTable",
    "DirectoryEntry",
    "Filesystem",
    "SlotState",
    # Screen
    "Screenshot",
    "capture_screen",
]
