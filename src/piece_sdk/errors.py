"""
P/ECE SDK Error Hierarchy
=========================

This module defines the exception hierarchy for the whole package.
All exceptions inherit from PieceError, allowing callers to catch all
SDK-related errors with a single except clause if desired.

Exception Hierarchy
-------------------
PieceError (base)
├── CommsError (USB communication)
│   ├── ConnectionError - cannot open or claim the device
│   │   └── DeviceNotFoundError - no P/ECE on the bus, or already claimed
│   ├── TransportError - bulk write/read failed
│   │   └── TimeoutError - bulk transfer timed out
│   └── ProtocolError - device answered with unexpected data
└── PFFSError (flash filesystem decoding)
    ├── DeviceFileNotFoundError - name absent from the directory
    ├── NameDecodeError - directory name is not valid UTF-8
    └── ChainError - cluster chain leaves the table

Design Philosophy
-----------------
None of these errors are recovered inside the library. Every failure
aborts the current operation and surfaces to the caller; the command
line tool turns them into a message and a non-zero exit code.
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class PieceError(Exception):
    """
    Base exception for all P/ECE SDK errors.

    All exceptions in the SDK inherit from this class, allowing callers
    to catch all SDK-related errors with a single except clause:

        try:
            session.filesystem().download("GAME.PEX", Path("."))
        except PieceError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Communication Exceptions
# =============================================================================

class CommsError(PieceError):
    """Base exception for USB communication errors."""
    pass


class ConnectionError(CommsError):
    """
    Cannot connect to the P/ECE.

    Base class for failures before the handshake starts.
    """
    pass


class DeviceNotFoundError(ConnectionError):
    """
    No usable P/ECE: nothing with the P/ECE vendor/product identifier
    is attached, or its interface cannot be claimed (already claimed by
    another program, or permission denied).

    Attributes:
        vendor_id: USB vendor ID that was searched for
        product_id: USB product ID that was searched for
    """

    def __init__(self, vendor_id: int, product_id: int, message: str = ""):
        self.vendor_id = vendor_id
        self.product_id = product_id
        if not message:
            message = (
                f"No P/ECE device found (USB {vendor_id:04x}:{product_id:04x}). "
                "Check the cable and that the device is switched on."
            )
        super().__init__(message)


class TransportError(CommsError):
    """
    Bulk transfer failed.

    Raised when:
    - The USB stack reports an I/O error
    - Fewer bytes were written than requested
    - Fewer bytes were read than requested (short read)

    There is no retry: a transport failure ends the session.
    """
    pass


class TimeoutError(TransportError):
    """
    Bulk transfer timeout.

    Raised when the device does not accept a command or does not answer
    within the configured timeout. Usually means the device is busy,
    was unplugged, or is not running the USB monitor.

    Note:
        This is a P/ECE-specific TimeoutError, distinct from the
        Python builtin TimeoutError. It inherits from TransportError
        so callers only need to handle one transport failure type.
    """
    pass


class ProtocolError(CommsError):
    """
    The device sent a response that violates the expected protocol.

    Raised when the identify response is too short or the display
    descriptor reports a geometry other than 128x88.
    """
    pass


# =============================================================================
# PFFS Exceptions
# =============================================================================

class PFFSError(PieceError):
    """Base exception for flash filesystem decoding errors."""
    pass


class DeviceFileNotFoundError(PFFSError):
    """
    Requested file does not exist in the PFFS directory.

    Attributes:
        filename: The name that was looked up (case-sensitive)
    """

    def __init__(self, filename: str, message: str = ""):
        self.filename = filename
        if not message:
            message = f"File not found on device: '{filename}'"
        super().__init__(message)


class NameDecodeError(PFFSError):
    """
    A directory slot holds a name that is not valid UTF-8.

    Attributes:
        slot: Directory slot index (1-based)
        raw_name: The undecodable name bytes
    """

    def __init__(self, slot: int, raw_name: bytes, reason: Optional[str] = None):
        self.slot = slot
        self.raw_name = raw_name
        message = f"Directory slot {slot}: name {raw_name!r} is not valid UTF-8"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class ChainError(PFFSError):
    """
    Cluster chain cannot be followed.

    Raised when a chain links to a cluster index outside the table.
    """
    pass
