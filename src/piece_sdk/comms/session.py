"""
P/ECE Device Session
====================

A DeviceSession owns the transport for the lifetime of one run. It
performs the identify handshake that yields `pffs_top`, the flash
address where the PFFS filesystem begins, and exposes the pause and
resume control commands.

Lifecycle
---------
1. Open: claim the USB interface (or accept a ready transport)
2. Handshake: send identify, read 32 bytes, decode pffs_top
3. Use: pass the session to the filesystem, screen and dump operations
4. Close: release the interface

    with DeviceSession.open() as session:
        for entry in session.filesystem().list():
            print(entry)

`pffs_top` is read once during the handshake and never recomputed.

Thread Safety
-------------
Sessions are NOT thread-safe. The monitor protocol allows one
outstanding request at a time and the session does not lock.
"""

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, Optional

from piece_sdk.comms.memory import MemoryReader, ProgressCallback
from piece_sdk.comms.protocol import (
    DISPLAY_DESCRIPTOR_SIZE,
    IDENTIFY_FRAME,
    PAUSE_FRAME,
    QUERY_DISPLAY_FRAME,
    RESUME_FRAME,
    VERSION_INFO_SIZE,
    DisplayDescriptor,
    VersionInfo,
)
from piece_sdk.comms.usb import UsbTransport
from piece_sdk.config import LinkConfig, get_default_config

if TYPE_CHECKING:
    from piece_sdk.pffs.reader import Filesystem

# Configure module logger
logger = logging.getLogger(__name__)


class DeviceSession:
    """
    An identified connection to one P/ECE.

    Attributes:
        transport: Object providing write(bytes), read(n) and close()
        version: Decoded identify response
        memory: Chunked reader bound to the transport
    """

    def __init__(self, transport):
        """
        Perform the handshake over an already open transport.

        Raises:
            TransportError: If the identify exchange fails.
            ProtocolError: If the identify response is malformed.
        """
        self.transport = transport
        self.memory = MemoryReader(transport)
        self._paused = False
        self.version = self._identify()
        logger.info("Connected to P/ECE, pffs_top=%#010x", self.pffs_top)

    @classmethod
    def open(cls, config: Optional[LinkConfig] = None) -> "DeviceSession":
        """
        Open the P/ECE over USB and perform the handshake.

        The transport is closed again if the handshake fails.
        """
        config = config or get_default_config()
        transport = UsbTransport.open(timeout=config.timeout, interface=config.interface)
        try:
            return cls(transport)
        except BaseException:
            transport.close()
            raise

    @property
    def pffs_top(self) -> int:
        """Flash address of the PFFS master block."""
        return self.version.pffs_top

    @property
    def is_paused(self) -> bool:
        return self._paused

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def _identify(self) -> VersionInfo:
        self.transport.write(IDENTIFY_FRAME)
        return VersionInfo.from_bytes(self.transport.read(VERSION_INFO_SIZE))

    def get_memory(
        self,
        address: int,
        length: int,
        progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        """Read device memory; see MemoryReader.get_memory()."""
        return self.memory.get_memory(address, length, progress=progress)

    def pause(self) -> None:
        """Freeze the running application so memory stays consistent."""
        self.transport.write(PAUSE_FRAME)
        self._paused = True
        logger.debug("Device paused")

    def resume(self) -> None:
        """Let the running application continue."""
        self.transport.write(RESUME_FRAME)
        self._paused = False
        logger.debug("Device resumed")

    @contextmanager
    def paused(self) -> Iterator["DeviceSession"]:
        """
        Keep the device paused for the duration of the block.

        Resume is sent on every exit path, including errors.
        """
        self.pause()
        try:
            yield self
        finally:
            self.resume()

    def query_display(self) -> DisplayDescriptor:
        """
        Ask the monitor where the LCD framebuffer lives.

        Raises:
            ProtocolError: If the reported geometry is not 128x88.
        """
        self.transport.write(QUERY_DISPLAY_FRAME)
        data = self.transport.read(DISPLAY_DESCRIPTOR_SIZE)
        logger.debug("Display descriptor: %s", data.hex())
        return DisplayDescriptor.from_bytes(data)

    def filesystem(self) -> "Filesystem":
        """Return a PFFS decoder bound to this session."""
        from piece_sdk.pffs.reader import Filesystem

        return Filesystem(self)

    # -------------------------------------------------------------------------
    # Resource Management
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the transport."""
        self.transport.close()
        logger.debug("Session closed")

    def __enter__(self) -> "DeviceSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
