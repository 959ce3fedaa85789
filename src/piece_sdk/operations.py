"""
P/ECE Operations
================

User-level actions composed from the session, filesystem and screen
modules. The command line tool is a thin shell around these functions;
they can equally be called from scripts:

    from piece_sdk.comms import DeviceSession
    from piece_sdk import operations

    with DeviceSession.open() as session:
        operations.backup_files(session, Path("backup"))

Every function takes the session explicitly and raises on the first
failure; none of them catch device errors.
"""

import logging
from pathlib import Path
from typing import Callable, Final, Optional

from piece_sdk.comms.memory import ProgressCallback
from piece_sdk.comms.protocol import VersionInfo
from piece_sdk.comms.session import DeviceSession
from piece_sdk.pffs.records import DirectoryEntry
from piece_sdk.screen import Screenshot, capture_screen

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Raw Dump Constants
# =============================================================================

# Start of the external flash in the P/ECE address space
DUMP_ADDRESS: Final[int] = 0xC00000

# Size of the external flash (2 MiB)
DUMP_SIZE: Final[int] = 2 * 1024 * 1024

# Length requested by the older dump tool; the last 10 bytes of its
# output were never read and stay zero
LEGACY_DUMP_LENGTH: Final[int] = DUMP_SIZE - 10


# =============================================================================
# Operations
# =============================================================================

def list_files(session: DeviceSession) -> list[DirectoryEntry]:
    """List the files on the device in directory order."""
    return session.filesystem().list()


def download_file(
    session: DeviceSession,
    name: str,
    directory: Path = Path("."),
    progress: Optional[ProgressCallback] = None,
) -> Path:
    """Download one file by exact (case-sensitive) name."""
    return session.filesystem().download(name, directory, progress=progress)


def backup_files(
    session: DeviceSession,
    directory: Path = Path("."),
    on_file: Optional[Callable[[DirectoryEntry], None]] = None,
    progress: Optional[ProgressCallback] = None,
) -> list[Path]:
    """Download every file; the first failure aborts the backup."""
    return session.filesystem().backup(directory, on_file=on_file, progress=progress)


def capture_screenshot(session: DeviceSession) -> Screenshot:
    """Capture the LCD with the device paused."""
    return capture_screen(session)


def read_flash(
    session: DeviceSession,
    legacy_length: bool = False,
    progress: Optional[ProgressCallback] = None,
) -> bytes:
    """
    Read the raw 2 MiB flash region starting at 0xC00000.

    Args:
        session: Open device session.
        legacy_length: Request only 2,097,142 bytes, leaving the last
            10 bytes of the image zero, as the older dump tool did.
        progress: Optional callback (bytes_done, total_bytes).

    Returns:
        Exactly DUMP_SIZE bytes.
    """
    length = LEGACY_DUMP_LENGTH if legacy_length else DUMP_SIZE
    logger.info("Reading %d bytes of flash at %#x", length, DUMP_ADDRESS)

    image = bytearray(DUMP_SIZE)
    session.memory.read_into(DUMP_ADDRESS, length, image, progress=progress)
    return bytes(image)


def dump_flash(
    session: DeviceSession,
    path: Path,
    legacy_length: bool = False,
    progress: Optional[ProgressCallback] = None,
) -> Path:
    """
    Write the raw flash image to `path`.

    The file is only created once the whole region has been read, so a
    failed dump leaves no partial image behind.
    """
    image = read_flash(session, legacy_length=legacy_length, progress=progress)
    path = Path(path)
    path.write_bytes(image)
    logger.info("Wrote %d bytes to %s", len(image), path)
    return path


def device_info(session: DeviceSession) -> VersionInfo:
    """Return the identify response captured during the handshake."""
    return session.version
