"""
PFFS Filesystem Reader
======================

Reads the P/ECE flash filesystem through a DeviceSession: lists the
directory, resolves a file's cluster chain and streams its content to
a local file or any binary sink.

Download Flow
-------------
1. Read the directory (95 slots at pffs_top + 32) and find the entry
2. Read the cluster chain table (992 bytes at pffs_top + 3104)
3. For each cluster of the chain, read 4096 bytes and write
   min(remaining, 4096) of them
4. Stop when the file length is reached or the chain ends

The directory is read before the cluster table, so asking for a name
that does not exist costs no cluster traffic at all.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Callable, Optional

from piece_sdk.comms.memory import ProgressCallback
from piece_sdk.errors import DeviceFileNotFoundError, PFFSError
from piece_sdk.pffs.records import (
    CLUSTER_SIZE,
    CLUSTER_TABLE_OFFSET,
    CLUSTER_TABLE_SIZE,
    DIRECTORY_OFFSET,
    MAX_ENTRIES,
    SLOT_SIZE,
    ClusterTable,
    DirectoryEntry,
    SlotState,
    cluster_offset,
    decode_directory,
    iter_slots,
)

if TYPE_CHECKING:
    from piece_sdk.comms.session import DeviceSession

# Configure module logger
logger = logging.getLogger(__name__)


class Filesystem:
    """
    Read-only view of the PFFS on one device.

    Every call goes to the device; nothing is cached between calls, so
    a listing always reflects the flash at the time it was taken.

    Example:
        fs = session.filesystem()
        for entry in fs.list():
            print(entry.name, entry.length)
        fs.download("SAVE.DAT", Path("backup"))
    """

    def __init__(self, session: "DeviceSession"):
        self.session = session

    @property
    def top(self) -> int:
        return self.session.pffs_top

    # -------------------------------------------------------------------------
    # Directory Operations
    # -------------------------------------------------------------------------

    def read_directory(self) -> bytes:
        """Read the raw bytes of the 95 listable directory slots."""
        return self.session.get_memory(self.top + DIRECTORY_OFFSET, MAX_ENTRIES * SLOT_SIZE)

    def slots(self) -> list[tuple[int, SlotState]]:
        """
        Report the state of every listable slot.

        Unlike list(), this keeps erased (0xFF) and cleared (0x00)
        slots apart.
        """
        return [(slot, state) for slot, state, _ in iter_slots(self.read_directory())]

    def list(self) -> list[DirectoryEntry]:
        """
        List the files on the device in directory order.

        Raises:
            NameDecodeError: If a directory name is not valid UTF-8.
            TransportError: If reading the directory fails.
        """
        entries = decode_directory(self.read_directory())
        logger.debug("Directory holds %d file(s)", len(entries))
        return entries

    def find(self, name: str) -> DirectoryEntry:
        """
        Return the first entry whose name matches exactly.

        Raises:
            DeviceFileNotFoundError: If no entry has that name.
        """
        for entry in self.list():
            if entry.name == name:
                return entry
        raise DeviceFileNotFoundError(name)

    def read_cluster_table(self) -> ClusterTable:
        return ClusterTable.from_bytes(
            self.session.get_memory(self.top + CLUSTER_TABLE_OFFSET, CLUSTER_TABLE_SIZE)
        )

    # -------------------------------------------------------------------------
    # File Operations
    # -------------------------------------------------------------------------

    def read_entry(
        self,
        entry: DirectoryEntry,
        sink: BinaryIO,
        table: Optional[ClusterTable] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Stream the content of `entry` into `sink`.

        Args:
            entry: Directory entry to read.
            sink: Binary file-like object to write to.
            table: Cluster table, read from the device when omitted.
            progress: Optional callback (bytes_done, total_bytes).

        Returns:
            Number of bytes written. This is less than entry.length
            when the chain ends early; the shortfall is logged.

        Raises:
            ChainError: If the chain leaves the cluster table.
        """
        remaining = entry.length
        if remaining == 0:
            return 0
        if table is None:
            table = self.read_cluster_table()

        for cluster in table.walk(entry.cluster, entry.cluster_count):
            data = self.session.get_memory(self.top + cluster_offset(cluster), CLUSTER_SIZE)
            take = min(remaining, CLUSTER_SIZE)
            sink.write(data[:take])
            remaining -= take
            logger.debug("Read cluster %d of '%s', %d bytes left", cluster, entry.name, remaining)
            if progress is not None:
                progress(entry.length - remaining, entry.length)

        if remaining:
            logger.warning(
                "Chain of '%s' ended with %d of %d bytes unread",
                entry.name, remaining, entry.length,
            )
        return entry.length - remaining

    def read_file(self, name: str, sink: BinaryIO, progress: Optional[ProgressCallback] = None) -> DirectoryEntry:
        """Find `name` and stream its content into `sink`."""
        entry = self.find(name)
        self.read_entry(entry, sink, progress=progress)
        return entry

    def download(
        self,
        name: str,
        directory: Path = Path("."),
        progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """
        Download one file into `directory` under its device name.

        Returns:
            Path of the written file.

        Raises:
            DeviceFileNotFoundError: If the name is not on the device.
        """
        entry = self.find(name)
        return self._download_entry(entry, directory, progress=progress)

    def backup(
        self,
        directory: Path = Path("."),
        on_file: Optional[Callable[[DirectoryEntry], None]] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> list[Path]:
        """
        Download every file on the device, one after another.

        The first failure aborts the backup; files already written
        are kept.

        Args:
            directory: Destination directory.
            on_file: Called with each entry before it is downloaded.
            progress: Per-file progress callback.

        Returns:
            Paths of the written files in directory order.
        """
        entries = self.list()
        table = self.read_cluster_table() if entries else None
        written = []
        for entry in entries:
            if on_file is not None:
                on_file(entry)
            written.append(self._download_entry(entry, directory, table=table, progress=progress))
        logger.info("Backed up %d file(s) to %s", len(written), directory)
        return written

    def _download_entry(
        self,
        entry: DirectoryEntry,
        directory: Path,
        table: Optional[ClusterTable] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Path:
        if entry.name in ("", ".", "..") or Path(entry.name).name != entry.name:
            raise PFFSError(f"Refusing to write device file with unsafe name {entry.name!r}")
        path = Path(directory) / entry.name
        logger.info("Downloading '%s' (%d bytes) to %s", entry.name, entry.length, path)
        with open(path, "wb") as sink:
            self.read_entry(entry, sink, table=table, progress=progress)
        return path
