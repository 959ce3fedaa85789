"""
P/ECE Flash Filesystem (PFFS)
=============================

Read-only access to the pseudo-filesystem kept in the P/ECE's onboard
flash: a directory table of 32-byte slots, a cluster chain table and
4096-byte data clusters, all located relative to `pffs_top`.

- **records**: layout constants and byte-level decoders (no I/O)
- **reader**: `Filesystem`, which lists and downloads through a session

Example:
    from piece_sdk.comms import DeviceSession

    with DeviceSession.open() as session:
        fs = session.filesystem()
        for entry in fs.list():
            print(entry)
"""

from piece_sdk.pffs.records import (
    CHAIN_END_THRESHOLD,
    CLUSTER_SIZE,
    CLUSTER_TABLE_OFFSET,
    CLUSTER_TABLE_SIZE,
    DATA_OFFSET,
    DIRECTORY_OFFSET,
    MAX_ENTRIES,
    SLOT_SIZE,
    ClusterTable,
    DirectoryEntry,
    SlotState,
    cluster_offset,
    decode_directory,
    decode_entry,
    is_chain_end,
    iter_slots,
)
from piece_sdk.pffs.reader import Filesystem

__all__ = [
    # Layout
    "CHAIN_END_THRESHOLD",
    "CLUSTER_SIZE",
    "CLUSTER_TABLE_OFFSET",
    "CLUSTER_TABLE_SIZE",
    "DATA_OFFSET",
    "DIRECTORY_OFFSET",
    "MAX_ENTRIES",
    "SLOT_SIZE",
    # Records
    "ClusterTable",
    "DirectoryEntry",
    "SlotState",
    "cluster_offset",
    "decode_directory",
    "decode_entry",
    "is_chain_end",
    "iter_slots",
    # Reader
    "Filesystem",
]
