"""
PFFS On-Flash Records
=====================

Layout constants and decoders for the P/ECE flash filesystem (PFFS).
Everything here works on bytes that have already been read from the
device; no I/O happens in this module.

Master Block Layout
-------------------
All offsets are relative to `pffs_top`, reported by the identify
handshake:

    ┌───────────────────────────┬────────┬─────────────────────────┐
    │ Region                    │ Offset │ Size                    │
    ├───────────────────────────┼────────┼─────────────────────────┤
    │ Header (slot 0, reserved) │      0 │ 32                      │
    │ Directory slots 1..95     │     32 │ 95 x 32                 │
    │ (directory region)        │     32 │ 96 x 32                 │
    │ Cluster chain table       │   3104 │ 496 x u16 = 992         │
    │ Data clusters             │   4096 │ 4096 each, 1-based      │
    └───────────────────────────┴────────┴─────────────────────────┘

Directory Slot (32 bytes)
-------------------------
    [0:24]  name, UTF-8, NUL terminated/padded
    [24:26] unused by this tool
    [26:28] first cluster, LE u16
    [28:32] file length in bytes, LE u32

A slot whose first byte is 0xFF (erased flash) or 0x00 (cleared) holds
no file.

Cluster Chain Table
-------------------
Entry `n` holds the cluster following cluster `n`. Any value above
0x8000 ends the chain.
"""

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Final, Iterator, Optional

from piece_sdk.errors import ChainError, NameDecodeError


# =============================================================================
# Layout Constants
# =============================================================================

SLOT_SIZE: Final[int] = 32

# Slot 0 is the master block header; listing starts at slot 1
DIRECTORY_OFFSET: Final[int] = SLOT_SIZE
DIRECTORY_SLOTS: Final[int] = 96
MAX_ENTRIES: Final[int] = 95

NAME_SIZE: Final[int] = 24

CLUSTER_TABLE_OFFSET: Final[int] = DIRECTORY_OFFSET + DIRECTORY_SLOTS * SLOT_SIZE
CLUSTER_TABLE_ENTRIES: Final[int] = 496
CLUSTER_TABLE_SIZE: Final[int] = CLUSTER_TABLE_ENTRIES * 2

CLUSTER_SIZE: Final[int] = 4096
DATA_OFFSET: Final[int] = CLUSTER_TABLE_OFFSET + CLUSTER_TABLE_SIZE

# Chain values strictly greater than this end a file
CHAIN_END_THRESHOLD: Final[int] = 0x8000

MARKER_ERASED: Final[int] = 0xFF
MARKER_CLEARED: Final[int] = 0x00


def cluster_offset(cluster: int) -> int:
    """Offset of a 1-based data cluster relative to pffs_top."""
    return DATA_OFFSET + (cluster - 1) * CLUSTER_SIZE


def is_chain_end(value: int) -> bool:
    return value > CHAIN_END_THRESHOLD


# =============================================================================
# Directory Slots
# =============================================================================

class SlotState(Enum):
    """Occupancy of a directory slot, from its first byte."""

    USED = "used"
    ERASED = "erased"      # 0xFF: never written since erase
    CLEARED = "cleared"    # 0x00: written as empty


@dataclass(frozen=True)
class DirectoryEntry:
    """
    One file in the PFFS directory.

    Attributes:
        name: File name, NUL padding removed
        cluster: First data cluster (1-based)
        length: File size in bytes
        slot: Directory slot the entry was read from (1-based)
    """

    name: str
    cluster: int
    length: int
    slot: int = 0

    @property
    def cluster_count(self) -> int:
        """Number of clusters the file occupies."""
        return -(-self.length // CLUSTER_SIZE)

    def __str__(self) -> str:
        return f"{self.name:24} {self.length:8d} bytes"


def slot_state(raw: bytes) -> SlotState:
    if raw[0] == MARKER_ERASED:
        return SlotState.ERASED
    if raw[0] == MARKER_CLEARED:
        return SlotState.CLEARED
    return SlotState.USED


def decode_entry(raw: bytes, slot: int = 0) -> Optional[DirectoryEntry]:
    """
    Decode one 32-byte directory slot.

    Returns:
        The entry, or None for an erased or cleared slot.

    Raises:
        NameDecodeError: If the name bytes are not valid UTF-8.
    """
    if len(raw) != SLOT_SIZE:
        raise ValueError(f"Directory slot must be {SLOT_SIZE} bytes, got {len(raw)}")
    if slot_state(raw) is not SlotState.USED:
        return None

    raw_name = raw[:NAME_SIZE].split(b"\x00", 1)[0]
    try:
        name = raw_name.decode("utf-8")
    except UnicodeDecodeError as e:
        raise NameDecodeError(slot, bytes(raw_name), e.reason) from e

    cluster, length = struct.unpack_from("<HI", raw, 26)
    return DirectoryEntry(name=name, cluster=cluster, length=length, slot=slot)


def iter_slots(directory: bytes, first_slot: int = 1) -> Iterator[tuple[int, SlotState, bytes]]:
    """
    Walk a raw directory region slot by slot.

    Yields:
        (slot number, state, raw 32 bytes) in ascending address order.
    """
    for index in range(len(directory) // SLOT_SIZE):
        raw = directory[index * SLOT_SIZE:(index + 1) * SLOT_SIZE]
        yield first_slot + index, slot_state(raw), raw


def decode_directory(directory: bytes, first_slot: int = 1) -> list[DirectoryEntry]:
    """Decode every used slot of a raw directory region, in slot order."""
    entries = []
    for slot, state, raw in iter_slots(directory, first_slot):
        if state is SlotState.USED:
            entries.append(decode_entry(raw, slot))
    return entries


# =============================================================================
# Cluster Chain Table
# =============================================================================

class ClusterTable:
    """
    Decoded cluster chain table.

    Usage:
        table = ClusterTable.from_bytes(raw)
        for cluster in table.walk(entry.cluster, entry.cluster_count):
            ...
    """

    def __init__(self, links: list[int]):
        self.links = links

    @classmethod
    def from_bytes(cls, data: bytes) -> "ClusterTable":
        if len(data) % 2:
            raise ValueError(f"Cluster table must have even length, got {len(data)}")
        count = len(data) // 2
        return cls(list(struct.unpack(f"<{count}H", data)))

    def __len__(self) -> int:
        return len(self.links)

    def next_cluster(self, cluster: int) -> int:
        """
        Return the chain value stored for `cluster`.

        Raises:
            ChainError: If the cluster index is outside the table.
        """
        if not 1 <= cluster < len(self.links):
            raise ChainError(
                f"Cluster {cluster} is outside the cluster table (1-{len(self.links) - 1})"
            )
        return self.links[cluster]

    def walk(self, first: int, count: int) -> Iterator[int]:
        """
        Yield up to `count` clusters of the chain starting at `first`.

        The walk stops after `count` clusters or when a chain value
        above 0x8000 is reached, whichever comes first. A chain that
        ends early simply yields fewer clusters.

        Raises:
            ChainError: If the chain points outside the table.
        """
        cluster = first
        for produced in range(count):
            if not 1 <= cluster < len(self.links):
                raise ChainError(
                    f"Cluster {cluster} is outside the cluster table (1-{len(self.links) - 1})"
                )
            yield cluster
            if produced + 1 == count:
                return
            cluster = self.next_cluster(cluster)
            if is_chain_end(cluster):
                return
