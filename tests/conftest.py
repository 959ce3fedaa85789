"""
Shared fixtures: an in-memory P/ECE that speaks the monitor protocol.

FakePiece implements the same write/read/close interface as
UsbTransport. It decodes every command frame written to it, queues the
matching response and records the command, so tests can assert on the
exact wire traffic without hardware.
"""

import struct

import pytest

from piece_sdk.comms.session import DeviceSession
from piece_sdk.errors import TimeoutError, TransportError
from piece_sdk.pffs.records import (
    CLUSTER_TABLE_OFFSET,
    DIRECTORY_OFFSET,
    SLOT_SIZE,
    cluster_offset,
)


PFFS_TOP = 0xC28000
FRAMEBUFFER = 0x00134000
PAGE_SIZE = 4096


class SparseMemory:
    """Byte-addressable memory that reads 0x00 where nothing was loaded."""

    def __init__(self):
        self.pages: dict[int, bytearray] = {}

    def load(self, address: int, data: bytes) -> None:
        for i, value in enumerate(data):
            page, offset = divmod(address + i, PAGE_SIZE)
            self.pages.setdefault(page, bytearray(PAGE_SIZE))[offset] = value

    def read(self, address: int, length: int) -> bytes:
        out = bytearray()
        while len(out) < length:
            page, offset = divmod(address + len(out), PAGE_SIZE)
            take = min(PAGE_SIZE - offset, length - len(out))
            block = self.pages.get(page)
            out += block[offset:offset + take] if block is not None else bytes(take)
        return bytes(out)


class FakePiece:
    """
    Emulated P/ECE monitor.

    Attributes:
        memory: SparseMemory backing all reads
        commands: Every frame written, in order
        reads: (address, length) of every read memory command
        lcd_width, lcd_height, lcd_address: Display descriptor contents
        fail_read_at: Raise TransportError on the read for the Nth
            read memory command (0-based), or None
    """

    def __init__(self, pffs_top: int = PFFS_TOP):
        self.memory = SparseMemory()
        self.pffs_top = pffs_top
        self.commands: list[bytes] = []
        self.reads: list[tuple[int, int]] = []
        self.lcd_width = 128
        self.lcd_height = 88
        self.lcd_address = FRAMEBUFFER
        self.fail_read_at = None
        self.closed = False
        self._pending = None

    # Transport interface --------------------------------------------------

    def write(self, data: bytes) -> None:
        data = bytes(data)
        self.commands.append(data)
        opcode = data[0]
        if opcode == 0x00:
            info = bytearray(32)
            info[0:8] = b"PIECE\x00\x01\x02"
            struct.pack_into("<I", info, 24, self.pffs_top)
            self._pending = bytes(info)
        elif opcode == 0x02:
            _, address, length = struct.unpack("<BII", data)
            index = len(self.reads)
            self.reads.append((address, length))
            if self.fail_read_at is not None and index == self.fail_read_at:
                self._pending = TransportError("Injected failure")
            else:
                self._pending = self.memory.read(address, length)
        elif opcode == 0x10:
            self._pending = None
        elif opcode == 0x11:
            descriptor = bytearray(12)
            descriptor[2] = self.lcd_width
            descriptor[4] = self.lcd_height
            struct.pack_into("<I", descriptor, 8, self.lcd_address)
            self._pending = bytes(descriptor)
        else:
            raise AssertionError(f"Unknown command {data.hex()}")

    def read(self, length: int) -> bytes:
        pending, self._pending = self._pending, None
        if pending is None:
            raise TimeoutError(f"Timed out waiting for {length} bytes from the device")
        if isinstance(pending, Exception):
            raise pending
        if len(pending) != length:
            raise TransportError(f"Short read: got {len(pending)} of {length} bytes")
        return pending

    def close(self) -> None:
        self.closed = True

    # PFFS helpers ---------------------------------------------------------

    def add_slot(self, slot: int, name, cluster: int, length: int) -> None:
        """Write a directory slot; `name` may be str or raw bytes."""
        raw = bytearray(SLOT_SIZE)
        name_bytes = name.encode("utf-8") if isinstance(name, str) else name
        raw[:len(name_bytes)] = name_bytes
        struct.pack_into("<HI", raw, 26, cluster, length)
        self.memory.load(self.pffs_top + slot * SLOT_SIZE, bytes(raw))

    def mark_slot(self, slot: int, marker: int) -> None:
        self.memory.load(self.pffs_top + slot * SLOT_SIZE, bytes([marker]) * SLOT_SIZE)

    def set_link(self, cluster: int, value: int) -> None:
        self.memory.load(
            self.pffs_top + CLUSTER_TABLE_OFFSET + cluster * 2, struct.pack("<H", value)
        )

    def fill_cluster(self, cluster: int, data: bytes) -> None:
        self.memory.load(self.pffs_top + cluster_offset(cluster), data)

    def add_file(self, slot: int, name: str, data: bytes, clusters: list[int]) -> None:
        """Store `data` across `clusters` and link them into a chain."""
        self.add_slot(slot, name, clusters[0], len(data))
        for i, cluster in enumerate(clusters):
            self.fill_cluster(cluster, data[i * 4096:(i + 1) * 4096])
            self.set_link(cluster, clusters[i + 1] if i + 1 < len(clusters) else 0xFFFF)

    def cluster_reads(self) -> list[int]:
        """Data cluster numbers read so far, in order."""
        base = self.pffs_top + cluster_offset(1)
        return [
            (address - base) // 4096 + 1
            for address, length in self.reads
            if address >= base and (address - base) % 4096 == 0 and length == 32
            and address - base < 496 * 4096
        ]

    def directory_reads(self) -> list[tuple[int, int]]:
        start = self.pffs_top + DIRECTORY_OFFSET
        return [r for r in self.reads if start <= r[0] < self.pffs_top + CLUSTER_TABLE_OFFSET]


@pytest.fixture
def fake_device():
    """A fresh emulated P/ECE with an empty (all 0x00) directory."""
    return FakePiece()


@pytest.fixture
def session(fake_device):
    """A DeviceSession that has completed the handshake with fake_device."""
    return DeviceSession(fake_device)
