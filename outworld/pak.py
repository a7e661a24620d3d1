"""Reader for the anniversary edition 'Pak01.pak' archive."""

from __future__ import annotations

import logging
import os
import struct
from dataclasses import dataclass
from typing import Optional, Union

from outworld.binfile import BinaryFile

log = logging.getLogger(__name__)

XOR_KEY2 = 0x22683297
CHECKSUM = 0x20202020
_ENTRY_SIZE = 0x40


@dataclass(frozen=True)
class PakEntry:
    name: str
    offset: int
    size: int


def decode_toodc(data: bytes, count: int) -> bytes:
    """Descramble ``count`` little-endian words of TooDC data."""
    buf = bytes(data).ljust(count * 4, b"\0")
    key = XOR_KEY2
    acc = 0
    out = bytearray()
    for (word,) in struct.iter_unpack("<I", buf[:count * 4]):
        b0, b1, b2, b3 = word.to_bytes(4, "little")
        r = ((b0 + b1 + b2) ^ b3) + acc
        out += ((word ^ key) & 0xFFFFFFFF).to_bytes(4, "little")
        key = (key + r) & 0xFFFFFFFF
        acc += 0x4D
    out += buf[count * 4:]
    return bytes(out[:len(data)])


class Pak:
    """Sorted, case-insensitive index of the 'dlx/' entries in a pak archive."""

    FILENAME = "Pak01.pak"

    def __init__(self) -> None:
        self._f = BinaryFile()
        self.entries: list[PakEntry] = []
        self._index: dict[str, PakEntry] = {}

    def __enter__(self) -> "Pak":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def open(self, data_path: Union[str, os.PathLike]) -> bool:
        return self._f.open_nocase(self.FILENAME, data_path)

    def close(self) -> None:
        self.entries = []
        self._index = {}
        self._f.close()

    def read_entries(self) -> None:
        header = self._f.read(12)
        if self._f.io_err or header[:4] != b"PACK":
            return
        entries_offset, entries_size = struct.unpack_from("<II", header, 4)
        self._f.seek(entries_offset)
        count = entries_size // _ENTRY_SIZE
        log.debug("Pak::readEntries() entries count %d", count)
        entries = []
        for _ in range(count):
            raw = self._f.read(_ENTRY_SIZE)
            if self._f.io_err:
                break
            name = raw.split(b"\0", 1)[0].decode("latin-1")
            if not name.startswith("dlx/"):
                continue
            offset, size = struct.unpack_from("<II", raw, 0x38)
            entries.append(PakEntry(name[4:], offset, size))
            log.debug("Pak::readEntries() '%s' size %d", name[4:], size)
        entries.sort(key=lambda e: e.name.lower())
        self.entries = entries
        self._index = {}
        for entry in entries:
            self._index.setdefault(entry.name.lower(), entry)

    def find(self, name: str) -> Optional[PakEntry]:
        log.debug("Pak::find() '%s'", name)
        return self._index.get(name.lower())

    def load_data(self, entry: PakEntry) -> bytes:
        """Read an entry, descrambling it if it holds TooDC data."""
        log.debug("Pak::loadData() %d bytes from 0x%x", entry.size, entry.offset)
        self._f.seek(entry.offset)
        if self._f.io_err:
            return b""
        buf = self._f.read(entry.size)
        if entry.size > 5 and buf[:5] == b"TooDC":
            data_size = entry.size - 6
            if data_size & 3:
                log.warning("Unexpected size %d for encoded TooDC data '%s'", data_size, entry.name)
            decoded = decode_toodc(buf[6:], (data_size + 3) // 4)
            return decoded[4:data_size]
        return buf