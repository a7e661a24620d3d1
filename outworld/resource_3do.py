"""Access to 3DO data, either from a 'GameData' directory or an Opera ISO image."""

from __future__ import annotations

import logging
import os
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from outworld.binfile import BinaryFile

log = logging.getLogger(__name__)

ISO_BLOCK_SIZE = 2048
LZSS_MAGIC = b"\x00\xf4\x01\x00"
LZSS_DECODED_SIZE = 64000 * 2
_CCB_BPP_TABLE = (0, 1, 2, 4, 6, 8, 16, 0)
_NAME_MAX = 15

PathLike = Union[str, os.PathLike]


@dataclass(frozen=True)
class OperaIsoEntry:
    name: str
    offset: int
    size: int


class OperaIso:
    """Table of contents of an Opera file system image."""

    def __init__(self, path: PathLike) -> None:
        self.f = BinaryFile()
        self.f.open(path)
        self.entries: list[OperaIsoEntry] = []
        self._index: dict[str, OperaIsoEntry] = {}

    def read_toc(self) -> None:
        buf = self.f.read(128)
        if len(buf) != 128:
            log.warning("Failed to read %d bytes", len(buf))
            return
        if buf[0] != 1 or buf[40:46] != b"CD-ROM":
            log.warning("Unexpected Opera ISO signature")
            return
        (block,) = struct.unpack_from(">I", buf, 100)
        self._read_toc_entry(block)
        self.entries.sort(key=lambda e: e.name)
        self._index = {}
        for entry in self.entries:
            self._index.setdefault(entry.name, entry)

    def _read_toc_entry(self, block: int) -> None:
        while True:
            self.f.seek(block * ISO_BLOCK_SIZE + 20)
            while True:
                buf = self.f.read(72).ljust(72, b"\0")
                attr, = struct.unpack_from(">I", buf, 0)
                name = buf[32:64].split(b"\0", 1)[0].decode("latin-1")
                count, offset = struct.unpack_from(">II", buf, 64)
                self.f.seek(count * 4, os.SEEK_CUR)
                kind = attr & 0xFF
                if kind == 2:
                    (size,) = struct.unpack_from(">I", buf, 16)
                    self.entries.append(OperaIsoEntry(name[:_NAME_MAX], offset * ISO_BLOCK_SIZE, size))
                elif kind == 7 and name == "GameData":
                    self._read_toc_entry(offset)
                if attr == 0 or attr >= 256:
                    break
            block += 1
            if (attr >> 24) != 0x40:
                break

    def find(self, name: str) -> Optional[OperaIsoEntry]:
        return self._index.get(name)


def decode_lzss(src: bytes) -> bytes:
    """Decode LZSS data with 12-bit back references into a 4 KiB window."""
    length = len(src)
    padded = bytes(src) + b"\0"
    out = bytearray()
    rd = 0
    while rd < length:
        code = padded[rd]
        rd += 1
        for bit in range(8):
            if rd >= length:
                break
            if code & (1 << bit):
                out.append(padded[rd])
                rd += 1
            else:
                lo, hi = padded[rd], padded[rd + 1]
                distance = 0x1000 - (lo | ((hi & 0xF) << 8))
                count = (hi >> 4) + 3
                rd += 2
                if distance > len(out):
                    raise ValueError("LZSS back reference before start of output")
                for _ in range(count):
                    out.append(out[-distance])
    return bytes(out)


def decode_ccb16(width: int, height: int, f: BinaryFile) -> list[int]:
    """Decode packed 16-bit cel scanlines into ``width * height`` pixels."""
    pixels = [0] * (width * height)
    for y in range(height):
        scanline_size = 4 * (f.read_uint16_be() + 2)
        scanline_len = 2
        pos = y * width
        remaining = width
        while remaining > 0:
            code = f.read_byte()
            scanline_len += 1
            count = (code & 63) + 1
            code >>= 6
            if code == 0:
                break
            if count > remaining:
                raise ValueError(f"scanline {y} overruns width {width}")
            if code == 1:
                pixels[pos:pos + count] = [f.read_uint16_be() for _ in range(count)]
                scanline_len += count * 2
            elif code == 3:
                pixels[pos:pos + count] = [f.read_uint16_be()] * count
                scanline_len += 2
            pos += count
            remaining -= count
        align = scanline_size - scanline_len
        if align != 0:
            f.seek(align, os.SEEK_CUR)
    return pixels


def decode_shape_ccb(f: BinaryFile, data_size: int) -> tuple[int, int, list[int]]:
    """Decode a 16-bit cel; return ``(width, height, pixels)`` in RGB555."""
    flags = f.read_uint32_be()
    f.seek(4, os.SEEK_CUR)
    cel_data = f.read_uint32_be()
    f.seek(40, os.SEEK_CUR)
    pre0 = f.read_uint32_be()
    pre1 = f.read_uint32_be()
    if cel_data != 0x30:
        raise ValueError(f"unexpected cel data offset 0x{cel_data:x}")
    if not flags & (1 << 9):
        raise ValueError("unsupported cel flags")
    bpp = _CCB_BPP_TABLE[pre0 & 7]
    if bpp != 16:
        raise ValueError(f"unsupported cel depth {bpp}")
    width = (pre1 & 0x3FF) + 1
    height = ((pre0 >> 6) & 0x3FF) + 1
    return width, height, decode_ccb16(width, height, f)


class Resource3do:
    """Loads numbered files, shapes and music locations from 3DO data."""

    def __init__(self, data_path: PathLike) -> None:
        self.data_path = data_path
        self.iso: Optional[OperaIso] = OperaIso(data_path) if os.path.isfile(data_path) else None

    def read_entries(self) -> bool:
        if self.iso is not None:
            self.iso.read_toc()
            return bool(self.iso.entries)
        return True

    def _read_raw(self, name: str) -> Optional[bytes]:
        if self.iso is not None:
            entry = self.iso.find(name)
            if entry is None:
                log.warning("Failed to load '%s'", name)
                return None
            self.iso.f.seek(entry.offset)
            return self.iso.f.read(entry.size)
        path = Path(self.data_path) / "GameData" / name
        with BinaryFile() as f:
            if not f.open(path):
                log.warning("Failed to load '%s'", path)
                return None
            return f.read(f.size())

    def load_file(self, num: int) -> Optional[bytes]:
        data = self._read_raw(f"File{num}")
        if data is None:
            return None
        if data[:4] == LZSS_MAGIC:
            try:
                decoded = decode_lzss(data[4:])
            except ValueError as exc:
                log.warning("Invalid LZSS data: %s", exc)
                return None
            if len(decoded) != LZSS_DECODED_SIZE:
                log.warning("Unexpected LZSS decoded size %d", len(decoded))
                return None
            return decoded
        return data

    def load_shape555(self, name: str) -> Optional[tuple[int, int, list[int]]]:
        if self.iso is not None:
            entry = self.iso.find(name)
            if entry is not None:
                self.iso.f.seek(entry.offset)
                return decode_shape_ccb(self.iso.f, entry.size)
            return None
        with BinaryFile() as f:
            if f.open(Path(self.data_path) / "GameData" / name):
                return decode_shape_ccb(f, f.size())
        return None

    def _locate(self, name: str, relative: str) -> tuple[Optional[str], int]:
        if self.iso is not None:
            entry = self.iso.find(name)
            return None, entry.offset if entry is not None else 0
        return relative, 0

    def get_music_name(self, num: int) -> tuple[Optional[str], int]:
        """Return ``(path relative to the data directory, offset in the ISO)``."""
        return self._locate(f"song{num}", f"GameData/song{num}")

    def get_cpak(self, name: str) -> tuple[Optional[str], int]:
        return self._locate(name, f"GameData/{name}")