"""Reader for the Windows 3.1 'BANK' archive with its LZ-Huffman compression."""

from __future__ import annotations

import logging
import os
import struct
from dataclasses import dataclass
from typing import Optional, Union

from outworld.binfile import BinaryFile

log = logging.getLogger(__name__)

_SHUFFLE_TABLE = bytes((
    0xB2, 0x91, 0x49, 0xEE, 0x8C, 0xBC, 0x16, 0x0D, 0x07, 0x87, 0xCD, 0xB6, 0x4C, 0x44, 0x22, 0xB3,
    0xAE, 0x96, 0xDF, 0x18, 0x7B, 0x28, 0x17, 0x9A, 0x74, 0x3C, 0x2E, 0x59, 0x69, 0x56, 0x38, 0x82,
    0x7F, 0x25, 0x41, 0xC6, 0xE8, 0x8A, 0x86, 0x7A, 0xB5, 0x8B, 0xA7, 0xB1, 0x2C, 0x53, 0xF0, 0x3B,
    0x20, 0xCB, 0x6F, 0x9E, 0xD9, 0x05, 0x54, 0x08, 0x4F, 0xFE, 0x32, 0x31, 0xF9, 0x50, 0xBD, 0x37,
    0x45, 0xDA, 0x46, 0x33, 0x01, 0xC5, 0x27, 0xEC, 0xE5, 0x14, 0x98, 0x70, 0xB0, 0xF8, 0x93, 0xC9,
    0xAC, 0xEB, 0xE4, 0xE1, 0xE6, 0xF7, 0xAF, 0x76, 0x0E, 0x63, 0x80, 0x83, 0x1E, 0x57, 0x47, 0x9F,
    0xC2, 0x42, 0xA5, 0xFF, 0x5B, 0xBF, 0x12, 0xFA, 0x61, 0x5E, 0x5D, 0xC8, 0x21, 0xA8, 0xB9, 0x5A,
    0x9D, 0x30, 0xD5, 0x09, 0xB7, 0x0B, 0x2F, 0xED, 0x6E, 0xA2, 0x5F, 0x6C, 0xA0, 0x95, 0x00, 0x55,
    0x75, 0x7D, 0x89, 0x97, 0x6A, 0xFB, 0x1A, 0x58, 0xDE, 0x8D, 0x4E, 0xE3, 0x4B, 0x3D, 0x15, 0x67,
    0x11, 0x5C, 0x1C, 0x71, 0x73, 0x1B, 0xD3, 0x13, 0xE7, 0x77, 0x4D, 0xD6, 0x9C, 0x1D, 0x1F, 0xEF,
    0xBB, 0x66, 0x99, 0xF6, 0x3F, 0x02, 0x7E, 0xCF, 0x2B, 0x35, 0x88, 0xBA, 0xA4, 0x40, 0x19, 0x23,
    0xC1, 0xD4, 0xD7, 0x43, 0x52, 0x34, 0xE9, 0xDC, 0x60, 0x24, 0x94, 0x6B, 0x81, 0x03, 0xC0, 0x39,
    0xBE, 0x90, 0x65, 0xFD, 0xE0, 0x2D, 0x7C, 0xEA, 0x04, 0xA6, 0xDB, 0xF3, 0xCE, 0xB4, 0xA9, 0xAA,
    0xAD, 0x64, 0xF2, 0x72, 0xD2, 0x84, 0x8E, 0xD1, 0x26, 0xA3, 0xCA, 0x4A, 0x48, 0x06, 0x0F, 0x36,
    0x85, 0xD0, 0x51, 0x6D, 0xC4, 0x3E, 0x92, 0xF1, 0xC7, 0x62, 0x79, 0xA1, 0x9B, 0x68, 0xF5, 0xE2,
    0xAB, 0x0C, 0xCC, 0x78, 0xFC, 0x2A, 0xD8, 0x3A, 0xDD, 0x8F, 0x10, 0x29, 0xF4, 0x0A, 0xB8, 0xC3,
))

_CHARS_COUNT = 314
_TABLE_SIZE = _CHARS_COUNT * 2 - 1
_HUFFMAN_ROOT = _TABLE_SIZE - 1
_MAX_FREQ = 0x8000

_CODE_BASE = (0, 1, 4, 12, 24, 48)
_CODE_COUNT = (0, 2, 5, 9, 12, 15)
_CODE_LENGTH = (0, 0, 1, 1, 1, 2, 2, 2, 2, 3, 3, 3, 4, 4, 4, 5)

_HISTORY_SIZE = 4096
_ENTRY_SIZE = 32
_STRINGS_COUNT = 614
_STRINGS_RESOURCE = 148


def decode(data: bytes, key: int) -> tuple[bytes, int]:
    """XOR ``data`` with the key stream; return the result and the next key.

    The operation is its own inverse for a given starting key.
    """
    out = bytearray()
    for value in data:
        dl = (1 + (key >> 8)) & 0xFF
        al = _SHUFFLE_TABLE[dl]
        dh = al ^ (key & 0xFF)
        out.append(value ^ al)
        key = (dh << 8) | dl
    return bytes(out), key


class Bitstream:
    """Reads bits and bytes from at most ``size`` bytes of a file."""

    def __init__(self, f: BinaryFile, size: int) -> None:
        self._f = f
        self._size = size
        self._bits = 0
        self._len = 0

    def _next_byte(self) -> int:
        if self._size <= 0:
            raise EOFError("compressed stream exhausted")
        self._size -= 1
        return self._f.read_byte()

    def read_byte(self) -> int:
        if self._len < 8:
            self._bits = ((self._bits << 8) & 0xFFFF) | self._next_byte()
            self._len += 8
        self._len -= 8
        return (self._bits >> self._len) & 0xFF

    def read_bit(self) -> int:
        if self._len == 0:
            self._bits = self._next_byte()
            self._len = 8
        self._len -= 1
        return 1 if self._bits & (1 << self._len) else 0


class LzHuffman:
    """Adaptive Huffman decoder with a 4 KiB LZ history window."""

    def __init__(self, stream: Bitstream) -> None:
        self._stream = stream
        self._child = [0] * _TABLE_SIZE
        self._freq = [0] * (_TABLE_SIZE + 1)
        self._parent = [0] * (_TABLE_SIZE + _CHARS_COUNT + 2)

    def _reset_tables(self) -> None:
        freq, child, parent = self._freq, self._child, self._parent
        for i in range(_CHARS_COUNT):
            freq[i] = 1
            child[i] = _TABLE_SIZE + i
            parent[_TABLE_SIZE + i] = i
        for j in range(_CHARS_COUNT, _HUFFMAN_ROOT + 1):
            i = 2 * (j - _CHARS_COUNT)
            freq[j] = freq[i] + freq[i + 1]
            child[j] = i
            parent[i] = parent[i + 1] = j
        freq[_TABLE_SIZE] = 0xFFFF
        parent[_HUFFMAN_ROOT] = 0

    def _huff_code(self) -> int:
        index = self._stream.read_byte()
        length = _CODE_LENGTH[index >> 4]
        code = _CODE_BASE[length] + (index - _CODE_COUNT[length] * 16) // (1 << (5 - length))
        for _ in range(length + 1):
            index = (index << 1) | self._stream.read_bit()
        return (index & 63) | (code << 6)

    def _decode_char(self) -> int:
        i = self._child[_HUFFMAN_ROOT]
        while i < _TABLE_SIZE:
            i += self._stream.read_bit()
            i = self._child[i]
        i -= _TABLE_SIZE
        self._update(i)
        return i

    def _rebuild(self) -> None:
        freq, child, parent = self._freq, self._child, self._parent
        i = 0
        for j in range(_TABLE_SIZE):
            if child[j] >= _TABLE_SIZE:
                freq[i] = (freq[j] + 1) >> 1
                child[i] = child[j]
                i += 1
        j = 0
        for i in range(_CHARS_COUNT, _TABLE_SIZE):
            f = freq[i] = freq[j] + freq[j + 1]
            index = i - 1
            while freq[index] > f:
                index -= 1
            index += 1
            freq[index + 1:i + 1] = freq[index:i]
            freq[index] = f
            child[index + 1:i + 1] = child[index:i]
            child[index] = j
            j += 2
        for i in range(_TABLE_SIZE):
            k = child[i]
            if k >= _TABLE_SIZE:
                parent[k] = i
            else:
                parent[k] = parent[k + 1] = i

    def _update(self, num: int) -> None:
        freq, child, parent = self._freq, self._child, self._parent
        if freq[_HUFFMAN_ROOT] == _MAX_FREQ:
            self._rebuild()
        p = parent[_TABLE_SIZE + num]
        while True:
            freq[p] += 1
            f = freq[p]
            index = p + 1
            if freq[index] < f:
                index += 1
                while freq[index] < f:
                    index += 1
                index -= 1
                freq[p] = freq[index]
                freq[index] = f
                k = child[p]
                parent[k] = index
                if k < _TABLE_SIZE:
                    parent[k + 1] = index
                j = child[index]
                child[index] = k
                parent[j] = p
                if j < _TABLE_SIZE:
                    parent[j + 1] = p
                child[p] = j
                p = index
            p = parent[p]
            if p == 0:
                break

    def decode(self, uncompressed_size: int) -> bytes:
        """Decode exactly ``uncompressed_size`` bytes or raise ValueError."""
        self._reset_tables()
        history = bytearray(b" " * _HISTORY_SIZE)
        offset = 4078
        out = bytearray()
        while len(out) < uncompressed_size:
            char = self._decode_char()
            if char < 256:
                out.append(char)
                history[offset] = char
                offset = (offset + 1) & 0xFFF
            else:
                base = (offset - self._huff_code() - 1) & 0xFFF
                for i in range(char - 253):
                    value = history[(base + i) & 0xFFF]
                    out.append(value)
                    history[offset] = value
                    offset = (offset + 1) & 0xFFF
        if len(out) != uncompressed_size:
            raise ValueError(f"decoded {len(out)} bytes, expected {uncompressed_size}")
        return bytes(out)


@dataclass(frozen=True)
class Win31BankEntry:
    name: str
    type: int
    offset: int
    size: int
    packed_size: int


def decompress_entry(f: BinaryFile, entry: Win31BankEntry) -> bytes:
    """Decompress one bank entry read from ``f``."""
    f.seek(entry.offset)
    return LzHuffman(Bitstream(f, entry.packed_size)).decode(entry.size)


class ResourceWin31:
    """Index, files and strings of the Windows 3.1 data bank."""

    FILENAME = "BANK"

    def __init__(self, data_path: Union[str, os.PathLike]) -> None:
        self.data_path = data_path
        self._f = BinaryFile()
        self._f.open_nocase(self.FILENAME, data_path)
        self.entries: list[Win31BankEntry] = []
        self.strings: list[Optional[str]] = [None] * _STRINGS_COUNT

    def read_entries(self) -> bool:
        header = self._f.read(_ENTRY_SIZE)
        if len(header) != _ENTRY_SIZE or header[:4] != b"NL\0\0":
            return False
        (count,) = struct.unpack_from("<H", header, 4)
        log.debug("Read %d entries in win31 '%s'", count, self.FILENAME)
        (key,) = struct.unpack_from("<H", header, 0x14)
        entries = []
        for num in range(count):
            raw, key = decode(self._f.read(_ENTRY_SIZE).ljust(_ENTRY_SIZE, b"\0"), key)
            name = raw[:16].split(b"\0", 1)[0].decode("latin-1")
            (flags,) = struct.unpack_from("<H", raw, 16)
            size, offset, packed_size = struct.unpack_from("<III", raw, 20)
            entry = Win31BankEntry(name, raw[19], offset, size, packed_size)
            log.debug("Res #%03d '%s' type %d size %d (%d) offset 0x%x",
                      num, name, entry.type, size, packed_size, offset)
            if size != 0 and flags != 0x80:
                raise ValueError(f"unexpected flags 0x{flags:x} for resource #{num}")
            entries.append(entry)
        self.entries = entries
        self.read_strings()
        return True

    def load_file(self, num: int) -> Optional[bytes]:
        """Return the data of resource ``num``, or None if it cannot be loaded."""
        if 0 < num < len(self.entries):
            entry = self.entries[num]
            with BinaryFile() as unpacked:
                if unpacked.open_nocase(f"{num:03d}_{entry.name}", self.data_path) \
                        and unpacked.size() == entry.size:
                    return unpacked.read(entry.size)
            try:
                return decompress_entry(self._f, entry)
            except (EOFError, ValueError) as exc:
                log.warning("Failed to decompress resource #%d: %s", num, exc)
        log.warning("Unable to load resource #%d", num)
        return None

    def read_strings(self) -> None:
        text = self.load_file(_STRINGS_RESOURCE)
        if text is None:
            return
        length = len(text)
        offset = 0
        while offset + 4 <= length:
            (sep,) = struct.unpack_from("<I", text, offset)
            offset += 4
            num = sep >> 16
            if num == 0xFFFF:
                break
            if num < _STRINGS_COUNT and self.strings[num] is None:
                self.strings[num] = text[offset:].split(b"\0", 1)[0].decode("latin-1")
            while offset < length:
                value = text[offset]
                offset += 1
                if value == 0:
                    break
            # strings are not always '\0' terminated
            if offset + 1 < length and text[offset + 1] != 0:
                offset -= 1

    def get_string(self, num: int) -> Optional[str]:
        if 0 <= num < _STRINGS_COUNT:
            return self.strings[num]
        return None

    def get_music_name(self, num: int) -> Optional[str]:
        return {7: "y.mid", 138: "X.mid"}.get(num)