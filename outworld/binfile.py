"""Binary file access with little- and big-endian integer helpers."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO, Optional, Union

log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def find_path_nocase(filename: str, directory: PathLike) -> Optional[Path]:
    """Return the path of ``filename`` in ``directory`` matched case-insensitively."""
    target = filename.lower()
    try:
        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.name.startswith("."):
                    continue
                if entry.name.lower() == target:
                    return Path(directory) / entry.name
    except OSError:
        return None
    return None


def dump_file(filename: str, data: bytes, directory: PathLike = "DUMP") -> None:
    """Write ``data`` to ``directory/filename``, logging a warning on failure."""
    path = Path(directory) / filename
    try:
        with open(path, "wb") as fp:
            written = fp.write(data)
    except OSError as exc:
        log.warning("Failed to write '%s': %s", path, exc)
        return
    if written != len(data):
        log.warning("Failed to write %d bytes (expected %d)", written, len(data))


class BinaryFile:
    """A seekable binary file that records short reads and writes in ``io_err``."""

    def __init__(self) -> None:
        self._fp: Optional[BinaryIO] = None
        self.io_err = False

    def __enter__(self) -> "BinaryFile":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._fp is not None

    def _open(self, path: PathLike, mode: str) -> bool:
        self.close()
        self.io_err = False
        try:
            self._fp = open(path, mode)
        except OSError:
            self._fp = None
            return False
        return True

    def open(self, path: PathLike) -> bool:
        """Open ``path`` for reading; return whether it succeeded."""
        return self._open(path, "rb")

    def open_nocase(self, filename: str, directory: PathLike) -> bool:
        """Open ``filename`` in ``directory``, ignoring the case of the name."""
        self.close()
        path = find_path_nocase(filename, directory)
        if path is None:
            return False
        return self._open(path, "rb")

    def open_for_writing(self, path: PathLike) -> bool:
        """Open ``path`` for writing, truncating it; return whether it succeeded."""
        return self._open(path, "wb")

    def close(self) -> None:
        if self._fp is not None:
            self._fp.close()
            self._fp = None

    def size(self) -> int:
        if self._fp is None:
            return 0
        pos = self._fp.tell()
        end = self._fp.seek(0, os.SEEK_END)
        self._fp.seek(pos, os.SEEK_SET)
        return end

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> None:
        if self._fp is None:
            return
        try:
            self._fp.seek(offset, whence)
        except (OSError, ValueError):
            pass

    def read(self, length: int) -> bytes:
        if self._fp is None:
            return b""
        data = self._fp.read(length)
        if len(data) != length:
            self.io_err = True
        return data

    def read_byte(self) -> int:
        data = self.read(1)
        return data[0] if data else 0

    def read_uint16_le(self) -> int:
        lo = self.read_byte()
        hi = self.read_byte()
        return (hi << 8) | lo

    def read_uint32_le(self) -> int:
        lo = self.read_uint16_le()
        hi = self.read_uint16_le()
        return (hi << 16) | lo

    def read_uint16_be(self) -> int:
        hi = self.read_byte()
        lo = self.read_byte()
        return (hi << 8) | lo

    def read_uint32_be(self) -> int:
        hi = self.read_uint16_be()
        lo = self.read_uint16_be()
        return (hi << 16) | lo

    def write(self, data: bytes) -> int:
        if self._fp is None:
            return 0
        written = self._fp.write(data)
        if written != len(data):
            self.io_err = True
        return written

    def write_byte(self, value: int) -> None:
        self.write(bytes((value & 0xFF,)))

    def write_uint16_le(self, value: int) -> None:
        self.write_byte(value & 0xFF)
        self.write_byte((value >> 8) & 0xFF)

    def write_uint32_le(self, value: int) -> None:
        self.write_uint16_le(value & 0xFFFF)
        self.write_uint16_le((value >> 16) & 0xFFFF)

    def write_uint16_be(self, value: int) -> None:
        self.write_byte((value >> 8) & 0xFF)
        self.write_byte(value & 0xFF)

    def write_uint32_be(self, value: int) -> None:
        self.write_uint16_be((value >> 16) & 0xFFFF)
        self.write_uint16_be(value & 0xFFFF)