"""Streaming player for SDX2-compressed stereo AIFF-C music."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import ClassVar, Union

from outworld.binfile import BinaryFile

log = logging.getLogger(__name__)

FVER_VERSION = 0xA2805140


@dataclass
class Frac:
    """Fixed-point step counter used for sample-rate conversion."""

    BITS: ClassVar[int] = 16

    inc: int = 0
    offset: int = 0

    def reset(self, n: int, d: int) -> None:
        self.inc = (n << self.BITS) // d
        self.offset = 0

    def get_int(self) -> int:
        return self.offset >> self.BITS


def _to_int16(value: int) -> int:
    return ((value + 0x8000) & 0xFFFF) - 0x8000


def decode_sdx2(prev: int, data: int) -> int:
    """Decode one SDX2 sample given the previous sample of the same channel."""
    sqr = data * abs(data) * 2
    return _to_int16(prev + sqr if data & 1 else sqr)


def _read_ieee754(p: bytes) -> int:
    p = p.ljust(10, b"\0")
    mantissa = int.from_bytes(p[2:6], "big")
    exp = 30 - p[1]
    return mantissa >> exp if exp >= 0 else (mantissa << -exp) & 0xFFFFFFFF


class AifcPlayer:
    def __init__(self) -> None:
        self._f = BinaryFile()
        self.ssnd_offset = 0
        self.ssnd_size = 0
        self.pos = 0
        self.sample_l = 0
        self.sample_r = 0
        self.rate = Frac()

    def play(self, mix_rate: int, path: Union[str, os.PathLike], start_offset: int = 0) -> bool:
        """Open the stream; return whether sound data was found."""
        self.ssnd_size = 0
        if self._f.open(path):
            self._parse(mix_rate, path, start_offset)
        self.pos = 0
        self.sample_l = self.sample_r = 0
        return self.ssnd_size != 0

    def _parse(self, mix_rate: int, path, start_offset: int) -> None:
        f = self._f
        f.seek(start_offset)
        header = f.read(12)
        if header[:4] != b"FORM" or header[8:12] != b"AIFC":
            return
        size = int.from_bytes(header[4:8], "big")
        offset = 12
        while offset + 8 < size:
            f.seek(start_offset + offset)
            tag = f.read(4)
            sz = f.read_uint32_be()
            if tag == b"COMM":
                channels = f.read_uint16_be()
                f.read_uint32_be()  # samples per frame
                bits = f.read_uint16_be()
                rate = _read_ieee754(f.read(10))
                if channels != 2:
                    log.warning("Unsupported AIFF-C channels %d rate %d (%s)", channels, rate, path)
                    return
                if f.read(4) != b"SDX2":
                    log.warning("Unsupported compression")
                    return
                log.debug("AIFF-C channels %d rate %d bits %d", channels, rate, bits)
                self.rate.reset(rate, mix_rate)
            elif tag == b"SSND":
                f.read_uint32_be()  # block offset
                f.read_uint32_be()  # block size
                self.ssnd_offset = start_offset + offset + 16
                self.ssnd_size = sz
                log.debug("AIFF-C ssnd size %d", sz)
                return
            elif tag == b"FVER":
                version = f.read_uint32_be()
                if version != FVER_VERSION:
                    log.warning("Unexpected AIFF-C version 0x%x (%s)", version, path)
            elif tag == b"INST":
                pass
            elif tag == b"MARK":
                for _ in range(f.read_uint16_be()):
                    f.read_uint16_be()  # marker id
                    f.read_uint32_be()  # marker position
                    length = f.read_byte()
                    if length:
                        f.read(length)
            else:
                log.warning("Unhandled AIFF-C tag %r size %d offset 0x%x path %s",
                            tag, sz, start_offset + offset, path)
                return
            offset += sz + 8

    def stop(self) -> None:
        self._f.close()

    def read_sample_data(self) -> int:
        if self.pos >= self.ssnd_size:
            self.pos = 0
            self._f.seek(self.ssnd_offset)
        value = self._f.read_byte()
        self.pos += 1
        return value - 256 if value >= 128 else value

    def decode_samples(self) -> None:
        if self.rate.inc <= 0 or self.ssnd_size == 0:
            raise RuntimeError("no AIFF-C stream is playing")
        start = self.rate.get_int()
        while self.rate.get_int() == start:
            self.sample_l = decode_sdx2(self.sample_l, self.read_sample_data())
            self.sample_r = decode_sdx2(self.sample_r, self.read_sample_data())
            self.rate.offset += self.rate.inc

    def read_samples(self, count: int) -> list[int]:
        """Return ``count`` interleaved stereo samples (rounded up to a pair)."""
        out: list[int] = []
        for _ in range(0, count, 2):
            self.decode_samples()
            out += (self.sample_l, self.sample_r)
        return out