"""Data access for the 15th and 20th anniversary editions."""

from __future__ import annotations

import logging
import os
import random
import re
import zlib
from abc import ABC, abstractmethod
from enum import IntEnum
from pathlib import Path
from typing import Optional, Union

from outworld.binfile import BinaryFile
from outworld.pak import Pak

log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

_GZIP_SIGNATURE = 0x8B1F
_STRINGS_COUNT_15TH = 157
_STRINGS_COUNT_20TH = 192

_DAT_PART_NAMES = ("INTRO", "EAU", "PRI", "CITE", "arene", "LUXE", "FINAL")
_DAT_EXTS = ("pal", "mac", "mat")

_BITMAP_SIZES = (
    "1728x1080",
    "1280x800",
    "1152x720",
    "960x600",
    "864x540",
    "768x480",
    "480x300",
    "320x200",
)


class Language(IntEnum):
    FR = 0
    US = 1
    DE = 2
    ES = 3
    IT = 4


def inflate_gzip(path: PathLike) -> Optional[bytes]:
    """Return the decompressed contents of a gzip file, or None on failure."""
    with BinaryFile() as f:
        if not f.open(path):
            log.warning("Unable to open '%s'", path)
            return None
        sig = f.read_uint16_le()
        if sig != _GZIP_SIGNATURE:
            log.warning("Unexpected file signature 0x%x for '%s'", sig, path)
            return None
        f.seek(-4, os.SEEK_END)
        data_size = f.read_uint32_le()
        f.seek(0)
        raw = f.read(f.size())
    decoder = zlib.decompressobj(zlib.MAX_WBITS + 16)
    try:
        out = decoder.decompress(raw)
    except zlib.error as exc:
        log.warning("Failed to inflate '%s': %s", path, exc)
        return None
    if not decoder.eof or len(out) > data_size:
        log.warning("Truncated or oversized gzip data in '%s'", path)
        return None
    return out


def _load_text(path: PathLike) -> Optional[str]:
    with BinaryFile() as f:
        if not f.open(path):
            return None
        size = f.size()
        data = f.read(size)
        if len(data) != size:
            log.warning("Failed to read %d bytes (%d expected)", len(data), size)
            return None
    return data.decode("latin-1")


def _scan_number(line: str) -> Optional[int]:
    """Read an integer of at most three characters after leading whitespace."""
    rest = line.lstrip(" \t\n\v\f\r")[:3]
    m = re.match(r"[+-]?\d+", rest)
    return int(m.group()) if m else None


class ResourceNth(ABC):
    """Common interface of the anniversary edition data readers."""

    def __init__(self, use_remastered_audio: bool = True) -> None:
        self.use_remastered_audio = use_remastered_audio

    @abstractmethod
    def init(self) -> bool: ...

    @abstractmethod
    def load(self, name: str) -> Optional[bytes]: ...

    @abstractmethod
    def load_bmp(self, num: int) -> Optional[bytes]: ...

    def preload_dat(self, part: int, type: int, num: int) -> None:
        """Select a high-definition data file for the next load; no-op by default."""

    @abstractmethod
    def load_dat(self, num: int) -> Optional[bytes]: ...

    @abstractmethod
    def load_wav(self, num: int) -> Optional[bytes]: ...

    @abstractmethod
    def get_string(self, lang: Language, num: int) -> Optional[str]: ...

    @abstractmethod
    def get_music_name(self, num: int) -> Optional[str]: ...

    @abstractmethod
    def get_bitmap_size(self) -> tuple[int, int]: ...


class Resource15th(ResourceNth):
    """Reads the 15th anniversary edition 'Pak01.pak' archive and menu texts."""

    _LANG_FILES = {
        Language.FR: "Francais.Txt",
        Language.US: "English.Txt",
        Language.DE: "German.Txt",
        Language.ES: "Espanol.txt",
        Language.IT: "Italian.Txt",
    }

    def __init__(self, data_path: PathLike, use_remastered_audio: bool = True) -> None:
        super().__init__(use_remastered_audio)
        root = Path(data_path)
        self.has_remastered_music = (root / "Music" / "AW" / "RmSnd").is_dir()
        self.data_path = root / "Data"
        self.menu_path = root / "Menu"
        self.pak = Pak()
        self.strings: Optional[list[Optional[str]]] = None

    def init(self) -> bool:
        self.pak.open(self.data_path)
        self.pak.read_entries()
        return bool(self.pak.entries)

    def load(self, name: str) -> Optional[bytes]:
        entry = self.pak.find(name)
        if entry is None:
            log.warning("Unable to load '%s'", name)
            return None
        return self.pak.load_data(entry)

    def load_bmp(self, num: int) -> Optional[bytes]:
        name = f"e{num:04d}.bmp" if num >= 3000 else f"file{num:03d}.bmp"
        return self.load(name)

    def load_dat(self, num: int) -> Optional[bytes]:
        return self.load(f"file{num:03d}.dat")

    def load_wav(self, num: int) -> Optional[bytes]:
        names = []
        if self.use_remastered_audio:
            names.append(f"rmsnd/file{num:03d}.wav")
        names += [f"file{num:03d}b.wav", f"file{num:03d}.wav"]
        for name in names:
            entry = self.pak.find(name)
            if entry is not None:
                return self.pak.load_data(entry)
        log.warning("Unable to load '%s'", names[-1])
        return None

    def _load_strings(self, lang: Language) -> None:
        if self.strings is not None:
            return
        name = self._LANG_FILES.get(lang)
        if name is None:
            return
        text = _load_text(self.menu_path / f"lang_{name}")
        if text is None:
            return
        table: list[Optional[str]] = [None] * _STRINGS_COUNT_15TH
        pos = 0
        while True:
            end = text.find("\r", pos)
            if end < 0:
                break
            line = text[pos:end]
            nxt = end + 1
            if text.startswith("\n", nxt):
                nxt += 1
            if nxt - pos > 3:
                num = _scan_number(line)
                if num is not None and 0 <= num < _STRINGS_COUNT_15TH:
                    table[num] = line[3:].lstrip(" \t")
            pos = nxt
        self.strings = table

    def get_string(self, lang: Language, num: int) -> Optional[str]:
        self._load_strings(lang)
        if self.strings is not None and 0 <= num < _STRINGS_COUNT_15TH:
            return self.strings[num]
        return None

    def get_music_name(self, num: int) -> Optional[str]:
        names = {7: "Intro2004.wav", 138: "End2004.wav"}
        name = names.get(num)
        if name is None:
            return None
        if self.has_remastered_music and self.use_remastered_audio:
            return f"Music/AW/RmSnd/{name}"
        return f"Music/AW/{name}"

    def get_bitmap_size(self) -> tuple[int, int]:
        return 1280, 800


class Resource20th(ResourceNth):
    """Reads the 20th anniversary edition 'game' directory tree."""

    _LANG_CODES = {
        Language.FR: "FR",
        Language.US: "EN",
        Language.DE: "DE",
        Language.ES: "ES",
        Language.IT: "IT",
    }

    def __init__(self, data_path: PathLike, use_remastered_audio: bool = True) -> None:
        super().__init__(use_remastered_audio)
        self.data_path = Path(data_path)
        self.game_path = self.data_path / "game"
        self.strings: Optional[list[Optional[str]]] = None
        self.music_type = 0
        self.dat_name = ""
        self.bitmap_size: Optional[str] = None
        self.rng = random.Random()

    def init(self) -> bool:
        for name in ("BGZ", "DAT", "WGZ"):
            path = self.game_path / name
            if not path.is_dir():
                log.warning("'%s' is not a directory", path)
                return False
        self.bitmap_size = next(
            (size for size in _BITMAP_SIZES if (self.game_path / "BGZ" / f"data{size}").is_dir()),
            None,
        )
        return True

    def load(self, name: str) -> Optional[bytes]:
        files = {"font.bmp": "Font.bgz", "heads.bmp": "Heads.bgz"}
        if name in files:
            return inflate_gzip(self.game_path / "BGZ" / files[name])
        return None

    def load_bmp(self, num: int) -> Optional[bytes]:
        bgz = self.game_path / "BGZ"
        if num >= 3000 and self.bitmap_size:
            size = self.bitmap_size
            path = bgz / f"data{size}" / f"{size}_e{num:04d}.bgz"
        else:
            path = bgz / f"file{num:03d}.bgz"
        return inflate_gzip(path)

    def preload_dat(self, part: int, type: int, num: int) -> None:
        if 0 < part < 8:
            if type == 3:
                if num != 0x11:
                    raise ValueError(f"unexpected bank resource {num:#x}")
                self.dat_name = "BANK2.MAT"
            elif 0 <= type < len(_DAT_EXTS):
                self.dat_name = f"{_DAT_PART_NAMES[part - 1]}2011.{_DAT_EXTS[type]}"
            else:
                raise ValueError(f"invalid data type {type}")
            log.debug("Loading '%s'", self.dat_name)
        else:
            self.dat_name = ""

    def load_dat(self, num: int) -> Optional[bytes]:
        path = self.game_path / "DAT"
        data = None
        with BinaryFile() as f:
            opened = bool(self.dat_name) and f.open_nocase(self.dat_name, path)
            if not opened:
                self.dat_name = f"FILE{num:03d}.DAT"
                opened = f.open_nocase(self.dat_name, path)
            if opened:
                size = f.size()
                data = f.read(size)
                if len(data) != size:
                    log.warning("Failed to read %d bytes (expected %d)", len(data), size)
            else:
                log.warning("Unable to open '%s/%s'", path, self.dat_name)
        self.dat_name = ""
        return data

    def _variant(self, grave: str) -> str:
        return {1: "EX", 2: "IN"}.get(self.music_type, grave)

    def load_wav(self, num: int) -> Optional[bytes]:
        wgz = self.game_path / "WGZ"
        if not self.use_remastered_audio:
            path = wgz / "original" / f"file{num:03d}.wgz"
            if not path.exists():
                path = wgz / "original" / f"file{num:03d}B.wgz"
            return inflate_gzip(path)
        if num == 81:
            path = wgz / f"file081-EX-{self.rng.randint(1, 3)}.wgz"
        elif num == 85:
            snd = "EX" if self.music_type == 1 else "IN"
            path = wgz / f"file085-{snd}-{self.rng.randint(1, 2)}.wgz"
        elif num == 96:
            path = wgz / f"file096-{self._variant('GR')}-{self.rng.randint(1, 3)}.wgz"
        elif num == 163:
            path = wgz / f"file163-{self._variant('GR')}-1.wgz"
        else:
            path = wgz / f"file{num:03d}.wgz"
            if not path.exists():
                path = wgz / f"file{num:03d}B.wgz"
        return inflate_gzip(path)

    def _load_strings(self, lang: Language) -> None:
        if self.strings is not None:
            return
        code = self._LANG_CODES.get(lang)
        if code is None:
            return
        txt = self.game_path / "TXT"
        for path in (txt / f"{code}.txt", txt / "Linux" / f"{code}.txt"):
            text = _load_text(path)
            if text is not None:
                break
        else:
            return
        table: list[Optional[str]] = [None] * _STRINGS_COUNT_20TH
        for num, line in enumerate(text.split("\n")[:_STRINGS_COUNT_20TH]):
            table[num] = line
        self.strings = table

    def get_string(self, lang: Language, num: int) -> Optional[str]:
        self._load_strings(lang)
        if self.strings is not None and 0 <= num < _STRINGS_COUNT_20TH:
            return self.strings[num]
        return None

    def get_music_name(self, num: int) -> Optional[str]:
        if num >= 5000 and self.use_remastered_audio:
            self.music_type = {5005: 1, 5006: 3}.get(num, 2)
            return f"game/OGG/amb{num}.ogg"
        if num == 7:
            if self.use_remastered_audio:
                return "game/OGG/Intro_20th.ogg"
            return "game/OGG/original/intro.ogg"
        if num == 138 and not self.use_remastered_audio:
            return "game/OGG/original/ending.ogg"
        return None

    def get_bitmap_size(self) -> tuple[int, int]:
        if self.bitmap_size:
            m = re.match(r"\s*([+-]?\d+)x\s*([+-]?\d+)", self.bitmap_size)
            if m:
                return int(m.group(1)), int(m.group(2))
        return 0, 0


def create_resource_nth(
    edition: int, data_path: PathLike, use_remastered_audio: bool = True
) -> Optional[ResourceNth]:
    """Return the reader for the given anniversary ``edition`` (15 or 20), else None."""
    if edition == 15:
        return Resource15th(data_path, use_remastered_audio)
    if edition == 20:
        return Resource20th(data_path, use_remastered_audio)
    return None