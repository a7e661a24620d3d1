import gzip
import struct

import pytest

from outworld.resource_nth import (
    Language,
    Resource15th,
    Resource20th,
    create_resource_nth,
    inflate_gzip,
)


def _write_pak(path, files):
    entries = b""
    blobs = b""
    data_offset = 12
    for name, data in files.items():
        raw = ("dlx/" + name).encode("latin-1").ljust(0x38, b"\0")
        raw += struct.pack("<II", data_offset + len(blobs), len(data))
        entries += raw
        blobs += data
    header = b"PACK" + struct.pack("<II", data_offset + len(blobs), len(entries))
    path.write_bytes(header + blobs + entries)


def _write_gz(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(gzip.compress(data))


@pytest.fixture
def root15(tmp_path):
    (tmp_path / "Data").mkdir()
    _write_pak(tmp_path / "Data" / "Pak01.pak", {
        "file001.dat": b"bytecode",
        "e3001.bmp": b"hd-bitmap",
        "file071.bmp": b"bitmap",
        "rmsnd/file005.wav": b"remastered",
        "file005b.wav": b"variant-b",
        "file005.wav": b"plain",
        "file006.wav": b"only-plain",
    })
    return tmp_path


@pytest.fixture
def root20(tmp_path):
    for name in ("BGZ", "DAT", "WGZ"):
        (tmp_path / "game" / name).mkdir(parents=True)
    return tmp_path


def test_inflate_gzip_round_trip(tmp_path):
    path = tmp_path / "x.bgz"
    payload = bytes(range(256)) * 10
    _write_gz(path, payload)
    assert inflate_gzip(path) == payload


def test_inflate_gzip_rejects_non_gzip_and_missing(tmp_path):
    path = tmp_path / "plain.bin"
    path.write_bytes(b"not compressed data")
    assert inflate_gzip(path) is None
    assert inflate_gzip(tmp_path / "missing.bgz") is None


def test_create_resource_nth(tmp_path):
    assert create_resource_nth(15, tmp_path).get_bitmap_size() == (1280, 800)
    assert create_resource_nth(20, tmp_path).get_bitmap_size() == (0, 0)
    assert create_resource_nth(99, tmp_path) is None


def test_15th_init_without_pak(tmp_path):
    assert Resource15th(tmp_path).init() is False


def test_15th_load_dat_and_bmp(root15):
    res = Resource15th(root15)
    assert res.init() is True
    assert res.load_dat(1) == b"bytecode"
    assert res.load_dat(2) is None
    assert res.load_bmp(3001) == b"hd-bitmap"
    assert res.load_bmp(71) == b"bitmap"


def test_15th_load_wav_preference(root15):
    remastered = Resource15th(root15, use_remastered_audio=True)
    remastered.init()
    assert remastered.load_wav(5) == b"remastered"
    original = Resource15th(root15, use_remastered_audio=False)
    original.init()
    assert original.load_wav(5) == b"variant-b"
    assert original.load_wav(6) == b"only-plain"
    assert original.load_wav(7) is None


def test_15th_strings(tmp_path):
    (tmp_path / "Menu").mkdir()
    (tmp_path / "Menu" / "lang_English.Txt").write_bytes(
        b"001 Hello\r\n002\tWorld\r\nxyz\r\n156 Last\r\n200 Out\r\n")
    res = Resource15th(tmp_path)
    assert res.get_string(Language.US, 1) == "Hello"
    assert res.get_string(Language.US, 2) == "World"
    assert res.get_string(Language.US, 156) == "Last"
    assert res.get_string(Language.US, 0) is None
    assert res.get_string(Language.US, 157) is None


def test_15th_music_names(tmp_path):
    assert Resource15th(tmp_path).get_music_name(7) == "Music/AW/Intro2004.wav"
    (tmp_path / "Music" / "AW" / "RmSnd").mkdir(parents=True)
    res = Resource15th(tmp_path, use_remastered_audio=True)
    assert res.get_music_name(138) == "Music/AW/RmSnd/End2004.wav"
    assert Resource15th(tmp_path, use_remastered_audio=False).get_music_name(138) == "Music/AW/End2004.wav"
    assert res.get_music_name(8) is None


def test_20th_init_requires_directories(tmp_path):
    assert Resource20th(tmp_path).init() is False


def test_20th_bitmap_size_detection(root20):
    res = Resource20th(root20)
    assert res.init() is True
    assert res.get_bitmap_size() == (0, 0)
    (root20 / "game" / "BGZ" / "data1280x800").mkdir()
    (root20 / "game" / "BGZ" / "data320x200").mkdir()
    res = Resource20th(root20)
    res.init()
    assert res.bitmap_size == "1280x800"
    assert res.get_bitmap_size() == (1280, 800)


def test_20th_load_bmp_and_font(root20):
    bgz = root20 / "game" / "BGZ"
    (bgz / "data1280x800").mkdir()
    _write_gz(bgz / "file071.bgz", b"low")
    _write_gz(bgz / "data1280x800" / "1280x800_e3001.bgz", b"high")
    _write_gz(bgz / "Font.bgz", b"font")
    res = Resource20th(root20)
    res.init()
    assert res.load_bmp(71) == b"low"
    assert res.load_bmp(3001) == b"high"
    assert res.load("font.bmp") == b"font"
    assert res.load("other.bmp") is None


def test_20th_preload_and_load_dat(root20):
    dat = root20 / "game" / "DAT"
    (dat / "EAU2011.mac").write_bytes(b"hd-code")
    (dat / "FILE027.DAT").write_bytes(b"sd-code")
    res = Resource20th(root20)
    res.preload_dat(2, 1, 0x1B)
    assert res.dat_name == "EAU2011.mac"
    assert res.load_dat(0x1B) == b"hd-code"
    assert res.load_dat(0x1B) == b"sd-code"
    assert res.load_dat(0x99) is None


def test_20th_preload_dat_bank_and_errors(root20):
    res = Resource20th(root20)
    res.preload_dat(1, 3, 0x11)
    assert res.dat_name == "BANK2.MAT"
    res.preload_dat(0, 0, 0x14)
    assert res.dat_name == ""
    with pytest.raises(ValueError):
        res.preload_dat(1, 3, 0x10)


def test_20th_load_wav_original_fallback(root20):
    _write_gz(root20 / "game" / "WGZ" / "original" / "file010B.wgz", b"orig-b")
    res = Resource20th(root20, use_remastered_audio=False)
    assert res.load_wav(10) == b"orig-b"


def test_20th_load_wav_remastered_variants(root20):
    wgz = root20 / "game" / "WGZ"
    _write_gz(wgz / "file163-EX-1.wgz", b"exterior")
    _write_gz(wgz / "file163-GR-1.wgz", b"grave")
    _write_gz(wgz / "file012.wgz", b"twelve")
    res = Resource20th(root20, use_remastered_audio=True)
    assert res.load_wav(163) == b"grave"
    assert res.get_music_name(5005) == "game/OGG/amb5005.ogg"
    assert res.load_wav(163) == b"exterior"
    assert res.load_wav(12) == b"twelve"


def test_20th_load_wav_random_variant_in_range(root20):
    wgz = root20 / "game" / "WGZ"
    for r in (1, 2, 3):
        _write_gz(wgz / f"file081-EX-{r}.wgz", f"ex{r}".encode())
    res = Resource20th(root20)
    results = {res.load_wav(81) for _ in range(30)}
    assert results <= {b"ex1", b"ex2", b"ex3"}
    assert results


def test_20th_music_names(root20):
    remastered = Resource20th(root20, use_remastered_audio=True)
    assert remastered.get_music_name(7) == "game/OGG/Intro_20th.ogg"
    assert remastered.get_music_name(138) is None
    remastered.get_music_name(5006)
    assert remastered.music_type == 3
    original = Resource20th(root20, use_remastered_audio=False)
    assert original.get_music_name(7) == "game/OGG/original/intro.ogg"
    assert original.get_music_name(138) == "game/OGG/original/ending.ogg"
    assert original.get_music_name(5005) is None


def test_20th_strings(root20):
    txt = root20 / "game" / "TXT"
    txt.mkdir()
    (txt / "EN.txt").write_bytes(b"first\nsecond\n")
    res = Resource20th(root20)
    assert res.get_string(Language.US, 0) == "first"
    assert res.get_string(Language.US, 1) == "second"
    assert res.get_string(Language.US, 2) == ""
    assert res.get_string(Language.US, 3) is None
    assert res.get_string(Language.US, 500) is None


def test_20th_strings_linux_fallback(root20):
    linux = root20 / "game" / "TXT" / "Linux"
    linux.mkdir(parents=True)
    (linux / "FR.txt").write_bytes(b"bonjour")
    res = Resource20th(root20)
    assert res.get_string(Language.FR, 0) == "bonjour"