# outworld

Pure-Python building blocks for working with the data files of a classic
polygon-based action adventure game: binary file access, resource archive
readers for several editions, decompressors, an AIFF-C music decoder and a
software renderer.

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `outworld.binfile` — `BinaryFile`, a wrapper over a file that reads and
  writes little- and big-endian integers (`read_uint16_le`,
  `read_uint32_be`, `write_uint32_le`, ...) and records short reads and
  writes in its `io_err` attribute. It can be used as a context manager.
  `open_nocase` opens a file whose name matches case-insensitively;
  `find_path_nocase` returns such a path and `dump_file` writes bytes into a
  directory (`DUMP` by default).
- `outworld.bitmap` — `decode_bitmap(data, alpha=False, color_key=-1)` turns
  an uncompressed 8-bit paletted or 32-bit BMP into a top-down `Bitmap` with
  RGB or RGBA pixels; it raises `ValueError` for other images.
- `outworld.screenshot` — `encode_tga` / `save_tga` write RGB555 pixels as a
  run-length encoded TGA image; `encode_bmp` / `save_bmp` write 8-bit
  paletted BMP images.
- `outworld.pak` — `Pak` reads the `Pak01.pak` archive of the 15th
  anniversary edition: `open`, `read_entries`, `find` (case-insensitive) and
  `load_data`, which descrambles "TooDC" entries with `decode_toodc`.
- `outworld.aifcplayer` — `AifcPlayer` opens an SDX2-compressed stereo
  AIFF-C stream (`play`) and returns interleaved signed 16-bit samples from
  `read_samples`, resampled to the requested rate with `Frac`; the stream
  loops when its end is reached.
- `outworld.resource_win31` — `ResourceWin31` reads the Windows 3.1 `BANK`
  file: its scrambled table of contents (`read_entries`), LZ-Huffman
  compressed entries (`load_file`), the string table (`get_string`) and music
  file names (`get_music_name`).
- `outworld.resource_3do` — `Resource3do` reads 3DO data from a `GameData`
  directory or directly from an Opera file system image (`OperaIso`),
  including LZSS-compressed files (`decode_lzss`) and 16-bit cel shapes
  (`load_shape555`, `decode_shape_ccb`).
- `outworld.resource_nth` — `Resource15th` and `Resource20th` read the
  anniversary edition data: bitmaps, data files, sounds, localised strings
  (`Language`) and music names; `create_resource_nth(edition, data_path)`
  picks one by edition (15 or 20). `inflate_gzip` decompresses the 20th
  edition's gzip files.
- `outworld.graphics_soft` — `GraphicsSoft`, a software rasteriser of quad
  strips, points, font characters, bitmaps and page copies into four pages,
  in 16-colour palette mode or RGB555 mode. `draw_buffer` returns a page as
  RGB555 pixels and writes a TGA screenshot when `screenshot` is set.

## Examples

```python
from outworld.pak import Pak

pak = Pak()
if pak.open("/path/to/game/Data"):
    pak.read_entries()
    entry = pak.find("file017.dat")
    if entry is not None:
        data = pak.load_data(entry)
```

```python
from outworld.graphics_soft import Color, GraphicsSoft, Point, QuadStrip
from outworld.screenshot import save_tga

gfx = GraphicsSoft()
gfx.init(320, 200)
gfx.set_palette([Color(0, 0, 0), Color(255, 0, 0)])
gfx.clear_buffer(0, 0)
square = QuadStrip([Point(10, 10), Point(10, 50), Point(50, 50), Point(50, 10)])
gfx.draw_quad_strip(0, 1, square)
save_tga("frame.tga", gfx.draw_buffer(0), 320, 200)
```

## What the package does not do

The package reads and decodes game data and renders into memory; it is not a
playable game. It has no bytecode interpreter for the game scripts, no audio
mixer or sound output (`AifcPlayer` only produces sample values), no window,
input handling or on-screen display, and no command-line program.