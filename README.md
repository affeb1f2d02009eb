# famikit

famikit provides building blocks for an NES emulator and the `nesutil`
command-line tool for working with NES ROM files.

- `famikit.cartridge`: reads iNES ROM files (`from_ines`, `from_ines_file`),
  decodes and edits the 16-byte header (`INESFileHeader` with the `mapper`,
  `mirror`, `battery`, `nes_v2` and `submapper` properties), and computes the
  file's MD5 hash.
- `famikit.mapper.new_mapper`: picks the mapper a cartridge's header declares.
  Mappers 0 and 2 (`Mapper2`), 1 (`Mapper1`), 3 (`Mapper3`) and 7 (`Mapper7`)
  live in `famikit.mappers_basic`, along with 71 (`Mapper71`). Mapper 4 (MMC3,
  `famikit.mmc3.Mapper4`) and 69 (FME-7, `famikit.fme7.Mapper69`) have their own
  modules. Any other mapper number raises `UnsupportedMapperError`.
- `famikit.channels`: the `Square`, `Triangle`, `Noise` and `DMC` sound
  channels.
- `famikit.apu.APU`: mixes those channels into stereo 32-bit float samples and
  keeps them in a `famikit.ringbuffer.RingBuffer`.
- `famikit.config`: the `Config` dataclasses and their defaults
  (`new_default()`), TOML output (`Config.to_toml()`), and helpers for durations
  (`parse_duration`, `format_duration`) and byte sizes (`parse_bytes`,
  `format_bytes`). It also returns the configuration directories (`get_dir()`,
  `get_states_dir()`, `get_sram_dir()`, `get_palette_dir()`,
  `get_screenshot_dir()`).
- `famikit.config_load`: `load_config` layers the main config file, a per-game
  override file and command-line flags over a `Config`. `fix_config` migrates
  old keys and clamps out-of-range values. `add_flags` adds the matching
  options to an `argparse` parser.
- `famikit.genie`: `decode` and `encode` Game Genie codes.
- `famikit.chr`: converts between CHR tile data and indexed PNG images.
- `famikit.ines_tools`: `create_rom` builds an iNES file from its parts, and
  `extract_rom` splits one into them.
- `famikit.listing`: loads, filters, sorts and prints ROM metadata.

## Installation

```
pip install .
```

## Command-line use

List the ROMs (`*.nes`) under one or more paths. With no path, the current
directory is used. Output formats are `table` (the default), `json`, `yaml`
and `path`. You can sort by `path`, `name`, `mapper`, `battery` or `mirror`.
You can filter by `name`, `mapper`, `mirror`, `battery` or `hash`, given as
comma-separated `key=value` pairs:

```
nesutil ls roms/
nesutil ls roms/ --filter mapper=4 --sort name --output json
nesutil list roms/ --reverse
```

Decode Game Genie codes into a table. Encode an address and a replacement
value, plus an optional compare value, all given in hex. The command always
encodes a compare value, which defaults to 0, so it prints an 8-letter code:

```
nesutil genie decode SXIOPO YEUZUGAA
nesutil genie encode ACB3 07 00
```

Convert CHR data to a PNG image and a PNG image back to CHR data. `decode`
reads a `.nes` ROM's CHR banks, or treats any other file as raw CHR data. The
image is 128 pixels wide, 16 tiles per row. The palette is four hex colors
separated by commas and defaults to `000,555,AAA,FFF`:

```
nesutil chr decode game.nes tiles.png
nesutil chr encode tiles.png tiles.chr --palette 000,555,AAA,FFF
```

Split an iNES ROM into its header, PRG and CHR files. Unless you pass paths,
they are named `<name>_header`, `<name>_prg` and `<name>_chr`. You can also
build a ROM from parts:

```
nesutil ines extract game.nes
nesutil ines create out.nes --prg game_prg --chr game_chr --mapper 1 --mirror vertical --battery
```

## Library use

```python
from famikit.cartridge import from_ines_file
from famikit.mapper import new_mapper
from famikit.genie import decode, encode

cart = from_ines_file("game.nes")
print(cart.name, cart.hash, cart.header.mapper, cart.mirror)

mapper = new_mapper(cart)
reset_lo = mapper.read_mem(0xFFFC)

code = decode("SXIOPO")
print(hex(code.address), hex(code.replace), code.compare_string())
print(encode(0x91D9, 0xAD))  # "SXIOPO"; pass a compare value for 8-letter codes
```

## What is not included

famikit cannot run games. It has no CPU, no PPU (picture processing unit), no
system bus or controller input, and no console loop that ties the components
together. It opens no window and plays no sound: `APU.read` only returns
sample bytes for a caller to play. It also does not write save states or
battery RAM files, although `famikit.config` returns the directories intended
for them.

## Running the tests

```
pip install .[test]
pytest
```