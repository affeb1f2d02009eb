"""Conversion between NES CHR tile data and indexed PNG images."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Sequence

from PIL import Image

from famikit.cartridge import from_ines_file

log = logging.getLogger(__name__)

TILES_PER_ROW = 16
TILE_SIZE = 8
BYTES_PER_TILE = 16
IMAGE_WIDTH = TILES_PER_ROW * TILE_SIZE

DEFAULT_PALETTE = ("000", "555", "AAA", "FFF")

Color = tuple[int, int, int, int]


class InvalidPaletteError(ValueError):
    """Raised when a palette does not hold exactly four colors."""


class NoCHRError(ValueError):
    """Raised when a ROM file has no CHR data."""


class InvalidImageError(ValueError):
    """Raised when the input is not a usable image."""


class ImageWidthError(ValueError):
    """Raised when an image is not exactly one row of tiles wide."""


def _parse_hex(text: str) -> Color:
    digits = text[1:] if text.startswith("#") else text
    try:
        values = [int(ch, 16) for ch in digits]
    except ValueError:
        raise ValueError(f"invalid hex color: {text!r}") from None
    if len(values) in (3, 4):
        channels = [v * 0x11 for v in values]
    elif len(values) in (6, 8):
        channels = [values[i] * 16 + values[i + 1] for i in range(0, len(values), 2)]
    else:
        raise ValueError(f"invalid hex color: {text!r}")
    if len(channels) == 3:
        channels.append(0xFF)
    r, g, b, a = channels
    return (r, g, b, a)


def load_palette(colors: Sequence[str] = DEFAULT_PALETTE) -> list[Color]:
    """Parse four hex colors into RGBA tuples."""
    if len(colors) != 4:
        raise InvalidPaletteError(f"palette must contain 4 hex colors: {','.join(colors)}")
    return [_parse_hex(color) for color in colors]


def decode_tiles(chr: bytes) -> Iterator[tuple[int, list[int]]]:
    """Yield each tile's index and its 64 color indices, row by row."""
    for index in range(len(chr) // BYTES_PER_TILE):
        tile = chr[index * BYTES_PER_TILE:(index + 1) * BYTES_PER_TILE]
        pixels = []
        for y in range(TILE_SIZE):
            lo_row, hi_row = tile[y], tile[y + TILE_SIZE]
            for shift in range(7, -1, -1):
                pixels.append(((hi_row >> shift) & 1) << 1 | ((lo_row >> shift) & 1))
        yield index, pixels


def decode_chr_image(chr: bytes, palette: Sequence[Color]) -> Image.Image:
    """Render CHR data as an indexed image sixteen tiles wide."""
    height = len(chr) // (TILES_PER_ROW * BYTES_PER_TILE) * TILE_SIZE
    pixels = bytearray(IMAGE_WIDTH * height)
    for index, tile in decode_tiles(chr):
        x_offset = (index % TILES_PER_ROW) * TILE_SIZE
        y_offset = (index // TILES_PER_ROW) * TILE_SIZE
        if y_offset + TILE_SIZE > height:
            continue
        for y in range(TILE_SIZE):
            start = (y_offset + y) * IMAGE_WIDTH + x_offset
            pixels[start:start + TILE_SIZE] = bytes(tile[y * TILE_SIZE:(y + 1) * TILE_SIZE])

    image = Image.frombytes("P", (IMAGE_WIDTH, height), bytes(pixels))
    image.putpalette([channel for color in palette for channel in color[:3]])
    if any(color[3] != 0xFF for color in palette):
        image.info["transparency"] = bytes(color[3] for color in palette)
    return image


def _premultiplied(color: Sequence[int]) -> Color:
    r, g, b, a = color
    return (r * a // 255, g * a // 255, b * a // 255, a)


def _closest(color: Color, palette: Sequence[Color]) -> int:
    target = _premultiplied(color)
    best, best_dist = 0, None
    for index, candidate in enumerate(palette):
        dist = sum((p - q) ** 2 for p, q in zip(target, _premultiplied(candidate)))
        if best_dist is None or dist < best_dist:
            best, best_dist = index, dist
    return best


def encode_chr_image(image: Image.Image, palette: Sequence[Color]) -> bytes:
    """Encode an image sixteen tiles wide into CHR data using the nearest palette colors."""
    if not isinstance(image, Image.Image):
        raise InvalidImageError("invalid image")
    width, height = image.size
    if width != IMAGE_WIDTH:
        raise ImageWidthError(f"image width must be {IMAGE_WIDTH}; got {width}")

    rgba = image.convert("RGBA")
    data = rgba.load()
    cache: dict[Color, int] = {}

    def index_at(x: int, y: int) -> int:
        color = data[x, y]
        if color not in cache:
            cache[color] = _closest(color, palette)
        return cache[color]

    out = bytearray()
    for tile_y in range(height // TILE_SIZE):
        for tile_x in range(width // TILE_SIZE):
            x0, y0 = tile_x * TILE_SIZE, tile_y * TILE_SIZE
            for bitplane in range(2):
                for y in range(TILE_SIZE):
                    value = 0
                    for x in range(TILE_SIZE):
                        bit = (index_at(x0 + x, y0 + y) >> bitplane) & 1
                        value |= bit << (7 - x)
                    out.append(value)
    return bytes(out)


def load_chr(path: str) -> bytes:
    """CHR data from a ``.nes`` ROM, or the raw contents of any other file."""
    if os.path.splitext(path)[1] == ".nes":
        cart = from_ines_file(path)
        if cart.header.to_bytes()[5] == 0:
            raise NoCHRError(f"ROM file has no CHR data: {path}")
        return bytes(cart.chr)
    with open(path, "rb") as fh:
        return fh.read()


def _stem(path: str) -> str:
    return os.path.splitext(os.path.basename(path))[0]


def decode_file(
    input_path: str,
    output: str | None = None,
    palette: Sequence[str] = DEFAULT_PALETTE,
) -> str:
    """Decode a ROM or CHR file into a PNG; return the path written."""
    colors = load_palette(palette)
    chr_data = load_chr(input_path)
    image = decode_chr_image(chr_data, colors)
    if not output:
        output = _stem(input_path) + ".png"
    image.save(output, format="PNG")
    log.info("Wrote file path=%s tiles=%d", output, len(chr_data) // BYTES_PER_TILE)
    return output


def encode_file(
    input_path: str,
    output: str | None = None,
    palette: Sequence[str] = DEFAULT_PALETTE,
) -> str:
    """Encode a PNG into raw CHR data; return the path written."""
    colors = load_palette(palette)
    with Image.open(input_path) as image:
        image.load()
        chr_data = encode_chr_image(image, colors)
    if not output:
        output = _stem(input_path)
    log.info("Writing CHR data path=%s", output)
    with open(output, "wb") as fh:
        fh.write(chr_data)
    return output