import random

import pytest
from PIL import Image

from famikit.chr import (
    IMAGE_WIDTH,
    ImageWidthError,
    InvalidImageError,
    InvalidPaletteError,
    NoCHRError,
    decode_chr_image,
    decode_file,
    decode_tiles,
    encode_chr_image,
    encode_file,
    load_chr,
    load_palette,
)


def _rom(chr_banks: int) -> bytes:
    header = b"NES\x1a" + bytes([1, chr_banks]) + bytes(10)
    prg = bytes(0x4000)
    chr_data = bytes(range(256)) * (0x2000 // 256) * chr_banks
    return header + prg + chr_data


def _random_chr(size: int) -> bytes:
    rng = random.Random(1234)
    return bytes(rng.randrange(256) for _ in range(size))


def test_load_palette_default_colors():
    palette = load_palette(["000", "555", "AAA", "FFF"])
    assert palette[0] == (0, 0, 0, 255)
    assert palette[1] == (0x55, 0x55, 0x55, 255)
    assert palette[3] == (255, 255, 255, 255)


def test_load_palette_long_form_matches_short():
    assert load_palette(["#000000", "555555", "aaa", "FFFFFFFF"]) == load_palette()


def test_load_palette_wrong_count():
    with pytest.raises(InvalidPaletteError):
        load_palette(["000", "555", "AAA"])


def test_load_palette_bad_hex():
    with pytest.raises(ValueError):
        load_palette(["000", "555", "AAA", "xyz"])


def test_decode_tiles_combines_bitplanes():
    tile = bytes([0x80] + [0] * 7 + [0x80] + [0] * 7)
    tile += bytes([0x01] + [0] * 15)
    tiles = list(decode_tiles(tile))
    assert [index for index, _ in tiles] == [0, 1]
    first, second = tiles[0][1], tiles[1][1]
    assert len(first) == 64
    assert first[0] == 3
    assert sum(first) == 3
    assert second[7] == 1
    assert sum(second) == 1


def test_decode_image_size():
    image = decode_chr_image(bytes(512), load_palette())
    assert image.size == (IMAGE_WIDTH, 16)
    assert image.mode == "P"


def test_round_trip_image():
    chr_data = _random_chr(512)
    palette = load_palette()
    image = decode_chr_image(chr_data, palette)
    assert encode_chr_image(image, palette) == chr_data


def test_encode_rejects_wrong_width():
    with pytest.raises(ImageWidthError):
        encode_chr_image(Image.new("RGB", (64, 8)), load_palette())


def test_encode_rejects_non_image():
    with pytest.raises(InvalidImageError):
        encode_chr_image(object(), load_palette())


def test_load_chr_from_rom(tmp_path):
    rom = _rom(1)
    path = tmp_path / "game.nes"
    path.write_bytes(rom)
    assert load_chr(str(path)) == rom[16 + 0x4000:]


def test_load_chr_rom_without_chr(tmp_path):
    path = tmp_path / "game.nes"
    path.write_bytes(_rom(0))
    with pytest.raises(NoCHRError):
        load_chr(str(path))


def test_load_chr_raw_file(tmp_path):
    data = _random_chr(64)
    path = tmp_path / "tiles.chr"
    path.write_bytes(data)
    assert load_chr(str(path)) == data


def test_file_round_trip(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    data = _random_chr(1024)
    (tmp_path / "tiles.chr").write_bytes(data)

    png_path = decode_file("tiles.chr")
    assert png_path == "tiles.png"
    with Image.open(png_path) as image:
        assert image.size == (IMAGE_WIDTH, 32)

    out = encode_file(png_path, str(tmp_path / "out.chr"))
    assert (tmp_path / "out.chr").read_bytes() == data
    assert out == str(tmp_path / "out.chr")


def test_encode_file_default_output(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    data = _random_chr(256)
    decode_chr_image(data, load_palette()).save("sheet.png")
    assert encode_file("sheet.png") == "sheet"
    assert (tmp_path / "sheet").read_bytes() == data