"""Creating iNES ROM files from parts and extracting parts from them."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from famikit.cartridge import (
    HEADER_SIZE,
    Cartridge,
    INESFileHeader,
    Mirror,
    from_ines_file,
)
from famikit.consts import CHR_CHUNK_SIZE, PRG_CHUNK_SIZE

log = logging.getLogger(__name__)

_MIRROR_ALIASES = {
    "horizontal": Mirror.HORIZONTAL,
    "h": Mirror.HORIZONTAL,
    "vertical": Mirror.VERTICAL,
    "v": Mirror.VERTICAL,
    "fourscreen": Mirror.FOUR_SCREEN,
    "f": Mirror.FOUR_SCREEN,
}


class UnknownMirrorError(ValueError):
    """Raised for a mirroring name that is not recognised."""


def parse_mirror(value: str) -> Mirror:
    """Parse horizontal/vertical/fourscreen (or h/v/f), case-insensitively."""
    try:
        return _MIRROR_ALIASES[value.lower()]
    except KeyError:
        raise UnknownMirrorError(f"unknown mirror: {value}") from None


def create_rom(
    output: str | os.PathLike,
    prg: str | os.PathLike,
    header: str | os.PathLike | None = None,
    chr: str | os.PathLike | None = None,
    mapper: int | None = None,
    mirror: Mirror | str | None = None,
    battery: bool | None = None,
) -> Cartridge:
    """Assemble an iNES ROM file from a PRG file and optional header and CHR files."""
    cart = Cartridge()

    if header:
        log.info("Loading header path=%s", header)
        with open(header, "rb") as f:
            cart.header = INESFileHeader.from_bytes(f.read(HEADER_SIZE))

    log.info("Loading PRG path=%s", prg)
    cart.prg = bytearray(Path(prg).read_bytes())
    cart.header.prg_count = (len(cart.prg) // PRG_CHUNK_SIZE) & 0xFF

    if chr:
        log.info("Loading CHR path=%s", chr)
        cart.chr = bytearray(Path(chr).read_bytes())
        cart.header.chr_count = (len(cart.chr) // CHR_CHUNK_SIZE) & 0xFF

    if mapper is not None:
        log.info("Set mapper value=%d", mapper)
        cart.header.mapper = mapper

    if mirror is not None:
        value = parse_mirror(mirror) if isinstance(mirror, str) else Mirror(mirror)
        log.info("Set mirror value=%s", value)
        cart.header.mirror = value

    if battery is not None:
        log.info("Set battery value=%s", battery)
        cart.header.battery = battery

    cart.mirror = cart.header.mirror
    cart.battery = cart.header.battery

    with open(output, "wb") as f:
        f.write(cart.header.to_bytes())
        f.write(cart.prg)
        if cart.chr:
            f.write(cart.chr)
    return cart


def extract_rom(
    path: str | os.PathLike,
    header: str | os.PathLike | None = None,
    prg: str | os.PathLike | None = None,
    chr: str | os.PathLike | None = None,
) -> list[Path]:
    """Write the header, PRG and CHR of an iNES ROM to separate files.

    Output paths default to the ROM's base name with ``_header``, ``_prg`` and
    ``_chr`` suffixes. CHR is skipped when the ROM has none. Returns the paths
    written.
    """
    base = os.path.splitext(os.path.basename(os.fspath(path)))[0]
    cart = from_ines_file(path)
    written: list[Path] = []

    header_path = Path(header) if header else Path(base + "_header")
    log.info("Extracting header path=%s", header_path)
    header_path.write_bytes(cart.header.to_bytes())
    written.append(header_path)

    prg_path = Path(prg) if prg else Path(base + "_prg")
    log.info("Extracting PRG path=%s", prg_path)
    prg_path.write_bytes(cart.prg)
    written.append(prg_path)

    chr_path = Path(chr) if chr else Path(base + "_chr")
    if cart.header.chr_count == 0:
        log.warning("Game does not have CHR. Skipping")
    else:
        log.info("Extracting CHR path=%s", chr_path)
        chr_path.write_bytes(cart.chr)
        written.append(chr_path)

    return written