"""Cartridge data and iNES ROM file parsing."""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass, field
from enum import IntEnum
from typing import BinaryIO

from famikit.consts import CHR_CHUNK_SIZE, PRG_CHUNK_SIZE, PRG_ROM_ADDR

log = logging.getLogger(__name__)

INES_MAGIC = b"NES\x1a"
HEADER_SIZE = 16
CONTROL_SIZE = 10
SRAM_SIZE = 0x2000

SUBMAPPER_MC_ACC = 3

_RESET_VECTOR = 0xFFFC


class Mirror(IntEnum):
    """Nametable mirroring arrangement."""

    HORIZONTAL = 0
    VERTICAL = 1
    SINGLE_LOWER = 2
    SINGLE_UPPER = 3
    FOUR_SCREEN = 4

    def __str__(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))


class InvalidROMError(ValueError):
    """Raised when data is not a valid iNES ROM."""


def _file_stem(path: str | os.PathLike) -> str:
    base = os.path.basename(os.fspath(path))
    dot = base.rfind(".")
    return base[:dot] if dot != -1 else base


@dataclass
class INESFileHeader:
    """The 16-byte iNES file header."""

    magic: bytes = INES_MAGIC
    prg_count: int = 0
    chr_count: int = 0
    control: bytearray = field(default_factory=lambda: bytearray(CONTROL_SIZE))

    def __post_init__(self) -> None:
        self.magic = bytes(self.magic)
        if len(self.magic) != 4:
            raise ValueError("magic must be 4 bytes")
        control = bytearray(self.control)
        if len(control) > CONTROL_SIZE:
            raise ValueError(f"control must be at most {CONTROL_SIZE} bytes")
        self.control = control + bytearray(CONTROL_SIZE - len(control))

    @classmethod
    def from_bytes(cls, data: bytes) -> INESFileHeader:
        """Parse a header from exactly 16 bytes."""
        if len(data) != HEADER_SIZE:
            raise InvalidROMError(f"header must be {HEADER_SIZE} bytes, got {len(data)}")
        return cls(
            magic=bytes(data[:4]),
            prg_count=data[4],
            chr_count=data[5],
            control=bytearray(data[6:]),
        )

    def to_bytes(self) -> bytes:
        """Serialize the header to its 16-byte form."""
        return self.magic + bytes((self.prg_count & 0xFF, self.chr_count & 0xFF)) + bytes(self.control)

    @property
    def mapper(self) -> int:
        """The iNES mapper number."""
        return (self.control[1] & 0xF0) | (self.control[0] >> 4)

    @mapper.setter
    def mapper(self, value: int) -> None:
        if not 0 <= value <= 0xFF:
            raise ValueError(f"mapper out of range: {value}")
        self.control[0] &= 0x0F
        self.control[1] &= 0x0F
        self.control[0] |= (value << 4) & 0xFF
        self.control[1] |= value & 0xF0

    @property
    def mirror(self) -> Mirror:
        """The nametable mirroring declared by the header."""
        if self.control[0] & 0x8:
            return Mirror.FOUR_SCREEN
        return Mirror(self.control[0] & 1)

    @mirror.setter
    def mirror(self, value: Mirror) -> None:
        self.control[0] &= ~(0x8 | 0x1) & 0xFF
        if value in (Mirror.HORIZONTAL, Mirror.VERTICAL):
            self.control[0] |= int(value)
        else:
            self.control[0] |= 0x8

    @property
    def battery(self) -> bool:
        """Whether the cartridge has battery-backed RAM."""
        return bool(self.control[0] & 0x2)

    @battery.setter
    def battery(self, value: bool) -> None:
        if value:
            self.control[0] |= 0x2
        else:
            self.control[0] &= ~0x2 & 0xFF

    @property
    def nes_v2(self) -> bool:
        """Whether the header is in NES 2.0 format."""
        return self.control[1] & 0xC == 0x8

    @property
    def submapper(self) -> int:
        """The NES 2.0 submapper number, or 0 for plain iNES."""
        return self.control[2] >> 4 if self.nes_v2 else 0


class Cartridge:
    """A loaded game cartridge: ROM banks, save RAM and metadata."""

    def __init__(self) -> None:
        self.header = INESFileHeader(control=bytearray([0, 8]))
        self.prg = bytearray()
        self.chr = bytearray()
        self.sram = bytearray(SRAM_SIZE)
        self.mirror = Mirror.HORIZONTAL
        self.battery = False
        self._hash = ""
        self._name = ""

    @classmethod
    def from_bytes(cls, data: bytes) -> Cartridge:
        """Build a cartridge from raw program bytes, with a reset vector pointing at them."""
        cart = cls()
        cart._hash = hashlib.md5(data).hexdigest()
        prg = bytearray(PRG_ROM_ADDR) + bytearray(data)
        if len(prg) < PRG_CHUNK_SIZE * 2:
            prg += bytearray(PRG_CHUNK_SIZE * 2 - len(prg))
        prg[_RESET_VECTOR + 1 - PRG_CHUNK_SIZE * 2] = 0x86
        cart.prg = prg
        cart.chr = bytearray(CHR_CHUNK_SIZE)
        return cart

    @property
    def name(self) -> str:
        """The game title."""
        return self._name

    def set_name(self, path: str | os.PathLike) -> None:
        """Set the title from a file path, without directory or extension."""
        self._name = _file_stem(path)

    @property
    def hash(self) -> str:
        """Hex MD5 digest of the ROM file."""
        return self._hash

    def __repr__(self) -> str:
        return f"Cartridge(title={self._name!r})"


def _read_exact(stream: BinaryIO, hasher, size: int, what: str) -> bytes:
    data = stream.read(size)
    hasher.update(data)
    if len(data) != size:
        raise InvalidROMError(f"truncated {what}")
    return data


def from_ines(stream: BinaryIO) -> Cartridge:
    """Read an iNES ROM from a binary stream."""
    hasher = hashlib.md5()
    header = INESFileHeader.from_bytes(_read_exact(stream, hasher, HEADER_SIZE, "header"))
    if header.magic != INES_MAGIC:
        raise InvalidROMError("invalid ROM file: missing NES header")

    cart = Cartridge()
    cart.header = header
    cart.mirror = header.mirror
    cart.battery = header.battery

    log.debug(
        "Loaded iNES header battery=%s mapper=%d mirror=%s prg=%d chr=%d",
        cart.battery,
        header.mapper,
        cart.mirror,
        header.prg_count,
        header.chr_count,
    )

    cart.prg = bytearray(_read_exact(stream, hasher, header.prg_count * PRG_CHUNK_SIZE, "PRG data"))
    if header.chr_count == 0:
        cart.chr = bytearray(CHR_CHUNK_SIZE)
    else:
        cart.chr = bytearray(_read_exact(stream, hasher, header.chr_count * CHR_CHUNK_SIZE, "CHR data"))

    for chunk in iter(lambda: stream.read(65536), b""):
        hasher.update(chunk)

    cart._hash = hasher.hexdigest()
    return cart


def from_ines_file(path: str | os.PathLike) -> Cartridge:
    """Load an iNES ROM file; the title defaults to the file name."""
    with open(path, "rb") as f:
        cart = from_ines(f)
    if not cart.name:
        cart.set_name(path)
    return cart