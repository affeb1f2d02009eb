"""Simple bank-switching cartridge mappers: MMC1, UxROM, CNROM, AxROM and Camerica."""

from __future__ import annotations

import logging

from famikit.cartridge import Cartridge, Mirror
from famikit.consts import PRG_CHUNK_SIZE

log = logging.getLogger(__name__)

_CHR_BANK_4K = 0x1000
_CHR_BANK_8K = 0x2000


def _bank_offset(index: int, bank_size: int, total: int) -> int:
    """Byte offset of a bank, where indices from 0x80 count back from the end."""
    if index >= 0x80:
        index -= 0x100
    return (index % (total // bank_size)) * bank_size


class Mapper1:
    """MMC1 (iNES mapper 1): serial-loaded control, CHR and PRG bank registers."""

    def __init__(self, cartridge: Cartridge) -> None:
        self.cartridge = cartridge
        self.shift_register = 0x10
        self.control = 0
        self.prg_mode = 0
        self.chr_mode = False
        self.prg_bank = 0
        self.chr_bank0 = 0
        self.chr_bank1 = 0
        self.prg_offsets = [0, self._prg_bank_offset(-1)]
        self.chr_offsets = [0, 0]

    def read_mem(self, addr: int) -> int:
        """Read a byte from CHR, save RAM or PRG."""
        cart = self.cartridge
        if addr < 0x2000:
            bank, offset = divmod(addr, _CHR_BANK_4K)
            return cart.chr[self.chr_offsets[bank] + offset]
        if 0x6000 <= addr < 0x8000:
            return cart.sram[addr - 0x6000]
        if addr >= 0x8000:
            bank, offset = divmod(addr - 0x8000, PRG_CHUNK_SIZE)
            return cart.prg[self.prg_offsets[bank] + offset]
        log.error("Invalid mapper 1 read addr=$%04X", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        """Write a byte to CHR, save RAM or the serial register port."""
        cart = self.cartridge
        if addr < 0x2000:
            bank, offset = divmod(addr, _CHR_BANK_4K)
            cart.chr[self.chr_offsets[bank] + offset] = data
        elif 0x6000 <= addr < 0x8000:
            cart.sram[addr - 0x6000] = data
        elif addr >= 0x8000:
            if data & 0x80:
                self.shift_register = 0x10
                self._write_control(self.control | 0x0C)
                return
            complete = self.shift_register & 1 == 1
            self.shift_register = (self.shift_register >> 1) | ((data & 1) << 4)
            if complete:
                value = self.shift_register
                if addr < 0xA000:
                    self._write_control(value)
                elif addr < 0xC000:
                    self.chr_bank0 = value
                    self._update_offsets()
                elif addr < 0xE000:
                    self.chr_bank1 = value
                    self._update_offsets()
                else:
                    self.prg_bank = value & 0xF
                    self._update_offsets()
                self.shift_register = 0x10
        else:
            log.error("Invalid mapper 1 write addr=$%04X", addr)

    def _write_control(self, data: int) -> None:
        self.control = data
        self.chr_mode = (data >> 4) & 1 == 1
        self.prg_mode = (data >> 2) & 3
        self.cartridge.mirror = (
            Mirror.SINGLE_LOWER,
            Mirror.SINGLE_UPPER,
            Mirror.VERTICAL,
            Mirror.HORIZONTAL,
        )[data & 3]
        self._update_offsets()

    def _prg_bank_offset(self, index: int) -> int:
        return _bank_offset(index, PRG_CHUNK_SIZE, len(self.cartridge.prg))

    def _chr_bank_offset(self, index: int) -> int:
        return _bank_offset(index, _CHR_BANK_4K, len(self.cartridge.chr))

    def _update_offsets(self) -> None:
        if self.prg_mode in (0, 1):
            self.prg_offsets[0] = self._prg_bank_offset(self.prg_bank & 0xFE)
            self.prg_offsets[1] = self._prg_bank_offset(self.prg_bank | 0x01)
        elif self.prg_mode == 2:
            self.prg_offsets[0] = 0
            self.prg_offsets[1] = self._prg_bank_offset(self.prg_bank)
        else:
            self.prg_offsets[0] = self._prg_bank_offset(self.prg_bank)
            self.prg_offsets[1] = self._prg_bank_offset(-1)

        if self.chr_mode:
            self.chr_offsets[0] = self._chr_bank_offset(self.chr_bank0)
            self.chr_offsets[1] = self._chr_bank_offset(self.chr_bank1)
        else:
            self.chr_offsets[0] = self._chr_bank_offset(self.chr_bank0 & 0xFE)
            self.chr_offsets[1] = self._chr_bank_offset(self.chr_bank0 | 0x01)


class Mapper2:
    """UxROM (iNES mappers 0 and 2): switchable low PRG bank, fixed last bank."""

    def __init__(self, cartridge: Cartridge) -> None:
        self.cartridge = cartridge
        self.prg_banks = len(cartridge.prg) // PRG_CHUNK_SIZE
        self.prg_bank1 = 0
        self.prg_bank2 = self.prg_banks - 1

    def read_mem(self, addr: int) -> int:
        """Read a byte from CHR, save RAM or PRG."""
        cart = self.cartridge
        if addr < 0x2000:
            return cart.chr[addr]
        if 0x6000 <= addr < 0x8000:
            return cart.sram[addr - 0x6000]
        if 0x8000 <= addr < 0xC000:
            return cart.prg[addr - 0x8000 + self.prg_bank1 * PRG_CHUNK_SIZE]
        if addr >= 0xC000:
            return cart.prg[addr - 0xC000 + self.prg_bank2 * PRG_CHUNK_SIZE]
        log.error("Invalid mapper 2 read addr=$%04X", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        """Write to CHR or save RAM, or select the low PRG bank."""
        cart = self.cartridge
        if addr < 0x2000:
            cart.chr[addr] = data
        elif 0x6000 <= addr < 0x8000:
            cart.sram[addr - 0x6000] = data
        elif addr >= 0x8000:
            self.prg_bank1 = data % self.prg_banks
        else:
            log.error("Invalid mapper 2 write addr=$%04X", addr)


class Mapper3:
    """CNROM (iNES mapper 3): switchable 8 KiB CHR bank."""

    def __init__(self, cartridge: Cartridge) -> None:
        self.cartridge = cartridge
        self.chr_bank = 0
        self.prg_bank1 = 0
        self.prg_bank2 = len(cartridge.prg) // PRG_CHUNK_SIZE - 1

    def read_mem(self, addr: int) -> int:
        """Read a byte from CHR, save RAM or PRG."""
        cart = self.cartridge
        if addr < 0x2000:
            return cart.chr[addr + self.chr_bank * _CHR_BANK_8K]
        if 0x6000 <= addr < 0x8000:
            return cart.sram[addr - 0x6000]
        if 0x8000 <= addr < 0xC000:
            return cart.prg[addr - 0x8000 + self.prg_bank1 * PRG_CHUNK_SIZE]
        if addr >= 0xC000:
            return cart.prg[addr - 0xC000 + self.prg_bank2 * PRG_CHUNK_SIZE]
        log.error("Invalid mapper 3 read addr=$%04X", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        """Write to CHR or save RAM, or select the CHR bank."""
        cart = self.cartridge
        if addr < 0x2000:
            cart.chr[addr + self.chr_bank * _CHR_BANK_8K] = data
        elif 0x6000 <= addr < 0x8000:
            cart.sram[addr - 0x6000] = data
        elif addr >= 0x8000:
            self.chr_bank = data & 3
        else:
            log.error("Invalid mapper 3 write addr=$%04X", addr)


class Mapper7:
    """AxROM (iNES mapper 7): 32 KiB PRG banks and single-screen mirroring."""

    def __init__(self, cartridge: Cartridge) -> None:
        self.cartridge = cartridge
        self.prg_bank = 0

    def read_mem(self, addr: int) -> int:
        """Read a byte from CHR, save RAM or PRG."""
        cart = self.cartridge
        if addr < 0x2000:
            return cart.chr[addr & 0x1FFF]
        if 0x6000 <= addr < 0x8000:
            return cart.sram[addr - 0x6000]
        if addr >= 0x8000:
            offset = addr - 0x8000 + self.prg_bank * 2 * PRG_CHUNK_SIZE
            return cart.prg[offset % len(cart.prg)]
        log.error("Invalid mapper 7 read addr=$%04X", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        """Write to CHR or save RAM, or select PRG bank and mirroring."""
        cart = self.cartridge
        if addr < 0x2000:
            cart.chr[addr % 0x1FFF] = data
        elif 0x6000 <= addr < 0x8000:
            cart.sram[addr - 0x6000] = data
        elif addr >= 0x8000:
            cart.mirror = Mirror.SINGLE_UPPER if (data >> 4) & 1 else Mirror.SINGLE_LOWER
            self.prg_bank = data & 7
        else:
            log.error("Invalid mapper 7 write addr=$%04X", addr)


class Mapper71:
    """Camerica (iNES mapper 71): switchable low PRG bank, fixed last bank."""

    def __init__(self, cartridge: Cartridge) -> None:
        self.cartridge = cartridge
        self.prg_count = len(cartridge.prg) // PRG_CHUNK_SIZE
        self.prg_active = 0
        self.prg_last = self.prg_count - 1

    def read_mem(self, addr: int) -> int:
        """Read a byte from CHR or PRG."""
        cart = self.cartridge
        if addr < 0x2000:
            return cart.chr[addr]
        if 0x8000 <= addr < 0xC000:
            return cart.prg[addr - 0x8000 + self.prg_active * PRG_CHUNK_SIZE]
        if addr >= 0xC000:
            return cart.prg[addr - 0xC000 + self.prg_last * PRG_CHUNK_SIZE]
        log.error("Invalid mapper 71 read addr=$%04X", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        """Write to CHR, or set mirroring or the active PRG bank."""
        cart = self.cartridge
        if addr < 0x2000:
            cart.chr[addr] = data
        elif 0x8000 <= addr < 0x9000:
            # Ignored for compatibility with boards lacking mirroring control.
            pass
        elif 0x9000 <= addr < 0xA000:
            cart.mirror = Mirror((data >> 4) & 1)
        elif addr >= 0xC000:
            self.prg_active = (data & 0xF) % self.prg_count
        else:
            log.error("Invalid mapper 71 write addr=$%04X", addr)