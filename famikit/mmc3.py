"""MMC3 (iNES mapper 4): fine-grained banking with a scanline IRQ counter."""

from __future__ import annotations

import logging
from typing import Any

from famikit.cartridge import SUBMAPPER_MC_ACC, Cartridge, Mirror

log = logging.getLogger(__name__)

_PRG_BANK_SIZE = 0x2000
_CHR_BANK_SIZE = 0x0400


def _bank_offset(index: int, bank_size: int, total: int) -> int:
    if index >= 0x80:
        index -= 0x100
    return (index % (total // bank_size)) * bank_size


class Mapper4:
    """MMC3 mapper with 8 KiB PRG banks, 1 KiB CHR banks and a scanline counter."""

    def __init__(self, cartridge: Cartridge) -> None:
        self.cartridge = cartridge
        self.register = 0
        self.registers = [0] * 8
        self.prg_mode = False
        self.chr_mode = False
        self.prg_offsets = [
            self._prg_bank_offset(0),
            self._prg_bank_offset(1),
            self._prg_bank_offset(-2),
            self._prg_bank_offset(-1),
        ]
        self.chr_offsets = [0] * 8
        self.reload = 0
        self.counter = 0
        self.irq_enabled = False
        self.irq_pending = False
        self.prev_a12 = False

    def on_scanline(self) -> None:
        """Clock the scanline counter, raising an IRQ when it reaches zero."""
        if self.counter == 0:
            self.counter = self.reload
        else:
            self.counter -= 1
            if self.counter == 0 and self.irq_enabled:
                self.irq_pending = True

    def irq(self) -> bool:
        """Whether an IRQ is pending."""
        return self.irq_pending

    def on_vram_addr(self, addr: Any) -> None:
        """Watch PPU address line A12 (taken from ``addr.fine_y``) to clock the counter."""
        curr = addr.fine_y & 1 == 1
        if self.cartridge.header.submapper == SUBMAPPER_MC_ACC:
            if self.prev_a12 and not curr:
                self.on_scanline()
        elif not self.prev_a12 and curr:
            self.on_scanline()
        self.prev_a12 = curr

    def read_mem(self, addr: int) -> int:
        """Read a byte from CHR, save RAM or PRG."""
        cart = self.cartridge
        if addr < 0x2000:
            bank, offset = divmod(addr, _CHR_BANK_SIZE)
            return cart.chr[self.chr_offsets[bank] + offset]
        if 0x6000 <= addr < 0x8000:
            return cart.sram[addr - 0x6000]
        if addr >= 0x8000:
            bank, offset = divmod(addr - 0x8000, _PRG_BANK_SIZE)
            return cart.prg[self.prg_offsets[bank] + offset]
        log.error("Invalid mapper 4 read addr=$%04X", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        """Write to CHR or save RAM, or to one of the mapper registers."""
        cart = self.cartridge
        even = addr % 2 == 0
        if addr < 0x2000:
            bank, offset = divmod(addr, _CHR_BANK_SIZE)
            cart.chr[self.chr_offsets[bank] + offset] = data
        elif 0x6000 <= addr < 0x8000:
            cart.sram[addr - 0x6000] = data
        elif 0x8000 <= addr < 0xA000:
            if even:
                self.prg_mode = data & 0x40 == 0x40
                self.chr_mode = data & 0x80 == 0x80
                self.register = data & 7
            else:
                self.registers[self.register] = data
            self._update_offsets()
        elif 0xA000 <= addr < 0xC000:
            if even:
                cart.mirror = Mirror.HORIZONTAL if data & 1 else Mirror.VERTICAL
        elif 0xC000 <= addr < 0xE000:
            if even:
                self.reload = data
            else:
                self.counter = 0
        elif addr >= 0xE000:
            self.irq_enabled = not even
            if not self.irq_enabled:
                self.irq_pending = False
        else:
            log.error("Invalid mapper 4 write addr=$%04X", addr)

    def _prg_bank_offset(self, index: int) -> int:
        return _bank_offset(index, _PRG_BANK_SIZE, len(self.cartridge.prg))

    def _chr_bank_offset(self, index: int) -> int:
        return _bank_offset(index, _CHR_BANK_SIZE, len(self.cartridge.chr))

    def _update_offsets(self) -> None:
        regs = self.registers
        switchable = [self._prg_bank_offset(regs[6]), self._prg_bank_offset(regs[7])]
        second_last = self._prg_bank_offset(-2)
        last = self._prg_bank_offset(-1)
        if self.prg_mode:
            self.prg_offsets = [second_last, switchable[1], switchable[0], last]
        else:
            self.prg_offsets = [switchable[0], switchable[1], second_last, last]

        pairs = [
            regs[0] & 0xFE,
            regs[0] | 1,
            regs[1] & 0xFE,
            regs[1] | 1,
        ]
        singles = regs[2:6]
        banks = singles + pairs if self.chr_mode else pairs + singles
        self.chr_offsets = [self._chr_bank_offset(bank) for bank in banks]