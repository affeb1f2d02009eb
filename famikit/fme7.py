"""Sunsoft FME-7 (iNES mapper 69): command/parameter banking with a CPU-cycle IRQ."""

from __future__ import annotations

import logging

from famikit.cartridge import Cartridge, Mirror

log = logging.getLogger(__name__)

_PRG_BANK_SIZE = 0x2000
_CHR_BANK_SIZE = 0x400


class Mapper69:
    """FME-7 mapper: eight 1 KiB CHR banks, four 8 KiB PRG banks and a cycle counter IRQ."""

    def __init__(self, cartridge: Cartridge) -> None:
        self.cartridge = cartridge
        self.command = 0
        prg_count = len(cartridge.prg) // _PRG_BANK_SIZE
        self.prg_count = prg_count & 0xFF
        self.prg_banks = [0, 0, 0, 0, prg_count - 1]
        self.ram_select = False
        self.ram_enabled = False
        self.chr_banks = [0] * 8
        self.irq_enabled = False
        self.irq_counter_enabled = False
        self.irq_counter = 0
        self.irq_pending = False

    def on_cpu_step(self, cycles: int) -> None:
        """Count the IRQ counter down by ``cycles``, raising an IRQ when it wraps."""
        if not self.irq_counter_enabled:
            return
        prev = self.irq_counter
        self.irq_counter = (self.irq_counter - cycles) & 0xFFFF
        if self.irq_enabled and self.irq_counter > prev:
            self.irq_pending = True

    def irq(self) -> bool:
        """Whether an IRQ is pending."""
        return self.irq_pending

    def read_mem(self, addr: int) -> int:
        """Read a byte from CHR, save RAM or PRG."""
        cart = self.cartridge
        if addr < 0x2000:
            bank, offset = divmod(addr, _CHR_BANK_SIZE)
            return cart.chr[(self.chr_banks[bank] * _CHR_BANK_SIZE + offset) % len(cart.chr)]
        if 0x6000 <= addr < 0x8000 and self.ram_select:
            if self.ram_enabled:
                return cart.sram[addr - 0x6000]
            # Open bus
            return 0
        if addr >= 0x6000:
            bank, offset = divmod(addr - 0x6000, _PRG_BANK_SIZE)
            return cart.prg[(self.prg_banks[bank] * _PRG_BANK_SIZE + offset) % len(cart.prg)]
        log.error("Invalid mapper 69 read addr=$%04X", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        """Write to save RAM, or to the command or parameter register."""
        if 0x6000 <= addr < 0x8000:
            if self.ram_select and self.ram_enabled:
                self.cartridge.sram[addr - 0x6000] = data
        elif 0x8000 <= addr < 0xA000:
            self.command = data & 0xF
        elif 0xA000 <= addr < 0xC000:
            self._run_command(data)
        else:
            log.error("Invalid mapper 69 write addr=$%04X", addr)

    def _run_command(self, data: int) -> None:
        command = self.command
        if command <= 0x7:
            self.chr_banks[command] = data
        elif command <= 0xB:
            if command == 0x8:
                self.ram_select = (data >> 6) & 1 == 1
                self.ram_enabled = (data >> 7) & 1 == 1
            self.prg_banks[command - 0x8] = data & 0x1F
        elif command == 0xC:
            self.cartridge.mirror = Mirror(data & 0x3)
        elif command == 0xD:
            self.irq_enabled = data & 1 == 1
            self.irq_counter_enabled = (data >> 7) & 1 == 1
            self.irq_pending = False
        elif command == 0xE:
            self.irq_counter = (self.irq_counter & 0xFF00) | data
        else:
            self.irq_counter = (data << 8) | (self.irq_counter & 0xFF)