import pytest

from famikit.cartridge import Cartridge, Mirror
from famikit.consts import PRG_CHUNK_SIZE
from famikit.mappers_basic import Mapper1, Mapper2, Mapper3, Mapper7, Mapper71


def banked(count, size):
    return bytearray(b"".join(bytes([i]) * size for i in range(count)))


def make_cart(prg_banks=4, chr_banks=8, chr_size=0x1000):
    cart = Cartridge()
    cart.prg = banked(prg_banks, PRG_CHUNK_SIZE)
    cart.chr = banked(chr_banks, chr_size)
    return cart


def serial_write(mapper, addr, value):
    for bit in range(5):
        mapper.write_mem(addr, (value >> bit) & 1)


def test_mapper1_initial_banks():
    m = Mapper1(make_cart(prg_banks=4))
    assert m.read_mem(0x8000) == 0
    assert m.read_mem(0xC000) == 3


def test_mapper1_prg_switch_after_reset():
    m = Mapper1(make_cart(prg_banks=4))
    m.write_mem(0x8000, 0x80)
    serial_write(m, 0xE000, 2)
    assert m.read_mem(0x8000) == 2
    assert m.read_mem(0xFFFF) == 3
    assert m.shift_register == 0x10


@pytest.mark.parametrize(
    "value, mirror",
    [
        (0, Mirror.SINGLE_LOWER),
        (1, Mirror.SINGLE_UPPER),
        (2, Mirror.VERTICAL),
        (3, Mirror.HORIZONTAL),
    ],
)
def test_mapper1_control_mirror(value, mirror):
    cart = make_cart()
    m = Mapper1(cart)
    serial_write(m, 0x8000, value)
    assert cart.mirror == mirror


def test_mapper1_chr_4k_mode():
    m = Mapper1(make_cart(chr_banks=8))
    serial_write(m, 0x8000, 0x10 | 0x0C | 3)
    serial_write(m, 0xA000, 3)
    serial_write(m, 0xC000, 5)
    assert m.read_mem(0x0000) == 3
    assert m.read_mem(0x1000) == 5


def test_mapper1_sram_round_trip():
    cart = make_cart()
    m = Mapper1(cart)
    m.write_mem(0x6010, 0xAB)
    assert m.read_mem(0x6010) == 0xAB
    assert cart.sram[0x10] == 0xAB


def test_mapper1_invalid_read_is_zero():
    m = Mapper1(make_cart())
    assert m.read_mem(0x4020) == 0


def test_mapper2_fixed_last_bank_and_switch():
    m = Mapper2(make_cart(prg_banks=4))
    assert m.read_mem(0xC000) == 3
    m.write_mem(0x8000, 1)
    assert m.read_mem(0x8000) == 1
    assert m.read_mem(0xC000) == 3


def test_mapper2_bank_wraps_modulo_count():
    m = Mapper2(make_cart(prg_banks=4))
    m.write_mem(0x8000, 1)
    expected = m.read_mem(0x8000)
    m.write_mem(0x8000, 1 + 4)
    assert m.read_mem(0x8000) == expected


def test_mapper2_chr_round_trip():
    m = Mapper2(make_cart(chr_banks=2))
    m.write_mem(0x0123, 0x5A)
    assert m.read_mem(0x0123) == 0x5A


def test_mapper3_chr_bank_select():
    m = Mapper3(make_cart(prg_banks=2, chr_banks=4, chr_size=0x2000))
    m.write_mem(0x8000, 2)
    assert m.read_mem(0x0000) == 2
    m.write_mem(0x8000, 2 | 4)
    assert m.chr_bank == 2


def test_mapper3_chr_write_goes_to_selected_bank():
    cart = make_cart(prg_banks=2, chr_banks=4, chr_size=0x2000)
    m = Mapper3(cart)
    m.write_mem(0x8000, 1)
    m.write_mem(0x0010, 0xEE)
    assert cart.chr[0x2000 + 0x10] == 0xEE
    assert m.read_mem(0x0010) == 0xEE


def test_mapper3_prg_fixed():
    m = Mapper3(make_cart(prg_banks=2))
    assert m.read_mem(0x8000) == 0
    assert m.read_mem(0xC000) == 1


def test_mapper7_bank_and_mirror():
    cart = make_cart(prg_banks=4)
    m = Mapper7(cart)
    assert cart.mirror != Mirror.SINGLE_UPPER
    m.write_mem(0x8000, 0x10 | 1)
    assert cart.mirror == Mirror.SINGLE_UPPER
    assert m.read_mem(0x8000) == 2
    assert m.read_mem(0xC000) == 3
    m.write_mem(0x8000, 0)
    assert cart.mirror == Mirror.SINGLE_LOWER
    assert m.read_mem(0x8000) == 0


def test_mapper7_chr_write_wraps_at_1fff():
    m = Mapper7(make_cart(chr_banks=2))
    m.write_mem(0x1FFF, 0x42)
    assert m.read_mem(0x0000) == 0x42


def test_mapper71_bank_select():
    m = Mapper71(make_cart(prg_banks=4))
    assert m.read_mem(0xC000) == 3
    m.write_mem(0xC000, 2)
    assert m.read_mem(0x8000) == 2


def test_mapper71_mirror():
    cart = make_cart()
    m = Mapper71(cart)
    m.write_mem(0x9000, 0x10)
    assert cart.mirror == Mirror.VERTICAL
    m.write_mem(0x8000, 0x00)
    assert cart.mirror == Mirror.VERTICAL
    m.write_mem(0x9000, 0x00)
    assert cart.mirror == Mirror.HORIZONTAL


def test_mapper71_no_sram():
    m = Mapper71(make_cart())
    m.write_mem(0x6000, 0x12)
    assert m.read_mem(0x6000) == 0