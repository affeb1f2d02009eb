"""Selection of the mapper implementation for a cartridge."""

from __future__ import annotations

from typing import Union

from famikit.cartridge import Cartridge
from famikit.fme7 import Mapper69
from famikit.mappers_basic import Mapper1, Mapper2, Mapper3, Mapper7, Mapper71
from famikit.mmc3 import Mapper4

_MAPPERS = {
    0: Mapper2,
    1: Mapper1,
    2: Mapper2,
    3: Mapper3,
    4: Mapper4,
    7: Mapper7,
    69: Mapper69,
    71: Mapper71,
}


class UnsupportedMapperError(ValueError):
    """Raised when a cartridge uses a mapper that is not implemented."""


def new_mapper(
    cartridge: Cartridge,
) -> Union[Mapper1, Mapper2, Mapper3, Mapper4, Mapper7, Mapper69, Mapper71]:
    """Create the mapper declared by the cartridge header."""
    number = cartridge.header.mapper
    try:
        mapper_cls = _MAPPERS[number]
    except KeyError:
        raise UnsupportedMapperError(f"unsupported mapper: {number}") from None
    return mapper_cls(cartridge)