"""Game Genie code encoding and decoding."""

from __future__ import annotations

from dataclasses import dataclass

_LOOKUP = "APZLGITYEOXUKSVN"
_LO_POS_ORDER = (3, 5, 2, 4, 1, 0, 7, 6)


class InvalidCodeLengthError(ValueError):
    """Raised when a code is not 6 or 8 characters long."""


class InvalidCharacterError(ValueError):
    """Raised when a code contains a letter outside the Game Genie alphabet."""


class OutOfRangeError(ValueError):
    """Raised when an encoded value does not fit the Game Genie alphabet."""


@dataclass(frozen=True)
class GenieCode:
    """A decoded Game Genie code."""

    code: str
    address: int = 0
    replace: int = 0
    compare: int = -1

    def compare_string(self) -> str:
        """The compare value as hex, or ``<none>`` for 6-letter codes."""
        if self.compare == -1:
            return "<none>"
        return f"0x{self.compare:02X}"


def decode(code: str) -> GenieCode:
    """Decode a 6- or 8-letter Game Genie code."""
    code = code.upper()
    length = len(code)
    if length not in (6, 8):
        raise InvalidCodeLengthError(
            f"invalid length {length} in code {code!r}; expected 6 or 8 characters"
        )

    values = []
    for char in code:
        index = _LOOKUP.find(char)
        if index == -1:
            raise InvalidCharacterError(f"invalid character {char!r} in code {code!r}")
        values.append(index)

    bigint = 0
    for lo_pos in _LO_POS_ORDER[:length]:
        hi_pos = (lo_pos - 1 + length) % length
        bigint = (bigint << 4) | (values[hi_pos] & 8) | (values[lo_pos] & 7)

    compare = -1
    if length == 8:
        compare = bigint & 0xFF
        bigint >>= 8

    return GenieCode(
        code=code,
        address=(bigint >> 8) | 0x8000,
        replace=bigint & 0xFF,
        compare=compare,
    )


def encode(address: int, replace: int, compare: int = -1) -> str:
    """Encode an address, replacement and optional compare value (-1 for none)."""
    if compare == -1:
        length = 6
        address &= 0x7FFF
        bigint = (address << 8) | replace
    else:
        length = 8
        address |= 0x8000
        bigint = (address << 16) | (replace << 8) | compare

    encoded = [0] * length
    for lo_pos in reversed(_LO_POS_ORDER[:length]):
        hi_pos = (lo_pos - 1 + length) % length
        encoded[lo_pos] |= bigint & 0b111
        encoded[hi_pos] |= bigint & 0b1000
        bigint >>= 4

    if any(not 0 <= value < len(_LOOKUP) for value in encoded):
        raise OutOfRangeError("encoded value out of range")
    return "".join(_LOOKUP[value] for value in encoded)