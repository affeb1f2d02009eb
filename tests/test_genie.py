import pytest

from famikit.genie import (
    GenieCode,
    InvalidCharacterError,
    InvalidCodeLengthError,
    decode,
    encode,
)


@pytest.mark.parametrize(
    "code, want",
    [
        ("YEUZUGAA", GenieCode("YEUZUGAA", 0xACB3, 0x07, 0x00)),
        ("yeuzugaa", GenieCode("YEUZUGAA", 0xACB3, 0x07, 0x00)),
        ("YELZUGAA", GenieCode("YELZUGAA", 0xACB3, 0x07, 0x00)),
        ("SXIOPO", GenieCode("SXIOPO", 0x91D9, 0xAD, -1)),
        ("SXSOPO", GenieCode("SXSOPO", 0x91D9, 0xAD, -1)),
    ],
)
def test_decode(code, want):
    assert decode(code) == want


def test_decode_invalid_length():
    with pytest.raises(InvalidCodeLengthError):
        decode("YEUZUGA")


def test_decode_invalid_character():
    with pytest.raises(InvalidCharacterError):
        decode("YEUZUGAF")


@pytest.mark.parametrize(
    "address, replace, compare, want",
    [
        (0xACB3, 0x07, 0x00, "YEUZUGAA"),
        (0x2CB3, 0x07, 0x00, "YEUZUGAA"),
        (0x91D9, 0xAD, -1, "SXIOPO"),
        (0x11D9, 0xAD, -1, "SXIOPO"),
    ],
)
def test_encode(address, replace, compare, want):
    assert encode(address, replace, compare) == want


def test_encode_default_is_six_letters():
    assert encode(0x91D9, 0xAD) == "SXIOPO"


@pytest.mark.parametrize("code", ["YEUZUGAA", "SXIOPO"])
def test_round_trip(code):
    result = decode(code)
    assert encode(result.address, result.replace, result.compare) == code


def test_compare_string():
    assert decode("SXIOPO").compare_string() == "<none>"
    assert decode("YEUZUGAA").compare_string() == "0x00"