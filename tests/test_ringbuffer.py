import pytest

from famikit.ringbuffer import RingBuffer

BUF_SIZE = 16
MESSAGE = b"hello world"


def test_ring_buffer_source_cases():
    buf = RingBuffer(BUF_SIZE)
    assert buf.read(BUF_SIZE) == b""
    assert buf.free() == BUF_SIZE
    assert len(buf) == 0

    for _ in range(3):
        assert buf.write(MESSAGE) is True
        assert buf.free() == BUF_SIZE - len(MESSAGE)
        assert len(buf) == len(MESSAGE)

        got = buf.read(BUF_SIZE)
        assert len(got) == len(MESSAGE)
        assert got == MESSAGE
        assert buf.free() == BUF_SIZE
        assert len(buf) == 0

    buf.write(MESSAGE)
    got = buf.read(5)
    assert buf.free() == BUF_SIZE - len(MESSAGE) + 5
    assert len(buf) == len(MESSAGE) - 5
    assert len(got) == 5
    assert got == b"hello"


def test_fill_completely_then_overflow_is_dropped():
    buf = RingBuffer(BUF_SIZE)
    data = bytes(range(BUF_SIZE))
    assert buf.write(data) is True
    assert buf.free() == 0
    assert len(buf) == BUF_SIZE
    assert buf.write(b"x") is False
    assert buf.read(BUF_SIZE) == data


def test_partial_reads_preserve_order_across_wrap():
    buf = RingBuffer(8)
    buf.write(b"abcdef")
    assert buf.read(4) == b"abcd"
    buf.write(b"ghijk")
    assert len(buf) == 7
    assert buf.read(3) == b"efg"
    assert buf.read(100) == b"hijk"
    assert len(buf) == 0


def test_write_too_large_for_free_space_is_discarded_whole():
    buf = RingBuffer(8)
    buf.write(b"12345")
    assert buf.write(b"6789") is False
    assert buf.read(8) == b"12345"


def test_reset_empties():
    buf = RingBuffer(8)
    buf.write(b"abc")
    buf.reset()
    assert len(buf) == 0
    assert buf.free() == 8
    assert buf.read(8) == b""


def test_invalid_size():
    with pytest.raises(ValueError):
        RingBuffer(0)