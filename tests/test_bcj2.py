import random

import pytest

from zupdate.bcj2 import (
    BCJ2_RELAT_LIMIT,
    Bcj2Error,
    Bcj2Streams,
    bcj2_decode,
    bcj2_encode,
)


def _decode(streams: Bcj2Streams, size: int) -> bytes:
    return bcj2_decode(streams.main, streams.call, streams.jump, streams.rc, size)


def _x86_like(seed: int, length: int) -> bytes:
    rng = random.Random(seed)
    out = bytearray()
    while len(out) < length:
        choice = rng.random()
        if choice < 0.15:
            out.append(0xE8)
            out += rng.randrange(0, 4096).to_bytes(4, "little")
        elif choice < 0.25:
            out.append(0xE9)
            out += (-rng.randrange(1, 4096) & 0xFFFFFFFF).to_bytes(4, "little")
        elif choice < 0.32:
            out += bytes([0x0F, 0x80 | rng.randrange(16)])
            out += rng.randrange(0, 1 << 20).to_bytes(4, "little")
        else:
            out.append(rng.randrange(256))
    return bytes(out[:length])


def test_empty_input_encodes_to_flush_bytes():
    streams = bcj2_encode(b"")
    assert streams == Bcj2Streams(b"", b"", b"", b"\x00" * 5)
    assert _decode(streams, 0) == b""


def test_plain_data_goes_to_main_stream():
    data = bytes(range(0x10, 0x70))
    streams = bcj2_encode(data)
    assert streams.main == data
    assert streams.call == b""
    assert streams.jump == b""
    assert _decode(streams, len(data)) == data


def test_call_is_converted_to_absolute_target():
    data = b"\xE8" + (0x10).to_bytes(4, "little")
    streams = bcj2_encode(data)
    assert streams.main == b"\xE8"
    assert streams.call == (5 + 0x10).to_bytes(4, "big")
    assert streams.jump == b""
    assert _decode(streams, len(data)) == data


def test_jump_and_conditional_go_to_jump_stream():
    data = b"\xE9" + (3).to_bytes(4, "little") + b"\x0F\x84" + (7).to_bytes(4, "little")
    streams = bcj2_encode(data)
    assert streams.call == b""
    assert len(streams.jump) == 8
    assert streams.main == b"\xE9\x0F\x84"
    assert _decode(streams, len(data)) == data


@pytest.mark.parametrize("seed", [1, 2, 3, 4])
def test_round_trip_x86_like(seed):
    data = _x86_like(seed, 5000)
    streams = bcj2_encode(data)
    assert len(streams.call) % 4 == 0
    assert len(streams.jump) % 4 == 0
    assert len(streams.main) + len(streams.call) + len(streams.jump) == len(data)
    assert _decode(streams, len(data)) == data


@pytest.mark.parametrize("seed", [10, 11])
def test_round_trip_random_bytes(seed):
    data = random.Random(seed).randbytes(3000)
    streams = bcj2_encode(data)
    assert _decode(streams, len(data)) == data


def test_branch_at_end_without_room_for_address():
    data = b"abc\xE8\x01\x02"
    streams = bcj2_encode(data)
    assert streams.main == data
    assert _decode(streams, len(data)) == data


def test_relat_limit_zero_disables_conversion():
    data = _x86_like(5, 2000)
    streams = bcj2_encode(data, relat_limit=0)
    assert streams.call == b""
    assert streams.jump == b""
    assert streams.main == data
    assert _decode(streams, len(data)) == data


def test_file_size_limits_conversion():
    data = b"\xE8" + (0x100).to_bytes(4, "little")
    streams = bcj2_encode(data, file_size=1)
    assert streams.call == b""
    assert streams.main == data
    assert _decode(streams, len(data)) == data


def test_default_relat_limit_round_trip_with_explicit_value():
    data = _x86_like(7, 1500)
    assert bcj2_encode(data) == bcj2_encode(data, 0, BCJ2_RELAT_LIMIT)


@pytest.mark.parametrize("kwargs", [{"file_size": -1}, {"relat_limit": (1 << 31) + 1}])
def test_encode_rejects_bad_limits(kwargs):
    with pytest.raises(ValueError):
        bcj2_encode(b"data", **kwargs)


def test_decode_rejects_short_rc():
    with pytest.raises(Bcj2Error):
        bcj2_decode(b"", b"", b"", b"\x00\x00", 0)


def test_decode_rejects_nonzero_first_rc_byte():
    with pytest.raises(Bcj2Error):
        bcj2_decode(b"", b"", b"", b"\x01\x00\x00\x00\x00", 0)


def test_decode_rejects_wrong_output_size():
    data = _x86_like(8, 800)
    streams = bcj2_encode(data)
    with pytest.raises(Bcj2Error):
        _decode(streams, len(data) - 1)
    with pytest.raises(Bcj2Error):
        _decode(streams, len(data) + 1)


def test_decode_rejects_truncated_call_stream():
    data = b"\xE8" + (0x10).to_bytes(4, "little") + b"tail"
    streams = bcj2_encode(data)
    assert len(streams.call) == 4
    with pytest.raises(Bcj2Error):
        bcj2_decode(streams.main, streams.call[:2], streams.jump, streams.rc, len(data))


def test_decode_rejects_extra_jump_data():
    data = b"plain text"
    streams = bcj2_encode(data)
    with pytest.raises(Bcj2Error):
        bcj2_decode(streams.main, streams.call, b"\x00\x00\x00\x00", streams.rc, len(data))