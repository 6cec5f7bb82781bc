"""BCJ2 filter for x86 code.

The filter splits a buffer into four streams. ``main`` holds the plain bytes.
``call`` and ``jump`` hold the absolute big-endian targets of converted
CALL (E8) and JMP/Jcc (E9, 0F 8x) instructions. ``rc`` holds the
range-coded bits that say which branches were converted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

BCJ2_NUM_STREAMS = 4
BCJ2_RELAT_LIMIT_NUM_BITS = 26
BCJ2_RELAT_LIMIT = 1 << BCJ2_RELAT_LIMIT_NUM_BITS
BCJ2_FILE_SIZE_MAX = 1 << 31

_MASK = 0xFFFFFFFF
_TOP_VALUE = 1 << 24
_NUM_MODEL_BITS = 11
_BIT_MODEL_TOTAL = 1 << _NUM_MODEL_BITS
_NUM_MOVE_BITS = 5
_NUM_PROBS = 2 + 256


class Bcj2Error(ValueError):
    """Raised when BCJ2 streams are malformed or do not fit the output size."""


@dataclass(frozen=True)
class Bcj2Streams:
    """The four output streams of the BCJ2 encoder."""

    main: bytes
    call: bytes
    jump: bytes
    rc: bytes


def _find_branch(data: bytes, start: int, end: int, prev: int) -> int:
    """Index of the first branch opcode in ``data[start:end]``, or ``end``."""
    before = prev
    for i in range(start, end):
        b = data[i]
        if (b & 0xFE) == 0xE8 or (before == 0x0F and (b & 0xF0) == 0x80):
            return i
        before = b
    return end


def _prob_index(b: int, context: int) -> int:
    if b == 0xE8:
        return 2 + context
    return 1 if b == 0xE9 else 0


class _RangeEncoder:
    def __init__(self) -> None:
        self.low = 0
        self.range = _MASK
        self.cache = 0
        self.cache_size = 1
        self.out = bytearray()

    def shift_low(self) -> None:
        if (self.low & _MASK) < 0xFF000000 or (self.low >> 32) != 0:
            carry = self.low >> 32
            self.out.append((self.cache + carry) & 0xFF)
            self.out.extend(bytes([(0xFF + carry) & 0xFF]) * (self.cache_size - 1))
            self.cache_size = 0
            self.cache = (self.low >> 24) & 0xFF
        self.cache_size += 1
        self.low = (self.low & 0xFFFFFF) << 8


def bcj2_encode(
    data: bytes,
    file_size: int = 0,
    relat_limit: int = BCJ2_RELAT_LIMIT,
) -> Bcj2Streams:
    """Split ``data`` into the four BCJ2 streams.

    ``file_size`` limits conversion to targets inside the file (0 means no
    limit); ``relat_limit`` bounds the relative offsets that get converted
    (0 disables conversion).
    """
    if not 0 <= file_size <= BCJ2_FILE_SIZE_MAX:
        raise ValueError(f"file_size must be between 0 and {BCJ2_FILE_SIZE_MAX}")
    if not 0 <= relat_limit <= BCJ2_FILE_SIZE_MAX:
        raise ValueError(f"relat_limit must be between 0 and {BCJ2_FILE_SIZE_MAX}")

    data = bytes(data)
    size = len(data)
    enc = _RangeEncoder()
    probs: List[int] = [_BIT_MODEL_TOTAL >> 1] * _NUM_PROBS
    main = bytearray()
    call = bytearray()
    jump = bytearray()
    file_ip = 0
    prev = 0
    ip = 0
    pos = 0

    while True:
        if enc.range < _TOP_VALUE:
            enc.shift_low()
            enc.range = (enc.range << 8) & _MASK
        if pos == size:
            break

        i = _find_branch(data, pos, size, prev)
        if i == size:
            main += data[pos:]
            prev = data[-1]
            ip = (ip + size - pos) & _MASK
            pos = size
            continue

        context = prev if i == pos else data[i - 1]
        b = data[i]
        main += data[pos:i + 1]
        ip = (ip + i + 1 - pos) & _MASK
        pos = i + 1

        need_convert = False
        relat = 0
        if size - pos >= 4:
            relat = int.from_bytes(data[pos:pos + 4], "little")
            in_file = file_size == 0 or ((ip + 4 + relat - file_ip) & _MASK) < file_size
            if in_file and (((relat + relat_limit) & _MASK) >> 1) < relat_limit:
                need_convert = True

        index = _prob_index(b, context)
        ttt = probs[index]
        bound = (enc.range >> _NUM_MODEL_BITS) * ttt

        if not need_convert:
            enc.range = bound
            probs[index] = ttt + ((_BIT_MODEL_TOTAL - ttt) >> _NUM_MOVE_BITS)
            prev = b
            continue

        enc.low += bound
        enc.range -= bound
        probs[index] = ttt - (ttt >> _NUM_MOVE_BITS)

        ip = (ip + 4) & _MASK
        absolute = (ip + relat) & _MASK
        prev = data[pos + 3]
        pos += 4
        target = call if b == 0xE8 else jump
        target += absolute.to_bytes(4, "big")

    for _ in range(5):
        enc.shift_low()

    return Bcj2Streams(bytes(main), bytes(call), bytes(jump), bytes(enc.out))


def bcj2_decode(main: bytes, call: bytes, jump: bytes, rc: bytes, out_size: int) -> bytes:
    """Rebuild the original ``out_size`` bytes from the four BCJ2 streams."""
    main = bytes(main)
    rc = bytes(rc)
    branch_streams = {0xE8: bytes(call), 0xE9: bytes(jump)}
    branch_pos = {0xE8: 0, 0xE9: 0}

    if len(rc) < 5:
        raise Bcj2Error("range coder stream is truncated")
    if rc[0] != 0:
        raise Bcj2Error("range coder stream must start with a zero byte")
    code = int.from_bytes(rc[1:5], "big")
    if code == _MASK:
        raise Bcj2Error("invalid range coder stream")
    rng = _MASK
    rc_pos = 5

    probs: List[int] = [_BIT_MODEL_TOTAL >> 1] * _NUM_PROBS
    out = bytearray()
    prev = 0
    ip = 0
    main_pos = 0
    main_len = len(main)

    while True:
        if rng < _TOP_VALUE:
            if rc_pos == len(rc):
                raise Bcj2Error("range coder stream is truncated")
            rng = (rng << 8) & _MASK
            code = ((code << 8) | rc[rc_pos]) & _MASK
            rc_pos += 1

        if main_pos == main_len:
            break
        remaining = out_size - len(out)
        if remaining <= 0:
            raise Bcj2Error("main stream holds more data than the output size")
        end = main_pos + min(main_len - main_pos, remaining)

        i = _find_branch(main, main_pos, end, prev)
        if i == end:
            out += main[main_pos:end]
            prev = main[end - 1]
            ip = (ip + end - main_pos) & _MASK
            main_pos = end
            if main_pos != main_len:
                raise Bcj2Error("main stream holds more data than the output size")
            break

        b = main[i]
        context = prev if i == main_pos else main[i - 1]
        out += main[main_pos:i + 1]
        ip = (ip + i + 1 - main_pos) & _MASK
        main_pos = i + 1
        prev = b

        index = _prob_index(b, context)
        ttt = probs[index]
        bound = (rng >> _NUM_MODEL_BITS) * ttt
        if code < bound:
            rng = bound
            probs[index] = ttt + ((_BIT_MODEL_TOTAL - ttt) >> _NUM_MOVE_BITS)
            continue
        rng -= bound
        code -= bound
        probs[index] = ttt - (ttt >> _NUM_MOVE_BITS)

        which = 0xE8 if b == 0xE8 else 0xE9
        stream = branch_streams[which]
        pos = branch_pos[which]
        if pos + 4 > len(stream):
            name = "call" if which == 0xE8 else "jump"
            raise Bcj2Error(f"{name} stream is truncated")
        value = int.from_bytes(stream[pos:pos + 4], "big")
        branch_pos[which] = pos + 4
        ip = (ip + 4) & _MASK
        value = (value - ip) & _MASK
        if out_size - len(out) < 4:
            raise Bcj2Error("converted branch does not fit the output size")
        out += value.to_bytes(4, "little")
        prev = value >> 24

    if branch_pos[0xE8] != len(branch_streams[0xE8]):
        raise Bcj2Error("call stream has unused data")
    if branch_pos[0xE9] != len(branch_streams[0xE9]):
        raise Bcj2Error("jump stream has unused data")
    if rc_pos != len(rc):
        raise Bcj2Error("range coder stream has unused data")
    if code != 0:
        raise Bcj2Error("range coder stream did not finish cleanly")
    if len(out) != out_size:
        raise Bcj2Error(f"decoded {len(out)} bytes, expected {out_size}")
    return bytes(out)