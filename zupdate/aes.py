"""AES block cipher with CBC and CTR modes, built on little-endian T-tables."""

from __future__ import annotations

import struct
from typing import List, Sequence

AES_BLOCK_SIZE = 16
_MASK = 0xFFFFFFFF

_SBOX = bytes.fromhex(
    "637c777bf26b6fc53001672bfed7ab76"
    "ca82c97dfa5947f0add4a2af9ca472c0"
    "b7fd9326363ff7cc34a5e5f171d83115"
    "04c723c31896059a071280e2eb27b275"
    "09832c1a1b6e5aa0523bd6b329e32f84"
    "53d100ed20fcb15b6acbbe394a4c58cf"
    "d0efaafb434d338545f9027f503c9fa8"
    "51a3408f929d38f5bcb6da2110fff3d2"
    "cd0c13ec5f974417c4a77e3d645d1973"
    "60814fdc222a908846eeb814de5e0bdb"
    "e0323a0a4906245cc2d3ac629195e479"
    "e7c8376d8dd54ea96c56f4ea657aae08"
    "ba78252e1ca6b4c6e8dd741f4bbd8b8a"
    "703eb5664803f60e613557b986c11d9e"
    "e1f8981169d98e949b1e87e9ce5528df"
    "8ca1890dbfe6426841992d0fb054bb16"
)

_RCON = (0x00, 0x01, 0x02, 0x04, 0x08, 0x10, 0x20, 0x40, 0x80, 0x1B, 0x36)


def _xtime(x: int) -> int:
    return ((x << 1) ^ (0x1B if x & 0x80 else 0)) & 0xFF


def _ui32(a0: int, a1: int, a2: int, a3: int) -> int:
    return a0 | (a1 << 8) | (a2 << 16) | (a3 << 24)


def _gen_tables():
    inv_s = [0] * 256
    for i, value in enumerate(_SBOX):
        inv_s[value] = i
    enc = [0] * 1024
    dec = [0] * 1024
    for i in range(256):
        a1 = _SBOX[i]
        a2 = _xtime(a1)
        a3 = a2 ^ a1
        enc[i] = _ui32(a2, a1, a1, a3)
        enc[0x100 + i] = _ui32(a3, a2, a1, a1)
        enc[0x200 + i] = _ui32(a1, a3, a2, a1)
        enc[0x300 + i] = _ui32(a1, a1, a3, a2)

        b1 = inv_s[i]
        b2 = _xtime(b1)
        b4 = _xtime(b2)
        b8 = _xtime(b4)
        b9 = b8 ^ b1
        bb = b8 ^ b2 ^ b1
        bd = b8 ^ b4 ^ b1
        be = b8 ^ b4 ^ b2
        dec[i] = _ui32(be, b9, bd, bb)
        dec[0x100 + i] = _ui32(bb, be, b9, bd)
        dec[0x200 + i] = _ui32(bd, bb, be, b9)
        dec[0x300 + i] = _ui32(b9, bd, bb, be)
    return tuple(enc), tuple(dec), bytes(inv_s)


_T, _D, _INV_SBOX = _gen_tables()


def _byte(word: int, index: int) -> int:
    return (word >> (8 * index)) & 0xFF


def _check_block(block: bytes) -> None:
    if len(block) != AES_BLOCK_SIZE:
        raise ValueError(f"AES block must be {AES_BLOCK_SIZE} bytes, got {len(block)}")


def _check_blocks(data: bytes) -> None:
    if len(data) % AES_BLOCK_SIZE:
        raise ValueError(
            f"data length must be a multiple of {AES_BLOCK_SIZE}, got {len(data)}"
        )


class AesCipher:
    """AES with a 16, 24 or 32 byte key, working on single 16-byte blocks."""

    def __init__(self, key: bytes) -> None:
        key = bytes(key)
        if len(key) not in (16, 24, 32):
            raise ValueError(f"AES key must be 16, 24 or 32 bytes, got {len(key)}")
        self._half_rounds = len(key) // 8 + 3
        self._enc_keys = self._expand(key)
        self._dec_keys = self._inverse_keys(self._enc_keys, len(key) + 20)

    @staticmethod
    def _expand(key: bytes) -> List[int]:
        nk = len(key) // 4
        total = len(key) + 28
        w = list(struct.unpack(f"<{nk}I", key))
        for i in range(nk, total):
            t = w[i - 1]
            rem = i % nk
            if rem == 0:
                t = _ui32(
                    _SBOX[_byte(t, 1)] ^ _RCON[i // nk],
                    _SBOX[_byte(t, 2)],
                    _SBOX[_byte(t, 3)],
                    _SBOX[_byte(t, 0)],
                )
            elif nk > 6 and rem == 4:
                t = _ui32(
                    _SBOX[_byte(t, 0)],
                    _SBOX[_byte(t, 1)],
                    _SBOX[_byte(t, 2)],
                    _SBOX[_byte(t, 3)],
                )
            w.append(w[i - nk] ^ t)
        return w

    @staticmethod
    def _inverse_keys(enc: Sequence[int], count: int) -> List[int]:
        dec = list(enc)
        for i in range(4, 4 + count):
            r = dec[i]
            dec[i] = (
                _D[_SBOX[_byte(r, 0)]]
                ^ _D[0x100 + _SBOX[_byte(r, 1)]]
                ^ _D[0x200 + _SBOX[_byte(r, 2)]]
                ^ _D[0x300 + _SBOX[_byte(r, 3)]]
            )
        return dec

    def _encrypt_words(self, src: Sequence[int]) -> List[int]:
        w = self._enc_keys
        s = [src[i] ^ w[i] for i in range(4)]
        pos = 4
        remaining = self._half_rounds
        while True:
            m = [
                _T[_byte(s[i], 0)]
                ^ _T[0x100 + _byte(s[(i + 1) & 3], 1)]
                ^ _T[0x200 + _byte(s[(i + 2) & 3], 2)]
                ^ _T[0x300 + _byte(s[(i + 3) & 3], 3)]
                ^ w[pos + i]
                for i in range(4)
            ]
            remaining -= 1
            if remaining == 0:
                break
            s = [
                _T[_byte(m[i], 0)]
                ^ _T[0x100 + _byte(m[(i + 1) & 3], 1)]
                ^ _T[0x200 + _byte(m[(i + 2) & 3], 2)]
                ^ _T[0x300 + _byte(m[(i + 3) & 3], 3)]
                ^ w[pos + 4 + i]
                for i in range(4)
            ]
            pos += 8
        pos += 4
        return [
            _ui32(
                _SBOX[_byte(m[i], 0)],
                _SBOX[_byte(m[(i + 1) & 3], 1)],
                _SBOX[_byte(m[(i + 2) & 3], 2)],
                _SBOX[_byte(m[(i + 3) & 3], 3)],
            )
            ^ w[pos + i]
            for i in range(4)
        ]

    def _decrypt_words(self, src: Sequence[int]) -> List[int]:
        w = self._dec_keys
        remaining = self._half_rounds
        pos = remaining * 8
        s = [src[i] ^ w[pos + i] for i in range(4)]
        while True:
            pos -= 8
            m = [
                _D[_byte(s[i], 0)]
                ^ _D[0x100 + _byte(s[(i - 1) & 3], 1)]
                ^ _D[0x200 + _byte(s[(i - 2) & 3], 2)]
                ^ _D[0x300 + _byte(s[(i - 3) & 3], 3)]
                ^ w[pos + 4 + i]
                for i in range(4)
            ]
            remaining -= 1
            if remaining == 0:
                break
            s = [
                _D[_byte(m[i], 0)]
                ^ _D[0x100 + _byte(m[(i - 1) & 3], 1)]
                ^ _D[0x200 + _byte(m[(i - 2) & 3], 2)]
                ^ _D[0x300 + _byte(m[(i - 3) & 3], 3)]
                ^ w[pos + i]
                for i in range(4)
            ]
        return [
            _ui32(
                _INV_SBOX[_byte(m[i], 0)],
                _INV_SBOX[_byte(m[(i - 1) & 3], 1)],
                _INV_SBOX[_byte(m[(i - 2) & 3], 2)],
                _INV_SBOX[_byte(m[(i - 3) & 3], 3)],
            )
            ^ w[pos + i]
            for i in range(4)
        ]

    def encrypt_block(self, block: bytes) -> bytes:
        """Encrypt one 16-byte block."""
        _check_block(block)
        return struct.pack("<4I", *self._encrypt_words(struct.unpack("<4I", block)))

    def decrypt_block(self, block: bytes) -> bytes:
        """Decrypt one 16-byte block."""
        _check_block(block)
        return struct.pack("<4I", *self._decrypt_words(struct.unpack("<4I", block)))


def cbc_encrypt(key: bytes, iv: bytes, data: bytes) -> bytes:
    """Encrypt ``data`` (a whole number of blocks) in CBC mode."""
    _check_block(iv)
    _check_blocks(data)
    cipher = AesCipher(key)
    chain = list(struct.unpack("<4I", iv))
    out = bytearray()
    for offset in range(0, len(data), AES_BLOCK_SIZE):
        block = struct.unpack_from("<4I", data, offset)
        chain = cipher._encrypt_words([c ^ b for c, b in zip(chain, block)])
        out += struct.pack("<4I", *chain)
    return bytes(out)


def cbc_decrypt(key: bytes, iv: bytes, data: bytes) -> bytes:
    """Decrypt ``data`` (a whole number of blocks) in CBC mode."""
    _check_block(iv)
    _check_blocks(data)
    cipher = AesCipher(key)
    chain = list(struct.unpack("<4I", iv))
    out = bytearray()
    for offset in range(0, len(data), AES_BLOCK_SIZE):
        block = list(struct.unpack_from("<4I", data, offset))
        plain = cipher._decrypt_words(block)
        out += struct.pack("<4I", *(c ^ p for c, p in zip(chain, plain)))
        chain = block
    return bytes(out)


def ctr_code(key: bytes, counter: bytes, data: bytes) -> bytes:
    """Encrypt or decrypt ``data`` (a whole number of blocks) in CTR mode.

    The counter is read as four little-endian words; the low 64 bits are
    incremented before each block is encrypted.
    """
    _check_block(counter)
    _check_blocks(data)
    cipher = AesCipher(key)
    ctr = list(struct.unpack("<4I", counter))
    out = bytearray()
    for offset in range(0, len(data), AES_BLOCK_SIZE):
        ctr[0] = (ctr[0] + 1) & _MASK
        if ctr[0] == 0:
            ctr[1] = (ctr[1] + 1) & _MASK
        stream = struct.pack("<4I", *cipher._encrypt_words(ctr))
        chunk = data[offset:offset + AES_BLOCK_SIZE]
        out += bytes(a ^ b for a, b in zip(chunk, stream))
    return bytes(out)