"""CRC-32 checksums (IEEE 802.3 polynomial, reflected) as used by 7z archives."""

from __future__ import annotations

import zlib

CRC_POLY = 0xEDB88320
CRC_INIT_VAL = 0xFFFFFFFF
_MASK = 0xFFFFFFFF


def crc_update(value: int, data: bytes) -> int:
    """Feed ``data`` into a running CRC register and return the new register.

    The register is neither pre- nor post-inverted here: start from
    ``CRC_INIT_VAL`` and XOR the final register with ``CRC_INIT_VAL`` to get
    the digest, or use :func:`crc_calc`.
    """
    return zlib.crc32(bytes(data), (value & _MASK) ^ _MASK) ^ _MASK


def crc_calc(data: bytes) -> int:
    """Return the CRC-32 digest of ``data``."""
    return crc_update(CRC_INIT_VAL, data) ^ CRC_INIT_VAL