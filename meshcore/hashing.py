"""Hashing helpers for the sparse Merkle tree: 64-bit MurmurHash3 and bit tests."""

from __future__ import annotations

__all__ = ["HASH_LENGTH", "murmur3_64", "hasher", "bit_is_set"]

HASH_LENGTH = 8

_MASK = 0xFFFFFFFFFFFFFFFF
_C1 = 0x87C37B91114253D5
_C2 = 0x4CF5AD432745937F


def _rotl(value: int, shift: int) -> int:
    return ((value << shift) | (value >> (64 - shift))) & _MASK


def _fmix(k: int) -> int:
    k ^= k >> 33
    k = (k * 0xFF51AFD7ED558CCD) & _MASK
    k ^= k >> 33
    k = (k * 0xC4CEB9FE1A85EC53) & _MASK
    k ^= k >> 33
    return k


def _mix_k1(k1: int) -> int:
    k1 = (k1 * _C1) & _MASK
    k1 = _rotl(k1, 31)
    return (k1 * _C2) & _MASK


def _mix_k2(k2: int) -> int:
    k2 = (k2 * _C2) & _MASK
    k2 = _rotl(k2, 33)
    return (k2 * _C1) & _MASK


def murmur3_64(data: bytes) -> bytes:
    """Return the first 64 bits of MurmurHash3 x64_128 (seed 0) as 8 big-endian bytes."""
    data = bytes(data)
    length = len(data)
    h1 = h2 = 0
    full = length - length % 16

    for offset in range(0, full, 16):
        k1 = int.from_bytes(data[offset:offset + 8], "little")
        k2 = int.from_bytes(data[offset + 8:offset + 16], "little")

        h1 ^= _mix_k1(k1)
        h1 = _rotl(h1, 27)
        h1 = (h1 + h2) & _MASK
        h1 = (h1 * 5 + 0x52DCE729) & _MASK

        h2 ^= _mix_k2(k2)
        h2 = _rotl(h2, 31)
        h2 = (h2 + h1) & _MASK
        h2 = (h2 * 5 + 0x38495AB5) & _MASK

    tail = data[full:]
    if len(tail) > 8:
        h2 ^= _mix_k2(int.from_bytes(tail[8:], "little"))
    if tail:
        h1 ^= _mix_k1(int.from_bytes(tail[:8], "little"))

    h1 ^= length
    h2 ^= length
    h1 = (h1 + h2) & _MASK
    h2 = (h2 + h1) & _MASK
    h1 = _fmix(h1)
    h2 = _fmix(h2)
    h1 = (h1 + h2) & _MASK

    return h1.to_bytes(HASH_LENGTH, "big")


def hasher(*args: bytes) -> bytes:
    """Hash the concatenation of all arguments, as if streamed into one digest."""
    return murmur3_64(b"".join(bytes(part) for part in args))


def bit_is_set(bits: bytes, i: int) -> bool:
    """Return whether bit ``i`` is set, counting from the most significant bit of byte 0."""
    return bits[i // 8] & (1 << (7 - i % 8)) != 0