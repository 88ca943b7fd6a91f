"""
Bloom filter used as a fast "definitely new" check for DOIs.

A negative answer is exact: if ``might_contain`` returns False the key was
never added. A positive answer only means "possibly seen" and must be
confirmed against the exact DOI index.

Three independent 32-bit string hashes pick the bits:
- FNV-1a
- DJB2
- SDBM
"""

from __future__ import annotations

import math

_MASK_32 = 0xFFFFFFFF

DEFAULT_FILTER_SIZE = 10_000
HASH_COUNT = 3


def fnv1a_32(text: str) -> int:
    h = 2166136261
    for ch in text:
        h ^= ord(ch)
        h = (h * 16777619) & _MASK_32
    return h


def djb2_32(text: str) -> int:
    h = 5381
    for ch in text:
        h = ((h << 5) + h + ord(ch)) & _MASK_32
    return h


def sdbm_32(text: str) -> int:
    h = 0
    for ch in text:
        h = (ord(ch) + (h << 6) + (h << 16) - h) & _MASK_32
    return h


class BloomFilter:
    """
    Fixed-size Bloom filter over normalized string keys.

    Keys are normalized with ``str(key).lower().strip()`` before hashing, so
    DOIs that differ only by case or surrounding whitespace collide as
    intended.

    Example:
        seen = BloomFilter()
        seen.add("10.1000/xyz")
        "10.1000/XYZ" in seen  # True
        seen.might_contain("10.1000/abc")  # False (definitely absent)
    """

    def __init__(self, size: int = DEFAULT_FILTER_SIZE) -> None:
        """
        Args:
            size: Number of bits in the filter. The default keeps the false
                  positive rate under 5% at roughly 10% fill.
        """
        if size <= 0:
            raise ValueError(f"BloomFilter size must be positive, got {size}")
        self.size = size
        self._bits = bytearray(math.ceil(size / 8))
        self._items_added = 0

    @staticmethod
    def _normalize(item: object) -> str:
        return str(item).lower().strip()

    def _positions(self, item: object) -> tuple[int, int, int]:
        key = self._normalize(item)
        return (
            fnv1a_32(key) % self.size,
            djb2_32(key) % self.size,
            sdbm_32(key) % self.size,
        )

    def _set_bit(self, position: int) -> None:
        self._bits[position // 8] |= 1 << (position % 8)

    def _get_bit(self, position: int) -> bool:
        return bool(self._bits[position // 8] & (1 << (position % 8)))

    def add(self, item: object) -> None:
        for position in self._positions(item):
            self._set_bit(position)
        self._items_added += 1

    def might_contain(self, item: object) -> bool:
        """False means definitely absent; True means possibly present."""
        return all(self._get_bit(position) for position in self._positions(item))

    def __contains__(self, item: object) -> bool:
        return self.might_contain(item)

    def clear(self) -> None:
        self._bits = bytearray(len(self._bits))
        self._items_added = 0

    @property
    def items_added(self) -> int:
        return self._items_added

    @property
    def memory_size(self) -> int:
        """Approximate memory usage of the bit array in bytes."""
        return len(self._bits)

    def fill_ratio(self) -> float:
        """Fraction of bits currently set."""
        set_bits = sum(bin(byte).count("1") for byte in self._bits)
        return set_bits / self.size

    def estimated_false_positive_rate(self) -> float:
        """Expected false positive rate: (1 - e^(-k*n/m))^k."""
        if self._items_added == 0:
            return 0.0
        exponent = -HASH_COUNT * self._items_added / self.size
        return (1 - math.exp(exponent)) ** HASH_COUNT


__all__ = ["BloomFilter", "DEFAULT_FILTER_SIZE", "djb2_32", "fnv1a_32", "sdbm_32"]
