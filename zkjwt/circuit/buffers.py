# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Fixed-capacity byte buffers and arithmetic selection primitives.

Every buffer handled by the verifier has a capacity fixed by
:class:`~zkjwt.config.CircuitParameters` and a logical length claimed by the
prover.  Bytes at or beyond the logical length must be zero; that invariant
is checked, never assumed.

Conditionals on witness-derived values are written as arithmetic over 0/1
indicators (``select``, ``is_zero``, ``less_than``) so that every position of
a buffer is visited regardless of the data it holds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from zkjwt.circuit.exceptions import ConstraintError

__all__ = [
    "FixedBuffer",
    "select",
    "is_zero",
    "is_equal",
    "num_to_bits",
    "less_than",
    "less_equal",
    "assert_bits",
    "assert_less_equal",
    "bits_for",
]


# ---------------------------------------------------------------------------
# Selection primitives
# ---------------------------------------------------------------------------

def select(flag: int, a: int, b: int) -> int:
    """Return ``a`` when *flag* is 1 and ``b`` when it is 0."""
    return flag * a + (1 - flag) * b


def is_zero(x: int) -> int:
    return int(x == 0)


def is_equal(a: int, b: int) -> int:
    return is_zero(a - b)


def num_to_bits(x: int, bits: int, label: str = "value") -> List[int]:
    """Little-endian bit decomposition; unsatisfiable if *x* needs more bits."""
    if x < 0 or x >> bits:
        raise ConstraintError.out_of_range(label, x, bits)
    return [(x >> i) & 1 for i in range(bits)]


def less_than(a: int, b: int, bits: int) -> int:
    """1 if ``a < b`` for operands that fit in *bits* bits.

    Decomposes ``a + 2**bits - b`` into ``bits + 1`` bits; the top bit is
    clear exactly when ``a < b``.
    """
    top = num_to_bits(a + (1 << bits) - b, bits + 1, "comparison")[bits]
    return 1 - top


def less_equal(a: int, b: int, bits: int) -> int:
    return less_than(a, b + 1, bits)


def bits_for(capacity: int) -> int:
    """Bits needed to range-check any index or length up to *capacity*."""
    return max(1, (capacity + 1).bit_length())


def assert_bits(x: int, bits: int, label: str) -> None:
    num_to_bits(x, bits, label)


def assert_less_equal(a: int, b: int, bits: int, label: str) -> None:
    """Unsatisfiable unless ``0 <= a <= b``.

    Any overrun reports ``OFFSET_OUT_OF_RANGE``, including one too wide for
    the bit decomposition.
    """
    try:
        assert_bits(a, bits, label)
    except ConstraintError:
        raise ConstraintError.offset_out_of_range(label, a, b) from None
    if not less_equal(a, b, bits):
        raise ConstraintError.offset_out_of_range(label, a, b)


# ---------------------------------------------------------------------------
# Fixed buffer
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FixedBuffer:
    """A fixed-capacity byte array with a claimed logical length.

    Attributes:
        data:    Exactly ``capacity`` integers.
        length:  Claimed logical length (untrusted until :meth:`check`).
    """

    data: Tuple[int, ...]
    length: int

    @property
    def capacity(self) -> int:
        return len(self.data)

    @classmethod
    def from_bytes(cls, raw: bytes, capacity: int) -> "FixedBuffer":
        """Zero-pad *raw* to *capacity*; raises ``ValueError`` if it does not fit."""
        if len(raw) > capacity:
            raise ValueError(f"{len(raw)} bytes do not fit in capacity {capacity}")
        return cls(data=tuple(raw) + (0,) * (capacity - len(raw)), length=len(raw))

    @classmethod
    def from_values(cls, values: Sequence[int], length: int) -> "FixedBuffer":
        return cls(data=tuple(values), length=length)

    def check(self, label: str) -> "FixedBuffer":
        """Prove the buffer invariants and return ``self``.

        * ``length <= capacity`` via bit decomposition,
        * every element is a byte,
        * every element at or beyond ``length`` is zero.
        """
        bits = bits_for(self.capacity)
        assert_less_equal(self.length, self.capacity, bits, f"{label} length")

        bad_bytes = 0
        nonzero_padding = 0
        for i, value in enumerate(self.data):
            bad_bytes += 1 - int(0 <= value <= 0xFF)
            beyond = 1 - less_than(i, self.length, bits)
            nonzero_padding += beyond * (1 - is_zero(value))
        if bad_bytes:
            raise ConstraintError.invalid_character(label, bad_bytes)
        if nonzero_padding:
            raise ConstraintError.padding_not_zero(label, nonzero_padding)
        return self

    def logical_bytes(self) -> bytes:
        return bytes(self.data[: self.length])
