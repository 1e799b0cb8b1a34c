# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Big-integer arithmetic over fixed-width limbs.

Integers are little-endian lists of ``k`` limbs of ``n`` bits.  Modular
multiplication follows the witness-and-check pattern of arithmetic circuits:
the quotient and remainder are computed natively as a hint, then
``a * b == q * p + r`` is re-established limb by limb (schoolbook products,
explicit carry propagation) together with ``r < p``.
"""

from __future__ import annotations

from typing import List, Sequence

from zkjwt.circuit.buffers import is_equal, less_than, num_to_bits, select
from zkjwt.circuit.exceptions import ConstraintError

__all__ = [
    "to_limbs",
    "from_limbs",
    "check_limbs",
    "mul_without_carry",
    "add_without_carry",
    "normalize",
    "big_less_than",
    "big_mult_mod",
    "pow_65537_mod",
]


def to_limbs(x: int, n: int, k: int) -> List[int]:
    """Split non-negative *x* into *k* little-endian limbs of *n* bits."""
    if x < 0 or x >> (n * k):
        raise ValueError(f"{x.bit_length()}-bit integer does not fit in {k} limbs of {n} bits")
    mask = (1 << n) - 1
    return [(x >> (n * i)) & mask for i in range(k)]


def from_limbs(limbs: Sequence[int], n: int) -> int:
    return sum(limb << (n * i) for i, limb in enumerate(limbs))


def check_limbs(limbs: Sequence[int], n: int, label: str) -> None:
    """Range-check every limb to *n* bits."""
    for i, limb in enumerate(limbs):
        num_to_bits(limb, n, f"{label}[{i}]")


def mul_without_carry(a: Sequence[int], b: Sequence[int]) -> List[int]:
    """Schoolbook product; coefficient ``i`` collects ``a[j] * b[i - j]``."""
    out = [0] * (len(a) + len(b) - 1)
    for i, x in enumerate(a):
        for j, y in enumerate(b):
            out[i + j] += x * y
    return out


def add_without_carry(a: Sequence[int], b: Sequence[int]) -> List[int]:
    size = max(len(a), len(b))
    return [
        (a[i] if i < len(a) else 0) + (b[i] if i < len(b) else 0)
        for i in range(size)
    ]


def normalize(coefficients: Sequence[int], n: int, size: int) -> List[int]:
    """Propagate carries so that every limb fits in *n* bits.

    Unsatisfiable if a carry remains after *size* limbs.
    """
    mask = (1 << n) - 1
    out = []
    carry = 0
    for i in range(size):
        value = (coefficients[i] if i < len(coefficients) else 0) + carry
        out.append(value & mask)
        carry = value >> n
    if carry:
        raise ConstraintError.out_of_range("normalized big integer", carry, 0)
    return out


def big_less_than(a: Sequence[int], b: Sequence[int], n: int) -> int:
    """1 if ``a < b`` as limb vectors of equal length, scanning from the top."""
    result = 0
    decided = 0
    for x, y in zip(reversed(a), reversed(b)):
        lt = less_than(x, y, n)
        eq = is_equal(x, y)
        result = select(decided, result, lt)
        decided = select(decided, 1, 1 - eq)
    return result


def big_mult_mod(a: Sequence[int], b: Sequence[int], p: Sequence[int], n: int) -> List[int]:
    """Return ``a * b mod p`` as limbs after checking the witnessed division."""
    k = len(p)
    modulus = from_limbs(p, n)
    q, r = divmod(from_limbs(a, n) * from_limbs(b, n), modulus)
    q_limbs = to_limbs(q, n, k)
    r_limbs = to_limbs(r, n, k)

    lhs = normalize(mul_without_carry(a, b), n, 2 * k)
    rhs = normalize(add_without_carry(mul_without_carry(q_limbs, p), r_limbs), n, 2 * k)
    mismatches = sum(1 - is_equal(x, y) for x, y in zip(lhs, rhs))
    if mismatches:
        raise ConstraintError.out_of_range("modular product remainder", mismatches, 0)
    if not big_less_than(r_limbs, p, n):
        raise ConstraintError.out_of_range("modular product remainder", r, modulus.bit_length())
    return r_limbs


def pow_65537_mod(base: Sequence[int], modulus: Sequence[int], n: int) -> List[int]:
    """``base ** 65537 mod modulus``: sixteen squarings and one multiply."""
    acc = list(base)
    for _ in range(16):
        acc = big_mult_mod(acc, acc, modulus, n)
    return big_mult_mod(acc, base, modulus, n)
