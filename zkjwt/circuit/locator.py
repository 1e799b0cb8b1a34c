# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Field locator: sub-range extraction at untrusted offsets.

Offsets arrive from the prover.  Each one is range-checked before use and
extraction is done by a logarithmic barrel shift, so the cost depends only on
buffer capacities and never on where the field actually sits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from zkjwt.circuit.buffers import (
    FixedBuffer,
    assert_less_equal,
    bits_for,
    is_equal,
    less_than,
    num_to_bits,
    select,
)
from zkjwt.circuit.exceptions import ConstraintError

logger = logging.getLogger(__name__)

__all__ = ["item_at_index", "var_shift_left", "select_sub_array", "TokenParts", "split_token"]

PERIOD = ord(".")


def item_at_index(values: Sequence[int], index: int, label: str = "index") -> int:
    """Read ``values[index]`` through a one-hot selector.

    Unsatisfiable unless exactly one position matches *index*.
    """
    hits = 0
    item = 0
    for i, value in enumerate(values):
        eq = is_equal(i, index)
        hits += eq
        item += eq * value
    if hits != 1:
        raise ConstraintError.offset_out_of_range(label, index, len(values) - 1)
    return item


def var_shift_left(values: Sequence[int], shift: int, shift_bits: int) -> List[int]:
    """Shift *values* left by *shift* positions, filling with zeros."""
    size = len(values)
    current = list(values)
    for b, bit in enumerate(num_to_bits(shift, shift_bits, "shift")):
        step = 1 << b
        current = [
            select(bit, current[i + step] if i + step < size else 0, current[i])
            for i in range(size)
        ]
    return current


def select_sub_array(
    values: Sequence[int],
    start: int,
    length: int,
    capacity: int,
    label: str = "sub-array",
) -> FixedBuffer:
    """Return ``values[start:start + length]`` in a zero-padded buffer.

    Raises:
        ConstraintError: when ``start + length`` exceeds the source capacity
            or ``length`` exceeds *capacity*.  Nothing is truncated.
    """
    source_bits = bits_for(len(values))
    assert_less_equal(start, len(values), source_bits, f"{label} start")
    assert_less_equal(length, capacity, bits_for(capacity), f"{label} length")
    assert_less_equal(start + length, len(values), source_bits + 1, f"{label} end")

    shifted = var_shift_left(values, start, source_bits)
    width = min(capacity, len(shifted))
    length_bits = bits_for(capacity)
    out = [shifted[j] * less_than(j, length, length_bits) for j in range(width)]
    out.extend([0] * (capacity - width))
    return FixedBuffer.from_values(out, length)


@dataclass(frozen=True)
class TokenParts:
    """Base64url header and payload segments of the signing input."""

    header: FixedBuffer
    payload: FixedBuffer


def split_token(
    message: FixedBuffer,
    period_index: int,
    header_capacity: int,
    payload_capacity: int,
) -> TokenParts:
    """Split ``header.payload`` on the claimed period position.

    The byte at *period_index* must be ``.``; the payload length is derived as
    ``message.length - period_index - 1`` rather than taken from the prover.
    """
    found = item_at_index(message.data, period_index, "period index")
    if not is_equal(found, PERIOD):
        raise ConstraintError.separator_mismatch(period_index, found)

    payload_length = message.length - period_index - 1
    assert_less_equal(payload_length, message.capacity, bits_for(message.capacity), "payload length")

    header = select_sub_array(message.data, 0, period_index, header_capacity, "header")
    payload = select_sub_array(
        message.data, period_index + 1, payload_length, payload_capacity, "payload"
    )
    logger.debug(
        "Token split: header_length=%d payload_length=%d", period_index, payload_length
    )
    return TokenParts(header=header, payload=payload)
