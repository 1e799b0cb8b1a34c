# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Lane packing of byte strings into field elements.

A byte string of capacity ``C`` becomes ``ceil(C / 31)`` lanes.  Lane ``i``
holds bytes ``31*i .. 31*i + 30`` in little-endian order, so every lane is
below ``2**248`` and therefore a valid field element.  External consumers
(the registry, the on-chain verifier) apply the same packing to compare
strings and hashes.
"""

from __future__ import annotations

from typing import List, Sequence, Union

from zkjwt.circuit.buffers import num_to_bits
from zkjwt.config import FIELD_LANE_BYTES

__all__ = ["lane_count", "pad_string", "pack_bytes", "unpack_lanes", "lanes_to_string"]


def lane_count(max_bytes: int) -> int:
    return -(-max_bytes // FIELD_LANE_BYTES)


def pad_string(value: Union[str, bytes], max_bytes: int) -> List[int]:
    """Zero-pad the UTF-8 bytes of *value* to *max_bytes*."""
    raw = value.encode() if isinstance(value, str) else bytes(value)
    if len(raw) > max_bytes:
        raise ValueError(f"{len(raw)} bytes do not fit in {max_bytes}")
    return list(raw) + [0] * (max_bytes - len(raw))


def pack_bytes(data: Sequence[int], max_bytes: int) -> List[int]:
    """Pack the first *max_bytes* entries of *data* (zero-extended) into lanes."""
    padded = list(data[:max_bytes]) + [0] * max(0, max_bytes - len(data))
    lanes = []
    for i in range(lane_count(max_bytes)):
        chunk = padded[i * FIELD_LANE_BYTES:(i + 1) * FIELD_LANE_BYTES]
        lanes.append(sum(b << (8 * j) for j, b in enumerate(chunk)))
    return lanes


def unpack_lanes(lanes: Sequence[int], max_bytes: int) -> List[int]:
    """Inverse of :func:`pack_bytes`; every lane must fit in 31 bytes."""
    out: List[int] = []
    for i, lane in enumerate(lanes):
        num_to_bits(lane, 8 * FIELD_LANE_BYTES, f"lane[{i}]")
        out.extend((lane >> (8 * j)) & 0xFF for j in range(FIELD_LANE_BYTES))
    return out[:max_bytes]


def lanes_to_string(lanes: Sequence[int], max_bytes: int) -> str:
    """Decode lanes back to text, dropping the trailing zero padding."""
    return bytes(unpack_lanes(lanes, max_bytes)).rstrip(b"\x00").decode()
