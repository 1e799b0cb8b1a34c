# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Fixed-capacity base64url decoding.

Decodes a base64 buffer whose capacity is a multiple of 4 into a byte buffer
of three quarters that capacity.  Tokens use unpadded base64url; both the
url-safe and the standard alphabet are accepted for characters 62 and 63.

Characters beyond the logical input length (zero padding, or whatever the
prover left there) only contribute bits at or after the logical output
length; non-alphabet bytes among them decode as the zero sextet.  Output
bytes past the logical output length are zeroed to keep the buffer
invariant.
"""

from __future__ import annotations

import base64

from zkjwt.circuit.buffers import FixedBuffer, bits_for, less_than
from zkjwt.circuit.exceptions import ConstraintError

__all__ = ["base64_decode", "decoded_length"]

_URLSAFE = b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"

# Translation table onto the url-safe alphabet; anything else becomes the
# zero sextet "A".
_NORMALIZE = bytes(
    b if b in _URLSAFE else {ord("+"): ord("-"), ord("/"): ord("_")}.get(b, ord("A"))
    for b in range(256)
)

_IN_ALPHABET = tuple(int(b in _URLSAFE or b in b"+/") for b in range(256))


def decoded_length(encoded_length: int) -> int:
    """Logical byte length of *encoded_length* unpadded base64 characters."""
    return encoded_length * 3 // 4


def base64_decode(encoded: FixedBuffer, label: str = "base64") -> FixedBuffer:
    """Decode *encoded* into a buffer of capacity ``encoded.capacity * 3 // 4``.

    Raises:
        ConstraintError: if a character inside the logical length is not a
            base64 alphabet member (``=`` padding included).
    """
    if encoded.capacity % 4:
        raise ValueError(f"base64 capacity must be a multiple of 4, got {encoded.capacity}")

    bits = bits_for(encoded.capacity)
    invalid = sum(
        less_than(i, encoded.length, bits) * (1 - _IN_ALPHABET[c])
        for i, c in enumerate(encoded.data)
    )
    if invalid:
        raise ConstraintError.invalid_character(label, invalid)

    raw = base64.urlsafe_b64decode(bytes(encoded.data).translate(_NORMALIZE))
    length = decoded_length(encoded.length)
    out_bits = bits_for(len(raw))
    data = tuple(b * less_than(i, length, out_bits) for i, b in enumerate(raw))
    return FixedBuffer(data=data, length=length)
