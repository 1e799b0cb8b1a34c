# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Structural validation of decoded JWT header and payload.

Two kinds of checks run at prover-supplied offsets:

* **literal**: a fixed byte string (``"typ":"JWT"``, ``"alg":"RS256"``)
  must sit exactly at the claimed offset;
* **key**: a JSON key literal (``"azp":"``, ``"nonce":"`` ...) must sit at
  the claimed offset, be preceded by ``{`` or ``,``, and occur exactly once
  in the segment.  Without the uniqueness check a forged duplicate key could
  be targeted instead of the real one.

Values are then extracted relative to the validated key.
"""

from __future__ import annotations

from typing import List, Sequence

from zkjwt.circuit.buffers import FixedBuffer, assert_less_equal, bits_for, is_equal, less_than
from zkjwt.circuit.exceptions import ConstraintError
from zkjwt.circuit.locator import item_at_index, select_sub_array
from zkjwt.config import KID_HEX_LENGTH, TIMESTAMP_DIGITS

__all__ = [
    "match_literal",
    "assert_literal_at",
    "count_occurrences",
    "assert_unique_key",
    "extract_string_value",
    "extract_hex_value",
    "extract_timestamp",
    "extract_email_domain",
]

_QUOTE = ord('"')
_KEY_PRECEDERS = (ord("{"), ord(","))
_VALUE_TERMINATORS = (ord(","), ord("}"))


def match_literal(segment: Sequence[int], start: int, literal: bytes) -> int:
    """1 if *literal* occurs at *start* in *segment*; positions past the end read as 0."""
    size = len(segment)
    matched = 1
    for j, expected in enumerate(literal):
        pos = start + j
        matched *= is_equal(segment[pos] if pos < size else 0, expected)
    return matched


def assert_literal_at(segment: FixedBuffer, start: int, literal: bytes, label: str) -> None:
    """Unsatisfiable unless *literal* lies at *start* inside the segment."""
    assert_less_equal(start, segment.capacity, bits_for(segment.capacity), f"{label} start")
    window = select_sub_array(segment.data, start, len(literal), len(literal), label)
    mismatches = sum(1 - is_equal(a, b) for a, b in zip(window.data, literal))
    if mismatches:
        raise ConstraintError.literal_mismatch(label, start)


def count_occurrences(segment: Sequence[int], literal: bytes) -> int:
    """Number of start positions at which *literal* occurs."""
    return sum(match_literal(segment, i, literal) for i in range(len(segment)))


def assert_unique_key(segment: FixedBuffer, start: int, key: bytes, label: str) -> None:
    """Validate a JSON key literal at *start* and prove it is the only one."""
    assert_literal_at(segment, start, key, label)
    preceding = item_at_index(segment.data, start - 1, f"{label} start")
    if not sum(is_equal(preceding, c) for c in _KEY_PRECEDERS):
        raise ConstraintError.literal_mismatch(f"{label} delimiter", start - 1)
    count = count_occurrences(segment.data, key)
    if count != 1:
        raise ConstraintError.key_not_unique(label, count)


def extract_string_value(
    segment: FixedBuffer,
    key_start: int,
    key: bytes,
    value_length: int,
    capacity: int,
    label: str,
) -> FixedBuffer:
    """Extract the string value following a validated *key*.

    *key* ends with the opening quote of the value; the byte right after
    ``value_length`` bytes must be the closing quote.
    """
    assert_unique_key(segment, key_start, key, label)
    value_start = key_start + len(key)
    value = select_sub_array(segment.data, value_start, value_length, capacity, f"{label} value")
    closing = item_at_index(segment.data, value_start + value_length, f"{label} value end")
    if not is_equal(closing, _QUOTE):
        raise ConstraintError.literal_mismatch(f"{label} closing quote", value_start + value_length)
    return value


def _hex_digit_value(c: int) -> List[int]:
    """``[is_hex, value]`` for one ASCII byte, computed without branching on *c*."""
    digit = less_than(47, c, 8) * less_than(c, 58, 8)
    lower = less_than(96, c, 8) * less_than(c, 103, 8)
    upper = less_than(64, c, 8) * less_than(c, 71, 8)
    value = digit * (c - 48) + lower * (c - 87) + upper * (c - 55)
    return [digit + lower + upper, value]


def extract_hex_value(
    segment: FixedBuffer,
    key_start: int,
    key: bytes,
    label: str,
    digits: int = KID_HEX_LENGTH,
) -> int:
    """Extract a quoted, fixed-length hexadecimal value (the JOSE ``kid``) as an integer."""
    raw = extract_string_value(segment, key_start, key, digits, digits, label)
    result = 0
    invalid = 0
    for c in raw.data:
        ok, value = _hex_digit_value(c)
        invalid += 1 - ok
        result = result * 16 + value
    if invalid:
        raise ConstraintError.invalid_character(label, invalid)
    return result


def extract_timestamp(segment: FixedBuffer, key_start: int, key: bytes, label: str = "iat") -> int:
    """Extract a ``TIMESTAMP_DIGITS``-digit numeric value followed by ``,`` or ``}``."""
    assert_unique_key(segment, key_start, key, label)
    value_start = key_start + len(key)
    raw = select_sub_array(segment.data, value_start, TIMESTAMP_DIGITS, TIMESTAMP_DIGITS, label)
    result = 0
    invalid = 0
    for c in raw.data:
        ok = less_than(47, c, 8) * less_than(c, 58, 8)
        invalid += 1 - ok
        result = result * 10 + ok * (c - 48)
    if invalid:
        raise ConstraintError.invalid_character(label, invalid)
    terminator = item_at_index(segment.data, value_start + TIMESTAMP_DIGITS, f"{label} end")
    if not sum(is_equal(terminator, c) for c in _VALUE_TERMINATORS):
        raise ConstraintError.literal_mismatch(f"{label} terminator", value_start + TIMESTAMP_DIGITS)
    return result


def extract_email_domain(email: FixedBuffer, at_index: int, capacity: int) -> FixedBuffer:
    """Domain part of an email value given the claimed ``@`` position."""
    at = item_at_index(email.data, at_index, "email domain index")
    if not is_equal(at, ord("@")):
        raise ConstraintError.literal_mismatch("email '@'", at_index)
    domain_length = email.length - at_index - 1
    assert_less_equal(domain_length, email.capacity, bits_for(email.capacity), "email domain length")
    return select_sub_array(email.data, at_index + 1, domain_length, capacity, "email domain")
