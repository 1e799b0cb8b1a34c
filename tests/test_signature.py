# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for limb arithmetic and RS256 verification.

References:
    - zkjwt.circuit.bigint
    - zkjwt.circuit.signature
    - RFC 8017 §9.2 — EMSA-PKCS1-v1_5
"""

from __future__ import annotations

import hashlib

import pytest

from conftest import sign_rs256
from zkjwt.circuit.bigint import (
    big_less_than,
    big_mult_mod,
    from_limbs,
    normalize,
    pow_65537_mod,
    to_limbs,
)
from zkjwt.circuit.buffers import FixedBuffer
from zkjwt.circuit.exceptions import ConstraintError, SignatureMismatchError
from zkjwt.circuit.models import ErrorCategory
from zkjwt.circuit.signature import padded_digest_limbs, sha256_digest, verify_rs256_signature

N, K = 121, 17
MESSAGE = b"eyJhbGciOiJSUzI1NiJ9.eyJpc3MiOiJ0ZXN0In0"


def _limbs(x: int):
    return to_limbs(x, N, K)


class TestLimbs:
    """Limb encoding and modular arithmetic."""

    def test_round_trip(self):
        x = (1 << 2047) + 12345
        assert from_limbs(_limbs(x), N) == x

    def test_too_large(self):
        with pytest.raises(ValueError):
            to_limbs(1 << (N * K), N, K)

    def test_normalize_carries(self):
        assert normalize([16, 0], 4, 2) == [0, 1]

    def test_normalize_overflow(self):
        with pytest.raises(ConstraintError):
            normalize([0, 16], 4, 2)

    def test_big_less_than(self):
        assert big_less_than(_limbs(5), _limbs(7), N) == 1
        assert big_less_than(_limbs(7), _limbs(7), N) == 0
        assert big_less_than(_limbs(1 << 200), _limbs(7), N) == 0

    def test_mult_mod_matches_native(self, rsa_private_key):
        p = rsa_private_key.public_key().public_numbers().n
        a, b = p - 12345, p // 3
        assert from_limbs(big_mult_mod(_limbs(a), _limbs(b), _limbs(p), N), N) == a * b % p

    def test_pow_65537_matches_native(self, rsa_private_key):
        p = rsa_private_key.public_key().public_numbers().n
        base = 0xC0FFEE << 1000
        assert from_limbs(pow_65537_mod(_limbs(base), _limbs(p), N), N) == pow(base, 65537, p)


class TestDigest:
    """SHA-256 over a bounded buffer."""

    def test_matches_hashlib(self):
        buf = FixedBuffer.from_bytes(MESSAGE, 128)
        assert sha256_digest(buf) == hashlib.sha256(MESSAGE).digest()

    def test_capacity_must_be_multiple_of_64(self):
        with pytest.raises(ValueError):
            sha256_digest(FixedBuffer.from_bytes(MESSAGE, 100))

    def test_nonzero_padding_rejected(self):
        buf = FixedBuffer.from_bytes(MESSAGE, 128)
        tampered = FixedBuffer(data=buf.data[:-1] + (1,), length=buf.length)
        with pytest.raises(ConstraintError) as exc_info:
            sha256_digest(tampered)
        assert exc_info.value.code == "PADDING_NOT_ZERO"


class TestRS256:
    """Signature verification over limbs."""

    @pytest.fixture
    def signed(self, rsa_private_key):
        modulus = rsa_private_key.public_key().public_numbers().n
        signature = int.from_bytes(sign_rs256(rsa_private_key, MESSAGE), "big")
        return modulus, signature

    def test_padded_digest_matches_encryption(self, signed):
        modulus, signature = signed
        digest = hashlib.sha256(MESSAGE).digest()
        assert padded_digest_limbs(digest, N, K) == _limbs(pow(signature, 65537, modulus))

    def test_valid_signature_accepted(self, signed):
        modulus, signature = signed
        digest = hashlib.sha256(MESSAGE).digest()
        verify_rs256_signature(digest, _limbs(modulus), _limbs(signature), N)

    @pytest.mark.parametrize("position", [0, 100, 255])
    def test_flipped_signature_byte_rejected(self, signed, position):
        modulus, signature = signed
        raw = bytearray(signature.to_bytes(256, "big"))
        raw[position] ^= 0x01
        digest = hashlib.sha256(MESSAGE).digest()
        with pytest.raises(SignatureMismatchError) as exc_info:
            verify_rs256_signature(digest, _limbs(modulus), _limbs(int.from_bytes(raw, "big")), N)
        assert exc_info.value.code == "SIGNATURE_MISMATCH"
        assert exc_info.value.category == ErrorCategory.CRYPTOGRAPHIC
        assert exc_info.value.recoverable is False

    @pytest.mark.parametrize("position", [0, 20, len(MESSAGE) - 1])
    def test_flipped_message_byte_rejected(self, signed, position):
        modulus, signature = signed
        raw = bytearray(MESSAGE)
        raw[position] ^= 0x01
        digest = hashlib.sha256(bytes(raw)).digest()
        with pytest.raises(SignatureMismatchError):
            verify_rs256_signature(digest, _limbs(modulus), _limbs(signature), N)

    def test_signature_not_below_modulus_rejected(self, signed):
        modulus, signature = signed
        digest = hashlib.sha256(MESSAGE).digest()
        with pytest.raises(SignatureMismatchError):
            verify_rs256_signature(digest, _limbs(modulus), _limbs(signature + modulus), N)

    def test_wrong_key_rejected(self, signed, other_private_key):
        _, signature = signed
        other = other_private_key.public_key().public_numbers().n
        digest = hashlib.sha256(MESSAGE).digest()
        with pytest.raises(SignatureMismatchError):
            verify_rs256_signature(digest, _limbs(other), _limbs(signature % other), N)

    def test_oversized_limb_rejected(self, signed):
        modulus, signature = signed
        limbs = _limbs(signature)
        limbs[0] = 1 << N
        with pytest.raises(ConstraintError) as exc_info:
            verify_rs256_signature(hashlib.sha256(MESSAGE).digest(), _limbs(modulus), limbs, N)
        assert exc_info.value.code == "VALUE_OUT_OF_RANGE"
