# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for identity and replay derivations (zkjwt.circuit.identity)."""

from __future__ import annotations

import pytest
from poseidon_py.poseidon_hash import poseidon_hash_many

from zkjwt.circuit.bigint import to_limbs
from zkjwt.circuit.exceptions import ConstraintError
from zkjwt.circuit.identity import (
    account_salt,
    domain_leaf,
    generate_account_code,
    jwt_nullifier,
    merge_limbs,
    public_key_hash,
)
from zkjwt.circuit.packing import pack_bytes, pad_string
from zkjwt.config import FIELD_MODULUS


class TestMergeLimbs:

    def test_pairs(self):
        assert merge_limbs([1, 2, 3, 4], 4) == [1 + (2 << 4), 3 + (4 << 4)]

    def test_odd_count(self):
        assert merge_limbs([1, 2, 3], 4) == [1 + (2 << 4), 3]

    def test_rsa_limbs_fit_field(self, rsa_public_key):
        limbs = to_limbs(rsa_public_key.public_numbers().n, 121, 17)
        assert all(x < FIELD_MODULUS for x in merge_limbs(limbs, 121))


class TestDerivations:

    def test_public_key_hash_is_poseidon_of_merged_limbs(self, rsa_public_key):
        limbs = to_limbs(rsa_public_key.public_numbers().n, 121, 17)
        assert public_key_hash(limbs, 121) == poseidon_hash_many(merge_limbs(limbs, 121))

    def test_nullifier_distinguishes_signatures(self):
        a = to_limbs(12345, 121, 17)
        b = to_limbs(12346, 121, 17)
        assert jwt_nullifier(a, 121) == jwt_nullifier(list(a), 121)
        assert jwt_nullifier(a, 121) != jwt_nullifier(b, 121)

    def test_account_salt_depends_on_code_and_email(self, account_code):
        email = pad_string("alice@gmail.com", 256)
        other = pad_string("bob@gmail.com", 256)
        salt = account_salt(email, account_code)
        assert salt == poseidon_hash_many(pack_bytes(email, 256) + [account_code, 0])
        assert salt != account_salt(email, account_code + 1)
        assert salt != account_salt(other, account_code)

    @pytest.mark.parametrize("code", [-1, FIELD_MODULUS])
    def test_account_code_must_be_field_element(self, code):
        with pytest.raises(ConstraintError) as exc_info:
            account_salt(pad_string("alice@gmail.com", 256), code)
        assert exc_info.value.code == "VALUE_OUT_OF_RANGE"

    def test_domain_leaf(self):
        assert domain_leaf(pad_string("gmail.com", 255)) != domain_leaf(pad_string("gmail.co", 255))


class TestAccountCode:

    def test_generated_codes_are_field_elements(self):
        """Generated codes are nonzero field elements usable as salt input."""
        codes = {generate_account_code() for _ in range(20)}
        assert len(codes) == 20
        assert all(0 < code < FIELD_MODULUS for code in codes)
        account_salt(pad_string("alice@gmail.com", 256), codes.pop())

    def test_fixture_code_is_a_field_element(self, account_code):
        """The shared test account code fits the hash field."""
        assert 0 <= account_code < FIELD_MODULUS
