# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""One-way identity and replay-protection derivations.

All derivations use the Poseidon hash over the Starknet prime field
(``FIELD_MODULUS``, about 2**251).  SHA-256 stays reserved for the token
digest, which must match standard RS256 tooling.

* ``public_key_hash = H(modulus limbs)``: what the registry stores per
  issuer and key id.
* ``jwt_nullifier = H(signature limbs)``: the same physical JWT always
  yields the same nullifier; rejecting duplicates is the registry's job.
* ``account_salt = H(email lanes, account_code, 0)``: binds the proof to a
  deterministic account without revealing the email.

Limbs are merged pairwise (``lo + hi * 2**n``) before hashing so that each
hash input is a single field element and the input count halves.

Compatibility
-------------
These values are not interchangeable with circomlib Poseidon over the BN254
scalar field.  A public-key hash, nullifier or account salt computed by
BN254 tooling will never equal the value computed here for the same key,
signature or email, so registry entries must be produced with this module.
Account codes likewise live in the Starknet field: a BN254 element at or
above ``FIELD_MODULUS`` is rejected; draw new ones with
:func:`generate_account_code`.
"""

from __future__ import annotations

import secrets
from typing import List, Sequence

from poseidon_py.poseidon_hash import poseidon_hash_many

from zkjwt.circuit.exceptions import ConstraintError
from zkjwt.circuit.packing import pack_bytes
from zkjwt.config import DOMAIN_MAX_BYTES, EMAIL_MAX_BYTES, FIELD_MODULUS

__all__ = [
    "merge_limbs",
    "public_key_hash",
    "jwt_nullifier",
    "generate_account_code",
    "account_salt",
    "domain_leaf",
]


def merge_limbs(limbs: Sequence[int], n: int) -> List[int]:
    """Combine consecutive limb pairs into single field elements."""
    merged = []
    for i in range(0, len(limbs), 2):
        hi = limbs[i + 1] if i + 1 < len(limbs) else 0
        merged.append(limbs[i] + (hi << n))
    return merged


def public_key_hash(modulus: Sequence[int], n: int) -> int:
    return poseidon_hash_many(merge_limbs(modulus, n))


def jwt_nullifier(signature: Sequence[int], n: int) -> int:
    return poseidon_hash_many(merge_limbs(signature, n))


def generate_account_code() -> int:
    """Fresh random account code, uniform over ``[1, FIELD_MODULUS)``."""
    return 1 + secrets.randbelow(FIELD_MODULUS - 1)


def account_salt(email: Sequence[int], account_code: int) -> int:
    """Salt binding the padded email bytes to a secret account code.

    Raises:
        ConstraintError: if *account_code* is not a field element.
    """
    if not 0 <= account_code < FIELD_MODULUS:
        raise ConstraintError.out_of_range("account code", account_code, FIELD_MODULUS.bit_length())
    return poseidon_hash_many(pack_bytes(email, EMAIL_MAX_BYTES) + [account_code, 0])


def domain_leaf(domain: Sequence[int]) -> int:
    """Anonymity-set leaf for a padded domain name."""
    return poseidon_hash_many(pack_bytes(domain, DOMAIN_MAX_BYTES))
