# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""SHA-256 digest engine and RS256 signature verification over limbs.

The digest must match standard JWT tooling bit for bit, so it is plain
SHA-256 over the first ``L`` bytes of the bounded signing-input buffer.  The
buffer invariants (``L <= M``, zero padding) are proved before hashing.

The signature check recomputes ``signature ** 65537 mod modulus`` with limb
arithmetic (:mod:`zkjwt.circuit.bigint`) and compares it limb by limb with
the PKCS#1 v1.5 encoded digest.

References
----------
- RFC 7518 §3.3 — RS256 (RSASSA-PKCS1-v1_5 using SHA-256)
- RFC 8017 §9.2 — EMSA-PKCS1-v1_5 encoding
"""

from __future__ import annotations

import hashlib
import logging
from typing import List, Sequence

from zkjwt.circuit.bigint import big_less_than, check_limbs, pow_65537_mod, to_limbs
from zkjwt.circuit.buffers import FixedBuffer, is_equal
from zkjwt.circuit.exceptions import SignatureMismatchError
from zkjwt.config import RSA_MODULUS_BITS

logger = logging.getLogger(__name__)

__all__ = [
    "sha256_digest",
    "digest_limbs",
    "padded_digest_limbs",
    "verify_rs256_signature",
]

# DER-encoded DigestInfo prefix for SHA-256 (RFC 8017 §9.2, note 1).
_SHA256_DIGEST_INFO = bytes.fromhex("3031300d060960864801650304020105000420")


def sha256_digest(message: FixedBuffer) -> bytes:
    """SHA-256 of the logical bytes of *message* after proving its invariants."""
    if message.capacity % 64:
        raise ValueError(f"message capacity must be a multiple of 64, got {message.capacity}")
    message.check("message")
    return hashlib.sha256(message.logical_bytes()).digest()


def digest_limbs(digest: bytes, n: int, k: int) -> List[int]:
    """Pack the 256-bit digest into ``ceil(256 / n)`` limbs, zero-extended to *k*."""
    used = -(-len(digest) * 8 // n)
    limbs = to_limbs(int.from_bytes(digest, "big"), n, used)
    return limbs + [0] * (k - used)


def _padding_limbs(n: int, k: int, modulus_bits: int) -> List[int]:
    """Limbs of the EMSA-PKCS1-v1_5 encoding with the digest bytes left zero."""
    em_len = (modulus_bits + 7) // 8
    fill = em_len - len(_SHA256_DIGEST_INFO) - 32 - 3
    encoded = b"\x00\x01" + b"\xff" * fill + b"\x00" + _SHA256_DIGEST_INFO + bytes(32)
    return to_limbs(int.from_bytes(encoded, "big"), n, k)


def padded_digest_limbs(digest: bytes, n: int, k: int, modulus_bits: int = RSA_MODULUS_BITS) -> List[int]:
    """The value ``signature ** e mod modulus`` must equal, as limbs.

    The digest occupies the low 256 bits and the padding prefix starts above
    them, so the two limb vectors add without carries.
    """
    return [
        d + p for d, p in zip(digest_limbs(digest, n, k), _padding_limbs(n, k, modulus_bits))
    ]


def verify_rs256_signature(
    digest: bytes,
    modulus: Sequence[int],
    signature: Sequence[int],
    n: int,
) -> None:
    """Verify an RS256 signature given as limbs.

    Raises:
        ConstraintError: if a limb is out of range.
        SignatureMismatchError: if the signature is not below the modulus or
            does not match the padded digest.
    """
    k = len(modulus)
    if len(signature) != k:
        raise ValueError(f"signature has {len(signature)} limbs, modulus has {k}")
    check_limbs(modulus, n, "modulus")
    check_limbs(signature, n, "signature")

    if not big_less_than(signature, modulus, n):
        raise SignatureMismatchError("RSA signature is not below the modulus")

    recovered = pow_65537_mod(signature, modulus, n)
    expected = padded_digest_limbs(digest, n, k)
    mismatches = sum(1 - is_equal(x, y) for x, y in zip(recovered, expected))
    if mismatches:
        raise SignatureMismatchError(
            f"RSA signature does not match the token digest ({mismatches} limb(s) differ)"
        )
    logger.debug("RS256 signature verified over %d limbs of %d bits", k, n)
