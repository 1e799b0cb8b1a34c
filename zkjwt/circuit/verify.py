# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Single-pass JWT verification and selective disclosure.

One call to :func:`verify_jwt` either proves every constraint below and
returns the ordered public outputs, or raises and returns nothing:

1. **Digest**: SHA-256 over the bounded ``header.payload`` buffer.
2. **Signature**: RS256 over limbs; a hard gate for everything after it.
3. **Split**: the byte at the claimed period index must be ``.``.
4. **Decode**: base64url header and payload into fixed-capacity buffers.
5. **Header**: ``typ`` and ``alg`` literals, 40-hex-digit ``kid``.
6. **Payload**: ``iss``, ``iat``, ``azp``, ``email`` (and its domain),
   ``nonce`` (the command), each at a validated unique key.
7. **Mask**: email address and invitation code spans of the command are
   zeroed.
8. **Derive**: public-key hash, JWT nullifier, account salt.
9. **Anonymity set**: optional Merkle membership of the email domain.

:func:`verify_jwt_signature` stops after ``iss`` and ``iat`` of phase 6 and
discloses only the key id, issuer, public-key hash and issue time; it serves
tokens that carry no ``azp``, ``email`` or ``nonce``.

Nothing is persisted between calls; instances are independent.

References
----------
- RFC 7519 — JSON Web Token
- RFC 7515 §7.1 — JWS compact serialization
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from zkjwt.circuit.base64url import base64_decode
from zkjwt.circuit.buffers import FixedBuffer, is_equal
from zkjwt.circuit.exceptions import ConstraintError
from zkjwt.circuit.identity import account_salt, domain_leaf, jwt_nullifier, public_key_hash
from zkjwt.circuit.locator import split_token
from zkjwt.circuit.masking import mask_command
from zkjwt.circuit.merkle import verify_membership
from zkjwt.circuit.models import JwtAuthInputs, JwtSignatureInputs
from zkjwt.circuit.packing import lanes_to_string, pack_bytes, pad_string
from zkjwt.circuit.signature import sha256_digest, verify_rs256_signature
from zkjwt.circuit.structure import (
    assert_literal_at,
    extract_email_domain,
    extract_hex_value,
    extract_string_value,
    extract_timestamp,
)
from zkjwt.config import (
    AZP_KEY,
    AZP_MAX_BYTES,
    DEFAULT_PARAMETERS,
    DOMAIN_MAX_BYTES,
    EMAIL_KEY,
    EMAIL_MAX_BYTES,
    IAT_KEY,
    ISS_KEY,
    ISSUER_MAX_BYTES,
    JWT_ALG_LITERAL,
    JWT_TYP_LITERAL,
    KID_KEY,
    NONCE_KEY,
    CircuitParameters,
)

logger = logging.getLogger(__name__)

__all__ = [
    "JwtSignatureOutputs",
    "JwtPublicOutputs",
    "verify_jwt_signature",
    "verify_jwt",
]


# ======================================================================
# Public outputs
# ======================================================================


@dataclass(frozen=True)
class JwtSignatureOutputs:
    """Public outputs of a signature-only verification."""

    kid: int
    issuer: Tuple[int, ...]
    public_key_hash: int
    timestamp: int

    def public_signals(self) -> List[int]:
        return [self.kid, *self.issuer, self.public_key_hash, self.timestamp]

    @property
    def issuer_string(self) -> str:
        return lanes_to_string(self.issuer, ISSUER_MAX_BYTES)


@dataclass(frozen=True)
class JwtPublicOutputs:
    """Ordered public outputs of one verification.

    Byte-string outputs are carried as 31-byte lanes; the ``*_string``
    properties decode them for collaborators.
    """

    kid: int
    issuer: Tuple[int, ...]
    public_key_hash: int
    jwt_nullifier: int
    timestamp: int
    masked_command: Tuple[int, ...]
    account_salt: int
    azp: Tuple[int, ...]
    is_code_exist: int
    command_max_bytes: int
    email_domain: Optional[Tuple[int, ...]] = None
    anonymous_domains_tree_root: Optional[int] = None

    def public_signals(self) -> List[int]:
        """Flatten the outputs in their normative order."""
        signals = [self.kid]
        signals.extend(self.issuer)
        signals.extend([self.public_key_hash, self.jwt_nullifier, self.timestamp])
        signals.extend(self.masked_command)
        signals.append(self.account_salt)
        signals.extend(self.azp)
        signals.append(self.is_code_exist)
        if self.email_domain is not None:
            signals.extend(self.email_domain)
            signals.append(self.anonymous_domains_tree_root)
        return signals

    @property
    def issuer_string(self) -> str:
        return lanes_to_string(self.issuer, ISSUER_MAX_BYTES)

    @property
    def azp_string(self) -> str:
        return lanes_to_string(self.azp, AZP_MAX_BYTES)

    @property
    def masked_command_string(self) -> str:
        return lanes_to_string(self.masked_command, self.command_max_bytes)

    @property
    def email_domain_string(self) -> Optional[str]:
        if self.email_domain is None:
            return None
        return lanes_to_string(self.email_domain, DOMAIN_MAX_BYTES)


@dataclass(frozen=True)
class _SignedToken:
    """Claims proven by the shared signature, header, iss and iat phases."""

    kid: int
    issuer: FixedBuffer
    timestamp: int
    payload: FixedBuffer


# ======================================================================
# Entry points
# ======================================================================


def verify_jwt_signature(
    inputs: JwtSignatureInputs,
    params: CircuitParameters = DEFAULT_PARAMETERS,
) -> JwtSignatureOutputs:
    """Verify a JWT's signature, header, issuer and issue time.

    Raises:
        ConstraintError: if any constraint is unsatisfiable.
        ValueError: if an input array does not have the configured shape.
    """
    token = _verify_signed_token(inputs, params)
    result = JwtSignatureOutputs(
        kid=token.kid,
        issuer=tuple(pack_bytes(token.issuer.data, ISSUER_MAX_BYTES)),
        public_key_hash=public_key_hash(inputs.pubkey, params.limb_bits),
        timestamp=token.timestamp,
    )
    logger.info("JWT signature verified: kid=%040x timestamp=%d", token.kid, token.timestamp)
    return result


def verify_jwt(
    inputs: JwtAuthInputs,
    params: CircuitParameters = DEFAULT_PARAMETERS,
    *,
    expected_azp: Optional[str] = None,
) -> JwtPublicOutputs:
    """Verify a JWT and produce its public outputs.

    Parameters
    ----------
    inputs : JwtAuthInputs
        Token buffer, key and signature limbs, claimed offsets and lengths.
    params : CircuitParameters
        Capacities shared with whoever checks the outputs.
    expected_azp : str, optional
        When given, the ``azp`` value must equal it exactly.

    Returns
    -------
    JwtPublicOutputs
        The ordered public outputs.

    Raises
    ------
    ConstraintError
        If any constraint is unsatisfiable (including
        :class:`SignatureMismatchError`).
    ValueError
        If an input array does not have the configured shape.
    """
    n = params.limb_bits
    token = _verify_signed_token(inputs, params)
    payload = token.payload

    # ==================================================================
    # Phase 6: Remaining payload claims
    # ==================================================================

    azp = extract_string_value(
        payload, inputs.azp_key_start_index, AZP_KEY, inputs.azp_length, AZP_MAX_BYTES, "azp"
    )
    if expected_azp is not None:
        _assert_equals(azp, expected_azp, "azp")
    email = extract_string_value(
        payload,
        inputs.email_key_start_index,
        EMAIL_KEY,
        inputs.email_length,
        EMAIL_MAX_BYTES,
        "email",
    )
    domain = extract_email_domain(email, inputs.email_domain_index, DOMAIN_MAX_BYTES)
    command = extract_string_value(
        payload,
        inputs.nonce_key_start_index,
        NONCE_KEY,
        inputs.command_length,
        params.command_max_bytes,
        "nonce",
    )
    logger.debug("Payload claims located")

    # ==================================================================
    # Phase 7: Mask
    # ==================================================================

    masked = mask_command(command)
    logger.debug(
        "Command masked: email_matches=%d code_matches=%d", masked.email.count, masked.code.count
    )

    # ==================================================================
    # Phase 8: Derive
    # ==================================================================

    outputs = dict(
        kid=token.kid,
        issuer=tuple(pack_bytes(token.issuer.data, ISSUER_MAX_BYTES)),
        public_key_hash=public_key_hash(inputs.pubkey, n),
        jwt_nullifier=jwt_nullifier(inputs.signature, n),
        timestamp=token.timestamp,
        masked_command=tuple(pack_bytes(masked.masked, params.command_max_bytes)),
        account_salt=account_salt(email.data, inputs.account_code),
        azp=tuple(pack_bytes(azp.data, AZP_MAX_BYTES)),
        is_code_exist=masked.is_code_exist,
        command_max_bytes=params.command_max_bytes,
    )

    # ==================================================================
    # Phase 9: Anonymity set
    # ==================================================================

    if inputs.verify_anonymous_domains:
        verify_membership(
            domain_leaf(domain.data),
            inputs.email_domain_path,
            inputs.email_domain_path_helper,
            inputs.anonymous_domains_tree_root,
            params.anonymous_domains_tree_height,
        )
        outputs["email_domain"] = tuple(pack_bytes(domain.data, DOMAIN_MAX_BYTES))
        outputs["anonymous_domains_tree_root"] = inputs.anonymous_domains_tree_root

    result = JwtPublicOutputs(**outputs)
    logger.info(
        "JWT verified: kid=%040x timestamp=%d is_code_exist=%d anonymous_domains=%s",
        token.kid,
        token.timestamp,
        result.is_code_exist,
        inputs.verify_anonymous_domains,
    )
    return result


# ======================================================================
# Shared phases
# ======================================================================


def _verify_signed_token(inputs: JwtSignatureInputs, params: CircuitParameters) -> _SignedToken:
    """Phases 1-5 plus ``iss`` and ``iat``."""

    # ==================================================================
    # Phase 1-2: Digest and signature
    # ==================================================================

    message = _fixed(inputs.message, inputs.message_length, params.max_message_length, "message")
    _expect_length(inputs.pubkey, params.limb_count, "pubkey")
    _expect_length(inputs.signature, params.limb_count, "signature")

    digest = sha256_digest(message)
    verify_rs256_signature(digest, inputs.pubkey, inputs.signature, params.limb_bits)

    # ==================================================================
    # Phase 3-4: Split and decode
    # ==================================================================

    parts = split_token(
        message,
        inputs.period_index,
        params.max_b64_header_length,
        params.max_b64_payload_length,
    )
    header = base64_decode(parts.header, "header")
    payload = base64_decode(parts.payload, "payload")
    logger.debug("Decoded header_length=%d payload_length=%d", header.length, payload.length)

    # ==================================================================
    # Phase 5: Header
    # ==================================================================

    assert_literal_at(header, inputs.jwt_typ_start_index, JWT_TYP_LITERAL, "typ")
    assert_literal_at(header, inputs.jwt_alg_start_index, JWT_ALG_LITERAL, "alg")
    kid = extract_hex_value(header, inputs.jwt_kid_start_index, KID_KEY, "kid")

    # ==================================================================
    # Phase 6: Issuer and issue time
    # ==================================================================

    issuer = extract_string_value(
        payload, inputs.iss_key_start_index, ISS_KEY, inputs.iss_length, ISSUER_MAX_BYTES, "iss"
    )
    timestamp = extract_timestamp(payload, inputs.iat_key_start_index, IAT_KEY)
    return _SignedToken(kid=kid, issuer=issuer, timestamp=timestamp, payload=payload)


# ======================================================================
# Helpers
# ======================================================================


def _expect_length(values: Sequence[int], expected: int, label: str) -> None:
    if len(values) != expected:
        raise ValueError(f"{label} has {len(values)} elements, expected {expected}")


def _fixed(values: Sequence[int], length: int, capacity: int, label: str) -> FixedBuffer:
    _expect_length(values, capacity, label)
    return FixedBuffer.from_values(values, length)


def _assert_equals(value: FixedBuffer, expected: str, label: str) -> None:
    """Unsatisfiable unless *value* equals *expected* including padding."""
    raw = expected.encode()
    if len(raw) > value.capacity:
        raise ConstraintError.literal_mismatch(f"expected {label}", 0)
    target = pad_string(raw, value.capacity)
    mismatches = sum(1 - is_equal(a, b) for a, b in zip(value.data, target))
    if mismatches:
        raise ConstraintError.literal_mismatch(f"expected {label}", 0)
