# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Prover-side input generation from a raw RS256 JWT.

Computes everything :func:`~zkjwt.circuit.verify.verify_jwt` expects the
prover to claim: the padded signing-input buffer, key and signature limbs,
and the offsets of each validated literal and key inside the decoded header
and payload.  Offsets are located on the raw decoded bytes, so the token must
use compact JSON (``"key":"value"`` with no whitespace), which is what
identity providers emit.

Nothing here is trusted by the verifier; a wrong offset simply makes
verification fail.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Dict, Optional, Tuple, Union

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

from zkjwt.circuit.bigint import to_limbs
from zkjwt.circuit.exceptions import InputGenerationError
from zkjwt.circuit.identity import domain_leaf
from zkjwt.circuit.merkle import MerkleTree
from zkjwt.circuit.models import JwtAuthInputs, JwtSignatureInputs
from zkjwt.circuit.packing import pad_string
from zkjwt.config import (
    AZP_KEY,
    DEFAULT_PARAMETERS,
    DOMAIN_MAX_BYTES,
    EMAIL_KEY,
    IAT_KEY,
    ISS_KEY,
    JWT_ALG_LITERAL,
    JWT_TYP_LITERAL,
    KID_KEY,
    NONCE_KEY,
    RSA_EXPONENT,
    CircuitParameters,
)

logger = logging.getLogger(__name__)

__all__ = [
    "generate_jwt_signature_inputs",
    "generate_jwt_inputs",
    "rsa_modulus_from_jwk",
    "b64url_decode",
]


def b64url_decode(data: str) -> bytes:
    """Decode unpadded base64url."""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise InputGenerationError(f"invalid base64url segment: {e}") from e


def rsa_modulus_from_jwk(jwk: Dict[str, Any]) -> int:
    """Extract the modulus of an RS256 JWK, requiring exponent 65537."""
    if jwk.get("kty") != "RSA":
        raise InputGenerationError(f"unsupported key type: {jwk.get('kty')!r}")
    if "n" not in jwk or "e" not in jwk:
        raise InputGenerationError("JWK is missing 'n' or 'e'")
    exponent = int.from_bytes(b64url_decode(jwk["e"]), "big")
    if exponent != RSA_EXPONENT:
        raise InputGenerationError(f"unsupported RSA exponent {exponent}")
    return int.from_bytes(b64url_decode(jwk["n"]), "big")


def _modulus_of(public_key: Union[RSAPublicKey, int]) -> int:
    if isinstance(public_key, RSAPublicKey):
        numbers = public_key.public_numbers()
        if numbers.e != RSA_EXPONENT:
            raise InputGenerationError(f"unsupported RSA exponent {numbers.e}")
        return numbers.n
    if isinstance(public_key, int):
        return public_key
    raise InputGenerationError(f"unsupported public key type {type(public_key).__name__}")


def _find_unique(segment: bytes, literal: bytes, label: str) -> int:
    index = segment.find(literal)
    if index == -1:
        raise InputGenerationError(f"{label} not found in token")
    if segment.count(literal) != 1:
        raise InputGenerationError(f"{label} occurs more than once in token")
    return index


def _string_value(segment: bytes, key: bytes, label: str) -> Tuple[int, bytes]:
    """Return the key offset and the raw bytes of its quoted value."""
    start = _find_unique(segment, key, label)
    value_start = start + len(key)
    end = segment.find(b'"', value_start)
    if end == -1:
        raise InputGenerationError(f"{label} value is not terminated")
    return start, segment[value_start:end]


def _limbs(value: int, params: CircuitParameters, label: str):
    try:
        return to_limbs(value, params.limb_bits, params.limb_count)
    except ValueError as e:
        raise InputGenerationError(f"{label}: {e}") from e


def _signature_fields(
    raw_jwt: str,
    public_key: Union[RSAPublicKey, int],
    params: CircuitParameters,
) -> Tuple[Dict[str, Any], bytes]:
    """Fields shared by both input models, plus the decoded payload."""
    parts = raw_jwt.strip().split(".")
    if len(parts) != 3:
        raise InputGenerationError(f"expected 3 JWT segments, got {len(parts)}")
    header_b64, payload_b64, signature_b64 = parts

    if len(header_b64) > params.max_b64_header_length:
        raise InputGenerationError(
            f"header is {len(header_b64)} characters, capacity {params.max_b64_header_length}"
        )
    if len(payload_b64) > params.max_b64_payload_length:
        raise InputGenerationError(
            f"payload is {len(payload_b64)} characters, capacity {params.max_b64_payload_length}"
        )
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    if len(signing_input) > params.max_message_length:
        raise InputGenerationError(
            f"signing input is {len(signing_input)} bytes, capacity {params.max_message_length}"
        )

    header = b64url_decode(header_b64)
    payload = b64url_decode(payload_b64)

    # --- Header ---
    typ_index = _find_unique(header, JWT_TYP_LITERAL, "typ")
    alg_index = _find_unique(header, JWT_ALG_LITERAL, "alg")
    kid_index = _find_unique(header, KID_KEY, "kid")

    # --- Issuer and issue time ---
    iss_index, iss = _string_value(payload, ISS_KEY, "iss")
    iat_index = _find_unique(payload, IAT_KEY, "iat")

    signature = int.from_bytes(b64url_decode(signature_b64), "big")
    modulus = _modulus_of(public_key)

    fields: Dict[str, Any] = dict(
        message=pad_string(signing_input, params.max_message_length),
        message_length=len(signing_input),
        pubkey=_limbs(modulus, params, "modulus"),
        signature=_limbs(signature, params, "signature"),
        period_index=len(header_b64),
        jwt_typ_start_index=typ_index,
        jwt_alg_start_index=alg_index,
        jwt_kid_start_index=kid_index,
        iss_key_start_index=iss_index,
        iss_length=len(iss),
        iat_key_start_index=iat_index,
    )
    return fields, payload


def generate_jwt_signature_inputs(
    raw_jwt: str,
    public_key: Union[RSAPublicKey, int],
    params: CircuitParameters = DEFAULT_PARAMETERS,
) -> JwtSignatureInputs:
    """Build inputs for :func:`~zkjwt.circuit.verify.verify_jwt_signature`.

    Only ``typ``, ``alg``, ``kid``, ``iss`` and ``iat`` need to be present.
    """
    fields, _ = _signature_fields(raw_jwt, public_key, params)
    logger.debug("Generated signature inputs: message_length=%d", fields["message_length"])
    return JwtSignatureInputs(**fields)


def generate_jwt_inputs(
    raw_jwt: str,
    public_key: Union[RSAPublicKey, int],
    account_code: int,
    params: CircuitParameters = DEFAULT_PARAMETERS,
    anonymous_domains_tree: Optional[MerkleTree] = None,
) -> JwtAuthInputs:
    """Build prover inputs for *raw_jwt*.

    Args:
        raw_jwt: Compact JWS ``header.payload.signature``.
        public_key: The issuer's RSA public key, or its modulus.
        account_code: Secret element of the hash field mixed into the account
            salt; see :func:`~zkjwt.circuit.identity.generate_account_code`.
        params: Capacities the inputs are shaped for.
        anonymous_domains_tree: When given, the email domain must be one of
            its leaves and a membership path is included.

    Raises:
        InputGenerationError: if the token is malformed, exceeds the
            configured capacities, or lacks a required member.
    """
    fields, payload = _signature_fields(raw_jwt, public_key, params)

    # --- Payload ---
    azp_index, azp = _string_value(payload, AZP_KEY, "azp")
    email_index, email = _string_value(payload, EMAIL_KEY, "email")
    nonce_index, command = _string_value(payload, NONCE_KEY, "nonce")
    at = email.rfind(b"@")
    if at == -1:
        raise InputGenerationError("email value has no '@'")
    if len(command) > params.command_max_bytes:
        raise InputGenerationError(
            f"command is {len(command)} bytes, capacity {params.command_max_bytes}"
        )

    fields.update(
        azp_key_start_index=azp_index,
        azp_length=len(azp),
        email_key_start_index=email_index,
        email_length=len(email),
        email_domain_index=at,
        nonce_key_start_index=nonce_index,
        command_length=len(command),
        account_code=account_code,
    )

    if anonymous_domains_tree is not None:
        domain = email[at + 1:]
        if len(domain) > DOMAIN_MAX_BYTES:
            raise InputGenerationError(f"email domain is {len(domain)} bytes")
        leaf = domain_leaf(pad_string(domain, DOMAIN_MAX_BYTES))
        try:
            index = anonymous_domains_tree.index_of(leaf)
        except ValueError:
            raise InputGenerationError("email domain is not in the anonymity set") from None
        siblings, path_indices = anonymous_domains_tree.get_proof(index)
        fields.update(
            anonymous_domains_tree_root=anonymous_domains_tree.get_root(),
            email_domain_path=siblings,
            email_domain_path_helper=path_indices,
        )

    logger.debug(
        "Generated inputs: message_length=%d period_index=%d command_length=%d",
        fields["message_length"],
        fields["period_index"],
        len(command),
    )
    return JwtAuthInputs(**fields)
