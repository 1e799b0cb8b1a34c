# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Prover input model, error codes and error categories."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


# =============================================================================
# Error Categories
# =============================================================================

class ErrorCategory(str, Enum):
    STRUCTURAL = "STRUCTURAL"
    CRYPTOGRAPHIC = "CRYPTOGRAPHIC"
    POLICY = "POLICY"
    INPUT = "INPUT"


class ErrorCode(str, Enum):
    OFFSET_OUT_OF_RANGE = "OFFSET_OUT_OF_RANGE"
    VALUE_OUT_OF_RANGE = "VALUE_OUT_OF_RANGE"
    PADDING_NOT_ZERO = "PADDING_NOT_ZERO"
    SEPARATOR_MISMATCH = "SEPARATOR_MISMATCH"
    LITERAL_MISMATCH = "LITERAL_MISMATCH"
    KEY_NOT_UNIQUE = "KEY_NOT_UNIQUE"
    INVALID_CHARACTER = "INVALID_CHARACTER"
    MERKLE_ROOT_MISMATCH = "MERKLE_ROOT_MISMATCH"
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"
    INVALID_PUBLIC_KEY_HASH = "INVALID_PUBLIC_KEY_HASH"
    AZP_NOT_WHITELISTED = "AZP_NOT_WHITELISTED"
    INPUT_GENERATION_FAILED = "INPUT_GENERATION_FAILED"


ERROR_CATEGORY: Dict[str, ErrorCategory] = {
    ErrorCode.SIGNATURE_MISMATCH: ErrorCategory.CRYPTOGRAPHIC,
    ErrorCode.INVALID_PUBLIC_KEY_HASH: ErrorCategory.POLICY,
    ErrorCode.AZP_NOT_WHITELISTED: ErrorCategory.POLICY,
    ErrorCode.INPUT_GENERATION_FAILED: ErrorCategory.INPUT,
}

ERROR_RECOVERABILITY: Dict[str, bool] = {
    ErrorCode.INVALID_PUBLIC_KEY_HASH: True,
    ErrorCode.AZP_NOT_WHITELISTED: True,
}


def category_of(code: str) -> ErrorCategory:
    """Return the category for *code*; anything unlisted is structural."""
    return ERROR_CATEGORY.get(code, ErrorCategory.STRUCTURAL)


def is_recoverable(code: str) -> bool:
    return ERROR_RECOVERABILITY.get(code, False)


# =============================================================================
# Prover Inputs
# =============================================================================

class JwtSignatureInputs(BaseModel):
    """Inputs for verifying a signed JWT's header, issuer and issue time.

    Every index and length here is prover-supplied and untrusted; the
    verifier proves each one against the buffers it points into.
    """

    message: List[int]
    message_length: int
    pubkey: List[int]
    signature: List[int]
    period_index: int
    jwt_typ_start_index: int
    jwt_alg_start_index: int
    jwt_kid_start_index: int
    iss_key_start_index: int
    iss_length: int
    iat_key_start_index: int


class JwtAuthInputs(JwtSignatureInputs):
    """Private witness and public inputs for one authentication instance.

    Extends :class:`JwtSignatureInputs` with the ``azp``, ``email`` and
    ``nonce`` claims, the account code and the optional anonymity-set path.
    """

    azp_key_start_index: int
    azp_length: int
    email_key_start_index: int
    email_length: int
    email_domain_index: int
    nonce_key_start_index: int
    command_length: int
    account_code: int = Field(
        ...,
        description=(
            "Secret element of the Starknet field, 0 <= code < FIELD_MODULUS "
            "(about 2**251); see zkjwt.circuit.identity.generate_account_code"
        ),
    )
    anonymous_domains_tree_root: Optional[int] = None
    email_domain_path: Optional[List[int]] = None
    email_domain_path_helper: Optional[List[int]] = None

    @model_validator(mode="after")
    def _anonymous_domain_fields_together(self) -> "JwtAuthInputs":
        fields = (
            self.anonymous_domains_tree_root,
            self.email_domain_path,
            self.email_domain_path_helper,
        )
        present = [f is not None for f in fields]
        if any(present) and not all(present):
            raise ValueError(
                "anonymous_domains_tree_root, email_domain_path and "
                "email_domain_path_helper must be supplied together"
            )
        return self

    @property
    def verify_anonymous_domains(self) -> bool:
        return self.anonymous_domains_tree_root is not None
