# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""zkjwt exceptions mapped to error codes.

A :class:`ConstraintError` means the constraint set of the verification
instance is unsatisfiable; no output is produced.  A
:class:`RegistryRejection` happens after the core has produced correct
outputs and is recoverable one layer up.
"""

from zkjwt.circuit.models import ErrorCategory, ErrorCode, category_of, is_recoverable


class ZkJwtError(Exception):
    """Base exception for zkjwt errors."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    @property
    def category(self) -> ErrorCategory:
        return category_of(self.code)

    @property
    def recoverable(self) -> bool:
        return is_recoverable(self.code)


class ConstraintError(ZkJwtError):
    """A structural constraint of the verification is unsatisfiable."""

    @classmethod
    def out_of_range(cls, label: str, value: int, bits: int) -> "ConstraintError":
        return cls(
            code=ErrorCode.VALUE_OUT_OF_RANGE,
            message=f"{label} ({value}) does not fit in {bits} bits",
        )

    @classmethod
    def offset_out_of_range(cls, label: str, end: int, capacity: int) -> "ConstraintError":
        return cls(
            code=ErrorCode.OFFSET_OUT_OF_RANGE,
            message=f"{label} ends at {end}, beyond capacity {capacity}",
        )

    @classmethod
    def padding_not_zero(cls, label: str, count: int) -> "ConstraintError":
        return cls(
            code=ErrorCode.PADDING_NOT_ZERO,
            message=f"{label} has {count} nonzero byte(s) beyond its logical length",
        )

    @classmethod
    def separator_mismatch(cls, index: int, found: int) -> "ConstraintError":
        return cls(
            code=ErrorCode.SEPARATOR_MISMATCH,
            message=f"byte at period index {index} is {found!r}, expected '.'",
        )

    @classmethod
    def literal_mismatch(cls, label: str, offset: int) -> "ConstraintError":
        return cls(
            code=ErrorCode.LITERAL_MISMATCH,
            message=f"{label} literal does not match at offset {offset}",
        )

    @classmethod
    def key_not_unique(cls, label: str, count: int) -> "ConstraintError":
        return cls(
            code=ErrorCode.KEY_NOT_UNIQUE,
            message=f"{label} key occurs {count} times, expected exactly once",
        )

    @classmethod
    def invalid_character(cls, label: str, count: int) -> "ConstraintError":
        return cls(
            code=ErrorCode.INVALID_CHARACTER,
            message=f"{label} contains {count} invalid character(s)",
        )

    @classmethod
    def merkle_root_mismatch(cls) -> "ConstraintError":
        return cls(
            code=ErrorCode.MERKLE_ROOT_MISMATCH,
            message="recomputed anonymity-set root does not match the committed root",
        )


class SignatureMismatchError(ConstraintError):
    """RSA signature does not verify against the token digest."""

    def __init__(self, message: str = "RSA signature does not match the token digest"):
        super().__init__(ErrorCode.SIGNATURE_MISMATCH, message)


class RegistryRejection(ZkJwtError):
    """Outputs are valid but the registry refuses them."""

    @classmethod
    def invalid_public_key_hash(cls) -> "RegistryRejection":
        return cls(code=ErrorCode.INVALID_PUBLIC_KEY_HASH, message="invalid public key hash")

    @classmethod
    def azp_not_whitelisted(cls) -> "RegistryRejection":
        return cls(code=ErrorCode.AZP_NOT_WHITELISTED, message="azp is not whitelisted")


class InputGenerationError(ZkJwtError):
    """A raw token cannot be turned into prover inputs."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.INPUT_GENERATION_FAILED, message)
