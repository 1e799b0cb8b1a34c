# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""zkjwt configuration.

Normative constants are fixed by the JWT/RSA profile and the hash field.
Configurable defaults may be overridden via environment variables.
"""

import hashlib
import json
import os
from dataclasses import asdict, dataclass

# =============================================================================
# NORMATIVE CONSTANTS (fixed by profile)
# =============================================================================

RSA_EXPONENT: int = 65537
RSA_MODULUS_BITS: int = 2048

# Poseidon field used for every derived identifier (Starknet prime).
FIELD_MODULUS: int = 2**251 + 17 * 2**192 + 1
FIELD_LANE_BYTES: int = 31

JWT_TYP_LITERAL: bytes = b'"typ":"JWT"'
JWT_ALG_LITERAL: bytes = b'"alg":"RS256"'
KID_KEY: bytes = b'"kid":"'
ISS_KEY: bytes = b'"iss":"'
IAT_KEY: bytes = b'"iat":'
AZP_KEY: bytes = b'"azp":"'
EMAIL_KEY: bytes = b'"email":"'
NONCE_KEY: bytes = b'"nonce":"'

KID_HEX_LENGTH: int = 40
TIMESTAMP_DIGITS: int = 10

ISSUER_MAX_BYTES: int = 32
AZP_MAX_BYTES: int = 72
EMAIL_MAX_BYTES: int = 256
DOMAIN_MAX_BYTES: int = 255
COMMAND_MAX_BYTES: int = 605

# =============================================================================
# CONFIGURABLE DEFAULTS (may be overridden)
# =============================================================================

MAX_MESSAGE_LENGTH: int = int(os.getenv("ZKJWT_MAX_MESSAGE_LENGTH", "1024"))
MAX_B64_HEADER_LENGTH: int = int(os.getenv("ZKJWT_MAX_B64_HEADER_LENGTH", "256"))
MAX_B64_PAYLOAD_LENGTH: int = int(os.getenv("ZKJWT_MAX_B64_PAYLOAD_LENGTH", "1024"))
RSA_LIMB_BITS: int = int(os.getenv("ZKJWT_RSA_LIMB_BITS", "121"))
RSA_LIMB_COUNT: int = int(os.getenv("ZKJWT_RSA_LIMB_COUNT", "17"))
ANON_DOMAINS_TREE_HEIGHT: int = int(os.getenv("ZKJWT_ANON_DOMAINS_TREE_HEIGHT", "4"))

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL: str = os.getenv("ZKJWT_LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("ZKJWT_LOG_FORMAT", "json")


# =============================================================================
# CIRCUIT PARAMETERS
# =============================================================================

@dataclass(frozen=True)
class CircuitParameters:
    """Fixed capacities shared by every verification instance.

    Raises ``ValueError`` on construction when the combination could not be
    evaluated as a bounded computation (misaligned capacities, limbs that
    cannot hold the modulus, limb products that overflow the hash field).
    """

    max_message_length: int = MAX_MESSAGE_LENGTH
    max_b64_header_length: int = MAX_B64_HEADER_LENGTH
    max_b64_payload_length: int = MAX_B64_PAYLOAD_LENGTH
    limb_bits: int = RSA_LIMB_BITS
    limb_count: int = RSA_LIMB_COUNT
    command_max_bytes: int = COMMAND_MAX_BYTES
    anonymous_domains_tree_height: int = ANON_DOMAINS_TREE_HEIGHT

    def __post_init__(self) -> None:
        if self.max_message_length <= 0 or self.max_message_length % 64:
            raise ValueError(
                f"max_message_length must be a positive multiple of 64, got {self.max_message_length}"
            )
        for name in ("max_b64_header_length", "max_b64_payload_length"):
            value = getattr(self, name)
            if value <= 0 or value % 4:
                raise ValueError(f"{name} must be a positive multiple of 4, got {value}")
        if self.limb_bits * self.limb_count <= RSA_MODULUS_BITS:
            raise ValueError(
                f"limbs ({self.limb_count} x {self.limb_bits} bits) cannot hold a "
                f"{RSA_MODULUS_BITS}-bit modulus"
            )
        if 2 * self.limb_bits + self.limb_count.bit_length() >= FIELD_MODULUS.bit_length():
            raise ValueError(f"limb_bits={self.limb_bits} overflows the hash field in limb products")
        if self.command_max_bytes > self.max_payload_length:
            raise ValueError("command_max_bytes cannot exceed the decoded payload capacity")
        if self.anonymous_domains_tree_height <= 0:
            raise ValueError("anonymous_domains_tree_height must be positive")

    @property
    def max_header_length(self) -> int:
        return self.max_b64_header_length * 3 // 4

    @property
    def max_payload_length(self) -> int:
        return self.max_b64_payload_length * 3 // 4


DEFAULT_PARAMETERS = CircuitParameters()


# =============================================================================
# CONFIG FINGERPRINT
# =============================================================================

def config_fingerprint(params: CircuitParameters = DEFAULT_PARAMETERS) -> str:
    """SHA256 of the parameter set; two provers agree only if this matches."""
    data = json.dumps(asdict(params), sort_keys=True)
    return hashlib.sha256(data.encode()).hexdigest()[:16]
