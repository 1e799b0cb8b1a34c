# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Shared test fixtures for the zkjwt test suite.

Provides a session-wide RSA-2048 key, an RS256 JWT factory that emits
compact JSON the way identity providers do, and an input factory that turns
those tokens into prover inputs.  All signatures are real, produced with
``cryptography``.
"""

from __future__ import annotations

import base64
import json
from typing import Any, Callable, Dict, Optional, Tuple

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from zkjwt.circuit.inputs import generate_jwt_inputs
from zkjwt.circuit.models import JwtAuthInputs

TEST_KID = "a3b762f871cdb3bae0044c649622fc1396eda3e3"
TEST_ISSUER = "https://accounts.google.com"
TEST_AZP = "397234807794-example.apps.googleusercontent.com"
TEST_EMAIL = "alice@gmail.com"
TEST_IAT = 1700000000
INVITATION_CODE = "01eb9b204cc24c3baee11accc37d253a9c53e92b1a2cc07763475c135d575b76"
# Leading zero byte dropped, as a hex rendering of a field element can produce.
SHORT_INVITATION_CODE = INVITATION_CODE[2:]


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def compact_json(obj: Dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode()


# =========================================================================
# RSA Keys
# =========================================================================

@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """RSA-2048 key with exponent 65537, shared across the session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_private_key() -> rsa.RSAPrivateKey:
    """A second, unrelated RSA-2048 key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def rsa_public_key(rsa_private_key):
    return rsa_private_key.public_key()


# =========================================================================
# JWT Factory
# =========================================================================

def sign_rs256(private_key: rsa.RSAPrivateKey, signing_input: bytes) -> bytes:
    return private_key.sign(signing_input, padding.PKCS1v15(), hashes.SHA256())


@pytest.fixture
def make_jwt(rsa_private_key) -> Callable[..., str]:
    """Factory fixture: create an RS256-signed JWT.

    Keyword arguments override individual claims; ``payload_json`` replaces
    the whole payload with raw bytes (for malformed or duplicate-key tokens).
    """

    def _factory(
        command: str = "Send 0.1 ETH to alice@gmail.com",
        email: str = TEST_EMAIL,
        azp: str = TEST_AZP,
        iss: str = TEST_ISSUER,
        iat: int = TEST_IAT,
        kid: str = TEST_KID,
        payload_json: Optional[bytes] = None,
        private_key: Optional[rsa.RSAPrivateKey] = None,
    ) -> str:
        header = compact_json({"alg": "RS256", "kid": kid, "typ": "JWT"})
        if payload_json is None:
            payload_json = compact_json({
                "iss": iss,
                "azp": azp,
                "aud": azp,
                "sub": "104829512936180265841",
                "email": email,
                "email_verified": True,
                "nonce": command,
                "iat": iat,
                "exp": iat + 3600,
            })
        signing_input = f"{b64url(header)}.{b64url(payload_json)}".encode()
        signature = sign_rs256(private_key or rsa_private_key, signing_input)
        return f"{signing_input.decode()}.{b64url(signature)}"

    return _factory


# =========================================================================
# Prover Inputs
# =========================================================================

@pytest.fixture
def account_code() -> int:
    """A fixed account code below the hash field modulus."""
    return 0x0162EBFF40918AFE5305E68396F0283EB675901D0387F97D21928D423AAA0B54


@pytest.fixture
def make_inputs(make_jwt, rsa_public_key, account_code) -> Callable[..., Tuple[JwtAuthInputs, str]]:
    """Factory fixture: (inputs, raw_jwt) for a freshly signed token."""

    def _factory(anonymous_domains_tree=None, **claims) -> Tuple[JwtAuthInputs, str]:
        raw_jwt = make_jwt(**claims)
        inputs = generate_jwt_inputs(
            raw_jwt,
            rsa_public_key,
            account_code,
            anonymous_domains_tree=anonymous_domains_tree,
        )
        return inputs, raw_jwt

    return _factory
