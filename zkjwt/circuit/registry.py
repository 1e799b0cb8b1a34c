# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Registry collaborator queried after a successful verification.

The registry decides policy the core cannot: whether the public-key hash is
the one currently published for an issuer and key id, and whether the
authorized party (``azp``) is an accepted client.  It runs strictly after the
core has produced its outputs and rejects with a recoverable
:class:`RegistryRejection`.

The key for the public-key lookup is ``"<issuer>|<kid as 40 hex digits>"``.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Set

from zkjwt.circuit.exceptions import RegistryRejection
from zkjwt.circuit.verify import JwtPublicOutputs

logger = logging.getLogger(__name__)

__all__ = ["InMemoryRegistry", "issuer_and_kid", "check_registry"]


def issuer_and_kid(issuer: str, kid: int) -> str:
    return f"{issuer}|{kid:040x}"


class InMemoryRegistry:
    """Thread-safe in-process registry of key hashes and client ids."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._public_key_hashes: Dict[str, int] = {}
        self._clients: Set[str] = set()

    def register_public_key_hash(self, issuer: str, kid: int, public_key_hash: int) -> None:
        with self._lock:
            self._public_key_hashes[issuer_and_kid(issuer, kid)] = public_key_hash
        logger.info("Registered public key hash for %s", issuer_and_kid(issuer, kid))

    def revoke_public_key_hash(self, issuer: str, kid: int) -> None:
        with self._lock:
            self._public_key_hashes.pop(issuer_and_kid(issuer, kid), None)

    def whitelist_client(self, azp: str) -> None:
        with self._lock:
            self._clients.add(azp)

    def is_public_key_hash_valid(self, key: str, public_key_hash: int) -> bool:
        with self._lock:
            return self._public_key_hashes.get(key) == public_key_hash

    def is_client_whitelisted(self, azp: str) -> bool:
        with self._lock:
            return azp in self._clients


def check_registry(outputs: JwtPublicOutputs, registry: InMemoryRegistry) -> None:
    """Apply registry policy to verified *outputs*.

    Raises:
        RegistryRejection: with reason "invalid public key hash" or
            "azp is not whitelisted".
    """
    key = issuer_and_kid(outputs.issuer_string, outputs.kid)
    if not registry.is_public_key_hash_valid(key, outputs.public_key_hash):
        logger.warning("Registry rejected public key hash for %s", key)
        raise RegistryRejection.invalid_public_key_hash()
    if not registry.is_client_whitelisted(outputs.azp_string):
        logger.warning("Registry rejected azp for %s", key)
        raise RegistryRejection.azp_not_whitelisted()
    logger.debug("Registry accepted %s", key)
