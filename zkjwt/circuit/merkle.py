# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Anonymity-set membership over a fixed-height Poseidon Merkle tree.

Leaves are :func:`~zkjwt.circuit.identity.domain_leaf` hashes; empty slots
hold 0.  Internal nodes are ``poseidon_hash(left, right)``.  A path selector
of 1 means the running node is the right child at that level, so the
selectors read as the little-endian bits of the leaf index.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from poseidon_py.poseidon_hash import poseidon_hash

from zkjwt.circuit.buffers import is_equal, num_to_bits, select
from zkjwt.circuit.exceptions import ConstraintError
from zkjwt.circuit.identity import domain_leaf
from zkjwt.circuit.packing import pad_string
from zkjwt.config import DOMAIN_MAX_BYTES

logger = logging.getLogger(__name__)

__all__ = ["compute_merkle_root", "verify_membership", "MerkleTree", "domain_tree"]


def compute_merkle_root(leaf: int, siblings: Sequence[int], selectors: Sequence[int]) -> int:
    """Fold *leaf* up the path given by *siblings* and *selectors*."""
    if len(siblings) != len(selectors):
        raise ValueError(f"{len(siblings)} siblings but {len(selectors)} selectors")
    node = leaf
    for level, (sibling, bit) in enumerate(zip(siblings, selectors)):
        num_to_bits(bit, 1, f"path selector[{level}]")
        left = select(bit, sibling, node)
        right = select(bit, node, sibling)
        node = poseidon_hash(left, right)
    return node


def verify_membership(
    leaf: int,
    siblings: Sequence[int],
    selectors: Sequence[int],
    root: int,
    height: int,
    leaf_index: Optional[int] = None,
) -> None:
    """Prove that *leaf* sits in the tree committed to by *root*.

    Raises:
        ConstraintError: if the path does not have *height* levels, a
            selector is not a bit, *leaf_index* disagrees with the selectors,
            or the recomputed root differs from *root*.
    """
    if len(siblings) != height or len(selectors) != height:
        raise ConstraintError.offset_out_of_range("merkle path", len(siblings), height)
    computed = compute_merkle_root(leaf, siblings, selectors)
    if leaf_index is not None:
        index_bits = num_to_bits(leaf_index, height, "leaf index")
        if sum(1 - is_equal(a, b) for a, b in zip(index_bits, selectors)):
            raise ConstraintError.merkle_root_mismatch()
    if not is_equal(computed, root):
        raise ConstraintError.merkle_root_mismatch()
    logger.debug("Merkle membership verified at height %d", height)


class MerkleTree:
    """Fixed-height tree used by provers to build roots and paths."""

    def __init__(self, height: int, leaves: Sequence[int] = ()):
        if height <= 0:
            raise ValueError("height must be positive")
        if len(leaves) > 1 << height:
            raise ValueError(f"{len(leaves)} leaves do not fit in a tree of height {height}")
        self.height = height
        self.leaves: List[int] = list(leaves) + [0] * ((1 << height) - len(leaves))
        self._levels = self._build()

    def _build(self) -> List[List[int]]:
        levels = [self.leaves]
        for _ in range(self.height):
            below = levels[-1]
            levels.append(
                [poseidon_hash(below[i], below[i + 1]) for i in range(0, len(below), 2)]
            )
        return levels

    def get_root(self) -> int:
        return self._levels[-1][0]

    def get_proof(self, index: int) -> Tuple[List[int], List[int]]:
        """Return ``(siblings, path_indices)`` for the leaf at *index*."""
        if not 0 <= index < len(self.leaves):
            raise IndexError(f"leaf index {index} out of range")
        siblings = []
        path_indices = []
        for level in range(self.height):
            siblings.append(self._levels[level][index ^ 1])
            path_indices.append(index & 1)
            index >>= 1
        return siblings, path_indices

    def index_of(self, leaf: int) -> int:
        return self.leaves.index(leaf)


def domain_tree(domains: Iterable[str], height: int) -> MerkleTree:
    """Anonymity set over *domains*, in the given order."""
    leaves = [domain_leaf(pad_string(d, DOMAIN_MAX_BYTES)) for d in domains]
    return MerkleTree(height, leaves)
