"""Tagged SHA-256 Merkle tree for proof-of-reserve commitments.

Specification (for third-party verifiers)
==========================================

**Hash algorithm:** BIP340-style tagged SHA-256 (see ``tagged_hash``):
``H_tag(m) = SHA256(SHA256(tag) || SHA256(tag) || m)``.

**Domain-separated hashing:**

- Leaf nodes:     H_leafTag(utf8(leaf))
- Internal nodes: H_branchTag(left || right)

**Tree structure:** Bitcoin-style. When a level holds an odd number of
nodes, the last node is duplicated before pairing. Pairs are taken left to
right: (0, 1), (2, 3), ...

**Root:** Once a single node remains it is hashed once more with the
branch tag, so a one-leaf tree has root ``H_branch(H_leaf(leaf))``.
An empty tree has root ``H_branch(b"")``; no leaf hash and no trailing
hash are applied in that case.

**Proofs:** A proof is the leaf string plus the sibling path from the
leaf level to the last surviving node. Each step records the sibling hash
and whether the sibling sits ``left`` or ``right`` of the node being
rebuilt. The trailing branch hash is *not* part of the path; verifiers
apply it after replaying every step.

All functions here are pure and hold no state, so they can be called from
any number of threads at once.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from reserve_merkle import tagged_hash
from reserve_merkle.errors import InvalidProofEncoding, LeafNotFound
from reserve_merkle.schemas import MerkleProof, Position, ProofNode

HASH_SIZE = 32

# fromhex() skips whitespace, so the digit count is checked up front
_HEX_HASH = re.compile(r"[0-9a-fA-F]{64}")


def hash_leaf(leaf: str, leaf_tag: str) -> bytes:
    return tagged_hash.compute(leaf_tag, leaf.encode("utf-8"))


def hash_node(left: bytes, right: bytes, branch_tag: str) -> bytes:
    return tagged_hash.compute(branch_tag, left + right)


def compute_root(leaves: Iterable[str], leaf_tag: str, branch_tag: str) -> str:
    """Compute the Merkle root of *leaves* as a lowercase hex string.

    Leaves are hashed with *leaf_tag*; internal nodes and the final
    trailing hash use *branch_tag*.
    """
    level = [hash_leaf(leaf, leaf_tag) for leaf in leaves]

    if not level:
        return tagged_hash.compute(branch_tag, b"").hex()

    while len(level) > 1:
        level = _next_level(level, branch_tag)

    return tagged_hash.compute(branch_tag, level[0]).hex()


def get_proof(
    target_leaf: str,
    leaves: Sequence[str],
    leaf_tag: str,
    branch_tag: str,
) -> MerkleProof:
    """Generate an inclusion proof for *target_leaf* within *leaves*.

    The leaf is located by its tagged hash; with duplicate leaves the first
    occurrence is proven.

    Raises:
        LeafNotFound: *target_leaf* is not in *leaves*.
    """
    level = [hash_leaf(leaf, leaf_tag) for leaf in leaves]
    target_hash = hash_leaf(target_leaf, leaf_tag)
    try:
        index = level.index(target_hash)
    except ValueError:
        raise LeafNotFound(target_leaf) from None

    path: list[ProofNode] = []
    while len(level) > 1:
        if len(level) % 2 == 1:
            level.append(level[-1])

        if index % 2 == 0:
            path.append(ProofNode(hash=level[index + 1].hex(), position=Position.RIGHT))
        else:
            path.append(ProofNode(hash=level[index - 1].hex(), position=Position.LEFT))

        index //= 2
        level = _next_level(level, branch_tag)

    return MerkleProof(leaf=target_leaf, path=path)


def verify_proof(
    leaf: str,
    path: Sequence[ProofNode],
    leaf_tag: str,
    branch_tag: str,
) -> str:
    """Rebuild the root from *leaf* and its sibling *path*.

    Returns the reconstructed root as lowercase hex; the caller compares it
    to the published root (or uses ``proof_matches_root``).

    Raises:
        InvalidProofEncoding: a sibling hash is not hex or not 32 bytes, or
            a step has no usable position. Checked before any hashing.
    """
    steps = _decode_path(path)

    current = hash_leaf(leaf, leaf_tag)
    for sibling, position in steps:
        if position is Position.LEFT:
            current = hash_node(sibling, current, branch_tag)
        else:
            current = hash_node(current, sibling, branch_tag)

    return tagged_hash.compute(branch_tag, current).hex()


def proof_matches_root(
    leaf: str,
    root: str,
    path: Sequence[ProofNode],
    leaf_tag: str,
    branch_tag: str,
) -> bool:
    """Return True only if *path* rebuilds exactly *root* from *leaf*."""
    return verify_proof(leaf, path, leaf_tag, branch_tag) == root.strip().lower()


# ------------------------------------------------------------------
# Internal
# ------------------------------------------------------------------


def _next_level(level: list[bytes], branch_tag: str) -> list[bytes]:
    if len(level) % 2 == 1:
        level = level + [level[-1]]
    return [hash_node(level[i], level[i + 1], branch_tag) for i in range(0, len(level), 2)]


def _decode_path(path: Sequence[ProofNode]) -> list[tuple[bytes, Position]]:
    steps: list[tuple[bytes, Position]] = []
    for i, node in enumerate(path):
        if not isinstance(node.hash, str) or not _HEX_HASH.fullmatch(node.hash):
            raise InvalidProofEncoding(
                i, f"sibling hash must be exactly {HASH_SIZE * 2} hex digits, got {node.hash!r}"
            )
        sibling = bytes.fromhex(node.hash)
        try:
            position = Position(node.position)
        except ValueError as exc:
            raise InvalidProofEncoding(i, f"unknown position {node.position!r}") from exc
        steps.append((sibling, position))
    return steps
