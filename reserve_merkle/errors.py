"""Exceptions raised by the Merkle core and the balance data source."""

from __future__ import annotations


class MerkleError(Exception):
    """Base class for Merkle tree errors."""


class LeafNotFound(MerkleError, LookupError):
    """Raised when a proof is requested for a leaf absent from the tree."""

    def __init__(self, leaf: str) -> None:
        super().__init__(f"leaf {leaf!r} not found in leaf list")
        self.leaf = leaf


class InvalidProofEncoding(MerkleError, ValueError):
    """Raised when a proof step cannot be decoded into a 32-byte sibling hash."""

    def __init__(self, step: int, reason: str) -> None:
        super().__init__(f"invalid proof step {step}: {reason}")
        self.step = step
        self.reason = reason


class BalanceSourceError(Exception):
    """Raised when the balance snapshot cannot be fetched or parsed."""
