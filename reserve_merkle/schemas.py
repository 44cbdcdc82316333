"""Pydantic models for Merkle proofs, user proofs, and balance records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Position(str, Enum):
    """Where a proof step's sibling sits relative to the node being rebuilt."""

    LEFT = "left"
    RIGHT = "right"


# Integer encoding used by earlier proof consumers: 0 = left, 1 = right.
_LEGACY_POSITIONS = {0: Position.LEFT, 1: Position.RIGHT}


class ProofNode(BaseModel):
    """One step of an inclusion proof."""

    hash: str = Field(..., description="Hex-encoded 32-byte sibling hash")
    position: Position = Field(
        ..., description="'left' if the sibling precedes the current node, else 'right'"
    )

    @field_validator("position", mode="before")
    @classmethod
    def _accept_legacy_position(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return _LEGACY_POSITIONS[value]
            except KeyError:
                raise ValueError(f"position must be 0 (left) or 1 (right), got {value}") from None
        if isinstance(value, str):
            return value.lower()
        return value


class MerkleProof(BaseModel):
    """Inclusion proof for a leaf: the leaf string and its sibling path to the root.

    The path does not include the trailing branch-tag hash; verifiers apply
    it after replaying the path.
    """

    leaf: str
    path: list[ProofNode] = Field(default_factory=list)


class UserProof(BaseModel):
    """A user's balance together with its proof against a snapshot root."""

    user_id: int
    balance: int
    leaf: str
    root: str = Field(..., description="Hex root of the snapshot the proof was built from")
    proof: MerkleProof
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BalanceRecord(BaseModel):
    """A single ``{id, balance}`` record as supplied by the data source."""

    id: int
    balance: int
