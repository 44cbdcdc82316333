"""Reserve Merkle: tagged SHA-256 Merkle commitments and inclusion proofs for proof of reserve."""

from reserve_merkle import tagged_hash
from reserve_merkle.config import ReserveSettings, settings
from reserve_merkle.errors import (
    BalanceSourceError,
    InvalidProofEncoding,
    LeafNotFound,
    MerkleError,
)
from reserve_merkle.leaf_encoder import encode_and_sort, encode_leaf
from reserve_merkle.merkle import (
    compute_root,
    get_proof,
    proof_matches_root,
    verify_proof,
)
from reserve_merkle.refresh import RefreshWorker
from reserve_merkle.reserve_service import ProofOfReserveService, get_service
from reserve_merkle.schemas import (
    BalanceRecord,
    MerkleProof,
    Position,
    ProofNode,
    UserProof,
)

__all__ = [
    # Merkle core
    "compute_root",
    "get_proof",
    "verify_proof",
    "proof_matches_root",
    "encode_and_sort",
    "encode_leaf",
    "tagged_hash",
    "MerkleProof",
    "Position",
    "ProofNode",
    "MerkleError",
    "LeafNotFound",
    "InvalidProofEncoding",
    # Snapshot service
    "settings",
    "ReserveSettings",
    "ProofOfReserveService",
    "get_service",
    "RefreshWorker",
    "BalanceRecord",
    "BalanceSourceError",
    "UserProof",
]

__version__ = "0.1.0"
