"""In-memory balance snapshot with a cached Merkle root.

The service owns the only shared mutable state in the project: the
current ``{user_id: balance}`` snapshot and the root computed from it.
Both are replaced together under a single lock, so readers always see a
snapshot and the root that commits to it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from datetime import datetime, timezone

from reserve_merkle.config import settings
from reserve_merkle.leaf_encoder import encode_and_sort, encode_leaf
from reserve_merkle.merkle import compute_root, get_proof
from reserve_merkle.schemas import UserProof

logger = logging.getLogger(__name__)


class ProofOfReserveService:
    """Holds the current balance snapshot and serves its root and proofs."""

    def __init__(self, leaf_tag: str | None = None, branch_tag: str | None = None) -> None:
        self.leaf_tag = leaf_tag if leaf_tag is not None else settings.leaf_tag
        self.branch_tag = branch_tag if branch_tag is not None else settings.branch_tag
        self._lock = threading.Lock()
        self._user_data: dict[int, int] = {}
        self._cached_root = ""
        self._last_updated: datetime | None = None

    @property
    def last_updated(self) -> datetime | None:
        with self._lock:
            return self._last_updated

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._user_data)

    def refresh_data(self, new_data: Mapping[int, int]) -> str:
        """Replace the snapshot with *new_data* and recompute the root.

        Returns the new root.
        """
        snapshot = dict(new_data)
        with self._lock:
            self._user_data = snapshot
            leaves = encode_and_sort(snapshot)
            self._cached_root = compute_root(leaves, self.leaf_tag, self.branch_tag)
            self._last_updated = datetime.now(timezone.utc)
            root = self._cached_root

        logger.info("Snapshot refreshed: users=%d root=%s", len(snapshot), root)
        return root

    def get_merkle_root(self) -> str:
        """Return the cached root, or an empty string before the first refresh."""
        with self._lock:
            return self._cached_root

    def get_user_data(self) -> dict[int, int]:
        """Return a copy of the current snapshot."""
        with self._lock:
            return dict(self._user_data)

    def prove_user(self, user_id: int) -> UserProof | None:
        """Build the inclusion proof for *user_id* against the current snapshot.

        Returns None when the user is absent from the snapshot.  The proof
        and the returned root always come from the same snapshot.
        """
        with self._lock:
            snapshot = self._user_data
            root = self._cached_root

        balance = snapshot.get(user_id)
        if balance is None:
            return None

        # The snapshot dict is never mutated after a refresh swaps it in,
        # so the proof can be built outside the lock.
        leaf = encode_leaf(user_id, balance)
        proof = get_proof(leaf, encode_and_sort(snapshot), self.leaf_tag, self.branch_tag)
        return UserProof(user_id=user_id, balance=balance, leaf=leaf, root=root, proof=proof)


_service = ProofOfReserveService()


def get_service() -> ProofOfReserveService:
    """Return the process-wide service (used by the API and refresh worker)."""
    return _service
