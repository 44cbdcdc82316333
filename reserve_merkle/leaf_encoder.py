"""Canonical leaf encoding for proof-of-reserve balances.

Each ``(user_id, balance)`` pair is rendered as ``"(id,balance)"`` and the
resulting strings are sorted by ordinal (byte-wise) string order.  The
ordering is part of the commitment: ``"(10,1)"`` sorts before ``"(2,1)"``
because ``'1' < '2'``.  Every verifier must reproduce it exactly or the
roots diverge.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping


def encode_leaf(user_id: int, balance: int) -> str:
    return f"({user_id},{balance})"


def encode_and_sort(records: Mapping[int, int] | Iterable[tuple[int, int]]) -> list[str]:
    """Encode balance records into the sorted leaf sequence.

    *records* is either a mapping of user id to balance or an iterable of
    ``(user_id, balance)`` pairs.  The output does not depend on input
    iteration order.
    """
    pairs = records.items() if isinstance(records, Mapping) else records
    # str ordering is code-point order, which matches UTF-8 byte order
    return sorted(encode_leaf(user_id, balance) for user_id, balance in pairs)
