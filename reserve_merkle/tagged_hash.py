"""BIP340-style tagged hashing over SHA-256.

    hash_tag(msg) = SHA256(SHA256(tag) || SHA256(tag) || msg)

Prefixing the doubled tag digest gives every use of the hash its own
domain, so a leaf digest can never be replayed as a branch digest when the
two tags differ.
"""

from __future__ import annotations

import hashlib
from functools import lru_cache


@lru_cache(maxsize=64)
def _tag_prefix(tag: str) -> bytes:
    tag_hash = hashlib.sha256(tag.encode("utf-8")).digest()
    return tag_hash + tag_hash


def compute(tag: str, message: bytes) -> bytes:
    """Return the 32-byte tagged hash of *message* under *tag*."""
    return hashlib.sha256(_tag_prefix(tag) + message).digest()


def compute_hex(tag: str, message: str) -> str:
    """Tagged hash of a UTF-8 text message, as lowercase hex."""
    return compute(tag, message.encode("utf-8")).hex()
