"""Example: Fetch a user's proof from a running service and verify it locally.

This example shows the user-side half of proof of reserve: the user knows
their own id and balance, downloads the published root and their sibling
path, and recomputes the root without trusting the server's arithmetic.

Prerequisites:
    reserve-merkle serve          # in another terminal

Usage:
    python examples/verify_user_proof.py <user_id> [base_url]
"""

from __future__ import annotations

import sys

import httpx

from reserve_merkle import ProofNode, encode_leaf, settings, verify_proof


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python examples/verify_user_proof.py <user_id> [base_url]")
        sys.exit(1)

    user_id = int(sys.argv[1])
    base_url = sys.argv[2] if len(sys.argv) > 2 else f"http://{settings.host}:{settings.port}"

    with httpx.Client(base_url=base_url, timeout=10.0) as client:
        root = client.get("/merkle/merkle-root").json()["MerkleRoot"]
        resp = client.get(f"/merkle/merkle-proof/{user_id}")

    if resp.status_code == 404:
        print(f"User {user_id} is not in the current snapshot")
        sys.exit(1)
    resp.raise_for_status()

    body = resp.json()
    leaf = encode_leaf(user_id, body["UserBalance"])
    path = [ProofNode.model_validate(node) for node in body["Proof"]]

    print("=" * 60)
    print(f"Leaf:       {leaf}")
    print(f"Published:  {root}")
    for i, node in enumerate(path, start=1):
        print(f"  step {i}: sibling {node.position.value:<5} {node.hash}")

    computed = verify_proof(leaf, path, settings.leaf_tag, settings.branch_tag)
    print(f"Computed:   {computed}")
    print("=" * 60)

    if computed == root:
        print("Proof is VALID: your balance is included in the published root.")
    else:
        print("Proof is INVALID: the recomputed root does not match.")
        sys.exit(1)


if __name__ == "__main__":
    main()
