"""CLI entrypoint for the proof-of-reserve Merkle service.

Usage:
    reserve-merkle                                # Start the HTTP API
    reserve-merkle serve --port 3200              # Same, explicit
    reserve-merkle root balances.json             # Print the root of a balances file
    reserve-merkle root --raw leaves.json         # Root of a JSON list of leaf strings
    reserve-merkle prove balances.json 3          # Print the proof for user 3
    reserve-merkle verify "(3,3333)" ROOT proof.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import uvicorn
from pydantic import ValidationError

from reserve_merkle import __version__
from reserve_merkle.config import settings
from reserve_merkle.errors import BalanceSourceError, InvalidProofEncoding


def _add_tag_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--leaf-tag",
        default=settings.leaf_tag,
        help=f"Leaf hashing tag (default: {settings.leaf_tag})",
    )
    parser.add_argument(
        "--branch-tag",
        default=settings.branch_tag,
        help=f"Branch hashing tag (default: {settings.branch_tag})",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reserve-merkle", description="Proof-of-reserve Merkle commitments"
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP API (default)")
    serve.add_argument(
        "--host",
        default=settings.host,
        help=f"Listen host (default: {settings.host})",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Listen port (default: {settings.port})",
    )

    root = sub.add_parser("root", help="Compute the Merkle root of a JSON file")
    root.add_argument("file", help="Balances JSON (or a JSON list of leaf strings with --raw)")
    root.add_argument(
        "--raw",
        action="store_true",
        help="Treat the file as an ordered list of leaf strings; no canonical sorting",
    )
    _add_tag_args(root)

    prove = sub.add_parser("prove", help="Print the inclusion proof for one user")
    prove.add_argument("file", help="Balances JSON file")
    prove.add_argument("user_id", type=int)
    _add_tag_args(prove)

    verify = sub.add_parser("verify", help="Verify a proof against a published root")
    verify.add_argument("leaf", help='Canonical leaf string, e.g. "(3,3333)"')
    verify.add_argument("root", help="Published hex root")
    verify.add_argument("proof", help="JSON file holding the proof path (or a full proof object)")
    _add_tag_args(verify)

    return parser


def _cmd_root(args: argparse.Namespace) -> int:
    from reserve_merkle.balance_source import load_balances_file
    from reserve_merkle.leaf_encoder import encode_and_sort
    from reserve_merkle.merkle import compute_root

    if args.raw:
        leaves = json.loads(Path(args.file).read_text(encoding="utf-8"))
        if not isinstance(leaves, list) or not all(isinstance(x, str) for x in leaves):
            print("ERROR: --raw expects a JSON list of strings", file=sys.stderr)
            return 1
    else:
        leaves = encode_and_sort(load_balances_file(args.file))

    print(compute_root(leaves, args.leaf_tag, args.branch_tag))
    return 0


def _cmd_prove(args: argparse.Namespace) -> int:
    from reserve_merkle.balance_source import load_balances_file
    from reserve_merkle.reserve_service import ProofOfReserveService

    service = ProofOfReserveService(leaf_tag=args.leaf_tag, branch_tag=args.branch_tag)
    service.refresh_data(load_balances_file(args.file))

    result = service.prove_user(args.user_id)
    if result is None:
        print(f"ERROR: user {args.user_id} not found", file=sys.stderr)
        return 1

    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0


def _cmd_verify(args: argparse.Namespace) -> int:
    from reserve_merkle.merkle import verify_proof
    from reserve_merkle.schemas import ProofNode

    data = json.loads(Path(args.proof).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        # `prove` output, a bare proof object, or an API proof response
        if "proof" in data:
            data = data["proof"]
        data = data.get("path", data.get("Proof", []))
    if not isinstance(data, list):
        print("ERROR: proof file must hold a proof path list or proof object", file=sys.stderr)
        return 1

    try:
        path = [ProofNode.model_validate(node) for node in data]
    except ValidationError as exc:
        print(f"ERROR: malformed proof path: {exc}", file=sys.stderr)
        return 1

    try:
        computed = verify_proof(args.leaf, path, args.leaf_tag, args.branch_tag)
    except InvalidProofEncoding as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    valid = computed == args.root.strip().lower()
    print(f"Leaf:          {args.leaf}")
    print(f"Expected root: {args.root}")
    print(f"Computed root: {computed}")
    print("Proof is VALID" if valid else "Proof is INVALID")
    return 0 if valid else 1


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "root":
            sys.exit(_cmd_root(args))
        if args.command == "prove":
            sys.exit(_cmd_prove(args))
        if args.command == "verify":
            sys.exit(_cmd_verify(args))
    except (BalanceSourceError, OSError, ValueError) as exc:
        # unreadable or malformed input files
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)

    host = getattr(args, "host", settings.host)
    port = getattr(args, "port", settings.port)

    print(f"Proof of Reserve Merkle Service v{__version__}")
    print(f"   Leaf tag:   {settings.leaf_tag}")
    print(f"   Branch tag: {settings.branch_tag}")
    print(f"   Source:     {settings.balances_url or '<none>'}")
    print(f"   Listening:  http://{host}:{port}/merkle/merkle-root")
    print()

    uvicorn.run(
        "reserve_merkle.api:app",
        host=host,
        port=port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
