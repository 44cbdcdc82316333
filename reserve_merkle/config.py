"""Configuration for the proof-of-reserve Merkle service.

All settings are driven by environment variables with sensible defaults.
The leaf and branch tags are part of the published commitment: changing
either one changes every root and invalidates previously issued proofs.
"""

from __future__ import annotations

import os


def _get_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return int(val)


def _get_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return float(val)


def _get_bool(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return val.strip().lower() in {"1", "true", "yes", "y", "on"}


class ReserveSettings:
    # --- Commitment tags ---
    leaf_tag: str = os.getenv("RESERVE_LEAF_TAG", "ProofOfReserve_Leaf")
    branch_tag: str = os.getenv("RESERVE_BRANCH_TAG", "ProofOfReserve_Branch")

    # --- Snapshot refresh ---
    # Seconds between balance snapshot refreshes (default: once a day).
    refresh_interval_seconds: float = _get_float("RESERVE_REFRESH_INTERVAL", 86_400.0)
    # URL returning the current balances as JSON. Empty disables periodic refresh.
    balances_url: str = os.getenv("RESERVE_BALANCES_URL", "")
    # Maximum seconds to wait for the balance source.
    source_timeout_seconds: float = _get_float("RESERVE_SOURCE_TIMEOUT", 10.0)
    # Seed the snapshot with the built-in sample balances at startup.
    seed_sample_data: bool = _get_bool("RESERVE_SEED_SAMPLE", True)

    # --- HTTP API ---
    host: str = os.getenv("RESERVE_HOST", "127.0.0.1")
    port: int = _get_int("RESERVE_PORT", 3200)
    max_request_body_bytes: int = _get_int("RESERVE_MAX_BODY_BYTES", 64 * 1024)


settings = ReserveSettings()
