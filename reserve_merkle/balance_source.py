"""Balance snapshot sources: an HTTP endpoint, a local JSON file, or sample data.

Accepted JSON shapes:

- an object mapping user ids to balances: ``{"1": 1111, "2": 2222}``
- a list of records: ``[{"id": 1, "balance": 1111}, ...]``
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from reserve_merkle.errors import BalanceSourceError
from reserve_merkle.schemas import BalanceRecord

logger = logging.getLogger(__name__)

SAMPLE_BALANCES: dict[int, int] = {
    1: 1111, 2: 2222, 3: 3333, 4: 4444,
    5: 5555, 6: 6666, 7: 7777, 8: 8888,
}


def parse_balances(payload: Any) -> dict[int, int]:
    """Validate a decoded JSON payload into a ``{user_id: balance}`` dict.

    Raises BalanceSourceError on malformed records or duplicate ids.
    """
    if isinstance(payload, dict):
        items = [{"id": k, "balance": v} for k, v in payload.items()]
    elif isinstance(payload, list):
        items = payload
    else:
        raise BalanceSourceError(
            f"expected a JSON object or list of records, got {type(payload).__name__}"
        )

    balances: dict[int, int] = {}
    for i, item in enumerate(items):
        try:
            record = BalanceRecord.model_validate(item)
        except ValidationError as exc:
            raise BalanceSourceError(f"invalid balance record at {i}: {exc}") from exc
        if record.id in balances:
            raise BalanceSourceError(f"duplicate user id {record.id}")
        balances[record.id] = record.balance
    return balances


def fetch_balances(url: str, timeout: float = 10.0) -> dict[int, int]:
    """GET the current balances from *url*.

    Raises BalanceSourceError on transport errors, non-2xx responses, or
    an unparseable body.
    """
    try:
        with httpx.Client(timeout=timeout) as client:
            resp = client.get(url)
    except httpx.HTTPError as exc:
        raise BalanceSourceError(f"balance source request failed: {exc}") from exc

    if not resp.is_success:
        raise BalanceSourceError(f"balance source returned HTTP {resp.status_code}")

    try:
        payload = resp.json()
    except ValueError as exc:
        raise BalanceSourceError(f"balance source returned invalid JSON: {exc}") from exc

    balances = parse_balances(payload)
    logger.info("Fetched %d balances from %s", len(balances), url)
    return balances


def load_balances_file(path: str | Path) -> dict[int, int]:
    """Read balances from a local JSON file."""
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise BalanceSourceError(f"cannot read balances from {path}: {exc}") from exc
    return parse_balances(payload)
