"""HTTP API for the proof-of-reserve Merkle service.

Publishes the root of the current balance snapshot and per-user inclusion
proofs, and offers a stateless verification endpoint so a user can check a
proof without trusting any client-side code.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware

from reserve_merkle import __version__
from reserve_merkle.balance_source import SAMPLE_BALANCES
from reserve_merkle.config import settings
from reserve_merkle.errors import InvalidProofEncoding
from reserve_merkle.merkle import verify_proof
from reserve_merkle.refresh import RefreshWorker
from reserve_merkle.reserve_service import get_service
from reserve_merkle.schemas import ProofNode

logger = logging.getLogger(__name__)


class _BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose declared body exceeds the configured limit."""

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and not content_length.isdigit():
            return JSONResponse(
                status_code=400,
                content={"detail": "Invalid Content-Length header"},
            )
        if content_length and int(content_length) > settings.max_request_body_bytes:
            return JSONResponse(
                status_code=413,
                content={"detail": "Request body too large"},
            )
        return await call_next(request)


_service = get_service()
_refresh_worker = RefreshWorker(service=_service)


@asynccontextmanager
async def _lifespan(_app: FastAPI) -> AsyncIterator[None]:
    if settings.seed_sample_data and _service.last_updated is None:
        logger.info("Seeding snapshot with %d sample balances", len(SAMPLE_BALANCES))
        _service.refresh_data(SAMPLE_BALANCES)
    _refresh_worker.start()
    yield
    _refresh_worker.stop()


app = FastAPI(
    title="Proof of Reserve Merkle Service",
    description="Tagged SHA-256 Merkle commitments over user balances",
    version=__version__,
    lifespan=_lifespan,
)

app.add_middleware(_BodySizeLimitMiddleware)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    last_updated = _service.last_updated
    return {
        "status": "ok",
        "service": "reserve-merkle",
        "version": __version__,
        "users": _service.size,
        "last_updated": last_updated.isoformat() if last_updated else None,
        "leaf_tag": _service.leaf_tag,
        "branch_tag": _service.branch_tag,
    }


@app.get("/merkle/merkle-root")
def merkle_root():
    """Return the cached Merkle root of all user balances."""
    return {"MerkleRoot": _service.get_merkle_root()}


@app.get("/merkle/merkle-proof/{user_id}")
def merkle_proof(user_id: int):
    """Return the user's balance and the sibling path from their leaf to the root."""
    result = _service.prove_user(user_id)
    if result is None:
        raise HTTPException(status_code=404, detail="User not found")

    return {
        "UserBalance": result.balance,
        "Proof": [node.model_dump(mode="json") for node in result.proof.path],
    }


class VerifyRequest(BaseModel):
    """Request body for the verification endpoint."""

    leaf: str = Field(..., description='Canonical leaf string, e.g. "(3,3333)"')
    root: str = Field(..., description="Published hex root to check against")
    path: list[ProofNode] = Field(default_factory=list)
    leaf_tag: str | None = None
    branch_tag: str | None = None


@app.post("/merkle/verify")
def verify(req: VerifyRequest):
    """Replay a proof path and report whether it reproduces the given root."""
    leaf_tag = req.leaf_tag if req.leaf_tag is not None else _service.leaf_tag
    branch_tag = req.branch_tag if req.branch_tag is not None else _service.branch_tag
    try:
        computed = verify_proof(req.leaf, req.path, leaf_tag, branch_tag)
    except InvalidProofEncoding as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "ComputedRoot": computed,
        "Valid": computed == req.root.strip().lower(),
    }


@app.get("/refresh/status")
def refresh_status():
    """Return the current state of the snapshot refresh worker."""
    return _refresh_worker.status()
