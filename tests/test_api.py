"""Tests for the HTTP API and the command-line entrypoint."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from reserve_merkle.__main__ import main
from reserve_merkle.api import _BodySizeLimitMiddleware, app
from reserve_merkle.balance_source import SAMPLE_BALANCES
from reserve_merkle.leaf_encoder import encode_and_sort
from reserve_merkle.merkle import compute_root, get_proof
from reserve_merkle.reserve_service import get_service

LEAF_TAG = "ProofOfReserve_Leaf"
BRANCH_TAG = "ProofOfReserve_Branch"


@pytest.fixture
def client():
    with TestClient(app) as c:
        get_service().refresh_data(SAMPLE_BALANCES)
        yield c


@pytest.fixture
def sample_root():
    return compute_root(encode_and_sort(SAMPLE_BALANCES), LEAF_TAG, BRANCH_TAG)


# ---------------------------------------------------------------------------
# Merkle endpoints
# ---------------------------------------------------------------------------


class TestMerkleEndpoints:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["users"] == len(SAMPLE_BALANCES)
        assert data["last_updated"] is not None

    def test_merkle_root(self, client, sample_root):
        resp = client.get("/merkle/merkle-root")
        assert resp.status_code == 200
        assert resp.json() == {"MerkleRoot": sample_root}

    def test_merkle_proof(self, client):
        resp = client.get("/merkle/merkle-proof/3")
        assert resp.status_code == 200
        data = resp.json()
        assert data["UserBalance"] == 3333
        assert len(data["Proof"]) == 3
        for node in data["Proof"]:
            assert set(node) == {"hash", "position"}
            assert node["position"] in ("left", "right")
            assert len(node["hash"]) == 64

    def test_merkle_proof_unknown_user(self, client):
        resp = client.get("/merkle/merkle-proof/999")
        assert resp.status_code == 404

    def test_merkle_proof_non_integer_id(self, client):
        resp = client.get("/merkle/merkle-proof/abc")
        assert resp.status_code == 422

    def test_proof_verifies_through_api(self, client, sample_root):
        proof = client.get("/merkle/merkle-proof/6").json()
        resp = client.post(
            "/merkle/verify",
            json={"leaf": "(6,6666)", "root": sample_root, "path": proof["Proof"]},
        )
        assert resp.status_code == 200
        assert resp.json() == {"ComputedRoot": sample_root, "Valid": True}

    def test_verify_wrong_balance_is_invalid(self, client, sample_root):
        proof = client.get("/merkle/merkle-proof/6").json()
        resp = client.post(
            "/merkle/verify",
            json={"leaf": "(6,9999)", "root": sample_root, "path": proof["Proof"]},
        )
        assert resp.status_code == 200
        assert resp.json()["Valid"] is False

    def test_verify_accepts_integer_positions(self, client, sample_root):
        proof = client.get("/merkle/merkle-proof/1").json()
        legacy = [
            {"hash": n["hash"], "position": 0 if n["position"] == "left" else 1}
            for n in proof["Proof"]
        ]
        resp = client.post(
            "/merkle/verify",
            json={"leaf": "(1,1111)", "root": sample_root, "path": legacy},
        )
        assert resp.json()["Valid"] is True

    def test_verify_with_custom_tags(self, client):
        leaves = ["aaa", "bbb", "ccc", "ddd", "eee"]
        tag = "Bitcoin_Transaction"
        proof = get_proof("ccc", leaves, tag, tag)
        resp = client.post(
            "/merkle/verify",
            json={
                "leaf": "ccc",
                "root": "92a939c49bd157c2eeb4cdb8eb2987d4ab63cbb5c86120ba2ed45a35bec6159f",
                "path": [n.model_dump(mode="json") for n in proof.path],
                "leaf_tag": tag,
                "branch_tag": tag,
            },
        )
        assert resp.json()["Valid"] is True

    def test_verify_malformed_hash_is_400(self, client, sample_root):
        resp = client.post(
            "/merkle/verify",
            json={
                "leaf": "(1,1111)",
                "root": sample_root,
                "path": [{"hash": "not-hex", "position": "left"}],
            },
        )
        assert resp.status_code == 400
        assert "step 0" in resp.json()["detail"]

    def test_body_too_large_is_413(self, client):
        resp = client.post(
            "/merkle/verify",
            content=b"x" * (128 * 1024),
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 413

    def test_non_numeric_content_length_is_400(self):
        scope = {
            "type": "http",
            "method": "POST",
            "path": "/merkle/verify",
            "headers": [(b"content-length", b"abc")],
        }
        call_next = AsyncMock()
        middleware = _BodySizeLimitMiddleware(app=MagicMock())

        resp = asyncio.run(middleware.dispatch(Request(scope), call_next))

        assert resp.status_code == 400
        call_next.assert_not_called()

    def test_verify_with_explicit_empty_tags(self, client):
        leaves = ["aaa", "bbb", "ccc"]
        root = compute_root(leaves, "", "")
        proof = get_proof("bbb", leaves, "", "")
        resp = client.post(
            "/merkle/verify",
            json={
                "leaf": "bbb",
                "root": root,
                "path": [n.model_dump(mode="json") for n in proof.path],
                "leaf_tag": "",
                "branch_tag": "",
            },
        )
        assert resp.status_code == 200
        assert resp.json() == {"ComputedRoot": root, "Valid": True}

    def test_refresh_status(self, client):
        resp = client.get("/refresh/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["running"] is True
        assert "interval_seconds" in data
        assert "last_refresh_at" in data
        assert "last_error" in data


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@pytest.fixture
def balances_file(tmp_path):
    path = tmp_path / "balances.json"
    path.write_text(json.dumps({str(k): v for k, v in SAMPLE_BALANCES.items()}))
    return path


class TestCLI:
    def test_root_of_balances_file(self, balances_file, sample_root, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["root", str(balances_file)])
        assert exc_info.value.code == 0
        assert capsys.readouterr().out.strip() == sample_root

    def test_root_of_raw_leaves(self, tmp_path, capsys):
        path = tmp_path / "leaves.json"
        path.write_text(json.dumps(["aaa", "bbb", "ccc", "ddd", "eee"]))
        with pytest.raises(SystemExit) as exc_info:
            main([
                "root", "--raw", str(path),
                "--leaf-tag", "Bitcoin_Transaction",
                "--branch-tag", "Bitcoin_Transaction",
            ])
        assert exc_info.value.code == 0
        assert (
            capsys.readouterr().out.strip()
            == "92a939c49bd157c2eeb4cdb8eb2987d4ab63cbb5c86120ba2ed45a35bec6159f"
        )

    def test_prove_then_verify(self, balances_file, sample_root, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["prove", str(balances_file), "4"])
        assert exc_info.value.code == 0
        proof = json.loads(capsys.readouterr().out)
        assert proof["leaf"] == "(4,4444)"
        assert proof["root"] == sample_root

        proof_path = tmp_path / "proof.json"
        proof_path.write_text(json.dumps(proof))
        with pytest.raises(SystemExit) as exc_info:
            main(["verify", "(4,4444)", sample_root, str(proof_path)])
        assert exc_info.value.code == 0
        assert "Proof is VALID" in capsys.readouterr().out

    def test_verify_rejects_wrong_root(self, balances_file, tmp_path, capsys):
        with pytest.raises(SystemExit):
            main(["prove", str(balances_file), "4"])
        proof = json.loads(capsys.readouterr().out)
        proof_path = tmp_path / "proof.json"
        proof_path.write_text(json.dumps(proof["proof"]["path"]))

        with pytest.raises(SystemExit) as exc_info:
            main(["verify", "(4,4444)", "00" * 32, str(proof_path)])
        assert exc_info.value.code == 1
        assert "INVALID" in capsys.readouterr().out

    def test_prove_unknown_user(self, balances_file, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["prove", str(balances_file), "42"])
        assert exc_info.value.code == 1
        assert "not found" in capsys.readouterr().err

    def test_bad_balances_file(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(SystemExit) as exc_info:
            main(["root", str(path)])
        assert exc_info.value.code == 1
        assert "ERROR" in capsys.readouterr().err

    def test_raw_root_with_malformed_json(self, tmp_path, capsys):
        path = tmp_path / "leaves.json"
        path.write_text('["aaa", "bbb"')
        with pytest.raises(SystemExit) as exc_info:
            main(["root", "--raw", str(path)])
        assert exc_info.value.code == 1
        assert "ERROR" in capsys.readouterr().err

    def test_raw_root_with_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["root", "--raw", str(tmp_path / "nope.json")])
        assert exc_info.value.code == 1
        assert "ERROR" in capsys.readouterr().err

    def test_verify_with_missing_proof_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["verify", "(1,1)", "00" * 32, str(tmp_path / "missing.json")])
        assert exc_info.value.code == 1
        assert "ERROR" in capsys.readouterr().err

    def test_verify_with_malformed_proof_file(self, tmp_path, capsys):
        path = tmp_path / "proof.json"
        path.write_text("{not json")
        with pytest.raises(SystemExit) as exc_info:
            main(["verify", "(1,1)", "00" * 32, str(path)])
        assert exc_info.value.code == 1
        assert "ERROR" in capsys.readouterr().err

    def test_verify_with_non_list_proof(self, tmp_path, capsys):
        path = tmp_path / "proof.json"
        path.write_text("42")
        with pytest.raises(SystemExit) as exc_info:
            main(["verify", "(1,1)", "00" * 32, str(path)])
        assert exc_info.value.code == 1
        assert "ERROR" in capsys.readouterr().err
