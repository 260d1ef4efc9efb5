"""Tests for snapshot persistence and the wallet registry."""

import json

import pytest

from app.wallet.exceptions import ValidationError
from app.wallet.models import RequestStatus
from app.wallet.registry import WalletRegistry
from app.wallet.snapshot import (
    load_snapshot,
    save_snapshot,
    snapshot_path,
    state_from_dict,
    state_to_dict,
)
from app.wallet.wallet import Wallet


@pytest.fixture
def populated(wallet, gov_id_data, name_dob_request):
    cred = wallet.add_credential(gov_id_data)
    approved = wallet.add_request(name_dob_request)
    wallet.approve_request(approved.id, cred.id, {"Name": True})
    wallet.add_request(name_dob_request)
    wallet.add_application({"application_type": "Aadhaar", "subject_identifier": "did:x"})
    wallet.generate_shares(3)
    wallet.add_document({"name": "id.png", "size": 10, "mime_type": "image/png"})
    return wallet


class TestSnapshotFile:

    def test_save_and_load(self, tmp_path, populated):
        state = populated.state()
        path = save_snapshot(str(tmp_path), populated.did, state)

        assert path.exists()
        assert not path.with_suffix(".json.tmp").exists()
        loaded = load_snapshot(str(tmp_path), populated.did)

        assert loaded == state

    def test_path_is_digest_of_did(self, tmp_path):
        path = snapshot_path(str(tmp_path), "did:example:holder")
        assert path.parent == tmp_path
        assert len(path.stem) == 16
        assert "did" not in path.name
        assert snapshot_path(str(tmp_path), "did:example:other") != path

    def test_missing_file(self, tmp_path):
        assert load_snapshot(str(tmp_path), "did:example:none") is None

    def test_invalid_json(self, tmp_path):
        snapshot_path(str(tmp_path), "did:x").write_text("{not json", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_snapshot(str(tmp_path), "did:x")


class TestStateFromDict:

    def test_missing_collections_default(self):
        sentinel = Wallet(seed=True).credentials.list()
        state = state_from_dict(
            {"version": 1, "wallet": {"did": "did:x"}}, default_credentials=lambda: sentinel
        )
        assert state.did == "did:x"
        assert state.credentials == sentinel
        assert state.applications == []
        assert state.requests == []
        assert state.shares == []
        assert state.documents == []

    def test_empty_credentials_kept_empty(self):
        state = state_from_dict(
            {"version": 1, "wallet": {"credentials": []}}, default_credentials=lambda: ["x"]
        )
        assert state.credentials == []

    def test_unsupported_version(self, populated):
        data = state_to_dict(populated.state())
        data["version"] = 2
        with pytest.raises(ValidationError, match="version"):
            state_from_dict(data)

    def test_malformed_record(self):
        with pytest.raises(ValidationError, match="malformed"):
            state_from_dict({"version": 1, "wallet": {"credentials": [{"title": "no id"}]}})

    def test_encoded_is_json(self, populated):
        data = state_to_dict(populated.state())
        request = data["wallet"]["requests"][1]
        assert request["status"] == "Approved"
        assert request["result"]["disclosedFields"] == {"Name": "Ann"}
        json.dumps(data)


class TestWalletRegistry:

    def test_one_wallet_per_did(self):
        registry = WalletRegistry(seed=False)
        assert registry.get("did:a") is registry.get("did:a")
        assert registry.get("did:a") is not registry.get("did:b")
        assert registry.identities() == ["did:a", "did:b"]

    def test_persists_and_reloads(self, tmp_path, gov_id_data, name_dob_request):
        registry = WalletRegistry(snapshot_dir=str(tmp_path), seed=False)
        wallet = registry.get("did:a")
        cred = wallet.add_credential(gov_id_data)
        request = wallet.add_request(name_dob_request)
        wallet.deny_request(request.id)

        reloaded = WalletRegistry(snapshot_dir=str(tmp_path), seed=False).get("did:a")

        assert reloaded is not wallet
        assert [c.id for c in reloaded.credentials.list()] == [cred.id]
        assert reloaded.ledger.get_request(request.id).status == RequestStatus.DENIED

    def test_logout_saves_under_original_did(self, tmp_path, gov_id_data, name_dob_request):
        registry = WalletRegistry(snapshot_dir=str(tmp_path), seed=False)
        wallet = registry.get("did:a")
        cred = wallet.add_credential(gov_id_data)
        wallet.add_request(name_dob_request)

        registry.logout("did:a")

        assert wallet.did is None
        reloaded = WalletRegistry(snapshot_dir=str(tmp_path), seed=False).get("did:a")
        assert reloaded.did == "did:a"
        assert [c.id for c in reloaded.credentials.list()] == [cred.id]
        assert reloaded.ledger.requests() == []

    def test_seeded_fresh_wallet(self):
        wallet = WalletRegistry(seed=True).get("did:a")
        assert len(wallet.credentials.list()) == 3

    def test_logout_in_memory_keeps_wallet(self, gov_id_data):
        registry = WalletRegistry(seed=False)
        wallet = registry.get("did:a")
        cred = wallet.add_credential(gov_id_data)

        registry.logout("did:a")

        again = registry.get("did:a")
        assert again is wallet
        assert again.did == "did:a"
        assert [c.id for c in again.credentials.list()] == [cred.id]
