"""Shared fixtures for wallet tests."""

import pytest

from app.wallet.anchoring import reset_anchor
from app.wallet.registry import reset_wallet_registry
from app.wallet.wallet import Wallet


@pytest.fixture(autouse=True)
def _reset_singletons():
    reset_wallet_registry()
    reset_anchor()
    yield
    reset_wallet_registry()
    reset_anchor()


@pytest.fixture
def wallet():
    """An empty wallet (no demo credentials) for did:example:holder."""
    return Wallet(did="did:example:holder", seed=False)


@pytest.fixture
def gov_id_data():
    return {
        "title": "Gov ID",
        "issuer": "did:example:issuer",
        "type": "W3C Verifiable Credential",
        "attributes": [
            {"label": "Name", "value": "Ann"},
            {"label": "DOB", "value": "1990-01-01"},
        ],
    }


@pytest.fixture
def name_dob_request():
    return {
        "verifier_did": "did:corp:abc123",
        "requested_fields": ["Name", "DOB"],
        "purpose": "Employment verification",
        "org_name": "Nebula HR Node",
    }
