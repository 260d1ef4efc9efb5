"""Tests for the selective disclosure engine."""

import pytest

from app.wallet.anchoring import AnchorHandles
from app.wallet.credentials import build_credential
from app.wallet.disclosure import (
    canonical_payload,
    compute_disclosure,
    covers_request,
    eligible_credentials,
    select_disclosed_fields,
)
from app.wallet.exceptions import IncompleteCredential, NoFieldsSelected, NoMatchingAttributes
from app.wallet.ledger import build_request


@pytest.fixture
def gov_id(gov_id_data):
    return build_credential(gov_id_data)


@pytest.fixture
def request_name_dob(name_dob_request):
    return build_request(name_dob_request)


def _credential(*pairs, **kwargs):
    return build_credential({
        "title": kwargs.get("title", "Test"),
        "attributes": [
            {"label": label, "value": value, "disclosed": kwargs.get("disclosed", True)}
            for label, value in pairs
        ],
    })


class TestPreconditions:

    def test_no_matching_attributes(self, request_name_dob):
        unrelated = _credential(("Role", "Engineer"))
        with pytest.raises(NoMatchingAttributes):
            compute_disclosure(request_name_dob, unrelated, {"Name": True})

    def test_credential_without_attributes(self, request_name_dob):
        with pytest.raises(NoMatchingAttributes):
            compute_disclosure(request_name_dob, _credential(), {"Name": True})

    def test_incomplete_credential(self, request_name_dob):
        partial = _credential(("Name", "Ann"))
        with pytest.raises(IncompleteCredential) as exc_info:
            compute_disclosure(request_name_dob, partial, {"Name": True})
        assert exc_info.value.missing_fields == ["DOB"]
        assert covers_request(request_name_dob, partial) is False

    @pytest.mark.parametrize("choice", [
        {},
        {"Name": False, "DOB": False},
        {"Other": True},
        {"Name": "yes"},
    ])
    def test_no_fields_selected(self, request_name_dob, gov_id, choice):
        with pytest.raises(NoFieldsSelected):
            compute_disclosure(request_name_dob, gov_id, choice)

    def test_zero_fields_fails_regardless_of_credential(self, request_name_dob):
        rich = _credential(("Name", "Ann"), ("DOB", "1990-01-01"), ("Address", "Ring 3"))
        with pytest.raises(NoFieldsSelected):
            compute_disclosure(request_name_dob, rich, {})

    def test_label_match_is_exact(self, request_name_dob):
        lower = _credential(("name", "Ann"), ("dob", "1990-01-01"))
        with pytest.raises(NoMatchingAttributes):
            compute_disclosure(request_name_dob, lower, {"Name": True})


class TestDisclosedFields:

    def test_scenario_reveal_only_name(self, request_name_dob, gov_id):
        result = compute_disclosure(request_name_dob, gov_id, {"Name": True, "DOB": False})
        assert result.disclosed_fields == {"Name": "Ann"}

    def test_keys_subset_and_values_match(self, request_name_dob):
        cred = _credential(("Name", "Ann"), ("DOB", "1990-01-01"), ("Secret", "x"))
        result = compute_disclosure(
            request_name_dob, cred, {"Name": True, "DOB": True, "Secret": True}
        )
        assert set(result.disclosed_fields) <= set(request_name_dob.requested_fields)
        for label, value in result.disclosed_fields.items():
            assert cred.attribute(label).value == value
        assert "Secret" not in result.disclosed_fields

    def test_ignores_credential_disclosed_flag(self, request_name_dob):
        hidden = _credential(("Name", "Ann"), ("DOB", "1990-01-01"), disclosed=False)
        result = compute_disclosure(request_name_dob, hidden, {"DOB": True})
        assert result.disclosed_fields == {"DOB": "1990-01-01"}

    def test_requested_field_order(self, request_name_dob, gov_id):
        fields = select_disclosed_fields(request_name_dob, gov_id, {"DOB": True, "Name": True})
        assert list(fields) == ["Name", "DOB"]

    def test_inputs_not_mutated(self, request_name_dob, gov_id):
        choice = {"Name": True}
        before_cred = gov_id
        compute_disclosure(request_name_dob, gov_id, choice)
        assert choice == {"Name": True}
        assert gov_id == before_cred
        assert all(a.disclosed for a in gov_id.attributes)


class TestResultHandles:

    def test_simulated_handles(self, request_name_dob, gov_id):
        result = compute_disclosure(request_name_dob, gov_id, {"Name": True})
        assert result.storage_ref.startswith("bafy")
        assert result.chain_ref.startswith("0x") and len(result.chain_ref) == 66
        assert 1_000_000 <= result.block_height < 10_000_000

    def test_supplied_handles(self, request_name_dob, gov_id):
        handles = AnchorHandles("bafyX", "0xY", 42)
        result = compute_disclosure(request_name_dob, gov_id, {"Name": True}, handles)
        assert (result.storage_ref, result.chain_ref, result.block_height) == ("bafyX", "0xY", 42)

    def test_proof_hash_distinct(self, request_name_dob, gov_id):
        a = compute_disclosure(request_name_dob, gov_id, {"Name": True})
        b = compute_disclosure(request_name_dob, gov_id, {"Name": True})
        assert a.proof_hash != gov_id.proof_hash
        assert a.proof_hash != b.proof_hash
        assert len(a.proof_hash) == 64


class TestHelpers:

    def test_eligible_credentials_keeps_order(self, request_name_dob, gov_id):
        other = _credential(("Name", "Bob"), ("DOB", "1980-02-02"))
        partial = _credential(("Name", "Cy"))
        assert eligible_credentials(request_name_dob, [partial, other, gov_id]) == [other, gov_id]

    def test_canonical_payload_is_deterministic(self, request_name_dob, gov_id):
        a = canonical_payload(request_name_dob, gov_id, {"Name": "Ann"})
        b = canonical_payload(request_name_dob, gov_id, {"Name": "Ann"})
        assert a == b
        assert b" " not in a
