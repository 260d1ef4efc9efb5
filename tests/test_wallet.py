"""Tests for the Wallet container and its async flows."""

import asyncio

import pytest

from app.wallet.anchoring import AnchorReceipt, SimulatedAnchor
from app.wallet.exceptions import (
    AnchorTimeout,
    AnchorUnavailable,
    InvalidTransition,
    NoFieldsSelected,
)
from app.wallet.models import ApplicationStatus, RequestStatus
from app.wallet.wallet import Wallet, demo_credentials


class BlockingAnchor:
    """Anchor whose store() suspends until released."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.stored = []

    async def store(self, payload: bytes) -> str:
        self.stored.append(payload)
        self.started.set()
        await self.release.wait()
        return "bafyblocked"

    async def anchor(self, content_hash: str) -> AnchorReceipt:
        return AnchorReceipt(transaction_ref="0xfeed", confirmed=True, block_height=1234567)


class FailingAnchor:

    def __init__(self, exc):
        self.exc = exc
        self.calls = 0

    async def store(self, payload: bytes) -> str:
        self.calls += 1
        raise self.exc

    async def anchor(self, content_hash: str) -> AnchorReceipt:
        self.calls += 1
        raise self.exc


@pytest.fixture
def gov_id(wallet, gov_id_data):
    return wallet.add_credential(gov_id_data)


@pytest.fixture
def pending(wallet, name_dob_request):
    return wallet.add_request(name_dob_request)


# =============================================================================
# Construction and session
# =============================================================================

class TestWalletSession:

    def test_demo_seed(self):
        wallet = Wallet()
        titles = [c.title for c in wallet.credentials.list()]
        assert titles == ["Government ID", "Employment Verification", "Guild Membership"]
        assert wallet.credentials.list()[1].status.value == "expiring"

    def test_demo_credentials_are_fresh(self):
        a, b = demo_credentials(), demo_credentials()
        assert {c.id for c in a}.isdisjoint(c.id for c in b)

    def test_empty_when_not_seeded(self, wallet):
        assert wallet.credentials.list() == []
        assert wallet.did == "did:example:holder"
        assert wallet.did_created_at is not None

    def test_logout_keeps_credentials_shares_documents(self, wallet, gov_id, pending):
        wallet.add_application({"application_type": "Aadhaar", "subject_identifier": "x"})
        wallet.generate_shares(3)
        wallet.add_document({"name": "id.png", "size": 10})

        wallet.logout()

        assert wallet.did is None
        assert wallet.did_created_at is None
        assert wallet.ledger.requests() == []
        assert wallet.ledger.applications() == []
        assert [c.id for c in wallet.credentials.list()] == [gov_id.id]
        assert len(wallet.recovery.shares()) == 3
        assert len(wallet.documents.list()) == 1

    def test_on_change_called_per_mutation(self, gov_id_data):
        seen = []
        wallet = Wallet(seed=False, on_change=seen.append)
        wallet.set_did("did:example:a")
        cred = wallet.add_credential(gov_id_data)
        wallet.set_attribute_disclosed(cred.id, "DOB", False)
        wallet.validate_shares(["x"])
        assert len(seen) == 3
        assert all(w is wallet for w in seen)

    def test_state_snapshot_is_detached(self, wallet, gov_id):
        state = wallet.state()
        wallet.remove_credential(gov_id.id)
        assert [c.id for c in state.credentials] == [gov_id.id]


# =============================================================================
# Synchronous facade
# =============================================================================

class TestSyncApproval:

    def test_scenario(self, wallet, gov_id, pending):
        record = wallet.approve_request(pending.id, gov_id.id, {"Name": True, "DOB": False})
        assert record.status == RequestStatus.APPROVED
        assert record.result.disclosed_fields == {"Name": "Ann"}
        assert [c.id for c in wallet.eligible_credentials(pending.id)] == [gov_id.id]

    def test_deny_then_approve_rejected(self, wallet, gov_id, pending):
        wallet.deny_request(pending.id)
        with pytest.raises(InvalidTransition):
            wallet.approve_request(pending.id, gov_id.id, {"Name": True})
        assert wallet.ledger.get_request(pending.id).status == RequestStatus.DENIED


# =============================================================================
# Async approval
# =============================================================================

class TestApproveAsync:

    @pytest.mark.asyncio
    async def test_simulated_anchor(self, wallet, gov_id, pending):
        record = await wallet.approve_request_async(
            pending.id, gov_id.id, {"Name": True, "DOB": False}, anchor=SimulatedAnchor()
        )
        assert record.status == RequestStatus.APPROVED
        assert record.credential_id == gov_id.id
        assert record.result.disclosed_fields == {"Name": "Ann"}
        assert record.result.storage_ref.startswith("bafy")
        assert record.result.chain_ref.startswith("0x")

    @pytest.mark.asyncio
    async def test_handles_come_from_collaborator(self, wallet, gov_id, pending):
        anchor = BlockingAnchor()
        anchor.release.set()
        record = await wallet.approve_request_async(
            pending.id, gov_id.id, {"Name": True}, anchor=anchor
        )
        assert record.result.storage_ref == "bafyblocked"
        assert record.result.chain_ref == "0xfeed"
        assert record.result.block_height == 1234567
        assert b'"Name":"Ann"' in anchor.stored[0]
        assert b"DOB" not in anchor.stored[0]

    @pytest.mark.asyncio
    async def test_second_mutation_rejected_while_in_flight(self, wallet, gov_id, pending):
        anchor = BlockingAnchor()
        task = asyncio.create_task(
            wallet.approve_request_async(pending.id, gov_id.id, {"Name": True}, anchor=anchor)
        )
        await anchor.started.wait()

        with pytest.raises(InvalidTransition, match="in progress"):
            wallet.deny_request(pending.id)
        with pytest.raises(InvalidTransition, match="in progress"):
            await wallet.approve_request_async(
                pending.id, gov_id.id, {"DOB": True}, anchor=SimulatedAnchor()
            )
        assert wallet.ledger.get_request(pending.id).status == RequestStatus.PENDING

        anchor.release.set()
        record = await task
        assert record.status == RequestStatus.APPROVED
        assert record.result.disclosed_fields == {"Name": "Ann"}

    @pytest.mark.asyncio
    async def test_other_requests_not_blocked(self, wallet, gov_id, pending, name_dob_request):
        other = wallet.add_request(name_dob_request)
        anchor = BlockingAnchor()
        task = asyncio.create_task(
            wallet.approve_request_async(pending.id, gov_id.id, {"Name": True}, anchor=anchor)
        )
        await anchor.started.wait()

        assert wallet.deny_request(other.id).status == RequestStatus.DENIED

        anchor.release.set()
        await task

    @pytest.mark.asyncio
    async def test_cancellation_leaves_pending(self, wallet, gov_id, pending):
        anchor = BlockingAnchor()
        task = asyncio.create_task(
            wallet.approve_request_async(pending.id, gov_id.id, {"Name": True}, anchor=anchor)
        )
        await anchor.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert wallet.ledger.get_request(pending.id) == pending
        # the lock is released, so the request can be resolved again
        assert wallet.deny_request(pending.id).status == RequestStatus.DENIED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc", [AnchorTimeout(), AnchorUnavailable()])
    async def test_collaborator_failure_leaves_pending(self, wallet, gov_id, pending, exc):
        with pytest.raises(type(exc)):
            await wallet.approve_request_async(
                pending.id, gov_id.id, {"Name": True}, anchor=FailingAnchor(exc)
            )
        assert wallet.ledger.get_request(pending.id) == pending

    @pytest.mark.asyncio
    async def test_bad_selection_never_reaches_collaborator(self, wallet, gov_id, pending):
        anchor = FailingAnchor(AnchorUnavailable())
        with pytest.raises(NoFieldsSelected):
            await wallet.approve_request_async(pending.id, gov_id.id, {}, anchor=anchor)
        assert anchor.calls == 0

    @pytest.mark.asyncio
    async def test_terminal_request_rejected(self, wallet, gov_id, pending):
        wallet.deny_request(pending.id)
        with pytest.raises(InvalidTransition):
            await wallet.approve_request_async(
                pending.id, gov_id.id, {"Name": True}, anchor=SimulatedAnchor()
            )


# =============================================================================
# Async application submission
# =============================================================================

class TestSubmitApplicationAsync:

    APPLICATION = {
        "application_type": "Aadhaar",
        "subject_identifier": "did:ethr:matic:0xabc",
        "fields": {"Name": "Ann"},
    }

    @pytest.mark.asyncio
    async def test_anchored_and_advanced(self, wallet):
        anchor = BlockingAnchor()
        anchor.release.set()
        record = await wallet.submit_application_async(self.APPLICATION, anchor=anchor)
        assert record.status == ApplicationStatus.PENDING_VERIFICATION
        assert record.storage_ref == "bafyblocked"
        assert record.chain_ref == "0xfeed"
        assert record.block_height == 1234567

    @pytest.mark.asyncio
    async def test_timeout_leaves_submitted(self, wallet):
        with pytest.raises(AnchorTimeout):
            await wallet.submit_application_async(
                self.APPLICATION, anchor=FailingAnchor(AnchorTimeout())
            )
        [record] = wallet.ledger.applications()
        assert record.status == ApplicationStatus.SUBMITTED
        assert record.storage_ref is None

    @pytest.mark.asyncio
    async def test_advance_rejected_while_in_flight(self, wallet):
        anchor = BlockingAnchor()
        task = asyncio.create_task(
            wallet.submit_application_async(self.APPLICATION, anchor=anchor)
        )
        await anchor.started.wait()
        [record] = wallet.ledger.applications()

        with pytest.raises(InvalidTransition):
            wallet.advance_application(record.id, "PendingVerification")

        anchor.release.set()
        done = await task
        assert done.status == ApplicationStatus.PENDING_VERIFICATION
