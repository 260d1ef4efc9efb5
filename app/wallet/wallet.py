"""Wallet container.

A Wallet owns every store for one holder identity and is the only writer
to them. All mutations go through its methods; callers never touch the
stores' internals.

Async flows (approval with anchoring, application submission) suspend while
the collaborators work. During that window the entity is "in flight": a
second mutation of the same id is rejected with InvalidTransition. Status
is re-checked just before commit, and nothing is committed if the flow is
cancelled or the collaborator fails or times out.
"""

import asyncio
import json
import logging
from datetime import timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import blake3

from app.core.config import SEED_DEMO_CREDENTIALS
from app.logging_config import wallet_context
from .anchoring import AnchorHandles, get_anchor
from .credentials import CredentialStore, build_credential
from .disclosure import canonical_payload, compute_disclosure, select_disclosed_fields
from .documents import DocumentStore
from .exceptions import InvalidTransition
from .ledger import Ledger
from .models import (
    Application,
    ApplicationStatus,
    Credential,
    CredentialRequest,
    QuorumResult,
    RecoveryShare,
    RequestStatus,
    WalletDocument,
    WalletState,
    utcnow,
)
from .recovery import RecoveryQuorum

log = logging.getLogger(__name__)


def demo_credentials() -> List[Credential]:
    """The starter credential set shown to a fresh wallet."""
    now = utcnow()
    seeds = [
        {
            "title": "Government ID",
            "issuer": "Pandora Civic Authority",
            "issuance_date": now - timedelta(days=120),
            "type": "W3C Verifiable Credential",
            "status": "active",
            "description": "Primary decentralized identifier attested by the Pandora's Vault root registry.",
            "attributes": [
                {"label": "Full Name", "value": "Avery Quinn", "disclosed": True},
                {"label": "Citizen ID", "value": "PQ-7281-4421", "disclosed": False},
                {"label": "Expires", "value": "2030-04-12", "disclosed": True},
            ],
        },
        {
            "title": "Employment Verification",
            "issuer": "Nebula Labs Collective",
            "issuance_date": now - timedelta(days=45),
            "type": "AnonCreds 1.0 Credential",
            "status": "expiring",
            "description": "Role assignment and clearance levels issued by Nebula Labs HR node.",
            "attributes": [
                {"label": "Role", "value": "Identity Systems Engineer", "disclosed": True},
                {"label": "Clearance", "value": "Vault-Core", "disclosed": False},
                {"label": "Location", "value": "Orbital Ring 3", "disclosed": True},
            ],
        },
        {
            "title": "Guild Membership",
            "issuer": "Guild of Guardians",
            "issuance_date": now - timedelta(days=365),
            "type": "DIDComm Trust Badge",
            "status": "active",
            "description": "Guardian quorum membership credential for recovery network participation.",
            "attributes": [
                {"label": "Tier", "value": "Sentinel", "disclosed": True},
                {"label": "Join Date", "value": "2023-11-04", "disclosed": True},
                {"label": "Revocation Code", "value": "9F2C-ALPHA", "disclosed": False},
            ],
        },
    ]
    return [build_credential(seed) for seed in seeds]


class Wallet:
    """Single-writer state container for one wallet identity."""

    def __init__(
        self,
        did: Optional[str] = None,
        state: Optional[WalletState] = None,
        seed: bool = SEED_DEMO_CREDENTIALS,
        on_change: Optional[Callable[["Wallet"], None]] = None,
    ):
        if state is None:
            state = WalletState(credentials=demo_credentials() if seed else [])
        self.did: Optional[str] = state.did
        self.did_created_at = state.did_created_at
        self.credentials = CredentialStore(state.credentials)
        self.ledger = Ledger(state.applications, state.requests)
        self.recovery = RecoveryQuorum(state.shares)
        self.documents = DocumentStore(state.documents)
        self._on_change = on_change
        self._locks: Dict[str, asyncio.Lock] = {}
        if did is not None and did != self.did:
            self.set_did(did)

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def set_did(self, did: Optional[str]) -> None:
        self.did = did
        self.did_created_at = utcnow() if did else None
        log.info("session identity set", extra=wallet_context(did))
        self._changed()

    def logout(self) -> None:
        """Drop the session identity along with applications and requests."""
        log.info("session logout", extra=wallet_context(self.did))
        self.did = None
        self.did_created_at = None
        self.ledger.clear()
        self._changed()

    def state(self) -> WalletState:
        return WalletState(
            did=self.did,
            did_created_at=self.did_created_at,
            credentials=self.credentials.list(),
            applications=self.ledger.applications(),
            requests=self.ledger.requests(),
            shares=self.recovery.shares(),
            documents=self.documents.list(),
        )

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

    def _lock_for(self, entity_id: str) -> asyncio.Lock:
        lock = self._locks.get(entity_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[entity_id] = lock
        return lock

    def _check_not_in_flight(self, kind: str, entity_id: str, action: str) -> None:
        lock = self._locks.get(entity_id)
        if lock is not None and lock.locked():
            log.warning(f"{kind} {entity_id}: {action} rejected, already in flight",
                        extra=wallet_context(self.did, entity_id))
            raise InvalidTransition.in_flight(kind, entity_id, action)

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    def add_credential(self, data: Mapping[str, Any]) -> Credential:
        record = self.credentials.add_credential(data)
        self._changed()
        return record

    def remove_credential(self, credential_id: str) -> None:
        self.credentials.remove_credential(credential_id)
        self._changed()

    def transition_credential(self, credential_id: str, new_status: Any) -> Credential:
        record = self.credentials.transition_status(credential_id, new_status)
        self._changed()
        return record

    def set_attribute_disclosed(self, credential_id: str, label: str, disclosed: bool) -> Credential:
        record = self.credentials.set_disclosed(credential_id, label, disclosed)
        self._changed()
        return record

    # -------------------------------------------------------------------------
    # Applications
    # -------------------------------------------------------------------------

    def add_application(self, data: Mapping[str, Any]) -> Application:
        record = self.ledger.add_application(data)
        self._changed()
        return record

    def advance_application(self, application_id: str, next_status: Any) -> Application:
        self._check_not_in_flight("application", application_id, str(next_status))
        record = self.ledger.advance_application(application_id, next_status)
        self._changed()
        return record

    async def submit_application_async(self, data: Mapping[str, Any], anchor=None) -> Application:
        """Submit an application, anchor its fields, then mark it PendingVerification.

        The application is recorded as Submitted first. If anchoring fails
        or times out it stays Submitted and the error propagates.
        """
        anchor = anchor or get_anchor()
        record = self.add_application(data)
        async with self._lock_for(record.id):
            payload = json.dumps(
                {"type": record.application_type, "subject": record.subject_identifier,
                 "fields": record.fields},
                sort_keys=True, separators=(",", ":"),
            ).encode("utf-8")
            storage_ref = await anchor.store(payload)
            receipt = await anchor.anchor(blake3.blake3(payload).hexdigest())
            self.ledger.attach_application_refs(
                record.id,
                AnchorHandles(storage_ref, receipt.transaction_ref, receipt.block_height),
            )
            record = self.ledger.advance_application(
                record.id, ApplicationStatus.PENDING_VERIFICATION
            )
        self._changed()
        return record

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    def add_request(self, data: Mapping[str, Any]) -> CredentialRequest:
        record = self.ledger.add_request(data)
        self._changed()
        return record

    def eligible_credentials(self, request_id: str) -> List[Credential]:
        return self.credentials.eligible_for(self.ledger.get_request(request_id))

    def deny_request(self, request_id: str) -> CredentialRequest:
        self._check_not_in_flight("request", request_id, RequestStatus.DENIED.value)
        record = self.ledger.deny_request(request_id)
        self._changed()
        return record

    def approve_request(
        self,
        request_id: str,
        credential_id: str,
        reveal_choice: Mapping[str, bool],
    ) -> CredentialRequest:
        """Approve with simulated anchoring handles, no suspension."""
        self._check_not_in_flight("request", request_id, RequestStatus.APPROVED.value)
        self.ledger.require_pending(request_id, RequestStatus.APPROVED)
        credential = self.credentials.get(credential_id)
        record = self.ledger.approve_request(request_id, credential, reveal_choice)
        self._changed()
        return record

    async def approve_request_async(
        self,
        request_id: str,
        credential_id: str,
        reveal_choice: Mapping[str, bool],
        anchor=None,
    ) -> CredentialRequest:
        """Approve a request, storing and anchoring the disclosure payload first.

        Preconditions are checked before any collaborator is called, so a bad
        selection never reaches the network. The disclosure is recomputed
        from the credential's values at commit time.
        """
        anchor = anchor or get_anchor()
        self._check_not_in_flight("request", request_id, RequestStatus.APPROVED.value)
        async with self._lock_for(request_id):
            request = self.ledger.require_pending(request_id, RequestStatus.APPROVED)
            credential = self.credentials.get(credential_id)
            disclosed = select_disclosed_fields(request, credential, reveal_choice)

            payload = canonical_payload(request, credential, disclosed)
            storage_ref = await anchor.store(payload)
            receipt = await anchor.anchor(blake3.blake3(payload).hexdigest())

            request = self.ledger.require_pending(request_id, RequestStatus.APPROVED)
            credential = self.credentials.get(credential_id)
            result = compute_disclosure(
                request,
                credential,
                reveal_choice,
                AnchorHandles(storage_ref, receipt.transaction_ref, receipt.block_height),
            )
            record = self.ledger.commit_approval(request_id, credential_id, result)
        self._changed()
        return record

    # -------------------------------------------------------------------------
    # Recovery
    # -------------------------------------------------------------------------

    def generate_shares(self, count: Optional[int] = None) -> List[RecoveryShare]:
        shares = self.recovery.generate_shares(count)
        self._changed()
        return shares

    def clear_shares(self) -> None:
        self.recovery.clear_shares()
        self._changed()

    def validate_shares(self, presented: Sequence[str]) -> QuorumResult:
        return self.recovery.validate(presented)

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def add_document(self, data: Mapping[str, Any]) -> WalletDocument:
        record = self.documents.add_document(data)
        self._changed()
        return record

    def update_document_status(self, document_id: str, status: Any, **patch) -> WalletDocument:
        record = self.documents.update_document_status(document_id, status, **patch)
        self._changed()
        return record
