"""Wallet domain models.

All records are frozen dataclasses. Stores never mutate a record in place;
a status change or flag toggle produces a new record via dataclasses.replace
and swaps it into the owning collection.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Status enums and transition tables
# =============================================================================

class CredentialStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRING = "expiring"


class RequestStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    DENIED = "Denied"


class ApplicationStatus(str, Enum):
    SUBMITTED = "Submitted"
    PENDING_VERIFICATION = "PendingVerification"
    APPROVED = "Approved"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    ENCRYPTED = "encrypted"
    UPLOADED = "uploaded"
    FAILED = "failed"


# expiring <-> revoked is deliberately absent
CREDENTIAL_TRANSITIONS: Dict[CredentialStatus, FrozenSet[CredentialStatus]] = {
    CredentialStatus.ACTIVE: frozenset({CredentialStatus.REVOKED, CredentialStatus.EXPIRING}),
    CredentialStatus.EXPIRING: frozenset({CredentialStatus.ACTIVE}),
    CredentialStatus.REVOKED: frozenset(),
}

REQUEST_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.APPROVED, RequestStatus.DENIED}),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.DENIED: frozenset(),
}

# Each application status has exactly one successor (or none)
APPLICATION_SUCCESSOR: Dict[ApplicationStatus, Optional[ApplicationStatus]] = {
    ApplicationStatus.SUBMITTED: ApplicationStatus.PENDING_VERIFICATION,
    ApplicationStatus.PENDING_VERIFICATION: ApplicationStatus.APPROVED,
    ApplicationStatus.APPROVED: None,
}

DOCUMENT_TRANSITIONS: Dict[DocumentStatus, FrozenSet[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset({
        DocumentStatus.ENCRYPTED, DocumentStatus.UPLOADED, DocumentStatus.FAILED,
    }),
    DocumentStatus.ENCRYPTED: frozenset({DocumentStatus.UPLOADED, DocumentStatus.FAILED}),
    DocumentStatus.UPLOADED: frozenset(),
    DocumentStatus.FAILED: frozenset(),
}


# =============================================================================
# Credentials
# =============================================================================

@dataclass(frozen=True)
class CredentialAttribute:
    """One labelled value on a credential.

    Attributes:
        label: Attribute name, unique within its credential. Matched
            case-sensitively.
        value: Attribute value.
        disclosed: The holder's default-disclosure preference. Request-time
            reveal choices do not consult this flag.
    """
    label: str
    value: str
    disclosed: bool = True


@dataclass(frozen=True)
class Credential:
    """A verifiable credential held by the wallet.

    Attributes:
        id: Opaque unique identifier.
        title: Human readable title (e.g. "Government ID").
        issuer: Issuer identifier.
        type: Credential type tag.
        status: Current CredentialStatus.
        issuance_date: When the credential was issued (UTC).
        attributes: Ordered attributes; fixed at creation.
        proof_hash: Opaque fixed-length token.
        description: Optional free text.
        raw_vc: Original VC document, when the issuer supplied one.
    """
    id: str
    title: str
    issuer: str
    type: str
    status: CredentialStatus
    issuance_date: datetime
    attributes: Tuple[CredentialAttribute, ...] = ()
    proof_hash: str = ""
    description: Optional[str] = None
    raw_vc: Optional[Dict[str, Any]] = None

    @property
    def labels(self) -> FrozenSet[str]:
        return frozenset(attr.label for attr in self.attributes)

    def attribute(self, label: str) -> Optional[CredentialAttribute]:
        for attr in self.attributes:
            if attr.label == label:
                return attr
        return None


# =============================================================================
# Requests and disclosures
# =============================================================================

@dataclass(frozen=True)
class DisclosureResult:
    """Immutable record of one approved selective disclosure.

    Attributes:
        storage_ref: Content reference of the encrypted disclosure payload.
        chain_ref: Transaction reference anchoring the payload.
        block_height: Block the transaction landed in.
        disclosed_fields: label -> value for every revealed field, in
            requested-field order.
        proof_hash: Digest of the disclosure payload; never equal to the
            source credential's own proof hash.
    """
    storage_ref: str
    chain_ref: str
    block_height: int
    disclosed_fields: Dict[str, str]
    proof_hash: str


@dataclass(frozen=True)
class CredentialRequest:
    """An inbound verifier request for selective disclosure.

    result and credential_id are set together, exactly when status becomes
    Approved.
    """
    id: str
    verifier_did: str
    requested_fields: Tuple[str, ...]
    purpose: str
    created_at: datetime
    org_name: Optional[str] = None
    status: RequestStatus = RequestStatus.PENDING
    result: Optional[DisclosureResult] = None
    credential_id: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return not REQUEST_TRANSITIONS[self.status]


# =============================================================================
# Applications
# =============================================================================

@dataclass(frozen=True)
class Application:
    """An outbound identity application (e.g. "Aadhaar")."""
    id: str
    application_type: str
    subject_identifier: str
    submitted_at: datetime
    fields: Dict[str, str] = field(default_factory=dict)
    photo_ref: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.SUBMITTED
    storage_ref: Optional[str] = None
    chain_ref: Optional[str] = None
    block_height: Optional[int] = None


# =============================================================================
# Recovery
# =============================================================================

@dataclass(frozen=True)
class RecoveryShare:
    id: str
    label: str
    value: str
    created_at: datetime


@dataclass(frozen=True)
class QuorumResult:
    """Outcome of a recovery quorum check.

    Attributes:
        satisfied: matched_count >= threshold.
        matched_count: Distinct stored shares matched by the presented values.
        missing: max(0, threshold - matched_count).
        matched_share_ids: Ids of the matched shares, in stored order.
    """
    satisfied: bool
    matched_count: int
    missing: int
    matched_share_ids: Tuple[str, ...] = ()


# =============================================================================
# Documents
# =============================================================================

@dataclass(frozen=True)
class WalletDocument:
    id: str
    name: str
    size: int
    mime_type: str
    uploaded_at: datetime
    status: DocumentStatus = DocumentStatus.PENDING
    encrypted_payload: Optional[str] = None
    content_ref: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class WalletState:
    """Everything persisted for one wallet identity."""
    did: Optional[str] = None
    did_created_at: Optional[datetime] = None
    credentials: List[Credential] = field(default_factory=list)
    applications: List[Application] = field(default_factory=list)
    requests: List[CredentialRequest] = field(default_factory=list)
    shares: List[RecoveryShare] = field(default_factory=list)
    documents: List[WalletDocument] = field(default_factory=list)
