"""Holder wallet core.

Components:
- models: frozen records and status transition tables
- credentials: CredentialStore
- ledger: applications and verifier disclosure requests
- disclosure: selective disclosure engine
- recovery: presence-based recovery quorum (non-cryptographic)
- documents: local document records
- anchoring: chain anchoring / content storage collaborators
- wallet: single-writer container per holder identity
- issuer: issuer simulator
- snapshot / registry: persistence and per-identity wallet lookup

Usage:
    from app.wallet import Wallet, compute_disclosure, NoFieldsSelected
"""

from .anchoring import AnchorHandles, AnchorReceipt, HttpAnchorClient, SimulatedAnchor
from .credentials import CredentialStore
from .disclosure import compute_disclosure, covers_request, eligible_credentials
from .documents import DocumentStore
from .exceptions import (
    AnchorError,
    AnchorTimeout,
    AnchorUnavailable,
    DisclosureError,
    IncompleteCredential,
    InvalidTransition,
    NoFieldsSelected,
    NoMatchingAttributes,
    NotFound,
    ValidationError,
    WalletError,
)
from .ledger import Ledger
from .models import (
    Application,
    ApplicationStatus,
    Credential,
    CredentialAttribute,
    CredentialRequest,
    CredentialStatus,
    DisclosureResult,
    DocumentStatus,
    QuorumResult,
    RecoveryShare,
    RequestStatus,
    WalletDocument,
    WalletState,
)
from .recovery import RecoveryQuorum
from .wallet import Wallet

__all__ = [
    # Models
    "Application",
    "ApplicationStatus",
    "Credential",
    "CredentialAttribute",
    "CredentialRequest",
    "CredentialStatus",
    "DisclosureResult",
    "DocumentStatus",
    "QuorumResult",
    "RecoveryShare",
    "RequestStatus",
    "WalletDocument",
    "WalletState",
    # Stores
    "CredentialStore",
    "DocumentStore",
    "Ledger",
    "RecoveryQuorum",
    "Wallet",
    # Disclosure
    "compute_disclosure",
    "covers_request",
    "eligible_credentials",
    # Collaborators
    "AnchorHandles",
    "AnchorReceipt",
    "HttpAnchorClient",
    "SimulatedAnchor",
    # Exceptions
    "WalletError",
    "ValidationError",
    "NotFound",
    "InvalidTransition",
    "DisclosureError",
    "NoMatchingAttributes",
    "IncompleteCredential",
    "NoFieldsSelected",
    "AnchorError",
    "AnchorTimeout",
    "AnchorUnavailable",
]
