"""Wallet snapshot persistence.

One JSON document per wallet identity:

    {
      "version": 1,
      "wallet": {
        "did": ..., "didCreatedAt": ...,
        "credentials": [...], "applications": [...], "requests": [...],
        "shares": [...], "documents": [...]
      }
    }

Collections missing from an older snapshot load as empty lists, except
credentials, which fall back to the caller-supplied default set.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import blake3

from app.core.config import SNAPSHOT_SCHEMA_VERSION
from app.logging_config import wallet_context
from .exceptions import ValidationError
from .models import (
    Application,
    ApplicationStatus,
    Credential,
    CredentialAttribute,
    CredentialRequest,
    CredentialStatus,
    DisclosureResult,
    DocumentStatus,
    RecoveryShare,
    RequestStatus,
    WalletDocument,
    WalletState,
)

log = logging.getLogger(__name__)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# =============================================================================
# Encoding
# =============================================================================

def credential_to_dict(c: Credential) -> Dict[str, Any]:
    return {
        "id": c.id,
        "title": c.title,
        "issuer": c.issuer,
        "type": c.type,
        "status": c.status.value,
        "issuanceDate": _ts(c.issuance_date),
        "attributes": [
            {"label": a.label, "value": a.value, "disclosed": a.disclosed} for a in c.attributes
        ],
        "proofHash": c.proof_hash,
        "description": c.description,
        "rawVc": c.raw_vc,
    }


def disclosure_to_dict(r: DisclosureResult) -> Dict[str, Any]:
    return {
        "storageRef": r.storage_ref,
        "chainRef": r.chain_ref,
        "blockHeight": r.block_height,
        "disclosedFields": dict(r.disclosed_fields),
        "proofHash": r.proof_hash,
    }


def request_to_dict(r: CredentialRequest) -> Dict[str, Any]:
    return {
        "id": r.id,
        "verifierDid": r.verifier_did,
        "requestedFields": list(r.requested_fields),
        "purpose": r.purpose,
        "orgName": r.org_name,
        "createdAt": _ts(r.created_at),
        "status": r.status.value,
        "result": disclosure_to_dict(r.result) if r.result else None,
        "credentialId": r.credential_id,
    }


def application_to_dict(a: Application) -> Dict[str, Any]:
    return {
        "id": a.id,
        "applicationType": a.application_type,
        "subjectIdentifier": a.subject_identifier,
        "submittedAt": _ts(a.submitted_at),
        "fields": dict(a.fields),
        "photoRef": a.photo_ref,
        "status": a.status.value,
        "storageRef": a.storage_ref,
        "chainRef": a.chain_ref,
        "blockHeight": a.block_height,
    }


def share_to_dict(s: RecoveryShare) -> Dict[str, Any]:
    return {"id": s.id, "label": s.label, "value": s.value, "createdAt": _ts(s.created_at)}


def document_to_dict(d: WalletDocument) -> Dict[str, Any]:
    return {
        "id": d.id,
        "name": d.name,
        "size": d.size,
        "mimeType": d.mime_type,
        "uploadedAt": _ts(d.uploaded_at),
        "status": d.status.value,
        "encryptedPayload": d.encrypted_payload,
        "contentRef": d.content_ref,
        "notes": d.notes,
    }


def state_to_dict(state: WalletState) -> Dict[str, Any]:
    return {
        "version": SNAPSHOT_SCHEMA_VERSION,
        "wallet": {
            "did": state.did,
            "didCreatedAt": _ts(state.did_created_at),
            "credentials": [credential_to_dict(c) for c in state.credentials],
            "applications": [application_to_dict(a) for a in state.applications],
            "requests": [request_to_dict(r) for r in state.requests],
            "shares": [share_to_dict(s) for s in state.shares],
            "documents": [document_to_dict(d) for d in state.documents],
        },
    }


# =============================================================================
# Decoding
# =============================================================================

def credential_from_dict(d: Dict[str, Any]) -> Credential:
    return Credential(
        id=d["id"],
        title=d["title"],
        issuer=d.get("issuer", ""),
        type=d.get("type", ""),
        status=CredentialStatus(d.get("status", "active")),
        issuance_date=_parse_ts(d.get("issuanceDate")),
        attributes=tuple(
            CredentialAttribute(a["label"], a.get("value", ""), a.get("disclosed", True))
            for a in d.get("attributes") or ()
        ),
        proof_hash=d.get("proofHash", ""),
        description=d.get("description"),
        raw_vc=d.get("rawVc"),
    )


def request_from_dict(d: Dict[str, Any]) -> CredentialRequest:
    result = d.get("result")
    return CredentialRequest(
        id=d["id"],
        verifier_did=d["verifierDid"],
        requested_fields=tuple(d["requestedFields"]),
        purpose=d.get("purpose", ""),
        org_name=d.get("orgName"),
        created_at=_parse_ts(d.get("createdAt")),
        status=RequestStatus(d.get("status", "Pending")),
        result=DisclosureResult(
            storage_ref=result["storageRef"],
            chain_ref=result["chainRef"],
            block_height=result["blockHeight"],
            disclosed_fields=dict(result["disclosedFields"]),
            proof_hash=result["proofHash"],
        ) if result else None,
        credential_id=d.get("credentialId"),
    )


def application_from_dict(d: Dict[str, Any]) -> Application:
    return Application(
        id=d["id"],
        application_type=d["applicationType"],
        subject_identifier=d["subjectIdentifier"],
        submitted_at=_parse_ts(d.get("submittedAt")),
        fields=dict(d.get("fields") or {}),
        photo_ref=d.get("photoRef"),
        status=ApplicationStatus(d.get("status", "Submitted")),
        storage_ref=d.get("storageRef"),
        chain_ref=d.get("chainRef"),
        block_height=d.get("blockHeight"),
    )


def share_from_dict(d: Dict[str, Any]) -> RecoveryShare:
    return RecoveryShare(
        id=d["id"], label=d["label"], value=d["value"], created_at=_parse_ts(d.get("createdAt")),
    )


def document_from_dict(d: Dict[str, Any]) -> WalletDocument:
    return WalletDocument(
        id=d["id"],
        name=d["name"],
        size=d.get("size", 0),
        mime_type=d.get("mimeType", "application/octet-stream"),
        uploaded_at=_parse_ts(d.get("uploadedAt")),
        status=DocumentStatus(d.get("status", "pending")),
        encrypted_payload=d.get("encryptedPayload"),
        content_ref=d.get("contentRef"),
        notes=d.get("notes"),
    )


def _list(wallet: Dict[str, Any], key: str) -> Optional[List[Any]]:
    value = wallet.get(key)
    return value if isinstance(value, list) else None


def state_from_dict(
    data: Dict[str, Any],
    default_credentials: Optional[Callable[[], List[Credential]]] = None,
) -> WalletState:
    """Rebuild a WalletState from a snapshot document.

    Raises:
        ValidationError: Unsupported version or malformed records.
    """
    version = data.get("version")
    if version != SNAPSHOT_SCHEMA_VERSION:
        raise ValidationError(f"unsupported snapshot version: {version!r}")
    wallet = data.get("wallet")
    if not isinstance(wallet, dict):
        raise ValidationError("snapshot missing 'wallet' object")

    try:
        credentials = _list(wallet, "credentials")
        return WalletState(
            did=wallet.get("did"),
            did_created_at=_parse_ts(wallet.get("didCreatedAt")),
            credentials=(
                [credential_from_dict(c) for c in credentials]
                if credentials is not None
                else (default_credentials() if default_credentials else [])
            ),
            applications=[application_from_dict(a) for a in _list(wallet, "applications") or []],
            requests=[request_from_dict(r) for r in _list(wallet, "requests") or []],
            shares=[share_from_dict(s) for s in _list(wallet, "shares") or []],
            documents=[document_from_dict(d) for d in _list(wallet, "documents") or []],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"malformed snapshot: {e}")


# =============================================================================
# Files
# =============================================================================

def snapshot_path(directory: str, did: str) -> Path:
    """File holding the snapshot for `did`; the name is a digest of the identifier."""
    name = blake3.blake3(did.encode("utf-8")).hexdigest()[:16]
    return Path(directory) / f"{name}.json"


def save_snapshot(directory: str, did: str, state: WalletState) -> Path:
    """Write the snapshot atomically (temp file + rename)."""
    path = snapshot_path(directory, did)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".json.tmp")
    tmp.write_text(json.dumps(state_to_dict(state), indent=2), encoding="utf-8")
    os.replace(tmp, path)
    log.debug(f"snapshot saved: {path}", extra=wallet_context(did))
    return path


def load_snapshot(
    directory: str,
    did: str,
    default_credentials: Optional[Callable[[], List[Credential]]] = None,
) -> Optional[WalletState]:
    """Load the snapshot for `did`, or None if none was saved."""
    path = snapshot_path(directory, did)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"snapshot {path.name} is not valid JSON: {e}")
    return state_from_dict(data, default_credentials)
