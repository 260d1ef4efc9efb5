"""Selective disclosure engine.

Given a verifier request and the credential the holder picked, decide which
attribute values may be revealed and produce an immutable DisclosureResult.

Matching rules:
- Labels are compared case-sensitively and exactly.
- A credential must carry every requested field to be usable.
- The holder's per-request reveal choice is authoritative; the credential's
  own `disclosed` default flag is not consulted.
- Revealing nothing is an error, never an empty approval.

Nothing in this module mutates its inputs.
"""

import json
import secrets
from typing import Dict, List, Mapping, Optional

import blake3

from .anchoring import AnchorHandles
from .exceptions import IncompleteCredential, NoFieldsSelected, NoMatchingAttributes
from .models import Credential, CredentialRequest, DisclosureResult


def covers_request(request: CredentialRequest, credential: Credential) -> bool:
    """True if the credential carries every requested field."""
    return set(request.requested_fields) <= credential.labels


def eligible_credentials(request: CredentialRequest, credentials) -> List[Credential]:
    """Credentials that may be offered for this request, in the given order."""
    return [c for c in credentials if covers_request(request, c)]


def select_disclosed_fields(
    request: CredentialRequest,
    credential: Credential,
    reveal_choice: Mapping[str, bool],
) -> Dict[str, str]:
    """Compute label -> value for the fields the holder chose to reveal.

    Args:
        request: The verifier request.
        credential: The credential chosen to satisfy it.
        reveal_choice: label -> bool. Labels outside requested_fields are
            ignored; anything other than True means "do not reveal".

    Returns:
        Revealed fields in requested-field order.

    Raises:
        NoMatchingAttributes: Credential has none of the requested fields.
        IncompleteCredential: Credential lacks at least one requested field.
        NoFieldsSelected: No requested field was chosen for reveal.
    """
    requested = request.requested_fields
    labels = credential.labels

    eligible = [label for label in requested if label in labels]
    if not eligible:
        raise NoMatchingAttributes(credential.id)
    if len(eligible) != len(requested):
        missing = [label for label in requested if label not in labels]
        raise IncompleteCredential(credential.id, missing)

    revealed = [label for label in requested if reveal_choice.get(label) is True]
    if not revealed:
        raise NoFieldsSelected()

    return {label: credential.attribute(label).value for label in revealed}


def canonical_payload(
    request: CredentialRequest,
    credential: Credential,
    disclosed_fields: Mapping[str, str],
) -> bytes:
    """Deterministic JSON bytes describing a disclosure (sorted keys, no whitespace)."""
    body = {
        "requestId": request.id,
        "verifier": request.verifier_did,
        "credentialId": credential.id,
        "issuer": credential.issuer,
        "disclosed": dict(disclosed_fields),
    }
    return json.dumps(body, sort_keys=True, separators=(",", ":")).encode("utf-8")


def disclosure_proof_hash(payload: bytes, credential: Credential) -> str:
    """Blake3 digest over the payload and a fresh nonce.

    The nonce makes two disclosures of the same fields distinguishable.
    The digest is hex and 64 chars long, so it can never collide with a
    credential's 24-char proof hash; the explicit check covers imported
    credentials that carry arbitrary tokens.
    """
    while True:
        nonce = secrets.token_bytes(16)
        digest = blake3.blake3(payload + nonce).hexdigest()
        if digest != credential.proof_hash:
            return digest


def compute_disclosure(
    request: CredentialRequest,
    credential: Credential,
    reveal_choice: Mapping[str, bool],
    handles: Optional[AnchorHandles] = None,
) -> DisclosureResult:
    """Produce the DisclosureResult for approving `request` with `credential`.

    Args:
        request: The verifier request.
        credential: The chosen credential.
        reveal_choice: label -> bool, the holder's per-request selection.
        handles: Storage/chain references obtained from the collaborators.
            Simulated handles are generated when omitted.

    Raises:
        NoMatchingAttributes, IncompleteCredential, NoFieldsSelected.
    """
    disclosed = select_disclosed_fields(request, credential, reveal_choice)
    payload = canonical_payload(request, credential, disclosed)
    handles = handles or AnchorHandles.simulated()
    return DisclosureResult(
        storage_ref=handles.storage_ref,
        chain_ref=handles.chain_ref,
        block_height=handles.block_height,
        disclosed_fields=disclosed,
        proof_hash=disclosure_proof_hash(payload, credential),
    )
