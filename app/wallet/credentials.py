"""Credential store.

Holds the holder's credentials, most recent first. Mutations build a new
list and swap it in; records themselves are frozen.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

from app.core.config import PROOF_HASH_LENGTH
from .disclosure import eligible_credentials
from .exceptions import InvalidTransition, NotFound, ValidationError
from .models import (
    CREDENTIAL_TRANSITIONS,
    Credential,
    CredentialAttribute,
    CredentialRequest,
    CredentialStatus,
    utcnow,
)

log = logging.getLogger(__name__)


def new_proof_hash() -> str:
    return uuid.uuid4().hex[:PROOF_HASH_LENGTH]


def _coerce_status(value: Any) -> CredentialStatus:
    try:
        return CredentialStatus(value)
    except ValueError:
        raise ValidationError(f"unknown credential status: {value!r}")


def _coerce_attributes(raw: Optional[Iterable[Any]]) -> tuple:
    attributes = []
    seen = set()
    for item in raw or ():
        if isinstance(item, CredentialAttribute):
            attr = item
        elif isinstance(item, Mapping):
            if not item.get("label"):
                raise ValidationError.missing("attributes[].label")
            attr = CredentialAttribute(
                label=str(item["label"]),
                value=str(item.get("value", "")),
                disclosed=bool(item.get("disclosed", True)),
            )
        else:
            raise ValidationError(f"attribute must be a mapping, got {type(item).__name__}")
        if attr.label in seen:
            raise ValidationError(f"duplicate attribute label: {attr.label!r}")
        seen.add(attr.label)
        attributes.append(attr)
    return tuple(attributes)


def build_credential(data: Mapping[str, Any]) -> Credential:
    """Create a Credential record from loose input, applying defaults.

    Defaults: id -> uuid4, issuance_date -> now, proof_hash -> fresh token,
    status -> active.

    Raises:
        ValidationError: Missing title, unknown status or duplicate labels.
    """
    title = data.get("title")
    if not title:
        raise ValidationError.missing("title")

    issuance_date = data.get("issuance_date") or utcnow()
    if not isinstance(issuance_date, datetime):
        raise ValidationError("issuance_date must be a datetime")

    return Credential(
        id=data.get("id") or str(uuid.uuid4()),
        title=title,
        issuer=data.get("issuer", ""),
        type=data.get("type", ""),
        status=_coerce_status(data.get("status", CredentialStatus.ACTIVE)),
        issuance_date=issuance_date,
        attributes=_coerce_attributes(data.get("attributes")),
        proof_hash=data.get("proof_hash") or new_proof_hash(),
        description=data.get("description"),
        raw_vc=data.get("raw_vc"),
    )


class CredentialStore:
    """The holder's credential collection."""

    def __init__(self, credentials: Optional[Iterable[Credential]] = None):
        self._items: List[Credential] = list(credentials or ())

    def __len__(self) -> int:
        return len(self._items)

    def list(self) -> List[Credential]:
        return list(self._items)

    def get(self, credential_id: str) -> Credential:
        for credential in self._items:
            if credential.id == credential_id:
                return credential
        raise NotFound("credential", credential_id)

    def find(self, credential_id: str) -> Optional[Credential]:
        for credential in self._items:
            if credential.id == credential_id:
                return credential
        return None

    def add_credential(self, data: Mapping[str, Any]) -> Credential:
        """Insert a new credential at the head of the collection."""
        record = build_credential(data)
        if self.find(record.id) is not None:
            raise ValidationError(f"credential id already exists: {record.id}")
        self._items = [record] + self._items
        log.info(f"credential added: {record.id} ({record.title})")
        return record

    def remove_credential(self, credential_id: str) -> None:
        """Remove a credential. Unknown ids are ignored."""
        remaining = [c for c in self._items if c.id != credential_id]
        if len(remaining) != len(self._items):
            log.info(f"credential removed: {credential_id}")
        self._items = remaining

    def transition_status(self, credential_id: str, new_status: Any) -> Credential:
        """Move a credential along active->revoked, active->expiring, expiring->active."""
        current = self.get(credential_id)
        target = _coerce_status(new_status)
        if target not in CREDENTIAL_TRANSITIONS[current.status]:
            raise InvalidTransition("credential", credential_id, current.status.value, target.value)
        updated = replace(current, status=target)
        self._swap(updated)
        log.info(f"credential {credential_id} status {current.status.value} -> {target.value}")
        return updated

    def set_disclosed(self, credential_id: str, label: str, disclosed: bool) -> Credential:
        """Change the default-disclosure flag of one attribute."""
        current = self.get(credential_id)
        if current.attribute(label) is None:
            raise ValidationError(f"credential {credential_id} has no attribute {label!r}")
        attributes = tuple(
            replace(attr, disclosed=disclosed) if attr.label == label else attr
            for attr in current.attributes
        )
        updated = replace(current, attributes=attributes)
        self._swap(updated)
        return updated

    def eligible_for(self, request: CredentialRequest) -> List[Credential]:
        """Credentials carrying every field the request asks for."""
        return eligible_credentials(request, self._items)

    def _swap(self, updated: Credential) -> None:
        self._items = [updated if c.id == updated.id else c for c in self._items]
