"""Local records of documents the holder encrypted and uploaded.

Only the bookkeeping lives here; encryption and upload are performed by
external services, which report back through update_document_status.
"""

import logging
import uuid
from dataclasses import replace
from typing import Any, Iterable, List, Mapping, Optional

from .exceptions import InvalidTransition, NotFound, ValidationError
from .models import DOCUMENT_TRANSITIONS, DocumentStatus, WalletDocument, utcnow

log = logging.getLogger(__name__)

_PATCHABLE = ("encrypted_payload", "content_ref", "notes")


def _coerce_document_status(value: Any) -> DocumentStatus:
    try:
        return DocumentStatus(value)
    except ValueError:
        raise ValidationError(f"unknown document status: {value!r}")


class DocumentStore:

    def __init__(self, documents: Optional[Iterable[WalletDocument]] = None):
        self._items: List[WalletDocument] = list(documents or ())

    def list(self) -> List[WalletDocument]:
        return list(self._items)

    def get(self, document_id: str) -> WalletDocument:
        for document in self._items:
            if document.id == document_id:
                return document
        raise NotFound("document", document_id)

    def add_document(self, data: Mapping[str, Any]) -> WalletDocument:
        if not data.get("name"):
            raise ValidationError.missing("name")
        size = data.get("size", 0)
        if not isinstance(size, int) or size < 0:
            raise ValidationError("size must be a non-negative integer")
        record = WalletDocument(
            id=data.get("id") or str(uuid.uuid4()),
            name=data["name"],
            size=size,
            mime_type=data.get("mime_type") or "application/octet-stream",
            uploaded_at=utcnow(),
            status=_coerce_document_status(data.get("status", DocumentStatus.PENDING)),
            encrypted_payload=data.get("encrypted_payload"),
            content_ref=data.get("content_ref"),
            notes=data.get("notes"),
        )
        self._items = [record] + self._items
        return record

    def update_document_status(self, document_id: str, status: Any, **patch) -> WalletDocument:
        """Move a document to `status`, optionally recording payload/ref/notes.

        Re-asserting the current status only applies the patch.
        """
        current = self.get(document_id)
        target = _coerce_document_status(status)
        if target != current.status and target not in DOCUMENT_TRANSITIONS[current.status]:
            raise InvalidTransition("document", document_id, current.status.value, target.value)
        unknown = set(patch) - set(_PATCHABLE)
        if unknown:
            raise ValidationError(f"cannot patch document fields: {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in patch.items() if v is not None}
        updated = replace(current, status=target, **changes)
        self._items = [updated if d.id == document_id else d for d in self._items]
        log.info(f"document {document_id} {current.status.value} -> {target.value}")
        return updated
