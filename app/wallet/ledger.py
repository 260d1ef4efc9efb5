"""Application and request ledger.

Two independent sequences, most recent first:
- applications: outbound identity applications,
  Submitted -> PendingVerification -> Approved (one step at a time).
- requests: inbound verifier disclosure requests,
  Pending -> Approved | Denied (both terminal).

Every operation either commits completely or raises and leaves the ledger
unchanged.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

from .anchoring import AnchorHandles
from .disclosure import compute_disclosure
from .exceptions import InvalidTransition, NotFound, ValidationError
from .models import (
    APPLICATION_SUCCESSOR,
    Application,
    ApplicationStatus,
    Credential,
    CredentialRequest,
    DisclosureResult,
    RequestStatus,
    utcnow,
)

log = logging.getLogger(__name__)


def _coerce_application_status(value: Any) -> ApplicationStatus:
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise ValidationError(f"unknown application status: {value!r}")


def _coerce_timestamp(value: Any, name: str) -> datetime:
    if value is None:
        return utcnow()
    if not isinstance(value, datetime):
        raise ValidationError(f"{name} must be a datetime")
    return value


def build_application(data: Mapping[str, Any]) -> Application:
    """Create an Application from loose input.

    Raises:
        ValidationError: application_type or subject_identifier missing.
    """
    for required in ("application_type", "subject_identifier"):
        if not data.get(required):
            raise ValidationError.missing(required)

    fields = data.get("fields") or {}
    if not isinstance(fields, Mapping):
        raise ValidationError("fields must be a mapping")

    return Application(
        id=data.get("id") or str(uuid.uuid4()),
        application_type=data["application_type"],
        subject_identifier=data["subject_identifier"],
        submitted_at=_coerce_timestamp(data.get("submitted_at"), "submitted_at"),
        fields={str(k): str(v) for k, v in fields.items()},
        photo_ref=data.get("photo_ref"),
        status=_coerce_application_status(data.get("status", ApplicationStatus.SUBMITTED)),
        storage_ref=data.get("storage_ref"),
        chain_ref=data.get("chain_ref"),
        block_height=data.get("block_height"),
    )


def build_request(data: Mapping[str, Any]) -> CredentialRequest:
    """Create a Pending CredentialRequest from loose input.

    Raises:
        ValidationError: Empty verifier id, empty or duplicated requested fields.
    """
    verifier = data.get("verifier_did")
    if not verifier or not str(verifier).strip():
        raise ValidationError.missing("verifier_did")

    fields = data.get("requested_fields")
    if isinstance(fields, str) or not fields:
        raise ValidationError("requested_fields must be a non-empty list of labels")
    fields = tuple(fields)
    if any(not isinstance(f, str) or not f for f in fields):
        raise ValidationError("requested_fields must contain non-empty strings")
    if len(set(fields)) != len(fields):
        raise ValidationError("requested_fields contains duplicate labels")

    return CredentialRequest(
        id=data.get("id") or str(uuid.uuid4()),
        verifier_did=str(verifier),
        requested_fields=fields,
        purpose=data.get("purpose", ""),
        org_name=data.get("org_name"),
        created_at=_coerce_timestamp(data.get("created_at"), "created_at"),
    )


class Ledger:
    """Tracks applications and disclosure requests for one wallet."""

    def __init__(
        self,
        applications: Optional[Iterable[Application]] = None,
        requests: Optional[Iterable[CredentialRequest]] = None,
    ):
        self._applications: List[Application] = list(applications or ())
        self._requests: List[CredentialRequest] = list(requests or ())

    # -------------------------------------------------------------------------
    # Applications
    # -------------------------------------------------------------------------

    def applications(self) -> List[Application]:
        return list(self._applications)

    def get_application(self, application_id: str) -> Application:
        for application in self._applications:
            if application.id == application_id:
                return application
        raise NotFound("application", application_id)

    def add_application(self, data: Mapping[str, Any]) -> Application:
        record = build_application(data)
        if any(a.id == record.id for a in self._applications):
            raise ValidationError(f"application id already exists: {record.id}")
        self._applications = [record] + self._applications
        log.info(f"application submitted: {record.id} ({record.application_type})")
        return record

    def advance_application(self, application_id: str, next_status: Any) -> Application:
        """Advance an application exactly one step along its lifecycle."""
        current = self.get_application(application_id)
        target = _coerce_application_status(next_status)
        if APPLICATION_SUCCESSOR[current.status] != target:
            raise InvalidTransition(
                "application", application_id, current.status.value, target.value
            )
        updated = replace(current, status=target)
        self._swap_application(updated)
        log.info(f"application {application_id} {current.status.value} -> {target.value}")
        return updated

    def attach_application_refs(self, application_id: str, handles: AnchorHandles) -> Application:
        """Record storage/chain references without touching status."""
        current = self.get_application(application_id)
        updated = replace(
            current,
            storage_ref=handles.storage_ref,
            chain_ref=handles.chain_ref,
            block_height=handles.block_height,
        )
        self._swap_application(updated)
        return updated

    def _swap_application(self, updated: Application) -> None:
        self._applications = [
            updated if a.id == updated.id else a for a in self._applications
        ]

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    def requests(self) -> List[CredentialRequest]:
        return list(self._requests)

    def pending_requests(self) -> List[CredentialRequest]:
        return [r for r in self._requests if r.status == RequestStatus.PENDING]

    def resolved_requests(self) -> List[CredentialRequest]:
        return [r for r in self._requests if r.status != RequestStatus.PENDING]

    def approved_requests(self) -> List[CredentialRequest]:
        return [r for r in self._requests if r.status == RequestStatus.APPROVED]

    def get_request(self, request_id: str) -> CredentialRequest:
        for request in self._requests:
            if request.id == request_id:
                return request
        raise NotFound("request", request_id)

    def add_request(self, data: Mapping[str, Any]) -> CredentialRequest:
        record = build_request(data)
        if any(r.id == record.id for r in self._requests):
            raise ValidationError(f"request id already exists: {record.id}")
        self._requests = [record] + self._requests
        log.info(f"request received: {record.id} from {record.verifier_did}")
        return record

    def require_pending(self, request_id: str, action: RequestStatus) -> CredentialRequest:
        """Return the request if it is still Pending, else raise InvalidTransition."""
        current = self.get_request(request_id)
        if current.status != RequestStatus.PENDING:
            raise InvalidTransition("request", request_id, current.status.value, action.value)
        return current

    def deny_request(self, request_id: str) -> CredentialRequest:
        current = self.require_pending(request_id, RequestStatus.DENIED)
        updated = replace(current, status=RequestStatus.DENIED)
        self._swap_request(updated)
        log.info(f"request {request_id} denied")
        return updated

    def approve_request(
        self,
        request_id: str,
        credential: Credential,
        reveal_choice: Mapping[str, bool],
        handles: Optional[AnchorHandles] = None,
    ) -> CredentialRequest:
        """Validate through the disclosure engine, then commit the approval."""
        current = self.require_pending(request_id, RequestStatus.APPROVED)
        result = compute_disclosure(current, credential, reveal_choice, handles)
        return self.commit_approval(request_id, credential.id, result)

    def commit_approval(
        self,
        request_id: str,
        credential_id: str,
        result: DisclosureResult,
    ) -> CredentialRequest:
        """Write result, credential id and Approved status in one swap.

        Status is re-checked here so an approval computed against a request
        that was resolved in the meantime is rejected.
        """
        current = self.require_pending(request_id, RequestStatus.APPROVED)
        if not set(result.disclosed_fields) <= set(current.requested_fields):
            raise ValidationError("disclosed fields exceed the requested fields")
        updated = replace(
            current,
            status=RequestStatus.APPROVED,
            result=result,
            credential_id=credential_id,
        )
        self._swap_request(updated)
        log.info(
            f"request {request_id} approved with credential {credential_id} "
            f"fields={list(result.disclosed_fields)}"
        )
        return updated

    def _swap_request(self, updated: CredentialRequest) -> None:
        self._requests = [updated if r.id == updated.id else r for r in self._requests]

    def clear(self) -> None:
        self._applications = []
        self._requests = []
