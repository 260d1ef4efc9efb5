"""
Holder wallet API models.

Request bodies and response views for the HTTP surface, plus the error
code registry shared by the core exceptions.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Error Models
# =============================================================================

class ErrorDetail(BaseModel):
    """Structured description of a rejected operation."""
    code: str
    message: str
    recoverable: bool


class ErrorCode:
    """Error code registry for the wallet core."""
    # Input layer
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Lifecycle layer
    INVALID_TRANSITION = "INVALID_TRANSITION"

    # Disclosure layer
    NO_MATCHING_ATTRIBUTES = "NO_MATCHING_ATTRIBUTES"
    INCOMPLETE_CREDENTIAL = "INCOMPLETE_CREDENTIAL"
    NO_FIELDS_SELECTED = "NO_FIELDS_SELECTED"

    # Collaborator layer
    ANCHOR_TIMEOUT = "ANCHOR_TIMEOUT"
    ANCHOR_UNAVAILABLE = "ANCHOR_UNAVAILABLE"


# Every rejection leaves the store unchanged, so all codes are recoverable.
ERROR_RECOVERABILITY: Dict[str, bool] = {
    ErrorCode.VALIDATION_ERROR: True,
    ErrorCode.NOT_FOUND: True,
    ErrorCode.INVALID_TRANSITION: True,
    ErrorCode.NO_MATCHING_ATTRIBUTES: True,
    ErrorCode.INCOMPLETE_CREDENTIAL: True,
    ErrorCode.NO_FIELDS_SELECTED: True,
    ErrorCode.ANCHOR_TIMEOUT: True,
    ErrorCode.ANCHOR_UNAVAILABLE: True,
}

# HTTP status used when an error code crosses the API boundary
ERROR_HTTP_STATUS: Dict[str, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_TRANSITION: 409,
    ErrorCode.NO_MATCHING_ATTRIBUTES: 400,
    ErrorCode.INCOMPLETE_CREDENTIAL: 400,
    ErrorCode.NO_FIELDS_SELECTED: 400,
    ErrorCode.ANCHOR_TIMEOUT: 504,
    ErrorCode.ANCHOR_UNAVAILABLE: 502,
}


class ErrorResponse(BaseModel):
    error: ErrorDetail


# =============================================================================
# Request Models
# =============================================================================

class AttributeIn(BaseModel):
    label: str
    value: str
    disclosed: bool = True


class AddCredentialRequest(BaseModel):
    """Body for POST /wallets/{did}/credentials"""
    title: str = ""
    issuer: str = ""
    type: str = ""
    status: str = "active"
    attributes: List[AttributeIn] = Field(default_factory=list)
    description: Optional[str] = None
    id: Optional[str] = None
    proof_hash: Optional[str] = None
    issuance_date: Optional[datetime] = None


class CredentialStatusRequest(BaseModel):
    status: str


class DisclosedFlagRequest(BaseModel):
    disclosed: bool


class AddApplicationRequest(BaseModel):
    """Body for POST /wallets/{did}/applications"""
    application_type: str = ""
    subject_identifier: str = ""
    fields: Dict[str, str] = Field(default_factory=dict)
    photo_ref: Optional[str] = None
    anchor: bool = False


class AdvanceApplicationRequest(BaseModel):
    next_status: str


class AddCredentialRequestRequest(BaseModel):
    """Body for POST /wallets/{did}/requests (a verifier disclosure request)"""
    verifier_did: str = ""
    requested_fields: List[str] = Field(default_factory=list)
    purpose: str = ""
    org_name: Optional[str] = None


class ApproveRequestRequest(BaseModel):
    """Body for POST /wallets/{did}/requests/{id}/approve"""
    credential_id: str
    reveal: Dict[str, bool]


class GenerateSharesRequest(BaseModel):
    count: Optional[int] = None


class ValidateSharesRequest(BaseModel):
    shares: List[str]


class AddDocumentRequest(BaseModel):
    name: str
    size: int
    mime_type: str
    encrypted_payload: Optional[str] = None
    content_ref: Optional[str] = None
    notes: Optional[str] = None


class DocumentStatusRequest(BaseModel):
    status: str
    content_ref: Optional[str] = None
    notes: Optional[str] = None


# =============================================================================
# Response Models
# =============================================================================

class QuorumResponse(BaseModel):
    satisfied: bool
    matched_count: int
    missing: int
    threshold: int
