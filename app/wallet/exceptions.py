"""
Holder wallet exceptions.

Each exception carries a code from ErrorCode so the caller can tell the
holder which precondition failed. The caller is responsible for converting
this to ErrorDetail.
"""

from typing import Optional

from app.wallet.api_models import ERROR_RECOVERABILITY, ErrorCode, ErrorDetail


class WalletError(Exception):
    """Base exception for wallet core operations."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    @property
    def recoverable(self) -> bool:
        return ERROR_RECOVERABILITY.get(self.code, True)

    def to_detail(self) -> ErrorDetail:
        return ErrorDetail(code=self.code, message=self.message, recoverable=self.recoverable)


class ValidationError(WalletError):
    """Malformed input to a creation operation."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.VALIDATION_ERROR, message)

    @classmethod
    def missing(cls, field: str) -> "ValidationError":
        return cls(f"missing required field: '{field}'")


class NotFound(WalletError):
    """Operation referenced an unknown id."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(ErrorCode.NOT_FOUND, f"{kind} not found: {entity_id}")


class InvalidTransition(WalletError):
    """Status-machine violation.

    Also raised when a second mutation targets an entity whose previous
    mutation is still in flight.
    """

    def __init__(
        self,
        kind: str,
        entity_id: str,
        current: str,
        requested: str,
        message: Optional[str] = None,
    ):
        self.kind = kind
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
        super().__init__(
            ErrorCode.INVALID_TRANSITION,
            message or f"{kind} {entity_id}: cannot move from {current} to {requested}",
        )

    @classmethod
    def in_flight(cls, kind: str, entity_id: str, requested: str) -> "InvalidTransition":
        """Factory for a mutation attempted while another is still running."""
        return cls(
            kind, entity_id, "in-flight", requested,
            message=f"{kind} {entity_id}: {requested} already in progress",
        )


class DisclosureError(WalletError):
    """Base for Disclosure Engine precondition failures."""
    pass


class NoMatchingAttributes(DisclosureError):
    """The credential has none of the requested fields."""

    def __init__(self, credential_id: str):
        super().__init__(
            ErrorCode.NO_MATCHING_ATTRIBUTES,
            f"credential {credential_id} has none of the requested fields",
        )


class IncompleteCredential(DisclosureError):
    """The credential covers some, but not all, requested fields."""

    def __init__(self, credential_id: str, missing_fields):
        self.missing_fields = list(missing_fields)
        super().__init__(
            ErrorCode.INCOMPLETE_CREDENTIAL,
            f"credential {credential_id} is missing requested fields: "
            f"{', '.join(self.missing_fields)}",
        )


class NoFieldsSelected(DisclosureError):
    """The holder chose to reveal none of the requested fields."""

    def __init__(self):
        super().__init__(
            ErrorCode.NO_FIELDS_SELECTED,
            "select at least one requested field to disclose",
        )


class AnchorError(WalletError):
    """Base for anchoring / content storage collaborator failures."""
    pass


class AnchorTimeout(AnchorError):
    """The collaborator did not answer in time. Entity status is unchanged."""

    def __init__(self, message: str = "anchoring service timed out"):
        super().__init__(ErrorCode.ANCHOR_TIMEOUT, message)


class AnchorUnavailable(AnchorError):
    """The collaborator failed or rejected the call."""

    def __init__(self, message: str = "anchoring service unavailable"):
        super().__init__(ErrorCode.ANCHOR_UNAVAILABLE, message)
