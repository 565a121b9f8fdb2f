"""Core type definitions for claimflow.

This module defines the fundamental types used throughout the package:
- ClaimStatus: Lifecycle stages a claim occupies
- ClaimField: Editable claim fields, named as they travel on the wire
- FieldGroup: Named clusters of editable fields
- TransitionOperation: Remote operations that move a claim between statuses
- FileStatus / FileCategory: Upload pipeline states and document tags
- ErrorKind: Taxonomy of failures surfaced to the user
- EventType: Notifications emitted by the orchestrator and upload pipeline

Enum values match the wire format of the claims API so they can be sent and
parsed without translation tables.
"""

from enum import Enum


class ClaimStatus(str, Enum):
    """Claim lifecycle statuses.

    Terminal statuses: RETURNED, SETTLED, CANCELLED.
    """
    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    SUBMITTED = "SUBMITTED"
    PENDING_INFO = "PENDING_INFO"
    RETURNED = "RETURNED"
    SETTLED = "SETTLED"
    CANCELLED = "CANCELLED"


class ClaimField(str, Enum):
    """Fields of a claim that can be edited in place."""
    POLICY_ID = "policyId"
    DESCRIPTION = "description"
    CARE_TYPE = "careType"
    DIAGNOSIS = "diagnosis"
    INCIDENT_DATE = "incidentDate"
    AMOUNT_SUBMITTED = "amountSubmitted"
    SUBMITTED_DATE = "submittedDate"
    AMOUNT_APPROVED = "amountApproved"
    AMOUNT_DENIED = "amountDenied"
    AMOUNT_UNPROCESSED = "amountUnprocessed"
    DEDUCTIBLE_APPLIED = "deductibleApplied"
    COPAY_APPLIED = "copayApplied"
    SETTLEMENT_DATE = "settlementDate"
    SETTLEMENT_NUMBER = "settlementNumber"
    SETTLEMENT_NOTES = "settlementNotes"


class FieldGroup(str, Enum):
    """Clusters of editable fields unioned to build per-status field sets."""
    CORE = "core"
    SUBMISSION = "submission"
    SETTLEMENT = "settlement"


class CareType(str, Enum):
    AMBULATORY = "AMBULATORY"
    HOSPITALARY = "HOSPITALARY"
    OTHER = "OTHER"


class TransitionOperation(str, Enum):
    """Remote transition operations, valued by their endpoint path segment.

    Each target status maps to exactly one operation, except SUBMITTED which
    is reached through PROVIDE_INFO when the claim sits in PENDING_INFO.
    """
    REVIEW = "review"
    SUBMIT = "submit"
    PROVIDE_INFO = "provide-info"
    RETURN = "return"
    REQUEST_INFO = "request-info"
    SETTLE = "settle"
    CANCEL = "cancel"


class FileStatus(str, Enum):
    """Per-file upload states.

    pending -> uploading -> success | error; error -> uploading on retry.
    """
    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


class FileCategory(str, Enum):
    """Document categories a claim attachment can be tagged with."""
    INVOICE = "invoice"
    RECEIPT = "receipt"
    MEDICAL_REPORT = "medical_report"
    PRESCRIPTION = "prescription"
    ID_DOCUMENT = "id_document"
    OTHER = "other"


class ErrorKind(str, Enum):
    """Categories of remote-call failures as presented to the user."""
    NETWORK = "network"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    MISSING_FIELDS = "missing_fields"
    FIELD_ERRORS = "field_errors"
    NOT_EDITABLE = "not_editable"
    GENERIC = "generic"


class FieldErrorCode(str, Enum):
    """Validation error codes for individual field failures."""
    REQUIRED = "required"
    INVALID_TYPE = "invalid_type"
    INVALID_FORMAT = "invalid_format"
    INVALID_VALUE = "invalid_value"
    TOO_LONG = "too_long"
    TOO_SHORT = "too_short"
    TOO_MANY = "too_many"
    NOT_EDITABLE = "not_editable"
    CUSTOM = "custom"


class EventType(str, Enum):
    """Notification types emitted on the event stream."""
    TRANSITION_SUCCEEDED = "transition.succeeded"
    TRANSITION_FAILED = "transition.failed"
    UPLOAD_COMPLETED = "upload.completed"
    UPLOAD_FAILED = "upload.failed"
    CLAIM_CREATED = "claim.created"
    CLAIM_UPDATED = "claim.updated"


__all__ = [
    "ClaimStatus",
    "ClaimField",
    "FieldGroup",
    "CareType",
    "TransitionOperation",
    "FileStatus",
    "FileCategory",
    "ErrorKind",
    "FieldErrorCode",
    "EventType",
]
