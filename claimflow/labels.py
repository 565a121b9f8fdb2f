"""Display labels for statuses, fields and file categories.

Used when turning raw API errors into user-facing messages so that wire
identifiers like ``amountSubmitted`` are never shown to the end user.
"""

from typing import Dict

from claimflow.types import ClaimStatus, FileCategory

STATUS_LABELS: Dict[ClaimStatus, str] = {
    ClaimStatus.DRAFT: "Draft",
    ClaimStatus.IN_REVIEW: "In Review",
    ClaimStatus.SUBMITTED: "Submitted",
    ClaimStatus.PENDING_INFO: "Pending Info",
    ClaimStatus.RETURNED: "Returned",
    ClaimStatus.SETTLED: "Settled",
    ClaimStatus.CANCELLED: "Cancelled",
}

CLAIM_FIELD_LABELS: Dict[str, str] = {
    # Relations
    "clientId": "Client",
    "affiliateId": "Affiliate",
    "patientId": "Patient",
    "policyId": "Policy",

    # Claim info
    "careType": "Care Type",
    "diagnosis": "Diagnosis",
    "description": "Description",

    # Dates
    "incidentDate": "Incident Date",
    "submittedDate": "Submission Date",
    "settlementDate": "Settlement Date",

    # Financial
    "amountSubmitted": "Amount Submitted",
    "amountApproved": "Amount Approved",
    "amountDenied": "Amount Denied",
    "amountUnprocessed": "Amount Unprocessed",
    "deductibleApplied": "Deductible",
    "copayApplied": "Copay",

    # Settlement
    "settlementNumber": "Settlement Number",
    "settlementNotes": "Settlement Notes",

    # Other
    "reason": "Reason",
    "notes": "Notes",
    "claimNumber": "Claim Number",
    "pendingUploadIds": "Attachments",
}

CATEGORY_LABELS: Dict[FileCategory, str] = {
    FileCategory.INVOICE: "Invoice",
    FileCategory.RECEIPT: "Receipt",
    FileCategory.MEDICAL_REPORT: "Medical report",
    FileCategory.PRESCRIPTION: "Prescription",
    FileCategory.ID_DOCUMENT: "ID document",
    FileCategory.OTHER: "Other",
}


def field_label(name: str) -> str:
    """Label for a wire field name, falling back to the name itself."""
    return CLAIM_FIELD_LABELS.get(name, name)


def category_label(category: FileCategory) -> str:
    return CATEGORY_LABELS[FileCategory(category)]


def status_label(status: str) -> str:
    """Label for a status value, falling back to the raw value."""
    try:
        return STATUS_LABELS[ClaimStatus(status)]
    except ValueError:
        return status


__all__ = [
    "STATUS_LABELS",
    "CLAIM_FIELD_LABELS",
    "CATEGORY_LABELS",
    "field_label",
    "status_label",
    "category_label",
]
