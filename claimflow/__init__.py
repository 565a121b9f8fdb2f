"""claimflow: claim lifecycle core for a claims-management client.

claimflow provides:
- The claim lifecycle state machine (statuses, legal transitions,
  editable and required fields per status, reason-required moves)
- A transition orchestrator issuing exactly one remote call per move
- A field diff helper producing minimal update change-sets
- An asynchronous multi-file upload pipeline with pluggable upload protocols
- Structured, labelled error extraction for every remote failure

Basic usage:
    >>> from claimflow import ClaimStatus, allowed_transitions
    >>> [s.value for s in allowed_transitions(ClaimStatus.IN_REVIEW)]
    ['SUBMITTED', 'RETURNED', 'CANCELLED']
"""

__version__ = "0.1.0"
__author__ = "claimflow Team"

# Version info
VERSION = (0, 1, 0)

# Core exports
from claimflow.api import ClaimsApi, FileTransfer
from claimflow.cache import QueryCache, claim_keys
from claimflow.claims import (
    NO_CHANGES,
    ClaimEditSession,
    NewClaimSubmission,
    UploadsNotReadyError,
    claim_files_pipeline,
    new_claim_pipeline,
)
from claimflow.errors import ClaimApiError, DisplayError
from claimflow.events import ClaimEvent, EventEmitter
from claimflow.files import UploadFile
from claimflow.lifecycle import (
    InvalidTransitionError,
    allowed_transitions,
    can_transition,
    editable_fields,
    is_reason_required,
    is_terminal,
    required_fields,
)
from claimflow.transitions import ClaimRef, TransitionOrchestrator
from claimflow.types import ClaimField, ClaimStatus, FileCategory, FileStatus
from claimflow.uploads import UploadPipeline

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "ClaimsApi",
    "FileTransfer",
    "QueryCache",
    "claim_keys",
    "NO_CHANGES",
    "ClaimEditSession",
    "NewClaimSubmission",
    "UploadsNotReadyError",
    "claim_files_pipeline",
    "new_claim_pipeline",
    "ClaimApiError",
    "DisplayError",
    "ClaimEvent",
    "EventEmitter",
    "UploadFile",
    "InvalidTransitionError",
    "allowed_transitions",
    "can_transition",
    "editable_fields",
    "is_reason_required",
    "is_terminal",
    "required_fields",
    "ClaimRef",
    "TransitionOrchestrator",
    "ClaimField",
    "ClaimStatus",
    "FileCategory",
    "FileStatus",
    "UploadPipeline",
]
