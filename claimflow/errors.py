"""Structured error types and user-facing error extraction for claimflow.

Remote failures reach this module as ClaimApiError (built by the API client
from the server's error envelope) or as arbitrary exceptions. They are
classified into the ErrorKind taxonomy and mapped to a DisplayError
(title, description, items) with field names and statuses replaced by
their labels. Nothing here retries; the only retry affordances are the
user re-submitting after correcting the reported fields, and retrying a
failed file upload.

Server message formats recognised:
- "Missing required fields for <STATUS>: field1, field2"
- "Fields not editable in <STATUS> status: field1, field2"
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from claimflow.labels import field_label, status_label
from claimflow.types import ErrorKind, FieldErrorCode


@dataclass(frozen=True)
class FieldError:
    """Per-field validation error details.

    Attributes:
        path: Wire field name (e.g., "amountSubmitted", "reason")
        code: Specific validation error code
        message: Human-readable error description
        expected: Optional - what was expected (format, limit, enum values)
        received: Optional - what was actually received

    Examples:
        >>> err = FieldError(
        ...     path="incidentDate",
        ...     code=FieldErrorCode.INVALID_FORMAT,
        ...     message="Invalid date format (YYYY-MM-DD)",
        ... )
        >>> err.to_dict()["code"]
        'invalid_format'
    """
    path: str
    code: FieldErrorCode
    message: str
    expected: Optional[Any] = None
    received: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "path": self.path,
            "code": self.code.value if isinstance(self.code, FieldErrorCode) else self.code,
            "message": self.message,
        }
        if self.expected is not None:
            result["expected"] = self.expected
        if self.received is not None:
            result["received"] = self.received
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldError":
        """Create FieldError from dict."""
        code = data["code"]
        if isinstance(code, str):
            code = FieldErrorCode(code)
        return cls(
            path=data["path"],
            code=code,
            message=data["message"],
            expected=data.get("expected"),
            received=data.get("received"),
        )


@dataclass(frozen=True)
class DisplayError:
    """User-facing error shape attached to a prompt or form.

    Attributes:
        title: Short headline
        description: One-sentence explanation
        items: Labelled details (missing fields, per-field messages)
        kind: Taxonomy bucket the error was classified into
    """
    title: str
    description: str
    items: List[str] = field(default_factory=list)
    kind: ErrorKind = ErrorKind.GENERIC

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "title": self.title,
            "description": self.description,
            "items": list(self.items),
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DisplayError":
        """Create DisplayError from dict."""
        return cls(
            title=data["title"],
            description=data["description"],
            items=list(data.get("items", [])),
            kind=ErrorKind(data.get("kind", ErrorKind.GENERIC.value)),
        )


class ClaimApiError(Exception):
    """Raised when a remote call to the claims API fails.

    Attributes:
        status: HTTP status code, 0 when no response was received
        code: Machine-readable error code from the error envelope
        message: Server-provided message
        details: Optional details ({"fieldErrors": {...}, "formErrors": [...]})
        request_id: Optional server request identifier
    """

    def __init__(
        self,
        status: int,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ):
        self.status = status
        self.code = code
        self.message = message
        self.details = details
        self.request_id = request_id
        super().__init__(message)

    @property
    def is_network_error(self) -> bool:
        return self.status == 0

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401

    @property
    def is_forbidden(self) -> bool:
        return self.status == 403

    def __repr__(self) -> str:
        return f"ClaimApiError(status={self.status}, code={self.code!r}, message={self.message!r})"


class RequestValidationError(ClaimApiError):
    """Raised before dispatch when a request body fails local validation.

    Carries the field errors in the same ``details`` shape the server uses,
    so it renders through the same extraction path as a server 400.
    """

    def __init__(self, errors: Sequence[FieldError]):
        self.errors = list(errors)
        field_errors: Dict[str, List[str]] = {}
        for err in self.errors:
            message = "required" if err.code == FieldErrorCode.REQUIRED else err.message
            field_errors.setdefault(err.path, []).append(message)
        super().__init__(
            status=400,
            code="VALIDATION_ERROR",
            message="Request validation failed",
            details={"fieldErrors": field_errors},
        )


@dataclass(frozen=True)
class ErrorTexts:
    """Default texts used when a failure carries nothing more specific."""
    default_title: str = "Error"
    default_description: str = "An unexpected error occurred."
    validation_title: str = "Required fields"
    validation_description: str = "Complete the following fields:"


TRANSITION_TEXTS = ErrorTexts(
    default_title="Could not update status",
    validation_title="Required fields",
    validation_description="Complete the following fields to continue:",
)

FORM_TEXTS = ErrorTexts(
    default_title="Could not save",
    default_description="The operation could not be completed.",
    validation_title="Validation error",
    validation_description="Correct the following fields:",
)

_MISSING_FIELDS_RE = re.compile(r"^Missing required fields for (\w+):\s*(.+)$", re.IGNORECASE)
_NOT_EDITABLE_RE = re.compile(r"^Fields not editable in (\w+) status:\s*(.+)$", re.IGNORECASE)


def _split_fields(raw: str) -> List[str]:
    return [name.strip() for name in raw.split(",") if name.strip()]


def parse_missing_fields_message(message: str) -> Optional[DisplayError]:
    """Parse "Missing required fields for STATUS: a, b" into a DisplayError.

    Examples:
        >>> err = parse_missing_fields_message(
        ...     "Missing required fields for SUBMITTED: amountSubmitted, submittedDate")
        >>> err.items
        ['Amount Submitted', 'Submission Date']
    """
    match = _MISSING_FIELDS_RE.match(message)
    if not match:
        return None
    status, fields = match.group(1), _split_fields(match.group(2))
    return DisplayError(
        title="Required fields",
        description=f'To move to "{status_label(status)}", complete the following fields:',
        items=[field_label(name) for name in fields],
        kind=ErrorKind.MISSING_FIELDS,
    )


def not_editable_error(status: str, fields: Sequence[str]) -> DisplayError:
    """DisplayError listing fields that cannot change while in ``status``."""
    return DisplayError(
        title="Fields not editable",
        description=(
            f'The following fields cannot be changed in "{status_label(status)}" status:'
        ),
        items=[field_label(name) for name in fields],
        kind=ErrorKind.NOT_EDITABLE,
    )


def status_changed_error(previous: str, current: str) -> DisplayError:
    """DisplayError for a prompt opened before the claim changed status."""
    return DisplayError(
        title="Claim status changed",
        description=(
            f'The claim moved from "{status_label(previous)}" to '
            f'"{status_label(current)}". Choose the action again.'
        ),
    )


def parse_not_editable_message(message: str) -> Optional[DisplayError]:
    """Parse "Fields not editable in STATUS status: a, b" into a DisplayError."""
    match = _NOT_EDITABLE_RE.match(message)
    if not match:
        return None
    return not_editable_error(match.group(1), _split_fields(match.group(2)))


def _describe_message(message: str, default_title: str) -> DisplayError:
    """Map common message patterns to friendly text for non-structured errors."""
    lower = message.lower()
    if "network" in lower or "timeout" in lower:
        return DisplayError(
            title="Connection error",
            description="Could not reach the server. Check your connection and try again.",
            kind=ErrorKind.NETWORK,
        )
    if "unauthorized" in lower or "401" in lower:
        return DisplayError(
            title="Session expired",
            description="Your session has expired. Please sign in again.",
            kind=ErrorKind.UNAUTHORIZED,
        )
    if "forbidden" in lower or "403" in lower:
        return DisplayError(
            title="Access denied",
            description="You do not have permission to perform this action.",
            kind=ErrorKind.FORBIDDEN,
        )
    return DisplayError(title=default_title, description=message)


def _field_error_items(details: Optional[Dict[str, Any]]) -> List[str]:
    """Collect labelled items from an error envelope's details."""
    if not details:
        return []
    items: List[str] = []

    for form_error in details.get("formErrors") or []:
        parsed = parse_missing_fields_message(form_error)
        if parsed:
            items.extend(parsed.items)
        else:
            items.append(form_error)

    for name, messages in (details.get("fieldErrors") or {}).items():
        label = field_label(name)
        for message in messages:
            if message.lower() == "required":
                items.append(label)
            else:
                items.append(f"{label}: {message}")

    return items


def classify_error(error: BaseException) -> ErrorKind:
    """Place an exception in the ErrorKind taxonomy."""
    return extract_error(error).kind


def extract_error(error: BaseException, texts: ErrorTexts = ErrorTexts()) -> DisplayError:
    """Build a DisplayError from any exception.

    Structured server messages (not-editable, missing fields) take
    precedence, then transport and auth failures, then per-field details,
    then a generic error carrying the server message.
    """
    if not isinstance(error, ClaimApiError):
        return _describe_message(str(error) or texts.default_description, texts.default_title)

    not_editable = parse_not_editable_message(error.message)
    if not_editable:
        return not_editable

    missing = parse_missing_fields_message(error.message)
    if missing:
        return missing

    if error.is_network_error:
        return DisplayError(
            title="No connection",
            description="Check your internet connection and try again.",
            kind=ErrorKind.NETWORK,
        )

    if error.is_unauthorized:
        return DisplayError(
            title="Session expired",
            description="Please sign in again.",
            kind=ErrorKind.UNAUTHORIZED,
        )

    if error.is_forbidden:
        return DisplayError(
            title="Access denied",
            description="You do not have permission to perform this action.",
            kind=ErrorKind.FORBIDDEN,
        )

    items = _field_error_items(error.details)
    if items:
        return DisplayError(
            title=texts.validation_title,
            description=texts.validation_description,
            items=items,
            kind=ErrorKind.FIELD_ERRORS,
        )

    return _describe_message(error.message or texts.default_description, texts.default_title)


def extract_transition_error(error: BaseException) -> DisplayError:
    """DisplayError for a failed status transition."""
    return extract_error(error, TRANSITION_TEXTS)


def extract_form_error(error: BaseException) -> DisplayError:
    """DisplayError for a failed form submission (edit or create)."""
    return extract_error(error, FORM_TEXTS)


__all__ = [
    "FieldError",
    "DisplayError",
    "ClaimApiError",
    "RequestValidationError",
    "ErrorTexts",
    "TRANSITION_TEXTS",
    "FORM_TEXTS",
    "parse_missing_fields_message",
    "not_editable_error",
    "status_changed_error",
    "parse_not_editable_message",
    "classify_error",
    "extract_error",
    "extract_transition_error",
    "extract_form_error",
]
