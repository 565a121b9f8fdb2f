"""JSON Schema validation of claim request bodies.

This module mirrors the wire contracts of the claims API as Draft 7 JSON
Schemas and provides a ValidationEngine that checks request bodies before
they are dispatched, translating jsonschema errors into FieldError objects.

Local validation is a responsiveness aid only. The server validates the same
bodies authoritatively and its errors are rendered through the same path.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import jsonschema
from jsonschema import Draft7Validator, FormatChecker

from claimflow.errors import FieldError, RequestValidationError
from claimflow.types import CareType, FieldErrorCode

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
DECIMAL_PATTERN = r"^\d+(\.\d{1,2})?$"
NON_BLANK_PATTERN = r"\S"

_PATTERN_MESSAGES = {
    DATE_PATTERN: "Invalid date format (YYYY-MM-DD)",
    DECIMAL_PATTERN: "Invalid decimal format",
    NON_BLANK_PATTERN: "Must not be blank",
}

MAX_REASON_LENGTH = 1000
MAX_NOTES_LENGTH = 2000
MAX_PENDING_UPLOADS = 20

_optional_date = {"type": ["string", "null"], "pattern": DATE_PATTERN, "format": "date"}
_optional_decimal = {"type": ["string", "null"], "pattern": DECIMAL_PATTERN}
_notes = {"type": "string", "maxLength": MAX_NOTES_LENGTH}

TRANSITION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {"notes": _notes},
    "additionalProperties": False,
}

TRANSITION_WITH_REASON_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "reason": {
            "type": "string",
            "minLength": 1,
            "maxLength": MAX_REASON_LENGTH,
            "pattern": NON_BLANK_PATTERN,
        },
        "notes": _notes,
    },
    "required": ["reason"],
    "additionalProperties": False,
}

CLAIM_UPDATE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "policyId": {"type": ["string", "null"], "minLength": 1},
        "description": {
            "type": "string",
            "minLength": 1,
            "maxLength": 2000,
            "pattern": NON_BLANK_PATTERN,
        },
        "careType": {"enum": [c.value for c in CareType] + [None]},
        "diagnosis": {"type": ["string", "null"], "maxLength": 1000},
        "incidentDate": _optional_date,
        "amountSubmitted": _optional_decimal,
        "submittedDate": _optional_date,
        "amountApproved": _optional_decimal,
        "amountDenied": _optional_decimal,
        "amountUnprocessed": _optional_decimal,
        "deductibleApplied": _optional_decimal,
        "copayApplied": _optional_decimal,
        "settlementDate": _optional_date,
        "settlementNumber": {"type": ["string", "null"], "maxLength": 100},
        "settlementNotes": {"type": ["string", "null"], "maxLength": 2000},
    },
    "additionalProperties": False,
}

CREATE_CLAIM_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "clientId": {"type": "string", "minLength": 1},
        "affiliateId": {"type": "string", "minLength": 1},
        "patientId": {"type": "string", "minLength": 1},
        "description": {
            "type": "string",
            "minLength": 1,
            "maxLength": 2000,
            "pattern": NON_BLANK_PATTERN,
        },
        "pendingUploadIds": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
            "maxItems": MAX_PENDING_UPLOADS,
        },
    },
    "required": ["clientId", "affiliateId", "patientId", "description"],
}


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a request body.

    Attributes:
        is_valid: Whether the body passed all checks
        errors: One FieldError per failing field (empty if valid)
        missing_fields: Paths of required fields that are absent
        invalid_fields: Paths of present fields that failed a constraint
    """
    is_valid: bool
    errors: List[FieldError]
    missing_fields: Optional[List[str]] = None
    invalid_fields: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.missing_fields is not None:
            result["missingFields"] = self.missing_fields
        if self.invalid_fields is not None:
            result["invalidFields"] = self.invalid_fields
        return result

    def raise_for_errors(self) -> None:
        """Raise RequestValidationError if the body was invalid."""
        if not self.is_valid:
            raise RequestValidationError(self.errors)


class ValidationEngine:
    """Validates request bodies against one of the schemas above.

    Examples:
        >>> engine = ValidationEngine(TRANSITION_WITH_REASON_SCHEMA)
        >>> engine.validate({"reason": "Need clarification"}).is_valid
        True
        >>> engine.validate({}).errors[0].code
        <FieldErrorCode.REQUIRED: 'required'>
    """

    def __init__(self, schema: Dict[str, Any]) -> None:
        """Initialize the engine.

        Raises:
            jsonschema.SchemaError: If the provided schema is invalid
        """
        self.schema = schema
        Draft7Validator.check_schema(schema)
        self.validator = Draft7Validator(schema, format_checker=FormatChecker())

    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        """Validate ``data``, keeping the first error reported for each field."""
        field_errors: List[FieldError] = []
        missing_fields: List[str] = []
        invalid_fields: List[str] = []
        seen = set()

        for error in sorted(self.validator.iter_errors(data), key=lambda e: [str(p) for p in e.path]):
            field_error = self._translate_error(error)
            if field_error.path in seen:
                continue
            seen.add(field_error.path)
            field_errors.append(field_error)
            if field_error.code == FieldErrorCode.REQUIRED:
                missing_fields.append(field_error.path)
            else:
                invalid_fields.append(field_error.path)

        return ValidationResult(
            is_valid=not field_errors,
            errors=field_errors,
            missing_fields=missing_fields,
            invalid_fields=invalid_fields,
        )

    def _translate_error(self, error: jsonschema.ValidationError) -> FieldError:
        """Translate a jsonschema ValidationError into a FieldError.

        Error mapping:
            - 'required' -> REQUIRED
            - 'type' -> INVALID_TYPE
            - 'pattern' / 'format' -> INVALID_FORMAT
            - 'enum' -> INVALID_VALUE
            - 'minLength' / 'maxLength' -> TOO_SHORT / TOO_LONG
            - 'maxItems' -> TOO_MANY
            - 'additionalProperties' -> NOT_EDITABLE
            - anything else -> CUSTOM
        """
        path = ".".join(str(p) for p in error.path)

        if error.validator == "required":
            missing_prop = error.message.split("'")[1] if "'" in error.message else "field"
            full_path = f"{path}.{missing_prop}" if path else missing_prop
            return FieldError(
                path=full_path,
                code=FieldErrorCode.REQUIRED,
                message=f"Field '{full_path}' is required",
                expected="required field",
            )

        if error.validator == "type":
            return FieldError(
                path=path,
                code=FieldErrorCode.INVALID_TYPE,
                message=f"Expected {error.validator_value}, got {type(error.instance).__name__}",
                expected=error.validator_value,
                received=type(error.instance).__name__,
            )

        if error.validator == "pattern":
            pattern = error.validator_value
            return FieldError(
                path=path,
                code=FieldErrorCode.INVALID_FORMAT,
                message=_PATTERN_MESSAGES.get(pattern, f"Does not match pattern: {pattern}"),
                expected=f"pattern: {pattern}",
                received=error.instance,
            )

        if error.validator == "format":
            return FieldError(
                path=path,
                code=FieldErrorCode.INVALID_FORMAT,
                message="Invalid calendar date" if error.validator_value == "date"
                else f"Invalid format. Expected format: {error.validator_value}",
                expected=error.validator_value,
                received=error.instance,
            )

        if error.validator == "enum":
            allowed = [v for v in error.validator_value if v is not None]
            return FieldError(
                path=path,
                code=FieldErrorCode.INVALID_VALUE,
                message=f"Must be one of: {', '.join(allowed)}",
                expected=error.validator_value,
                received=error.instance,
            )

        if error.validator == "minLength":
            return FieldError(
                path=path,
                code=FieldErrorCode.TOO_SHORT,
                message=f"Must be at least {error.validator_value} characters",
                expected=f"minimum {error.validator_value} characters",
                received=f"{len(error.instance)} characters",
            )

        if error.validator == "maxLength":
            return FieldError(
                path=path,
                code=FieldErrorCode.TOO_LONG,
                message=f"Must be at most {error.validator_value} characters",
                expected=f"maximum {error.validator_value} characters",
                received=f"{len(error.instance)} characters",
            )

        if error.validator == "maxItems":
            return FieldError(
                path=path,
                code=FieldErrorCode.TOO_MANY,
                message=f"At most {error.validator_value} items allowed",
                expected=f"maximum {error.validator_value} items",
                received=f"{len(error.instance)} items",
            )

        if error.validator == "additionalProperties":
            extras = sorted(set(error.instance) - set(error.schema.get("properties", {})))
            return FieldError(
                path=", ".join(extras) or path,
                code=FieldErrorCode.NOT_EDITABLE,
                message="Unknown field",
                received=extras,
            )

        return FieldError(
            path=path,
            code=FieldErrorCode.CUSTOM,
            message=error.message,
            expected=error.validator_value,
            received=error.instance,
        )


transition_validator = ValidationEngine(TRANSITION_SCHEMA)
reason_validator = ValidationEngine(TRANSITION_WITH_REASON_SCHEMA)
claim_update_validator = ValidationEngine(CLAIM_UPDATE_SCHEMA)
create_claim_validator = ValidationEngine(CREATE_CLAIM_SCHEMA)


__all__ = [
    "TRANSITION_SCHEMA",
    "TRANSITION_WITH_REASON_SCHEMA",
    "CLAIM_UPDATE_SCHEMA",
    "CREATE_CLAIM_SCHEMA",
    "ValidationEngine",
    "ValidationResult",
    "transition_validator",
    "reason_validator",
    "claim_update_validator",
    "create_claim_validator",
]
