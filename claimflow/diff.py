"""Field diff helper for the claim edit form.

Converts an edited draft into the minimal change-set sent to the update
operation: only keys whose value differs from the original. Sending only
changed keys means a concurrent edit to an untouched field by another actor
is never overwritten with a stale value.

Values are compared structurally (``==`` on plain data), so nested lists and
dicts with equal contents are unchanged. Dates are compared as calendar
dates: the API returns ISO timestamps while the form holds ``YYYY-MM-DD``.
"""

import datetime
from typing import Any, Dict, Mapping

from dateutil import parser as date_parser

from claimflow.types import ClaimField

DATE_FIELDS = frozenset({
    ClaimField.INCIDENT_DATE.value,
    ClaimField.SUBMITTED_DATE.value,
    ClaimField.SETTLEMENT_DATE.value,
})


def to_form_date(value: Any) -> Any:
    """Reduce a timestamp (string, date or datetime) to ``YYYY-MM-DD``.

    None and unparseable strings are returned untouched so they still show
    up as changes and are rejected by validation.

    Examples:
        >>> to_form_date("2024-03-05T00:00:00.000Z")
        '2024-03-05'
        >>> to_form_date(None) is None
        True
    """
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        return value.date().isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, str):
        try:
            return date_parser.isoparse(value).date().isoformat()
        except ValueError:
            return value
    return value


def _normalize(name: str, value: Any) -> Any:
    if name in DATE_FIELDS:
        return to_form_date(value)
    return value


def form_values_from_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Map a claim record (as returned by the API) to edit-form values.

    Every editable field is present in the result; missing values become
    None. The policy is read from the nested ``policy`` object.
    """
    policy = record.get("policy")
    values: Dict[str, Any] = {}
    for field in ClaimField:
        if field is ClaimField.POLICY_ID:
            value = policy.get("id") if isinstance(policy, Mapping) else record.get("policyId")
        else:
            value = record.get(field.value)
        values[field.value] = _normalize(field.value, value)
    return values


def diff_changes(
    original: Mapping[str, Any], draft: Mapping[str, Any]
) -> Dict[str, Any]:
    """Return only the draft entries whose value differs from ``original``.

    Keys absent from ``original`` compare against None.

    Examples:
        >>> diff_changes({"diagnosis": None, "description": "x"},
        ...              {"diagnosis": "flu", "description": "x"})
        {'diagnosis': 'flu'}
        >>> diff_changes({"description": "x"}, {"description": "x"})
        {}
    """
    changes: Dict[str, Any] = {}
    for name, value in draft.items():
        new_value = _normalize(name, value)
        if new_value != _normalize(name, original.get(name)):
            changes[name] = new_value
    return changes


def build_update_request(
    record: Mapping[str, Any], draft: Mapping[str, Any]
) -> Dict[str, Any]:
    """Minimal change-set between a claim record and an edited draft."""
    return diff_changes(form_values_from_record(record), draft)


__all__ = [
    "DATE_FIELDS",
    "to_form_date",
    "form_values_from_record",
    "diff_changes",
    "build_update_request",
]
