"""Claim lifecycle definition.

This module holds the immutable tables that describe the claim lifecycle:
- Legal status transitions (the single source of truth for legality)
- Terminal statuses (derived: statuses with no outgoing transition)
- Editable fields per status
- Required fields (invariants) per status
- Transitions that require an operator-supplied reason

The tables are read-only and only reachable through the query functions
below. The backend enforces the same rules authoritatively; this copy exists
so callers can pre-render requirements and reject impossible moves early.

Usage:
    >>> from claimflow.lifecycle import can_transition, is_reason_required
    >>> from claimflow.types import ClaimStatus
    >>> can_transition(ClaimStatus.DRAFT, ClaimStatus.IN_REVIEW)
    True
    >>> is_reason_required(ClaimStatus.DRAFT, ClaimStatus.CANCELLED)
    True
"""

from types import MappingProxyType
from typing import Any, FrozenSet, Iterable, List, Mapping, Tuple

from claimflow.types import ClaimField, ClaimStatus, FieldGroup


class InvalidTransitionError(Exception):
    """Raised when a status move is not present in the transition table.

    Attributes:
        current_status: The status the claim is in
        target_status: The status that was requested
    """

    def __init__(self, current_status: ClaimStatus, target_status: ClaimStatus):
        self.current_status = current_status
        self.target_status = target_status
        allowed = _TRANSITIONS[current_status]
        if allowed:
            message = (
                f"Invalid transition: cannot move from '{current_status.value}' "
                f"to '{target_status.value}'. Allowed targets: "
                f"{', '.join(s.value for s in allowed)}"
            )
        else:
            message = (
                f"Invalid transition: '{current_status.value}' is a terminal "
                f"status, no transitions are allowed."
            )
        super().__init__(message)


_S = ClaimStatus
_F = ClaimField

_FIELD_GROUPS: Mapping[FieldGroup, Tuple[ClaimField, ...]] = MappingProxyType({
    FieldGroup.CORE: (
        _F.POLICY_ID,
        _F.DESCRIPTION,
        _F.CARE_TYPE,
        _F.DIAGNOSIS,
        _F.INCIDENT_DATE,
    ),
    FieldGroup.SUBMISSION: (
        _F.AMOUNT_SUBMITTED,
        _F.SUBMITTED_DATE,
    ),
    FieldGroup.SETTLEMENT: (
        _F.AMOUNT_APPROVED,
        _F.AMOUNT_DENIED,
        _F.AMOUNT_UNPROCESSED,
        _F.DEDUCTIBLE_APPLIED,
        _F.COPAY_APPLIED,
        _F.SETTLEMENT_DATE,
        _F.SETTLEMENT_NUMBER,
        _F.SETTLEMENT_NOTES,
    ),
})

_CORE = _FIELD_GROUPS[FieldGroup.CORE]
_SUBMISSION = _FIELD_GROUPS[FieldGroup.SUBMISSION]
_SETTLEMENT = _FIELD_GROUPS[FieldGroup.SETTLEMENT]

# Ordered: the first entry is the "forward" move on the happy path.
_TRANSITIONS: Mapping[ClaimStatus, Tuple[ClaimStatus, ...]] = MappingProxyType({
    _S.DRAFT: (_S.IN_REVIEW, _S.CANCELLED),
    _S.IN_REVIEW: (_S.SUBMITTED, _S.RETURNED, _S.CANCELLED),
    _S.SUBMITTED: (_S.PENDING_INFO, _S.SETTLED, _S.CANCELLED),
    _S.PENDING_INFO: (_S.SUBMITTED, _S.CANCELLED),
    _S.RETURNED: (),
    _S.SETTLED: (),
    _S.CANCELLED: (),
})

_TERMINAL: FrozenSet[ClaimStatus] = frozenset(
    status for status, targets in _TRANSITIONS.items() if not targets
)

_EDITABLE_FIELDS: Mapping[ClaimStatus, Tuple[ClaimField, ...]] = MappingProxyType({
    _S.DRAFT: _CORE,
    _S.IN_REVIEW: _CORE + _SUBMISSION,
    _S.SUBMITTED: _SETTLEMENT,
    _S.PENDING_INFO: (),
    _S.RETURNED: (),
    _S.SETTLED: (),
    _S.CANCELLED: (),
})

_INVARIANTS: Mapping[ClaimStatus, Tuple[ClaimField, ...]] = MappingProxyType({
    _S.DRAFT: (),
    _S.IN_REVIEW: _CORE,
    _S.SUBMITTED: _CORE + _SUBMISSION,
    _S.PENDING_INFO: _CORE + _SUBMISSION,
    _S.RETURNED: _CORE,
    _S.SETTLED: _CORE + _SUBMISSION + _SETTLEMENT,
    _S.CANCELLED: (),
})

# None as source is the wildcard: the rule applies regardless of current status.
# Specific pairs and wildcards compose by union.
_REASON_REQUIRED: FrozenSet[Tuple[Any, ClaimStatus]] = frozenset({
    (_S.IN_REVIEW, _S.RETURNED),
    (_S.SUBMITTED, _S.PENDING_INFO),
    (_S.PENDING_INFO, _S.SUBMITTED),
    (None, _S.CANCELLED),
})


def is_terminal(status: ClaimStatus) -> bool:
    """Check whether no transitions leave this status."""
    return status in _TERMINAL


def field_group(group: FieldGroup) -> Tuple[ClaimField, ...]:
    """Fields of ``group``, in form order."""
    return _FIELD_GROUPS[group]


def allowed_transitions(status: ClaimStatus) -> Tuple[ClaimStatus, ...]:
    """Statuses reachable from ``status`` in one step, in table order."""
    return _TRANSITIONS[status]


def can_transition(from_status: ClaimStatus, to_status: ClaimStatus) -> bool:
    """Check if moving from ``from_status`` to ``to_status`` is legal.

    Examples:
        >>> can_transition(ClaimStatus.SUBMITTED, ClaimStatus.SETTLED)
        True
        >>> can_transition(ClaimStatus.SETTLED, ClaimStatus.SUBMITTED)
        False
    """
    return to_status in _TRANSITIONS[from_status]


def ensure_transition(from_status: ClaimStatus, to_status: ClaimStatus) -> None:
    """Raise InvalidTransitionError unless the move is legal."""
    if not can_transition(from_status, to_status):
        raise InvalidTransitionError(from_status, to_status)


def editable_fields(status: ClaimStatus) -> FrozenSet[ClaimField]:
    """Fields that may be changed while a claim sits in ``status``."""
    return frozenset(_EDITABLE_FIELDS[status])


def required_fields(status: ClaimStatus) -> FrozenSet[ClaimField]:
    """Fields that must be non-empty for a claim to validly occupy ``status``."""
    return frozenset(_INVARIANTS[status])


def is_reason_required(from_status: ClaimStatus, to_status: ClaimStatus) -> bool:
    """Check if a free-text justification is mandatory for this move.

    Examples:
        >>> is_reason_required(ClaimStatus.IN_REVIEW, ClaimStatus.RETURNED)
        True
        >>> is_reason_required(ClaimStatus.IN_REVIEW, ClaimStatus.SUBMITTED)
        False
        >>> is_reason_required(ClaimStatus.PENDING_INFO, ClaimStatus.CANCELLED)
        True
    """
    return (
        (from_status, to_status) in _REASON_REQUIRED
        or (None, to_status) in _REASON_REQUIRED
    )


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def missing_required_fields(
    status: ClaimStatus, values: Mapping[str, Any]
) -> List[ClaimField]:
    """List the invariant fields of ``status`` that are empty in ``values``.

    ``values`` is keyed by wire field name (e.g. ``"policyId"``). A field is
    empty when absent, None, a blank string or an empty collection. Fields
    are returned in table order.

    Examples:
        >>> missing_required_fields(ClaimStatus.DRAFT, {})
        []
        >>> [f.value for f in missing_required_fields(
        ...     ClaimStatus.RETURNED,
        ...     {"policyId": "p1", "description": "x", "careType": "OTHER",
        ...      "diagnosis": "  ", "incidentDate": "2024-01-02"})]
        ['diagnosis']
    """
    return [f for f in _INVARIANTS[status] if _is_empty(values.get(f.value))]


def non_editable_fields(
    status: ClaimStatus, changed: Iterable[str]
) -> List[str]:
    """Names in ``changed`` that are outside the editable set of ``status``."""
    allowed = {f.value for f in _EDITABLE_FIELDS[status]}
    return [name for name in changed if name not in allowed]


__all__ = [
    "InvalidTransitionError",
    "field_group",
    "is_terminal",
    "allowed_transitions",
    "can_transition",
    "ensure_transition",
    "editable_fields",
    "required_fields",
    "is_reason_required",
    "missing_required_fields",
    "non_editable_fields",
]
