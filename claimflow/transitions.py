"""Transition orchestration for a single claim.

TransitionOrchestrator turns "move this claim to status X" into exactly one
remote call:

1. ``request_transition(target)`` checks legality against the lifecycle
   table and opens either the reason prompt (when a justification is
   mandatory for the move) or the lighter confirm prompt.
2. ``submit_reason()`` / ``submit_confirmation()`` dispatch the single
   remote operation named by the target status.
   If the claim was refreshed into another status since the prompt opened,
   the move is checked again and refused when it no longer fits the prompt.
3. On success both prompts close, any previous error is cleared and the
   claim's cached detail and list views are marked stale.
4. On failure the confirm prompt closes, the reason prompt and its text
   stay as they were, and a DisplayError is stored. Nothing is retried.

At most one transition is in flight per orchestrator; requests arriving
meanwhile are ignored.

Usage:
    >>> orchestrator = TransitionOrchestrator(
    ...     ClaimRef("c1", ClaimStatus.SUBMITTED), api, cache)   # doctest: +SKIP
    >>> orchestrator.request_transition(ClaimStatus.PENDING_INFO)  # doctest: +SKIP
    >>> orchestrator.set_reason("Need clarification")             # doctest: +SKIP
    >>> await orchestrator.submit_reason()                        # doctest: +SKIP
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from claimflow.api import ClaimsApi, TransitionResult
from claimflow.cache import QueryCache, claim_keys
from claimflow.errors import (
    DisplayError,
    RequestValidationError,
    extract_transition_error,
    status_changed_error,
)
from claimflow.events import ClaimEvent, EventEmitter
from claimflow.lifecycle import (
    InvalidTransitionError,
    can_transition,
    ensure_transition,
    is_reason_required,
)
from claimflow.observability import get_logger
from claimflow.types import ClaimStatus, EventType, TransitionOperation
from claimflow.validation import reason_validator, transition_validator


@dataclass(frozen=True)
class ClaimRef:
    """The slice of a claim record the orchestrator needs."""
    id: str
    status: ClaimStatus

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ClaimRef":
        return cls(id=record["id"], status=ClaimStatus(record["status"]))


class TransitionPhase(str, Enum):
    IDLE = "idle"
    AWAITING_REASON = "awaiting_reason"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    IN_FLIGHT = "in_flight"


@dataclass(frozen=True)
class TransitionPrompt:
    """Configuration of an open reason or confirm prompt.

    ``from_status`` is the claim status the prompt was opened for.
    """
    from_status: ClaimStatus
    target_status: ClaimStatus
    title: str
    description: Optional[str] = None


_OPERATIONS: Dict[ClaimStatus, TransitionOperation] = {
    ClaimStatus.IN_REVIEW: TransitionOperation.REVIEW,
    ClaimStatus.SUBMITTED: TransitionOperation.SUBMIT,
    ClaimStatus.RETURNED: TransitionOperation.RETURN,
    ClaimStatus.PENDING_INFO: TransitionOperation.REQUEST_INFO,
    ClaimStatus.SETTLED: TransitionOperation.SETTLE,
    ClaimStatus.CANCELLED: TransitionOperation.CANCEL,
}

_PROMPT_TEXTS: Dict[str, Dict[str, str]] = {
    "IN_REVIEW": {
        "title": "Send to Review",
        "description": "The claim will be sent for review.",
    },
    "SUBMITTED": {
        "title": "Submit Claim",
        "description": "The claim will be submitted to the insurer.",
    },
    "SUBMITTED_FROM_PENDING": {
        "title": "Resubmit Claim",
        "description": "Provide the requested information.",
    },
    "RETURNED": {
        "title": "Return Claim",
        "description": "The claim will be returned to the client.",
    },
    "PENDING_INFO": {
        "title": "Request Information",
        "description": "The claim will stay pending until a response is received.",
    },
    "SETTLED": {
        "title": "Settle Claim",
        "description": "The claim will be marked as settled.",
    },
    "CANCELLED": {
        "title": "Cancel Claim",
        "description": "This action cannot be undone.",
    },
}

DEFAULT_PROMPT_TITLE = "Confirm Transition"


def resolve_operation(current: ClaimStatus, target: ClaimStatus) -> TransitionOperation:
    """Name the remote operation that moves a claim into ``target``.

    SUBMITTED is reached through PROVIDE_INFO when the claim sits in
    PENDING_INFO and through SUBMIT otherwise.

    Raises:
        InvalidTransitionError: If no operation leads into ``target``

    Examples:
        >>> resolve_operation(ClaimStatus.PENDING_INFO, ClaimStatus.SUBMITTED)
        <TransitionOperation.PROVIDE_INFO: 'provide-info'>
        >>> resolve_operation(ClaimStatus.IN_REVIEW, ClaimStatus.SUBMITTED)
        <TransitionOperation.SUBMIT: 'submit'>
    """
    if target == ClaimStatus.SUBMITTED and current == ClaimStatus.PENDING_INFO:
        return TransitionOperation.PROVIDE_INFO
    try:
        return _OPERATIONS[target]
    except KeyError:
        raise InvalidTransitionError(current, target) from None


def prompt_for(current: ClaimStatus, target: ClaimStatus) -> TransitionPrompt:
    """Prompt configuration for moving from ``current`` to ``target``."""
    key = target.value
    if target == ClaimStatus.SUBMITTED and current == ClaimStatus.PENDING_INFO:
        key = "SUBMITTED_FROM_PENDING"
    texts = _PROMPT_TEXTS.get(key, {})
    return TransitionPrompt(
        from_status=current,
        target_status=target,
        title=texts.get("title", DEFAULT_PROMPT_TITLE),
        description=texts.get("description"),
    )


class TransitionOrchestrator:
    """Drives status transitions of one claim.

    Args:
        claim: The bound claim; may be replaced when the record is refetched
        api: Claims API client
        cache: Query cache whose claim views are invalidated on success
        emitter: Optional event emitter for transition.succeeded / transition.failed

    Attributes:
        reason_prompt: Open reason prompt, or None
        confirm_prompt: Open confirm prompt, or None
        reason: Reason text being entered
        transition_error: Error of the last failed attempt, or None
        last_result: Response of the last successful attempt, or None
    """

    def __init__(
        self,
        claim: ClaimRef,
        api: ClaimsApi,
        cache: QueryCache,
        emitter: Optional[EventEmitter] = None,
    ) -> None:
        self.claim = claim
        self._api = api
        self._cache = cache
        self._emitter = emitter
        self._in_flight = False
        self.reason_prompt: Optional[TransitionPrompt] = None
        self.confirm_prompt: Optional[TransitionPrompt] = None
        self.reason = ""
        self.transition_error: Optional[DisplayError] = None
        self.last_result: Optional[TransitionResult] = None

    @property
    def is_transitioning(self) -> bool:
        return self._in_flight

    @property
    def phase(self) -> TransitionPhase:
        if self._in_flight:
            return TransitionPhase.IN_FLIGHT
        if self.reason_prompt is not None:
            return TransitionPhase.AWAITING_REASON
        if self.confirm_prompt is not None:
            return TransitionPhase.AWAITING_CONFIRMATION
        return TransitionPhase.IDLE

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def request_transition(self, target: ClaimStatus) -> None:
        """Open the prompt for moving the bound claim to ``target``.

        Ignored while a transition is in flight. Opening one prompt closes
        the other.

        Raises:
            InvalidTransitionError: If the move is not in the lifecycle table
        """
        if self._in_flight:
            return
        current = self.claim.status
        ensure_transition(current, target)
        prompt = prompt_for(current, target)
        if is_reason_required(current, target):
            self.confirm_prompt = None
            self.reason_prompt = prompt
            self.reason = ""
        else:
            self.reason_prompt = None
            self.reason = ""
            self.confirm_prompt = prompt

    def set_reason(self, text: str) -> None:
        self.reason = text

    def close_reason_prompt(self) -> None:
        self.reason_prompt = None
        self.reason = ""

    def close_confirm_prompt(self) -> None:
        self.confirm_prompt = None

    def dismiss_error(self) -> None:
        self.transition_error = None

    async def submit_reason(self) -> Optional[TransitionResult]:
        """Dispatch the move behind the open reason prompt.

        Does nothing without an open prompt or with a blank reason. A reason
        that fails local validation is reported without a remote call.
        """
        if self.reason_prompt is None or self._in_flight:
            return None
        reason = self.reason.strip()
        if not reason:
            return None
        return await self._execute(self.reason_prompt, reason)

    async def submit_confirmation(self) -> Optional[TransitionResult]:
        """Dispatch the move behind the open confirm prompt."""
        if self.confirm_prompt is None or self._in_flight:
            return None
        return await self._execute(self.confirm_prompt, None)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _is_stale(self, prompt: TransitionPrompt, with_reason: bool) -> bool:
        """True when a refresh made ``prompt`` unusable for the current status."""
        current = self.claim.status
        if current == prompt.from_status:
            return False
        target = prompt.target_status
        return (
            not can_transition(current, target)
            or is_reason_required(current, target) != with_reason
        )

    async def _execute(
        self, prompt: TransitionPrompt, reason: Optional[str]
    ) -> Optional[TransitionResult]:
        claim = self.claim
        target = prompt.target_status
        log = get_logger(__name__, claim.id)

        if self._is_stale(prompt, reason is not None):
            log.warning(
                "Prompt for %s -> %s no longer applies in %s",
                prompt.from_status.value, target.value, claim.status.value,
            )
            self.reason_prompt = None
            self.confirm_prompt = None
            self.reason = ""
            self.transition_error = status_changed_error(
                prompt.from_status.value, claim.status.value
            )
            return None

        body: Dict[str, Any] = {"reason": reason} if reason is not None else {}
        validator = reason_validator if reason is not None else transition_validator
        checked = validator.validate(body)
        if not checked.is_valid:
            self.transition_error = extract_transition_error(RequestValidationError(checked.errors))
            return None

        operation = resolve_operation(claim.status, target)

        self._in_flight = True
        try:
            log.info("Dispatching %s (%s -> %s)", operation.value, claim.status.value, target.value)
            result = await self._api.transition(claim.id, operation, body)
        except Exception as exc:
            self.transition_error = extract_transition_error(exc)
            self.confirm_prompt = None
            log.warning("Transition to %s failed: %s", target.value, exc)
            self._emit(EventType.TRANSITION_FAILED, claim, {
                "from": claim.status.value,
                "to": target.value,
                "operation": operation.value,
                "error": self.transition_error.to_dict(),
            })
            return None
        finally:
            self._in_flight = False

        self.reason_prompt = None
        self.confirm_prompt = None
        self.reason = ""
        self.transition_error = None
        self.last_result = result
        self.claim = ClaimRef(id=claim.id, status=result.status)

        self._cache.invalidate(claim_keys.detail(claim.id))
        self._cache.invalidate(claim_keys.lists())

        log.info("Claim moved %s -> %s", result.previous_status.value, result.status.value)
        self._emit(EventType.TRANSITION_SUCCEEDED, claim, {
            "from": result.previous_status.value,
            "to": result.status.value,
            "operation": operation.value,
        })
        return result

    def _emit(self, event_type: EventType, claim: ClaimRef, payload: Dict[str, Any]) -> None:
        if self._emitter is not None:
            self._emitter.emit(ClaimEvent.create(event_type, claim.id, payload))


__all__ = [
    "ClaimRef",
    "TransitionPhase",
    "TransitionPrompt",
    "DEFAULT_PROMPT_TITLE",
    "resolve_operation",
    "prompt_for",
    "TransitionOrchestrator",
]
