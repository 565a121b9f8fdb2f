"""Tests for the transition orchestrator.

Tests cover:
- Operation and prompt resolution per target status
- Reason and confirm prompt flows
- Exactly one remote call per confirmed move, none for illegal or cancelled ones
- Cache invalidation and events on success
- Error retention and prompt handling on failure
"""

import asyncio

import httpx
import pytest

from claimflow.cache import claim_keys
from claimflow.lifecycle import InvalidTransitionError
from claimflow.transitions import (
    DEFAULT_PROMPT_TITLE,
    ClaimRef,
    TransitionOrchestrator,
    TransitionPhase,
    prompt_for,
    resolve_operation,
)
from claimflow.types import ClaimStatus, ErrorKind, EventType, TransitionOperation
from claimflow.validation import ValidationEngine

from tests.conftest import body_of, error_response

S = ClaimStatus


def transition_response(status: S, previous: S, claim_id: str = "c1") -> dict:
    return {"id": claim_id, "status": status.value, "previousStatus": previous.value}


class TestResolveOperation:
    """Test target status to operation mapping."""

    @pytest.mark.parametrize("current,target,operation", [
        (S.DRAFT, S.IN_REVIEW, TransitionOperation.REVIEW),
        (S.IN_REVIEW, S.SUBMITTED, TransitionOperation.SUBMIT),
        (S.PENDING_INFO, S.SUBMITTED, TransitionOperation.PROVIDE_INFO),
        (S.IN_REVIEW, S.RETURNED, TransitionOperation.RETURN),
        (S.SUBMITTED, S.PENDING_INFO, TransitionOperation.REQUEST_INFO),
        (S.SUBMITTED, S.SETTLED, TransitionOperation.SETTLE),
        (S.DRAFT, S.CANCELLED, TransitionOperation.CANCEL),
    ])
    def test_mapping(self, current, target, operation):
        """Should name exactly one operation per target."""
        assert resolve_operation(current, target) is operation

    def test_no_operation_into_draft(self):
        """Should reject DRAFT as a target."""
        with pytest.raises(InvalidTransitionError):
            resolve_operation(S.IN_REVIEW, S.DRAFT)


class TestPrompts:
    """Test prompt configuration."""

    def test_resubmit_wording(self):
        """Should use resubmit wording when leaving PENDING_INFO."""
        assert prompt_for(S.PENDING_INFO, S.SUBMITTED).title == "Resubmit Claim"
        assert prompt_for(S.IN_REVIEW, S.SUBMITTED).title == "Submit Claim"

    def test_every_target_has_a_title(self):
        """Should configure a specific title for every reachable target."""
        for target in (S.IN_REVIEW, S.SUBMITTED, S.RETURNED, S.PENDING_INFO, S.SETTLED, S.CANCELLED):
            assert prompt_for(S.DRAFT, target).title != DEFAULT_PROMPT_TITLE

    def test_request_opens_reason_prompt(self, api, cache):
        """Should open the reason prompt and clear old text for reason-required moves."""
        orch = TransitionOrchestrator(ClaimRef("c1", S.IN_REVIEW), api, cache)
        orch.set_reason("left over")

        orch.request_transition(S.RETURNED)

        assert orch.phase is TransitionPhase.AWAITING_REASON
        assert orch.reason_prompt.target_status is S.RETURNED
        assert orch.reason == ""
        assert orch.confirm_prompt is None

    def test_request_opens_confirm_prompt(self, api, cache):
        """Should open the confirm prompt for moves without a reason."""
        orch = TransitionOrchestrator(ClaimRef("c1", S.SUBMITTED), api, cache)
        orch.request_transition(S.SETTLED)
        assert orch.phase is TransitionPhase.AWAITING_CONFIRMATION
        assert orch.confirm_prompt.title == "Settle Claim"

    @pytest.mark.asyncio
    async def test_closing_prompts_makes_no_call(self, api, cache, server):
        """Should leave the claim untouched when prompts are cancelled."""
        orch = TransitionOrchestrator(ClaimRef("c1", S.IN_REVIEW), api, cache)

        orch.request_transition(S.CANCELLED)
        orch.set_reason("typo")
        orch.close_reason_prompt()
        orch.request_transition(S.SUBMITTED)
        orch.close_confirm_prompt()

        assert await orch.submit_reason() is None
        assert await orch.submit_confirmation() is None
        assert server.requests == []
        assert orch.phase is TransitionPhase.IDLE
        assert orch.reason == ""
        assert orch.claim.status is S.IN_REVIEW


class TestIllegalTransitions:
    """Test that illegal moves never reach the API."""

    @pytest.mark.parametrize("current,target", [
        (S.DRAFT, S.SETTLED),
        (S.DRAFT, S.DRAFT),
        (S.SETTLED, S.SUBMITTED),
        (S.CANCELLED, S.IN_REVIEW),
        (S.PENDING_INFO, S.SETTLED),
    ])
    def test_request_raises(self, api, cache, server, current, target):
        """Should raise without opening a prompt or dispatching."""
        orch = TransitionOrchestrator(ClaimRef("c1", current), api, cache)
        with pytest.raises(InvalidTransitionError):
            orch.request_transition(target)
        assert orch.phase is TransitionPhase.IDLE
        assert server.requests == []


class TestSuccessfulTransitions:
    """Test dispatch and reconciliation on success."""

    @pytest.mark.asyncio
    async def test_request_info_with_reason(self, api, cache, server, emitter, events):
        """Should send one request-info call with the reason and invalidate caches."""
        server.route(
            "POST", "/claims/c1/request-info",
            json=transition_response(S.PENDING_INFO, S.SUBMITTED),
        )
        orch = TransitionOrchestrator(ClaimRef("c1", S.SUBMITTED), api, cache, emitter)

        orch.request_transition(S.PENDING_INFO)
        orch.set_reason("Need clarification")
        result = await orch.submit_reason()

        assert len(server.requests) == 1
        request = server.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/claims/c1/request-info"
        assert body_of(request) == {"reason": "Need clarification"}

        assert result.status is S.PENDING_INFO
        assert result.previous_status is S.SUBMITTED
        assert orch.last_result == result
        assert orch.claim == ClaimRef("c1", S.PENDING_INFO)

        assert cache.is_stale(claim_keys.detail("c1"))
        assert cache.is_stale(claim_keys.list({"status": "SUBMITTED"}))
        assert cache.is_stale(claim_keys.list({"page": 2}))
        assert not cache.is_stale(claim_keys.detail("c2"))

        assert orch.phase is TransitionPhase.IDLE
        assert orch.reason == ""
        assert orch.transition_error is None
        assert [e.type for e in events] == [EventType.TRANSITION_SUCCEEDED]
        assert events[0].claim_id == "c1"
        assert events[0].payload["operation"] == "request-info"

    @pytest.mark.asyncio
    async def test_provide_info_from_pending_info(self, api, cache, server):
        """Should use the resubmit-with-info operation, not plain submit."""
        server.route(
            "POST", "/claims/c1/provide-info",
            json=transition_response(S.SUBMITTED, S.PENDING_INFO),
        )
        orch = TransitionOrchestrator(ClaimRef("c1", S.PENDING_INFO), api, cache)

        orch.request_transition(S.SUBMITTED)
        orch.set_reason("  Documents attached  ")
        await orch.submit_reason()

        assert [r.url.path for r in server.requests] == ["/claims/c1/provide-info"]
        assert body_of(server.requests[0]) == {"reason": "Documents attached"}
        assert server.calls(path_prefix="/claims/c1/submit") == []

    @pytest.mark.asyncio
    async def test_confirmed_move_sends_empty_body(self, api, cache, server):
        """Should send an empty body when no reason is required."""
        server.route(
            "POST", "/claims/c1/submit",
            json=transition_response(S.SUBMITTED, S.IN_REVIEW),
        )
        orch = TransitionOrchestrator(ClaimRef("c1", S.IN_REVIEW), api, cache)

        orch.request_transition(S.SUBMITTED)
        result = await orch.submit_confirmation()

        assert result.status is S.SUBMITTED
        assert body_of(server.requests[0]) == {}
        assert orch.confirm_prompt is None

    @pytest.mark.asyncio
    async def test_success_clears_previous_error(self, api, cache, server):
        """Should drop the error of an earlier failed attempt."""
        server.route("POST", "/claims/c1/settle", status=500,
                     json={"error": {"code": "INTERNAL", "message": "Boom"}})
        orch = TransitionOrchestrator(ClaimRef("c1", S.SUBMITTED), api, cache)
        orch.request_transition(S.SETTLED)
        await orch.submit_confirmation()
        assert orch.transition_error is not None

        server.route("POST", "/claims/c1/settle", json=transition_response(S.SETTLED, S.SUBMITTED))
        orch.request_transition(S.SETTLED)
        await orch.submit_confirmation()

        assert orch.transition_error is None
        assert orch.claim.status is S.SETTLED


class TestInFlightGuard:
    """Test at most one transition in flight."""

    @pytest.mark.asyncio
    async def test_rapid_requests_dispatch_once(self, api, cache, server):
        """Should ignore requests and submissions while a call is outstanding."""
        gate = asyncio.Event()

        async def slow_review(request):
            await gate.wait()
            return httpx.Response(200, json=transition_response(S.IN_REVIEW, S.DRAFT))

        server.route("POST", "/claims/c1/review", slow_review)
        orch = TransitionOrchestrator(ClaimRef("c1", S.DRAFT), api, cache)

        orch.request_transition(S.IN_REVIEW)
        first = asyncio.ensure_future(orch.submit_confirmation())
        while not server.requests:
            await asyncio.sleep(0)

        assert orch.is_transitioning
        assert orch.phase is TransitionPhase.IN_FLIGHT
        orch.request_transition(S.IN_REVIEW)
        orch.request_transition(S.CANCELLED)
        assert await orch.submit_confirmation() is None
        assert orch.reason_prompt is None

        gate.set()
        result = await first

        assert result.status is S.IN_REVIEW
        assert len(server.requests) == 1
        assert not orch.is_transitioning

    @pytest.mark.asyncio
    async def test_result_applied_after_refresh(self, api, cache, server):
        """Should apply the response even if the claim was replaced meanwhile."""
        gate = asyncio.Event()

        async def slow_settle(request):
            await gate.wait()
            return httpx.Response(200, json=transition_response(S.SETTLED, S.SUBMITTED))

        server.route("POST", "/claims/c1/settle", slow_settle)
        orch = TransitionOrchestrator(ClaimRef("c1", S.SUBMITTED), api, cache)

        orch.request_transition(S.SETTLED)
        pending = asyncio.ensure_future(orch.submit_confirmation())
        while not server.requests:
            await asyncio.sleep(0)
        orch.claim = ClaimRef("c1", S.PENDING_INFO)
        gate.set()
        await pending

        assert orch.claim.status is S.SETTLED
        assert cache.is_stale(claim_keys.detail("c1"))


class TestFailedTransitions:
    """Test failure handling."""

    @pytest.mark.asyncio
    async def test_reason_prompt_kept_on_failure(self, api, cache, server, emitter, events):
        """Should keep the reason prompt and text, store the error and skip invalidation."""
        server.route(
            "POST", "/claims/c1/return",
            lambda request: error_response(
                400, "INVALID_TRANSITION", "Missing required fields for RETURNED: diagnosis, incidentDate"
            ),
        )
        orch = TransitionOrchestrator(ClaimRef("c1", S.IN_REVIEW), api, cache, emitter)

        orch.request_transition(S.RETURNED)
        orch.set_reason("Wrong patient")
        result = await orch.submit_reason()

        assert result is None
        assert orch.phase is TransitionPhase.AWAITING_REASON
        assert orch.reason == "Wrong patient"
        assert orch.transition_error.kind is ErrorKind.MISSING_FIELDS
        assert orch.transition_error.items == ["Diagnosis", "Incident Date"]
        assert orch.claim.status is S.IN_REVIEW
        assert not cache.is_stale(claim_keys.detail("c1"))
        assert [e.type for e in events] == [EventType.TRANSITION_FAILED]
        assert len(server.requests) == 1

    @pytest.mark.asyncio
    async def test_confirm_prompt_closed_on_network_failure(self, api, cache, server):
        """Should close the confirm prompt and report a network error."""
        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        server.route("POST", "/claims/c1/review", unreachable)
        orch = TransitionOrchestrator(ClaimRef("c1", S.DRAFT), api, cache)

        orch.request_transition(S.IN_REVIEW)
        await orch.submit_confirmation()

        assert orch.phase is TransitionPhase.IDLE
        assert orch.transition_error.kind is ErrorKind.NETWORK
        assert not orch.is_transitioning

        orch.dismiss_error()
        assert orch.transition_error is None

    @pytest.mark.asyncio
    async def test_no_automatic_retry(self, api, cache, server):
        """Should make exactly one attempt per confirmation."""
        server.route("POST", "/claims/c1/settle", status=503,
                     json={"error": {"code": "UNAVAILABLE", "message": "Try later"}})
        orch = TransitionOrchestrator(ClaimRef("c1", S.SUBMITTED), api, cache)

        orch.request_transition(S.SETTLED)
        await orch.submit_confirmation()

        assert len(server.requests) == 1
        assert orch.transition_error.description == "Try later"


class TestReasonValidation:
    """Test reasons rejected before dispatch."""

    @pytest.mark.asyncio
    async def test_blank_reason_is_ignored(self, api, cache, server):
        """Should do nothing while the reason is blank."""
        orch = TransitionOrchestrator(ClaimRef("c1", S.DRAFT), api, cache)
        orch.request_transition(S.CANCELLED)
        orch.set_reason("   ")

        assert await orch.submit_reason() is None
        assert server.requests == []
        assert orch.transition_error is None
        assert orch.phase is TransitionPhase.AWAITING_REASON

    @pytest.mark.asyncio
    async def test_overlong_reason_is_rejected_locally(self, api, cache, server):
        """Should report a too-long reason without a remote call."""
        orch = TransitionOrchestrator(ClaimRef("c1", S.DRAFT), api, cache)
        orch.request_transition(S.CANCELLED)
        orch.set_reason("x" * 1001)

        assert await orch.submit_reason() is None
        assert server.requests == []
        assert orch.transition_error.kind is ErrorKind.FIELD_ERRORS
        assert orch.transition_error.items == ["Reason: Must be at most 1000 characters"]
        assert orch.reason_prompt is not None


class TestExclusivePrompts:
    """Test that at most one prompt is open."""

    @pytest.mark.asyncio
    async def test_reason_prompt_replaces_confirm_prompt(self, api, cache, server):
        """Should close the confirm prompt when a reason prompt opens."""
        orch = TransitionOrchestrator(ClaimRef("c1", S.SUBMITTED), api, cache)
        orch.request_transition(S.SETTLED)
        orch.request_transition(S.PENDING_INFO)

        assert orch.phase is TransitionPhase.AWAITING_REASON
        assert orch.confirm_prompt is None
        assert await orch.submit_confirmation() is None
        assert server.requests == []

    def test_confirm_prompt_replaces_reason_prompt(self, api, cache):
        """Should close the reason prompt and drop its text when a confirm prompt opens."""
        orch = TransitionOrchestrator(ClaimRef("c1", S.SUBMITTED), api, cache)
        orch.request_transition(S.PENDING_INFO)
        orch.set_reason("Need the invoice")
        orch.request_transition(S.SETTLED)

        assert orch.phase is TransitionPhase.AWAITING_CONFIRMATION
        assert orch.reason_prompt is None
        assert orch.reason == ""


class TestRefreshWhilePromptOpen:
    """Test prompts opened before the bound claim changed status."""

    @pytest.mark.asyncio
    async def test_confirm_refused_when_reason_now_required(self, api, cache, server, emitter, events):
        """Should not resubmit without a reason after the claim moved to PENDING_INFO."""
        orch = TransitionOrchestrator(ClaimRef("c1", S.IN_REVIEW), api, cache, emitter)
        orch.request_transition(S.SUBMITTED)
        orch.claim = ClaimRef("c1", S.PENDING_INFO)

        assert await orch.submit_confirmation() is None

        assert server.requests == []
        assert events == []
        assert orch.phase is TransitionPhase.IDLE
        assert orch.transition_error.title == "Claim status changed"
        assert not cache.is_stale(claim_keys.detail("c1"))

    @pytest.mark.asyncio
    async def test_confirm_refused_when_claim_became_terminal(self, api, cache, server):
        """Should not settle a claim that was cancelled meanwhile."""
        orch = TransitionOrchestrator(ClaimRef("c1", S.SUBMITTED), api, cache)
        orch.request_transition(S.SETTLED)
        orch.claim = ClaimRef("c1", S.CANCELLED)

        assert await orch.submit_confirmation() is None

        assert server.requests == []
        assert orch.confirm_prompt is None
        assert orch.transition_error is not None

    @pytest.mark.asyncio
    async def test_reason_refused_when_no_longer_required(self, api, cache, server):
        """Should not send a reason for a move that no longer takes one."""
        orch = TransitionOrchestrator(ClaimRef("c1", S.PENDING_INFO), api, cache)
        orch.request_transition(S.SUBMITTED)
        orch.set_reason("Invoice attached")
        orch.claim = ClaimRef("c1", S.IN_REVIEW)

        assert await orch.submit_reason() is None

        assert server.requests == []
        assert orch.reason_prompt is None
        assert orch.reason == ""

    @pytest.mark.asyncio
    async def test_compatible_refresh_dispatches_from_current_status(self, api, cache, server):
        """Should dispatch when the move keeps the same prompt in the new status."""
        server.route("POST", "/claims/c1/cancel", json=transition_response(S.CANCELLED, S.IN_REVIEW))
        orch = TransitionOrchestrator(ClaimRef("c1", S.DRAFT), api, cache)
        orch.request_transition(S.CANCELLED)
        orch.set_reason("Duplicate")
        orch.claim = ClaimRef("c1", S.IN_REVIEW)

        result = await orch.submit_reason()

        assert result.previous_status is S.IN_REVIEW
        assert [body_of(r) for r in server.requests] == [{"reason": "Duplicate"}]
        assert orch.claim == ClaimRef("c1", S.CANCELLED)


class TestConfirmationBody:
    """Test that confirmation bodies are checked before dispatch."""

    @pytest.mark.asyncio
    async def test_rejected_body_is_not_sent(self, api, cache, server, monkeypatch):
        """Should stop at the transition body schema like reasons stop at theirs."""
        strict = ValidationEngine({"type": "object", "required": ["notes"]})
        monkeypatch.setattr("claimflow.transitions.transition_validator", strict)
        orch = TransitionOrchestrator(ClaimRef("c1", S.SUBMITTED), api, cache)
        orch.request_transition(S.SETTLED)

        assert await orch.submit_confirmation() is None

        assert server.requests == []
        assert orch.transition_error.kind is ErrorKind.FIELD_ERRORS
        assert orch.confirm_prompt is not None
