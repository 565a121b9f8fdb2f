"""Claim edit and creation sessions.

ClaimEditSession saves edits of an existing claim as a minimal change-set.
NewClaimSubmission is the one place where the upload pipeline meets claim
creation: the claim is created only once no file is still uploading or
failed, carrying the pending-upload ids of every successful file.

Both surfaces keep themselves open on failure: the error is stored as a
DisplayError in ``form_error`` and the caller may correct and retry.
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Union

from claimflow.adapters import ClaimFileUploadAdapter, PendingUploadAdapter
from claimflow.api import ClaimsApi, CreateClaimResult
from claimflow.cache import QueryCache, claim_keys
from claimflow.diff import diff_changes, form_values_from_record
from claimflow.errors import DisplayError, extract_form_error, not_editable_error
from claimflow.events import ClaimEvent, EventEmitter
from claimflow.lifecycle import (
    editable_fields,
    missing_required_fields,
    non_editable_fields,
)
from claimflow.observability import get_logger
from claimflow.types import ClaimField, ClaimStatus, EventType, FileStatus
from claimflow.uploads import UploadPipeline
from claimflow.validation import claim_update_validator, create_claim_validator

logger = logging.getLogger(__name__)


class _NoChanges:
    """Returned by ``ClaimEditSession.save`` when the draft equals the claim."""

    def __repr__(self) -> str:
        return "NO_CHANGES"

    def __bool__(self) -> bool:
        return False


NO_CHANGES = _NoChanges()


class UploadsNotReadyError(Exception):
    """Raised when a claim is submitted while its uploads are unsettled.

    Attributes:
        uploading: At least one file is still pending or uploading
        has_errors: At least one file failed and was neither retried nor removed
    """

    def __init__(self, uploading: bool, has_errors: bool):
        self.uploading = uploading
        self.has_errors = has_errors
        if uploading:
            message = "Wait for the files to finish uploading"
        else:
            message = "Some files failed to upload. Retry or remove them"
        super().__init__(message)


class ClaimEditSession:
    """Edit session for one claim record.

    Args:
        record: Claim as returned by the API (``id``, ``status`` and fields)
        api: Claims API client
        cache: Query cache whose claim views are invalidated after a save
        emitter: Optional event emitter for claim.updated
    """

    def __init__(
        self,
        record: Mapping[str, Any],
        api: ClaimsApi,
        cache: QueryCache,
        emitter: Optional[EventEmitter] = None,
    ) -> None:
        self.claim_id: str = record["id"]
        self.status = ClaimStatus(record["status"])
        self.original_values = form_values_from_record(record)
        self._api = api
        self._cache = cache
        self._emitter = emitter
        self._log = get_logger(__name__, self.claim_id)
        self.form_error: Optional[DisplayError] = None
        self.is_saving = False

    @property
    def editable_fields(self) -> List[ClaimField]:
        """Editable fields of the current status, in form order."""
        allowed = editable_fields(self.status)
        return [f for f in ClaimField if f in allowed]

    def missing_fields(self, draft: Mapping[str, Any]) -> List[ClaimField]:
        """Fields the current status requires that the draft leaves empty."""
        return missing_required_fields(self.status, {**self.original_values, **draft})

    def changes(self, draft: Mapping[str, Any]) -> Dict[str, Any]:
        return diff_changes(self.original_values, draft)

    async def save(self, draft: Mapping[str, Any]) -> Union[Dict[str, Any], _NoChanges, None]:
        """Send the minimal change-set between the claim and ``draft``.

        Returns:
            The updated record on success, ``NO_CHANGES`` when the draft
            changes nothing (no remote call), None on failure with
            ``form_error`` set
        """
        changes = self.changes(draft)
        if not changes:
            self.form_error = None
            self._log.debug("No changes to save")
            return NO_CHANGES

        blocked = non_editable_fields(self.status, changes)
        if blocked:
            self.form_error = not_editable_error(self.status.value, blocked)
            return None

        self.is_saving = True
        try:
            claim_update_validator.validate(changes).raise_for_errors()
            updated = await self._api.update_claim(self.claim_id, changes)
        except Exception as exc:
            self.form_error = extract_form_error(exc)
            self._log.warning("Saving %s failed: %s", ", ".join(sorted(changes)), exc)
            return None
        finally:
            self.is_saving = False

        self.form_error = None
        self.original_values = {**self.original_values, **changes}
        self._cache.invalidate(claim_keys.detail(self.claim_id))
        self._cache.invalidate(claim_keys.lists())
        self._log.info("Saved %s", ", ".join(sorted(changes)))
        if self._emitter is not None:
            self._emitter.emit(ClaimEvent.create(
                EventType.CLAIM_UPDATED, self.claim_id, {"fields": sorted(changes)}
            ))
        return updated if updated is not None else dict(changes)

    def dismiss_error(self) -> None:
        self.form_error = None


class NewClaimSubmission:
    """Creates a claim together with the files staged in ``pipeline``.

    Args:
        api: Claims API client
        pipeline: Upload pipeline driven by a PendingUploadAdapter
        cache: Query cache whose claim lists are invalidated after creation
        emitter: Optional event emitter for claim.created
    """

    def __init__(
        self,
        api: ClaimsApi,
        pipeline: UploadPipeline,
        cache: QueryCache,
        emitter: Optional[EventEmitter] = None,
    ) -> None:
        self._api = api
        self.pipeline = pipeline
        self._cache = cache
        self._emitter = emitter
        self.form_error: Optional[DisplayError] = None
        self.is_submitting = False

    @property
    def uploads_busy(self) -> bool:
        return any(
            f.status in (FileStatus.PENDING, FileStatus.UPLOADING) for f in self.pipeline.files
        )

    @property
    def can_submit(self) -> bool:
        return not (self.is_submitting or self.uploads_busy or self.pipeline.has_errors)

    async def submit(self, data: Mapping[str, Any]) -> Optional[CreateClaimResult]:
        """Create the claim from ``data`` plus the ids of the uploaded files.

        Returns:
            The creation result, or None on failure with ``form_error`` set.
            The staged files are kept on failure so the user can retry.

        Raises:
            UploadsNotReadyError: While files are uploading or failed
        """
        if self.uploads_busy or self.pipeline.has_errors:
            raise UploadsNotReadyError(self.uploads_busy, self.pipeline.has_errors)
        if self.is_submitting:
            return None

        payload: Dict[str, Any] = dict(data)
        pending_upload_ids = self.pipeline.get_upload_results()
        if pending_upload_ids:
            payload["pendingUploadIds"] = pending_upload_ids

        self.is_submitting = True
        try:
            create_claim_validator.validate(payload).raise_for_errors()
            result = await self._api.create_claim(payload)
        except Exception as exc:
            self.form_error = extract_form_error(exc)
            logger.warning("Claim creation failed: %s", exc)
            return None
        finally:
            self.is_submitting = False

        self.form_error = None
        self._cache.invalidate(claim_keys.lists())
        if result.file_attachment_errors:
            logger.warning(
                "Claim %s created, %d file(s) could not be attached",
                result.claim_number,
                len(result.file_attachment_errors),
            )
        else:
            logger.info("Claim %s created", result.claim_number)
        if self._emitter is not None:
            self._emitter.emit(ClaimEvent.create(EventType.CLAIM_CREATED, result.id, {
                "claimNumber": result.claim_number,
                "pendingUploads": len(pending_upload_ids),
                "fileAttachmentErrors": result.file_attachment_errors,
            }))
        self.pipeline.clear_files()
        return result


def new_claim_pipeline(
    api: ClaimsApi,
    transfer: Any,
    session_key: Optional[str] = None,
    max_files: Optional[int] = None,
    emitter: Optional[EventEmitter] = None,
) -> UploadPipeline:
    """Upload pipeline staging files before their claim exists."""
    adapter = PendingUploadAdapter(api, session_key or uuid.uuid4().hex)
    return UploadPipeline(adapter, transfer, max_files=max_files, emitter=emitter)


def claim_files_pipeline(
    api: ClaimsApi,
    transfer: Any,
    claim_id: str,
    cache: Optional[QueryCache] = None,
    max_files: Optional[int] = None,
    emitter: Optional[EventEmitter] = None,
) -> UploadPipeline:
    """Upload pipeline attaching files to an existing claim."""
    adapter = ClaimFileUploadAdapter(api, claim_id, cache)
    return UploadPipeline(
        adapter, transfer, max_files=max_files, emitter=emitter, claim_id=claim_id
    )


__all__ = [
    "NO_CHANGES",
    "UploadsNotReadyError",
    "ClaimEditSession",
    "NewClaimSubmission",
    "new_claim_pipeline",
    "claim_files_pipeline",
]
