"""Upload adapters: the two upload protocols the pipeline can drive.

- PendingUploadAdapter (two steps): request a staging target, transfer.
  Files are associated with the claim by the server once it is created
  from the collected pending-upload ids.
- ClaimFileUploadAdapter (three steps): request a claim-scoped target,
  transfer, confirm. The confirm call finalizes the attachment record.

Adapters are injected into UploadPipeline; the pipeline only relies on the
UploadAdapter protocol below.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from typing_extensions import Protocol

from claimflow.api import ClaimsApi
from claimflow.cache import QueryCache, claim_keys
from claimflow.files import UploadFile
from claimflow.types import FileCategory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadTicket:
    """Where to send the bytes, plus the adapter's own upload result."""
    upload_url: str
    result: Any


class UploadAdapter(Protocol):
    """Upload protocol consumed by UploadPipeline.

    ``confirm_upload`` is optional: adapters without a confirm step set it
    to None.
    """

    confirm_upload: Optional[Callable[[Any], Awaitable[None]]]

    async def begin_upload(
        self, file: UploadFile, category: Optional[FileCategory]
    ) -> UploadTicket:
        ...

    def to_submission_value(self, result: Any) -> str:
        ...


@dataclass(frozen=True)
class PendingUploadResult:
    pending_upload_id: str


@dataclass(frozen=True)
class ClaimFileUploadResult:
    file_id: str


class PendingUploadAdapter:
    """Pre-creation adapter: stage now, associate when the claim is created.

    Args:
        api: Claims API client
        session_key: Groups the staged uploads of one new-claim form
    """

    confirm_upload = None

    def __init__(self, api: ClaimsApi, session_key: str):
        self._api = api
        self.session_key = session_key

    async def begin_upload(
        self, file: UploadFile, category: Optional[FileCategory]
    ) -> UploadTicket:
        response = await self._api.create_pending_upload(self.session_key, file, category)
        return UploadTicket(
            upload_url=response["uploadUrl"],
            result=PendingUploadResult(pending_upload_id=response["pendingUploadId"]),
        )

    def to_submission_value(self, result: PendingUploadResult) -> str:
        return result.pending_upload_id


class ClaimFileUploadAdapter:
    """Post-creation adapter for files added to an existing claim.

    Args:
        api: Claims API client
        claim_id: The claim the files attach to
        cache: Optional query cache; the claim's file list is invalidated
            after each confirmed file
    """

    def __init__(self, api: ClaimsApi, claim_id: str, cache: Optional[QueryCache] = None):
        self._api = api
        self.claim_id = claim_id
        self._cache = cache

    async def begin_upload(
        self, file: UploadFile, category: Optional[FileCategory]
    ) -> UploadTicket:
        response = await self._api.create_claim_file_upload(self.claim_id, file, category)
        return UploadTicket(
            upload_url=response["uploadUrl"],
            result=ClaimFileUploadResult(file_id=response["fileId"]),
        )

    async def confirm_upload(self, result: ClaimFileUploadResult) -> None:
        await self._api.confirm_claim_file(self.claim_id, result.file_id)
        logger.debug("Confirmed file %s on claim %s", result.file_id, self.claim_id)
        if self._cache is not None:
            self._cache.invalidate(claim_keys.files(self.claim_id))

    def to_submission_value(self, result: ClaimFileUploadResult) -> str:
        return result.file_id


__all__ = [
    "UploadTicket",
    "UploadAdapter",
    "PendingUploadResult",
    "ClaimFileUploadResult",
    "PendingUploadAdapter",
    "ClaimFileUploadAdapter",
]
