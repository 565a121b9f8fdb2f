"""HTTP client for the claims API.

ClaimsApi wraps an ``httpx.AsyncClient`` and exposes the remote operations
the lifecycle core depends on: status transitions, claim update and
creation, and the two upload protocols (pending uploads before a claim
exists, claim-scoped uploads with a confirm step). FileTransfer streams a
file to a presigned upload target and reports progress.

Every failure is raised as ClaimApiError. Responses carrying the server's
error envelope ``{"error": {"code", "message", "details", "requestId"}}``
keep those fields; transport failures get status 0 and code NETWORK_ERROR.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from claimflow.config import get_settings
from claimflow.errors import ClaimApiError
from claimflow.files import UploadFile
from claimflow.types import ClaimStatus, FileCategory, TransitionOperation

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class TransitionResult:
    """Status-bearing projection returned by a transition operation."""
    id: str
    status: ClaimStatus
    previous_status: ClaimStatus

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransitionResult":
        return cls(
            id=data["id"],
            status=ClaimStatus(data["status"]),
            previous_status=ClaimStatus(data["previousStatus"]),
        )


@dataclass(frozen=True)
class CreateClaimResult:
    """Response of claim creation.

    Attributes:
        id: New claim id
        claim_number: Human-facing sequential number
        file_attachment_errors: Pending uploads the server could not attach,
            as ``{"fileId": ..., "error": ...}`` entries
    """
    id: str
    claim_number: int
    file_attachment_errors: List[Dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CreateClaimResult":
        return cls(
            id=data["id"],
            claim_number=data["claimNumber"],
            file_attachment_errors=list(data.get("fileAttachmentErrors") or []),
        )


def _error_from_response(response: httpx.Response) -> ClaimApiError:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    error = payload.get("error") if isinstance(payload, dict) else None
    error = error if isinstance(error, dict) else {}
    return ClaimApiError(
        status=response.status_code,
        code=error.get("code") or "UNKNOWN_ERROR",
        message=error.get("message") or "Request failed",
        details=error.get("details"),
        request_id=error.get("requestId"),
    )


class ClaimsApi:
    """Async client for the claims API.

    Args:
        base_url: API root, defaults to ``CLAIMFLOW_API_URL``
        timeout: Per-request timeout in seconds, defaults to ``CLAIMFLOW_API_TIMEOUT``
        client: Optional pre-configured client (tests inject one backed by
            ``httpx.MockTransport``). An injected client is not closed by ``aclose``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        settings = get_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.api_url,
            timeout=timeout if timeout is not None else settings.api_timeout,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ClaimsApi":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(
        self, method: str, path: str, json: Optional[Dict[str, Any]] = None
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out", method, path)
            raise ClaimApiError(0, "NETWORK_ERROR", "Request timeout, no response from server") from exc
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ClaimApiError(0, "NETWORK_ERROR", "No response from server") from exc

        if response.is_error:
            error = _error_from_response(response)
            logger.info("%s %s -> %d %s", method, path, error.status, error.code)
            raise error

        if not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    async def transition(
        self,
        claim_id: str,
        operation: TransitionOperation,
        body: Optional[Dict[str, Any]] = None,
    ) -> TransitionResult:
        """POST /claims/{id}/{operation} with ``{}`` or ``{"reason": ...}``."""
        data = await self._request("POST", f"/claims/{claim_id}/{operation.value}", json=body or {})
        return TransitionResult.from_dict(data)

    async def update_claim(self, claim_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """PATCH /claims/{id} with a minimal change-set."""
        return await self._request("PATCH", f"/claims/{claim_id}", json=changes)

    async def create_claim(self, payload: Dict[str, Any]) -> CreateClaimResult:
        """POST /claims; ``payload`` may carry ``pendingUploadIds``."""
        data = await self._request("POST", "/claims", json=payload)
        return CreateClaimResult.from_dict(data)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def create_pending_upload(
        self,
        session_key: str,
        file: UploadFile,
        category: Optional[FileCategory] = None,
    ) -> Dict[str, Any]:
        """Stage a file before its claim exists.

        Returns:
            ``{"pendingUploadId", "uploadUrl", "expiresAt"}``
        """
        body: Dict[str, Any] = {"sessionKey": session_key, **file.describe()}
        if category is not None:
            body["category"] = category.value
        return await self._request("POST", "/claims/files/upload", json=body)

    async def create_claim_file_upload(
        self,
        claim_id: str,
        file: UploadFile,
        category: Optional[FileCategory] = None,
    ) -> Dict[str, Any]:
        """Request an upload target for a file of an existing claim.

        Returns:
            ``{"fileId", "uploadUrl", "expiresAt"}``
        """
        body: Dict[str, Any] = file.describe()
        if category is not None:
            body["category"] = category.value
        return await self._request("POST", f"/claims/{claim_id}/files/upload", json=body)

    async def confirm_claim_file(self, claim_id: str, file_id: str) -> Dict[str, Any]:
        """Finalize an uploaded claim file."""
        return await self._request("POST", f"/claims/{claim_id}/files/{file_id}/confirm")


class FileTransfer:
    """Streams file bytes to presigned upload targets.

    Args:
        client: Optional pre-configured client; presigned URLs are absolute
            so no base URL is needed
        timeout: Per-transfer timeout in seconds
        chunk_size: Bytes per streamed chunk, defaults to ``CLAIMFLOW_UPLOAD_CHUNK_SIZE``
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        chunk_size: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.api_timeout
        )
        self._chunk_size = chunk_size or settings.upload_chunk_size

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def put(
        self,
        url: str,
        file: UploadFile,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """PUT ``file`` to ``url``, reporting integer percent progress.

        Raises:
            ClaimApiError: On a non-2xx status or a transport failure
        """
        total = file.size
        chunk_size = self._chunk_size

        async def body():
            sent = 0
            for start in range(0, total, chunk_size):
                chunk = file.content[start:start + chunk_size]
                sent += len(chunk)
                yield chunk
                if on_progress is not None:
                    on_progress(round(sent * 100 / total))

        try:
            response = await self._client.put(
                url,
                content=body(),
                headers={"Content-Type": file.content_type, "Content-Length": str(total)},
            )
        except httpx.TransportError as exc:
            raise ClaimApiError(0, "NETWORK_ERROR", "Network error during upload") from exc

        if not response.is_success:
            raise ClaimApiError(
                response.status_code,
                "UPLOAD_FAILED",
                f"Upload failed with status {response.status_code}",
            )


__all__ = [
    "TransitionResult",
    "CreateClaimResult",
    "ClaimsApi",
    "FileTransfer",
]
