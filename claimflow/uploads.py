"""Asynchronous multi-file upload pipeline.

UploadPipeline drives 0..N file uploads concurrently on the running event
loop, one task per file, through the per-file state machine:

    pending -> uploading -> success | error
    error -> uploading        (explicit retry)
    any -> removed            (explicit delete, cancels an in-flight task)

Each file is an immutable UploadingFile stored by id; every state change
replaces the entry, and the aggregate signals (``is_uploading``,
``has_errors``, ``all_completed``, ``can_add_more``) are folds over the
current entries. Failure of one file never affects its siblings.

The upload protocol is supplied by an injected adapter (see
``claimflow.adapters``) and the byte transfer by an object exposing
``put(url, file, on_progress)`` such as ``claimflow.api.FileTransfer``.

Usage:
    >>> pipeline = UploadPipeline(adapter, transfer)          # doctest: +SKIP
    >>> pipeline.set_selected_category(FileCategory.INVOICE)  # doctest: +SKIP
    >>> pipeline.add_files([UploadFile("a.pdf", b"...")])      # doctest: +SKIP
    >>> await pipeline.wait_idle()                             # doctest: +SKIP
    >>> pipeline.all_completed                                 # doctest: +SKIP
    True
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence

from claimflow.adapters import UploadAdapter
from claimflow.config import get_settings
from claimflow.events import ClaimEvent, EventEmitter
from claimflow.files import UploadFile
from claimflow.labels import category_label
from claimflow.types import EventType, FileCategory, FileStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadingFile:
    """One entry of the pipeline.

    Attributes:
        id: Pipeline-local identifier
        file: The payload being uploaded
        category: Category selected when the file was added
        status: Current upload state
        progress: Transfer progress in percent (0-100)
        error: Failure message while in ``error``
        upload_result: Adapter result once the file reached ``success``
    """
    id: str
    file: UploadFile
    category: Optional[FileCategory] = None
    status: FileStatus = FileStatus.PENDING
    progress: int = 0
    error: Optional[str] = None
    upload_result: Any = None


class UploadPipeline:
    """Manages a bounded set of independently progressing uploads.

    Args:
        adapter: Upload protocol (pending-upload or claim-file)
        transfer: Byte transfer with ``async put(url, file, on_progress)``
        max_files: Capacity, defaults to ``CLAIMFLOW_MAX_UPLOAD_FILES`` (20)
        emitter: Optional event emitter for upload.completed / upload.failed
        claim_id: Claim the uploads belong to, None before creation
    """

    def __init__(
        self,
        adapter: UploadAdapter,
        transfer: Any,
        max_files: Optional[int] = None,
        emitter: Optional[EventEmitter] = None,
        claim_id: Optional[str] = None,
    ) -> None:
        self.adapter = adapter
        self._transfer = transfer
        self.max_files = max_files if max_files is not None else get_settings().max_upload_files
        self._emitter = emitter
        self.claim_id = claim_id
        self.selected_category: Optional[FileCategory] = None
        self._files: Dict[str, UploadingFile] = {}
        self._tasks: Dict[str, "asyncio.Task[None]"] = {}

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def files(self) -> List[UploadingFile]:
        """Current entries in the order they were added."""
        return list(self._files.values())

    def get_file(self, file_id: str) -> Optional[UploadingFile]:
        return self._files.get(file_id)

    @property
    def is_uploading(self) -> bool:
        return any(f.status == FileStatus.UPLOADING for f in self._files.values())

    @property
    def has_errors(self) -> bool:
        return any(f.status == FileStatus.ERROR for f in self._files.values())

    @property
    def all_completed(self) -> bool:
        return bool(self._files) and all(
            f.status == FileStatus.SUCCESS for f in self._files.values()
        )

    @property
    def can_add_more(self) -> bool:
        return len(self._files) < self.max_files

    def set_selected_category(self, category: Optional[FileCategory]) -> None:
        self.selected_category = category

    def get_upload_results(self) -> List[str]:
        """Submission values of every successful upload, in insertion order."""
        return [
            self.adapter.to_submission_value(f.upload_result)
            for f in self._files.values()
            if f.status == FileStatus.SUCCESS and f.upload_result is not None
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_files(self, files: Sequence[UploadFile]) -> List[UploadingFile]:
        """Add files under the selected category and start uploading them.

        Without a selected category nothing is added. Files beyond the
        remaining capacity are dropped. Must be called with a running loop.

        Returns:
            The entries that were added, all in ``pending``
        """
        if self.selected_category is None:
            logger.debug("Ignoring %d file(s): no category selected", len(files))
            return []

        available = self.max_files - len(self._files)
        if available <= 0:
            logger.info("Upload capacity of %d files reached", self.max_files)
            return []

        added = [
            UploadingFile(id=uuid.uuid4().hex, file=f, category=self.selected_category)
            for f in files[:available]
        ]
        for entry in added:
            self._files[entry.id] = entry
            self._start(entry)
        return added

    def retry_file(self, file_id: str) -> bool:
        """Restart a failed upload. Only files in ``error`` are retried.

        Returns:
            True if the file moved back to ``uploading``
        """
        entry = self._files.get(file_id)
        if entry is None or entry.status != FileStatus.ERROR:
            return False
        entry = replace(
            entry, status=FileStatus.UPLOADING, progress=0, error=None, upload_result=None
        )
        self._files[file_id] = entry
        self._start(entry)
        return True

    def remove_file(self, file_id: str) -> bool:
        """Remove a file in any state, cancelling its transfer if in flight."""
        task = self._tasks.pop(file_id, None)
        if task is not None and not task.done():
            task.cancel()
        return self._files.pop(file_id, None) is not None

    def clear_files(self) -> None:
        """Cancel every upload, drop all files and reset the category."""
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
        self._tasks.clear()
        self._files.clear()
        self.selected_category = None

    async def wait_idle(self) -> None:
        """Wait until no upload task is running, including retries started meanwhile."""
        while True:
            pending = [t for t in self._tasks.values() if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel and await every task, then drop all files."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        self.clear_files()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Per-file upload
    # ------------------------------------------------------------------

    def _update(self, file_id: str, **changes: Any) -> Optional[UploadingFile]:
        entry = self._files.get(file_id)
        if entry is None:
            return None
        entry = replace(entry, **changes)
        self._files[file_id] = entry
        return entry

    def _start(self, entry: UploadingFile) -> None:
        task = asyncio.get_running_loop().create_task(self._upload(entry))
        self._tasks[entry.id] = task

        def _forget(done: "asyncio.Task[None]", file_id: str = entry.id) -> None:
            if self._tasks.get(file_id) is done:
                del self._tasks[file_id]

        task.add_done_callback(_forget)

    async def _upload(self, entry: UploadingFile) -> None:
        file_id = entry.id
        try:
            self._update(file_id, status=FileStatus.UPLOADING, progress=0)
            ticket = await self.adapter.begin_upload(entry.file, entry.category)
            await self._transfer.put(
                ticket.upload_url,
                entry.file,
                lambda progress: self._update(file_id, progress=progress),
            )
            confirm = getattr(self.adapter, "confirm_upload", None)
            if confirm is not None:
                await confirm(ticket.result)
        except asyncio.CancelledError:
            logger.debug("Upload of %s cancelled", entry.file.name)
            raise
        except Exception as exc:
            message = str(exc) or "Upload failed"
            if self._update(file_id, status=FileStatus.ERROR, error=message) is not None:
                logger.warning("Upload of %s failed: %s", entry.file.name, message)
                self._emit(EventType.UPLOAD_FAILED, entry, error=message)
            return

        if self._update(
            file_id, status=FileStatus.SUCCESS, progress=100, upload_result=ticket.result
        ) is not None:
            logger.info("Uploaded %s (%s)", entry.file.name, category_label(entry.category))
            self._emit(EventType.UPLOAD_COMPLETED, entry)

    def _emit(self, event_type: EventType, entry: UploadingFile, **extra: Any) -> None:
        if self._emitter is None:
            return
        payload: Dict[str, Any] = {
            "fileId": entry.id,
            "fileName": entry.file.name,
            "category": entry.category.value if entry.category else None,
            **extra,
        }
        self._emitter.emit(ClaimEvent.create(event_type, self.claim_id, payload))


__all__ = [
    "UploadingFile",
    "UploadPipeline",
]
