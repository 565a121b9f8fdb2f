"""File payloads handed to the upload pipeline."""

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class UploadFile:
    """A file chosen for upload.

    Attributes:
        name: File name as shown to the user and sent to the API
        content: Raw bytes
        content_type: MIME type sent with the transfer
    """
    name: str
    content: bytes = field(repr=False)
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "UploadFile":
        """Read a file from disk, guessing its MIME type from the extension."""
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content=path.read_bytes(),
            content_type=content_type or DEFAULT_CONTENT_TYPE,
        )

    def describe(self) -> dict:
        """Description sent when requesting an upload target."""
        return {
            "fileName": self.name,
            "contentType": self.content_type,
            "fileSize": self.size,
        }


__all__ = ["UploadFile"]
