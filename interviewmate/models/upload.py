"""Models for files staged in the knowledge-base chat."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class UploadedFile:
    """A file staged for the next chat message.

    ``content`` holds what is sent to the chat endpoint: extracted text for
    documents, a ``data:`` URL for images, or the raw text otherwise.
    ``error`` is set when the file could not be read; such files are shown
    but never sent.
    """
    name: str
    path: str
    mime_type: str
    content: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def is_usable(self) -> bool:
        return self.error is None and self.content is not None
