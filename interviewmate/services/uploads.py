"""Reading uploaded files and staging them for a knowledge-base chat message."""

import asyncio
import base64
import io
import logging
import mimetypes
from pathlib import Path
from typing import List, Sequence

from pypdf import PdfReader

from ..errors import DocumentParseError, UploadLimitError
from ..models.upload import UploadedFile

logger = logging.getLogger(__name__)

MAX_STAGED_FILES = 3
PDF_MIME_TYPE = "application/pdf"


def extract_document_text(data: bytes) -> str:
    """Extract the text of a PDF document.

    Raises:
        DocumentParseError: if the bytes are not a readable PDF
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except Exception as e:
        raise DocumentParseError(f"Failed to parse PDF: {e}") from e
    return "\n\n".join(pages)


def guess_mime_type(path: str) -> str:
    mime_type, _ = mimetypes.guess_type(path)
    return mime_type or "text/plain"


def read_file_content(path: str, mime_type: str) -> str:
    """Read a file the way it is sent to the chat endpoint.

    PDFs become their text, images an inline ``data:`` URL, anything else
    is read as UTF-8 text.
    """
    data = Path(path).read_bytes()
    if mime_type == PDF_MIME_TYPE:
        return extract_document_text(data)
    if mime_type.startswith("image/"):
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{mime_type};base64,{encoded}"
    return data.decode("utf-8", errors="replace")


class UploadStaging:
    """Files attached to the next chat message, capped at ``max_files``."""

    def __init__(self, max_files: int = MAX_STAGED_FILES):
        self.max_files = max_files
        self._staged: List[UploadedFile] = []

    @property
    def staged(self) -> List[UploadedFile]:
        return list(self._staged)

    async def stage(self, paths: Sequence[str]) -> List[UploadedFile]:
        """Read and stage files.

        Raises:
            UploadLimitError: if the total would exceed ``max_files``; nothing is read
                              and the staged files are unchanged
        """
        if len(self._staged) + len(paths) > self.max_files:
            raise UploadLimitError(f"{len(self._staged)} staged, {len(paths)} more requested")

        processed = await asyncio.gather(*(self._read(path) for path in paths))
        self._staged.extend(processed)
        logger.info(f"Staged {len(processed)} files ({len(self._staged)} total)")
        return list(processed)

    async def _read(self, path: str) -> UploadedFile:
        mime_type = guess_mime_type(path)
        upload = UploadedFile(name=Path(path).name, path=path, mime_type=mime_type)
        try:
            upload.content = await asyncio.to_thread(read_file_content, path, mime_type)
        except DocumentParseError as e:
            logger.warning(f"Could not parse {upload.name}: {e.detail}")
            upload.error = e.detail
        except OSError as e:
            logger.warning(f"Could not read {upload.name}: {e}")
            upload.error = str(e)
        return upload

    def unstage(self, index: int) -> UploadedFile:
        return self._staged.pop(index)

    def clear(self) -> None:
        self._staged = []

    def usable_contents(self) -> List[str]:
        return [upload.content for upload in self._staged if upload.is_usable]
