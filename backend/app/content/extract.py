"""Uploaded file storage and text extraction."""

import asyncio
import io
import logging
import uuid
from pathlib import Path
from typing import Protocol

from docx import Document as DocxDocument

from backend.app.orchestration.errors import CollaboratorError

logger = logging.getLogger(__name__)

DOCX_SUFFIXES = {".docx"}
TEXT_SUFFIXES = {".txt", ".md", ".markdown"}


class FileStore(Protocol):
    """Storage for uploaded source files."""

    async def save(self, file_name: str, data: bytes) -> str:
        """Store bytes and return a file reference."""
        ...

    async def read(self, file_ref: str) -> bytes:
        """Read bytes for a file reference."""
        ...


class LocalFileStore:
    """Filesystem-backed FileStore rooted at a directory."""

    def __init__(self, root: Path) -> None:
        self._root = root

    async def save(self, file_name: str, data: bytes) -> str:
        """Store bytes under ``<root>/<uuid>/<name>``; returns the relative reference."""
        safe_name = Path(file_name).name or "upload"
        relative = Path(uuid.uuid4().hex) / safe_name
        target = self._root / relative

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        return relative.as_posix()

    async def read(self, file_ref: str) -> bytes:
        """Read stored bytes.

        Raises:
            CollaboratorError: If the reference does not resolve inside the root.
        """
        root = self._root.resolve()
        target = (root / file_ref).resolve()
        if root not in target.parents:
            raise CollaboratorError("file_store", f"Invalid file reference: {file_ref}")
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError as e:
            raise CollaboratorError("file_store", f"Stored file not found: {file_ref}") from e


def extract_text(file_name: str, data: bytes) -> str:
    """Extract raw text from an uploaded file.

    Supports .docx (paragraph text joined by newlines) and plain text files.

    Raises:
        ValueError: For unsupported file types or undecodable content.
    """
    suffix = Path(file_name).suffix.lower()

    if suffix in DOCX_SUFFIXES:
        document = DocxDocument(io.BytesIO(data))
        text = "\n".join(paragraph.text for paragraph in document.paragraphs)
        logger.info(f"Extracted {len(text)} characters from {file_name}")
        return text

    if suffix in TEXT_SUFFIXES:
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValueError(f"{file_name} is not valid UTF-8 text") from e

    raise ValueError(f"Unsupported file type: {suffix or file_name}")
