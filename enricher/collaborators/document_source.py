"""Document source: uploaded company updates per entity.

The local implementation maps an entity to a folder under a root directory.
The folder is matched case-insensitively against either the entity name or
"<name> - Company Updates". Folders with "archives" in their name are never
searched.
"""

import logging
import mimetypes
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

from enricher.core.config import DocumentConfig
from enricher.core.errors import NotFound

logger = logging.getLogger(__name__)

FOLDER_SUFFIX = " - company updates"


@dataclass(frozen=True)
class DocumentInfo:
    """Metadata for one document."""

    id: str
    name: str
    mime_type: str
    last_modified: datetime


class DocumentSource(Protocol):
    def location_for(self, entity_name: str) -> str: ...

    def list_documents(self, location_id: str) -> list[DocumentInfo]: ...

    def get_document_bytes(self, document_id: str) -> bytes: ...


def _in_archive(folder: Path) -> bool:
    """True if any component of a relative folder path is an archive folder."""
    return any(DocumentConfig.ARCHIVE_MARKER in part.lower() for part in folder.parts)


class LocalDocumentSource:
    """Documents on the local filesystem."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def location_for(self, entity_name: str) -> str:
        """Folder holding the entity's documents, relative to the root.

        Raises:
            NotFound: If no folder matches the entity.
        """
        wanted = entity_name.strip().lower()
        candidates = {wanted, wanted + FOLDER_SUFFIX}
        if self.root.is_dir():
            for folder in sorted(self.root.rglob("*")):
                if not folder.is_dir():
                    continue
                relative = folder.relative_to(self.root)
                if _in_archive(relative):
                    continue
                if folder.name.strip().lower() in candidates:
                    return relative.as_posix()
        raise NotFound(f"No document folder for {entity_name} under {self.root}")

    def list_documents(self, location_id: str) -> list[DocumentInfo]:
        folder = self.root / location_id
        if not folder.is_dir():
            raise NotFound(f"Document folder does not exist: {location_id}")

        documents = []
        for path in folder.rglob("*"):
            if not path.is_file():
                continue
            relative = path.relative_to(self.root)
            if _in_archive(relative.parent):
                continue
            mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            documents.append(DocumentInfo(
                id=relative.as_posix(),
                name=path.name,
                mime_type=mime_type,
                last_modified=modified,
            ))
        return documents

    def get_document_bytes(self, document_id: str) -> bytes:
        path = self.root / document_id
        if not path.is_file():
            raise NotFound(f"Document does not exist: {document_id}")
        return path.read_bytes()


def select_documents(
    documents: list[DocumentInfo],
    now: datetime,
    window_days: int = DocumentConfig.RECENCY_WINDOW_DAYS,
    max_recent: int = DocumentConfig.MAX_RECENT_DOCUMENTS,
    fallback_count: int = DocumentConfig.FALLBACK_DOCUMENT_COUNT,
) -> list[DocumentInfo]:
    """Pick the documents to send for extraction, newest first.

    Supported documents modified within the recency window win (at most
    ``max_recent``). If none are in the window, the ``fallback_count`` most
    recent supported documents are used regardless of age.
    """
    supported = [d for d in documents if d.mime_type in DocumentConfig.SUPPORTED_MIME_TYPES]
    supported.sort(key=lambda d: d.last_modified, reverse=True)

    cutoff = now - timedelta(days=window_days)
    recent = [d for d in supported if d.last_modified >= cutoff]
    if recent:
        return recent[:max_recent]
    return supported[:fallback_count]
