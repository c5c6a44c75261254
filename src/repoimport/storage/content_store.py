"""
Content store used for imported files.

The importer only needs ``upload``; ``LocalContentStore`` keeps objects under
the workspace and exposes them through the API's ``/uploads`` route.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from ..errors import UploadError, UploadErrorKind
from ..logger import get_logger
from ..settings import settings

log = get_logger(__name__)

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass(frozen=True)
class StoredObject:
    public_id: str
    secure_url: str
    resource_type: str = "raw"


class ContentStore(Protocol):
    def upload(
        self, data: bytes, public_id: str, folder: str, resource_type: str = "raw"
    ) -> StoredObject: ...


def _check_segment(segment: str) -> str:
    if not _SEGMENT_RE.match(segment) or segment in {".", ".."}:
        raise UploadError(UploadErrorKind.INVALID_KEY, segment)
    return segment


class LocalContentStore:
    """Filesystem-backed store addressed as ``<folder>/<public_id>``."""

    def __init__(self, root: Optional[Path] = None, public_base_url: Optional[str] = None) -> None:
        self.root = root or (settings.workspace_root / "uploads")
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")
        self._lock = threading.Lock()

    def upload(
        self, data: bytes, public_id: str, folder: str, resource_type: str = "raw"
    ) -> StoredObject:
        if not data:
            raise UploadError(UploadErrorKind.EMPTY_PAYLOAD, public_id)
        key = f"{_check_segment(folder)}/{_check_segment(public_id)}"
        target = self.root / key
        with self._lock:
            target.parent.mkdir(parents=True, exist_ok=True)
        try:
            target.write_bytes(data)
        except OSError as exc:
            raise UploadError(UploadErrorKind.STORE_FAILURE, f"{key}: {exc}") from exc
        log.debug("content_stored", key=key, bytes=len(data))
        return StoredObject(
            public_id=key,
            secure_url=f"{self.public_base_url}/uploads/{key}",
            resource_type=resource_type,
        )

    def resolve(self, key: str) -> Optional[Path]:
        """Map a stored key back to its file, or None when it is unknown."""
        parts = key.split("/")
        if len(parts) != 2:
            return None
        try:
            folder, public_id = (_check_segment(part) for part in parts)
        except UploadError:
            return None
        path = self.root / folder / public_id
        return path if path.is_file() else None
