"""
Batched upload of extracted files to the content store.
"""
from __future__ import annotations

import re
import secrets
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from ..ingestion.extractor import CandidateEntry
from ..ingestion.policy import guess_mime_type
from ..logger import get_logger
from ..settings import settings
from ..storage import ContentStore, UploadedFile

log = get_logger(__name__)

DEFAULT_BATCH_SIZE = 10
_MAX_NAME_CHARS = 100
_EXTENSION_RE = re.compile(r"\.[^/.]+$")
_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9_-]")


def storage_name(filename: str) -> str:
    """Extension stripped, unsafe characters replaced, truncated."""
    stem = _EXTENSION_RE.sub("", filename)
    return _UNSAFE_RE.sub("_", stem)[:_MAX_NAME_CHARS]


def unique_public_id(filename: str) -> str:
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}-{storage_name(filename)}"


@dataclass
class UploadReport:
    files: List[UploadedFile] = field(default_factory=list)
    failed_paths: List[str] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failed_paths)


class BulkUploader:
    """
    Push entries to a ``ContentStore`` in sequential, internally concurrent
    batches.

    A failed upload is logged and counted; it never stops the remaining
    uploads. The order of ``UploadReport.files`` does not follow the input
    order, so match results on ``relative_path``.
    """

    def __init__(self, store: ContentStore, batch_size: Optional[int] = None) -> None:
        self.store = store
        self.batch_size = max(1, batch_size or settings.upload_batch_size or DEFAULT_BATCH_SIZE)

    def _upload_one(self, entry: CandidateEntry, folder: str) -> Optional[UploadedFile]:
        try:
            stored = self.store.upload(
                entry.content,
                public_id=unique_public_id(entry.filename),
                folder=folder,
                resource_type="raw",
            )
        except Exception as exc:
            log.warning("upload_failed", path=entry.normalized_path, error=str(exc))
            return None
        return UploadedFile(
            storage_key=stored.public_id,
            original_name=entry.filename,
            mime_type=guess_mime_type(entry.normalized_path),
            size_bytes=entry.size_bytes,
            relative_path=entry.normalized_path,
            content_url=stored.secure_url,
            resource_type=stored.resource_type,
        )

    def upload_all(
        self,
        entries: Sequence[CandidateEntry],
        folder: Optional[str] = None,
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> UploadReport:
        folder = folder or settings.content_folder
        report = UploadReport()
        total = len(entries)
        if progress:
            progress(0, total)
        if not total:
            return report

        with ThreadPoolExecutor(max_workers=self.batch_size) as pool:
            for start in range(0, total, self.batch_size):
                batch = entries[start : start + self.batch_size]
                futures = [(entry, pool.submit(self._upload_one, entry, folder)) for entry in batch]
                for entry, future in futures:
                    uploaded = future.result()
                    if uploaded is None:
                        report.failed_paths.append(entry.normalized_path)
                    else:
                        report.files.append(uploaded)
                if progress:
                    progress(min(start + len(batch), total), total)

        log.info("upload_completed", uploaded=len(report.files), failed=report.failed_count)
        return report
