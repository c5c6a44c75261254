"""
Safe extraction of GitHub zip snapshots.

Nothing in the archive is trusted: every member goes through the admission
policy using its declared size before any bytes are decompressed, and nothing
is ever written to disk here.
"""
from __future__ import annotations

import io
import zipfile
import zlib
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from ..errors import ExtractError, ExtractErrorKind
from ..logger import get_logger
from .policy import MAX_FILE_COUNT, MAX_SINGLE_FILE_BYTES, AdmissionReason, evaluate

log = get_logger(__name__)


@dataclass
class CandidateEntry:
    """One admitted archive member with its decoded bytes."""

    raw_path: str
    normalized_path: str
    size_bytes: int
    content: bytes

    @property
    def filename(self) -> str:
        return self.normalized_path.rsplit("/", 1)[-1]


@dataclass
class ExtractionStats:
    admitted: int = 0
    skipped: int = 0
    total_size_bytes: int = 0
    skipped_by_reason: Counter = field(default_factory=Counter)


@dataclass
class ExtractionResult:
    entries: List[CandidateEntry]
    skipped_count: int
    total_size_bytes: int
    skipped_by_reason: Counter


def _root_prefix(first_name: str) -> str:
    return first_name.split("/", 1)[0] + "/"


class ArchiveExtractor:
    """Walk a zip archive and yield the members the policy admits."""

    def __init__(
        self,
        max_file_bytes: int = MAX_SINGLE_FILE_BYTES,
        max_file_count: int = MAX_FILE_COUNT,
    ) -> None:
        self.max_file_bytes = max_file_bytes
        self.max_file_count = max_file_count

    @staticmethod
    def open_archive(archive_bytes: bytes) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(io.BytesIO(archive_bytes))
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, OSError) as exc:
            raise ExtractError(ExtractErrorKind.CORRUPT_ARCHIVE, str(exc)) from exc

    def _read_member(self, archive: zipfile.ZipFile, info: zipfile.ZipInfo) -> bytes:
        try:
            with archive.open(info) as handle:
                data = handle.read(info.file_size + 1)
        except (zipfile.BadZipFile, zlib.error, NotImplementedError, RuntimeError, EOFError) as exc:
            raise ExtractError(
                ExtractErrorKind.CORRUPT_ARCHIVE, f"{info.filename}: {exc}"
            ) from exc
        if len(data) > info.file_size:
            raise ExtractError(
                ExtractErrorKind.CORRUPT_ARCHIVE,
                f"{info.filename}: decoded size exceeds declared {info.file_size} bytes",
            )
        return data

    def iter_entries(
        self,
        archive: zipfile.ZipFile,
        stats: Optional[ExtractionStats] = None,
    ) -> Iterator[CandidateEntry]:
        """
        Yield admitted members in archive order.

        ``stats`` is updated as the generator advances, so the skip count is
        only final once the iterator is exhausted.
        """
        stats = stats if stats is not None else ExtractionStats()
        members = archive.infolist()
        root_prefix = _root_prefix(members[0].filename) if members else ""

        for info in members:
            if info.is_dir():
                continue

            relative_path = info.filename
            if root_prefix and relative_path.startswith(root_prefix):
                relative_path = relative_path[len(root_prefix):]
            if not relative_path:
                continue

            decision = evaluate(
                relative_path,
                info.file_size,
                stats.admitted,
                max_file_bytes=self.max_file_bytes,
                max_file_count=self.max_file_count,
            )
            if not decision.admit:
                stats.skipped += 1
                stats.skipped_by_reason[decision.reason.value] += 1
                log.debug("entry_skipped", path=relative_path, reason=decision.reason.value)
                continue

            content = self._read_member(archive, info)
            if not content:
                stats.skipped += 1
                stats.skipped_by_reason[AdmissionReason.EMPTY.value] += 1
                continue

            stats.admitted += 1
            stats.total_size_bytes += len(content)
            yield CandidateEntry(
                raw_path=info.filename,
                normalized_path=decision.normalized_path or relative_path,
                size_bytes=len(content),
                content=content,
            )

    def extract(self, archive_bytes: bytes) -> ExtractionResult:
        stats = ExtractionStats()
        with self.open_archive(archive_bytes) as archive:
            entries = list(self.iter_entries(archive, stats))
        log.info(
            "archive_extracted",
            files=len(entries),
            skipped=stats.skipped,
            total_bytes=stats.total_size_bytes,
            reasons=dict(stats.skipped_by_reason),
        )
        return ExtractionResult(
            entries=entries,
            skipped_count=stats.skipped,
            total_size_bytes=stats.total_size_bytes,
            skipped_by_reason=stats.skipped_by_reason,
        )
