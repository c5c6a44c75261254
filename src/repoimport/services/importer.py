"""
Repository import workflow orchestration.

``RepositoryImporter.import_repository`` runs the pipeline strictly in order:
rate check, locator parsing, metadata lookup and size gate, archive download
(with a single ``master`` fallback), extraction, upload, and commit of the
resulting container. Every failure leaves as an ``ImporterError`` subclass.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..errors import (
    DependencyError,
    ExtractError,
    FetchError,
    FetchErrorKind,
    ImporterError,
    InputError,
    IntegrityError,
    NotFoundError,
    ParseError,
    QuotaError,
)
from ..ingestion import (
    ArchiveExtractor,
    GitHubClient,
    RepoMetadata,
    RepoReference,
    parse_reference,
)
from ..ingestion.reference import FALLBACK_BRANCH
from ..logger import get_logger
from ..settings import settings
from ..storage import Container, ContainerRegistry, LocalContentStore
from ..storage.containers import hash_password
from .rate_limiter import FixedWindowRateLimiter
from .uploader import BulkUploader

log = get_logger(__name__)

_CONTAINER_NAME_LIMIT = 50


class ImportStage(str, Enum):
    IDLE = "idle"
    RATE_CHECKED = "rate_checked"
    PARSED = "parsed"
    METADATA_FETCHED = "metadata_fetched"
    SIZE_GATED = "size_gated"
    ARCHIVE_FETCHED = "archive_fetched"
    EXTRACTED = "extracted"
    UPLOADED = "uploaded"
    COMMITTED = "committed"
    ERRORED = "errored"


@dataclass(frozen=True)
class RepoInfo:
    owner: str
    repo: str
    branch: str
    description: str
    stars: int
    language: str


@dataclass(frozen=True)
class ImportResult:
    container_id: str
    container_name: str
    password: str
    sandbox_url: str
    file_count: int
    skipped_count: int
    failed_count: int
    total_size_bytes: int
    repo_info: RepoInfo


@dataclass(frozen=True)
class RepositoryInfo:
    """Preview returned before an import is started."""

    owner: str
    repo: str
    branch: str
    description: str
    stars: int
    forks: int
    language: str
    size_kb: int
    size_human: str
    is_too_big: bool
    default_branch: str


class _StageTracker:
    def __init__(self, callback: Optional[Callable[[ImportStage], None]]) -> None:
        self.stage = ImportStage.IDLE
        self._callback = callback

    def advance(self, stage: ImportStage) -> None:
        self.stage = stage
        if self._callback:
            self._callback(stage)


def _human_megabytes(size_kb: int) -> str:
    return f"{int(size_kb / 1024 + 0.5)}MB"


def derive_container_name(ref: RepoReference) -> str:
    return f"gh-{ref.owner}-{ref.repo}"[:_CONTAINER_NAME_LIMIT]


class RepositoryImporter:
    """High-level service that chains parsing, retrieval, extraction, and upload."""

    def __init__(
        self,
        github: Optional[GitHubClient] = None,
        extractor: Optional[ArchiveExtractor] = None,
        uploader: Optional[BulkUploader] = None,
        registry: Optional[ContainerRegistry] = None,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        max_repo_size_bytes: Optional[int] = None,
    ) -> None:
        self.github = github or GitHubClient()
        self.extractor = extractor or ArchiveExtractor(
            max_file_bytes=settings.max_file_bytes,
            max_file_count=settings.max_file_count,
        )
        self.uploader = uploader or BulkUploader(LocalContentStore())
        self.registry = registry or ContainerRegistry()
        self.rate_limiter = rate_limiter
        self.max_repo_size_bytes = max_repo_size_bytes or settings.max_repo_size_bytes

    def _parse(self, repo_url: Optional[str]) -> RepoReference:
        if not repo_url or not repo_url.strip():
            raise InputError("Repository URL is required")
        try:
            return parse_reference(repo_url)
        except ParseError as exc:
            log.info("locator_rejected", locator=repo_url, kind=exc.kind.value)
            raise InputError(
                "Invalid GitHub URL. Use format: https://github.com/owner/repo"
            ) from exc

    def _metadata(self, ref: RepoReference) -> RepoMetadata:
        try:
            return self.github.repo_metadata(ref)
        except FetchError as exc:
            log.warning("metadata_fetch_failed", repo=ref.full_name, error=str(exc))
            raise NotFoundError(
                f"Repository not found: {ref.full_name}. Make sure it's a public repository."
            ) from exc

    @property
    def _limit_mb(self) -> int:
        return self.max_repo_size_bytes // (1024 * 1024)

    def _too_large(self, size_bytes: int) -> QuotaError:
        return QuotaError(
            f"Repository is too large ({int(size_bytes / 1024 / 1024 + 0.5)}MB). "
            f"Maximum allowed is {self._limit_mb}MB.",
            status_code=413,
        )

    def _archive_too_large(self) -> QuotaError:
        return QuotaError(
            f"Repository archive exceeds {self._limit_mb}MB limit", status_code=413
        )

    def _download(self, ref: RepoReference) -> tuple[bytes, str]:
        """Fetch the archive, retrying once on ``master`` for defaulted branches."""
        branch = ref.branch
        try:
            return self.github.download_archive(ref, branch, self.max_repo_size_bytes), branch
        except FetchError as exc:
            if exc.kind is FetchErrorKind.SIZE_EXCEEDED:
                raise self._archive_too_large() from exc
            if ref.explicit_branch:
                raise NotFoundError(
                    f'Could not download repository. Branch "{branch}" not found.'
                ) from exc
            log.info("archive_branch_fallback", repo=ref.full_name, failed=branch, error=str(exc))

        try:
            archive = self.github.download_archive(ref, FALLBACK_BRANCH, self.max_repo_size_bytes)
        except FetchError as exc:
            if exc.kind is FetchErrorKind.SIZE_EXCEEDED:
                raise self._archive_too_large() from exc
            raise NotFoundError(
                f'Could not download repository. Branch "{branch}" not found. '
                "Try specifying a branch."
            ) from exc
        return archive, FALLBACK_BRANCH

    def _unique_name(self, ref: RepoReference) -> str:
        name = derive_container_name(ref)
        if self.registry.name_exists(name):
            name = f"{name}-{secrets.token_hex(3)}"
        return name

    def import_repository(
        self,
        repo_url: Optional[str],
        branch: Optional[str] = None,
        client_id: str = "unknown",
        on_stage: Optional[Callable[[ImportStage], None]] = None,
    ) -> ImportResult:
        """Execute the full import for one locator."""
        tracker = _StageTracker(on_stage)
        try:
            return self._run(tracker, repo_url, branch, client_id)
        except ImporterError as exc:
            failed_at = tracker.stage
            tracker.advance(ImportStage.ERRORED)
            log.warning(
                "import_failed",
                locator=repo_url,
                stage=failed_at.value,
                status=exc.status_code,
                error=exc.message,
            )
            raise
        except Exception as exc:
            failed_at = tracker.stage
            tracker.advance(ImportStage.ERRORED)
            log.error("import_crashed", locator=repo_url, stage=failed_at.value, exc_info=True)
            raise DependencyError("Failed to import repository. Please try again.") from exc

    def _run(
        self,
        tracker: _StageTracker,
        repo_url: Optional[str],
        branch: Optional[str],
        client_id: str,
    ) -> ImportResult:
        if self.rate_limiter is not None and not self.rate_limiter.check(client_id):
            raise QuotaError(
                "Too many import requests. Please wait a minute and try again.",
                status_code=429,
            )
        tracker.advance(ImportStage.RATE_CHECKED)

        ref = self._parse(repo_url)
        if branch and branch.strip():
            ref = ref.with_branch(branch.strip())
        tracker.advance(ImportStage.PARSED)
        log.info("import_started", repo=ref.full_name, branch=ref.branch, client=client_id)

        metadata = self._metadata(ref)
        tracker.advance(ImportStage.METADATA_FETCHED)

        if metadata.size_bytes > self.max_repo_size_bytes:
            raise self._too_large(metadata.size_bytes)
        tracker.advance(ImportStage.SIZE_GATED)

        archive, resolved_branch = self._download(ref)
        tracker.advance(ImportStage.ARCHIVE_FETCHED)

        try:
            extraction = self.extractor.extract(archive)
        except ExtractError as exc:
            raise IntegrityError("Failed to process repository archive", status_code=500) from exc
        if not extraction.entries:
            raise IntegrityError("No valid files found in the repository", status_code=400)
        tracker.advance(ImportStage.EXTRACTED)

        report = self.uploader.upload_all(extraction.entries)
        if not report.files:
            raise IntegrityError("Failed to upload repository files", status_code=500)
        tracker.advance(ImportStage.UPLOADED)

        password = secrets.token_hex(6)
        container = Container(
            name=self._unique_name(ref),
            password_hash=hash_password(password),
            files=report.files,
            source=f"github:{ref.full_name}@{resolved_branch}",
        )
        self.registry.save(container)
        tracker.advance(ImportStage.COMMITTED)

        log.info(
            "import_completed",
            repo=ref.full_name,
            branch=resolved_branch,
            container=container.name,
            files=len(report.files),
            skipped=extraction.skipped_count,
            failed=report.failed_count,
        )
        return ImportResult(
            container_id=container.id,
            container_name=container.name,
            password=password,
            sandbox_url=f"#/sandbox/{container.id}",
            file_count=len(report.files),
            skipped_count=extraction.skipped_count,
            failed_count=report.failed_count,
            total_size_bytes=extraction.total_size_bytes,
            repo_info=RepoInfo(
                owner=ref.owner,
                repo=ref.repo,
                branch=resolved_branch,
                description=metadata.description,
                stars=metadata.star_count,
                language=metadata.language,
            ),
        )

    def repository_info(self, repo_url: Optional[str]) -> RepositoryInfo:
        """Metadata preview for a locator, without downloading anything."""
        if not repo_url or not repo_url.strip():
            raise InputError("URL parameter is required")
        try:
            ref = parse_reference(repo_url)
        except ParseError as exc:
            raise InputError("Invalid GitHub URL") from exc
        try:
            metadata = self._metadata(ref)
        except ImporterError:
            raise
        except Exception as exc:
            log.error("info_crashed", repo=ref.full_name, exc_info=True)
            raise DependencyError("Failed to fetch repository info") from exc
        return RepositoryInfo(
            owner=ref.owner,
            repo=ref.repo,
            branch=ref.branch,
            description=metadata.description,
            stars=metadata.star_count,
            forks=metadata.fork_count,
            language=metadata.language,
            size_kb=metadata.size_kb,
            size_human=_human_megabytes(metadata.size_kb),
            is_too_big=metadata.size_bytes > self.max_repo_size_bytes,
            default_branch=metadata.default_branch,
        )
