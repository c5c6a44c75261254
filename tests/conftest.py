"""Shared pytest fixtures for repoimport tests."""

import io
import os
import tempfile
import zipfile
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pytest

# Module-level services create their workspace on import.
os.environ.setdefault("REPOIMPORT_WORKSPACE_ROOT", tempfile.mkdtemp(prefix="repoimport-tests-"))

from repoimport.errors import FetchError, FetchErrorKind, UploadError, UploadErrorKind  # noqa: E402
from repoimport.ingestion import RepoMetadata, RepoReference  # noqa: E402
from repoimport.storage import StoredObject  # noqa: E402

ZipMember = Tuple[str, Optional[bytes]]


def build_zip(members: Iterable[ZipMember]) -> bytes:
    """Build an in-memory archive; a ``None`` payload marks a directory entry."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, payload in members:
            if payload is None:
                archive.writestr(zipfile.ZipInfo(name.rstrip("/") + "/"), b"")
            else:
                archive.writestr(name, payload)
    return buffer.getvalue()


class FakeGitHub:
    """Stands in for ``GitHubClient`` with canned metadata and archives."""

    def __init__(
        self,
        metadata: Optional[RepoMetadata] = None,
        archives: Optional[Dict[str, bytes]] = None,
        metadata_error: Optional[FetchError] = None,
        archive_errors: Optional[Dict[str, FetchError]] = None,
    ) -> None:
        self.metadata = metadata or RepoMetadata(description="demo", star_count=3, language="JavaScript", size_kb=4)
        self.archives = archives or {}
        self.metadata_error = metadata_error
        self.archive_errors = archive_errors or {}
        self.archive_requests: List[str] = []

    def repo_metadata(self, ref: RepoReference) -> RepoMetadata:
        if self.metadata_error is not None:
            raise self.metadata_error
        return self.metadata

    def download_archive(self, ref: RepoReference, branch: str, max_bytes: int) -> bytes:
        self.archive_requests.append(branch)
        url = f"https://github.com/{ref.owner}/{ref.repo}/archive/refs/heads/{branch}.zip"
        if branch in self.archive_errors:
            raise self.archive_errors[branch]
        if branch not in self.archives:
            raise FetchError(FetchErrorKind.HTTP_STATUS, url, status_code=404)
        return self.archives[branch]


class MemoryContentStore:
    """Content store keeping payloads in a dict; ``fail`` decides rejections."""

    def __init__(self, fail: Optional[Callable[[str], bool]] = None) -> None:
        self.objects: Dict[str, bytes] = {}
        self.fail = fail or (lambda public_id: False)

    def upload(self, data: bytes, public_id: str, folder: str, resource_type: str = "raw") -> StoredObject:
        if self.fail(public_id):
            raise UploadError(UploadErrorKind.STORE_FAILURE, public_id)
        key = f"{folder}/{public_id}"
        self.objects[key] = data
        return StoredObject(public_id=key, secure_url=f"https://cdn.test/{key}", resource_type=resource_type)


@pytest.fixture
def make_zip() -> Callable[[Iterable[ZipMember]], bytes]:
    return build_zip


@pytest.fixture
def fake_github_factory() -> Callable[..., FakeGitHub]:
    return FakeGitHub


@pytest.fixture
def memory_store() -> MemoryContentStore:
    return MemoryContentStore()


@pytest.fixture
def failing_store() -> MemoryContentStore:
    return MemoryContentStore(fail=lambda public_id: True)
