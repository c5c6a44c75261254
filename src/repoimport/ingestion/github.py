"""
GitHub endpoints used by the importer: repository metadata and zip archives.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..settings import settings
from .fetcher import RemoteFetcher
from .reference import DEFAULT_BRANCH, RepoReference


@dataclass(frozen=True)
class RepoMetadata:
    """Snapshot of ``GET /repos/{owner}/{repo}``."""

    description: str = ""
    star_count: int = 0
    fork_count: int = 0
    language: str = ""
    size_kb: int = 0
    default_branch: str = DEFAULT_BRANCH

    @property
    def size_bytes(self) -> int:
        return self.size_kb * 1024

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "RepoMetadata":
        return cls(
            description=payload.get("description") or "",
            star_count=int(payload.get("stargazers_count") or 0),
            fork_count=int(payload.get("forks_count") or 0),
            language=payload.get("language") or "",
            size_kb=int(payload.get("size") or 0),
            default_branch=payload.get("default_branch") or DEFAULT_BRANCH,
        )


class GitHubClient:
    def __init__(
        self,
        fetcher: Optional[RemoteFetcher] = None,
        api_base: Optional[str] = None,
        archive_base: Optional[str] = None,
    ) -> None:
        self.fetcher = fetcher or RemoteFetcher()
        self.api_base = (api_base or settings.github_api_base).rstrip("/")
        self.archive_base = (archive_base or settings.github_archive_base).rstrip("/")

    def metadata_url(self, ref: RepoReference) -> str:
        return f"{self.api_base}/repos/{ref.owner}/{ref.repo}"

    def archive_url(self, ref: RepoReference, branch: str) -> str:
        return f"{self.archive_base}/{ref.owner}/{ref.repo}/archive/refs/heads/{branch}.zip"

    def repo_metadata(self, ref: RepoReference) -> RepoMetadata:
        return RepoMetadata.from_api(self.fetcher.fetch_json(self.metadata_url(ref)))

    def download_archive(self, ref: RepoReference, branch: str, max_bytes: int) -> bytes:
        return self.fetcher.fetch_bytes(self.archive_url(ref, branch), max_bytes=max_bytes)
