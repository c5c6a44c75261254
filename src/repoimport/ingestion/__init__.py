"""
Repository ingestion package.

This package turns a GitHub locator into a set of admitted files: locator
parsing, bounded retrieval, admission policy, and zip extraction.
"""
from .extractor import ArchiveExtractor, CandidateEntry, ExtractionResult
from .fetcher import BoundedReader, RemoteFetcher
from .github import GitHubClient, RepoMetadata
from .reference import RepoReference, parse_reference

__all__ = [
    "ArchiveExtractor",
    "BoundedReader",
    "CandidateEntry",
    "ExtractionResult",
    "GitHubClient",
    "RemoteFetcher",
    "RepoMetadata",
    "RepoReference",
    "parse_reference",
]
