"""
Service layer orchestrators for the repository importer.
"""
from .importer import ImportResult, ImportStage, RepositoryImporter, RepositoryInfo
from .rate_limiter import FixedWindowRateLimiter
from .uploader import BulkUploader, UploadReport

__all__ = [
    "BulkUploader",
    "FixedWindowRateLimiter",
    "ImportResult",
    "ImportStage",
    "RepositoryImporter",
    "RepositoryInfo",
    "UploadReport",
]
