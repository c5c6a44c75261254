"""
Exception hierarchy for the import pipeline.

Components raise their own ``kind``-tagged errors (``ParseError``,
``FetchError``, ``ExtractError``, ``UploadError``). The import service
translates them into ``ImporterError`` subclasses, which carry the HTTP status
the API layer answers with.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ImporterError(Exception):
    """Failure surfaced to callers of the import service."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InputError(ImporterError):
    status_code = 400


class NotFoundError(ImporterError):
    status_code = 404


class AuthError(ImporterError):
    status_code = 401


class QuotaError(ImporterError):
    """Repository too large (413) or caller rate limited (429)."""

    status_code = 413


class IntegrityError(ImporterError):
    """Corrupt archive, nothing admissible, or nothing uploaded."""

    status_code = 500


class DependencyError(ImporterError):
    status_code = 500


class ParseErrorKind(str, Enum):
    NOT_GITHUB_HOST = "not_github_host"
    MISSING_REPO_SEGMENT = "missing_repo_segment"
    INVALID_IDENTIFIER = "invalid_identifier"


class ParseError(ValueError):
    def __init__(self, kind: ParseErrorKind, raw: str) -> None:
        super().__init__(f"{kind.value}: {raw!r}")
        self.kind = kind
        self.raw = raw


class FetchErrorKind(str, Enum):
    HTTP_STATUS = "http_status"
    SIZE_EXCEEDED = "size_exceeded"
    MALFORMED_BODY = "malformed_body"
    TOO_MANY_REDIRECTS = "too_many_redirects"
    TRANSPORT = "transport"


class FetchError(Exception):
    def __init__(
        self,
        kind: FetchErrorKind,
        url: str,
        detail: str = "",
        status_code: Optional[int] = None,
    ) -> None:
        message = f"{kind.value} fetching {url}"
        if status_code is not None:
            message += f" (HTTP {status_code})"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.kind = kind
        self.url = url
        self.status_code = status_code


class ExtractErrorKind(str, Enum):
    CORRUPT_ARCHIVE = "corrupt_archive"


class ExtractError(Exception):
    def __init__(self, kind: ExtractErrorKind, detail: str = "") -> None:
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)
        self.kind = kind


class UploadErrorKind(str, Enum):
    EMPTY_PAYLOAD = "empty_payload"
    INVALID_KEY = "invalid_key"
    STORE_FAILURE = "store_failure"


class UploadError(Exception):
    def __init__(self, kind: UploadErrorKind, detail: str = "") -> None:
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)
        self.kind = kind
